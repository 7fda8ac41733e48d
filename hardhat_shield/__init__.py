"""hardhat-shield -- bootstrap a Hardhat ERC20 project for the Swisstronik testnet.

Installs the npm toolchain, scaffolds a Hardhat project, generates a token
contract plus deploy/mint/transfer scripts that send shielded (client-side
encrypted) transactions, compiles and deploys.
"""

__version__ = "0.1.0"
