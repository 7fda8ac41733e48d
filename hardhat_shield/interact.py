"""Post-deploy commands: run the mint/transfer scripts and report status.

These operate on an already bootstrapped project.  The address record is
checked on the Python side first so a missing deployment is reported as
:class:`~hardhat_shield.errors.NoDeployedContractError` before any Node
process is started; the generated scripts perform the same check themselves
when run by hand.
"""

from __future__ import annotations

import re
from typing import Any

from .address_record import read_address_record
from .config import Config
from .errors import TransactionRevertedError
from .rpc_client import ChainClient, RpcError
from .tooling import ScriptRunner
from .utils import print_step, print_success, print_tool_output, print_warning

_TX_HASH_RE = re.compile(r"/tx/(0x[0-9a-fA-F]{64})")

INTERACTION_SCRIPTS = ("mint", "transfer")


def extract_tx_hash(output: str) -> str | None:
    """Pull the transaction hash out of a script's explorer-link confirmation."""
    match = _TX_HASH_RE.search(output)
    return match.group(1) if match else None


async def run_interaction(
    config: Config,
    runner: ScriptRunner,
    script: str,
    chain: ChainClient | None = None,
) -> dict[str, Any]:
    """Run ``scripts/<script>.js`` against the configured network.

    The transaction hash is taken from the script's explorer link.  When
    *chain* is given the hash is looked up with ``eth_getTransactionReceipt``
    and ``receipt_status`` is one of ``"success"``, ``"pending"`` or
    ``"unknown"`` (lookup failed); otherwise it is ``None``.

    Raises:
        ValueError: If *script* is not one of the interaction scripts.
        NoDeployedContractError: If there is no usable address record.
        ExternalToolError: If the script exits non-zero.
        TransactionRevertedError: If the receipt reports a failed transaction.
    """
    if script not in INTERACTION_SCRIPTS:
        raise ValueError(f"Unknown interaction script {script!r}")

    address = read_address_record(config.address_record_path)
    print_step(f"Running {script}.js against {address} on {config.network.name}...")
    output = await runner.run_script(config.script_path(script), config.network.name, config.root)
    print_tool_output(output)

    tx_hash = extract_tx_hash(output)
    result: dict[str, Any] = {
        "script": script,
        "contract": address,
        "tx_hash": tx_hash,
        "receipt_status": None,
    }
    if not tx_hash:
        print_warning(
            f"{script}.js exited cleanly but printed no transaction link; "
            "no transaction was confirmed."
        )
        return result

    result["explorer_url"] = config.network.tx_url(tx_hash)
    if chain is None:
        print_success(f"{script.capitalize()} transaction sent: {tx_hash}")
        return result

    result["receipt_status"] = await _receipt_status(chain, tx_hash)
    if result["receipt_status"] == "success":
        print_success(f"{script.capitalize()} transaction confirmed: {tx_hash}")
    return result


async def _receipt_status(chain: ChainClient, tx_hash: str) -> str:
    try:
        receipt = await chain.get_transaction_receipt(tx_hash)
    except RpcError as exc:
        print_warning(f"Could not look up the receipt for {tx_hash}: {exc}")
        return "unknown"
    if receipt is None:
        print_warning(f"Transaction {tx_hash} is not yet known to the node.")
        return "pending"
    if receipt.get("status") == "0x0":
        raise TransactionRevertedError(tx_hash)
    return "success"


async def contract_status(config: Config, chain: ChainClient | None = None) -> dict[str, Any]:
    """Describe the deployed contract recorded for this project.

    When *chain* is given, also report whether bytecode exists at the address.
    """
    address = read_address_record(config.address_record_path)
    status: dict[str, Any] = {
        "address": address,
        "network": config.network.name,
        "explorer_url": config.network.address_url(address),
    }
    if chain is not None:
        code = await chain.get_code(address)
        status["has_code"] = code not in ("", "0x", "0x0")
    return status
