"""hardhat-shield configuration.

Centralised, typed configuration for the bootstrap pipeline. All settings use
Pydantic v2 models so they can be validated at construction time and serialised
to/from JSON or environment variables without boiler-plate.

One ``Config`` instance is created by the CLI and threaded through every
pipeline stage; stages fill in values that were not preset (project directory,
token name and symbol) from interactive prompts.
"""

from __future__ import annotations

import os
import re
from decimal import Decimal
from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field, field_validator

DEFAULT_PACKAGES: list[str] = [
    "hardhat",
    "dotenv",
    "@swisstronik/utils",
    "@openzeppelin/contracts",
    "@nomicfoundation/hardhat-toolbox",
]

DEFAULT_RECIPIENT = "0x16af037878a6cAce2Ea29d39A3757aC2F6F7aac1"

_ADDRESS_RE = re.compile(r"^0x[0-9a-fA-F]{40}$")
_IDENTIFIER_RE = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")


def is_address(value: str) -> bool:
    """Return ``True`` if *value* looks like a 20-byte hex account address."""
    return bool(_ADDRESS_RE.match(value))


def check_literal_safe(value: str, label: str) -> str:
    """Validate a value that is embedded inside a double-quoted Solidity literal.

    Only printable ASCII is accepted and the two characters that terminate or
    escape a Solidity string (``"`` and ``\\``) are refused.

    Raises:
        ValueError: If the value is empty or contains a refused character.
    """
    value = value.strip()
    if not value:
        raise ValueError(f"{label} must not be empty")
    for ch in value:
        if ch in ('"', "\\"):
            raise ValueError(f"{label} must not contain {ch!r}: {value!r}")
        if not (" " <= ch <= "~"):
            raise ValueError(
                f"{label} must contain printable ASCII characters only: {value!r}"
            )
    return value


class NetworkProfile(BaseModel):
    """The single target network rendered into ``hardhat.config.js``."""

    name: str = Field(default="swisstronik")
    rpc_url: str = Field(default="https://json-rpc.testnet.swisstronik.com/")
    explorer_url: str = Field(default="https://explorer-evm.testnet.swisstronik.com")
    solidity_version: str = Field(default="0.8.20")
    account_env_var: str = Field(default="PRIVATE_KEY")

    @field_validator("name", "account_env_var")
    @classmethod
    def _identifier(cls, value: str) -> str:
        if not _IDENTIFIER_RE.match(value):
            raise ValueError(f"must be a plain identifier, got {value!r}")
        return value

    @field_validator("rpc_url", "explorer_url")
    @classmethod
    def _http_url(cls, value: str) -> str:
        if not value.startswith(("http://", "https://")):
            raise ValueError(f"must be an http(s) URL, got {value!r}")
        if any(ch in value for ch in "\"'`$\n"):
            raise ValueError(f"URL contains a quote, '$' or newline: {value!r}")
        return value

    @field_validator("solidity_version")
    @classmethod
    def _version(cls, value: str) -> str:
        if not re.match(r"^\d+\.\d+\.\d+$", value):
            raise ValueError(f"expected a MAJOR.MINOR.PATCH version, got {value!r}")
        return value

    def tx_url(self, tx_hash: str) -> str:
        """Block-explorer link for a transaction hash."""
        return f"{self.explorer_url.rstrip('/')}/tx/{tx_hash}"

    def address_url(self, address: str) -> str:
        """Block-explorer link for an account or contract address."""
        return f"{self.explorer_url.rstrip('/')}/address/{address}"


class TokenDescriptor(BaseModel):
    """Name and symbol of the generated ERC20 token.

    Both strings end up verbatim inside ``ERC20("<name>","<symbol>")``, so
    anything that would break the literal is rejected here instead of being
    escaped.
    """

    name: str
    symbol: str
    contract_name: str = Field(default="TestToken")
    decimals: int = Field(default=18, ge=0, le=36)

    @field_validator("name")
    @classmethod
    def _name(cls, value: str) -> str:
        return check_literal_safe(value, "Token name")

    @field_validator("symbol")
    @classmethod
    def _symbol(cls, value: str) -> str:
        return check_literal_safe(value, "Token symbol")

    @field_validator("contract_name")
    @classmethod
    def _contract_name(cls, value: str) -> str:
        if not _IDENTIFIER_RE.match(value):
            raise ValueError(f"Contract name must be a Solidity identifier, got {value!r}")
        return value


class TransferSettings(BaseModel):
    """Recipient and amount hard-wired into ``scripts/transfer.js``."""

    recipient: str = Field(default=DEFAULT_RECIPIENT)
    amount: str = Field(default="1", description="Whole tokens, decimal string")

    @field_validator("recipient")
    @classmethod
    def _recipient(cls, value: str) -> str:
        value = value.strip()
        if not is_address(value):
            raise ValueError(f"Recipient is not a 0x-prefixed 20-byte address: {value!r}")
        return value

    @field_validator("amount")
    @classmethod
    def _amount(cls, value: str) -> str:
        value = str(value).strip()
        # ethers.parseUnits only accepts plain decimal notation.
        if not re.match(r"^\d+(\.\d+)?$", value):
            raise ValueError(f"Transfer amount is not a plain decimal number: {value!r}")
        if Decimal(value) <= 0:
            raise ValueError(f"Transfer amount must be positive: {value!r}")
        return value


class TimeoutConfig(BaseModel):
    """Wall-clock limits (seconds) for every non-interactive external call."""

    install: int = Field(default=600, ge=10, description="npm list / npm install")
    compile: int = Field(default=300, ge=10, description="hardhat compile")
    network: int = Field(default=300, ge=10, description="hardhat run against the network")
    rpc: int = Field(default=15, ge=1, description="Per JSON-RPC request")
    rpc_retries: int = Field(default=2, ge=0, description="Extra attempts per JSON-RPC request")


class Config(BaseModel):
    """Global hardhat-shield configuration.

    ``project_dir``, ``token`` and ``private_key`` start out empty when the
    operator is expected to answer a prompt for them.
    """

    project_dir: Path | None = Field(default=None)
    manifest_dir: Path = Field(default_factory=Path.cwd)
    packages: list[str] = Field(default_factory=lambda: list(DEFAULT_PACKAGES))
    network: NetworkProfile = Field(default_factory=NetworkProfile)
    token: TokenDescriptor | None = Field(default=None)
    transfer: TransferSettings = Field(default_factory=TransferSettings)
    timeouts: TimeoutConfig = Field(default_factory=TimeoutConfig)
    state_dir: str = Field(default=".hardhat-shield")
    address_file: str = Field(default="contract.txt")
    check_rpc: bool = Field(default=True)
    skip_deploy: bool = Field(default=False)

    # Never serialised; see ``save``.
    private_key: str | None = Field(default=None, exclude=True, repr=False)

    @field_validator("packages")
    @classmethod
    def _packages(cls, value: list[str]) -> list[str]:
        cleaned = [name.strip() for name in value]
        if any(not name for name in cleaned):
            raise ValueError("Package names must be non-empty")
        return cleaned

    # ------------------------------------------------------------------
    # Derived paths (read-only properties)
    # ------------------------------------------------------------------

    @property
    def root(self) -> Path:
        """Project root; only valid after the INIT stage resolved it."""
        if self.project_dir is None:
            raise RuntimeError("Project directory has not been resolved yet")
        return self.project_dir

    @property
    def env_path(self) -> Path:
        return self.root / ".env"

    @property
    def gitignore_path(self) -> Path:
        return self.root / ".gitignore"

    @property
    def hardhat_config_path(self) -> Path:
        return self.root / "hardhat.config.js"

    @property
    def contracts_dir(self) -> Path:
        return self.root / "contracts"

    @property
    def contract_path(self) -> Path:
        return self.contracts_dir / "Token.sol"

    @property
    def sample_contract_path(self) -> Path:
        """The sample contract ``hardhat init`` lays down."""
        return self.contracts_dir / "Lock.sol"

    @property
    def scripts_dir(self) -> Path:
        return self.root / "scripts"

    @property
    def address_record_path(self) -> Path:
        return self.root / self.address_file

    @property
    def state_path(self) -> Path:
        """Path to the persisted pipeline state JSON file."""
        return self.root / self.state_dir / "pipeline-state.json"

    def script_path(self, name: str) -> Path:
        """Path of a generated automation script (``deploy``, ``mint``...)."""
        return self.scripts_dir / f"{name}.js"

    # ------------------------------------------------------------------
    # Serialisation helpers
    # ------------------------------------------------------------------

    def save(self, path: Path | None = None) -> Path:
        """Persist the configuration to a JSON file.

        The private key is excluded from the dump.

        Args:
            path: Destination file. Defaults to ``<project>/.hardhat-shield/config.json``.

        Returns:
            The path where the file was written.
        """
        target = path or (self.root / self.state_dir / "config.json")
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_text(self.model_dump_json(indent=2), encoding="utf-8")
        return target

    @classmethod
    def load(cls, path: Path) -> "Config":
        """Load a previously-saved configuration from JSON."""
        raw = Path(path).read_text(encoding="utf-8")
        return cls.model_validate_json(raw)

    @classmethod
    def from_env(cls) -> "Config":
        """Build a ``Config`` from environment variables.

        Recognised variables (all optional):
            HHS_PROJECT_DIR, HHS_MANIFEST_DIR, HHS_NETWORK_NAME, HHS_RPC_URL,
            HHS_EXPLORER_URL, HHS_SOLIDITY_VERSION, HHS_TOKEN_NAME,
            HHS_TOKEN_SYMBOL, HHS_TRANSFER_RECIPIENT, HHS_TRANSFER_AMOUNT,
            HHS_INSTALL_TIMEOUT, HHS_COMPILE_TIMEOUT, HHS_NETWORK_TIMEOUT,
            HHS_RPC_TIMEOUT.
        """
        network_kwargs: dict[str, Any] = {}
        if os.environ.get("HHS_NETWORK_NAME"):
            network_kwargs["name"] = os.environ["HHS_NETWORK_NAME"]
        if os.environ.get("HHS_RPC_URL"):
            network_kwargs["rpc_url"] = os.environ["HHS_RPC_URL"]
        if os.environ.get("HHS_EXPLORER_URL"):
            network_kwargs["explorer_url"] = os.environ["HHS_EXPLORER_URL"]
        if os.environ.get("HHS_SOLIDITY_VERSION"):
            network_kwargs["solidity_version"] = os.environ["HHS_SOLIDITY_VERSION"]

        transfer_kwargs: dict[str, Any] = {}
        if os.environ.get("HHS_TRANSFER_RECIPIENT"):
            transfer_kwargs["recipient"] = os.environ["HHS_TRANSFER_RECIPIENT"]
        if os.environ.get("HHS_TRANSFER_AMOUNT"):
            transfer_kwargs["amount"] = os.environ["HHS_TRANSFER_AMOUNT"]

        timeout_kwargs: dict[str, Any] = {}
        for field_name, var in (
            ("install", "HHS_INSTALL_TIMEOUT"),
            ("compile", "HHS_COMPILE_TIMEOUT"),
            ("network", "HHS_NETWORK_TIMEOUT"),
            ("rpc", "HHS_RPC_TIMEOUT"),
        ):
            if os.environ.get(var):
                timeout_kwargs[field_name] = os.environ[var]

        token: TokenDescriptor | None = None
        if os.environ.get("HHS_TOKEN_NAME") and os.environ.get("HHS_TOKEN_SYMBOL"):
            token = TokenDescriptor(
                name=os.environ["HHS_TOKEN_NAME"],
                symbol=os.environ["HHS_TOKEN_SYMBOL"],
            )

        kwargs: dict[str, Any] = {}
        if os.environ.get("HHS_PROJECT_DIR"):
            kwargs["project_dir"] = Path(os.environ["HHS_PROJECT_DIR"])
        if os.environ.get("HHS_MANIFEST_DIR"):
            kwargs["manifest_dir"] = Path(os.environ["HHS_MANIFEST_DIR"])

        return cls(
            network=NetworkProfile(**network_kwargs),
            transfer=TransferSettings(**transfer_kwargs),
            timeouts=TimeoutConfig(**timeout_kwargs),
            token=token,
            **kwargs,
        )
