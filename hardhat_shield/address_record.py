"""Reading the address record written by the generated deploy script.

The deploy script is the only writer; Python only ever reads the file back,
either to confirm a deployment or for the ``status`` command.
"""

from __future__ import annotations

from pathlib import Path

from .config import is_address
from .errors import NoDeployedContractError


def read_address_record(path: Path) -> str:
    """Return the deployed contract address stored at *path*.

    Raises:
        NoDeployedContractError: If the file is absent, empty, or does not
            contain a single ``0x`` address.
    """
    if not path.is_file():
        raise NoDeployedContractError(str(path), "missing")
    address = path.read_text(encoding="utf-8").strip()
    if not address:
        raise NoDeployedContractError(str(path), "empty")
    if not is_address(address):
        raise NoDeployedContractError(str(path), f"malformed address {address!r}")
    return address
