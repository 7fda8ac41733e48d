"""Exception hierarchy shared by the pipeline stages and the CLI."""

from __future__ import annotations


class ShieldError(Exception):
    """Base class for every error hardhat-shield raises on purpose."""


class EnvironmentSetupError(ShieldError):
    """Missing dependency, unusable directory, or unreachable network."""


class InputError(ShieldError):
    """An operator-supplied value is empty or cannot be used safely."""


class ExternalToolError(ShieldError):
    """An external command (npm, hardhat) exited non-zero or timed out.

    The tool's own output is kept verbatim so it can be shown unchanged.
    """

    def __init__(self, command: str, exit_code: int, output: str = "") -> None:
        self.command = command
        self.exit_code = exit_code
        self.output = output
        message = f"`{command}` failed with exit code {exit_code}"
        if output:
            message = f"{message}\n{output}"
        super().__init__(message)


class NoDeployedContractError(ShieldError):
    """The address record is missing, empty, or does not hold an address."""

    def __init__(self, path: str, reason: str = "missing") -> None:
        self.path = path
        self.reason = reason
        super().__init__(
            f"No deployed contract found ({reason}: {path}). "
            "Deploy the contract first."
        )


class TransactionRevertedError(ShieldError):
    """A script's transaction was mined but its receipt reports failure."""

    def __init__(self, tx_hash: str) -> None:
        self.tx_hash = tx_hash
        super().__init__(f"Transaction {tx_hash} was mined but reverted")
