"""Command-line entry point for ``hardhat-shield``.

Usage::

    hardhat-shield init
    hardhat-shield init --project-dir ./my-token --token-name TestToken --token-symbol TT
    hardhat-shield mint --project-dir ./my-token
    hardhat-shield transfer --project-dir ./my-token
    hardhat-shield status --project-dir ./my-token

Do not run two commands against the same project directory at once.
"""

from __future__ import annotations

import argparse
import asyncio
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from . import __version__
from .config import Config, NetworkProfile, TokenDescriptor, TransferSettings
from .errors import InputError, ShieldError
from .interact import contract_status, run_interaction
from .pipeline import Pipeline
from .rpc_client import RpcClient
from .stages import deploy_contract
from .tooling import HardhatCli
from .utils import console, print_error, print_summary_table


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="hardhat-shield",
        description="Bootstrap a Hardhat ERC20 project for the Swisstronik testnet.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=(
            "Examples:\n"
            "  hardhat-shield init\n"
            "  hardhat-shield init --project-dir ./token --token-name TestToken --token-symbol TT\n"
            "  hardhat-shield mint --project-dir ./token\n"
        ),
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    sub = parser.add_subparsers(dest="cmd", required=True)

    init = sub.add_parser("init", help="Run the full bootstrap pipeline.")
    init.add_argument("--project-dir", default=None, help="Project directory (prompted if omitted)")
    init.add_argument(
        "--manifest-dir",
        default=None,
        help="Directory whose package.json receives the npm dependencies (default: current directory)",
    )
    init.add_argument("--token-name", default=None, help="ERC20 token name (prompted if omitted)")
    init.add_argument("--token-symbol", default=None, help="ERC20 token symbol (prompted if omitted)")
    init.add_argument("--rpc-url", default=None, help="Override the network RPC URL")
    init.add_argument("--recipient", default=None, help="Recipient hard-wired into transfer.js")
    init.add_argument("--amount", default=None, help="Whole tokens sent by transfer.js")
    init.add_argument("--config", default=None, help="Load settings from a saved config.json")
    init.add_argument("--skip-deploy", action="store_true", help="Stop after generating the scripts")
    init.add_argument(
        "--no-rpc-check", action="store_true", help="Do not probe the RPC endpoint before deploying"
    )

    for name, help_text in (
        ("deploy", "Deploy the contract with scripts/deploy.js."),
        ("mint", "Mint 100 tokens to the deployer with scripts/mint.js."),
        ("transfer", "Send the configured transfer with scripts/transfer.js."),
        ("status", "Show the recorded contract address and whether code exists there."),
    ):
        cmd = sub.add_parser(name, help=help_text)
        cmd.add_argument("--project-dir", default=".", help="Project directory (default: .)")
        if name == "deploy":
            cmd.add_argument(
                "--no-rpc-check", action="store_true", help="Do not probe the RPC endpoint first"
            )
        if name in ("mint", "transfer"):
            cmd.add_argument(
                "--offline", action="store_true", help="Do not confirm the transaction receipt"
            )
        if name == "status":
            cmd.add_argument("--offline", action="store_true", help="Do not query the network")

    return parser


# ---------------------------------------------------------------------------
# Config assembly
# ---------------------------------------------------------------------------


def _init_config(args: argparse.Namespace) -> Config:
    config = Config.load(Path(args.config)) if args.config else Config.from_env()

    updates: dict[str, Any] = {}
    if args.project_dir:
        updates["project_dir"] = Path(args.project_dir)
    if args.manifest_dir:
        updates["manifest_dir"] = Path(args.manifest_dir)
    if args.rpc_url:
        updates["network"] = NetworkProfile(
            **{**config.network.model_dump(), "rpc_url": args.rpc_url}
        )
    if args.recipient or args.amount:
        updates["transfer"] = TransferSettings(
            recipient=args.recipient or config.transfer.recipient,
            amount=args.amount or config.transfer.amount,
        )
    if bool(args.token_name) != bool(args.token_symbol):
        raise InputError("--token-name and --token-symbol must be given together")
    if args.token_name:
        updates["token"] = TokenDescriptor(name=args.token_name, symbol=args.token_symbol)
    if args.skip_deploy:
        updates["skip_deploy"] = True
    if args.no_rpc_check:
        updates["check_rpc"] = False

    # Round-trip through validation so overrides are checked like file values.
    merged = config.model_dump()
    merged.update(updates)
    return Config.model_validate(merged)


def _project_config(project_dir: str) -> Config:
    """Load the snapshot written by ``init`` or fall back to the environment."""
    root = Path(project_dir).expanduser().resolve()
    if not root.is_dir():
        raise InputError(f"Project directory does not exist: {root}")
    config = Config.from_env()
    snapshot = root / config.state_dir / "config.json"
    if snapshot.is_file():
        config = Config.load(snapshot)
    config.project_dir = root
    return config


def _rpc_client(config: Config) -> RpcClient:
    return RpcClient(
        config.network.rpc_url,
        timeout=config.timeouts.rpc,
        retries=config.timeouts.rpc_retries,
    )


def _hardhat(config: Config) -> HardhatCli:
    return HardhatCli(
        compile_timeout=config.timeouts.compile,
        network_timeout=config.timeouts.network,
    )


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------


async def _run(args: argparse.Namespace) -> int:
    if args.cmd == "init":
        state = await Pipeline(_init_config(args)).run()
        return 0 if state.get("success") else 1

    config = _project_config(args.project_dir)

    if args.cmd == "deploy":
        chain = None if args.no_rpc_check else _rpc_client(config)
        await deploy_contract(config, _hardhat(config), chain)
        return 0

    if args.cmd in ("mint", "transfer"):
        chain = None if args.offline else _rpc_client(config)
        result = await run_interaction(config, _hardhat(config), args.cmd, chain)
        if result.get("explorer_url"):
            console.print(f"  Explorer: {result['explorer_url']}")
        return 0

    if args.cmd == "status":
        chain = None if args.offline else _rpc_client(config)
        status = await contract_status(config, chain)
        print_summary_table({k: str(v) for k, v in status.items()}, title="Contract Status")
        return 0

    raise AssertionError(f"unhandled command {args.cmd!r}")


def main(argv: list[str] | None = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)
    try:
        return asyncio.run(_run(args))
    except ValidationError as exc:
        for err in exc.errors():
            location = ".".join(str(part) for part in err["loc"])
            print_error(f"Invalid value for {location or 'config'}: {err['msg']}")
        return 2
    except ShieldError as exc:
        print_error(f"Error: {exc}")
        return 1
    except KeyboardInterrupt:
        print_error("Interrupted.")
        return 130


if __name__ == "__main__":
    raise SystemExit(main())
