"""The eight bootstrap stages.

Each stage is a small object with a ``run(config)`` coroutine that performs
its step, returns a dictionary of details for the pipeline state, and raises a
:class:`~hardhat_shield.errors.ShieldError` on failure.  ``execute`` wraps
``run`` into a :class:`StageResult` so the runner never has to inspect
exceptions itself.

Order: RESOLVE, INIT, SECRETS, CONFIG, CONTRACT, BUILD, SCRIPTS, DEPLOY.
"""

from __future__ import annotations

import os
import time
from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field, ValidationError

from .address_record import read_address_record
from .config import Config, TokenDescriptor
from .errors import EnvironmentSetupError, InputError, NoDeployedContractError, ShieldError
from .prompts import Prompter
from .rpc_client import ChainClient, RpcError
from .scaffolder import ProjectFilesGenerator
from .tooling import Compiler, PackageInstaller, ScaffoldInitializer, ScriptRunner
from .utils import (
    console,
    print_step,
    print_success,
    print_tool_output,
    print_warning,
    write_text_atomic,
)


class StageResult(BaseModel):
    """Outcome of one stage run."""

    number: int
    name: str
    success: bool
    details: dict[str, Any] = Field(default_factory=dict)
    error: str | None = None
    duration_seconds: float = 0.0


class Stage:
    """Base class: subclasses set ``number``/``name`` and implement ``run``."""

    number: int = 0
    name: str = ""

    async def run(self, config: Config) -> dict[str, Any]:
        raise NotImplementedError

    async def execute(self, config: Config) -> StageResult:
        """Run the stage and fold expected failures into a ``StageResult``.

        ``ShieldError`` and ``OSError`` become failed results; anything else
        is a bug and propagates.
        """
        start = time.monotonic()
        try:
            details = await self.run(config)
        except (ShieldError, OSError) as exc:
            return StageResult(
                number=self.number,
                name=self.name,
                success=False,
                error=str(exc),
                duration_seconds=time.monotonic() - start,
            )
        return StageResult(
            number=self.number,
            name=self.name,
            success=True,
            details=details,
            duration_seconds=time.monotonic() - start,
        )


def _validation_message(exc: ValidationError) -> str:
    return "; ".join(err["msg"].removeprefix("Value error, ") for err in exc.errors())


# ---------------------------------------------------------------------------
# 1. RESOLVE
# ---------------------------------------------------------------------------


class ResolveDependenciesStage(Stage):
    """Install every required npm package that is not already present."""

    number = 1
    name = "resolve"

    def __init__(self, installer: PackageInstaller) -> None:
        self.installer = installer

    async def run(self, config: Config) -> dict[str, Any]:
        manifest_dir = config.manifest_dir
        if not manifest_dir.is_dir():
            raise EnvironmentSetupError(f"Manifest directory does not exist: {manifest_dir}")

        installed = await self.installer.installed(manifest_dir)
        newly_installed: list[str] = []
        present: list[str] = []

        for package in config.packages:
            if package in installed:
                print_step(f"{package} is already installed.")
                present.append(package)
                continue
            print_step(f"{package} is not installed. Installing...")
            await self.installer.install(package, manifest_dir)
            installed.add(package)
            newly_installed.append(package)

        return {
            "manifest_dir": str(manifest_dir),
            "installed": newly_installed,
            "already_present": present,
        }


# ---------------------------------------------------------------------------
# 2. INIT
# ---------------------------------------------------------------------------


class InitProjectStage(Stage):
    """Resolve the project directory and lay down the Hardhat skeleton."""

    number = 2
    name = "init"

    def __init__(self, scaffolder: ScaffoldInitializer, prompter: Prompter) -> None:
        self.scaffolder = scaffolder
        self.prompter = prompter

    async def run(self, config: Config) -> dict[str, Any]:
        if config.project_dir is None:
            answer = self.prompter.ask(
                "Enter the path for your Hardhat project (press Enter for current directory)"
            ).strip()
            target = Path(answer) if answer else Path.cwd()
        else:
            target = config.project_dir

        project_dir = _prepare_directory(target)
        config.project_dir = project_dir
        print_step(f"Project directory: {project_dir}")

        scaffolded = False
        if config.hardhat_config_path.exists():
            print_warning(
                f"  {config.hardhat_config_path.name} already exists -- "
                "skipping `hardhat init` for this existing project."
            )
        else:
            print_step("Creating a Hardhat project...")
            await self.scaffolder.init_project(project_dir)
            scaffolded = True

        sample_removed = False
        if config.sample_contract_path.exists():
            config.sample_contract_path.unlink()
            sample_removed = True
            print_step(f"{config.sample_contract_path.name} removed.")

        return {
            "project_dir": str(project_dir),
            "scaffolded": scaffolded,
            "sample_removed": sample_removed,
        }


def _prepare_directory(target: Path) -> Path:
    """Create *target* if needed and check it can serve as the project root.

    Raises:
        EnvironmentSetupError: If the directory cannot be created, is not a
            directory, or is not writable.
    """
    path = target.expanduser()
    try:
        path.mkdir(parents=True, exist_ok=True)
    except OSError as exc:
        raise EnvironmentSetupError(f"Cannot create project directory {path}: {exc}") from exc
    if not path.is_dir():
        raise EnvironmentSetupError(f"Project path is not a directory: {path}")
    if not os.access(path, os.W_OK | os.X_OK):
        raise EnvironmentSetupError(f"Project directory is not writable: {path}")
    return path.resolve()


# ---------------------------------------------------------------------------
# 3. SECRETS
# ---------------------------------------------------------------------------


class WriteSecretsStage(Stage):
    """Persist the deployer's private key to ``.env``.

    The key is written in plaintext and echoed while typed; it is never
    copied into the pipeline state or the config snapshot.
    """

    number = 3
    name = "secrets"

    def __init__(self, prompter: Prompter) -> None:
        self.prompter = prompter

    async def run(self, config: Config) -> dict[str, Any]:
        key = config.private_key
        if key is None:
            key = self.prompter.ask("Enter your private key")
        key = key.strip()
        if not key:
            raise InputError("Private key must not be empty")
        if "\n" in key or "\r" in key:
            raise InputError("Private key must be a single line")
        config.private_key = key

        print_step("Creating .env file...")
        var = config.network.account_env_var
        write_text_atomic(config.env_path, f"{var}={key}\n")
        gitignore_updated = _ensure_gitignored(config.gitignore_path, ".env")
        print_step(".env file created.")
        print_warning(
            f"  The private key is stored unencrypted in {config.env_path}. "
            "Use a throwaway testnet key."
        )
        return {
            "env_file": str(config.env_path),
            "gitignore_updated": gitignore_updated,
        }


def _ensure_gitignored(gitignore: Path, entry: str) -> bool:
    """Append *entry* to *gitignore* unless it is already listed."""
    lines: list[str] = []
    if gitignore.exists():
        lines = gitignore.read_text(encoding="utf-8").splitlines()
        if entry in (line.strip() for line in lines):
            return False
    lines.append(entry)
    gitignore.write_text("\n".join(lines) + "\n", encoding="utf-8")
    return True


# ---------------------------------------------------------------------------
# 4. CONFIG
# ---------------------------------------------------------------------------


class GenerateConfigStage(Stage):
    number = 4
    name = "config"

    async def run(self, config: Config) -> dict[str, Any]:
        print_step("Configuring Hardhat...")
        path = await ProjectFilesGenerator(config).write_hardhat_config()
        print_step("Hardhat configuration completed.")
        return {
            "config_file": str(path),
            "network": config.network.name,
            "rpc_url": config.network.rpc_url,
            "solidity": config.network.solidity_version,
        }


# ---------------------------------------------------------------------------
# 5. CONTRACT
# ---------------------------------------------------------------------------


class GenerateContractStage(Stage):
    """Collect the token name/symbol and render ``contracts/Token.sol``."""

    number = 5
    name = "contract"

    def __init__(self, prompter: Prompter) -> None:
        self.prompter = prompter

    async def run(self, config: Config) -> dict[str, Any]:
        if config.token is None:
            token_name = self.prompter.ask("Enter the token name")
            token_symbol = self.prompter.ask("Enter the token symbol")
            try:
                config.token = TokenDescriptor(name=token_name, symbol=token_symbol)
            except ValidationError as exc:
                raise InputError(_validation_message(exc)) from exc

        print_step(f"Creating {config.contract_path.name} contract...")
        path = await ProjectFilesGenerator(config).write_contract()
        print_step(f"{config.contract_path.name} contract created.")
        return {
            "contract_file": str(path),
            "contract_name": config.token.contract_name,
            "token_name": config.token.name,
            "token_symbol": config.token.symbol,
        }


# ---------------------------------------------------------------------------
# 6. BUILD
# ---------------------------------------------------------------------------


class CompileStage(Stage):
    number = 6
    name = "build"

    def __init__(self, compiler: Compiler) -> None:
        self.compiler = compiler

    async def run(self, config: Config) -> dict[str, Any]:
        print_step("Compiling the contract...")
        output = await self.compiler.compile(config.root)
        print_tool_output(output)
        print_step("Contract compiled.")
        return {"compiler_output": output}


# ---------------------------------------------------------------------------
# 7. SCRIPTS
# ---------------------------------------------------------------------------


class GenerateScriptsStage(Stage):
    number = 7
    name = "scripts"

    async def run(self, config: Config) -> dict[str, Any]:
        written = await ProjectFilesGenerator(config).write_scripts()
        for name, path in written.items():
            print_step(f"{path.name} script created.")
        return {"scripts": {name: str(path) for name, path in written.items()}}


# ---------------------------------------------------------------------------
# 8. DEPLOY
# ---------------------------------------------------------------------------


class DeployStage(Stage):
    """Run the generated deploy script and confirm the address record."""

    number = 8
    name = "deploy"

    def __init__(self, runner: ScriptRunner, chain: ChainClient | None = None) -> None:
        self.runner = runner
        self.chain = chain

    async def run(self, config: Config) -> dict[str, Any]:
        if config.skip_deploy:
            print_warning("  Deployment skipped (--skip-deploy).")
            return {"skipped": True}
        return await deploy_contract(config, self.runner, self.chain)


async def deploy_contract(
    config: Config,
    runner: ScriptRunner,
    chain: ChainClient | None = None,
) -> dict[str, Any]:
    """Deploy through ``scripts/deploy.js`` and return the recorded address.

    Shared by the DEPLOY stage and the ``deploy`` CLI command.

    Raises:
        EnvironmentSetupError: If the RPC probe fails.
        ExternalToolError: If the deploy script exits non-zero.
        NoDeployedContractError: If the script exited cleanly but did not
            leave a fresh, well-formed address record.
    """
    network = config.network
    details: dict[str, Any] = {"network": network.name}

    if chain is not None:
        try:
            chain_id = await chain.chain_id()
        except RpcError as exc:
            raise EnvironmentSetupError(
                f"Network {network.name} is unreachable at {network.rpc_url}: {exc}"
            ) from exc
        print_step(f"Connected to {network.name} (chain id {chain_id}).")
        details["chain_id"] = chain_id

    record = config.address_record_path
    before = _file_signature(record)

    print_step("Deploying the contract...")
    output = await runner.run_script(config.script_path("deploy"), network.name, config.root)
    print_tool_output(output)

    after = _file_signature(record)
    if after is None or after == before:
        raise NoDeployedContractError(str(record), "not written by the deploy script")
    address = read_address_record(record)

    print_success(f"Contract deployed to {address}")
    console.print(f"  Explorer: {network.address_url(address)}")
    details.update({"address": address, "address_record": str(record)})
    return details


def _file_signature(path: Path) -> tuple[int, int] | None:
    """(inode, mtime) of *path*; changes whenever the deploy script renames a new record in."""
    if not path.exists():
        return None
    stat = path.stat()
    return (stat.st_ino, stat.st_mtime_ns)
