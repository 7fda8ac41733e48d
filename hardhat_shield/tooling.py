"""Adapters around the external Node.js tooling.

The pipeline only talks to the narrow protocols defined here, so the test
suite can hand it fakes.  The concrete classes shell out to ``npm`` and
``npx hardhat`` through :func:`hardhat_shield.utils.run_command`.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Protocol

from .errors import EnvironmentSetupError, ExternalToolError
from .utils import run_command


class PackageInstaller(Protocol):
    async def installed(self, cwd: Path) -> set[str]: ...

    async def install(self, name: str, cwd: Path) -> None: ...


class ScaffoldInitializer(Protocol):
    async def init_project(self, cwd: Path) -> None: ...


class Compiler(Protocol):
    async def compile(self, cwd: Path) -> str: ...


class ScriptRunner(Protocol):
    async def run_script(self, script: Path, network: str, cwd: Path) -> str: ...


def _combined_output(stdout: str, stderr: str) -> str:
    return "\n".join(part for part in (stdout, stderr) if part)


def _raise_for_exit(cmd: list[str], code: int, stdout: str, stderr: str) -> None:
    if code == 127:
        raise EnvironmentSetupError(
            f"{cmd[0]} is not installed or not on PATH ({stderr or 'command not found'})"
        )
    if code != 0:
        raise ExternalToolError(" ".join(cmd), code, _combined_output(stdout, stderr))


class NpmPackageManager:
    """``PackageInstaller`` backed by the npm CLI."""

    def __init__(self, timeout: int = 600, npm_binary: str = "npm") -> None:
        self.timeout = timeout
        self.npm_binary = npm_binary

    async def installed(self, cwd: Path) -> set[str]:
        """Return the exact names of the top-level packages in *cwd*'s manifest.

        ``npm list`` exits non-zero for problems such as extraneous or
        missing packages while still printing a usable tree, so the JSON on
        stdout is trusted whenever it parses.
        """
        cmd = [self.npm_binary, "list", "--depth=0", "--json"]
        code, stdout, stderr = await run_command(cmd, cwd=cwd, timeout=self.timeout)
        if code in (127, -1):
            _raise_for_exit(cmd, code, stdout, stderr)
        if not stdout:
            if code != 0:
                _raise_for_exit(cmd, code, stdout, stderr)
            return set()
        try:
            tree = json.loads(stdout)
        except json.JSONDecodeError as exc:
            raise ExternalToolError(" ".join(cmd), code, _combined_output(stdout, stderr)) from exc
        dependencies = tree.get("dependencies") or {}
        # Declared in package.json but absent from node_modules.
        return {
            name
            for name, info in dependencies.items()
            if not (isinstance(info, dict) and info.get("missing"))
        }

    async def install(self, name: str, cwd: Path) -> None:
        cmd = [self.npm_binary, "install", "--save-dev", name]
        code, stdout, stderr = await run_command(cmd, cwd=cwd, timeout=self.timeout)
        _raise_for_exit(cmd, code, stdout, stderr)


class HardhatCli:
    """``ScaffoldInitializer``, ``Compiler`` and ``ScriptRunner`` via ``npx hardhat``."""

    def __init__(
        self,
        compile_timeout: int = 300,
        network_timeout: int = 300,
        npx_binary: str = "npx",
    ) -> None:
        self.compile_timeout = compile_timeout
        self.network_timeout = network_timeout
        self.npx_binary = npx_binary

    async def init_project(self, cwd: Path) -> None:
        # Interactive: hardhat asks which project template to create.
        cmd = [self.npx_binary, "hardhat", "init"]
        code, stdout, stderr = await run_command(cmd, cwd=cwd, timeout=None, capture=False)
        _raise_for_exit(cmd, code, stdout, stderr)

    async def compile(self, cwd: Path) -> str:
        cmd = [self.npx_binary, "hardhat", "compile"]
        code, stdout, stderr = await run_command(cmd, cwd=cwd, timeout=self.compile_timeout)
        _raise_for_exit(cmd, code, stdout, stderr)
        return _combined_output(stdout, stderr)

    async def run_script(self, script: Path, network: str, cwd: Path) -> str:
        try:
            target = script.relative_to(cwd)
        except ValueError:
            target = script
        cmd = [self.npx_binary, "hardhat", "run", str(target), "--network", network]
        code, stdout, stderr = await run_command(cmd, cwd=cwd, timeout=self.network_timeout)
        _raise_for_exit(cmd, code, stdout, stderr)
        return _combined_output(stdout, stderr)
