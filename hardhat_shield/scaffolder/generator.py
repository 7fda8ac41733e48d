"""Renders the project files the pipeline owns.

Given a resolved ``Config`` this writes ``hardhat.config.js``,
``contracts/Token.sol`` and the three automation scripts into the project
root.  Every value reaching a template has already been validated by the
pydantic models in :mod:`hardhat_shield.config`.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

from ..config import Config
from .templates import TemplateRenderer

# Script name -> template
SCRIPT_TEMPLATES: dict[str, str] = {
    "deploy": "scripts/deploy.js.j2",
    "mint": "scripts/mint.js.j2",
    "transfer": "scripts/transfer.js.j2",
}


class ProjectFilesGenerator:
    """Writes the config, contract and script files for one project."""

    def __init__(self, config: Config, renderer: TemplateRenderer | None = None) -> None:
        self.config = config
        self.renderer = renderer or TemplateRenderer()

    def build_context(self) -> dict[str, Any]:
        """Template context shared by every file.

        ``token`` is ``None`` until the CONTRACT stage has collected it; only
        the config template may be rendered before that.
        """
        network = self.config.network
        return {
            "network": network,
            "token": self.config.token,
            "transfer": self.config.transfer,
            "address_file": self.config.address_file,
            "explorer_tx_url": network.tx_url(""),
        }

    async def write_hardhat_config(self) -> Path:
        return await self.renderer.render_to_file(
            "hardhat.config.js.j2",
            self.config.hardhat_config_path,
            self.build_context(),
        )

    async def write_contract(self) -> Path:
        self._require_token()
        return await self.renderer.render_to_file(
            "contracts/Token.sol.j2",
            self.config.contract_path,
            self.build_context(),
        )

    async def write_scripts(self) -> dict[str, Path]:
        """Render ``deploy.js``, ``mint.js`` and ``transfer.js``.

        Returns:
            Mapping of script name to written path.
        """
        self._require_token()
        context = self.build_context()
        written: dict[str, Path] = {}
        for name, template in SCRIPT_TEMPLATES.items():
            written[name] = await self.renderer.render_to_file(
                template, self.config.script_path(name), context
            )
        return written

    def _require_token(self) -> None:
        if self.config.token is None:
            raise RuntimeError("Token name and symbol have not been collected yet")
