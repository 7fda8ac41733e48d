"""hardhat-shield pipeline orchestrator.

Runs the eight bootstrap stages in order:

Stage 1: RESOLVE  -- Install missing npm packages.
Stage 2: INIT     -- Create the project directory, run ``hardhat init``.
Stage 3: SECRETS  -- Write the private key to ``.env``.
Stage 4: CONFIG   -- Render ``hardhat.config.js``.
Stage 5: CONTRACT -- Render ``contracts/Token.sol``.
Stage 6: BUILD    -- ``hardhat compile``.
Stage 7: SCRIPTS  -- Render deploy/mint/transfer scripts.
Stage 8: DEPLOY   -- Run the deploy script, confirm the address record.

The first failing stage stops the run; files written by earlier stages are
left in place.  Running two pipelines against the same project directory at
the same time is not supported.
"""

from __future__ import annotations

import time
import traceback
from datetime import datetime, timezone
from typing import Any

from rich.panel import Panel

from .config import Config
from .prompts import ConsolePrompter, Prompter
from .rpc_client import ChainClient, RpcClient
from .stages import (
    CompileStage,
    DeployStage,
    GenerateConfigStage,
    GenerateContractStage,
    GenerateScriptsStage,
    InitProjectStage,
    ResolveDependenciesStage,
    Stage,
    StageResult,
    WriteSecretsStage,
)
from .tooling import HardhatCli, NpmPackageManager, PackageInstaller
from .utils import (
    console,
    format_duration,
    print_error,
    print_stage_header,
    print_success,
    save_json,
)

STAGE_NAMES: dict[int, str] = {
    1: "RESOLVE",
    2: "INIT",
    3: "SECRETS",
    4: "CONFIG",
    5: "CONTRACT",
    6: "BUILD",
    7: "SCRIPTS",
    8: "DEPLOY",
}


# ---------------------------------------------------------------------------
# Exceptions
# ---------------------------------------------------------------------------


class PipelineError(Exception):
    """Raised when a pipeline stage fails irrecoverably."""

    def __init__(self, stage: int, message: str) -> None:
        self.stage = stage
        super().__init__(f"Stage {stage} ({STAGE_NAMES.get(stage, '?')}): {message}")


# ---------------------------------------------------------------------------
# Stage wiring
# ---------------------------------------------------------------------------


def build_stages(
    config: Config,
    prompter: Prompter,
    installer: PackageInstaller | None = None,
    hardhat: HardhatCli | None = None,
    chain: ChainClient | None = None,
) -> list[Stage]:
    """Assemble the default stage list around the real npm/hardhat adapters.

    Any adapter may be replaced; ``hardhat`` must provide scaffolding,
    compiling and script running.  No RPC probe is made before deployment
    when ``config.check_rpc`` is off and no *chain* is given.
    """
    installer = installer or NpmPackageManager(timeout=config.timeouts.install)
    hardhat = hardhat or HardhatCli(
        compile_timeout=config.timeouts.compile,
        network_timeout=config.timeouts.network,
    )
    if chain is None and config.check_rpc:
        chain = RpcClient(
            config.network.rpc_url,
            timeout=config.timeouts.rpc,
            retries=config.timeouts.rpc_retries,
        )
    return [
        ResolveDependenciesStage(installer),
        InitProjectStage(hardhat, prompter),
        WriteSecretsStage(prompter),
        GenerateConfigStage(),
        GenerateContractStage(prompter),
        CompileStage(hardhat),
        GenerateScriptsStage(),
        DeployStage(hardhat, chain),
    ]


# ---------------------------------------------------------------------------
# Pipeline Orchestrator
# ---------------------------------------------------------------------------


class Pipeline:
    """Drives the stages sequentially and records what happened.

    Attributes:
        config: The configuration threaded through every stage.
        stages: Ordered stage objects.
        state: Accumulated results, persisted to
            ``<project>/.hardhat-shield/pipeline-state.json`` once the
            project directory exists.
    """

    def __init__(
        self,
        config: Config,
        stages: list[Stage] | None = None,
        prompter: Prompter | None = None,
    ) -> None:
        self.config = config
        self.stages = stages if stages is not None else build_stages(
            config, prompter or ConsolePrompter()
        )
        self.results: list[StageResult] = []
        self.state: dict[str, Any] = {
            "started_at": datetime.now(timezone.utc).isoformat(),
            "stages_completed": [],
            "stages_failed": [],
            "success": False,
        }

    # ------------------------------------------------------------------
    # State persistence
    # ------------------------------------------------------------------

    async def _save_state(self) -> None:
        """Persist the state once there is a project directory to hold it."""
        if self.config.project_dir is None or not self.config.project_dir.is_dir():
            return
        self.state["updated_at"] = datetime.now(timezone.utc).isoformat()
        await save_json(self.state, self.config.state_path)

    # ------------------------------------------------------------------
    # Run
    # ------------------------------------------------------------------

    async def run(self, raise_on_failure: bool = False) -> dict[str, Any]:
        """Execute every stage in order, stopping at the first failure.

        Args:
            raise_on_failure: Raise ``PipelineError`` for the failed stage
                instead of only reporting it in the returned state.

        Returns:
            The final state dictionary, including a top-level ``success``
            boolean and ``failed_stage`` when something went wrong.
        """
        pipeline_start = time.monotonic()

        console.print(
            Panel(
                f"[bold bright_cyan]hardhat-shield[/bold bright_cyan]\n"
                f"Network : {self.config.network.name} ({self.config.network.rpc_url})\n"
                f"Project : {self.config.project_dir or '(ask)'}\n"
                f"Stages  : {len(self.stages)}",
                title="[bold]Bootstrap Start[/bold]",
                border_style="bright_cyan",
            )
        )

        failed: StageResult | None = None

        for stage in self.stages:
            print_stage_header(stage.number, STAGE_NAMES.get(stage.number, stage.name))
            try:
                result = await stage.execute(self.config)
            except Exception as exc:
                tb = traceback.format_exc()
                console.print(tb, style="dim", markup=False, highlight=False)
                result = StageResult(
                    number=stage.number,
                    name=stage.name,
                    success=False,
                    error=f"Unexpected error: {exc}",
                )

            self.results.append(result)
            self.state[f"stage{stage.number}_{stage.name}"] = result.model_dump(
                exclude={"number", "name"}
            )

            if result.success:
                self.state["stages_completed"].append(stage.name)
                print_success(
                    f"Stage {stage.number} ({stage.name.upper()}) completed in "
                    f"{format_duration(result.duration_seconds)}"
                )
                await self._save_state()
                continue

            failed = result
            self.state["stages_failed"].append(stage.name)
            self.state["failed_stage"] = stage.name
            print_error(f"Stage {stage.number} ({stage.name.upper()}) FAILED: {result.error}")
            await self._save_state()
            break

        total_elapsed = time.monotonic() - pipeline_start
        self.state["success"] = failed is None
        self.state["total_duration"] = format_duration(total_elapsed)
        self.state["finished_at"] = datetime.now(timezone.utc).isoformat()
        await self._save_state()
        if failed is None and self.config.project_dir is not None:
            self.config.save()

        self._print_final_summary(total_elapsed)

        if failed is not None and raise_on_failure:
            raise PipelineError(failed.number, failed.error or "failed")
        return self.state

    def _print_final_summary(self, total_elapsed: float) -> None:
        """Print the final pipeline summary panel."""
        completed = self.state.get("stages_completed", [])

        if self.state.get("success"):
            border_style = "bold green"
            status_text = "[bold green]SETUP COMPLETED[/bold green]"
        else:
            border_style = "bold red"
            status_text = "[bold red]SETUP FAILED[/bold red]"

        detail_lines = [
            status_text,
            "",
            f"Duration  : {format_duration(total_elapsed)}",
            f"Completed : {', '.join(completed) or 'none'}",
        ]
        if self.state.get("failed_stage"):
            detail_lines.append(f"Failed    : {self.state['failed_stage']}")
        if self.config.project_dir is not None:
            detail_lines.extend([
                "",
                f"Project   : {self.config.project_dir}",
            ])
            if self.state.get("success"):
                detail_lines.append(
                    f"Your Hardhat project is ready in {self.config.project_dir}"
                )

        console.print()
        console.print(
            Panel(
                "\n".join(detail_lines),
                title="[bold]Bootstrap Complete[/bold]",
                border_style=border_style,
            )
        )
