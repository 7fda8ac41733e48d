"""Unit tests for the pipeline orchestrator (hardhat_shield.pipeline).

Tests cover:
- PipelineError exception
- build_stages wiring
- Pipeline.run halting at the first failure
- State persistence to .hardhat-shield/pipeline-state.json
- raise_on_failure
- Unexpected exceptions inside a stage
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

import pytest

from fakes import FakeChain, FakeHardhat, FakeInstaller, ScriptedPrompter
from hardhat_shield.config import Config
from hardhat_shield.errors import InputError
from hardhat_shield.pipeline import STAGE_NAMES, Pipeline, PipelineError, build_stages
from hardhat_shield.rpc_client import RpcClient
from hardhat_shield.stages import Stage


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


class RecordingStage(Stage):
    def __init__(self, number: int, name: str, log: list[str], fail: bool = False) -> None:
        self.number = number
        self.name = name
        self.log = log
        self.fail = fail

    async def run(self, config: Config) -> dict[str, Any]:
        self.log.append(self.name)
        if self.fail:
            raise InputError(f"{self.name} went wrong")
        return {"ran": self.name}


class BrokenStage(Stage):
    number = 4
    name = "config"

    async def run(self, config: Config) -> dict[str, Any]:
        raise KeyError("boom")


def _stages(log: list[str], fail_at: int | None = None) -> list[Stage]:
    return [
        RecordingStage(n, STAGE_NAMES[n].lower(), log, fail=(n == fail_at))
        for n in sorted(STAGE_NAMES)
    ]


# ---------------------------------------------------------------------------
# PipelineError
# ---------------------------------------------------------------------------


class TestPipelineError:
    @pytest.mark.unit
    def test_includes_stage_number_and_name(self):
        err = PipelineError(6, "Compilation failed")
        assert err.stage == 6
        assert "Stage 6 (BUILD)" in str(err)
        assert "Compilation failed" in str(err)

    @pytest.mark.unit
    def test_unknown_stage(self):
        assert "Stage 9 (?)" in str(PipelineError(9, "x"))


# ---------------------------------------------------------------------------
# build_stages
# ---------------------------------------------------------------------------


class TestBuildStages:
    @pytest.mark.unit
    def test_eight_stages_in_order(self, config: Config):
        stages = build_stages(config, ScriptedPrompter([]), FakeInstaller(), FakeHardhat())
        assert [s.number for s in stages] == list(range(1, 9))
        assert [s.name.upper() for s in stages] == [STAGE_NAMES[n] for n in range(1, 9)]

    @pytest.mark.unit
    def test_no_rpc_client_when_check_disabled(self, config: Config):
        stages = build_stages(config, ScriptedPrompter([]), FakeInstaller(), FakeHardhat())
        assert stages[-1].chain is None

    @pytest.mark.unit
    def test_rpc_client_when_check_enabled(self, tmp_path: Path):
        config = Config(manifest_dir=tmp_path)
        stages = build_stages(config, ScriptedPrompter([]), FakeInstaller(), FakeHardhat())
        assert isinstance(stages[-1].chain, RpcClient)
        assert stages[-1].chain.url == config.network.rpc_url

    @pytest.mark.unit
    def test_explicit_chain_kept(self, tmp_path: Path):
        chain = FakeChain()
        config = Config(manifest_dir=tmp_path)
        stages = build_stages(
            config, ScriptedPrompter([]), FakeInstaller(), FakeHardhat(), chain
        )
        assert stages[-1].chain is chain


# ---------------------------------------------------------------------------
# Pipeline.run
# ---------------------------------------------------------------------------


class TestPipelineRun:
    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_all_stages_run(self, resolved_config: Config):
        log: list[str] = []
        state = await Pipeline(resolved_config, stages=_stages(log)).run()

        assert state["success"] is True
        assert log == [STAGE_NAMES[n].lower() for n in range(1, 9)]
        assert state["stages_completed"] == log
        assert state["stage3_secrets"]["details"] == {"ran": "secrets"}

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_halts_at_first_failure(self, resolved_config: Config):
        log: list[str] = []
        state = await Pipeline(resolved_config, stages=_stages(log, fail_at=5)).run()

        assert state["success"] is False
        assert state["failed_stage"] == "contract"
        assert log == ["resolve", "init", "secrets", "config", "contract"]
        assert "stage6_build" not in state
        assert state["stage5_contract"]["error"] == "contract went wrong"

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_raise_on_failure(self, resolved_config: Config):
        with pytest.raises(PipelineError, match="Stage 6 \\(BUILD\\)") as exc_info:
            await Pipeline(resolved_config, stages=_stages([], fail_at=6)).run(
                raise_on_failure=True
            )
        assert exc_info.value.stage == 6

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_unexpected_exception_becomes_failure(self, resolved_config: Config):
        log: list[str] = []
        stages = _stages(log)
        stages[3] = BrokenStage()
        state = await Pipeline(resolved_config, stages=stages).run()

        assert state["success"] is False
        assert state["failed_stage"] == "config"
        assert "Unexpected error" in state["stage4_config"]["error"]
        assert "contract" not in log

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_state_persisted(self, resolved_config: Config):
        await Pipeline(resolved_config, stages=_stages([], fail_at=7)).run()

        saved = json.loads(resolved_config.state_path.read_text())
        assert saved["success"] is False
        assert saved["failed_stage"] == "scripts"
        assert saved["stages_completed"][-1] == "build"
        assert "finished_at" in saved

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_config_snapshot_only_on_success(self, resolved_config: Config):
        snapshot = resolved_config.root / ".hardhat-shield" / "config.json"

        await Pipeline(resolved_config, stages=_stages([], fail_at=2)).run()
        assert not snapshot.exists()

        await Pipeline(resolved_config, stages=_stages([])).run()
        assert snapshot.exists()

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_no_state_without_project_dir(self, config: Config, tmp_path: Path):
        state = await Pipeline(config, stages=_stages([], fail_at=1)).run()
        assert state["success"] is False
        assert not list(tmp_path.rglob("pipeline-state.json"))

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_private_key_never_persisted(self, resolved_config: Config):
        resolved_config.private_key = "deadbeefcafe"
        await Pipeline(resolved_config, stages=_stages([])).run()

        for path in (resolved_config.root / ".hardhat-shield").iterdir():
            assert "deadbeefcafe" not in path.read_text()
