"""Unit tests for the post-deploy commands and the address record.

Tests cover:
- read_address_record (missing, empty, malformed, valid)
- extract_tx_hash
- run_interaction (mint, transfer, no deployment, script failure, missing
  transaction link, receipt confirmation)
- contract_status (offline and with a chain client)
"""

from __future__ import annotations

from pathlib import Path
from unittest.mock import patch

import pytest

from fakes import DEPLOYED_ADDRESS, TX_HASH, FakeChain, FakeHardhat
from hardhat_shield.address_record import read_address_record
from hardhat_shield.config import Config
from hardhat_shield.errors import (
    ExternalToolError,
    NoDeployedContractError,
    TransactionRevertedError,
)
from hardhat_shield.interact import contract_status, extract_tx_hash, run_interaction


@pytest.fixture
def deployed_config(resolved_config: Config) -> Config:
    resolved_config.address_record_path.write_text(DEPLOYED_ADDRESS)
    return resolved_config


# ---------------------------------------------------------------------------
# Address record
# ---------------------------------------------------------------------------


class TestAddressRecord:
    @pytest.mark.unit
    def test_valid_record(self, tmp_path: Path):
        record = tmp_path / "contract.txt"
        record.write_text(f"{DEPLOYED_ADDRESS}\n")
        assert read_address_record(record) == DEPLOYED_ADDRESS

    @pytest.mark.unit
    def test_missing_record(self, tmp_path: Path):
        with pytest.raises(NoDeployedContractError, match="Deploy the contract first") as exc_info:
            read_address_record(tmp_path / "contract.txt")
        assert exc_info.value.reason == "missing"

    @pytest.mark.unit
    def test_empty_record(self, tmp_path: Path):
        record = tmp_path / "contract.txt"
        record.write_text("  \n")
        with pytest.raises(NoDeployedContractError) as exc_info:
            read_address_record(record)
        assert exc_info.value.reason == "empty"

    @pytest.mark.unit
    def test_malformed_record(self, tmp_path: Path):
        record = tmp_path / "contract.txt"
        record.write_text("0x1234")
        with pytest.raises(NoDeployedContractError, match="malformed"):
            read_address_record(record)


# ---------------------------------------------------------------------------
# extract_tx_hash
# ---------------------------------------------------------------------------


class TestExtractTxHash:
    @pytest.mark.unit
    def test_hash_from_explorer_link(self):
        output = (
            "Transaction Receipt:  Minting token has been success! Transaction hash: "
            f"https://explorer-evm.testnet.swisstronik.com/tx/{TX_HASH}"
        )
        assert extract_tx_hash(output) == TX_HASH

    @pytest.mark.unit
    def test_no_hash(self):
        assert extract_tx_hash("Contract deployed to 0x1") is None


# ---------------------------------------------------------------------------
# run_interaction
# ---------------------------------------------------------------------------


class TestRunInteraction:
    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_mint(self, deployed_config: Config, hardhat: FakeHardhat):
        result = await run_interaction(deployed_config, hardhat, "mint")

        assert result["contract"] == DEPLOYED_ADDRESS
        assert result["tx_hash"] == TX_HASH
        assert result["explorer_url"] == (
            f"https://explorer-evm.testnet.swisstronik.com/tx/{TX_HASH}"
        )
        assert hardhat.script_calls == [("mint", "swisstronik")]

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_transfer(self, deployed_config: Config, hardhat: FakeHardhat):
        result = await run_interaction(deployed_config, hardhat, "transfer")
        assert result["script"] == "transfer"
        assert hardhat.script_calls == [("transfer", "swisstronik")]

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_without_deployment(self, resolved_config: Config, hardhat: FakeHardhat):
        with pytest.raises(NoDeployedContractError):
            await run_interaction(resolved_config, hardhat, "mint")
        assert hardhat.script_calls == []

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_script_failure(self, deployed_config: Config):
        hardhat = FakeHardhat(fail_scripts={"transfer"})
        with pytest.raises(ExternalToolError, match="insufficient funds"):
            await run_interaction(deployed_config, hardhat, "transfer")

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_unknown_script(self, deployed_config: Config, hardhat: FakeHardhat):
        with pytest.raises(ValueError):
            await run_interaction(deployed_config, hardhat, "deploy")

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_no_transaction_link_warns(self, deployed_config: Config):
        hardhat = FakeHardhat(tx_hash=None)
        with patch("hardhat_shield.interact.print_warning") as mock_warn:
            result = await run_interaction(deployed_config, hardhat, "mint")

        assert result["tx_hash"] is None
        assert "explorer_url" not in result
        mock_warn.assert_called_once()
        assert "no transaction was confirmed" in mock_warn.call_args.args[0]

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_receipt_confirms_transaction(
        self, deployed_config: Config, hardhat: FakeHardhat, chain: FakeChain
    ):
        result = await run_interaction(deployed_config, hardhat, "mint", chain)
        assert result["receipt_status"] == "success"
        assert chain.calls == ["eth_getTransactionReceipt"]

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_without_chain_receipt_not_checked(
        self, deployed_config: Config, hardhat: FakeHardhat
    ):
        result = await run_interaction(deployed_config, hardhat, "mint")
        assert result["receipt_status"] is None

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_pending_receipt_warns(self, deployed_config: Config, hardhat: FakeHardhat):
        with patch("hardhat_shield.interact.print_warning") as mock_warn:
            result = await run_interaction(
                deployed_config, hardhat, "transfer", FakeChain(receipt_status=None)
            )
        assert result["receipt_status"] == "pending"
        mock_warn.assert_called_once()

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_receipt_lookup_failure_is_reported(
        self, deployed_config: Config, hardhat: FakeHardhat
    ):
        result = await run_interaction(deployed_config, hardhat, "mint", FakeChain(fail=True))
        assert result["receipt_status"] == "unknown"
        assert result["tx_hash"] == TX_HASH

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_reverted_transaction_raises(
        self, deployed_config: Config, hardhat: FakeHardhat
    ):
        with pytest.raises(TransactionRevertedError, match=TX_HASH):
            await run_interaction(deployed_config, hardhat, "mint", FakeChain(receipt_status="0x0"))


# ---------------------------------------------------------------------------
# contract_status
# ---------------------------------------------------------------------------


class TestContractStatus:
    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_offline(self, deployed_config: Config):
        status = await contract_status(deployed_config)
        assert status == {
            "address": DEPLOYED_ADDRESS,
            "network": "swisstronik",
            "explorer_url": (
                f"https://explorer-evm.testnet.swisstronik.com/address/{DEPLOYED_ADDRESS}"
            ),
        }

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_has_code(self, deployed_config: Config, chain: FakeChain):
        status = await contract_status(deployed_config, chain)
        assert status["has_code"] is True
        assert chain.calls == ["eth_getCode"]

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_no_code(self, deployed_config: Config):
        status = await contract_status(deployed_config, FakeChain(code="0x"))
        assert status["has_code"] is False

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_status_without_deployment(self, resolved_config: Config):
        with pytest.raises(NoDeployedContractError):
            await contract_status(resolved_config)
