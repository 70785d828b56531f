"""
Tests for CLI parsing, command handlers and logging setup.
"""
import json
import logging
from unittest.mock import MagicMock

import pytest

from battle_agent import cli
from battle_agent.models import Attestation, ReadResult
from conftest import FakeDecoder, pool_at

POOL_ID = "0x" + "ab" * 32
MESSAGE_HASH = "0x" + "cd" * 32


def run(argv):
    args = cli.parse_args(argv)
    return cli.COMMANDS[args.command](args)


class TestParseArgs:
    def test_analyze_ids(self):
        args = cli.parse_args(["analyze", "3", "7"])
        assert args.command == "analyze"
        assert args.battle_ids == [3, 7]

    def test_serve_defaults(self):
        args = cli.parse_args(["serve", "--port", "8080", "--no-start"])
        assert args.port == 8080
        assert args.no_start is True

    def test_plan_entry(self):
        args = cli.parse_args(
            [
                "plan-entry",
                "--source-chain", "1",
                "--source-token", "0xA0b86991c6218b36c1d19D4a2e9Eb0cE3606eB48",
                "--amount", "25000000",
                "--user", "0x3333333333333333333333333333333333333333",
                "--target-chain", "42161",
                "--token0", "0xa",
                "--token1", "0xb",
                "--tick-lower", "-600",
                "--tick-upper", "600",
            ]
        )
        assert args.tick_lower == -600
        assert args.battle_id is None
        assert not args.json

    def test_pool_defaults(self):
        args = cli.parse_args(["pool", POOL_ID])
        assert args.pool_id == POOL_ID
        assert args.decimals0 == 18
        assert args.decimals1 == cli.config.USDC_DECIMALS

    def test_cctp_mint_rejects_unknown_chain(self):
        with pytest.raises(SystemExit):
            cli.parse_args(["cctp-mint", "--message-hash", MESSAGE_HASH, "--dest-chain", "MOON"])

    def test_command_required(self):
        with pytest.raises(SystemExit):
            cli.parse_args([])

    def test_every_command_has_a_handler(self):
        for command in ("monitor", "status", "settle", "battles", "analyze", "serve", "plan-entry",
                        "pool", "bridge-status", "cctp-mint"):
            assert command in cli.COMMANDS


class TestSetupLogging:
    def test_console_and_file_handlers(self, tmp_path):
        cli.setup_logging("WARNING", log_dir=str(tmp_path))
        try:
            handlers = cli.logger.handlers
            assert len(handlers) == 2
            console, fh = handlers
            assert console.level == logging.WARNING
            assert fh.level == logging.DEBUG
            assert (tmp_path / "decisions.log").exists()
        finally:
            for handler in list(cli.logger.handlers):
                handler.close()
                cli.logger.removeHandler(handler)


class TestPoolCommand:
    @pytest.fixture
    def decoder(self, monkeypatch):
        fake = FakeDecoder({bytes.fromhex(POOL_ID[2:]): pool_at(-120)})
        monkeypatch.setattr(cli, "connect", lambda config: MagicMock())
        monkeypatch.setattr(cli, "StorageDecoder", lambda w3, config: fake)
        return fake

    def test_prints_pool_state(self, decoder, capsys):
        assert run(["pool", POOL_ID]) == 0

        out = capsys.readouterr().out
        assert "tick:          -120" in out
        assert "fees:          lp=3000 protocol=0" in out
        assert "liquidity:     unavailable" in out
        assert decoder.reads == [bytes.fromhex(POOL_ID[2:])]

    def test_unknown_pool_fails(self, decoder, capsys):
        assert run(["pool", "0x" + "00" * 32]) == 1
        assert "Pool state unavailable" in capsys.readouterr().out


class TestBridgeStatusCommand:
    ARGS = ["bridge-status", "--tx-hash", "0xfeed", "--from-chain", "1", "--to-chain", "42161"]

    def test_prints_status_json(self, monkeypatch, capsys):
        client = MagicMock()
        client.get_status.return_value = {"status": "DONE", "substatus": "COMPLETED"}
        monkeypatch.setattr(cli, "LiFiClient", lambda config: client)

        assert run(self.ARGS) == 0

        client.get_status.assert_called_once_with("0xfeed", 1, 42161)
        assert json.loads(capsys.readouterr().out) == {"status": "DONE", "substatus": "COMPLETED"}

    def test_lookup_failure(self, monkeypatch, capsys):
        client = MagicMock()
        client.get_status.return_value = None
        monkeypatch.setattr(cli, "LiFiClient", lambda config: client)

        assert run(self.ARGS) == 1
        assert "Status unavailable" in capsys.readouterr().out


class TestCctpMintCommand:
    def _bridge(self, monkeypatch, result):
        bridge = MagicMock()
        bridge.get_attestation.return_value = result
        bridge.prepare_receive_message_data.return_value = {"to": "0xtransmitter", "data": "0x57ecfd28"}
        monkeypatch.setattr(cli, "CctpBridge", lambda config: bridge)
        return bridge

    def test_pending_attestation(self, monkeypatch, capsys):
        bridge = self._bridge(monkeypatch, ReadResult.present(Attestation(status="pending_confirmations")))

        code = run(["cctp-mint", "--message-hash", MESSAGE_HASH, "--dest-chain", "ARBITRUM", "--message", "0x01"])

        assert code == 0
        assert "Attestation pending_confirmations; try again later" in capsys.readouterr().out
        bridge.prepare_receive_message_data.assert_not_called()

    def test_complete_attestation_builds_receive_message(self, monkeypatch, capsys):
        bridge = self._bridge(monkeypatch, ReadResult.present(Attestation(status="complete", attestation="0xaa")))

        code = run(["cctp-mint", "--message-hash", MESSAGE_HASH, "--dest-chain", "ARBITRUM", "--message", "0x01"])

        assert code == 0
        bridge.prepare_receive_message_data.assert_called_once_with("ARBITRUM", "0x01", "0xaa")
        out = capsys.readouterr().out
        assert "Attestation complete" in out
        assert "to:   0xtransmitter" in out

    def test_attestation_unavailable(self, monkeypatch, capsys):
        self._bridge(monkeypatch, ReadResult.unavailable("attestation lookup failed: timeout"))

        code = run(["cctp-mint", "--message-hash", MESSAGE_HASH, "--dest-chain", "ARBITRUM"])

        assert code == 1
        assert "Attestation unavailable" in capsys.readouterr().out
