"""Tests for CLI command handlers."""

import time
from unittest.mock import AsyncMock, MagicMock

from cli.commands import (
    handle_config,
    handle_history,
    handle_preview,
    handle_upload,
    handle_upload_relay,
)
from cli.constants import HISTORY_KEY
from cli.models import ConfigCommand, HistoryCommand, PreviewCommand, RelayUploadCommand, UploadCommand
from common.types import SubmissionResult
from relay.relay_client import RelaySession
from relay.schemas import BalanceResponse

OPERATOR = "0x" + "ab" * 20
SPONSOR = "0x" + "5c" * 20


def _mock_relay(ledger):
    relay = MagicMock()
    relay.check_balance = AsyncMock(return_value=BalanceResponse(
        success=True, backend_wallet_address=SPONSOR, sufficient_balance=True
    ))
    relay.create_session = AsyncMock(return_value=RelaySession(token="tok", expires_at=int(time.time()) + 3600))

    async def submit(operations, session=None):
        for op in operations:
            ledger.apply(op.call, SPONSOR)
        return SubmissionResult(
            transaction_hashes=[ledger.next_hash() for _ in operations],
            successful_indexes=list(range(len(operations))),
            transactions_sent=len(operations),
        )

    relay.submit = AsyncMock(side_effect=submit)
    return relay


def test_handle_upload(ledger, temp_config, activity_log, sample_file):
    """Test upload handler with an in-memory ledger."""
    cmd = UploadCommand(file_path=str(sample_file), storage_key="doc1", text="sample")

    result = handle_upload(cmd, gateway=ledger, config=temp_config, activity=activity_log)

    assert "Upload" in result
    assert "doc1" in result
    assert f"/storage/load/{OPERATOR}/doc1" in result
    entries = activity_log.get(HISTORY_KEY)
    assert len(entries) == 1
    assert entries[0]["mode"] == "direct"
    assert entries[0]["success"] is True
    assert entries[0]["transactions_sent"] == 1


def test_handle_upload_twice_reports_already_stored(ledger, temp_config, activity_log, sample_file):
    cmd = UploadCommand(file_path=str(sample_file), storage_key="doc1")
    handle_upload(cmd, gateway=ledger, config=temp_config, activity=activity_log)

    result = handle_upload(cmd, gateway=ledger, config=temp_config, activity=activity_log)

    assert "already stored" in result
    assert activity_log.get(HISTORY_KEY)[-1]["transactions_skipped"] == 1


def test_handle_upload_missing_file(ledger, temp_config, activity_log, tmp_path):
    cmd = UploadCommand(file_path=str(tmp_path / "nope.txt"), storage_key="doc1")

    result = handle_upload(cmd, gateway=ledger, config=temp_config, activity=activity_log)

    assert result.startswith("Error: file not found")
    assert activity_log.get(HISTORY_KEY) is None


def test_handle_upload_without_private_key(temp_config, activity_log, sample_file, monkeypatch):
    monkeypatch.delenv("NET_PRIVATE_KEY", raising=False)
    cmd = UploadCommand(file_path=str(sample_file), storage_key="doc1")

    result = handle_upload(cmd, config=temp_config, activity=activity_log)

    assert "NET_PRIVATE_KEY" in result


def test_handle_upload_relay(ledger, temp_config, activity_log, large_file):
    relay = _mock_relay(ledger)
    cmd = RelayUploadCommand(file_path=str(large_file), storage_key="doc1")

    result = handle_upload_relay(cmd, relay=relay, gateway=ledger, config=temp_config, activity=activity_log)

    assert "Relay upload" in result
    assert "submitted" in result
    assert SPONSOR in result
    entry = activity_log.get(HISTORY_KEY)[0]
    assert entry["mode"] == "relay"
    assert entry["metadata_submitted"] is True
    assert entry["chunks_sent"] == 2
    relay.submit.assert_awaited_once()


def test_handle_preview(ledger, temp_config, large_file):
    cmd = PreviewCommand(file_path=str(large_file), storage_key="doc1")

    result = handle_preview(cmd, gateway=ledger, config=temp_config, operator=OPERATOR)

    assert "chunked" in result
    assert "2 total" in result
    assert "3 to send" in result
    assert ledger.sent_calls == []


def test_handle_history(activity_log):
    assert handle_history(HistoryCommand(), activity=activity_log) == "No uploads recorded"

    for key in ("first", "second", "third"):
        activity_log.append(HISTORY_KEY, {"mode": "direct", "success": True, "storage_key": key, "file": "f"})

    lines = handle_history(HistoryCommand(limit=2), activity=activity_log).splitlines()

    assert len(lines) == 2
    assert "third" in lines[0]
    assert "second" in lines[1]


def test_handle_config(temp_config):
    assert '"timeout": 30' in handle_config(ConfigCommand(), config=temp_config)
    assert handle_config(ConfigCommand(key="timeout"), config=temp_config) == "timeout = 30"
    assert handle_config(ConfigCommand(key="timeout", value="45"), config=temp_config) == "timeout = 45"
    assert temp_config.get_timeout() == 45
    assert handle_config(ConfigCommand(key="bogus"), config=temp_config).startswith("Error")
    assert handle_config(ConfigCommand(key="bogus", value="1"), config=temp_config).startswith("Error")
    assert handle_config(ConfigCommand(key="timeout", value="x"), config=temp_config).startswith("Error")
