"""Tests for CLI command parsing."""

import pytest

from cli.models import ConfigCommand, HistoryCommand, PreviewCommand, RelayUploadCommand, UploadCommand
from cli.parser import ParseError, parse_command


def test_parse_upload():
    assert parse_command("upload notes.txt doc1") == UploadCommand(file_path="notes.txt", storage_key="doc1")


def test_parse_upload_with_quoted_text():
    cmd = parse_command('upload "my notes.txt" doc1 "Meeting notes"')
    assert cmd == UploadCommand(file_path="my notes.txt", storage_key="doc1", text="Meeting notes")


def test_parse_upload_relay():
    cmd = parse_command("upload-relay video.mp4 videos/intro")
    assert isinstance(cmd, RelayUploadCommand)
    assert cmd.command == "upload-relay"
    assert cmd.storage_key == "videos/intro"


def test_parse_preview():
    assert parse_command("preview a.pdf key") == PreviewCommand(file_path="a.pdf", storage_key="key")


def test_parse_history():
    assert parse_command("history") == HistoryCommand()
    assert parse_command("history 3") == HistoryCommand(limit=3)


def test_parse_config():
    assert parse_command("config") == ConfigCommand()
    assert parse_command("config chain_id") == ConfigCommand(key="chain_id")
    assert parse_command("config chain_id 84532") == ConfigCommand(key="chain_id", value="84532")


@pytest.mark.parametrize("line", [
    "",
    "   ",
    "upload onlyfile",
    "upload a b c d",
    'upload a ""',
    "preview a",
    "history x",
    "history 0",
    "config a b c",
    "download file",
    'upload "unterminated',
])
def test_invalid_commands(line):
    with pytest.raises(ParseError):
        parse_command(line)
