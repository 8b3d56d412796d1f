"""Command parser for CLI input."""

import shlex

from cli.models import (
    CommandRequest,
    ConfigCommand,
    HistoryCommand,
    PreviewCommand,
    RelayUploadCommand,
    UploadCommand,
)


class ParseError(Exception):
    """Raised when command parsing fails."""

    pass


def parse_command(input_line: str) -> CommandRequest:
    """Parse user input into a CommandRequest object.

    Args:
        input_line: Raw user input from REPL

    Returns:
        CommandRequest object (one of Upload/RelayUpload/Preview/History/Config)

    Raises:
        ParseError: If command syntax is invalid
    """
    if not input_line.strip():
        raise ParseError("Empty command")

    try:
        tokens = shlex.split(input_line)
    except ValueError as e:
        raise ParseError(f"Invalid syntax: {e}")

    if not tokens:
        raise ParseError("Empty command")

    command_name = tokens[0]

    if command_name == "upload":
        return _parse_upload(tokens[1:])
    elif command_name == "upload-relay":
        return _parse_upload_relay(tokens[1:])
    elif command_name == "preview":
        return _parse_preview(tokens[1:])
    elif command_name == "history":
        return _parse_history(tokens[1:])
    elif command_name == "config":
        return _parse_config(tokens[1:])
    else:
        raise ParseError(f"Unknown command: {command_name}")


def _split_file_key_text(name: str, args: list[str]) -> tuple[str, str, str | None]:
    if len(args) < 2 or len(args) > 3:
        raise ParseError(f"{name} requires 2 or 3 arguments: <file> <key> [text]")

    file_path, storage_key = args[0], args[1]
    if not storage_key:
        raise ParseError(f"{name} requires a non-empty key")
    text = args[2] if len(args) == 3 else None
    return file_path, storage_key, text


def _parse_upload(args: list[str]) -> UploadCommand:
    """Parse 'upload <file> <key> [text]' command."""
    file_path, storage_key, text = _split_file_key_text("upload", args)
    return UploadCommand(file_path=file_path, storage_key=storage_key, text=text)


def _parse_upload_relay(args: list[str]) -> RelayUploadCommand:
    """Parse 'upload-relay <file> <key> [text]' command."""
    file_path, storage_key, text = _split_file_key_text("upload-relay", args)
    return RelayUploadCommand(file_path=file_path, storage_key=storage_key, text=text)


def _parse_preview(args: list[str]) -> PreviewCommand:
    """Parse 'preview <file> <key>' command."""
    if len(args) != 2:
        raise ParseError("preview requires exactly 2 arguments: <file> <key>")
    return PreviewCommand(file_path=args[0], storage_key=args[1])


def _parse_history(args: list[str]) -> HistoryCommand:
    """Parse 'history [limit]' command."""
    if not args:
        return HistoryCommand()
    if len(args) > 1:
        raise ParseError("history accepts at most 1 argument: [limit]")
    try:
        limit = int(args[0])
    except ValueError:
        raise ParseError(f"history limit must be a number, got '{args[0]}'")
    if limit <= 0:
        raise ParseError("history limit must be positive")
    return HistoryCommand(limit=limit)


def _parse_config(args: list[str]) -> ConfigCommand:
    """Parse 'config [key [value]]' command."""
    if len(args) > 2:
        raise ParseError("config accepts at most 2 arguments: [key] [value]")
    key = args[0] if args else None
    value = args[1] if len(args) == 2 else None
    return ConfigCommand(key=key, value=value)
