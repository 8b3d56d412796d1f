"""Command request data types for CLI."""

from dataclasses import dataclass
from typing import Literal, Optional


@dataclass(frozen=True)
class UploadCommand:
    """Upload a file, paying for every write directly."""

    file_path: str
    storage_key: str
    text: Optional[str] = None
    command: Literal["upload"] = "upload"


@dataclass(frozen=True)
class RelayUploadCommand:
    """Upload a file with chunk writes paid by the relay sponsor."""

    file_path: str
    storage_key: str
    text: Optional[str] = None
    command: Literal["upload-relay"] = "upload-relay"


@dataclass(frozen=True)
class PreviewCommand:
    """Show what an upload would send without sending anything."""

    file_path: str
    storage_key: str
    command: Literal["preview"] = "preview"


@dataclass(frozen=True)
class HistoryCommand:
    """Show recent uploads."""

    limit: int = 10
    command: Literal["history"] = "history"


@dataclass(frozen=True)
class ConfigCommand:
    """Show configuration, one value, or set a value."""

    key: Optional[str] = None
    value: Optional[str] = None
    command: Literal["config"] = "config"


CommandRequest = (
    UploadCommand
    | RelayUploadCommand
    | PreviewCommand
    | HistoryCommand
    | ConfigCommand
)
