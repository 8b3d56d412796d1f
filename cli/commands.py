"""Command handler functions for CLI operations."""

import asyncio
import json
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Optional

from common.activity_log import ActivityLog
from common.exceptions import NetStoreError
from common.logging_config import get_logger
from common.signing import Ed25519Signer
from common.types import PreviewResult, RelayUploadResult, StorageStrategy, UploadResult
from cli.config import Config
from cli.constants import HISTORY_KEY
from cli.models import (
    ConfigCommand,
    HistoryCommand,
    PreviewCommand,
    RelayUploadCommand,
    UploadCommand,
)
from cli.utils import describe_key, format_file_size, status_label, storage_url_line
from relay.relay_client import RelayClient
from relay.relay_upload import RelayUploadOptions, upload_file_with_relay
from uploader.gateway_client import GatewayClient
from uploader.upload import UploadOptions, preview_file, upload_file

logger = get_logger(__name__)


NETSTORE_HOME = Path.home() / '.netstore'

_config: Optional[Config] = None
_activity: Optional[ActivityLog] = None


def get_config() -> Config:
    """
    Get or create global Config instance.

    Returns:
        Config instance
    """
    global _config
    if _config is None:
        logger.debug("Loading CLI configuration")
        _config = Config(NETSTORE_HOME / 'config.json')
    return _config


def get_activity_log() -> ActivityLog:
    global _activity
    if _activity is None:
        _activity = ActivityLog(NETSTORE_HOME / 'activity.json')
    return _activity


def _load_signer(config: Config) -> Ed25519Signer:
    private_key = config.get_private_key()
    if not private_key:
        raise ValueError("NET_PRIVATE_KEY is not set")
    return Ed25519Signer(private_key)


@asynccontextmanager
async def _gateway_session(config: Config, gateway: Optional[GatewayClient], signer: Optional[Ed25519Signer]):
    """Yield the injected gateway, or a fresh one closed on exit."""
    if gateway is not None:
        yield gateway
        return

    retry = config.get_retry_config()
    async with GatewayClient(
        config.get_gateway_url(),
        config.get_chain_id(),
        signer=signer,
        timeout=config.get_timeout(),
        max_retries=retry['max_retries'],
        retry_backoff_multiplier=retry['retry_backoff_multiplier'],
    ) as client:
        yield client


def _record(activity: ActivityLog, entry: dict) -> None:
    activity.append(HISTORY_KEY, entry)


def _format_upload_result(cmd: UploadCommand, result: UploadResult, chain_id: int, size: int) -> str:
    storage_type = result.storage_type.value if result.storage_type else "unknown"
    lines = [
        f"Upload {status_label(result.success, result.skipped and result.transactions_sent == 0)}: "
        f"{cmd.file_path} ({format_file_size(size)}, {storage_type})",
        f"  Key:        {describe_key(cmd.storage_key)}",
        f"  Sent:       {result.transactions_sent}",
        f"  Skipped:    {result.transactions_skipped}",
        f"  Failed:     {result.transactions_failed}",
    ]
    if result.final_hash:
        lines.append(f"  Last tx:    {result.final_hash}")
    lines.append(storage_url_line(result.operator_address, chain_id, cmd.storage_key))
    if result.error:
        lines.append(f"  Error:      {result.error}")
    return "\n".join(lines)


def handle_upload(
    cmd: UploadCommand,
    gateway: Optional[GatewayClient] = None,
    config: Optional[Config] = None,
    activity: Optional[ActivityLog] = None,
) -> str:
    """
    Handle 'upload' command.

    Args:
        cmd: UploadCommand with file path, key and optional text
        gateway: Optional storage reader/ledger writer for dependency injection (testing)
        config: Optional Config for dependency injection (testing)
        activity: Optional ActivityLog for dependency injection (testing)

    Returns:
        Formatted upload summary or error message
    """
    config = config or get_config()
    activity = activity or get_activity_log()
    logger.info(f"Executing upload command [file={cmd.file_path}, key={cmd.storage_key}]")

    path = Path(cmd.file_path)
    if not path.is_file():
        return f"Error: file not found: {cmd.file_path}"

    options = UploadOptions(
        file_path=path,
        storage_key=cmd.storage_key,
        text=cmd.text or "",
        chunk_size=config.get_chunk_size(),
        retry_config=config.get_upload_retry_config(),
    )

    async def run() -> UploadResult:
        signer = None if gateway is not None else _load_signer(config)
        async with _gateway_session(config, gateway, signer) as client:
            return await upload_file(options, client, client)

    try:
        result = asyncio.run(run())
    except (NetStoreError, ValueError, OSError) as e:
        logger.error(f"Upload failed [key={cmd.storage_key}]: {e}")
        return f"Error: {e}"

    _record(activity, {
        'mode': 'direct',
        'file': str(path),
        'storage_key': cmd.storage_key,
        'success': result.success,
        'storage_type': result.storage_type.value if result.storage_type else None,
        'transactions_sent': result.transactions_sent,
        'transactions_skipped': result.transactions_skipped,
        'transactions_failed': result.transactions_failed,
        'operator_address': result.operator_address,
    })
    return _format_upload_result(cmd, result, config.get_chain_id(), path.stat().st_size)


def _format_relay_result(cmd: RelayUploadCommand, result: RelayUploadResult, operator: str, chain_id: int) -> str:
    lines = [
        f"Relay upload {status_label(result.success)}: {cmd.file_path}",
        f"  Key:        {describe_key(cmd.storage_key)}",
        f"  Hash:       {result.top_level_hash}",
        f"  Chunks:     {result.chunks_sent} sent, {result.chunks_skipped} already stored",
        f"  Metadata:   {'submitted' if result.metadata_submitted else 'not submitted'}",
        f"  Sponsor:    {result.sponsor_address or 'unknown'}",
        storage_url_line(operator, chain_id, cmd.storage_key),
    ]
    for error in result.errors or []:
        lines.append(f"  Error:      {error}")
    return "\n".join(lines)


def handle_upload_relay(
    cmd: RelayUploadCommand,
    relay: Optional[RelayClient] = None,
    gateway: Optional[GatewayClient] = None,
    config: Optional[Config] = None,
    activity: Optional[ActivityLog] = None,
) -> str:
    """
    Handle 'upload-relay' command.

    Args:
        cmd: RelayUploadCommand with file path, key and optional text
        relay: Optional RelayClient for dependency injection (testing)
        gateway: Optional storage reader/ledger writer for dependency injection (testing)
        config: Optional Config for dependency injection (testing)
        activity: Optional ActivityLog for dependency injection (testing)

    Returns:
        Formatted relay upload summary or error message
    """
    config = config or get_config()
    activity = activity or get_activity_log()
    logger.info(f"Executing upload-relay command [file={cmd.file_path}, key={cmd.storage_key}]")

    path = Path(cmd.file_path)
    if not path.is_file():
        return f"Error: file not found: {cmd.file_path}"

    options = RelayUploadOptions(
        file_path=path,
        storage_key=cmd.storage_key,
        text=cmd.text or "",
        chunk_size=config.get_chunk_size(),
        retry_config=config.get_upload_retry_config(),
    )

    async def run() -> tuple[RelayUploadResult, str]:
        signer = None
        if relay is None or gateway is None:
            signer = _load_signer(config)
        async with _gateway_session(config, gateway, signer) as writer:
            if relay is not None:
                return await upload_file_with_relay(options, relay, writer, writer), writer.address
            secret_key = config.get_relay_secret_key()
            if not secret_key:
                raise ValueError("NET_RELAY_SECRET_KEY is not set")
            async with RelayClient(
                config.get_relay_api_url(),
                config.get_chain_id(),
                signer,
                secret_key,
                timeout=config.get_timeout(),
            ) as client:
                return await upload_file_with_relay(options, client, writer, writer), writer.address

    try:
        result, operator = asyncio.run(run())
    except (NetStoreError, ValueError, OSError) as e:
        logger.error(f"Relay upload failed [key={cmd.storage_key}]: {e}")
        return f"Error: {e}"

    _record(activity, {
        'mode': 'relay',
        'file': str(path),
        'storage_key': cmd.storage_key,
        'success': result.success,
        'storage_type': StorageStrategy.CHUNKED.value,
        'top_level_hash': result.top_level_hash,
        'chunks_sent': result.chunks_sent,
        'chunks_skipped': result.chunks_skipped,
        'metadata_submitted': result.metadata_submitted,
        'operator_address': operator.lower(),
        'errors': result.errors or [],
    })
    return _format_relay_result(cmd, result, operator.lower(), config.get_chain_id())


def _format_preview(cmd: PreviewCommand, preview: PreviewResult, chain_id: int) -> str:
    lines = [
        f"Preview: {cmd.file_path}",
        f"  Key:          {describe_key(cmd.storage_key)}",
        f"  Strategy:     {preview.storage_type.value}",
        f"  Chunks:       {preview.total_chunks} total, {preview.already_stored_chunks} stored, "
        f"{preview.need_to_store_chunks} to store",
    ]
    if preview.metadata_needs_storage is not None:
        lines.append(f"  Metadata:     {'needs storage' if preview.metadata_needs_storage else 'already stored'}")
    lines.extend([
        f"  Transactions: {preview.transactions_to_send} to send, {preview.transactions_skipped} skipped "
        f"(of {preview.total_transactions})",
        storage_url_line(preview.operator_address, chain_id, cmd.storage_key),
    ])
    return "\n".join(lines)


def handle_preview(
    cmd: PreviewCommand,
    gateway: Optional[GatewayClient] = None,
    config: Optional[Config] = None,
    operator: Optional[str] = None,
) -> str:
    """
    Handle 'preview' command.

    Args:
        cmd: PreviewCommand with file path and key
        gateway: Optional storage reader for dependency injection (testing)
        config: Optional Config for dependency injection (testing)
        operator: Operator address; derived from NET_PRIVATE_KEY when omitted

    Returns:
        Formatted preview or error message
    """
    config = config or get_config()
    path = Path(cmd.file_path)
    if not path.is_file():
        return f"Error: file not found: {cmd.file_path}"

    options = UploadOptions(file_path=path, storage_key=cmd.storage_key, chunk_size=config.get_chunk_size())

    async def run() -> PreviewResult:
        address = operator or _load_signer(config).address
        async with _gateway_session(config, gateway, None) as client:
            return await preview_file(options, client, address)

    try:
        preview = asyncio.run(run())
    except (NetStoreError, ValueError, OSError) as e:
        logger.error(f"Preview failed [key={cmd.storage_key}]: {e}")
        return f"Error: {e}"
    return _format_preview(cmd, preview, config.get_chain_id())


def handle_history(cmd: HistoryCommand, activity: Optional[ActivityLog] = None) -> str:
    """
    Handle 'history' command.

    Args:
        cmd: HistoryCommand with limit
        activity: Optional ActivityLog for dependency injection (testing)

    Returns:
        Most recent uploads, newest first
    """
    activity = activity or get_activity_log()
    entries = activity.get(HISTORY_KEY, [])
    if not entries:
        return "No uploads recorded"

    lines = []
    for entry in reversed(entries[-cmd.limit:]):
        lines.append(
            f"{entry.get('recorded_at', '?')}  {entry.get('mode', '?'):<6}  "
            f"{status_label(bool(entry.get('success')))}  {entry.get('storage_key')}  {entry.get('file')}"
        )
    return "\n".join(lines)


def handle_config(cmd: ConfigCommand, config: Optional[Config] = None) -> str:
    """
    Handle 'config' command.

    Args:
        cmd: ConfigCommand with optional key and value
        config: Optional Config for dependency injection (testing)

    Returns:
        Current settings, a single value, or confirmation of a change
    """
    config = config or get_config()

    if cmd.key is None:
        return json.dumps(config.data, indent=2)

    if cmd.value is None:
        if cmd.key not in config.data:
            return f"Error: unknown setting '{cmd.key}'"
        return f"{cmd.key} = {config.get(cmd.key)}"

    try:
        stored = config.set(cmd.key, cmd.value)
    except KeyError:
        return f"Error: unknown setting '{cmd.key}'"
    except ValueError:
        return f"Error: invalid value for {cmd.key}: {cmd.value}"
    logger.info(f"Config updated [{cmd.key}={stored}]")
    return f"{cmd.key} = {stored}"
