"""Configuration management for the netstore CLI."""

import json
import os
import shutil
import tempfile
from pathlib import Path
from typing import Any, Optional

from common.constants import OPTIMAL_CHUNK_SIZE
from common.logging_config import get_logger
from common.types import RetryConfig

logger = get_logger(__name__)


class Config:
    """Manages CLI configuration stored in JSON file."""

    DEFAULT_CONFIG = {
        "gateway_url": os.environ.get("NET_GATEWAY_URL", "http://localhost:8545"),
        "relay_api_url": os.environ.get("NET_RELAY_API_URL", "http://localhost:3000"),
        "chain_id": int(os.environ.get("NET_CHAIN_ID", "8453")),
        "timeout": 30,
        "max_retries": 3,
        "retry_backoff_multiplier": 2,
        "chunk_size": OPTIMAL_CHUNK_SIZE,
    }

    SECRET_KEYS = ("private_key", "relay_secret_key")

    def __init__(self, config_path: Path):
        """
        Initialize configuration manager.

        Args:
            config_path: Path to config JSON file (typically ~/.netstore/config.json)
        """
        self.config_path = Path(config_path)
        self.data = self._load()

    def _load(self) -> dict:
        """
        Load configuration from file, creating defaults if necessary.

        Returns:
            Configuration dictionary
        """
        try:
            self.config_path.parent.mkdir(parents=True, exist_ok=True)
        except PermissionError:
            self.config_path = Path(tempfile.gettempdir()) / '.netstore' / 'config.json'
            self.config_path.parent.mkdir(parents=True, exist_ok=True)

        if self.config_path.exists():
            try:
                with open(self.config_path, 'r') as f:
                    data = json.load(f)
                config = self.DEFAULT_CONFIG.copy()
                config.update({k: v for k, v in data.items() if k not in self.SECRET_KEYS})
                return config
            except (json.JSONDecodeError, IOError) as e:
                logger.warning(f"Failed to read config {self.config_path}: {e}, using defaults")
                backup_path = self.config_path.with_suffix('.json.bak')
                try:
                    shutil.copy(self.config_path, backup_path)
                except OSError:
                    logger.debug(f"Could not back up config to {backup_path}")
                return self.DEFAULT_CONFIG.copy()
        else:
            config = self.DEFAULT_CONFIG.copy()
            try:
                with open(self.config_path, 'w') as f:
                    json.dump(config, f, indent=2)
            except IOError as e:
                logger.debug(f"Could not write default config: {e}")
            return config

    def save(self) -> None:
        """Save current configuration to file. Secrets are never written."""
        data = {k: v for k, v in self.data.items() if k not in self.SECRET_KEYS}
        try:
            with open(self.config_path, 'w') as f:
                json.dump(data, f, indent=2)
        except IOError as e:
            logger.warning(f"Failed to save config {self.config_path}: {e}")

    def get(self, key: str) -> Any:
        return self.data.get(key)

    def set(self, key: str, value: str) -> Any:
        """
        Set a configuration value and save to file.

        Values are coerced to the type of the default for known keys.

        Args:
            key: Configuration key
            value: Raw string value from the command line

        Returns:
            Stored value

        Raises:
            KeyError: If key is unknown or is a secret
            ValueError: If value cannot be coerced
        """
        if key not in self.DEFAULT_CONFIG:
            raise KeyError(key)

        default = self.DEFAULT_CONFIG[key]
        if isinstance(default, int):
            coerced: Any = int(value)
        elif isinstance(default, float):
            coerced = float(value)
        else:
            coerced = value

        self.data[key] = coerced
        self.save()
        return coerced

    def get_gateway_url(self) -> str:
        return self.data.get('gateway_url', self.DEFAULT_CONFIG['gateway_url'])

    def get_relay_api_url(self) -> str:
        return self.data.get('relay_api_url', self.DEFAULT_CONFIG['relay_api_url'])

    def get_chain_id(self) -> int:
        return int(self.data.get('chain_id', self.DEFAULT_CONFIG['chain_id']))

    def get_chunk_size(self) -> int:
        return int(self.data.get('chunk_size', OPTIMAL_CHUNK_SIZE))

    def get_timeout(self) -> int:
        """
        Get request timeout in seconds.

        Returns:
            Timeout value in seconds
        """
        return self.data.get('timeout', 30)

    def get_retry_config(self) -> dict:
        """
        Get HTTP retry configuration.

        Returns:
            Dictionary with 'max_retries' and 'retry_backoff_multiplier'
        """
        return {
            'max_retries': self.data.get('max_retries', 3),
            'retry_backoff_multiplier': self.data.get('retry_backoff_multiplier', 2),
        }

    def get_upload_retry_config(self) -> RetryConfig:
        """Get backoff settings for retrying failed write operations."""
        return RetryConfig(max_retries=self.data.get('max_retries', 3))

    def get_private_key(self) -> Optional[str]:
        """Private key seed, read from NET_PRIVATE_KEY only."""
        return os.environ.get("NET_PRIVATE_KEY")

    def get_relay_secret_key(self) -> Optional[str]:
        """Relay secret, read from NET_RELAY_SECRET_KEY only."""
        return os.environ.get("NET_RELAY_SECRET_KEY")
