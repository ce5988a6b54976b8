"""
CLI context for Profile Bridge.

This module provides the context object passed to all CLI commands. It
holds the command line options and lazily loads configuration.
"""

from dataclasses import dataclass, field
from pathlib import Path

from profile_bridge.client.exceptions import ConfigurationError
from profile_bridge.client.platform_client import PlatformClient
from profile_bridge.config import AccountConfig, SyncConfig, load_config_from_yaml
from profile_bridge.utils.logging import configure_logging, get_logger

logger = get_logger(__name__)


@dataclass
class SyncCliContext:
    """
    Context object for CLI commands.

    Attributes:
        config_path: Path to YAML configuration file (None = environment only)
        log_level: Console log level from the command line, overrides config
        log_file: Log file from the command line, overrides config
    """

    config_path: Path | None = None
    log_level: str | None = None
    log_file: Path | None = None

    _config: SyncConfig | None = field(default=None, init=False, repr=False)

    @property
    def config(self) -> SyncConfig:
        """Get or load sync configuration.

        Without ``--config`` the configuration is read from
        ``PROFILE_BRIDGE_*`` environment variables (and ``.env``).
        """
        if self._config is None:
            try:
                if self.config_path is not None:
                    self._config = load_config_from_yaml(self.config_path)
                else:
                    self._config = SyncConfig()
            except (FileNotFoundError, ValueError) as e:
                raise ConfigurationError(f"Invalid configuration: {e}") from e
        return self._config

    def setup_logging(self) -> None:
        """Configure logging from command line options, falling back to config."""
        logging_config = self.config.logging
        log_file = str(self.log_file) if self.log_file else logging_config.file
        configure_logging(
            level=self.log_level or logging_config.level,
            log_format=logging_config.format,
            log_file=log_file,
            file_level=logging_config.file_level,
        )
        logger.debug(
            "cli_initialized",
            config=str(self.config_path) if self.config_path else None,
            log_file=log_file,
        )

    def create_client(self, account: AccountConfig) -> PlatformClient:
        config = self.config
        logger.debug("creating_client", url=account.url, label=account.label)
        return PlatformClient(
            config=account,
            performance=config.performance,
            log_payloads=config.logging.log_payloads,
            max_payload_size=config.logging.max_payload_size,
        )
