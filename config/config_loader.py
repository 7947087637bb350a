# Config/config_loader.py

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, ClassVar

import yaml

from utils.errors import ConfigError, ConfigTemplateCreated

SETTINGS_SECTION = "bot_settings"
TOKEN_PLACEHOLDER = "YOUR_TOKEN_HERE"
MAX_CHANNEL_NAME_LENGTH = 100

DEFAULT_SETTINGS: dict[str, Any] = {
    SETTINGS_SECTION: {
        "token": TOKEN_PLACEHOLDER,
        "commandPrefix": "!",
        "voiceChannelPrefix": "PV: ",
        "tickerDelay": 30,
        "unjoinedChannelDeleteDelay": 30,
    },
    "logging": {"level": "INFO"},
}


def _get_project_root() -> Path:
    """Derive project root from this file's location: config/config_loader.py -> project root."""
    return Path(__file__).resolve().parent.parent


@dataclass(frozen=True)
class BotSettings:
    """Validated settings handed to every component at startup."""

    token: str
    command_prefix: str = "!"
    voice_channel_prefix: str = "PV: "
    ticker_delay: int = 30
    unjoined_channel_delete_delay: int = 30
    log_level: str = "INFO"

    @classmethod
    def from_mapping(
        cls, config: dict[str, Any], *, env_token: str | None = None
    ) -> "BotSettings":
        """Build settings from a loaded config mapping.

        Raises:
            ConfigError: If the section is missing or any value is invalid.
        """
        section = config.get(SETTINGS_SECTION)
        if not isinstance(section, dict):
            raise ConfigError(f"Missing '{SETTINGS_SECTION}' section in configuration")

        token = env_token or section.get("token")
        if not isinstance(token, str) or not token.strip() or token == TOKEN_PLACEHOLDER:
            raise ConfigError(
                "Bot token is not configured (set bot_settings.token or DISCORD_TOKEN)"
            )

        prefix = section.get("commandPrefix", "!")
        if not isinstance(prefix, str) or len(prefix) != 1 or prefix.isspace():
            raise ConfigError(
                f"commandPrefix must be a single non-whitespace character, got {prefix!r}"
            )

        voice_prefix = section.get("voiceChannelPrefix", "PV: ")
        if not isinstance(voice_prefix, str) or not voice_prefix:
            raise ConfigError("voiceChannelPrefix must be a non-empty string")
        if len(voice_prefix) >= MAX_CHANNEL_NAME_LENGTH:
            raise ConfigError(
                f"voiceChannelPrefix must be shorter than {MAX_CHANNEL_NAME_LENGTH} characters"
            )

        logging_cfg = config.get("logging") or {}
        level = logging_cfg.get("level", "INFO") if isinstance(logging_cfg, dict) else "INFO"

        return cls(
            token=token.strip(),
            command_prefix=prefix,
            voice_channel_prefix=voice_prefix,
            ticker_delay=_positive_int(section, "tickerDelay", 30),
            unjoined_channel_delete_delay=_positive_int(
                section, "unjoinedChannelDeleteDelay", 30
            ),
            log_level=str(level).upper(),
        )


def _positive_int(section: dict[str, Any], key: str, default: int) -> int:
    value = section.get(key, default)
    # bool is an int subclass; reject it explicitly
    if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
        raise ConfigError(f"{key} must be a positive integer number of seconds, got {value!r}")
    return value


class ConfigLoader:
    """
    Singleton class to load and provide access to configuration data.

    Observability:
        - Logs INFO on successful config load with path
        - Logs WARNING when a template file is generated
        - Logs ERROR on YAML parse errors
        - Tracks config_status for health reporting
    """

    _config: ClassVar[dict[str, Any]] = {}
    _config_status: ClassVar[str] = "not_loaded"  # "ok", "template_created", "error"
    _config_path: ClassVar[str | None] = None

    @classmethod
    def resolve_path(cls, config_path: str | None = None) -> str:
        """Resolve config path with priority: explicit arg > env var > default."""
        if config_path is None:
            config_path = os.environ.get("CONFIG_PATH")
            if config_path:
                logging.info("Config path overridden via CONFIG_PATH env: %s", config_path)

        if config_path is None:
            config_path = str(_get_project_root() / "config" / "config.yaml")
        return config_path

    @classmethod
    def load_config(cls, config_path: str | None = None) -> dict[str, Any]:
        """Load the configuration from a YAML file if not already loaded.

        Args:
            config_path: Path to the configuration file. If not provided,
                uses CONFIG_PATH env var or defaults to project_root/config/config.yaml.

        Returns:
            Dict[str, Any]: Loaded configuration dictionary.

        Raises:
            ConfigTemplateCreated: The file was missing and a template was written.
            ConfigError: The file could not be read or parsed.
        """
        if cls._config:
            return cls._config

        config_path = cls.resolve_path(config_path)
        cls._config_path = config_path
        path = Path(config_path)

        if not path.exists():
            cls.write_template(path)
            cls._config_status = "template_created"
            logging.warning(
                "Configuration file not found at path: %s; generated a template. "
                "Fill it in and restart.",
                config_path,
            )
            raise ConfigTemplateCreated(config_path)

        try:
            with path.open(encoding="utf-8") as file:
                loaded = yaml.safe_load(file) or {}
        except yaml.YAMLError as e:
            cls._config_status = "error"
            logging.exception("Error parsing configuration YAML at %s", config_path)
            raise ConfigError(f"Invalid YAML in {config_path}: {e}") from e
        except (OSError, UnicodeDecodeError) as e:
            cls._config_status = "error"
            logging.exception("Error reading configuration at %s", config_path)
            raise ConfigError(f"Cannot read {config_path}: {e}") from e

        if not isinstance(loaded, dict):
            cls._config_status = "error"
            raise ConfigError(f"Configuration file {config_path} didn't contain a mapping")

        cls._config = loaded
        cls._config_status = "ok"
        logging.info("Configuration loaded successfully from %s", config_path)
        return cls._config

    @classmethod
    def load_settings(
        cls, config_path: str | None = None, *, env_token: str | None = None
    ) -> BotSettings:
        """Load the YAML file and validate it into a BotSettings instance."""
        config = cls.load_config(config_path)
        try:
            return BotSettings.from_mapping(config, env_token=env_token)
        except ConfigError:
            cls._config_status = "error"
            raise

    @staticmethod
    def write_template(path: Path) -> None:
        """Write the default settings template to ``path``."""
        path.parent.mkdir(parents=True, exist_ok=True)
        with path.open("w", encoding="utf-8") as file:
            yaml.safe_dump(DEFAULT_SETTINGS, file, sort_keys=False)

    @classmethod
    def get_config_status(cls) -> dict[str, Any]:
        """Return config health status for observability.

        Returns:
            Dict with config_status, config_path, and whether config is loaded.
        """
        return {
            "config_status": cls._config_status,
            "config_path": cls._config_path,
            "config_loaded": bool(cls._config),
        }

    @classmethod
    def get(cls, key: str, default: Any = None) -> Any:
        """
        Retrieves a value from the configuration.

        Args:
            key (str): The key to retrieve.
            default (Any, optional): The default value if the key is not found.
                Defaults to None.

        Returns:
            Any: The value associated with the key.
        """
        return cls._config.get(key, default)

    @classmethod
    def reset(cls) -> None:
        """Reset the config loader state (useful for testing)."""
        cls._config = {}
        cls._config_status = "not_loaded"
        cls._config_path = None
