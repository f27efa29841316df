"""
Configuration loader for the reaction relay.
Reads settings from a YAML file with environment variable substitution,
then applies the plain environment variable overrides the service has
always honoured (SLACK_BOT_TOKEN, REDIS_ADDR, ...).
"""
from __future__ import annotations

import os
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Optional

import structlog
import yaml

logger = structlog.get_logger()


class ConfigurationError(Exception):
    """Fatal startup problem: missing credential or unreachable bus."""
    pass


@dataclass
class SlackConfig:
    bot_token: str = ""
    api_base_url: str = "https://slack.com/api"
    timeout_seconds: float = 30.0
    max_attempts: int = 1               # 1 = no retry on chat.delete


@dataclass
class RedisConfig:
    backend: str = "redis"              # "redis" in production, "memory" for dev
    addr: str = "localhost:6379"
    password: str = ""
    db: int = 0

    @property
    def url(self) -> str:
        return f"redis://{self.addr}/{self.db}"


@dataclass
class RelayConfig:
    inbound_channel: str = "slack-relay-reaction-added"
    timebomb_channel: str = "timebomb-messages"
    timebomb_ttl_seconds: int = 5


@dataclass
class Settings:
    app_name: str = "reaction-relay"
    log_level: str = "info"
    log_format: str = "console"         # "console" | "json"
    slack: SlackConfig = field(default_factory=SlackConfig)
    redis: RedisConfig = field(default_factory=RedisConfig)
    relay: RelayConfig = field(default_factory=RelayConfig)

    def validate(self):
        """Raise ConfigurationError if the service cannot start with these values."""
        if not self.slack.bot_token:
            raise ConfigurationError("SLACK_BOT_TOKEN environment variable is required")
        if self.relay.timebomb_ttl_seconds <= 0:
            raise ConfigurationError(
                f"timebomb_ttl_seconds must be positive, got {self.relay.timebomb_ttl_seconds}"
            )
        if not self.relay.inbound_channel or not self.relay.timebomb_channel:
            raise ConfigurationError("inbound and timebomb channel names must be set")
        if self.redis.backend not in ("redis", "memory"):
            raise ConfigurationError(f"unknown redis backend: {self.redis.backend}")


_settings: Optional[Settings] = None


def _substitute_env_vars(value: str) -> str:
    """Replace ${VAR_NAME} patterns with environment variable values."""
    pattern = re.compile(r'\$\{(\w+)\}')
    def replacer(match):
        var_name = match.group(1)
        return os.environ.get(var_name, match.group(0))
    return pattern.sub(replacer, value)


def _process_values(obj: Any) -> Any:
    """Recursively substitute env vars in all string values."""
    if isinstance(obj, str):
        return _substitute_env_vars(obj)
    elif isinstance(obj, dict):
        return {k: _process_values(v) for k, v in obj.items()}
    elif isinstance(obj, list):
        return [_process_values(v) for v in obj]
    return obj


def _env(key: str, default: str) -> str:
    # An empty variable counts as unset
    value = os.environ.get(key, "")
    return value if value else default


def _env_int(key: str, default: int) -> int:
    value = os.environ.get(key, "")
    if not value:
        return default
    try:
        return int(value)
    except ValueError:
        logger.warning("invalid_int_env_var", key=key, value=value, default=default)
        return default


def _yaml_number(section: str, key: str, value: Any, convert):
    try:
        return convert(value)
    except (TypeError, ValueError) as e:
        raise ConfigurationError(f"{section}.{key} must be a number, got {value!r}") from e


def _apply_yaml(settings: Settings, raw: dict[str, Any]):
    settings.app_name = raw.get("app_name", settings.app_name)
    settings.log_level = raw.get("log_level", settings.log_level)
    settings.log_format = raw.get("log_format", settings.log_format)

    if "slack" in raw:
        sl = raw["slack"] or {}
        settings.slack = SlackConfig(
            bot_token=sl.get("bot_token", settings.slack.bot_token),
            api_base_url=sl.get("api_base_url", settings.slack.api_base_url),
            timeout_seconds=_yaml_number("slack", "timeout_seconds",
                                         sl.get("timeout_seconds", settings.slack.timeout_seconds), float),
            max_attempts=_yaml_number("slack", "max_attempts",
                                      sl.get("max_attempts", settings.slack.max_attempts), int),
        )

    if "redis" in raw:
        rd = raw["redis"] or {}
        settings.redis = RedisConfig(
            backend=rd.get("backend", settings.redis.backend),
            addr=rd.get("addr", settings.redis.addr),
            password=rd.get("password", settings.redis.password),
            db=_yaml_number("redis", "db", rd.get("db", settings.redis.db), int),
        )

    if "relay" in raw:
        rl = raw["relay"] or {}
        settings.relay = RelayConfig(
            inbound_channel=rl.get("inbound_channel", settings.relay.inbound_channel),
            timebomb_channel=rl.get("timebomb_channel", settings.relay.timebomb_channel),
            timebomb_ttl_seconds=_yaml_number(
                "relay", "timebomb_ttl_seconds",
                rl.get("timebomb_ttl_seconds", settings.relay.timebomb_ttl_seconds), int,
            ),
        )


def _apply_env(settings: Settings):
    settings.slack.bot_token = _env("SLACK_BOT_TOKEN", settings.slack.bot_token)
    settings.redis.addr = _env("REDIS_ADDR", settings.redis.addr)
    settings.redis.password = _env("REDIS_PASSWORD", settings.redis.password)
    settings.redis.db = _env_int("REDIS_DB", settings.redis.db)
    settings.relay.inbound_channel = _env("REDIS_CHANNEL", settings.relay.inbound_channel)
    settings.relay.timebomb_channel = _env("TIMEBOMB_REDIS_CHANNEL", settings.relay.timebomb_channel)
    settings.relay.timebomb_ttl_seconds = _env_int(
        "TIMEBOMB_TTL_SECONDS", settings.relay.timebomb_ttl_seconds,
    )
    settings.log_level = _env("LOG_LEVEL", settings.log_level)


def load_settings(config_path: str = None) -> Settings:
    """Load settings from YAML file, then environment overrides.

    Raises ConfigurationError if a YAML value has the wrong type.
    """
    global _settings

    if config_path is None:
        config_path = os.environ.get(
            "REACTION_RELAY_CONFIG",
            str(Path(__file__).parent / "settings.yaml"),
        )

    settings = Settings()

    if Path(config_path).exists():
        with open(config_path) as f:
            raw = yaml.safe_load(f) or {}
        _apply_yaml(settings, _process_values(raw))

    _apply_env(settings)

    _settings = settings
    return settings


def get_settings() -> Settings:
    """Return cached settings or load from default path."""
    global _settings
    if _settings is None:
        _settings = load_settings()
    return _settings
