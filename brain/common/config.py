"""
Configuration Management for Second Brain

Loads configuration from ~/.brain/config.json and environment variables.
A local .env file is honoured for development setups.
"""

import os
import json
import logging
from pathlib import Path
from dataclasses import dataclass, field

from dotenv import load_dotenv

logger = logging.getLogger("brain.common.config")

# Default config paths
CONFIG_DIR = Path.home() / ".brain"
CONFIG_PATH = CONFIG_DIR / "config.json"
STORE_PATH = CONFIG_DIR / "store.json"

DEFAULT_CONFIDENCE_THRESHOLD = 0.6


@dataclass
class SlackConfig:
    """Slack app credentials and channels"""
    signing_secret: str = ""
    bot_token: str = ""
    bot_user_id: str = ""
    capture_channel_id: str = ""  # empty: capture from every channel the bot is in
    digest_channel_id: str = ""
    ack_reaction: str = "white_check_mark"


@dataclass
class LLMConfig:
    """LLM provider configuration shared by the classifier and the digest"""
    provider: str = "anthropic"
    anthropic_api_key: str = ""
    anthropic_model: str = "claude-sonnet-4-20250514"
    openai_api_key: str = ""
    openai_model: str = "gpt-4o-mini"
    google_api_key: str = ""
    google_model: str = "gemini-2.0-flash-exp"
    summary_model: str = ""  # empty: reuse the provider's model

    @property
    def model(self) -> str:
        return {
            "anthropic": self.anthropic_model,
            "openai": self.openai_model,
            "google": self.google_model,
        }.get(self.provider, "")


@dataclass
class CaptureConfig:
    """Capture pipeline configuration"""
    confidence_threshold: float = DEFAULT_CONFIDENCE_THRESHOLD
    port: int = 8080


@dataclass
class StoreConfig:
    """Record store location"""
    path: str = str(STORE_PATH)


@dataclass
class SecurityConfig:
    """Shared secrets for the cron and admin endpoints"""
    cron_secret: str = ""
    admin_secret: str = ""


@dataclass
class BrainConfig:
    """Main Second Brain configuration"""
    slack: SlackConfig = field(default_factory=SlackConfig)
    llm: LLMConfig = field(default_factory=LLMConfig)
    capture: CaptureConfig = field(default_factory=CaptureConfig)
    store: StoreConfig = field(default_factory=StoreConfig)
    security: SecurityConfig = field(default_factory=SecurityConfig)
    _env_sourced_keys: set = field(default_factory=set, repr=False)


def _parse_slack_config(data: dict) -> SlackConfig:
    """Parse slack section from config dict"""
    slack_data = data.get("slack", {})
    return SlackConfig(
        signing_secret=slack_data.get("signing_secret", ""),
        bot_token=slack_data.get("bot_token", ""),
        bot_user_id=slack_data.get("bot_user_id", ""),
        capture_channel_id=slack_data.get("capture_channel_id", ""),
        digest_channel_id=slack_data.get("digest_channel_id", ""),
        ack_reaction=slack_data.get("ack_reaction", "white_check_mark"),
    )


def _parse_llm_config(data: dict) -> LLMConfig:
    """Parse llm section from config dict"""
    llm_data = data.get("llm", {})
    return LLMConfig(
        provider=llm_data.get("provider", "anthropic"),
        anthropic_api_key=llm_data.get("anthropic_api_key", ""),
        anthropic_model=llm_data.get("anthropic_model", "claude-sonnet-4-20250514"),
        openai_api_key=llm_data.get("openai_api_key", ""),
        openai_model=llm_data.get("openai_model", "gpt-4o-mini"),
        google_api_key=llm_data.get("google_api_key", ""),
        google_model=llm_data.get("google_model", "gemini-2.0-flash-exp"),
        summary_model=llm_data.get("summary_model", ""),
    )


def _parse_capture_config(data: dict) -> CaptureConfig:
    """Parse capture section from config dict"""
    capture_data = data.get("capture", {})
    return CaptureConfig(
        confidence_threshold=_validate_threshold(
            capture_data.get("confidence_threshold", DEFAULT_CONFIDENCE_THRESHOLD)
        ),
        port=int(capture_data.get("port", 8080)),
    )


def _validate_threshold(value) -> float:
    threshold = float(value)
    if not 0.0 <= threshold <= 1.0:
        raise ValueError(f"confidence_threshold must be within [0, 1], got {threshold}")
    return threshold


def load_config() -> BrainConfig:
    """
    Load configuration from file and environment variables.

    Priority (highest to lowest):
    1. Environment variables (including a local .env file)
    2. Config file (~/.brain/config.json)
    3. Default values
    """
    load_dotenv()
    config = BrainConfig()

    # Load from config file if exists
    if CONFIG_PATH.exists():
        try:
            with open(CONFIG_PATH) as f:
                data = json.load(f)

            config.slack = _parse_slack_config(data)
            config.llm = _parse_llm_config(data)
            config.capture = _parse_capture_config(data)
            config.store = StoreConfig(path=data.get("store", {}).get("path", str(STORE_PATH)))
            security_data = data.get("security", {})
            config.security = SecurityConfig(
                cron_secret=security_data.get("cron_secret", ""),
                admin_secret=security_data.get("admin_secret", ""),
            )
        except (json.JSONDecodeError, IOError) as e:
            logger.warning("Failed to load config file: %s", e)

    # Environment variable overrides, tracked so secrets are never written back
    _env_map = {
        "SLACK_SIGNING_SECRET": (config.slack, "signing_secret"),
        "SLACK_BOT_TOKEN": (config.slack, "bot_token"),
        "SLACK_BOT_USER_ID": (config.slack, "bot_user_id"),
        "SLACK_CAPTURE_CHANNEL_ID": (config.slack, "capture_channel_id"),
        "SLACK_DIGEST_CHANNEL_ID": (config.slack, "digest_channel_id"),
        "ANTHROPIC_API_KEY": (config.llm, "anthropic_api_key"),
        "ANTHROPIC_MODEL": (config.llm, "anthropic_model"),
        "OPENAI_API_KEY": (config.llm, "openai_api_key"),
        "OPENAI_MODEL": (config.llm, "openai_model"),
        "GOOGLE_API_KEY": (config.llm, "google_api_key"),
        "GEMINI_API_KEY": (config.llm, "google_api_key"),
        "GOOGLE_MODEL": (config.llm, "google_model"),
        "BRAIN_LLM_PROVIDER": (config.llm, "provider"),
        "BRAIN_SUMMARY_MODEL": (config.llm, "summary_model"),
        "BRAIN_STORE_PATH": (config.store, "path"),
        "CRON_SECRET": (config.security, "cron_secret"),
        "ADMIN_SECRET": (config.security, "admin_secret"),
    }
    for env_var, (section, attr) in _env_map.items():
        val = os.getenv(env_var)
        if val:
            setattr(section, attr, val)
            config._env_sourced_keys.add(attr)

    if os.getenv("BRAIN_CONFIDENCE_THRESHOLD"):
        config.capture.confidence_threshold = _validate_threshold(os.getenv("BRAIN_CONFIDENCE_THRESHOLD"))
    if os.getenv("BRAIN_PORT"):
        config.capture.port = int(os.getenv("BRAIN_PORT"))

    return config


def save_config(config: BrainConfig) -> None:
    """Save configuration to file.

    Secret fields that were sourced from environment variables are written
    as empty strings so that they are not persisted to disk.
    """
    CONFIG_DIR.mkdir(parents=True, exist_ok=True)

    env_sourced = getattr(config, "_env_sourced_keys", set())
    _secret_fields = {
        "signing_secret", "bot_token", "anthropic_api_key", "openai_api_key",
        "google_api_key", "cron_secret", "admin_secret",
    }

    def _secret(attr: str, value: str) -> str:
        return "" if attr in _secret_fields and attr in env_sourced else value

    data = {
        "slack": {
            "signing_secret": _secret("signing_secret", config.slack.signing_secret),
            "bot_token": _secret("bot_token", config.slack.bot_token),
            "bot_user_id": config.slack.bot_user_id,
            "capture_channel_id": config.slack.capture_channel_id,
            "digest_channel_id": config.slack.digest_channel_id,
            "ack_reaction": config.slack.ack_reaction,
        },
        "llm": {
            "provider": config.llm.provider,
            "anthropic_api_key": _secret("anthropic_api_key", config.llm.anthropic_api_key),
            "anthropic_model": config.llm.anthropic_model,
            "openai_api_key": _secret("openai_api_key", config.llm.openai_api_key),
            "openai_model": config.llm.openai_model,
            "google_api_key": _secret("google_api_key", config.llm.google_api_key),
            "google_model": config.llm.google_model,
            "summary_model": config.llm.summary_model,
        },
        "capture": {
            "confidence_threshold": config.capture.confidence_threshold,
            "port": config.capture.port,
        },
        "store": {
            "path": config.store.path,
        },
        "security": {
            "cron_secret": _secret("cron_secret", config.security.cron_secret),
            "admin_secret": _secret("admin_secret", config.security.admin_secret),
        },
    }

    with open(CONFIG_PATH, "w") as f:
        json.dump(data, f, indent=2)

    # Set secure permissions
    CONFIG_PATH.chmod(0o600)


def ensure_directories() -> None:
    """Ensure required directories exist"""
    CONFIG_DIR.mkdir(parents=True, exist_ok=True)
