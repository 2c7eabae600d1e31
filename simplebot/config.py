"""
Configuration Loader for SimpleBot

Reads from config.json and the process environment and provides a simple
interface for accessing settings. Defaults to sensible values if config.json
is missing.

Usage:
    from simplebot.config import get_config
    config = get_config()
    port = config.get("server.port")
"""

# ============================================================================
# 1) IMPORTS
# ============================================================================
import copy
import hashlib
import json
import locale
import logging
import os
from pathlib import Path
from typing import Any, List, Optional

from dotenv import load_dotenv

# ============================================================================
# 2) MODULE LOGGER
# ============================================================================
logger = logging.getLogger("SIMPLEBOT.Config")

# ============================================================================
# 3) CONSTANTS
# ============================================================================
DATA_DIR = Path(__file__).parent / "data"
CLIENT_RULES_PATH = DATA_DIR / "client_rules.json"
SERVER_RULES_PATH = DATA_DIR / "server_rules.json"

DEFAULT_PORT = 5000
LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"


# ============================================================================
# 4) CONFIG WRAPPER (DOT-NOTATION ACCESS)
# ============================================================================
class Config:
    """Simple config wrapper with dot-notation access."""

    def __init__(self, data: dict):
        self._data = data
        self._hash = config_hash(self._data)

    def get(self, key: str, default: Any = None) -> Any:
        """
        Get config value using dot notation.

        Examples:
            config.get("server.port")
            config.get("client.language")
            config.get("nonexistent.key", "default_value")
        """
        value = self._data
        for k in key.split("."):
            if isinstance(value, dict) and k in value:
                value = value[k]
            else:
                return default
        return value

    @property
    def hash(self) -> str:
        return self._hash

    @property
    def allow_all_origins(self) -> bool:
        """True when no origin allow-list is configured."""
        return not self.get("server.origins")


# ============================================================================
# 5) DEFAULT CONFIGURATION (FALLBACK)
# ============================================================================
_DEFAULT_CONFIG = {
    "system": {
        "log_level": "INFO",
    },
    "server": {
        "host": "0.0.0.0",
        "port": DEFAULT_PORT,
        "origins": [],
        "rules_path": str(SERVER_RULES_PATH),
    },
    "client": {
        "rules_path": str(CLIENT_RULES_PATH),
        "storage_dir": str(Path.home() / ".simplebot"),
        "export_dir": ".",
        "language": "en-US",
        "server_url": "ws://localhost:5000/ws",
    },
    "speech_output": {
        "voice": "en-US-AriaNeural",
    },
    "speech_input": {
        "model": "base.en",
        "device": "cpu",
        "sample_rate": 16000,
        "max_seconds": 10.0,
        "silence_seconds": 1.2,
        "silence_threshold": 0.01,
    },
}

# ============================================================================
# 6) CONFIG SINGLETON
# ============================================================================
_config_instance: Optional[Config] = None


# ============================================================================
# 7) LOAD / GET CONFIG
# ============================================================================
def load_config(config_path: str = "config.json", env: Optional[dict] = None) -> Config:
    """
    Load configuration from JSON file, then apply environment overrides.

    Falls back to defaults if the file is missing or unreadable.

    Args:
        config_path: Path to config.json
        env: Environment mapping (defaults to os.environ after loading .env)

    Returns:
        Config instance
    """
    global _config_instance

    if env is None:
        load_dotenv()
        env = os.environ

    config_data = copy.deepcopy(_DEFAULT_CONFIG)

    if os.path.exists(config_path):
        try:
            with open(config_path, "r", encoding="utf-8") as f:
                user_config = json.load(f)
            if not isinstance(user_config, dict):
                raise ValueError("top level must be an object")
            _merge_dicts(config_data, user_config)
            logger.info(f"[Config] Loaded from {config_path}")
        except (OSError, ValueError) as e:
            logger.warning(f"[Config] Failed to load {config_path}: {e}, using defaults")
    else:
        logger.debug(f"[Config] No config file at {config_path}, using defaults")

    _apply_env_overrides(config_data, env)
    if isinstance(config_data["server"]["origins"], str):
        config_data["server"]["origins"] = parse_origins(config_data["server"]["origins"])

    _config_instance = Config(config_data)
    return _config_instance


def get_config() -> Config:
    """Get current config instance (lazy load if needed)."""
    global _config_instance
    if _config_instance is None:
        load_config()
    return _config_instance


def set_config(config: Optional[Config]) -> None:
    """Replace the global config (used in testing)."""
    global _config_instance
    _config_instance = config


# ============================================================================
# 8) ENVIRONMENT OVERRIDES
# ============================================================================
def parse_origins(raw: Optional[str]) -> List[str]:
    """
    Parse a comma-separated origin allow-list.

    An unset or blank value yields an empty list, meaning "allow all".
    """
    if not raw:
        return []
    return [o.strip().rstrip("/") for o in raw.split(",") if o.strip()]


def _apply_env_overrides(config_data: dict, env) -> None:
    port = env.get("PORT")
    if port:
        try:
            config_data["server"]["port"] = int(port)
        except ValueError:
            logger.warning(f"[Config] Ignoring non-numeric PORT={port!r}")

    host = env.get("HOST")
    if host:
        config_data["server"]["host"] = host

    if "CLIENT_ORIGIN" in env:
        config_data["server"]["origins"] = parse_origins(env.get("CLIENT_ORIGIN"))

    data_dir = env.get("SIMPLEBOT_DATA_DIR")
    if data_dir:
        config_data["client"]["storage_dir"] = data_dir

    log_level = env.get("SIMPLEBOT_LOG_LEVEL")
    if log_level:
        config_data["system"]["log_level"] = log_level.upper()


# ============================================================================
# 9) HELPERS
# ============================================================================
def config_hash(cfg: dict) -> str:
    return hashlib.sha256(json.dumps(cfg, sort_keys=True).encode()).hexdigest()


def configure_locale() -> None:
    """Adopt the user's LC_TIME so %x / %X render like the platform clock."""
    try:
        locale.setlocale(locale.LC_TIME, "")
    except locale.Error as e:
        logger.warning(f"[Config] Keeping C time locale: {e}")


def configure_logging(config: Optional[Config] = None) -> None:
    """Root logging setup shared by the entry points."""
    config = config or get_config()
    level = str(config.get("system.log_level", "INFO")).upper()
    logging.basicConfig(level=getattr(logging, level, logging.INFO), format=LOG_FORMAT)


def _merge_dicts(base: dict, override: dict) -> None:
    """
    Deep merge override dict into base dict (modifies base in place).
    """
    for key, value in override.items():
        if key in base and isinstance(base[key], dict) and isinstance(value, dict):
            _merge_dicts(base[key], value)
        else:
            base[key] = value
