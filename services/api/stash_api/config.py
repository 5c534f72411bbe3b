from __future__ import annotations

import json
import logging
import os
from pathlib import Path
from typing import Dict, Any, Optional

logger = logging.getLogger(__name__)

_CONFIG_CACHE: Optional[Dict[str, Any]] = None

DEFAULT_SALARY = 100000.0
MIN_SALARY = 100000.0


def _default_config() -> Dict[str, Any]:
    return {
        "openai": {
            "api_key": "",
            "model": "gpt-4o-mini"
        },
        "settings": {
            "llm_enabled": True,
            "realtime_enabled": True,
            "cors_origin": "http://localhost:3000",
            "port": 5000,
            "persona_data_dir": "",
        }
    }


def _get_config_path() -> Path:
    """Get the path to the config file, checking multiple locations."""
    env_path = os.getenv("STASH_CONFIG")
    if env_path:
        return Path(env_path)
    current_dir = Path(__file__).parent
    for path in [current_dir, current_dir.parent]:
        config_file = path / "config.json"
        if config_file.exists():
            return config_file
    return current_dir / "config.json"


def load_config() -> Dict[str, Any]:
    """Load configuration from config.json, falling back to defaults."""
    global _CONFIG_CACHE

    if _CONFIG_CACHE is not None:
        return _CONFIG_CACHE

    config_path = _get_config_path()
    if not config_path.exists():
        _CONFIG_CACHE = _default_config()
        return _CONFIG_CACHE

    try:
        with open(config_path, 'r', encoding='utf-8') as f:
            loaded = json.load(f)
    except (json.JSONDecodeError, IOError) as e:
        logger.warning("Failed to load config from %s: %s", config_path, e)
        _CONFIG_CACHE = _default_config()
        return _CONFIG_CACHE

    merged = _default_config()
    for section, values in loaded.items():
        if isinstance(values, dict):
            merged.setdefault(section, {}).update(values)
        else:
            merged[section] = values
    _CONFIG_CACHE = merged
    return _CONFIG_CACHE


def _env_flag(name: str) -> Optional[bool]:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return None
    return raw.strip().lower() in ("1", "true", "yes", "on")


def get_openai_api_key() -> Optional[str]:
    """Get OpenAI API key from config, fallback to environment variable."""
    config = load_config()

    api_key = (config.get("openai", {}).get("api_key") or "").strip()
    if api_key:
        return api_key

    env_key = os.getenv("OPENAI_API_KEY", "").strip()
    if env_key:
        return env_key

    return None


def get_openai_model() -> str:
    env_model = os.getenv("OPENAI_MODEL", "").strip()
    if env_model:
        return env_model
    config = load_config()
    return config.get("openai", {}).get("model", "gpt-4o-mini")


def is_llm_enabled() -> bool:
    """Check if LLM functionality is enabled."""
    flag = _env_flag("ENABLE_REAL_LLM")
    if flag is not None:
        return flag
    config = load_config()
    return bool(config.get("settings", {}).get("llm_enabled", True))


def is_realtime_enabled() -> bool:
    """Whether WebSocket notifications are pushed for new insights and transactions."""
    flag = _env_flag("ENABLE_REALTIME_NOTIFICATIONS")
    if flag is not None:
        return flag
    config = load_config()
    return bool(config.get("settings", {}).get("realtime_enabled", True))


def get_cors_origin() -> str:
    env_origin = os.getenv("CORS_ORIGIN", "").strip()
    if env_origin:
        return env_origin
    return load_config().get("settings", {}).get("cors_origin", "http://localhost:3000")


def get_port() -> int:
    env_port = os.getenv("PORT", "").strip()
    if env_port:
        return int(env_port)
    return int(load_config().get("settings", {}).get("port", 5000))


def get_persona_data_dir() -> Path:
    env_dir = os.getenv("PERSONA_DATA_DIR", "").strip()
    if env_dir:
        return Path(env_dir)
    configured = (load_config().get("settings", {}).get("persona_data_dir") or "").strip()
    if configured:
        return Path(configured)
    return Path(__file__).parent / "data" / "personas"


def reload_config():
    """Force reload of configuration from file."""
    global _CONFIG_CACHE
    _CONFIG_CACHE = None
    return load_config()
