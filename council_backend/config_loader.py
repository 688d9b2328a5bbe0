"""YAML-based configuration loader for the LLM Council."""

import logging
import os
import yaml
from pathlib import Path
from typing import Dict, Any, Optional

logger = logging.getLogger(__name__)

_config_cache: Optional[Dict[str, Any]] = None

DEFAULT_CONFIG: Dict[str, Any] = {
    "chairman": "openai/gpt-4o-mini",
    "min_models": 2,
    "history_limit": 10,
    "max_concurrency": None,
    "default_user_id": "00000000-0000-0000-0000-000000000001",
    "length_budgets": {
        "stage1": 2000,
        "stage2": 2000,
        "stage3": 4000,
    },
    "timeout_config": {
        "request_timeout": 120,
        "connection_timeout": 30,
    },
    "prompts": {},
}


def get_project_root() -> Path:
    return Path(__file__).parent.parent


def get_config_path() -> Path:
    override = os.getenv("COUNCIL_CONFIG_PATH")
    if override:
        return Path(override)
    return get_project_root() / "config" / "council.yaml"


def _load_yaml(path: Path) -> Dict[str, Any]:
    with open(path, "r", encoding="utf-8") as f:
        return yaml.safe_load(f) or {}


def _merge(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    merged = dict(base)
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _merge(merged[key], value)
        else:
            merged[key] = value
    return merged


def load_config() -> Dict[str, Any]:
    """Load council configuration from config/council.yaml, layered over defaults."""
    global _config_cache
    if _config_cache is not None:
        return _config_cache

    config_path = get_config_path()
    if config_path.exists():
        _config_cache = _merge(DEFAULT_CONFIG, _load_yaml(config_path))
        logger.info("Loaded configuration from %s", config_path)
    else:
        logger.warning("%s not found, using defaults", config_path)
        _config_cache = _merge(DEFAULT_CONFIG, {})
    return _config_cache


def reload_config() -> Dict[str, Any]:
    """Force reload configuration from disk."""
    global _config_cache
    _config_cache = None
    return load_config()


def get_chairman_model() -> str:
    return load_config().get("chairman") or DEFAULT_CONFIG["chairman"]


def get_length_budgets() -> Dict[str, int]:
    """Get per-stage response length budgets, in characters."""
    budgets = load_config().get("length_budgets", {})
    defaults = DEFAULT_CONFIG["length_budgets"]
    return {stage: budgets.get(stage, default) for stage, default in defaults.items()}


def get_timeout_config() -> Dict[str, Any]:
    timeouts = load_config().get("timeout_config", {})
    return _merge(DEFAULT_CONFIG["timeout_config"], timeouts)


def get_prompt_overrides() -> Dict[str, str]:
    """Get prompt template overrides keyed by template name."""
    return load_config().get("prompts") or {}
