"""Load configuration from YAML with env var substitution."""

from __future__ import annotations

import os
import re
from pathlib import Path
from typing import Any

import yaml

DEFAULT_TYPICAL_FACTORS = {"Wind": 0.35, "Solar": 0.22, "Nuclear": 0.92}

CLASSIFIER_DEFAULTS = {
    "ttm_months": 12,
    "active_floor": 0.02,
    "min_active_months": 6,
    "maintenance_run": 3,
    "curtailment_ratio": 0.80,
    "benchmark": "subregion",
}


def _load_dotenv(path: str | Path = ".env") -> None:
    """Load a .env file into os.environ (without overwriting existing vars)."""
    env_path = Path(path)
    if not env_path.is_file():
        return
    with open(env_path) as f:
        for line in f:
            line = line.strip()
            if not line or line.startswith("#") or "=" not in line:
                continue
            key, _, value = line.partition("=")
            key = key.strip()
            value = value.strip().strip("'\"")
            if key and key not in os.environ:
                os.environ[key] = value


def _resolve_env_vars(value: Any) -> Any:
    """Recursively resolve ${ENV_VAR} patterns in config values."""
    if isinstance(value, str):
        pattern = re.compile(r"\$\{([^}]+)\}")
        match = pattern.search(value)
        if match:
            if match.group(0) == value:
                return os.environ.get(match.group(1), "")
            return pattern.sub(lambda m: os.environ.get(m.group(1), ""), value)
        return value
    if isinstance(value, dict):
        return {k: _resolve_env_vars(v) for k, v in value.items()}
    if isinstance(value, list):
        return [_resolve_env_vars(item) for item in value]
    return value


def load_config(path: str | Path = "config.yaml") -> dict[str, Any]:
    """Load config from YAML file and resolve environment variables."""
    _load_dotenv()

    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Config file not found: {path}")

    with open(path) as f:
        raw = yaml.safe_load(f) or {}

    return _resolve_env_vars(raw)


def get_db_path(config: dict) -> str:
    """Get database path from config."""
    return config.get("database", {}).get("path", "data/gentrack.db")


def get_classifier_config(config: dict) -> dict:
    """Classifier thresholds merged over the built-in defaults."""
    cfg = dict(CLASSIFIER_DEFAULTS)
    cfg.update(config.get("classifier", {}) or {})
    typical = dict(DEFAULT_TYPICAL_FACTORS)
    typical.update(cfg.get("typical_factors") or {})
    cfg["typical_factors"] = typical
    return cfg


def get_source_config(config: dict, name: str) -> dict:
    return config.get("sources", {}).get(name, {}) or {}


def get_active_sources(config: dict) -> list[str]:
    """Return list of enabled source names."""
    sources = config.get("sources", {})
    return [name for name, cfg in sources.items() if cfg.get("enabled", False)]


def get_news_config(config: dict) -> dict:
    news = config.get("news", {}) or {}
    return {
        "top_articles": news.get("top_articles", 5),
        "cache_ttl_seconds": news.get("cache_ttl_seconds", 900),
        "embeddings": {
            "enabled": True,
            "model": "minishlab/potion-base-8M",
            "min_text_length": 50,
            **(news.get("embeddings", {}) or {}),
        },
    }


def get_write_batch_size(config: dict) -> int:
    return config.get("pipeline", {}).get("write_batch_size", 200)
