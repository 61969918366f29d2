"""Configuration: bundled defaults, optional user YAML, then NETALERT_* env vars."""
import os
import yaml
from pathlib import Path

_config = None
_DEFAULT_CONFIG = Path(__file__).parent / "default_config.yaml"

REQUIRED_SECTIONS = ("engine", "rules", "telemetry", "notifications", "database", "logging")

# env var -> (section, key, type)
ENV_OVERRIDES = {
    "NETALERT_DB_PATH": ("database", "path", str),
    "NETALERT_INTERVAL": ("engine", "interval_seconds", int),
    "NETALERT_LOG_LEVEL": ("logging", "level", str),
    "NETALERT_RULES_PATH": ("rules", "path", str),
    "NETALERT_TELEMETRY_URL": ("telemetry", "url", str),
}


def load_config(path=None):
    """Build, validate and cache the effective config."""
    global _config

    config = _read_yaml(_DEFAULT_CONFIG)
    if path and Path(path).exists():
        config = _deep_merge(config, _read_yaml(path))
    _apply_env(config)
    _validate_config(config)

    _config = config
    return config


def get_config():
    global _config
    if _config is None:
        _config = load_config()
    return _config


def _read_yaml(path):
    with open(path) as f:
        return yaml.safe_load(f) or {}


def _apply_env(config):
    for env_key, (section, key, cast) in ENV_OVERRIDES.items():
        raw = os.environ.get(env_key)
        if not raw:
            continue
        try:
            value = cast(raw)
        except ValueError:
            raise ValueError(f"{env_key} must be {cast.__name__}, got {raw!r}")
        config.setdefault(section, {})[key] = value


def _deep_merge(base, override):
    """Recursively merge override into a copy of base."""
    result = dict(base)
    for key, val in override.items():
        if isinstance(result.get(key), dict) and isinstance(val, dict):
            result[key] = _deep_merge(result[key], val)
        else:
            result[key] = val
    return result


def _validate_config(config):
    for section in REQUIRED_SECTIONS:
        if section not in config:
            raise ValueError(f"Missing required config section: {section}")

    engine = config["engine"]
    if engine["interval_seconds"] < 5:
        raise ValueError("interval_seconds must be >= 5 seconds")
    if engine.get("evaluation_workers", 1) < 1:
        raise ValueError("evaluation_workers must be >= 1")

    notifications = config["notifications"]
    if notifications.get("dispatch_workers", 4) < 1:
        raise ValueError("dispatch_workers must be >= 1")
    for target, entry in (notifications.get("targets") or {}).items():
        if not isinstance(entry, dict) or not entry.get("channel"):
            raise ValueError(f"Notification target {target} needs a channel")

    telemetry = config["telemetry"]
    source = telemetry.get("source", "file")
    if source not in ("file", "http"):
        raise ValueError(f"Unknown telemetry source: {source}")
    if source == "http" and not telemetry.get("url"):
        raise ValueError("telemetry.url is required when source is http")
