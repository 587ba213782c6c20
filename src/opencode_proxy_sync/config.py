"""Runtime settings for opencode-proxy-sync, merged from file, env and CLI."""

from __future__ import annotations

import json
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Mapping, Optional

from .catalog import is_catalog_model

DEFAULT_PROXY_URL = "http://127.0.0.1:8045"
ENV_PREFIX = "OPENCODE_PROXY_SYNC_"


def _parse_bool(value: Any, default: Optional[bool] = None) -> Optional[bool]:
    if value is None:
        return default
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        return bool(value)
    text = str(value).strip().lower()
    if text in {"1", "true", "yes", "y", "on"}:
        return True
    if text in {"0", "false", "no", "n", "off"}:
        return False
    return default


def _parse_model_list(value: Any) -> Optional[list[str]]:
    if value is None:
        return None
    if isinstance(value, str):
        items = [item.strip() for item in value.split(",")]
    elif isinstance(value, (list, tuple)):
        items = [str(item).strip() for item in value]
    else:
        raise ValueError(f"models must be a list or comma-separated string, got {type(value).__name__}")
    return [item for item in items if item]


def _read_settings_file(path: str) -> dict[str, Any]:
    data = Path(path).read_text(encoding="utf-8")
    suffix = Path(path).suffix.lower()
    if suffix in {".yml", ".yaml"}:
        try:
            import yaml  # type: ignore
        except ImportError as exc:
            raise ValueError(
                "YAML settings requested but PyYAML is not installed. "
                "Install `pyyaml` or use a JSON settings file."
            ) from exc
        parsed = yaml.safe_load(data) or {}
    else:
        parsed = json.loads(data)
    if not isinstance(parsed, dict):
        raise ValueError("Settings file must be a mapping object")
    return parsed


@dataclass
class SyncConfig:
    """Resolved settings for one sync/clear/restore/status invocation."""

    config_dir: Optional[str] = None
    data_dir: Optional[str] = None
    proxy_url: str = DEFAULT_PROXY_URL
    api_key: str = ""
    sync_accounts: bool = False
    models: Optional[list[str]] = None
    clear_legacy: bool = False
    verbose: bool = False
    source_path: Optional[str] = None


def _apply_mapping(cfg: SyncConfig, data: Mapping[str, Any]) -> SyncConfig:
    for key in ("config_dir", "data_dir", "proxy_url", "api_key"):
        value = data.get(key)
        if isinstance(value, str) and value:
            setattr(cfg, key, value)
    for key in ("sync_accounts", "clear_legacy", "verbose"):
        parsed = _parse_bool(data.get(key))
        if parsed is not None:
            setattr(cfg, key, parsed)
    if data.get("models") is not None:
        cfg.models = _parse_model_list(data["models"])
    return cfg


def _apply_env(cfg: SyncConfig, env: Mapping[str, str]) -> SyncConfig:
    mapped = {
        "config_dir": env.get(ENV_PREFIX + "CONFIG_DIR"),
        "data_dir": env.get(ENV_PREFIX + "DATA_DIR"),
        "proxy_url": env.get(ENV_PREFIX + "URL"),
        "api_key": env.get(ENV_PREFIX + "API_KEY"),
        "sync_accounts": env.get(ENV_PREFIX + "SYNC_ACCOUNTS"),
        "clear_legacy": env.get(ENV_PREFIX + "CLEAR_LEGACY"),
        "verbose": env.get(ENV_PREFIX + "VERBOSE"),
    }
    if env.get(ENV_PREFIX + "MODELS"):
        mapped["models"] = env[ENV_PREFIX + "MODELS"]
    return _apply_mapping(cfg, mapped)


def load_sync_config(
    config_path: Optional[str] = None,
    cli_overrides: Optional[Mapping[str, Any]] = None,
    env: Optional[Mapping[str, str]] = None,
) -> SyncConfig:
    """Resolve settings from defaults + file + env + CLI, later sources winning.

    CLI values of None mean "not given" and leave earlier sources alone.
    """
    env_map = os.environ if env is None else env
    cli = {key: value for key, value in (cli_overrides or {}).items() if value is not None}
    cfg = SyncConfig()

    resolved_path = config_path or cli.get("config_path") or env_map.get(ENV_PREFIX + "CONFIG")
    if resolved_path:
        file_data = _read_settings_file(resolved_path)
        section = file_data.get("sync", file_data)
        if not isinstance(section, dict):
            raise ValueError("'sync' section of the settings file must be a mapping")
        cfg = _apply_mapping(cfg, section)
        cfg.source_path = resolved_path

    cfg = _apply_env(cfg, env_map)
    cfg = _apply_mapping(cfg, cli)

    if cfg.models is not None:
        unknown = [model_id for model_id in cfg.models if not is_catalog_model(model_id)]
        if unknown:
            raise ValueError(f"Unknown model id(s): {', '.join(unknown)}")
    return cfg
