"""Pure transforms over the OpenCode config document.

``apply_sync`` injects or refreshes the managed provider entry and
``apply_clear`` removes it again. Neither touches anything outside
``$schema`` (set only when absent), ``provider.<managed>`` and, on clear,
the proxy leftovers inside the legacy ``anthropic``/``google`` providers.
Both accept arbitrary JSON and never raise on malformed structure.
"""

from __future__ import annotations

import copy
import logging
from typing import Any, Iterable, Optional

from .catalog import MANAGED_MODEL_IDS, MODEL_CATALOG, build_model_entry, is_catalog_model

logger = logging.getLogger(__name__)

SCHEMA_URL = "https://opencode.ai/config.json"
MANAGED_PROVIDER_ID = "antigravity-manager"
MANAGED_PROVIDER_NPM = "@ai-sdk/anthropic"
MANAGED_PROVIDER_NAME = "Antigravity Manager"
LEGACY_PROVIDER_IDS: tuple[str, ...] = ("anthropic", "google")


def normalize_base_url(url: str) -> str:
    """Normalize a proxy URL to the ``.../v1`` form OpenCode's anthropic SDK expects.

    "http://h:3000", "http://h:3000/", "http://h:3000/v1" and
    "http://h:3000/v1/" all become "http://h:3000/v1".
    """
    trimmed = str(url).strip().rstrip("/")
    if trimmed.endswith("/v1"):
        return trimmed
    return f"{trimmed}/v1"


def base_url_matches(config_url: str, proxy_url: str) -> bool:
    return normalize_base_url(config_url) == normalize_base_url(proxy_url)


def _ensure_object(container: dict, key: str) -> dict:
    value = container.get(key)
    if not isinstance(value, dict):
        value = {}
        container[key] = value
    return value


def _merge_options(provider: dict, base_url: str, api_key: str) -> None:
    options = _ensure_object(provider, "options")
    options["baseURL"] = base_url
    options["apiKey"] = api_key


def _selected_model_ids(model_ids: Optional[Iterable[str]]) -> list[str]:
    if model_ids is None:
        return [model.id for model in MODEL_CATALOG]
    return [model_id for model_id in model_ids if is_catalog_model(model_id)]


def merge_catalog_models(provider: dict, model_ids: Optional[Iterable[str]] = None) -> list[str]:
    """Merge catalog entries into ``provider["models"]``.

    Catalog fields overwrite, any extra field a user put on a model survives,
    and models outside the selection are left alone. Returns the ids merged.
    """
    models = _ensure_object(provider, "models")
    merged_ids: list[str] = []
    for model_id in _selected_model_ids(model_ids):
        catalog_entry = build_model_entry(model_id)
        existing = models.get(model_id)
        if isinstance(existing, dict):
            merged = dict(existing)
            merged.update(catalog_entry)
            models[model_id] = merged
        else:
            models[model_id] = catalog_entry
        merged_ids.append(model_id)
    return merged_ids


def apply_sync(
    document: Any,
    proxy_url: str,
    api_key: str,
    model_ids: Optional[Iterable[str]] = None,
) -> dict:
    """Return a copy of ``document`` with the managed provider injected.

    ``model_ids=None`` selects the whole catalog; unknown ids are ignored.
    """
    if isinstance(document, dict):
        config = copy.deepcopy(document)
    else:
        logger.debug("Config root is %s, starting from an empty object", type(document).__name__)
        config = {}

    if "$schema" not in config:
        config["$schema"] = SCHEMA_URL

    providers = _ensure_object(config, "provider")
    managed = _ensure_object(providers, MANAGED_PROVIDER_ID)
    managed["npm"] = MANAGED_PROVIDER_NPM
    managed["name"] = MANAGED_PROVIDER_NAME
    _merge_options(managed, normalize_base_url(proxy_url), api_key)
    merge_catalog_models(managed, model_ids)
    return config


def cleanup_legacy_provider(provider: Any, proxy_url: str) -> None:
    """Strip proxy leftovers from a user-owned provider entry, in place.

    Catalog model ids are always removed. ``baseURL``/``apiKey`` are removed
    only when ``baseURL`` points at ``proxy_url``.
    """
    if not isinstance(provider, dict):
        return

    models = provider.get("models")
    if isinstance(models, dict):
        for model_id in MANAGED_MODEL_IDS:
            models.pop(model_id, None)
        if not models:
            del provider["models"]

    options = provider.get("options")
    if isinstance(options, dict):
        base_url = options.get("baseURL")
        if isinstance(base_url, str) and base_url_matches(base_url, proxy_url):
            options.pop("baseURL", None)
            options.pop("apiKey", None)
            if not options:
                del provider["options"]


def apply_clear(
    document: Any,
    proxy_url: Optional[str] = None,
    clear_legacy: bool = False,
) -> Any:
    """Return a copy of ``document`` with the managed provider removed.

    Legacy cleanup needs ``proxy_url`` to decide which credentials are ours;
    without it the legacy providers are left untouched.
    """
    if not isinstance(document, dict):
        return copy.deepcopy(document)

    config = copy.deepcopy(document)
    providers = config.get("provider")
    if not isinstance(providers, dict):
        return config

    providers.pop(MANAGED_PROVIDER_ID, None)

    if clear_legacy:
        if proxy_url:
            for name in LEGACY_PROVIDER_IDS:
                if name in providers:
                    cleanup_legacy_provider(providers[name], proxy_url)
        else:
            logger.debug("Legacy cleanup requested without a proxy URL, skipping")

    if not providers:
        del config["provider"]
    return config


def get_managed_options(document: Any) -> dict:
    """Return ``provider.<managed>.options`` or an empty dict."""
    if not isinstance(document, dict):
        return {}
    providers = document.get("provider")
    if not isinstance(providers, dict):
        return {}
    managed = providers.get(MANAGED_PROVIDER_ID)
    if not isinstance(managed, dict):
        return {}
    options = managed.get("options")
    return options if isinstance(options, dict) else {}
