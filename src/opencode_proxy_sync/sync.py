"""Sync, clear, restore and status against the OpenCode config directory.

Each operation reads the current files, runs the pure transforms from
``document`` and ``accounts``, and writes the result atomically. Backups
are taken before the first write so ``restore`` can undo everything.
Callers serialize invocations; nothing here locks.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Any, Callable, Iterable, Optional

from .accounts import AppAccount, load_app_accounts, reconcile_accounts
from .backup import backup_file, has_backup, restore_file
from .catalog import MANAGED_MODEL_IDS, is_catalog_model
from .detect import check_opencode_installed
from .document import apply_clear, apply_sync, base_url_matches, get_managed_options
from .errors import ConfigDirError, InvalidFileNameError, NoBackupError, SyncError, SyncIOError
from .files import read_json_file, write_json_atomic

logger = logging.getLogger(__name__)

OPENCODE_DIR = Path(".config") / "opencode"
OPENCODE_CONFIG_FILE = "opencode.json"
ANTIGRAVITY_CONFIG_FILE = "antigravity.json"
ANTIGRAVITY_ACCOUNTS_FILE = "antigravity-accounts.json"
ALLOWED_FILES: tuple[str, ...] = (
    OPENCODE_CONFIG_FILE,
    ANTIGRAVITY_CONFIG_FILE,
    ANTIGRAVITY_ACCOUNTS_FILE,
)

AccountSource = Callable[[], Iterable[AppAccount]]


# ---------------------------------------------------------------------------
# Paths
# ---------------------------------------------------------------------------


def get_opencode_dir(config_dir: Optional[str | Path] = None) -> Path:
    if config_dir:
        return Path(config_dir).expanduser()
    try:
        home = Path.home()
    except RuntimeError as exc:
        raise ConfigDirError(f"Failed to get OpenCode config directory: {exc}") from exc
    return home / OPENCODE_DIR


def get_config_paths(config_dir: Optional[str | Path] = None) -> dict[str, Path]:
    """Map each managed file name to its absolute path."""
    base = get_opencode_dir(config_dir)
    return {name: base / name for name in ALLOWED_FILES}


# ---------------------------------------------------------------------------
# I/O boundaries
# ---------------------------------------------------------------------------


def _load_for_sync(path: Path) -> Any:
    """Load a document for rewriting; anything unreadable counts as empty."""
    if not path.exists():
        return {}
    try:
        return read_json_file(path)
    except ValueError as exc:
        logger.debug("Existing %s is not valid UTF-8 JSON (%s), starting fresh", path, exc)
        return {}
    except OSError as exc:
        raise SyncIOError("read", str(path), exc) from exc


def _write(path: Path, data: Any) -> None:
    try:
        write_json_atomic(path, data)
    except OSError as exc:
        raise SyncIOError("write", str(path), exc) from exc
    logger.info("Wrote %s", path)


def _default_account_source(data_dir: Optional[str]) -> AccountSource:
    return lambda: load_app_accounts(data_dir)


# ---------------------------------------------------------------------------
# Operations
# ---------------------------------------------------------------------------


def sync_accounts_file(
    accounts_path: Path,
    account_source: AccountSource,
    dry_run: bool = False,
) -> dict:
    """Rewrite the accounts file from the app's account list."""
    if not dry_run:
        backup_file(accounts_path)
    existing = _load_for_sync(accounts_path)
    try:
        app_accounts = list(account_source())
    except OSError as exc:
        raise SyncError(f"Failed to list accounts: {exc}") from exc

    new_data = reconcile_accounts(app_accounts, existing)
    if not dry_run:
        _write(accounts_path, new_data)
    return new_data


def sync(
    proxy_url: str,
    api_key: str,
    sync_accounts: bool = False,
    model_ids: Optional[Iterable[str]] = None,
    *,
    config_dir: Optional[str | Path] = None,
    data_dir: Optional[str] = None,
    account_source: Optional[AccountSource] = None,
    dry_run: bool = False,
) -> dict:
    """Point OpenCode's managed provider at the proxy.

    Returns a summary dict with keys: config_path, backup, models,
    accounts (count or None), document, dry_run.
    """
    paths = get_config_paths(config_dir)
    config_path = paths[OPENCODE_CONFIG_FILE]
    selected = list(model_ids) if model_ids is not None else None

    summary: dict = {
        "config_path": str(config_path),
        "backup": None,
        "models": [],
        "accounts": None,
        "document": None,
        "dry_run": dry_run,
    }

    if not dry_run:
        try:
            config_path.parent.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise SyncIOError("create directory", str(config_path.parent), exc) from exc
        backup = backup_file(config_path)
        summary["backup"] = str(backup) if backup else None

    document = apply_sync(_load_for_sync(config_path), proxy_url, api_key, selected)
    summary["document"] = document
    summary["models"] = [
        model_id
        for model_id in (MANAGED_MODEL_IDS if selected is None else selected)
        if is_catalog_model(model_id)
    ]
    if not dry_run:
        _write(config_path, document)

    if sync_accounts:
        source = account_source or _default_account_source(data_dir)
        accounts_data = sync_accounts_file(paths[ANTIGRAVITY_ACCOUNTS_FILE], source, dry_run=dry_run)
        summary["accounts"] = len(accounts_data["accounts"])

    return summary


def clear(
    proxy_url: Optional[str] = None,
    clear_legacy: bool = False,
    *,
    config_dir: Optional[str | Path] = None,
    dry_run: bool = False,
) -> dict:
    """Remove the managed provider and undo the accounts file.

    The accounts file goes back to its backup when there is one and is
    deleted otherwise, since a sync created it.
    """
    paths = get_config_paths(config_dir)
    config_path = paths[OPENCODE_CONFIG_FILE]
    accounts_path = paths[ANTIGRAVITY_ACCOUNTS_FILE]

    summary: dict = {
        "config_path": str(config_path),
        "backup": None,
        "config_cleared": False,
        "accounts": None,
        "document": None,
        "dry_run": dry_run,
    }

    if config_path.exists():
        if not dry_run:
            backup = backup_file(config_path)
            summary["backup"] = str(backup) if backup else None
        try:
            current = read_json_file(config_path)
        except ValueError as exc:
            raise SyncError(f"Failed to parse config {config_path}: {exc}") from exc
        except OSError as exc:
            raise SyncIOError("read", str(config_path), exc) from exc

        document = apply_clear(current, proxy_url, clear_legacy)
        summary["document"] = document
        summary["config_cleared"] = True
        if not dry_run:
            _write(config_path, document)
    else:
        logger.debug("No %s to clear", config_path)

    if dry_run:
        if has_backup(accounts_path):
            summary["accounts"] = "restored"
        elif accounts_path.exists():
            summary["accounts"] = "removed"
        return summary

    if restore_file(accounts_path) is not None:
        summary["accounts"] = "restored"
    elif accounts_path.exists():
        try:
            os.remove(str(accounts_path))
        except OSError as exc:
            raise SyncIOError("remove", str(accounts_path), exc) from exc
        logger.info("Removed %s", accounts_path)
        summary["accounts"] = "removed"

    return summary


def restore(*, config_dir: Optional[str | Path] = None) -> dict:
    """Put back the pre-sync config and accounts files.

    Each file is restored independently; only finding no backup at all is
    an error.
    """
    paths = get_config_paths(config_dir)
    restored: dict[str, Optional[str]] = {}
    for name in (OPENCODE_CONFIG_FILE, ANTIGRAVITY_ACCOUNTS_FILE):
        backup = restore_file(paths[name])
        restored[name] = str(backup) if backup else None

    if not any(restored.values()):
        raise NoBackupError("No backup files found")
    return {"restored": restored}


def get_sync_status(proxy_url: str, *, config_dir: Optional[str | Path] = None) -> tuple[bool, bool, Optional[str]]:
    """Return ``(is_synced, has_backup, current_base_url)`` for the config file."""
    config_path = get_config_paths(config_dir)[OPENCODE_CONFIG_FILE]
    backup_present = has_backup(config_path)

    if not config_path.exists():
        return False, backup_present, None
    try:
        document = read_json_file(config_path)
    except (OSError, ValueError) as exc:
        logger.debug("Cannot read %s for status: %s", config_path, exc)
        return False, backup_present, None

    options = get_managed_options(document)
    base_url = options.get("baseURL")
    if not isinstance(base_url, str) or not isinstance(options.get("apiKey"), str):
        return False, backup_present, None
    return base_url_matches(base_url, proxy_url), backup_present, base_url


def status(
    proxy_url: str,
    *,
    config_dir: Optional[str | Path] = None,
    detector: Optional[Callable[[], tuple[bool, Optional[str]]]] = None,
) -> dict:
    """Report installation and sync state.

    Returns a dict with keys: installed, version, is_synced, has_backup,
    current_base_url, files.
    """
    installed, version = (detector or check_opencode_installed)()
    if installed:
        is_synced, backup_present, current_base_url = get_sync_status(proxy_url, config_dir=config_dir)
    else:
        is_synced, backup_present, current_base_url = False, False, None

    return {
        "installed": installed,
        "version": version,
        "is_synced": is_synced,
        "has_backup": backup_present,
        "current_base_url": current_base_url,
        "files": list(ALLOWED_FILES),
    }


def read_raw_file(file_name: Optional[str] = None, *, config_dir: Optional[str | Path] = None) -> str:
    """Return the text of one allowlisted file (``opencode.json`` by default)."""
    name = OPENCODE_CONFIG_FILE if file_name is None else file_name
    if name not in ALLOWED_FILES:
        raise InvalidFileNameError(f"Invalid file name: {name}. Allowed: {', '.join(ALLOWED_FILES)}")

    path = get_config_paths(config_dir)[name]
    if not path.exists():
        raise FileNotFoundError(f"Config file does not exist: {path}")
    try:
        return path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as exc:
        raise SyncIOError("read", str(path), exc) from exc
