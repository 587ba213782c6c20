"""opencode-proxy-sync package."""

__version__ = "0.1.0"

from .accounts import AppAccount, load_app_accounts, reconcile_accounts
from .backup import backup_file, restore_file
from .catalog import MODEL_CATALOG, VariantFamily, build_model_entry, build_variants
from .config import SyncConfig, load_sync_config
from .document import apply_clear, apply_sync, base_url_matches, normalize_base_url
from .sync import clear, read_raw_file, restore, status, sync

__all__ = [
    "AppAccount",
    "load_app_accounts",
    "reconcile_accounts",
    "backup_file",
    "restore_file",
    "MODEL_CATALOG",
    "VariantFamily",
    "build_model_entry",
    "build_variants",
    "SyncConfig",
    "load_sync_config",
    "apply_clear",
    "apply_sync",
    "base_url_matches",
    "normalize_base_url",
    "clear",
    "read_raw_file",
    "restore",
    "status",
    "sync",
]
