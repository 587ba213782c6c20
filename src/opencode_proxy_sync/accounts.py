"""Accounts file reconciliation for the OpenCode antigravity auth plugin.

The plugin keeps per-account runtime state (cooldowns, cached quota,
fingerprints) in ``antigravity-accounts.json``. The app is the source of
truth for which accounts exist and for their credentials; the plugin owns
everything else. ``reconcile_accounts`` rebuilds the file from the app's
account list while carrying the plugin-owned fields across.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Iterable, Optional

from .files import read_json_file

logger = logging.getLogger(__name__)

ACCOUNTS_SCHEMA_VERSION = 3
REQUIRED_FAMILIES: tuple[str, ...] = ("claude", "gemini")

# Copied verbatim from the matched record on every re-sync.
PRESERVED_FIELDS: tuple[str, ...] = (
    "rateLimitResetTimes",
    "managedProjectId",
    "enabled",
    "lastSwitchReason",
    "coolingDownUntil",
    "cooldownReason",
    "fingerprint",
    "cachedQuota",
    "cachedQuotaUpdatedAt",
    "fingerprintHistory",
)


@dataclass
class AppAccount:
    """An account as the app knows it."""

    email: str
    refresh_token: str
    project_id: Optional[str] = None
    last_used: int = 0
    disabled: bool = False
    proxy_disabled: bool = False

    @property
    def is_active(self) -> bool:
        return not (self.disabled or self.proxy_disabled)

    @classmethod
    def from_dict(cls, data: dict) -> "AppAccount":
        """Build from an app account record; raises ValueError when unusable."""
        if not isinstance(data, dict):
            raise ValueError("account record is not an object")
        token = data.get("token")
        if not isinstance(token, dict):
            raise ValueError("account record has no token object")
        refresh_token = token.get("refresh_token")
        if not isinstance(refresh_token, str) or not refresh_token:
            raise ValueError("account record has no refresh_token")
        email = data.get("email")
        if not isinstance(email, str):
            raise ValueError("account record has no email")
        project_id = token.get("project_id")
        last_used = data.get("last_used")
        return cls(
            email=email,
            refresh_token=refresh_token,
            project_id=project_id if isinstance(project_id, str) else None,
            last_used=_as_int(last_used, 0),
            disabled=_as_flag(data.get("disabled")),
            proxy_disabled=_as_flag(data.get("proxy_disabled")),
        )


def _as_int(value: Any, default: int) -> int:
    # bool is an int subclass; a stray true/false must not read as 1/0.
    if isinstance(value, bool) or not isinstance(value, int):
        return default
    return value


def _as_flag(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        return value.strip().lower() in {"1", "true", "yes", "on"}
    return False


def _now_ms() -> int:
    return int(time.time() * 1000)


def _index_existing(existing: Any) -> tuple[dict[str, dict], dict[str, dict], int, dict[str, int]]:
    by_token: dict[str, dict] = {}
    by_email: dict[str, dict] = {}
    active_index = 0
    by_family: dict[str, int] = {}

    if not isinstance(existing, dict):
        return by_token, by_email, active_index, by_family

    records = existing.get("accounts")
    if isinstance(records, list):
        for record in records:
            if not isinstance(record, dict):
                continue
            token = record.get("refreshToken")
            if not isinstance(token, str):
                continue
            by_token[token] = record
            email = record.get("email")
            if isinstance(email, str):
                by_email[email] = record

    active_index = _as_int(existing.get("activeIndex"), 0)

    families = existing.get("activeIndexByFamily")
    if isinstance(families, dict):
        for family, value in families.items():
            if isinstance(value, int) and not isinstance(value, bool):
                by_family[family] = value

    return by_token, by_email, active_index, by_family


def _clamp_index(index: int, count: int) -> int:
    if count <= 0:
        return 0
    return min(max(index, 0), count - 1)


def _build_record(account: AppAccount, existing: Optional[dict], now_ms: int) -> dict:
    record: dict[str, Any] = {"email": account.email, "refreshToken": account.refresh_token}
    if account.project_id is not None:
        record["projectId"] = account.project_id

    if existing is None:
        record["addedAt"] = now_ms
        record["lastUsed"] = account.last_used
        return record

    record["addedAt"] = _as_int(existing.get("addedAt"), now_ms)
    record["lastUsed"] = max(_as_int(existing.get("lastUsed"), 0), account.last_used)
    for field_name in PRESERVED_FIELDS:
        value = existing.get(field_name)
        if value is not None:
            record[field_name] = value
    return record


def reconcile_accounts(
    app_accounts: Iterable[AppAccount],
    existing: Any = None,
    now_ms: Optional[int] = None,
) -> dict:
    """Build a v3 accounts document from the app list and the previous file.

    Records are matched by refresh token, then by email. Disabled accounts
    are dropped along with any state the plugin held for them. Output order
    follows ``app_accounts``.
    """
    if now_ms is None:
        now_ms = _now_ms()
    by_token, by_email, active_index, by_family = _index_existing(existing)

    records: list[dict] = []
    for account in app_accounts:
        if not account.is_active:
            logger.debug("Skipping disabled account %s", account.email)
            continue
        match = by_token.get(account.refresh_token)
        if match is None:
            match = by_email.get(account.email)
        records.append(_build_record(account, match, now_ms))

    count = len(records)
    clamped_active = _clamp_index(active_index, count)
    clamped_families = {family: _clamp_index(value, count) for family, value in by_family.items()}
    for family in REQUIRED_FAMILIES:
        clamped_families.setdefault(family, clamped_active)

    return {
        "version": ACCOUNTS_SCHEMA_VERSION,
        "accounts": records,
        "activeIndex": clamped_active,
        "activeIndexByFamily": clamped_families,
    }


# ---------------------------------------------------------------------------
# App account source
# ---------------------------------------------------------------------------


def default_data_dir() -> Path:
    return Path.home() / ".antigravity_tools"


def _account_files(data_dir: Path) -> list[Path]:
    accounts_dir = data_dir / "accounts"
    index_path = data_dir / "accounts.json"
    if index_path.exists():
        try:
            index = read_json_file(index_path)
        except (OSError, ValueError) as exc:
            logger.warning("Failed to read account index %s: %s", index_path, exc)
        else:
            entries = index.get("accounts") if isinstance(index, dict) else None
            if isinstance(entries, list):
                files = []
                for entry in entries:
                    account_id = entry.get("id") if isinstance(entry, dict) else None
                    if isinstance(account_id, str) and account_id:
                        files.append(accounts_dir / f"{account_id}.json")
                return files
    if not accounts_dir.is_dir():
        return []
    return sorted(accounts_dir.glob("*.json"))


def load_app_accounts(data_dir: Optional[str | Path] = None) -> list[AppAccount]:
    """Read the app's accounts from its data directory.

    Order comes from ``accounts.json`` when present, otherwise from the
    sorted file names under ``accounts/``. Unreadable records are skipped.
    """
    root = Path(data_dir) if data_dir else default_data_dir()
    accounts: list[AppAccount] = []
    for path in _account_files(root):
        try:
            data = read_json_file(path)
            accounts.append(AppAccount.from_dict(data))
        except (OSError, ValueError) as exc:
            logger.warning("Skipping account file %s: %s", path, exc)
    return accounts
