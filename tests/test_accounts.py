"""Tests for accounts file reconciliation and the app account loader."""

from __future__ import annotations

import json

import pytest

from opencode_proxy_sync.accounts import (
    ACCOUNTS_SCHEMA_VERSION,
    AppAccount,
    load_app_accounts,
    reconcile_accounts,
)

NOW = 1_700_000_000_000


def _acc(email: str, token: str, last_used: int = 0, **kwargs) -> AppAccount:
    return AppAccount(email=email, refresh_token=token, last_used=last_used, **kwargs)


def _existing(*records: dict, active_index: int = 0, by_family: dict | None = None) -> dict:
    return {
        "version": 3,
        "accounts": list(records),
        "activeIndex": active_index,
        "activeIndexByFamily": by_family or {},
    }


# ---------------------------------------------------------------------------
# Reconciliation
# ---------------------------------------------------------------------------


class TestReconcile:
    def test_new_accounts_get_defaults(self):
        result = reconcile_accounts([_acc("a@x.com", "rt-a", 5, project_id="proj-a")], None, now_ms=NOW)
        assert result == {
            "version": ACCOUNTS_SCHEMA_VERSION,
            "accounts": [
                {"email": "a@x.com", "refreshToken": "rt-a", "projectId": "proj-a", "addedAt": NOW, "lastUsed": 5}
            ],
            "activeIndex": 0,
            "activeIndexByFamily": {"claude": 0, "gemini": 0},
        }

    def test_project_id_omitted_when_missing(self):
        record = reconcile_accounts([_acc("a@x.com", "rt-a")], now_ms=NOW)["accounts"][0]
        assert "projectId" not in record

    def test_match_by_refresh_token_preserves_state(self):
        existing = _existing(
            {
                "email": "old@x.com",
                "refreshToken": "rt-a",
                "addedAt": 111,
                "lastUsed": 500,
                "coolingDownUntil": 999_999,
                "cooldownReason": "rate-limit",
                "rateLimitResetTimes": {"claude": 123},
                "fingerprint": {"ua": "x"},
                "cachedQuota": {"claude": 0.5},
                "cachedQuotaUpdatedAt": 42,
                "fingerprintHistory": [{"ua": "y"}],
                "managedProjectId": "managed-1",
                "enabled": False,
                "lastSwitchReason": "rotation",
            }
        )
        result = reconcile_accounts([_acc("new@x.com", "rt-a", 300, project_id="p")], existing, now_ms=NOW)
        record = result["accounts"][0]
        assert record["email"] == "new@x.com"
        assert record["projectId"] == "p"
        assert record["addedAt"] == 111
        assert record["lastUsed"] == 500
        assert record["coolingDownUntil"] == 999_999
        assert record["cooldownReason"] == "rate-limit"
        assert record["rateLimitResetTimes"] == {"claude": 123}
        assert record["fingerprint"] == {"ua": "x"}
        assert record["cachedQuota"] == {"claude": 0.5}
        assert record["cachedQuotaUpdatedAt"] == 42
        assert record["fingerprintHistory"] == [{"ua": "y"}]
        assert record["managedProjectId"] == "managed-1"
        assert record["enabled"] is False
        assert record["lastSwitchReason"] == "rotation"

    def test_last_used_takes_max(self):
        existing = _existing({"email": "a@x.com", "refreshToken": "rt-a", "addedAt": 1, "lastUsed": 10})
        record = reconcile_accounts([_acc("a@x.com", "rt-a", 20)], existing, now_ms=NOW)["accounts"][0]
        assert record["lastUsed"] == 20

    def test_match_falls_back_to_email(self):
        existing = _existing(
            {"email": "a@x.com", "refreshToken": "rotated-away", "addedAt": 7, "lastUsed": 1, "coolingDownUntil": 55}
        )
        record = reconcile_accounts([_acc("a@x.com", "rt-new")], existing, now_ms=NOW)["accounts"][0]
        assert record["refreshToken"] == "rt-new"
        assert record["addedAt"] == 7
        assert record["coolingDownUntil"] == 55

    def test_refresh_token_wins_over_email(self):
        existing = _existing(
            {"email": "a@x.com", "refreshToken": "rt-other", "addedAt": 1, "lastUsed": 0, "cooldownReason": "email"},
            {"email": "b@x.com", "refreshToken": "rt-a", "addedAt": 2, "lastUsed": 0, "cooldownReason": "token"},
        )
        record = reconcile_accounts([_acc("a@x.com", "rt-a")], existing, now_ms=NOW)["accounts"][0]
        assert record["addedAt"] == 2
        assert record["cooldownReason"] == "token"

    def test_disabled_accounts_are_dropped(self):
        accounts = [
            _acc("a@x.com", "rt-a"),
            _acc("b@x.com", "rt-b", disabled=True),
            _acc("c@x.com", "rt-c", proxy_disabled=True),
            _acc("d@x.com", "rt-d"),
        ]
        result = reconcile_accounts(accounts, None, now_ms=NOW)
        assert [r["email"] for r in result["accounts"]] == ["a@x.com", "d@x.com"]

    def test_output_order_follows_app_list(self):
        existing = _existing(
            {"email": "b@x.com", "refreshToken": "rt-b", "addedAt": 1, "lastUsed": 0},
            {"email": "a@x.com", "refreshToken": "rt-a", "addedAt": 2, "lastUsed": 0},
        )
        result = reconcile_accounts([_acc("a@x.com", "rt-a"), _acc("b@x.com", "rt-b")], existing, now_ms=NOW)
        assert [r["refreshToken"] for r in result["accounts"]] == ["rt-a", "rt-b"]

    def test_accounts_missing_from_app_are_removed(self):
        existing = _existing({"email": "gone@x.com", "refreshToken": "rt-gone", "addedAt": 1, "lastUsed": 0})
        result = reconcile_accounts([_acc("a@x.com", "rt-a")], existing, now_ms=NOW)
        assert [r["email"] for r in result["accounts"]] == ["a@x.com"]

    def test_version_is_fixed(self):
        existing = _existing(active_index=0)
        existing["version"] = 1
        assert reconcile_accounts([], existing)["version"] == 3

    def test_malformed_existing_is_ignored(self):
        for existing in ("garbage", [], {"accounts": "nope"}, {"accounts": [1, {"email": "x"}]}):
            result = reconcile_accounts([_acc("a@x.com", "rt-a")], existing, now_ms=NOW)
            assert result["accounts"][0]["addedAt"] == NOW


class TestIndexClamping:
    def test_zero_accounts(self):
        existing = _existing(active_index=4, by_family={"claude": 3, "gemini": 2, "other": 9})
        result = reconcile_accounts([], existing)
        assert result["activeIndex"] == 0
        assert result["activeIndexByFamily"] == {"claude": 0, "gemini": 0, "other": 0}

    def test_stale_index_clamped_to_last(self):
        accounts = [_acc(f"{i}@x.com", f"rt-{i}") for i in range(3)]
        result = reconcile_accounts(accounts, _existing(active_index=3 + 5), now_ms=NOW)
        assert result["activeIndex"] == 2

    def test_negative_index_clamped_to_zero(self):
        accounts = [_acc("a@x.com", "rt-a"), _acc("b@x.com", "rt-b")]
        result = reconcile_accounts(accounts, _existing(active_index=-4, by_family={"claude": -1}), now_ms=NOW)
        assert result["activeIndex"] == 0
        assert result["activeIndexByFamily"]["claude"] == 0

    def test_families_default_to_active_index(self):
        accounts = [_acc(f"{i}@x.com", f"rt-{i}") for i in range(4)]
        result = reconcile_accounts(accounts, _existing(active_index=2, by_family={"claude": 9}), now_ms=NOW)
        assert result["activeIndexByFamily"] == {"claude": 3, "gemini": 2}

    def test_non_integer_indices_ignored(self):
        accounts = [_acc("a@x.com", "rt-a"), _acc("b@x.com", "rt-b")]
        existing = _existing(by_family={"claude": "1", "gemini": True})
        existing["activeIndex"] = "1"
        result = reconcile_accounts(accounts, existing, now_ms=NOW)
        assert result["activeIndex"] == 0
        assert result["activeIndexByFamily"] == {"claude": 0, "gemini": 0}


# ---------------------------------------------------------------------------
# App account loader
# ---------------------------------------------------------------------------


def _write_account(data_dir, account_id: str, payload: dict) -> None:
    path = data_dir / "accounts" / f"{account_id}.json"
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(payload), encoding="utf-8")


def _payload(email: str, token: str, **extra) -> dict:
    data = {"email": email, "token": {"refresh_token": token, "project_id": f"proj-{token}"}, "last_used": 10}
    data.update(extra)
    return data


class TestLoadAppAccounts:
    def test_index_order(self, tmp_path):
        _write_account(tmp_path, "id-1", _payload("a@x.com", "rt-a"))
        _write_account(tmp_path, "id-2", _payload("b@x.com", "rt-b", proxy_disabled=True))
        (tmp_path / "accounts.json").write_text(
            json.dumps({"accounts": [{"id": "id-2"}, {"id": "id-1"}]}), encoding="utf-8"
        )
        accounts = load_app_accounts(tmp_path)
        assert [a.email for a in accounts] == ["b@x.com", "a@x.com"]
        assert accounts[0].proxy_disabled is True
        assert accounts[0].is_active is False
        assert accounts[1].project_id == "proj-rt-a"
        assert accounts[1].last_used == 10

    def test_without_index_uses_sorted_files(self, tmp_path):
        _write_account(tmp_path, "b", _payload("b@x.com", "rt-b"))
        _write_account(tmp_path, "a", _payload("a@x.com", "rt-a"))
        assert [a.email for a in load_app_accounts(tmp_path)] == ["a@x.com", "b@x.com"]

    def test_malformed_records_are_skipped(self, tmp_path):
        _write_account(tmp_path, "a", _payload("a@x.com", "rt-a"))
        _write_account(tmp_path, "b", {"email": "b@x.com"})
        (tmp_path / "accounts" / "c.json").write_text("{not json", encoding="utf-8")
        assert [a.email for a in load_app_accounts(tmp_path)] == ["a@x.com"]

    def test_missing_directory(self, tmp_path):
        assert load_app_accounts(tmp_path / "nowhere") == []

    def test_from_dict_rejects_missing_token(self):
        with pytest.raises(ValueError):
            AppAccount.from_dict({"email": "a@x.com", "token": {}})

    @pytest.mark.parametrize(
        "raw, expected",
        [(True, True), (False, False), ("false", False), ("0", False), ("true", True), ("1", True), (None, False)],
    )
    def test_disabled_flags_are_parsed_strictly(self, raw, expected):
        account = AppAccount.from_dict(
            {"email": "a@x.com", "token": {"refresh_token": "rt-a"}, "disabled": raw, "proxy_disabled": raw}
        )
        assert account.disabled is expected
        assert account.proxy_disabled is expected

    def test_bom_prefixed_record_is_loaded(self, tmp_path):
        path = tmp_path / "accounts" / "a.json"
        path.parent.mkdir(parents=True)
        path.write_bytes(b"\xef\xbb\xbf" + json.dumps(_payload("a@x.com", "rt-a")).encode("utf-8"))
        assert [a.email for a in load_app_accounts(tmp_path)] == ["a@x.com"]
