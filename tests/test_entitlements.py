"""
Tests for articlegen.pipeline.entitlements
"""

import logging
from unittest.mock import MagicMock

import pytest
from postgrest.exceptions import APIError

from articlegen.config import FREE_USAGE_LIMIT
from articlegen.pipeline.entitlements import (
    EntitlementGate,
    EntitlementStore,
    UsageRecorder,
    enforce,
    is_over_quota,
    missing_keys,
)
from articlegen.pipeline.errors import (
    InternalError,
    MissingCredentialsError,
    QuotaExceededError,
    UserRecordNotFoundError,
)
from articlegen.pipeline.models import PipelineStage, UserEntitlement


def _entitlement(used=0, paid=False, openai="sk-test", youtube="yt-test"):
    return UserEntitlement(used_count=used, is_paid=paid, openai_api_key=openai, youtube_api_key=youtube)


def _db_returning(rows):
    db = MagicMock()
    db.table.return_value.select.return_value.eq.return_value.limit.return_value.execute.return_value = MagicMock(
        data=rows
    )
    return db


class TestQuotaPredicate:
    @pytest.mark.parametrize(
        "used,paid,denied",
        [
            (0, False, False),
            (FREE_USAGE_LIMIT - 1, False, False),
            (FREE_USAGE_LIMIT, False, True),
            (FREE_USAGE_LIMIT + 5, False, True),
            (FREE_USAGE_LIMIT, True, False),
            (1000, True, False),
        ],
    )
    def test_joint_predicate(self, used, paid, denied):
        assert is_over_quota(_entitlement(used=used, paid=paid)) is denied

    def test_quota_error_payload(self):
        with pytest.raises(QuotaExceededError) as exc:
            enforce(_entitlement(used=3))

        assert exc.value.http_status == 403
        assert exc.value.stage == PipelineStage.QUOTA_EXCEEDED
        assert exc.value.extra == {"usedCount": 3, "maxCount": FREE_USAGE_LIMIT}

    def test_quota_is_checked_before_keys(self):
        with pytest.raises(QuotaExceededError):
            enforce(_entitlement(used=3, openai=None, youtube=None))


class TestCredentials:
    def test_missing_keys(self):
        assert missing_keys(_entitlement(openai=None)) == {"openai": True, "youtube": False}
        assert missing_keys(_entitlement(youtube="")) == {"openai": False, "youtube": True}

    def test_missing_key_is_rejected(self):
        with pytest.raises(MissingCredentialsError) as exc:
            enforce(_entitlement(youtube=None))

        assert exc.value.http_status == 400
        assert exc.value.extra["missingKeys"] == {"openai": False, "youtube": True}
        assert "YouTube" in exc.value.details

    def test_paid_user_with_keys_passes(self):
        enforce(_entitlement(used=50, paid=True))


class TestEntitlementStore:
    def test_fetch_reads_one_row(self):
        db = _db_returning([{"used_count": 2, "is_paid": False, "openai_api_key": "sk", "youtube_api_key": "yt"}])

        entitlement = EntitlementStore(db).fetch("user-1")

        assert entitlement.used_count == 2
        db.table.assert_called_once_with("users")
        db.table.return_value.select.return_value.eq.assert_called_once_with("id", "user-1")

    def test_missing_row(self):
        with pytest.raises(UserRecordNotFoundError) as exc:
            EntitlementStore(_db_returning([])).fetch("user-1")

        assert exc.value.http_status == 404
        assert exc.value.stage == PipelineStage.INTERNAL_ERROR

    def test_read_failure_is_internal_error(self):
        db = MagicMock()
        db.table.return_value.select.return_value.eq.return_value.limit.return_value.execute.side_effect = APIError(
            {"message": "permission denied", "code": "42501"}
        )

        with pytest.raises(InternalError) as exc:
            EntitlementStore(db).fetch("user-1")

        assert exc.value.http_status == 500

    def test_increment_uses_rpc(self):
        db = MagicMock()

        EntitlementStore(db).increment_usage("user-1")

        db.rpc.assert_called_once_with("increment_used_count", {"user_id": "user-1"})
        db.rpc.return_value.execute.assert_called_once()

    def test_update_api_keys(self):
        db = MagicMock()

        EntitlementStore(db).update_api_keys("user-1", {"openai_api_key": "sk-new"})

        db.table.return_value.update.assert_called_once_with({"openai_api_key": "sk-new"})
        db.table.return_value.update.return_value.eq.assert_called_once_with("id", "user-1")


class TestGateAndRecorder:
    def test_gate_returns_entitlement(self, make_store):
        store = make_store()

        entitlement = EntitlementGate(store).check("user-1")

        assert entitlement.openai_api_key == "sk-test"
        assert store.fetch_calls == 1

    def test_recorder_increments_once(self, make_store):
        store = make_store()

        assert UsageRecorder(store).record("user-1") is True
        assert store.increment_calls == 1
        assert store.entitlement.used_count == 1

    def test_recorder_swallows_and_logs_failures(self, make_store, caplog):
        store = make_store(increment_error=RuntimeError("connection reset"))

        with caplog.at_level(logging.WARNING, logger="articlegen.pipeline.entitlements"):
            assert UsageRecorder(store).record("user-1") is False

        assert store.increment_calls == 1
        assert "Failed to increment usage count" in caplog.text
