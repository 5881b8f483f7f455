"""Unit tests for the raw-SQL repositories.

SQL inspection checks the locking and conditional-update clauses that the
concurrency guarantees rest on; mock sessions check row mapping and error
translation.
"""

import inspect
from datetime import UTC, datetime
from decimal import Decimal
from unittest.mock import AsyncMock, MagicMock
from uuid import uuid4

import pytest
from sqlalchemy.exc import IntegrityError

from teller_risk.core.errors import ChainConflictError, ConflictError
from teller_risk.persistence.alert_repository import AlertRepository
from teller_risk.persistence.audit_repository import AUDIT_CHAIN_LOCK_KEY, AuditRepository
from teller_risk.persistence.profile_repository import ProfileRepository
from teller_risk.persistence.transaction_repository import TransactionRepository
from tests.utils.builders import make_transaction

NOW = datetime(2026, 3, 4, 10, 0, tzinfo=UTC)


class _UniqueViolation(Exception):
    sqlstate = "23505"


class _ForeignKeyViolation(Exception):
    sqlstate = "23503"


def _result(row=None, rows=None) -> MagicMock:
    result = MagicMock()
    result.fetchone.return_value = row
    result.fetchall.return_value = rows or []
    return result


def _transaction_row(**overrides) -> tuple:
    values = {
        "id": uuid4(),
        "transaction_id": "TXN-1",
        "member_id": "M-1001",
        "amount": Decimal("250.00"),
        "transaction_type": "withdrawal",
        "account_balance": Decimal("1200.00"),
        "timestamp": NOW,
        "device_fingerprint": None,
        "geo_location": None,
        "status": "held",
        "risk_score": Decimal("62.50"),
        "flags": '["large_transaction"]',
        "reasons": None,
        "created_by": "auth0|teller-1",
        "created_by_role": "teller",
        "decided_by": None,
        "decided_by_role": None,
        "decided_at": None,
        "decision_reason": None,
        "created_at": NOW,
        "updated_at": NOW,
    }
    values.update(overrides)
    return tuple(values.values())


class TestLockingSQL:
    def test_transaction_decision_locks_row(self):
        source = inspect.getsource(TransactionRepository.get_for_update)
        assert "FOR UPDATE" in source

    def test_profile_is_created_then_locked(self):
        source = inspect.getsource(ProfileRepository.get_for_update)
        assert "ON CONFLICT (member_id) DO NOTHING" in source
        assert "FOR UPDATE" in source

    def test_chain_append_takes_advisory_lock(self):
        source = inspect.getsource(AuditRepository.lock_chain)
        assert "pg_advisory_xact_lock(:key)" in source

    def test_review_is_conditional(self):
        source = inspect.getsource(AlertRepository.mark_reviewed)
        assert "AND status <> :reviewed" in source

    def test_peer_bounds_are_exclusive(self):
        source = inspect.getsource(ProfileRepository.list_peer_candidates)
        assert "mean_amount > :min_mean" in source
        assert "mean_amount < :max_mean" in source
        assert "BETWEEN" not in source

    def test_escalation_requires_pending(self):
        source = inspect.getsource(AlertRepository.escalate)
        assert "AND status = :pending" in source


class TestTransactionRepository:
    @pytest.mark.asyncio
    async def test_get_maps_row(self, mock_session):
        mock_session.execute = AsyncMock(return_value=_result(_transaction_row()))

        txn = await TransactionRepository(mock_session).get("TXN-1")

        assert txn["transaction_id"] == "TXN-1"
        assert txn["risk_score"] == 62.5
        assert txn["flags"] == ["large_transaction"]
        assert txn["reasons"] == []
        assert txn["timestamp"] == NOW

    @pytest.mark.asyncio
    async def test_get_missing(self, mock_session):
        mock_session.execute = AsyncMock(return_value=_result(None))
        assert await TransactionRepository(mock_session).get("TXN-404") is None

    @pytest.mark.asyncio
    async def test_list_with_status_filter(self, mock_session):
        count = MagicMock()
        count.scalar.return_value = 1
        mock_session.execute = AsyncMock(side_effect=[count, _result(rows=[_transaction_row()])])

        items, total = await TransactionRepository(mock_session).list_transactions(
            statuses=["pending", "held"], limit=10
        )

        assert total == 1
        assert len(items) == 1
        params = mock_session.execute.call_args_list[1].args[1]
        assert params["statuses"] == ["pending", "held"]
        assert params["limit"] == 10

    @pytest.mark.asyncio
    async def test_duplicate_insert_is_conflict(self, mock_session):
        error = IntegrityError("INSERT", {}, _UniqueViolation("transactions_transaction_id_key"))
        mock_session.execute = AsyncMock(side_effect=error)

        with pytest.raises(ConflictError) as exc_info:
            await TransactionRepository(mock_session).create(
                make_transaction("TXN-1"), "pending", 0.0, [], [], "u1", "teller"
            )
        assert exc_info.value.details == {"transaction_id": "TXN-1"}
        assert exc_info.value.__cause__ is error

    @pytest.mark.asyncio
    async def test_other_insert_errors_propagate(self, mock_session):
        error = IntegrityError("INSERT", {}, _ForeignKeyViolation("fk"))
        mock_session.execute = AsyncMock(side_effect=error)

        with pytest.raises(IntegrityError):
            await TransactionRepository(mock_session).create(
                make_transaction("TXN-1"), "pending", 0.0, [], [], "u1", "teller"
            )

    @pytest.mark.asyncio
    async def test_volume_snapshot(self, mock_session):
        mock_session.execute = AsyncMock(return_value=_result((4, 30)))

        snapshot = await TransactionRepository(mock_session).volume_snapshot(NOW, 30)

        assert snapshot.count_24h == 4
        assert snapshot.count_baseline == 30


class TestProfileRepository:
    @pytest.mark.asyncio
    async def test_get_for_update_issues_upsert_then_lock(self, mock_session):
        row = ("M-1001", 3, Decimal("150.00"), Decimal("5000"), [0] * 24, Decimal("0.1"), NOW)
        mock_session.execute = AsyncMock(side_effect=[MagicMock(), _result(row)])

        profile = await ProfileRepository(mock_session).get_for_update("M-1001")

        assert mock_session.execute.await_count == 2
        assert profile.transaction_count == 3
        assert profile.mean_amount == 150.0
        assert profile.risk_score == pytest.approx(0.1)

    @pytest.mark.asyncio
    async def test_fresh_profile_defaults(self, mock_session):
        row = ("M-NEW", 0, None, None, None, None, NOW)
        mock_session.execute = AsyncMock(return_value=_result(row))

        profile = await ProfileRepository(mock_session).get("M-NEW")

        assert profile.transaction_count == 0
        assert profile.hour_counts == [0] * 24


class TestAuditRepository:
    @pytest.mark.asyncio
    async def test_lock_chain_key(self, mock_session):
        await AuditRepository(mock_session).lock_chain()
        assert mock_session.execute.call_args.args[1] == {"key": AUDIT_CHAIN_LOCK_KEY}

    @pytest.mark.asyncio
    async def test_empty_chain_has_no_tail(self, mock_session):
        mock_session.execute = AsyncMock(return_value=_result(None))
        assert await AuditRepository(mock_session).get_tail() is None

    @pytest.mark.asyncio
    async def test_duplicate_prev_hash_is_chain_conflict(self, mock_session):
        error = IntegrityError("INSERT", {}, _UniqueViolation("audit_logs_prev_hash_key"))
        mock_session.execute = AsyncMock(side_effect=error)

        with pytest.raises(ChainConflictError) as exc_info:
            await AuditRepository(mock_session).insert(
                "transaction", "TXN-1", "created", "u1", "teller", {}, "0" * 64, "a" * 64
            )
        assert exc_info.value.__cause__ is error

    @pytest.mark.asyncio
    async def test_other_integrity_errors_propagate(self, mock_session):
        error = IntegrityError("INSERT", {}, _ForeignKeyViolation("fk"))
        mock_session.execute = AsyncMock(side_effect=error)

        with pytest.raises(IntegrityError):
            await AuditRepository(mock_session).insert(
                "transaction", "TXN-1", "created", "u1", "teller", {}, "0" * 64, "a" * 64
            )

    @pytest.mark.asyncio
    async def test_payload_decoded_from_json_text(self, mock_session):
        row = (1, "alert", "a1", "reviewed", "u1", "risk_officer", '{"notes": null}', "0" * 64, "b" * 64, NOW)
        mock_session.execute = AsyncMock(return_value=_result(rows=[row]))

        (entry,) = await AuditRepository(mock_session).list_batch(after_id=0, limit=10)

        assert entry["payload"] == {"notes": None}
        assert entry["hash"] == "b" * 64
