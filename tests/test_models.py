"""
Tests for the ledger core

Test strategy:
1. Unit tests for individual components (models, resolver, calculator)
2. Flow tests through LedgerCore on the in-memory gateway
3. Gateway tests on a temporary SQLite file
"""

import pytest
from datetime import datetime, timezone

from ledger_core.errors import InvalidInputError
from ledger_core.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)
from ledger_core.models.events import ChangeAction, ChangeNotification, EntityKind
from ledger_core.models.ledger import (
    Account,
    Budget,
    BudgetItem,
    Price,
    QueryOptions,
    SortOrder,
    Split,
    Transaction,
    TransactionState,
)


class TestLedgerModels:
    """Tests for the ledger Pydantic models."""

    def test_account_serializes_camel_case(self):
        """Wire format uses camelCase and hides hasChildren."""
        account = Account(id="a" * 32, org_id="b" * 32, name="Cash", debit_balance=True)
        data = account.model_dump(by_alias=True)
        assert data["orgId"] == "b" * 32
        assert data["debitBalance"] is True
        assert data["readOnly"] is False
        assert "hasChildren" not in data

    def test_account_accepts_camel_case_input(self):
        """Clients may send camelCase keys."""
        account = Account.model_validate({"orgId": "x", "debitBalance": True, "nativeBalance": 5})
        assert account.org_id == "x"
        assert account.debit_balance is True
        assert account.native_balance == 5

    def test_balance_none_is_not_zero(self):
        """An account without splits has no balance, not a zero balance."""
        account = Account(name="Cash")
        assert account.balance is None
        assert account.native_balance is None

    def test_root_account(self):
        """Only an account with an empty parent is a root."""
        assert Account(parent="").is_root
        assert not Account(parent="c" * 32).is_root

    def test_datetimes_truncated_to_milliseconds(self):
        """Sub-millisecond precision is dropped and naive datetimes become UTC."""
        tx = Transaction(date=datetime(2024, 1, 1, 10, 0, 0, 123456))
        assert tx.date == datetime(2024, 1, 1, 10, 0, 0, 123000, tzinfo=timezone.utc)

    def test_split_hides_transaction_id(self):
        """Splits are serialized without their transaction id."""
        split = Split(transaction_id="t", account_id="a", amount=10, native_amount=10)
        assert split.model_dump(by_alias=True) == {
            "accountId": "a",
            "amount": 10,
            "nativeAmount": 10,
        }

    def test_data_is_kept_verbatim(self):
        """Free-form data is not stripped or altered."""
        tx = Transaction(data='  {"k": 1}\n')
        assert tx.data == '  {"k": 1}\n'

    def test_price_rejects_negative(self):
        """Exchange rates cannot be negative."""
        with pytest.raises(ValueError):
            Price(price=-1.0)

    def test_budget_item_hides_org(self):
        """Budget items carry the org only internally."""
        budget = Budget(org_id="o", items=[BudgetItem(org_id="o", account_id="a", amount=5)])
        assert budget.model_dump(by_alias=True)["items"] == [{"accountId": "a", "amount": 5}]

    def test_split_amounts_fit_64_bits(self):
        """The signed 64-bit bounds themselves are accepted."""
        split = Split(amount=2**63 - 1, native_amount=-(2**63))
        assert split.amount == 2**63 - 1
        assert split.native_amount == -(2**63)

    def test_split_amount_out_of_range(self):
        with pytest.raises(InvalidInputError, match="^amount out of range"):
            Split(amount=2**63)
        with pytest.raises(InvalidInputError, match="nativeAmount out of range"):
            Split.model_validate({"accountId": "a", "nativeAmount": -(2**63) - 1})

    def test_budget_item_amount_out_of_range(self):
        with pytest.raises(InvalidInputError, match="amount out of range"):
            BudgetItem(account_id="a", amount=-(2**63) - 1)


class TestTransactionState:
    """Tests for the derived transaction lifecycle state."""

    def test_active(self):
        assert Transaction().state == TransactionState.ACTIVE

    def test_superseded(self):
        tx = Transaction(deleted=True, superseded_by="n" * 32)
        assert tx.state == TransactionState.SUPERSEDED

    def test_deleted(self):
        assert Transaction(deleted=True).state == TransactionState.DELETED

    def test_native_total_and_account_ids(self):
        """native_total sums splits; account_ids keeps first-seen order."""
        tx = Transaction(splits=[
            Split(account_id="b", amount=5, native_amount=5),
            Split(account_id="a", amount=-3, native_amount=-3),
            Split(account_id="b", amount=-2, native_amount=-2),
        ])
        assert tx.native_total == 0
        assert tx.account_ids() == ["b", "a"]


class TestQueryOptions:
    """Tests for parsing listing options from flat parameters."""

    def test_defaults(self):
        opts = QueryOptions.from_params({})
        assert opts.limit == 0
        assert opts.skip == 0
        assert opts.include_deleted is False
        assert opts.sort == SortOrder.DATE_DESC

    def test_parses_integers_and_flags(self):
        opts = QueryOptions.from_params({
            "limit": "10",
            "skip": "5",
            "startDate": "1700000000000",
            "endDate": "1800000000000",
            "descriptionStartsWith": "Rent",
            "includeDeleted": "true",
            "sort": "updated-asc",
        })
        assert opts.limit == 10
        assert opts.skip == 5
        assert opts.start_date == 1700000000000
        assert opts.end_date == 1800000000000
        assert opts.description_starts_with == "Rent"
        assert opts.include_deleted is True
        assert opts.sort == SortOrder.UPDATED_ASC

    def test_include_deleted_requires_literal_true(self):
        """Anything but "true" leaves deleted rows out."""
        assert QueryOptions.from_params({"includeDeleted": "1"}).include_deleted is False

    def test_unknown_sort_falls_back(self):
        assert QueryOptions.from_params({"sort": "random"}).sort == SortOrder.DATE_DESC

    def test_rejects_non_numeric(self):
        with pytest.raises(InvalidInputError, match="invalid query options"):
            QueryOptions.from_params({"limit": "ten"})

    def test_rejects_negative(self):
        with pytest.raises(InvalidInputError, match="invalid query options"):
            QueryOptions.from_params({"skip": "-1"})


class TestChangeNotification:
    """Tests for the notification wire shape."""

    def test_to_wire(self):
        account = Account(id="a" * 32, name="Cash")
        notification = ChangeNotification(
            entity_kind=EntityKind.ACCOUNT,
            action=ChangeAction.CREATE,
            entity=account,
            recipient_user_ids=["u1"],
        )
        wire = notification.to_wire()
        assert wire["type"] == "account"
        assert wire["action"] == "create"
        assert wire["data"]["name"] == "Cash"


class TestAuditModels:
    """Tests for audit event models."""

    def test_audit_event_creation(self):
        """Test AuditEvent model creation."""
        event = AuditEvent(
            event_type=AuditEventType.TRANSACTION_CREATED,
            description="Test event",
            org_id="o",
            user_id="u",
        )
        assert event.event_type == AuditEventType.TRANSACTION_CREATED
        assert event.severity == AuditSeverity.INFO
        assert event.event_id is not None

    def test_audit_event_to_log_dict(self):
        """Test conversion to log dictionary."""
        event = AuditEvent(
            event_type=AuditEventType.ACCOUNT_DELETED,
            description="Deleted",
            entity_id="acc",
        )
        log_dict = event.to_log_dict()
        assert log_dict["event_type"] == "account_deleted"
        assert log_dict["entity_id"] == "acc"
        assert "timestamp" in log_dict

    def test_transaction_rejected_builder(self):
        """Rejections are warnings carrying the reason."""
        event = AuditEventBuilder.transaction_rejected("o", "u", "t", "splits must add up to 0")
        assert event.event_type == AuditEventType.TRANSACTION_REJECTED
        assert event.severity == AuditSeverity.WARNING
        assert event.error_message == "splits must add up to 0"

    def test_notification_dropped_builder(self):
        event = AuditEventBuilder.notification_dropped("transaction", "create")
        assert event.event_type == AuditEventType.NOTIFICATION_DROPPED
