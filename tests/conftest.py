"""Shared factories for ledger tests."""

from decimal import Decimal

import pytest

from finance_tracker.models.ledger import (
    Goal,
    Transaction,
    TransactionCategory,
    TransactionType,
)


@pytest.fixture
def make_transaction():
    """Build a Transaction with sensible defaults."""
    def factory(**overrides) -> Transaction:
        fields = dict(
            description="Mercado",
            amount=Decimal("100.00"),
            date="2025-03-10",
            type=TransactionType.VARIABLE_EXPENSE,
            category=TransactionCategory.SUPERMARKET_PURCHASES,
        )
        fields.update(overrides)
        return Transaction(**fields)
    return factory


@pytest.fixture
def make_goal():
    """Build a Goal with sensible defaults."""
    def factory(**overrides) -> Goal:
        fields = dict(
            name="Reserva de emergência",
            target_amount=Decimal("1000.00"),
            current_amount=Decimal("0"),
            deadline="2025-12-31",
        )
        fields.update(overrides)
        return Goal(**fields)
    return factory
