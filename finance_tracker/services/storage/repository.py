"""
Ledger Repository

Loads and saves the two collections on top of a key-value store.

GUARANTEES:
- Reads never raise: a missing key, unreadable backend or corrupt JSON
  all yield an empty collection (and a log line)
- Individual records that no longer validate are skipped, not fatal
- Writes never raise: a failed save is logged and dropped
- Every save serializes the full collection (no incremental diff)
"""

import json
from typing import Optional, TypeVar

import structlog
from pydantic import ValidationError

from finance_tracker.audit import AuditLogger
from finance_tracker.models.ledger import Goal, LedgerModel, Transaction
from finance_tracker.services.storage.interface import KeyValueStoreInterface


logger = structlog.get_logger(__name__)

DEFAULT_TRANSACTIONS_KEY = "financial_control_transactions"
DEFAULT_GOALS_KEY = "financial_control_goals"

ModelT = TypeVar("ModelT", bound=LedgerModel)


class LedgerRepository:
    """Persistence adapter for transactions and goals."""

    def __init__(
        self,
        store: KeyValueStoreInterface,
        transactions_key: str = DEFAULT_TRANSACTIONS_KEY,
        goals_key: str = DEFAULT_GOALS_KEY,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._store = store
        self._transactions_key = transactions_key
        self._goals_key = goals_key
        self._audit_logger = audit_logger

    @property
    def transactions_key(self) -> str:
        return self._transactions_key

    @property
    def goals_key(self) -> str:
        return self._goals_key

    def load_transactions(self) -> list[Transaction]:
        return self._load(self._transactions_key, Transaction)

    def load_goals(self) -> list[Goal]:
        return self._load(self._goals_key, Goal)

    def save_transactions(self, transactions: list[Transaction]) -> bool:
        return self._save(self._transactions_key, transactions)

    def save_goals(self, goals: list[Goal]) -> bool:
        return self._save(self._goals_key, goals)

    def _load(self, key: str, model: type[ModelT]) -> list[ModelT]:
        try:
            raw = self._store.get(key)
        except Exception as e:
            self._report_failure("read", key, e)
            return []

        if raw is None:
            return []

        try:
            data = json.loads(raw)
        except ValueError as e:
            self._report_failure("parse", key, e)
            return []

        if not isinstance(data, list):
            self._report_failure("parse", key, TypeError(f"expected a JSON array, got {type(data).__name__}"))
            return []

        items = []
        for position, record in enumerate(data):
            try:
                items.append(model.model_validate(record))
            except ValidationError as e:
                logger.warning(
                    "skipped_invalid_record",
                    key=key,
                    position=position,
                    error_count=e.error_count(),
                )
        return items

    def _save(self, key: str, items: list[LedgerModel]) -> bool:
        try:
            payload = json.dumps(
                [item.to_storage_dict() for item in items],
                ensure_ascii=False,
            )
            self._store.set(key, payload)
        except Exception as e:
            self._report_failure("write", key, e)
            return False

        logger.debug("collection_saved", key=key, count=len(items))
        return True

    def _report_failure(self, operation: str, key: str, error: Exception) -> None:
        logger.error(
            "storage_operation_failed",
            operation=operation,
            key=key,
            error=str(error),
        )
        if self._audit_logger:
            self._audit_logger.log_persistence_failed(operation, key, str(error))
