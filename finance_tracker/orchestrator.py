"""
Main Orchestrator for Finance Tracker

This module ties together all the components and defines the
end-to-end flows for:
1. Transactions (form draft -> validate -> store -> goal sync -> persist)
2. Goals (form draft -> validate -> store -> persist)
3. Dashboard (month summary, charts, history, goal progress)
4. Advice and receipt reading (Gemini, with fixed fallback messages)
5. Reports (date range -> CSV / PDF)
6. Backup (export / import of both collections)

DESIGN DECISION: The orchestrator enforces the boundaries:
- Nothing enters the store without passing validation
- Nothing is deleted without explicit confirmation
- AI output never writes to the store directly
- Every mutation is audited

Persistence is wired as a store subscriber in `create_app_components`,
so the flows never call the repository themselves.
"""

from concurrent.futures import ThreadPoolExecutor
from datetime import date
from decimal import Decimal
from typing import NamedTuple, Optional, Union
from uuid import UUID

import structlog

from finance_tracker.agents import (
    AdvisoryAgent,
    ReceiptExtractionAgent,
    decode_payload,
    mime_type_from_data_url,
)
from finance_tracker.audit import AuditLogger, configure_logging, create_correlation_id
from finance_tracker.config import AppSettings, Settings, StorageSettings, get_settings
from finance_tracker.ledger import (
    BackupImportError,
    EntityNotFoundError,
    LedgerStore,
    apply_backup,
    backup_filename,
    build_report_rows,
    dumps_backup,
    export_backup,
    export_csv,
    filter_by_date_range,
    goal_progress,
    group_by_category,
    group_by_type,
    load_store,
    month_predicate,
    monthly_history,
    parse_backup,
    render_pdf,
    report_filename,
    summarize,
)
from finance_tracker.models.ledger import (
    CategoryTotal,
    Goal,
    GoalDraft,
    GoalProgress,
    ImageQualityReport,
    MonthlyBucket,
    ReportRow,
    Summary,
    Transaction,
    TransactionDraft,
    TransactionType,
    TypeTotal,
    ValidationResult,
    categories_for,
    default_category_for,
)
from finance_tracker.services.image import assess_image_quality
from finance_tracker.services.storage import (
    InMemoryKeyValueStore,
    JsonFileKeyValueStore,
    KeyValueStoreInterface,
    LedgerRepository,
)
from finance_tracker.validation import (
    GoalValidator,
    TransactionValidator,
    ValidationFailedError,
)


logger = structlog.get_logger(__name__)


ADVICE_EMPTY_MESSAGE = "Não foi possível gerar uma análise agora."
ADVICE_ERROR_MESSAGE = "Erro ao conectar com a IA. Verifique sua chave de API ou tente novamente."

RECEIPT_SUCCESS_MESSAGE = "✨ Dados preenchidos pela IA com sucesso! Verifique se tudo está correto."
RECEIPT_EMPTY_MESSAGE = "Não foi possível extrair dados claros da imagem. Tente uma foto mais nítida."
RECEIPT_ERROR_MESSAGE = "Erro ao processar imagem com IA. Verifique a conexão."
RECEIPT_UNUSABLE_MESSAGE = "A imagem não pode ser lida. Tire outra foto."


class TransactionFlow:
    """
    Orchestrates transaction create, edit and delete.

    Flow:
    1. Validate the draft (errors -> rejected, nothing stored)
    2. Build the Transaction (goal link kept only for investments)
    3. Store it; the store moves linked goal balances
    4. Audit the save and every goal balance that moved
    """

    def __init__(
        self,
        store: LedgerStore,
        validator: Optional[TransactionValidator] = None,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._store = store
        self._validator = validator or TransactionValidator()
        self._audit_logger = audit_logger

    def new_draft(self, today: Optional[date] = None) -> TransactionDraft:
        """Empty form: a variable expense dated today."""
        return TransactionDraft(date=(today or date.today()).isoformat())

    def draft_from(self, transaction: Transaction) -> TransactionDraft:
        """Form pre-filled for editing an existing transaction."""
        return TransactionDraft(
            description=transaction.description,
            amount=transaction.amount,
            date=transaction.date,
            type=transaction.type,
            category=transaction.category,
            document_url=transaction.document_url,
            goal_id=transaction.goal_id,
        )

    def change_type(
        self,
        draft: TransactionDraft,
        transaction_type: TransactionType,
    ) -> TransactionDraft:
        """
        Switch the draft's type.

        The category falls back to the type's default when it no longer
        applies, and the goal selection is cleared for non-investments.
        """
        updates = {"type": transaction_type}
        if draft.category not in categories_for(transaction_type):
            updates["category"] = default_category_for(transaction_type)
        if transaction_type != TransactionType.INVESTMENT:
            updates["goal_id"] = None
        return draft.model_copy(update=updates)

    def validate(self, draft: TransactionDraft) -> ValidationResult:
        return self._validator.validate(draft, self._store.list_goals())

    def save(
        self,
        draft: TransactionDraft,
        transaction_id: Optional[str] = None,
        correlation_id: Optional[UUID] = None,
    ) -> tuple[Transaction, ValidationResult]:
        """
        Validate and store a transaction.

        Args:
            draft: The submitted form
            transaction_id: Id of the transaction being edited; None creates one

        Returns:
            (stored transaction, validation result with any warnings)

        Raises:
            ValidationFailedError: If the draft has errors
            EntityNotFoundError: If `transaction_id` does not exist
        """
        correlation_id = correlation_id or create_correlation_id()

        result = self.validate(draft)
        if result.has_errors:
            if self._audit_logger:
                self._audit_logger.log_transaction_rejected(
                    issues=[issue.model_dump() for issue in result.issues],
                    correlation_id=correlation_id,
                )
            raise ValidationFailedError(result)

        if transaction_id is not None and self._store.get_transaction(transaction_id) is None:
            raise EntityNotFoundError("Transaction", transaction_id)

        fields = dict(
            description=draft.description,
            amount=draft.amount,
            date=draft.date,
            type=draft.type,
            category=draft.category,
            document_url=draft.document_url,
            goal_id=draft.goal_id if draft.type == TransactionType.INVESTMENT else None,
        )
        if transaction_id is not None:
            fields["id"] = transaction_id
        transaction = Transaction(**fields)

        balances_before = {goal.id: goal.current_amount for goal in self._store.list_goals()}
        is_new = self._store.save_transaction(transaction)

        if self._audit_logger:
            self._audit_logger.log_transaction_saved(
                transaction_id=transaction.id,
                transaction_type=transaction.type.value,
                amount=str(transaction.amount),
                is_new=is_new,
                correlation_id=correlation_id,
            )
            self._audit_goal_changes(balances_before, correlation_id)

        return transaction, result

    def delete(
        self,
        transaction_id: str,
        confirmed: bool = False,
        correlation_id: Optional[UUID] = None,
    ) -> Transaction:
        """
        Delete a transaction. Requires `confirmed=True`.

        A linked investment's contribution is taken back from its goal.
        """
        correlation_id = correlation_id or create_correlation_id()
        balances_before = {goal.id: goal.current_amount for goal in self._store.list_goals()}

        removed = self._store.delete_transaction(transaction_id, confirmed=confirmed)

        if self._audit_logger:
            self._audit_logger.log_transaction_deleted(
                transaction_id=removed.id,
                retracted_from_goal=removed.goal_id if removed.is_linked_investment else None,
                correlation_id=correlation_id,
            )
            self._audit_goal_changes(balances_before, correlation_id)

        return removed

    def _audit_goal_changes(
        self,
        balances_before: dict[str, Decimal],
        correlation_id: UUID,
    ) -> None:
        for goal in self._store.list_goals():
            previous = balances_before.get(goal.id)
            if previous is not None and previous != goal.current_amount:
                self._audit_logger.log_goal_synced(
                    goal_id=goal.id,
                    previous_amount=str(previous),
                    new_amount=str(goal.current_amount),
                    correlation_id=correlation_id,
                )


class GoalFlow:
    """Orchestrates goal create, edit, delete and progress."""

    def __init__(
        self,
        store: LedgerStore,
        validator: Optional[GoalValidator] = None,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._store = store
        self._validator = validator or GoalValidator()
        self._audit_logger = audit_logger

    def draft_from(self, goal: Goal) -> GoalDraft:
        return GoalDraft(
            name=goal.name,
            target_amount=goal.target_amount,
            current_amount=goal.current_amount,
            deadline=goal.deadline,
            notes=goal.notes,
        )

    def save(
        self,
        draft: GoalDraft,
        goal_id: Optional[str] = None,
    ) -> tuple[Goal, ValidationResult]:
        """
        Validate and store a goal.

        The current amount typed into the form replaces the stored one
        (direct user edit).

        Raises:
            ValidationFailedError: If the draft has errors
            EntityNotFoundError: If `goal_id` does not exist
        """
        result = self._validator.validate(draft)
        if result.has_errors:
            raise ValidationFailedError(result)

        if goal_id is not None and self._store.get_goal(goal_id) is None:
            raise EntityNotFoundError("Goal", goal_id)

        fields = dict(
            name=draft.name,
            target_amount=draft.target_amount,
            current_amount=draft.current_amount,
            deadline=draft.deadline,
            notes=draft.notes,
        )
        if goal_id is not None:
            fields["id"] = goal_id
        goal = Goal(**fields)

        is_new = self._store.save_goal(goal)
        if self._audit_logger:
            self._audit_logger.log_goal_saved(goal_id=goal.id, name=goal.name, is_new=is_new)
        return goal, result

    def delete(self, goal_id: str, confirmed: bool = False) -> Goal:
        removed = self._store.delete_goal(goal_id, confirmed=confirmed)
        if self._audit_logger:
            self._audit_logger.log_goal_deleted(goal_id=removed.id)
        return removed

    def progress(self) -> list[GoalProgress]:
        return [goal_progress(goal) for goal in self._store.list_goals()]


class DashboardFlow:
    """
    Read-only views for the dashboard.

    Everything is recomputed from the store on each call.
    """

    def __init__(
        self,
        store: LedgerStore,
        history_month_count: int = 6,
    ):
        self._store = store
        self._history_month_count = history_month_count

    def month_transactions(self, year: int, month: int) -> list[Transaction]:
        matches = month_predicate(year, month)
        return [t for t in self._store.list_transactions() if matches(t)]

    def summary(self, year: int, month: int) -> Summary:
        return summarize(self._store.list_transactions(), month_predicate(year, month))

    def expenses_by_category(self, year: int, month: int) -> list[CategoryTotal]:
        return group_by_category(self.month_transactions(year, month))

    def expenses_by_type(self, year: int, month: int) -> list[TypeTotal]:
        return group_by_type(self.month_transactions(year, month))

    def history(self, reference_date: Optional[date] = None) -> list[MonthlyBucket]:
        return monthly_history(
            self._store.list_transactions(),
            month_count=self._history_month_count,
            reference_date=reference_date,
        )

    def goals_progress(self) -> list[GoalProgress]:
        return [goal_progress(goal) for goal in self._store.list_goals()]


class AdvisoryFlow:
    """
    Gets monthly advice from the advisory agent.

    Never raises: failures come back as a fixed message.
    The agent is created on first use so a missing API key only
    matters when advice is actually requested.
    """

    def __init__(
        self,
        agent: Optional[AdvisoryAgent] = None,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._agent = agent
        self._audit_logger = audit_logger

    async def get_advice(
        self,
        summary: Summary,
        transactions: list[Transaction],
        correlation_id: Optional[UUID] = None,
    ) -> tuple[str, bool]:
        """
        Returns:
            (text, success). On failure the text is a fallback message.
        """
        correlation_id = correlation_id or create_correlation_id()
        try:
            if self._agent is None:
                self._agent = AdvisoryAgent()
            advice = await self._agent.get_financial_advice(summary, transactions)
        except Exception as e:
            # Includes AdvisoryError and a missing/invalid Gemini configuration
            logger.error("advice_unavailable", error=str(e), error_type=type(e).__name__)
            if self._audit_logger:
                self._audit_logger.log_external_service_error(
                    service="gemini",
                    error_message=str(e),
                    correlation_id=correlation_id,
                )
            return ADVICE_ERROR_MESSAGE, False

        if not advice:
            return ADVICE_EMPTY_MESSAGE, False

        if self._audit_logger:
            self._audit_logger.log_advice_generated(
                transaction_count=len(transactions),
                correlation_id=correlation_id,
            )
        return advice, True


class ReceiptFlow:
    """
    Pre-fills a transaction draft from a receipt.

    The result is only a draft; saving still goes through TransactionFlow.
    """

    def __init__(
        self,
        agent: Optional[ReceiptExtractionAgent] = None,
        audit_logger: Optional[AuditLogger] = None,
        settings: Optional[AppSettings] = None,
    ):
        self._agent = agent
        self._audit_logger = audit_logger
        self._settings = settings or get_settings().app

    def check_upload(self, mime_type: str, size_bytes: int) -> tuple[bool, str]:
        """Whether an uploaded file can be sent for extraction."""
        if mime_type not in self._settings.supported_mime_types_list:
            return False, f"Formato de arquivo não suportado: {mime_type}"
        if size_bytes > self._settings.max_upload_size_bytes:
            return False, (
                f"Arquivo muito grande (máximo {self._settings.max_upload_size_mb} MB)"
            )
        return True, ""

    def assess_quality(
        self,
        payload: Union[bytes, str],
        mime_type: Optional[str] = None,
    ) -> Optional[ImageQualityReport]:
        """Quality report for an image payload; None for PDFs and unknown types."""
        if mime_type is None and isinstance(payload, str):
            mime_type = mime_type_from_data_url(payload)
        if not mime_type or not mime_type.startswith("image/"):
            return None
        return assess_image_quality(decode_payload(payload))

    async def autofill(
        self,
        draft: TransactionDraft,
        payload: Union[bytes, str],
        mime_type: Optional[str] = None,
        correlation_id: Optional[UUID] = None,
    ) -> tuple[TransactionDraft, bool, str]:
        """
        Unusable photos are rejected before any extraction request.

        Returns:
            (draft, filled, message). The draft is unchanged unless filled.
        """
        correlation_id = correlation_id or create_correlation_id()
        try:
            quality = self.assess_quality(payload, mime_type)
            if quality is not None and not quality.is_usable:
                logger.info("receipt_rejected_by_quality", score=quality.score, issues=quality.issues)
                return draft, False, f"{RECEIPT_UNUSABLE_MESSAGE} ({'; '.join(quality.issues)})"

            if self._agent is None:
                self._agent = ReceiptExtractionAgent()
            extraction = await self._agent.extract(payload, mime_type)
        except Exception as e:
            # Includes ReceiptExtractionError and a missing Gemini configuration
            logger.error("receipt_unavailable", error=str(e), error_type=type(e).__name__)
            if self._audit_logger:
                self._audit_logger.log_external_service_error(
                    service="gemini",
                    error_message=str(e),
                    correlation_id=correlation_id,
                )
            return draft, False, RECEIPT_ERROR_MESSAGE

        if extraction is None:
            return draft, False, RECEIPT_EMPTY_MESSAGE

        if self._audit_logger:
            found = [
                name
                for name in ("description", "amount", "date", "category")
                if getattr(extraction, name)
            ]
            self._audit_logger.log_receipt_extracted(
                mime_type=mime_type or "unknown",
                fields_found=found,
                correlation_id=correlation_id,
            )
        return extraction.apply_to(draft), True, RECEIPT_SUCCESS_MESSAGE


class ReportFlow:
    """Date-range reports as CSV or PDF."""

    def __init__(self, store: LedgerStore):
        self._store = store

    def transactions(self, start_date: str, end_date: str) -> list[Transaction]:
        return filter_by_date_range(self._store.list_transactions(), start_date, end_date)

    def rows(self, start_date: str, end_date: str) -> list[ReportRow]:
        return build_report_rows(self.transactions(start_date, end_date))

    def csv(self, start_date: str, end_date: str) -> tuple[str, str]:
        """Returns (file name, CSV text)."""
        content = export_csv(self.rows(start_date, end_date))
        return report_filename(start_date, end_date, "csv"), content

    def pdf(self, start_date: str, end_date: str) -> tuple[str, bytes]:
        """Returns (file name, PDF bytes)."""
        content = render_pdf(self.rows(start_date, end_date), start_date, end_date)
        return report_filename(start_date, end_date, "pdf"), content


class BackupFlow:
    """Full export and import of both collections."""

    def __init__(
        self,
        store: LedgerStore,
        audit_logger: Optional[AuditLogger] = None,
        backup_version: int = 1,
    ):
        self._store = store
        self._audit_logger = audit_logger
        self._backup_version = backup_version

    def export(self) -> tuple[str, str]:
        """Returns (file name, JSON text)."""
        transactions = self._store.list_transactions()
        goals = self._store.list_goals()
        document = export_backup(transactions, goals, version=self._backup_version)
        if self._audit_logger:
            self._audit_logger.log_backup_exported(len(transactions), len(goals))
        return backup_filename(), dumps_backup(document)

    def restore(self, raw: Union[str, bytes, dict]) -> tuple[bool, str]:
        """
        Import a backup.

        Returns:
            (success, message). On failure nothing in the store changed.
        """
        try:
            document = parse_backup(raw)
        except BackupImportError as e:
            logger.warning("backup_import_rejected", error=str(e))
            if self._audit_logger:
                self._audit_logger.log_backup_import_failed(str(e))
            return False, f"Erro ao importar backup: {e}"

        replaced = apply_backup(self._store, document)
        if self._audit_logger:
            self._audit_logger.log_backup_imported(
                replaced=replaced,
                transaction_count=len(document.transactions) if document.transactions is not None else None,
                goal_count=len(document.goals) if document.goals is not None else None,
            )

        parts = []
        if document.transactions is not None:
            parts.append(f"{len(document.transactions)} transações")
        if document.goals is not None:
            parts.append(f"{len(document.goals)} metas")
        return True, "Backup importado: " + " e ".join(parts) + "."


# =============================================================================
# FACTORY
# =============================================================================

class AppComponents(NamedTuple):
    store: LedgerStore
    repository: LedgerRepository
    audit_logger: AuditLogger
    transactions: TransactionFlow
    goals: GoalFlow
    dashboard: DashboardFlow
    advisory: AdvisoryFlow
    receipts: ReceiptFlow
    reports: ReportFlow
    backup: BackupFlow
    save_executor: Optional[ThreadPoolExecutor] = None


def create_key_value_store(storage: StorageSettings) -> KeyValueStoreInterface:
    """
    Build the configured key-value backend.

    Google Sheets falls back to local JSON files when it cannot be set up.
    """
    if storage.backend == "memory":
        return InMemoryKeyValueStore()

    if storage.backend == "google_sheets":
        try:
            from finance_tracker.services.storage.google_sheets import (
                GoogleSheetsClient,
                GoogleSheetsKeyValueStore,
            )
            return GoogleSheetsKeyValueStore(GoogleSheetsClient())
        except Exception as e:
            logger.warning(
                "google_sheets_unavailable",
                error=str(e),
                fallback=str(storage.data_dir),
            )

    return JsonFileKeyValueStore(storage.data_dir)


def create_app_components(
    settings: Optional[Settings] = None,
    kv_store: Optional[KeyValueStoreInterface] = None,
) -> AppComponents:
    """
    Factory function to create all application components.

    Args:
        settings: Defaults to the cached environment settings
        kv_store: Overrides the configured storage backend (tests)
    """
    settings = settings or get_settings()
    app_settings = settings.app
    storage_settings = settings.storage

    configure_logging(app_settings.log_level)
    audit_logger = AuditLogger()

    repository = LedgerRepository(
        kv_store or create_key_value_store(storage_settings),
        transactions_key=storage_settings.transactions_key,
        goals_key=storage_settings.goals_key,
        audit_logger=audit_logger,
    )
    save_executor = (
        ThreadPoolExecutor(max_workers=1, thread_name_prefix="ledger-save")
        if storage_settings.background_saves
        else None
    )
    store = load_store(repository, executor=save_executor)

    return AppComponents(
        store=store,
        repository=repository,
        audit_logger=audit_logger,
        transactions=TransactionFlow(
            store,
            validator=TransactionValidator(app_settings),
            audit_logger=audit_logger,
        ),
        goals=GoalFlow(store, audit_logger=audit_logger),
        dashboard=DashboardFlow(store, history_month_count=app_settings.history_month_count),
        advisory=AdvisoryFlow(audit_logger=audit_logger),
        receipts=ReceiptFlow(audit_logger=audit_logger, settings=app_settings),
        reports=ReportFlow(store),
        backup=BackupFlow(
            store,
            audit_logger=audit_logger,
            backup_version=app_settings.backup_version,
        ),
        save_executor=save_executor,
    )
