"""
Ledger core: entity store, goal sync, aggregation, backup and reports.
"""

from finance_tracker.ledger.aggregation import (
    expense_transactions,
    filter_by_date_range,
    goal_progress,
    group_by_category,
    group_by_type,
    month_predicate,
    monthly_history,
    shift_month,
    summarize,
)
from finance_tracker.ledger.backup import (
    BackupImportError,
    apply_backup,
    backup_filename,
    dumps_backup,
    export_backup,
    import_backup,
    parse_backup,
)
from finance_tracker.ledger.goal_sync import (
    apply_investment_sync,
    linked_contributions,
    recompute_goal_amounts,
    retract_contribution,
)
from finance_tracker.ledger.reports import (
    build_report_rows,
    export_csv,
    format_brl,
    render_pdf,
    report_filename,
)
from finance_tracker.ledger.store import (
    GOALS,
    TRANSACTIONS,
    DeletionNotConfirmedError,
    DuplicateEntityError,
    EntityNotFoundError,
    LedgerError,
    LedgerStore,
    load_store,
    persist_on_change,
)

__all__ = [
    # Store
    "GOALS",
    "TRANSACTIONS",
    "DeletionNotConfirmedError",
    "DuplicateEntityError",
    "EntityNotFoundError",
    "LedgerError",
    "LedgerStore",
    "load_store",
    "persist_on_change",
    # Goal sync
    "apply_investment_sync",
    "linked_contributions",
    "recompute_goal_amounts",
    "retract_contribution",
    # Aggregation
    "expense_transactions",
    "filter_by_date_range",
    "goal_progress",
    "group_by_category",
    "group_by_type",
    "month_predicate",
    "monthly_history",
    "shift_month",
    "summarize",
    # Backup
    "BackupImportError",
    "apply_backup",
    "backup_filename",
    "dumps_backup",
    "export_backup",
    "import_backup",
    "parse_backup",
    # Reports
    "build_report_rows",
    "export_csv",
    "format_brl",
    "render_pdf",
    "report_filename",
]
