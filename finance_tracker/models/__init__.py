"""
Data Models Package

This package contains all Pydantic models used in the Finance Tracker.
All data flowing through the system must conform to these schemas.
"""

from finance_tracker.models.ledger import (
    EXPENSE_CATEGORIES,
    MAX_AMOUNT,
    INCOME_CATEGORIES,
    TYPE_LABELS,
    BackupDocument,
    CategoryTotal,
    Goal,
    GoalDraft,
    GoalProgress,
    ImageQuality,
    ImageQualityReport,
    MonthlyBucket,
    ReceiptExtraction,
    ReportRow,
    Summary,
    Transaction,
    TransactionCategory,
    TransactionDraft,
    TransactionType,
    TypeTotal,
    ValidationIssue,
    ValidationResult,
    categories_for,
    default_category_for,
    match_category,
    new_id,
    parse_iso_date,
)
from finance_tracker.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)

__all__ = [
    # Ledger models
    "EXPENSE_CATEGORIES",
    "MAX_AMOUNT",
    "INCOME_CATEGORIES",
    "TYPE_LABELS",
    "BackupDocument",
    "CategoryTotal",
    "Goal",
    "GoalDraft",
    "GoalProgress",
    "ImageQuality",
    "ImageQualityReport",
    "MonthlyBucket",
    "ReceiptExtraction",
    "ReportRow",
    "Summary",
    "Transaction",
    "TransactionCategory",
    "TransactionDraft",
    "TransactionType",
    "TypeTotal",
    "ValidationIssue",
    "ValidationResult",
    "categories_for",
    "default_category_for",
    "match_category",
    "new_id",
    "parse_iso_date",
    # Audit models
    "AuditEvent",
    "AuditEventBuilder",
    "AuditEventType",
    "AuditSeverity",
]
