"""
Two-Stage Form Validation

DESIGN DECISION: Validation happens in two distinct stages:

STAGE 1 - SCHEMA VALIDATION:
- Required fields (description, goal name)
- Amounts between one cent and MAX_AMOUNT
- Date format
- Category allowed for the transaction type
- Goal link points at an existing goal

STAGE 2 - SEMANTIC VALIDATION:
- Dates too far in the future
- Unusually large amounts
- Goal deadlines already past

Stage 2 only runs when stage 1 passes. Errors block the save,
warnings are shown next to the form but do not.

IMPORTANT: Validation NEVER silently fixes issues.
It reports them and nothing enters the store until errors are gone.
"""

from datetime import date, timedelta
from decimal import Decimal
from typing import Optional

from finance_tracker.config import AppSettings, get_settings
from finance_tracker.models.ledger import (
    CENT,
    MAX_AMOUNT,
    Goal,
    GoalDraft,
    TransactionDraft,
    TransactionType,
    ValidationIssue,
    ValidationResult,
    categories_for,
    parse_iso_date,
)


class ValidationFailedError(Exception):
    """A draft had error-level issues and was not saved."""

    def __init__(self, result: ValidationResult):
        self.result = result
        messages = [issue.message for issue in result.issues if issue.severity == "error"]
        super().__init__("; ".join(messages) or "Validation failed")


def _check_date(value: str, field: str, label: str) -> Optional[ValidationIssue]:
    try:
        parse_iso_date(value)
    except (TypeError, ValueError):
        return ValidationIssue(
            field=field,
            issue_type="invalid_format",
            message=f"{label} inválida: use o formato AAAA-MM-DD",
            severity="error",
        )
    return None


def _amount_out_of_range(field: str, label: str) -> ValidationIssue:
    return ValidationIssue(
        field=field,
        issue_type="out_of_range",
        message=f"{label} excede o limite de R$ {MAX_AMOUNT:,.2f}",
        severity="error",
        suggested_fix="Confira os dígitos do valor",
    )


class TransactionValidator:
    """
    Validates a transaction form draft.

    Stage 1 needs the goal collection only to check goal links.
    """

    def __init__(self, settings: Optional[AppSettings] = None):
        self._settings = settings or get_settings().app

    def _validate_schema(
        self,
        draft: TransactionDraft,
        goals: list[Goal],
    ) -> tuple[bool, list[ValidationIssue]]:
        issues = []

        if not draft.description:
            issues.append(ValidationIssue(
                field="description",
                issue_type="missing",
                message="Preencha a descrição",
                severity="error",
            ))

        if draft.amount < CENT:
            issues.append(ValidationIssue(
                field="amount",
                issue_type="invalid_value",
                message="O valor deve ser maior que zero",
                severity="error",
                suggested_fix="Informe um valor de pelo menos R$ 0,01",
            ))
        elif draft.amount > MAX_AMOUNT:
            issues.append(_amount_out_of_range("amount", "O valor"))

        date_issue = _check_date(draft.date, "date", "Data")
        if date_issue:
            issues.append(date_issue)

        if draft.category not in categories_for(draft.type):
            issues.append(ValidationIssue(
                field="category",
                issue_type="invalid_value",
                message=(
                    f"A categoria '{draft.category.value}' não se aplica "
                    f"a {draft.type.label}"
                ),
                severity="error",
                suggested_fix="Escolha uma categoria da lista",
            ))

        if draft.goal_id:
            if draft.type != TransactionType.INVESTMENT:
                issues.append(ValidationIssue(
                    field="goal_id",
                    issue_type="invalid_value",
                    message="Apenas investimentos podem ser vinculados a uma meta",
                    severity="error",
                ))
            elif not any(goal.id == draft.goal_id for goal in goals):
                issues.append(ValidationIssue(
                    field="goal_id",
                    issue_type="not_found",
                    message="A meta selecionada não existe mais",
                    severity="error",
                    suggested_fix="Selecione outra meta ou nenhuma",
                ))

        is_valid = not any(issue.severity == "error" for issue in issues)
        return is_valid, issues

    def _validate_semantic(
        self,
        draft: TransactionDraft,
        today: date,
    ) -> list[ValidationIssue]:
        issues = []

        max_future_date = today + timedelta(days=self._settings.future_date_tolerance_days)
        if parse_iso_date(draft.date) > max_future_date:
            issues.append(ValidationIssue(
                field="date",
                issue_type="future_date",
                message=f"A data ({draft.date}) está muito no futuro",
                severity="warning",
                suggested_fix="Confira se a data está correta",
            ))

        max_amount = Decimal(str(self._settings.max_transaction_amount))
        if draft.amount > max_amount:
            issues.append(ValidationIssue(
                field="amount",
                issue_type="suspicious_value",
                message=f"O valor (R$ {draft.amount:,.2f}) parece alto demais",
                severity="warning",
                suggested_fix="Confira se o valor está correto",
            ))

        return issues

    def validate(
        self,
        draft: TransactionDraft,
        goals: Optional[list[Goal]] = None,
        today: Optional[date] = None,
    ) -> ValidationResult:
        """
        Run the two-stage validation.

        Args:
            draft: Submitted form
            goals: Current goals, used to check the goal link
            today: Reference date for the future-date check
        """
        schema_valid, issues = self._validate_schema(draft, goals or [])
        if schema_valid:
            issues.extend(self._validate_semantic(draft, today or date.today()))
        return ValidationResult(issues=issues)


class GoalValidator:
    """Validates a goal form draft."""

    def validate(
        self,
        draft: GoalDraft,
        today: Optional[date] = None,
    ) -> ValidationResult:
        issues = []

        if not draft.name:
            issues.append(ValidationIssue(
                field="name",
                issue_type="missing",
                message="Preencha o nome da meta",
                severity="error",
            ))

        if draft.target_amount < CENT:
            issues.append(ValidationIssue(
                field="target_amount",
                issue_type="invalid_value",
                message="O valor alvo deve ser maior que zero",
                severity="error",
            ))
        elif draft.target_amount > MAX_AMOUNT:
            issues.append(_amount_out_of_range("target_amount", "O valor alvo"))

        if draft.current_amount < 0:
            issues.append(ValidationIssue(
                field="current_amount",
                issue_type="invalid_value",
                message="O valor atual não pode ser negativo",
                severity="error",
            ))
        elif draft.current_amount > MAX_AMOUNT:
            issues.append(_amount_out_of_range("current_amount", "O valor atual"))

        date_issue = _check_date(draft.deadline, "deadline", "Data limite")
        if date_issue:
            issues.append(date_issue)

        if not any(issue.severity == "error" for issue in issues):
            today = today or date.today()
            if parse_iso_date(draft.deadline) < today:
                issues.append(ValidationIssue(
                    field="deadline",
                    issue_type="past_date",
                    message="A data limite já passou",
                    severity="warning",
                ))

        return ValidationResult(issues=issues)


def get_user_friendly_summary(result: ValidationResult) -> str:
    """
    Summary of a validation result for display next to the form.

    This is what we show to non-technical users.
    """
    if result.is_valid and not result.warnings:
        return "✅ Tudo certo!"

    lines = []

    if result.has_errors:
        lines.append("❌ Corrija os seguintes campos:")
        for issue in result.issues:
            if issue.severity == "error":
                lines.append(f"   • {issue.message}")
                if issue.suggested_fix:
                    lines.append(f"     💡 {issue.suggested_fix}")

    if result.warnings:
        if lines:
            lines.append("")
        lines.append("⚠️ Verifique:")
        for warning in result.warnings:
            lines.append(f"   • {warning}")

    return "\n".join(lines)
