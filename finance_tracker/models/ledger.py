"""
Core Data Models for Finance Tracker

These models define the strict schemas for all data flowing through the system.
They are designed to:
1. Enforce type safety at runtime
2. Provide clear validation error messages
3. Serialize to the same JSON shape the collections are stored in
4. Keep derived values (summaries, groupings) separate from stored entities

DESIGN DECISION: Dates are kept as ISO `YYYY-MM-DD` strings and compared
lexically. A calendar date has no time zone, and parsing it into a
timestamp is how period filters end up off by one day.

DESIGN DECISION: Field names are snake_case in Python and camelCase on the
wire (`goalId`, `targetAmount`), so stored collections and backups keep the
shape the browser version of the app wrote.
"""

from datetime import date, datetime
from decimal import ROUND_HALF_UP, Decimal
from enum import Enum
from typing import Annotated, Optional
from uuid import uuid4

from pydantic import (
    AfterValidator,
    BaseModel,
    ConfigDict,
    Field,
    PlainSerializer,
    field_validator,
)
from pydantic.alias_generators import to_camel


CENT = Decimal("0.01")

# Largest amount a ledger record can hold
MAX_AMOUNT = Decimal("999999999999.99")


def _to_cents(value: Decimal) -> Decimal:
    """Round a monetary value to two decimal places."""
    if not value.is_finite() or abs(value) > MAX_AMOUNT:
        raise ValueError(f"Amount out of range: {value}")
    return value.quantize(CENT, rounding=ROUND_HALF_UP)


# Monetary amounts: Decimal in memory, a plain JSON number on the wire
Money = Annotated[
    Decimal,
    AfterValidator(_to_cents),
    PlainSerializer(lambda v: float(v), return_type=float, when_used="json"),
]


def parse_iso_date(value: str) -> date:
    """Parse a `YYYY-MM-DD` string, raising ValueError when malformed."""
    if len(value) != 10:
        raise ValueError(f"Date must be in YYYY-MM-DD format: {value!r}")
    return date.fromisoformat(value)


def new_id() -> str:
    """Generate a fresh entity identifier."""
    return str(uuid4())


# =============================================================================
# ENUMS - Finite set of valid values
# =============================================================================

class TransactionType(str, Enum):
    """
    Mutually exclusive transaction classification.

    INVESTMENT is money moved toward savings; it is the only type
    that can be linked to a Goal.
    """
    INCOME = "INCOME"
    FIXED_EXPENSE = "FIXED_EXPENSE"
    VARIABLE_EXPENSE = "VARIABLE_EXPENSE"
    INVESTMENT = "INVESTMENT"

    @property
    def label(self) -> str:
        return TYPE_LABELS[self]

    @property
    def is_expense(self) -> bool:
        return self in (TransactionType.FIXED_EXPENSE, TransactionType.VARIABLE_EXPENSE)


TYPE_LABELS = {
    TransactionType.INCOME: "Receita",
    TransactionType.FIXED_EXPENSE: "Despesa Fixa",
    TransactionType.VARIABLE_EXPENSE: "Despesa Variável",
    TransactionType.INVESTMENT: "Investimento/Poupança",
}


class TransactionCategory(str, Enum):
    """
    Fixed category taxonomy.

    The values are the labels users see and the strings stored on disk.
    """
    # Broad categories
    HOUSING = "Moradia/Habitação"
    FOOD = "Alimentação"
    HEALTH = "Saúde"
    TRANSPORT = "Transporte"
    EDUCATION = "Educação"
    PERSONAL_LEISURE = "Despesas Pessoais e Lazer"
    DEBTS_FINANCIAL = "Dívidas e Serviços Financeiros"
    INVESTMENTS_SAVINGS = "Investimentos/Poupança"
    UNCATEGORIZED = "Não Categorizado"
    INCOME_SOURCE = "Fonte de Renda"

    # Detailed variable expenses
    SUPERMARKET_PURCHASES = "Compras de supermercado"
    EATING_OUT = "Refeições fora de casa"
    CINEMA = "Cinema"
    RESTAURANTS = "Restaurantes"
    RECREATIONAL_ACTIVITIES = "Atividades recreativas"
    CLOTHING_FOOTWEAR = "Compras de roupas e calçados"
    FOOD_DELIVERY = "Entrega de comida ao domicílio"
    FUEL = "Combustível"
    PUBLIC_TRANSPORT = "Transporte público"
    VEHICLE_MAINTENANCE = "Manutenção do veículo"
    GIFTS = "Presentes"

    # Detailed fixed expenses
    RENT_HOME_LOAN = "Aluguel ou prestação da casa"
    CONDOMINIUM_FEE = "Condomínio"
    UTILITIES = "Contas de água, luz e gás"
    INTERNET_PHONE = "Internet e telefone"
    LOAN_PAYMENTS = "Pagamentos de empréstimos"
    STREAMING_SUBSCRIPTIONS = "Assinaturas de sites de streaming ou canais pagos"
    HOME_CAR_INSURANCE = "Seguro residencial ou do carro"
    CLUB_MEMBERSHIPS = "Clubes e taxas de adesão"
    SCHOOL_UNIVERSITY_FEES = "Mensalidade de escolas ou faculdades"


INCOME_CATEGORIES = (
    TransactionCategory.INCOME_SOURCE,
    TransactionCategory.UNCATEGORIZED,
)

EXPENSE_CATEGORIES = tuple(
    category for category in TransactionCategory
    if category is not TransactionCategory.INCOME_SOURCE
)


def categories_for(transaction_type: TransactionType) -> tuple[TransactionCategory, ...]:
    """Categories a transaction of the given type may use."""
    if transaction_type == TransactionType.INCOME:
        return INCOME_CATEGORIES
    return EXPENSE_CATEGORIES


def default_category_for(transaction_type: TransactionType) -> TransactionCategory:
    """Category a form falls back to when the type changes."""
    if transaction_type == TransactionType.INCOME:
        return TransactionCategory.INCOME_SOURCE
    if transaction_type == TransactionType.INVESTMENT:
        return TransactionCategory.INVESTMENTS_SAVINGS
    return TransactionCategory.UNCATEGORIZED


def match_category(text: Optional[str]) -> Optional[TransactionCategory]:
    """
    Loosely match free text against the taxonomy.

    Exact value first, then the first category whose label contains
    the text (case-insensitive). Returns None when nothing matches.
    """
    if not text or not text.strip():
        return None
    needle = text.strip()
    for category in TransactionCategory:
        if category.value == needle:
            return category
    lowered = needle.lower()
    for category in TransactionCategory:
        if lowered in category.value.lower():
            return category
    return None


# =============================================================================
# STORED ENTITIES
# =============================================================================

class LedgerModel(BaseModel):
    """Base for models that are stored or exchanged as camelCase JSON."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        str_strip_whitespace=True,
    )

    def to_storage_dict(self) -> dict:
        """JSON-ready dict in the stored (camelCase) shape."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class Transaction(LedgerModel):
    """
    A single dated money movement.

    Positivity of `amount` and a non-empty description are enforced
    when a form is validated, not here, so older stored records
    still load.
    """

    id: str = Field(
        default_factory=new_id,
        min_length=1,
        description="Unique, immutable identifier"
    )
    description: str = Field(
        default="",
        max_length=500,
    )
    amount: Annotated[Money, Field(ge=0)]
    date: str = Field(
        ...,
        description="Calendar date as YYYY-MM-DD"
    )
    type: TransactionType
    category: TransactionCategory = TransactionCategory.UNCATEGORIZED
    document_url: Optional[str] = Field(
        default=None,
        description="Opaque reference to an attached receipt"
    )
    goal_id: Optional[str] = Field(
        default=None,
        description="Linked goal; only meaningful for investments"
    )

    @field_validator('date')
    @classmethod
    def validate_date(cls, v: str) -> str:
        parse_iso_date(v)
        return v

    @field_validator('goal_id', 'document_url')
    @classmethod
    def empty_as_none(cls, v: Optional[str]) -> Optional[str]:
        return v or None

    @property
    def year(self) -> int:
        return int(self.date[:4])

    @property
    def month(self) -> int:
        """Month number, 1-12."""
        return int(self.date[5:7])

    @property
    def is_linked_investment(self) -> bool:
        return self.type == TransactionType.INVESTMENT and bool(self.goal_id)


class Goal(LedgerModel):
    """
    A named savings target.

    `current_amount` is moved by the goal-sync engine and by direct
    user edits; it never drops below zero.
    """

    id: str = Field(
        default_factory=new_id,
        min_length=1,
    )
    name: str = Field(
        default="",
        max_length=200,
    )
    target_amount: Annotated[Money, Field(ge=0)]
    current_amount: Annotated[Money, Field(ge=0)] = Decimal("0")
    deadline: str = Field(
        ...,
        description="Target date as YYYY-MM-DD"
    )
    notes: str = Field(
        default="",
        max_length=1000,
    )

    @field_validator('deadline')
    @classmethod
    def validate_deadline(cls, v: str) -> str:
        parse_iso_date(v)
        return v


# =============================================================================
# DERIVED VALUES (never persisted)
# =============================================================================

class Summary(LedgerModel):
    """Per-period totals, recomputed from the transaction log on every request."""

    total_income: Decimal = Decimal("0")
    total_fixed_expenses: Decimal = Decimal("0")
    total_variable_expenses: Decimal = Decimal("0")
    total_investments: Decimal = Decimal("0")
    net_balance: Decimal = Decimal("0")

    @property
    def total_expenses(self) -> Decimal:
        return self.total_fixed_expenses + self.total_variable_expenses


class CategoryTotal(BaseModel):
    """One slice of the expenses-by-category chart."""

    category: TransactionCategory
    total: Decimal


class TypeTotal(BaseModel):
    """One slice of the expenses-by-type chart."""

    type: TransactionType
    total: Decimal

    @property
    def label(self) -> str:
        return self.type.label


class MonthlyBucket(BaseModel):
    """Income/expense/investment totals for one calendar month."""

    year: int
    month: int = Field(ge=1, le=12)
    income: Decimal = Decimal("0")
    expense: Decimal = Decimal("0")
    investment: Decimal = Decimal("0")

    @property
    def key(self) -> str:
        return f"{self.year:04d}-{self.month:02d}"

    @property
    def label(self) -> str:
        """Short chart label, e.g. `03/25`."""
        return f"{self.month:02d}/{self.year % 100:02d}"


class GoalProgress(BaseModel):
    """Progress of a goal toward its target."""

    goal_id: str
    name: str
    current_amount: Decimal
    target_amount: Decimal
    percentage: float = Field(
        ge=0.0,
        description="Progress in percent, not clamped"
    )
    is_completed: bool
    remaining: Decimal = Field(
        description="Amount still missing, never negative"
    )

    @property
    def bar_width(self) -> float:
        """Percentage clamped to [0, 100] for progress bars."""
        return min(100.0, max(0.0, self.percentage))


class ReportRow(BaseModel):
    """One transaction formatted for a report table."""

    date: str
    description: str
    type_label: str
    category: str
    amount: str


# =============================================================================
# FORM INPUT
# =============================================================================

class TransactionDraft(BaseModel):
    """
    What a transaction form submits.

    Deliberately lenient: an empty description or a zero amount is
    representable here so the validator can report it.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    description: str = ""
    amount: Decimal = Decimal("0")
    date: str
    type: TransactionType = TransactionType.VARIABLE_EXPENSE
    category: TransactionCategory = TransactionCategory.UNCATEGORIZED
    document_url: Optional[str] = None
    goal_id: Optional[str] = Field(
        default=None,
        description="Goal selected in the form (investments only)"
    )


class GoalDraft(BaseModel):
    """What a goal form submits."""
    model_config = ConfigDict(str_strip_whitespace=True)

    name: str = ""
    target_amount: Decimal = Decimal("0")
    current_amount: Decimal = Decimal("0")
    deadline: str
    notes: str = ""


# =============================================================================
# VALIDATION MODELS
# =============================================================================

class ValidationIssue(BaseModel):
    """A single validation issue found."""

    field: str = Field(
        ...,
        description="Field with the issue"
    )
    issue_type: str = Field(
        ...,
        description="Type of issue (e.g., 'missing', 'invalid_value', 'suspicious_value')"
    )
    message: str = Field(
        ...,
        description="Human-readable description of the issue"
    )
    severity: str = Field(
        ...,
        pattern="^(error|warning|info)$",
        description="Issue severity"
    )
    suggested_fix: Optional[str] = None


class ValidationResult(BaseModel):
    """
    Result of validating a form draft.

    Errors block the save; warnings are shown but do not.
    """

    validated_at: datetime = Field(
        default_factory=datetime.utcnow
    )
    issues: list[ValidationIssue] = Field(
        default_factory=list,
    )

    @property
    def is_valid(self) -> bool:
        return not self.has_errors

    @property
    def has_errors(self) -> bool:
        """Check if there are any error-level issues."""
        return any(issue.severity == "error" for issue in self.issues)

    @property
    def error_count(self) -> int:
        """Count error-level issues."""
        return sum(1 for issue in self.issues if issue.severity == "error")

    @property
    def warnings(self) -> list[str]:
        return [issue.message for issue in self.issues if issue.severity == "warning"]


# =============================================================================
# EXTERNAL EXCHANGE
# =============================================================================

class ImageQuality(str, Enum):
    """Receipt photo quality assessment result."""
    GOOD = "good"
    ACCEPTABLE = "acceptable"
    POOR = "poor"  # Sent anyway, the user is warned
    UNUSABLE = "unusable"  # Not sent for extraction


class ImageQualityReport(BaseModel):
    """Outcome of checking a receipt photo before extraction."""

    quality: ImageQuality
    score: float = Field(
        ge=0.0,
        le=1.0,
        description="Quality score (0-1)"
    )
    issues: list[str] = Field(
        default_factory=list,
        description="Problems found, in Portuguese, shown to the user"
    )

    @property
    def is_usable(self) -> bool:
        return self.quality != ImageQuality.UNUSABLE


class ReceiptExtraction(BaseModel):
    """
    Fields read from a receipt image.

    CRITICAL: This is PROPOSED data. It only pre-fills the form;
    the user still submits it through normal validation.
    """

    description: Optional[str] = None
    amount: Optional[Decimal] = Field(
        default=None,
        ge=0,
    )
    date: Optional[str] = None
    category: Optional[TransactionCategory] = None
    raw_category: Optional[str] = Field(
        default=None,
        description="Category text as returned, before matching"
    )

    @property
    def is_empty(self) -> bool:
        return (
            not self.description
            and self.amount is None
            and self.date is None
            and self.category is None
        )

    def apply_to(self, draft: TransactionDraft) -> TransactionDraft:
        """Return a copy of the draft with every extracted field filled in."""
        updates = {}
        if self.description:
            updates["description"] = self.description
        if self.amount:
            updates["amount"] = self.amount
        if self.date:
            updates["date"] = self.date
        if self.category:
            updates["category"] = self.category
        return draft.model_copy(update=updates)


class BackupDocument(LedgerModel):
    """
    Full export of both collections.

    On import, a key that is missing (or not a list) leaves the
    matching collection untouched.
    """

    transactions: Optional[list[Transaction]] = None
    goals: Optional[list[Goal]] = None
    exported_at: Optional[datetime] = None
    version: int = 1
