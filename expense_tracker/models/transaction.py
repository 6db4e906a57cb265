"""
Core Data Models for Expense Tracker

These models define the strict schemas for all data flowing through the system.
They are designed to:
1. Enforce type safety at runtime
2. Provide clear validation error messages
3. Be serializable for storage and logging
4. Support the audit trail

DESIGN DECISION: Amounts are Decimal with two fractional digits.
Floats are converted once, at the ingestion boundary, and never summed.
"""

from datetime import date, datetime, time
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    field_validator,
    model_validator,
)


CENTS = Decimal("0.01")


# =============================================================================
# ENUMS - Finite set of valid values
# =============================================================================

class TransactionKind(str, Enum):
    """
    Direction of a transaction.

    The sign of an amount is never stored; it comes from the kind.
    """
    INCOME = "income"
    EXPENSE = "expense"


class IncomeCategory(str, Enum):
    """Categories available for income transactions."""
    SALARY = "Salary"
    FREELANCE = "Freelance"
    INVESTMENTS = "Investments"
    BUSINESS = "Business"
    OTHER_INCOME = "Other Income"


class ExpenseCategory(str, Enum):
    """Categories available for expense transactions."""
    FOOD = "Food"
    TRANSPORTATION = "Transportation"
    HOUSING = "Housing"
    UTILITIES = "Utilities"
    ENTERTAINMENT = "Entertainment"
    HEALTHCARE = "Healthcare"
    SHOPPING = "Shopping"
    OTHER = "Other"


def categories_for(kind: TransactionKind) -> list[str]:
    """Category labels allowed for the given kind, in display order."""
    if TransactionKind(kind) == TransactionKind.INCOME:
        return [c.value for c in IncomeCategory]
    return [c.value for c in ExpenseCategory]


def coerce_amount(value: Any) -> Decimal:
    """
    Convert user or store input into a two-place Decimal.

    Accepts Decimal, int, float and numeric strings.
    Raises ValueError for anything that is not a finite number.
    """
    if isinstance(value, bool):
        raise ValueError("Amount must be a number")
    if isinstance(value, Decimal):
        amount = value
    elif isinstance(value, (int, float)):
        amount = Decimal(str(value))
    elif isinstance(value, str):
        try:
            amount = Decimal(value.strip().replace(",", ""))
        except InvalidOperation:
            raise ValueError(f"Amount must be a number, got {value!r}")
    else:
        raise ValueError(f"Amount must be a number, got {type(value).__name__}")

    if not amount.is_finite():
        raise ValueError("Amount must be a finite number")

    try:
        return amount.quantize(CENTS, rounding=ROUND_HALF_UP)
    except InvalidOperation:
        raise ValueError(f"Amount {value!r} is too large")


def _coerce_occurred_at(value: Any) -> Any:
    """
    Normalize an entered timestamp.

    Plain dates become midnight. Timezone offsets are dropped, not
    converted: the wall-clock value the user entered is what we keep.
    """
    if isinstance(value, str):
        value = datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
    if isinstance(value, date) and not isinstance(value, datetime):
        value = datetime.combine(value, time())
    if isinstance(value, datetime) and value.tzinfo is not None:
        value = value.replace(tzinfo=None)
    return value


# =============================================================================
# TRANSACTION MODELS
# =============================================================================

class TransactionDraft(BaseModel):
    """
    Fields a user entered for a new transaction.

    CRITICAL: This is UNVERIFIED input. It must pass TransactionValidator
    before it reaches the store. Only the amount is coerced here, so that
    a non-numeric amount never travels further than the form.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    draft_id: UUID = Field(
        default_factory=uuid4,
        description="Unique ID for this entry attempt"
    )
    kind: TransactionKind
    category: str = Field(
        default="",
        max_length=50,
    )
    amount: Decimal = Field(
        ...,
        description="Amount entered by the user"
    )
    description: str = Field(
        default="",
        max_length=200,
    )
    occurred_at: datetime = Field(
        ...,
        description="When the transaction happened (user supplied)"
    )

    @field_validator('amount', mode='before')
    @classmethod
    def parse_amount(cls, v: Any) -> Decimal:
        return coerce_amount(v)

    @field_validator('occurred_at', mode='before')
    @classmethod
    def parse_occurred_at(cls, v: Any) -> Any:
        return _coerce_occurred_at(v)


class Transaction(BaseModel):
    """
    A stored income or expense record.

    Transactions are immutable once created. There is no update or
    delete: an owner's list only ever grows.
    """
    model_config = ConfigDict(str_strip_whitespace=True, frozen=True)

    # Identity (assigned by the store)
    id: str = Field(
        ...,
        min_length=1,
        description="Opaque identifier assigned by the store"
    )
    owner_id: str = Field(
        ...,
        min_length=1,
        description="Account that owns this transaction"
    )

    kind: TransactionKind
    category: str = Field(
        ...,
        min_length=1,
        max_length=50,
    )
    amount: Decimal = Field(
        ...,
        ge=0,
        decimal_places=2,
        description="Non-negative magnitude; direction comes from kind"
    )
    description: str = Field(
        ...,
        min_length=1,
        max_length=200,
    )
    occurred_at: datetime = Field(
        ...,
        description="When the transaction happened (user supplied)"
    )
    created_at: datetime = Field(
        default_factory=datetime.utcnow,
        description="When the store accepted the transaction"
    )

    @field_validator('amount', mode='before')
    @classmethod
    def parse_amount(cls, v: Any) -> Decimal:
        return coerce_amount(v)

    @field_validator('occurred_at', mode='before')
    @classmethod
    def parse_occurred_at(cls, v: Any) -> Any:
        return _coerce_occurred_at(v)

    @model_validator(mode='after')
    def validate_category(self) -> 'Transaction':
        """Category must belong to the set selected by kind."""
        if self.category not in categories_for(self.kind):
            raise ValueError(
                f"Category '{self.category}' is not a valid {self.kind.value} category"
            )
        return self

    @property
    def is_income(self) -> bool:
        return self.kind == TransactionKind.INCOME

    @property
    def is_expense(self) -> bool:
        return self.kind == TransactionKind.EXPENSE

    @property
    def signed_amount(self) -> Decimal:
        """Amount with the sign implied by kind (expenses negative)."""
        return self.amount if self.is_income else -self.amount


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
    suggested_fix: Optional[str] = Field(
        default=None,
        description="Suggested fix if available"
    )


class ValidationResult(BaseModel):
    """
    Result of the two-stage validation.

    Stage 1: Schema validation (required fields, category membership)
    Stage 2: Semantic validation (suspicious amounts and dates)
    """

    draft_id: UUID = Field(
        ...,
        description="ID of the draft being validated"
    )
    validated_at: datetime = Field(
        default_factory=datetime.utcnow
    )

    schema_valid: bool
    semantic_valid: bool
    is_valid: bool = Field(
        ...,
        description="Overall validation result"
    )

    issues: list[ValidationIssue] = Field(
        default_factory=list,
        description="All validation issues found"
    )

    # Warnings don't block but should be shown
    warnings: list[str] = Field(
        default_factory=list,
        description="Non-blocking warnings"
    )

    @property
    def has_errors(self) -> bool:
        """Check if there are any error-level issues."""
        return any(issue.severity == "error" for issue in self.issues)

    @property
    def error_count(self) -> int:
        """Count error-level issues."""
        return sum(1 for issue in self.issues if issue.severity == "error")
