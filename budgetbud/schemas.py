"""Pydantic models for inputs, tool results and the data export."""
from __future__ import annotations

import datetime as dt
from decimal import Decimal
from typing import Any, List, Optional, Type, TypeVar

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    ValidationError as PydanticValidationError,
    ValidationInfo,
    field_validator,
)

from .config import (
    DEFAULT_CATEGORY_COLOR,
    PAYCHECK_AMOUNT_CEILING,
    PIN_LENGTH,
    PROFILE_THEMES,
    TRANSACTION_AMOUNT_CEILING,
)
from .errors import ValidationError
from .models import PaycheckFrequency

HEX_COLOR_PATTERN = r"^#[0-9A-Fa-f]{6}$"

ModelT = TypeVar("ModelT", bound=BaseModel)


def validate_payload(
    model_cls: Type[ModelT], values: dict[str, Any], *, today: dt.date | None = None
) -> ModelT:
    """Build ``model_cls`` from raw values, raising the domain ``ValidationError``."""

    try:
        return model_cls.model_validate(
            values, context={"today": today or dt.date.today()}
        )
    except PydanticValidationError as exc:
        details = "; ".join(
            f"{'.'.join(str(part) for part in error['loc']) or 'value'}: {error['msg']}"
            for error in exc.errors()
        )
        raise ValidationError(details) from exc


def reject_future_date(value: Optional[dt.date], info: ValidationInfo) -> Optional[dt.date]:
    """Refuse dates after the ``today`` passed in the validation context."""

    if value is None:
        return value
    today = (info.context or {}).get("today") or dt.date.today()
    if value > today:
        raise ValueError("Date cannot be in the future")
    return value


def blank_to_none(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    value = value.strip()
    return value or None


class CategoryCreate(BaseModel):
    """Input for a new category."""

    model_config = ConfigDict(str_strip_whitespace=True)

    name: str = Field(..., min_length=1, max_length=50, description="Category name")
    percentage: Decimal = Field(
        ..., gt=0, le=100, decimal_places=1, description="Share of each paycheck, in percent"
    )
    color: str = Field(
        default=DEFAULT_CATEGORY_COLOR,
        pattern=HEX_COLOR_PATTERN,
        description="Display color as #RRGGBB",
    )

    @field_validator("color")
    @classmethod
    def color_upper(cls, value: str) -> str:
        return value.upper()


class CategoryUpdate(BaseModel):
    """Partial update of a category."""

    model_config = ConfigDict(str_strip_whitespace=True)

    name: Optional[str] = Field(default=None, min_length=1, max_length=50)
    percentage: Optional[Decimal] = Field(default=None, gt=0, le=100, decimal_places=1)
    color: Optional[str] = Field(default=None, pattern=HEX_COLOR_PATTERN)

    @field_validator("color")
    @classmethod
    def color_upper(cls, value: Optional[str]) -> Optional[str]:
        return value.upper() if value is not None else value


class PaycheckCreate(BaseModel):
    """Input for a new paycheck."""

    amount: Decimal = Field(
        ..., gt=0, le=PAYCHECK_AMOUNT_CEILING, decimal_places=2, description="Paycheck amount"
    )
    date: dt.date
    frequency: PaycheckFrequency
    description: Optional[str] = Field(default=None, max_length=500)

    @field_validator("date")
    @classmethod
    def date_not_in_future(cls, value: dt.date, info: ValidationInfo) -> dt.date:
        return reject_future_date(value, info)

    @field_validator("description")
    @classmethod
    def clean_description(cls, value: Optional[str]) -> Optional[str]:
        return blank_to_none(value)


class PaycheckUpdate(BaseModel):
    """Editable paycheck fields; amount and frequency are frozen."""

    date: Optional[dt.date] = None
    description: Optional[str] = Field(default=None, max_length=500)

    @field_validator("date")
    @classmethod
    def date_not_in_future(cls, value: Optional[dt.date], info: ValidationInfo) -> Optional[dt.date]:
        return reject_future_date(value, info)


class TransactionCreate(BaseModel):
    """Input for a new transaction."""

    category_id: int = Field(..., ge=1)
    amount: Decimal = Field(
        ..., gt=0, le=TRANSACTION_AMOUNT_CEILING, decimal_places=2, description="Amount spent"
    )
    date: dt.date
    description: Optional[str] = Field(default=None, max_length=200)

    @field_validator("date")
    @classmethod
    def date_not_in_future(cls, value: dt.date, info: ValidationInfo) -> dt.date:
        return reject_future_date(value, info)

    @field_validator("description")
    @classmethod
    def clean_description(cls, value: Optional[str]) -> Optional[str]:
        return blank_to_none(value)


class PinInput(BaseModel):
    """A numeric PIN of fixed length."""

    pin: str = Field(..., pattern=rf"^\d{{{PIN_LENGTH}}}$")


class ProfileUpdate(BaseModel):
    display_name: Optional[str] = Field(default=None, max_length=100)
    theme: Optional[str] = None

    @field_validator("theme")
    @classmethod
    def known_theme(cls, value: Optional[str]) -> Optional[str]:
        if value is not None and value not in PROFILE_THEMES:
            raise ValueError(f"Theme must be one of: {', '.join(PROFILE_THEMES)}")
        return value


class CategoryRead(BaseModel):
    """Category output model."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    user_id: str
    name: str
    color: str
    percentage: float
    is_active: bool
    created_at: Optional[dt.datetime] = None


class AllocationSummary(BaseModel):
    """Percentages derived from the active categories."""

    total_percentage: float = Field(description="Sum of active category percentages.")
    unallocated_percentage: float = Field(description="Percentage not yet assigned (never negative).")
    category_count: int


class CategoryListResult(BaseModel):
    total: int
    categories: List[CategoryRead] = Field(default_factory=list)
    summary: AllocationSummary


class CategoryRemovalResult(BaseModel):
    category_id: int
    deleted: bool = Field(description="True when the row was removed, False when it was deactivated.")
    message: str


class PaycheckRead(BaseModel):
    """Paycheck output model."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    user_id: str
    amount: float
    date: dt.date
    frequency: PaycheckFrequency
    description: Optional[str] = None
    created_at: Optional[dt.datetime] = None


class AllocationRead(BaseModel):
    """One frozen category budget with the spend derived from transactions."""

    allocation_id: int
    category_id: Optional[int] = Field(
        default=None, description="Source category; None once the category was removed."
    )
    category_name: str
    category_color: str
    percentage: float = Field(description="Category percentage at paycheck creation.")
    budgeted_amount: float
    spent_amount: float
    remaining_amount: float


class PaycheckDetail(PaycheckRead):
    """Paycheck with its allocation breakdown."""

    allocations: List[AllocationRead] = Field(default_factory=list)
    allocated_amount: float = Field(description="Sum of the budgeted amounts.")
    unbudgeted_amount: float = Field(
        description="Paycheck amount not covered by any allocation, never negative."
    )
    total_spent: float


class PaycheckListResult(BaseModel):
    total: int
    paychecks: List[PaycheckRead] = Field(default_factory=list)


class PaycheckDataDeletion(BaseModel):
    deleted_paychecks: int
    deleted_allocations: int
    message: str


class TransactionRead(BaseModel):
    """Transaction output model."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    user_id: str
    category_id: int
    category_name: str
    amount: float
    date: dt.date
    description: Optional[str] = None
    created_at: Optional[dt.datetime] = None


class TransactionListResult(BaseModel):
    total: int
    transactions: List[TransactionRead] = Field(default_factory=list)


class LifetimeAllocation(BaseModel):
    """Budgeted and spent totals across every paycheck, merged by category name."""

    category_id: Optional[int] = None
    category_name: str
    category_color: str
    total_amount: float = Field(description="Sum of budgeted amounts.")
    total_spent: float


class DashboardResult(BaseModel):
    """Everything the dashboard renders in one read."""

    categories: List[CategoryRead] = Field(default_factory=list)
    total_allocated: float
    unallocated: float
    total_budget: float = Field(description="Amount of the latest paycheck.")
    has_budget_version: bool
    latest_paycheck: Optional[PaycheckDetail] = None
    recent_paychecks: List[PaycheckRead] = Field(
        default_factory=list, description="Most recent paychecks ordered oldest to newest."
    )
    lifetime_allocations: List[LifetimeAllocation] = Field(default_factory=list)


class CategorySpending(BaseModel):
    category_id: int
    category_name: str
    category_color: str
    spent: float
    budgeted: float
    percentage: float


class AnalyticsResult(BaseModel):
    spending_by_category: List[CategorySpending] = Field(default_factory=list)
    total_spent: float
    total_budgeted: float
    categories_count: int


class ProfileRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    display_name: Optional[str] = None
    theme: str


class PinVerificationResult(BaseModel):
    user_id: str
    message: str


class OperationResult(BaseModel):
    success: bool = True
    message: str


class ExportMetadata(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    export_date: str = Field(alias="exportDate")
    export_version: str = Field(alias="exportVersion")
    user_id: str = Field(alias="userId")


class ExportProfile(BaseModel):
    display_name: Optional[str] = None
    theme: str


class ExportCategory(BaseModel):
    id: int
    name: str
    percentage: float
    color: str
    is_active: bool


class ExportAllocation(BaseModel):
    category_name: str
    budgeted_amount: float
    spent_amount: float


class ExportPaycheck(BaseModel):
    id: int
    user_id: str
    amount: float
    date: dt.date
    frequency: PaycheckFrequency
    description: Optional[str] = None
    created_at: Optional[dt.datetime] = None
    updated_at: Optional[dt.datetime] = None
    allocations: List[ExportAllocation] = Field(default_factory=list)


class ExportTransaction(BaseModel):
    id: int
    category_name: str
    amount: float
    date: dt.date
    description: Optional[str] = None


class ExportDocument(BaseModel):
    """Plain JSON document offered to the user for download."""

    metadata: ExportMetadata
    profile: ExportProfile
    categories: List[ExportCategory] = Field(default_factory=list)
    paychecks: List[ExportPaycheck] = Field(default_factory=list)
    transactions: List[ExportTransaction] = Field(default_factory=list)


class ExportResult(BaseModel):
    filename: str
    content: str = Field(description="JSON document, pretty printed.")
