"""
Core Data Models for Wallet Ledger

These models define the schemas for everything the ledger engine owns.
They are designed to:
1. Be immutable once built (the engine replaces records, nobody edits them)
2. Accept both the canonical camelCase and the legacy snake_case names
3. Coerce money permissively (a bad number becomes zero, not an error)
4. Serialize to the same JSON shape the wallet has always exported

DESIGN DECISION: Internally every field has ONE name (snake_case
attributes). The camelCase form exists only as the serialization alias,
and the snake_case form doubles as the remote row column name.
"""

from datetime import date, datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Annotated, Any, Optional
from uuid import uuid4

from pydantic import (
    AfterValidator,
    BaseModel,
    BeforeValidator,
    ConfigDict,
    Field,
    PlainSerializer,
    ValidationInfo,
    field_validator,
)
from pydantic.alias_generators import to_camel

from wallet_ledger.validation import (
    blank_to_none,
    coerce_decimal,
    normalize_business_date,
)


EXPORT_VERSION = "1.0"


def new_record_id() -> str:
    """Fresh, never-reused identifier for an account or transaction."""
    return uuid4().hex


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def isoformat_utc(dt: datetime) -> str:
    """ISO 8601 with millisecond precision and a trailing Z."""
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    else:
        dt = dt.astimezone(timezone.utc)
    return dt.isoformat(timespec="milliseconds").replace("+00:00", "Z")


def today_iso() -> str:
    return date.today().isoformat()


def _id_to_str(value: Any) -> Any:
    # Older exports used numeric millisecond ids
    if isinstance(value, int) and not isinstance(value, bool):
        return str(value)
    return value


def _none_to_empty(value: Any) -> Any:
    return "" if value is None else value


def _missing_timestamp(value: Any) -> Any:
    if value is None or (isinstance(value, str) and not value.strip()):
        return utc_now()
    return value


def _money_to_json(value: Decimal) -> Any:
    # A float only when it reads back as the same Decimal, else a string
    as_float = float(value)
    if Decimal(repr(as_float)) == value:
        return as_float
    return str(value)


def _optional_business_date(value: Any) -> Optional[str]:
    if blank_to_none(value) is None:
        return None
    return normalize_business_date(value)


def _ensure_utc(value: datetime) -> datetime:
    # Legacy records may carry naive timestamps; read them as UTC
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


# =============================================================================
# FIELD TYPES
# =============================================================================

Money = Annotated[
    Decimal,
    BeforeValidator(coerce_decimal),
    PlainSerializer(_money_to_json, when_used="json"),
]
NonNegativeMoney = Annotated[Money, Field(ge=0)]
# Legacy records sometimes carry signed amounts; the type holds the sign
MagnitudeMoney = Annotated[Money, AfterValidator(abs)]
RecordId = Annotated[str, BeforeValidator(_id_to_str), Field(min_length=1)]
OptionalText = Annotated[Optional[str], BeforeValidator(blank_to_none)]
Text = Annotated[str, BeforeValidator(_none_to_empty)]
BusinessDate = Annotated[str, BeforeValidator(normalize_business_date)]
OptionalBusinessDate = Annotated[Optional[str], BeforeValidator(_optional_business_date)]
Timestamp = Annotated[
    datetime,
    BeforeValidator(_missing_timestamp),
    AfterValidator(_ensure_utc),
]


# =============================================================================
# ENUMS
# =============================================================================

class TransactionType(str, Enum):
    """
    Direction of a transaction.

    The amount is always stored as a positive magnitude; the type
    decides whether it adds to or subtracts from the account.
    """
    INCOME = "income"
    EXPENSE = "expense"

    def signed(self, amount: Decimal) -> Decimal:
        """Balance delta this type produces for the given magnitude."""
        return amount if self is TransactionType.INCOME else -amount


# =============================================================================
# LEDGER RECORDS
# =============================================================================

class LedgerRecord(BaseModel):
    """Shared configuration for every persisted ledger record."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        frozen=True,
        str_strip_whitespace=True,
        extra="ignore",
    )

    def to_record(self) -> dict:
        """Canonical JSON-compatible form (camelCase keys)."""
        return self.model_dump(mode="json", by_alias=True)


class Account(LedgerRecord):
    """
    A named, balance-holding account.

    `balance` is the running total and the single source of truth for
    how much money the account holds right now.
    """

    id: RecordId = Field(default_factory=new_record_id)
    name: str = Field(
        ...,
        min_length=1,
        description="User supplied label",
    )
    balance: Money = Field(
        default=Decimal("0"),
        description="Current running balance",
    )
    created_at: Timestamp = Field(default_factory=utc_now)
    owner_id: OptionalText = Field(
        default=None,
        description="Remote identity owning this account, absent in local mode",
    )


class Transaction(LedgerRecord):
    """
    A single income or expense event against one account.

    `account_name` and `balance_after` are snapshots taken at the last
    write. They are refreshed by the engine, never trusted as inputs.
    """

    id: RecordId = Field(default_factory=new_record_id)
    type: TransactionType
    amount: MagnitudeMoney = Decimal("0")
    description: Text = ""
    account_id: RecordId
    account_name: Text = ""
    category: OptionalText = Field(
        default=None,
        description="Expense category, always empty for income",
    )
    date: BusinessDate = Field(
        default_factory=today_iso,
        description="Business date (YYYY-MM-DD)",
    )
    created_at: Timestamp = Field(default_factory=utc_now)
    balance_after: Money = Field(
        default=Decimal("0"),
        description="Owning account balance right after this transaction",
    )

    @field_validator("category")
    @classmethod
    def drop_income_category(
        cls, v: Optional[str], info: ValidationInfo
    ) -> Optional[str]:
        """Categories only mean something for expenses."""
        if info.data.get("type") is TransactionType.INCOME:
            return None
        return v

    @property
    def signed_amount(self) -> Decimal:
        """The delta this transaction applies to its account."""
        return self.type.signed(self.amount)


class TransactionUpdate(LedgerRecord):
    """
    Partial update for an existing transaction.

    Only fields that are explicitly provided are merged. Snapshot fields
    (account_name, balance_after) are not accepted here.
    """

    model_config = ConfigDict(frozen=False)

    type: Optional[TransactionType] = None
    amount: Optional[NonNegativeMoney] = None
    description: Optional[str] = None
    account_id: Optional[RecordId] = None
    category: OptionalText = None
    date: Optional[BusinessDate] = None

    def changes(self) -> dict[str, Any]:
        """Provided fields, keyed by attribute name."""
        provided = self.model_dump(exclude_unset=True)
        # Only category may be cleared; a None anywhere else means "keep"
        return {
            key: value
            for key, value in provided.items()
            if value is not None or key == "category"
        }


class TransactionFilters(LedgerRecord):
    """
    Filter options for listing transactions.

    Empty strings mean "no filter", as sent by a cleared filter form.
    """

    account_id: OptionalText = None
    type: Annotated[Optional[TransactionType], BeforeValidator(blank_to_none)] = None
    date_start: OptionalBusinessDate = None
    date_end: OptionalBusinessDate = None


# =============================================================================
# COLLECTION-LEVEL MODELS
# =============================================================================

class LedgerSnapshot(BaseModel):
    """Both collections as loaded from a storage backend."""

    model_config = ConfigDict(frozen=True)

    accounts: list[Account] = Field(default_factory=list)
    transactions: list[Transaction] = Field(default_factory=list)


class LedgerChange(BaseModel):
    """
    The rows affected by one mutating operation.

    Local storage ignores this (it always rewrites everything). The
    remote mirror uses it to upsert or delete only what changed.
    """

    model_config = ConfigDict(frozen=True)

    upserted_accounts: list[Account] = Field(default_factory=list)
    upserted_transactions: list[Transaction] = Field(default_factory=list)
    deleted_account_ids: list[str] = Field(default_factory=list)
    deleted_transaction_ids: list[str] = Field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return not (
            self.upserted_accounts
            or self.upserted_transactions
            or self.deleted_account_ids
            or self.deleted_transaction_ids
        )


class LedgerExport(LedgerRecord):
    """
    Immutable export of the whole ledger.

    Serializes to the backup file format:
    {accounts, transactions, exportDate, version}
    """

    accounts: list[Account] = Field(default_factory=list)
    transactions: list[Transaction] = Field(default_factory=list)
    export_date: str = Field(default_factory=lambda: isoformat_utc(utc_now()))
    version: str = EXPORT_VERSION

    def to_json(self) -> str:
        """Pretty-printed JSON in the canonical naming."""
        return self.model_dump_json(by_alias=True, indent=2)
