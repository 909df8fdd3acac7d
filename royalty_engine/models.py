"""
Domain Models for the Royalty Engine

These dataclasses provide type-safe representations of all business entities.
All monetary values and rates use Decimal for precision.
"""

from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal


def to_decimal(value) -> Decimal:
    return value if isinstance(value, Decimal) else Decimal(str(value))


def parse_date(value) -> date:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    return date.fromisoformat(str(value)[:10])


def parse_datetime(value) -> datetime:
    if isinstance(value, datetime):
        return value
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day)
    text = str(value)
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    return datetime.fromisoformat(text)


def dsp_slug(name: str) -> str:
    """'Apple Music' -> 'apple_music'"""
    return "_".join(name.lower().split())


class StatementStatus:
    """Statement lifecycle states."""
    DRAFT = "draft"
    FINALIZED = "finalized"
    PAID = "paid"
    DISPUTED = "disputed"

    ALL = (DRAFT, FINALIZED, PAID, DISPUTED)


class RecoupmentMode:
    """How available earnings are spread over a user's active accounts."""
    WATERFALL = "waterfall"        # priority order, each account takes its rate of what is left
    PRO_RATA = "pro_rata"          # split by remaining balance, then each rate applies to its share
    OLDEST_FIRST = "oldest_first"  # waterfall ordered by effective_date

    ALL = (WATERFALL, PRO_RATA, OLDEST_FIRST)


# =============================================================================
# REFERENCE DATA (owned by ingestion / admin processes)
# =============================================================================


@dataclass(frozen=True)
class RevenueEvent:
    """A normalized revenue fact reported by a DSP."""

    id: str
    source: str
    source_type: str | None  # territory code
    project_id: str | None
    amount: Decimal
    currency: str
    occurred_at: datetime

    @property
    def territory(self) -> str:
        return self.source_type or "GLOBAL"

    @classmethod
    def from_dict(cls, data: dict) -> "RevenueEvent":
        return cls(
            id=str(data["id"]),
            source=data["source"],
            source_type=data.get("source_type"),
            project_id=data.get("project_id"),
            amount=to_decimal(data["amount"]),
            currency=data.get("currency", "USD"),
            occurred_at=parse_datetime(data["occurred_at"]),
        )


@dataclass(frozen=True)
class DspRate:
    """A dated override of the default per-stream rate."""

    dsp_slug: str
    territory: str
    rate_per_stream: Decimal
    effective_from: date
    effective_to: date | None = None  # None = open-ended
    currency: str = "USD"

    def is_effective_on(self, on_date: date) -> bool:
        if self.effective_from > on_date:
            return False
        return self.effective_to is None or self.effective_to >= on_date

    @classmethod
    def from_dict(cls, data: dict) -> "DspRate":
        effective_to = data.get("effective_to")
        return cls(
            dsp_slug=dsp_slug(data["dsp_slug"]),
            territory=data.get("territory", "GLOBAL"),
            rate_per_stream=to_decimal(data["rate_per_stream"]),
            effective_from=parse_date(data["effective_from"]),
            effective_to=parse_date(effective_to) if effective_to else None,
            currency=data.get("currency", "USD"),
        )


@dataclass(frozen=True)
class ExchangeRate:
    from_currency: str
    to_currency: str
    rate: Decimal
    rate_date: date

    @classmethod
    def from_dict(cls, data: dict) -> "ExchangeRate":
        return cls(
            from_currency=data["from_currency"],
            to_currency=data["to_currency"],
            rate=to_decimal(data["rate"]),
            rate_date=parse_date(data["rate_date"]),
        )


@dataclass(frozen=True)
class RecoupmentTransaction:
    """One entry in an account's ledger: the advance, a recoupment or an adjustment."""

    id: str
    date: datetime
    amount: Decimal
    type: str  # 'advance', 'recoupment' or 'adjustment'
    statement_id: str | None = None
    notes: str = ""

    @classmethod
    def from_dict(cls, data: dict) -> "RecoupmentTransaction":
        return cls(
            id=str(data["id"]),
            date=parse_datetime(data["date"]),
            amount=to_decimal(data["amount"]),
            type=data["type"],
            statement_id=data.get("statement_id"),
            notes=data.get("notes", ""),
        )


@dataclass
class RecoupmentAccount:
    """An advance or loan recouped from a user's earnings.

    recoupment_rate is the share (0-1) of each available amount that may go
    to this account. Lower priority numbers are recouped first.
    """

    id: str
    user_id: str
    remaining_balance: Decimal
    recoupment_rate: Decimal = Decimal("1")
    priority: int = 1
    recouped_amount: Decimal = Decimal("0")
    is_active: bool = True
    fully_recouped_at: datetime | None = None
    account_name: str = ""
    advance_amount: Decimal | None = None
    release_id: str | None = None
    currency: str = "USD"
    effective_date: datetime | None = None
    transactions: list[RecoupmentTransaction] = field(default_factory=list)

    @property
    def original_advance(self) -> Decimal:
        if self.advance_amount is not None:
            return self.advance_amount
        return self.remaining_balance + self.recouped_amount

    @classmethod
    def from_dict(cls, data: dict) -> "RecoupmentAccount":
        advance = data.get("advance_amount")
        fully_recouped_at = data.get("fully_recouped_at")
        effective_date = data.get("effective_date")
        return cls(
            id=str(data["id"]),
            user_id=str(data["user_id"]),
            remaining_balance=to_decimal(data["remaining_balance"]),
            recoupment_rate=to_decimal(data.get("recoupment_rate", 1)),
            priority=int(data.get("priority", 1)),
            recouped_amount=to_decimal(data.get("recouped_amount", 0)),
            is_active=data.get("is_active", True),
            fully_recouped_at=parse_datetime(fully_recouped_at) if fully_recouped_at else None,
            account_name=data.get("account_name", ""),
            advance_amount=to_decimal(advance) if advance is not None else None,
            release_id=data.get("release_id"),
            currency=data.get("currency", "USD"),
            effective_date=parse_datetime(effective_date) if effective_date else None,
            transactions=[RecoupmentTransaction.from_dict(t) for t in data.get("transactions", [])],
        )


@dataclass(frozen=True)
class SplitParticipant:
    user_id: str
    name: str
    role: str
    split_percentage: Decimal

    @classmethod
    def from_dict(cls, data: dict) -> "SplitParticipant":
        return cls(
            user_id=str(data["user_id"]),
            name=data.get("name", str(data["user_id"])),
            role=data.get("role", "collaborator"),
            split_percentage=to_decimal(data["split_percentage"]),
        )


@dataclass(frozen=True)
class SplitContract:
    id: str
    release_id: str
    status: str  # 'draft', 'active' or 'terminated'
    participants: tuple[SplitParticipant, ...] = ()

    @classmethod
    def from_dict(cls, data: dict) -> "SplitContract":
        return cls(
            id=str(data["id"]),
            release_id=str(data["release_id"]),
            status=data.get("status", "draft"),
            participants=tuple(SplitParticipant.from_dict(p) for p in data.get("participants", [])),
        )


@dataclass(frozen=True)
class ProjectRoyaltySplit:
    """Per-project split row, used when no active SplitContract exists."""

    project_id: str
    collaborator_id: str
    split_percentage: Decimal
    role: str | None = None

    @classmethod
    def from_dict(cls, data: dict) -> "ProjectRoyaltySplit":
        return cls(
            project_id=str(data["project_id"]),
            collaborator_id=str(data["collaborator_id"]),
            split_percentage=to_decimal(data["split_percentage"]),
            role=data.get("role"),
        )


@dataclass
class StreamData:
    """Input to a single stream-level royalty calculation."""

    dsp: str
    territory: str
    streams: int
    currency: str
    report_date: date
    downloads: int = 0
    release_id: str | None = None
    track_id: str | None = None
    isrc_code: str | None = None
    raw_revenue: Decimal | None = None
    royalty_type: str = "streaming"
    is_user_centric: bool = False

    @classmethod
    def from_dict(cls, data: dict) -> "StreamData":
        raw = data.get("raw_revenue")
        return cls(
            dsp=data["dsp"],
            territory=data.get("territory") or "GLOBAL",
            streams=int(data.get("streams", 0)),
            currency=data.get("currency", "USD"),
            report_date=parse_date(data["report_date"]),
            downloads=int(data.get("downloads", 0)),
            release_id=data.get("release_id"),
            track_id=data.get("track_id"),
            isrc_code=data.get("isrc_code"),
            raw_revenue=to_decimal(raw) if raw is not None else None,
            royalty_type=data.get("royalty_type", "streaming"),
            is_user_centric=data.get("is_user_centric", False),
        )


# =============================================================================
# CALCULATION RESULTS
# =============================================================================


@dataclass(frozen=True)
class ResolvedRate:
    base_rate: Decimal
    territory_multiplier: Decimal
    premium_multiplier: Decimal
    effective_rate: Decimal
    custom_rate_applied: bool = False


@dataclass(frozen=True)
class FeeBreakdown:
    platform_fee: Decimal
    distribution_fee: Decimal
    net_revenue: Decimal
    savings: Decimal = Decimal("0")  # net gained versus the free tier


@dataclass
class CalculationBreakdown:
    base_rate: Decimal
    territory_multiplier: Decimal
    tier_bonus: Decimal
    fee_deductions: Decimal
    mechanical_share: Decimal
    performance_share: Decimal


@dataclass
class RoyaltyCalculation:
    """Result of one stream-level calculation.

    gross_revenue is in the source currency; usd_equivalent and every
    amount after it are in the reference currency.
    """

    gross_revenue: Decimal
    currency: str
    territory: str
    dsp: str
    stream_count: int
    downloads: int
    effective_rate: Decimal
    exchange_rate: Decimal
    fx_date: date
    usd_equivalent: Decimal
    platform_fee: Decimal
    distribution_fee: Decimal
    net_revenue: Decimal
    royalty_type: str
    breakdown: CalculationBreakdown

    @property
    def per_stream_rate(self) -> Decimal:
        return self.effective_rate


@dataclass(frozen=True)
class MechanicalRoyalty:
    isrc_code: str
    territory_code: str
    mechanical_rate: Decimal
    publisher_share: Decimal
    writer_share: Decimal
    total_mechanical: Decimal
    hfa_rate: Decimal | None = None
    mri_rate: Decimal | None = None


@dataclass(frozen=True)
class PerformanceRoyalty:
    isrc_code: str
    pro: str
    performance_type: str
    publisher_share: Decimal
    writer_share: Decimal
    total_performance: Decimal


@dataclass(frozen=True)
class SyncRoyalty:
    license_id: str
    licensee_type: str
    master_fee: Decimal
    publishing_fee: Decimal
    total_sync_fee: Decimal
    territory: str
    term_months: int
    exclusivity: bool


@dataclass(frozen=True)
class RecoupmentResult:
    account_id: str
    previous_balance: Decimal
    amount_applied: Decimal
    new_balance: Decimal
    is_fully_recouped: bool
    remaining_earnings: Decimal
    account_name: str = ""


@dataclass
class WaterfallResult:
    total_amount: Decimal = Decimal("0")
    total_recouped: Decimal = Decimal("0")
    remaining_payout: Decimal = Decimal("0")
    accounts: list[RecoupmentResult] = field(default_factory=list)


@dataclass(frozen=True)
class RecoupmentProgress:
    account_id: str
    percentage_recouped: Decimal
    milestones_reached: tuple[int, ...]


@dataclass
class SplitBreakdown:
    participant_id: str
    participant_name: str
    role: str
    split_percentage: Decimal
    gross_amount: Decimal = Decimal("0")
    net_amount: Decimal = Decimal("0")
    recoupment_deduction: Decimal = Decimal("0")
    payable_amount: Decimal = Decimal("0")


@dataclass
class SplitValidation:
    is_valid: bool
    total_percentage: Decimal
    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)


# =============================================================================
# STATEMENTS
# =============================================================================


@dataclass(frozen=True)
class LineItem:
    event_id: str
    dsp: str
    territory: str
    streams: int
    downloads: int
    gross_revenue: Decimal  # source currency
    usd_equivalent: Decimal
    effective_rate: Decimal
    currency: str
    exchange_rate: Decimal


@dataclass(frozen=True)
class TerritoryBreakdown:
    territory: str
    streams: int
    revenue: Decimal
    percentage: Decimal


@dataclass(frozen=True)
class DspBreakdown:
    dsp: str
    streams: int
    revenue: Decimal
    average_rate: Decimal


@dataclass
class PeriodStatement:
    """A computed royalty statement.

    Built in memory by the aggregator; once saved it is the durable
    statement record and only its status fields change afterwards.
    """

    id: str
    user_id: str
    period: str
    period_start: date
    period_end: date
    gross_revenue: Decimal
    platform_fees: Decimal
    distribution_fees: Decimal
    recoupment_deductions: Decimal
    net_revenue: Decimal
    payable_amount: Decimal
    currency: str = "USD"
    usd_equivalent: Decimal = Decimal("0")
    total_streams: int = 0
    total_downloads: int = 0
    release_id: str | None = None
    tier: str = "standard"
    line_items: list[LineItem] = field(default_factory=list)
    territory_breakdown: list[TerritoryBreakdown] = field(default_factory=list)
    dsp_breakdown: list[DspBreakdown] = field(default_factory=list)
    status: str = StatementStatus.DRAFT
    created_at: datetime | None = None
    finalized_at: datetime | None = None
    paid_at: datetime | None = None
    disputed_at: datetime | None = None
    dispute_reason: str | None = None

    @property
    def period_key(self) -> tuple:
        return (self.user_id, self.period_start, self.period_end, self.release_id)
