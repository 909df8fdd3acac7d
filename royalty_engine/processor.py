"""
Royalty Engine - Main Orchestrator

Wires the calculators to their repositories and exposes the operations
collaborators call.
"""

import logging
from datetime import date
from decimal import Decimal
from typing import Any, Dict

from .aggregator import StatementAggregator
from .calculators import (
    CurrencyNormalizer,
    FeeTierCalculator,
    MechanicalRoyaltyCalculator,
    PerformanceRoyaltyCalculator,
    RateResolver,
    RecoupmentWaterfall,
    SplitDistributor,
    SyncRoyaltyCalculator,
)
from .config import EngineSettings
from .lifecycle import StatementLifecycle
from .models import (
    DspRate,
    ExchangeRate,
    FeeBreakdown,
    MechanicalRoyalty,
    PerformanceRoyalty,
    PeriodStatement,
    ProjectRoyaltySplit,
    RecoupmentAccount,
    RecoupmentMode,
    RecoupmentResult,
    RevenueEvent,
    RoyaltyCalculation,
    SplitBreakdown,
    SplitContract,
    StreamData,
    SyncRoyalty,
)
from .repositories import (
    DspRateRepository,
    ExchangeRateRepository,
    InMemoryDspRateRepository,
    InMemoryExchangeRateRepository,
    InMemoryRecoupmentAccountRepository,
    InMemoryRevenueEventRepository,
    InMemorySplitRepository,
    InMemoryStatementRepository,
    RecoupmentAccountRepository,
    RevenueEventRepository,
    SplitRepository,
    StatementRepository,
)
from .validators import InputValidator

logger = logging.getLogger(__name__)


class RoyaltyEngine:
    """
    Entry point for royalty calculations.

    Pipeline for a period statement:
    1. Validate input
    2. Resolve rate, normalize currency and apply tier fees per event
    3. Aggregate totals and breakdowns
    4. Deduct recoupment
    5. Distribute to split participants
    6. Persist and transition the statement
    """

    def __init__(
        self,
        events: RevenueEventRepository | None = None,
        dsp_rates: DspRateRepository | None = None,
        exchange_rates: ExchangeRateRepository | None = None,
        accounts: RecoupmentAccountRepository | None = None,
        splits: SplitRepository | None = None,
        statements: StatementRepository | None = None,
        settings: EngineSettings | None = None
    ):
        self.settings = settings or EngineSettings()
        tables = self.settings.rate_tables

        self.events = events if events is not None else InMemoryRevenueEventRepository()
        self.accounts = accounts if accounts is not None else InMemoryRecoupmentAccountRepository()
        self.splits = splits if splits is not None else InMemorySplitRepository()
        self.statements = statements if statements is not None else InMemoryStatementRepository()

        self.validator = InputValidator(tables)
        self.rate_resolver = RateResolver(tables, dsp_rates)
        self.currency = CurrencyNormalizer(exchange_rates, self.settings.reference_currency)
        self.fee_calculator = FeeTierCalculator(tables)
        self.mechanical_calculator = MechanicalRoyaltyCalculator(tables)
        self.performance_calculator = PerformanceRoyaltyCalculator(tables)
        self.sync_calculator = SyncRoyaltyCalculator(tables)
        self.waterfall = RecoupmentWaterfall(self.accounts)
        self.split_distributor = SplitDistributor(self.splits, self.waterfall)
        self.aggregator = StatementAggregator(
            events=self.events,
            rate_resolver=self.rate_resolver,
            currency=self.currency,
            fees=self.fee_calculator,
            mechanical=self.mechanical_calculator,
            waterfall=self.waterfall,
            max_events=self.settings.max_events
        )
        self.lifecycle = StatementLifecycle(self.statements)

    @classmethod
    def from_dict(
        cls,
        data: Dict[str, Any],
        settings: EngineSettings | None = None,
        statements: StatementRepository | None = None
    ) -> "RoyaltyEngine":
        """
        Build an engine over a snapshot of reference data.

        Recognised keys: revenue_events, dsp_rates, exchange_rates,
        recoupment_accounts, split_contracts, project_splits.
        """
        accounts = [RecoupmentAccount.from_dict(a) for a in data.get("recoupment_accounts", [])]
        engine = cls(
            events=InMemoryRevenueEventRepository(
                RevenueEvent.from_dict(e) for e in data.get("revenue_events", [])
            ),
            dsp_rates=InMemoryDspRateRepository(DspRate.from_dict(r) for r in data.get("dsp_rates", [])),
            exchange_rates=InMemoryExchangeRateRepository(
                ExchangeRate.from_dict(r) for r in data.get("exchange_rates", [])
            ),
            accounts=InMemoryRecoupmentAccountRepository(accounts),
            splits=InMemorySplitRepository(
                contracts=(SplitContract.from_dict(c) for c in data.get("split_contracts", [])),
                project_splits=(ProjectRoyaltySplit.from_dict(s) for s in data.get("project_splits", []))
            ),
            statements=statements,
            settings=settings
        )
        for account in accounts:
            engine.validator.validate_account(account)
        return engine

    # -------------------------------------------------------------------------
    # Calculations
    # -------------------------------------------------------------------------

    def calculate_stream(self, stream: StreamData, tier: str | None = None) -> RoyaltyCalculation:
        tier = tier or self.settings.default_tier
        self.validator.validate_stream(stream, tier)
        return self.aggregator.calculate_stream(stream, tier)

    def calculate_period(
        self,
        user_id: str,
        start_date: date,
        end_date: date,
        release_id: str | None = None,
        tier: str | None = None
    ) -> PeriodStatement:
        tier = tier or self.settings.default_tier
        self.validator.validate_period(user_id, start_date, end_date, tier)
        return self.aggregator.calculate_period(user_id, start_date, end_date, release_id, tier)

    def apply_recoupment(
        self,
        user_id: str,
        amount: Decimal,
        statement_id: str | None = None,
        mode: str = RecoupmentMode.WATERFALL
    ) -> list[RecoupmentResult]:
        self.validator.validate_amount("amount", amount)
        return self.waterfall.apply(user_id, amount, statement_id, mode).accounts

    def calculate_split_amounts(
        self,
        release_id: str,
        gross_revenue: Decimal,
        net_revenue: Decimal,
        commit_recoupment: bool = False
    ) -> list[SplitBreakdown]:
        self.validator.validate_amount("gross_revenue", gross_revenue)
        return self.split_distributor.calculate_split_amounts(
            release_id, gross_revenue, net_revenue, commit_recoupment
        )

    def calculate_net_by_tier(self, gross_revenue: Decimal, tier: str) -> FeeBreakdown:
        self.validator.validate_tier(tier)
        return self.fee_calculator.calculate(gross_revenue, tier)

    def calculate_mechanical_royalty(
        self,
        isrc_code: str,
        territory: str,
        streams: int,
        publisher_percentage: Decimal = Decimal("0.5")
    ) -> MechanicalRoyalty:
        if not (0 <= publisher_percentage <= 1):
            raise ValueError(f"publisher_percentage must be between 0 and 1, got: {publisher_percentage}")
        return self.mechanical_calculator.calculate(isrc_code, territory, streams, publisher_percentage)

    def calculate_performance_royalty(
        self, isrc_code: str, pro: str, performance_type: str, total_revenue: Decimal
    ) -> PerformanceRoyalty:
        return self.performance_calculator.calculate(isrc_code, pro, performance_type, total_revenue)

    def calculate_sync_royalty(
        self,
        license_id: str,
        licensee_type: str,
        master_fee: Decimal,
        publishing_fee: Decimal,
        territory: str,
        term_months: int = 12,
        exclusivity: bool = False
    ) -> SyncRoyalty:
        return self.sync_calculator.calculate(
            license_id, licensee_type, master_fee, publishing_fee, territory, term_months, exclusivity
        )

    # -------------------------------------------------------------------------
    # Statements
    # -------------------------------------------------------------------------

    def save_statement(self, statement: PeriodStatement) -> PeriodStatement:
        return self.lifecycle.save(statement)

    def get_statement(self, statement_id: str) -> PeriodStatement | None:
        return self.lifecycle.get(statement_id)

    def get_user_statements(
        self,
        user_id: str,
        status: str | None = None,
        limit: int | None = None,
        offset: int = 0
    ) -> list[PeriodStatement]:
        return self.lifecycle.list_for_user(user_id, status=status, limit=limit, offset=offset)

    def finalize_statement(self, statement_id: str) -> PeriodStatement:
        return self.lifecycle.finalize(statement_id)

    def mark_statement_paid(self, statement_id: str) -> PeriodStatement:
        return self.lifecycle.mark_paid(statement_id)

    def dispute_statement(self, statement_id: str, reason: str) -> PeriodStatement:
        return self.lifecycle.dispute(statement_id, reason)
