"""
Integration tests for RoyaltyEngine built from a reference-data snapshot.
"""

from datetime import date
from decimal import Decimal

import pytest

from royalty_engine import EngineSettings, RoyaltyEngine, StatementStatus
from royalty_engine.errors import DuplicateStatementError


SNAPSHOT = {
    "revenue_events": [
        {"id": "e1", "source": "spotify", "source_type": "US", "project_id": "r1",
         "amount": "40.00", "currency": "USD", "occurred_at": "2024-03-02T10:00:00Z"},
        {"id": "e2", "source": "Apple Music", "source_type": "DE", "project_id": "r1",
         "amount": "50.00", "currency": "EUR", "occurred_at": "2024-03-15T08:30:00Z"},
        {"id": "e3", "source": "tidal", "source_type": None, "project_id": "r1",
         "amount": "5.00", "currency": "USD", "occurred_at": "2024-03-31T23:00:00Z"},
    ],
    "dsp_rates": [
        {"dsp_slug": "Spotify", "territory": "US", "rate_per_stream": "0.004",
         "effective_from": "2024-01-01"},
    ],
    "exchange_rates": [
        {"from_currency": "EUR", "to_currency": "USD", "rate": "1.10", "rate_date": "2024-03-01"},
    ],
    "recoupment_accounts": [
        {"id": "adv-1", "user_id": "artist-1", "remaining_balance": "20",
         "recoupment_rate": "0.5", "priority": 1, "account_name": "Recording advance"},
    ],
    "split_contracts": [
        {"id": "c1", "release_id": "r1", "status": "active", "participants": [
            {"user_id": "artist-1", "name": "Artist", "role": "artist", "split_percentage": 80},
            {"user_id": "producer-1", "name": "Producer", "role": "producer", "split_percentage": 20},
        ]},
    ],
}


class TestFromDict:

    @pytest.fixture
    def engine(self):
        return RoyaltyEngine.from_dict(SNAPSHOT)

    def test_custom_rate_loaded(self, engine):
        rate = engine.rate_resolver.resolve("spotify", "US", date(2024, 3, 2))
        assert rate.base_rate == Decimal("0.004")

    def test_period_statement(self, engine):
        """40 + 50 × 1.10 + 5 = 100 gross; standard fees 24; net 76"""
        statement = engine.calculate_period("artist-1", date(2024, 3, 1), date(2024, 3, 31))

        assert statement.gross_revenue == Decimal("100.00")
        assert statement.net_revenue == Decimal("76")
        assert statement.recoupment_deductions == Decimal("20")
        assert statement.payable_amount == Decimal("56")

    def test_missing_territory_reported_as_global(self, engine):
        statement = engine.calculate_period("artist-1", date(2024, 3, 1), date(2024, 3, 31))
        assert "GLOBAL" in [t.territory for t in statement.territory_breakdown]

    def test_split_amounts(self, engine):
        artist, producer = engine.calculate_split_amounts("r1", Decimal("100"), Decimal("76"))

        assert artist.net_amount == Decimal("60.8")
        assert artist.recoupment_deduction == Decimal("20")
        assert artist.payable_amount == Decimal("40.8")
        assert producer.payable_amount == Decimal("15.2")

    def test_apply_recoupment_commits(self, engine):
        results = engine.apply_recoupment("artist-1", Decimal("30"))

        assert results[0].amount_applied == Decimal("15")
        assert engine.accounts.get("adv-1").remaining_balance == Decimal("5")

    def test_invalid_recoupment_rate_rejected(self):
        data = {"recoupment_accounts": [{"id": "a", "user_id": "u", "remaining_balance": 10, "recoupment_rate": 50}]}

        with pytest.raises(ValueError, match="recoupment_rate"):
            RoyaltyEngine.from_dict(data)

    def test_empty_snapshot(self):
        engine = RoyaltyEngine.from_dict({})
        statement = engine.calculate_period("u1", date(2024, 1, 1), date(2024, 1, 31))
        assert statement.gross_revenue == Decimal("0")


class TestStatementWorkflow:

    def test_calculate_save_finalize_pay(self):
        engine = RoyaltyEngine.from_dict(SNAPSHOT)
        statement = engine.calculate_period("artist-1", date(2024, 3, 1), date(2024, 3, 31))

        engine.save_statement(statement)
        engine.finalize_statement(statement.id)
        paid = engine.mark_statement_paid(statement.id)

        assert paid.status == StatementStatus.PAID
        assert paid.payable_amount == statement.payable_amount
        assert [s.id for s in engine.get_user_statements("artist-1", status="paid")] == [statement.id]

    def test_recalculating_finalized_period_cannot_be_saved(self):
        engine = RoyaltyEngine.from_dict(SNAPSHOT)
        first = engine.calculate_period("artist-1", date(2024, 3, 1), date(2024, 3, 31))
        engine.save_statement(first)
        engine.finalize_statement(first.id)

        again = engine.calculate_period("artist-1", date(2024, 3, 1), date(2024, 3, 31))

        with pytest.raises(DuplicateStatementError):
            engine.save_statement(again)

    def test_statements_shared_across_engines(self):
        """The statement store outlives a request-scoped engine."""
        first = RoyaltyEngine.from_dict(SNAPSHOT)
        statement = first.save_statement(
            first.calculate_period("artist-1", date(2024, 3, 1), date(2024, 3, 31))
        )

        second = RoyaltyEngine(statements=first.statements)
        assert second.get_statement(statement.id).status == StatementStatus.DRAFT


class TestPublishing:

    @pytest.fixture
    def engine(self):
        return RoyaltyEngine()

    def test_mechanical(self, engine):
        result = engine.calculate_mechanical_royalty("USRC1", "US", 1000)
        assert result.total_mechanical == Decimal("0.91")

    def test_mechanical_rejects_bad_percentage(self, engine):
        with pytest.raises(ValueError, match="publisher_percentage"):
            engine.calculate_mechanical_royalty("USRC1", "US", 1000, Decimal("1.5"))

    def test_net_by_tier(self, engine):
        assert engine.calculate_net_by_tier(Decimal("3.00"), "standard").net_revenue == Decimal("2.28")


class TestSettings:

    def test_from_env(self):
        settings = EngineSettings.from_env({
            "ENVIRONMENT": "prod",
            "ROYALTY_MAX_EVENTS": "500",
            "ROYALTY_DEFAULT_TIER": "pro",
        })

        assert settings.environment == "prod"
        assert settings.max_events == 500
        assert settings.default_tier == "pro"
        assert settings.reference_currency == "USD"

    def test_defaults(self):
        settings = EngineSettings.from_env({})

        assert settings.environment == "dev"
        assert settings.max_events == 100_000
        assert settings.default_tier == "standard"
