"""
Unit Tests for Split Distributor
"""

import logging
from decimal import Decimal

import pytest

from royalty_engine.calculators.recoupment import RecoupmentWaterfall
from royalty_engine.calculators.splits import SplitDistributor, validate_splits
from royalty_engine.models import ProjectRoyaltySplit, RecoupmentAccount, SplitContract, SplitParticipant
from royalty_engine.repositories import InMemoryRecoupmentAccountRepository, InMemorySplitRepository


def _participant(user_id, pct, role="artist"):
    return SplitParticipant(user_id=user_id, name=user_id.title(), role=role, split_percentage=Decimal(pct))


class TestSplitBreakdown:

    def _distributor(self, contracts=(), project_splits=(), accounts=()):
        waterfall = RecoupmentWaterfall(InMemoryRecoupmentAccountRepository(accounts))
        return SplitDistributor(InMemorySplitRepository(contracts, project_splits), waterfall)

    def test_active_contract_wins_over_project_splits(self):
        distributor = self._distributor(
            contracts=[SplitContract("c1", "r1", "active", (
                _participant("alice", "70"),
                _participant("bob", "30", role="producer"),
            ))],
            project_splits=[ProjectRoyaltySplit("r1", "carol", Decimal("100"))],
        )

        breakdown = distributor.get_split_breakdown("r1")

        assert [s.participant_id for s in breakdown] == ["alice", "bob"]
        assert breakdown[1].role == "producer"

    def test_draft_contract_ignored(self):
        distributor = self._distributor(
            contracts=[SplitContract("c1", "r1", "draft", (_participant("alice", "100"),))],
            project_splits=[ProjectRoyaltySplit("r1", "carol", Decimal("100"))],
        )

        breakdown = distributor.get_split_breakdown("r1")

        assert [s.participant_id for s in breakdown] == ["carol"]

    def test_project_split_role_defaults_to_collaborator(self):
        distributor = self._distributor(
            project_splits=[ProjectRoyaltySplit("r1", "carol", Decimal("100"))],
        )

        split = distributor.get_split_breakdown("r1")[0]

        assert split.role == "collaborator"
        assert split.participant_name == "carol"

    def test_no_splits_returns_empty(self):
        distributor = self._distributor()
        assert distributor.calculate_split_amounts("r1", Decimal("100"), Decimal("80")) == []


class TestSplitAmounts:

    def _distributor(self, accounts=()):
        contract = SplitContract("c1", "r1", "active", (
            _participant("alice", "60"),
            _participant("bob", "40", role="producer"),
        ))
        repo = InMemoryRecoupmentAccountRepository(accounts)
        return SplitDistributor(InMemorySplitRepository([contract]), RecoupmentWaterfall(repo)), repo

    def test_amounts_follow_percentages(self):
        """gross 1000 / net 800 at 60/40"""
        distributor, _ = self._distributor()

        alice, bob = distributor.calculate_split_amounts("r1", Decimal("1000"), Decimal("800"))

        assert alice.gross_amount == Decimal("600")
        assert alice.net_amount == Decimal("480")
        assert bob.gross_amount == Decimal("400")
        assert bob.net_amount == Decimal("320")
        assert alice.payable_amount == Decimal("480")

    def test_participant_recoupment_reduces_payable(self):
        """alice: net 480, rate 0.5 -> up to 240, capped by balance 100"""
        account = RecoupmentAccount(
            id="adv-1", user_id="alice", remaining_balance=Decimal("100"), recoupment_rate=Decimal("0.5")
        )
        distributor, repo = self._distributor([account])

        alice, bob = distributor.calculate_split_amounts("r1", Decimal("1000"), Decimal("800"))

        assert alice.recoupment_deduction == Decimal("100")
        assert alice.payable_amount == Decimal("380")
        assert bob.recoupment_deduction == Decimal("0")
        assert repo.get("adv-1").remaining_balance == Decimal("100")

    def test_commit_recoupment_updates_accounts(self):
        account = RecoupmentAccount(
            id="adv-1", user_id="alice", remaining_balance=Decimal("100"), recoupment_rate=Decimal("0.5")
        )
        distributor, repo = self._distributor([account])

        distributor.calculate_split_amounts("r1", Decimal("1000"), Decimal("800"), commit_recoupment=True)

        stored = repo.get("adv-1")
        assert stored.remaining_balance == Decimal("0")
        assert stored.is_active is False

    def test_partial_splits_not_normalized(self, caplog):
        contract = SplitContract("c1", "r1", "active", (_participant("alice", "50"),))
        distributor = SplitDistributor(
            InMemorySplitRepository([contract]),
            RecoupmentWaterfall(InMemoryRecoupmentAccountRepository())
        )

        with caplog.at_level(logging.WARNING):
            (alice,) = distributor.calculate_split_amounts("r1", Decimal("1000"), Decimal("800"))

        assert alice.gross_amount == Decimal("500")
        assert "total 50%" in caplog.text

    def test_negative_share_rejected(self):
        contract = SplitContract("c1", "r1", "active", (
            _participant("alice", "120"),
            _participant("bob", "-20", role="producer"),
        ))
        distributor = SplitDistributor(
            InMemorySplitRepository([contract]),
            RecoupmentWaterfall(InMemoryRecoupmentAccountRepository())
        )

        with pytest.raises(ValueError, match="negative"):
            distributor.calculate_split_amounts("r1", Decimal("1000"), Decimal("800"))

    def test_zero_share_allowed(self):
        contract = SplitContract("c1", "r1", "active", (
            _participant("alice", "100"),
            _participant("bob", "0", role="producer"),
        ))
        distributor = SplitDistributor(
            InMemorySplitRepository([contract]),
            RecoupmentWaterfall(InMemoryRecoupmentAccountRepository())
        )

        _, bob = distributor.calculate_split_amounts("r1", Decimal("1000"), Decimal("800"))

        assert bob.payable_amount == Decimal("0")

    def _duplicate_rows_distributor(self):
        """alice holds two rows (30% + 30%) and one 100 advance at rate 1"""
        contract = SplitContract("c1", "r1", "active", (
            _participant("alice", "30"),
            _participant("alice", "30", role="featured_artist"),
            _participant("bob", "40", role="producer"),
        ))
        account = RecoupmentAccount(id="adv-1", user_id="alice", remaining_balance=Decimal("100"))
        repo = InMemoryRecoupmentAccountRepository([account])
        return SplitDistributor(InMemorySplitRepository([contract]), RecoupmentWaterfall(repo)), repo

    def test_repeated_participant_preview_capped_by_balance(self):
        """net 800: alice rows 240 + 240, combined deduction capped at 100"""
        distributor, repo = self._duplicate_rows_distributor()

        first, second, _ = distributor.calculate_split_amounts("r1", Decimal("1000"), Decimal("800"))

        assert first.recoupment_deduction + second.recoupment_deduction == Decimal("100")
        assert first.recoupment_deduction == Decimal("100")
        assert second.payable_amount == Decimal("240")
        assert repo.get("adv-1").remaining_balance == Decimal("100")

    def test_repeated_participant_preview_matches_commit(self):
        distributor, repo = self._duplicate_rows_distributor()

        preview = distributor.calculate_split_amounts("r1", Decimal("1000"), Decimal("800"))
        committed = distributor.calculate_split_amounts(
            "r1", Decimal("1000"), Decimal("800"), commit_recoupment=True
        )

        assert [s.recoupment_deduction for s in preview] == [s.recoupment_deduction for s in committed]
        assert repo.get("adv-1").remaining_balance == Decimal("0")


class TestValidateSplits:

    def test_valid_splits(self):
        result = validate_splits([_participant("alice", "60"), _participant("bob", "40", role="producer")])

        assert result.is_valid is True
        assert result.total_percentage == Decimal("100")
        assert result.errors == []
        assert result.warnings == []

    def test_total_must_be_100(self):
        result = validate_splits([_participant("alice", "60"), _participant("bob", "30")])

        assert result.is_valid is False
        assert "must total 100%" in result.errors[0]

    def test_negative_percentage(self):
        result = validate_splits([_participant("alice", "110"), _participant("bob", "-10")])

        assert result.is_valid is False
        assert any("negative" in e for e in result.errors)
        assert any("over 100%" in e for e in result.errors)

    def test_missing_artist_warns(self):
        result = validate_splits([_participant("bob", "100", role="producer")])

        assert result.is_valid is True
        assert result.warnings == ["No artist or featured artist specified in splits"]

    def test_duplicate_participant_warns(self):
        result = validate_splits([_participant("alice", "50"), _participant("alice", "50")])
        assert "Duplicate participants detected" in result.warnings

    @pytest.mark.parametrize("pcts", [("33.33", "33.33", "33.34"), ("99.995",)])
    def test_tolerance_of_one_hundredth(self, pcts):
        participants = [_participant(f"user{i}", p) for i, p in enumerate(pcts)]
        assert validate_splits(participants).is_valid is True
