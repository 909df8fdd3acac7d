"""
Split Distribution Calculator

Distributes a release's revenue across its participants and runs each
participant's own recoupment waterfall against their share.
"""

import logging
from decimal import Decimal

from ..models import SplitBreakdown, SplitParticipant, SplitValidation
from ..repositories import SplitRepository
from .recoupment import RecoupmentWaterfall

logger = logging.getLogger(__name__)

HUNDRED = Decimal('100')
TOLERANCE = Decimal('0.01')


class SplitDistributor:
    """Calculates per-participant amounts for a release."""

    def __init__(self, splits: SplitRepository, waterfall: RecoupmentWaterfall):
        self.splits = splits
        self.waterfall = waterfall

    def get_split_breakdown(self, release_id: str) -> list[SplitBreakdown]:
        """
        Resolve the participants of a release.

        An active SplitContract wins; otherwise the per-project split rows
        are used.
        """
        contracts = self.splits.find_contracts(release_id, status='active')
        if contracts:
            contract = sorted(contracts, key=lambda c: c.id)[0]
            return [
                SplitBreakdown(
                    participant_id=p.user_id,
                    participant_name=p.name,
                    role=p.role,
                    split_percentage=p.split_percentage
                )
                for p in contract.participants
            ]

        return [
            SplitBreakdown(
                participant_id=s.collaborator_id,
                participant_name=s.collaborator_id,
                role=s.role or 'collaborator',
                split_percentage=s.split_percentage
            )
            for s in self.splits.find_project_splits(release_id)
        ]

    def calculate_split_amounts(
        self,
        release_id: str,
        gross_revenue: Decimal,
        net_revenue: Decimal,
        commit_recoupment: bool = False
    ) -> list[SplitBreakdown]:
        """
        gross_amount = gross × pct / 100
        net_amount   = net × pct / 100
        payable      = net_amount - participant's recoupment

        Percentages are not normalized when they do not total 100, but a
        negative share is rejected. A participant listed more than once has
        recoupment run once against their combined net.
        """
        breakdown = self.get_split_breakdown(release_id)
        for split in breakdown:
            if split.split_percentage < 0:
                raise ValueError(
                    f"Split for {split.participant_id} on release {release_id} is negative: {split.split_percentage}%"
                )

        total = sum((s.split_percentage for s in breakdown), Decimal('0'))
        if breakdown and abs(total - HUNDRED) > TOLERANCE:
            logger.warning(f"Splits for release {release_id} total {total}%, distributing without normalization")

        rows_by_participant: dict[str, list[SplitBreakdown]] = {}
        for split in breakdown:
            share = split.split_percentage / HUNDRED
            split.gross_amount = gross_revenue * share
            split.net_amount = net_revenue * share
            rows_by_participant.setdefault(split.participant_id, []).append(split)

        for participant_id, rows in rows_by_participant.items():
            combined_net = sum((r.net_amount for r in rows), Decimal('0'))
            if commit_recoupment:
                recouped = self.waterfall.apply(participant_id, combined_net).total_recouped
            else:
                recouped = self.waterfall.deduction(participant_id, combined_net)

            # Spread the deduction over the participant's rows in order
            for row in rows:
                row_deduction = min(recouped, max(Decimal('0'), row.net_amount))
                row.recoupment_deduction = row_deduction
                row.payable_amount = row.net_amount - row_deduction
                recouped -= row_deduction

        return breakdown


def validate_splits(participants: list[SplitParticipant]) -> SplitValidation:
    """Upstream check for a participant list; the distributor never corrects splits."""
    errors = []
    warnings = []

    total = sum((p.split_percentage for p in participants), Decimal('0'))
    if abs(total - HUNDRED) > TOLERANCE:
        errors.append(f"Split percentages must total 100%, got {total:.2f}%")

    for p in participants:
        if p.split_percentage < 0:
            errors.append(f"{p.name} has negative split percentage")
        if p.split_percentage > HUNDRED:
            errors.append(f"{p.name} has split percentage over 100%")

    roles = {p.role for p in participants}
    if 'artist' not in roles and 'featured_artist' not in roles:
        warnings.append("No artist or featured artist specified in splits")

    user_ids = [p.user_id for p in participants]
    if len(user_ids) != len(set(user_ids)):
        warnings.append("Duplicate participants detected")

    return SplitValidation(
        is_valid=not errors,
        total_percentage=total,
        errors=errors,
        warnings=warnings
    )
