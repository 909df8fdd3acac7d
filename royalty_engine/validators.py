"""
Input Validation for the Royalty Engine

Validates caller input before any calculation begins.
Raises ValueError with clear messages for any constraint violations.
"""

from datetime import date
from decimal import Decimal

from .config import RateTables
from .models import RecoupmentAccount, StreamData


class InputValidator:
    """Validates engine input according to business rules."""

    def __init__(self, tables: RateTables):
        self.tables = tables

    def validate_tier(self, tier: str) -> None:
        if tier not in self.tables.fee_tiers:
            raise ValueError(f"Invalid tier: {tier}. Must be one of: {', '.join(self.tables.fee_tiers)}")

    def validate_stream(self, stream: StreamData, tier: str) -> None:
        self.validate_tier(tier)

        if not stream.dsp or not stream.dsp.strip():
            raise ValueError("dsp is required")

        if stream.streams < 0:
            raise ValueError(f"streams cannot be negative, got: {stream.streams}")

        if stream.downloads < 0:
            raise ValueError(f"downloads cannot be negative, got: {stream.downloads}")

        if stream.raw_revenue is not None and stream.raw_revenue < 0:
            raise ValueError(f"raw_revenue cannot be negative, got: {stream.raw_revenue}")

    def validate_period(self, user_id: str, start_date: date, end_date: date, tier: str) -> None:
        self.validate_tier(tier)

        if not user_id:
            raise ValueError("user_id is required")

        if start_date > end_date:
            raise ValueError(f"start_date ({start_date}) must not be after end_date ({end_date})")

    def validate_amount(self, name: str, amount: Decimal) -> None:
        if amount < 0:
            raise ValueError(f"{name} cannot be negative, got: {amount}")

    def validate_account(self, account: RecoupmentAccount) -> None:
        if not (0 <= account.recoupment_rate <= 1):
            raise ValueError(
                f"recoupment_rate must be between 0 and 1, got: {account.recoupment_rate} (account {account.id})"
            )

        if account.remaining_balance < 0:
            raise ValueError(
                f"remaining_balance cannot be negative, got: {account.remaining_balance} (account {account.id})"
            )

        if account.recouped_amount < 0:
            raise ValueError(
                f"recouped_amount cannot be negative, got: {account.recouped_amount} (account {account.id})"
            )
