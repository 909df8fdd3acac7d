"""
Output Builder

Constructs JSON-ready API responses from engine results.
"""

from dataclasses import asdict
from decimal import Decimal

from .calculators.fees import quantize_money
from .models import (
    MechanicalRoyalty,
    PerformanceRoyalty,
    PeriodStatement,
    RecoupmentAccount,
    RoyaltyCalculation,
    SplitBreakdown,
    SyncRoyalty,
    WaterfallResult,
)


def to_money(value: Decimal) -> float:
    """Convert Decimal to float with 2 decimal places, half up."""
    return float(quantize_money(value))


def to_rate(value: Decimal) -> float:
    """Per-stream rates need more precision than money."""
    return round(float(value), 8)


def _fmt(value) -> str:
    """Format a number as currency string for descriptions."""
    return f"${value:,.2f}"


def _iso(value):
    return value.isoformat() if value is not None else None


class OutputBuilder:
    """Builds the final output responses."""

    def build_calculation(self, calc: RoyaltyCalculation) -> dict:
        breakdown = calc.breakdown
        return {
            "dsp": calc.dsp,
            "territory": calc.territory,
            "currency": calc.currency,
            "royalty_type": calc.royalty_type,
            "stream_count": calc.stream_count,
            "downloads": calc.downloads,
            "gross_revenue": to_money(calc.gross_revenue),
            "per_stream_rate": to_rate(calc.per_stream_rate),
            "effective_rate": to_rate(calc.effective_rate),
            "exchange_rate": to_rate(calc.exchange_rate),
            "fx_date": calc.fx_date.isoformat(),
            "usd_equivalent": to_money(calc.usd_equivalent),
            "platform_fee": to_money(calc.platform_fee),
            "distribution_fee": to_money(calc.distribution_fee),
            "net_revenue": to_money(calc.net_revenue),
            "net_to_artist": to_money(calc.net_revenue),
            "calculation_breakdown": {
                "base_rate": to_rate(breakdown.base_rate),
                "territory_multiplier": float(breakdown.territory_multiplier),
                "tier_bonus": float(breakdown.tier_bonus),
                "fee_deductions": to_money(breakdown.fee_deductions),
                "mechanical_share": to_money(breakdown.mechanical_share),
                "performance_share": to_money(breakdown.performance_share),
            },
        }

    def build_statement(self, statement: PeriodStatement, include_line_items: bool = True) -> dict:
        """Construct the complete statement response."""
        result = {
            "id": statement.id,
            "user_id": statement.user_id,
            "period": statement.period,
            "period_start": statement.period_start.isoformat(),
            "period_end": statement.period_end.isoformat(),
            "release_id": statement.release_id,
            "tier": statement.tier,
            "status": statement.status,
            "currency": statement.currency,
            "gross_revenue": to_money(statement.gross_revenue),
            "platform_fees": to_money(statement.platform_fees),
            "distribution_fees": to_money(statement.distribution_fees),
            "net_revenue": to_money(statement.net_revenue),
            "recoupment_deductions": to_money(statement.recoupment_deductions),
            "payable_amount": to_money(statement.payable_amount),
            "usd_equivalent": to_money(statement.usd_equivalent),
            "total_streams": statement.total_streams,
            "total_downloads": statement.total_downloads,
            "calculations": self._build_statement_calculations(statement),
            "territory_breakdown": [
                {
                    "territory": t.territory,
                    "streams": t.streams,
                    "revenue": to_money(t.revenue),
                    "percentage": round(float(t.percentage), 2),
                }
                for t in statement.territory_breakdown
            ],
            "dsp_breakdown": [
                {
                    "dsp": d.dsp,
                    "streams": d.streams,
                    "revenue": to_money(d.revenue),
                    "average_rate": to_rate(d.average_rate),
                }
                for d in statement.dsp_breakdown
            ],
            "created_at": _iso(statement.created_at),
            "finalized_at": _iso(statement.finalized_at),
            "paid_at": _iso(statement.paid_at),
            "disputed_at": _iso(statement.disputed_at),
            "dispute_reason": statement.dispute_reason,
        }
        if include_line_items:
            result["line_items"] = [
                {
                    "event_id": item.event_id,
                    "dsp": item.dsp,
                    "territory": item.territory,
                    "streams": item.streams,
                    "downloads": item.downloads,
                    "gross_revenue": to_money(item.gross_revenue),
                    "usd_equivalent": to_money(item.usd_equivalent),
                    "effective_rate": to_rate(item.effective_rate),
                    "currency": item.currency,
                    "exchange_rate": to_rate(item.exchange_rate),
                }
                for item in statement.line_items
            ]
        return result

    def _build_statement_calculations(self, statement: PeriodStatement) -> dict:
        """Value and description for each statement total."""
        gross = to_money(statement.gross_revenue)
        platform = to_money(statement.platform_fees)
        distribution = to_money(statement.distribution_fees)
        net = to_money(statement.net_revenue)
        recoupment = to_money(statement.recoupment_deductions)
        payable = to_money(statement.payable_amount)

        return {
            "gross_revenue": {
                "value": gross,
                "description": f"Sum of {len(statement.line_items)} revenue events converted to {statement.currency}"
            },
            "fees": {
                "value": to_money(statement.platform_fees + statement.distribution_fees),
                "description": f"platform ({_fmt(platform)}) + distribution ({_fmt(distribution)}) on the '{statement.tier}' tier"
            },
            "net_revenue": {
                "value": net,
                "description": f"gross ({_fmt(gross)}) - platform ({_fmt(platform)}) - distribution ({_fmt(distribution)}) = {_fmt(net)}"
            },
            "recoupment_deductions": {
                "value": recoupment,
                "description": "Advance recoupment applied in priority order" if statement.recoupment_deductions > 0 else "No active advances to recoup"
            },
            "payable_amount": {
                "value": payable,
                "description": f"net ({_fmt(net)}) - recoupment ({_fmt(recoupment)}) = {_fmt(payable)}"
            },
        }

    def build_waterfall(self, result: WaterfallResult) -> dict:
        return {
            "total_amount": to_money(result.total_amount),
            "total_recouped": to_money(result.total_recouped),
            "remaining_payout": to_money(result.remaining_payout),
            "accounts": [
                {
                    "account_id": r.account_id,
                    "account_name": r.account_name,
                    "previous_balance": to_money(r.previous_balance),
                    "amount_applied": to_money(r.amount_applied),
                    "new_balance": to_money(r.new_balance),
                    "is_fully_recouped": r.is_fully_recouped,
                    "remaining_earnings": to_money(r.remaining_earnings),
                }
                for r in result.accounts
            ],
        }

    def build_account(self, account: RecoupmentAccount) -> dict:
        return {
            "id": account.id,
            "user_id": account.user_id,
            "account_name": account.account_name,
            "release_id": account.release_id,
            "currency": account.currency,
            "advance_amount": to_money(account.original_advance),
            "remaining_balance": to_money(account.remaining_balance),
            "recouped_amount": to_money(account.recouped_amount),
            "recoupment_rate": float(account.recoupment_rate),
            "priority": account.priority,
            "is_active": account.is_active,
            "fully_recouped_at": _iso(account.fully_recouped_at),
            "effective_date": _iso(account.effective_date),
            "transactions": [
                {
                    "id": t.id,
                    "date": t.date.isoformat(),
                    "amount": to_money(t.amount),
                    "type": t.type,
                    "statement_id": t.statement_id,
                    "notes": t.notes,
                }
                for t in account.transactions
            ],
        }

    def build_splits(self, splits: list[SplitBreakdown]) -> list[dict]:
        return [
            {
                "participant_id": s.participant_id,
                "participant_name": s.participant_name,
                "role": s.role,
                "split_percentage": float(s.split_percentage),
                "gross_amount": to_money(s.gross_amount),
                "net_amount": to_money(s.net_amount),
                "recoupment_deduction": to_money(s.recoupment_deduction),
                "payable_amount": to_money(s.payable_amount),
            }
            for s in splits
        ]

    def build_publishing(self, royalty: MechanicalRoyalty | PerformanceRoyalty | SyncRoyalty) -> dict:
        """Rates keep full precision, fees are rounded to cents."""
        result = {}
        for key, value in asdict(royalty).items():
            if isinstance(value, Decimal):
                result[key] = to_rate(value) if key.endswith("rate") else to_money(value)
            else:
                result[key] = value
        return result
