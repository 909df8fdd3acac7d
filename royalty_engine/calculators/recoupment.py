"""
Recoupment Waterfall

Applies earnings against a user's advances in priority order.
"""

import logging
import threading
import uuid
import weakref
from datetime import datetime, timezone
from decimal import Decimal

from ..errors import AccountNotFoundError
from ..models import (
    RecoupmentAccount,
    RecoupmentMode,
    RecoupmentProgress,
    RecoupmentResult,
    RecoupmentTransaction,
    WaterfallResult,
)
from ..repositories import RecoupmentAccountRepository

logger = logging.getLogger(__name__)


class RecoupmentWaterfall:
    """
    Recoups advances from available earnings.

    For each active account, lowest priority number first:
    - max_recoverable = remaining × recoupment_rate
    - applied = min(max_recoverable, balance)
    - the account is deactivated once its balance reaches 0

    pro_rata offers each account a share of the total proportional to its
    balance instead of what is left; oldest_first orders by effective_date.

    apply() commits and records a ledger entry per deduction; preview()
    runs the same pass without writing.
    """

    MILESTONES = (25, 50, 75, 90, 100)

    def __init__(self, accounts: RecoupmentAccountRepository):
        self.accounts = accounts
        # Entries disappear once no thread holds the lock
        self._user_locks: weakref.WeakValueDictionary = weakref.WeakValueDictionary()
        self._guard = threading.Lock()

    def preview(
        self,
        user_id: str,
        available_amount: Decimal,
        mode: str = RecoupmentMode.WATERFALL
    ) -> WaterfallResult:
        result, _ = self._run(self._load(user_id, mode), available_amount, mode, now=None)
        return result

    def apply(
        self,
        user_id: str,
        available_amount: Decimal,
        statement_id: str | None = None,
        mode: str = RecoupmentMode.WATERFALL
    ) -> WaterfallResult:
        """
        Apply the waterfall and persist the new balances.

        The whole pass runs under a per-user lock: accounts are loaded once,
        updated in memory and written back in a single upsert_many call, so
        concurrent runs for the same user cannot both deduct from the same
        balance and a failure leaves every account unchanged.
        """
        with self._lock_for(user_id):
            accounts = self._load(user_id, mode)
            result, touched = self._run(
                accounts, available_amount, mode,
                now=datetime.now(timezone.utc), statement_id=statement_id
            )
            if touched:
                self.accounts.upsert_many(touched)

        for entry in result.accounts:
            if entry.amount_applied > 0:
                logger.info(
                    f"Recouped {entry.amount_applied} from account {entry.account_id} "
                    f"for user {user_id}, new balance: {entry.new_balance}"
                    + (f" (statement {statement_id})" if statement_id else "")
                )
            if entry.is_fully_recouped:
                logger.info(f"Account {entry.account_id} fully recouped")
        return result

    def deduction(self, user_id: str, available_amount: Decimal) -> Decimal:
        """Total that apply() would recoup right now."""
        return self.preview(user_id, available_amount).total_recouped

    def _load(self, user_id: str, mode: str) -> list[RecoupmentAccount]:
        if mode not in RecoupmentMode.ALL:
            raise ValueError(f"Invalid recoupment mode: {mode}. Must be one of: {', '.join(RecoupmentMode.ALL)}")

        accounts = self.accounts.find(user_id, active_only=True)
        if mode == RecoupmentMode.OLDEST_FIRST:
            # Undated accounts go last
            return sorted(accounts, key=lambda a: (
                a.effective_date is None,
                a.effective_date.timestamp() if a.effective_date else 0,
                a.id
            ))
        return sorted(accounts, key=lambda a: (a.priority, a.id))

    def _lock_for(self, user_id: str) -> threading.Lock:
        with self._guard:
            lock = self._user_locks.get(user_id)
            if lock is None:
                lock = threading.Lock()
                self._user_locks[user_id] = lock
            return lock

    def _pro_rata_offers(self, accounts: list[RecoupmentAccount], total: Decimal) -> dict[str, Decimal]:
        eligible = [a for a in accounts if a.is_active and a.remaining_balance > 0]
        total_balance = sum((a.remaining_balance for a in eligible), Decimal('0'))
        if total_balance <= 0:
            return {}
        return {a.id: total * a.remaining_balance / total_balance for a in eligible}

    def _run(
        self,
        accounts: list[RecoupmentAccount],
        available_amount: Decimal,
        mode: str,
        now: datetime | None,
        statement_id: str | None = None
    ) -> tuple[WaterfallResult, list[RecoupmentAccount]]:
        """
        Run one pass over accounts, mutating them in place.

        Returns the result and the accounts whose balance changed.
        now=None means nothing will be persisted.
        """
        total = max(Decimal('0'), available_amount)
        remaining = total
        offers = self._pro_rata_offers(accounts, total) if mode == RecoupmentMode.PRO_RATA else None
        results = []
        touched = []

        for account in accounts:
            if remaining <= 0:
                break
            if not account.is_active:
                continue

            balance = account.remaining_balance
            if balance <= 0:
                continue

            offered = offers.get(account.id, Decimal('0')) if offers is not None else remaining
            max_recoverable = min(offered, remaining) * account.recoupment_rate
            applied = max(Decimal('0'), min(max_recoverable, balance))
            new_balance = max(Decimal('0'), balance - applied)
            fully_recouped = new_balance <= 0

            results.append(RecoupmentResult(
                account_id=account.id,
                account_name=account.account_name,
                previous_balance=balance,
                amount_applied=applied,
                new_balance=new_balance,
                is_fully_recouped=fully_recouped,
                remaining_earnings=remaining - applied
            ))

            if applied > 0:
                account.remaining_balance = new_balance
                account.recouped_amount += applied
                if fully_recouped:
                    account.is_active = False
                    account.fully_recouped_at = now
                if now is not None:
                    account.transactions = [*account.transactions, RecoupmentTransaction(
                        id=str(uuid.uuid4()),
                        date=now,
                        amount=applied,
                        type='recoupment',
                        statement_id=statement_id,
                        notes="Recouped from earnings"
                    )]
                touched.append(account)

            remaining -= applied

        recouped = sum((r.amount_applied for r in results), Decimal('0'))
        return WaterfallResult(
            total_amount=total,
            total_recouped=recouped,
            remaining_payout=total - recouped,
            accounts=results
        ), touched

    # -------------------------------------------------------------------------
    # Account management
    # -------------------------------------------------------------------------

    def create_advance(
        self,
        user_id: str,
        account_name: str,
        advance_amount: Decimal,
        recoupment_rate: Decimal = Decimal('1'),
        priority: int = 1,
        release_id: str | None = None,
        currency: str = 'USD'
    ) -> RecoupmentAccount:
        if advance_amount <= 0:
            raise ValueError(f"advance_amount must be positive, got: {advance_amount}")
        if not (0 <= recoupment_rate <= 1):
            raise ValueError(f"recoupment_rate must be between 0 and 1, got: {recoupment_rate}")

        now = datetime.now(timezone.utc)
        account = RecoupmentAccount(
            id=str(uuid.uuid4()),
            user_id=user_id,
            remaining_balance=advance_amount,
            recoupment_rate=recoupment_rate,
            priority=priority,
            account_name=account_name,
            advance_amount=advance_amount,
            release_id=release_id,
            currency=currency,
            effective_date=now,
            transactions=[RecoupmentTransaction(
                id=str(uuid.uuid4()),
                date=now,
                amount=advance_amount,
                type='advance',
                notes="Initial advance"
            )]
        )
        self.accounts.upsert(account)
        logger.info(f"Created recoupment account {account.id} for user {user_id} with advance of {advance_amount}")
        return account

    def progress(self, account_id: str) -> RecoupmentProgress | None:
        account = self.accounts.get(account_id)
        if account is None:
            return None

        advance = account.original_advance
        if advance > 0:
            percentage = account.recouped_amount / advance * Decimal('100')
        else:
            percentage = Decimal('0')

        return RecoupmentProgress(
            account_id=account.id,
            percentage_recouped=percentage,
            milestones_reached=tuple(m for m in self.MILESTONES if percentage >= m)
        )

    def transactions(self, account_id: str) -> list[RecoupmentTransaction]:
        account = self.accounts.get(account_id)
        if account is None:
            raise AccountNotFoundError(account_id)
        return list(account.transactions)

    def write_off(self, account_id: str, reason: str) -> RecoupmentAccount:
        """
        Close an account without recouping the remaining balance.

        Closed accounts are returned unchanged.
        """
        account = self.accounts.get(account_id)
        if account is None:
            raise AccountNotFoundError(account_id)

        with self._lock_for(account.user_id):
            account = self.accounts.get(account_id)
            if not account.is_active:
                logger.info(f"Account {account_id} is already closed, nothing to write off")
                return account

            now = datetime.now(timezone.utc)
            written_off = account.remaining_balance
            account.remaining_balance = Decimal('0')
            account.is_active = False
            account.fully_recouped_at = now
            account.transactions = [*account.transactions, RecoupmentTransaction(
                id=str(uuid.uuid4()),
                date=now,
                amount=written_off,
                type='adjustment',
                notes=f"Write-off: {reason}"
            )]
            self.accounts.upsert(account)

        logger.info(f"Written off account {account_id} ({written_off}), reason: {reason}")
        return account
