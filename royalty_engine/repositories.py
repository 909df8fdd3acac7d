"""
Repository interfaces and in-memory stores.

The engine depends only on the find/upsert capabilities declared here.
The in-memory stores are thread-safe and hand out copies, so callers
never mutate stored state except through upsert.
"""

import copy
import threading
from datetime import date
from typing import Iterable, Protocol

from .models import (
    DspRate,
    ExchangeRate,
    PeriodStatement,
    ProjectRoyaltySplit,
    RecoupmentAccount,
    RevenueEvent,
    SplitContract,
)

# =============================================================================
# INTERFACES
# =============================================================================


class RevenueEventRepository(Protocol):
    def find(
        self, start: date, end: date, project_id: str | None = None, limit: int | None = None
    ) -> list[RevenueEvent]: ...

    def upsert(self, event: RevenueEvent) -> RevenueEvent: ...


class DspRateRepository(Protocol):
    def find(self, dsp_slug: str, territories: Iterable[str]) -> list[DspRate]: ...

    def upsert(self, rate: DspRate) -> DspRate: ...


class ExchangeRateRepository(Protocol):
    def find(self, from_currency: str, to_currency: str, on_or_before: date) -> list[ExchangeRate]: ...

    def upsert(self, rate: ExchangeRate) -> ExchangeRate: ...


class RecoupmentAccountRepository(Protocol):
    def find(self, user_id: str, active_only: bool = True) -> list[RecoupmentAccount]: ...

    def get(self, account_id: str) -> RecoupmentAccount | None: ...

    def upsert(self, account: RecoupmentAccount) -> RecoupmentAccount: ...

    def upsert_many(self, accounts: list[RecoupmentAccount]) -> None:
        """Write all accounts or none of them."""
        ...


class SplitRepository(Protocol):
    def find_contracts(self, release_id: str, status: str | None = None) -> list[SplitContract]: ...

    def find_project_splits(self, project_id: str) -> list[ProjectRoyaltySplit]: ...

    def upsert_contract(self, contract: SplitContract) -> SplitContract: ...

    def upsert_project_split(self, split: ProjectRoyaltySplit) -> ProjectRoyaltySplit: ...


class StatementRepository(Protocol):
    def get(self, statement_id: str) -> PeriodStatement | None: ...

    def find(self, user_id: str, status: str | None = None) -> list[PeriodStatement]: ...

    def upsert(self, statement: PeriodStatement) -> PeriodStatement: ...

    def delete(self, statement_id: str) -> None: ...


# =============================================================================
# IN-MEMORY IMPLEMENTATIONS
# =============================================================================


class InMemoryRevenueEventRepository:
    def __init__(self, events: Iterable[RevenueEvent] = ()):
        self._lock = threading.RLock()
        self._events: dict[str, RevenueEvent] = {}
        for event in events:
            self.upsert(event)

    def find(self, start, end, project_id=None, limit=None):
        with self._lock:
            matches = [
                e for e in self._events.values()
                if start <= e.occurred_at.date() <= end
                and (project_id is None or e.project_id == project_id)
            ]
        matches.sort(key=lambda e: (e.occurred_at, e.id))
        if limit is not None:
            return matches[:limit]
        return matches

    def upsert(self, event):
        with self._lock:
            self._events[event.id] = event
        return event


class InMemoryDspRateRepository:
    def __init__(self, rates: Iterable[DspRate] = ()):
        self._lock = threading.RLock()
        self._rates: dict[tuple, DspRate] = {}
        for rate in rates:
            self.upsert(rate)

    def find(self, dsp_slug, territories):
        wanted = set(territories)
        with self._lock:
            return [
                r for r in self._rates.values()
                if r.dsp_slug == dsp_slug and r.territory in wanted
            ]

    def upsert(self, rate):
        with self._lock:
            self._rates[(rate.dsp_slug, rate.territory, rate.effective_from)] = rate
        return rate


class InMemoryExchangeRateRepository:
    def __init__(self, rates: Iterable[ExchangeRate] = ()):
        self._lock = threading.RLock()
        self._rates: dict[tuple, ExchangeRate] = {}
        for rate in rates:
            self.upsert(rate)

    def find(self, from_currency, to_currency, on_or_before):
        with self._lock:
            return [
                r for r in self._rates.values()
                if r.from_currency == from_currency
                and r.to_currency == to_currency
                and r.rate_date <= on_or_before
            ]

    def upsert(self, rate):
        with self._lock:
            self._rates[(rate.from_currency, rate.to_currency, rate.rate_date)] = rate
        return rate


class InMemoryRecoupmentAccountRepository:
    def __init__(self, accounts: Iterable[RecoupmentAccount] = ()):
        self._lock = threading.RLock()
        self._accounts: dict[str, RecoupmentAccount] = {}
        for account in accounts:
            self.upsert(account)

    def find(self, user_id, active_only=True):
        with self._lock:
            return [
                copy.deepcopy(a) for a in self._accounts.values()
                if a.user_id == user_id and (a.is_active or not active_only)
            ]

    def get(self, account_id):
        with self._lock:
            account = self._accounts.get(account_id)
            return copy.deepcopy(account) if account else None

    def all(self) -> list[RecoupmentAccount]:
        with self._lock:
            return [copy.deepcopy(a) for a in self._accounts.values()]

    def upsert(self, account):
        with self._lock:
            self._accounts[account.id] = copy.deepcopy(account)
        return account

    def upsert_many(self, accounts):
        staged = {a.id: copy.deepcopy(a) for a in accounts}
        with self._lock:
            self._accounts.update(staged)


class InMemorySplitRepository:
    def __init__(
        self,
        contracts: Iterable[SplitContract] = (),
        project_splits: Iterable[ProjectRoyaltySplit] = (),
    ):
        self._lock = threading.RLock()
        self._contracts: dict[str, SplitContract] = {}
        self._project_splits: list[ProjectRoyaltySplit] = []
        for contract in contracts:
            self.upsert_contract(contract)
        for split in project_splits:
            self.upsert_project_split(split)

    def find_contracts(self, release_id, status=None):
        with self._lock:
            return [
                c for c in self._contracts.values()
                if c.release_id == release_id and (status is None or c.status == status)
            ]

    def find_project_splits(self, project_id):
        with self._lock:
            return [s for s in self._project_splits if s.project_id == project_id]

    def upsert_contract(self, contract):
        with self._lock:
            self._contracts[contract.id] = contract
        return contract

    def upsert_project_split(self, split):
        with self._lock:
            self._project_splits = [
                s for s in self._project_splits
                if (s.project_id, s.collaborator_id) != (split.project_id, split.collaborator_id)
            ]
            self._project_splits.append(split)
        return split


class InMemoryStatementRepository:
    def __init__(self):
        self._lock = threading.RLock()
        self._statements: dict[str, PeriodStatement] = {}

    def get(self, statement_id):
        with self._lock:
            statement = self._statements.get(statement_id)
            return copy.deepcopy(statement) if statement else None

    def find(self, user_id, status=None):
        with self._lock:
            return [
                copy.deepcopy(s) for s in self._statements.values()
                if s.user_id == user_id and (status is None or s.status == status)
            ]

    def upsert(self, statement):
        with self._lock:
            self._statements[statement.id] = copy.deepcopy(statement)
        return statement

    def delete(self, statement_id: str) -> None:
        with self._lock:
            self._statements.pop(statement_id, None)
