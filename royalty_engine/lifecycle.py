"""
Statement Lifecycle Manager

Persists computed statements and moves them through
draft -> finalized -> paid, with disputed reachable before payment.
Statements are never recomputed on transition.
"""

import logging
from datetime import datetime, timezone

from .errors import DuplicateStatementError, InvalidTransitionError, StatementNotFoundError
from .models import PeriodStatement, StatementStatus
from .repositories import StatementRepository

logger = logging.getLogger(__name__)

# target status -> statuses it may be reached from
ALLOWED_TRANSITIONS = {
    StatementStatus.FINALIZED: (StatementStatus.DRAFT, StatementStatus.DISPUTED),
    StatementStatus.PAID: (StatementStatus.FINALIZED,),
    StatementStatus.DISPUTED: (StatementStatus.DRAFT, StatementStatus.FINALIZED),
}


class StatementLifecycle:
    """Stores statements and drives their status transitions."""

    def __init__(self, statements: StatementRepository):
        self.statements = statements

    def save(self, statement: PeriodStatement) -> PeriodStatement:
        """
        Persist a draft statement.

        One statement exists per user, period and release: an earlier
        draft for the same key is replaced, anything past draft is kept.
        """
        if statement.status != StatementStatus.DRAFT:
            raise InvalidTransitionError(statement.id, statement.status, StatementStatus.DRAFT)

        stored = self.statements.get(statement.id)
        if stored is not None and stored.status != StatementStatus.DRAFT:
            raise InvalidTransitionError(statement.id, stored.status, StatementStatus.DRAFT)

        for existing in self.statements.find(statement.user_id):
            if existing.id == statement.id or existing.period_key != statement.period_key:
                continue
            if existing.status != StatementStatus.DRAFT:
                raise DuplicateStatementError(
                    f"Statement {existing.id} for user {statement.user_id} period "
                    f"{statement.period_start}..{statement.period_end} is already {existing.status}"
                )
            self.statements.delete(existing.id)
            logger.info(f"Replaced draft statement {existing.id} with {statement.id}")

        if statement.created_at is None:
            statement.created_at = datetime.now(timezone.utc)
        saved = self.statements.upsert(statement)
        logger.info(f"Saved statement {statement.id} for user {statement.user_id}, period {statement.period}")
        return saved

    def get(self, statement_id: str) -> PeriodStatement | None:
        return self.statements.get(statement_id)

    def list_for_user(
        self,
        user_id: str,
        status: str | None = None,
        limit: int | None = None,
        offset: int = 0
    ) -> list[PeriodStatement]:
        """Newest period first."""
        if status is not None and status not in StatementStatus.ALL:
            raise ValueError(f"Invalid status: {status}. Must be one of: {', '.join(StatementStatus.ALL)}")
        if limit is not None and limit < 0:
            raise ValueError(f"limit cannot be negative, got: {limit}")
        if offset < 0:
            raise ValueError(f"offset cannot be negative, got: {offset}")

        found = sorted(
            self.statements.find(user_id, status=status),
            key=lambda s: (s.period_start, s.created_at or datetime.min.replace(tzinfo=timezone.utc)),
            reverse=True
        )
        end = offset + limit if limit is not None else None
        return found[offset:end]

    def finalize(self, statement_id: str) -> PeriodStatement:
        statement = self._transition(statement_id, StatementStatus.FINALIZED)
        statement.finalized_at = datetime.now(timezone.utc)
        return self._store(statement)

    def mark_paid(self, statement_id: str) -> PeriodStatement:
        statement = self._transition(statement_id, StatementStatus.PAID)
        statement.paid_at = datetime.now(timezone.utc)
        return self._store(statement)

    def dispute(self, statement_id: str, reason: str) -> PeriodStatement:
        statement = self._transition(statement_id, StatementStatus.DISPUTED)
        statement.disputed_at = datetime.now(timezone.utc)
        statement.dispute_reason = reason
        return self._store(statement)

    def _transition(self, statement_id: str, target: str) -> PeriodStatement:
        statement = self.statements.get(statement_id)
        if statement is None:
            raise StatementNotFoundError(statement_id)
        if statement.status not in ALLOWED_TRANSITIONS[target]:
            raise InvalidTransitionError(statement_id, statement.status, target)
        statement.status = target
        return statement

    def _store(self, statement: PeriodStatement) -> PeriodStatement:
        self.statements.upsert(statement)
        logger.info(f"Statement {statement.id} is now {statement.status}")
        return statement
