"""Settlement ledger - persists derived debts and manages payment status"""

import logging
from typing import Dict, List, Tuple
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
from splitez.domain.exceptions import ForbiddenError, NotFoundError, PersistenceError
from splitez.domain.ledger import derive_settlements, missing_drafts
from splitez.domain.models import Expense, Settlement, STATUS_PAID
from splitez.domain.splits import derive_shares
from splitez.infrastructure.database.repositories import (
    ExpenseRepository,
    GroupRepository,
    SettlementRepository,
)
from splitez.infrastructure.observability.logging import log_settlement_paid
from splitez.infrastructure.observability.metrics import settlement_created_counter, settlement_paid_counter
from splitez.services.membership import MembershipResolver

logger = logging.getLogger(__name__)


class SettlementLedger:
    """Derives, stores and settles directed debts"""

    def __init__(self, db: Session):
        self.db = db
        self.expenses = ExpenseRepository(db)
        self.groups = GroupRepository(db)
        self.settlements = SettlementRepository(db)

    def shares_for(self, expense: Expense) -> Dict[str, float]:
        """Stored split, or the equal-split reconstruction for legacy expenses"""
        if expense.split_amounts or expense.split_members:
            return derive_shares(expense)

        group = self.groups.get(expense.group_id)
        if group is None:
            return {}
        resolved = MembershipResolver(self.db).resolve(group).group
        return derive_shares(expense, resolved.members)

    def record_for_expense(self, expense: Expense) -> List[Settlement]:
        """
        Write any missing settlements for an expense.

        Safe to re-run: existing (debtor, creditor, expense) triples are
        skipped, and a concurrent writer inserting the same triple is
        absorbed by re-reading and trying once more.

        Returns:
            Every settlement of the expense, pre-existing and new

        Raises:
            PersistenceError: Store failure; nothing from this call was written
        """
        drafts = derive_settlements(expense, self.shares_for(expense))

        for attempt in range(2):
            existing = self.settlements.list_for_expense(expense.expense_id)
            todo = missing_drafts(drafts, existing)
            if not todo:
                return existing
            try:
                created = self.settlements.add_many(todo)
            except IntegrityError as e:
                if attempt:
                    raise PersistenceError(f"settlements for expense {expense.expense_id} kept conflicting") from e
                logger.info("Settlement insert raced, re-reading", extra={"expense_id": expense.expense_id})
                continue
            settlement_created_counter.inc(len(created))
            return existing + created

        raise PersistenceError(f"could not record settlements for expense {expense.expense_id}")

    def record_for_expense_id(self, expense_id: str) -> List[Settlement]:
        expense = self.expenses.get(expense_id)
        if expense is None:
            raise NotFoundError(f"Expense {expense_id} not found")
        return self.record_for_expense(expense)

    def mark_settlement_paid(self, settlement_id: str, debtor_id: str) -> Tuple[Settlement, bool]:
        """
        Debtor pays one of their own debts.

        Returns:
            (settlement after the call, whether this call changed its status)

        Raises:
            NotFoundError: Unknown settlement
            ForbiddenError: Caller is not the debtor
        """
        settlement = self.settlements.get(settlement_id)
        if settlement is None:
            raise NotFoundError(f"Settlement {settlement_id} not found")
        if settlement.debtor_id != debtor_id or settlement.creditor_id == debtor_id:
            raise ForbiddenError("Only the debtor can mark this settlement paid")
        return self._pay(settlement, "debtor")

    def mark_expense_paid(self, expense_id: str, debtor_id: str) -> Tuple[List[Settlement], int]:
        """
        Debtor settles everything they owe on one expense.

        The payer cannot settle their own expense, and a caller with no debt
        on the expense is refused as well.

        Returns:
            (debtor's settlements on the expense, number newly marked paid)
        """
        expense = self.expenses.get(expense_id)
        if expense is None:
            raise NotFoundError(f"Expense {expense_id} not found")
        if expense.paid_by == debtor_id:
            raise ForbiddenError("You cannot settle a payment for your own expense")

        owed = [s for s in self.record_for_expense(expense) if s.debtor_id == debtor_id]
        if not owed:
            raise ForbiddenError("You do not owe anything on this expense")

        changed = self.settlements.mark_paid(s.settlement_id for s in owed if s.status != STATUS_PAID)
        if changed:
            settlement_paid_counter.labels(channel="expense").inc(changed)
        for s in owed:
            log_settlement_paid(s.settlement_id, debtor_id, "expense", s.status != STATUS_PAID)
        refreshed = [s for s in self.settlements.list_for_expense(expense_id) if s.debtor_id == debtor_id]
        return refreshed, changed

    def confirm_payment(self, settlement_id: str) -> Tuple[Settlement, bool]:
        """System reconciliation after the payment provider confirms a checkout"""
        settlement = self.settlements.get(settlement_id)
        if settlement is None:
            raise NotFoundError(f"Settlement {settlement_id} not found")
        return self._pay(settlement, "payment_callback")

    def _pay(self, settlement: Settlement, channel: str) -> Tuple[Settlement, bool]:
        transitioned = bool(self.settlements.mark_paid([settlement.settlement_id]))
        if transitioned:
            settlement_paid_counter.labels(channel=channel).inc()
        log_settlement_paid(settlement.settlement_id, settlement.debtor_id, channel, transitioned)
        return self.settlements.get(settlement.settlement_id), transitioned
