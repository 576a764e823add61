"""Balance aggregation over stored settlements and expenses"""

from typing import List
from sqlalchemy.orm import Session
from splitez.domain.balances import aggregate_for_user, group_debts, monthly_spending, user_share_total
from splitez.domain.exceptions import NotFoundError
from splitez.domain.models import DirectedDebt, GroupSpending, MonthlySpending, UserBalance, STATUS_PENDING
from splitez.infrastructure.database.repositories import (
    AccountRepository,
    ExpenseRepository,
    GroupRepository,
    SettlementRepository,
)
from splitez.services.ledger import SettlementLedger
from splitez.utils.date_utils import month_bounds


class BalanceAggregator:
    """Read models for balances and spending"""

    def __init__(self, db: Session):
        self.accounts = AccountRepository(db)
        self.groups = GroupRepository(db)
        self.expenses = ExpenseRepository(db)
        self.settlements = SettlementRepository(db)
        self.ledger = SettlementLedger(db)

    def for_user(self, user_id: str) -> UserBalance:
        return aggregate_for_user(self.settlements.list_for_account(user_id, STATUS_PENDING), user_id)

    def total_spent(self, user_id: str) -> float:
        """Sum of every expense the user paid for"""
        return sum(e.amount for e in self.expenses.list_paid_by(user_id))

    def for_group(self, group_id: str) -> List[DirectedDebt]:
        if self.groups.get(group_id) is None:
            raise NotFoundError(f"Group {group_id} not found")
        pending = self.settlements.list_for_group(group_id, STATUS_PENDING)
        people = {s.debtor_id for s in pending} | {s.creditor_id for s in pending}
        return group_debts(pending, self.accounts.get_many(people))

    def monthly(self, user_id: str, year: int, month: int) -> MonthlySpending:
        start, end = month_bounds(year, month)
        group_ids = [g.group_id for g in self.groups.list_for_member(user_id)]
        expenses = self.expenses.list_for_groups(group_ids)
        return monthly_spending(expenses, user_id, start, end, self.ledger.shares_for)

    def per_group(self, user_id: str) -> List[GroupSpending]:
        """User's share of spending in each group they belong to"""
        return [
            GroupSpending(
                group_id=group.group_id,
                group_name=group.name,
                total=user_share_total(
                    self.expenses.list_for_group(group.group_id), user_id, self.ledger.shares_for
                ),
            )
            for group in self.groups.list_for_member(user_id)
        ]
