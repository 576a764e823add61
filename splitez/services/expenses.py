"""Expense recording and expense read models"""

import logging
from dataclasses import dataclass, field
from datetime import date
from typing import Dict, List, Optional
from sqlalchemy.orm import Session
from splitez.domain.balances import UNKNOWN_NAME
from splitez.domain.exceptions import ForbiddenError, NotFoundError, PartialFailureError, PersistenceError, ValidationError
from splitez.domain.models import Expense, Settlement, STATUS_PAID, STATUS_PENDING
from splitez.domain.splits import compute_split
from splitez.infrastructure.database.repositories import AccountRepository, ExpenseRepository
from splitez.infrastructure.observability.metrics import partial_failure_counter, record_expense
from splitez.services.groups import GroupService
from splitez.services.ledger import SettlementLedger

logger = logging.getLogger(__name__)


@dataclass
class BreakdownLine:
    debtor_id: str
    debtor_name: str
    creditor_id: str
    amount: float
    status: str
    settlement_id: Optional[str] = None


@dataclass
class ExpenseBreakdown:
    expense: Expense
    payer_name: str
    lines: List[BreakdownLine] = field(default_factory=list)
    you_owe: float = 0.0
    owed_to_you: float = 0.0


class ExpenseService:
    def __init__(self, db: Session):
        self.accounts = AccountRepository(db)
        self.expenses = ExpenseRepository(db)
        self.group_service = GroupService(db)
        self.ledger = SettlementLedger(db)

    def add_expense(
        self,
        group_id: str,
        account_id: str,
        description: str,
        amount: float,
        expense_date: date,
        paid_by: str,
        split_type: str,
        split_members: List[str],
        custom_shares: Optional[Dict[str, float]] = None,
    ) -> tuple[Expense, List[Settlement]]:
        """
        Validate, split and persist an expense, then write its settlements.

        Flow:
        1. Resolve the group's membership (invitees may have signed up)
        2. Check the payer and participants are confirmed members
        3. Compute the split; a bad split raises before anything is written
        4. Persist the expense
        5. Persist settlements; failure here is a PartialFailureError carrying
           the stored expense id so only this step is retried
        """
        group = self.group_service.get_for_member(group_id, account_id).group

        if paid_by not in group.members:
            raise ValidationError("payer must be a confirmed group member")
        if not split_members:
            raise ValidationError("select at least one member to split with")
        outsiders = set(split_members) - group.members
        if outsiders:
            raise ValidationError(f"not confirmed group members: {', '.join(sorted(outsiders))}")

        shares = compute_split(amount, paid_by, split_members, split_type, custom_shares)

        expense = self.expenses.create(
            group_id=group_id,
            description=description,
            amount=amount,
            expense_date=expense_date,
            paid_by=paid_by,
            split_type=split_type,
            split_members=list(dict.fromkeys(split_members)),
            split_amounts=shares,
            created_by=account_id,
        )

        try:
            settlements = self.ledger.record_for_expense(expense)
        except PersistenceError as e:
            partial_failure_counter.labels(operation="add_expense").inc()
            logger.error(
                "Expense stored but settlements failed",
                extra={"expense_id": expense.expense_id, "group_id": group_id, "error": str(e)},
            )
            raise PartialFailureError(
                "Expense recorded but settlements could not be written",
                expense_id=expense.expense_id,
                failed_step="settlements",
                completed=["expense"],
            ) from e

        record_expense(split_type, len(settlements))
        return expense, settlements

    def list_for_group(self, group_id: str, account_id: str) -> List[Expense]:
        self.group_service.get_for_member(group_id, account_id)
        return self.expenses.list_for_group(group_id)

    def breakdown(self, expense_id: str, account_id: str) -> ExpenseBreakdown:
        """Who owes what on one expense, with names and per-member status"""
        expense = self.expenses.get(expense_id)
        if expense is None:
            raise NotFoundError(f"Expense {expense_id} not found")

        group = self.group_service.groups.get(expense.group_id)
        if group is None or account_id not in group.members:
            raise ForbiddenError("You are not a member of this group")

        shares = self.ledger.shares_for(expense)
        stored = {s.debtor_id: s for s in self.ledger.settlements.list_for_expense(expense_id)}
        names = self.accounts.get_many(set(shares) | {expense.paid_by})

        def name_of(member_id: str) -> str:
            account = names.get(member_id)
            return account.name if account and account.name else UNKNOWN_NAME

        result = ExpenseBreakdown(expense=expense, payer_name=name_of(expense.paid_by))
        for member_id, share in shares.items():
            if member_id == expense.paid_by or share <= 0:
                continue
            settlement = stored.get(member_id)
            status = settlement.status if settlement else STATUS_PENDING
            result.lines.append(
                BreakdownLine(
                    debtor_id=member_id,
                    debtor_name=name_of(member_id),
                    creditor_id=expense.paid_by,
                    amount=share,
                    status=status,
                    settlement_id=settlement.settlement_id if settlement else None,
                )
            )
            if status == STATUS_PAID:
                continue
            if member_id == account_id:
                result.you_owe += share
            if expense.paid_by == account_id:
                result.owed_to_you += share
        return result
