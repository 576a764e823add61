"""Balance aggregation - reduces settlements and expenses into summaries"""

from datetime import date
from typing import Callable, Dict, Iterable, List
from splitez.domain.ledger import legacy_entries
from splitez.domain.models import (
    Account,
    DirectedDebt,
    Expense,
    MonthlySpending,
    Settlement,
    UserBalance,
    STATUS_PENDING,
)

UNKNOWN_NAME = "Unknown"

CATEGORY_KEYWORDS = [
    ("Food", ("food", "restaurant", "canteen", "dinner", "lunch")),
    ("Travel", ("trip", "travel", "taxi", "uber")),
    ("Accommodation", ("room", "hostel", "rent")),
    ("Education", ("project", "book", "stationery")),
]
DEFAULT_CATEGORY = "Other"


def aggregate_for_user(settlements: Iterable[Settlement], user_id: str) -> UserBalance:
    """
    Sum pending settlements touching a user.

    total_owed is what the user still has to pay; total_owed_to_you is what
    others still have to pay the user.
    """
    total_owed = 0.0
    total_owed_to_you = 0.0
    for s in settlements:
        if s.status != STATUS_PENDING or s.debtor_id == s.creditor_id:
            continue
        if s.debtor_id == user_id:
            total_owed += s.amount
        elif s.creditor_id == user_id:
            total_owed_to_you += s.amount
    return UserBalance(total_owed=total_owed, total_owed_to_you=total_owed_to_you)


def aggregate_legacy(settlements: Iterable[Settlement], user_id: str) -> UserBalance:
    """Same totals computed from the signed single-subject rows"""
    rows = legacy_entries(settlements, user_id)
    return UserBalance(
        total_owed=sum(amount for _, amount in rows if amount > 0),
        total_owed_to_you=sum(abs(amount) for _, amount in rows if amount < 0),
    )


def group_debts(settlements: Iterable[Settlement], accounts: Dict[str, Account]) -> List[DirectedDebt]:
    """Pending directed debts annotated with display names; unordered"""

    def name_of(account_id: str) -> str:
        account = accounts.get(account_id)
        return account.name if account and account.name else UNKNOWN_NAME

    return [
        DirectedDebt(
            settlement_id=s.settlement_id,
            debtor_id=s.debtor_id,
            debtor_name=name_of(s.debtor_id),
            creditor_id=s.creditor_id,
            creditor_name=name_of(s.creditor_id),
            amount=s.amount,
            description=s.description,
        )
        for s in settlements
        if s.status == STATUS_PENDING and s.debtor_id != s.creditor_id
    ]


def categorize_expense(description: str) -> str:
    """Keyword match on the description, falling back to 'Other'"""
    desc = (description or "").lower()
    for category, keywords in CATEGORY_KEYWORDS:
        if any(keyword in desc for keyword in keywords):
            return category
    return DEFAULT_CATEGORY


def monthly_spending(
    expenses: Iterable[Expense],
    user_id: str,
    start: date,
    end: date,
    shares_of: Callable[[Expense], Dict[str, float]],
) -> MonthlySpending:
    """
    User's share of every expense dated within [start, end].

    Args:
        expenses: Candidate expenses (typically from the user's groups)
        user_id: Whose share to total
        start, end: Inclusive date range
        shares_of: Share derivation used by every read path
    """
    total = 0.0
    categories: Dict[str, float] = {}
    matched = []

    for expense in sorted(expenses, key=lambda e: e.date, reverse=True):
        if not start <= expense.date <= end:
            continue
        share = shares_of(expense).get(user_id, 0.0)
        total += share
        matched.append((expense, share))
        category = categorize_expense(expense.description)
        categories[category] = categories.get(category, 0.0) + share

    return MonthlySpending(total=total, categories=categories, expenses=matched)


def user_share_total(
    expenses: Iterable[Expense],
    user_id: str,
    shares_of: Callable[[Expense], Dict[str, float]],
) -> float:
    return sum(shares_of(e).get(user_id, 0.0) for e in expenses)
