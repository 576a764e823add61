"""Settlement derivation - turns a split into directed debts"""

from typing import Dict, Iterable, List
from splitez.domain.models import Expense, Settlement, SettlementDraft, STATUS_PENDING


def derive_settlements(expense: Expense, shares: Dict[str, float]) -> List[SettlementDraft]:
    """
    One directed debt per non-payer participant with a positive share.

    The payer's own share never becomes a debt; the payer's "owed" total is
    the sum of drafts where they are creditor.
    """
    return [
        SettlementDraft(
            expense_id=expense.expense_id,
            group_id=expense.group_id,
            debtor_id=member,
            creditor_id=expense.paid_by,
            amount=share,
            description=expense.description,
        )
        for member, share in shares.items()
        if member != expense.paid_by and share > 0
    ]


def missing_drafts(drafts: Iterable[SettlementDraft], existing: Iterable[Settlement]) -> List[SettlementDraft]:
    """Drafts whose (debtor, creditor, expense) key is not stored yet"""
    stored = {s.key for s in existing}
    return [d for d in drafts if d.key not in stored]


def signed_amount(settlement: Settlement, subject_id: str) -> float:
    """Legacy single-subject view: positive when subject owes, negative when owed"""
    if settlement.debtor_id == subject_id:
        return settlement.amount
    if settlement.creditor_id == subject_id:
        return -settlement.amount
    return 0.0


def legacy_entries(settlements: Iterable[Settlement], subject_id: str) -> List[tuple[str, float]]:
    """
    Signed rows as the old dashboard stored them for one subject.

    Each debt the subject owes is one positive row; everything owed to the
    subject collapses into one negative row per originating expense. Only
    pending settlements are included.
    """
    rows: List[tuple[str, float]] = []
    owed_by_expense: Dict[str, float] = {}

    for s in settlements:
        if s.status != STATUS_PENDING:
            continue
        if s.debtor_id == subject_id:
            rows.append((s.settlement_id, s.amount))
        elif s.creditor_id == subject_id:
            ref = s.expense_id or s.group_id
            owed_by_expense[ref] = owed_by_expense.get(ref, 0.0) + s.amount

    rows.extend((ref, -total) for ref, total in owed_by_expense.items() if total > 0)
    return rows
