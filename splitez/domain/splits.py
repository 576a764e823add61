"""Split calculation - who owes what for a single expense"""

import math
from typing import Dict, Iterable, List, Optional
from splitez.config import settings
from splitez.domain.exceptions import ValidationError
from splitez.domain.models import Expense, SPLIT_CUSTOM, SPLIT_EQUAL, SPLIT_POLICIES


def _dedupe(members: Iterable[str]) -> List[str]:
    seen = set()
    ordered = []
    for member in members:
        if member and member not in seen:
            seen.add(member)
            ordered.append(member)
    return ordered


def compute_split(
    amount: float,
    payer: str,
    members: Iterable[str],
    policy: str = SPLIT_EQUAL,
    custom_shares: Optional[Dict[str, float]] = None,
    include_payer: bool = True,
    tolerance: float | None = None,
) -> Dict[str, float]:
    """
    Compute each member's owed share of an expense.

    Requirements:
    - equal: amount / len(participants), floating-point quotient, no remainder
      redistribution (drift stays within tolerance)
    - custom: supplied shares must sum to amount within tolerance
    - Only the payer (or nobody) participating means nothing to settle: {}

    Args:
        amount: Expense total, must be positive
        payer: Account that paid
        members: Participating account ids (duplicates are ignored)
        policy: "equal" or "custom"
        custom_shares: Explicit per-member shares for the custom policy
        include_payer: Keep the payer's own consumption share in the mapping
            when the payer is listed as a participant
        tolerance: Allowed absolute drift (default: settings.split_tolerance)

    Raises:
        ValidationError: Unknown policy, non-positive or non-finite amount,
            negative or non-finite shares, shares for non-participants, or
            custom shares not summing to amount

    Example:
        300 paid by P among [P, M1, M2] -> {P: 100.0, M1: 100.0, M2: 100.0}
    """
    if tolerance is None:
        tolerance = settings.split_tolerance

    if policy not in SPLIT_POLICIES:
        raise ValidationError(f"unknown split policy '{policy}'")
    if amount is None or not math.isfinite(amount) or amount <= 0:
        raise ValidationError("amount must be positive")

    participants = _dedupe(members)
    if not include_payer:
        participants = [m for m in participants if m != payer]

    if not [m for m in participants if m != payer]:
        return {}

    if policy == SPLIT_EQUAL:
        per_person = amount / len(participants)
        return {member: per_person for member in participants}

    shares = custom_shares or {}
    outsiders = set(shares) - set(participants)
    if outsiders:
        raise ValidationError(f"shares given for non-participants: {', '.join(sorted(outsiders))}")
    if not all(math.isfinite(share) for share in shares.values()):
        raise ValidationError("shares must be finite numbers")
    if any(share < 0 for share in shares.values()):
        raise ValidationError("shares must not be negative")

    split = {member: float(shares.get(member, 0.0)) for member in participants}
    total = sum(split.values())
    if abs(total - amount) > tolerance:
        raise ValidationError("split mismatch", expected=amount, actual=total)

    return split


def derive_shares(expense: Expense, group_members: Iterable[str] = ()) -> Dict[str, float]:
    """
    Shares for an expense as every read path sees them.

    A stored mapping is returned as-is. Expenses recorded without one are
    reconstructed: explicit participants first, otherwise the group's
    confirmed members, always minus the payer, split equally.
    """
    if expense.split_amounts:
        return {member: float(share) for member, share in expense.split_amounts.items()}

    members = list(expense.split_members) or list(group_members)
    members = [m for m in members if m and m != expense.paid_by]
    if not members or expense.amount <= 0:
        return {}

    return compute_split(expense.amount, expense.paid_by, members, SPLIT_EQUAL, include_payer=False)


def describe_split(expense: Expense) -> str:
    """Human-readable split summary for expense lists"""
    if expense.split_type == SPLIT_CUSTOM:
        return "Custom split"
    return f"Split equally among {len(expense.split_members)} people"
