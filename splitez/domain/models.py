"""Domain models - pure Python dataclasses representing business entities"""

from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Dict, List, Optional, Set

SPLIT_EQUAL = "equal"
SPLIT_CUSTOM = "custom"
SPLIT_POLICIES = (SPLIT_EQUAL, SPLIT_CUSTOM)

STATUS_PENDING = "pending"
STATUS_PAID = "paid"


@dataclass
class Account:
    """User profile owned by the identity service"""

    account_id: str
    name: str
    email: str  # normalized (lower-cased)
    points: int = 0
    level: int = 1
    badges: List[str] = field(default_factory=list)


@dataclass
class Group:
    """Named collection of confirmed members and pending invitations"""

    group_id: str
    name: str
    description: str = ""
    created_by: Optional[str] = None
    members: Set[str] = field(default_factory=set)
    member_emails: Set[str] = field(default_factory=set)
    pending_emails: Set[str] = field(default_factory=set)  # raw casing, for legacy lookup


@dataclass(frozen=True)
class Expense:
    """Single spend event; never mutated after creation"""

    expense_id: str
    group_id: str
    description: str
    amount: float
    date: date
    paid_by: str
    split_type: str
    split_members: List[str]
    split_amounts: Dict[str, float]


@dataclass(frozen=True)
class SettlementDraft:
    """Directed debt derived from a split, before it is persisted"""

    expense_id: str
    group_id: str
    debtor_id: str
    creditor_id: str
    amount: float
    description: str

    @property
    def key(self) -> tuple[str, str, str]:
        return (self.debtor_id, self.creditor_id, self.expense_id)


@dataclass
class Settlement:
    """Persisted directed debt with payment status"""

    settlement_id: str
    expense_id: Optional[str]
    group_id: str
    debtor_id: str
    creditor_id: str
    amount: float
    description: str
    status: str = STATUS_PENDING
    created_at: Optional[datetime] = None
    paid_at: Optional[datetime] = None

    @property
    def key(self) -> tuple[Optional[str], str, str]:
        return (self.debtor_id, self.creditor_id, self.expense_id)


@dataclass
class MembershipResolution:
    """Outcome of reconciling a group's roster against known accounts"""

    group: Group
    added_members: Set[str] = field(default_factory=set)
    promoted_emails: Set[str] = field(default_factory=set)
    failed_emails: Set[str] = field(default_factory=set)

    @property
    def changed(self) -> bool:
        return bool(self.added_members or self.promoted_emails)

    @property
    def partial(self) -> bool:
        return bool(self.failed_emails)


@dataclass
class UserBalance:
    """Pending totals for a single account"""

    total_owed: float
    total_owed_to_you: float


@dataclass
class DirectedDebt:
    """Pending debt annotated for presentation"""

    settlement_id: str
    debtor_id: str
    debtor_name: str
    creditor_id: str
    creditor_name: str
    amount: float
    description: str


@dataclass
class MonthlySpending:
    """User's share of group spending within one calendar month"""

    total: float
    categories: Dict[str, float]
    expenses: List[tuple[Expense, float]]


@dataclass
class GroupSpending:
    group_id: str
    group_name: str
    total: float
