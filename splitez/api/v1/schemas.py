"""Pydantic schemas for API request/response validation"""

from pydantic import BaseModel, Field, FiniteFloat
from datetime import date as Date, datetime
from typing import Dict, List, Optional


class AccountUpsertRequest(BaseModel):
    """Request body for PUT /v1/accounts/{account_id}"""

    name: str = Field("", description="Display name")
    email: str = Field(..., min_length=3, description="Account email")


class AccountResponse(BaseModel):
    account_id: str
    name: str
    email: str
    points: int
    level: int
    badges: List[str]


class GroupCreateRequest(BaseModel):
    """Request body for POST /v1/groups"""

    name: str = Field(..., min_length=1)
    description: str = ""
    member_emails: List[str] = Field(default_factory=list, description="Invitee emails")


class AddMembersRequest(BaseModel):
    """Request body for POST /v1/groups/{group_id}/members"""

    emails: List[str] = Field(..., min_length=1)


class MemberSchema(BaseModel):
    account_id: str
    name: str


class GroupResponse(BaseModel):
    group_id: str
    name: str
    description: str
    created_by: Optional[str] = None
    members: List[MemberSchema]
    pending_emails: List[str]
    can_delete: bool = False


class GroupListResponse(BaseModel):
    groups: List[GroupResponse]


class ResolutionResponse(BaseModel):
    """Result of a membership resolution pass"""

    group: GroupResponse
    promoted_emails: List[str]
    added_members: List[str]
    failed_emails: List[str]
    partial: bool


class ExpenseCreateRequest(BaseModel):
    """Request body for POST /v1/groups/{group_id}/expenses"""

    description: str = Field(..., min_length=1)
    amount: float = Field(..., gt=0, allow_inf_nan=False, description="Positive amount, currency-agnostic")
    date: Date
    paid_by: str = Field(..., min_length=1)
    split_type: str = Field("equal", pattern="^(equal|custom)$")
    split_members: List[str] = Field(..., min_length=1)
    custom_shares: Optional[Dict[str, FiniteFloat]] = None


class SettlementSchema(BaseModel):
    """Settlement tuple consumed by payment and reminder collaborators"""

    settlement_id: str
    expense_id: Optional[str] = None
    group_id: str
    debtor_id: str
    creditor_id: str
    amount: float
    description: str
    status: str
    created_at: Optional[datetime] = None
    paid_at: Optional[datetime] = None


class ExpenseSchema(BaseModel):
    expense_id: str
    group_id: str
    description: str
    amount: float
    date: Date
    paid_by: str
    split_type: str
    split_members: List[str]
    split_amounts: Dict[str, float]
    split_info: str


class ExpenseCreateResponse(BaseModel):
    expense: ExpenseSchema
    settlements: List[SettlementSchema]


class ExpenseListResponse(BaseModel):
    group_id: str
    expenses: List[ExpenseSchema]


class BreakdownLineSchema(BaseModel):
    debtor_id: str
    debtor_name: str
    creditor_id: str
    amount: float
    status: str
    settlement_id: Optional[str] = None


class ExpenseBreakdownResponse(BaseModel):
    """Response for GET /v1/expenses/{expense_id}"""

    expense: ExpenseSchema
    payer_name: str
    lines: List[BreakdownLineSchema]
    you_owe: float
    owed_to_you: float


class SettleExpenseResponse(BaseModel):
    expense_id: str
    settlements: List[SettlementSchema]
    newly_paid: int


class PaySettlementResponse(BaseModel):
    settlement: SettlementSchema
    changed: bool


class PaymentConfirmedRequest(BaseModel):
    """Callback body from the payment collaborator"""

    settlement_id: str = Field(..., min_length=1)
    payment_reference: Optional[str] = None


class UserSettlementSchema(SettlementSchema):
    signed_amount: float = Field(..., description="Positive: you owe. Negative: owed to you")


class LegacyEntrySchema(BaseModel):
    """Signed row as the old dashboard displayed it"""

    reference: str = Field(..., description="Settlement id for debts, expense id for amounts owed to you")
    amount: float


class UserSettlementsResponse(BaseModel):
    account_id: str
    settlements: List[UserSettlementSchema]
    legacy_entries: List[LegacyEntrySchema]
    total_owed: float
    total_owed_to_you: float


class BalanceResponse(BaseModel):
    """Response for GET /v1/balances/me"""

    account_id: str
    total_owed: float
    total_owed_to_you: float
    total_spent: float


class DirectedDebtSchema(BaseModel):
    settlement_id: str
    debtor_id: str
    debtor_name: str
    creditor_id: str
    creditor_name: str
    amount: float
    description: str


class GroupBalancesResponse(BaseModel):
    group_id: str
    debts: List[DirectedDebtSchema]


class MonthlyExpenseSchema(BaseModel):
    expense_id: str
    description: str
    date: Date
    amount: float
    user_share: float


class MonthlySpendingResponse(BaseModel):
    account_id: str
    year: int
    month: int
    total: float
    categories: Dict[str, float]
    expenses: List[MonthlyExpenseSchema]


class GroupSpendingSchema(BaseModel):
    group_id: str
    group_name: str
    total: float


class GroupSpendingResponse(BaseModel):
    account_id: str
    groups: List[GroupSpendingSchema]
