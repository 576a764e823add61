"""Domain objects -> response schemas"""

import logging
from typing import Dict
from fastapi import HTTPException
from sqlalchemy.orm import Session
from splitez.api.v1.schemas import ExpenseSchema, GroupResponse, MemberSchema, SettlementSchema
from splitez.domain.balances import UNKNOWN_NAME
from splitez.domain.exceptions import (
    DomainException,
    ConflictError,
    ForbiddenError,
    NotFoundError,
    PartialFailureError,
    PersistenceError,
    ValidationError,
)
from splitez.domain.models import Expense, Group, Settlement
from splitez.domain.splits import describe_split
from splitez.infrastructure.database.repositories import AccountRepository
from splitez.services.groups import can_delete


def settlement_schema(s: Settlement) -> SettlementSchema:
    return SettlementSchema(
        settlement_id=s.settlement_id,
        expense_id=s.expense_id,
        group_id=s.group_id,
        debtor_id=s.debtor_id,
        creditor_id=s.creditor_id,
        amount=s.amount,
        description=s.description,
        status=s.status,
        created_at=s.created_at,
        paid_at=s.paid_at,
    )


def expense_schema(e: Expense) -> ExpenseSchema:
    return ExpenseSchema(
        expense_id=e.expense_id,
        group_id=e.group_id,
        description=e.description,
        amount=e.amount,
        date=e.date,
        paid_by=e.paid_by,
        split_type=e.split_type,
        split_members=e.split_members,
        split_amounts=e.split_amounts,
        split_info=describe_split(e),
    )


def group_response(group: Group, db: Session, account_id: str) -> GroupResponse:
    accounts = AccountRepository(db).get_many(group.members)
    members = [
        MemberSchema(account_id=m, name=accounts[m].name if m in accounts and accounts[m].name else UNKNOWN_NAME)
        for m in sorted(group.members)
    ]
    return GroupResponse(
        group_id=group.group_id,
        name=group.name,
        description=group.description,
        created_by=group.created_by,
        members=members,
        pending_emails=sorted(group.pending_emails),
        can_delete=can_delete(group, account_id),
    )


STATUS_BY_ERROR = {
    ValidationError: 422,
    NotFoundError: 404,
    ForbiddenError: 403,
    ConflictError: 409,
    PersistenceError: 503,
}


def raise_http(e: DomainException, db: Session, request_id: str) -> None:
    """Roll back and translate a domain exception into an HTTP error"""
    db.rollback()
    if isinstance(e, PartialFailureError):
        logging.error(f"Partial failure: {e}", extra={"request_id": request_id, "expense_id": e.expense_id})
        detail: Dict[str, object] = {
            "message": str(e),
            "expense_id": e.expense_id,
            "failed_step": e.failed_step,
            "completed": e.completed,
        }
        raise HTTPException(status_code=207, detail=detail)

    status_code = next((code for cls, code in STATUS_BY_ERROR.items() if isinstance(e, cls)), 500)
    if status_code >= 500:
        logging.error(f"Store error: {e}", extra={"request_id": request_id})
        raise HTTPException(status_code=status_code, detail="Storage temporarily unavailable")

    logging.warning(f"{e.__class__.__name__}: {e}", extra={"request_id": request_id})
    detail = str(e)
    if isinstance(e, ValidationError) and e.expected is not None:
        detail = {"reason": e.reason, "expected": e.expected, "actual": e.actual}
    raise HTTPException(status_code=status_code, detail=detail)
