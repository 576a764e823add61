"""GET /v1/analytics/* - spending summaries for the caller"""

from datetime import date
from typing import Optional
from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.orm import Session

from splitez.api.v1.schemas import (
    GroupSpendingResponse,
    GroupSpendingSchema,
    MonthlyExpenseSchema,
    MonthlySpendingResponse,
)
from splitez.api.v1.presenters import raise_http
from splitez.api.dependencies import get_current_account_id, get_request_id
from splitez.infrastructure.database.session import get_db
from splitez.domain.exceptions import DomainException
from splitez.services.balances import BalanceAggregator

router = APIRouter()


@router.get("/analytics/monthly", response_model=MonthlySpendingResponse)
def get_monthly_spending(
    request: Request,
    year: Optional[int] = Query(None, ge=1970, le=9999),
    month: Optional[int] = Query(None, ge=1, le=12),
    db: Session = Depends(get_db),
    account_id: str = Depends(get_current_account_id),
):
    """
    Caller's share of group spending in one month.

    Returns:
        Total, per-category totals and the contributing expenses
    """
    today = date.today()
    year = year or today.year
    month = month or today.month

    try:
        spending = BalanceAggregator(db).monthly(account_id, year, month)
    except DomainException as e:
        raise_http(e, db, get_request_id(request))

    return MonthlySpendingResponse(
        account_id=account_id,
        year=year,
        month=month,
        total=spending.total,
        categories=spending.categories,
        expenses=[
            MonthlyExpenseSchema(
                expense_id=expense.expense_id,
                description=expense.description,
                date=expense.date,
                amount=expense.amount,
                user_share=share,
            )
            for expense, share in spending.expenses
        ],
    )


@router.get("/analytics/groups", response_model=GroupSpendingResponse)
def get_group_spending(
    request: Request,
    db: Session = Depends(get_db),
    account_id: str = Depends(get_current_account_id),
):
    try:
        groups = BalanceAggregator(db).per_group(account_id)
    except DomainException as e:
        raise_http(e, db, get_request_id(request))

    return GroupSpendingResponse(
        account_id=account_id,
        groups=[GroupSpendingSchema(group_id=g.group_id, group_name=g.group_name, total=g.total) for g in groups],
    )
