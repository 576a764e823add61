"""Expense endpoints - recording, listing, breakdown and settling"""

import time
from fastapi import APIRouter, BackgroundTasks, Depends, Request
from sqlalchemy.orm import Session

from splitez.api.v1.schemas import (
    BreakdownLineSchema,
    ExpenseBreakdownResponse,
    ExpenseCreateRequest,
    ExpenseCreateResponse,
    ExpenseListResponse,
    SettleExpenseResponse,
)
from splitez.api.v1.presenters import expense_schema, raise_http, settlement_schema
from splitez.api.dependencies import get_current_account_id, get_gamification_client, get_request_id
from splitez.infrastructure.database.session import get_db
from splitez.infrastructure.clients.gamification import (
    GamificationClient,
    expense_added_event,
    settlement_paid_event,
)
from splitez.infrastructure.observability.logging import log_expense_recorded
from splitez.domain.exceptions import DomainException
from splitez.domain.models import STATUS_PAID
from splitez.services.expenses import ExpenseService
from splitez.services.ledger import SettlementLedger

router = APIRouter()


@router.post("/groups/{group_id}/expenses", response_model=ExpenseCreateResponse, status_code=201)
async def create_expense(
    group_id: str,
    request_body: ExpenseCreateRequest,
    background_tasks: BackgroundTasks,
    request: Request,
    db: Session = Depends(get_db),
    account_id: str = Depends(get_current_account_id),
    gamification_client: GamificationClient = Depends(get_gamification_client),
):
    """
    Record an expense and the debts it creates.

    Flow:
    1. Resolve group membership and validate payer / participants
    2. Compute the split (422 on a bad custom split, nothing stored)
    3. Persist the expense, then its settlements
    4. Notify gamification once settlements are stored
    5. 207 with the expense id if settlements failed after the expense was stored
    """
    start_time = time.time()
    request_id = get_request_id(request)

    try:
        expense, settlements = ExpenseService(db).add_expense(
            group_id=group_id,
            account_id=account_id,
            description=request_body.description,
            amount=request_body.amount,
            expense_date=request_body.date,
            paid_by=request_body.paid_by,
            split_type=request_body.split_type,
            split_members=request_body.split_members,
            custom_shares=request_body.custom_shares,
        )
    except DomainException as e:
        raise_http(e, db, request_id)

    background_tasks.add_task(
        gamification_client.send_event,
        expense_added_event(expense.expense_id, group_id, expense.paid_by),
    )

    duration_ms = (time.time() - start_time) * 1000
    log_expense_recorded(request_id, account_id, expense.expense_id, group_id, len(settlements), duration_ms)

    return ExpenseCreateResponse(
        expense=expense_schema(expense),
        settlements=[settlement_schema(s) for s in settlements],
    )


@router.get("/groups/{group_id}/expenses", response_model=ExpenseListResponse)
def list_expenses(
    group_id: str,
    request: Request,
    db: Session = Depends(get_db),
    account_id: str = Depends(get_current_account_id),
):
    try:
        expenses = ExpenseService(db).list_for_group(group_id, account_id)
    except DomainException as e:
        raise_http(e, db, get_request_id(request))
    return ExpenseListResponse(group_id=group_id, expenses=[expense_schema(e) for e in expenses])


@router.get("/expenses/{expense_id}", response_model=ExpenseBreakdownResponse)
def get_expense(
    expense_id: str,
    request: Request,
    db: Session = Depends(get_db),
    account_id: str = Depends(get_current_account_id),
):
    """Single expense with who owes what, names and payment status"""
    try:
        breakdown = ExpenseService(db).breakdown(expense_id, account_id)
    except DomainException as e:
        raise_http(e, db, get_request_id(request))

    return ExpenseBreakdownResponse(
        expense=expense_schema(breakdown.expense),
        payer_name=breakdown.payer_name,
        lines=[BreakdownLineSchema(**vars(line)) for line in breakdown.lines],
        you_owe=breakdown.you_owe,
        owed_to_you=breakdown.owed_to_you,
    )


@router.post("/expenses/{expense_id}/settlements", response_model=ExpenseCreateResponse)
def retry_settlements(
    expense_id: str,
    request: Request,
    db: Session = Depends(get_db),
    account_id: str = Depends(get_current_account_id),
):
    """Write any settlements missing for an expense (safe to repeat)"""
    try:
        service = ExpenseService(db)
        service.breakdown(expense_id, account_id)
        settlements = service.ledger.record_for_expense_id(expense_id)
        expense = service.expenses.get(expense_id)
    except DomainException as e:
        raise_http(e, db, get_request_id(request))

    return ExpenseCreateResponse(
        expense=expense_schema(expense),
        settlements=[settlement_schema(s) for s in settlements],
    )


@router.post("/expenses/{expense_id}/settle", response_model=SettleExpenseResponse)
async def settle_expense(
    expense_id: str,
    background_tasks: BackgroundTasks,
    request: Request,
    db: Session = Depends(get_db),
    account_id: str = Depends(get_current_account_id),
    gamification_client: GamificationClient = Depends(get_gamification_client),
):
    """Caller pays everything they owe on this expense"""
    try:
        settlements, newly_paid = SettlementLedger(db).mark_expense_paid(expense_id, account_id)
    except DomainException as e:
        raise_http(e, db, get_request_id(request))

    if newly_paid:
        for s in settlements:
            if s.status == STATUS_PAID:
                background_tasks.add_task(
                    gamification_client.send_event,
                    settlement_paid_event(s.settlement_id, account_id),
                )

    return SettleExpenseResponse(
        expense_id=expense_id,
        settlements=[settlement_schema(s) for s in settlements],
        newly_paid=newly_paid,
    )
