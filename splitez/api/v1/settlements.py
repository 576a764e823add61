"""Settlement endpoints - listing, paying, payment callback, balances"""

from fastapi import APIRouter, BackgroundTasks, Depends, Request
from sqlalchemy.orm import Session

from splitez.api.v1.schemas import (
    BalanceResponse,
    LegacyEntrySchema,
    PaySettlementResponse,
    PaymentConfirmedRequest,
    SettlementSchema,
    UserSettlementSchema,
    UserSettlementsResponse,
)
from splitez.api.v1.presenters import raise_http, settlement_schema
from splitez.api.dependencies import (
    get_current_account_id,
    get_gamification_client,
    get_request_id,
    require_service_token,
)
from splitez.infrastructure.database.session import get_db
from splitez.infrastructure.database.repositories import SettlementRepository
from splitez.infrastructure.clients.gamification import GamificationClient, settlement_paid_event
from splitez.domain.exceptions import DomainException, ForbiddenError, NotFoundError
from splitez.domain.balances import aggregate_legacy
from splitez.domain.ledger import legacy_entries, signed_amount
from splitez.domain.models import STATUS_PENDING
from splitez.services.balances import BalanceAggregator
from splitez.services.ledger import SettlementLedger

router = APIRouter()


@router.get("/settlements", response_model=UserSettlementsResponse)
def list_my_settlements(
    request: Request,
    db: Session = Depends(get_db),
    account_id: str = Depends(get_current_account_id),
):
    """Caller's pending debts in both directions, newest first"""
    try:
        settlements = SettlementRepository(db).list_for_account(account_id, STATUS_PENDING)
    except DomainException as e:
        raise_http(e, db, get_request_id(request))

    totals = aggregate_legacy(settlements, account_id)
    return UserSettlementsResponse(
        account_id=account_id,
        settlements=[
            UserSettlementSchema(**settlement_schema(s).model_dump(), signed_amount=signed_amount(s, account_id))
            for s in settlements
        ],
        legacy_entries=[
            LegacyEntrySchema(reference=ref, amount=amount) for ref, amount in legacy_entries(settlements, account_id)
        ],
        total_owed=totals.total_owed,
        total_owed_to_you=totals.total_owed_to_you,
    )


@router.get("/settlements/{settlement_id}", response_model=SettlementSchema)
def get_settlement(
    settlement_id: str,
    request: Request,
    db: Session = Depends(get_db),
    account_id: str = Depends(get_current_account_id),
):
    """Settlement tuple for checkout or reminder flows; parties only"""
    try:
        settlement = SettlementRepository(db).get(settlement_id)
        if settlement is None:
            raise NotFoundError(f"Settlement {settlement_id} not found")
        if account_id not in (settlement.debtor_id, settlement.creditor_id):
            raise ForbiddenError("Not a party to this settlement")
    except DomainException as e:
        raise_http(e, db, get_request_id(request))
    return settlement_schema(settlement)


@router.post("/settlements/{settlement_id}/pay", response_model=PaySettlementResponse)
async def pay_settlement(
    settlement_id: str,
    background_tasks: BackgroundTasks,
    request: Request,
    db: Session = Depends(get_db),
    account_id: str = Depends(get_current_account_id),
    gamification_client: GamificationClient = Depends(get_gamification_client),
):
    """Debtor marks their own debt paid; repeating it is a no-op"""
    try:
        settlement, changed = SettlementLedger(db).mark_settlement_paid(settlement_id, account_id)
    except DomainException as e:
        raise_http(e, db, get_request_id(request))

    if changed:
        background_tasks.add_task(gamification_client.send_event, settlement_paid_event(settlement_id, account_id))
    return PaySettlementResponse(settlement=settlement_schema(settlement), changed=changed)


@router.post(
    "/payments/confirmed",
    response_model=PaySettlementResponse,
    dependencies=[Depends(require_service_token)],
)
async def payment_confirmed(
    request_body: PaymentConfirmedRequest,
    background_tasks: BackgroundTasks,
    request: Request,
    db: Session = Depends(get_db),
    gamification_client: GamificationClient = Depends(get_gamification_client),
):
    """Payment provider callback: the debtor's checkout went through"""
    try:
        settlement, changed = SettlementLedger(db).confirm_payment(request_body.settlement_id)
    except DomainException as e:
        raise_http(e, db, get_request_id(request))

    if changed:
        background_tasks.add_task(
            gamification_client.send_event,
            settlement_paid_event(settlement.settlement_id, settlement.debtor_id),
        )
    return PaySettlementResponse(settlement=settlement_schema(settlement), changed=changed)


@router.get("/balances/me", response_model=BalanceResponse)
def get_my_balance(
    request: Request,
    db: Session = Depends(get_db),
    account_id: str = Depends(get_current_account_id),
):
    try:
        aggregator = BalanceAggregator(db)
        balance = aggregator.for_user(account_id)
        total_spent = aggregator.total_spent(account_id)
    except DomainException as e:
        raise_http(e, db, get_request_id(request))

    return BalanceResponse(
        account_id=account_id,
        total_owed=balance.total_owed,
        total_owed_to_you=balance.total_owed_to_you,
        total_spent=total_spent,
    )
