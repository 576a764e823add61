"""PUT /v1/accounts/{account_id} - profile sync from the identity service"""

from fastapi import APIRouter, Depends, HTTPException, Request
from sqlalchemy.orm import Session

from splitez.api.v1.schemas import AccountUpsertRequest, AccountResponse
from splitez.api.v1.presenters import raise_http
from splitez.api.dependencies import get_request_id, require_service_token
from splitez.infrastructure.database.session import get_db
from splitez.infrastructure.database.repositories import AccountRepository
from splitez.domain.exceptions import DomainException
from splitez.domain.membership import normalize_email

router = APIRouter()


@router.put(
    "/accounts/{account_id}",
    response_model=AccountResponse,
    dependencies=[Depends(require_service_token)],
)
def upsert_account(
    account_id: str,
    request_body: AccountUpsertRequest,
    request: Request,
    db: Session = Depends(get_db),
):
    """Store the profile with a normalized email so invitations can match it"""
    email = normalize_email(request_body.email)
    if "@" not in email:
        raise HTTPException(status_code=422, detail="Invalid email")

    try:
        account = AccountRepository(db).upsert(account_id, request_body.name.strip(), email)
    except DomainException as e:
        raise_http(e, db, get_request_id(request))

    return AccountResponse(
        account_id=account.account_id,
        name=account.name,
        email=account.email,
        points=account.points,
        level=account.level,
        badges=account.badges,
    )
