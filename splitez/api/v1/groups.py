"""Group endpoints - creation, membership, deletion, balances"""

from fastapi import APIRouter, Depends, Request, Response
from sqlalchemy.orm import Session

from splitez.api.v1.schemas import (
    AddMembersRequest,
    DirectedDebtSchema,
    GroupBalancesResponse,
    GroupCreateRequest,
    GroupListResponse,
    GroupResponse,
    ResolutionResponse,
)
from splitez.api.v1.presenters import group_response, raise_http
from splitez.api.dependencies import get_current_account_id, get_request_id
from splitez.infrastructure.database.session import get_db
from splitez.domain.exceptions import DomainException, ForbiddenError
from splitez.domain.models import MembershipResolution
from splitez.services.balances import BalanceAggregator
from splitez.services.groups import GroupService

router = APIRouter()


def resolution_response(resolution: MembershipResolution, db: Session, account_id: str) -> ResolutionResponse:
    return ResolutionResponse(
        group=group_response(resolution.group, db, account_id),
        promoted_emails=sorted(resolution.promoted_emails),
        added_members=sorted(resolution.added_members),
        failed_emails=sorted(resolution.failed_emails),
        partial=resolution.partial,
    )


@router.post("/groups", response_model=ResolutionResponse, status_code=201)
def create_group(
    request_body: GroupCreateRequest,
    request: Request,
    db: Session = Depends(get_db),
    account_id: str = Depends(get_current_account_id),
):
    """
    Create a group; the caller is always its first member.

    Invitees with an account join immediately, others stay pending until
    they sign up.
    """
    try:
        resolution = GroupService(db).create(
            request_body.name, request_body.description, account_id, request_body.member_emails
        )
    except DomainException as e:
        raise_http(e, db, get_request_id(request))
    return resolution_response(resolution, db, account_id)


@router.get("/groups", response_model=GroupListResponse)
def list_groups(
    request: Request,
    db: Session = Depends(get_db),
    account_id: str = Depends(get_current_account_id),
):
    try:
        groups = GroupService(db).list_for_member(account_id)
        return GroupListResponse(groups=[group_response(g, db, account_id) for g in groups])
    except DomainException as e:
        raise_http(e, db, get_request_id(request))


@router.get("/groups/{group_id}", response_model=GroupResponse)
def get_group(
    group_id: str,
    request: Request,
    db: Session = Depends(get_db),
    account_id: str = Depends(get_current_account_id),
):
    """Latest group snapshot, after promoting invitees who have signed up"""
    try:
        resolution = GroupService(db).get_for_member(group_id, account_id)
        return group_response(resolution.group, db, account_id)
    except DomainException as e:
        raise_http(e, db, get_request_id(request))


@router.post("/groups/{group_id}/members", response_model=ResolutionResponse)
def add_members(
    group_id: str,
    request_body: AddMembersRequest,
    request: Request,
    db: Session = Depends(get_db),
    account_id: str = Depends(get_current_account_id),
):
    try:
        resolution = GroupService(db).add_members(group_id, account_id, request_body.emails)
        return resolution_response(resolution, db, account_id)
    except DomainException as e:
        raise_http(e, db, get_request_id(request))


@router.post("/groups/{group_id}/resolve", response_model=ResolutionResponse)
def resolve_group(
    group_id: str,
    request: Request,
    db: Session = Depends(get_db),
    account_id: str = Depends(get_current_account_id),
):
    """Run membership resolution and report promotions and failed lookups"""
    try:
        resolution = GroupService(db).get_for_member(group_id, account_id)
        return resolution_response(resolution, db, account_id)
    except DomainException as e:
        raise_http(e, db, get_request_id(request))


@router.delete("/groups/{group_id}", status_code=204)
def delete_group(
    group_id: str,
    request: Request,
    db: Session = Depends(get_db),
    account_id: str = Depends(get_current_account_id),
):
    """Delete a group with all of its expenses and settlements"""
    try:
        GroupService(db).delete(group_id, account_id)
    except DomainException as e:
        raise_http(e, db, get_request_id(request))
    return Response(status_code=204)


@router.get("/groups/{group_id}/balances", response_model=GroupBalancesResponse)
def get_group_balances(
    group_id: str,
    request: Request,
    db: Session = Depends(get_db),
    account_id: str = Depends(get_current_account_id),
):
    """Pending debts within the group, largest first"""
    try:
        group = GroupService(db).groups.get(group_id)
        if group is not None and account_id not in group.members:
            raise ForbiddenError("You are not a member of this group")
        debts = BalanceAggregator(db).for_group(group_id)
    except DomainException as e:
        raise_http(e, db, get_request_id(request))

    debts.sort(key=lambda d: d.amount, reverse=True)
    return GroupBalancesResponse(
        group_id=group_id,
        debts=[DirectedDebtSchema(**vars(d)) for d in debts],
    )
