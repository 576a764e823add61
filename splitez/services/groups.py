"""Group lifecycle: creation, invitations, deletion"""

from typing import Iterable, List
from sqlalchemy.orm import Session
from splitez.domain.exceptions import ForbiddenError, NotFoundError, ValidationError
from splitez.domain.membership import normalize_email, parse_emails
from splitez.domain.models import Group, MembershipResolution
from splitez.infrastructure.database.repositories import GroupRepository
from splitez.services.membership import MembershipResolver


def can_delete(group: Group, account_id: str) -> bool:
    """Creator only; groups predating creator tracking may be deleted by any member"""
    if group.created_by:
        return group.created_by == account_id
    return account_id in group.members


class GroupService:
    def __init__(self, db: Session):
        self.groups = GroupRepository(db)
        self.resolver = MembershipResolver(db)

    def create(self, name: str, description: str, creator_id: str, emails: Iterable[str]) -> MembershipResolution:
        """
        Create a group with the creator as first member.

        Invitee emails that already belong to an account become members
        right away; the rest stay pending. Failed lookups stay pending too.
        """
        if not (name or "").strip():
            raise ValidationError("group name is required")

        raw = parse_emails(emails)
        matches, failed = self.resolver.lookup_accounts(raw)
        members = {creator_id} | {matches[e] for e in raw if e in matches}
        pending = [e for e in raw if e not in matches]

        group = self.groups.create(
            name=name.strip(),
            description=description or "",
            created_by=creator_id,
            members=members,
            member_emails=[normalize_email(e) for e in raw],
            pending_emails=pending,
        )
        return MembershipResolution(
            group=group,
            added_members=members - {creator_id},
            failed_emails=set(failed),
        )

    def get_for_member(self, group_id: str, account_id: str) -> MembershipResolution:
        """Fresh, resolved snapshot of a group the caller belongs to"""
        resolution = self.resolver.resolve_by_id(group_id)
        if account_id not in resolution.group.members:
            raise ForbiddenError("You are not a member of this group")
        return resolution

    def list_for_member(self, account_id: str) -> List[Group]:
        return self.groups.list_for_member(account_id)

    def add_members(self, group_id: str, account_id: str, emails: Iterable[str]) -> MembershipResolution:
        """Invite more people; merges into the existing sets, never replaces them"""
        group = self.groups.get(group_id)
        if group is None:
            raise NotFoundError(f"Group {group_id} not found")
        if account_id not in group.members:
            raise ForbiddenError("You are not a member of this group")

        raw = parse_emails(emails)
        if not raw:
            raise ValidationError("at least one email is required")
        known = {normalize_email(e) for e in group.pending_emails}
        new_pending = [e for e in raw if normalize_email(e) not in known]

        self.groups.merge_membership(
            group_id,
            add_emails={normalize_email(e) for e in raw},
            add_pending=new_pending,
        )
        return self.resolver.resolve_by_id(group_id)

    def delete(self, group_id: str, account_id: str) -> None:
        group = self.groups.get(group_id)
        if group is None:
            raise NotFoundError(f"Group {group_id} not found")
        if not can_delete(group, account_id):
            raise ForbiddenError("Only the group creator can delete this group")
        self.groups.delete_cascade(group_id)
