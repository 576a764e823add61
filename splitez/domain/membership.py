"""Membership reconciliation - promotes pending invitations to confirmed members"""

from dataclasses import replace
from typing import Dict, Iterable, List, Set
from splitez.domain.models import Group, MembershipResolution


def normalize_email(email: str) -> str:
    return (email or "").strip().lower()


def parse_emails(raw: Iterable[str]) -> List[str]:
    """Trim, drop blanks and dedupe (case-insensitively) while keeping first casing"""
    seen: Set[str] = set()
    emails = []
    for email in raw:
        email = (email or "").strip()
        if email and normalize_email(email) not in seen:
            seen.add(normalize_email(email))
            emails.append(email)
    return emails


def merge_membership(
    group: Group,
    matches: Dict[str, str],
    failed: Iterable[str] = (),
) -> MembershipResolution:
    """
    Merge account lookups into a group's roster.

    Args:
        group: Current snapshot of the group
        matches: Email (as stored on the group) -> matched account id
        failed: Emails whose lookup errored; they stay pending

    Returns:
        MembershipResolution whose group holds the merged sets. Members only
        ever grow (set union), so applying the same matches again, or in a
        different order, yields the same group.
    """
    failed = set(failed)
    members = set(group.members)
    member_emails = set(group.member_emails)
    pending = set(group.pending_emails)
    promoted: Set[str] = set()

    for email in group.member_emails:
        account_id = matches.get(email)
        if account_id:
            members.add(account_id)

    for email in group.pending_emails:
        if email in failed:
            continue
        account_id = matches.get(email)
        if not account_id:
            continue
        members.add(account_id)
        member_emails.add(normalize_email(email))
        pending.discard(email)
        promoted.add(email)

    merged = replace(group, members=members, member_emails=member_emails, pending_emails=pending)
    return MembershipResolution(
        group=merged,
        added_members=members - set(group.members),
        promoted_emails=promoted,
        failed_emails=failed & (set(group.pending_emails) | set(group.member_emails)),
    )
