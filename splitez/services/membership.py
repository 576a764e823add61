"""Membership resolution against the account store"""

import logging
from typing import Dict, Iterable, Set, Tuple
from sqlalchemy.orm import Session
from splitez.domain.exceptions import NotFoundError, PersistenceError
from splitez.domain.membership import merge_membership, normalize_email
from splitez.domain.models import Group, MembershipResolution
from splitez.infrastructure.database.repositories import AccountRepository, GroupRepository
from splitez.infrastructure.observability.logging import log_membership_resolution
from splitez.infrastructure.observability.metrics import (
    membership_lookup_failure_counter,
    membership_promotion_counter,
)

logger = logging.getLogger(__name__)


class MembershipResolver:
    """Promotes pending invitations once matching accounts exist"""

    def __init__(self, db: Session):
        self.db = db
        self.accounts = AccountRepository(db)
        self.groups = GroupRepository(db)

    def lookup_accounts(self, emails: Iterable[str]) -> Tuple[Dict[str, str], Set[str]]:
        """
        Match emails to account ids in as few round trips as possible.

        Normalized emails are matched first, then the literal casing for
        accounts stored before emails were normalized. If the batch query
        fails, each email is retried on its own so that one bad lookup only
        leaves that email unresolved.

        Returns:
            (email -> account id, emails whose lookup failed)
        """
        emails = {e for e in emails if e}
        if not emails:
            return {}, set()
        try:
            return self._batch_lookup(emails), set()
        except PersistenceError as e:
            logger.warning("Batch account lookup failed, falling back to per-email", extra={"error": str(e)})
            self.db.rollback()

        matches: Dict[str, str] = {}
        failed: Set[str] = set()
        for email in sorted(emails):
            try:
                matches.update(self._batch_lookup({email}))
            except PersistenceError as e:
                membership_lookup_failure_counter.inc()
                self.db.rollback()
                logger.warning("Account lookup failed", extra={"email": email, "error": str(e)})
                failed.add(email)
        return matches, failed

    def _batch_lookup(self, emails: Set[str]) -> Dict[str, str]:
        by_normalized = self.accounts.find_ids_by_emails({normalize_email(e) for e in emails})
        matches = {e: by_normalized[normalize_email(e)] for e in emails if normalize_email(e) in by_normalized}

        legacy = {e for e in emails if e not in matches and e != normalize_email(e)}
        if legacy:
            by_literal = self.accounts.find_ids_by_emails(legacy)
            matches.update({e: by_literal[e] for e in legacy if e in by_literal})
        return matches

    def resolve(self, group: Group) -> MembershipResolution:
        """
        Reconcile a group's roster and persist promotions in one update.

        Nothing is written when no promotion happened. Failed lookups are
        reported on the result rather than raised.
        """
        matches, failed = self.lookup_accounts(group.member_emails | group.pending_emails)
        resolution = merge_membership(group, matches, failed)

        if resolution.changed:
            merged = self.groups.merge_membership(
                group.group_id,
                add_members=resolution.added_members,
                add_emails=resolution.group.member_emails - group.member_emails,
                remove_pending=resolution.promoted_emails,
            )
            resolution.group = merged
            membership_promotion_counter.inc(len(resolution.promoted_emails))

        if resolution.changed or resolution.partial:
            log_membership_resolution(
                group.group_id,
                resolution.promoted_emails,
                resolution.added_members,
                resolution.failed_emails,
            )
        return resolution

    def resolve_by_id(self, group_id: str) -> MembershipResolution:
        group = self.groups.get(group_id)
        if group is None:
            raise NotFoundError(f"Group {group_id} not found")
        return self.resolve(group)
