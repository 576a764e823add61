"""Data access layer for ledger entities"""

import logging
from contextlib import contextmanager
from typing import Dict, Iterable, Iterator, List, Optional
from sqlalchemy import delete, func, or_, select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session
from splitez.domain.exceptions import ConflictError, PersistenceError
from splitez.domain.models import (
    Account,
    Expense,
    Group,
    Settlement,
    SettlementDraft,
    STATUS_PAID,
    STATUS_PENDING,
)
from splitez.infrastructure.database.models import (
    AccountRecord,
    ExpenseRecord,
    GroupMemberEmailRecord,
    GroupMemberRecord,
    GroupPendingInviteRecord,
    GroupRecord,
    SettlementRecord,
)
from splitez.utils.date_utils import utcnow

logger = logging.getLogger(__name__)


@contextmanager
def store_errors(action: str) -> Iterator[None]:
    """Translate driver/ORM failures into PersistenceError"""
    try:
        yield
    except IntegrityError:
        raise
    except SQLAlchemyError as e:
        raise PersistenceError(f"{action} failed: {e.__class__.__name__}") from e


def to_account(record: AccountRecord) -> Account:
    return Account(
        account_id=record.id,
        name=record.name,
        email=record.email,
        points=record.points,
        level=record.level,
        badges=list(record.badges or []),
    )


def to_group(record: GroupRecord) -> Group:
    return Group(
        group_id=record.id,
        name=record.name,
        description=record.description or "",
        created_by=record.created_by,
        members={m.account_id for m in record.members},
        member_emails={e.email for e in record.member_emails},
        pending_emails={p.email for p in record.pending_invites},
    )


def to_expense(record: ExpenseRecord) -> Expense:
    return Expense(
        expense_id=record.id,
        group_id=record.group_id,
        description=record.description,
        amount=record.amount,
        date=record.date,
        paid_by=record.paid_by,
        split_type=record.split_type,
        split_members=list(record.split_members or []),
        split_amounts={k: float(v) for k, v in (record.split_amounts or {}).items()},
    )


def to_settlement(record: SettlementRecord) -> Settlement:
    return Settlement(
        settlement_id=record.id,
        expense_id=record.expense_id,
        group_id=record.group_id,
        debtor_id=record.debtor_id,
        creditor_id=record.creditor_id,
        amount=record.amount,
        description=record.description,
        status=record.status,
        created_at=record.created_at,
        paid_at=record.paid_at,
    )


class AccountRepository:
    """Repository for account profiles"""

    def __init__(self, db: Session):
        self.db = db

    def upsert(self, account_id: str, name: str, email: str) -> Account:
        """
        Create or refresh a profile pushed by the identity service.

        Raises:
            ConflictError: Another account already holds this email (any casing)
        """
        with store_errors("account upsert"):
            holder = self.db.scalar(
                select(AccountRecord.id)
                .where(func.lower(AccountRecord.email) == email.strip().lower(), AccountRecord.id != account_id)
                .limit(1)
            )
            if holder is not None:
                raise ConflictError("Email already registered to another account")
            record = self.db.get(AccountRecord, account_id)
            if record is None:
                record = AccountRecord(id=account_id, name=name, email=email)
                self.db.add(record)
            else:
                record.name = name
                record.email = email
            self.db.commit()
            return to_account(record)

    def get(self, account_id: str) -> Optional[Account]:
        with store_errors("account fetch"):
            record = self.db.get(AccountRecord, account_id)
            return to_account(record) if record else None

    def get_many(self, account_ids: Iterable[str]) -> Dict[str, Account]:
        ids = set(account_ids)
        if not ids:
            return {}
        with store_errors("account fetch"):
            records = self.db.scalars(select(AccountRecord).where(AccountRecord.id.in_(ids))).all()
            return {r.id: to_account(r) for r in records}

    def find_ids_by_emails(self, emails: Iterable[str]) -> Dict[str, str]:
        """Exact (case-sensitive) email -> account id for every stored match"""
        emails = set(emails)
        if not emails:
            return {}
        with store_errors("account lookup"):
            rows = self.db.execute(
                select(AccountRecord.email, AccountRecord.id)
                .where(AccountRecord.email.in_(emails))
                .order_by(AccountRecord.created_at)
            ).all()
        matches: Dict[str, str] = {}
        for email, account_id in rows:
            matches.setdefault(email, account_id)
        return matches


class GroupRepository:
    """Repository for groups and their membership sets"""

    def __init__(self, db: Session):
        self.db = db

    def create(
        self,
        name: str,
        description: str,
        created_by: str,
        members: Iterable[str],
        member_emails: Iterable[str],
        pending_emails: Iterable[str],
    ) -> Group:
        with store_errors("group create"):
            record = GroupRecord(name=name, description=description, created_by=created_by)
            record.members = [GroupMemberRecord(account_id=m) for m in set(members)]
            record.member_emails = [GroupMemberEmailRecord(email=e) for e in set(member_emails)]
            record.pending_invites = [GroupPendingInviteRecord(email=e) for e in set(pending_emails)]
            self.db.add(record)
            self.db.commit()
            return to_group(record)

    def _record(self, group_id: str) -> Optional[GroupRecord]:
        return self.db.get(GroupRecord, group_id, populate_existing=True)

    def get(self, group_id: str) -> Optional[Group]:
        with store_errors("group fetch"):
            record = self._record(group_id)
            return to_group(record) if record else None

    def list_for_member(self, account_id: str) -> List[Group]:
        with store_errors("group listing"):
            records = self.db.scalars(
                select(GroupRecord)
                .join(GroupMemberRecord, GroupMemberRecord.group_id == GroupRecord.id)
                .where(GroupMemberRecord.account_id == account_id)
                .order_by(GroupRecord.created_at.desc())
            ).all()
            return [to_group(r) for r in records]

    def merge_membership(
        self,
        group_id: str,
        add_members: Iterable[str] = (),
        add_emails: Iterable[str] = (),
        add_pending: Iterable[str] = (),
        remove_pending: Iterable[str] = (),
    ) -> Group:
        """
        Read-merge-write of the membership sets in one transaction.

        Rows are only ever inserted when absent, so concurrent merges commute.
        A unique-key collision means another writer got there first: the
        transaction is retried once against the fresh rows.
        """
        add_members, add_emails = set(add_members), set(add_emails)
        add_pending, remove_pending = set(add_pending), set(remove_pending)

        for attempt in range(2):
            try:
                with store_errors("membership update"):
                    record = self._record(group_id)
                    if record is None:
                        raise PersistenceError(f"group {group_id} disappeared during update")
                    current = to_group(record)
                    for account_id in add_members - current.members:
                        record.members.append(GroupMemberRecord(account_id=account_id))
                    for email in add_emails - current.member_emails:
                        record.member_emails.append(GroupMemberEmailRecord(email=email))
                    for email in add_pending - current.pending_emails - remove_pending:
                        record.pending_invites.append(GroupPendingInviteRecord(email=email))
                    if remove_pending:
                        record.pending_invites = [p for p in record.pending_invites if p.email not in remove_pending]
                    self.db.commit()
                    return self.get(group_id)
            except IntegrityError as e:
                self.db.rollback()
                if attempt:
                    raise PersistenceError("membership update conflicted twice") from e
                logger.info("Membership merge collided, retrying", extra={"group_id": group_id})
        raise PersistenceError("membership update failed")

    def delete_cascade(self, group_id: str) -> None:
        """Remove settlements and expenses before the group itself, atomically"""
        try:
            with store_errors("group delete"):
                self.db.execute(delete(SettlementRecord).where(SettlementRecord.group_id == group_id))
                self.db.execute(delete(ExpenseRecord).where(ExpenseRecord.group_id == group_id))
                record = self._record(group_id)
                if record is not None:
                    self.db.delete(record)
                self.db.commit()
        except PersistenceError:
            self.db.rollback()
            raise


class ExpenseRepository:
    """Repository for expenses"""

    def __init__(self, db: Session):
        self.db = db

    def create(
        self,
        group_id: str,
        description: str,
        amount: float,
        expense_date,
        paid_by: str,
        split_type: str,
        split_members: List[str],
        split_amounts: Dict[str, float],
        created_by: Optional[str] = None,
    ) -> Expense:
        try:
            with store_errors("expense create"):
                record = ExpenseRecord(
                    group_id=group_id,
                    description=description,
                    amount=amount,
                    date=expense_date,
                    paid_by=paid_by,
                    split_type=split_type,
                    split_members=list(split_members),
                    split_amounts=dict(split_amounts),
                    created_by=created_by,
                )
                self.db.add(record)
                self.db.commit()
                return to_expense(record)
        except PersistenceError:
            self.db.rollback()
            raise

    def get(self, expense_id: str) -> Optional[Expense]:
        with store_errors("expense fetch"):
            record = self.db.get(ExpenseRecord, expense_id)
            return to_expense(record) if record else None

    def list_for_group(self, group_id: str) -> List[Expense]:
        with store_errors("expense listing"):
            records = self.db.scalars(
                select(ExpenseRecord).where(ExpenseRecord.group_id == group_id).order_by(ExpenseRecord.date.desc())
            ).all()
            return [to_expense(r) for r in records]

    def list_for_groups(self, group_ids: Iterable[str]) -> List[Expense]:
        ids = set(group_ids)
        if not ids:
            return []
        with store_errors("expense listing"):
            records = self.db.scalars(
                select(ExpenseRecord).where(ExpenseRecord.group_id.in_(ids)).order_by(ExpenseRecord.date.desc())
            ).all()
            return [to_expense(r) for r in records]

    def list_paid_by(self, account_id: str) -> List[Expense]:
        with store_errors("expense listing"):
            records = self.db.scalars(select(ExpenseRecord).where(ExpenseRecord.paid_by == account_id)).all()
            return [to_expense(r) for r in records]


class SettlementRepository:
    """Repository for settlements"""

    def __init__(self, db: Session):
        self.db = db

    def get(self, settlement_id: str) -> Optional[Settlement]:
        with store_errors("settlement fetch"):
            record = self.db.get(SettlementRecord, settlement_id, populate_existing=True)
            return to_settlement(record) if record else None

    def list_for_expense(self, expense_id: str) -> List[Settlement]:
        with store_errors("settlement listing"):
            records = self.db.scalars(
                select(SettlementRecord)
                .where(SettlementRecord.expense_id == expense_id)
                .execution_options(populate_existing=True)
            ).all()
            return [to_settlement(r) for r in records]

    def list_for_group(self, group_id: str, status: Optional[str] = None) -> List[Settlement]:
        with store_errors("settlement listing"):
            query = select(SettlementRecord).where(SettlementRecord.group_id == group_id)
            if status:
                query = query.where(SettlementRecord.status == status)
            return [to_settlement(r) for r in self.db.scalars(query).all()]

    def list_for_account(self, account_id: str, status: Optional[str] = None) -> List[Settlement]:
        """Settlements where the account is debtor or creditor"""
        with store_errors("settlement listing"):
            query = select(SettlementRecord).where(
                or_(SettlementRecord.debtor_id == account_id, SettlementRecord.creditor_id == account_id)
            )
            if status:
                query = query.where(SettlementRecord.status == status)
            query = query.order_by(SettlementRecord.created_at.desc())
            return [to_settlement(r) for r in self.db.scalars(query).all()]

    def add_many(self, drafts: List[SettlementDraft]) -> List[Settlement]:
        """
        Insert drafts in one transaction.

        Raises:
            IntegrityError: A (debtor, creditor, expense) triple already exists
            PersistenceError: Any other store failure
        """
        records = [
            SettlementRecord(
                expense_id=d.expense_id,
                group_id=d.group_id,
                debtor_id=d.debtor_id,
                creditor_id=d.creditor_id,
                amount=d.amount,
                description=d.description,
                status=STATUS_PENDING,
            )
            for d in drafts
        ]
        try:
            with store_errors("settlement create"):
                self.db.add_all(records)
                self.db.commit()
                return [to_settlement(r) for r in records]
        except (IntegrityError, PersistenceError):
            self.db.rollback()
            raise

    def mark_paid(self, settlement_ids: Iterable[str]) -> int:
        """
        Flip pending settlements to paid; already-paid rows are left untouched.

        Returns:
            Number of settlements that actually transitioned
        """
        ids = list(settlement_ids)
        if not ids:
            return 0
        try:
            with store_errors("settlement payment"):
                result = self.db.execute(
                    update(SettlementRecord)
                    .where(SettlementRecord.id.in_(ids), SettlementRecord.status == STATUS_PENDING)
                    .values(status=STATUS_PAID, paid_at=utcnow())
                    .execution_options(synchronize_session=False)
                )
                self.db.commit()
                return result.rowcount
        except PersistenceError:
            self.db.rollback()
            raise
