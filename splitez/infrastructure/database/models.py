"""SQLAlchemy ORM models for accounts, groups, expenses and settlements"""

import uuid
from sqlalchemy import Column, String, Float, DateTime, Date, Integer, ForeignKey, Text, JSON, UniqueConstraint
from sqlalchemy.orm import declarative_base, relationship
from splitez.utils.date_utils import utcnow

Base = declarative_base()


def _uuid() -> str:
    return str(uuid.uuid4())


class AccountRecord(Base):
    """User profile mirrored from the identity service"""

    __tablename__ = "account"

    id = Column(String(64), primary_key=True, default=_uuid)
    name = Column(Text, nullable=False, default="")
    email = Column(Text, nullable=False, index=True)
    points = Column(Integer, nullable=False, default=0)
    level = Column(Integer, nullable=False, default=1)
    badges = Column(JSON, nullable=False, default=list)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)


class GroupRecord(Base):
    """Expense-sharing group"""

    __tablename__ = "expense_group"

    id = Column(String(64), primary_key=True, default=_uuid)
    name = Column(Text, nullable=False)
    description = Column(Text, nullable=False, default="")
    created_by = Column(String(64), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)

    members = relationship("GroupMemberRecord", cascade="all, delete-orphan", lazy="selectin")
    member_emails = relationship("GroupMemberEmailRecord", cascade="all, delete-orphan", lazy="selectin")
    pending_invites = relationship("GroupPendingInviteRecord", cascade="all, delete-orphan", lazy="selectin")


class GroupMemberRecord(Base):
    """Confirmed member; the composite key keeps the roster a true set"""

    __tablename__ = "group_member"

    group_id = Column(String(64), ForeignKey("expense_group.id", ondelete="CASCADE"), primary_key=True)
    account_id = Column(String(64), primary_key=True, index=True)


class GroupMemberEmailRecord(Base):
    """Normalized email of every invitee, used for matching"""

    __tablename__ = "group_member_email"

    group_id = Column(String(64), ForeignKey("expense_group.id", ondelete="CASCADE"), primary_key=True)
    email = Column(String(320), primary_key=True)


class GroupPendingInviteRecord(Base):
    """Invitation not yet resolved to an account (email kept as entered)"""

    __tablename__ = "group_pending_invite"

    group_id = Column(String(64), ForeignKey("expense_group.id", ondelete="CASCADE"), primary_key=True)
    email = Column(String(320), primary_key=True)


class ExpenseRecord(Base):
    """Immutable spend event with its split"""

    __tablename__ = "expense"

    id = Column(String(64), primary_key=True, default=_uuid)
    group_id = Column(String(64), ForeignKey("expense_group.id", ondelete="CASCADE"), nullable=False, index=True)
    description = Column(Text, nullable=False)
    amount = Column(Float, nullable=False)
    date = Column(Date, nullable=False)
    paid_by = Column(String(64), nullable=False, index=True)
    split_type = Column(Text, nullable=False, default="equal")
    split_members = Column(JSON, nullable=False, default=list)
    split_amounts = Column(JSON, nullable=False, default=dict)
    created_by = Column(String(64), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)


class SettlementRecord(Base):
    """Directed debt derived from an expense split"""

    __tablename__ = "settlement"
    __table_args__ = (UniqueConstraint("debtor_id", "creditor_id", "expense_id", name="uq_settlement_debt"),)

    id = Column(String(64), primary_key=True, default=_uuid)
    expense_id = Column(String(64), ForeignKey("expense.id", ondelete="CASCADE"), nullable=True, index=True)
    group_id = Column(String(64), ForeignKey("expense_group.id", ondelete="CASCADE"), nullable=False, index=True)
    debtor_id = Column(String(64), nullable=False, index=True)
    creditor_id = Column(String(64), nullable=False, index=True)
    amount = Column(Float, nullable=False)
    description = Column(Text, nullable=False, default="")
    status = Column(Text, nullable=False, default="pending")
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    paid_at = Column(DateTime(timezone=True), nullable=True)
