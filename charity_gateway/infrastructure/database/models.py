"""SQLAlchemy ORM models for cases, contributions and their approval records"""

import uuid
from sqlalchemy import Column, String, Boolean, DateTime, Integer, ForeignKey, Text, Numeric, UniqueConstraint
from sqlalchemy.orm import declarative_base, relationship

from charity_gateway.utils.date_utils import utcnow

Base = declarative_base()


def _new_id() -> str:
    return str(uuid.uuid4())


class User(Base):
    """Platform user (donor or admin); identities are issued by the hosted auth provider"""

    __tablename__ = "users"

    id = Column(Text, primary_key=True, default=_new_id)
    email = Column(Text, nullable=False, unique=True)
    first_name = Column(Text, nullable=True)
    last_name = Column(Text, nullable=True)
    created_at = Column(DateTime, nullable=False, default=utcnow)


class AdminUserRole(Base):
    """Active admin role assignment, read as a yes/no capability"""

    __tablename__ = "admin_user_roles"

    id = Column(Text, primary_key=True, default=_new_id)
    user_id = Column(Text, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    role_name = Column(String(50), nullable=False)  # admin | super_admin
    is_active = Column(Boolean, nullable=False, default=True)


class Case(Base):
    """Fundraising case; current_amount is the ledger of approved contributions"""

    __tablename__ = "cases"

    id = Column(Text, primary_key=True, default=_new_id)
    title_en = Column(Text, nullable=True)
    title_ar = Column(Text, nullable=True)
    target_amount = Column(Numeric(12, 2), nullable=False, default=0)
    current_amount = Column(Numeric(12, 2), nullable=False, default=0)
    status = Column(String(20), nullable=False, default="draft")
    created_at = Column(DateTime, nullable=False, default=utcnow)
    updated_at = Column(DateTime, nullable=False, default=utcnow, onupdate=utcnow)

    @property
    def title(self) -> str:
        return self.title_en or self.title_ar or "Unknown Case"


class Contribution(Base):
    """Donor contribution with a coarse status mirrored from its approval record"""

    __tablename__ = "contributions"

    id = Column(Text, primary_key=True, default=_new_id)
    amount = Column(Numeric(12, 2), nullable=False)
    case_id = Column(Text, ForeignKey("cases.id"), nullable=True, index=True)
    donor_id = Column(Text, ForeignKey("users.id"), nullable=True, index=True)
    payment_method = Column(String(30), nullable=False)
    message = Column(Text, nullable=True)
    notes = Column(Text, nullable=True)
    anonymous = Column(Boolean, nullable=False, default=False)
    proof_of_payment = Column(Text, nullable=True)
    status = Column(String(20), nullable=False, default="pending", index=True)
    created_at = Column(DateTime, nullable=False, default=utcnow, index=True)
    updated_at = Column(DateTime, nullable=False, default=utcnow, onupdate=utcnow)

    case = relationship("Case")
    donor = relationship("User")
    approval_status = relationship(
        "ContributionApprovalStatus",
        back_populates="contribution",
        uselist=False,
        cascade="all, delete-orphan",
    )


class ContributionApprovalStatus(Base):
    """Current (latest-wins) moderation record, one per contribution"""

    __tablename__ = "contribution_approval_status"
    __table_args__ = (UniqueConstraint("contribution_id", name="uq_approval_status_contribution"),)

    id = Column(Text, primary_key=True, default=_new_id)
    contribution_id = Column(Text, ForeignKey("contributions.id", ondelete="CASCADE"), nullable=False)
    status = Column(String(20), nullable=False, default="pending")
    admin_id = Column(Text, ForeignKey("users.id"), nullable=True)
    rejection_reason = Column(String(50), nullable=True)
    admin_comment = Column(Text, nullable=True)
    donor_reply = Column(Text, nullable=True)
    donor_reply_date = Column(DateTime, nullable=True)
    payment_proof_url = Column(Text, nullable=True)
    resubmission_count = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime, nullable=False, default=utcnow)
    updated_at = Column(DateTime, nullable=False, default=utcnow, onupdate=utcnow)

    contribution = relationship("Contribution", back_populates="approval_status")


class ContributionApprovalEvent(Base):
    """Append-only history of approval transitions"""

    __tablename__ = "contribution_approval_events"

    id = Column(Text, primary_key=True, default=_new_id)
    contribution_id = Column(Text, ForeignKey("contributions.id", ondelete="CASCADE"), nullable=False, index=True)
    kind = Column(String(20), nullable=False)  # approved | rejected | resubmitted | acknowledged
    status = Column(String(20), nullable=False)
    actor_id = Column(Text, nullable=True)
    rejection_reason = Column(String(50), nullable=True)
    comment = Column(Text, nullable=True)
    resubmission_count = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime, nullable=False, default=utcnow)
