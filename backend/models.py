"""
Tribeworks Database Models
SQLAlchemy ORM models for the bounty and grant marketplace.
"""
import enum
import uuid
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Optional

from sqlalchemy import (
    JSON,
    TIMESTAMP,
    Boolean,
    CheckConstraint,
    Enum,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
    Uuid,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship


def utcnow() -> datetime:
    """Timezone-aware current time used for every timestamp default."""
    return datetime.now(timezone.utc)


# =============================================================================
# Enums
# =============================================================================


class BountyStatus(str, enum.Enum):
    """Bounty lifecycle status. Transitions live in backend.services.lifecycle."""

    OPEN = "OPEN"
    REVIEWING = "REVIEWING"
    COMPLETED = "COMPLETED"
    CLOSED = "CLOSED"
    CANCELLED = "CANCELLED"


class Visibility(str, enum.Enum):
    """Publication state, orthogonal to status."""

    DRAFT = "DRAFT"
    PUBLISHED = "PUBLISHED"
    ARCHIVED = "ARCHIVED"


class SplitPolicy(str, enum.Enum):
    """How a bounty's prize pool is divided between winners."""

    FIXED = "FIXED"
    EQUAL_SPLIT = "EQUAL_SPLIT"
    VARIABLE = "VARIABLE"


class SubmissionStatus(str, enum.Enum):
    SUBMITTED = "SUBMITTED"
    UNDER_REVIEW = "UNDER_REVIEW"
    SELECTED = "SELECTED"
    REJECTED = "REJECTED"
    SPAM = "SPAM"


class GrantStatus(str, enum.Enum):
    DRAFT = "DRAFT"
    OPEN = "OPEN"
    PAUSED = "PAUSED"
    CLOSED = "CLOSED"


class GrantSource(str, enum.Enum):
    """NATIVE grants take applications here; EXTERNAL ones link elsewhere."""

    NATIVE = "NATIVE"
    EXTERNAL = "EXTERNAL"


class ApplicationStatus(str, enum.Enum):
    DRAFT = "DRAFT"
    SUBMITTED = "SUBMITTED"
    UNDER_REVIEW = "UNDER_REVIEW"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"


class MemberRole(str, enum.Enum):
    OWNER = "owner"
    ADMIN = "admin"
    MEMBER = "member"


class Base(DeclarativeBase):
    """Base class for all database models."""

    pass


# =============================================================================
# People and Organizations
# =============================================================================


class User(Base):
    """
    Marketplace user.

    Identity and credentials are owned by the auth provider; this table only
    holds the contact fields the lifecycle core reads.
    """

    __tablename__ = "users"

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        primary_key=True,
        default=uuid.uuid4,
        doc="Unique identifier for the user",
    )
    email: Mapped[str] = mapped_column(
        Text,
        nullable=False,
        unique=True,
        doc="User email address",
    )
    username: Mapped[Optional[str]] = mapped_column(
        String(64),
        nullable=True,
        unique=True,
        doc="Public handle",
    )
    first_name: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    last_name: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    image: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True),
        nullable=False,
        default=utcnow,
    )

    memberships: Mapped[list["Member"]] = relationship(
        "Member",
        back_populates="user",
        cascade="all, delete-orphan",
    )

    def __repr__(self) -> str:
        return f"<User(id={self.id}, username='{self.username}')>"


class Organization(Base):
    """Funding organization that owns grants and bounties."""

    __tablename__ = "organizations"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    slug: Mapped[str] = mapped_column(String(200), nullable=False, unique=True)
    created_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True),
        nullable=False,
        default=utcnow,
    )

    members: Mapped[list["Member"]] = relationship(
        "Member",
        back_populates="organization",
        cascade="all, delete-orphan",
    )

    def __repr__(self) -> str:
        return f"<Organization(id={self.id}, slug='{self.slug}')>"


class Member(Base):
    """Membership of a user in an organization, with a role."""

    __tablename__ = "members"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    organization_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("organizations.id", ondelete="CASCADE"),
        nullable=False,
    )
    user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
    )
    role: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default=MemberRole.MEMBER.value,
        doc="owner, admin or member",
    )
    created_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True),
        nullable=False,
        default=utcnow,
    )

    organization: Mapped["Organization"] = relationship("Organization", back_populates="members")
    user: Mapped["User"] = relationship("User", back_populates="memberships")

    __table_args__ = (
        UniqueConstraint("organization_id", "user_id", name="uq_members_org_user"),
    )

    def __repr__(self) -> str:
        return f"<Member(user_id={self.user_id}, role='{self.role}')>"


class Curator(Base):
    """A user designated to review one grant's or one bounty's entries."""

    __tablename__ = "curators"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
    )
    bounty_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid,
        ForeignKey("bounties.id", ondelete="CASCADE"),
        nullable=True,
    )
    grant_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid,
        ForeignKey("grants.id", ondelete="CASCADE"),
        nullable=True,
    )
    created_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True),
        nullable=False,
        default=utcnow,
    )

    user: Mapped["User"] = relationship("User", lazy="joined")

    __table_args__ = (
        UniqueConstraint("user_id", "bounty_id", name="uq_curators_user_bounty"),
        UniqueConstraint("user_id", "grant_id", name="uq_curators_user_grant"),
        CheckConstraint(
            "(bounty_id IS NULL) <> (grant_id IS NULL)",
            name="ck_curators_single_target",
        ),
    )


# =============================================================================
# Grants
# =============================================================================


class Grant(Base):
    """
    Open-ended funding program.

    The lifecycle core only consults status, visibility, source, ownership
    and the budget bounds; everything else is profile data.
    """

    __tablename__ = "grants"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    organization_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("organizations.id", ondelete="CASCADE"),
        nullable=False,
    )
    slug: Mapped[str] = mapped_column(String(200), nullable=False, unique=True)
    title: Mapped[str] = mapped_column(Text, nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    status: Mapped[GrantStatus] = mapped_column(
        Enum(GrantStatus, name="grant_status"),
        nullable=False,
        default=GrantStatus.OPEN,
    )
    visibility: Mapped[Visibility] = mapped_column(
        Enum(Visibility, name="visibility"),
        nullable=False,
        default=Visibility.DRAFT,
    )
    source: Mapped[GrantSource] = mapped_column(
        Enum(GrantSource, name="grant_source"),
        nullable=False,
        default=GrantSource.NATIVE,
    )
    application_url: Mapped[Optional[str]] = mapped_column(
        Text,
        nullable=True,
        doc="Where EXTERNAL grants send applicants",
    )
    min_amount: Mapped[Optional[Decimal]] = mapped_column(Numeric(18, 2), nullable=True)
    max_amount: Mapped[Optional[Decimal]] = mapped_column(Numeric(18, 2), nullable=True)
    token: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)
    screening: Mapped[Optional[list[dict[str, Any]]]] = mapped_column(JSON, nullable=True)
    application_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    created_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True),
        nullable=False,
        default=utcnow,
    )
    updated_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True),
        nullable=False,
        default=utcnow,
        onupdate=utcnow,
    )

    organization: Mapped["Organization"] = relationship("Organization")
    rfps: Mapped[list["RFP"]] = relationship(
        "RFP",
        back_populates="grant",
        cascade="all, delete-orphan",
    )
    applications: Mapped[list["GrantApplication"]] = relationship(
        "GrantApplication",
        back_populates="grant",
        cascade="all, delete-orphan",
    )

    def __repr__(self) -> str:
        return f"<Grant(id={self.id}, slug='{self.slug}')>"


class RFP(Base):
    """Specific funding ask nested under a grant."""

    __tablename__ = "rfps"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    grant_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("grants.id", ondelete="CASCADE"),
        nullable=False,
    )
    title: Mapped[str] = mapped_column(Text, nullable=False)
    slug: Mapped[str] = mapped_column(String(200), nullable=False)
    application_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    created_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True),
        nullable=False,
        default=utcnow,
    )

    grant: Mapped["Grant"] = relationship("Grant", back_populates="rfps")

    __table_args__ = (
        UniqueConstraint("grant_id", "slug", name="uq_rfps_grant_slug"),
    )


class GrantApplication(Base):
    """
    Application for funding from a grant.

    At most one application exists per (grant, applicant); the unique
    constraint backs the application-level duplicate check.
    """

    __tablename__ = "grant_applications"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    grant_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("grants.id", ondelete="CASCADE"),
        nullable=False,
    )
    rfp_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid,
        ForeignKey("rfps.id", ondelete="SET NULL"),
        nullable=True,
    )
    user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
    )
    title: Mapped[str] = mapped_column(String(200), nullable=False)
    summary: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    description: Mapped[str] = mapped_column(Text, nullable=False)
    timeline: Mapped[Optional[list[dict[str, Any]]]] = mapped_column(
        JSON,
        nullable=True,
        doc="Ordered [{milestone, date}] pairs",
    )
    milestones: Mapped[Optional[list[dict[str, Any]]]] = mapped_column(JSON, nullable=True)
    budget: Mapped[Optional[Decimal]] = mapped_column(Numeric(18, 2), nullable=True)
    responses: Mapped[Optional[dict[str, Any]]] = mapped_column(
        JSON,
        nullable=True,
        doc="Screening question answers",
    )
    status: Mapped[ApplicationStatus] = mapped_column(
        Enum(ApplicationStatus, name="application_status"),
        nullable=False,
        default=ApplicationStatus.SUBMITTED,
    )
    feedback: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    submitted_at: Mapped[Optional[datetime]] = mapped_column(TIMESTAMP(timezone=True), nullable=True)
    reviewed_at: Mapped[Optional[datetime]] = mapped_column(TIMESTAMP(timezone=True), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True),
        nullable=False,
        default=utcnow,
    )
    updated_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True),
        nullable=False,
        default=utcnow,
        onupdate=utcnow,
    )

    grant: Mapped["Grant"] = relationship("Grant", back_populates="applications")
    rfp: Mapped[Optional["RFP"]] = relationship("RFP")
    applicant: Mapped["User"] = relationship("User", lazy="joined")

    __table_args__ = (
        Index("ix_grant_applications_grant_id", grant_id),
        UniqueConstraint("grant_id", "user_id", name="uq_grant_applications_grant_user"),
    )

    def __repr__(self) -> str:
        return f"<GrantApplication(id={self.id}, status='{self.status.value}')>"


# =============================================================================
# Bounties
# =============================================================================


class Bounty(Base):
    """
    Fixed-prize competition.

    ``winnings`` maps a position ("1", "2", ...) to its prize. JSON object
    keys are always strings, so positions are stored as their decimal text.
    """

    __tablename__ = "bounties"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    organization_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("organizations.id", ondelete="CASCADE"),
        nullable=False,
    )
    slug: Mapped[str] = mapped_column(String(200), nullable=False, unique=True)
    title: Mapped[str] = mapped_column(Text, nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    skills: Mapped[list[str]] = mapped_column(JSON, nullable=False, default=list)
    amount: Mapped[Optional[Decimal]] = mapped_column(Numeric(18, 2), nullable=True)
    token: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)
    split: Mapped[SplitPolicy] = mapped_column(
        Enum(SplitPolicy, name="split_policy"),
        nullable=False,
        default=SplitPolicy.FIXED,
    )
    winnings: Mapped[Optional[dict[str, Any]]] = mapped_column(JSON, nullable=True)
    deadline: Mapped[Optional[datetime]] = mapped_column(TIMESTAMP(timezone=True), nullable=True)
    status: Mapped[BountyStatus] = mapped_column(
        Enum(BountyStatus, name="bounty_status"),
        nullable=False,
        default=BountyStatus.OPEN,
    )
    visibility: Mapped[Visibility] = mapped_column(
        Enum(Visibility, name="visibility"),
        nullable=False,
        default=Visibility.DRAFT,
    )
    submission_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    last_reminder_sent_at: Mapped[Optional[datetime]] = mapped_column(
        TIMESTAMP(timezone=True),
        nullable=True,
        doc="Last approaching-deadline reminder to the organization",
    )
    last_winner_reminder_sent_at: Mapped[Optional[datetime]] = mapped_column(
        TIMESTAMP(timezone=True),
        nullable=True,
    )
    winners_announced_at: Mapped[Optional[datetime]] = mapped_column(
        TIMESTAMP(timezone=True),
        nullable=True,
        doc="Submissions stay confidential until this is set",
    )
    created_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True),
        nullable=False,
        default=utcnow,
    )
    updated_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True),
        nullable=False,
        default=utcnow,
        onupdate=utcnow,
    )

    organization: Mapped["Organization"] = relationship("Organization")
    submissions: Mapped[list["Submission"]] = relationship(
        "Submission",
        back_populates="bounty",
    )
    curators: Mapped[list["Curator"]] = relationship(
        "Curator",
        cascade="all, delete-orphan",
    )

    __table_args__ = (
        Index("ix_bounties_status_deadline", status, deadline),
    )

    def __repr__(self) -> str:
        return f"<Bounty(id={self.id}, status='{self.status.value}')>"


class Submission(Base):
    """
    Entry to a bounty.

    ``position`` is set exactly when ``is_winner`` is true, and no two
    submissions of one bounty share a position.
    """

    __tablename__ = "submissions"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    bounty_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("bounties.id", ondelete="CASCADE"),
        nullable=False,
    )
    user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
    )
    title: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    submission_url: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    responses: Mapped[Optional[dict[str, Any]]] = mapped_column(JSON, nullable=True)
    status: Mapped[SubmissionStatus] = mapped_column(
        Enum(SubmissionStatus, name="submission_status"),
        nullable=False,
        default=SubmissionStatus.SUBMITTED,
    )
    is_winner: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    position: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    winning_amount: Mapped[Optional[Decimal]] = mapped_column(Numeric(18, 2), nullable=True)
    submitted_at: Mapped[Optional[datetime]] = mapped_column(TIMESTAMP(timezone=True), nullable=True)
    reviewed_at: Mapped[Optional[datetime]] = mapped_column(TIMESTAMP(timezone=True), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True),
        nullable=False,
        default=utcnow,
    )

    bounty: Mapped["Bounty"] = relationship("Bounty", back_populates="submissions")
    submitter: Mapped["User"] = relationship("User", lazy="joined")

    __table_args__ = (
        Index("ix_submissions_bounty_id", bounty_id),
        UniqueConstraint("bounty_id", "user_id", name="uq_submissions_bounty_user"),
        UniqueConstraint("bounty_id", "position", name="uq_submissions_bounty_position"),
        CheckConstraint(
            "(is_winner AND position IS NOT NULL) OR (NOT is_winner AND position IS NULL)",
            name="ck_submissions_winner_position",
        ),
    )

    def __repr__(self) -> str:
        return f"<Submission(id={self.id}, status='{self.status.value}', position={self.position})>"
