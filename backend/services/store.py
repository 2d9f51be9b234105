"""
Store access shared by the lifecycle services.

Lookups always hit the database; nothing is cached between calls.
"""
import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional, Union
from uuid import UUID

from sqlalchemy import func, or_, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from backend.core.exceptions import ConflictError, LifecycleError, UnknownError
from backend.models import Bounty, Curator, Grant, Member, MemberRole, User

logger = logging.getLogger(__name__)

EntityRef = Union[UUID, str]


def _ref_condition(model, ref: EntityRef):
    """Match an id, or a slug case-insensitively."""
    if isinstance(ref, UUID):
        return model.id == ref
    slug_match = func.lower(model.slug) == ref.strip().lower()
    try:
        as_id = UUID(ref)
    except ValueError:
        return slug_match
    return or_(model.id == as_id, slug_match)


async def resolve_grant(db: AsyncSession, ref: EntityRef) -> Optional[Grant]:
    result = await db.execute(select(Grant).where(_ref_condition(Grant, ref)))
    return result.scalars().first()


async def resolve_bounty(db: AsyncSession, ref: EntityRef) -> Optional[Bounty]:
    result = await db.execute(select(Bounty).where(_ref_condition(Bounty, ref)))
    return result.scalars().first()


async def get_membership(
    db: AsyncSession,
    organization_id: UUID,
    user_id: Optional[UUID],
) -> Optional[Member]:
    """The user's membership in the organization, or None."""
    if user_id is None:
        return None
    result = await db.execute(
        select(Member).where(
            Member.organization_id == organization_id,
            Member.user_id == user_id,
        )
    )
    return result.scalar_one_or_none()


async def get_grant_curators(db: AsyncSession, grant_id: UUID) -> list[User]:
    result = await db.execute(
        select(User)
        .join(Curator, Curator.user_id == User.id)
        .where(Curator.grant_id == grant_id)
        .order_by(Curator.created_at)
    )
    return list(result.scalars().unique().all())


async def get_bounty_curators(db: AsyncSession, bounty_id: UUID) -> list[User]:
    result = await db.execute(
        select(User)
        .join(Curator, Curator.user_id == User.id)
        .where(Curator.bounty_id == bounty_id)
        .order_by(Curator.created_at)
    )
    return list(result.scalars().unique().all())


async def get_organization_reviewers(db: AsyncSession, organization_id: UUID) -> list[User]:
    """Owners and admins of the organization."""
    result = await db.execute(
        select(User)
        .join(Member, Member.user_id == User.id)
        .where(
            Member.organization_id == organization_id,
            Member.role.in_([MemberRole.OWNER.value, MemberRole.ADMIN.value]),
        )
        .order_by(Member.created_at)
    )
    return list(result.scalars().unique().all())


@asynccontextmanager
async def unit_of_work(
    db: AsyncSession,
    action: str,
    duplicate_message: Optional[str] = None,
) -> AsyncIterator[AsyncSession]:
    """
    Commit everything written inside the block as one transaction.

    On failure the session is rolled back. Lifecycle errors pass through;
    a uniqueness violation becomes ConflictError when ``duplicate_message``
    is given; any other store failure becomes UnknownError chained to it.
    """
    try:
        yield db
        await db.commit()
    except LifecycleError:
        await db.rollback()
        raise
    except IntegrityError as e:
        await db.rollback()
        if duplicate_message is not None:
            logger.info(f"{action} rejected by uniqueness constraint: {e.orig}")
            raise ConflictError(duplicate_message) from e
        logger.error(f"{action} failed: integrity error", exc_info=True)
        raise UnknownError(f"Failed to {action}") from e
    except SQLAlchemyError as e:
        await db.rollback()
        logger.error(f"{action} failed: store error", exc_info=True)
        raise UnknownError(f"Failed to {action}") from e
