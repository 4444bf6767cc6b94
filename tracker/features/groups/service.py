"""
Service layer: group lookup and membership writes.
Membership is owned by registration; progress reporting only reads it.
"""
import logging

from sqlalchemy import select
from sqlalchemy.orm import Session

from tracker.features.groups.models import Group, GroupMember

logger = logging.getLogger(__name__)


def ensure_group(session: Session, group_id: int, name: str) -> Group:
    """Return the group with this id, creating it if missing."""
    group = session.get(Group, group_id)
    if group is None:
        group = Group(id=group_id, name=name)
        session.add(group)
        session.flush()
        logger.info(f"Created group {group_id} ({name})")
    return group


def add_member(session: Session, group_id: int, user_id: int) -> None:
    """Add user to group unless already a member."""
    existing = session.execute(
        select(GroupMember).where(GroupMember.group_id == group_id, GroupMember.user_id == user_id)
    ).scalars().first()
    if existing is None:
        session.add(GroupMember(group_id=group_id, user_id=user_id))

