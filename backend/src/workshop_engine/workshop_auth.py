"""
Authorization guards shared by the workshop engines.
"""
from typing import Any, Dict

from workshop_engine import auth, dynamo
from workshop_engine.config import config
from workshop_engine.errors import ForbiddenError, NotFoundError


def get_workshop(workshop_id: str) -> Dict[str, Any]:
    """
    Consistent read of a workshop.

    Raises:
        NotFoundError: no such workshop
    """
    workshop = dynamo.get_item(config.WORKSHOPS_TABLE, {'workshopId': workshop_id})
    if workshop is None:
        raise NotFoundError('Workshop not found')
    return workshop


def is_organizer(workshop: Dict[str, Any], user_id: str) -> bool:
    """Organizers are the creator and the co-hosts."""
    return workshop.get('creatorId') == user_id or user_id in (workshop.get('coHosts') or [])


def assert_workshop_organizer(workshop_id: str, user_id: str) -> Dict[str, Any]:
    """
    Load a workshop and check that the user organizes it.

    Returns:
        The workshop item

    Raises:
        NotFoundError, ForbiddenError
    """
    workshop = get_workshop(workshop_id)
    if not is_organizer(workshop, user_id):
        raise ForbiddenError('Only organizers can manage this workshop')
    return workshop


def assert_community_member(community_id: str, user_id: str) -> Dict[str, Any]:
    """
    Check that the user belongs to the organization owning a community.

    Returns:
        The community item
    """
    community = auth.get_community(community_id)
    if community is None:
        raise NotFoundError('Community not found')
    if not auth.is_organization_member(community.get('orgId'), user_id):
        raise ForbiddenError('You must be a member of this community')
    return community
