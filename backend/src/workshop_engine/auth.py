"""
Authentication utilities for extracting user info from Cognito tokens, and
organization membership lookups.
"""
from dataclasses import dataclass
from typing import Optional

from workshop_engine import dynamo
from workshop_engine.config import config
from workshop_engine.errors import UnauthenticatedError


@dataclass(frozen=True)
class CurrentUser:
    user_id: str
    role: str  # 'admin' or 'member'


def get_user_sub(event: dict) -> Optional[str]:
    """
    Extract user sub (unique ID) from Cognito authorizer claims.

    Args:
        event: API Gateway Lambda proxy event

    Returns:
        User sub string or None if not authenticated
    """
    try:
        return event['requestContext']['authorizer']['claims']['sub']
    except (KeyError, TypeError):
        return None


def get_user_groups(event: dict) -> list:
    """Extract user groups from Cognito claims."""
    try:
        groups = event['requestContext']['authorizer']['claims'].get('cognito:groups', '')
        if isinstance(groups, str):
            return groups.split(',') if groups else []
        return groups or []
    except (KeyError, TypeError, AttributeError):
        return []


def resolve_current_user(event: dict) -> CurrentUser:
    """
    Resolve the caller of an API request.

    Raises:
        UnauthenticatedError: no Cognito identity on the request
    """
    user_id = get_user_sub(event)
    if not user_id:
        raise UnauthenticatedError('Authentication required')
    role = 'admin' if 'admin' in get_user_groups(event) else 'member'
    return CurrentUser(user_id=user_id, role=role)


def is_organization_member(org_id: str, user_id: str) -> bool:
    """Check whether a user belongs to an organization."""
    if not org_id or not user_id:
        return False
    membership = dynamo.get_item(config.MEMBERSHIPS_TABLE, {'orgId': org_id, 'userId': user_id})
    return membership is not None


def get_community(community_id: str) -> Optional[dict]:
    return dynamo.get_item(config.COMMUNITIES_TABLE, {'communityId': community_id}, consistent=False)
