"""
Create Workshop Handler.
POST /workshops
"""
from workshop_engine import catalog
from workshop_engine.auth import resolve_current_user
from workshop_engine.utils import api_handler, parse_body


@api_handler
def handler(event, context):
    """Create a draft workshop in one of the caller's communities."""
    user = resolve_current_user(event)
    workshop = catalog.create_workshop(user.user_id, parse_body(event))
    return 201, catalog.to_detail(workshop)
