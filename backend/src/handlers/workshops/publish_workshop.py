"""
Publish Workshop Handler.
POST /workshops/{workshopId}/publish
"""
from workshop_engine import catalog
from workshop_engine.auth import resolve_current_user
from workshop_engine.utils import api_handler, require_path_param


@api_handler
def handler(event, context):
    """Publish a draft workshop immediately (image, mode and dates required)."""
    user = resolve_current_user(event)
    workshop = catalog.publish_workshop(require_path_param(event, 'workshopId'), user.user_id)
    return 200, catalog.to_detail(workshop)
