"""
Get Level Info Handler.
GET /users/me/level
"""
from workshop_engine import xp_ledger
from workshop_engine.auth import resolve_current_user
from workshop_engine.utils import api_handler


@api_handler
def handler(event, context):
    """Total XP, level, progress to the next level and level title."""
    user = resolve_current_user(event)
    return 200, xp_ledger.get_user_level_info(user.user_id)
