"""
List XP Transactions Handler.
GET /users/me/xp-transactions?limit=...&cursor=...
"""
from workshop_engine import xp_ledger
from workshop_engine.auth import resolve_current_user
from workshop_engine.utils import api_handler, get_limit_param, get_query_param


@api_handler
def handler(event, context):
    user = resolve_current_user(event)
    result = xp_ledger.list_transactions(
        user.user_id,
        limit=get_limit_param(event),
        cursor=get_query_param(event, 'cursor'),
    )
    return 200, result
