"""
Audit XP Total Handler (Admin only).
GET /admin/users/{userId}/xp-audit
"""
from workshop_engine import xp_ledger
from workshop_engine.auth import resolve_current_user
from workshop_engine.errors import ForbiddenError
from workshop_engine.utils import api_handler, require_path_param


@api_handler
def handler(event, context):
    """Compare a user's stored totalXp with the sum of their ledger."""
    user = resolve_current_user(event)
    if user.role != 'admin':
        raise ForbiddenError('Admin access required')
    return 200, xp_ledger.audit_user_total(require_path_param(event, 'userId'))
