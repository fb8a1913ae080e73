"""
List Workshops Handler.
GET /communities/{communityId}/workshops  - a community's workshops
GET /workshops/upcoming                   - published workshops not started yet
"""
from workshop_engine import catalog
from workshop_engine.auth import resolve_current_user
from workshop_engine.utils import api_handler, get_limit_param, get_path_param, get_query_param


@api_handler
def handler(event, context):
    resolve_current_user(event)
    limit = get_limit_param(event)
    cursor = get_query_param(event, 'cursor')

    community_id = get_path_param(event, 'communityId')
    if community_id:
        return 200, catalog.list_by_community(community_id, limit=limit, cursor=cursor)
    return 200, catalog.list_upcoming(limit=limit, cursor=cursor)
