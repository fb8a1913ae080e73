"""
Search Workshops Handler.
GET /workshops/search?q=...
"""
from workshop_engine import catalog
from workshop_engine.auth import resolve_current_user
from workshop_engine.utils import api_handler, get_limit_param, get_query_param


@api_handler
def handler(event, context):
    """Title search; only published workshops that have not started are returned."""
    resolve_current_user(event)
    results = catalog.search_workshops(get_query_param(event, 'q', ''), limit=get_limit_param(event))
    return 200, {'items': results, 'count': len(results)}
