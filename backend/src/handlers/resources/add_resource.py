"""
Add Resource Handler.
POST /workshops/{workshopId}/resources
Body: {"type": "file" | "link" | "richtext", "title": "...", ...}
"""
from workshop_engine import resources
from workshop_engine.auth import resolve_current_user
from workshop_engine.errors import ValidationError
from workshop_engine.utils import api_handler, parse_body, require_path_param

_ADDERS = {
    'file': resources.add_file_resource,
    'link': resources.add_link_resource,
    'richtext': resources.add_richtext_resource,
}


@api_handler
def handler(event, context):
    user = resolve_current_user(event)
    body = parse_body(event)
    add = _ADDERS.get(body.get('type'))
    if add is None:
        raise ValidationError(f"type must be one of {sorted(_ADDERS)}")
    return 201, add(require_path_param(event, 'workshopId'), user.user_id, body)
