"""
Workshop Image Upload URL Handler.
POST /workshops/{workshopId}/image-upload-url
"""
from workshop_engine import catalog
from workshop_engine.auth import resolve_current_user
from workshop_engine.utils import api_handler, require_path_param


@api_handler
def handler(event, context):
    user = resolve_current_user(event)
    return 200, catalog.generate_image_upload_url(require_path_param(event, 'workshopId'), user.user_id)
