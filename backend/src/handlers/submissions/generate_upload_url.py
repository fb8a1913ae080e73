"""
Submission Upload URL Handler.
POST /assignments/{assignmentId}/upload-url

Returns a presigned PUT URL and the blobId to send back as the fileId of a
file_upload submission.
"""
from workshop_engine import submissions
from workshop_engine.auth import resolve_current_user
from workshop_engine.utils import api_handler, require_path_param


@api_handler
def handler(event, context):
    user = resolve_current_user(event)
    return 200, submissions.generate_submission_upload_url(require_path_param(event, 'assignmentId'), user.user_id)
