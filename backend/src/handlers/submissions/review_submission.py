"""
Review Submission Handler.
POST /submissions/{submissionId}/review
Body: {"decision": "approved" | "rejected", "feedback": "..."}
"""
from workshop_engine import submissions
from workshop_engine.auth import resolve_current_user
from workshop_engine.utils import api_handler, parse_body, require_path_param


@api_handler
def handler(event, context):
    user = resolve_current_user(event)
    body = parse_body(event)
    result = submissions.review(
        require_path_param(event, 'submissionId'),
        user.user_id,
        body.get('decision'),
        feedback=body.get('feedback'),
    )
    return 200, result
