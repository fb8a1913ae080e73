"""
Common utility functions for Lambda handlers.
"""
import functools
import json
import time
from decimal import Decimal
from typing import Any, Callable, Dict

from workshop_engine.errors import InvariantViolation, ValidationError, WorkshopError
from workshop_engine.logging import logger, log_event


class DecimalEncoder(json.JSONEncoder):
    """JSON encoder that handles Decimal types from DynamoDB."""

    def default(self, o):
        if isinstance(o, Decimal):
            # Convert to int if it's a whole number, otherwise float
            if o % 1 == 0:
                return int(o)
            return float(o)
        return super().default(o)


def now_ms() -> int:
    """Current time as epoch milliseconds."""
    return int(time.time() * 1000)


def format_response(
    status_code: int,
    body: Any,
    headers: Dict[str, str] = None
) -> Dict[str, Any]:
    """
    Format a standard API Gateway response with CORS headers.

    Args:
        status_code: HTTP status code
        body: Response body (will be JSON serialized)
        headers: Additional headers to include

    Returns:
        API Gateway response dict
    """
    default_headers = {
        'Access-Control-Allow-Origin': '*',
        'Access-Control-Allow-Credentials': True,
        'Content-Type': 'application/json'
    }

    if headers:
        default_headers.update(headers)

    return {
        'statusCode': status_code,
        'headers': default_headers,
        'body': json.dumps(body, cls=DecimalEncoder)
    }


def parse_body(event: dict) -> dict:
    """
    Parse the JSON body of an API Gateway event.

    Numbers are parsed as Decimal so they can be written to DynamoDB as-is.

    Raises:
        ValidationError: body is not a JSON object
    """
    body = event.get('body') or '{}'
    if isinstance(body, dict):
        return body
    try:
        parsed = json.loads(body, parse_float=Decimal)
    except (json.JSONDecodeError, TypeError):
        raise ValidationError('Request body must be valid JSON')
    if not isinstance(parsed, dict):
        raise ValidationError('Request body must be a JSON object')
    return parsed


def get_path_param(event: dict, param_name: str) -> str:
    """Extract path parameter from event."""
    try:
        return event['pathParameters'][param_name]
    except (KeyError, TypeError):
        return None


def require_path_param(event: dict, param_name: str) -> str:
    value = get_path_param(event, param_name)
    if not value:
        raise ValidationError(f"Missing path parameter '{param_name}'")
    return value


def get_query_param(event: dict, param_name: str, default: str = None) -> str:
    """Extract query string parameter from event."""
    params = event.get('queryStringParameters') or {}
    return params.get(param_name, default)


def get_limit_param(event: dict, default: int = None) -> int:
    raw = get_query_param(event, 'limit')
    if raw is None:
        return default
    try:
        limit = int(raw)
    except ValueError:
        raise ValidationError('limit must be an integer')
    if limit < 1 or limit > 100:
        raise ValidationError('limit must be between 1 and 100')
    return limit


def api_handler(func: Callable) -> Callable:
    """
    Wrap a Lambda handler: log the event, turn WorkshopError into its HTTP
    status and anything else into a 500.

    The wrapped function returns (status_code, body).
    """
    @functools.wraps(func)
    def wrapper(event, context):
        log_event(event)
        try:
            status_code, body = func(event, context)
            return format_response(status_code, body)
        except WorkshopError as e:
            logger.info(f"{func.__module__}: {e.code} - {e.message}")
            return format_response(e.status_code, e.to_dict())
        except InvariantViolation as e:
            logger.error(f"BUG in {func.__module__}: {e}")
            return format_response(500, {'error': 'INTERNAL_ERROR', 'message': 'Internal server error'})
        except Exception:
            logger.exception(f"Unhandled error in {func.__module__}")
            return format_response(500, {'error': 'INTERNAL_ERROR', 'message': 'Internal server error'})

    return wrapper
