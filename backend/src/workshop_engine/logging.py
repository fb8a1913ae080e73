"""
Logging utilities for Lambda handlers.

One named logger ('workshops') shared by every engine module. The level comes
from LOG_LEVEL (default INFO).
"""
import json
import logging
import os

logger = logging.getLogger('workshops')
logger.setLevel(os.environ.get('LOG_LEVEL', 'INFO').upper())

# Add handler if not already configured
if not logger.handlers:
    handler = logging.StreamHandler()
    handler.setFormatter(logging.Formatter(
        '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    ))
    logger.addHandler(handler)


def _summarize(event: dict) -> dict:
    if 'httpMethod' in event:
        claims = ((event.get('requestContext') or {}).get('authorizer') or {}).get('claims') or {}
        return {
            'method': event.get('httpMethod'),
            'path': event.get('resource') or event.get('path'),
            'pathParameters': event.get('pathParameters'),
            'query': event.get('queryStringParameters'),
            'caller': claims.get('sub'),
        }
    # EventBridge schedule
    return {'source': event.get('source'), 'detailType': event.get('detail-type')}


def log_event(event: dict) -> None:
    """Log a summary of an incoming Lambda event. Bodies and headers are never logged."""
    try:
        logger.info(f"Lambda event: {json.dumps(_summarize(event), default=str)}")
    except (TypeError, ValueError, AttributeError) as e:
        logger.warning(f"Could not log event: {e}")
