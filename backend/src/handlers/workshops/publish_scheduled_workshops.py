"""
Publish Scheduled Workshops Handler.
Triggered by EventBridge scheduler to publish workshops whose scheduledAt has passed.
"""
from workshop_engine import catalog
from workshop_engine.logging import log_event, logger


def handler(event, context):
    """
    Scheduled handler, run every minute by EventBridge.
    """
    log_event(event)
    logger.info("Running scheduled workshop publishing check...")
    result = catalog.publish_scheduled_workshops()
    logger.info(f"Published {result['published']} of {result['checked']} due workshops")
    return result
