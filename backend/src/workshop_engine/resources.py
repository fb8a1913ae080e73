"""
Workshop resources: files, links and rich text attached to a workshop.

Organizers manage them; organizers and registered attendees can read them.
"""
import uuid
from typing import Any, Dict, List

from boto3.dynamodb.conditions import Key

from workshop_engine import blob_store, dynamo, utils
from workshop_engine.config import config
from workshop_engine.errors import ForbiddenError, NotFoundError, ValidationError
from workshop_engine.logging import logger
from workshop_engine.models import (
    FileResource, LinkResource, RegistrationStatus, RichTextResource, ResourceContent,
    as_int, as_str, parse_resource_content,
)
from workshop_engine.workshop_auth import assert_workshop_organizer, get_workshop, is_organizer

WORKSHOP_INDEX = 'byWorkshop'


def get_resource(resource_id: str) -> Dict[str, Any]:
    resource = dynamo.get_item(config.RESOURCES_TABLE, {'resourceId': resource_id})
    if resource is None:
        raise NotFoundError('Resource not found')
    return resource


def _workshop_resources(workshop_id: str) -> List[Dict[str, Any]]:
    rows = dynamo.query_all(config.RESOURCES_TABLE, Key('workshopId').eq(workshop_id), index_name=WORKSHOP_INDEX)
    rows.sort(key=lambda r: (r['position'], r['resourceId']))
    return rows


def _assert_file_limit(workshop_id: str) -> None:
    files = [r for r in _workshop_resources(workshop_id) if r['content']['type'] == FileResource.type]
    if len(files) >= config.MAX_FILE_RESOURCES:
        raise ValidationError(
            f"Free plan supports up to {config.MAX_FILE_RESOURCES} file resources per workshop"
        )


def _add_resource(workshop_id: str, actor_id: str, data: Dict[str, Any], content: ResourceContent) -> Dict[str, Any]:
    assert_workshop_organizer(workshop_id, actor_id)
    if isinstance(content, FileResource):
        _assert_file_limit(workshop_id)

    position = data.get('position')
    if position is None:
        position = max((int(r['position']) for r in _workshop_resources(workshop_id)), default=-1) + 1
    now = utils.now_ms()
    resource = {
        'resourceId': str(uuid.uuid4()),
        'workshopId': workshop_id,
        'title': as_str(data.get('title'), 'title'),
        'position': as_int(position, 'position'),
        'content': content.to_item(),
        'createdAt': now,
        'updatedAt': now,
    }
    if data.get('description'):
        resource['description'] = data['description']
    dynamo.table(config.RESOURCES_TABLE).put_item(Item=dynamo.to_dynamo(resource))
    logger.info(f"Added {content.type} resource {resource['resourceId']} to {workshop_id}")
    return resource


def add_file_resource(workshop_id: str, actor_id: str, data: Dict[str, Any]) -> Dict[str, Any]:
    """data: title, fileId, fileName, fileSize, optional mimeType, description, position."""
    content = FileResource(
        file_id=data.get('fileId'),
        file_name=data.get('fileName'),
        file_size=data.get('fileSize'),
        mime_type=data.get('mimeType'),
    )
    return _add_resource(workshop_id, actor_id, data, content)


def add_link_resource(workshop_id: str, actor_id: str, data: Dict[str, Any]) -> Dict[str, Any]:
    return _add_resource(workshop_id, actor_id, data, LinkResource(url=data.get('url')))


def add_richtext_resource(workshop_id: str, actor_id: str, data: Dict[str, Any]) -> Dict[str, Any]:
    body = data.get('body')
    if not isinstance(body, str):
        raise ValidationError('body must be a string')
    return _add_resource(workshop_id, actor_id, data, RichTextResource(body=body))


def update_resource(resource_id: str, actor_id: str, data: Dict[str, Any]) -> Dict[str, Any]:
    resource = get_resource(resource_id)
    assert_workshop_organizer(resource['workshopId'], actor_id)

    updates = {}
    if 'title' in data:
        updates['title'] = as_str(data['title'], 'title')
    if 'description' in data:
        updates['description'] = data['description'] or ''
    if 'position' in data:
        updates['position'] = as_int(data['position'], 'position')
    if 'content' in data:
        content = parse_resource_content(data['content'])
        if isinstance(content, FileResource) and resource['content']['type'] != FileResource.type:
            _assert_file_limit(resource['workshopId'])
        updates['content'] = content.to_item()
    updates['updatedAt'] = utils.now_ms()
    return dynamo.update_fields(config.RESOURCES_TABLE, {'resourceId': resource_id}, updates)


def delete_resource(resource_id: str, actor_id: str) -> None:
    """Delete a resource; a file resource's blob goes with it."""
    resource = get_resource(resource_id)
    assert_workshop_organizer(resource['workshopId'], actor_id)
    if resource['content']['type'] == FileResource.type:
        blob_store.delete(resource['content']['fileId'])
    dynamo.table(config.RESOURCES_TABLE).delete_item(Key={'resourceId': resource_id})
    logger.info(f"Deleted resource {resource_id}")


def list_resources(workshop_id: str, user_id: str) -> List[Dict[str, Any]]:
    """
    Resources in order. File resources carry a download URL.

    Raises:
        ForbiddenError: caller is neither organizer nor registered
    """
    workshop = get_workshop(workshop_id)
    if not is_organizer(workshop, user_id):
        registration = dynamo.get_item(config.REGISTRATIONS_TABLE, {'workshopId': workshop_id, 'userId': user_id})
        if not registration or registration['status'] != RegistrationStatus.REGISTERED:
            raise ForbiddenError('Only registered attendees can access workshop resources')

    resources = _workshop_resources(workshop_id)
    for resource in resources:
        if resource['content']['type'] == FileResource.type:
            resource['url'] = blob_store.get_url(resource['content']['fileId'])
    return resources


def reorder_resources(workshop_id: str, actor_id: str, items: List[Dict[str, Any]]) -> None:
    """
    Set positions for several resources at once.

    Args:
        items: [{'resourceId': ..., 'position': ...}]
    """
    assert_workshop_organizer(workshop_id, actor_id)
    if not isinstance(items, list) or not items:
        raise ValidationError('items must be a non-empty list')
    owned = {r['resourceId'] for r in _workshop_resources(workshop_id)}
    now = utils.now_ms()
    writes = []
    seen = set()
    for item in items:
        resource_id = item.get('resourceId') if isinstance(item, dict) else None
        if resource_id not in owned:
            raise ValidationError('Resource does not belong to this workshop')
        if resource_id in seen:
            raise ValidationError('Each resource can only appear once')
        seen.add(resource_id)
        writes.append({
            'Update': {
                'TableName': config.RESOURCES_TABLE,
                'Key': {'resourceId': resource_id},
                'UpdateExpression': 'SET #position = :position, updatedAt = :now',
                'ConditionExpression': 'workshopId = :workshopId',
                'ExpressionAttributeNames': {'#position': 'position'},
                'ExpressionAttributeValues': {
                    ':position': as_int(item.get('position'), 'position'),
                    ':now': now,
                    ':workshopId': workshop_id,
                },
            }
        })
    dynamo.run_transaction(lambda: dynamo.transact_write(writes), f"reorder_resources({workshop_id})")
    logger.info(f"Reordered {len(writes)} resources of {workshop_id}")


def generate_upload_url(workshop_id: str, actor_id: str) -> Dict[str, str]:
    assert_workshop_organizer(workshop_id, actor_id)
    return blob_store.generate_upload_url()
