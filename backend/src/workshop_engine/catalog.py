"""
Workshop catalog: creation, editing, the publication lifecycle, co-hosts,
listings and search.

Lifecycle: draft -> (scheduled) -> published -> archived. Only drafts can be
deleted; only drafts and published workshops can be edited.
"""
import uuid
from typing import Any, Dict, List, Optional

from boto3.dynamodb.conditions import Attr, Key

from workshop_engine import auth, blob_store, dynamo, events, utils
from workshop_engine.assignments import SUBMISSIONS_ASSIGNMENT_INDEX, list_workshop_assignment_ids
from workshop_engine.config import config
from workshop_engine.errors import InvalidStateError, ValidationError, WorkshopError
from workshop_engine.logging import logger
from workshop_engine.models import (
    PublicationState, as_int, as_str, parse_location, parse_registration_mode,
)
from workshop_engine.resources import WORKSHOP_INDEX as RESOURCES_WORKSHOP_INDEX
from workshop_engine.workshop_auth import assert_community_member, assert_workshop_organizer, get_workshop

COMMUNITY_INDEX = 'byCommunity'
PUBLICATION_INDEX = 'byPublicationState'

EDITABLE_STATES = (PublicationState.DRAFT, PublicationState.PUBLISHED)


def _assert_dates(start_date: int, end_date: int) -> None:
    if end_date <= start_date:
        raise ValidationError('endDate must be greater than startDate')


def _parse_tags(tags) -> List[str]:
    if tags is None:
        return []
    if not isinstance(tags, list):
        raise ValidationError('tags must be a list')
    return [as_str(tag, 'tags') for tag in tags]


def _state_is(state: str):
    return Attr('publicationState').eq(state)


# =============================================================================
# Projections
# =============================================================================

def _community_summary(community_id: str, cache: Dict[str, Any] = None) -> Optional[Dict[str, Any]]:
    if cache is not None and community_id in cache:
        return cache[community_id]
    community = auth.get_community(community_id)
    summary = None
    if community is not None:
        summary = {
            'id': community['communityId'],
            'orgId': community.get('orgId'),
            'name': community.get('name'),
            'slug': community.get('slug'),
            'description': community.get('description'),
            'logoUrl': blob_store.get_url(community['logoId']) if community.get('logoId') else None,
        }
    if cache is not None:
        cache[community_id] = summary
    return summary


def to_card(workshop: Dict[str, Any], community_cache: Dict[str, Any] = None) -> Dict[str, Any]:
    """Listing projection of a workshop."""
    return {
        'workshopId': workshop['workshopId'],
        'title': workshop['title'],
        'description': workshop.get('description', ''),
        'startDate': workshop['startDate'],
        'endDate': workshop['endDate'],
        'communityId': workshop['communityId'],
        'creatorId': workshop['creatorId'],
        'tags': workshop.get('tags', []),
        'registrationCount': workshop.get('registrationCount', 0),
        'publicationState': workshop['publicationState'],
        'imageUrl': blob_store.get_url(workshop['image']) if workshop.get('image') else None,
        'location': workshop.get('location'),
        'community': _community_summary(workshop['communityId'], community_cache),
    }


def to_detail(workshop: Dict[str, Any]) -> Dict[str, Any]:
    """Detail projection. The check-in code itself is never exposed."""
    detail = to_card(workshop)
    detail.update({
        'image': workshop.get('image'),
        'registrationMode': workshop.get('registrationMode'),
        'coHosts': workshop.get('coHosts', []),
        'scheduledAt': workshop.get('scheduledAt'),
        'checkInCodeSet': bool(workshop.get('checkInCode')),
        'createdAt': workshop.get('createdAt'),
        'updatedAt': workshop.get('updatedAt'),
    })
    return detail


# =============================================================================
# Create / edit
# =============================================================================

def create_workshop(actor_id: str, data: Dict[str, Any]) -> Dict[str, Any]:
    """
    Create a draft workshop in a community the caller belongs to.

    Args:
        data: communityId, title, description, startDate, endDate, location,
              and optionally image, registrationMode, tags
    """
    community_id = as_str(data.get('communityId'), 'communityId')
    assert_community_member(community_id, actor_id)

    start_date = as_int(data.get('startDate'), 'startDate')
    end_date = as_int(data.get('endDate'), 'endDate')
    _assert_dates(start_date, end_date)
    title = as_str(data.get('title'), 'title')
    mode = parse_registration_mode(data.get('registrationMode'))

    now = utils.now_ms()
    workshop = {
        'workshopId': str(uuid.uuid4()),
        'communityId': community_id,
        'creatorId': actor_id,
        'title': title,
        'titleSearch': title.lower(),
        'description': data.get('description') or '',
        'startDate': start_date,
        'endDate': end_date,
        'location': parse_location(data.get('location')).to_item(),
        'publicationState': PublicationState.DRAFT,
        'coHosts': [],
        'tags': _parse_tags(data.get('tags')),
        'registrationCount': 0,
        'createdAt': now,
        'updatedAt': now,
    }
    if data.get('image'):
        workshop['image'] = as_str(data['image'], 'image')
    if mode is not None:
        workshop['registrationMode'] = mode.to_item()

    dynamo.table(config.WORKSHOPS_TABLE).put_item(
        Item=dynamo.to_dynamo(workshop),
        ConditionExpression='attribute_not_exists(workshopId)'
    )
    logger.info(f"Created workshop {workshop['workshopId']} in community {community_id}")
    return workshop


def update_workshop(workshop_id: str, actor_id: str, data: Dict[str, Any]) -> Dict[str, Any]:
    """Organizer edits a draft or published workshop; only given fields change."""
    workshop = assert_workshop_organizer(workshop_id, actor_id)
    state = workshop['publicationState']
    if state not in EDITABLE_STATES:
        raise InvalidStateError('Workshop can only be updated in draft or published state')

    start_date = as_int(data.get('startDate', workshop['startDate']), 'startDate')
    end_date = as_int(data.get('endDate', workshop['endDate']), 'endDate')
    _assert_dates(start_date, end_date)

    updates = {}
    if 'title' in data:
        updates['title'] = as_str(data['title'], 'title')
        updates['titleSearch'] = updates['title'].lower()
    if 'description' in data:
        updates['description'] = data['description'] or ''
    if 'startDate' in data:
        updates['startDate'] = start_date
    if 'endDate' in data:
        updates['endDate'] = end_date
    if 'image' in data:
        updates['image'] = as_str(data['image'], 'image')
    if 'location' in data:
        updates['location'] = parse_location(data['location']).to_item()
    if 'registrationMode' in data:
        mode = parse_registration_mode(data['registrationMode'])
        if mode is None:
            raise ValidationError('registrationMode cannot be removed')
        updates['registrationMode'] = mode.to_item()
    if 'tags' in data:
        updates['tags'] = _parse_tags(data['tags'])
    updates['updatedAt'] = utils.now_ms()

    updated = dynamo.update_fields(
        config.WORKSHOPS_TABLE, {'workshopId': workshop_id}, updates, condition=_state_is(state)
    )
    logger.info(f"Workshop {workshop_id} updated by {actor_id}: {sorted(updates)}")
    return updated


def get_workshop_detail(workshop_id: str) -> Dict[str, Any]:
    return to_detail(get_workshop(workshop_id))


# =============================================================================
# Publication lifecycle
# =============================================================================

def _assert_publishable(workshop: Dict[str, Any]) -> None:
    if not workshop.get('image'):
        raise ValidationError('Workshop image is required before publishing')
    if parse_registration_mode(workshop.get('registrationMode')) is None:
        raise ValidationError('Registration mode is required before publishing')
    _assert_dates(workshop['startDate'], workshop['endDate'])


def _announce(workshop: Dict[str, Any]) -> None:
    events.publish_event(events.WORKSHOP_ANNOUNCED, {
        'workshopId': workshop['workshopId'],
        'communityId': workshop['communityId'],
        'title': workshop['title'],
        'startDate': workshop['startDate'],
    })


def publish_workshop(workshop_id: str, actor_id: str) -> Dict[str, Any]:
    """Publish a draft (or scheduled) workshop now."""
    workshop = assert_workshop_organizer(workshop_id, actor_id)
    state = workshop['publicationState']
    if state not in (PublicationState.DRAFT, PublicationState.SCHEDULED):
        raise InvalidStateError('Only draft workshops can be published')
    _assert_publishable(workshop)

    updated = dynamo.update_fields(
        config.WORKSHOPS_TABLE,
        {'workshopId': workshop_id},
        {'publicationState': PublicationState.PUBLISHED, 'updatedAt': utils.now_ms()},
        removes=('scheduledAt',),
        condition=_state_is(state),
    )
    logger.info(f"Workshop {workshop_id} published by {actor_id}")
    _announce(updated)
    return updated


def schedule_workshop(workshop_id: str, actor_id: str, scheduled_at) -> Dict[str, Any]:
    """Schedule a draft for automatic publication at scheduled_at."""
    workshop = assert_workshop_organizer(workshop_id, actor_id)
    if workshop['publicationState'] != PublicationState.DRAFT:
        raise InvalidStateError('Only draft workshops can be scheduled')
    scheduled_at = as_int(scheduled_at, 'scheduledAt')
    now = utils.now_ms()
    if scheduled_at <= now:
        raise ValidationError('scheduledAt must be in the future')
    _assert_publishable(workshop)

    updated = dynamo.update_fields(
        config.WORKSHOPS_TABLE,
        {'workshopId': workshop_id},
        {'publicationState': PublicationState.SCHEDULED, 'scheduledAt': scheduled_at, 'updatedAt': now},
        condition=_state_is(PublicationState.DRAFT),
    )
    logger.info(f"Workshop {workshop_id} scheduled for {scheduled_at}")
    return updated


def publish_scheduled_workshops(now: int = None) -> Dict[str, int]:
    """
    Publish every scheduled workshop whose time has come.
    Run periodically by an EventBridge schedule.
    """
    now = now if now is not None else utils.now_ms()
    due = dynamo.scan_all(
        config.WORKSHOPS_TABLE,
        _state_is(PublicationState.SCHEDULED) & Attr('scheduledAt').lte(now)
    )
    logger.info(f"Found {len(due)} scheduled workshops ready to publish")

    published = 0
    for workshop in due:
        workshop_id = workshop['workshopId']
        try:
            updated = dynamo.update_fields(
                config.WORKSHOPS_TABLE,
                {'workshopId': workshop_id},
                {'publicationState': PublicationState.PUBLISHED, 'updatedAt': now},
                removes=('scheduledAt',),
                condition=_state_is(PublicationState.SCHEDULED) & Attr('scheduledAt').eq(workshop['scheduledAt']),
            )
        except WorkshopError as e:
            logger.warning(f"Skipped scheduled workshop {workshop_id}: {e.message}")
            continue
        published += 1
        logger.info(f"Published scheduled workshop {workshop_id}")
        _announce(updated)

    return {'checked': len(due), 'published': published}


def archive_workshop(workshop_id: str, actor_id: str) -> Dict[str, Any]:
    """Archive a published workshop after it ended; the check-in code is dropped."""
    workshop = assert_workshop_organizer(workshop_id, actor_id)
    state = workshop['publicationState']
    if state == PublicationState.ARCHIVED:
        raise InvalidStateError('Workshop is already archived')
    if state != PublicationState.PUBLISHED:
        raise InvalidStateError('Only published workshops can be archived')
    now = utils.now_ms()
    if now <= workshop['endDate']:
        raise InvalidStateError('Workshop can only be archived after it has ended')

    updated = dynamo.update_fields(
        config.WORKSHOPS_TABLE,
        {'workshopId': workshop_id},
        {'publicationState': PublicationState.ARCHIVED, 'updatedAt': now},
        removes=('checkInCode',),
        condition=_state_is(PublicationState.PUBLISHED),
    )
    logger.info(f"Workshop {workshop_id} archived by {actor_id}")
    return updated


def delete_workshop(workshop_id: str, actor_id: str) -> None:
    """Delete a draft workshop and everything attached to it."""
    workshop = assert_workshop_organizer(workshop_id, actor_id)
    if workshop['publicationState'] != PublicationState.DRAFT:
        raise InvalidStateError('Only draft workshops can be deleted')

    resources = dynamo.query_all(
        config.RESOURCES_TABLE, Key('workshopId').eq(workshop_id), index_name=RESOURCES_WORKSHOP_INDEX
    )
    dynamo.batch_delete(config.RESOURCES_TABLE, [{'resourceId': r['resourceId']} for r in resources])

    for assignment_id in list_workshop_assignment_ids(workshop_id):
        submissions = dynamo.query_all(
            config.SUBMISSIONS_TABLE, Key('assignmentId').eq(assignment_id), index_name=SUBMISSIONS_ASSIGNMENT_INDEX
        )
        dynamo.batch_delete(config.SUBMISSIONS_TABLE, [{'submissionId': s['submissionId']} for s in submissions])
        dynamo.batch_delete(config.ASSIGNMENTS_TABLE, [{'assignmentId': assignment_id}])

    for table_name in (config.REGISTRATIONS_TABLE, config.ATTENDANCE_TABLE):
        rows = dynamo.query_all(table_name, Key('workshopId').eq(workshop_id))
        dynamo.batch_delete(table_name, [{'workshopId': workshop_id, 'userId': r['userId']} for r in rows])

    dynamo.table(config.WORKSHOPS_TABLE).delete_item(
        Key={'workshopId': workshop_id},
        ConditionExpression=_state_is(PublicationState.DRAFT)
    )
    logger.info(f"Deleted draft workshop {workshop_id}")


# =============================================================================
# Co-hosts
# =============================================================================

def add_co_host(workshop_id: str, actor_id: str, user_id: str) -> Dict[str, Any]:
    workshop = assert_workshop_organizer(workshop_id, actor_id)
    if workshop['creatorId'] == user_id:
        raise ValidationError('Creator is already an organizer')
    co_hosts = list(workshop.get('coHosts') or [])
    if user_id in co_hosts:
        return workshop
    return dynamo.update_fields(
        config.WORKSHOPS_TABLE,
        {'workshopId': workshop_id},
        {'coHosts': co_hosts + [user_id], 'updatedAt': utils.now_ms()},
        condition=Attr('coHosts').eq(co_hosts),
    )


def remove_co_host(workshop_id: str, actor_id: str, user_id: str) -> Dict[str, Any]:
    workshop = assert_workshop_organizer(workshop_id, actor_id)
    co_hosts = list(workshop.get('coHosts') or [])
    if user_id not in co_hosts:
        return workshop
    return dynamo.update_fields(
        config.WORKSHOPS_TABLE,
        {'workshopId': workshop_id},
        {'coHosts': [c for c in co_hosts if c != user_id], 'updatedAt': utils.now_ms()},
        condition=Attr('coHosts').eq(co_hosts),
    )


# =============================================================================
# Listings
# =============================================================================

def _card_page(items: List[Dict[str, Any]], next_cursor: Optional[str]) -> Dict[str, Any]:
    cache = {}
    return {'items': [to_card(w, cache) for w in items], 'nextCursor': next_cursor}


def list_by_community(community_id: str, limit: int = None, cursor: str = None) -> Dict[str, Any]:
    """A community's workshops by start date."""
    items, next_cursor = dynamo.query_page(
        config.WORKSHOPS_TABLE,
        Key('communityId').eq(community_id),
        index_name=COMMUNITY_INDEX,
        limit=limit,
        cursor=cursor,
    )
    return _card_page(items, next_cursor)


def list_upcoming(limit: int = None, cursor: str = None, now: int = None) -> Dict[str, Any]:
    """Published workshops that have not started yet, soonest first."""
    now = now if now is not None else utils.now_ms()
    items, next_cursor = dynamo.query_page(
        config.WORKSHOPS_TABLE,
        Key('publicationState').eq(PublicationState.PUBLISHED) & Key('startDate').gt(now),
        index_name=PUBLICATION_INDEX,
        limit=limit,
        cursor=cursor,
    )
    return _card_page(items, next_cursor)


def search_workshops(query: str, limit: int = None, now: int = None) -> List[Dict[str, Any]]:
    """Title search over published, upcoming workshops."""
    term = (query or '').strip().lower()
    if not term:
        return []
    now = now if now is not None else utils.now_ms()
    limit = limit or config.DEFAULT_PAGE_SIZE
    matches = dynamo.scan_all(
        config.WORKSHOPS_TABLE,
        Attr('titleSearch').contains(term)
        & _state_is(PublicationState.PUBLISHED)
        & Attr('startDate').gt(now)
    )
    matches.sort(key=lambda w: (w['startDate'], w['workshopId']))
    cache = {}
    return [to_card(w, cache) for w in matches[:limit]]


def generate_image_upload_url(workshop_id: str, actor_id: str) -> Dict[str, str]:
    """Presigned upload URL for a workshop cover image."""
    assert_workshop_organizer(workshop_id, actor_id)
    return blob_store.generate_upload_url()
