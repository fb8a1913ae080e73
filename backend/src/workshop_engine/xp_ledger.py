"""
XP ledger: an append-only list of XP transactions plus a cached running
total per user.

Every award writes the ledger row and bumps users.totalXp in the same
DynamoDB transaction. Rewards for a workshop attendance or an assignment
submission use a transaction id derived from the source, so the ledger row's
attribute_not_exists condition refuses a second payment for the same event.
"""
import uuid
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, Dict, List, Optional

from boto3.dynamodb.conditions import Attr, Key

from workshop_engine import dynamo, events, utils
from workshop_engine.config import config
from workshop_engine.gamification import compute_level, get_level_progress, resolve_level_title
from workshop_engine.logging import logger
from workshop_engine.models import (
    AssignmentSource, AttendanceSource, DailyTaskSource, ModuleSource, QuizSource,
    XpSource, unreachable,
)

USER_INDEX = 'byUser'
DEFAULT_CONFIG_ID = 'default'

_LEDGER_NAMESPACE = uuid.UUID('0b6c5a52-59a1-4c1e-9d0e-5f2f3c8a7e41')


@dataclass
class XpAward:
    """A prepared award, ready to join a TransactWriteItems call."""
    user_id: str
    transaction: Dict[str, Any]
    previous_total: Decimal
    items: List[Dict[str, Any]] = field(default_factory=list)

    @property
    def final_xp(self) -> Decimal:
        return self.transaction['finalXp']


# =============================================================================
# Configuration and cached totals
# =============================================================================

def get_xp_config() -> Dict[str, Any]:
    """
    Get the XP configuration, falling back to the default quadratic curve.

    'isDefault' tells whether the values came from the table or the fallback.
    """
    item = dynamo.get_item(config.XP_CONFIG_TABLE, {'configId': DEFAULT_CONFIG_ID})
    if item is None:
        return {
            'configId': DEFAULT_CONFIG_ID,
            'levelFormula': {'type': 'quadratic', 'base': Decimal(config.DEFAULT_LEVEL_BASE)},
            'isDefault': True,
        }
    return {**item, 'isDefault': False}


def level_base(xp_config: Dict[str, Any]) -> Decimal:
    return Decimal(xp_config['levelFormula']['base'])


def get_user_total(user_id: str) -> Decimal:
    """Cached XP total; 0 for users who never earned XP."""
    user = dynamo.get_item(config.USERS_TABLE, {'userId': user_id})
    if not user:
        return Decimal(0)
    return Decimal(user.get('totalXp', 0))


def get_user_level(user_id: str) -> int:
    return compute_level(get_user_total(user_id), level_base(get_xp_config()))


def level_guard_items(user_id: str, observed_total: Decimal, xp_config: Dict[str, Any]) -> List[Dict[str, Any]]:
    """
    ConditionChecks pinning the inputs of a level decision: the user's cached
    total and the level formula base. Joining them to a transaction makes the
    level check part of that transaction.
    """
    items = [{
        'ConditionCheck': {
            'TableName': config.USERS_TABLE,
            'Key': {'userId': user_id},
            'ConditionExpression': 'attribute_not_exists(totalXp) OR totalXp = :observed',
            'ExpressionAttributeValues': {':observed': observed_total},
        }
    }]
    if xp_config['isDefault']:
        items.append({
            'ConditionCheck': {
                'TableName': config.XP_CONFIG_TABLE,
                'Key': {'configId': DEFAULT_CONFIG_ID},
                'ConditionExpression': 'attribute_not_exists(configId)',
            }
        })
    else:
        items.append({
            'ConditionCheck': {
                'TableName': config.XP_CONFIG_TABLE,
                'Key': {'configId': DEFAULT_CONFIG_ID},
                # base is a reserved word
                'ConditionExpression': '#formula.#base = :base',
                'ExpressionAttributeNames': {'#formula': 'levelFormula', '#base': 'base'},
                'ExpressionAttributeValues': {':base': level_base(xp_config)},
            }
        })
    return items


# =============================================================================
# Multipliers
# =============================================================================

def get_active_multiplier(user_id: str, now: int = None) -> Decimal:
    """
    Highest multiplier currently active for a user, global or user-scoped.
    Multipliers do not stack. Defaults to 1.
    """
    now = now if now is not None else utils.now_ms()
    candidates = dynamo.scan_all(
        config.XP_MULTIPLIERS_TABLE,
        Attr('isActive').eq(True) & Attr('startsAt').lte(now) & Attr('endsAt').gte(now)
    )
    best = Decimal(1)
    found = False
    for candidate in candidates:
        scope = candidate.get('scope') or {'type': 'global'}
        if scope.get('type') == 'user' and scope.get('userId') != user_id:
            continue
        value = Decimal(candidate['multiplier'])
        if not found or value > best:
            best = value
            found = True
    return best


# =============================================================================
# Awards
# =============================================================================

def transaction_id_for(source: XpSource, user_id: str) -> str:
    """
    Ledger row id for an award. Attendance and assignment rewards are
    once-only, so their id is a function of the event that earned them.
    """
    if isinstance(source, AttendanceSource):
        return str(uuid.uuid5(_LEDGER_NAMESPACE, f"attendance:{source.workshop_id}:{user_id}"))
    if isinstance(source, AssignmentSource):
        return str(uuid.uuid5(_LEDGER_NAMESPACE, f"assignment:{source.submission_id}"))
    if isinstance(source, (QuizSource, ModuleSource, DailyTaskSource)):
        return str(uuid.uuid4())
    return unreachable(source)


def get_transaction(transaction_id: str) -> Optional[Dict[str, Any]]:
    return dynamo.get_item(config.XP_TRANSACTIONS_TABLE, {'transactionId': transaction_id})


def build_award(
    user_id: str,
    amount,
    source: XpSource,
    multiplier=None,
    now: int = None
) -> Optional[XpAward]:
    """
    Prepare the ledger Put and the cached-total Update for an award.

    Returns None when there is nothing to pay: a non-positive amount, or a
    once-only source that the ledger already paid.
    """
    amount = Decimal(str(amount))
    if amount <= 0:
        return None

    transaction_id = transaction_id_for(source, user_id)
    if get_transaction(transaction_id) is not None:
        logger.info(f"XP for {source.type} already paid to {user_id} ({transaction_id})")
        return None

    now = now if now is not None else utils.now_ms()
    multiplier = Decimal(str(multiplier)) if multiplier is not None else get_active_multiplier(user_id, now)
    final_xp = amount * multiplier

    transaction = {
        'transactionId': transaction_id,
        'userId': user_id,
        'xpAmount': amount,
        'multiplier': multiplier,
        'finalXp': final_xp,
        'source': source.to_item(),
        'createdAt': now,
    }
    items = [
        {
            'Put': {
                'TableName': config.XP_TRANSACTIONS_TABLE,
                'Item': transaction,
                'ConditionExpression': 'attribute_not_exists(transactionId)',
            }
        },
        {
            'Update': {
                'TableName': config.USERS_TABLE,
                'Key': {'userId': user_id},
                'UpdateExpression': 'SET updatedAt = :now ADD totalXp :xp',
                'ExpressionAttributeValues': {':xp': final_xp, ':now': now},
            }
        },
    ]
    return XpAward(
        user_id=user_id,
        transaction=transaction,
        previous_total=get_user_total(user_id),
        items=items,
    )


def announce_level_up(award: Optional[XpAward]) -> None:
    """Publish level_up when a committed award crossed a level threshold."""
    if award is None:
        return
    base = level_base(get_xp_config())
    before = compute_level(award.previous_total, base)
    after = compute_level(award.previous_total + award.final_xp, base)
    if after > before:
        logger.info(f"User {award.user_id} reached level {after}")
        events.publish_event(events.LEVEL_UP, {
            'userId': award.user_id,
            'previousLevel': before,
            'level': after,
        })


def award_xp(user_id: str, amount, source: XpSource, multiplier=None) -> Optional[Dict[str, Any]]:
    """
    Append an XP transaction and add its finalXp to the user's cached total.

    Args:
        user_id: Recipient
        amount: Base XP; non-positive amounts are ignored
        source: What earned the XP
        multiplier: Explicit multiplier; defaults to the active one

    Returns:
        The ledger row, or None when nothing was paid
    """
    def attempt():
        award = build_award(user_id, amount, source, multiplier)
        if award is not None:
            dynamo.transact_write(award.items)
        return award

    award = dynamo.run_transaction(attempt, f"award_xp({user_id})")
    if award is None:
        return None
    logger.info(f"Awarded {award.final_xp} XP to {user_id} for {source.type}")
    announce_level_up(award)
    return award.transaction


# =============================================================================
# Queries
# =============================================================================

def get_user_level_info(user_id: str) -> Dict[str, Any]:
    """
    Level, title and progress for a user.

    Returns:
        {level, title, currentXp, xpForNextLevel, totalXp}
    """
    total = get_user_total(user_id)
    info = get_level_progress(total, level_base(get_xp_config()))
    titles = dynamo.scan_all(config.LEVEL_TITLES_TABLE)
    info['title'] = resolve_level_title(info['level'], titles)
    return info


def list_transactions(user_id: str, limit: int = None, cursor: str = None) -> Dict[str, Any]:
    """A user's XP history, newest first."""
    items, next_cursor = dynamo.query_page(
        config.XP_TRANSACTIONS_TABLE,
        Key('userId').eq(user_id),
        index_name=USER_INDEX,
        limit=limit,
        cursor=cursor,
        scan_forward=False,
    )
    return {'items': items, 'nextCursor': next_cursor}


def audit_user_total(user_id: str) -> Dict[str, Any]:
    """
    Compare the cached total with the sum of the ledger.

    Drift means a write path bypassed the ledger and is logged as a bug.
    """
    rows = dynamo.query_all(config.XP_TRANSACTIONS_TABLE, Key('userId').eq(user_id), index_name=USER_INDEX)
    ledger_total = sum((Decimal(row['finalXp']) for row in rows), Decimal(0))
    cached_total = get_user_total(user_id)
    consistent = ledger_total == cached_total
    if not consistent:
        logger.error(
            f"BUG: XP drift for {user_id}: cached {cached_total}, ledger {ledger_total}"
        )
    return {
        'userId': user_id,
        'cachedTotal': cached_total,
        'ledgerTotal': ledger_total,
        'transactions': len(rows),
        'consistent': consistent,
    }
