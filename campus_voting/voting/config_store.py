# campus_voting/voting/config_store.py

import logging

from flask import current_app
from sqlalchemy import update
from sqlalchemy.exc import IntegrityError

from campus_voting import db
from campus_voting.database.models import VotingConfig, VotingSlot, utcnow
from campus_voting.errors import BadRequest, Conflict
from campus_voting.security.input_validator import validator
from campus_voting.voting.windows import ConfigSnapshot, SlotWindow

logger = logging.getLogger(__name__)

SINGLETON_ID = 1

# camelCase request key -> column
_SCALAR_FIELDS = {
    'isVotingOpen': 'is_voting_open',
    'startTime': 'start_time',
    'endTime': 'end_time',
    'currentSessionDate': 'current_session_date',
    'dailyQuota': 'daily_quota',
}


def get_or_create_config():
    config = db.session.get(VotingConfig, SINGLETON_ID)
    if config is not None:
        return config
    config = VotingConfig(id=SINGLETON_ID, daily_quota=current_app.config['DEFAULT_DAILY_QUOTA'])
    db.session.add(config)
    try:
        db.session.commit()
    except IntegrityError:
        # Another worker created the row first
        db.session.rollback()
        config = db.session.get(VotingConfig, SINGLETON_ID)
    return config


def snapshot_of(config):
    return ConfigSnapshot(
        id=config.id,
        version=config.version,
        is_voting_open=bool(config.is_voting_open),
        start_time=config.start_time,
        end_time=config.end_time,
        current_session_date=config.current_session_date,
        daily_quota=config.daily_quota,
        slots=tuple(
            SlotWindow(date=s.date, start_time=s.start_time, end_time=s.end_time, label=s.label)
            for s in config.slots
        ),
    )


def load_config_snapshot():
    """Read the singleton once; callers pass the frozen snapshot down the call chain."""
    return snapshot_of(get_or_create_config())


def _parse_changes(payload):
    if not isinstance(payload, dict):
        raise BadRequest("Config payload must be a JSON object.")
    values = {}
    for key, column in _SCALAR_FIELDS.items():
        if key not in payload:
            continue
        raw = payload[key]
        if column == 'is_voting_open':
            if not isinstance(raw, bool):
                raise BadRequest("isVotingOpen must be true or false.")
            values[column] = raw
        elif column == 'daily_quota':
            values[column] = validator.parse_int(raw, 'dailyQuota', minimum=1)
        else:
            values[column] = validator.parse_datetime(raw, key)
    if 'current_session_date' in values and values['current_session_date'] is not None:
        d = values['current_session_date']
        values['current_session_date'] = d.replace(hour=0, minute=0, second=0, microsecond=0)

    start = values.get('start_time')
    end = values.get('end_time')
    if start and end and start > end:
        raise BadRequest("startTime must be before endTime.")
    return values


def _parse_slots(raw_slots):
    if not isinstance(raw_slots, list):
        raise BadRequest("slots must be a list.")
    slots = []
    for position, raw in enumerate(raw_slots):
        if not isinstance(raw, dict):
            raise BadRequest("Each slot must be an object.")
        validator.require_fields(raw, ('date', 'startTime', 'endTime'))
        date = validator.parse_datetime(raw['date'], 'slot date')
        start = validator.parse_datetime(raw['startTime'], 'slot startTime')
        end = validator.parse_datetime(raw['endTime'], 'slot endTime')
        if start >= end:
            raise BadRequest(f"Slot {position + 1}: startTime must be before endTime.")
        label = raw.get('label')
        slots.append(VotingSlot(
            position=position,
            date=date.replace(hour=0, minute=0, second=0, microsecond=0),
            start_time=start,
            end_time=end,
            label=validator.sanitize_string(label, 80) if label else None,
        ))
    return slots


def update_config(payload, expected_version=None):
    """Apply an admin config change as one compare-and-swap on ``version``.

    A stale ``expected_version`` (or a concurrent writer winning the race)
    raises Conflict and leaves the stored config untouched.
    """
    config = get_or_create_config()
    current_version = config.version
    if expected_version is not None and expected_version != current_version:
        raise Conflict("Config was changed by someone else; reload and retry.",
                       version=current_version)

    values = _parse_changes(payload)
    new_slots = _parse_slots(payload['slots']) if 'slots' in payload else None

    values['version'] = current_version + 1
    values['updated_at'] = utcnow()
    result = db.session.execute(
        update(VotingConfig)
        .where(VotingConfig.id == config.id, VotingConfig.version == current_version)
        .values(**values)
    )
    if result.rowcount != 1:
        db.session.rollback()
        raise Conflict("Config was changed by someone else; reload and retry.")

    if new_slots is not None:
        config.slots = new_slots
    db.session.commit()

    logger.info("Voting config updated to version %s", values['version'])
    return load_config_snapshot()
