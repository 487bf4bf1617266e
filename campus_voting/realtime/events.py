# campus_voting/realtime/events.py

# Push notifications for dashboards. Every broadcast is first appended to the
# `events` outbox so observers can detect gaps by sequence number and catch up
# through GET /admin/events?since=<seq>. Publishing is best-effort.

import logging

from campus_voting import db, socketio
from campus_voting.database.models import Event

logger = logging.getLogger(__name__)

DATA_CHANGED = "data-changed"
LEADERBOARD_CHANGED = "leaderboard-changed"
FORCE_LOGOUT = "force-logout"
ONLINE_USERS = "admin:online-users"
ONLINE_ADMINS = "admin:online-admins"

ADMINS_ROOM = "admins"


def identity_room(kind, ident):
    return f"{kind}:{ident}"


def publish(name, payload=None, to=None):
    """Record ``name`` in the outbox and emit it; returns the sequence number or None."""
    payload = dict(payload or {})
    seq = None
    try:
        event = Event(name=name, payload=payload)
        db.session.add(event)
        db.session.commit()
        seq = event.id
    except Exception as e:
        db.session.rollback()
        logger.warning(f"Event outbox write failed for {name}: {str(e)}")

    payload["seq"] = seq
    try:
        if to is None:
            socketio.emit(name, payload)
        else:
            socketio.emit(name, payload, to=to)
    except Exception as e:
        logger.warning(f"Broadcast of {name} failed: {str(e)}")
    return seq


def events_since(seq, limit=200):
    query = Event.query.order_by(Event.id.asc())
    if seq:
        query = query.filter(Event.id > seq)
    return query.limit(limit).all()


def latest_seq():
    last = Event.query.order_by(Event.id.desc()).first()
    return last.id if last else 0
