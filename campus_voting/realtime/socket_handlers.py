# campus_voting/realtime/socket_handlers.py

import logging

from flask import request
from flask_socketio import emit, join_room

from campus_voting import socketio
from campus_voting.authentication.sessions import resolve_identity
from campus_voting.realtime.events import ADMINS_ROOM, ONLINE_ADMINS, ONLINE_USERS
from campus_voting.realtime.presence import presence
from campus_voting.security.token_manager import ADMIN, STUDENT

logger = logging.getLogger(__name__)


def _broadcast_presence():
    socketio.emit(ONLINE_USERS, presence.online(STUDENT), to=ADMINS_ROOM)
    socketio.emit(ONLINE_ADMINS, presence.online(ADMIN), to=ADMINS_ROOM)


@socketio.on("connect")
def on_connect(auth=None):
    # Same session check as the HTTP layer: a superseded cookie connects anonymously
    identity = resolve_identity(request)
    if identity is None:
        return
    join_room(identity.key)
    presence.connect(request.sid, identity.key)
    if identity.kind == ADMIN:
        join_room(ADMINS_ROOM)
        emit(ONLINE_USERS, presence.online(STUDENT))
        emit(ONLINE_ADMINS, presence.online(ADMIN))
    logger.info("Socket %s connected as %s", request.sid, identity.key)
    _broadcast_presence()


@socketio.on("disconnect")
def on_disconnect(*args):
    key = presence.disconnect(request.sid)
    if key is not None:
        logger.info("Socket %s (%s) disconnected", request.sid, key)
        _broadcast_presence()
