# tests/test_realtime.py
import pytest
from conftest import login_admin, login_student

from campus_voting import socketio
from campus_voting.realtime.events import events_since, identity_room, publish
from campus_voting.realtime.presence import PresenceTracker, presence


@pytest.fixture(autouse=True)
def clean_presence():
    yield
    presence._connections.clear()
    presence._by_sid.clear()


def names(received):
    return [message["name"] for message in received]


def payloads(received, name):
    return [message["args"][0] for message in received if message["name"] == name]


def test_presence_tracker_counts_per_identity():
    tracker = PresenceTracker()
    tracker.connect("s1", "student:1")
    tracker.connect("s2", "student:1")
    tracker.connect("s3", "admin:root")
    assert tracker.count("student:1") == 2
    assert tracker.online("student") == ["1"]
    assert tracker.disconnect("s1") == "student:1"
    assert tracker.online("student") == ["1"]
    tracker.disconnect("s2")
    assert tracker.online("student") == []
    assert tracker.online("admin") == ["root"]
    assert tracker.disconnect("unknown") is None


def test_publish_records_outbox_sequence(app):
    with app.app_context():
        first = publish("data-changed", {"reason": "a"})
        second = publish("leaderboard-changed")
        assert second > first
        assert [e.name for e in events_since(first)] == ["leaderboard-changed"]


def test_publish_survives_broadcast_failure(app, monkeypatch):
    def broken_emit(*args, **kwargs):
        raise RuntimeError("socket server down")

    monkeypatch.setattr(socketio, "emit", broken_emit)
    with app.app_context():
        assert publish("data-changed", {"reason": "x"}) is not None


def test_anonymous_socket_not_tracked(app):
    sock = socketio.test_client(app)
    assert sock.is_connected()
    assert presence.online("student") == []
    sock.disconnect()


def test_admin_sees_online_students(app, make_student, make_admin):
    make_student()
    make_admin("root", "SUPER_ADMIN")
    admin_http = app.test_client()
    login_admin(admin_http, "root")
    admin_sock = socketio.test_client(app, flask_test_client=admin_http)
    assert admin_sock.is_connected()
    admin_sock.get_received()

    student_http = app.test_client()
    login_student(student_http, "CS001")
    student_sock = socketio.test_client(app, flask_test_client=student_http)
    received = admin_sock.get_received()
    assert ["1"] in payloads(received, "admin:online-users")

    student_sock.disconnect()
    received = admin_sock.get_received()
    assert payloads(received, "admin:online-users")[-1] == []
    admin_sock.disconnect()


def test_force_logout_reaches_old_device(app, make_student):
    make_student()
    device_a = app.test_client()
    login_student(device_a, "CS001")
    sock_a = socketio.test_client(app, flask_test_client=device_a)
    sock_a.get_received()

    login_student(app.test_client(), "CS001")
    received = sock_a.get_received()
    assert "force-logout" in names(received)
    assert payloads(received, "force-logout")[0]["reason"] == "logged-in-elsewhere"
    sock_a.disconnect()


def test_vote_broadcast_carries_sequence(app, student_client, teams, open_voting, admin_client):
    open_voting()
    sock = socketio.test_client(app, flask_test_client=admin_client)
    sock.get_received()
    student_client.post("/api/voting/cast", json={"votes": {str(teams[0]): 1}})
    changes = payloads(sock.get_received(), "data-changed")
    assert changes[-1]["reason"] == "vote"
    assert isinstance(changes[-1]["seq"], int)
    sock.disconnect()


def test_identity_room():
    assert identity_room("student", 4) == "student:4"
