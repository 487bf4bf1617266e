# tests/test_voting.py
import threading
from datetime import datetime, timedelta

import pytest
from conftest import login_admin, login_student

from campus_voting import db
from campus_voting.database.models import Account, VoteTransaction, utcnow
from campus_voting.errors import BadRequest
from campus_voting.voting import service


@pytest.fixture
def fixed_now(monkeypatch):
    moment = {"now": datetime(2024, 3, 2, 9, 30)}
    monkeypatch.setattr(service, "_now", lambda: moment["now"])
    return moment


def cast(client, votes):
    return client.post("/api/voting/cast", json={"votes": votes})


def test_cast_requires_login(client, teams, open_voting):
    open_voting()
    assert cast(client, {str(teams[0]): 1}).status_code == 401


def test_cast_rejected_when_closed(student_client, teams):
    resp = cast(student_client, {str(teams[0]): 1})
    assert resp.status_code == 403
    assert resp.get_json()["message"] == "Voting is currently closed by Admin."


def test_cast_success_records_transactions(app, student_client, teams, open_voting, fixed_now):
    open_voting()
    resp = cast(student_client, {str(teams[0]): 5, str(teams[1]): 3, str(teams[2]): 0})
    assert resp.status_code == 200
    body = resp.get_json()
    assert body["success"] is True
    assert body["votesUsed"] == 8
    assert body["remaining"] == 92

    with app.app_context():
        rows = VoteTransaction.query.order_by(VoteTransaction.team_id).all()
        # Zero counts produce no transaction
        assert [(r.team_id, r.vote_count) for r in rows] == [(teams[0], 5), (teams[1], 3)]
        account = db.session.get(Account, student_client.account_id)
        assert account.last_voted_at == fixed_now["now"]

    me = student_client.get("/api/auth/me").get_json()
    assert me["user"]["votes"] == {str(teams[0]): 5, str(teams[1]): 3}
    assert me["votesUsedToday"] == 8


def test_zero_total_rejected(student_client, teams, open_voting, fixed_now):
    open_voting()
    resp = cast(student_client, {str(teams[0]): 0})
    assert resp.status_code == 400
    assert resp.get_json()["message"] == "You must cast at least one vote."


def test_unknown_team_rejected(student_client, teams, open_voting, fixed_now):
    open_voting()
    resp = cast(student_client, {"9999": 1})
    assert resp.status_code == 400
    assert resp.get_json()["message"] == "Unknown team id: 9999"


def test_per_team_cap(student_client, teams, open_voting, fixed_now):
    open_voting()
    assert cast(student_client, {str(teams[0]): 10}).status_code == 200
    resp = cast(student_client, {str(teams[0]): 6})
    assert resp.status_code == 400
    assert resp.get_json()["teamId"] == str(teams[0])
    assert cast(student_client, {str(teams[0]): 5}).status_code == 200
    assert cast(student_client, {str(teams[0]): 1}).status_code == 400


def test_daily_quota(student_client, teams, open_voting, fixed_now):
    open_voting(dailyQuota=20)
    assert cast(student_client, {str(teams[0]): 15}).status_code == 200
    resp = cast(student_client, {str(teams[1]): 6})
    assert resp.status_code == 400
    assert resp.get_json()["message"] == "Cannot exceed 20 votes per day (5 left)."
    resp = cast(student_client, {str(teams[1]): 5})
    assert resp.get_json()["remaining"] == 0


def test_quota_resets_next_day(student_client, teams, open_voting, fixed_now):
    open_voting(dailyQuota=10)
    assert cast(student_client, {str(teams[0]): 10}).status_code == 200
    assert cast(student_client, {str(teams[1]): 1}).status_code == 400
    fixed_now["now"] = fixed_now["now"] + timedelta(days=1)
    assert cast(student_client, {str(teams[1]): 10}).status_code == 200


def test_self_vote_forbidden(app, client, make_student, teams, open_voting, fixed_now):
    open_voting()
    make_student(team_id=teams[0])
    login_student(client, "CS001")
    resp = cast(client, {str(teams[0]): 1})
    assert resp.status_code == 403
    assert resp.get_json()["message"] == "You cannot vote for your own team."
    assert cast(client, {str(teams[1]): 1}).status_code == 200


def test_legacy_schedule_enforced(student_client, teams, open_voting, fixed_now):
    open_voting(startTime="2024-03-02T09:00:00Z", endTime="2024-03-02T10:00:00Z")
    fixed_now["now"] = datetime(2024, 3, 2, 11, 0)
    resp = cast(student_client, {str(teams[0]): 1})
    assert resp.status_code == 403
    assert resp.get_json()["message"] == "Voting is only allowed between the scheduled times."
    fixed_now["now"] = datetime(2024, 3, 2, 9, 30)
    assert cast(student_client, {str(teams[0]): 1}).status_code == 200


def test_slot_votes_stamped_with_slot_date(app, student_client, teams, open_voting, fixed_now):
    open_voting(slots=[{
        "date": "2024-03-01T00:00:00Z",
        "startTime": "2024-03-02T09:00:00Z",
        "endTime": "2024-03-02T10:00:00Z",
        "label": "Day 1 makeup",
    }])
    assert cast(student_client, {str(teams[0]): 2}).status_code == 200
    with app.app_context():
        tx = VoteTransaction.query.one()
        assert tx.effective_date == datetime(2024, 3, 1)
        assert tx.created_at == fixed_now["now"]
        assert db.session.get(Account, student_client.account_id).last_voted_at == datetime(2024, 3, 1)

    fixed_now["now"] = datetime(2024, 3, 2, 10, 30)
    resp = cast(student_client, {str(teams[0]): 1})
    assert resp.status_code == 403
    assert resp.get_json()["message"] == "No voting slot is active right now."


def test_session_date_override(app, student_client, teams, open_voting, fixed_now):
    open_voting(currentSessionDate="2024-02-10T15:00:00Z", dailyQuota=10)
    assert cast(student_client, {str(teams[0]): 10}).status_code == 200
    # Same override day even though the wall clock moved on
    fixed_now["now"] = fixed_now["now"] + timedelta(days=1)
    assert cast(student_client, {str(teams[1]): 1}).status_code == 400
    with app.app_context():
        assert VoteTransaction.query.one().effective_date == datetime(2024, 2, 10)


def test_config_endpoint_personalized(student_client, teams, open_voting, fixed_now):
    open_voting(dailyQuota=30)
    cast(student_client, {str(teams[0]): 4})
    body = student_client.get("/api/voting/config").get_json()
    assert body["isVotingOpen"] is True
    assert body["dailyQuota"] == 30
    assert body["maxVotesPerTeam"] == 15
    assert body["isSessionLive"] is True
    assert body["votesUsedToday"] == 4
    assert body["remainingToday"] == 26
    assert body["votesByTeamToday"] == {str(teams[0]): 4}


def test_config_endpoint_personalized_alongside_admin_cookie(student_client, make_admin, teams, open_voting,
                                                           fixed_now):
    open_voting(dailyQuota=30)
    cast(student_client, {str(teams[1]): 2})
    make_admin("root", "SUPER_ADMIN")
    assert login_admin(student_client, "root").status_code == 200
    body = student_client.get("/api/voting/config").get_json()
    assert body["votesUsedToday"] == 2
    assert body["remainingToday"] == 28


def test_config_endpoint_anonymous(app, teams):
    body = app.test_client().get("/api/voting/config").get_json()
    assert body["success"] is True
    assert body["isVotingOpen"] is False
    assert body["closedReason"] == "Voting is currently closed by Admin."
    assert "votesUsedToday" not in body


def test_concurrent_submissions_never_exceed_cap(app, make_student, teams, open_voting):
    open_voting()
    account_id = make_student()
    barrier = threading.Barrier(2)
    outcomes = []
    now = utcnow()

    def submit():
        with app.app_context():
            barrier.wait()
            try:
                service.cast_votes(account_id, {str(teams[0]): 10}, now=now)
                outcomes.append("ok")
            except BadRequest:
                outcomes.append("rejected")
            finally:
                db.session.remove()

    workers = [threading.Thread(target=submit) for _ in range(2)]
    for worker in workers:
        worker.start()
    for worker in workers:
        worker.join(timeout=30)

    assert sorted(outcomes) == ["ok", "rejected"]
    with app.app_context():
        total = sum(tx.vote_count for tx in VoteTransaction.query.filter_by(account_id=account_id))
        assert total == 10


def test_account_locks_come_from_a_fixed_pool():
    locks = {id(service._lock_for(account_id)) for account_id in range(5000)}
    assert len(locks) <= service.LOCK_STRIPES
    assert len(service._account_locks) == service.LOCK_STRIPES
    assert service._lock_for(7) is service._lock_for(7)
