# tests/test_leaderboard.py
from datetime import datetime

import pytest

from campus_voting import db
from campus_voting.database.models import VoteTransaction


@pytest.fixture
def votes(app, make_student, teams):
    voter = make_student()
    with app.app_context():
        for team_id, count, day in [(teams[0], 5, 1), (teams[1], 9, 1), (teams[0], 4, 2)]:
            db.session.add(VoteTransaction(account_id=voter, team_id=team_id, vote_count=count,
                                           effective_date=datetime(2024, 3, day),
                                           created_at=datetime(2024, 3, day, 10)))
        db.session.commit()
    return voter


def post_score(client, team_id, date, **categories):
    payload = {"teamId": str(team_id), "date": date}
    payload.update(categories)
    return client.post("/api/leaderboard/scores", json=payload)


def test_score_upsert_per_day(admin_client, teams):
    resp = post_score(admin_client, teams[0], "2024-03-01T08:00:00Z", main=10, special=5)
    assert resp.status_code == 201
    score = resp.get_json()["score"]
    assert score["score"] == 15
    assert score["enteredBy"] == "admin"
    assert score["team"]["name"] == "Red Dragons"

    # Same calendar day replaces the entry
    resp = post_score(admin_client, teams[0], "2024-03-01T20:00:00Z", main=2)
    assert resp.status_code == 200
    assert resp.get_json()["score"]["score"] == 2

    listing = admin_client.get("/api/leaderboard/scores").get_json()
    assert listing["total"] == 1


def test_score_validation(admin_client, teams):
    assert admin_client.post("/api/leaderboard/scores", json={}).status_code == 400
    assert post_score(admin_client, 9999, "2024-03-01").status_code == 404
    assert post_score(admin_client, teams[0], "2024-03-01", main="lots").status_code == 400


def test_overall_combines_scores_and_votes(client, admin_client, teams, votes):
    post_score(admin_client, teams[2], "2024-03-01", main=20)
    post_score(admin_client, teams[0], "2024-03-02", advantage=1)
    rows = client.get("/api/leaderboard").get_json()["leaderboard"]
    by_name = {row["name"]: row for row in rows}
    assert by_name["Green Giants"]["totalScore"] == 20
    assert by_name["Red Dragons"]["totalScore"] == 10
    assert by_name["Red Dragons"]["lastScore"] == 1
    assert by_name["Blue Whales"]["totalScore"] == 9
    assert [row["rank"] for row in rows] == [1, 2, 3]
    assert rows[0]["name"] == "Green Giants"


def test_range_and_daily(client, admin_client, teams, votes):
    post_score(admin_client, teams[1], "2024-03-02", main=3)
    rows = client.get("/api/leaderboard/range?startDate=2024-03-02&endDate=2024-03-02").get_json()["leaderboard"]
    by_name = {row["name"]: row["totalScore"] for row in rows}
    assert by_name == {"Red Dragons": 4, "Blue Whales": 3, "Green Giants": 0}

    body = client.get("/api/leaderboard/daily?date=2024-03-01").get_json()
    assert body["date"] == "2024-03-01"
    daily = {row["name"]: row for row in body["leaderboard"]}
    assert daily["Blue Whales"]["studentVotes"] == 9
    assert daily["Blue Whales"]["score"] == 9
    assert daily["Red Dragons"]["studentVotes"] == 5
    assert daily["Green Giants"]["main"] == 0

    assert client.get("/api/leaderboard/daily?date=someday").status_code == 400


def test_delete_score_and_summary(admin_client, teams, votes):
    score_id = post_score(admin_client, teams[0], "2024-03-01", main=7).get_json()["score"]["id"]
    summary = {row["teamName"]: row for row in admin_client.get("/api/leaderboard/scores-summary").get_json()["summary"]}
    assert summary["Red Dragons"]["adminScore"] == 7
    assert summary["Red Dragons"]["studentVotes"] == 9
    assert summary["Red Dragons"]["scoreCount"] == 1
    assert summary["Red Dragons"]["rank"] == 1

    assert admin_client.delete(f"/api/leaderboard/scores/{score_id}").status_code == 200
    assert admin_client.delete(f"/api/leaderboard/scores/{score_id}").status_code == 404


def test_score_routes_need_admin(client, teams):
    assert post_score(client, teams[0], "2024-03-01", main=1).status_code == 401
    assert client.get("/api/leaderboard/scores-summary").status_code == 401
