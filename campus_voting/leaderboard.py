# campus_voting/leaderboard.py

# Team standings: admin-entered judged scores plus student votes.

from datetime import timedelta

from sqlalchemy import func

from campus_voting import db
from campus_voting.database.models import Team, TeamScore, isoformat, utcnow
from campus_voting.errors import BadRequest, NotFound
from campus_voting.security.input_validator import validator
from campus_voting.voting.service import votes_by_team
from campus_voting.voting.windows import day_bounds


def _ranked(rows, key):
    rows.sort(key=lambda row: row[key], reverse=True)
    for index, row in enumerate(rows):
        row['rank'] = index + 1
    return rows


def _judged_totals(start=None, end=None):
    query = db.session.query(TeamScore.team_id, func.sum(TeamScore.score))
    if start is not None:
        query = query.filter(TeamScore.date >= start)
    if end is not None:
        query = query.filter(TeamScore.date <= end)
    return {team_id: int(total or 0) for team_id, total in query.group_by(TeamScore.team_id)}


def _latest_scores():
    latest = {}
    for score in TeamScore.query.order_by(TeamScore.date.asc()).all():
        latest[score.team_id] = score
    return latest


def overall():
    judged = _judged_totals()
    votes = votes_by_team()
    latest = _latest_scores()
    rows = []
    for team in Team.query.all():
        last = latest.get(team.id)
        row = team.to_dict()
        row.update({
            'totalScore': judged.get(team.id, 0) + votes.get(team.id, 0),
            'lastScore': last.score if last else 0,
            'lastUpdated': isoformat(last.date) if last else None,
        })
        rows.append(row)
    return _ranked(rows, 'totalScore')


def date_range(start_date=None, end_date=None):
    start = validator.parse_datetime(start_date, 'startDate')
    end = validator.parse_datetime(end_date, 'endDate')
    if end is not None:
        end = day_bounds(end)[1]
    judged = _judged_totals(start, end)
    votes = votes_by_team(start, end)
    rows = []
    for team in Team.query.all():
        row = team.to_dict()
        row['totalScore'] = judged.get(team.id, 0) + votes.get(team.id, 0)
        rows.append(row)
    return _ranked(rows, 'totalScore')


def daily(date=None):
    target = validator.parse_datetime(date, 'date') or utcnow()
    start, end = day_bounds(target)
    votes = votes_by_team(start, end)
    scores = {
        s.team_id: s for s in
        TeamScore.query.filter(TeamScore.date >= start, TeamScore.date <= end).all()
    }
    rows = []
    for team in Team.query.all():
        score = scores.get(team.id)
        student_votes = votes.get(team.id, 0)
        row = team.to_dict()
        row.update({
            'score': (score.score if score else 0) + student_votes,
            'studentVotes': student_votes,
            'scoreId': str(score.id) if score else None,
            'enteredBy': score.entered_by if score else None,
            'notes': score.notes if score else '',
        })
        for category in TeamScore.CATEGORIES:
            row[category] = getattr(score, category) if score else 0
        rows.append(row)
    return start.date().isoformat(), _ranked(rows, 'score')


def upsert_score(payload, entered_by):
    """Create or replace the judged score of a team for one calendar day.

    Returns ``(team, team_score, created)``.
    """
    if not isinstance(payload, dict) or not payload.get('teamId'):
        raise BadRequest('teamId is required')
    team_id = validator.parse_int(payload['teamId'], 'teamId')
    team = db.session.get(Team, team_id)
    if team is None:
        raise NotFound('Team not found')

    categories = {
        category: validator.parse_int(payload.get(category) or 0, category)
        for category in TeamScore.CATEGORIES
    }
    score_date = validator.parse_datetime(payload.get('date'), 'date') or utcnow()
    day_start = day_bounds(score_date)[0]

    existing = TeamScore.query.filter(
        TeamScore.team_id == team_id,
        TeamScore.date >= day_start,
        TeamScore.date < day_start + timedelta(days=1),
    ).first()
    team_score = existing or TeamScore(team_id=team_id, date=day_start)
    for category, value in categories.items():
        setattr(team_score, category, value)
    team_score.score = sum(categories.values())
    team_score.notes = validator.sanitize_string(payload.get('notes') or '', 1000)
    team_score.entered_by = entered_by
    if existing is None:
        db.session.add(team_score)
    db.session.commit()
    return team, team_score, existing is None


def list_scores(team_id=None, start_date=None, end_date=None, page=1, limit=20):
    query = TeamScore.query
    if team_id:
        query = query.filter(TeamScore.team_id == validator.parse_int(team_id, 'teamId'))
    start = validator.parse_datetime(start_date, 'startDate')
    end = validator.parse_datetime(end_date, 'endDate')
    if start is not None:
        query = query.filter(TeamScore.date >= start)
    if end is not None:
        query = query.filter(TeamScore.date <= day_bounds(end)[1])
    return query.order_by(TeamScore.date.desc()).paginate(page=page, per_page=limit, error_out=False)


def delete_score(score_id):
    score = db.session.get(TeamScore, score_id)
    if score is None:
        raise NotFound('Score not found')
    team = db.session.get(Team, score.team_id)
    deleted = {
        'teamName': team.name if team else None,
        'date': score.date.date().isoformat(),
    }
    db.session.delete(score)
    db.session.commit()
    return deleted


def summary():
    votes = votes_by_team()
    rows = []
    for team in Team.query.all():
        scores = TeamScore.query.filter_by(team_id=team.id).order_by(TeamScore.date.desc()).all()
        admin_score = sum(s.score for s in scores)
        student_votes = votes.get(team.id, 0)
        latest = scores[0] if scores else None
        rows.append({
            'teamId': str(team.id),
            'teamName': team.name,
            'totalScore': admin_score + student_votes,
            'adminScore': admin_score,
            'studentVotes': student_votes,
            'scoreCount': len(scores),
            'lastUpdated': isoformat(latest.date) if latest else None,
            'lastScore': latest.score if latest else 0,
        })
    return _ranked(rows, 'totalScore')
