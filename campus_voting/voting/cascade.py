# campus_voting/voting/cascade.py

# Deletion paths that touch the vote ledger. Each runs as a single database
# transaction, so a failure part-way leaves nothing half-deleted.

from sqlalchemy import func

from campus_voting import db
from campus_voting.database.models import Account, Team, TeamScore, VoteTransaction
from campus_voting.errors import NotFound


def _accounts_with_votes(account_ids):
    if not account_ids:
        return set()
    rows = (
        db.session.query(VoteTransaction.account_id)
        .filter(VoteTransaction.account_id.in_(account_ids))
        .distinct()
    )
    return {row[0] for row in rows}


def _reset_last_voted_if_empty(account_ids):
    still_voting = _accounts_with_votes(account_ids)
    emptied = [account_id for account_id in account_ids if account_id not in still_voting]
    if emptied:
        Account.query.filter(Account.id.in_(emptied)).update(
            {Account.last_voted_at: None}, synchronize_session=False
        )
    return emptied


def delete_team(team_id):
    """Remove a team with its transactions, judged scores and affiliations.

    Accounts whose only votes went to this team get ``last_voted_at`` reset.
    Returns a summary dict.
    """
    team = db.session.get(Team, team_id)
    if team is None:
        raise NotFound("Team not found.")
    team_name = team.name
    try:
        voters = [
            row[0] for row in
            db.session.query(VoteTransaction.account_id)
            .filter(VoteTransaction.team_id == team_id)
            .distinct()
        ]
        removed_votes = (
            db.session.query(func.coalesce(func.sum(VoteTransaction.vote_count), 0))
            .filter(VoteTransaction.team_id == team_id)
            .scalar()
        )
        VoteTransaction.query.filter_by(team_id=team_id).delete(synchronize_session=False)
        TeamScore.query.filter_by(team_id=team_id).delete(synchronize_session=False)
        Account.query.filter_by(team_id=team_id).update(
            {Account.team_id: None}, synchronize_session=False
        )
        db.session.flush()
        emptied = _reset_last_voted_if_empty(voters)
        db.session.delete(team)
        db.session.commit()
    except Exception:
        db.session.rollback()
        raise
    return {
        'teamName': team_name,
        'affectedUsers': len(voters),
        'removedVotes': int(removed_votes or 0),
        'resetUsers': len(emptied),
    }


def delete_account_team_votes(account_id, team_id):
    account = db.session.get(Account, account_id)
    if account is None:
        raise NotFound("User not found.")
    query = VoteTransaction.query.filter_by(account_id=account_id, team_id=team_id)
    removed = (
        db.session.query(func.coalesce(func.sum(VoteTransaction.vote_count), 0))
        .filter(VoteTransaction.account_id == account_id, VoteTransaction.team_id == team_id)
        .scalar()
    )
    if not query.count():
        raise NotFound("No votes found for this team.")
    try:
        query.delete(synchronize_session=False)
        db.session.flush()
        if not _accounts_with_votes([account_id]):
            account.last_voted_at = None
        db.session.commit()
    except Exception:
        db.session.rollback()
        raise
    return int(removed or 0)


def delete_account_votes(account_id):
    account = db.session.get(Account, account_id)
    if account is None:
        raise NotFound("User not found.")
    removed = (
        db.session.query(func.coalesce(func.sum(VoteTransaction.vote_count), 0))
        .filter(VoteTransaction.account_id == account_id)
        .scalar()
    )
    try:
        VoteTransaction.query.filter_by(account_id=account_id).delete(synchronize_session=False)
        account.last_voted_at = None
        db.session.commit()
    except Exception:
        db.session.rollback()
        raise
    return int(removed or 0)


def delete_account(account_id):
    account = db.session.get(Account, account_id)
    if account is None:
        raise NotFound("User not found.")
    summary = {'name': account.name, 'rollNo': account.roll_no}
    try:
        VoteTransaction.query.filter_by(account_id=account_id).delete(synchronize_session=False)
        db.session.delete(account)
        db.session.commit()
    except Exception:
        db.session.rollback()
        raise
    return summary
