# campus_voting/voting/service.py

import logging
import threading
from collections import defaultdict
from dataclasses import dataclass
from datetime import datetime

from flask import current_app
from sqlalchemy import func

from campus_voting import db
from campus_voting.database.models import Account, Team, VoteTransaction, utcnow
from campus_voting.errors import BadRequest, NotFound, VotingClosed
from campus_voting.security.input_validator import validator
from campus_voting.voting.config_store import load_config_snapshot
from campus_voting.voting.quota import check_self_vote, load_usage, validate_submission
from campus_voting.voting.windows import ensure_voting_open, next_slot, resolve_window

logger = logging.getLogger(__name__)

# Vote casting is serialized per account: an in-process lock for the
# read-check-write sequence, plus a row lock on the account for deployments
# running several worker processes against PostgreSQL.
# Fixed-size pool; accounts sharing a stripe queue behind each other.
LOCK_STRIPES = 64
_account_locks = tuple(threading.Lock() for _ in range(LOCK_STRIPES))


def _lock_for(account_id):
    return _account_locks[hash(account_id) % LOCK_STRIPES]


def _now() -> datetime:
    # extracted for easier monkeypatching in tests
    return utcnow()


@dataclass(frozen=True)
class CastResult:
    effective_date: datetime
    votes_cast: int
    votes_used: int
    remaining: int
    transactions: tuple


def cast_votes(account_id, raw_votes, snapshot=None, now=None):
    now = now or _now()
    snapshot = snapshot or load_config_snapshot()

    ensure_voting_open(snapshot)
    window = resolve_window(snapshot, now)

    submission = validator.validate_vote_submission(raw_votes)
    voted_team_ids = [team_id for team_id, count in submission.items() if count > 0]
    if voted_team_ids:
        known = {row[0] for row in db.session.query(Team.id).filter(Team.id.in_(voted_team_ids))}
        unknown = sorted(set(voted_team_ids) - known)
        if unknown:
            raise BadRequest(f"Unknown team id: {unknown[0]}")

    with _lock_for(account_id):
        account = (
            db.session.query(Account)
            .filter(Account.id == account_id)
            .with_for_update()
            .first()
        )
        if account is None:
            db.session.rollback()
            raise NotFound("User not found.")
        try:
            check_self_vote(account, submission)
            usage = load_usage(account.id, window.boundary)
            total = validate_submission(
                submission, usage, snapshot.daily_quota,
                current_app.config['MAX_VOTES_PER_TEAM'],
            )

            created_at = now
            transactions = []
            for team_id in voted_team_ids:
                tx = VoteTransaction(
                    account_id=account.id,
                    team_id=team_id,
                    vote_count=submission[team_id],
                    effective_date=window.effective_date,
                    created_at=created_at,
                )
                db.session.add(tx)
                transactions.append(tx)
            account.last_voted_at = window.effective_date
            db.session.commit()
        except Exception:
            db.session.rollback()
            raise

    used = usage.total + total
    logger.info("Account %s cast %s votes (%s mode)", account_id, total, window.mode.value)
    return CastResult(
        effective_date=window.effective_date,
        votes_cast=total,
        votes_used=used,
        remaining=max(snapshot.daily_quota - used, 0),
        transactions=tuple(transactions),
    )


def voting_status(snapshot, account=None, now=None):
    """Public view of the config, personalized with quota usage for ``account``."""
    now = now or _now()
    data = snapshot.to_dict()
    data['maxVotesPerTeam'] = current_app.config['MAX_VOTES_PER_TEAM']
    upcoming = next_slot(snapshot, now)
    data['nextSlot'] = upcoming.to_dict() if upcoming else None

    window = None
    if snapshot.is_voting_open:
        try:
            window = resolve_window(snapshot, now)
        except VotingClosed as closed:
            data['closedReason'] = closed.message
    else:
        data['closedReason'] = 'Voting is currently closed by Admin.'
    data['isSessionLive'] = window is not None
    data['activeSlotLabel'] = window.slot.label if window and window.slot else None
    data['effectiveDate'] = window.effective_date.isoformat() + 'Z' if window else None

    if account is not None:
        if window is not None:
            usage = load_usage(account.id, window.boundary)
            data['votesUsedToday'] = usage.total
            data['votesByTeamToday'] = {str(k): v for k, v in usage.per_team.items()}
        else:
            data['votesUsedToday'] = 0
            data['votesByTeamToday'] = {}
        data['remainingToday'] = max(snapshot.daily_quota - data['votesUsedToday'], 0)
    return data


def votes_by_account(account_ids=None):
    """Projection of the transaction ledger: ``{account_id: {team_id str: count}}``."""
    query = db.session.query(
        VoteTransaction.account_id, VoteTransaction.team_id, func.sum(VoteTransaction.vote_count)
    )
    if account_ids is not None:
        if not account_ids:
            return {}
        query = query.filter(VoteTransaction.account_id.in_(account_ids))
    totals = defaultdict(dict)
    for account_id, team_id, total in query.group_by(VoteTransaction.account_id, VoteTransaction.team_id):
        totals[account_id][str(team_id)] = int(total or 0)
    return totals


def votes_for_account(account_id):
    return votes_by_account([account_id]).get(account_id, {})


def votes_by_team(start=None, end=None):
    """Total votes per team id, optionally limited to an effective-date range."""
    query = db.session.query(VoteTransaction.team_id, func.sum(VoteTransaction.vote_count))
    if start is not None:
        query = query.filter(VoteTransaction.effective_date >= start)
    if end is not None:
        query = query.filter(VoteTransaction.effective_date <= end)
    return {team_id: int(total or 0) for team_id, total in query.group_by(VoteTransaction.team_id)}
