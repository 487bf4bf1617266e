# campus_voting/voting/quota.py

from dataclasses import dataclass, field
from typing import Dict

from sqlalchemy import func

from campus_voting import db
from campus_voting.database.models import VoteTransaction
from campus_voting.errors import BadRequest, Forbidden


@dataclass(frozen=True)
class UsageSnapshot:
    """Votes an account already spent inside one accounting boundary."""
    per_team: Dict[int, int] = field(default_factory=dict)
    total: int = 0

    def for_team(self, team_id):
        return self.per_team.get(team_id, 0)


def load_usage(account_id, boundary):
    column = getattr(VoteTransaction, boundary.column)
    rows = (
        db.session.query(VoteTransaction.team_id, func.sum(VoteTransaction.vote_count))
        .filter(
            VoteTransaction.account_id == account_id,
            column >= boundary.start,
            column <= boundary.end,
        )
        .group_by(VoteTransaction.team_id)
        .all()
    )
    per_team = {team_id: int(total or 0) for team_id, total in rows}
    return UsageSnapshot(per_team=per_team, total=sum(per_team.values()))


def check_self_vote(account, submission):
    if account.team_id is not None and submission.get(account.team_id, 0) > 0:
        raise Forbidden("You cannot vote for your own team.")


def validate_submission(submission, usage, daily_quota, team_cap):
    """Check a normalized ``{team_id: count}`` against one usage snapshot.

    Returns the submission total. Raises BadRequest for an empty submission,
    a per-team cap overrun or a quota overrun.
    """
    total = sum(submission.values())
    if total == 0:
        raise BadRequest("You must cast at least one vote.")

    for team_id, count in submission.items():
        if count and usage.for_team(team_id) + count > team_cap:
            remaining = max(team_cap - usage.for_team(team_id), 0)
            raise BadRequest(
                f"Cannot give more than {team_cap} votes to a single team "
                f"({remaining} left for this team).",
                teamId=str(team_id),
            )

    if usage.total + total > daily_quota:
        remaining = max(daily_quota - usage.total, 0)
        raise BadRequest(f"Cannot exceed {daily_quota} votes per day ({remaining} left).")
    return total
