# campus_voting/voting/windows.py

# Resolution of the active voting window from an immutable config snapshot.
#
# Precedence, recomputed on every request:
#   1. slots      - when any slot exists, exactly the slot containing `now` is open
#   2. session    - an admin override date; accounting covers that whole UTC day
#   3. legacy     - optional absolute start/end window; accounting covers today (UTC)

from dataclasses import dataclass
from datetime import datetime, timedelta
from enum import Enum
from typing import Optional, Tuple

from campus_voting.errors import VotingClosed

CLOSED_BY_ADMIN = 'Voting is currently closed by Admin.'
NO_ACTIVE_SLOT = 'No voting slot is active right now.'
OUTSIDE_SCHEDULE = 'Voting is only allowed between the scheduled times.'


class WindowMode(Enum):
    SLOT = "slot"
    SESSION_DATE = "session_date"
    LEGACY = "legacy"


@dataclass(frozen=True)
class SlotWindow:
    date: datetime
    start_time: datetime
    end_time: datetime
    label: Optional[str] = None

    def contains(self, moment):
        return self.start_time <= moment <= self.end_time

    def to_dict(self):
        return {
            'date': _iso(self.date),
            'startTime': _iso(self.start_time),
            'endTime': _iso(self.end_time),
            'label': self.label,
        }


@dataclass(frozen=True)
class ConfigSnapshot:
    id: int
    version: int
    is_voting_open: bool
    start_time: Optional[datetime]
    end_time: Optional[datetime]
    current_session_date: Optional[datetime]
    daily_quota: int
    slots: Tuple[SlotWindow, ...] = ()

    def to_dict(self):
        return {
            'id': str(self.id),
            'version': self.version,
            'isVotingOpen': self.is_voting_open,
            'startTime': _iso(self.start_time),
            'endTime': _iso(self.end_time),
            'currentSessionDate': _iso(self.current_session_date),
            'dailyQuota': self.daily_quota,
            'slots': [slot.to_dict() for slot in self.slots],
        }


@dataclass(frozen=True)
class AccountingBoundary:
    """Inclusive range used to sum an account's existing votes.

    ``column`` names the VoteTransaction timestamp compared against the range.
    Slot and legacy windows compare ``created_at``. A session-date override
    compares ``effective_date`` instead: votes cast while an override is set
    are stamped with the override day, so a past date stays one accounting
    day no matter when the votes were actually submitted.
    """
    start: datetime
    end: datetime
    column: str = 'created_at'


@dataclass(frozen=True)
class VotingWindow:
    mode: WindowMode
    effective_date: datetime
    boundary: AccountingBoundary
    slot: Optional[SlotWindow] = None


def _iso(value):
    return value.isoformat() + 'Z' if value else None


def day_bounds(moment):
    """00:00:00.000 to 23:59:59.999 of ``moment``'s UTC calendar day."""
    start = datetime(moment.year, moment.month, moment.day)
    return start, start + timedelta(days=1) - timedelta(milliseconds=1)


def ensure_voting_open(snapshot):
    if not snapshot.is_voting_open:
        raise VotingClosed(CLOSED_BY_ADMIN)


def active_slot(snapshot, now):
    for slot in snapshot.slots:
        if slot.contains(now):
            return slot
    return None


def next_slot(snapshot, now):
    upcoming = [slot for slot in snapshot.slots if slot.start_time > now]
    return min(upcoming, key=lambda slot: slot.start_time) if upcoming else None


def resolve_window(snapshot, now):
    """Return the VotingWindow for ``now`` or raise VotingClosed.

    The global switch is not consulted here; callers check it first with
    ensure_voting_open().
    """
    if snapshot.slots:
        slot = active_slot(snapshot, now)
        if slot is None:
            raise VotingClosed(NO_ACTIVE_SLOT)
        return VotingWindow(
            mode=WindowMode.SLOT,
            effective_date=slot.date,
            boundary=AccountingBoundary(slot.start_time, slot.end_time, 'created_at'),
            slot=slot,
        )

    if snapshot.current_session_date is not None:
        start, end = day_bounds(snapshot.current_session_date)
        # Votes cast under an override are stamped with the override date,
        # so the day is accounted on effective_date rather than created_at.
        return VotingWindow(
            mode=WindowMode.SESSION_DATE,
            effective_date=snapshot.current_session_date,
            boundary=AccountingBoundary(start, end, 'effective_date'),
        )

    if snapshot.start_time and snapshot.end_time:
        if now < snapshot.start_time or now > snapshot.end_time:
            raise VotingClosed(OUTSIDE_SCHEDULE)
    start, end = day_bounds(now)
    return VotingWindow(
        mode=WindowMode.LEGACY,
        effective_date=now,
        boundary=AccountingBoundary(start, end, 'created_at'),
    )
