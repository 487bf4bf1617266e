# campus_voting/database/models.py

from datetime import datetime, timezone

from campus_voting import db


def utcnow():
    """Naive UTC timestamp, the representation used by every DateTime column."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def isoformat(value):
    return value.isoformat() + 'Z' if value else None


class Team(db.Model):
    __tablename__ = 'teams'
    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(120), nullable=False)
    description = db.Column(db.Text, nullable=False, default='')
    image_url = db.Column(db.String(500), nullable=False, default='')
    created_at = db.Column(db.DateTime, default=utcnow)

    def to_dict(self):
        return {
            'id': str(self.id),
            'name': self.name,
            'description': self.description,
            'imageUrl': self.image_url,
        }


class Account(db.Model):
    __tablename__ = 'accounts'
    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(120), nullable=False)
    roll_no = db.Column(db.String(40), unique=True, nullable=False)
    email = db.Column(db.String(254), unique=True, nullable=False)
    phone = db.Column(db.String(30), nullable=False)
    dept = db.Column(db.String(80), nullable=False)
    year = db.Column(db.String(10), nullable=False)
    gender = db.Column(db.String(10), nullable=False)
    password_hash = db.Column(db.String(200), nullable=False)  # Argon2id
    is_approved = db.Column(db.Boolean, nullable=False, default=False)
    must_change_password = db.Column(db.Boolean, nullable=False, default=False)
    team_id = db.Column(db.Integer, db.ForeignKey('teams.id'), nullable=True)
    # Non-null only while logged in on exactly one device
    current_session_token = db.Column(db.String(128), nullable=True)
    last_voted_at = db.Column(db.DateTime, nullable=True)
    created_at = db.Column(db.DateTime, default=utcnow)

    def to_dict(self, votes=None):
        return {
            'id': str(self.id),
            'name': self.name,
            'rollNo': self.roll_no,
            'email': self.email,
            'phone': self.phone,
            'dept': self.dept,
            'year': self.year,
            'gender': self.gender,
            'isApproved': self.is_approved,
            'mustChangePassword': self.must_change_password,
            'teamId': str(self.team_id) if self.team_id else None,
            'isLoggedIn': self.current_session_token is not None,
            'votes': votes if votes is not None else {},
            'lastVotedAt': isoformat(self.last_voted_at),
        }

    def __repr__(self):
        return f'<Account {self.id} {self.roll_no}>'


class AdminAccount(db.Model):
    __tablename__ = 'admins'
    id = db.Column(db.Integer, primary_key=True)
    username = db.Column(db.String(80), unique=True, nullable=False)
    password_hash = db.Column(db.String(200), nullable=False)
    role = db.Column(db.String(20), nullable=False, default='ADMIN')
    current_session_token = db.Column(db.String(128), nullable=True)
    created_at = db.Column(db.DateTime, default=utcnow)

    @property
    def is_super_admin(self):
        return self.role == 'SUPER_ADMIN'

    def to_dict(self):
        return {
            'id': str(self.id),
            'username': self.username,
            'role': self.role,
            'isLoggedIn': self.current_session_token is not None,
            'createdAt': isoformat(self.created_at),
        }


class VoteTransaction(db.Model):
    """Append-only ledger row; the source of truth for every vote aggregate."""
    __tablename__ = 'vote_transactions'
    id = db.Column(db.Integer, primary_key=True)
    account_id = db.Column(db.Integer, db.ForeignKey('accounts.id'), nullable=False, index=True)
    team_id = db.Column(db.Integer, nullable=False, index=True)
    vote_count = db.Column(db.Integer, nullable=False)
    effective_date = db.Column(db.DateTime, nullable=False, index=True)
    created_at = db.Column(db.DateTime, nullable=False, default=utcnow, index=True)

    def to_dict(self):
        return {
            'id': str(self.id),
            'accountId': str(self.account_id),
            'teamId': str(self.team_id),
            'votes': self.vote_count,
            'date': isoformat(self.effective_date),
            'createdAt': isoformat(self.created_at),
        }


class VotingConfig(db.Model):
    __tablename__ = 'voting_config'
    id = db.Column(db.Integer, primary_key=True)
    is_voting_open = db.Column(db.Boolean, nullable=False, default=False)
    start_time = db.Column(db.DateTime, nullable=True)
    end_time = db.Column(db.DateTime, nullable=True)
    current_session_date = db.Column(db.DateTime, nullable=True)
    daily_quota = db.Column(db.Integer, nullable=False, default=100)
    version = db.Column(db.Integer, nullable=False, default=1)
    updated_at = db.Column(db.DateTime, default=utcnow)

    slots = db.relationship('VotingSlot', order_by='VotingSlot.position',
                            cascade='all, delete-orphan', lazy='selectin')


class VotingSlot(db.Model):
    __tablename__ = 'voting_slots'
    id = db.Column(db.Integer, primary_key=True)
    config_id = db.Column(db.Integer, db.ForeignKey('voting_config.id'), nullable=False)
    position = db.Column(db.Integer, nullable=False, default=0)
    date = db.Column(db.DateTime, nullable=False)
    start_time = db.Column(db.DateTime, nullable=False)
    end_time = db.Column(db.DateTime, nullable=False)
    label = db.Column(db.String(80), nullable=True)


class TeamScore(db.Model):
    __tablename__ = 'team_scores'
    id = db.Column(db.Integer, primary_key=True)
    team_id = db.Column(db.Integer, db.ForeignKey('teams.id'), nullable=False, index=True)
    date = db.Column(db.DateTime, nullable=False, index=True)
    advantage = db.Column(db.Integer, nullable=False, default=0)
    main = db.Column(db.Integer, nullable=False, default=0)
    special = db.Column(db.Integer, nullable=False, default=0)
    elimination = db.Column(db.Integer, nullable=False, default=0)
    immunity = db.Column(db.Integer, nullable=False, default=0)
    score = db.Column(db.Integer, nullable=False, default=0)
    entered_by = db.Column(db.String(80), nullable=False)
    notes = db.Column(db.Text, nullable=False, default='')
    created_at = db.Column(db.DateTime, default=utcnow)
    updated_at = db.Column(db.DateTime, default=utcnow, onupdate=utcnow)

    CATEGORIES = ('advantage', 'main', 'special', 'elimination', 'immunity')

    def to_dict(self, team=None):
        data = {
            'id': str(self.id),
            'teamId': str(self.team_id),
            'date': isoformat(self.date),
            'score': self.score,
            'enteredBy': self.entered_by,
            'notes': self.notes,
        }
        for category in self.CATEGORIES:
            data[category] = getattr(self, category)
        if team is not None:
            data['team'] = {'id': str(team.id), 'name': team.name, 'description': team.description}
        return data


class AuditLog(db.Model):
    __tablename__ = 'audit_logs'
    id = db.Column(db.Integer, primary_key=True)
    actor_id = db.Column(db.String(80), nullable=True)  # account id or admin username
    actor_type = db.Column(db.String(10), nullable=False)  # USER | ADMIN | SYSTEM
    action = db.Column(db.String(60), nullable=False)
    details = db.Column(db.JSON, nullable=True)
    ip_address = db.Column(db.String(64), nullable=True)
    user_agent = db.Column(db.String(300), nullable=True)
    timestamp = db.Column(db.DateTime, nullable=False, default=utcnow, index=True)
    previous_hash = db.Column(db.String(64), nullable=True)
    hash = db.Column(db.String(64), nullable=False)
    signature = db.Column(db.String(64), nullable=False)

    def to_dict(self):
        return {
            'id': str(self.id),
            'actorId': self.actor_id,
            'actorType': self.actor_type,
            'action': self.action,
            'details': self.details,
            'ipAddress': self.ip_address,
            'userAgent': self.user_agent,
            'timestamp': isoformat(self.timestamp),
        }


class WhitelistedEmail(db.Model):
    __tablename__ = 'whitelisted_emails'
    id = db.Column(db.Integer, primary_key=True)
    email = db.Column(db.String(254), unique=True, nullable=False)
    added_by = db.Column(db.String(80), nullable=True)
    created_at = db.Column(db.DateTime, default=utcnow)

    def to_dict(self):
        return {'id': str(self.id), 'email': self.email, 'addedBy': self.added_by,
                'createdAt': isoformat(self.created_at)}


class BlacklistedUser(db.Model):
    __tablename__ = 'blacklisted_users'
    id = db.Column(db.Integer, primary_key=True)
    email = db.Column(db.String(254), unique=True, nullable=False)
    roll_no = db.Column(db.String(40), unique=True, nullable=False)
    reason = db.Column(db.String(300), nullable=False, default='Violation of rules')
    blocked_by = db.Column(db.String(80), nullable=False)
    created_at = db.Column(db.DateTime, default=utcnow)

    def to_dict(self):
        return {'id': str(self.id), 'email': self.email, 'rollNo': self.roll_no,
                'reason': self.reason, 'blockedBy': self.blocked_by,
                'createdAt': isoformat(self.created_at)}


class Event(db.Model):
    """Outbox of broadcast notifications; ``id`` doubles as the sequence number."""
    __tablename__ = 'events'
    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(60), nullable=False)
    payload = db.Column(db.JSON, nullable=True)
    created_at = db.Column(db.DateTime, default=utcnow)

    def to_dict(self):
        return {'seq': self.id, 'name': self.name, 'payload': self.payload,
                'createdAt': isoformat(self.created_at)}
