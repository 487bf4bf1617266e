# campus_voting/audit/audit_logger.py

import hashlib
import hmac
import json
import logging
import threading

from flask import current_app, has_request_context, request
from sqlalchemy import text

from campus_voting import db
from campus_voting.database.models import AuditLog, isoformat, utcnow

logger = logging.getLogger(__name__)

# Append-only audit trail with hash chaining and HMAC signatures.
# Writes are best-effort: a failing audit write never aborts the caller.
# Appends are serialized so every record chains off the committed tail: a
# process-wide lock, plus a transaction advisory lock on PostgreSQL where
# several worker processes share the table.
_chain_lock = threading.Lock()
CHAIN_LOCK_KEY = 7311


class AuditLogger:
    def _signing_key(self):
        return current_app.config['SECRET_KEY'].encode()

    def _canonical(self, entry: dict) -> bytes:
        return json.dumps(entry, sort_keys=True, default=str).encode()

    def _entry_body(self, record: AuditLog) -> dict:
        return {
            "actor_id": record.actor_id,
            "actor_type": record.actor_type,
            "action": record.action,
            "details": record.details,
            "ip_address": record.ip_address,
            "user_agent": record.user_agent,
            "timestamp": isoformat(record.timestamp),
            "previous_hash": record.previous_hash,
        }

    def _lock_chain(self):
        if db.engine.dialect.name == 'postgresql':
            db.session.execute(text("SELECT pg_advisory_xact_lock(:key)"), {"key": CHAIN_LOCK_KEY})

    def _last_hash(self):
        last = AuditLog.query.order_by(AuditLog.id.desc()).first()
        return last.hash if last else None

    def log_event(self, action, actor_id=None, actor_type='SYSTEM', details=None):
        with _chain_lock:
            return self._append(action, actor_id, actor_type, details)

    def _append(self, action, actor_id, actor_type, details):
        try:
            self._lock_chain()
            record = AuditLog(
                actor_id=str(actor_id) if actor_id is not None else None,
                actor_type=actor_type,
                action=action,
                details=details,
                timestamp=utcnow(),
                previous_hash=self._last_hash(),
            )
            if has_request_context():
                record.ip_address = request.remote_addr
                record.user_agent = (request.headers.get('User-Agent') or '')[:300]

            entry_json = self._canonical(self._entry_body(record))
            record.hash = hashlib.sha256(entry_json).hexdigest()
            record.signature = hmac.new(self._signing_key(), entry_json, hashlib.sha256).hexdigest()

            db.session.add(record)
            db.session.commit()
            return record
        except Exception as e:
            db.session.rollback()
            logger.warning(f"Audit log error: {str(e)}")
            return None

    def log_admin_action(self, admin, action, details=None):
        return self.log_event(action, actor_id=admin.username, actor_type='ADMIN', details=details)

    def log_user_action(self, account, action, details=None):
        return self.log_event(action, actor_id=account.id, actor_type='USER', details=details)

    def verify_log_integrity(self):
        previous_hash = None
        for record in AuditLog.query.order_by(AuditLog.id.asc()).yield_per(500):
            if record.previous_hash != previous_hash:
                return False
            entry_json = self._canonical(self._entry_body(record))
            if hashlib.sha256(entry_json).hexdigest() != record.hash:
                return False
            expected = hmac.new(self._signing_key(), entry_json, hashlib.sha256).hexdigest()
            if not hmac.compare_digest(expected, record.signature):
                return False
            previous_hash = record.hash
        return True


audit_logger = AuditLogger()
