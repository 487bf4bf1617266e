# tests/test_audit_logger.py
import threading
import time

from campus_voting import db
from campus_voting.audit.audit_logger import AuditLogger
from campus_voting.database.models import Account, AdminAccount, AuditLog


def test_log_event_chains_hashes(app):
    logger = AuditLogger()
    with app.app_context():
        first = logger.log_event("LOGIN", actor_id=1, actor_type="USER")
        second = logger.log_event("VOTE_CAST", actor_id=1, actor_type="USER", details={"votes": {"2": 3}})
        assert first.previous_hash is None
        assert second.previous_hash == first.hash
        assert len(second.signature) == 64
        assert logger.verify_log_integrity()


def test_tampering_breaks_integrity(app):
    logger = AuditLogger()
    with app.app_context():
        logger.log_event("LOGIN", actor_id="root", actor_type="ADMIN")
        record = logger.log_event("DELETE_TEAM", actor_id="root", actor_type="ADMIN", details={"teamId": 1})
        record.details = {"teamId": 2}
        db.session.commit()
        assert not logger.verify_log_integrity()


def test_signature_depends_on_secret(app):
    logger = AuditLogger()
    with app.app_context():
        logger.log_event("LOGIN", actor_id=1, actor_type="USER")
        app.config["SECRET_KEY"] = "another-secret"
        assert not logger.verify_log_integrity()


def test_request_metadata_recorded(app):
    logger = AuditLogger()
    with app.test_request_context("/", headers={"User-Agent": "pytest-agent"},
                                  environ_base={"REMOTE_ADDR": "10.0.0.5"}):
        record = logger.log_event("LOGIN", actor_id=1, actor_type="USER")
        assert record.ip_address == "10.0.0.5"
        assert record.user_agent == "pytest-agent"


def test_failures_are_swallowed(app, monkeypatch):
    logger = AuditLogger()
    with app.app_context():
        def broken_commit():
            raise RuntimeError("database is gone")

        monkeypatch.setattr(db.session, "commit", broken_commit)
        assert logger.log_event("LOGIN", actor_id=1) is None
        monkeypatch.undo()
        assert AuditLog.query.count() == 0


def test_admin_and_user_helpers(app, make_student, make_admin):
    logger = AuditLogger()
    account_id = make_student()
    make_admin("root", "SUPER_ADMIN")
    with app.app_context():
        account = db.session.get(Account, account_id)
        admin = AdminAccount.query.filter_by(username="root").first()
        user_entry = logger.log_user_action(account, "LOGOUT")
        admin_entry = logger.log_admin_action(admin, "UPDATE_CONFIG", {"fields": ["dailyQuota"]})
        assert (user_entry.actor_type, user_entry.actor_id) == ("USER", str(account_id))
        assert (admin_entry.actor_type, admin_entry.actor_id) == ("ADMIN", "root")


def test_concurrent_writes_keep_a_single_chain(app, monkeypatch):
    logger = AuditLogger()
    with app.app_context():
        logger.log_event("SEED", actor_type="SYSTEM")

    read_tail = AuditLogger._last_hash

    def slow_last_hash(self):
        tail = read_tail(self)
        time.sleep(0.2)
        return tail

    monkeypatch.setattr(AuditLogger, "_last_hash", slow_last_hash)
    barrier = threading.Barrier(2)

    def write(action):
        with app.app_context():
            barrier.wait()
            try:
                logger.log_event(action, actor_id=action, actor_type="ADMIN")
            finally:
                db.session.remove()

    workers = [threading.Thread(target=write, args=(name,)) for name in ("A", "B")]
    for worker in workers:
        worker.start()
    for worker in workers:
        worker.join(timeout=30)

    with app.app_context():
        records = AuditLog.query.order_by(AuditLog.id.asc()).all()
        assert len(records) == 3
        previous = [record.previous_hash for record in records]
        assert len(set(previous)) == 3
        assert logger.verify_log_integrity()
