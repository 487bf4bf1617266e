# tests/conftest.py
import pytest

from campus_voting import create_app, db
from campus_voting.database.models import Account, AdminAccount, Team
from campus_voting.encryption.password_hashing import PasswordHashingService
from campus_voting.voting.config_store import update_config

STUDENT_PASSWORD = "Student123!"
ADMIN_PASSWORD = "AdminPass123!"


@pytest.fixture(scope="session")
def password_hashes():
    # Argon2 is slow on purpose; hash the shared fixtures' passwords once
    service = PasswordHashingService()
    return {
        STUDENT_PASSWORD: service.hash_password(STUDENT_PASSWORD),
        ADMIN_PASSWORD: service.hash_password(ADMIN_PASSWORD),
    }


@pytest.fixture
def app(tmp_path):
    # A file database so worker threads share the same data
    app = create_app({
        "TESTING": True,
        "SECRET_KEY": "test-secret",
        "JWT_SECRET_KEY": "test-jwt-secret",
        "SQLALCHEMY_DATABASE_URI": f"sqlite:///{tmp_path / 'voting.sqlite'}",
        "AUTO_CREATE_TABLES": True,
        "RATELIMIT_ENABLED": False,
        "LOG_LEVEL": "WARNING",
    })
    yield app
    with app.app_context():
        db.session.remove()
        db.drop_all()
        db.engine.dispose()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def teams(app):
    with app.app_context():
        created = [
            Team(name="Red Dragons", description="Team A"),
            Team(name="Blue Whales", description="Team B"),
            Team(name="Green Giants", description="Team C"),
        ]
        db.session.add_all(created)
        db.session.commit()
        return [team.id for team in created]


@pytest.fixture
def make_student(app, password_hashes):
    counter = {"n": 0}

    def _make(team_id=None, approved=True, **fields):
        counter["n"] += 1
        n = counter["n"]
        with app.app_context():
            account = Account(
                name=fields.get("name", f"Student {n}"),
                roll_no=fields.get("roll_no", f"CS{n:03d}"),
                email=fields.get("email", f"student{n}@campus.edu"),
                phone="9876543210",
                dept="CSE",
                year="2",
                gender="Female",
                password_hash=password_hashes[STUDENT_PASSWORD],
                is_approved=approved,
                team_id=team_id,
            )
            db.session.add(account)
            db.session.commit()
            return account.id

    return _make


@pytest.fixture
def make_admin(app, password_hashes):
    def _make(username="admin", role="ADMIN"):
        with app.app_context():
            admin = AdminAccount(username=username, password_hash=password_hashes[ADMIN_PASSWORD], role=role)
            db.session.add(admin)
            db.session.commit()
            return admin.id

    return _make


@pytest.fixture
def open_voting(app):
    def _open(**changes):
        payload = {"isVotingOpen": True}
        payload.update(changes)
        with app.app_context():
            return update_config(payload)

    return _open


def login_student(client, identifier, password=STUDENT_PASSWORD):
    return client.post("/api/auth/login", json={"identifier": identifier, "password": password})


def login_admin(client, username, password=ADMIN_PASSWORD):
    return client.post("/api/auth/admin-login", json={"username": username, "password": password})


@pytest.fixture
def student_client(app, client, make_student, teams):
    """A client logged in as an approved student with no team affiliation."""
    account_id = make_student()
    resp = login_student(client, "CS001")
    assert resp.status_code == 200
    client.account_id = account_id
    return client


@pytest.fixture
def admin_client(app, make_admin):
    make_admin("admin", "ADMIN")
    c = app.test_client()
    assert login_admin(c, "admin").status_code == 200
    return c


@pytest.fixture
def super_client(app, make_admin):
    make_admin("root", "SUPER_ADMIN")
    c = app.test_client()
    assert login_admin(c, "root").status_code == 200
    return c
