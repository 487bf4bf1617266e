# tests/test_input_validator.py
from datetime import datetime

import pytest

from campus_voting.errors import BadRequest
from campus_voting.security.input_validator import InputValidator


@pytest.fixture
def validator():
    return InputValidator()


def registration(**overrides):
    data = {
        "name": "Asha Rao",
        "rollNo": "cs21-004",
        "dept": "CSE",
        "email": "Asha.Rao@Campus.edu",
        "phone": "+91 98765 43210",
        "gender": "Female",
        "year": "3",
        "password": "Secret123!",
    }
    data.update(overrides)
    return data


def test_sanitize_strips_markup(validator):
    assert validator.sanitize_string("<b>Hello</b>") == "Hello"
    assert validator.sanitize_string("<script>alert(1)</script>Team") == "Team"
    assert validator.sanitize_string("Tom & Jerry") == "Tom & Jerry"


def test_sanitize_truncates(validator):
    assert validator.sanitize_string("x" * 50, max_length=10) == "x" * 10


def test_sanitize_requires_string(validator):
    with pytest.raises(BadRequest):
        validator.sanitize_string(42)


def test_email_validation(validator):
    assert validator.validate_email("user@campus.edu")
    assert not validator.validate_email("user@campus")
    assert not validator.validate_email(None)
    assert validator.normalize_email("  User@Campus.EDU ") == "user@campus.edu"
    with pytest.raises(BadRequest):
        validator.normalize_email("nope")


def test_registration_normalizes_fields(validator):
    fields = validator.validate_registration(registration())
    assert fields["email"] == "asha.rao@campus.edu"
    assert fields["roll_no"] == "CS21-004"
    assert "password" not in fields


def test_registration_missing_fields(validator):
    with pytest.raises(BadRequest) as exc:
        validator.validate_registration(registration(phone="", dept=None))
    assert "dept" in exc.value.message
    assert "phone" in exc.value.message


def test_registration_rejects_unknown_gender(validator):
    with pytest.raises(BadRequest):
        validator.validate_registration(registration(gender="Robot"))


def test_vote_submission_normalizes_ids(validator):
    assert validator.validate_vote_submission({"1": 3, "2": 0}) == {1: 3, 2: 0}


@pytest.mark.parametrize("votes", [
    {"1": -1},
    {"1": 2.5},
    {"1": True},
    {"1": "3"},
    {"abc": 1},
    [1, 2],
    None,
])
def test_vote_submission_rejects_bad_input(validator, votes):
    with pytest.raises(BadRequest):
        validator.validate_vote_submission(votes)


def test_parse_datetime_converts_to_naive_utc(validator):
    assert validator.parse_datetime("2024-03-01T10:00:00Z") == datetime(2024, 3, 1, 10, 0)
    assert validator.parse_datetime("2024-03-01T15:30:00+05:30") == datetime(2024, 3, 1, 10, 0)
    assert validator.parse_datetime(None) is None
    with pytest.raises(BadRequest):
        validator.parse_datetime("yesterday", "date")


def test_parse_int(validator):
    assert validator.parse_int("7", "dailyQuota") == 7
    with pytest.raises(BadRequest):
        validator.parse_int("0", "dailyQuota", minimum=1)
    with pytest.raises(BadRequest):
        validator.parse_int(True, "dailyQuota")
