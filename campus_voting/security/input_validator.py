# campus_voting/security/input_validator.py

import re
import html
import bleach
from datetime import datetime, timezone

from campus_voting.errors import BadRequest

# Input validation and sanitization for registration, vote and admin payloads


class InputValidator:
    GENDERS = ('Male', 'Female', 'Other')
    REGISTRATION_FIELDS = ('name', 'rollNo', 'dept', 'email', 'phone', 'gender', 'year', 'password')

    def __init__(self):
        self.allowed_html_tags = []
        self.allowed_html_attributes = {}

        self.patterns = {
            'email': re.compile(r'^[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}$'),
            'roll_no': re.compile(r'^[A-Za-z0-9/-]{2,40}$'),
            'phone': re.compile(r'^\+?[0-9 -]{7,20}$'),
            'xss_script': re.compile(r'<script[^>]*>.*?</script>', re.IGNORECASE | re.DOTALL),
            'xss_event': re.compile(r'\bon\w+\s*=', re.IGNORECASE)
        }

    def sanitize_string(self, input_str, max_length=255):
        if not isinstance(input_str, str):
            raise BadRequest("Input must be a string")
        if len(input_str) > max_length:
            input_str = input_str[:max_length]

        sanitized = re.sub(self.patterns['xss_script'], '', input_str)
        sanitized = re.sub(self.patterns['xss_event'], '', sanitized)
        sanitized = bleach.clean(sanitized, tags=self.allowed_html_tags,
                                 attributes=self.allowed_html_attributes, strip=True)
        # bleach escapes what it keeps; store plain text
        return html.unescape(sanitized).strip()

    def validate_email(self, email):
        return isinstance(email, str) and bool(self.patterns['email'].match(email))

    def normalize_email(self, email):
        if not self.validate_email((email or '').strip()):
            raise BadRequest("Invalid email address.")
        return email.strip().lower()

    def validate_roll_no(self, roll_no):
        return isinstance(roll_no, str) and bool(self.patterns['roll_no'].match(roll_no))

    def require_fields(self, data, fields):
        if not isinstance(data, dict):
            raise BadRequest("Request body must be a JSON object.")
        missing = [f for f in fields if data.get(f) in (None, '')]
        if missing:
            raise BadRequest(f"Missing required fields: {', '.join(missing)}")
        return data

    def validate_registration(self, data):
        self.require_fields(data, self.REGISTRATION_FIELDS)
        roll_no = str(data['rollNo']).strip().upper()
        if not self.validate_roll_no(roll_no):
            raise BadRequest("Invalid roll number.")
        phone = str(data['phone']).strip()
        if not self.patterns['phone'].match(phone):
            raise BadRequest("Invalid phone number.")
        if data['gender'] not in self.GENDERS:
            raise BadRequest(f"Gender must be one of: {', '.join(self.GENDERS)}")
        return {
            'name': self.sanitize_string(str(data['name']), 120),
            'roll_no': roll_no,
            'dept': self.sanitize_string(str(data['dept']), 80),
            'email': self.normalize_email(data['email']),
            'phone': phone,
            'gender': data['gender'],
            'year': self.sanitize_string(str(data['year']), 10),
        }

    def validate_vote_submission(self, votes):
        """Normalize ``{teamId: count}`` into ``{int team id: int count}``.

        Zero counts are kept (and ignored downstream); negatives, booleans and
        non-integers are rejected.
        """
        if not isinstance(votes, dict):
            raise BadRequest("Votes must be an object of team id to vote count.")
        normalized = {}
        for team_id, count in votes.items():
            try:
                key = int(team_id)
            except (TypeError, ValueError):
                raise BadRequest(f"Invalid team id: {team_id}")
            if isinstance(count, bool) or not isinstance(count, int):
                raise BadRequest("Vote counts must be whole numbers.")
            if count < 0:
                raise BadRequest("Vote counts cannot be negative.")
            normalized[key] = normalized.get(key, 0) + count
        return normalized

    def parse_datetime(self, value, field='date'):
        """ISO-8601 string to naive UTC datetime; None/empty passes through."""
        if value in (None, ''):
            return None
        if not isinstance(value, str):
            raise BadRequest(f"Invalid {field}: expected an ISO-8601 string")
        try:
            parsed = datetime.fromisoformat(value.strip().replace('Z', '+00:00'))
        except ValueError:
            raise BadRequest(f"Invalid {field}: {value}")
        if parsed.tzinfo is not None:
            parsed = parsed.astimezone(timezone.utc).replace(tzinfo=None)
        return parsed

    def parse_int(self, value, field, minimum=None):
        if isinstance(value, bool):
            raise BadRequest(f"Invalid {field}")
        try:
            number = int(value)
        except (TypeError, ValueError):
            raise BadRequest(f"Invalid {field}")
        if minimum is not None and number < minimum:
            raise BadRequest(f"{field} must be at least {minimum}")
        return number


validator = InputValidator()
