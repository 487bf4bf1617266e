# campus_voting/encryption/password_hashing.py

import re
import secrets
from argon2 import PasswordHasher
from argon2.exceptions import VerifyMismatchError, HashingError, InvalidHashError

# Argon2id hashing for student and admin credentials

MIN_PASSWORD_LENGTH = 8


class PasswordHashingService:
    def __init__(self):
        self.ph = PasswordHasher(
            time_cost=3,
            memory_cost=65536,
            parallelism=4,
            hash_len=32,
            salt_len=16,
        )

    def hash_password(self, password: str) -> str:
        if not self.is_strong_password(password):
            raise ValueError(
                f"Password must be at least {MIN_PASSWORD_LENGTH} characters and mix "
                "at least two of: upper case, lower case, digits, symbols"
            )
        try:
            return self.ph.hash(password)
        except HashingError as e:
            raise ValueError(f"Password hashing failed: {str(e)}")

    def verify_password(self, password: str, hash_value: str) -> bool:
        if not isinstance(password, str) or not hash_value:
            return False
        try:
            self.ph.verify(hash_value, password)
            return True
        except (VerifyMismatchError, InvalidHashError):
            return False

    def needs_rehash(self, hash_value: str) -> bool:
        return self.ph.check_needs_rehash(hash_value)

    def verify_and_upgrade(self, password, hash_value):
        """Check a login password; returns ``(ok, new_hash)``.

        ``new_hash`` is set when the stored hash was made with older Argon2
        parameters and should replace it. Rehashing skips the strength policy
        so accounts created before a policy change can still log in.
        """
        if not self.verify_password(password, hash_value):
            return False, None
        if self.needs_rehash(hash_value):
            return True, self.ph.hash(password)
        return True, None

    def is_strong_password(self, password: str) -> bool:
        if not isinstance(password, str) or len(password) < MIN_PASSWORD_LENGTH:
            return False
        has_upper = bool(re.search(r'[A-Z]', password))
        has_lower = bool(re.search(r'[a-z]', password))
        has_digit = bool(re.search(r'\d', password))
        has_special = bool(re.search(r'[^A-Za-z0-9]', password))
        return sum([has_upper, has_lower, has_digit, has_special]) >= 2

    def generate_secure_password(self, length=12) -> str:
        if length < MIN_PASSWORD_LENGTH:
            length = MIN_PASSWORD_LENGTH
        charset = (
            "ABCDEFGHJKLMNPQRSTUVWXYZabcdefghijkmnopqrstuvwxyz23456789!@#$%&*"
        )
        while True:
            password = ''.join(secrets.choice(charset) for _ in range(length))
            if self.is_strong_password(password):
                return password
