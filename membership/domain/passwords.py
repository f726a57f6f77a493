"""
Password hashing and strength rules.

BcryptPasswordHasher implements the PasswordHasher port and
LengthPasswordPolicy implements the PasswordPolicy port.
"""

import bcrypt


class BcryptPasswordHasher:
    """
    Implements PasswordHasher protocol via bcrypt.

    Uses structural subtyping - no explicit inheritance from Protocol.
    """

    def __init__(self, cost: int = 10) -> None:
        self._cost = cost

    def hash(self, password: str) -> str:
        return bcrypt.hashpw(password.encode(), bcrypt.gensalt(rounds=self._cost)).decode()

    def verify(self, password: str, password_hash: str) -> bool:
        """
        Compare ``password`` against a stored bcrypt hash.

        A malformed stored hash counts as a mismatch.
        """
        try:
            return bcrypt.checkpw(password.encode(), password_hash.encode())
        except ValueError:
            return False


class LengthPasswordPolicy:
    """Minimum length, optionally requiring a letter and a digit."""

    def __init__(self, min_length: int = 8, require_mixed: bool = False) -> None:
        self.min_length = min_length
        self.require_mixed = require_mixed

    def validate(self, password: str) -> tuple[bool, str]:
        if len(password) < self.min_length:
            return False, f"Password must be at least {self.min_length} characters."
        if self.require_mixed and not (
            any(c.isalpha() for c in password) and any(c.isdigit() for c in password)
        ):
            return False, "Password must contain both letters and digits."
        return True, ""
