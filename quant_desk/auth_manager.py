"""
Authentication Helpers

Password hashing (bcrypt) and session token generation used by the auth
routes and the demo-user seeding in init_db.py.

Author: Quant Desk Development Team
Version: 1.0.0
"""

import secrets
from datetime import datetime, timedelta
from typing import Optional

import bcrypt


class AuthManager:
    """Stateless authentication helpers"""

    BCRYPT_ROUNDS = 12
    SESSION_DAYS = 7

    @classmethod
    def hash_password(cls, password: str, rounds: Optional[int] = None) -> str:
        """
        Hash password using bcrypt

        Args:
            password: Plaintext password
            rounds: bcrypt cost factor (default: BCRYPT_ROUNDS)

        Returns:
            Bcrypt password hash
        """
        salt = bcrypt.gensalt(rounds=rounds or cls.BCRYPT_ROUNDS)
        return bcrypt.hashpw(password.encode('utf-8'), salt).decode('utf-8')

    @staticmethod
    def verify_password(password: str, password_hash: str) -> bool:
        """
        Verify password against hash

        Returns:
            True if password matches, False otherwise (including malformed hashes)
        """
        try:
            return bcrypt.checkpw(password.encode('utf-8'), password_hash.encode('utf-8'))
        except ValueError:
            return False

    @staticmethod
    def generate_session_token() -> str:
        """
        Generate cryptographically secure session token

        Returns:
            64-character URL-safe token
        """
        return secrets.token_urlsafe(48)  # 48 bytes = 64 characters

    @classmethod
    def session_expiry(cls, now: Optional[datetime] = None) -> datetime:
        return (now or datetime.now()) + timedelta(days=cls.SESSION_DAYS)
