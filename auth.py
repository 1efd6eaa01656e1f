from __future__ import annotations

import logging
import secrets
from typing import Optional, Set

from passlib.context import CryptContext
from pymongo.errors import DuplicateKeyError

import database
from schemas import User

logger = logging.getLogger(__name__)

# pbkdf2 keeps passlib free of the native bcrypt backend
pwd_context = CryptContext(schemes=["pbkdf2_sha256"], deprecated="auto")

MIN_PHONE_LENGTH = 10


class ValidationFailure(ValueError):
    pass


def normalize_phone(phone: Optional[str]) -> str:
    return (phone or "").strip().replace(" ", "")


def require_phone(phone: Optional[str]) -> str:
    p = normalize_phone(phone)
    if not p or len(p) < MIN_PHONE_LENGTH:
        raise ValidationFailure("Enter valid phone")
    return p


def lookup_user(phone: Optional[str]) -> Optional[User]:
    """Return the registered user for ``phone`` or None when registration is needed."""
    p = require_phone(phone)
    row = database.select_one(database.USERS, "phone", p)
    return User(**row) if row else None


def register_user(phone: Optional[str], name: Optional[str], address: Optional[str]) -> User:
    p = require_phone(phone)
    name = (name or "").strip()
    address = (address or "").strip()
    if not name or not address:
        raise ValidationFailure("Fill details")

    existing = database.select_one(database.USERS, "phone", p)
    if existing:
        return User(**existing)

    user = User(phone=p, name=name, address=address)
    try:
        database.insert(database.USERS, [user])
    except DuplicateKeyError:
        # another device registered this phone since the read above
        existing = database.select_one(database.USERS, "phone", p)
        if not existing:
            raise
        return User(**existing)
    logger.info("Registered customer %s", p)
    return user


class AdminGate:
    """
    Four-digit PIN gate for the admin console.

    Unlocking hands out a token that lives only in this process; a restart
    locks everyone out again. This is a placeholder, not an access-control
    boundary.
    """

    def __init__(self, pin: str):
        if not (pin.isdigit() and len(pin) == 4):
            raise ValueError("Admin PIN must be 4 digits")
        self._pin_hash = pwd_context.hash(pin)
        self._sessions: Set[str] = set()

    def unlock(self, pin: Optional[str]) -> Optional[str]:
        if not pin or not pwd_context.verify(pin.strip(), self._pin_hash):
            logger.warning("Rejected admin PIN attempt")
            return None
        token = secrets.token_urlsafe(24)
        self._sessions.add(token)
        return token

    def is_unlocked(self, token: Optional[str]) -> bool:
        return bool(token) and token in self._sessions

    def lock(self, token: Optional[str]) -> None:
        self._sessions.discard(token or "")
