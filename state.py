from __future__ import annotations

import json
import logging
import threading
from pathlib import Path
from typing import Any, Callable, Dict, Optional

from cart import Cart
from schemas import User

logger = logging.getLogger(__name__)

SESSION_PHONE_KEY = "bricxo_session_phone"
THEME_KEY = "theme"
THEMES = ("light", "dark")


class LocalStore:
    """Durable string key-value store kept in a JSON file."""

    def __init__(self, path: str | Path, namespace: str = ""):
        self.path = Path(path)
        self.namespace = namespace
        self._lock = threading.Lock()

    def _key(self, key: str) -> str:
        return f"{self.namespace}:{key}" if self.namespace else key

    def _load(self) -> Dict[str, str]:
        try:
            v = json.loads(self.path.read_text(encoding="utf-8"))
            return v if isinstance(v, dict) else {}
        except FileNotFoundError:
            return {}
        except (OSError, json.JSONDecodeError):
            logger.warning("Ignoring unreadable store at %s", self.path)
            return {}

    def get(self, key: str, default: Optional[str] = None) -> Optional[str]:
        with self._lock:
            return self._load().get(self._key(key), default)

    def set(self, key: str, value: str) -> None:
        with self._lock:
            data = self._load()
            data[self._key(key)] = value
            self.path.write_text(json.dumps(data, ensure_ascii=False), encoding="utf-8")

    def remove(self, key: str) -> None:
        with self._lock:
            data = self._load()
            if data.pop(self._key(key), None) is not None:
                self.path.write_text(json.dumps(data, ensure_ascii=False), encoding="utf-8")

    def scoped(self, namespace: str) -> "LocalStore":
        # Shares the file, so share the lock too.
        store = LocalStore(self.path, namespace)
        store._lock = self._lock
        return store


class AppState:
    """
    Everything a customer view reads or writes, outside any rendering code.

    The cart and user live in memory; the session phone and theme go through
    the durable store so they survive a restart.
    """

    def __init__(self, store: LocalStore):
        self.store = store
        self.user: Optional[User] = None
        self.cart = Cart()

    @property
    def session_phone(self) -> Optional[str]:
        return self.store.get(SESSION_PHONE_KEY)

    @property
    def is_authenticated(self) -> bool:
        return self.user is not None

    @property
    def theme(self) -> str:
        value = self.store.get(THEME_KEY)
        return value if value in THEMES else "light"

    def set_theme(self, theme: str) -> str:
        if theme not in THEMES:
            raise ValueError(f"Unknown theme {theme!r}")
        self.store.set(THEME_KEY, theme)
        return theme

    def toggle_theme(self) -> str:
        return self.set_theme("light" if self.theme == "dark" else "dark")

    def login(self, user: User) -> None:
        self.user = user
        self.store.set(SESSION_PHONE_KEY, user.phone)

    def logout(self) -> None:
        self.user = None
        self.store.remove(SESSION_PHONE_KEY)
        self.cart.clear()

    def restore(self, fetch_user: Callable[[str], Any]) -> Optional[User]:
        """Re-fetch the identity behind a stored session phone, if any."""
        phone = self.session_phone
        if not phone:
            return None
        try:
            found = fetch_user(phone)
        except Exception:
            logger.exception("Restoring session for %s failed", phone)
            return None
        if found:
            self.user = found if isinstance(found, User) else User(**found)
        return self.user
