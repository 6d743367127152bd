"""
Login session for the storefront.

A Session owns the current identity (a user or an admin record, never with
its password) and keeps it in a small file-backed LocalStorage under the
"currentUser" key. Its lifecycle is explicit: it is loaded from storage when
constructed, checked against the backend with validate(), and torn down
with logout().
"""

import json
import logging
import os
from typing import Any, Dict, Optional

from api_client import ApiClient, ApiError
from schemas import User, UserCreate, UserLogin

logger = logging.getLogger(__name__)

SESSION_KEY = "currentUser"
SESSION_FILE = os.getenv("SESSION_FILE", os.path.join(os.path.expanduser("~"), ".storefront", "session.json"))


class AuthError(Exception):
    pass


class InvalidCredentials(AuthError):
    pass


class AccountBlocked(AuthError):
    pass


class NotAuthenticated(AuthError):
    pass


class LocalStorage:
    """String key/value pairs persisted as one JSON object on disk."""

    def __init__(self, path: str = SESSION_FILE):
        self.path = path

    def _read(self) -> Dict[str, str]:
        if not os.path.exists(self.path):
            return {}
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except json.JSONDecodeError:
            logger.warning("Ignoring unreadable storage file %s", self.path)
            return {}
        return data if isinstance(data, dict) else {}

    def _write(self, data: Dict[str, str]) -> None:
        os.makedirs(os.path.dirname(os.path.abspath(self.path)), exist_ok=True)
        with open(self.path, "w", encoding="utf-8") as f:
            json.dump(data, f)

    def get_item(self, key: str) -> Optional[str]:
        return self._read().get(key)

    def set_item(self, key: str, value: str) -> None:
        data = self._read()
        data[key] = value
        self._write(data)

    def remove_item(self, key: str) -> None:
        data = self._read()
        if key in data:
            del data[key]
            self._write(data)


def without_password(record: Dict[str, Any]) -> Dict[str, Any]:
    return {k: v for k, v in record.items() if k != "password"}


class Session:
    def __init__(self, client: ApiClient, storage: Optional[LocalStorage] = None):
        self.client = client
        self.storage = storage or LocalStorage()
        self.user: Optional[Dict[str, Any]] = self._read_stored()

    # -------------------- State --------------------

    def _read_stored(self) -> Optional[Dict[str, Any]]:
        raw = self.storage.get_item(SESSION_KEY)
        if not raw:
            return None
        try:
            user = json.loads(raw)
        except json.JSONDecodeError:
            logger.warning("Stored session is not valid JSON; starting logged out")
            return None
        return user if isinstance(user, dict) else None

    def set_user(self, user: Optional[Dict[str, Any]]) -> None:
        if user:
            self.user = without_password(user)
            self.storage.set_item(SESSION_KEY, json.dumps(self.user))
        else:
            self.user = None
            self.storage.remove_item(SESSION_KEY)

    @property
    def is_authenticated(self) -> bool:
        return bool(self.user and self.user.get("id") is not None)

    @property
    def is_admin(self) -> bool:
        return bool(self.user and self.user.get("role") == "admin")

    @property
    def user_id(self):
        return self.user.get("id") if self.user else None

    # -------------------- Auth --------------------

    def login(self, email: str, password: str) -> Dict[str, Any]:
        if not email or not password:
            raise InvalidCredentials("Please enter email and password")
        credentials = UserLogin(email=email.strip(), password=password)
        typed_email = credentials.email.lower()

        for fetch, default_role in ((self.client.get_users, "user"), (self.client.get_admins, "admin")):
            found = next(
                (r for r in fetch()
                 if str(r.get("email") or "").lower() == typed_email and r.get("password") == credentials.password),
                None,
            )
            if not found:
                continue
            if found.get("isBlock"):
                logger.info("Rejected login for blocked %s account %s", default_role, email)
                raise AccountBlocked("Your account has been blocked. Contact the administrator.")
            self.set_user({**found, "role": found.get("role") or default_role})
            logger.info("Logged in %s as %s", credentials.email, self.user["role"])
            return self.user

        raise InvalidCredentials("Invalid email or password")

    def register(self, name: str, email: str, password: str) -> Dict[str, Any]:
        payload = UserCreate(name=name, email=email, password=password)
        if self.client.get_user_by_email(payload.email):
            raise AuthError("Email already registered")
        created = self.client.register_user(User(**payload.model_dump()).model_dump())
        logger.info("Registered user %s", payload.email)
        return without_password(created)

    def logout(self) -> None:
        self.set_user(None)

    # -------------------- Revalidation --------------------

    def _fetch_identity(self) -> Optional[Dict[str, Any]]:
        lookups = [self.client.get_user, self.client.get_admin]
        if self.is_admin:
            lookups.reverse()
        for lookup in lookups:
            try:
                return lookup(self.user["id"])
            except ApiError as e:
                if not e.is_not_found:
                    raise
        return None

    def validate(self) -> Optional[Dict[str, Any]]:
        """Re-check the stored identity; drop it if gone or blocked."""
        if not self.is_authenticated:
            return self.user
        try:
            fresh = self._fetch_identity()
        except ApiError as e:
            logger.warning("Could not validate session for %s: %s", self.user_id, e)
            return self.user

        if not fresh:
            logger.info("Session ended: user %s not found", self.user_id)
            self.set_user(None)
            return None
        if fresh.get("isBlock"):
            logger.info("Session ended: account %s is blocked", self.user_id)
            self.set_user(None)
            return None

        role = self.user.get("role")
        self.set_user({**fresh, "role": fresh.get("role") or role})
        return self.user

    def refresh_profile(self) -> Optional[Dict[str, Any]]:
        """Reload the user record with its order history from /orders."""
        if not self.user:
            return None
        fresh = None
        if self.user.get("id") is not None:
            try:
                fresh = self.client.get_user(self.user["id"])
            except ApiError as e:
                if not e.is_not_found:
                    raise
        if fresh is None:
            fresh = self.client.get_user_by_email(self.user.get("email"))
        if fresh is None:
            return self.user

        canonical = self.client.get_orders(user_id=fresh["id"])
        if canonical:
            fresh["orders"] = canonical
        else:
            fresh["orders"] = [
                {**o, "userId": str(fresh["id"])} for o in fresh.get("orders") or []
                if isinstance(o, dict)
            ]
        self.set_user({**fresh, "role": fresh.get("role") or self.user.get("role")})
        return self.user
