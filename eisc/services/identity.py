"""Demo identity provider: an explicitly constructed in-memory user directory."""

import uuid
from dataclasses import dataclass

from eisc.core.exceptions import ConflictError, UnauthorizedError
from eisc.core.logging import get_logger
from eisc.core.security import hash_password, verify_password
from eisc.models.identity import Identity
from eisc.storage.memory import DEMO_USER_ID

log = get_logger(__name__)

DEMO_EMAIL = "carlos@eisc.io"
DEMO_PASSWORD = "demo1234"
DEMO_DISPLAY_NAME = "Carlos Méndez"


@dataclass
class StoredUser:
    user_id: str
    email: str
    display_name: str
    password_hash: str
    specialty: str = "software"


class UserDirectory:
    def __init__(self, seed_demo: bool = False) -> None:
        self._by_email: dict[str, StoredUser] = {}
        if seed_demo:
            self._by_email[DEMO_EMAIL] = StoredUser(
                user_id=DEMO_USER_ID,
                email=DEMO_EMAIL,
                display_name=DEMO_DISPLAY_NAME,
                password_hash=hash_password(DEMO_PASSWORD),
            )

    @staticmethod
    def _normalize(email: str) -> str:
        return email.strip().lower()

    def register(self, email: str, password: str, display_name: str, specialty: str | None = None) -> Identity:
        email = self._normalize(email)
        if email in self._by_email:
            raise ConflictError("Email already registered")
        user = StoredUser(
            user_id=f"user-{uuid.uuid4().hex[:12]}",
            email=email,
            display_name=display_name,
            password_hash=hash_password(password),
            specialty=specialty or "software",
        )
        self._by_email[email] = user
        log.info("user_registered", user_id=user.user_id)
        return Identity(user_id=user.user_id, display_name=user.display_name, email=email, is_new_user=True)

    def authenticate(self, email: str, password: str) -> Identity:
        user = self._by_email.get(self._normalize(email))
        if not user or not verify_password(password, user.password_hash):
            raise UnauthorizedError("Invalid email or password")
        return Identity(user_id=user.user_id, display_name=user.display_name, email=user.email, is_new_user=False)
