"""User accounts and bearer tokens.

Passwords are stored as salted PBKDF2-HMAC-SHA256 hashes. Tokens are opaque
random strings kept in the ``tokens`` collection; a token maps to a user id,
and the user's current role is looked up on every request so role changes
apply immediately.
"""

from __future__ import annotations

import hashlib
import hmac
import logging
import secrets
from typing import List, Optional, Tuple

from bookloans.models.domain import STAFF_ROLES, Role, User, utcnow
from bookloans.services.authorization import authorize, authorize_self_or
from bookloans.services.errors import DuplicateError, InvalidOperation, NotFound, Unauthorized
from bookloans.services.identity import Identity, RequestContext
from bookloans.store.base import TOKENS, USERS, DocumentStore, new_id

logger = logging.getLogger(__name__)

PBKDF2_ITERATIONS = 260_000


def hash_password(password: str, salt: Optional[str] = None) -> str:
    salt = salt or secrets.token_hex(16)
    digest = hashlib.pbkdf2_hmac("sha256", password.encode("utf-8"), salt.encode("ascii"), PBKDF2_ITERATIONS)
    return f"pbkdf2_sha256${PBKDF2_ITERATIONS}${salt}${digest.hex()}"


def verify_password(password: str, stored: str) -> bool:
    try:
        scheme, iterations, salt, expected = stored.split("$")
    except ValueError:
        return False
    if scheme != "pbkdf2_sha256":
        return False
    digest = hashlib.pbkdf2_hmac("sha256", password.encode("utf-8"), salt.encode("ascii"), int(iterations))
    return hmac.compare_digest(digest.hex(), expected)


class AccountService:
    def __init__(self, store: DocumentStore) -> None:
        self.store = store

    def _create(self, name: str, email: str, password: str, role: Role) -> User:
        email = email.strip().lower()
        doc = {
            "id": new_id(),
            "name": name.strip(),
            "email": email,
            "password_hash": hash_password(password),
            "role": role.value,
            "active_loans": [],
            "joined_at": utcnow(),
        }
        with self.store.unit_of_work() as uow:
            if uow.find(USERS, email=email):
                raise DuplicateError("Email already registered")
            uow.insert(USERS, doc)
            created = uow.find_by_id(USERS, doc["id"])
        logger.info(f"Created user id={doc['id']} role={role.value}")
        return User.from_document(created)

    def signup(self, name: str, email: str, password: str) -> Tuple[User, str]:
        """Register a reader account and log it in."""
        user = self._create(name, email, password, Role.READER)
        return user, self._issue_token(user.id)

    def create_user(self, ctx: RequestContext, name: str, email: str, password: str, role: Role) -> User:
        authorize(ctx.identity, Role.ADMIN)
        return self._create(name, email, password, role)

    def ensure_admin(self, name: str, email: str, password: str) -> User:
        """Create the bootstrap admin unless an account with that email exists."""
        with self.store.unit_of_work() as uow:
            existing = uow.find(USERS, email=email.strip().lower())
        if existing:
            return User.from_document(existing[0])
        return self._create(name, email, password, Role.ADMIN)

    def login(self, email: str, password: str) -> Tuple[User, str]:
        with self.store.unit_of_work() as uow:
            found = uow.find(USERS, email=email.strip().lower())
        if not found or not verify_password(password, found[0]["password_hash"]):
            raise Unauthorized("Invalid email or password")
        user = User.from_document(found[0])
        return user, self._issue_token(user.id)

    def _issue_token(self, user_id: str) -> str:
        token = secrets.token_hex(16)
        with self.store.unit_of_work() as uow:
            uow.insert(TOKENS, {"id": token, "user_id": user_id, "created_at": utcnow()})
        return token

    def logout(self, token: str) -> bool:
        with self.store.unit_of_work() as uow:
            return uow.delete(TOKENS, token)

    def identity_for_token(self, token: str) -> Optional[Identity]:
        with self.store.unit_of_work() as uow:
            token_doc = uow.find_by_id(TOKENS, token)
            if token_doc is None:
                return None
            user_doc = uow.find_by_id(USERS, token_doc["user_id"])
        if user_doc is None:
            return None
        return Identity(user_id=user_doc["id"], role=Role(user_doc["role"]))

    def get_user(self, ctx: RequestContext, user_id: str) -> User:
        authorize_self_or(ctx.identity, user_id, *STAFF_ROLES)
        with self.store.unit_of_work() as uow:
            doc = uow.find_by_id(USERS, user_id)
        if doc is None:
            raise NotFound(f"User {user_id} not found")
        return User.from_document(doc)

    def list_users(self, ctx: RequestContext, skip: int = 0, limit: int = 50) -> List[User]:
        authorize(ctx.identity, *STAFF_ROLES)
        with self.store.unit_of_work() as uow:
            docs = uow.find(USERS)
        users = sorted((User.from_document(d) for d in docs), key=lambda u: (u.name.lower(), u.id))
        return users[skip:skip + limit]

    def change_role(self, ctx: RequestContext, user_id: str, role: Role) -> User:
        authorize(ctx.identity, Role.ADMIN)
        with self.store.unit_of_work() as uow:
            doc = uow.find_by_id(USERS, user_id)
            if doc is None:
                raise NotFound(f"User {user_id} not found")
            uow.update(USERS, user_id, {"role": Role(role).value}, expected_version=doc["version"])
            updated = uow.find_by_id(USERS, user_id)
        logger.info(f"User {user_id} role set to {Role(role).value}")
        return User.from_document(updated)

    def update_profile(
        self,
        ctx: RequestContext,
        user_id: str,
        name: Optional[str] = None,
        email: Optional[str] = None,
        current_password: Optional[str] = None,
        new_password: Optional[str] = None,
    ) -> User:
        """Change a user's name, email or password.

        Users edit their own profile; admins may edit anyone's. A new password
        is only accepted together with the account's current password.
        """
        authorize_self_or(ctx.identity, user_id, Role.ADMIN)
        with self.store.unit_of_work() as uow:
            doc = uow.find_by_id(USERS, user_id)
            if doc is None:
                raise NotFound(f"User {user_id} not found")
            changes = {}
            if name is not None:
                changes["name"] = name.strip()
            if email is not None:
                email = email.strip().lower()
                if any(other["id"] != user_id for other in uow.find(USERS, email=email)):
                    raise DuplicateError("Email already registered")
                changes["email"] = email
            if new_password is not None:
                if current_password is None or not verify_password(current_password, doc["password_hash"]):
                    raise InvalidOperation("Current password is incorrect")
                changes["password_hash"] = hash_password(new_password)
            if changes:
                uow.update(USERS, user_id, changes, expected_version=doc["version"])
            updated = uow.find_by_id(USERS, user_id)
        logger.info(f"Updated profile of user {user_id}: {', '.join(sorted(changes)) or 'no changes'}")
        return User.from_document(updated)

    def delete_user(self, ctx: RequestContext, user_id: str) -> None:
        authorize(ctx.identity, Role.ADMIN)
        with self.store.unit_of_work() as uow:
            doc = uow.find_by_id(USERS, user_id)
            if doc is None:
                raise NotFound(f"User {user_id} not found")
            if doc["active_loans"]:
                raise InvalidOperation("Cannot delete user with active loans")
            uow.delete(USERS, user_id, expected_version=doc["version"])
            for token in uow.find(TOKENS, user_id=user_id):
                uow.delete(TOKENS, token["id"])
        logger.info(f"Deleted user id={user_id}")
