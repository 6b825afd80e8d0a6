"""
Credentials: password hashing, auth tokens, and account registration/login.

Tokens carry only the account email and an expiry. Every authenticated
request re-resolves the user by that email.
"""
from datetime import datetime, timedelta, timezone
from typing import Any, Dict

from jose import JWTError, jwt
from passlib.context import CryptContext
from pymongo.database import Database
from pymongo.errors import DuplicateKeyError

import errors
from config import Settings
from logger import get_logger
from schemas import User as UserSchema, collection_name

log = get_logger("auth")

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")

USERS = collection_name(UserSchema)


def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(plain_password: str, hashed_password: str) -> bool:
    return pwd_context.verify(plain_password, hashed_password)


class TokenIssuer:
    """Signs and verifies email-claim tokens with the configured secret."""

    def __init__(self, settings: Settings):
        self.secret = settings.require_secret()
        self.algorithm = settings.jwt_algorithm
        self.lifetime = timedelta(days=settings.token_ttl_days)

    def issue(self, email: str) -> str:
        expire = datetime.now(timezone.utc) + self.lifetime
        return jwt.encode({"email": email, "exp": expire}, self.secret, algorithm=self.algorithm)

    def verify(self, token: str) -> str:
        """Return the email claim of a valid token, or raise AuthError."""
        if not token:
            raise errors.AuthError("Not authenticated")
        try:
            payload = jwt.decode(token, self.secret, algorithms=[self.algorithm])
        except JWTError:
            raise errors.AuthError()
        email = payload.get("email")
        if not email:
            raise errors.AuthError("Invalid token")
        return email


class AccountService:
    def __init__(self, db: Database, tokens: TokenIssuer):
        self.users = db[USERS]
        self.tokens = tokens

    def register(self, email: str, password: str, name: str) -> None:
        if not email or not password or not name:
            raise errors.ValidationError()
        email = email.lower()
        if self.users.find_one({"email": email}):
            log.warning("Registration rejected, %s already exists", email)
            raise errors.DuplicateUser()
        user = UserSchema(
            name=name,
            email=email,
            password_hash=hash_password(password),
            token=self.tokens.issue(email),
        )
        try:
            self.users.insert_one(user.model_dump())
        except DuplicateKeyError:
            log.warning("Registration rejected, %s was registered concurrently", email)
            raise errors.DuplicateUser()
        log.info("Registered user %s", email)

    def login(self, email: str, password: str) -> Dict[str, Any]:
        """Check credentials and hand back the token stored at registration."""
        user = self.users.find_one({"email": email.lower()})
        if not user:
            raise errors.NotRegistered()
        if not verify_password(password, user.get("password_hash", "")):
            log.warning("Password mismatch for %s", user["email"])
            raise errors.InvalidCredentials()
        return {
            "id": str(user["_id"]),
            "name": user["name"],
            "token": user["token"],
            "email": user["email"],
            "role": user["role"],
        }

    def resolve_user(self, email: str) -> Dict[str, Any]:
        user = self.users.find_one({"email": email})
        if not user:
            raise errors.UserNotFound()
        return user
