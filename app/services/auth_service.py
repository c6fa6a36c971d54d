import logging
from datetime import datetime

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.core import security
from app.models import User, UserRole

from . import exceptions

logger = logging.getLogger(__name__)


class AuthService:
    def __init__(self, db: Session):
        self.db = db

    def issue_token(self, user: User) -> tuple[str, datetime]:
        return security.create_access_token(
            subject=user.username,
            role=user.role.value,
            additional_claims={"user_id": user.id, "email": user.email},
        )

    def register(self, *, username: str, email: str, password: str, confirm_password: str) -> tuple[User, str, datetime]:
        if password != confirm_password:
            raise exceptions.PasswordMismatch("Passwords do not match.")
        if self.db.query(User.id).filter(User.username == username).first() is not None:
            raise exceptions.ConflictError("Username already exists.")

        user = User(
            username=username,
            email=email,
            password_hash=security.create_password_hash(password),
            role=UserRole.USER,
        )
        self.db.add(user)
        try:
            self.db.commit()
        except IntegrityError as exc:
            self.db.rollback()
            raise exceptions.ConflictError("Username already exists.") from exc
        self.db.refresh(user)
        logger.info("User '%s' registered", username)
        token, expires_at = self.issue_token(user)
        return user, token, expires_at

    def login(self, *, username: str, password: str) -> tuple[User, str, datetime]:
        user = self.db.query(User).filter(User.username == username).first()
        if user is None or not security.verify_password(password, user.password_hash):
            logger.warning("Failed login for '%s'", username)
            raise exceptions.AuthenticationError("Invalid username or password.")
        token, expires_at = self.issue_token(user)
        return user, token, expires_at
