import logging

from passlib.exc import UnknownHashError
from sqlalchemy.exc import IntegrityError

from app.core import security
from app.core.config import get_settings
from app.core.db import session_scope
from app.models import User, UserRole

logger = logging.getLogger(__name__)


def ensure_default_admin() -> None:
    """Create or update the default admin account defined via environment variables."""

    settings = get_settings()
    username = (settings.DEFAULT_ADMIN_USERNAME or "").strip()
    password = settings.DEFAULT_ADMIN_PASSWORD
    email = (settings.DEFAULT_ADMIN_EMAIL or "").strip()

    if not username or not password:
        logger.warning("Default admin bootstrap skipped: username or password not configured")
        return

    with session_scope() as db:
        admin = db.query(User).filter(User.username == username).first()
        if admin:
            updated = False
            if admin.role != UserRole.ADMIN:
                admin.role = UserRole.ADMIN
                updated = True
            if email and admin.email != email:
                admin.email = email
                updated = True
            try:
                needs_password_update = not admin.password_hash or not security.verify_password(
                    password, admin.password_hash
                )
            except (ValueError, UnknownHashError):
                needs_password_update = True
            if needs_password_update:
                admin.password_hash = security.create_password_hash(password)
                updated = True
            if updated:
                logger.info("Default admin '%s' updated", username)
            return

        admin = User(
            username=username,
            email=email,
            password_hash=security.create_password_hash(password),
            role=UserRole.ADMIN,
        )
        db.add(admin)
        try:
            db.flush()
        except IntegrityError:
            logger.warning(
                "Default admin bootstrap encountered integrity error (username=%s). Another process may have created it.",
                username,
            )
            db.rollback()
        else:
            logger.info("Default admin '%s' created", username)
