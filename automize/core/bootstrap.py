from __future__ import annotations

import logging

from sqlalchemy import inspect
from sqlalchemy.orm import Session

from automize.models.user import User
from automize.core.security import get_password_hash

logger = logging.getLogger("automize.bootstrap")


def seed_admin_user(
    db: Session,
    email: str,
    password: str,
    full_name: str = "Admin",
) -> None:
    # Si la tabla users no existe todavía, NO truena el startup.
    insp = inspect(db.get_bind())
    if not insp.has_table("users"):
        logger.warning("users table missing; admin seed skipped")
        return

    exists = db.query(User).filter(User.email == email).first()
    if exists:
        return

    u = User(
        email=email,
        full_name=full_name,
        hashed_password=get_password_hash(password),
        is_active=True,
        is_admin=True,
    )
    db.add(u)
    db.commit()
    logger.info("Seeded admin user %s", email)
