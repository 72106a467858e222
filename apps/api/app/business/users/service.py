from __future__ import annotations

import logging
import uuid

import bcrypt
from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.business.users.models import User
from app.business.users.schemas import UserCreate, UserRead
from app.core.errors import InvalidInputError, NotFoundError


logger = logging.getLogger("app.users")

_HASH_PREFIX = "bcrypt:"


def hash_password(password: str) -> str:
    hashed = bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt())
    return _HASH_PREFIX + hashed.decode("utf-8")


def verify_password(password: str, password_hash: str) -> bool:
    if not password_hash.startswith(_HASH_PREFIX):
        return False
    stored = password_hash[len(_HASH_PREFIX) :].encode("utf-8")
    try:
        return bcrypt.checkpw(password.encode("utf-8"), stored)
    except ValueError:
        return False


class UserService:
    def create_user(self, session: Session, dto: UserCreate) -> UserRead:
        user = User(
            name=dto.name,
            email=dto.email.lower(),
            password_hash=hash_password(dto.password),
            role=dto.role.value,
            is_active=True,
        )
        session.add(user)
        try:
            session.commit()
        except IntegrityError:
            session.rollback()
            raise InvalidInputError("a user with this email already exists")
        session.refresh(user)
        return UserRead.model_validate(user)

    def list_users(self, session: Session, *, include_inactive: bool = True) -> list[UserRead]:
        stmt = select(User)
        if not include_inactive:
            stmt = stmt.where(User.is_active.is_(True))
        rows = session.scalars(stmt.order_by(User.created_at.desc())).all()
        return [UserRead.model_validate(row) for row in rows]

    def set_active(self, session: Session, user_id: uuid.UUID, active: bool, *, actor_user_id: str) -> UserRead:
        """Enable or disable a login. Disabled users cannot request reset codes or receive leads."""
        user = session.get(User, user_id)
        if user is None:
            raise NotFoundError("user not found", details={"user_id": str(user_id)})
        if user.is_active != active:
            user.is_active = active
            session.commit()
            session.refresh(user)
        logger.info(
            "user.enabled" if active else "user.disabled",
            extra={"user_id": str(user_id), "actor_user_id": actor_user_id},
        )
        return UserRead.model_validate(user)

    def find_active_by_email(self, session: Session, email: str) -> User | None:
        return session.scalar(
            select(User).where(func.lower(User.email) == email.strip().lower(), User.is_active.is_(True))
        )

    def get_active_user(self, session: Session, user_id: uuid.UUID) -> User:
        user = session.scalar(select(User).where(User.id == user_id, User.is_active.is_(True)))
        if user is None:
            raise NotFoundError("user not found", details={"user_id": str(user_id)})
        return user

    def set_password(self, session: Session, user: User, new_password: str) -> None:
        user.password_hash = hash_password(new_password)
        session.add(user)


user_service = UserService()
