from app.business.users.models import User
from app.business.users.schemas import UserCreate, UserRead, UserRole
from app.business.users.service import UserService, hash_password, user_service, verify_password

__all__ = [
    "User",
    "UserCreate",
    "UserRead",
    "UserRole",
    "UserService",
    "user_service",
    "hash_password",
    "verify_password",
]
