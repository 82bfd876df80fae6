# models/user.py
from pydantic import BaseModel
from typing import Literal, Optional

UserRole = Literal["student", "admin", "root-admin"]

ADMIN_ROLES = ("admin", "root-admin")


class User(BaseModel):
    id: str
    name: str
    email: str
    role: UserRole = "student"
    title: Optional[str] = None
    createdAt: Optional[str] = None


class UserRecord(User):
    password: str  # bcrypt hash

    def public(self) -> User:
        return User.model_validate(self.model_dump(exclude={"password"}))
