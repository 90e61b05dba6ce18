"""DTOs for Identity app."""
from dataclasses import dataclass
from datetime import datetime
from uuid import UUID

from ninja import Schema


@dataclass(frozen=True)
class UserDTO:
    id: UUID
    email: str
    full_name: str
    created_at: datetime


@dataclass(frozen=True)
class AuthResult:
    token: str
    user: UserDTO


class RegisterRequest(Schema):
    email: str = ""
    password: str = ""
    full_name: str = ""


class LoginRequest(Schema):
    email: str = ""
    password: str = ""


class AuthResponse(Schema):
    token: str
    user: UserDTO
