"""Services for Identity app."""
import logging

from django.contrib.auth import authenticate
from django.db import IntegrityError, transaction

from apps.core.errors import AuthenticationError, ClientError, ConflictError, store_errors
from .models import User
from .dtos import UserDTO, AuthResult
from .jwt_auth import create_access_token

logger = logging.getLogger(__name__)


def to_user_dto(user: User) -> UserDTO:
    return UserDTO(
        id=user.id,
        email=user.email,
        full_name=user.full_name,
        created_at=user.created_at,
    )


def get_user_dto(user_id) -> UserDTO | None:
    try:
        return to_user_dto(User.objects.get(id=user_id))
    except User.DoesNotExist:
        return None


def get_user_by_email(email: str) -> User | None:
    with store_errors("get user by email"):
        return User.objects.filter(email__iexact=email.strip()).first()


def register(email: str, password: str, full_name: str) -> AuthResult:
    """
    Create an account and sign it in.

    Raises:
        ClientError: a required field is empty
        ConflictError: the e-mail address is already registered
    """
    email = (email or "").strip()
    full_name = (full_name or "").strip()
    if not email or not password or not full_name:
        raise ClientError("email, password, and full_name are required")

    if User.objects.filter(email__iexact=email).exists():
        raise ConflictError("email already registered")

    try:
        # Inner atomic keeps a race on the unique e-mail from poisoning an
        # outer transaction.
        with transaction.atomic():
            user = User.objects.create_user(
                username=email[:150],
                email=email,
                password=password,
                full_name=full_name,
            )
    except IntegrityError as e:
        logger.info(f"Registration conflict for {email}: {e}")
        raise ConflictError("email already registered") from e

    logger.info(f"Registered user {user.id}")
    return AuthResult(token=create_access_token(user.id), user=to_user_dto(user))


def login(email: str, password: str) -> AuthResult:
    """
    Check credentials and issue an access token.

    Raises:
        ClientError: email or password is empty
        AuthenticationError: unknown e-mail, wrong password or disabled account
    """
    if not email or not password:
        raise ClientError("email and password are required")

    user = authenticate(username=email.strip(), password=password)
    if user is None:
        raise AuthenticationError("invalid email or password")

    return AuthResult(token=create_access_token(user.id), user=to_user_dto(user))
