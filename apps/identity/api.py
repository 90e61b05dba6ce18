"""
Identity API endpoints with JWT authentication.

Provides registration and login. Both return a bearer token that clients
send back in the Authorization header.
"""
from typing import Optional
from django.http import HttpRequest

from ninja import Router

from apps.core.errors import AuthenticationError
from .models import User
from .dtos import RegisterRequest, LoginRequest, AuthResponse, UserDTO
from .services import register, login, to_user_dto
from .jwt_auth import get_user_id_from_request

router = Router(tags=["Identity"])


# =============================================================================
# Helper Functions
# =============================================================================

def get_current_user(request: HttpRequest) -> Optional[User]:
    """
    Extract and validate user from the JWT bearer token.

    Returns User object if valid token, None otherwise.
    """
    user_id = get_user_id_from_request(request)
    if not user_id:
        return None

    try:
        return User.objects.get(id=user_id, is_active=True)
    except User.DoesNotExist:
        return None


def require_auth(request: HttpRequest) -> User:
    """
    Require authentication. Raises 401 if not authenticated.
    """
    user = get_current_user(request)
    if not user:
        raise AuthenticationError("authentication required")
    return user


# =============================================================================
# Auth Endpoints
# =============================================================================

@router.post("/register", response={201: AuthResponse}, auth=None)
def register_user(request: HttpRequest, payload: RegisterRequest):
    """Create an account and return an access token."""
    result = register(payload.email, payload.password, payload.full_name)
    return 201, result


@router.post("/login", response=AuthResponse, auth=None)
def login_user(request: HttpRequest, payload: LoginRequest):
    """Authenticate with e-mail and password and return an access token."""
    return login(payload.email, payload.password)


@router.get("/me", response=UserDTO, auth=None)
def get_me(request: HttpRequest):
    """Get current authenticated user's profile."""
    return to_user_dto(require_auth(request))
