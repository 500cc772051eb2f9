"""Authentication API routes."""
from fastapi import APIRouter, HTTPException, status, Request

from expertiz.api.deps import AuthServiceDep, CurrentUser
from expertiz.schemas.user import UserCreate, UserLogin, UserResponse, Token
from expertiz.utils.rate_limiter import AUTH_LIMIT, limiter

router = APIRouter()


@router.post("/register", response_model=UserResponse, status_code=status.HTTP_201_CREATED)
@limiter.limit("5/minute")
async def register(
    request: Request,
    user_data: UserCreate,
    auth_service: AuthServiceDep,
):
    """Register a new user account."""
    try:
        return await auth_service.register(user_data)
    except ValueError as e:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(e),
        )


@router.post("/login", response_model=Token)
@limiter.limit(AUTH_LIMIT)
async def login(
    request: Request,
    credentials: UserLogin,
    auth_service: AuthServiceDep,
):
    """Authenticate user and return JWT tokens."""
    user = await auth_service.authenticate(
        email=credentials.email,
        password=credentials.password,
    )

    if user is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid email or password",
            headers={"WWW-Authenticate": "Bearer"},
        )

    return auth_service.create_tokens(user)


@router.post("/refresh", response_model=Token)
@limiter.limit("30/minute")
async def refresh_token(
    request: Request,
    refresh_token: str,
    auth_service: AuthServiceDep,
):
    """Refresh access token using refresh token."""
    tokens = await auth_service.refresh_tokens(refresh_token)

    if tokens is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired refresh token",
            headers={"WWW-Authenticate": "Bearer"},
        )

    return tokens


@router.get("/me", response_model=UserResponse)
async def get_current_user_info(current_user: CurrentUser):
    """Get current authenticated user information."""
    return current_user
