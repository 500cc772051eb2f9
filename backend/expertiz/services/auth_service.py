"""Authentication service."""
import logging

from expertiz.config import get_settings
from expertiz.models.user import User
from expertiz.repositories.interfaces import UserRepositoryInterface
from expertiz.schemas.user import Token, UserCreate
from expertiz.services.credit_service import CreditService
from expertiz.services.notification_service import NotificationService
from expertiz.utils.security import (
    REFRESH,
    create_access_token,
    create_refresh_token,
    get_password_hash,
    get_user_id_from_token,
    verify_password,
)

logger = logging.getLogger(__name__)


class AuthService:
    """Service for user authentication operations."""

    def __init__(
        self,
        users: UserRepositoryInterface,
        credits: CreditService,
        notifications: NotificationService,
    ):
        self.users = users
        self.credits = credits
        self.notifications = notifications

    async def register(self, user_data: UserCreate) -> User:
        """Register a new user and open their credit ledger."""
        email = user_data.email.lower()
        if await self.users.get_by_email(email):
            raise ValueError("Email already registered")

        user = await self.users.add(
            User(
                email=email,
                hashed_password=get_password_hash(user_data.password),
                first_name=user_data.first_name,
                last_name=user_data.last_name,
                phone=user_data.phone,
            )
        )
        await self.credits.open_ledger(user.id)

        initial_credits = get_settings().initial_credits
        if initial_credits > 0:
            await self.credits.credit(
                user.id,
                initial_credits,
                reference_id="signup",
                reason="Welcome credits",
                idempotency_key="signup-bonus",
            )

        await self.notifications.notify_welcome(user.id, user.first_name)
        logger.info("Registered user %s", user.id)
        return user

    async def authenticate(self, email: str, password: str) -> User | None:
        """Authenticate user with email and password."""
        user = await self.users.get_by_email(email.lower())

        if user is None:
            return None
        if not verify_password(password, user.hashed_password):
            return None
        if not user.is_active:
            return None

        return user

    def create_tokens(self, user: User) -> Token:
        """Create access and refresh tokens for user."""
        return Token(
            access_token=create_access_token(user.id, user.role.value),
            refresh_token=create_refresh_token(user.id),
        )

    async def refresh_tokens(self, refresh_token: str) -> Token | None:
        """Refresh access token using refresh token."""
        user_id = get_user_id_from_token(refresh_token, token_type=REFRESH)
        if user_id is None:
            return None

        user = await self.users.get(user_id)
        if user is None or not user.is_active:
            return None

        return self.create_tokens(user)

    async def get_user_by_id(self, user_id: int) -> User | None:
        return await self.users.get(user_id)
