"""User service for registration and login"""

import json
import logging
import uuid
from datetime import datetime, timezone

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from starlette.concurrency import run_in_threadpool

from chat_service.core.errors import InvalidCredentialsError, UserAlreadyExistsError
from chat_service.infrastructure.persistence import UserModel
from chat_service.models.rest import AuthResponse, LoginRequest, RegisterRequest, User
from chat_service.utils import PasswordHasher

from .identity import TokenService

logger = logging.getLogger("chat-service.services.user_service")

DEFAULT_SETTINGS = {
    "theme": "light",
    "language": "zh-CN",
    "aiPersonality": "friendly",
}


def _to_user(row: UserModel) -> User:
    created_at = row.created_at
    if created_at.tzinfo is None:
        created_at = created_at.replace(tzinfo=timezone.utc)
    return User(
        id=row.id,
        username=row.username,
        email=row.email,
        password_hash=row.password_hash,
        created_at=created_at,
        settings=row.settings,
    )


class UserService:
    """Service for user registration and login"""

    def __init__(
        self,
        session_maker: async_sessionmaker[AsyncSession],
        hasher: PasswordHasher,
        tokens: TokenService,
    ):
        self._session_maker = session_maker
        self._hasher = hasher
        self._tokens = tokens

    async def get_by_email(self, email: str) -> User | None:
        async with self._session_maker() as db:
            result = await db.execute(select(UserModel).where(UserModel.email == email))
            row = result.scalar_one_or_none()
            return _to_user(row) if row else None

    async def register(self, data: RegisterRequest) -> AuthResponse:
        """
        Register a new user and issue a token

        Raises:
            UserAlreadyExistsError: If the email is taken
        """
        email = str(data.email)
        if await self.get_by_email(email) is not None:
            raise UserAlreadyExistsError(email)

        row = UserModel(
            id=str(uuid.uuid4()),
            username=data.username,
            email=email,
            password_hash=await run_in_threadpool(self._hasher.hash, data.password),
            created_at=datetime.now(timezone.utc),
            settings_json=json.dumps(DEFAULT_SETTINGS),
        )
        try:
            async with self._session_maker() as db:
                async with db.begin():
                    db.add(row)
        except IntegrityError:
            # Concurrent registration with the same email
            raise UserAlreadyExistsError(email)

        user = _to_user(row)
        logger.info(f"User created: {user.id} ({user.username})")
        return self._issue(user)

    async def login(self, data: LoginRequest) -> AuthResponse:
        """
        Check credentials and issue a token

        Raises:
            InvalidCredentialsError: If the user is unknown or the password is wrong
        """
        user = await self.get_by_email(str(data.email))
        if user is None or not await run_in_threadpool(
            self._hasher.verify, data.password, user.password_hash
        ):
            logger.warning(f"Failed login attempt for {data.email}")
            raise InvalidCredentialsError()
        logger.info(f"User logged in: {user.id}")
        return self._issue(user)

    def _issue(self, user: User) -> AuthResponse:
        token = self._tokens.create_access_token(user.id, user.email)
        return AuthResponse(token=token, user=user.to_response())
