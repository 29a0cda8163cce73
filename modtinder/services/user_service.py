"""
사용자 서비스
사용자 생성, 로그인 인증 및 조회
"""
from typing import Optional

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from modtinder.core.exceptions import UserAlreadyExistsError
from modtinder.core.logger import LoggerMixin
from modtinder.core.security import get_password_hash, verify_password
from modtinder.models import User


class UserService(LoggerMixin):
    """사용자 서비스 (호출자의 세션 안에서 동작)"""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_by_id(self, user_id: int) -> Optional[User]:
        return await self.session.get(User, user_id)

    async def get_by_username(self, username: str) -> Optional[User]:
        result = await self.session.execute(select(User).where(User.username == username))
        return result.scalar_one_or_none()

    async def create_user(self, username: str, password: str) -> User:
        """사용자 생성

        Raises:
            UserAlreadyExistsError: 같은 이름의 사용자가 이미 있는 경우
        """
        if await self.get_by_username(username) is not None:
            raise UserAlreadyExistsError(username)

        user = User(username=username, password_hash=get_password_hash(password))
        self.session.add(user)
        try:
            await self.session.flush()
        except IntegrityError as e:
            # 동시에 같은 이름으로 가입한 경우
            raise UserAlreadyExistsError(username) from e

        self.logger.info(f"사용자 생성: {username} (id={user.id})")
        return user

    async def authenticate(self, username: str, password: str) -> Optional[User]:
        """로그인 확인 (실패 시 None)"""
        user = await self.get_by_username(username)
        if user is None or not verify_password(password, user.password_hash):
            self.logger.info(f"로그인 실패: {username}")
            return None
        return user
