"""보안 관련 유틸리티 함수들"""

from datetime import datetime, timedelta, timezone
from typing import Optional

from jose import JWTError, jwt
from passlib.context import CryptContext

from modtinder.core.exceptions import AuthenticationError

# 비밀번호 해싱을 위한 설정
pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")

LOGIN_COOKIE = "lcmt-login"
SETTINGS_COOKIE = "lcmt-settings"
ACCESS_TOKEN_EXPIRE_DAYS = 30


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """평문 비밀번호와 해시된 비밀번호를 비교

    Args:
        plain_password (str): 평문 비밀번호
        hashed_password (str): 해시된 비밀번호

    Returns:
        bool: 비밀번호 일치 여부
    """
    return pwd_context.verify(plain_password, hashed_password)


def get_password_hash(password: str) -> str:
    """비밀번호를 해시화"""
    return pwd_context.hash(password)


def create_access_token(
    user_id: int,
    secret: str,
    algorithm: str = "HS256",
    expires_delta: Optional[timedelta] = None,
) -> str:
    """JWT 액세스 토큰 생성

    Args:
        user_id: 토큰 주체 (사용자 id)
        secret: 서명 키
        algorithm: 서명 알고리즘
        expires_delta: 만료 시간 (기본 30일)

    Returns:
        str: JWT 토큰
    """
    expire = datetime.now(timezone.utc) + (expires_delta or timedelta(days=ACCESS_TOKEN_EXPIRE_DAYS))
    to_encode = {"exp": expire, "sub": str(user_id)}
    return jwt.encode(to_encode, secret, algorithm=algorithm)


def decode_access_token(token: str, secret: str, algorithm: str = "HS256") -> int:
    """JWT 토큰 검증 후 사용자 id 반환

    Raises:
        AuthenticationError: 토큰이 유효하지 않거나 만료된 경우
    """
    try:
        payload = jwt.decode(token, secret, algorithms=[algorithm])
    except JWTError as e:
        raise AuthenticationError(f"유효하지 않은 로그인 토큰입니다: {e}") from e

    subject = payload.get("sub")
    try:
        return int(subject)
    except (TypeError, ValueError) as e:
        raise AuthenticationError("로그인 토큰에 사용자 정보가 없습니다") from e
