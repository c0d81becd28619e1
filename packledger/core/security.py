# packledger/core/security.py

"""
인증과 권한 검사를 담당하는 모듈입니다.

비밀번호는 bcrypt로 해싱하고, Access Token은 HS256 JWT로 발급합니다.
토큰의 sub 클레임에는 username을 담습니다. 권한은 UserRole 값의 크기로
비교하며 값이 작을수록 상위 권한입니다.
"""

import logging
from datetime import datetime, timedelta, timezone
from typing import Callable, Optional

from jose import jwt, JWTError
from passlib.context import CryptContext
from fastapi import Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer
from sqlmodel import select
from sqlmodel.ext.asyncio.session import AsyncSession

from packledger import API_PREFIX
from packledger.core.config import settings
from packledger.core.database import get_session
from packledger.domains.usr import models as usr_models

logger = logging.getLogger(__name__)

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")

oauth2_scheme = OAuth2PasswordBearer(tokenUrl=f"{API_PREFIX}/usr/auth/token")


def verify_password(plain_password: str, hashed_password: str) -> bool:
    return pwd_context.verify(plain_password, hashed_password)


def get_password_hash(password: str) -> str:
    return pwd_context.hash(password)


def create_access_token(data: dict, expires_delta: Optional[timedelta] = None) -> str:
    """만료 시각(exp)을 붙여 서명한 토큰 문자열을 반환합니다."""
    lifetime = expires_delta or timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)
    claims = {**data, "exp": datetime.now(timezone.utc) + lifetime}
    return jwt.encode(claims, settings.SECRET_KEY.get_secret_value(), algorithm=settings.ALGORITHM)


def _unauthorized() -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )


def _token_subject(token: str) -> str:
    """서명과 만료를 검증한 뒤 sub 클레임을 꺼냅니다. 실패하면 401."""
    try:
        claims = jwt.decode(token, settings.SECRET_KEY.get_secret_value(), algorithms=[settings.ALGORITHM])
    except JWTError as e:
        logger.debug("토큰 검증 실패: %s", e)
        raise _unauthorized()
    subject = claims.get("sub")
    if not subject:
        raise _unauthorized()
    return subject


async def get_current_user_from_token(
    token: str = Depends(oauth2_scheme),
    db: AsyncSession = Depends(get_session),
) -> usr_models.User:
    username = _token_subject(token)
    result = await db.execute(select(usr_models.User).where(usr_models.User.username == username))
    user = result.scalars().one_or_none()
    if user is None:
        raise _unauthorized()
    return user


def get_current_active_user(
    current_user: usr_models.User = Depends(get_current_user_from_token),
) -> usr_models.User:
    """비활성 계정은 400으로 거부합니다."""
    if not current_user.is_active:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Inactive user")
    return current_user


def require_role(minimum: usr_models.UserRole) -> Callable[..., usr_models.User]:
    """
    minimum 이상의 권한(값이 같거나 작은 역할)을 요구하는 의존성을 만듭니다.
    권한이 부족하면 403을 발생시킵니다.
    """
    def dependency(
        current_user: usr_models.User = Depends(get_current_active_user),
    ) -> usr_models.User:
        if current_user.role > minimum:
            logger.info(
                "권한 거부: '%s' (role=%s, required=%s)",
                current_user.username, current_user.role.name, minimum.name,
            )
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"Not enough permissions. {minimum.name} role required.",
            )
        return current_user

    return dependency


# 카탈로그, 고객, 프로젝트, 사용자 등 마스터 데이터 쓰기
get_current_admin_user = require_role(usr_models.UserRole.ADMIN)
