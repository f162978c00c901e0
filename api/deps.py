"""
API 共用依賴

- get_current_user：從 X-User-Id header 解析裝置使用者，每個請求只解析一次
- to_http_exception：把業務異常轉成 HTTPException（含在地化訊息）
"""
from typing import Optional

from fastapi import Depends, Header, HTTPException
from sqlalchemy.orm import Session

from database import get_db, get_settings
from models import User
from core.exceptions import (
    SpyfallException,
    RoomNotFound,
    UserNotFound,
    RoomFull,
    GameAlreadyStarted,
    NotAuthorized,
    NotEnoughPlayers,
    InvalidState,
    InvalidArgument,
    ConcurrentUpdateConflict,
    StoreUnavailable,
    localized_message,
)
from services.identity_service import get_user, validate_device_user_id

STATUS_CODES = {
    RoomNotFound: 404,
    UserNotFound: 401,
    RoomFull: 409,
    GameAlreadyStarted: 409,
    NotAuthorized: 403,
    NotEnoughPlayers: 400,
    InvalidState: 409,
    InvalidArgument: 400,
    ConcurrentUpdateConflict: 503,
    StoreUnavailable: 503,
}


def to_http_exception(exc: SpyfallException, locale: Optional[str] = None) -> HTTPException:
    status_code = 500
    for exc_type in type(exc).__mro__:
        if exc_type in STATUS_CODES:
            status_code = STATUS_CODES[exc_type]
            break

    fallback = get_settings().default_locale
    return HTTPException(
        status_code=status_code,
        detail={
            "code": exc.code,
            "message": localized_message(exc, locale or fallback, fallback),
        },
    )


def get_locale(accept_language: Optional[str] = Header(default=None)) -> str:
    return accept_language or get_settings().default_locale


def get_current_user(
    x_user_id: Optional[str] = Header(default=None),
    locale: str = Depends(get_locale),
    db: Session = Depends(get_db),
) -> User:
    """
    解析呼叫者身分；缺少或查無使用者 -> 401
    """
    if not x_user_id:
        raise to_http_exception(UserNotFound(None), locale)
    try:
        return get_user(db, validate_device_user_id(x_user_id))
    except (UserNotFound, InvalidArgument):
        raise to_http_exception(UserNotFound(x_user_id), locale)
