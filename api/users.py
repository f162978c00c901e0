"""
User API Endpoints

職責：
1. 建立 / 更新裝置使用者（名稱、大頭照 URL）
2. 查詢使用者
3. 移除大頭照

裝置 ID 由用戶端產生並保存；照片上傳到物件儲存也在用戶端完成，這裡只存 URL。
"""
from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session
import logging

from database import get_db
from schemas import UserUpsert, UserResponse
from core.exceptions import SpyfallException
from services.identity_service import (
    get_user,
    upsert_user,
    remove_profile_photo,
    validate_device_user_id,
)
from api.deps import get_locale, to_http_exception

router = APIRouter(prefix="/api/users", tags=["users"])
logger = logging.getLogger(__name__)


@router.put("/{user_id}", response_model=UserResponse)
def put_user(
    user_id: str,
    data: UserUpsert,
    locale: str = Depends(get_locale),
    db: Session = Depends(get_db),
):
    try:
        return upsert_user(db, user_id, data.name, data.profile_photo_url)

    except SpyfallException as e:
        raise to_http_exception(e, locale)
    except Exception as e:
        logger.error(f"Failed to save user {user_id}: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Internal error")


@router.get("/{user_id}", response_model=UserResponse)
def read_user(
    user_id: str,
    locale: str = Depends(get_locale),
    db: Session = Depends(get_db),
):
    try:
        return get_user(db, validate_device_user_id(user_id))

    except SpyfallException as e:
        raise to_http_exception(e, locale)
    except Exception as e:
        logger.error(f"Failed to read user: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Internal error")


@router.delete("/{user_id}/photo", response_model=UserResponse)
def delete_photo(
    user_id: str,
    locale: str = Depends(get_locale),
    db: Session = Depends(get_db),
):
    try:
        return remove_profile_photo(db, validate_device_user_id(user_id))

    except SpyfallException as e:
        raise to_http_exception(e, locale)
    except Exception as e:
        logger.error(f"Failed to delete photo: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Internal error")
