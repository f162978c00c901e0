"""
Identity resolver：裝置 ID -> User

裝置 ID 由用戶端在第一次啟動時產生並自行保存（UUID），
後端只負責把它對應到一筆 User 紀錄；不產生、也不驗證裝置本身。
"""
import logging
import uuid
from typing import Optional

from sqlalchemy.orm import Session

from models import User, utcnow
from core.exceptions import UserNotFound, InvalidArgument
from database import transactional

logger = logging.getLogger(__name__)

MAX_NAME_LENGTH = 40


def validate_device_user_id(user_id: str) -> str:
    """
    裝置 ID 必須是 UUID 字串（舊版的 "device_xxx" 格式不再接受）

    返回：
        正規化後（小寫）的 UUID 字串
    """
    try:
        return str(uuid.UUID(str(user_id)))
    except (ValueError, TypeError, AttributeError):
        raise InvalidArgument(f"Device user id must be a UUID, got {user_id!r}")


def _clean_name(name: Optional[str]) -> str:
    cleaned = (name or "").strip()
    if not cleaned:
        raise InvalidArgument("Name is required")
    if len(cleaned) > MAX_NAME_LENGTH:
        raise InvalidArgument(f"Name must be at most {MAX_NAME_LENGTH} characters")
    return cleaned


def get_user(db: Session, user_id: str) -> User:
    """
    異常：
        UserNotFound: 此裝置尚未建立使用者
    """
    user = db.query(User).filter(User.id == user_id).first()
    if not user:
        raise UserNotFound(user_id)
    return user


def upsert_user(db: Session, user_id: str, name: str, profile_photo_url: Optional[str] = None) -> User:
    """
    建立或更新此裝置的使用者

    - 已存在：更新名稱；只有提供新照片時才覆蓋照片
    - 不存在：以裝置 ID 建立新使用者
    """
    user_id = validate_device_user_id(user_id)
    cleaned = _clean_name(name)
    return _save_user(db, user_id, cleaned, profile_photo_url)


@transactional
def _save_user(db: Session, user_id: str, name: str, profile_photo_url: Optional[str]) -> User:
    user = db.query(User).filter(User.id == user_id).first()
    if user:
        user.name = name
        if profile_photo_url:
            user.profile_photo_url = profile_photo_url
        user.updated_at = utcnow()
        logger.info(f"Updated user {user_id}")
    else:
        user = User(id=user_id, name=name, profile_photo_url=profile_photo_url)
        db.add(user)
        logger.info(f"Created user {user_id}")
    db.flush()
    return user


@transactional
def remove_profile_photo(db: Session, user_id: str) -> User:
    """清除使用者的大頭照（物件儲存的刪除由外部處理）"""
    user = get_user(db, user_id)
    user.profile_photo_url = None
    user.updated_at = utcnow()
    return user
