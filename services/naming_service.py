"""
命名服務：生成邀請碼與玩家 ID

純計算邏輯，不涉及狀態轉換
"""
import random
import re
import string
import uuid

INVITE_CODE_LENGTH = 6
INVITE_CODE_CHARS = string.ascii_uppercase + string.digits

_INVITE_CODE_PATTERN = re.compile(r"^[A-Z0-9]{6}$")


def generate_invite_code() -> str:
    """
    生成隨機的 6 位大寫英數邀請碼

    範例：AB12CD, Q7X9ZK

    注意：
    - 不檢查唯一性（由呼叫者負責）
    - 36^6 ≈ 21 億種可能，碰撞機率極低
    """
    return ''.join(random.choices(INVITE_CODE_CHARS, k=INVITE_CODE_LENGTH))


def normalize_invite_code(code: str) -> str:
    """
    正規化使用者輸入的邀請碼（去空白、轉大寫）

    範例：" ab12cd " -> "AB12CD"
    """
    return (code or "").strip().upper()


def is_valid_invite_code(code: str) -> bool:
    return bool(_INVITE_CODE_PATTERN.match(code or ""))


def generate_player_id() -> str:
    """玩家 ID（房間內唯一，與 user_id 不同）"""
    return f"player_{uuid.uuid4().hex}"
