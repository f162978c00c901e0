"""
自定義異常類別

集中管理所有業務邏輯異常，方便 API 層統一處理

每個異常都有固定的 code，對應一則在地化訊息（en / tr）。
除了 StoreUnavailable 以外，其餘都是驗證失敗，不應重試。
"""


class SpyfallException(Exception):
    """所有遊戲異常的基類"""
    code = "error"
    retryable = False


# ============ Room 相關異常 ============

class RoomNotFound(SpyfallException):
    """房間不存在（或邀請碼查無房間）"""
    code = "not_found"

    def __init__(self, room_id):
        self.room_id = room_id
        super().__init__(f"Room {room_id} not found")


class RoomFull(SpyfallException):
    """房間人數已滿"""
    code = "room_full"


class GameAlreadyStarted(SpyfallException):
    """遊戲已開始，不接受新玩家"""
    code = "game_already_started"


class NotEnoughPlayers(SpyfallException):
    """人數不足，無法開始遊戲"""
    code = "not_enough_players"


# ============ 權限 / 參數 ============

class NotAuthorized(SpyfallException):
    """呼叫者不是房主，或不是該玩家本人"""
    code = "not_authorized"


class InvalidArgument(SpyfallException):
    """輸入格式錯誤（例如不允許的計時長度）"""
    code = "invalid_argument"


# ============ 狀態轉換異常 ============

class InvalidState(SpyfallException):
    """目前的 game_state 不允許此操作"""
    code = "invalid_state"


class InvalidStateTransition(InvalidState):
    """非法的狀態轉換"""
    pass


# ============ User 相關異常 ============

class UserNotFound(SpyfallException):
    """裝置使用者不存在"""
    code = "user_not_found"

    def __init__(self, user_id):
        self.user_id = user_id
        super().__init__(f"User {user_id} not found")


# ============ Store 相關異常 ============

class ConcurrentUpdateConflict(SpyfallException):
    """compare-and-update 輸給了另一個寫入者（由 RoomManager 重試）"""
    code = "conflict"
    retryable = True

    def __init__(self, room_id):
        self.room_id = room_id
        super().__init__(f"Room {room_id} was modified concurrently")


class StoreUnavailable(SpyfallException):
    """暫時性的基礎設施錯誤，呼叫端可退避後重試"""
    code = "store_unavailable"
    retryable = True


ERROR_MESSAGES = {
    "en": {
        "error": "Something went wrong.",
        "not_found": "Room not found.",
        "room_full": "Room is full.",
        "game_already_started": "Game has already started.",
        "not_enough_players": "At least 3 players are required to start the game.",
        "not_authorized": "You are not allowed to do that.",
        "invalid_argument": "Invalid input.",
        "invalid_state": "That is not possible at this stage of the game.",
        "user_not_found": "User not found. Please set up your profile first.",
        "conflict": "The room changed while saving. Please try again.",
        "store_unavailable": "Service is temporarily unavailable. Please try again.",
    },
    "tr": {
        "error": "Bir şeyler ters gitti.",
        "not_found": "Oda bulunamadı.",
        "room_full": "Oda dolu.",
        "game_already_started": "Oyun zaten başladı.",
        "not_enough_players": "Oyunu başlatmak için en az 3 oyuncu gerekli.",
        "not_authorized": "Bu işlem için yetkiniz yok.",
        "invalid_argument": "Geçersiz giriş.",
        "invalid_state": "Oyunun bu aşamasında bu işlem yapılamaz.",
        "user_not_found": "Kullanıcı bulunamadı. Lütfen önce profilinizi oluşturun.",
        "conflict": "Kaydederken oda değişti. Lütfen tekrar deneyin.",
        "store_unavailable": "Hizmet geçici olarak kullanılamıyor. Lütfen tekrar deneyin.",
    },
}


def localized_message(exc: SpyfallException, locale: str = "en", fallback: str = "en") -> str:
    """
    取得異常的在地化訊息

    locale 可以是 Accept-Language 的原始值（例如 "tr-TR,tr;q=0.9"），
    只看第一個語言標籤的主要語系；找不到時退回 fallback。
    """
    lang = (locale or "").split(",")[0].split(";")[0].split("-")[0].strip().lower()
    messages = ERROR_MESSAGES.get(lang) or ERROR_MESSAGES.get(fallback) or ERROR_MESSAGES["en"]
    return messages.get(exc.code, messages["error"])
