"""
Room Store：房間的持久化抽象

提供的操作：
- get / get_by_invite_code：讀取
- create：新增
- compare_and_update：對「最新已提交版本」套用 mutator 並原子性提交
- delete：刪除

並發控制：
    Room.version 是 SQLAlchemy 的 version_id_col，所有 UPDATE / DELETE 都是
    `... WHERE id = ? AND version = ?`。兩個 mutator 同時以同一個版本為基礎寫入時，
    後寫的那個會影響 0 列，SQLAlchemy 丟出 StaleDataError，這裡轉成
    ConcurrentUpdateConflict，由 RoomManager 重新載入、重新驗證後重試。

    每個房間獨立，不需要跨房間的 transaction，也沒有 deadlock 的可能。
"""
from typing import Callable, Optional
import logging

from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from models import Room, EventLog, utcnow
from core.exceptions import RoomNotFound, ConcurrentUpdateConflict, StoreUnavailable

logger = logging.getLogger(__name__)


class RoomStore:
    """單一房間的原子性讀-改-寫"""

    @staticmethod
    def get(db: Session, room_id: str) -> Room:
        """
        取得房間的最新已提交狀態

        使用 populate_existing，確保不會拿到 session 裡的舊物件

        異常：
            RoomNotFound: Room 不存在
            StoreUnavailable: 資料庫暫時無法使用
        """
        try:
            room = db.query(Room).filter(Room.id == room_id).populate_existing().first()
        except OperationalError as e:
            db.rollback()
            raise StoreUnavailable(str(e)) from e
        if not room:
            raise RoomNotFound(room_id)
        return room

    @staticmethod
    def get_by_invite_code(db: Session, code: str) -> Room:
        """
        透過邀請碼取得 Room（code 需已正規化為大寫）

        異常：
            RoomNotFound: 查無房間
        """
        try:
            room = db.query(Room).filter(Room.invite_code == code).populate_existing().first()
        except OperationalError as e:
            db.rollback()
            raise StoreUnavailable(str(e)) from e
        if not room:
            raise RoomNotFound(f"Room with code {code}")
        return room

    @staticmethod
    def invite_code_exists(db: Session, code: str) -> bool:
        return db.query(Room.id).filter(Room.invite_code == code).first() is not None

    @staticmethod
    def create(db: Session, room: Room) -> Room:
        """
        新增 Room（只 flush，commit 由呼叫端的 @transactional 負責）

        flush 之後就把 Room 從 session 分離，commit 不會讓它過期
        """
        db.add(room)
        db.flush()
        db.expunge(room)
        return room

    @staticmethod
    def compare_and_update(
        db: Session,
        room_id: str,
        mutator: Callable[[Room], None],
    ) -> Optional[Room]:
        """
        對最新版本的 Room 套用 mutator 並提交

        流程：
        1. 重新載入 Room（最新已提交版本）
        2. 執行 mutator（mutator 內負責驗證；驗證失敗直接丟異常，不會有任何寫入）
        3. 玩家清單變空 -> 刪除房間
        4. flush（帶 version 條件）+ commit

        參數：
            db: SQLAlchemy Session
            room_id: Room ID
            mutator: 原地修改 Room 的函式；可以順便 db.add(EventLog)；
                     返回 False 表示沒有變更（不寫入、不遞增版本）

        返回：
            提交後的 Room；若房間因此被刪除則返回 None
            返回的 Room 已與 session 分離，內容就是這次提交（或 no-op 時讀到）的版本；
            之後讀取它的欄位不會再查資料庫，就算房間已經被別人刪掉也一樣

        異常：
            RoomNotFound: Room 不存在
            ConcurrentUpdateConflict: 輸給了另一個同時寫入的請求
            StoreUnavailable: 資料庫暫時無法使用
            其他：mutator 丟出的驗證異常
        """
        try:
            room = RoomStore.get(db, room_id)
            if mutator(room) is False:
                # 冪等操作：沒有任何變更，不寫入
                db.expunge(room)
                db.rollback()
                return room

            deleted = not room.players
            if deleted:
                db.add(EventLog(room_id=room_id, event_type="ROOM_DELETED", data={}))
                db.delete(room)
            else:
                room.updated_at = utcnow()

            db.flush()
            if not deleted:
                # version 已在 flush 時遞增
                db.expunge(room)
            db.commit()
        except StaleDataError as e:
            db.rollback()
            logger.warning(f"Stale write detected for room {room_id}: {e}")
            raise ConcurrentUpdateConflict(room_id) from e
        except OperationalError as e:
            db.rollback()
            logger.error(f"Store failure while updating room {room_id}: {e}", exc_info=True)
            raise StoreUnavailable(str(e)) from e
        except Exception:
            db.rollback()
            raise

        if deleted:
            logger.info(f"Room {room_id} deleted (no players left)")
            return None
        return room

    @staticmethod
    def delete(db: Session, room_id: str) -> None:
        """
        刪除房間（終態）；房間不存在視為已刪除
        """
        try:
            room = RoomStore.get(db, room_id)
        except RoomNotFound:
            return
        try:
            db.add(EventLog(room_id=room_id, event_type="ROOM_DELETED", data={}))
            db.delete(room)
            db.commit()
        except StaleDataError as e:
            db.rollback()
            raise ConcurrentUpdateConflict(room_id) from e
        except OperationalError as e:
            db.rollback()
            raise StoreUnavailable(str(e)) from e
        logger.info(f"Room {room_id} deleted")
