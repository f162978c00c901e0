"""
Change Notifier：把提交後的房間狀態推送給訂閱者

- 以 room_id 分組；publish 在 notifier 的 lock 內依序投遞，單一房間 FIFO
- 每個訂閱記住已送出的最新 version，較舊（或相同）的快照直接丟棄，
  用戶端永遠不會在新版本之後看到舊版本
- 進來的 payload 先經過 RoomSnapshot 嚴格解碼；缺欄位或格式錯誤就丟棄，不部分套用
- 房間刪除時送出刪除事件並關閉該房間所有訂閱

publish 會從 FastAPI 的 threadpool 呼叫，訂閱者則在 event loop 上 await，
所以投遞一律透過 loop.call_soon_threadsafe。
"""
import asyncio
import logging
import threading
from collections import defaultdict
from typing import Any, Dict, Optional, Set

from pydantic import ValidationError

from schemas import RoomSnapshot

logger = logging.getLogger(__name__)

ROOM_UPDATED = "room_updated"
ROOM_DELETED = "room_deleted"

# 每個訂閱最多暫存的事件數；慢的用戶端只會錯過中間版本
MAX_PENDING_EVENTS = 16


def decode_room_payload(payload: Any) -> Optional[RoomSnapshot]:
    """
    嚴格解碼房間 payload；不合格則返回 None（呼叫端應丟棄）
    """
    if isinstance(payload, RoomSnapshot):
        return payload
    if not isinstance(payload, dict) or not payload.get("id"):
        logger.warning(f"Discarding room payload without id: {payload!r}")
        return None
    try:
        return RoomSnapshot.model_validate(payload)
    except ValidationError as e:
        logger.warning(f"Discarding malformed room payload for {payload.get('id')}: {e}")
        return None


class Subscription:
    """單一訂閱者（一條 WebSocket 連線）"""

    def __init__(self, notifier: "RoomNotifier", room_id: str, viewer_user_id: str,
                 loop: asyncio.AbstractEventLoop, max_pending: int = MAX_PENDING_EVENTS):
        self.room_id = room_id
        self.viewer_user_id = viewer_user_id
        self.last_version = 0
        self.closed = False
        self.dropped = 0
        self._notifier = notifier
        self._loop = loop
        self._queue: asyncio.Queue = asyncio.Queue(maxsize=max(2, max_pending))

    def _put(self, event: Optional[Dict[str, Any]]) -> None:
        """
        在 event loop 上執行；佇列滿了就丟掉最舊的快照

        用戶端只需要最新的房間狀態，較舊的快照已經被後面的版本取代。
        刪除事件與結束訊號永遠排在最後，不會被擠掉（maxsize 至少 2）。
        """
        while self._queue.full():
            self._queue.get_nowait()
            self.dropped += 1
            logger.warning(
                f"Subscriber {self.viewer_user_id} of room {self.room_id} is falling behind, "
                f"dropped a stale snapshot ({self.dropped} so far)"
            )
        self._queue.put_nowait(event)

    def _deliver(self, event: Optional[Dict[str, Any]]) -> None:
        # 呼叫端持有 notifier lock
        try:
            self._loop.call_soon_threadsafe(self._put, event)
        except RuntimeError:
            # event loop 已關閉，連線早就斷了
            self.closed = True

    def offer(self, snapshot: RoomSnapshot) -> bool:
        """
        投遞快照；版本不比已送出的新就丟棄

        返回：
            是否有投遞
        """
        with self._notifier._lock:
            return self._offer_locked(snapshot)

    def _offer_locked(self, snapshot: RoomSnapshot) -> bool:
        if self.closed or snapshot.version <= self.last_version:
            return False
        self.last_version = snapshot.version
        self._deliver({"type": ROOM_UPDATED, "room": snapshot})
        return True

    def _close_locked(self, event: Optional[Dict[str, Any]] = None) -> None:
        if self.closed:
            return
        self.closed = True
        if event is not None:
            self._deliver(event)
        # None 是結束訊號
        self._deliver(None)

    async def next_event(self) -> Optional[Dict[str, Any]]:
        """
        等待下一個事件；訂閱結束後返回 None
        """
        return await self._queue.get()

    def unsubscribe(self) -> None:
        self._notifier.unsubscribe(self)


class RoomNotifier:
    """In-process pub/sub，依 room_id 分組"""

    def __init__(self, max_pending: int = MAX_PENDING_EVENTS):
        self._lock = threading.RLock()
        self._subscribers: Dict[str, Set[Subscription]] = defaultdict(set)
        self._max_pending = max_pending

    def subscribe(self, room_id: str, viewer_user_id: str,
                  loop: Optional[asyncio.AbstractEventLoop] = None) -> Subscription:
        """
        訂閱房間；必須在 event loop 內呼叫（或明確傳入 loop）
        """
        loop = loop or asyncio.get_running_loop()
        subscription = Subscription(self, room_id, viewer_user_id, loop, self._max_pending)
        with self._lock:
            self._subscribers[room_id].add(subscription)
        logger.info(f"Subscribed {viewer_user_id} to room {room_id}")
        return subscription

    def unsubscribe(self, subscription: Subscription) -> None:
        with self._lock:
            subs = self._subscribers.get(subscription.room_id)
            if subs is not None:
                subs.discard(subscription)
                if not subs:
                    del self._subscribers[subscription.room_id]
            subscription._close_locked()

    def subscriber_count(self, room_id: str) -> int:
        with self._lock:
            return len(self._subscribers.get(room_id, ()))

    def publish(self, payload: Any) -> int:
        """
        推送房間快照給該房間所有訂閱者

        返回：
            實際投遞的訂閱數（payload 不合格時為 0）
        """
        snapshot = decode_room_payload(payload)
        if snapshot is None:
            return 0

        delivered = 0
        with self._lock:
            for subscription in list(self._subscribers.get(snapshot.id, ())):
                if subscription._offer_locked(snapshot):
                    delivered += 1
        logger.debug(f"Published room {snapshot.id} v{snapshot.version} to {delivered} subscribers")
        return delivered

    def publish_deleted(self, room_id: str) -> int:
        """
        推送刪除事件並關閉該房間所有訂閱
        """
        with self._lock:
            subs = self._subscribers.pop(room_id, set())
            for subscription in subs:
                subscription._close_locked({"type": ROOM_DELETED, "room_id": room_id})
        logger.info(f"Room {room_id} deletion delivered to {len(subs)} subscribers")
        return len(subs)


notifier = RoomNotifier()
