"""
WebSocket：房間狀態訂閱

    /ws/rooms/{room_id}?user_id=<裝置 ID>

- 連線（或斷線重連）後立刻送出目前的房間狀態，之後每次提交都推送一次
- 推送的一律是依該使用者遮蔽後的 session 資訊
- 房間刪除時送出 room_deleted 並關閉連線

訊息格式：
    {"type": "room_update", "session": SessionView}
    {"type": "room_deleted", "room_id": "..."}
"""
import asyncio
import logging

from fastapi import APIRouter, WebSocket, Query
from starlette.concurrency import run_in_threadpool
from starlette.websockets import WebSocketDisconnect

from database import SessionLocal
from core.notifier import notifier, Subscription, ROOM_UPDATED, ROOM_DELETED, decode_room_payload
from core.room_store import RoomStore
from core.exceptions import RoomNotFound, SpyfallException
from services.session_service import build_session_view

router = APIRouter(tags=["websocket"])
logger = logging.getLogger(__name__)


def _load_snapshot(room_id: str):
    db = SessionLocal()
    try:
        return decode_room_payload(RoomStore.get(db, room_id).to_dict())
    finally:
        db.close()


async def _pump_events(websocket: WebSocket, subscription: Subscription) -> None:
    while True:
        event = await subscription.next_event()
        if event is None:
            return
        if event["type"] == ROOM_UPDATED:
            session = build_session_view(event["room"], subscription.viewer_user_id)
            await websocket.send_json({"type": "room_update", "session": session.model_dump(mode="json")})
        elif event["type"] == ROOM_DELETED:
            await websocket.send_json({"type": "room_deleted", "room_id": event["room_id"]})


async def _drain_client(websocket: WebSocket) -> None:
    # 用戶端不需要送任何東西；這裡只是為了偵測斷線
    try:
        while True:
            await websocket.receive_text()
    except WebSocketDisconnect as e:
        logger.info(f"WS: client disconnected code={e.code}")


@router.websocket("/ws/rooms/{room_id}")
async def room_updates(websocket: WebSocket, room_id: str, user_id: str = Query(...)):
    await websocket.accept()
    subscription = notifier.subscribe(room_id, user_id)
    logger.info(f"WS: {user_id} watching room {room_id}")

    try:
        try:
            snapshot = await run_in_threadpool(_load_snapshot, room_id)
        except RoomNotFound:
            await websocket.send_json({"type": "room_deleted", "room_id": room_id})
            await websocket.close()
            return
        except SpyfallException as e:
            logger.warning(f"WS: could not load room {room_id}: {e}")
            await websocket.close(code=1011)
            return

        if snapshot is not None:
            subscription.offer(snapshot)

        pump = asyncio.create_task(_pump_events(websocket, subscription))
        drain = asyncio.create_task(_drain_client(websocket))
        done, pending = await asyncio.wait({pump, drain}, return_when=asyncio.FIRST_COMPLETED)
        for task in pending:
            task.cancel()
        for task in done:
            if task.exception() is not None:
                logger.warning(f"WS: stream for room {room_id} ended with error: {task.exception()}")

        if pump in done:
            await websocket.close()

    except WebSocketDisconnect:
        logger.info(f"WS: {user_id} disconnected from room {room_id}")
    finally:
        subscription.unsubscribe()
        logger.info(f"WS: {user_id} stopped watching room {room_id}")
