"""
Session adapter：把房間狀態轉成畫面層需要的資訊

- 目前使用者在房間內的玩家紀錄
- 應該顯示哪個畫面（home / lobby / game / results）
- 回合剩餘秒數（由開始時間 + 設定長度推算，伺服器不倒數）
"""
from datetime import datetime, timezone
from typing import Optional

from models import GameState
from schemas import RoomSnapshot, SessionView
from services.projection_service import project_room

SCREEN_BY_STATE = {
    GameState.WAITING: "lobby",
    GameState.PLAYING: "game",
    GameState.VOTING: "game",
    GameState.FINISHED: "results",
}


def find_player(snapshot: Optional[RoomSnapshot], user_id: str):
    if snapshot is None:
        return None
    return next((p for p in snapshot.players if p.user_id == user_id), None)


def screen_for(snapshot: Optional[RoomSnapshot], user_id: str) -> str:
    """
    不在房間內（或房間已刪除）-> home，否則依 game_state 決定
    """
    if find_player(snapshot, user_id) is None:
        return "home"
    return SCREEN_BY_STATE[GameState(snapshot.game_state)]


def remaining_seconds(snapshot: RoomSnapshot, now: Optional[datetime] = None) -> Optional[int]:
    """
    剩餘秒數 = timer_seconds - (now - game_started_at)，最小為 0

    回合尚未開始時返回 None
    """
    if snapshot.game_started_at is None:
        return None
    now = now or datetime.now(timezone.utc)
    started = snapshot.game_started_at
    if started.tzinfo is None:
        started = started.replace(tzinfo=timezone.utc)
    elapsed = int((now - started).total_seconds())
    return max(0, snapshot.timer_seconds - elapsed)


def build_session_view(
    snapshot: Optional[RoomSnapshot],
    user_id: str,
    now: Optional[datetime] = None,
) -> SessionView:
    if snapshot is None:
        return SessionView(screen="home")

    room_view = project_room(snapshot, user_id)
    me = next((p for p in room_view.players if p.user_id == user_id), None)
    return SessionView(
        room=room_view,
        me=me,
        screen=screen_for(snapshot, user_id),
        remaining_seconds=remaining_seconds(snapshot, now),
    )
