"""
Projection：依觀看者遮蔽房間狀態

完整的房間狀態含有每個人的 spy 旗標與地點，送出去之前一律先依收件者投影：

- waiting：還沒有任何秘密
- playing / voting：只看得到自己的 spy 旗標；spy 與不在房間內的人看不到地點
- finished：全部公開（結果畫面需要）
"""
from typing import Optional

from models import GameState
from schemas import RoomSnapshot, RoomView, PlayerView


def _is_secret_phase(state: GameState) -> bool:
    return GameState(state) in (GameState.PLAYING, GameState.VOTING)


def project_room(snapshot: RoomSnapshot, viewer_user_id: Optional[str]) -> RoomView:
    """
    把完整房間狀態投影成某位觀看者看得到的樣子

    參數：
        snapshot: 完整的房間快照
        viewer_user_id: 觀看者的 user_id；None 代表不在房間內的人

    返回：
        RoomView（無權知道的 is_spy 為 None）
    """
    viewer = next((p for p in snapshot.players if p.user_id == viewer_user_id), None)
    secret = _is_secret_phase(snapshot.game_state)

    players = []
    for p in snapshot.players:
        if not secret or (viewer is not None and p.user_id == viewer.user_id):
            is_spy = p.is_spy
        else:
            is_spy = None
        players.append(PlayerView(
            id=p.id,
            user_id=p.user_id,
            name=p.name,
            profile_photo_url=p.profile_photo_url,
            is_host=p.is_host,
            is_spy=is_spy,
            has_voted=p.has_voted,
        ))

    current_word = snapshot.current_word
    if secret and (viewer is None or viewer.is_spy):
        current_word = None

    return RoomView(
        id=snapshot.id,
        invite_code=snapshot.invite_code,
        host_id=snapshot.host_id,
        players=players,
        game_state=snapshot.game_state,
        current_word=current_word,
        timer_seconds=snapshot.timer_seconds,
        game_started_at=snapshot.game_started_at,
        version=snapshot.version,
        updated_at=snapshot.updated_at,
    )


def project_player(room_view: RoomView, player_id: str) -> Optional[PlayerView]:
    """從投影結果中找出指定玩家；找不到返回 None"""
    return next((p for p in room_view.players if p.id == player_id), None)
