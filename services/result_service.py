"""
結果服務：計票與勝負判定

房間本身只保存 has_voted；誰投給誰記錄在 EventLog 的 VOTE_SUBMITTED 事件裡，
遊戲結束（finished）後才從事件紀錄計票。
"""
from collections import Counter
from typing import Dict, List, Any

from sqlalchemy.orm import Session

from models import EventLog, GameState
from schemas import RoomSnapshot, GameResultResponse
from core.exceptions import InvalidState
from services.projection_service import project_room, project_player


def get_votes(db: Session, room_id: str) -> List[Dict[str, Any]]:
    """依提交順序取出房間的所有投票（{player_id, voted_player_id}）"""
    events = (
        db.query(EventLog)
        .filter(EventLog.room_id == room_id, EventLog.event_type == "VOTE_SUBMITTED")
        .order_by(EventLog.id)
        .all()
    )
    return [e.data for e in events]


def compute_result(snapshot: RoomSnapshot, votes: List[Dict[str, Any]]) -> GameResultResponse:
    """
    計票並判定勝負

    規則：
    - 票數唯一最高的玩家被指認；指認到 spy 時其他人獲勝
    - 平手或沒有任何投票 -> spy 獲勝
    - spy 在回合中離開 -> 視為棄權，其他人獲勝
    - 投票者或被投者已經離開房間的票不計

    參數：
        snapshot: 完整的房間快照
        votes: get_votes() 的結果

    返回：
        GameResultResponse（房間已 finished，全部公開）

    異常：
        InvalidState: 房間還沒 finished
    """
    if GameState(snapshot.game_state) != GameState.FINISHED:
        raise InvalidState(f"Room {snapshot.id} is not finished")

    player_ids = {p.id for p in snapshot.players}
    counts = Counter(
        v["voted_player_id"] for v in votes
        if v.get("voted_player_id") in player_ids and v.get("player_id") in player_ids
    )

    accused_id = None
    ranked = counts.most_common(2)
    if ranked and (len(ranked) == 1 or ranked[0][1] > ranked[1][1]):
        accused_id = ranked[0][0]

    spy = next((p for p in snapshot.players if p.is_spy), None)
    if spy is None:
        # spy 在回合中離開
        winner = "others"
    else:
        winner = "others" if accused_id == spy.id else "spy"

    # finished 的房間全部公開
    view = project_room(snapshot, None)
    return GameResultResponse(
        winner=winner,
        spy_player=project_player(view, spy.id) if spy else None,
        voted_player=project_player(view, accused_id) if accused_id else None,
        vote_counts=dict(counts),
        location=view.current_word,
        players=view.players,
    )
