"""
Room 狀態機：集中管理 game_state 的所有轉換

    waiting --start--> playing --(全員投票)--> finished
                       playing --(部分投票)--> voting --(剩餘玩家投票)--> finished

- 沒有任何轉換會回到 waiting 或 playing
- finished 是終態；要再玩一局只能建立新房間
- 本模組只驗證並套用狀態，不負責 commit（由 RoomStore 處理）
"""
import logging

from models import Room, GameState
from core.exceptions import InvalidStateTransition

logger = logging.getLogger(__name__)


class RoomStateMachine:
    """game_state 轉換規則"""

    TRANSITIONS = {
        GameState.WAITING: {GameState.PLAYING},
        GameState.PLAYING: {GameState.VOTING, GameState.FINISHED},
        GameState.VOTING: {GameState.VOTING, GameState.FINISHED},
        GameState.FINISHED: set(),
    }

    @classmethod
    def can_transition(cls, current: GameState, target: GameState) -> bool:
        return GameState(target) in cls.TRANSITIONS[GameState(current)]

    @classmethod
    def transition(cls, room: Room, target: GameState) -> Room:
        """
        轉換房間狀態

        參數：
            room: 已載入、尚未 commit 的 Room
            target: 目標狀態

        返回：
            同一個 Room（狀態已更新）

        異常：
            InvalidStateTransition: 轉換不合法
        """
        current = GameState(room.game_state)
        if not cls.can_transition(current, target):
            raise InvalidStateTransition(
                f"Cannot transition room {room.id} from {current.value} to {GameState(target).value}"
            )

        if current != target:
            logger.info(f"Room {room.id}: {current.value} -> {GameState(target).value}")
        room.game_state = GameState(target)
        return room

    @staticmethod
    def state_after_vote(players: list) -> GameState:
        """全員都投過票 -> finished，否則 voting"""
        if players and all(p["has_voted"] for p in players):
            return GameState.FINISHED
        return GameState.VOTING

    @staticmethod
    def is_round_active(state: GameState) -> bool:
        return GameState(state) in (GameState.PLAYING, GameState.VOTING)
