"""
Room Manager：管理 Room 的完整生命週期

職責：
1. 建立 Room（含 Host player）
2. 加入 / 離開房間（含房主移交、空房刪除）
3. 調整計時、開始遊戲（抽間諜與地點）
4. 投票
5. 查詢 Room 資訊

每個操作都是「載入 -> 驗證 -> 計算下一個狀態 -> compare-and-update -> 通知」：
- 驗證寫在 mutator 裡，每次重試都會對最新版本重新驗證
- 驗證失敗一定發生在任何寫入之前，不會部分套用
- 寫入衝突最多重試 max_commit_retries 次，之後丟 StoreUnavailable

原則：
- 消除特殊情況：所有 game_state 變更經過 RoomStateMachine
- 資料結構優先：玩家清單每次整包重建，host / spy 的唯一性由建構方式保證
"""
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
from typing import Callable, Optional, Tuple
import copy
import logging

from models import Room, User, GameState, EventLog, utcnow
from core.state_machine import RoomStateMachine
from core.room_store import RoomStore
from core.notifier import notifier
from core.exceptions import (
    RoomNotFound,
    RoomFull,
    GameAlreadyStarted,
    NotAuthorized,
    NotEnoughPlayers,
    InvalidState,
    InvalidArgument,
    ConcurrentUpdateConflict,
    StoreUnavailable,
)
from services.naming_service import (
    generate_invite_code,
    generate_player_id,
    normalize_invite_code,
    is_valid_invite_code,
)
from services.randomizer_service import pick_spy, pick_location
from services.location_catalog import get_location_catalog
from database import transactional, get_settings

logger = logging.getLogger(__name__)

MAX_INVITE_CODE_ATTEMPTS = 10


def _new_player(user: User, is_host: bool = False) -> dict:
    return {
        "id": generate_player_id(),
        "user_id": user.id,
        "name": user.name,
        "profile_photo_url": user.profile_photo_url,
        "is_host": is_host,
        "is_spy": False,
        "has_voted": False,
    }


def _copy_players(room: Room) -> list:
    # JSON 欄位必須整包換掉，SQLAlchemy 才會偵測到變更
    return copy.deepcopy(list(room.players or []))


def _log_event(db: Session, room_id: str, event_type: str, data: Optional[dict] = None) -> None:
    db.add(EventLog(room_id=room_id, event_type=event_type, data=data or {}))


class RoomManager:
    """Room 生命週期管理器"""

    # ============ 內部工具 ============

    @staticmethod
    def _commit_with_retry(
        db: Session,
        room_id: str,
        mutator: Callable[[Room], Optional[bool]],
        operation: str,
    ) -> Optional[Room]:
        """
        以 compare-and-update 提交，衝突時重新載入、重新驗證後重試

        返回：
            提交後的 Room；房間被刪除則為 None

        異常：
            StoreUnavailable: 重試次數用完
            其他：mutator 的驗證異常（不重試）
        """
        max_retries = get_settings().max_commit_retries
        for attempt in range(1, max_retries + 1):
            try:
                return RoomStore.compare_and_update(db, room_id, mutator)
            except ConcurrentUpdateConflict:
                logger.warning(
                    f"{operation} on room {room_id} lost a commit race "
                    f"(attempt {attempt}/{max_retries}), retrying"
                )

        raise StoreUnavailable(
            f"{operation} on room {room_id} failed after {max_retries} conflicting attempts"
        )

    @staticmethod
    def _publish(room: Optional[Room], room_id: str) -> None:
        if room is None:
            notifier.publish_deleted(room_id)
        else:
            notifier.publish(room.to_dict())

    @staticmethod
    def _require_owned_player(room: Room, player_id: str, caller_user_id: str) -> dict:
        player = room.find_player(player_id)
        if player is None or player["user_id"] != caller_user_id:
            raise NotAuthorized(f"Player {player_id} does not belong to user {caller_user_id}")
        return player

    @staticmethod
    def _require_host(room: Room, user_id: str) -> None:
        if room.host_id != user_id:
            raise NotAuthorized(f"User {user_id} is not the host of room {room.id}")

    # ============ 建立房間 ============

    @staticmethod
    def create_room(db: Session, user: User) -> Tuple[Room, dict]:
        """
        建立新房間（含 Host 玩家）

        流程：
        1. 生成唯一的邀請碼
        2. 建立 Room（waiting、預設計時 8 分鐘）
        3. 加入 Host Player
        4. 記錄事件

        參數：
            db: SQLAlchemy Session
            user: 已解析的裝置使用者（房主）

        返回：
            (Room, Host Player) tuple

        注意：
            - 邀請碼先查一次是否重複；極少數同時建立撞碼的情況，
              靠 unique index 擋下後重新產生
        """
        for _ in range(MAX_INVITE_CODE_ATTEMPTS):
            try:
                room, host = RoomManager._insert_room(db, user)
            except IntegrityError:
                logger.warning("Invite code collided on insert, regenerating")
                continue
            RoomManager._publish(room, room.id)
            return room, host

        raise StoreUnavailable("Could not allocate a unique invite code")

    @staticmethod
    @transactional
    def _insert_room(db: Session, user: User) -> Tuple[Room, dict]:
        settings = get_settings()

        code = generate_invite_code()
        while RoomStore.invite_code_exists(db, code):
            code = generate_invite_code()
            logger.warning(f"Invite code collision detected, regenerating: {code}")

        host = _new_player(user, is_host=True)
        room = Room(
            invite_code=code,
            host_id=user.id,
            players=[host],
            game_state=GameState.WAITING,
            current_word=None,
            game_started_at=None,
            timer_seconds=settings.default_timer_seconds,
        )
        RoomStore.create(db, room)

        logger.info(f"Created room {room.id} with code {code} for host {user.id}")
        _log_event(db, room.id, "ROOM_CREATED", {"code": code, "host_id": user.id})

        return room, host

    # ============ 加入 / 離開 ============

    @staticmethod
    def join_room(db: Session, user: User, invite_code: str) -> Tuple[Room, dict]:
        """
        透過邀請碼加入房間（邀請碼不分大小寫）

        前置條件（依序檢查）：
        1. 房間存在
        2. 人數未滿（max 10）
        3. 房間狀態是 waiting
        4. 已經在房間內 -> 直接返回既有玩家（冪等，不寫入）

        返回：
            (Room, Player) tuple

        異常：
            InvalidArgument: 邀請碼格式錯誤
            RoomNotFound / RoomFull / GameAlreadyStarted
        """
        code = normalize_invite_code(invite_code)
        if not is_valid_invite_code(code):
            raise InvalidArgument(f"Invalid invite code: {invite_code!r}")

        room_id = RoomStore.get_by_invite_code(db, code).id
        max_players = get_settings().room_max_players
        result = {}

        def mutator(room: Room):
            if len(room.players) >= max_players:
                raise RoomFull(f"Room {room.id} is full ({len(room.players)}/{max_players})")
            if GameState(room.game_state) != GameState.WAITING:
                raise GameAlreadyStarted(
                    f"Room {room.id} is not accepting players (state: {GameState(room.game_state).value})"
                )

            existing = room.find_player_by_user(user.id)
            if existing is not None:
                result["player"] = copy.deepcopy(existing)
                result["created"] = False
                return False

            player = _new_player(user)
            room.players = _copy_players(room) + [player]
            _log_event(db, room.id, "PLAYER_JOINED", {"player_id": player["id"], "user_id": user.id})
            result["player"] = player
            result["created"] = True

        room = RoomManager._commit_with_retry(db, room_id, mutator, "join_room")
        if result["created"]:
            logger.info(f"User {user.id} joined room {room_id} as {result['player']['id']}")
            RoomManager._publish(room, room_id)
        else:
            logger.info(f"User {user.id} rejoined room {room_id} as {result['player']['id']}")
        return room, result["player"]

    @staticmethod
    def leave_room(db: Session, room_id: str, player_id: str, caller_user_id: str) -> Optional[Room]:
        """
        離開房間

        規則：
        - 玩家已不在房間內 -> no-op（冪等）
        - 玩家不是呼叫者本人 -> NotAuthorized
        - 房間變空 -> 刪除房間（終態）
        - 離開的是房主 -> 由剩下的第一位玩家接任，host_id 一併更新
        - 任何 game_state 都可以離開
        - 回合進行中間諜離開 -> finished；投票中有人離開 -> 剩下的人都投過就 finished

        返回：
            更新後的 Room；房間已刪除（或本來就不存在）則返回 None
        """
        outcome = {"removed": False}

        def mutator(room: Room):
            leaving = room.find_player(player_id)
            if leaving is None:
                return False
            if leaving["user_id"] != caller_user_id:
                raise NotAuthorized(f"Player {player_id} does not belong to user {caller_user_id}")

            remaining = [p for p in _copy_players(room) if p["id"] != player_id]
            _log_event(db, room.id, "PLAYER_LEFT", {"player_id": player_id, "user_id": caller_user_id})

            if remaining and leaving["is_host"]:
                for index, p in enumerate(remaining):
                    p["is_host"] = index == 0
                room.host_id = remaining[0]["user_id"]
                _log_event(db, room.id, "HOST_CHANGED", {"player_id": remaining[0]["id"]})

            room.players = remaining
            outcome["removed"] = True

            if remaining and RoomStateMachine.is_round_active(room.game_state):
                # 間諜離開 -> 回合直接結束；投票中的人離開 -> 重新檢查是否全員已投
                if leaving["is_spy"]:
                    RoomStateMachine.transition(room, GameState.FINISHED)
                    _log_event(db, room.id, "GAME_FINISHED", {"reason": "spy_left"})
                elif GameState(room.game_state) == GameState.VOTING:
                    next_state = RoomStateMachine.state_after_vote(remaining)
                    RoomStateMachine.transition(room, next_state)
                    if next_state == GameState.FINISHED:
                        _log_event(db, room.id, "GAME_FINISHED", {})

        try:
            room = RoomManager._commit_with_retry(db, room_id, mutator, "leave_room")
        except RoomNotFound:
            logger.info(f"Room {room_id} already gone, nothing to leave")
            return None

        if outcome["removed"]:
            logger.info(f"Player {player_id} left room {room_id}")
            RoomManager._publish(room, room_id)
        return room

    # ============ 房主操作 ============

    @staticmethod
    def update_timer(db: Session, room_id: str, host_user_id: str, minutes: int) -> Room:
        """
        調整回合長度（只有房主，只有 waiting）

        異常：
            NotAuthorized: 不是房主
            InvalidState: 遊戲已開始
            InvalidArgument: minutes 不在允許清單內
        """
        allowed = get_settings().allowed_timer_minutes

        def mutator(room: Room):
            RoomManager._require_host(room, host_user_id)
            if GameState(room.game_state) != GameState.WAITING:
                raise InvalidState(f"Cannot change timer of room {room.id} after the game has started")
            if isinstance(minutes, bool) or not isinstance(minutes, int) or minutes not in allowed:
                raise InvalidArgument(f"Timer must be one of {allowed} minutes, got {minutes!r}")

            if room.timer_seconds == minutes * 60:
                return False
            room.timer_seconds = minutes * 60
            _log_event(db, room.id, "TIMER_UPDATED", {"timer_seconds": minutes * 60})

        room = RoomManager._commit_with_retry(db, room_id, mutator, "update_timer")
        logger.info(f"Room {room_id} timer set to {minutes} minutes")
        RoomManager._publish(room, room_id)
        return room

    @staticmethod
    def start_game(db: Session, room_id: str, host_user_id: str) -> Room:
        """
        開始遊戲（狀態轉換 WAITING -> PLAYING）

        流程：
        1. 驗證房主、狀態、人數（>= 3）
        2. 均勻抽出一名間諜，其餘玩家 is_spy = False
        3. 重置所有人的 has_voted
        4. 從題庫抽出地點
        5. 記錄開始時間（計時長度沿用大廳設定，不重置）

        異常：
            NotAuthorized: 不是房主
            InvalidStateTransition: 房間不是 waiting
            NotEnoughPlayers: 人數不足
        """
        settings = get_settings()
        catalog = get_location_catalog(settings.location_locale)

        def mutator(room: Room):
            RoomManager._require_host(room, host_user_id)
            if not RoomStateMachine.can_transition(room.game_state, GameState.PLAYING):
                raise InvalidState(
                    f"Room {room.id} cannot start from state {GameState(room.game_state).value}"
                )
            player_count = len(room.players)
            if player_count < settings.room_min_players:
                raise NotEnoughPlayers(
                    f"Need at least {settings.room_min_players} players to start, got {player_count}"
                )

            spy_index = pick_spy(room.players)
            players = _copy_players(room)
            for index, p in enumerate(players):
                p["is_spy"] = index == spy_index
                p["has_voted"] = False

            room.players = players
            room.current_word = pick_location(catalog)
            room.game_started_at = utcnow()
            RoomStateMachine.transition(room, GameState.PLAYING)
            _log_event(db, room.id, "GAME_STARTED", {
                "player_count": player_count,
                "timer_seconds": room.timer_seconds,
            })

        room = RoomManager._commit_with_retry(db, room_id, mutator, "start_game")
        logger.info(f"Game started in room {room_id} with {len(room.players)} players")
        RoomManager._publish(room, room_id)
        return room

    # ============ 投票 ============

    @staticmethod
    def submit_vote(
        db: Session,
        room_id: str,
        player_id: str,
        voted_player_id: str,
        caller_user_id: str,
    ) -> Room:
        """
        投票

        規則：
        - 玩家必須是呼叫者本人
        - 只能在 playing / voting 投票；finished 之後再投視為 no-op
        - 每位玩家只能投一次，重複投票視為 no-op
        - 投票對象必須是房間內的其他玩家
        - 全員投完 -> finished，否則 -> voting

        投票對象只記錄在 EventLog（VOTE_SUBMITTED），房間本身只保存 has_voted
        """
        outcome = {"changed": False}

        def mutator(room: Room):
            RoomManager._require_owned_player(room, player_id, caller_user_id)
            state = GameState(room.game_state)
            if state == GameState.FINISHED:
                return False
            if not RoomStateMachine.is_round_active(state):
                raise InvalidState(f"Room {room.id} is not in a round (state: {state.value})")

            if voted_player_id == player_id:
                raise InvalidArgument("Players cannot vote for themselves")
            if room.find_player(voted_player_id) is None:
                raise InvalidArgument(f"Player {voted_player_id} is not in room {room.id}")

            players = _copy_players(room)
            voter = next(p for p in players if p["id"] == player_id)
            if voter["has_voted"]:
                return False
            voter["has_voted"] = True

            room.players = players
            next_state = RoomStateMachine.state_after_vote(players)
            RoomStateMachine.transition(room, next_state)
            _log_event(db, room.id, "VOTE_SUBMITTED", {
                "player_id": player_id,
                "voted_player_id": voted_player_id,
            })
            if next_state == GameState.FINISHED:
                _log_event(db, room.id, "GAME_FINISHED", {})
            outcome["changed"] = True

        room = RoomManager._commit_with_retry(db, room_id, mutator, "submit_vote")
        if outcome["changed"]:
            logger.info(
                f"Player {player_id} voted in room {room_id}; state is now {GameState(room.game_state).value}"
            )
            RoomManager._publish(room, room_id)
        return room

    # ============ 查詢 ============

    @staticmethod
    def get_room_by_code(db: Session, code: str) -> Room:
        """
        透過邀請碼取得 Room（不分大小寫）

        異常：
            RoomNotFound: Room 不存在
        """
        normalized = normalize_invite_code(code)
        if not is_valid_invite_code(normalized):
            raise RoomNotFound(f"Room with code {code}")
        return RoomStore.get_by_invite_code(db, normalized)

    @staticmethod
    def get_room_by_id(db: Session, room_id: str) -> Room:
        """
        異常：
            RoomNotFound: Room 不存在
        """
        return RoomStore.get(db, room_id)
