"""
SQLAlchemy ORM models

- User：裝置綁定的使用者（id 由裝置端產生，終身不變）
- Room：一局遊戲；玩家清單以 JSON 整包存放，每次狀態轉換整包改寫
- EventLog：事件紀錄（投票對象也記錄在這裡）
"""
import enum
import uuid
from datetime import datetime, timezone

from sqlalchemy import Column, String, Integer, DateTime, JSON, Enum as SAEnum

from database import Base


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _as_utc(value):
    # SQLite 不保存時區資訊，讀回來一律視為 UTC
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class GameState(str, enum.Enum):
    WAITING = "waiting"
    PLAYING = "playing"
    VOTING = "voting"
    FINISHED = "finished"


class User(Base):
    __tablename__ = "users"

    id = Column(String(64), primary_key=True)
    name = Column(String(64), nullable=False)
    profile_photo_url = Column(String, nullable=True)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)


class Room(Base):
    __tablename__ = "rooms"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    invite_code = Column(String(6), unique=True, index=True, nullable=False)
    host_id = Column(String(64), nullable=False)
    # 有序的玩家清單：[{id, user_id, name, profile_photo_url, is_host, is_spy, has_voted}, ...]
    players = Column(JSON, nullable=False, default=list)
    game_state = Column(
        SAEnum(
            GameState,
            name="game_state",
            native_enum=False,
            values_callable=lambda states: [s.value for s in states],
        ),
        nullable=False,
        default=GameState.WAITING,
    )
    current_word = Column(String, nullable=True)
    timer_seconds = Column(Integer, nullable=False, default=480)
    game_started_at = Column(DateTime(timezone=True), nullable=True)
    version = Column(Integer, nullable=False)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)

    # 樂觀鎖：UPDATE / DELETE 都會帶上 WHERE version = ?
    __mapper_args__ = {"version_id_col": version}

    def find_player(self, player_id: str):
        for player in self.players or []:
            if player["id"] == player_id:
                return player
        return None

    def find_player_by_user(self, user_id: str):
        for player in self.players or []:
            if player["user_id"] == user_id:
                return player
        return None

    def to_dict(self) -> dict:
        """序列化成 notifier 解碼用的 payload（RoomSnapshot 的形狀）"""
        return {
            "id": self.id,
            "invite_code": self.invite_code,
            "host_id": self.host_id,
            "players": [dict(p) for p in (self.players or [])],
            "game_state": GameState(self.game_state).value,
            "current_word": self.current_word,
            "timer_seconds": self.timer_seconds,
            "game_started_at": _as_utc(self.game_started_at),
            "version": self.version,
            "created_at": _as_utc(self.created_at),
            "updated_at": _as_utc(self.updated_at),
        }


class EventLog(Base):
    __tablename__ = "event_logs"

    id = Column(Integer, primary_key=True, autoincrement=True)
    # 不設 FK：房間刪除後事件仍保留
    room_id = Column(String(36), index=True, nullable=False)
    event_type = Column(String(32), nullable=False)
    data = Column(JSON, nullable=False, default=dict)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
