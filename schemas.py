"""
Pydantic schemas

- RoomSnapshot / PlayerSnapshot：房間完整狀態（notifier 邊界的嚴格解碼器）
- RoomView / PlayerView：依觀看者遮蔽後的狀態（spy 旗標、地點）
- 其餘為 API request / response
"""
from datetime import datetime
from typing import Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

from models import GameState


# ============ 房間快照（完整狀態） ============

class PlayerSnapshot(BaseModel):
    id: str = Field(min_length=1)
    user_id: str = Field(min_length=1)
    name: str
    profile_photo_url: Optional[str] = None
    is_host: bool = False
    is_spy: bool = False
    has_voted: bool = False

    model_config = ConfigDict(extra="ignore")


class RoomSnapshot(BaseModel):
    id: str = Field(min_length=1)
    invite_code: str = Field(min_length=6, max_length=6)
    host_id: str
    players: List[PlayerSnapshot]
    game_state: GameState
    current_word: Optional[str] = None
    timer_seconds: int = Field(gt=0)
    game_started_at: Optional[datetime] = None
    version: int = Field(ge=1)
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    model_config = ConfigDict(extra="ignore")


# ============ 觀看者視角 ============

class PlayerView(BaseModel):
    id: str
    user_id: str
    name: str
    profile_photo_url: Optional[str] = None
    is_host: bool
    # None 代表「你無權知道」
    is_spy: Optional[bool] = None
    has_voted: bool


class RoomView(BaseModel):
    id: str
    invite_code: str
    host_id: str
    players: List[PlayerView]
    game_state: GameState
    current_word: Optional[str] = None
    timer_seconds: int
    game_started_at: Optional[datetime] = None
    version: int
    updated_at: Optional[datetime] = None


class SessionView(BaseModel):
    room: Optional[RoomView] = None
    me: Optional[PlayerView] = None
    screen: Literal["home", "lobby", "game", "results"]
    remaining_seconds: Optional[int] = None


# ============ User ============

class UserUpsert(BaseModel):
    name: str
    profile_photo_url: Optional[str] = None


class UserResponse(BaseModel):
    id: str
    name: str
    profile_photo_url: Optional[str] = None
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


# ============ Room 操作 ============

class JoinRoomRequest(BaseModel):
    invite_code: str


class TimerUpdate(BaseModel):
    minutes: int


class LeaveRoomRequest(BaseModel):
    player_id: str


class VoteSubmit(BaseModel):
    player_id: str
    voted_player_id: str


class RoomPlayerResponse(BaseModel):
    room: RoomView
    player: PlayerView


class LeaveRoomResponse(BaseModel):
    room: Optional[RoomView] = None
    deleted: bool


class GameResultResponse(BaseModel):
    winner: Literal["spy", "others"]
    spy_player: Optional[PlayerView] = None
    voted_player: Optional[PlayerView] = None
    vote_counts: Dict[str, int]
    location: Optional[str] = None
    players: List[PlayerView]
