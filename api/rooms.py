"""
Room API Endpoints

職責：
1. 建立 / 加入 / 離開房間
2. 房主操作：調整計時、開始遊戲
3. 投票
4. 查詢房間（依呼叫者遮蔽 spy 旗標與地點）、session、結果

所有業務邏輯集中在 RoomManager；這裡只負責身分解析、錯誤對應與輸出遮蔽。
"""
from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session
import logging

from database import get_db
from models import User
from schemas import (
    RoomView,
    RoomPlayerResponse,
    LeaveRoomResponse,
    JoinRoomRequest,
    TimerUpdate,
    LeaveRoomRequest,
    VoteSubmit,
    SessionView,
    GameResultResponse,
)
from core.room_manager import RoomManager
from core.notifier import decode_room_payload
from core.exceptions import SpyfallException, RoomNotFound
from services.projection_service import project_room, project_player
from services.session_service import build_session_view
from services.result_service import compute_result, get_votes
from api.deps import get_current_user, get_locale, to_http_exception

router = APIRouter(prefix="/api/rooms", tags=["rooms"])
logger = logging.getLogger(__name__)


def _view(room, user: User) -> RoomView:
    return project_room(decode_room_payload(room.to_dict()), user.id)


def _room_player_response(room, player: dict, user: User) -> RoomPlayerResponse:
    view = _view(room, user)
    return RoomPlayerResponse(room=view, player=project_player(view, player["id"]))


@router.post("", response_model=RoomPlayerResponse, status_code=201)
def create_room(
    user: User = Depends(get_current_user),
    locale: str = Depends(get_locale),
    db: Session = Depends(get_db),
):
    """
    建立房間（呼叫者成為房主）
    """
    try:
        room, host = RoomManager.create_room(db, user)
        return _room_player_response(room, host, user)

    except SpyfallException as e:
        raise to_http_exception(e, locale)
    except Exception as e:
        logger.error(f"Failed to create room: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Internal error")


@router.post("/join", response_model=RoomPlayerResponse)
def join_room(
    data: JoinRoomRequest,
    user: User = Depends(get_current_user),
    locale: str = Depends(get_locale),
    db: Session = Depends(get_db),
):
    """
    透過邀請碼加入房間（不分大小寫；重複加入返回既有玩家）
    """
    try:
        room, player = RoomManager.join_room(db, user, data.invite_code)
        return _room_player_response(room, player, user)

    except SpyfallException as e:
        raise to_http_exception(e, locale)
    except Exception as e:
        logger.error(f"Failed to join room: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Internal error")


@router.get("/code/{invite_code}", response_model=RoomView)
def get_room_by_code(
    invite_code: str,
    user: User = Depends(get_current_user),
    locale: str = Depends(get_locale),
    db: Session = Depends(get_db),
):
    try:
        room = RoomManager.get_room_by_code(db, invite_code)
        return _view(room, user)

    except SpyfallException as e:
        raise to_http_exception(e, locale)
    except Exception as e:
        logger.error(f"Failed to get room by code: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Internal error")


@router.get("/{room_id}", response_model=RoomView)
def get_room(
    room_id: str,
    user: User = Depends(get_current_user),
    locale: str = Depends(get_locale),
    db: Session = Depends(get_db),
):
    try:
        room = RoomManager.get_room_by_id(db, room_id)
        return _view(room, user)

    except SpyfallException as e:
        raise to_http_exception(e, locale)
    except Exception as e:
        logger.error(f"Failed to get room: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Internal error")


@router.get("/{room_id}/session", response_model=SessionView)
def get_session(
    room_id: str,
    user: User = Depends(get_current_user),
    locale: str = Depends(get_locale),
    db: Session = Depends(get_db),
):
    """
    畫面層用的 session 資訊；房間不存在時 screen 為 home
    """
    try:
        room = RoomManager.get_room_by_id(db, room_id)
        return build_session_view(decode_room_payload(room.to_dict()), user.id)

    except RoomNotFound:
        return build_session_view(None, user.id)
    except SpyfallException as e:
        raise to_http_exception(e, locale)
    except Exception as e:
        logger.error(f"Failed to get session: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Internal error")


@router.put("/{room_id}/timer", response_model=RoomView)
def update_timer(
    room_id: str,
    data: TimerUpdate,
    user: User = Depends(get_current_user),
    locale: str = Depends(get_locale),
    db: Session = Depends(get_db),
):
    """
    調整回合長度（房主、waiting 階段；只接受允許的分鐘數）
    """
    try:
        room = RoomManager.update_timer(db, room_id, user.id, data.minutes)
        return _view(room, user)

    except SpyfallException as e:
        raise to_http_exception(e, locale)
    except Exception as e:
        logger.error(f"Failed to update timer: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Internal error")


@router.post("/{room_id}/start", response_model=RoomView)
def start_game(
    room_id: str,
    user: User = Depends(get_current_user),
    locale: str = Depends(get_locale),
    db: Session = Depends(get_db),
):
    """
    開始遊戲（房主；至少 3 人）
    """
    try:
        room = RoomManager.start_game(db, room_id, user.id)
        return _view(room, user)

    except SpyfallException as e:
        raise to_http_exception(e, locale)
    except Exception as e:
        logger.error(f"Failed to start game: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Internal error")


@router.post("/{room_id}/leave", response_model=LeaveRoomResponse)
def leave_room(
    room_id: str,
    data: LeaveRoomRequest,
    user: User = Depends(get_current_user),
    locale: str = Depends(get_locale),
    db: Session = Depends(get_db),
):
    """
    離開房間；最後一人離開時房間會被刪除
    """
    try:
        room = RoomManager.leave_room(db, room_id, data.player_id, user.id)
        if room is None:
            return LeaveRoomResponse(room=None, deleted=True)
        return LeaveRoomResponse(room=_view(room, user), deleted=False)

    except SpyfallException as e:
        raise to_http_exception(e, locale)
    except Exception as e:
        logger.error(f"Failed to leave room: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Internal error")


@router.post("/{room_id}/votes", response_model=RoomView)
def submit_vote(
    room_id: str,
    data: VoteSubmit,
    user: User = Depends(get_current_user),
    locale: str = Depends(get_locale),
    db: Session = Depends(get_db),
):
    """
    投票（冪等：重複投票或遊戲已結束都不會改變狀態）
    """
    try:
        room = RoomManager.submit_vote(db, room_id, data.player_id, data.voted_player_id, user.id)
        return _view(room, user)

    except SpyfallException as e:
        raise to_http_exception(e, locale)
    except Exception as e:
        logger.error(f"Failed to submit vote: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Internal error")


@router.get("/{room_id}/result", response_model=GameResultResponse)
def get_result(
    room_id: str,
    user: User = Depends(get_current_user),
    locale: str = Depends(get_locale),
    db: Session = Depends(get_db),
):
    """
    遊戲結果（只有 finished 才能查詢）
    """
    try:
        room = RoomManager.get_room_by_id(db, room_id)
        return compute_result(decode_room_payload(room.to_dict()), get_votes(db, room_id))

    except SpyfallException as e:
        raise to_http_exception(e, locale)
    except Exception as e:
        logger.error(f"Failed to get result: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Internal error")
