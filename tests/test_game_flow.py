# tests/test_game_flow.py
import pytest
from sqlalchemy.orm import Session
from fastapi.testclient import TestClient

from models import EventLog, GameState
from core.room_manager import RoomManager
from core.exceptions import (
    NotEnoughPlayers,
    NotAuthorized,
    InvalidState,
    InvalidArgument,
)
from services.location_catalog import get_location_catalog


def _setup_room(db: Session, make_user, player_count: int = 3):
    """
    建立房間並讓 player_count - 1 位玩家加入

    返回 (room_id, users, players)，users[0] / players[0] 是房主
    """
    users = [make_user(f"P{i}") for i in range(player_count)]
    room, host = RoomManager.create_room(db, users[0])
    players = [host]
    for user in users[1:]:
        _, player = RoomManager.join_room(db, user, room.invite_code)
        players.append(player)
    return room.id, users, players


def _spies(room):
    return [p for p in room.players if p["is_spy"]]


@pytest.mark.parametrize("player_count", [1, 2])
def test_start_rejects_too_few_players(db: Session, make_user, player_count):
    room_id, users, _ = _setup_room(db, make_user, player_count)

    with pytest.raises(NotEnoughPlayers):
        RoomManager.start_game(db, room_id, users[0].id)

    room = RoomManager.get_room_by_id(db, room_id)
    assert room.game_state == GameState.WAITING
    assert room.current_word is None


def test_start_with_three_players(db: Session, make_user):
    room_id, users, _ = _setup_room(db, make_user, 3)
    before = RoomManager.get_room_by_id(db, room_id).version

    room = RoomManager.start_game(db, room_id, users[0].id)

    assert room.game_state == GameState.PLAYING
    assert len(_spies(room)) == 1
    assert room.current_word in get_location_catalog("en")
    assert room.timer_seconds == 480
    assert room.game_started_at is not None
    assert all(p["has_voted"] is False for p in room.players)
    assert room.version == before + 1
    assert sum(p["is_host"] for p in room.players) == 1


def test_start_keeps_lobby_timer(db: Session, make_user):
    room_id, users, _ = _setup_room(db, make_user, 3)
    RoomManager.update_timer(db, room_id, users[0].id, 15)

    room = RoomManager.start_game(db, room_id, users[0].id)
    assert room.timer_seconds == 900


def test_only_host_can_start(db: Session, make_user):
    room_id, users, _ = _setup_room(db, make_user, 3)

    with pytest.raises(NotAuthorized):
        RoomManager.start_game(db, room_id, users[1].id)


def test_start_twice_is_invalid(db: Session, make_user):
    room_id, users, _ = _setup_room(db, make_user, 3)
    RoomManager.start_game(db, room_id, users[0].id)

    with pytest.raises(InvalidState):
        RoomManager.start_game(db, room_id, users[0].id)


def test_votes_finish_round_only_when_everyone_voted(db: Session, make_user):
    room_id, users, players = _setup_room(db, make_user, 3)
    RoomManager.start_game(db, room_id, users[0].id)

    room = RoomManager.submit_vote(db, room_id, players[0]["id"], players[1]["id"], users[0].id)
    assert room.game_state == GameState.VOTING

    room = RoomManager.submit_vote(db, room_id, players[1]["id"], players[2]["id"], users[1].id)
    assert room.game_state == GameState.VOTING

    room = RoomManager.submit_vote(db, room_id, players[2]["id"], players[1]["id"], users[2].id)
    assert room.game_state == GameState.FINISHED
    assert all(p["has_voted"] for p in room.players)
    assert len(_spies(room)) == 1

    votes = db.query(EventLog).filter(
        EventLog.room_id == room_id, EventLog.event_type == "VOTE_SUBMITTED"
    ).all()
    assert [v.data["voted_player_id"] for v in votes] == [
        players[1]["id"], players[2]["id"], players[1]["id"],
    ]


def test_duplicate_and_late_votes_are_noops(db: Session, make_user):
    room_id, users, players = _setup_room(db, make_user, 3)
    RoomManager.start_game(db, room_id, users[0].id)

    first = RoomManager.submit_vote(db, room_id, players[0]["id"], players[1]["id"], users[0].id)
    version = first.version

    again = RoomManager.submit_vote(db, room_id, players[0]["id"], players[2]["id"], users[0].id)
    assert again.version == version
    assert again.game_state == GameState.VOTING

    RoomManager.submit_vote(db, room_id, players[1]["id"], players[0]["id"], users[1].id)
    finished = RoomManager.submit_vote(db, room_id, players[2]["id"], players[0]["id"], users[2].id)
    assert finished.game_state == GameState.FINISHED

    late = RoomManager.submit_vote(db, room_id, players[2]["id"], players[1]["id"], users[2].id)
    assert late.version == finished.version
    assert late.game_state == GameState.FINISHED


def test_vote_validation(db: Session, make_user):
    room_id, users, players = _setup_room(db, make_user, 3)

    # 還沒開始
    with pytest.raises(InvalidState):
        RoomManager.submit_vote(db, room_id, players[0]["id"], players[1]["id"], users[0].id)

    RoomManager.start_game(db, room_id, users[0].id)

    with pytest.raises(InvalidArgument):
        RoomManager.submit_vote(db, room_id, players[0]["id"], players[0]["id"], users[0].id)

    with pytest.raises(InvalidArgument):
        RoomManager.submit_vote(db, room_id, players[0]["id"], "player_missing", users[0].id)

    # 替別人投票
    with pytest.raises(NotAuthorized):
        RoomManager.submit_vote(db, room_id, players[1]["id"], players[2]["id"], users[0].id)

    room = RoomManager.get_room_by_id(db, room_id)
    assert room.game_state == GameState.PLAYING
    assert not any(p["has_voted"] for p in room.players)


def test_spy_leaving_mid_round_finishes_game(db: Session, make_user, monkeypatch):
    monkeypatch.setattr("core.room_manager.pick_spy", lambda players: 2)
    room_id, users, players = _setup_room(db, make_user, 4)
    RoomManager.start_game(db, room_id, users[0].id)

    room = RoomManager.leave_room(db, room_id, players[2]["id"], users[2].id)

    assert room.game_state == GameState.FINISHED
    assert len(room.players) == 3
    assert _spies(room) == []


def test_leaving_during_voting_can_finish_round(db: Session, make_user, monkeypatch):
    monkeypatch.setattr("core.room_manager.pick_spy", lambda players: 0)
    room_id, users, players = _setup_room(db, make_user, 4)
    RoomManager.start_game(db, room_id, users[0].id)

    RoomManager.submit_vote(db, room_id, players[0]["id"], players[1]["id"], users[0].id)
    RoomManager.submit_vote(db, room_id, players[1]["id"], players[0]["id"], users[1].id)
    RoomManager.submit_vote(db, room_id, players[2]["id"], players[0]["id"], users[2].id)

    # 只剩下還沒投票的人離開 -> 其餘全員都投過了
    room = RoomManager.leave_room(db, room_id, players[3]["id"], users[3].id)
    assert room.game_state == GameState.FINISHED


def test_host_leaving_mid_round_keeps_single_host(db: Session, make_user, monkeypatch):
    monkeypatch.setattr("core.room_manager.pick_spy", lambda players: 2)
    room_id, users, players = _setup_room(db, make_user, 4)
    RoomManager.start_game(db, room_id, users[0].id)

    room = RoomManager.leave_room(db, room_id, players[0]["id"], users[0].id)

    assert room.game_state == GameState.PLAYING
    assert [p["is_host"] for p in room.players] == [True, False, False]
    assert room.host_id == users[1].id
    assert len(_spies(room)) == 1


def test_full_round_over_http(client: TestClient, register, monkeypatch):
    monkeypatch.setattr("core.room_manager.pick_spy", lambda players: 1)

    host_id, host_headers = register("Host")
    spy_id, spy_headers = register("Spy")
    other_id, other_headers = register("Other")

    created = client.post("/api/rooms", headers=host_headers).json()
    room_id = created["room"]["id"]
    code = created["room"]["invite_code"]
    spy_player = client.post("/api/rooms/join", json={"invite_code": code}, headers=spy_headers).json()["player"]
    other_player = client.post("/api/rooms/join", json={"invite_code": code}, headers=other_headers).json()["player"]

    res = client.post(f"/api/rooms/{room_id}/start", headers=host_headers)
    assert res.status_code == 200
    host_view = res.json()
    assert host_view["game_state"] == "playing"
    assert host_view["current_word"]
    # 房主只知道自己的身分
    assert [p["is_spy"] for p in host_view["players"]] == [False, None, None]

    spy_view = client.get(f"/api/rooms/{room_id}", headers=spy_headers).json()
    assert spy_view["current_word"] is None
    assert [p["is_spy"] for p in spy_view["players"]] == [None, True, None]

    session = client.get(f"/api/rooms/{room_id}/session", headers=other_headers).json()
    assert session["screen"] == "game"
    assert 0 < session["remaining_seconds"] <= 480

    # 結果在 finished 之前不能查
    early = client.get(f"/api/rooms/{room_id}/result", headers=host_headers)
    assert early.status_code == 409

    host_player = created["player"]
    votes = [
        (host_headers, host_player["id"], spy_player["id"]),
        (spy_headers, spy_player["id"], other_player["id"]),
        (other_headers, other_player["id"], spy_player["id"]),
    ]
    for headers, voter, target in votes:
        res = client.post(
            f"/api/rooms/{room_id}/votes",
            json={"player_id": voter, "voted_player_id": target},
            headers=headers,
        )
        assert res.status_code == 200

    final = res.json()
    assert final["game_state"] == "finished"
    assert [p["is_spy"] for p in final["players"]] == [False, True, False]

    result = client.get(f"/api/rooms/{room_id}/result", headers=other_headers).json()
    assert result["winner"] == "others"
    assert result["spy_player"]["user_id"] == spy_id
    assert result["voted_player"]["id"] == spy_player["id"]
    assert result["vote_counts"] == {spy_player["id"]: 2, other_player["id"]: 1}
    assert result["location"] == host_view["current_word"]

    results_session = client.get(f"/api/rooms/{room_id}/session", headers=host_headers).json()
    assert results_session["screen"] == "results"
    assert results_session["me"]["user_id"] == host_id
