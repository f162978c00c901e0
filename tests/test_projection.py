# tests/test_projection.py
from datetime import datetime, timedelta, timezone

import pytest

from schemas import RoomSnapshot
from core.exceptions import InvalidState
from services.projection_service import project_room, project_player
from services.session_service import build_session_view, remaining_seconds, screen_for
from services.result_service import compute_result

STARTED_AT = datetime(2024, 1, 1, 12, 0, tzinfo=timezone.utc)


def _snapshot(game_state: str = "playing", spy_index: int = 1, players: int = 3, **overrides) -> RoomSnapshot:
    data = {
        "id": "room-1",
        "invite_code": "ABC123",
        "host_id": "u0",
        "players": [
            {
                "id": f"p{i}",
                "user_id": f"u{i}",
                "name": f"Player {i}",
                "is_host": i == 0,
                "is_spy": game_state != "waiting" and i == spy_index,
                "has_voted": game_state == "finished",
            }
            for i in range(players)
        ],
        "game_state": game_state,
        "current_word": None if game_state == "waiting" else "Beach",
        "timer_seconds": 480,
        "game_started_at": None if game_state == "waiting" else STARTED_AT,
        "version": 3,
    }
    data.update(overrides)
    return RoomSnapshot.model_validate(data)


def _vote(voter: str, target: str) -> dict:
    return {"player_id": voter, "voted_player_id": target}


# ============ projection ============

def test_waiting_room_has_no_secrets():
    view = project_room(_snapshot("waiting"), "u0")
    assert [p.is_spy for p in view.players] == [False, False, False]
    assert view.current_word is None


def test_non_spy_sees_location_but_only_own_role():
    view = project_room(_snapshot("playing"), "u0")
    assert view.current_word == "Beach"
    assert [p.is_spy for p in view.players] == [False, None, None]


def test_spy_does_not_see_location():
    view = project_room(_snapshot("voting"), "u1")
    assert view.current_word is None
    assert [p.is_spy for p in view.players] == [None, True, None]


def test_outsider_sees_nothing_secret():
    view = project_room(_snapshot("playing"), "stranger")
    assert view.current_word is None
    assert all(p.is_spy is None for p in view.players)


def test_finished_room_is_revealed():
    view = project_room(_snapshot("finished"), "stranger")
    assert view.current_word == "Beach"
    assert [p.is_spy for p in view.players] == [False, True, False]
    assert project_player(view, "p1").is_spy is True
    assert project_player(view, "nope") is None


# ============ session ============

@pytest.mark.parametrize(
    "game_state, screen",
    [("waiting", "lobby"), ("playing", "game"), ("voting", "game"), ("finished", "results")],
)
def test_screen_follows_game_state(game_state, screen):
    assert screen_for(_snapshot(game_state), "u2") == screen
    assert screen_for(_snapshot(game_state), "stranger") == "home"


def test_remaining_seconds():
    assert remaining_seconds(_snapshot("waiting")) is None
    assert remaining_seconds(_snapshot("playing"), STARTED_AT + timedelta(seconds=80)) == 400
    assert remaining_seconds(_snapshot("playing"), STARTED_AT + timedelta(minutes=30)) == 0


def test_session_view_for_member_and_missing_room():
    session = build_session_view(_snapshot("playing"), "u1", STARTED_AT)
    assert session.screen == "game"
    assert session.me.id == "p1"
    assert session.me.is_spy is True
    assert session.room.current_word is None
    assert session.remaining_seconds == 480

    gone = build_session_view(None, "u1")
    assert gone.screen == "home"
    assert gone.room is None


# ============ result ============

def test_result_requires_finished_room():
    with pytest.raises(InvalidState):
        compute_result(_snapshot("voting"), [])


def test_others_win_when_spy_is_accused():
    votes = [_vote("p0", "p1"), _vote("p1", "p2"), _vote("p2", "p1")]
    result = compute_result(_snapshot("finished"), votes)

    assert result.winner == "others"
    assert result.spy_player.id == "p1"
    assert result.voted_player.id == "p1"
    assert result.vote_counts == {"p1": 2, "p2": 1}
    assert result.location == "Beach"


def test_spy_wins_when_innocent_is_accused():
    votes = [_vote("p0", "p2"), _vote("p1", "p2"), _vote("p2", "p0")]
    result = compute_result(_snapshot("finished"), votes)

    assert result.winner == "spy"
    assert result.voted_player.id == "p2"


def test_tie_or_no_votes_favours_spy():
    tie = compute_result(
        _snapshot("finished", players=4),
        [_vote("p0", "p1"), _vote("p1", "p2"), _vote("p2", "p1"), _vote("p3", "p2")],
    )
    assert tie.winner == "spy"
    assert tie.voted_player is None

    empty = compute_result(_snapshot("finished"), [])
    assert empty.winner == "spy"
    assert empty.vote_counts == {}


def test_votes_involving_departed_players_are_ignored():
    votes = [_vote("p0", "p1"), _vote("p9", "p2"), _vote("p2", "p9"), _vote("p2", "p1")]
    result = compute_result(_snapshot("finished"), votes)

    assert result.vote_counts == {"p1": 2}
    assert result.winner == "others"


def test_spy_who_left_forfeits():
    result = compute_result(_snapshot("finished", spy_index=99), [])

    assert result.winner == "others"
    assert result.spy_player is None
