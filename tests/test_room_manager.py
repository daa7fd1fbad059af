import pytest

from models import EventLog, Result, RoomState
from core.exceptions import (
    InvalidInput,
    NotParticipant,
    NotRoomOwner,
    OptionAlreadyExists,
    ResultNotFound,
    RoomClosed,
    RoomNotFound,
)
from core.room_manager import RoomManager
from core.vote_manager import VoteManager


def _event_types(store, room_id):
    rows = store.db.query(EventLog).filter(EventLog.room_id == room_id).order_by(EventLog.id).all()
    return [row.event_type for row in rows]


def test_create_room(store):
    room = RoomManager.create_room(store, "alice")

    assert room.state == RoomState.OPEN
    assert room.owner == "alice"
    assert room.participants == ("alice",)
    assert room.options == ()
    assert room.votes == {}
    assert room.result_id is None
    assert len(room.code) == 4
    assert _event_types(store, room.id) == ["ROOM_CREATED"]


def test_create_room_rejects_empty_owner(store):
    with pytest.raises(InvalidInput):
        RoomManager.create_room(store, "")


def test_room_codes_are_unique(store):
    codes = {RoomManager.create_room(store, f"owner{i}").code for i in range(20)}
    assert len(codes) == 20


def test_join_appends_in_order(store):
    room = RoomManager.create_room(store, "alice")
    RoomManager.join(store, room.code, "bob")
    joined = RoomManager.join(store, room.code.lower(), "carol")

    assert joined.participants == ("alice", "bob", "carol")


def test_join_is_idempotent(store, room):
    again = RoomManager.join(store, room.code, "bob")
    owner_again = RoomManager.join(store, room.code, "alice")

    assert again.participants == ("alice", "bob")
    assert owner_again.participants == ("alice", "bob")
    assert _event_types(store, room.id).count("PARTICIPANT_JOINED") == 1


def test_join_unknown_code(store):
    with pytest.raises(RoomNotFound):
        RoomManager.join(store, "ZZZZ", "bob")


def test_join_closed_room(store, room):
    RoomManager.close(store, room.id, "alice")

    with pytest.raises(RoomClosed):
        RoomManager.join(store, room.code, "carol")
    assert RoomManager.get_room(store, room.id).participants == ("alice", "bob")


def test_add_option_returns_full_list(store, room):
    assert RoomManager.add_option(store, room.id, "alice", "pizza") == ("pizza",)
    assert RoomManager.add_option(store, room.id, "bob", "sushi") == ("pizza", "sushi")


def test_add_option_by_non_participant_is_forbidden(store, room):
    RoomManager.add_option(store, room.id, "alice", "pizza")

    with pytest.raises(NotParticipant) as exc:
        RoomManager.add_option(store, room.id, "mallory", "tacos")

    assert exc.value.kind == "forbidden"
    assert RoomManager.get_room(store, room.id).options == ("pizza",)


def test_add_duplicate_option_conflicts(store, room):
    RoomManager.add_option(store, room.id, "alice", "pizza")

    with pytest.raises(OptionAlreadyExists) as exc:
        RoomManager.add_option(store, room.id, "bob", "pizza")

    assert exc.value.kind == "conflict"
    assert RoomManager.get_room(store, room.id).options == ("pizza",)


def test_options_are_case_sensitive(store, room):
    RoomManager.add_option(store, room.id, "alice", "pizza")
    assert RoomManager.add_option(store, room.id, "alice", "Pizza") == ("pizza", "Pizza")


def test_add_empty_option(store, room):
    with pytest.raises(InvalidInput):
        RoomManager.add_option(store, room.id, "alice", "")


def test_whitespace_option_is_accepted(store, room):
    assert RoomManager.add_option(store, room.id, "alice", " ") == (" ",)
    # 與 " " 不同的選項
    assert RoomManager.add_option(store, room.id, "bob", "  ") == (" ", "  ")
    assert RoomManager.get_room(store, room.id).options == (" ", "  ")


def test_long_option_is_stored_verbatim(store, room):
    option = "very long option " * 40
    assert RoomManager.add_option(store, room.id, "alice", option) == (option,)
    assert RoomManager.get_room(store, room.id).options == (option,)


def test_stale_open_snapshot_cannot_add_option(store, stale_store, room):
    stale = RoomManager.get_room(store, room.id)
    RoomManager.close(store, room.id, "alice")

    with pytest.raises(RoomClosed):
        RoomManager.add_option(stale_store(stale), room.id, "alice", "pizza")

    assert RoomManager.get_room(store, room.id).options == ()


def test_add_option_unknown_room(store):
    with pytest.raises(RoomNotFound):
        RoomManager.add_option(store, "missing", "alice", "pizza")


def test_add_option_closed_room(store, room):
    RoomManager.close(store, room.id, "alice")
    with pytest.raises(RoomClosed):
        RoomManager.add_option(store, room.id, "alice", "pizza")


def test_close_scenario(store, food_room):
    VoteManager.submit_vote(store, food_room.id, "alice", {"pizza": 5, "sushi": 2})
    VoteManager.submit_vote(store, food_room.id, "bob", {"pizza": 1, "sushi": 5})

    result = RoomManager.close(store, food_room.id, "alice")

    assert [(r.option, r.score) for r in result.ranking] == [("sushi", 7), ("pizza", 6)]
    assert result.created_by == "alice"
    assert result.room_id == food_room.id

    closed = RoomManager.get_room(store, food_room.id)
    assert closed.state == RoomState.CLOSED
    assert closed.closed_at is not None
    assert closed.result_id == result.id
    fetched = RoomManager.get_result(store, result.id)
    assert fetched.id == result.id
    assert fetched.ranking == result.ranking
    assert _event_types(store, food_room.id)[-1] == "ROOM_CLOSED"


def test_close_tie_uses_insertion_order(store, room):
    RoomManager.add_option(store, room.id, "alice", "a")
    RoomManager.add_option(store, room.id, "alice", "b")
    VoteManager.submit_vote(store, room.id, "alice", {"a": 1, "b": 3})
    VoteManager.submit_vote(store, room.id, "bob", {"a": 2})

    result = RoomManager.close(store, room.id, "alice")

    assert [(r.option, r.score) for r in result.ranking] == [("a", 3), ("b", 3)]


def test_non_voter_does_not_block_close(store, food_room):
    RoomManager.join(store, food_room.code, "carol")
    VoteManager.submit_vote(store, food_room.id, "bob", {"pizza": 2})

    result = RoomManager.close(store, food_room.id, "alice")

    assert [(r.option, r.score) for r in result.ranking] == [("pizza", 2), ("sushi", 0)]


def test_close_by_non_owner_is_forbidden(store, room):
    with pytest.raises(NotRoomOwner):
        RoomManager.close(store, room.id, "bob")

    assert RoomManager.get_room(store, room.id).state == RoomState.OPEN
    assert store.db.query(Result).count() == 0


def test_second_close_fails_and_keeps_single_result(store, room):
    first = RoomManager.close(store, room.id, "alice")

    with pytest.raises(RoomClosed):
        RoomManager.close(store, room.id, "alice")

    assert store.db.query(Result).filter(Result.room_id == room.id).count() == 1
    assert RoomManager.get_room(store, room.id).result_id == first.id


def test_close_unknown_room(store):
    with pytest.raises(RoomNotFound):
        RoomManager.close(store, "missing", "alice")


def test_get_room_by_code(store, room):
    assert RoomManager.get_room_by_code(store, room.code).id == room.id
    with pytest.raises(RoomNotFound):
        RoomManager.get_room_by_code(store, "ZZZZ")


def test_get_unknown_room_and_result(store):
    with pytest.raises(RoomNotFound):
        RoomManager.get_room(store, "missing")
    with pytest.raises(ResultNotFound) as exc:
        RoomManager.get_result(store, "missing")
    assert exc.value.kind == "not_found"


def test_room_view_helpers(store, room):
    assert room.is_open
    assert room.is_owner("alice")
    assert not room.is_owner("bob")
    assert room.has_participant("bob")
    assert not room.has_participant("carol")
