"""
RoomStore：引擎與儲存層之間的契約

引擎只透過這些原子的條件式操作修改 Room，
從不在行程內持有可寫回的 Room 複本（那會重新引入 lost update）。

- RoomStore：抽象契約
- SqlRoomStore：SQLAlchemy 實作
"""
from abc import ABC, abstractmethod
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Any, Dict, Mapping, Optional, Sequence
import logging

from sqlalchemy import update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from database import get_db
from models import EventLog, Participant, Result, Room, RoomOption, RoomState, Vote
from schemas import RankedOption, ResultView, RoomView, VoteView
from core.exceptions import RoomNotFound
from core.locks import load_room, with_room_lock
from core.state_machine import RoomStateMachine

logger = logging.getLogger(__name__)


class RoomStore(ABC):
    """
    Room 儲存契約

    每個修改操作本身都是原子的條件式操作（「不存在才 append」、
    「目前是 open 才關閉」、「沒 lock in 才覆寫」），
    修改操作遇到已關閉的 Room 會拋出 RoomClosed，不存在則 RoomNotFound。

    同時也是 unit of work：commit() / rollback() 由 @transactional 呼叫。
    """

    @abstractmethod
    def insert(self, owner: str, code: str) -> Optional[str]:
        """建立 OPEN 的 Room，owner 為第一位參與者；code 已被使用則返回 None"""

    @abstractmethod
    def find_by_id(self, room_id: str) -> Optional[RoomView]:
        pass

    @abstractmethod
    def find_by_code(self, code: str) -> Optional[RoomView]:
        pass

    @abstractmethod
    def conditional_append_participant(self, room_id: str, identity: str) -> bool:
        """不存在才 append；返回是否真的新增（已存在也算成功）"""

    @abstractmethod
    def conditional_append_option(self, room_id: str, option: str, added_by: str) -> bool:
        """不存在才 append；返回 False 表示選項已存在"""

    @abstractmethod
    def upsert_vote(self, room_id: str, identity: str, scores: Mapping[str, int]) -> bool:
        """整份覆寫投票；返回 False 表示已 lock in"""

    @abstractmethod
    def add_lock_in(self, room_id: str, identity: str) -> bool:
        """冪等；返回 False 表示該身份還沒有投票"""

    @abstractmethod
    def conditional_close(self, room_id: str) -> bool:
        """目前是 OPEN 才轉成 CLOSED；返回是否由這次呼叫關閉"""

    @abstractmethod
    def create_result(self, room_id: str, owner: str,
                      ranking: Sequence[RankedOption]) -> str:
        pass

    @abstractmethod
    def find_result(self, result_id: str) -> Optional[ResultView]:
        pass

    @abstractmethod
    def log_event(self, room_id: str, event_type: str,
                  data: Optional[Dict[str, Any]] = None) -> None:
        pass

    @abstractmethod
    def commit(self) -> None:
        pass

    @abstractmethod
    def rollback(self) -> None:
        pass


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _vote_view(vote: Vote) -> VoteView:
    return VoteView(
        username=vote.username,
        scores=dict(vote.scores or {}),
        locked_in=bool(vote.locked_in),
        submitted_at=vote.submitted_at,
    )


def _room_view(room: Room) -> RoomView:
    return RoomView(
        id=room.id,
        code=room.code,
        owner=room.owner,
        participants=tuple(p.username for p in room.participants),
        options=tuple(o.name for o in room.options),
        votes={v.username: _vote_view(v) for v in room.votes},
        locked_in=tuple(v.username for v in room.votes if v.locked_in),
        state=room.state,
        created_at=room.created_at,
        closed_at=room.closed_at,
        result_id=room.result_id,
    )


def _result_view(result: Result) -> ResultView:
    return ResultView(
        id=result.id,
        room_id=result.room_id,
        created_by=result.created_by,
        ranking=tuple(RankedOption(**item) for item in result.ranking),
        created_at=result.created_at,
    )


class SqlRoomStore(RoomStore):
    """
    SQLAlchemy 實作

    每個修改操作都先拿 Room 的行級鎖並重新檢查 state，
    再靠 UNIQUE constraint 擋住重複；不 commit，交給 @transactional。
    """

    def __init__(self, db: Session):
        self.db = db

    def commit(self) -> None:
        self.db.commit()

    def rollback(self) -> None:
        self.db.rollback()

    def _lock_open_room(self, room_id: str) -> Room:
        room = with_room_lock(room_id, self.db).first()
        if not room:
            raise RoomNotFound(room_id)
        RoomStateMachine.require_open(room)
        return room

    # ============ 讀取 ============

    def find_by_id(self, room_id: str) -> Optional[RoomView]:
        room = load_room(room_id, self.db).first()
        return _room_view(room) if room else None

    def find_by_code(self, code: str) -> Optional[RoomView]:
        room_id = self.db.query(Room.id).filter(Room.code == code).scalar()
        if room_id is None:
            return None
        return self.find_by_id(room_id)

    def find_result(self, result_id: str) -> Optional[ResultView]:
        result = self.db.query(Result).filter(Result.id == result_id).first()
        return _result_view(result) if result else None

    # ============ 建立 ============

    def insert(self, owner: str, code: str) -> Optional[str]:
        room = Room(code=code, owner=owner, state=RoomState.OPEN)
        try:
            with self.db.begin_nested():
                self.db.add(room)
                self.db.flush()
                self.db.add(Participant(room_id=room.id, username=owner))
        except IntegrityError:
            logger.warning(f"Room code {code} already taken")
            return None
        return room.id

    # ============ 條件式修改 ============

    def conditional_append_participant(self, room_id: str, identity: str) -> bool:
        self._lock_open_room(room_id)

        exists = self.db.query(Participant.id).filter(
            Participant.room_id == room_id,
            Participant.username == identity
        ).first()
        if exists:
            return False

        try:
            with self.db.begin_nested():
                self.db.add(Participant(room_id=room_id, username=identity))
        except IntegrityError:
            # 另一個 join 搶先寫入了同一個身份
            return False
        return True

    def conditional_append_option(self, room_id: str, option: str, added_by: str) -> bool:
        self._lock_open_room(room_id)

        exists = self.db.query(RoomOption.id).filter(
            RoomOption.room_id == room_id,
            RoomOption.name == option
        ).first()
        if exists:
            return False

        try:
            with self.db.begin_nested():
                self.db.add(RoomOption(room_id=room_id, name=option, added_by=added_by))
        except IntegrityError:
            return False
        return True

    def upsert_vote(self, room_id: str, identity: str, scores: Mapping[str, int]) -> bool:
        self._lock_open_room(room_id)

        updated = self.db.execute(
            update(Vote)
            .where(
                Vote.room_id == room_id,
                Vote.username == identity,
                Vote.locked_in == False  # noqa: E712
            )
            .values(scores=dict(scores), submitted_at=_now())
            .execution_options(synchronize_session=False)
        ).rowcount
        if updated:
            return True

        existing = self.db.query(Vote.id).filter(
            Vote.room_id == room_id,
            Vote.username == identity
        ).first()
        if existing:
            # 有投票但沒被更新到 -> 已 lock in
            return False

        self.db.add(Vote(room_id=room_id, username=identity, scores=dict(scores)))
        self.db.flush()
        return True

    def add_lock_in(self, room_id: str, identity: str) -> bool:
        self._lock_open_room(room_id)

        existing = self.db.query(Vote.id).filter(
            Vote.room_id == room_id,
            Vote.username == identity
        ).first()
        if not existing:
            return False

        self.db.execute(
            update(Vote)
            .where(
                Vote.room_id == room_id,
                Vote.username == identity,
                Vote.locked_in == False  # noqa: E712
            )
            .values(locked_in=True, locked_at=_now())
            .execution_options(synchronize_session=False)
        )
        return True

    def conditional_close(self, room_id: str) -> bool:
        closed = self.db.execute(
            update(Room)
            .where(Room.id == room_id, Room.state == RoomState.OPEN)
            .values(state=RoomState.CLOSED, closed_at=_now())
            .execution_options(synchronize_session=False)
        ).rowcount
        return closed == 1

    def create_result(self, room_id: str, owner: str,
                      ranking: Sequence[RankedOption]) -> str:
        result = Result(
            room_id=room_id,
            created_by=owner,
            ranking=[item.model_dump() for item in ranking],
        )
        self.db.add(result)
        self.db.flush()

        self.db.execute(
            update(Room)
            .where(Room.id == room_id, Room.result_id.is_(None))
            .values(result_id=result.id)
            .execution_options(synchronize_session=False)
        )
        return result.id

    def log_event(self, room_id: str, event_type: str,
                  data: Optional[Dict[str, Any]] = None) -> None:
        self.db.add(EventLog(room_id=room_id, event_type=event_type, data=data or {}))
        self.db.flush()


@contextmanager
def store_scope(session_factory=None):
    """
    提供一個綁定新 Session 的 SqlRoomStore

    範例：
        with store_scope() as store:
            room = RoomManager.create_room(store, "alice")
    """
    with get_db(session_factory) as db:
        yield SqlRoomStore(db)
