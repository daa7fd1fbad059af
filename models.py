"""
資料表定義

Room 擁有 participants / options / votes（一對多子表），
Result 只透過 result_id 參照，不由 Room 包含。
"""
import enum
import uuid
from datetime import datetime, timezone

from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    DateTime,
    Enum,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import relationship

from database import Base

# 身份欄位寬度，registry_service.validate_identity 用同一個值檢查
IDENTITY_MAX_LENGTH = 64


def _uuid() -> str:
    return str(uuid.uuid4())


def _now() -> datetime:
    return datetime.now(timezone.utc)


class RoomState(str, enum.Enum):
    OPEN = "open"
    CLOSED = "closed"


class Room(Base):
    __tablename__ = "rooms"

    id = Column(String(36), primary_key=True, default=_uuid)
    code = Column(String(16), unique=True, nullable=False, index=True)
    owner = Column(String(IDENTITY_MAX_LENGTH), nullable=False)
    state = Column(Enum(RoomState), nullable=False, default=RoomState.OPEN)
    created_at = Column(DateTime(timezone=True), nullable=False, default=_now)
    closed_at = Column(DateTime(timezone=True), nullable=True)
    result_id = Column(String(36), nullable=True)

    # 自增主鍵即加入順序
    participants = relationship(
        "Participant", order_by="Participant.id", cascade="all, delete-orphan"
    )
    options = relationship(
        "RoomOption", order_by="RoomOption.id", cascade="all, delete-orphan"
    )
    votes = relationship(
        "Vote", order_by="Vote.id", cascade="all, delete-orphan"
    )


class Participant(Base):
    __tablename__ = "room_participants"
    __table_args__ = (UniqueConstraint("room_id", "username"),)

    id = Column(Integer, primary_key=True, autoincrement=True)
    room_id = Column(String(36), ForeignKey("rooms.id"), nullable=False, index=True)
    username = Column(String(IDENTITY_MAX_LENGTH), nullable=False)
    joined_at = Column(DateTime(timezone=True), nullable=False, default=_now)


class RoomOption(Base):
    __tablename__ = "room_options"
    __table_args__ = (UniqueConstraint("room_id", "name"),)

    id = Column(Integer, primary_key=True, autoincrement=True)
    room_id = Column(String(36), ForeignKey("rooms.id"), nullable=False, index=True)
    # 選項名稱不限長度
    name = Column(Text, nullable=False)
    added_by = Column(String(IDENTITY_MAX_LENGTH), nullable=False)
    created_at = Column(DateTime(timezone=True), nullable=False, default=_now)


class Vote(Base):
    __tablename__ = "votes"
    __table_args__ = (UniqueConstraint("room_id", "username"),)

    id = Column(Integer, primary_key=True, autoincrement=True)
    room_id = Column(String(36), ForeignKey("rooms.id"), nullable=False, index=True)
    username = Column(String(IDENTITY_MAX_LENGTH), nullable=False)
    scores = Column(JSON, nullable=False, default=dict)
    locked_in = Column(Boolean, nullable=False, default=False)
    submitted_at = Column(DateTime(timezone=True), nullable=False, default=_now)
    locked_at = Column(DateTime(timezone=True), nullable=True)


class Result(Base):
    __tablename__ = "results"

    id = Column(String(36), primary_key=True, default=_uuid)
    # unique：每個 Room 只會有一個 Result
    room_id = Column(String(36), ForeignKey("rooms.id"), nullable=False, unique=True)
    created_by = Column(String(IDENTITY_MAX_LENGTH), nullable=False)
    ranking = Column(JSON, nullable=False)
    created_at = Column(DateTime(timezone=True), nullable=False, default=_now)


class EventLog(Base):
    __tablename__ = "event_logs"

    id = Column(Integer, primary_key=True, autoincrement=True)
    room_id = Column(String(36), ForeignKey("rooms.id"), nullable=False, index=True)
    event_type = Column(String(32), nullable=False)
    data = Column(JSON, nullable=False, default=dict)
    created_at = Column(DateTime(timezone=True), nullable=False, default=_now)
