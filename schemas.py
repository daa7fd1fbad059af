"""
引擎回傳給呼叫端的唯讀快照

全部 frozen：呼叫端拿到的是某個時間點的複本，不是可寫回的共享狀態。
"""
from datetime import datetime
from typing import Dict, Optional, Tuple

from pydantic import BaseModel, ConfigDict

from models import RoomState


class VoteView(BaseModel):
    model_config = ConfigDict(frozen=True)

    username: str
    scores: Dict[str, int]
    locked_in: bool = False
    submitted_at: Optional[datetime] = None

    def score_for(self, option: str) -> int:
        """沒有填的選項一律視為 0"""
        return self.scores.get(option, 0)


class RoomView(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    code: str
    owner: str
    participants: Tuple[str, ...]
    options: Tuple[str, ...]
    votes: Dict[str, VoteView]
    locked_in: Tuple[str, ...]
    state: RoomState
    created_at: datetime
    closed_at: Optional[datetime] = None
    result_id: Optional[str] = None

    @property
    def is_open(self) -> bool:
        return self.state == RoomState.OPEN

    def is_owner(self, identity: str) -> bool:
        return self.owner == identity

    def has_participant(self, identity: str) -> bool:
        return identity in self.participants


class BallotEntry(BaseModel):
    model_config = ConfigDict(frozen=True)

    option: str
    score: int


class BallotView(BaseModel):
    """單一參與者看到的投票單：每個選項一列，沒填的是 0"""
    model_config = ConfigDict(frozen=True)

    room_id: str
    username: str
    entries: Tuple[BallotEntry, ...]
    submitted: bool
    locked_in: bool


class RankedOption(BaseModel):
    model_config = ConfigDict(frozen=True)

    option: str
    score: int


class ResultView(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    room_id: str
    created_by: str
    ranking: Tuple[RankedOption, ...]
    created_at: datetime
