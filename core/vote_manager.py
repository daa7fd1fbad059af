"""
Vote Manager：投票帳本

職責：
1. 提交 / 覆寫投票（lock in 之前可以隨意修改）
2. Lock in（凍結自己的投票，不可撤回）
3. 查詢參與者自己的投票單

每位參與者最多一份投票；重新提交是整份覆寫，不是合併。
"""
from typing import Any, Mapping, Optional
import logging

from schemas import BallotView, VoteView
from core.deadline import Deadline
from core.exceptions import NoVoteSubmitted, RoomNotFound, VoteLocked
from core.state_machine import RoomStateMachine
from core.store import RoomStore
from database import transactional
from services.ballot_service import build_ballot_entries, validate_scores
from services.registry_service import require_participant

logger = logging.getLogger(__name__)


class VoteManager:
    """投票帳本管理器"""

    @staticmethod
    @transactional
    def submit_vote(store: RoomStore, room_id: str, identity: str,
                    scores: Mapping[str, Any],
                    *, deadline: Optional[Deadline] = None) -> VoteView:
        """
        提交投票（整份覆寫）

        前置條件：
        1. Room 必須存在且為 OPEN
        2. identity 必須是參與者
        3. identity 尚未 lock in
        4. scores 的每個 key 都是目前的選項，value 是 >= 0 的整數

        沒填的選項之後讀取時視為 0；全 0 或空的投票也合法。

        參數：
            store: RoomStore
            room_id: Room id
            identity: 投票者
            scores: {選項: 分數}

        返回：
            寫入後的投票

        異常：
            RoomNotFound / RoomClosed
            NotParticipant: 不是參與者
            InvalidInput: 未知選項或分數格式錯誤
            VoteLocked: 已 lock in
        """
        room = store.find_by_id(room_id)
        if not room:
            raise RoomNotFound(room_id)
        RoomStateMachine.require_open(room)
        require_participant(room.participants, identity, room_id)

        current = room.votes.get(identity)
        if current is not None and current.locked_in:
            raise VoteLocked(identity)

        cleaned = validate_scores(room.options, scores)

        if not store.upsert_vote(room_id, identity, cleaned):
            raise VoteLocked(identity)

        store.log_event(room_id, "VOTE_SUBMITTED", {"username": identity, "scores": cleaned})
        logger.info(
            f"Vote {'replaced' if current else 'created'} for {identity} in room {room_id}"
        )

        return store.find_by_id(room_id).votes[identity]

    @staticmethod
    @transactional
    def lock_in(store: RoomStore, room_id: str, identity: str,
                *, deadline: Optional[Deadline] = None) -> VoteView:
        """
        Lock in：凍結自己的投票

        前置條件：
        1. Room 必須存在且為 OPEN
        2. identity 必須是參與者
        3. identity 已經提交過投票（全 0 也算）

        冪等：已經 lock in 再呼叫一次直接成功。

        返回：
            已 lock in 的投票

        異常：
            RoomNotFound / RoomClosed
            NotParticipant: 不是參與者
            NoVoteSubmitted: 還沒投票（Conflict）
        """
        room = store.find_by_id(room_id)
        if not room:
            raise RoomNotFound(room_id)
        RoomStateMachine.require_open(room)
        require_participant(room.participants, identity, room_id)

        already_locked = identity in room.locked_in

        if not store.add_lock_in(room_id, identity):
            raise NoVoteSubmitted(identity)

        if not already_locked:
            store.log_event(room_id, "VOTE_LOCKED", {"username": identity})
            logger.info(f"{identity} locked in vote for room {room_id}")

        return store.find_by_id(room_id).votes[identity]

    @staticmethod
    @transactional
    def get_ballot(store: RoomStore, room_id: str, identity: str,
                   *, deadline: Optional[Deadline] = None) -> BallotView:
        """
        取得參與者自己的投票單

        每個選項一列（依加入順序），沒填的分數是 0。
        Room 關閉後仍可查看。

        異常：
            RoomNotFound: Room 不存在
            NotParticipant: 不是參與者
        """
        room = store.find_by_id(room_id)
        if not room:
            raise RoomNotFound(room_id)
        require_participant(room.participants, identity, room_id)

        vote = room.votes.get(identity)
        return BallotView(
            room_id=room_id,
            username=identity,
            entries=build_ballot_entries(room.options, vote.scores if vote else None),
            submitted=vote is not None,
            locked_in=bool(vote and vote.locked_in),
        )
