"""
Room Manager：管理 Room 的完整生命週期

職責：
1. 建立 Room（房主自動成為第一位參與者）
2. 加入 Room（依房間代碼）
3. 新增選項
4. 關閉 Room 並產生 Result（狀態轉換 + 計分）
5. 查詢 Room / Result

原則：
- 所有修改都是單一原子的條件式 store 操作，不在行程內讀改寫
- 所有狀態變更經過 RoomStateMachine
- 先檢查輸入與權限（參與者、選項只增不減，讀到就不會失效），
  store 寫入時才鎖定 Room 並重新檢查 OPEN
"""
from typing import Optional, Tuple
import logging

from models import RoomState
from schemas import ResultView, RoomView
from core.deadline import Deadline
from core.exceptions import (
    NotRoomOwner,
    OptionAlreadyExists,
    ResultNotFound,
    RoomNotFound,
    StoreUnavailable,
)
from core.state_machine import RoomStateMachine
from core.store import RoomStore
from database import get_settings, transactional
from services.naming_service import generate_room_code, normalize_room_code
from services.registry_service import (
    has_option,
    require_participant,
    validate_identity,
    validate_option,
)
from services.scoring_service import rank_options

logger = logging.getLogger(__name__)


class RoomManager:
    """Room 生命週期管理器"""

    @staticmethod
    @transactional
    def create_room(store: RoomStore, owner: str,
                    *, deadline: Optional[Deadline] = None) -> RoomView:
        """
        建立新房間

        流程：
        1. 生成房間代碼，碰撞就重新生成
        2. 建立 Room（state = OPEN，房主為第一位參與者）
        3. 記錄事件

        參數：
            store: RoomStore
            owner: 房主身份
            deadline: 呼叫端的截止時間 / 取消訊號

        返回：
            新房間的快照

        異常：
            InvalidInput: 身份不合法
            StoreUnavailable: 多次重試仍拿不到唯一代碼
        """
        validate_identity(owner)

        settings = get_settings()
        room_id = None
        for _ in range(settings.room_code_max_attempts):
            code = generate_room_code(settings.room_code_length)
            room_id = store.insert(owner, code)
            if room_id:
                break
            logger.warning(f"Room code collision detected, regenerating: {code}")

        if not room_id:
            raise StoreUnavailable("Could not allocate a unique room code")

        store.log_event(room_id, "ROOM_CREATED", {"code": code, "owner": owner})
        logger.info(f"Created room {room_id} with code {code} for {owner}")

        return store.find_by_id(room_id)

    @staticmethod
    @transactional
    def join(store: RoomStore, code: str, identity: str,
             *, deadline: Optional[Deadline] = None) -> RoomView:
        """
        以房間代碼加入 Room

        前置條件：
        1. Room 必須存在
        2. Room 狀態必須是 OPEN

        已經是參與者時直接成功，不會重複加入。

        返回：
            加入後的房間快照

        異常：
            RoomNotFound: 代碼不存在
            RoomClosed: Room 已關閉
        """
        validate_identity(identity)

        room = store.find_by_code(normalize_room_code(code))
        if not room:
            raise RoomNotFound(f"with code {code}")

        # store 內部會鎖定 Room 並重新檢查 OPEN
        appended = store.conditional_append_participant(room.id, identity)
        if appended:
            store.log_event(room.id, "PARTICIPANT_JOINED", {"username": identity})
            logger.info(f"{identity} joined room {room.id}")

        return store.find_by_id(room.id)

    @staticmethod
    @transactional
    def add_option(store: RoomStore, room_id: str, identity: str, option: str,
                   *, deadline: Optional[Deadline] = None) -> Tuple[str, ...]:
        """
        新增選項

        前置條件：
        1. 選項不是空字串
        2. Room 必須存在且為 OPEN
        3. identity 必須是參與者
        4. 選項尚未存在（大小寫敏感）

        返回：
            新增後的完整選項列表（呼叫端不需要再讀一次）

        異常：
            InvalidInput: 空選項
            RoomNotFound / RoomClosed
            NotParticipant: 不是參與者（Forbidden）
            OptionAlreadyExists: 選項重複（Conflict）
        """
        validate_option(option)

        room = store.find_by_id(room_id)
        if not room:
            raise RoomNotFound(room_id)
        RoomStateMachine.require_open(room)
        require_participant(room.participants, identity, room_id)
        if has_option(room.options, option):
            raise OptionAlreadyExists(option)

        if not store.conditional_append_option(room_id, option, identity):
            raise OptionAlreadyExists(option)

        store.log_event(room_id, "OPTION_ADDED", {"option": option, "username": identity})
        logger.info(f"{identity} added option {option!r} to room {room_id}")

        return store.find_by_id(room_id).options

    @staticmethod
    @transactional
    def close(store: RoomStore, room_id: str, identity: str,
              *, deadline: Optional[Deadline] = None) -> ResultView:
        """
        關閉房間並產生 Result（狀態轉換 OPEN -> CLOSED）

        前置條件：
        1. Room 必須存在
        2. identity 必須是房主
        3. Room 狀態必須是 OPEN

        流程：
        1. 條件式關閉（同時多個 close 只有一個會贏）
        2. 讀取關閉當下的選項與投票快照
        3. 計算排名
        4. 建立 Result 並讓 Room 指向它

        狀態轉換、Result 與 room.result_id 在同一個 transaction 內 commit，
        所以 Result 存在若且唯若 Room 已關閉。

        返回：
            Result 快照

        異常：
            RoomNotFound: Room 不存在
            NotRoomOwner: 不是房主（Forbidden）
            RoomClosed: Room 已關閉，或另一個 close 先贏了
        """
        room = store.find_by_id(room_id)
        if not room:
            raise RoomNotFound(room_id)
        if not room.is_owner(identity):
            raise NotRoomOwner(identity, room_id)
        RoomStateMachine.require_open(room)

        RoomStateMachine.transition(room_id, RoomState.CLOSED, store)

        # 關閉之後所有修改都會被擋下，這就是最終快照
        snapshot = store.find_by_id(room_id)
        ranking = rank_options(
            snapshot.options,
            [vote.scores for vote in snapshot.votes.values()]
        )

        result_id = store.create_result(room_id, identity, ranking)
        store.log_event(room_id, "ROOM_CLOSED", {
            "result_id": result_id,
            "participants": len(snapshot.participants),
            "votes": len(snapshot.votes),
        })
        logger.info(
            f"Room {room_id} closed by {identity}: "
            f"{len(snapshot.options)} options, {len(snapshot.votes)} votes, result {result_id}"
        )

        return store.find_result(result_id)

    @staticmethod
    @transactional
    def get_room(store: RoomStore, room_id: str,
                 *, deadline: Optional[Deadline] = None) -> RoomView:
        """
        透過 id 取得 Room 快照

        異常：
            RoomNotFound: Room 不存在
        """
        room = store.find_by_id(room_id)
        if not room:
            raise RoomNotFound(room_id)
        return room

    @staticmethod
    @transactional
    def get_room_by_code(store: RoomStore, code: str,
                         *, deadline: Optional[Deadline] = None) -> RoomView:
        """
        透過房間代碼取得 Room 快照

        異常：
            RoomNotFound: Room 不存在
        """
        room = store.find_by_code(normalize_room_code(code))
        if not room:
            raise RoomNotFound(f"with code {code}")
        return room

    @staticmethod
    @transactional
    def get_result(store: RoomStore, result_id: str,
                   *, deadline: Optional[Deadline] = None) -> ResultView:
        """
        取得 Result

        異常：
            ResultNotFound: Result 不存在
        """
        result = store.find_result(result_id)
        if not result:
            raise ResultNotFound(result_id)
        return result
