"""
Room 狀態機

集中管理所有狀態轉換：

    OPEN ──close──> CLOSED

- OPEN：建立時的初始狀態，可以加入參與者 / 選項、投票、lock in
- CLOSED：終止狀態，Room 和 Result 都不可再變
- 只能往前，不能倒退
"""
import logging
from typing import Dict, FrozenSet

from models import RoomState
from core.exceptions import InvalidStateTransition, RoomClosed

logger = logging.getLogger(__name__)


class RoomStateMachine:
    """Room 狀態轉換規則"""

    ALLOWED_TRANSITIONS: Dict[RoomState, FrozenSet[RoomState]] = {
        RoomState.OPEN: frozenset({RoomState.CLOSED}),
        RoomState.CLOSED: frozenset(),
    }

    @classmethod
    def can_transition(cls, current: RoomState, target: RoomState) -> bool:
        return target in cls.ALLOWED_TRANSITIONS.get(current, frozenset())

    @classmethod
    def validate_transition(cls, current: RoomState, target: RoomState,
                            room_id: str = None) -> None:
        """
        異常：
            RoomClosed: 從 CLOSED 出發的任何轉換
            InvalidStateTransition: 其他不合法的轉換
        """
        if cls.can_transition(current, target):
            return
        if current == RoomState.CLOSED:
            raise RoomClosed(room_id)
        raise InvalidStateTransition(
            f"Cannot transition room from {current.value} to {target.value}"
        )

    @staticmethod
    def require_open(room) -> None:
        """
        open-only 操作的前置條件

        參數：
            room: 任何有 id / state 屬性的物件（ORM Room 或 RoomView）

        異常：
            RoomClosed: Room 不是 OPEN
        """
        if room.state != RoomState.OPEN:
            raise RoomClosed(room.id)

    @classmethod
    def transition(cls, room_id: str, target: RoomState, store) -> None:
        """
        執行狀態轉換（單一原子條件式操作）

        目前唯一的轉換是 OPEN -> CLOSED，交給 store.conditional_close，
        由儲存層決定並發時誰贏。

        參數：
            room_id: Room id
            target: 目標狀態
            store: RoomStore

        異常：
            InvalidStateTransition: 目標不是合法的轉換
            RoomClosed: 另一個 close 已經先贏了（或 Room 本來就是 CLOSED）
        """
        cls.validate_transition(RoomState.OPEN, target, room_id)

        if not store.conditional_close(room_id):
            logger.warning(f"Room {room_id} close lost the race (already closed)")
            raise RoomClosed(room_id)

        logger.info(f"Room {room_id} transitioned to {target.value}")
