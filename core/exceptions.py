"""
自定義異常類別

集中管理所有業務邏輯異常，方便呼叫端（HTTP 層）統一處理

每個異常都帶有 kind，對應呼叫端要轉換的錯誤種類：
not_found / forbidden / conflict / invalid_input / locked /
room_closed / store_unavailable / cancelled
"""


class QuikVoteException(Exception):
    """所有投票引擎異常的基類"""
    kind = "error"


# ============ 找不到資源 ============

class NotFound(QuikVoteException):
    """Room / Result 的 id 或 code 不存在"""
    kind = "not_found"


class RoomNotFound(NotFound):
    """房間不存在"""
    def __init__(self, room_ref):
        self.room_ref = room_ref
        super().__init__(f"Room {room_ref} not found")


class ResultNotFound(NotFound):
    """結果不存在"""
    def __init__(self, result_id):
        self.result_id = result_id
        super().__init__(f"Result {result_id} not found")


# ============ 權限 ============

class Forbidden(QuikVoteException):
    """身份沒有權限執行此操作"""
    kind = "forbidden"


class NotParticipant(Forbidden):
    """不是房間參與者"""
    def __init__(self, identity, room_id):
        self.identity = identity
        self.room_id = room_id
        super().__init__(f"{identity} is not a participant of room {room_id}")


class NotRoomOwner(Forbidden):
    """不是房主（只有房主可以關閉房間）"""
    def __init__(self, identity, room_id):
        self.identity = identity
        self.room_id = room_id
        super().__init__(f"{identity} is not the owner of room {room_id}")


# ============ 衝突 ============

class Conflict(QuikVoteException):
    kind = "conflict"


class OptionAlreadyExists(Conflict):
    """選項已存在（大小寫視為不同）"""
    def __init__(self, option):
        self.option = option
        super().__init__(f"Option {option!r} already exists")


class NoVoteSubmitted(Conflict):
    """還沒投票就想 lock in"""
    def __init__(self, identity):
        self.identity = identity
        super().__init__(f"{identity} has not submitted a vote yet")


# ============ 輸入錯誤 ============

class InvalidInput(QuikVoteException):
    """空選項、未知選項的分數、格式錯誤的分數"""
    kind = "invalid_input"


# ============ 鎖定 / 狀態 ============

class Locked(QuikVoteException):
    kind = "locked"


class VoteLocked(Locked):
    """參與者已 lock in，不能再修改投票"""
    def __init__(self, identity):
        self.identity = identity
        super().__init__(f"Vote of {identity} is locked in")


class RoomClosed(QuikVoteException):
    """房間已關閉，任何 open-only 的修改都不允許"""
    kind = "room_closed"

    def __init__(self, room_id):
        self.room_id = room_id
        super().__init__(f"Room {room_id} is not open")


class InvalidStateTransition(QuikVoteException):
    """非法的狀態轉換"""
    kind = "conflict"


# ============ 儲存層 / 取消 ============

class StoreUnavailable(QuikVoteException):
    """底層儲存失敗或逾時（唯一值得呼叫端重試的錯誤）"""
    kind = "store_unavailable"


class DeadlineExceeded(StoreUnavailable):
    """呼叫端的截止時間在 commit 前已過"""
    pass


class OperationCancelled(QuikVoteException):
    """呼叫端在 commit 前取消了操作"""
    kind = "cancelled"
