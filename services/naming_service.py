"""
命名服務：生成 Room Code

純計算邏輯，不涉及狀態轉換
"""
import random
import string

from database import get_settings


def generate_room_code(length: int = None) -> str:
    """
    生成隨機的大寫字母房間代碼（預設 4 位）

    範例：ABCD, XYZA

    注意：
    - 不檢查唯一性（由呼叫者負責，資料表上也有 UNIQUE）
    - 26^4 = 456,976 種可能，碰撞時由 RoomManager 重新生成
    """
    length = length or get_settings().room_code_length
    return ''.join(random.choices(string.ascii_uppercase, k=length))


def normalize_room_code(code: str) -> str:
    """使用者輸入的代碼不分大小寫、忽略前後空白"""
    return (code or "").strip().upper()
