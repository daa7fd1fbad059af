"""
參與者 / 選項註冊規則

只負責「能不能加入」的判斷，不碰儲存層；
並發下的重複由 RoomStore 的條件式 append 處理。
"""
from typing import Sequence

from core.exceptions import InvalidInput, NotParticipant
from models import IDENTITY_MAX_LENGTH


def validate_identity(identity: str) -> str:
    """
    驗證身份字串

    規則：
    - 必須是非空字串
    - 長度不超過 IDENTITY_MAX_LENGTH（資料表欄位寬度）

    返回：
        原本的身份字串（不做任何正規化）

    異常：
        InvalidInput: 不符合規則
    """
    if not isinstance(identity, str) or not identity.strip():
        raise InvalidInput("Identity must be a non-empty string")
    if len(identity) > IDENTITY_MAX_LENGTH:
        raise InvalidInput("Identity is too long")
    return identity


def validate_option(option: str) -> str:
    """
    驗證選項名稱

    規則：
    - 必須是非空字串；只有空白也是合法選項
    - 不限長度
    - 大小寫敏感，原樣保存（"Pizza" 和 "pizza" 是兩個選項）

    異常：
        InvalidInput: 不符合規則
    """
    if not isinstance(option, str) or option == "":
        raise InvalidInput("Option must be a non-empty string")
    return option


def is_participant(participants: Sequence[str], identity: str) -> bool:
    return identity in participants


def require_participant(participants: Sequence[str], identity: str, room_id: str) -> None:
    if not is_participant(participants, identity):
        raise NotParticipant(identity, room_id)


def has_option(options: Sequence[str], option: str) -> bool:
    # 精確比對，不做 casefold
    return option in options
