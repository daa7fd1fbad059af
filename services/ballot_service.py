"""
投票單服務：分數驗證與預設值讀取

驗證在寫入時做（選項必須存在），讀取時缺的選項一律是 0。
"""
from typing import Any, Dict, Mapping, Optional, Sequence, Tuple

from core.exceptions import InvalidInput
from schemas import BallotEntry


def validate_scores(options: Sequence[str], scores: Any) -> Dict[str, int]:
    """
    驗證一份投票

    規則：
    - scores 必須是 mapping
    - key 必須是房間目前已有的選項
    - value 必須是 >= 0 的整數（bool 不算整數）
    - 不需要涵蓋所有選項，空的 mapping 也合法

    參數：
        options: 房間目前的選項（依加入順序）
        scores: 呼叫端送來的 {選項: 分數}

    返回：
        乾淨的 dict 複本（呼叫端之後改原本的 mapping 不會影響）

    異常：
        InvalidInput: 格式錯誤、未知選項、負數或非整數分數
    """
    if not isinstance(scores, Mapping):
        raise InvalidInput("Scores must be a mapping of option to integer score")

    known = set(options)
    cleaned: Dict[str, int] = {}
    for option, score in scores.items():
        if option not in known:
            raise InvalidInput(f"Unknown option {option!r}")
        if isinstance(score, bool) or not isinstance(score, int):
            raise InvalidInput(f"Score for {option!r} must be an integer")
        if score < 0:
            raise InvalidInput(f"Score for {option!r} must be non-negative")
        cleaned[option] = score

    return cleaned


def read_score(scores: Optional[Mapping[str, int]], option: str) -> int:
    if not scores:
        return 0
    return scores.get(option, 0)


def build_ballot_entries(options: Sequence[str],
                         scores: Optional[Mapping[str, int]]) -> Tuple[BallotEntry, ...]:
    """依選項加入順序列出參與者的分數，晚加入的選項顯示 0"""
    return tuple(
        BallotEntry(option=option, score=read_score(scores, option))
        for option in options
    )
