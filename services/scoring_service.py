"""
計分服務：把所有人的投票彙整成最終排名

純計算邏輯，只在 Room 關閉時呼叫一次
"""
from typing import Dict, Iterable, List, Mapping, Sequence

from schemas import RankedOption
from services.ballot_service import read_score


def aggregate_scores(options: Sequence[str],
                     submissions: Iterable[Mapping[str, int]]) -> Dict[str, int]:
    """
    計算每個選項的總分

    規則：
    - 總分 = 所有投票中該選項分數的加總
    - 投票裡沒有的選項算 0（例如投票之後才新增的選項）
    - 沒投票的參與者對所有選項都貢獻 0
    - 不屬於 options 的 key 直接忽略

    參數：
        options: 房間的選項（依加入順序）
        submissions: 每位投票者的 {選項: 分數}

    返回：
        {選項: 總分}，涵蓋所有 options

    範例：
        options = ["pizza", "sushi"]
        submissions = [{"pizza": 5, "sushi": 2}, {"pizza": 1, "sushi": 5}]
        -> {"pizza": 6, "sushi": 7}
    """
    totals = {option: 0 for option in options}
    for scores in submissions:
        for option in options:
            totals[option] += read_score(scores, option)
    return totals


def rank_options(options: Sequence[str],
                 submissions: Iterable[Mapping[str, int]]) -> List[RankedOption]:
    """
    產生最終排名

    排序：
    1. 總分由高到低
    2. 同分時，先加入房間的選項排前面（依 options 的位置，不依 dict 走訪順序）

    同樣的 (options, submissions) 永遠得到同樣的排名。

    範例：
        options = ["a", "b"]，兩者都是 3 分
        -> [RankedOption("a", 3), RankedOption("b", 3)]
    """
    totals = aggregate_scores(options, submissions)
    ordered = sorted(
        enumerate(options),
        key=lambda item: (-totals[item[1]], item[0])
    )
    return [RankedOption(option=option, score=totals[option]) for _, option in ordered]
