"""
回合隨機服務：抽出間諜與地點

純函式，不修改 Room；由 RoomManager 套用結果。

使用作業系統熵源（random.SystemRandom），
不需要密碼學等級，但結果不能從玩家看得到的狀態推算出來。
"""
import random
from typing import Sequence

_rng = random.SystemRandom()


def pick_spy(players: Sequence) -> int:
    """
    在 [0, len(players)) 中均勻抽出間諜的索引

    異常：
        ValueError: 沒有玩家
    """
    if not players:
        raise ValueError("Cannot pick a spy from an empty player list")
    return _rng.randrange(len(players))


def pick_location(catalog: Sequence[str]) -> str:
    """
    從地點題庫中均勻抽出一個地點

    異常：
        ValueError: 題庫是空的
    """
    if not catalog:
        raise ValueError("Location catalog is empty")
    return _rng.choice(list(catalog))
