"""
データモデル定義モジュール。

プローバーAPIの取得結果・分档データを結合した結果を推荐処理へ渡すための
モデルを定義する。いずれも結合のたびに新しく生成し、生成後は変更しない。
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Mapping, Optional

# 対象とする難易度スロット（3 = Master, 4 = Re:Master）
MASTER_SLOT = 3
RE_MASTER_SLOT = 4
SLOT_LABELS = {
    MASTER_SLOT: "Master",
    RE_MASTER_SLOT: "Re:Master",
}

# 対象とする公式レベル
LEVELS = ("14", "14+")


@dataclass(frozen=True)
class TierInfo:
    """
    1譜面の分档情報。

    Attributes:
        level: 分档の等級バケット（"14" / "14+"）。
        tier: 档位名。
        range_min: 範囲档の下限档位名（範囲档のみ）。
        range_max: 範囲档の上限档位名（範囲档のみ）。
    """

    level: str
    tier: str
    range_min: Optional[str] = None
    range_max: Optional[str] = None


@dataclass(frozen=True)
class FitDifficulty:
    """拟合定数と平均達成率。"""

    fit_diff: float
    avg_achievement: Optional[float]


def _marker(value: Any) -> Optional[str]:
    """fc/fs/rate の空文字を None に揃える。"""
    if value is None:
        return None
    s = str(value).strip()
    return s or None


@dataclass(frozen=True)
class PlayRecord:
    """
    1譜面分のプレイ成績。

    Attributes:
        achievement: 達成率(%)。
        dx_score: DXスコア。
        full_combo: fc / fcp / ap / app。無ければ None。
        full_sync: sync / fs / fsp / fsd / fsdp。無ければ None。
        rank: 評価ランク(sssp 等)。
        rating: 単曲レーティング。
    """

    achievement: float
    dx_score: int
    full_combo: Optional[str]
    full_sync: Optional[str]
    rank: Optional[str]
    rating: int

    @classmethod
    def from_api(cls, record: Mapping[str, Any]) -> "PlayRecord":
        """プローバーAPIの成績辞書から PlayRecord を生成する。"""
        return cls(
            achievement=float(record.get("achievements") or 0.0),
            dx_score=int(record.get("dxScore") or 0),
            full_combo=_marker(record.get("fc")),
            full_sync=_marker(record.get("fs")),
            rank=_marker(record.get("rate")),
            rating=int(record.get("ra") or 0),
        )


@dataclass(frozen=True)
class MergedChart:
    """
    曲情報・拟合定数・成績・分档を結合した1譜面分のレコード。

    fit_diff/avg_achievement/record/tier はデータが存在しない場合 None。
    """

    song_id: int
    title: str
    song_type: str
    official_difficulty: float
    level: str
    slot: int
    slot_label: str
    fit_diff: Optional[float]
    avg_achievement: Optional[float]
    record: Optional[PlayRecord]
    tier: Optional[TierInfo]
