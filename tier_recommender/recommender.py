"""
推分推荐の生成モジュール。

merger が生成した MergedChart のリストから、以下を生成する。

1. recommend_by_tier
   -> {level: {tier: RecommendationBucket}}  （档位ごとにグループ化）

2. recommend_flat
   -> {level: LevelRecommendation}  （鸟加向け、档位順に並べた一覧）

3. overall_stats
   -> OverallStats  （全体の達成状況）

並び替えはすべて安定ソートで、同順位は結合時の順序を保つ。
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional

from tier_recommender.models import LEVELS, MergedChart
from tier_recommender.tier_store import FLOOR_TIERS, NUMERIC_TIERS, RANGE_TIER, tier_names

# 目標達成率の候補
TARGET_THRESHOLDS = (100.5, 100.7, 100.8, 100.9)

BIRD_PLUS_THRESHOLD = 100.5

# 档位が無い・数値档以外の譜面の並び順（最後尾）
UNRANKED_VALUE = 99


@dataclass
class RecommendationBucket:
    """
    1档位分の推荐結果。

    Attributes:
        total: 档位内の譜面数（達成済みを含む）。
        completed: 目標を達成した譜面数。
        average_achievement: 成績のある譜面の平均達成率。無ければ None。
        recommendations: 未達成譜面（推荐順）。
    """

    total: int
    completed: int
    average_achievement: Optional[float]
    recommendations: List[MergedChart] = field(default_factory=list)


@dataclass
class LevelRecommendation:
    """
    1レベル分の鸟加推荐結果。

    progress_percent は小数1桁、average_achievement は小数4桁の文字列。
    """

    total: int
    completed: int
    uncompleted: int
    progress_percent: str
    average_achievement: Optional[str]
    recommendations: List[MergedChart] = field(default_factory=list)


@dataclass(frozen=True)
class OverallStats:
    """全体の達成状況。"""

    total: int
    completed: int
    uncompleted: int
    progress_percent: str
    average_achievement: Optional[str]


def target_name(threshold: float) -> str:
    """目標達成率の表示名を返す。"""
    if threshold >= 100.9:
        return "100.9%"
    if threshold >= 100.8:
        return "100.8%"
    if threshold >= 100.7:
        return "100.7%"
    return "100.5%（鸟加）"


def tier_value(tier: Optional[str], level: str) -> int:
    """
    档位名を並び替え用の数値へ変換する。

    そのレベルの最低档 → -1、"0"〜"7" → その数値、それ以外（range/emoji/未分類） → 99。
    """
    if tier is not None and tier == FLOOR_TIERS.get(level):
        return -1
    if tier in NUMERIC_TIERS:
        return int(tier)
    return UNRANKED_VALUE


def difficulty_value(chart: MergedChart) -> float:
    """拟合定数、無ければ公式定数、どちらも無ければ 99 を返す。"""
    if chart.fit_diff is not None:
        return chart.fit_diff
    if chart.official_difficulty is not None:
        return chart.official_difficulty
    return UNRANKED_VALUE


def is_completed(chart: MergedChart, target_threshold: float) -> bool:
    """成績があり、達成率が目標以上であれば True。"""
    return chart.record is not None and chart.record.achievement >= target_threshold


def _average_achievement(charts: Iterable[MergedChart]) -> Optional[float]:
    """成績のある譜面の平均達成率。成績が1件も無ければ None。"""
    achievements = [c.record.achievement for c in charts if c.record is not None]
    if not achievements:
        return None
    return sum(achievements) / len(achievements)


def _progress_percent(completed: int, total: int) -> str:
    if total == 0:
        return "0.0"
    return f"{completed / total * 100:.1f}"


def _format_average(average: Optional[float]) -> Optional[str]:
    if average is None:
        return None
    return f"{average:.4f}"


def _sort_tier_value(chart: MergedChart) -> int:
    """
    鸟加推荐用の档位値。範囲档は下限档位で数える。

    档位値は分档側のレベルで求める（公式レベルと分档のレベルが異なる譜面があるため）。
    """
    if chart.tier is None:
        return UNRANKED_VALUE
    if chart.tier.tier == RANGE_TIER:
        return tier_value(chart.tier.range_min, chart.tier.level)
    return tier_value(chart.tier.tier, chart.tier.level)


def recommend_by_tier(
    charts: List[MergedChart],
    target_threshold: float = 100.7,
) -> Dict[str, Dict[str, RecommendationBucket]]:
    """
    档位ごとに未達成譜面の推荐を生成する。

    - 成績が無い、または達成率が目標未満の譜面を推荐対象とする
    - 範囲档は下限档位 → 拟合定数の順、その他の档位は拟合定数の順に並べる

    Args:
        charts: 結合済みの譜面リスト。
        target_threshold: 目標達成率。

    Returns:
        {level: {tier: RecommendationBucket}}。全レベル・全档位を含む。
    """
    result: Dict[str, Dict[str, RecommendationBucket]] = {}

    for level in LEVELS:
        # 分档のレベルでグループ化する（公式レベルが変わった譜面も旧レベルの档位に残る）
        level_charts = [c for c in charts if c.tier is not None and c.tier.level == level]
        result[level] = {}

        for tier in tier_names(level):
            tier_charts = [c for c in level_charts if c.tier.tier == tier]
            untargeted = [c for c in tier_charts if not is_completed(c, target_threshold)]

            if tier == RANGE_TIER:
                untargeted.sort(
                    key=lambda c: (tier_value(c.tier.range_min, c.tier.level), difficulty_value(c))
                )
            else:
                untargeted.sort(key=difficulty_value)

            result[level][tier] = RecommendationBucket(
                total=len(tier_charts),
                completed=len(tier_charts) - len(untargeted),
                average_achievement=_average_achievement(tier_charts),
                recommendations=untargeted,
            )

    return result


def recommend_flat(
    charts: List[MergedChart],
    target_threshold: float = BIRD_PLUS_THRESHOLD,
) -> Dict[str, LevelRecommendation]:
    """
    鸟加推荐（档位でグループ化せず、档位順 → 拟合定数順に並べた一覧）を生成する。

    範囲档の譜面は下限档位の位置に並べ、未分類の譜面は最後に並べる。

    Args:
        charts: 結合済みの譜面リスト。
        target_threshold: 目標達成率（既定は鸟加の 100.5）。

    Returns:
        {level: LevelRecommendation}。
    """
    result: Dict[str, LevelRecommendation] = {}

    for level in LEVELS:
        level_charts = [c for c in charts if c.level == level]
        untargeted = [c for c in level_charts if not is_completed(c, target_threshold)]
        untargeted.sort(key=lambda c: (_sort_tier_value(c), difficulty_value(c)))

        total = len(level_charts)
        completed = total - len(untargeted)

        result[level] = LevelRecommendation(
            total=total,
            completed=completed,
            uncompleted=len(untargeted),
            progress_percent=_progress_percent(completed, total),
            average_achievement=_format_average(_average_achievement(level_charts)),
            recommendations=untargeted,
        )

    return result


def overall_stats(charts: List[MergedChart], target_threshold: float = 100.7) -> OverallStats:
    """
    全譜面の達成状況を集計する。

    平均達成率は成績のある譜面のみで計算する（未プレイは 0 として数えない）。
    """
    total = len(charts)
    completed = sum(1 for c in charts if is_completed(c, target_threshold))

    return OverallStats(
        total=total,
        completed=completed,
        uncompleted=total - completed,
        progress_percent=_progress_percent(completed, total),
        average_achievement=_format_average(_average_achievement(charts)),
    )
