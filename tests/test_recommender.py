"""推分推荐生成のテスト。"""

from __future__ import annotations

from typing import Optional

import pytest

from tier_recommender.models import MergedChart, PlayRecord, TierInfo
from tier_recommender.recommender import (
    difficulty_value,
    overall_stats,
    recommend_by_tier,
    recommend_flat,
    target_name,
    tier_value,
)
from tier_recommender.tier_store import tier_names


def _chart(
    song_id: int,
    level: str = "14",
    tier: Optional[str] = None,
    fit_diff: Optional[float] = None,
    ds: float = 14.0,
    achievement: Optional[float] = None,
    range_min: Optional[str] = None,
    range_max: Optional[str] = None,
    tier_level: Optional[str] = None,
) -> MergedChart:
    record = None
    if achievement is not None:
        record = PlayRecord(achievement, 0, None, None, None, 0)
    tier_info = None
    if tier is not None:
        tier_info = TierInfo(tier_level or level, tier, range_min=range_min, range_max=range_max)
    return MergedChart(
        song_id=song_id,
        title=f"Song {song_id}",
        song_type="DX",
        official_difficulty=ds,
        level=level,
        slot=3,
        slot_label="Master",
        fit_diff=fit_diff,
        avg_achievement=None,
        record=record,
        tier=tier_info,
    )


@pytest.mark.light
def test_tier_value_mapping():
    assert tier_value("13+", "14") == -1
    assert tier_value("14", "14+") == -1
    assert tier_value("14", "14") == 99
    assert tier_value("0", "14") == 0
    assert tier_value("7", "14+") == 7
    assert tier_value("range", "14") == 99
    assert tier_value("emoji", "14") == 99
    assert tier_value(None, "14") == 99


@pytest.mark.light
def test_difficulty_value_prefers_fit_diff():
    assert difficulty_value(_chart(1, fit_diff=14.3, ds=14.0)) == 14.3
    assert difficulty_value(_chart(1, ds=14.6)) == 14.6


@pytest.mark.light
def test_target_name():
    assert target_name(100.9) == "100.9%"
    assert target_name(100.8) == "100.8%"
    assert target_name(100.7) == "100.7%"
    assert target_name(100.5) == "100.5%（鸟加）"


@pytest.mark.light
def test_recommend_by_tier_sorts_by_fit_diff():
    """档位内が拟合定数の昇順に並ぶことを確認する。"""
    charts = [
        _chart(1, tier="3", fit_diff=14.3),
        _chart(2, tier="3", fit_diff=14.1),
        _chart(3, tier="3", fit_diff=14.2),
    ]
    result = recommend_by_tier(charts, 100.7)
    assert [c.fit_diff for c in result["14"]["3"].recommendations] == [14.1, 14.2, 14.3]


@pytest.mark.light
def test_recommend_by_tier_falls_back_to_official_difficulty():
    charts = [
        _chart(1, tier="4", fit_diff=14.5),
        _chart(2, tier="4", ds=14.2),
    ]
    result = recommend_by_tier(charts, 100.7)
    assert [c.song_id for c in result["14"]["4"].recommendations] == [2, 1]


@pytest.mark.light
def test_recommend_by_tier_range_orders_by_range_min_first():
    """範囲档は拟合定数に関わらず下限档位の順に並ぶことを確認する。"""
    a = _chart(1, tier="range", fit_diff=14.0, range_min="2", range_max="5")
    b = _chart(2, tier="range", fit_diff=14.6, range_min="0", range_max="3")
    c = _chart(3, tier="range", fit_diff=14.1, range_min="13+", range_max="1")
    d = _chart(4, tier="range", fit_diff=14.2, range_min="0", range_max="2")

    result = recommend_by_tier([a, b, c, d], 100.7)
    assert [x.song_id for x in result["14"]["range"].recommendations] == [3, 4, 2, 1]


@pytest.mark.light
def test_recommend_by_tier_aggregates():
    """档位集計（total/completed/平均達成率）を確認する。"""
    charts = [
        _chart(1, tier="5", achievement=99.5),
        _chart(2, tier="5", achievement=101.0),
        _chart(3, tier="5"),
        _chart(4, tier="5"),
        _chart(5, tier="5"),
    ]
    bucket = recommend_by_tier(charts, 100.7)["14"]["5"]

    assert bucket.total == 5
    assert bucket.completed == 1
    assert bucket.average_achievement == pytest.approx(100.25)
    assert [c.song_id for c in bucket.recommendations] == [1, 3, 4, 5]


@pytest.mark.light
def test_recommend_by_tier_covers_every_tier_and_ignores_unclassified():
    charts = [
        _chart(1),
        _chart(2, level="14+", tier="14", achievement=100.0),
    ]
    result = recommend_by_tier(charts, 100.7)

    assert tuple(result["14"]) == tier_names("14")
    assert tuple(result["14+"]) == tier_names("14+")
    assert sum(b.total for b in result["14"].values()) == 0
    assert result["14"]["0"].average_achievement is None

    floor = result["14+"]["14"]
    assert floor.total == 1
    assert floor.average_achievement == 100.0
    assert [c.song_id for c in floor.recommendations] == [2]


@pytest.mark.light
def test_recommend_by_tier_threshold_is_inclusive():
    charts = [_chart(1, tier="1", achievement=100.7), _chart(2, tier="1", achievement=100.6999)]
    bucket = recommend_by_tier(charts, 100.7)["14"]["1"]
    assert bucket.completed == 1
    assert [c.song_id for c in bucket.recommendations] == [2]


@pytest.mark.light
def test_recommend_flat_orders_by_tier_then_difficulty():
    """鸟加推荐が档位順（範囲档は下限、未分類は最後）→ 難易度順に並ぶことを確認する。"""
    charts = [
        _chart(1, tier="3", fit_diff=14.1),
        _chart(2, tier="range", fit_diff=14.0, range_min="3", range_max="6"),
        _chart(3, tier="13+", fit_diff=14.5),
        _chart(4, fit_diff=13.9),
        _chart(5, tier="emoji", fit_diff=13.8),
        _chart(6, tier="0", ds=14.0, achievement=100.5),
        _chart(7, tier="0", ds=14.1, achievement=100.2),
    ]

    result = recommend_flat(charts)
    level = result["14"]

    assert [c.song_id for c in level.recommendations] == [3, 7, 2, 1, 5, 4]
    assert level.total == 7
    assert level.completed == 1
    assert level.uncompleted == 6
    assert level.progress_percent == "14.3"
    assert level.average_achievement == "100.3500"


@pytest.mark.light
def test_recommendations_use_level_of_tier_classification():
    """公式レベルと分档のレベルが異なる譜面は、分档側のレベルで集計・並び替えされることを確認する。"""
    charts = [
        _chart(1, level="14", tier="14", tier_level="14+", fit_diff=14.5),
        _chart(2, level="14", tier="0", fit_diff=14.0),
        _chart(3, level="14+", tier="range", tier_level="14", range_min="13+", range_max="2", fit_diff=14.8),
        _chart(4, level="14+", tier="1", fit_diff=14.6),
    ]

    by_tier = recommend_by_tier(charts)

    assert sum(bucket.total for tiers in by_tier.values() for bucket in tiers.values()) == 4
    assert [c.song_id for c in by_tier["14+"]["14"].recommendations] == [1]
    assert [c.song_id for c in by_tier["14"]["0"].recommendations] == [2]
    assert [c.song_id for c in by_tier["14"]["range"].recommendations] == [3]
    assert by_tier["14"]["13+"].total == 0

    flat = recommend_flat(charts)

    assert [c.song_id for c in flat["14"].recommendations] == [1, 2]
    assert [c.song_id for c in flat["14+"].recommendations] == [3, 4]


@pytest.mark.light
def test_recommend_flat_empty_level():
    result = recommend_flat([_chart(1, tier="1")])
    empty = result["14+"]
    assert empty.total == 0
    assert empty.progress_percent == "0.0"
    assert empty.average_achievement is None
    assert empty.recommendations == []


@pytest.mark.light
def test_overall_stats_scenario():
    """未プレイを平均に含めないことを確認する。"""
    charts = [_chart(1), _chart(2, achievement=100.8), _chart(3, achievement=99.0)]
    stats = overall_stats(charts, 100.7)

    assert stats.total == 3
    assert stats.completed == 1
    assert stats.uncompleted == 2
    assert stats.progress_percent == "33.3"
    assert stats.average_achievement == "99.9000"


@pytest.mark.light
def test_overall_stats_without_records():
    stats = overall_stats([], 100.7)
    assert stats.total == 0
    assert stats.progress_percent == "0.0"
    assert stats.average_achievement is None
