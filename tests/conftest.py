from __future__ import annotations

import sys
from pathlib import Path

import pytest

PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from tier_recommender.tier_store import default_tier_data, set_chart_tier


@pytest.fixture
def songs() -> list[dict]:
    """music_data 形式の最小曲リスト。"""
    return [
        {
            "id": "100",
            "title": "Song A",
            "type": "DX",
            "ds": [3.0, 7.0, 10.5, 14.2, 14.8],
            "level": ["3", "7", "10+", "14", "14+"],
        },
        {
            "id": "200",
            "title": "Song B",
            "type": "SD",
            "ds": [2.0, 6.0, 9.0, 13.5],
            "level": ["2", "6", "9", "13"],
        },
        {
            "id": "300",
            "title": "Song C",
            "type": "DX",
            "ds": [4.0, 8.0, 11.0, 14.6, 13.9],
            "level": ["4", "8", "11", "14+", "13+"],
        },
    ]


@pytest.fixture
def fit_stats() -> dict:
    """chart_stats の charts 部分。"""
    return {
        "100": [{}, {}, {}, {"fit_diff": 14.35, "avg": 98.1}, {"fit_diff": 14.9, "avg": 96.2}],
        "300": [{}, {}, {}, {"cnt": 10}, {}],
    }


@pytest.fixture
def records() -> list[dict]:
    """player/records の records 部分。"""
    return [
        {
            "song_id": 100,
            "level_index": 3,
            "achievements": 100.8,
            "dxScore": 2400,
            "fc": "fcp",
            "fs": "",
            "rate": "sssp",
            "ra": 315,
        },
        {
            "song_id": 300,
            "level_index": 3,
            "achievements": 99.5,
            "dxScore": 2100,
            "fc": "",
            "fs": "",
            "rate": "ss",
            "ra": 280,
        },
    ]


@pytest.fixture
def tier_data() -> dict:
    data = default_tier_data()
    set_chart_tier(100, 3, "14", "3", data)
    set_chart_tier(300, 3, "14+", "range", data, {"min": "1", "max": "4"})
    return data
