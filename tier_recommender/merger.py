"""
曲情報・拟合定数・プレイ成績・民间分档を結合するモジュール。

Master (slot 3) と Re:Master (slot 4) のうち、公式レベルが "14" / "14+" の譜面のみを
対象に MergedChart を生成する。並び替えは recommender 側の責務とし、ここでは
曲リストの順序（曲内は slot 3 → 4）をそのまま保つ。

データの欠落（新曲で拟合定数が無い、未プレイで成績が無い等）は None として扱い、
例外にはしない。
"""

from __future__ import annotations

from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

from tier_recommender.errors import FormatError
from tier_recommender.models import (
    LEVELS,
    SLOT_LABELS,
    FitDifficulty,
    MergedChart,
    PlayRecord,
)
from tier_recommender.tier_store import chart_tier

ChartId = Tuple[int, int]


def _to_int(value: Any, what: str) -> int:
    """ID等を int に変換する。変換できない場合は FormatError。"""
    if isinstance(value, bool):
        raise FormatError(f"Invalid {what}: {value!r}")
    try:
        return int(value)
    except (TypeError, ValueError) as e:
        raise FormatError(f"Invalid {what}: {value!r}") from e


def _at(values: Any, index: int) -> Any:
    """配列の index 要素を返す。範囲外・配列でない場合は None。"""
    if not isinstance(values, Sequence) or isinstance(values, str):
        return None
    if index >= len(values):
        return None
    return values[index]


def build_fit_diff_map(fit_stats: Optional[Mapping[str, Any]]) -> Dict[ChartId, FitDifficulty]:
    """
    曲ID → スロット別統計のマッピングから拟合定数の索引を作る。

    fit_diff を持つ要素のみを残す。

    Args:
        fit_stats: chart_stats の "charts" 部分（{"834": [{...}, {...}, ...]}）。

    Returns:
        {(song_id, slot): FitDifficulty}。
    """
    fit_map: Dict[ChartId, FitDifficulty] = {}
    for song_id, entries in (fit_stats or {}).items():
        for slot, entry in enumerate(entries or []):
            if not entry or entry.get("fit_diff") is None:
                continue
            avg = entry.get("avg")
            fit_map[(_to_int(song_id, "song id"), slot)] = FitDifficulty(
                fit_diff=float(entry["fit_diff"]),
                avg_achievement=float(avg) if avg is not None else None,
            )
    return fit_map


def build_record_map(records: Optional[Iterable[Mapping[str, Any]]]) -> Dict[ChartId, PlayRecord]:
    """
    成績リストから (song_id, slot) → PlayRecord の索引を作る。

    同じ譜面の成績が複数ある場合は後のものを採用する。
    """
    record_map: Dict[ChartId, PlayRecord] = {}
    for record in records or []:
        key = (
            _to_int(record.get("song_id"), "song_id"),
            _to_int(record.get("level_index"), "level_index"),
        )
        record_map[key] = PlayRecord.from_api(record)
    return record_map


def merge_data(
    songs: Iterable[Mapping[str, Any]],
    fit_stats: Optional[Mapping[str, Any]],
    records: Optional[Iterable[Mapping[str, Any]]],
    tier_data: Mapping[str, Any],
) -> List[MergedChart]:
    """
    曲情報・拟合定数・成績・分档を結合し、譜面単位のレコードを返す。

    Args:
        songs: music_data の曲リスト（id/title/type/ds/level を持つ）。
        fit_stats: 曲ID → スロット別統計のマッピング。
        records: 成績リスト（song_id/level_index/achievements 等を持つ）。
        tier_data: 分档データ。

    Returns:
        MergedChart のリスト。曲リスト順、曲内は slot 3 → 4 の順。

    Raises:
        FormatError: 曲要素が辞書でない、id を持たない、または曲ID・スロットが整数でない場合。
    """
    fit_map = build_fit_diff_map(fit_stats)
    record_map = build_record_map(records)

    result: List[MergedChart] = []

    for song in songs:
        if not isinstance(song, Mapping) or song.get("id") is None:
            raise FormatError(f"Invalid song entry: {song!r}")

        song_id = _to_int(song["id"], "song id")

        for slot, slot_label in SLOT_LABELS.items():
            ds = _at(song.get("ds"), slot)
            level = _at(song.get("level"), slot)

            # 難易度が存在しない、または対象レベル外
            if ds is None or not level:
                continue
            if level not in LEVELS:
                continue

            fit = fit_map.get((song_id, slot))

            result.append(
                MergedChart(
                    song_id=song_id,
                    title=str(song.get("title") or ""),
                    song_type=str(song.get("type") or ""),
                    official_difficulty=float(ds),
                    level=level,
                    slot=slot,
                    slot_label=slot_label,
                    fit_diff=fit.fit_diff if fit else None,
                    avg_achievement=fit.avg_achievement if fit else None,
                    record=record_map.get((song_id, slot)),
                    tier=chart_tier(song_id, slot, tier_data),
                )
            )

    return result
