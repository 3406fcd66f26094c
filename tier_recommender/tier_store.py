"""
民间分档データの管理モジュール。

分档データは JSON 互換の辞書として扱い、呼び出し側が1つのインスタンスを保持して
各操作へ明示的に渡す。

構造:
    {
        "14":  {"13+": [...], "0": [...], ..., "7": [...], "range": [...], "emoji": [...]},
        "14+": {"14":  [...], "0": [...], ..., "7": [...], "range": [...], "emoji": [...]},
    }

- 固定档位・emoji は譜面キー文字列 "songId-slot" のリスト（重複なし）
- range は {"chartKey", "min", "max"} のリスト（min/max は档位名文字列）
- 1つの譜面キーは両レベルを通して高々1つの档位にのみ所属する
  （set_chart_tier が移動前に全档位から取り除くことで保証する）
"""

from __future__ import annotations

import json
import logging
import re
from typing import Any, Dict, List, Mapping, Optional, Tuple

from tier_recommender.errors import FormatError, LoadError, ValidationError
from tier_recommender.models import LEVELS, MASTER_SLOT, TierInfo

logger = logging.getLogger(__name__)

RANGE_TIER = "range"
EMOJI_TIER = "emoji"
NUMERIC_TIERS = ("0", "1", "2", "3", "4", "5", "6", "7")

# 各レベルの最低档（その等級より易しい譜面）
FLOOR_TIERS = {
    "14": "13+",
    "14+": "14",
}

# 旧形式の範囲档を移行した際の仮の範囲（利用者が後で修正する前提）
PLACEHOLDER_RANGE = "0"

_CHART_KEY_RE = re.compile(r"(0|[1-9][0-9]*)-(0|[1-9][0-9]*)")

# 旧形式の要素（先頭ゼロ・前後空白を許容する）
_LEGACY_KEY_RE = re.compile(r"([0-9]+)-([0-9]+)")
_LEGACY_ID_RE = re.compile(r"[0-9]+")

_TIER_LABELS = {
    "0": "0档 (最简)",
    "1": "1档",
    "2": "2档",
    "3": "3档",
    "4": "4档",
    "5": "5档",
    "6": "6档",
    "7": "7档 (最难)",
    RANGE_TIER: "范围档 (个人差)",
    EMOJI_TIER: "emoji (难以衡量)",
}

_FLOOR_LABELS = {
    "14": "13+ (低于14)",
    "14+": "14 (低于14+)",
}


def make_chart_key(song_id: int, slot: int) -> str:
    """
    譜面の一意キーを生成する。

    Args:
        song_id: 曲ID。
        slot: 難易度スロット (3 = Master, 4 = Re:Master)。

    Returns:
        "songId-slot" 形式の文字列。

    Raises:
        FormatError: 負数など、キーとして表現できない値の場合。
    """
    if isinstance(song_id, bool) or isinstance(slot, bool):
        raise FormatError(f"Invalid chart identity: {song_id!r}, {slot!r}")
    try:
        song_id, slot = int(song_id), int(slot)
    except (TypeError, ValueError) as e:
        raise FormatError(f"Invalid chart identity: {song_id!r}, {slot!r}") from e
    if song_id < 0 or slot < 0:
        raise FormatError(f"Invalid chart identity: {song_id!r}, {slot!r}")
    return f"{song_id}-{slot}"


def parse_chart_key(key: str) -> Tuple[int, int]:
    """
    譜面キーを (song_id, slot) に分解する。

    Args:
        key: "songId-slot" 形式の文字列。

    Returns:
        (song_id, slot) のタプル。

    Raises:
        FormatError: 形式に一致しない場合。
    """
    if not isinstance(key, str):
        raise FormatError(f"Chart key must be a string: {key!r}")

    m = _CHART_KEY_RE.fullmatch(key)
    if not m:
        raise FormatError(f"Invalid chart key: {key!r}")

    return int(m.group(1)), int(m.group(2))


def tier_names(level: str = "14") -> Tuple[str, ...]:
    """
    指定レベルの档位名を難易度順に返す。

    並びは「最低档 → 0..7 → range → emoji」で、検索・並び替えの走査順を兼ねる。

    Raises:
        FormatError: 未知のレベルの場合。
    """
    floor = FLOOR_TIERS.get(level)
    if floor is None:
        raise FormatError(f"Unknown level: {level!r}")
    return (floor,) + NUMERIC_TIERS + (RANGE_TIER, EMOJI_TIER)


def range_scale(level: str) -> Tuple[str, ...]:
    """範囲档の min/max に使える档位名（最低档と 0..7）を返す。"""
    return tier_names(level)[: len(NUMERIC_TIERS) + 1]


def all_tier_names() -> Tuple[str, ...]:
    """両レベルで使われる档位名をすべて返す。"""
    return tuple(FLOOR_TIERS[level] for level in LEVELS) + NUMERIC_TIERS + (RANGE_TIER, EMOJI_TIER)


def tier_display_name(tier: str, level: str = "14") -> str:
    """档位の表示名を返す。未知の档位はそのまま返す。"""
    if tier == FLOOR_TIERS.get(level):
        return _FLOOR_LABELS[level]
    return _TIER_LABELS.get(tier, tier)


def default_tier_data() -> Dict[str, Dict[str, list]]:
    """空の分档データを新しく生成して返す。"""
    return {level: {tier: [] for tier in tier_names(level)} for level in LEVELS}


def chart_tier(song_id: int, slot: int, tier_data: Mapping[str, Any]) -> Optional[TierInfo]:
    """
    譜面の分档情報を取得する。

    "14" → "14+" の順、各レベル内は tier_names の順に走査し、最初に一致したものを返す。

    Args:
        song_id: 曲ID。
        slot: 難易度スロット。
        tier_data: 分档データ。

    Returns:
        TierInfo。未分類の場合は None。
    """
    chart_key = make_chart_key(song_id, slot)

    for level in LEVELS:
        tiers = tier_data.get(level) or {}
        for tier in tier_names(level):
            items = tiers.get(tier)
            if not items:
                continue

            if tier == RANGE_TIER:
                for item in items:
                    if item["chartKey"] == chart_key:
                        return TierInfo(level, tier, range_min=item["min"], range_max=item["max"])
            elif chart_key in items:
                return TierInfo(level, tier)

    return None


def _remove_chart_key(tier_data: Dict[str, Any], chart_key: str) -> None:
    """全レベル・全档位から譜面キーを取り除く。"""
    for level in LEVELS:
        tiers = tier_data.get(level) or {}
        for tier in tier_names(level):
            items = tiers.get(tier)
            if not items:
                continue

            if tier == RANGE_TIER:
                items[:] = [item for item in items if item["chartKey"] != chart_key]
            else:
                items[:] = [item for item in items if item != chart_key]


def set_chart_tier(
    song_id: int,
    slot: int,
    level: Optional[str],
    tier: Optional[str],
    tier_data: Dict[str, Any],
    range_info: Optional[Mapping[str, Any]] = None,
) -> Dict[str, Any]:
    """
    譜面の分档を設定する。

    まず全档位から譜面を取り除き、level/tier が指定されていれば追加する。
    同じ引数で何度呼んでも結果は変わらない。

    Args:
        song_id: 曲ID。
        slot: 難易度スロット。
        level: 分档の等級 ("14" / "14+")。None の場合は分類解除のみ行う。
        tier: 档位名。None の場合は分類解除のみ行う。
        tier_data: 分档データ（その場で更新する）。
        range_info: 範囲档の場合の {"min", "max"}。

    Returns:
        更新後の分档データ（引数と同一オブジェクト）。

    Raises:
        FormatError: 未知の level/tier が指定された場合（データは変更しない）。
        ValidationError: 範囲档で range_info の min/max が欠けている、または
            そのレベルの档位名でない場合（取り除く処理は実施済み、追加は行わない）。
    """
    chart_key = make_chart_key(song_id, slot)
    assign = level is not None and tier is not None

    if assign and tier not in tier_names(level):
        raise FormatError(f"Unknown tier {tier!r} for level {level!r}")

    _remove_chart_key(tier_data, chart_key)

    if not assign:
        logger.debug("Unclassified chart %s", chart_key)
        return tier_data

    items = tier_data.setdefault(level, {}).setdefault(tier, [])

    if tier == RANGE_TIER:
        if not range_info or range_info.get("min") is None or range_info.get("max") is None:
            raise ValidationError(f"Range tier requires min and max: {chart_key}")
        range_min = _tier_name_str(range_info["min"])
        range_max = _tier_name_str(range_info["max"])
        scale = range_scale(level)
        if range_min not in scale or range_max not in scale:
            raise ValidationError(
                f"Range bounds must be tiers of level {level}: {chart_key} {range_min}~{range_max}"
            )
        items.append({"chartKey": chart_key, "min": range_min, "max": range_max})
    elif chart_key not in items:
        items.append(chart_key)

    logger.debug("Set chart %s to %s/%s", chart_key, level, tier)
    return tier_data


def _tier_name_str(value: Any) -> str:
    """档位名を文字列に揃える（数値の 3 や 3.0 は "3"）。"""
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def _migrate_chart_key(item: Any) -> str:
    """
    旧形式の要素を譜面キー文字列へ変換する。

    - 整数（または数字のみの文字列）は曲IDとみなし、Master(slot 3) のキーにする
    - "songId-slot" 形式の文字列は前後の空白・先頭ゼロを除いた正規形にする

    Raises:
        FormatError: どちらにも該当しない場合。
    """
    if isinstance(item, bool):
        raise FormatError(f"Invalid tier entry: {item!r}")
    if isinstance(item, int):
        return make_chart_key(item, MASTER_SLOT)
    if isinstance(item, float) and item.is_integer():
        return make_chart_key(int(item), MASTER_SLOT)
    if isinstance(item, str):
        s = item.strip()
        m = _LEGACY_KEY_RE.fullmatch(s)
        if m:
            return make_chart_key(int(m.group(1)), int(m.group(2)))
        if _LEGACY_ID_RE.fullmatch(s):
            return make_chart_key(int(s), MASTER_SLOT)
    raise FormatError(f"Invalid tier entry: {item!r}")


def _migrate_range_entry(item: Any) -> Tuple[Dict[str, str], bool]:
    """
    範囲档の要素を {"chartKey", "min", "max"} へ変換する。

    Returns:
        (変換後の要素, 仮の範囲を割り当てたかどうか)。
    """
    if isinstance(item, Mapping):
        if "chartKey" not in item:
            raise FormatError(f"Range entry has no chartKey: {item!r}")
        chart_key = _migrate_chart_key(item["chartKey"])
        if item.get("min") is None or item.get("max") is None:
            return {"chartKey": chart_key, "min": PLACEHOLDER_RANGE, "max": PLACEHOLDER_RANGE}, True
        return {
            "chartKey": chart_key,
            "min": _tier_name_str(item["min"]),
            "max": _tier_name_str(item["max"]),
        }, False

    chart_key = _migrate_chart_key(item)
    return {"chartKey": chart_key, "min": PLACEHOLDER_RANGE, "max": PLACEHOLDER_RANGE}, True


def migrate_legacy_data(raw: Any, strict: bool = False) -> Dict[str, Dict[str, list]]:
    """
    旧形式を含む分档データを現在の構造へ変換する。

    旧形式では要素が曲IDの数値、または "songId-slot" 文字列だった。
    範囲档は {"chartKey", "min", "max"} へ変換し、範囲情報が無いものには
    仮の範囲 min=max="0" を割り当てる。
    未知のレベル・档位は捨て、档位内の重複は先頭のみ残す。
    変換済みデータに再適用しても結果は変わらない。

    Args:
        raw: 読み込んだ分档データ。
        strict: True の場合、仮の範囲を割り当てる要素があれば ValidationError にする。

    Returns:
        新しい分档データ。

    Raises:
        FormatError: 構造が辞書でない、または要素を解釈できない場合。
        ValidationError: strict=True で仮の範囲が必要な要素がある場合。
    """
    if not isinstance(raw, Mapping):
        raise FormatError(f"Tier data must be an object: {type(raw).__name__}")

    migrated = default_tier_data()
    placeholders: List[str] = []

    for level in LEVELS:
        tiers = raw.get(level)
        if tiers is None:
            continue
        if not isinstance(tiers, Mapping):
            raise FormatError(f"Tier data for level {level} must be an object")

        for tier in tier_names(level):
            items = tiers.get(tier) or []
            if not isinstance(items, (list, tuple)):
                raise FormatError(f"Tier {level}/{tier} must be a list")

            out = migrated[level][tier]
            seen = set()
            for item in items:
                if tier == RANGE_TIER:
                    entry, is_placeholder = _migrate_range_entry(item)
                    chart_key = entry["chartKey"]
                    if chart_key in seen:
                        continue
                    if is_placeholder:
                        placeholders.append(chart_key)
                    out.append(entry)
                else:
                    chart_key = _migrate_chart_key(item)
                    if chart_key in seen:
                        continue
                    out.append(chart_key)
                seen.add(chart_key)

    if placeholders:
        if strict:
            raise ValidationError(
                f"Range entries without min/max: {', '.join(placeholders)}"
            )
        logger.warning(
            "Range entries migrated with placeholder range %s-%s: %s",
            PLACEHOLDER_RANGE,
            PLACEHOLDER_RANGE,
            ", ".join(placeholders),
        )

    return migrated


def placeholder_range_keys(tier_data: Mapping[str, Any]) -> List[str]:
    """範囲が仮の値 (min=max="0") のままの範囲档譜面キーを返す。"""
    keys = []
    for level in LEVELS:
        for item in (tier_data.get(level) or {}).get(RANGE_TIER) or []:
            if item["min"] == PLACEHOLDER_RANGE and item["max"] == PLACEHOLDER_RANGE:
                keys.append(item["chartKey"])
    return keys


def tier_stats(tier_data: Mapping[str, Any]) -> Dict[str, Dict[str, int]]:
    """レベル・档位ごとの譜面数を返す。"""
    stats: Dict[str, Dict[str, int]] = {}
    for level in LEVELS:
        tiers = tier_data.get(level) or {}
        stats[level] = {tier: len(tiers.get(tier) or []) for tier in tier_names(level)}
    return stats


def decode_tier_data(text: Optional[str]) -> Dict[str, Dict[str, list]]:
    """
    永続化された JSON 文字列から分档データを復元する。

    エクスポート形式 {"tiers": {...}} も受け付け、常に migrate_legacy_data を通す。

    Args:
        text: 保存済みの JSON 文字列。None/空の場合は空の分档データを返す。

    Returns:
        分档データ。

    Raises:
        LoadError: 解釈できない場合。fallback に空の分档データを保持する。
    """
    if text is None or not text.strip():
        return default_tier_data()

    try:
        raw = json.loads(text)
        if isinstance(raw, Mapping) and "tiers" in raw:
            raw = raw["tiers"]
        return migrate_legacy_data(raw)
    except (json.JSONDecodeError, FormatError) as e:
        raise LoadError(f"Failed to load tier data: {e}", fallback=default_tier_data()) from e
