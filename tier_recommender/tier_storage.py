"""
分档データの保存・読み込み・インポート・エクスポート処理。

分档データは UTF-8 の JSON ファイルとして保存する。
エクスポート形式は {"version", "exportDate", "tiers"} で、インポート時は
旧形式を含めて migrate_legacy_data を通す。
"""

from __future__ import annotations

import json
import logging
import os
from datetime import date
from typing import Any, Dict, Mapping, Optional

from tier_recommender.errors import FormatError, LoadError
from tier_recommender.tier_store import decode_tier_data, default_tier_data, migrate_legacy_data

logger = logging.getLogger(__name__)

EXPORT_VERSION = "1.45"


class TierFileStorage:
    """
    分档データを1つの JSON ファイルに保存するストレージ。

    Attributes:
        path: 保存先ファイルパス。
    """

    def __init__(self, path: str):
        self.path = path

    def load(self) -> Optional[Dict[str, Any]]:
        """
        保存済みの分档データを読み込む。

        Returns:
            分档データ。ファイルが存在しない場合は None。

        Raises:
            LoadError: 内容を解釈できない場合（fallback に空の分档データを保持）。
        """
        if not os.path.exists(self.path):
            return None

        try:
            with open(self.path, "r", encoding="utf-8") as file_obj:
                text = file_obj.read()
        except (UnicodeDecodeError, OSError) as e:
            raise LoadError(
                f"Failed to read tier data: {self.path} ({e})",
                fallback=default_tier_data(),
            ) from e

        return decode_tier_data(text)

    def save(self, tier_data: Mapping[str, Any]) -> None:
        """分档データを保存する。"""
        os.makedirs(os.path.dirname(self.path) or ".", exist_ok=True)
        with open(self.path, "w", encoding="utf-8") as file_obj:
            json.dump(tier_data, file_obj, ensure_ascii=False, indent=2)
            file_obj.write("\n")
        logger.info("Saved tier data to %s", self.path)


def import_tier_data(json_string: str) -> Dict[str, Any]:
    """
    インポートされた JSON 文字列から分档データを生成する。

    Args:
        json_string: エクスポート形式、またはレベルをキーに持つ分档データの JSON。

    Returns:
        移行済みの分档データ。

    Raises:
        LoadError: JSON として解釈できない場合。
        FormatError: 分档データの形式でない場合。
    """
    try:
        data = json.loads(json_string)
    except json.JSONDecodeError as e:
        raise LoadError(f"Failed to import tier data: {e}") from e

    if not isinstance(data, dict):
        raise FormatError("Invalid tier data format")

    if data.get("tiers"):
        tiers = data["tiers"]
    elif data.get("14") or data.get("14+"):
        tiers = data
    else:
        raise FormatError("Invalid tier data format")

    return migrate_legacy_data(tiers)


def export_tier_data(tier_data: Mapping[str, Any], export_date: Optional[date] = None) -> str:
    """
    分档データをエクスポート形式の JSON 文字列にする。

    Args:
        tier_data: 分档データ。
        export_date: エクスポート日付。省略時は当日。
    """
    export_date = export_date or date.today()
    export_data = {
        "version": EXPORT_VERSION,
        "exportDate": export_date.isoformat(),
        "tiers": tier_data,
    }
    return json.dumps(export_data, ensure_ascii=False, indent=2)


def export_file_name(export_date: date) -> str:
    """エクスポートファイル名を返す。"""
    return f"maimai-tier-list-{export_date.isoformat()}.json"


def write_export(
    tier_data: Mapping[str, Any],
    directory: str,
    export_date: Optional[date] = None,
) -> str:
    """
    分档データをエクスポートファイルとして書き出す。

    Returns:
        書き出したファイルのパス。
    """
    export_date = export_date or date.today()
    os.makedirs(directory, exist_ok=True)
    path = os.path.join(directory, export_file_name(export_date))
    with open(path, "w", encoding="utf-8") as file_obj:
        file_obj.write(export_tier_data(tier_data, export_date))
        file_obj.write("\n")
    return path
