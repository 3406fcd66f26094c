"""
設定ファイル(settings.yaml)の読み込み処理を提供するモジュール。

settings.yaml から推分推荐に必要な各種設定を読み込み、
アプリ内で扱いやすい dataclass に変換する。
Import-Token などの秘匿情報は設定ファイルではなく環境変数から渡す。
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

import yaml

DEFAULT_BASE_URL = "https://www.diving-fish.com/api/maimaidxprober"


@dataclass(frozen=True)
class ProberConfig:
    """
    Diving-Fish プローバーAPI 接続設定。

    Attributes:
        base_url: APIのベースURL。
        timeout: requests に渡すタイムアウト秒。
    """

    base_url: str
    timeout: int


@dataclass(frozen=True)
class Settings:
    """
    アプリケーション全体設定。

    settings.yaml の内容を保持する。

    Attributes:
        username: B50取得に使うプレイヤー名（Import-Token 未指定時に使用）。
        target_threshold: 分档別推荐の目標達成率。
        bird_plus_threshold: 鸟加推荐の目標達成率。
        tier_data_path: 分档データ(JSON)の保存先パス。
        export_dir: 分档データのエクスポート先ディレクトリ。
        prober: プローバーAPI 接続設定。
    """

    username: Optional[str]
    target_threshold: float
    bird_plus_threshold: float
    tier_data_path: str
    export_dir: str
    prober: ProberConfig


def load_settings(path: str) -> Settings:
    """
    settings.yaml を読み込み Settings に変換する。

    Args:
        path: settings.yaml のファイルパス。

    Returns:
        Settingsオブジェクト。

    Raises:
        FileNotFoundError: 設定ファイルが存在しない場合。
        yaml.YAMLError: YAMLのパースに失敗した場合。
        ValueError: 数値項目のfloat/int変換に失敗した場合。
    """
    with open(path, "r", encoding="utf-8") as f:
        data = yaml.safe_load(f) or {}

    prober_data = data.get("prober") or {}
    username = str(data.get("username") or "").strip()

    return Settings(
        username=username or None,
        target_threshold=float(data.get("target_threshold", 100.7)),
        bird_plus_threshold=float(data.get("bird_plus_threshold", 100.5)),
        tier_data_path=str(data.get("tier_data_path", "tier_data.json")),
        export_dir=str(data.get("export_dir", "exports")),
        prober=ProberConfig(
            base_url=str(prober_data.get("base_url", DEFAULT_BASE_URL)).rstrip("/"),
            timeout=int(prober_data.get("timeout", 30)),
        ),
    )
