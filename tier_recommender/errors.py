"""
アプリケーション固有の例外定義モジュール。

プローバーAPI取得、分档データの読み込み・移行・更新などの処理で発生する例外を
分類して扱うために、基底例外および派生例外を定義する。
"""

from __future__ import annotations

from typing import Any, Optional


class TierRecommenderError(Exception):
    """推分推荐システム全体の基底例外。"""


class FetchError(TierRecommenderError):
    """プローバーAPIからのデータ取得に起因する例外。"""


class FormatError(TierRecommenderError):
    """譜面キー文字列や分档データの構造が不正な場合の例外。"""


class LoadError(TierRecommenderError):
    """
    永続化された分档データを解釈できない場合の例外。

    呼び出し側が処理を継続できるよう、空の既定構造を fallback として保持する。
    """

    def __init__(self, message: str, fallback: Optional[dict[str, Any]] = None):
        super().__init__(message)
        self.fallback = fallback


class ValidationError(TierRecommenderError):
    """入力値が必要な情報を満たさない場合の例外（範囲档の min/max 欠落など）。"""
