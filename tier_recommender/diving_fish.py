"""
Diving-Fish maimai DX プローバーAPI の取得処理をまとめたヘルパー。

取得したJSONを解析済みの辞書/リストとして返す責務のみを持ち、結合・推荐は
merger / recommender 側で行う。

例外方針:
- requests 由来の例外は FetchError に変換して上位へ伝播する。
- リトライは行わない。
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional

import requests

from tier_recommender.config import DEFAULT_BASE_URL
from tier_recommender.errors import FetchError

COVER_URL = "https://www.diving-fish.com/covers"


def _request_json(
    method: str,
    url: str,
    timeout: int,
    headers: Optional[Dict[str, str]] = None,
    payload: Optional[Dict[str, Any]] = None,
) -> Any:
    """
    HTTPリクエストを行い、レスポンスJSONを返す。

    Raises:
        FetchError: HTTPエラー、通信失敗、JSONとして解釈できない場合。
    """
    try:
        r = requests.request(method, url, headers=headers, json=payload, timeout=timeout)
        r.raise_for_status()
        return r.json()
    except requests.RequestException as e:
        raise FetchError(f"HTTP fetch failed: {url} ({e})") from e
    except ValueError as e:
        raise FetchError(f"Invalid JSON response: {url} ({e})") from e


def get_music_data(base_url: str = DEFAULT_BASE_URL, timeout: int = 30) -> List[Dict[str, Any]]:
    """全曲のメタ情報（id/title/type/ds/level 等）を取得する。"""
    return _request_json("GET", f"{base_url}/music_data", timeout)


def get_chart_stats(base_url: str = DEFAULT_BASE_URL, timeout: int = 30) -> Dict[str, Any]:
    """
    譜面統計（拟合定数を含む）を取得する。

    Returns:
        {"charts": {"834": [{...}, ...]}, "diff_data": {...}} 形式の辞書。
    """
    return _request_json("GET", f"{base_url}/chart_stats", timeout)


def get_player_b50(username: str, base_url: str = DEFAULT_BASE_URL, timeout: int = 30) -> Dict[str, Any]:
    """
    プレイヤーのB50を取得する（認証不要）。

    Args:
        username: プレイヤー名。
    """
    return _request_json(
        "POST",
        f"{base_url}/query/player",
        timeout,
        payload={"username": username, "b50": "1"},
    )


def get_player_records(token: str, base_url: str = DEFAULT_BASE_URL, timeout: int = 30) -> Dict[str, Any]:
    """
    プレイヤーの全成績を取得する。

    Args:
        token: Import-Token。

    Returns:
        {"records": [...], ...} 形式の辞書。

    Raises:
        FetchError: Tokenが無効・期限切れ(401)の場合や通信に失敗した場合。
    """
    url = f"{base_url}/player/records"
    try:
        r = requests.get(url, headers={"Import-Token": token}, timeout=timeout)
        if r.status_code == 401:
            raise FetchError("Import-Token is invalid or expired")
        r.raise_for_status()
        return r.json()
    except requests.RequestException as e:
        raise FetchError(f"HTTP fetch failed: {url} ({e})") from e
    except ValueError as e:
        raise FetchError(f"Invalid JSON response: {url} ({e})") from e


def extract_records(payload: Optional[Dict[str, Any]]) -> List[Dict[str, Any]]:
    """
    成績取得結果から成績リストを取り出す。

    全成績({"records": [...]})と B50({"charts": {"dx": [...], "sd": [...]}})の
    どちらの形式も受け付ける。
    """
    if not payload:
        return []
    if payload.get("records") is not None:
        return list(payload["records"])

    charts = payload.get("charts") or {}
    return list(charts.get("dx") or []) + list(charts.get("sd") or [])


def cover_url(song_id: int) -> str:
    """曲IDからジャケット画像のURLを返す。"""
    return f"{COVER_URL}/{int(song_id):05d}.png"
