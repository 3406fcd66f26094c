import logging
import os
import sys
import traceback
from typing import Dict, List

from tier_recommender.config import load_settings
from tier_recommender.diving_fish import (
    extract_records,
    get_chart_stats,
    get_music_data,
    get_player_b50,
    get_player_records,
)
from tier_recommender.errors import LoadError
from tier_recommender.merger import merge_data
from tier_recommender.models import LEVELS, MergedChart
from tier_recommender.recommender import (
    LevelRecommendation,
    OverallStats,
    overall_stats,
    recommend_flat,
    target_name,
)
from tier_recommender.tier_storage import TierFileStorage
from tier_recommender.tier_store import default_tier_data, placeholder_range_keys

logger = logging.getLogger(__name__)


def format_chart(chart: MergedChart) -> str:
    """推荐1件分の表示行を返す。"""
    diff = chart.fit_diff if chart.fit_diff is not None else chart.official_difficulty
    achievement = f"{chart.record.achievement:.4f}%" if chart.record else "-"
    if chart.tier is None:
        tier = "未分档"
    elif chart.tier.range_min is not None:
        tier = f"{chart.tier.range_min}~{chart.tier.range_max}"
    else:
        tier = chart.tier.tier
    return f"  [{tier}] {chart.title} ({chart.slot_label}) {diff:.2f} {achievement}"


def format_report(
    stats: OverallStats,
    flat: Dict[str, LevelRecommendation],
    target_threshold: float,
    bird_plus_threshold: float,
    limit: int = 10,
) -> List[str]:
    """
    推荐結果を標準出力向けの行リストにする。

    Args:
        stats: 全体の達成状況。
        flat: 鸟加推荐結果。
        target_threshold: 全体統計の目標達成率。
        bird_plus_threshold: 鸟加推荐の目標達成率。
        limit: レベルごとに表示する推荐件数。
    """
    lines = [
        f"Overall ({target_name(target_threshold)})",
        f"- total: {stats.total}",
        f"- completed: {stats.completed}",
        f"- uncompleted: {stats.uncompleted}",
        f"- progress: {stats.progress_percent}%",
        f"- average_achievement: {stats.average_achievement or '-'}",
    ]

    for level in LEVELS:
        bucket = flat[level]
        lines.append(
            f"Level {level} ({target_name(bird_plus_threshold)}): "
            f"{bucket.completed}/{bucket.total} ({bucket.progress_percent}%)"
        )
        for chart in bucket.recommendations[:limit]:
            lines.append(format_chart(chart))

    return lines


def main():
    """
    推分推荐の生成を行うメイン処理。
    以下の処理を順序実行する:
    1. 設定ファイルと保存済みの分档データを読み込む
    2. Diving-Fish から曲情報・譜面統計・成績を取得
    3. データを結合し、全体統計と鸟加推荐を生成
    4. 結果を標準出力へ表示
    環境変数の要件:
    - SETTINGS_PATH: 設定ファイルパス(デフォルト: "settings.yaml")
    - DIVING_FISH_IMPORT_TOKEN: Import-Token(オプション。未設定時は username の B50 を使用)
    Raises:
        Exception: 処理中に任意のエラーが発生した場合。
    """
    logging.basicConfig(level=logging.INFO, format="%(asctime)s [%(levelname)s] %(name)s: %(message)s")

    try:
        settings = load_settings(os.environ.get("SETTINGS_PATH", "settings.yaml"))
        token = os.environ.get("DIVING_FISH_IMPORT_TOKEN")

        # 1. 分档データ読み込み
        storage = TierFileStorage(settings.tier_data_path)
        try:
            tier_data = storage.load() or default_tier_data()
        except LoadError as e:
            logger.warning("%s; starting from empty tier data", e)
            tier_data = e.fallback

        pending = placeholder_range_keys(tier_data)
        if pending:
            logger.warning("Range tier entries need min/max: %s", ", ".join(pending))

        # 2. プローバーAPI 取得
        base_url = settings.prober.base_url
        timeout = settings.prober.timeout
        songs = get_music_data(base_url, timeout)
        chart_stats = get_chart_stats(base_url, timeout)

        if token:
            player = get_player_records(token, base_url, timeout)
        elif settings.username:
            player = get_player_b50(settings.username, base_url, timeout)
        else:
            player = None
            logger.warning("No Import-Token or username configured; records are empty")

        # 3. 結合・推荐
        charts = merge_data(songs, chart_stats.get("charts"), extract_records(player), tier_data)
        stats = overall_stats(charts, settings.target_threshold)
        flat = recommend_flat(charts, settings.bird_plus_threshold)

        # 4. 表示
        for line in format_report(stats, flat, settings.target_threshold, settings.bird_plus_threshold):
            print(line)

    except Exception:
        err = traceback.format_exc()
        print(err, file=sys.stderr)
        raise


if __name__ == "__main__":
    main()
