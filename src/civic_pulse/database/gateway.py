"""
持久化网关
在存储实现之上统一重试策略和异常转换

重试策略：
- 情感日志写入：至少重试一次，失败后抛出 PersistenceFailure（调用方记录警告，不阻塞分类结果返回）
- 告警写入：短暂指数退避重试，失败后抛出 PersistenceFailure
- 其他读写：不重试，异常直接转换为 PersistenceFailure
"""

import logging
import time
from collections import Counter
from datetime import datetime, timedelta
from typing import List, Callable, Optional, Tuple, Any, Dict

from civic_pulse.errors import PersistenceFailure
from civic_pulse.classifier.models import (
    SentimentLogEntry, LearningLogEntry, Alert, utc_now
)
from .base import SentimentStore


class PersistenceGateway:
    """持久化网关"""

    def __init__(self, store: SentimentStore,
                 log_write_attempts: int = 2,
                 alert_write_attempts: int = 3,
                 alert_retry_backoff: float = 0.2,
                 sleep: Callable[[float], None] = time.sleep):
        self.store = store
        self.log_write_attempts = max(1, log_write_attempts)
        self.alert_write_attempts = max(1, alert_write_attempts)
        self.alert_retry_backoff = alert_retry_backoff
        self._sleep = sleep

    def _with_retry(self, op_name: str, fn: Callable[[], Any],
                    attempts: int = 1, backoff: float = 0.0) -> Any:
        """执行存储操作，失败按退避重试，最终失败抛出 PersistenceFailure"""
        last_error: Optional[Exception] = None
        for attempt in range(1, attempts + 1):
            try:
                return fn()
            except Exception as e:
                last_error = e
                if attempt < attempts:
                    delay = backoff * (2 ** (attempt - 1))
                    logging.warning(f"⚠️ {op_name} 失败 (第{attempt}/{attempts}次): {e}，{delay:.2f}秒后重试")
                    if delay > 0:
                        self._sleep(delay)
        raise PersistenceFailure(f"{op_name} 失败: {last_error}") from last_error

    # ==================== 写入 ====================

    def append_log(self, entry: SentimentLogEntry) -> str:
        """追加情感日志，返回日志 ID"""
        row = entry.to_row()
        self._with_retry("写入情感日志",
                         lambda: self.store.insert_sentiment_log(row),
                         attempts=self.log_write_attempts)
        return entry.id

    def append_learning(self, entry: LearningLogEntry) -> None:
        """追加学习日志（诊断用，不重试）"""
        row = entry.to_row()
        self._with_retry("写入学习日志", lambda: self.store.insert_learning_log(row))

    def create_alert(self, alert: Alert) -> Tuple[Alert, bool]:
        """
        幂等创建告警（带退避重试）

        Returns:
            (告警, 是否新建)；同一 source_log_id 的第二次调用返回已存在的告警和 False
        """
        row = alert.to_row()
        stored, created = self._with_retry(
            "写入告警",
            lambda: self.store.create_alert(row),
            attempts=self.alert_write_attempts,
            backoff=self.alert_retry_backoff
        )
        return Alert.from_row(stored), created

    def claim(self, log_id: str) -> bool:
        """设置 processed_at（先写者胜）"""
        at = utc_now().isoformat()
        return self._with_retry("认领日志", lambda: self.store.mark_processed(log_id, at))

    # ==================== 读取 ====================

    def unprocessed(self, score_below: float, threat_levels: List[str],
                    limit: int) -> List[SentimentLogEntry]:
        rows = self._with_retry(
            "查询未处理日志",
            lambda: self.store.fetch_unprocessed(score_below, threat_levels, limit)
        )
        return [SentimentLogEntry.from_row(r) for r in rows]

    def get_alert(self, alert_id: str) -> Optional[Alert]:
        row = self._with_retry("查询告警", lambda: self.store.get_alert(alert_id))
        return Alert.from_row(row) if row else None

    def acknowledge(self, alert_id: str, actor_id: str,
                    acknowledged_at: datetime) -> Optional[Alert]:
        """条件确认；未更新任何行时返回 None"""
        row = self._with_retry(
            "确认告警",
            lambda: self.store.acknowledge_alert(alert_id, actor_id, acknowledged_at.isoformat())
        )
        return Alert.from_row(row) if row else None

    def active_alerts(self, limit: int = 50) -> List[Alert]:
        rows = self._with_retry("查询活跃告警", lambda: self.store.list_active_alerts(limit))
        return [Alert.from_row(r) for r in rows]

    # ==================== 统计 ====================

    def stats(self, trending_window_hours: int = 24) -> Dict[str, int]:
        """
        聚合统计（查询时从存储实时计算，不使用进程内计数器）

        Returns:
            {
                "total_classified": int,    # 情感日志总数
                "active_alerts": int,       # 未确认告警数
                "trending_topics": int      # 窗口内不同话题（类别 + 话题标签）数
            }
        """
        since = (utc_now() - timedelta(hours=trending_window_hours)).isoformat()

        total = self._with_retry("统计日志数", self.store.count_sentiment_logs)
        active = self._with_retry("统计活跃告警", self.store.count_active_alerts)
        rows = self._with_retry("统计热门话题", lambda: self.store.fetch_topics_since(since))

        topics = Counter()
        for row in rows:
            for category in row.get("categories") or []:
                topics[category.lower()] += 1
            for tag in row.get("hashtags") or []:
                topics["#" + tag.lower()] += 1

        return {
            "total_classified": total,
            "active_alerts": active,
            "trending_topics": len(topics),
        }

    def regional_stats(self, window_hours: int = 168) -> List[Dict[str, Any]]:
        """
        按地区汇总窗口内的情感数据，按内容量从多到少排序

        每个地区：
            content_volume       日志条数
            overall_sentiment    平均情感分
            sentiment_breakdown  正面 / 负面 / 中性条数（阈值 ±0.1）与平均分
            dominant_emotions    出现最多的 5 种情绪
            top_concerns         出现最多的 3 个关键词
            trending_hashtags    出现最多的 5 个话题标签
            threat_level         有威胁的条目占比 >30% 为 high，>15% 为 medium，否则 low
        """
        since = (utc_now() - timedelta(hours=window_hours)).isoformat()
        rows = self._with_retry("查询地区情感", lambda: self.store.fetch_regional_since(since))

        grouped: Dict[str, List[Dict[str, Any]]] = {}
        for row in rows:
            grouped.setdefault(row["region"], []).append(row)

        regions = [_summarize_region(region, items) for region, items in grouped.items()]
        regions.sort(key=lambda r: (-r["content_volume"], r["region"]))
        return regions


def _summarize_region(region: str, rows: List[Dict[str, Any]]) -> Dict[str, Any]:
    volume = len(rows)
    scores = [float(r.get("sentiment_score") or 0.0) for r in rows]
    average = sum(scores) / volume

    emotions, concerns, hashtags = Counter(), Counter(), Counter()
    threats = 0
    for row in rows:
        emotions.update(row.get("emotions") or [])
        concerns.update(row.get("keywords") or [])
        hashtags.update(tag.lower() for tag in row.get("hashtags") or [])
        if (row.get("threat_level") or "none") != "none":
            threats += 1

    if threats > volume * 0.3:
        threat_level = "high"
    elif threats > volume * 0.15:
        threat_level = "medium"
    else:
        threat_level = "low"

    return {
        "region": region,
        "content_volume": volume,
        "overall_sentiment": round(average, 3),
        "sentiment_breakdown": {
            "positive": sum(1 for s in scores if s > 0.1),
            "negative": sum(1 for s in scores if s < -0.1),
            "neutral": sum(1 for s in scores if -0.1 <= s <= 0.1),
            "avg_score": round(average, 3),
        },
        "dominant_emotions": [e for e, _ in emotions.most_common(5)],
        "top_concerns": [k for k, _ in concerns.most_common(3)],
        "trending_hashtags": [h for h, _ in hashtags.most_common(5)],
        "threat_level": threat_level,
    }
