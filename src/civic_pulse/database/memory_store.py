"""
内存存储
未配置 Supabase 时使用，也用于测试。所有操作在同一把锁内完成，保证条件更新的原子性。
"""

import copy
import threading
from typing import List, Dict, Any, Optional, Tuple

from .base import SentimentStore


class InMemoryStore(SentimentStore):
    """线程安全的内存存储"""

    def __init__(self):
        self._lock = threading.Lock()
        self.sentiment_logs: Dict[str, Dict[str, Any]] = {}
        self.learning_logs: List[Dict[str, Any]] = []
        self.alerts: Dict[str, Dict[str, Any]] = {}

    # ==================== 情感日志 ====================

    def insert_sentiment_log(self, row: Dict[str, Any]) -> None:
        with self._lock:
            self.sentiment_logs[row["id"]] = copy.deepcopy(row)

    def fetch_unprocessed(self, score_below: float, threat_levels: List[str],
                          limit: int) -> List[Dict[str, Any]]:
        with self._lock:
            rows = [
                row for row in self.sentiment_logs.values()
                if row.get("processed_at") is None
                and row["sentiment_score"] < score_below
                and row["threat_level"] in threat_levels
            ]
            rows.sort(key=lambda r: r["created_at"])
            return copy.deepcopy(rows[:limit])

    def mark_processed(self, log_id: str, processed_at: str) -> bool:
        with self._lock:
            row = self.sentiment_logs.get(log_id)
            if row is None or row.get("processed_at") is not None:
                return False
            row["processed_at"] = processed_at
            return True

    # ==================== 学习日志 ====================

    def insert_learning_log(self, row: Dict[str, Any]) -> None:
        with self._lock:
            self.learning_logs.append(copy.deepcopy(row))

    # ==================== 告警 ====================

    def create_alert(self, row: Dict[str, Any]) -> Tuple[Dict[str, Any], bool]:
        with self._lock:
            source_id = row.get("source_log_id")
            if source_id is not None:
                for existing in self.alerts.values():
                    if existing.get("source_log_id") == source_id:
                        return copy.deepcopy(existing), False
            self.alerts[row["id"]] = copy.deepcopy(row)
            return copy.deepcopy(row), True

    def get_alert(self, alert_id: str) -> Optional[Dict[str, Any]]:
        with self._lock:
            row = self.alerts.get(alert_id)
            return copy.deepcopy(row) if row else None

    def acknowledge_alert(self, alert_id: str, actor_id: str,
                          acknowledged_at: str) -> Optional[Dict[str, Any]]:
        with self._lock:
            row = self.alerts.get(alert_id)
            if row is None or row.get("acknowledged"):
                return None
            row["acknowledged"] = True
            row["acknowledged_by"] = actor_id
            row["acknowledged_at"] = acknowledged_at
            return copy.deepcopy(row)

    def list_active_alerts(self, limit: int = 50) -> List[Dict[str, Any]]:
        with self._lock:
            rows = [r for r in self.alerts.values() if not r.get("acknowledged")]
            rows.sort(key=lambda r: r["created_at"], reverse=True)
            return copy.deepcopy(rows[:limit])

    # ==================== 统计 ====================

    def count_sentiment_logs(self) -> int:
        with self._lock:
            return len(self.sentiment_logs)

    def count_active_alerts(self) -> int:
        with self._lock:
            return sum(1 for r in self.alerts.values() if not r.get("acknowledged"))

    def fetch_topics_since(self, since: str) -> List[Dict[str, Any]]:
        with self._lock:
            return [
                {"categories": list(r.get("categories") or []),
                 "hashtags": list(r.get("hashtags") or [])}
                for r in self.sentiment_logs.values()
                if r["created_at"] >= since
            ]

    def fetch_regional_since(self, since: str) -> List[Dict[str, Any]]:
        with self._lock:
            return [
                {
                    "region": r["region"],
                    "sentiment_score": r["sentiment_score"],
                    "emotions": list(r.get("emotions") or []),
                    "keywords": list(r.get("keywords") or []),
                    "hashtags": list(r.get("hashtags") or []),
                    "threat_level": r.get("threat_level", "none"),
                }
                for r in self.sentiment_logs.values()
                if r.get("region") and r["created_at"] >= since
            ]
