"""
Supabase 情感数据仓库
sentiment_log / alerts / learning_log 三张表的读写

表结构要点：
- sentiment_log.processed_at 可为空，扫描器以条件更新认领
- alerts.source_log_id 建唯一索引，保证同一日志行最多一条告警
"""

import logging
from typing import List, Dict, Any, Optional, Tuple

from .base import SentimentStore, SENTIMENT_LOG_TABLE, ALERTS_TABLE, LEARNING_LOG_TABLE
from .supabase_client import get_supabase_client


# Postgres 唯一约束冲突
UNIQUE_VIOLATION = "23505"


class SupabaseSentimentStore(SentimentStore):
    """基于 Supabase PostgreSQL 的存储实现"""

    def __init__(self, client=None):
        self._client = client

    @property
    def client(self):
        """获取 Supabase 客户端"""
        if self._client is None:
            self._client = get_supabase_client()
        if self._client is None:
            raise RuntimeError("Supabase 未配置或连接失败")
        return self._client

    def is_available(self) -> bool:
        """检查数据库是否可用"""
        try:
            return self.client is not None
        except RuntimeError:
            return False

    # ==================== 情感日志 ====================

    def insert_sentiment_log(self, row: Dict[str, Any]) -> None:
        self.client.table(SENTIMENT_LOG_TABLE).insert(row).execute()

    def fetch_unprocessed(self, score_below: float, threat_levels: List[str],
                          limit: int) -> List[Dict[str, Any]]:
        result = self.client.table(SENTIMENT_LOG_TABLE) \
            .select("*") \
            .is_("processed_at", "null") \
            .lt("sentiment_score", score_below) \
            .in_("threat_level", threat_levels) \
            .order("created_at", desc=False) \
            .limit(limit) \
            .execute()
        return result.data or []

    def mark_processed(self, log_id: str, processed_at: str) -> bool:
        result = self.client.table(SENTIMENT_LOG_TABLE) \
            .update({"processed_at": processed_at}) \
            .eq("id", log_id) \
            .is_("processed_at", "null") \
            .execute()
        return bool(result.data)

    # ==================== 学习日志 ====================

    def insert_learning_log(self, row: Dict[str, Any]) -> None:
        self.client.table(LEARNING_LOG_TABLE).insert(row).execute()

    # ==================== 告警 ====================

    def _find_by_source(self, source_log_id: str) -> Optional[Dict[str, Any]]:
        result = self.client.table(ALERTS_TABLE) \
            .select("*") \
            .eq("source_log_id", source_log_id) \
            .limit(1) \
            .execute()
        return result.data[0] if result.data else None

    def create_alert(self, row: Dict[str, Any]) -> Tuple[Dict[str, Any], bool]:
        source_id = row.get("source_log_id")
        if source_id is not None:
            existing = self._find_by_source(source_id)
            if existing:
                return existing, False

        try:
            result = self.client.table(ALERTS_TABLE).insert(row).execute()
        except Exception as e:
            # 并发插入同一日志行的告警：唯一索引拦截，返回已存在的那条
            if source_id is not None and UNIQUE_VIOLATION in str(getattr(e, "code", "") or e):
                existing = self._find_by_source(source_id)
                if existing:
                    logging.info(f"🔁 告警已由其他进程创建: source_log_id={source_id}")
                    return existing, False
            raise

        return (result.data[0] if result.data else row), True

    def get_alert(self, alert_id: str) -> Optional[Dict[str, Any]]:
        result = self.client.table(ALERTS_TABLE) \
            .select("*") \
            .eq("id", alert_id) \
            .limit(1) \
            .execute()
        return result.data[0] if result.data else None

    def acknowledge_alert(self, alert_id: str, actor_id: str,
                          acknowledged_at: str) -> Optional[Dict[str, Any]]:
        result = self.client.table(ALERTS_TABLE) \
            .update({
                "acknowledged": True,
                "acknowledged_by": actor_id,
                "acknowledged_at": acknowledged_at
            }) \
            .eq("id", alert_id) \
            .eq("acknowledged", False) \
            .execute()
        return result.data[0] if result.data else None

    def list_active_alerts(self, limit: int = 50) -> List[Dict[str, Any]]:
        result = self.client.table(ALERTS_TABLE) \
            .select("*") \
            .eq("acknowledged", False) \
            .order("created_at", desc=True) \
            .limit(limit) \
            .execute()
        return result.data or []

    # ==================== 统计 ====================

    def count_sentiment_logs(self) -> int:
        result = self.client.table(SENTIMENT_LOG_TABLE).select("id", count="exact").execute()
        return result.count or 0

    def count_active_alerts(self) -> int:
        result = self.client.table(ALERTS_TABLE) \
            .select("id", count="exact") \
            .eq("acknowledged", False) \
            .execute()
        return result.count or 0

    def fetch_topics_since(self, since: str) -> List[Dict[str, Any]]:
        result = self.client.table(SENTIMENT_LOG_TABLE) \
            .select("categories, hashtags") \
            .gte("created_at", since) \
            .execute()
        return result.data or []

    def fetch_regional_since(self, since: str) -> List[Dict[str, Any]]:
        result = self.client.table(SENTIMENT_LOG_TABLE) \
            .select("region, sentiment_score, emotions, keywords, hashtags, threat_level") \
            .not_.is_("region", "null") \
            .gte("created_at", since) \
            .execute()
        return result.data or []
