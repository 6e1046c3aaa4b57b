"""
存储接口
三张只追加（或近似只追加）的表：sentiment_log、alerts、learning_log

所有方法都以行字典（dict）为单位交换数据，具体存储技术由实现类决定。
"""

from abc import ABC, abstractmethod
from typing import List, Dict, Any, Optional, Tuple


SENTIMENT_LOG_TABLE = "sentiment_log"
ALERTS_TABLE = "alerts"
LEARNING_LOG_TABLE = "learning_log"


class SentimentStore(ABC):
    """存储抽象基类"""

    # ==================== 情感日志 ====================

    @abstractmethod
    def insert_sentiment_log(self, row: Dict[str, Any]) -> None:
        """追加一条情感日志"""

    @abstractmethod
    def fetch_unprocessed(self, score_below: float, threat_levels: List[str],
                          limit: int) -> List[Dict[str, Any]]:
        """查询未处理（processed_at 为空）且高度负面的日志，按创建时间升序"""

    @abstractmethod
    def mark_processed(self, log_id: str, processed_at: str) -> bool:
        """
        条件更新 processed_at（仅当仍为空时）

        Returns:
            True 表示本次调用完成了认领（先写者胜）
        """

    # ==================== 学习日志 ====================

    @abstractmethod
    def insert_learning_log(self, row: Dict[str, Any]) -> None:
        """追加一条学习日志"""

    # ==================== 告警 ====================

    @abstractmethod
    def create_alert(self, row: Dict[str, Any]) -> Tuple[Dict[str, Any], bool]:
        """
        幂等创建告警（按 source_log_id 去重）

        Returns:
            (告警行, 是否新建)
        """

    @abstractmethod
    def get_alert(self, alert_id: str) -> Optional[Dict[str, Any]]:
        """按 ID 获取告警"""

    @abstractmethod
    def acknowledge_alert(self, alert_id: str, actor_id: str,
                          acknowledged_at: str) -> Optional[Dict[str, Any]]:
        """
        条件确认（仅当 acknowledged 为 False 时更新）

        Returns:
            更新后的告警行；告警不存在或已确认时返回 None
        """

    @abstractmethod
    def list_active_alerts(self, limit: int = 50) -> List[Dict[str, Any]]:
        """未确认的告警，按创建时间降序"""

    # ==================== 统计 ====================

    @abstractmethod
    def count_sentiment_logs(self) -> int:
        """情感日志总数"""

    @abstractmethod
    def count_active_alerts(self) -> int:
        """未确认告警数"""

    @abstractmethod
    def fetch_topics_since(self, since: str) -> List[Dict[str, Any]]:
        """返回 since 之后日志的 categories / hashtags 字段"""

    @abstractmethod
    def fetch_regional_since(self, since: str) -> List[Dict[str, Any]]:
        """
        返回 since 之后、region 非空的日志行

        字段：region / sentiment_score / emotions / keywords / hashtags / threat_level
        """
