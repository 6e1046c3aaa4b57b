"""
周期性阈值扫描器（对账清扫）

实时通道的告警可能被跳过或延迟（分类器降级、批量导入窗口等），
扫描器定期找出 processed_at 为空、高度负面且威胁等级达标的日志行，补发告警。

状态机：idle -> scanning -> idle，同一时刻只允许一次扫描。
去重：告警按日志行 ID 幂等创建，processed_at 的条件写入作为认领（先写者胜）。
"""

import logging
import threading
from datetime import datetime
from typing import List, Optional

from civic_pulse.errors import PersistenceFailure
from civic_pulse.database.gateway import PersistenceGateway
from .lifecycle import AlertManager
from .rules import evaluate_alert


STATE_IDLE = "idle"
STATE_SCANNING = "scanning"


class ThresholdScanner:
    """阈值扫描器"""

    def __init__(self, gateway: PersistenceGateway, manager: AlertManager,
                 score_threshold: float = -0.5,
                 threat_levels: Optional[List[str]] = None,
                 batch_size: int = 10):
        """
        Args:
            gateway: 持久化网关
            manager: 告警生命周期管理器
            score_threshold: 情感分需严格小于该值
            threat_levels: 需要复查的威胁等级（默认 ["high"]）
            batch_size: 每次扫描最多处理的行数
        """
        self.gateway = gateway
        self.manager = manager
        self.score_threshold = score_threshold
        self.threat_levels = threat_levels or ["high"]
        self.batch_size = batch_size
        self.state = STATE_IDLE
        self.last_run: Optional[datetime] = None
        self._lock = threading.Lock()

    def tick(self) -> int:
        """
        执行一次扫描

        Returns:
            本次新建的告警数量（上一次扫描仍在进行时返回 0）
        """
        if not self._lock.acquire(blocking=False):
            logging.debug("⏳ 上一次扫描尚未结束，跳过本次")
            return 0

        self.state = STATE_SCANNING
        try:
            return self._scan()
        finally:
            self.state = STATE_IDLE
            self.last_run = datetime.now()
            self._lock.release()

    def _scan(self) -> int:
        try:
            entries = self.gateway.unprocessed(
                self.score_threshold, self.threat_levels, self.batch_size
            )
        except PersistenceFailure as e:
            logging.error(f"❌ [扫描] 查询未处理日志失败: {e}")
            return 0

        if not entries:
            return 0

        logging.info(f"🔍 [扫描] 发现 {len(entries)} 条未处理的高危日志")

        raised = 0
        for entry in entries:
            alert = evaluate_alert(entry.result, entry.item, source_log_id=entry.id)

            try:
                if alert is not None:
                    _, created = self.manager.raise_alert(alert)
                    if created:
                        raised += 1
                self.gateway.claim(entry.id)
            except PersistenceFailure as e:
                # 不认领，下一轮继续尝试
                logging.error(f"❌ [扫描] 日志 {entry.id} 处理失败: {e}")

        if raised:
            logging.info(f"✅ [扫描] 补发告警 {raised} 条")
        return raised
