"""
告警生命周期管理

状态机：raised（已创建，未确认）-> delivered（已推送，非持久状态）-> acknowledged（终态）
没有自动过期，未确认的告警一直保留，直到有人处理。
"""

import logging
from typing import List, Optional, Tuple

from civic_pulse.errors import AlertNotFound, AlreadyAcknowledged
from civic_pulse.classifier.models import Alert, utc_now
from civic_pulse.database.gateway import PersistenceGateway
from .pubsub import AlertBroker, EVENT_RAISED, EVENT_ACKNOWLEDGED


class AlertManager:
    """告警生命周期管理器"""

    def __init__(self, gateway: PersistenceGateway, broker: AlertBroker):
        self.gateway = gateway
        self.broker = broker

    def raise_alert(self, alert: Alert) -> Tuple[Alert, bool]:
        """
        持久化并广播告警

        同一日志行重复触发时返回已存在的告警，且不会重复广播。

        Returns:
            (告警, 是否新建)

        Raises:
            PersistenceFailure: 告警写入重试后仍失败
        """
        persisted, created = self.gateway.create_alert(alert)

        if not created:
            logging.info(f"🔁 告警已存在，跳过广播: [{persisted.id}] source_log_id={persisted.source_log_id}")
            return persisted, False

        delivered = self.broker.publish(EVENT_RAISED, persisted)
        logging.warning(
            f"🚨 新告警 [{persisted.id}] {persisted.severity.value.upper()}: {persisted.title} "
            f"(地区={persisted.affected_regions or '未知'}, 推送{delivered}个会话)"
        )
        return persisted, True

    def acknowledge(self, alert_id: str, actor_id: str) -> Alert:
        """
        确认告警（单写者胜出）

        Raises:
            AlertNotFound: 告警不存在
            AlreadyAcknowledged: 告警已被确认（幂等，确认字段保持不变）
        """
        updated = self.gateway.acknowledge(alert_id, actor_id, utc_now())

        if updated is None:
            existing = self.gateway.get_alert(alert_id)
            if existing is None:
                raise AlertNotFound(alert_id)
            raise AlreadyAcknowledged(alert_id, existing.acknowledged_by)

        # 重新广播，让其他会话从活跃列表中移除
        self.broker.publish(EVENT_ACKNOWLEDGED, updated)
        logging.info(f"✅ 告警已确认 [{alert_id}] by {actor_id}")
        return updated

    def dismiss(self, alert_id: str, session_id: str) -> None:
        """
        会话本地忽略（不持久化、不改变告警状态）

        Raises:
            AlertNotFound: 告警不存在
        """
        if self.gateway.get_alert(alert_id) is None:
            raise AlertNotFound(alert_id)
        self.broker.dismiss(session_id, alert_id)

    def active_alerts(self, session_id: Optional[str] = None, limit: int = 50) -> List[Alert]:
        """未确认告警（可按会话过滤已忽略的告警）"""
        alerts = self.gateway.active_alerts(limit)
        if session_id:
            hidden = self.broker.dismissed(session_id)
            alerts = [a for a in alerts if a.id not in hidden]
        return alerts
