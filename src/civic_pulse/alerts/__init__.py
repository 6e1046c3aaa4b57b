"""
告警模块
规则判定、生命周期管理、发布订阅、周期性阈值扫描
"""

from .rules import evaluate_alert, should_alert, ALERT_LEVELS
from .pubsub import AlertBroker, AlertEvent, Subscription, EVENT_RAISED, EVENT_ACKNOWLEDGED
from .lifecycle import AlertManager
from .scanner import ThresholdScanner

__all__ = [
    'evaluate_alert', 'should_alert', 'ALERT_LEVELS',
    'AlertBroker', 'AlertEvent', 'Subscription', 'EVENT_RAISED', 'EVENT_ACKNOWLEDGED',
    'AlertManager', 'ThresholdScanner',
]
