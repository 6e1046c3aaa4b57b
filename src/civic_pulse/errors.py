"""
错误类型定义

分类失败（TransportFailure / SchemaFailure）由编排器在本地恢复，
不会传递给调用方；持久化失败由网关在重试后抛出；
AlertNotFound / AlreadyAcknowledged 是确认操作的非致命结果。
"""


class PulseError(Exception):
    """所有 CivicPulse 错误的基类"""


class ClassificationFailure(PulseError):
    """AI 分类失败（调用方统一按失败处理）"""


class TransportFailure(ClassificationFailure):
    """AI 服务不可达、超时或返回非 2xx"""


class SchemaFailure(ClassificationFailure):
    """AI 响应无法解析为 ClassificationResult"""


class PersistenceFailure(PulseError):
    """日志或告警写入失败"""


class AlertNotFound(PulseError):
    """告警不存在"""

    def __init__(self, alert_id: str):
        super().__init__(f"告警不存在: {alert_id}")
        self.alert_id = alert_id


class AlreadyAcknowledged(PulseError):
    """告警已被确认（幂等，不视为系统错误）"""

    def __init__(self, alert_id: str, acknowledged_by: str = None):
        super().__init__(f"告警已确认: {alert_id} (by {acknowledged_by})")
        self.alert_id = alert_id
        self.acknowledged_by = acknowledged_by
