"""
告警发布 / 订阅

每个连接持有一个有界队列（同一会话可有多个连接）：
- 发布不等待任何订阅者，队列满时丢弃最旧的事件（慢订阅者不会拖住发布者）
- 至少一次投递：每个已连接订阅者都会收到事件，跨告警不保证顺序
- critical 告警对具备升级权限的角色标记 foreground（前台弹出提示）
"""

import logging
import queue
import threading
from collections import OrderedDict
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional, Set

from civic_pulse.classifier.models import Alert, ThreatLevel


# 可以查看告警的角色
ALERT_VIEWER_ROLES = {"admin", "operator", "analyst"}
# critical 告警需要前台弹出的角色
ESCALATION_ROLES = {"admin", "operator"}

EVENT_RAISED = "raised"
EVENT_ACKNOWLEDGED = "acknowledged"

DEFAULT_QUEUE_SIZE = 100
# 会话本地忽略记录最多保留的会话数
MAX_DISMISS_SESSIONS = 1000


@dataclass(frozen=True)
class AlertEvent:
    """推送给订阅者的事件（自带严重程度与前台提示，不依赖共享状态）"""
    event: str
    alert: Alert
    foreground: bool = False

    def to_dict(self) -> dict:
        return {
            "event": self.event,
            "alert": self.alert.to_row(),
            "foreground": self.foreground,
        }


class Subscription:
    """单个连接的订阅"""

    def __init__(self, session_id: str, role: str, maxsize: int = DEFAULT_QUEUE_SIZE):
        self.session_id = session_id
        self.role = role
        self.dropped = 0
        self._queue: "queue.Queue[AlertEvent]" = queue.Queue(maxsize=maxsize)
        self._notify: Optional[Callable[[], None]] = None

    @property
    def escalation_eligible(self) -> bool:
        return self.role in ESCALATION_ROLES

    def set_notifier(self, notify: Optional[Callable[[], None]]) -> None:
        """设置新事件到达时的回调（在发布者线程中调用，必须非阻塞）"""
        self._notify = notify

    def deliver(self, event: AlertEvent) -> None:
        """非阻塞投递，队列满时丢弃最旧事件"""
        while True:
            try:
                self._queue.put_nowait(event)
                break
            except queue.Full:
                try:
                    self._queue.get_nowait()
                    self.dropped += 1
                except queue.Empty:
                    pass

        notify = self._notify
        if notify is not None:
            notify()

    def get_nowait(self) -> Optional[AlertEvent]:
        try:
            return self._queue.get_nowait()
        except queue.Empty:
            return None

    def pending(self) -> int:
        return self._queue.qsize()


class AlertBroker:
    """告警广播中心"""

    def __init__(self, queue_size: int = DEFAULT_QUEUE_SIZE,
                 max_dismiss_sessions: int = MAX_DISMISS_SESSIONS):
        self.queue_size = queue_size
        self.max_dismiss_sessions = max_dismiss_sessions
        self._lock = threading.Lock()
        # 同一会话可能同时有多个连接（重连时新旧连接短暂并存）
        self._subscriptions: Dict[str, List[Subscription]] = {}
        self._dismissed: "OrderedDict[str, Set[str]]" = OrderedDict()

    def subscribe(self, session_id: str, role: str) -> Subscription:
        """
        订阅告警

        Raises:
            PermissionError: 角色无权查看告警
        """
        role = (role or "").lower()
        if role not in ALERT_VIEWER_ROLES:
            raise PermissionError(f"角色 {role} 无权订阅告警")

        subscription = Subscription(session_id, role, self.queue_size)
        with self._lock:
            self._subscriptions.setdefault(session_id, []).append(subscription)
        logging.info(f"📡 会话订阅告警: {session_id} ({role})")
        return subscription

    def unsubscribe(self, subscription: Subscription) -> None:
        """
        取消单个连接的订阅

        会话的最后一个连接断开时，同时清除该会话的本地忽略记录。
        """
        session_id = subscription.session_id
        with self._lock:
            remaining = [s for s in self._subscriptions.get(session_id, []) if s is not subscription]
            if remaining:
                self._subscriptions[session_id] = remaining
            else:
                self._subscriptions.pop(session_id, None)
                self._dismissed.pop(session_id, None)
        logging.info(f"📴 会话取消订阅: {session_id}")

    def subscriber_count(self) -> int:
        with self._lock:
            return sum(len(subs) for subs in self._subscriptions.values())

    def publish(self, event_type: str, alert: Alert) -> int:
        """
        向所有订阅者广播

        Returns:
            投递的订阅数量
        """
        with self._lock:
            subscriptions = [s for subs in self._subscriptions.values() for s in subs]

        critical = event_type == EVENT_RAISED and alert.severity == ThreatLevel.CRITICAL
        for subscription in subscriptions:
            subscription.deliver(AlertEvent(
                event=event_type,
                alert=alert,
                foreground=critical and subscription.escalation_eligible,
            ))

        logging.debug(f"📣 告警事件 {event_type} [{alert.id}] 已投递 {len(subscriptions)} 个订阅")
        return len(subscriptions)

    # ==================== 会话本地忽略 ====================

    def dismiss(self, session_id: str, alert_id: str) -> None:
        """
        会话本地忽略（不持久化）

        最多保留 max_dismiss_sessions 个会话的记录，超出时淘汰最久未使用的会话。
        """
        with self._lock:
            alert_ids = self._dismissed.pop(session_id, set())
            alert_ids.add(alert_id)
            self._dismissed[session_id] = alert_ids
            while len(self._dismissed) > self.max_dismiss_sessions:
                evicted, _ = self._dismissed.popitem(last=False)
                logging.debug(f"🧹 淘汰会话忽略记录: {evicted}")

    def dismissed(self, session_id: str) -> Set[str]:
        with self._lock:
            return set(self._dismissed.get(session_id, set()))

    def dismiss_session_count(self) -> int:
        with self._lock:
            return len(self._dismissed)
