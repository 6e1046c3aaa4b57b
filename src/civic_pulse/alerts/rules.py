"""
威胁告警规则

纯函数，无副作用：当且仅当威胁等级为 high / critical 时生成告警。
持久化和推送由调用方（编排器后置步骤或扫描器）负责。
"""

from typing import Optional

from civic_pulse.classifier.models import Alert, ClassificationResult, ContentItem, ThreatLevel


ALERT_LEVELS = (ThreatLevel.HIGH, ThreatLevel.CRITICAL)
ALERT_TYPE_THREAT = "threat"
DESCRIPTION_PREVIEW_CHARS = 100


def should_alert(result: ClassificationResult) -> bool:
    return result.threat_level in ALERT_LEVELS


def evaluate_alert(result: ClassificationResult, item: ContentItem,
                   source_log_id: Optional[str] = None) -> Optional[Alert]:
    """
    根据分类结果生成告警

    Args:
        result: 分类结果
        item: 原始内容
        source_log_id: 触发告警的情感日志 ID（用于去重）

    Returns:
        Alert 或 None（未达到告警阈值）
    """
    if not should_alert(result):
        return None

    preview = item.text[:DESCRIPTION_PREVIEW_CHARS]
    if len(item.text) > DESCRIPTION_PREVIEW_CHARS:
        preview += "..."

    return Alert(
        alert_type=ALERT_TYPE_THREAT,
        severity=result.threat_level,
        title=f"{result.threat_level.value.upper()} Threat Detected",
        description=f"Potential threat detected in {item.platform.value} content: \"{preview}\"",
        affected_regions=[result.region] if result.region else [],
        sentiment_snapshot={
            "score": result.score,
            "emotions": list(result.emotions),
            "categories": list(result.categories),
        },
        auto_generated=True,
        source_log_id=source_log_id,
    )
