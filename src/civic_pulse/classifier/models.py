"""
情感与威胁评估数据模型

ContentItem -> ClassificationResult -> SentimentLogEntry / Alert / LearningLogEntry
"""

import uuid
from dataclasses import dataclass, field, asdict
from datetime import datetime, timezone
from enum import Enum
from typing import Optional, List, Dict, Any


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _iso(dt: Optional[datetime]) -> Optional[str]:
    return dt.isoformat() if dt else None


def _parse_dt(value: Any) -> Optional[datetime]:
    """接受 datetime 或 ISO 字符串（兼容 Z 结尾）"""
    if value is None or isinstance(value, datetime):
        return value
    return datetime.fromisoformat(str(value).replace("Z", "+00:00"))


# ================= 枚举 =================

class Polarity(str, Enum):
    """情感极性"""
    POSITIVE = "positive"
    NEGATIVE = "negative"
    NEUTRAL = "neutral"


class ThreatLevel(str, Enum):
    """威胁等级（有序，严重程度单调递增）"""
    NONE = "none"
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"

    @property
    def rank(self) -> int:
        return _THREAT_ORDER.index(self)

    def at_least(self, other: 'ThreatLevel') -> bool:
        return self.rank >= other.rank


_THREAT_ORDER = [ThreatLevel.NONE, ThreatLevel.LOW, ThreatLevel.MEDIUM,
                 ThreatLevel.HIGH, ThreatLevel.CRITICAL]


class Platform(str, Enum):
    """内容来源渠道"""
    TWITTER = "twitter"
    FACEBOOK = "facebook"
    WHATSAPP = "whatsapp"
    TELEGRAM = "telegram"
    TIKTOK = "tiktok"
    NEWS = "news"
    WEB = "web"
    MANUAL = "manual"
    OTHER = "other"

    @classmethod
    def parse(cls, value: Any) -> 'Platform':
        """未知渠道统一归为 OTHER"""
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            return cls.OTHER


class ClassifierTier(str, Enum):
    """产生结果的分类通道"""
    AI = "ai"
    RULE = "rule"


# ================= 输入 =================

@dataclass(frozen=True)
class ContentItem:
    """
    待分类内容（提交后不可变）

    字段说明:
    - text: 原始文本
    - platform: 来源渠道
    - content_id: 外部内容 ID（可选）
    - author_handle: 作者账号（可选）
    - engagement_metrics: 互动数据（点赞、转发等，不解析）
    - submitted_at: 提交时间
    """
    text: str
    platform: Platform = Platform.OTHER
    content_id: Optional[str] = None
    author_handle: Optional[str] = None
    engagement_metrics: Dict[str, float] = field(default_factory=dict)
    submitted_at: datetime = field(default_factory=utc_now)


# ================= 分类结果 =================

@dataclass
class ClassificationResult:
    """
    统一分类结果（AI 通道和规则通道输出同一结构）

    字段说明:
    - polarity: 情感极性
    - score: 情感分 [-1.0, 1.0]
    - emotions: 情绪标签
    - confidence: 置信度 [0.0, 1.0]
    - language: 语言标签（en / fr / pidgin）
    - categories: 话题类别
    - keywords / hashtags / mentions: 从文本提取的有序序列
    - region: 地区（可选）
    - threat_level: 威胁等级
    """
    polarity: Polarity = Polarity.NEUTRAL
    score: float = 0.0
    emotions: List[str] = field(default_factory=list)
    confidence: float = 0.0
    language: str = "en"
    categories: List[str] = field(default_factory=list)
    keywords: List[str] = field(default_factory=list)
    hashtags: List[str] = field(default_factory=list)
    mentions: List[str] = field(default_factory=list)
    region: Optional[str] = None
    threat_level: ThreatLevel = ThreatLevel.NONE

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["polarity"] = self.polarity.value
        data["threat_level"] = self.threat_level.value
        return data


# ================= 持久化记录 =================

@dataclass
class SentimentLogEntry:
    """
    情感日志（只追加，仅 processed_at 可被设置一次）
    """
    item: ContentItem
    result: ClassificationResult
    id: str = field(default_factory=lambda: str(uuid.uuid4()))
    created_at: datetime = field(default_factory=utc_now)
    processed_at: Optional[datetime] = None

    def to_row(self) -> Dict[str, Any]:
        """转换为 sentiment_log 表的行"""
        return {
            "id": self.id,
            "platform": self.item.platform.value,
            "content_id": self.item.content_id,
            "content_text": self.item.text,
            "author_handle": self.item.author_handle,
            "engagement_metrics": dict(self.item.engagement_metrics),
            "submitted_at": _iso(self.item.submitted_at),
            "sentiment_polarity": self.result.polarity.value,
            "sentiment_score": self.result.score,
            "emotions": list(self.result.emotions),
            "confidence": self.result.confidence,
            "language": self.result.language,
            "categories": list(self.result.categories),
            "keywords": list(self.result.keywords),
            "hashtags": list(self.result.hashtags),
            "mentions": list(self.result.mentions),
            "region": self.result.region,
            "threat_level": self.result.threat_level.value,
            "created_at": _iso(self.created_at),
            "processed_at": _iso(self.processed_at),
        }

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> 'SentimentLogEntry':
        item = ContentItem(
            text=row.get("content_text", ""),
            platform=Platform.parse(row.get("platform")),
            content_id=row.get("content_id"),
            author_handle=row.get("author_handle"),
            engagement_metrics=row.get("engagement_metrics") or {},
            submitted_at=_parse_dt(row.get("submitted_at")) or utc_now(),
        )
        result = ClassificationResult(
            polarity=Polarity(row.get("sentiment_polarity", "neutral")),
            score=float(row.get("sentiment_score") or 0.0),
            emotions=list(row.get("emotions") or []),
            confidence=float(row.get("confidence") or 0.0),
            language=row.get("language") or "en",
            categories=list(row.get("categories") or []),
            keywords=list(row.get("keywords") or []),
            hashtags=list(row.get("hashtags") or []),
            mentions=list(row.get("mentions") or []),
            region=row.get("region"),
            threat_level=ThreatLevel(row.get("threat_level", "none")),
        )
        return cls(
            item=item,
            result=result,
            id=str(row["id"]),
            created_at=_parse_dt(row.get("created_at")) or utc_now(),
            processed_at=_parse_dt(row.get("processed_at")),
        )


@dataclass(frozen=True)
class Alert:
    """
    威胁告警

    除确认字段外不可变；确认字段只能从未设置变为已设置一次（见 AlertManager.acknowledge）。
    source_log_id 用于按日志行去重。
    """
    severity: ThreatLevel
    title: str
    description: str
    alert_type: str = "threat"
    affected_regions: List[str] = field(default_factory=list)
    sentiment_snapshot: Dict[str, Any] = field(default_factory=dict)
    acknowledged: bool = False
    acknowledged_by: Optional[str] = None
    acknowledged_at: Optional[datetime] = None
    auto_generated: bool = True
    source_log_id: Optional[str] = None
    id: str = field(default_factory=lambda: str(uuid.uuid4()))
    created_at: datetime = field(default_factory=utc_now)

    def to_row(self) -> Dict[str, Any]:
        """转换为 alerts 表的行"""
        return {
            "id": self.id,
            "alert_type": self.alert_type,
            "severity": self.severity.value,
            "title": self.title,
            "description": self.description,
            "affected_regions": list(self.affected_regions),
            "sentiment_snapshot": dict(self.sentiment_snapshot),
            "acknowledged": self.acknowledged,
            "acknowledged_by": self.acknowledged_by,
            "acknowledged_at": _iso(self.acknowledged_at),
            "auto_generated": self.auto_generated,
            "source_log_id": self.source_log_id,
            "created_at": _iso(self.created_at),
        }

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> 'Alert':
        return cls(
            id=str(row["id"]),
            alert_type=row.get("alert_type", "threat"),
            severity=ThreatLevel(row["severity"]),
            title=row.get("title", ""),
            description=row.get("description", ""),
            affected_regions=list(row.get("affected_regions") or []),
            sentiment_snapshot=row.get("sentiment_snapshot") or {},
            acknowledged=bool(row.get("acknowledged")),
            acknowledged_by=row.get("acknowledged_by"),
            acknowledged_at=_parse_dt(row.get("acknowledged_at")),
            auto_generated=bool(row.get("auto_generated", True)),
            source_log_id=row.get("source_log_id"),
            created_at=_parse_dt(row.get("created_at")) or utc_now(),
        )


@dataclass
class LearningLogEntry:
    """
    学习日志（诊断用，实时通道从不读取）

    字段说明:
    - input_summary: 输入摘要（内容片段、渠道、分类通道）
    - pattern_identified: 识别出的模式描述
    - confidence_delta: 相对规则通道基线的置信度差
    - validation_score: 与规则通道结果的一致性 (0 / 0.5 / 1.0)
    """
    input_summary: Dict[str, Any]
    pattern_identified: str
    confidence_delta: float = 0.0
    validation_score: float = 0.0
    id: str = field(default_factory=lambda: str(uuid.uuid4()))
    created_at: datetime = field(default_factory=utc_now)

    def to_row(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "input_summary": dict(self.input_summary),
            "pattern_identified": self.pattern_identified,
            "confidence_delta": self.confidence_delta,
            "validation_score": self.validation_score,
            "created_at": _iso(self.created_at),
        }
