"""
AI 辅助分类模块

向外部语言理解服务发送一次请求（固定 JSON 结构说明 + 本地语境提示），
把响应严格解码为 ClassificationResult。

失败策略：传输失败、非 2xx、响应无法解码，一律抛出 ClassificationFailure，
不做任何部分结果挽救。
"""

import json
import logging
import re
from typing import List, Optional, Literal

from pydantic import (
    BaseModel, ConfigDict, Field, AliasChoices, ValidationError, ValidationInfo, field_validator
)

from civic_pulse.errors import SchemaFailure
from civic_pulse.classifier.models import ClassificationResult, Polarity, ThreatLevel
from civic_pulse.lexicon import Lexicon, default_lexicon
from .llm_providers import LLMProvider


# ================= 提示词 =================

SYSTEM_PROMPT = """You are CamerPulse Intelligence, an analyst of public sentiment in Cameroon.
Analyze the user's text and respond with ONE JSON object and nothing else:
{{
  "polarity": "positive|negative|neutral",
  "score": number between -1.0 and 1.0,
  "emotions": array drawn from [{emotions}],
  "confidence": number between 0.0 and 1.0,
  "language": "en|fr|pidgin",
  "categories": array drawn from [{categories}],
  "keywords": array of important keywords in order of appearance,
  "hashtags": array of hashtags found (without #),
  "mentions": array of @mentions found (without @),
  "region": one of [{regions}] or null,
  "threatLevel": "none|low|medium|high|critical"
}}

Local context:
- Regions: {regions}
- Major cities: {cities}
- Informal Pidgin cues: {dialect}
- Political and security vocabulary: {vocabulary}
Consider French, English and Pidgin usage, the political climate and regional tensions.
Use "high" or "critical" threatLevel only for language indicating unrest, violence or coordinated hostility."""

USER_PROMPT = """Text to analyze:
\"\"\"{text}\"\"\""""

_CODE_FENCE = re.compile(r"^```(?:json)?\s*|\s*```$", re.IGNORECASE)


def allowed_emotions(lexicon: Lexicon) -> List[str]:
    """AI 可返回的情绪标签：词库情绪 + sarcasm"""
    return list(lexicon.emotion_markers) + ["sarcasm"]


def allowed_categories(lexicon: Lexicon) -> List[str]:
    return list(lexicon.topic_keywords)


def build_system_prompt(lexicon: Lexicon) -> str:
    """根据词库生成带本地语境的系统提示词"""
    regions = sorted(set(lexicon.region_aliases.values()))
    cities = [c for c in lexicon.city_regions if c.isascii()]
    vocabulary = lexicon.topic_keywords.get("governance", [])[-3:] + lexicon.threat_keywords[:8]

    return SYSTEM_PROMPT.format(
        emotions=", ".join(allowed_emotions(lexicon)),
        categories=", ".join(allowed_categories(lexicon)),
        regions=", ".join(regions),
        cities=", ".join(c.title() for c in cities),
        dialect=", ".join(lexicon.dialect_markers[:8]),
        vocabulary=", ".join(vocabulary),
    )


# ================= 响应结构 =================

class AIClassificationPayload(BaseModel):
    """
    AI 响应的严格结构

    必填：polarity / score / confidence / language / threatLevel
    集合字段缺省为空列表，region 缺省为 None；类型不匹配一律视为解码失败。
    """
    model_config = ConfigDict(extra="ignore")

    polarity: Literal["positive", "negative", "neutral"]
    score: float = Field(ge=-1.0, le=1.0)
    emotions: List[str] = Field(default_factory=list)
    confidence: float = Field(ge=0.0, le=1.0)
    language: str = Field(min_length=1)
    categories: List[str] = Field(default_factory=list)
    keywords: List[str] = Field(default_factory=list)
    hashtags: List[str] = Field(default_factory=list)
    mentions: List[str] = Field(default_factory=list)
    region: Optional[str] = None
    threat_level: Literal["none", "low", "medium", "high", "critical"] = Field(
        validation_alias=AliasChoices("threatLevel", "threat_level")
    )

    @field_validator("polarity", "threat_level", "language", mode="before")
    @classmethod
    def _lower(cls, value):
        return value.strip().lower() if isinstance(value, str) else value

    @field_validator("emotions", "categories")
    @classmethod
    def _normalize_tags(cls, values: List[str], info: ValidationInfo) -> List[str]:
        seen = []
        for v in values:
            v = v.strip().lower()
            if v and v not in seen:
                seen.append(v)

        # 校验上下文提供词表时，词表外的标签视为解码失败
        allowed = (info.context or {}).get(info.field_name)
        if allowed is not None:
            unknown = [v for v in seen if v not in allowed]
            if unknown:
                raise ValueError(f"未知标签: {', '.join(unknown)}")
        return seen

    @field_validator("hashtags", "mentions")
    @classmethod
    def _strip_sigil(cls, values: List[str]) -> List[str]:
        return [v.strip().lstrip("#@") for v in values if v.strip().lstrip("#@")]

    @field_validator("region")
    @classmethod
    def _empty_region(cls, value: Optional[str]) -> Optional[str]:
        if value is None or not value.strip() or value.strip().lower() in ("null", "none"):
            return None
        return value.strip()

    def to_result(self) -> ClassificationResult:
        return ClassificationResult(
            polarity=Polarity(self.polarity),
            score=self.score,
            emotions=self.emotions,
            confidence=self.confidence,
            language=self.language,
            categories=self.categories,
            keywords=self.keywords,
            hashtags=self.hashtags,
            mentions=self.mentions,
            region=self.region,
            threat_level=ThreatLevel(self.threat_level),
        )


def parse_classification(content: str, lexicon: Optional[Lexicon] = None) -> ClassificationResult:
    """
    把 AI 返回的文本解码为 ClassificationResult

    Args:
        content: AI 返回的原始文本
        lexicon: 情绪 / 类别词表来源（None 则使用内置词库）

    Raises:
        SchemaFailure: 不是 JSON 对象，字段缺失 / 类型不匹配，或标签不在词表内
    """
    lexicon = lexicon or default_lexicon()
    if not content or not content.strip():
        raise SchemaFailure("AI 响应为空")

    cleaned = _CODE_FENCE.sub("", content.strip())

    try:
        data = json.loads(cleaned)
    except json.JSONDecodeError as e:
        raise SchemaFailure(f"AI 响应不是合法 JSON: {e}")

    if not isinstance(data, dict):
        raise SchemaFailure(f"AI 响应不是 JSON 对象: {type(data).__name__}")

    try:
        payload = AIClassificationPayload.model_validate(data, context={
            "emotions": set(allowed_emotions(lexicon)),
            "categories": set(allowed_categories(lexicon)),
        })
    except ValidationError as e:
        raise SchemaFailure(f"AI 响应字段校验失败: {e.error_count()} 个错误")

    return payload.to_result()


class AIClassifier:
    """AI 辅助分类器"""

    def __init__(self, provider: LLMProvider, lexicon: Optional[Lexicon] = None):
        self.provider = provider
        self.lexicon = lexicon or default_lexicon()
        self.system_prompt = build_system_prompt(self.lexicon)

    def classify(self, text: str) -> ClassificationResult:
        """
        调用外部服务分类

        Raises:
            TransportFailure: 传输失败 / 超时 / 非 2xx
            SchemaFailure: 响应无法解码
        """
        content = self.provider.generate(
            system_prompt=self.system_prompt,
            user_prompt=USER_PROMPT.format(text=text),
            temperature=0.3,
            max_tokens=512
        )
        result = parse_classification(content, self.lexicon)
        logging.debug(f"🤖 {self.provider.get_provider_name()} 分类完成: {result.polarity.value}/{result.threat_level.value}")
        return result
