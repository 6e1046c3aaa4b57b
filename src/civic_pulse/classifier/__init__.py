"""
分类模块
数据模型与规则分类器（编排器请从 civic_pulse.classifier.orchestrator 导入）
"""

from .models import (
    ContentItem,
    ClassificationResult,
    SentimentLogEntry,
    LearningLogEntry,
    Alert,
    Polarity,
    ThreatLevel,
    Platform,
    ClassifierTier,
)
from .rule_classifier import RuleBasedClassifier, threat_level_from_count, RULE_CONFIDENCE

__all__ = [
    'ContentItem', 'ClassificationResult', 'SentimentLogEntry', 'LearningLogEntry', 'Alert',
    'Polarity', 'ThreatLevel', 'Platform', 'ClassifierTier',
    'RuleBasedClassifier', 'threat_level_from_count', 'RULE_CONFIDENCE',
]
