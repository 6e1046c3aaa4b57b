"""
分类编排器

两级降级策略：先走 AI 通道，任何失败（传输失败 / 解码失败）立即降级到规则通道。
每个通道每条内容只尝试一次，不做重试，也不混合两个通道的结果。

副作用（每次调用）：
1. 追加一条情感日志
2. 追加一条学习日志
3. 威胁等级达到 high / critical 时创建并广播告警
"""

import logging
import time
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import Optional, List

from civic_pulse.errors import ClassificationFailure, PersistenceFailure
from civic_pulse.alerts.rules import evaluate_alert
from .models import (
    ContentItem, ClassificationResult, ClassifierTier, SentimentLogEntry,
    LearningLogEntry, Alert
)
from .rule_classifier import RuleBasedClassifier, RULE_CONFIDENCE


LEARNING_PREVIEW_CHARS = 200


@dataclass
class ClassificationOutcome:
    """单条内容的处理结果"""
    result: ClassificationResult
    tier: ClassifierTier
    log_id: Optional[str] = None
    alert: Optional[Alert] = None


@dataclass
class BatchItemOutcome:
    """批量处理中单条内容的结果（成功或错误二选一）"""
    index: int
    outcome: Optional[ClassificationOutcome] = None
    error: Optional[str] = None

    @property
    def success(self) -> bool:
        return self.outcome is not None


def agreement_score(result: ClassificationResult, baseline: ClassificationResult) -> float:
    """极性一致 +0.5，威胁等级一致 +0.5"""
    score = 0.0
    if result.polarity == baseline.polarity:
        score += 0.5
    if result.threat_level == baseline.threat_level:
        score += 0.5
    return score


class ClassificationOrchestrator:
    """分类编排器"""

    def __init__(self, rule_classifier: RuleBasedClassifier,
                 ai_classifier=None,
                 gateway=None,
                 alert_manager=None,
                 bulk_concurrency: int = 4):
        """
        Args:
            rule_classifier: 规则分类器（兜底）
            ai_classifier: AI 分类器（None 表示只走规则通道）
            gateway: 持久化网关（None 表示不落库）
            alert_manager: 告警管理器（None 表示只生成不广播）
            bulk_concurrency: 批量分类的并发上限
        """
        self.rule_classifier = rule_classifier
        self.ai_classifier = ai_classifier
        self.gateway = gateway
        self.alert_manager = alert_manager
        self.bulk_concurrency = max(1, bulk_concurrency)

    # ==================== 主入口 ====================

    def classify(self, item: ContentItem) -> ClassificationResult:
        """分类单条内容，永远返回 ClassificationResult"""
        return self.process(item).result

    def process(self, item: ContentItem) -> ClassificationOutcome:
        """分类 + 落库 + 告警"""
        start = time.monotonic()

        result, tier = self._classify_text(item.text)
        log_id = self._record(item, result)
        self._learn(item, result, tier)
        alert = self._escalate(item, result, log_id)

        duration_ms = int((time.monotonic() - start) * 1000)
        logging.info(
            f"🧭 [{tier.value}] {item.platform.value} 内容分类完成: "
            f"{result.polarity.value} ({result.score:+.2f}), 威胁={result.threat_level.value}, 耗时{duration_ms}ms"
        )
        return ClassificationOutcome(result=result, tier=tier, log_id=log_id, alert=alert)

    def classify_batch(self, items: List[ContentItem]) -> List[BatchItemOutcome]:
        """
        批量分类（有界并发，保持输入顺序）

        单条失败只影响自身，不会中断同批其他内容。
        """
        if not items:
            return []

        with ThreadPoolExecutor(max_workers=min(self.bulk_concurrency, len(items))) as executor:
            futures = [executor.submit(self.process, item) for item in items]

            outcomes = []
            for index, future in enumerate(futures):
                try:
                    outcomes.append(BatchItemOutcome(index=index, outcome=future.result()))
                except Exception as e:
                    logging.error(f"❌ 批量分类第 {index} 条失败: {e}")
                    outcomes.append(BatchItemOutcome(index=index, error=str(e)))

        ok = sum(1 for o in outcomes if o.success)
        logging.info(f"📦 批量分类完成: {ok}/{len(items)} 成功")
        return outcomes

    # ==================== 内部步骤 ====================

    def _classify_text(self, text: str):
        """AI 优先，失败降级到规则通道"""
        if self.ai_classifier is not None:
            try:
                return self.ai_classifier.classify(text), ClassifierTier.AI
            except ClassificationFailure as e:
                logging.warning(f"⚠️ AI 分类失败，降级为规则分类 ({type(e).__name__}): {e}")
            except Exception as e:
                logging.exception(f"⚠️ AI 分类出现未预期异常，降级为规则分类: {e}")

        return self.rule_classifier.classify(text), ClassifierTier.RULE

    def _record(self, item: ContentItem, result: ClassificationResult) -> Optional[str]:
        """写情感日志；失败只记录警告，不影响返回分类结果"""
        if self.gateway is None:
            return None
        try:
            return self.gateway.append_log(SentimentLogEntry(item=item, result=result))
        except PersistenceFailure as e:
            logging.warning(f"⚠️ 情感日志写入失败，分类结果照常返回: {e}")
            return None

    def _learn(self, item: ContentItem, result: ClassificationResult, tier: ClassifierTier) -> None:
        if self.gateway is None:
            return

        if tier == ClassifierTier.RULE:
            validation = 1.0
        else:
            validation = agreement_score(result, self.rule_classifier.classify(item.text))

        emotions = ", ".join(result.emotions) or "no"
        entry = LearningLogEntry(
            input_summary={
                "content": item.text[:LEARNING_PREVIEW_CHARS],
                "platform": item.platform.value,
                "tier": tier.value,
            },
            pattern_identified=f"Detected {result.polarity.value} sentiment with {emotions} emotions",
            confidence_delta=round(result.confidence - RULE_CONFIDENCE, 4),
            validation_score=validation,
        )
        try:
            self.gateway.append_learning(entry)
        except PersistenceFailure as e:
            logging.warning(f"⚠️ 学习日志写入失败: {e}")

    def _escalate(self, item: ContentItem, result: ClassificationResult,
                  log_id: Optional[str]) -> Optional[Alert]:
        """
        实时告警

        告警写入失败时不认领日志行，交给扫描器补偿。
        """
        alert = evaluate_alert(result, item, source_log_id=log_id)

        if alert is not None and self.alert_manager is not None:
            try:
                alert, _ = self.alert_manager.raise_alert(alert)
            except PersistenceFailure as e:
                logging.error(f"❌ 告警写入失败，等待扫描器补偿: {e}")
                return None

        if log_id is not None:
            try:
                self.gateway.claim(log_id)
            except PersistenceFailure as e:
                logging.warning(f"⚠️ 日志认领失败 [{log_id}]: {e}")

        return alert
