"""
分类编排器测试
两级降级、落库与告警副作用、批量隔离
"""

import pytest
from unittest.mock import patch

from civic_pulse.classifier import ContentItem, Platform, ClassifierTier, ThreatLevel, RuleBasedClassifier
from civic_pulse.classifier.orchestrator import ClassificationOrchestrator, agreement_score
from civic_pulse.errors import TransportFailure
from civic_pulse.llm.llm_classifier import AIClassifier, parse_classification
from civic_pulse.service import build_service

from conftest import ai_payload, mock_provider


VIOLENT_TEXT = "They will attack and destroy everything, riot in the streets!"
POSITIVE_TEXT = "Wonderful news, so proud of our community today!"


def _timeout(**kwargs):
    raise TransportFailure("request timed out")


def _crash(**kwargs):
    raise RuntimeError("unexpected")


def _ai_with(provider):
    return AIClassifier(provider)


def _ai(generate):
    return _ai_with(mock_provider(generate))


@pytest.fixture
def ai_service(config, store):
    return build_service(config=config, store=store, provider=mock_provider(ai_payload()))


class TestFallback:
    """测试 AI 失败降级"""

    @pytest.mark.parametrize("generate", [_timeout, "this is not json", _crash])
    @pytest.mark.parametrize("text", [VIOLENT_TEXT, POSITIVE_TEXT, "", "Abeg, wetin dey happen for Bamenda?"])
    def test_fallback_equals_rule_result(self, generate, text):
        rule = RuleBasedClassifier()
        orchestrator = ClassificationOrchestrator(rule, ai_classifier=_ai(generate))

        outcome = orchestrator.process(ContentItem(text=text))

        assert outcome.tier == ClassifierTier.RULE
        assert outcome.result == RuleBasedClassifier().classify(text)

    def test_ai_result_used_when_available(self, ai_service):
        outcome = ai_service.orchestrator.process(ContentItem(text="Great progress"))
        assert outcome.tier == ClassifierTier.AI
        assert outcome.result == parse_classification(ai_payload())

    def test_ai_called_once_per_item(self):
        provider = mock_provider(_timeout)
        orchestrator = ClassificationOrchestrator(RuleBasedClassifier(), ai_classifier=_ai_with(provider))
        orchestrator.classify(ContentItem(text="hello"))
        assert provider.generate.call_count == 1

    def test_no_ai_uses_rule(self):
        orchestrator = ClassificationOrchestrator(RuleBasedClassifier())
        assert orchestrator.process(ContentItem(text="good")).tier == ClassifierTier.RULE


class TestSideEffects:
    """测试落库与告警"""

    def test_violent_text_raises_critical_alert(self, rule_service, store):
        subscription = rule_service.broker.subscribe("ops-1", "operator")

        outcome = rule_service.orchestrator.process(ContentItem(text=VIOLENT_TEXT, platform=Platform.TWITTER))

        assert outcome.result.threat_level == ThreatLevel.CRITICAL
        assert outcome.alert is not None
        assert outcome.alert.severity == ThreatLevel.CRITICAL
        assert outcome.alert.auto_generated is True
        assert outcome.alert.source_log_id == outcome.log_id
        assert len(store.alerts) == 1
        assert store.sentiment_logs[outcome.log_id]["processed_at"] is not None

        event = subscription.get_nowait()
        assert event.event == "raised"
        assert event.foreground is True

    def test_positive_text_no_alert(self, rule_service, store):
        outcome = rule_service.orchestrator.process(ContentItem(text=POSITIVE_TEXT))

        assert outcome.alert is None
        assert store.alerts == {}
        assert store.sentiment_logs[outcome.log_id]["processed_at"] is not None

    def test_log_write_failure_still_returns_result(self, rule_service, store):
        with patch.object(store, "insert_sentiment_log", side_effect=Exception("db down")):
            outcome = rule_service.orchestrator.process(ContentItem(text=POSITIVE_TEXT))

        assert outcome.log_id is None
        assert outcome.result.threat_level == ThreatLevel.NONE

    def test_alert_write_failure_leaves_row_for_scanner(self, rule_service, store):
        with patch.object(store, "create_alert", side_effect=Exception("db down")):
            outcome = rule_service.orchestrator.process(ContentItem(text=VIOLENT_TEXT))

        assert outcome.alert is None
        assert store.sentiment_logs[outcome.log_id]["processed_at"] is None

    def test_learning_log_for_rule_tier(self, rule_service, store):
        rule_service.orchestrator.process(ContentItem(text=POSITIVE_TEXT, platform=Platform.FACEBOOK))

        entry = store.learning_logs[0]
        assert entry["input_summary"]["platform"] == "facebook"
        assert entry["input_summary"]["tier"] == "rule"
        assert entry["pattern_identified"].startswith("Detected positive sentiment with")
        assert entry["confidence_delta"] == 0.0
        assert entry["validation_score"] == 1.0

    def test_learning_log_records_disagreement(self, config, store):
        provider = mock_provider(ai_payload(polarity="negative", score=-0.7, threatLevel="high"))
        service = build_service(config=config, store=store, provider=provider)

        service.orchestrator.process(ContentItem(text=POSITIVE_TEXT))

        assert store.learning_logs[0]["validation_score"] == 0.0
        assert store.learning_logs[0]["confidence_delta"] == pytest.approx(0.2)


class TestAgreementScore:

    def test_partial_agreement(self):
        rule = RuleBasedClassifier()
        a = rule.classify(POSITIVE_TEXT)
        b = rule.classify("good news, but they burned the market")
        assert agreement_score(a, a) == 1.0
        assert agreement_score(a, b) == 0.5


class TestBatch:
    """测试批量分类"""

    def test_one_timeout_does_not_affect_siblings(self, config, store):
        texts = [
            "Good roads in Buea",
            "Great progress",
            "item three: attack on the bridge",
            "Happy students",
            "Peaceful market",
        ]

        def generate(**kwargs):
            if "item three" in kwargs["user_prompt"]:
                raise TransportFailure("request timed out")
            return ai_payload()

        service = build_service(config=config, store=store, provider=mock_provider(generate))
        outcomes = service.orchestrator.classify_batch([ContentItem(text=t) for t in texts])

        assert [o.index for o in outcomes] == [0, 1, 2, 3, 4]
        assert all(o.success for o in outcomes)
        assert outcomes[2].outcome.tier == ClassifierTier.RULE
        assert outcomes[2].outcome.result == RuleBasedClassifier().classify(texts[2])
        for i in (0, 1, 3, 4):
            assert outcomes[i].outcome.tier == ClassifierTier.AI
            assert outcomes[i].outcome.result == parse_classification(ai_payload())

    def test_unexpected_error_isolated(self, rule_service):
        orchestrator = rule_service.orchestrator
        original = orchestrator.process

        def flaky(item):
            if item.text == "boom":
                raise RuntimeError("worker crashed")
            return original(item)

        with patch.object(orchestrator, "process", side_effect=flaky):
            outcomes = orchestrator.classify_batch(
                [ContentItem(text="good"), ContentItem(text="boom"), ContentItem(text="bad")]
            )

        assert [o.success for o in outcomes] == [True, False, True]
        assert "worker crashed" in outcomes[1].error

    def test_empty_batch(self, rule_service):
        assert rule_service.orchestrator.classify_batch([]) == []
