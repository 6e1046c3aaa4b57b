"""
AI 分类器测试（解码 + 提供商），不访问真实网络
"""

import json
import pytest
import requests
from unittest.mock import Mock, patch

from civic_pulse.classifier import Polarity, ThreatLevel
from civic_pulse.errors import SchemaFailure, TransportFailure
from civic_pulse.lexicon import default_lexicon, merge_overrides
from civic_pulse.llm.llm_classifier import AIClassifier, parse_classification, build_system_prompt
from civic_pulse.llm.llm_providers import (
    OpenAIProvider, GeminiProvider, SelfHostedProvider, create_llm_provider
)

from conftest import ai_payload, mock_provider


def _response(json_body=None, status_code=200, bad_json=False):
    response = Mock()
    response.status_code = status_code
    if status_code >= 400:
        response.raise_for_status.side_effect = requests.exceptions.HTTPError(f"{status_code} Error")
    else:
        response.raise_for_status.return_value = None
    if bad_json:
        response.json.side_effect = ValueError("not json")
    else:
        response.json.return_value = json_body
    return response


class TestParseClassification:
    """测试 AI 响应解码"""

    def test_valid_payload(self):
        result = parse_classification(ai_payload(threatLevel="high", region="Northwest"))
        assert result.polarity == Polarity.POSITIVE
        assert result.score == 0.6
        assert result.threat_level == ThreatLevel.HIGH
        assert result.region == "Northwest"

    def test_code_fence_stripped(self):
        content = "```json\n" + ai_payload() + "\n```"
        assert parse_classification(content).confidence == 0.9

    def test_optional_fields_default(self):
        body = json.dumps({
            "polarity": "Neutral", "score": 0, "confidence": 0.5,
            "language": "FR", "threatLevel": "None"
        })
        result = parse_classification(body)
        assert result.polarity == Polarity.NEUTRAL
        assert result.language == "fr"
        assert result.emotions == []
        assert result.region is None
        assert result.threat_level == ThreatLevel.NONE

    def test_sigils_and_null_region_normalized(self):
        result = parse_classification(ai_payload(hashtags=["#CMR"], mentions=["@user"], region="null"))
        assert result.hashtags == ["CMR"]
        assert result.mentions == ["user"]
        assert result.region is None

    @pytest.mark.parametrize("content", [
        "",
        "not json at all",
        "[1, 2, 3]",
        json.dumps({"polarity": "positive"}),
    ])
    def test_malformed_raises_schema_failure(self, content):
        with pytest.raises(SchemaFailure):
            parse_classification(content)

    @pytest.mark.parametrize("overrides", [
        {"polarity": "ecstatic"},
        {"score": 1.5},
        {"confidence": -0.1},
        {"threatLevel": "extreme"},
        {"emotions": "joy"},
        {"score": "very positive"},
    ])
    def test_invalid_fields_raise_schema_failure(self, overrides):
        with pytest.raises(SchemaFailure):
            parse_classification(ai_payload(**overrides))

    @pytest.mark.parametrize("overrides", [
        {"emotions": ["excitement", "banana"]},
        {"emotions": ["joy", "banana"]},
        {"categories": ["weather"]},
    ])
    def test_tags_outside_vocabulary_raise_schema_failure(self, overrides):
        with pytest.raises(SchemaFailure):
            parse_classification(ai_payload(**overrides))

    def test_known_tags_accepted(self):
        result = parse_classification(ai_payload(
            emotions=["Anger", "sarcasm", "anger"], categories=["Security", "election"]
        ))
        assert result.emotions == ["anger", "sarcasm"]
        assert result.categories == ["security", "election"]

    def test_vocabulary_follows_lexicon(self):
        lexicon = merge_overrides(default_lexicon(), {
            "emotion_markers": {"relief": ["relieved"]},
            "topic_keywords": {"health": ["hospital"]},
        })
        result = parse_classification(ai_payload(emotions=["relief"], categories=["health"]), lexicon)
        assert result.emotions == ["relief"]
        assert result.categories == ["health"]

        with pytest.raises(SchemaFailure):
            parse_classification(ai_payload(emotions=["relief"]))


class TestAIClassifier:
    """测试 AI 分类器"""

    def test_classify_calls_provider_once(self):
        provider = mock_provider(ai_payload())
        result = AIClassifier(provider).classify("Great progress in Yaoundé")

        assert result.polarity == Polarity.POSITIVE
        provider.generate.assert_called_once()
        assert "Great progress in Yaoundé" in provider.generate.call_args.kwargs["user_prompt"]

    def test_transport_failure_propagates(self):
        def fail(**kwargs):
            raise TransportFailure("timeout")

        with pytest.raises(TransportFailure):
            AIClassifier(mock_provider(fail)).classify("hello")

    def test_unknown_emotion_is_schema_failure(self):
        provider = mock_provider(ai_payload(emotions=["excitement"]))
        with pytest.raises(SchemaFailure):
            AIClassifier(provider).classify("hello")

    def test_system_prompt_lists_vocabulary(self):
        prompt = build_system_prompt(default_lexicon())
        assert "frustration, sarcasm" in prompt
        assert "election, governance" in prompt

    def test_system_prompt_has_local_context(self):
        prompt = build_system_prompt(default_lexicon())
        assert "Far North" in prompt
        assert "Douala" in prompt
        assert "threatLevel" in prompt


class TestProviders:
    """测试提供商（requests 已被替换）"""

    @patch("civic_pulse.llm.llm_providers.requests.post")
    def test_openai_success(self, mock_post):
        mock_post.return_value = _response({"choices": [{"message": {"content": ai_payload()}}]})

        provider = OpenAIProvider(api_key="test-key", timeout=5)
        content = provider.generate("system", "user")

        assert json.loads(content)["polarity"] == "positive"
        _, kwargs = mock_post.call_args
        assert kwargs["timeout"] == 5
        assert kwargs["headers"]["Authorization"] == "Bearer test-key"
        assert kwargs["json"]["model"] == "gpt-4o-mini"

    @patch("civic_pulse.llm.llm_providers.requests.post")
    def test_timeout_is_transport_failure(self, mock_post):
        mock_post.side_effect = requests.exceptions.Timeout()
        with pytest.raises(TransportFailure):
            OpenAIProvider(api_key="k").generate("s", "u")

    @patch("civic_pulse.llm.llm_providers.requests.post")
    def test_connection_error_is_transport_failure(self, mock_post):
        mock_post.side_effect = requests.exceptions.ConnectionError("refused")
        with pytest.raises(TransportFailure):
            SelfHostedProvider(api_url="http://localhost:9999/v1/chat/completions").generate("s", "u")

    @patch("civic_pulse.llm.llm_providers.requests.post")
    def test_non_2xx_is_transport_failure(self, mock_post):
        mock_post.return_value = _response(status_code=503)
        with pytest.raises(TransportFailure):
            OpenAIProvider(api_key="k").generate("s", "u")

    @patch("civic_pulse.llm.llm_providers.requests.post")
    def test_non_json_body_is_schema_failure(self, mock_post):
        mock_post.return_value = _response(bad_json=True)
        with pytest.raises(SchemaFailure):
            OpenAIProvider(api_key="k").generate("s", "u")

    @patch("civic_pulse.llm.llm_providers.requests.post")
    def test_unexpected_shape_is_schema_failure(self, mock_post):
        mock_post.return_value = _response({"candidates": []})
        with pytest.raises(SchemaFailure):
            GeminiProvider(api_key="k").generate("s", "u")

    @patch("civic_pulse.llm.llm_providers.requests.post")
    def test_gemini_success(self, mock_post):
        mock_post.return_value = _response(
            {"candidates": [{"content": {"parts": [{"text": ai_payload()}]}}]}
        )
        content = GeminiProvider(api_key="k").generate("s", "u")
        assert json.loads(content)["threatLevel"] == "none"


class TestCreateProvider:
    """测试工厂方法"""

    def test_create_openai(self):
        provider = create_llm_provider("openai", api_key="k")
        assert provider.get_provider_name() == "OpenAI"

    def test_create_selfhosted(self):
        provider = create_llm_provider("selfhosted", api_url="http://localhost:8000")
        assert provider.get_provider_name().startswith("SelfHosted")

    def test_unsupported(self):
        with pytest.raises(ValueError):
            create_llm_provider("unknown")

    @patch.dict("os.environ", {}, clear=True)
    def test_missing_key(self):
        with pytest.raises(ValueError):
            create_llm_provider("openai")
