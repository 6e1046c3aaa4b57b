"""
公共测试夹具
"""

import json
import pytest
from unittest.mock import Mock

from civic_pulse.config import PulseConfig
from civic_pulse.database import InMemoryStore, PersistenceGateway
from civic_pulse.llm.llm_providers import LLMProvider
from civic_pulse.service import build_service


def ai_payload(**overrides) -> str:
    """构造一个合法的 AI 响应 JSON"""
    data = {
        "polarity": "positive",
        "score": 0.6,
        "emotions": ["joy"],
        "confidence": 0.9,
        "language": "en",
        "categories": ["governance"],
        "keywords": ["progress"],
        "hashtags": [],
        "mentions": [],
        "region": "Centre",
        "threatLevel": "none",
    }
    data.update(overrides)
    return json.dumps(data)


def mock_provider(generate=None) -> Mock:
    """AI 提供商替身（generate 可以是返回值或 side_effect 函数）"""
    provider = Mock(spec=LLMProvider)
    provider.get_provider_name.return_value = "Mock"
    if callable(generate):
        provider.generate.side_effect = generate
    else:
        provider.generate.return_value = generate if generate is not None else ai_payload()
    return provider


@pytest.fixture
def store():
    return InMemoryStore()


@pytest.fixture
def gateway(store):
    return PersistenceGateway(store, sleep=Mock())


@pytest.fixture
def config():
    return PulseConfig(llm_provider="none", alert_retry_backoff=0.0)


@pytest.fixture
def rule_service(config, store):
    """只走规则通道的完整服务（内存存储）"""
    return build_service(config=config, store=store, use_ai=False)
