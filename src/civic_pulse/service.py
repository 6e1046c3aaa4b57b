"""
服务装配

把词库、两级分类器、持久化网关、告警管理器和扫描器组装成一个 PulseService，
供 API 层和定时任务共享。
"""

import logging
from typing import Any, Dict, List, Optional

from civic_pulse.config import PulseConfig
from civic_pulse.lexicon import load_lexicon
from civic_pulse.classifier.rule_classifier import RuleBasedClassifier
from civic_pulse.classifier.orchestrator import ClassificationOrchestrator
from civic_pulse.database import SentimentStore, PersistenceGateway, create_store
from civic_pulse.alerts import AlertBroker, AlertManager, ThresholdScanner
from civic_pulse.llm.llm_classifier import AIClassifier
from civic_pulse.llm.llm_providers import LLMProvider, create_llm_provider


class PulseService:
    """情感与威胁评估服务（所有组件的持有者）"""

    def __init__(self, config: PulseConfig,
                 gateway: PersistenceGateway,
                 broker: AlertBroker,
                 manager: AlertManager,
                 orchestrator: ClassificationOrchestrator,
                 scanner: ThresholdScanner):
        self.config = config
        self.gateway = gateway
        self.broker = broker
        self.manager = manager
        self.orchestrator = orchestrator
        self.scanner = scanner

    @property
    def ai_enabled(self) -> bool:
        return self.orchestrator.ai_classifier is not None

    def stats(self) -> Dict[str, int]:
        """总分类数 / 活跃告警数 / 窗口内热门话题数"""
        return self.gateway.stats(self.config.trending_window_hours)

    def regional_stats(self, window_hours: int = 168) -> List[Dict[str, Any]]:
        """窗口内按地区汇总的情感数据"""
        return self.gateway.regional_stats(window_hours)


def _provider_kwargs(config: PulseConfig) -> dict:
    kwargs = {"api_key": config.llm_api_key, "timeout": config.ai_timeout}
    if config.llm_model:
        kwargs["model"] = config.llm_model
    if config.llm_provider in ("selfhosted", "openai") and config.llm_api_url:
        kwargs["api_url"] = config.llm_api_url
    return kwargs


def create_provider(config: PulseConfig) -> Optional[LLMProvider]:
    """根据配置创建 AI 提供商，未配置或不支持时返回 None（只走规则通道）"""
    if not config.ai_enabled:
        logging.info("ℹ️ AI 分类未启用，只使用规则分类")
        return None

    try:
        provider = create_llm_provider(config.llm_provider, **_provider_kwargs(config))
    except ValueError as e:
        logging.warning(f"⚠️ {e}，只使用规则分类")
        return None

    logging.info(f"🤖 AI 分类已启用: {provider.get_provider_name()}")
    return provider


def build_service(config: Optional[PulseConfig] = None,
                  store: Optional[SentimentStore] = None,
                  provider: Optional[LLMProvider] = None,
                  use_ai: bool = True) -> PulseService:
    """
    组装服务

    Args:
        config: 运行配置（None 时从环境变量读取）
        store: 存储实现（None 时按配置选择 Supabase 或内存存储）
        provider: AI 提供商（None 时按配置创建）
        use_ai: False 时强制只走规则通道
    """
    config = config or PulseConfig.from_env()
    lexicon = load_lexicon(config.lexicon_path)

    rule_classifier = RuleBasedClassifier(lexicon)

    ai_classifier = None
    if use_ai:
        provider = provider or create_provider(config)
        if provider is not None:
            ai_classifier = AIClassifier(provider, lexicon)

    store = store or create_store()
    gateway = PersistenceGateway(
        store,
        log_write_attempts=config.log_write_attempts,
        alert_write_attempts=config.alert_write_attempts,
        alert_retry_backoff=config.alert_retry_backoff
    )

    broker = AlertBroker()
    manager = AlertManager(gateway, broker)
    orchestrator = ClassificationOrchestrator(
        rule_classifier,
        ai_classifier=ai_classifier,
        gateway=gateway,
        alert_manager=manager,
        bulk_concurrency=config.bulk_concurrency
    )
    scanner = ThresholdScanner(
        gateway, manager,
        score_threshold=config.scan_score_threshold,
        threat_levels=config.scan_threat_levels,
        batch_size=config.scan_batch_size
    )

    logging.info(
        f"🧩 服务已装配: 词库版本={lexicon.version}, 存储={type(store).__name__}, "
        f"AI={'启用' if ai_classifier else '关闭'}"
    )
    return PulseService(config, gateway, broker, manager, orchestrator, scanner)
