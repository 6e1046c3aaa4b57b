"""
CivicPulse 配置模块
统一管理分类器、扫描器、持久化重试等配置
"""

import os
from typing import Optional, List

from dotenv import load_dotenv

# 加载环境变量
load_dotenv()


# ================= 默认配置 =================

DEFAULT_LLM_PROVIDER = "openai"
DEFAULT_AI_TIMEOUT = 10.0        # AI 请求超时（秒）
DEFAULT_BULK_CONCURRENCY = 4     # 批量分类并发上限

DEFAULT_SCAN_INTERVAL = 30       # 扫描间隔（秒）
DEFAULT_SCAN_BATCH_SIZE = 10     # 每次扫描最多处理的行数
DEFAULT_SCAN_SCORE_THRESHOLD = -0.5
DEFAULT_SCAN_THREAT_LEVELS = ["high"]

DEFAULT_LOG_WRITE_ATTEMPTS = 2   # 首次写入 + 1 次重试
DEFAULT_ALERT_WRITE_ATTEMPTS = 3
DEFAULT_ALERT_RETRY_BACKOFF = 0.2

DEFAULT_TRENDING_WINDOW_HOURS = 24


def _split_csv(value: str) -> List[str]:
    return [v.strip().lower() for v in value.split(",") if v.strip()]


class PulseConfig:
    """CivicPulse 运行配置"""

    def __init__(self,
                 llm_provider: str = DEFAULT_LLM_PROVIDER,
                 llm_api_key: Optional[str] = None,
                 llm_api_url: Optional[str] = None,
                 llm_model: Optional[str] = None,
                 ai_timeout: float = DEFAULT_AI_TIMEOUT,
                 bulk_concurrency: int = DEFAULT_BULK_CONCURRENCY,
                 scan_interval: int = DEFAULT_SCAN_INTERVAL,
                 scan_batch_size: int = DEFAULT_SCAN_BATCH_SIZE,
                 scan_score_threshold: float = DEFAULT_SCAN_SCORE_THRESHOLD,
                 scan_threat_levels: Optional[List[str]] = None,
                 log_write_attempts: int = DEFAULT_LOG_WRITE_ATTEMPTS,
                 alert_write_attempts: int = DEFAULT_ALERT_WRITE_ATTEMPTS,
                 alert_retry_backoff: float = DEFAULT_ALERT_RETRY_BACKOFF,
                 trending_window_hours: int = DEFAULT_TRENDING_WINDOW_HOURS,
                 lexicon_path: Optional[str] = None):
        """
        初始化配置

        Args:
            llm_provider: AI 提供商 ("openai", "gemini", "selfhosted", "none")
            llm_api_key: AI 服务密钥（为空时 AI 通道不可用，只走规则分类）
            llm_api_url: 自部署模型地址
            llm_model: 模型名称（None 使用提供商默认值）
            ai_timeout: 单次 AI 请求超时（秒）
            bulk_concurrency: 批量分类的并发上限
            scan_interval: 阈值扫描间隔（秒）
            scan_batch_size: 每次扫描最多认领的日志行数
            scan_score_threshold: "高度负面" 阈值（严格小于）
            scan_threat_levels: 扫描器复查的威胁等级
            log_write_attempts: 情感日志写入尝试次数
            alert_write_attempts: 告警写入尝试次数
            alert_retry_backoff: 告警重试的基础退避时间（秒，每次翻倍）
            trending_window_hours: 热门话题统计窗口（小时）
            lexicon_path: 词库覆盖文件路径（JSON）
        """
        self.llm_provider = llm_provider.lower()
        self.llm_api_key = llm_api_key
        self.llm_api_url = llm_api_url
        self.llm_model = llm_model
        self.ai_timeout = ai_timeout
        self.bulk_concurrency = max(1, bulk_concurrency)
        self.scan_interval = scan_interval
        self.scan_batch_size = scan_batch_size
        self.scan_score_threshold = scan_score_threshold
        self.scan_threat_levels = scan_threat_levels or list(DEFAULT_SCAN_THREAT_LEVELS)
        self.log_write_attempts = max(1, log_write_attempts)
        self.alert_write_attempts = max(1, alert_write_attempts)
        self.alert_retry_backoff = alert_retry_backoff
        self.trending_window_hours = trending_window_hours
        self.lexicon_path = lexicon_path

    @property
    def ai_enabled(self) -> bool:
        """AI 通道是否可用"""
        if self.llm_provider == "none":
            return False
        if self.llm_provider == "selfhosted":
            return bool(self.llm_api_url)
        return bool(self.llm_api_key)

    @classmethod
    def from_env(cls) -> 'PulseConfig':
        """从环境变量创建配置"""
        provider = os.environ.get("LLM_PROVIDER", DEFAULT_LLM_PROVIDER).lower()

        # API Key 优先级：通用 LLM_API_KEY > 提供商专用变量
        api_key = os.environ.get("LLM_API_KEY")
        if not api_key and provider == "openai":
            api_key = os.environ.get("OPENAI_API_KEY")
        elif not api_key and provider == "gemini":
            api_key = os.environ.get("GEMINI_API_KEY")

        threat_levels = os.environ.get("SCAN_THREAT_LEVELS")

        return cls(
            llm_provider=provider,
            llm_api_key=api_key,
            llm_api_url=os.environ.get("LLM_API_URL"),
            llm_model=os.environ.get("LLM_MODEL"),
            ai_timeout=float(os.environ.get("AI_TIMEOUT_SECONDS", DEFAULT_AI_TIMEOUT)),
            bulk_concurrency=int(os.environ.get("BULK_CONCURRENCY", DEFAULT_BULK_CONCURRENCY)),
            scan_interval=int(os.environ.get("SCAN_INTERVAL_SECONDS", DEFAULT_SCAN_INTERVAL)),
            scan_batch_size=int(os.environ.get("SCAN_BATCH_SIZE", DEFAULT_SCAN_BATCH_SIZE)),
            scan_score_threshold=float(os.environ.get("SCAN_SCORE_THRESHOLD", DEFAULT_SCAN_SCORE_THRESHOLD)),
            scan_threat_levels=_split_csv(threat_levels) if threat_levels else None,
            log_write_attempts=int(os.environ.get("LOG_WRITE_ATTEMPTS", DEFAULT_LOG_WRITE_ATTEMPTS)),
            alert_write_attempts=int(os.environ.get("ALERT_WRITE_ATTEMPTS", DEFAULT_ALERT_WRITE_ATTEMPTS)),
            alert_retry_backoff=float(os.environ.get("ALERT_RETRY_BACKOFF", DEFAULT_ALERT_RETRY_BACKOFF)),
            trending_window_hours=int(os.environ.get("TRENDING_WINDOW_HOURS", DEFAULT_TRENDING_WINDOW_HOURS)),
            lexicon_path=os.environ.get("LEXICON_PATH")
        )
