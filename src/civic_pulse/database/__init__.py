"""
数据库模块
提供存储接口、Supabase / 内存实现，以及带重试策略的持久化网关
"""

from .base import SentimentStore
from .memory_store import InMemoryStore
from .gateway import PersistenceGateway

__all__ = ["SentimentStore", "InMemoryStore", "PersistenceGateway", "create_store"]


def create_store() -> SentimentStore:
    """Supabase 已配置则使用 Supabase，否则使用内存存储"""
    from .supabase_client import is_supabase_configured

    if is_supabase_configured():
        from .sentiment_repo import SupabaseSentimentStore
        store = SupabaseSentimentStore()
        if store.is_available():
            return store
    return InMemoryStore()
