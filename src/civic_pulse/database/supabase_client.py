"""
Supabase 客户端
提供 Supabase 连接的单例模式访问
"""

import os
import logging
from functools import lru_cache

from dotenv import load_dotenv
from supabase import create_client

# 加载环境变量
load_dotenv()


def is_supabase_configured() -> bool:
    """检查 Supabase 是否已配置"""
    url = os.getenv("SUPABASE_URL")
    key = os.getenv("SUPABASE_SERVICE_KEY") or os.getenv("SUPABASE_ANON_KEY")
    return bool(url and key)


@lru_cache(maxsize=1)
def get_supabase_client():
    """
    获取 Supabase 客户端（单例模式）

    Returns:
        Supabase Client 实例，如果未配置或连接失败则返回 None
    """
    if not is_supabase_configured():
        logging.warning("⚠️ Supabase 未配置，将使用内存存储")
        return None

    url = os.getenv("SUPABASE_URL")
    # 优先使用 service key（后端操作），否则使用 anon key
    key = os.getenv("SUPABASE_SERVICE_KEY") or os.getenv("SUPABASE_ANON_KEY")

    try:
        client = create_client(url, key)
        logging.info("✅ Supabase 客户端初始化成功")
        return client
    except Exception as e:
        logging.error(f"❌ Supabase 连接失败: {e}")
        return None
