"""
LLM 提供商抽象层
支持多种 LLM API（OpenAI、Google Gemini、自部署 OpenAI 兼容模型）

所有提供商只抛出 TransportFailure（超时、连接失败、非 2xx）或
SchemaFailure（响应外层结构不符合预期），由上层统一视为分类失败。
"""

import os
import requests
from abc import ABC, abstractmethod
from typing import Dict, Any, Optional

from civic_pulse.errors import TransportFailure, SchemaFailure


DEFAULT_TIMEOUT = 10.0


class LLMProvider(ABC):
    """LLM 提供商抽象基类"""

    def __init__(self, api_key: Optional[str] = None, model: Optional[str] = None,
                 timeout: float = DEFAULT_TIMEOUT):
        self.api_key = api_key
        self.model = model
        self.timeout = timeout

    @abstractmethod
    def generate(self,
                 system_prompt: str,
                 user_prompt: str,
                 temperature: float = 0.3,
                 max_tokens: int = 1024) -> str:
        """
        生成文本

        Args:
            system_prompt: 系统提示词
            user_prompt: 用户提示词
            temperature: 温度参数
            max_tokens: 最大 token 数

        Returns:
            生成的文本

        Raises:
            TransportFailure: 请求超时、连接失败或非 2xx
            SchemaFailure: 响应外层结构不符合预期
        """
        pass

    @abstractmethod
    def get_provider_name(self) -> str:
        """获取提供商名称"""
        pass

    def _post(self, url: str, payload: Dict[str, Any],
              headers: Optional[Dict[str, str]] = None) -> Dict[str, Any]:
        """发送请求并返回 JSON（统一异常转换）"""
        try:
            response = requests.post(url, headers=headers, json=payload, timeout=self.timeout)
            response.raise_for_status()
        except requests.exceptions.Timeout:
            raise TransportFailure(f"API 请求超时 ({self.timeout}秒)")
        except requests.exceptions.HTTPError as e:
            raise TransportFailure(f"API 返回错误状态: {e}")
        except requests.exceptions.RequestException as e:
            raise TransportFailure(f"API 请求失败: {str(e)}")

        try:
            return response.json()
        except ValueError:
            raise SchemaFailure("API 响应不是合法的 JSON")


# ================= OpenAI 实现 =================

class OpenAIProvider(LLMProvider):
    """OpenAI Chat Completions 提供商"""

    DEFAULT_API_URL = "https://api.openai.com/v1/chat/completions"
    DEFAULT_MODEL = "gpt-4o-mini"

    def __init__(self, api_key: Optional[str] = None,
                 model: Optional[str] = None,
                 api_url: Optional[str] = None,
                 timeout: float = DEFAULT_TIMEOUT):
        """
        初始化 OpenAI 提供商

        Args:
            api_key: API 密钥
                    优先级：参数 > 环境变量 OPENAI_API_KEY
            model: 模型名称（默认 gpt-4o-mini）
            api_url: API URL（默认 OpenAI 官方地址）
            timeout: 请求超时（秒）
        """
        final_api_key = api_key or os.getenv("OPENAI_API_KEY")

        super().__init__(final_api_key, model or self.DEFAULT_MODEL, timeout)
        self.api_url = api_url or self.DEFAULT_API_URL

        if not self.api_key:
            raise ValueError(
                "OpenAI API Key 未设置！\n"
                "请通过以下任一方式提供：\n"
                "1. 参数: OpenAIProvider(api_key='your_key')\n"
                "2. 环境变量: export OPENAI_API_KEY='your_key'"
            )

    def generate(self,
                 system_prompt: str,
                 user_prompt: str,
                 temperature: float = 0.3,
                 max_tokens: int = 1024) -> str:
        """使用 OpenAI API 生成文本"""

        headers = {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json"
        }

        payload = {
            "model": self.model,
            "messages": [
                {"role": "system", "content": system_prompt},
                {"role": "user", "content": user_prompt}
            ],
            "temperature": temperature,
            "max_tokens": max_tokens,
            "response_format": {"type": "json_object"}
        }

        result = self._post(self.api_url, payload, headers)
        return _extract_chat_content(result)

    def get_provider_name(self) -> str:
        return "OpenAI"


# ================= Google Gemini 实现 =================

class GeminiProvider(LLMProvider):
    """Google Gemini API 提供商"""

    DEFAULT_MODEL = "gemini-2.0-flash"
    DEFAULT_API_URL = "https://generativelanguage.googleapis.com/v1beta/models/{model}:generateContent"

    def __init__(self, api_key: Optional[str] = None,
                 model: Optional[str] = None,
                 timeout: float = DEFAULT_TIMEOUT):
        """
        初始化 Gemini 提供商

        Args:
            api_key: Google API 密钥
                    优先级：参数 > 环境变量 GEMINI_API_KEY
            model: 模型名称（默认 gemini-2.0-flash）
            timeout: 请求超时（秒）
        """
        final_api_key = api_key or os.getenv("GEMINI_API_KEY")

        super().__init__(final_api_key, model or self.DEFAULT_MODEL, timeout)

        if not self.api_key:
            raise ValueError(
                "Gemini API Key 未设置！\n"
                "请通过以下任一方式提供：\n"
                "1. 参数: GeminiProvider(api_key='your_key')\n"
                "2. 环境变量: export GEMINI_API_KEY='your_key'"
            )

        self.api_url = self.DEFAULT_API_URL.format(model=self.model)

    def generate(self,
                 system_prompt: str,
                 user_prompt: str,
                 temperature: float = 0.3,
                 max_tokens: int = 1024) -> str:
        """使用 Gemini API 生成文本"""

        # 合并 system 和 user prompt（Gemini 的格式）
        combined_prompt = f"{system_prompt}\n\n{user_prompt}"

        payload = {
            "contents": [{
                "parts": [{
                    "text": combined_prompt
                }]
            }],
            "generationConfig": {
                "temperature": temperature,
                "maxOutputTokens": max_tokens,
                "responseMimeType": "application/json",
            }
        }

        result = self._post(f"{self.api_url}?key={self.api_key}", payload)

        try:
            return result['candidates'][0]['content']['parts'][0]['text']
        except (KeyError, IndexError, TypeError):
            raise SchemaFailure(f"API 返回格式错误: {str(result)[:200]}")

    def get_provider_name(self) -> str:
        return "Google Gemini"


# ================= 自部署模型实现 =================

class SelfHostedProvider(LLMProvider):
    """自部署模型提供商（OpenAI 兼容 API）"""

    def __init__(self, api_url: str,
                 api_key: Optional[str] = None,
                 model: Optional[str] = None,
                 timeout: float = DEFAULT_TIMEOUT):
        """
        初始化自部署模型提供商

        Args:
            api_url: 自部署模型的 API 地址
            api_key: API 密钥（可选）
            model: 模型名称
            timeout: 请求超时（秒）
        """
        super().__init__(api_key, model or "default", timeout)
        self.api_url = api_url

        if not self.api_url:
            raise ValueError("自部署模型的 API URL 未设置！")

    def generate(self,
                 system_prompt: str,
                 user_prompt: str,
                 temperature: float = 0.3,
                 max_tokens: int = 1024) -> str:
        """使用自部署模型生成文本（OpenAI 兼容格式）"""

        headers = {
            "Content-Type": "application/json"
        }

        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"

        payload = {
            "model": self.model,
            "messages": [
                {"role": "system", "content": system_prompt},
                {"role": "user", "content": user_prompt}
            ],
            "temperature": temperature,
            "max_tokens": max_tokens,
        }

        result = self._post(self.api_url, payload, headers)
        return _extract_chat_content(result)

    def get_provider_name(self) -> str:
        return f"SelfHosted ({self.api_url})"


def _extract_chat_content(result: Dict[str, Any]) -> str:
    """兼容 OpenAI 格式的 choices[0].message.content"""
    try:
        content = result['choices'][0]['message']['content']
    except (KeyError, IndexError, TypeError):
        raise SchemaFailure(f"API 返回格式错误: {str(result)[:200]}")
    if not isinstance(content, str):
        raise SchemaFailure("API 返回的 content 不是字符串")
    return content


# ================= 工厂方法 =================

def create_llm_provider(provider_type: str = "openai", **kwargs) -> LLMProvider:
    """
    创建 LLM 提供商实例

    Args:
        provider_type: 提供商类型 ("openai", "gemini", "selfhosted")
        **kwargs: 提供商特定参数

    Returns:
        LLM 提供商实例
    """
    provider_type = provider_type.lower()

    if provider_type == "openai":
        return OpenAIProvider(**kwargs)
    elif provider_type == "gemini":
        return GeminiProvider(**kwargs)
    elif provider_type == "selfhosted":
        return SelfHostedProvider(**kwargs)
    else:
        raise ValueError(f"不支持的提供商类型: {provider_type}。"
                         f"支持: openai, gemini, selfhosted")
