"""
LLM Factory
工厂函数 - 根据配置自动创建 LLM 实例
"""
from typing import Optional
import logging

from utils.exceptions import ConfigurationError
from .base import BaseLLM
from .openai_llm import OpenAILLM
from .anthropic_llm import AnthropicLLM


logger = logging.getLogger(__name__)


# 默认模型配置
DEFAULT_MODELS = {
    "openai": "gpt-4o-mini",
    "anthropic": "claude-3-5-haiku-latest",
}


def get_llm(
    provider: Optional[str] = None,
    model: Optional[str] = None,
    **kwargs,
) -> Optional[BaseLLM]:
    """
    获取 LLM 实例

    Args:
        provider: openai, anthropic, or "none" for template-only generation
        model: 模型名称 (不传则使用默认)
        **kwargs: temperature, max_tokens, api_key, base_url

    Returns:
        BaseLLM instance, or None when generation should use templates only.
    """
    from config import get_llm_settings

    settings = get_llm_settings()
    provider = (provider or settings.provider or "none").strip().lower()
    if provider in ("", "none", "fallback", "template"):
        return None

    model = model or settings.model_name or DEFAULT_MODELS.get(provider)
    api_keys = {
        "openai": settings.openai_api_key,
        "anthropic": settings.anthropic_api_key,
    }
    api_key = kwargs.pop("api_key", None) or api_keys.get(provider)

    kwargs.setdefault("temperature", settings.temperature)
    kwargs.setdefault("max_tokens", settings.max_tokens)

    if provider == "openai":
        if not api_key and not kwargs.get("base_url"):
            raise ConfigurationError("OpenAI provider selected without an API key", {"env": "LLM_OPENAI_API_KEY"})
        return OpenAILLM(model=model, api_key=api_key, base_url=kwargs.pop("base_url", None), **kwargs)
    if provider == "anthropic":
        if not api_key:
            raise ConfigurationError("Anthropic provider selected without an API key", {"env": "LLM_ANTHROPIC_API_KEY"})
        return AnthropicLLM(model=model, api_key=api_key, **kwargs)
    raise ConfigurationError(f"Unsupported LLM provider: {provider}")
