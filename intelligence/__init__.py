"""
Intelligence Module
智能层 - LLM 抽象 + 内容生成 (模板降级)
"""
from .llm import (
    BaseLLM,
    OpenAILLM,
    AnthropicLLM,
    get_llm,
)
from .providers import ContentProvider, extract_json_dict
from .templates import GenerationContext

__all__ = [
    # LLM
    "BaseLLM",
    "OpenAILLM",
    "AnthropicLLM",
    "get_llm",
    # Generation
    "ContentProvider",
    "GenerationContext",
    "extract_json_dict",
]
