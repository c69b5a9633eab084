"""
Anthropic LLM
Messages API driver
"""
from typing import List, Optional, Tuple
import inspect
import logging

from .base import BaseLLM, Message, MessageRole, LLMResponse


logger = logging.getLogger(__name__)


class AnthropicLLM(BaseLLM):
    """Anthropic Claude LLM 实现"""

    def __init__(
        self,
        model: str = "claude-3-5-haiku-latest",
        api_key: Optional[str] = None,
        temperature: float = 0.7,
        max_tokens: int = 1500,
        timeout: float = 60.0,
        **kwargs,
    ):
        super().__init__(model, temperature, max_tokens, timeout, **kwargs)
        self.api_key = api_key
        self._async_client = None

    @property
    def provider(self) -> str:
        return "anthropic"

    def _get_async_client(self):
        """获取异步客户端"""
        if self._async_client is None:
            from anthropic import AsyncAnthropic
            self._async_client = AsyncAnthropic(
                api_key=self.api_key,
                timeout=self.timeout,
            )
        return self._async_client

    @staticmethod
    def _convert_messages(messages: List[Message]) -> Tuple[Optional[str], List[dict]]:
        """Split out the system prompt; Anthropic takes it as a separate field."""
        system_prompt = None
        converted = []
        for msg in messages:
            if msg.role == MessageRole.SYSTEM:
                system_prompt = msg.content
            else:
                converted.append({"role": msg.role.value, "content": msg.content})
        return system_prompt, converted

    async def acomplete(self, messages: List[Message], **kwargs) -> LLMResponse:
        """异步生成响应"""
        client = self._get_async_client()
        system_prompt, converted = self._convert_messages(messages)

        request_params = {
            "model": self.model,
            "messages": converted,
            "temperature": kwargs.get("temperature", self.temperature),
            "max_tokens": kwargs.get("max_tokens", self.max_tokens),
        }
        if system_prompt:
            request_params["system"] = system_prompt

        response = await client.messages.create(**request_params)

        content = "".join(block.text for block in response.content if block.type == "text")
        return LLMResponse(
            content=content,
            model=response.model,
            usage={
                "prompt_tokens": response.usage.input_tokens,
                "completion_tokens": response.usage.output_tokens,
                "total_tokens": response.usage.input_tokens + response.usage.output_tokens,
            },
            finish_reason=response.stop_reason,
        )

    async def aclose(self) -> None:
        client = self._async_client
        self._async_client = None
        if client is None:
            return
        close_fn = getattr(client, "close", None)
        if callable(close_fn):
            maybe_awaitable = close_fn()
            if inspect.isawaitable(maybe_awaitable):
                await maybe_awaitable
