"""
Base LLM
LLM 抽象基类
"""
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional


class MessageRole(str, Enum):
    """消息角色"""
    SYSTEM = "system"
    USER = "user"
    ASSISTANT = "assistant"


@dataclass
class Message:
    """对话消息"""
    role: MessageRole
    content: str

    def to_dict(self) -> Dict[str, Any]:
        return {"role": self.role.value, "content": self.content}

    @classmethod
    def system(cls, content: str) -> "Message":
        return cls(role=MessageRole.SYSTEM, content=content)

    @classmethod
    def user(cls, content: str) -> "Message":
        return cls(role=MessageRole.USER, content=content)


@dataclass
class LLMResponse:
    """LLM 响应"""
    content: str
    model: str
    usage: Dict[str, int] = field(default_factory=dict)
    finish_reason: Optional[str] = None


class BaseLLM(ABC):
    """
    LLM 抽象基类

    所有 LLM 供应商实现需继承此类
    """

    def __init__(
        self,
        model: str,
        temperature: float = 0.7,
        max_tokens: int = 1500,
        timeout: float = 60.0,
        **kwargs,
    ):
        self.model = model
        self.temperature = temperature
        self.max_tokens = max_tokens
        self.timeout = timeout
        self.extra_config = kwargs

    @property
    @abstractmethod
    def provider(self) -> str:
        """返回供应商名称"""

    @abstractmethod
    async def acomplete(self, messages: List[Message], **kwargs) -> LLMResponse:
        """
        异步生成响应

        Args:
            messages: 对话消息列表
            **kwargs: temperature / max_tokens overrides

        Returns:
            LLMResponse
        """

    async def achat(
        self,
        user_message: str,
        system_prompt: Optional[str] = None,
        **kwargs,
    ) -> str:
        """异步简单对话接口"""
        messages = []
        if system_prompt:
            messages.append(Message.system(system_prompt))
        messages.append(Message.user(user_message))

        response = await self.acomplete(messages, **kwargs)
        return response.content

    async def aclose(self) -> None:
        """关闭底层客户端资源（默认 no-op）。"""
        return None

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(model={self.model}, provider={self.provider})"
