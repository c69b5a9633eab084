"""
Custom Exceptions
自定义异常类
"""


class TopicFactoryError(Exception):
    """Base error for the topic factory."""

    def __init__(self, message: str, details: dict = None):
        self.message = message
        self.details = details or {}
        super().__init__(self.message)

    def __str__(self):
        if self.details:
            return f"{self.message} | Details: {self.details}"
        return self.message


class ConfigurationError(TopicFactoryError):
    """配置错误"""
    pass


class StorageError(TopicFactoryError):
    """存储错误"""
    pass


class FeedFetchError(TopicFactoryError):
    """Feed download or parse failure."""

    def __init__(self, message: str, source: str = None, **kwargs):
        super().__init__(message, kwargs)
        self.source = source


class LLMError(TopicFactoryError):
    """LLM 调用错误"""

    def __init__(self, message: str, provider: str = None, **kwargs):
        super().__init__(message, kwargs)
        self.provider = provider
