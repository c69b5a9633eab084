"""
Utils Module
通用工具函数
"""
from .logger import setup_logger, get_logger
from .exceptions import (
    TopicFactoryError,
    ConfigurationError,
    FeedFetchError,
    LLMError,
    StorageError,
)

__all__ = [
    "setup_logger",
    "get_logger",
    "TopicFactoryError",
    "ConfigurationError",
    "FeedFetchError",
    "LLMError",
    "StorageError",
]
