"""
Storage Module
存储模块 - in-memory persistence collaborator
"""
from .repository import InMemoryRepository

__all__ = ["InMemoryRepository"]
