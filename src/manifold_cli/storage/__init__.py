"""Spec persistence: the ``SpecStore`` protocol and its implementations."""

from .base import SpecStore, extract_searchable_content
from .files import FileSpecStore
from .memory import InMemorySpecStore

__all__ = ["FileSpecStore", "InMemorySpecStore", "SpecStore", "extract_searchable_content"]
