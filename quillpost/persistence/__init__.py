"""
Persistence Module — Row storage for posts, tags and categories.
"""

from .base import PostRepository
from .memory import MemoryRepository
from .supabase import SupabaseRepository

__all__ = ["PostRepository", "MemoryRepository", "SupabaseRepository"]
