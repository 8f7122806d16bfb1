"""
アダプター層

取得元ごとのロア集合の取得・保存ロジックを提供します。
"""

from .lore_repository import LoreRepository, RepositoryUnavailableError, WriteResult
from .http_repository import HttpLoreRepository

__all__ = ["LoreRepository", "RepositoryUnavailableError", "WriteResult", "HttpLoreRepository"]
