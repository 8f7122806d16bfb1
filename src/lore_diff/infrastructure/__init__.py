"""
インフラストラクチャ層

ファイル I/O (ロア集合・直近スナップショット・レポート) を提供します。
"""

from .file_repository import FileLoreRepository
from .snapshot_store import SnapshotStore
from .output_writer import OutputWriter

__all__ = ["FileLoreRepository", "SnapshotStore", "OutputWriter"]
