"""
ファイルロアリポジトリ

ディレクトリ内の JSON ファイル (<name>.json) をロア集合として扱うリポジトリです。
"""

import asyncio
import json
import logging
from pathlib import Path
from typing import Any, List, Optional

from ..adapters.lore_repository import (
    LoreRepository,
    RepositoryUnavailableError,
    WriteResult,
    dedupe_names,
)


class FileLoreRepository(LoreRepository):
    """
    JSON ファイル永続化リポジトリ

    1ファイル = 1ロア集合。ファイル名 (拡張子なし) をスナップショット名とします。
    """

    SUFFIX = ".json"

    def __init__(self, source_dir: Optional[Path] = None):
        """
        FileLoreRepository を初期化

        Args:
            source_dir: ロア集合の保存ディレクトリ。
                        None の場合は "books" を使用。
        """
        self.source_dir = Path(source_dir) if source_dir else Path("books")
        self.logger = logging.getLogger(__name__)

    def path_for(self, name: str) -> Optional[Path]:
        """名前に対応するファイルパス (パス区切りを含む名前は None)"""
        if not name or Path(name).name != name:
            return None
        return self.source_dir / f"{name}{self.SUFFIX}"

    async def list_names(self) -> List[str]:
        """
        ディレクトリ内の JSON ファイル名一覧 (ファイル名順)

        Raises:
            RepositoryUnavailableError: ディレクトリが読めない場合
        """
        return await asyncio.to_thread(self._list_names)

    def _list_names(self) -> List[str]:
        if not self.source_dir.exists():
            return []
        try:
            paths = sorted(self.source_dir.glob(f"*{self.SUFFIX}"))
        except OSError as e:
            raise RepositoryUnavailableError(
                f"ディレクトリ読み込みエラー: {e}",
                url=str(self.source_dir),
            )
        return dedupe_names(path.stem for path in paths)

    async def get(self, name: str) -> Optional[Any]:
        """
        JSON ファイルを読み込み

        Returns:
            Optional[Any]: 生集合。ファイルが存在しない・JSON として読めない場合は None

        Raises:
            RepositoryUnavailableError: ファイルが読めない場合
        """
        path = self.path_for(name)
        if path is None:
            return None
        return await asyncio.to_thread(self._read, path)

    def _read(self, path: Path) -> Optional[Any]:
        if not path.exists():
            return None
        try:
            with open(path, "r", encoding="utf-8") as f:
                return json.load(f)
        except json.JSONDecodeError as e:
            self.logger.warning(f"Unreadable lore file {path}: {e}")
            return None
        except OSError as e:
            raise RepositoryUnavailableError(
                f"ファイル読み込みエラー: {e}",
                url=str(path),
            )

    async def save(self, name: str, data: Any) -> WriteResult:
        """
        生集合を JSON ファイルとして保存

        Note:
            - ensure_ascii=False で日本語をそのまま保存
            - indent=2 で人間が読みやすい形式に整形
        """
        path = self.path_for(name)
        if path is None or data is None:
            return WriteResult(ok=False, reason="invalid_params")
        try:
            await asyncio.to_thread(self._write, path, data)
        except (OSError, TypeError, ValueError) as e:
            self.logger.error(f"Failed to save {path}: {e}", exc_info=True)
            return WriteResult(ok=False, reason=str(e))
        return WriteResult(ok=True)

    def _write(self, path: Path, data: Any) -> None:
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, "w", encoding="utf-8") as f:
            json.dump(data, f, ensure_ascii=False, indent=2)
