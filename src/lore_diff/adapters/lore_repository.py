"""
ロアリポジトリ抽象基底クラス

取得元 (HTTP サーバー・ファイルなど) ごとの差異を吸収するための抽象インターフェースを
定義します。新しい取得元を追加する場合は、このクラスを継承して具象リポジトリを実装します。
"""

import copy
import logging
import re
from abc import ABC, abstractmethod
from typing import Any, Dict, Iterable, List, Mapping, Optional
from pydantic import BaseModel

from ..domain.models import NormalizeOptions, Snapshot
from ..domain.normalizer import LoreNormalizer


logger = logging.getLogger(__name__)

_WHITESPACE_RE = re.compile(r"\s+")

# 書き戻し対象の照合に使う候補フィールド
_MATCH_FIELDS = ["key", "entry", "name", "title", "comment", "memo", "notes", "displayName"]

# 本文を書き込むフィールド (既存のものを優先)
_VALUE_FIELDS = ["value", "content", "text"]


class RepositoryUnavailableError(Exception):
    """
    取得元到達不能エラー

    HTTP エラー、接続タイムアウト、ファイル読み込み失敗など、
    取得元に到達できない場合を表します。
    """

    def __init__(
        self,
        message: str,
        url: Optional[str] = None,
        status_code: Optional[int] = None,
    ):
        """
        Args:
            message: エラーメッセージ
            url: エラーが発生した URL またはパス
            status_code: HTTP ステータスコード（該当する場合）
        """
        super().__init__(message)
        self.url = url
        self.status_code = status_code


class WriteResult(BaseModel):
    """書き込み結果"""

    ok: bool
    reason: Optional[str] = None
    verified: Optional[bool] = None


def dedupe_names(names: Iterable[Any]) -> List[str]:
    """名前一覧を前後空白除去・空除外・重複排除 (出現順を保持)"""
    seen = set()
    result = []
    for name in names:
        text = str(name or "").strip()
        if text and text not in seen:
            seen.add(text)
            result.append(text)
    return result


def _normalize_key_for_match(raw: Any, options: NormalizeOptions) -> str:
    text = "" if raw is None else str(raw)
    if options.ignore_whitespace:
        text = _WHITESPACE_RE.sub(" ", text).strip()
    if options.ignore_case:
        text = text.lower()
    return text


def _entries_by_uid(entries: Any) -> Dict[str, Any]:
    """リスト形式の項目を uid キーの辞書に変換 (uid がなければ位置を使う)"""
    if isinstance(entries, Mapping):
        return dict(entries)
    result: Dict[str, Any] = {}
    if isinstance(entries, list):
        for index, item in enumerate(entries):
            if not isinstance(item, Mapping):
                continue
            uid = next(
                (str(item[f]) for f in ("uid", "id", "_id") if item.get(f) is not None),
                str(index),
            )
            result[uid] = item
    return result


class LoreRepository(ABC):
    """
    ロアリポジトリ抽象基底クラス

    生のロア集合を取得・保存し、正規化済みスナップショットを提供します。
    取得・保存は非同期で、取得元に到達できない場合は RepositoryUnavailableError を
    送出します。名前が解決できない場合は例外ではなく None / 欠落スナップショットです。
    """

    @abstractmethod
    async def list_names(self) -> List[str]:
        """
        スナップショット名の一覧を取得

        Returns:
            List[str]: 重複排除済み、取得元の順序を保持した名前一覧

        Raises:
            RepositoryUnavailableError: 取得元に到達できない場合
        """
        pass

    @abstractmethod
    async def get(self, name: str) -> Optional[Any]:
        """
        生のロア集合を取得

        Args:
            name: スナップショット名

        Returns:
            Optional[Any]: 生集合。存在しない場合は None

        Raises:
            RepositoryUnavailableError: 取得元に到達できない場合
        """
        pass

    @abstractmethod
    async def save(self, name: str, data: Any) -> WriteResult:
        """
        生のロア集合を保存

        Args:
            name: スナップショット名
            data: 保存する生集合

        Returns:
            WriteResult: 書き込み結果 (失敗時も例外をスローしない)
        """
        pass

    async def snapshot(self, name: str, options: NormalizeOptions) -> Snapshot:
        """名前から正規化済みスナップショットを構築 (キャッシュは使わない)"""
        return await self.to_comparable(name, options)

    async def to_comparable(self, raw_or_name: Any, options: NormalizeOptions) -> Snapshot:
        """
        生集合または名前を正規化済みスナップショットに変換

        Args:
            raw_or_name: 生集合、または取得する名前
            options: 正規化オプション

        Returns:
            Snapshot: 正規化済みスナップショット。名前が解決できない場合は
                      missing マーカー付きの空スナップショット

        Raises:
            RepositoryUnavailableError: 取得元に到達できない場合
        """
        if raw_or_name is None or isinstance(raw_or_name, str):
            name = (raw_or_name or "").strip()
            raw = await self.get(name) if name else None
            if raw is None:
                logger.info(f"Snapshot source not found: '{name}'")
                return Snapshot.missing_source(name)
            return LoreNormalizer.normalize(raw, options, name=name)

        return LoreNormalizer.normalize(raw_or_name, options)

    async def write_entry_value(
        self,
        name: str,
        entry_key: str,
        new_value: str,
        options: Optional[NormalizeOptions] = None,
    ) -> WriteResult:
        """
        1項目の本文を書き換えて保存

        Args:
            name: スナップショット名
            entry_key: 対象項目のキー (素のキー、"[分類] キー"、"キー @話者" のいずれか)
            new_value: 新しい本文
            options: キー照合時の正規化オプション

        Returns:
            WriteResult: 書き込み結果と、再読み込みによる検証結果

        Note:
            取得した生集合はコピーしてから変更します。
            取得元に到達できない場合も例外をスローせず ok=False を返します。
        """
        options = options or NormalizeOptions()
        if not name or not entry_key:
            return WriteResult(ok=False, reason="invalid_params")

        try:
            book = await self.get(name)
        except RepositoryUnavailableError as e:
            logger.warning(f"Write-back failed to load '{name}': {e}")
            return WriteResult(ok=False, reason=str(e))
        data = self._editable_data(book)
        if data is None:
            return WriteResult(ok=False, reason="book_not_found")
        data = copy.deepcopy(data)

        data["entries"] = _entries_by_uid(data.get("entries"))
        target = self._find_entry(data["entries"], entry_key, options)
        if target is None:
            return WriteResult(ok=False, reason="entry_not_found")

        field = next((f for f in _VALUE_FIELDS if f in target), "value")
        target[field] = new_value

        result = await self.save(name, data)
        if not result.ok:
            return result

        try:
            verified = await self._verify_entry_value(name, entry_key, new_value, options)
        except RepositoryUnavailableError as e:
            logger.warning(f"Write verification failed for '{name}': {e}")
            verified = False
        return WriteResult(ok=True, verified=verified)

    @staticmethod
    def _editable_data(book: Any) -> Optional[Dict[str, Any]]:
        """originalData を優先して編集対象の辞書を返す"""
        if isinstance(book, Mapping) and isinstance(book.get("originalData"), Mapping):
            return book["originalData"]
        if isinstance(book, Mapping):
            return book
        return None

    @staticmethod
    def _candidate_strings(entry: Mapping[str, Any]) -> List[str]:
        candidates = []
        for field in _MATCH_FIELDS:
            value = entry.get(field)
            if isinstance(value, list):
                candidates.extend(str(v) for v in value if v is not None)
            elif value is not None:
                candidates.append(str(value))
        keys = entry.get("keys")
        if isinstance(keys, list):
            candidates.extend(str(k) for k in keys if k is not None)
        return candidates

    @staticmethod
    def _find_entry(
        entries: Dict[str, Any],
        entry_key: str,
        options: NormalizeOptions,
    ) -> Optional[Dict[str, Any]]:
        """キー照合で最初に一致した項目を返す"""
        target = _normalize_key_for_match(entry_key, options)
        for entry in entries.values():
            if not isinstance(entry, dict):
                continue
            category = entry.get("category") or ""
            character = entry.get("character") or ""
            for candidate in LoreRepository._candidate_strings(entry):
                forms = (candidate, f"[{category}] {candidate}", f"{candidate} @{character}")
                if any(_normalize_key_for_match(form, options) == target for form in forms):
                    return entry
        return None

    async def _verify_entry_value(
        self,
        name: str,
        entry_key: str,
        new_value: str,
        options: NormalizeOptions,
    ) -> bool:
        """保存後に再読み込みして本文が書き換わったか確認"""
        after = self._editable_data(await self.get(name))
        if after is None:
            return False
        entry = self._find_entry(_entries_by_uid(after.get("entries")), entry_key, options)
        if entry is None:
            return False
        field = next((f for f in _VALUE_FIELDS if f in entry), None)
        current = entry.get(field) if field else ""
        return str(current) == str(new_value)
