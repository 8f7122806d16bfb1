"""
データ正規化ロジック

異なる形状の生ロア集合を、比較可能な統一スキーマ (Snapshot) に変換します。
抽出・重複排除・フィールド解決・文字列正規化・JSON 正規化のルールを提供します。
"""

import json
import logging
import re
from typing import Any, List, Mapping, Optional, Tuple

from .extractors import extract_candidates
from .field_aliases import (
    CORE_FIELDS,
    is_known_record,
    resolve_field,
    to_text,
)
from .models import NormalizeOptions, NormalizedEntry, Snapshot


logger = logging.getLogger(__name__)

CIRCULAR_MARKER = "[Circular]"

_WHITESPACE_RE = re.compile(r"\s+")


def normalize_string(value: Any, options: NormalizeOptions) -> str:
    """
    空白・大文字小文字の正規化

    Args:
        value: 正規化対象 (文字列以外は to_text で変換)
        options: 正規化オプション

    Returns:
        str: ignore_whitespace なら連続空白を1つに畳んで前後を除去、
             ignore_case なら小文字化した文字列
    """
    text = to_text(value)
    if options.ignore_whitespace:
        text = _WHITESPACE_RE.sub(" ", text).strip()
    if options.ignore_case:
        text = text.lower()
    return text


def _sort_keys(value: Any, active: set) -> Any:
    # active は現在たどっている経路上のコンテナ id (循環検出用)
    if isinstance(value, (Mapping, list, tuple)):
        marker = id(value)
        if marker in active:
            return CIRCULAR_MARKER
        active.add(marker)
        try:
            if isinstance(value, Mapping):
                return {
                    str(k): _sort_keys(value[k], active)
                    for k in sorted(value, key=str)
                }
            return [_sort_keys(item, active) for item in value]
        finally:
            active.discard(marker)
    return value


def stable_stringify(value: Any) -> str:
    """
    キー順を再帰的にソートした安定シリアライズ

    配列の順序は保持し、循環参照は "[Circular]" に置き換えます。

    Args:
        value: dict / list などの JSON 互換値

    Returns:
        str: インデント 2 の JSON 文字列
    """
    return json.dumps(
        _sort_keys(value, set()),
        ensure_ascii=False,
        indent=2,
        default=str,
    )


def canonicalize_json(value: Any, ignore_case: bool = False) -> Optional[str]:
    """
    JSON 値を安定した文字列表現に変換

    Args:
        value: JSON 文字列、または dict / list
        ignore_case: True の場合、パース前に小文字化する
                     (小文字化後もキー順が安定するように)

    Returns:
        Optional[str]: オブジェクト・配列として解釈できた場合は安定文字列、
                       それ以外 (パース失敗・スカラー値) は None
    """
    if not isinstance(value, (str, Mapping, list, tuple)):
        return None

    # 深すぎる入れ子は解釈不能として扱う
    try:
        text = value if isinstance(value, str) else stable_stringify(value)
        if ignore_case:
            text = text.lower()
        parsed = json.loads(text)
        if not isinstance(parsed, (dict, list)):
            return None
        return stable_stringify(parsed)
    except (ValueError, RecursionError):
        return None


def normalize_value(value: Any, options: NormalizeOptions) -> str:
    """
    本文の正規化

    json_normalize が有効で JSON として解釈できる場合は安定シリアライズ後に、
    そうでなければそのまま文字列正規化を適用します。
    """
    if options.json_normalize:
        canonical = canonicalize_json(value, ignore_case=options.ignore_case)
        if canonical is not None:
            return normalize_string(canonical, options)
    return normalize_string(value, options)


class LoreNormalizer:
    """
    ロア集合正規化クラス

    生集合をスナップショットに正規化する静的メソッドを提供します。
    オプションは常に引数で受け取り、状態を持ちません。
    """

    @staticmethod
    def normalize(
        raw: Any,
        options: NormalizeOptions,
        name: Optional[str] = None,
    ) -> Snapshot:
        """
        生集合をスナップショットに正規化

        Args:
            raw: 生のロア集合 (list / dict / None)
            options: 正規化オプション
            name: スナップショット名。None の場合は生集合から解決。

        Returns:
            Snapshot: 正規化済みスナップショット (空入力なら項目0件)

        Note:
            - 既知の形状に一致しないレコードはスキップ (例外にしない)
            - (キー, 本文) が正規化前に一致するレコードは先勝ちで重複排除
        """
        candidates = extract_candidates(raw)

        records = []
        skipped = 0
        for candidate in candidates:
            if is_known_record(candidate):
                records.append(candidate)
            else:
                skipped += 1
        if skipped:
            logger.debug(f"Skipped {skipped} records with unknown shape")

        unique, duplicates = LoreNormalizer._dedupe(records)

        entries = [
            LoreNormalizer.normalize_record(record, ordinal, options)
            for ordinal, record in enumerate(unique, start=1)
        ]

        return Snapshot(
            name=name if name else LoreNormalizer._resolve_name(raw),
            entries=entries,
            meta={
                "candidates": len(candidates),
                "skipped": skipped,
                "duplicates": duplicates,
            },
        )

    @staticmethod
    def renormalize(snapshot: Snapshot, options: NormalizeOptions) -> Snapshot:
        """
        正規化済みスナップショットを再正規化

        同じオプションであれば key / value は変化しません。
        抽出・重複排除は行わず、項目数と並び順を保持します。
        """
        entries = [
            LoreNormalizer.normalize_record(entry.to_record(), ordinal, options)
            for ordinal, entry in enumerate(snapshot.entries, start=1)
        ]
        return Snapshot(name=snapshot.name, entries=entries, meta=dict(snapshot.meta))

    @staticmethod
    def normalize_record(
        record: Mapping[str, Any],
        ordinal: int,
        options: NormalizeOptions,
    ) -> NormalizedEntry:
        """
        1件の生レコードを正規化

        Args:
            record: 既知形状の生レコード
            ordinal: 重複排除後の通し番号 (1始まり、ラベルのフォールバック用)
            options: 正規化オプション

        Returns:
            NormalizedEntry: 正規化済み項目
        """
        label = LoreNormalizer._resolve_label(record, ordinal)
        raw_key = LoreNormalizer._resolve_key(record) or label

        return NormalizedEntry(
            key=normalize_string(raw_key, options),
            label=label,
            value=normalize_value(resolve_field(record, "value"), options),
            category=to_text(resolve_field(record, "category")).strip(),
            character=to_text(resolve_field(record, "character")).strip(),
            extras={k: v for k, v in record.items() if k not in CORE_FIELDS},
        )

    @staticmethod
    def _dedupe(records: List[Mapping[str, Any]]) -> Tuple[List[Mapping[str, Any]], int]:
        """
        正規化前の (キー, 本文) で重複排除

        Returns:
            Tuple[List, int]: 先勝ちで残したレコードと、除去件数
        """
        seen = set()
        unique = []
        for record in records:
            signature = (
                to_text(resolve_field(record, "dedupe_key")),
                to_text(resolve_field(record, "value")),
            )
            if signature in seen:
                continue
            seen.add(signature)
            unique.append(record)
        return unique, len(records) - len(unique)

    @staticmethod
    def _resolve_label(record: Mapping[str, Any], ordinal: int) -> str:
        """
        表示ラベルを解決

        別名リストで解決できない場合は "#<id>"、id もなければ "#<通し番号>"。
        """
        label = to_text(resolve_field(record, "label")).strip()
        if label:
            return label
        id_like = to_text(resolve_field(record, "id")).strip()
        if id_like:
            return f"#{id_like}"
        return f"#{ordinal}"

    @staticmethod
    def _resolve_key(record: Mapping[str, Any]) -> str:
        """
        照合キーを解決

        key / entry を優先し、リスト値の場合は先頭要素を使用します。
        次に keys の先頭要素を使用します。どれもなければ空文字列。

        Note:
            複数トリガーのうち先頭のみを識別に使うため、2番目以降のトリガーを
            共有する重複は一致しません (既知の制約)。
        """
        value = resolve_field(record, "key")
        if isinstance(value, (list, tuple)):
            value = value[0] if value else None
        key = to_text(value).strip()
        if key:
            return key

        triggers = resolve_field(record, "keys")
        if isinstance(triggers, (list, tuple)) and triggers:
            return to_text(triggers[0]).strip()
        return ""

    @staticmethod
    def _resolve_name(raw: Any) -> str:
        """生集合 (またはその originalData) からスナップショット名を解決"""
        if not isinstance(raw, Mapping):
            return ""
        name = to_text(resolve_field(raw, "snapshot_name")).strip()
        if name:
            return name
        original = raw.get("originalData")
        if isinstance(original, Mapping):
            return to_text(resolve_field(original, "snapshot_name")).strip()
        return ""
