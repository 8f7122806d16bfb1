"""
フィールド別名テーブル

ロア項目の生レコードはツールやバージョンごとにフィールド名が異なるため、
論理フィールドごとに候補となるフィールド名 (別名) を優先順に定義し、
単一のリゾルバーで「最初に存在するフィールド」を解決します。
"""

import json
from typing import Any, Dict, List, Mapping, Optional


TOO_DEEP_MARKER = "[Too deep]"

# 論理フィールド -> 別名リスト (優先順)
FIELD_ALIASES: Dict[str, List[str]] = {
    # 表示ラベル (タイトル・メモ類)
    "label": ["label", "title", "comment", "memo", "notes", "displayName", "name"],
    # 照合キー (主キーワード・トリガー)
    "key": ["key", "entry"],
    # 複数トリガーリスト
    "keys": ["keys"],
    # 識別子
    "id": ["id", "uid", "_id"],
    # 本文
    "value": ["value", "content", "text"],
    # 分類
    "category": ["category", "group", "class"],
    # 話者・キャラクター
    "character": ["character", "speaker"],
    # 重複排除用の正規化前キー
    "dedupe_key": ["key", "entry", "name", "title"],
    # スナップショット名
    "snapshot_name": ["title", "name", "book"],
}

# コアスキーマに取り込まれるフィールド (これ以外は extras として保持)
CORE_FIELDS = frozenset(
    FIELD_ALIASES["key"]
    + FIELD_ALIASES["value"]
    + FIELD_ALIASES["category"]
    + FIELD_ALIASES["character"]
)

# 既知のレコード形状を判定するためのフィールド
KNOWN_RECORD_FIELDS = frozenset(
    alias
    for field in ("label", "key", "keys", "id", "value", "category", "character")
    for alias in FIELD_ALIASES[field]
)


def resolve_field(
    record: Mapping[str, Any],
    field: str,
    aliases: Optional[Mapping[str, List[str]]] = None,
) -> Any:
    """
    別名リストから最初に存在するフィールドの値を返す

    Args:
        record: 生レコード
        field: 論理フィールド名 (FIELD_ALIASES のキー)
        aliases: 別名テーブル。None の場合は FIELD_ALIASES を使用。

    Returns:
        Any: 最初に None 以外の値を持つ別名の値。見つからない場合は None

    Raises:
        KeyError: 未定義の論理フィールドが指定された場合
    """
    table = aliases if aliases is not None else FIELD_ALIASES
    for alias in table[field]:
        value = record.get(alias)
        if value is not None:
            return value
    return None


def is_known_record(candidate: Any) -> bool:
    """
    候補が既知のレコード形状かを判定

    Mapping であり、かつ既知フィールドを1つ以上持つ場合に True を返します。
    """
    if not isinstance(candidate, Mapping):
        return False
    return any(field in candidate for field in KNOWN_RECORD_FIELDS)


def to_text(value: Any) -> str:
    """
    任意の値を比較用文字列に変換

    - None → 空文字列
    - bool → "true" / "false"
    - dict / list → JSON 文字列 (シリアライズ不能な場合は str()、
      入れ子が深すぎる場合は TOO_DEEP_MARKER)
    """
    if value is None:
        return ""
    if isinstance(value, str):
        return value
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (Mapping, list, tuple)):
        try:
            return json.dumps(value, ensure_ascii=False)
        except (TypeError, ValueError):
            return str(value)
        except RecursionError:
            # str() も同じ深さで再帰するため使わない
            return TOO_DEEP_MARKER
    return str(value)
