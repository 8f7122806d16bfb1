"""
レコード抽出ストラテジー

生のロア集合から候補レコード列を取り出すストラテジーを定義します。
入力形状 (単純なリスト・id キー付きオブジェクト・別名コンテナ配下の入れ子) は
同一入力内で混在し得るため、すべてのストラテジーを順に適用して結果を連結します。
"""

from typing import Any, Callable, List, Mapping, Optional, Sequence, Tuple


CandidateExtractor = Callable[[Any], List[Any]]

# 候補レコードを含み得るコンテナのパス (優先順)
CONTAINER_PATHS: List[Tuple[str, ...]] = [
    ("entries",),
    ("worldEntries",),
    ("data",),
    ("originalData", "entries"),
    ("originalData", "lorebook", "entries"),
]

# コンテナがオブジェクトの場合にリストを探すフィールド
_LIST_FIELDS = ("entries", "items", "list")


def _dig(raw: Mapping[str, Any], path: Tuple[str, ...]) -> Any:
    """ネストしたパスの値を取得 (途中で途切れた場合は None)"""
    current: Any = raw
    for part in path:
        if not isinstance(current, Mapping):
            return None
        current = current.get(part)
    return current


def flatten_container(value: Any) -> List[Any]:
    """
    コンテナ値を候補レコードのリストに平坦化

    Args:
        value: list、リストを保持するオブジェクト、または id キー付きオブジェクト

    Returns:
        List[Any]: 候補レコードのリスト (対応しない値は空リスト)
    """
    if value is None:
        return []
    if isinstance(value, (list, tuple)):
        return list(value)
    if isinstance(value, Mapping):
        for field in _LIST_FIELDS:
            if isinstance(value.get(field), (list, tuple)):
                return list(value[field])
        return [item for item in value.values() if isinstance(item, Mapping)]
    return []


def extract_sequence(raw: Any) -> List[Any]:
    """生集合そのものがリストの場合"""
    if isinstance(raw, (list, tuple)):
        return list(raw)
    return []


def extract_nested(raw: Any) -> List[Any]:
    """別名コンテナ (entries, worldEntries, data, originalData...) 配下の場合"""
    if not isinstance(raw, Mapping):
        return []
    candidates: List[Any] = []
    for path in CONTAINER_PATHS:
        candidates.extend(flatten_container(_dig(raw, path)))
    return candidates


def extract_id_keyed(raw: Any) -> List[Any]:
    """コンテナフィールドを持たない id キー付きオブジェクトの場合"""
    if not isinstance(raw, Mapping):
        return []
    if any(_dig(raw, path) is not None for path in CONTAINER_PATHS):
        return []
    return [item for item in raw.values() if isinstance(item, Mapping)]


EXTRACTORS: List[CandidateExtractor] = [
    extract_sequence,
    extract_nested,
    extract_id_keyed,
]


def extract_candidates(
    raw: Any,
    extractors: Optional[Sequence[CandidateExtractor]] = None,
) -> List[Any]:
    """
    すべての抽出ストラテジーを順に適用し、候補レコードを連結

    Args:
        raw: 生のロア集合
        extractors: 使用するストラテジー列。None の場合は EXTRACTORS を使用。

    Returns:
        List[Any]: 候補レコード (形状チェック前)
    """
    candidates: List[Any] = []
    for extractor in extractors if extractors is not None else EXTRACTORS:
        candidates.extend(extractor(raw))
    return candidates
