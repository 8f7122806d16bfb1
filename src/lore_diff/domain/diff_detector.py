"""
差分検知ロジック

2つのスナップショットを識別シグネチャで突き合わせ、
追加・削除・変更・同一の4分類に分けます。
"""

from typing import Dict, List
from pydantic import BaseModel, Field

from .models import IdentitySignature, NormalizedEntry, Snapshot


class EntryPair(BaseModel):
    """A / B 両方に存在する項目の組"""

    a: NormalizedEntry
    b: NormalizedEntry


class DiffStats(BaseModel):
    """差分の件数集計"""

    a_count: int = Field(default=0, description="A の項目数")
    b_count: int = Field(default=0, description="B の項目数")
    added: int = Field(default=0, description="追加 (B のみ)")
    removed: int = Field(default=0, description="削除 (A のみ)")
    changed: int = Field(default=0, description="変更 (本文が異なる)")
    same: int = Field(default=0, description="同一")

    @property
    def total(self) -> int:
        """シグネチャの和集合の件数"""
        return self.added + self.removed + self.changed + self.same


class DiffResult(BaseModel):
    """
    差分検知結果

    4つの分類は A / B のシグネチャ和集合を重複なく完全に分割します。
    """

    added: List[NormalizedEntry] = Field(default_factory=list, description="B のみに存在")
    removed: List[NormalizedEntry] = Field(default_factory=list, description="A のみに存在")
    changed: List[EntryPair] = Field(default_factory=list, description="本文が異なる組")
    same: List[EntryPair] = Field(default_factory=list, description="本文が同一の組")
    stats: DiffStats = Field(default_factory=DiffStats)


class DiffDetector:
    """
    差分検知ロジック

    入出力はすべてローカル値で、I/O や副作用を持ちません。
    正規化オプションは上流で本文に反映済みのため、ここでは扱いません。
    """

    @staticmethod
    def index_by_signature(snapshot: Snapshot) -> Dict[IdentitySignature, NormalizedEntry]:
        """
        シグネチャ -> 項目 の対応表を構築

        同一シグネチャの項目は後勝ちで上書きされます (位置は最初の出現のまま)。
        """
        index: Dict[IdentitySignature, NormalizedEntry] = {}
        for entry in snapshot.entries:
            index[IdentitySignature.of(entry)] = entry
        return index

    @staticmethod
    def detect_diff(a: Snapshot, b: Snapshot) -> DiffResult:
        """
        スナップショット A / B の差分を検知

        Args:
            a: 比較元スナップショット
            b: 比較先スナップショット

        Returns:
            DiffResult: 追加・削除・変更・同一の分類結果

        Note:
            - 結果の並び順は A の出現順、続いて B で新出のシグネチャを B の出現順
            - 本文は正規化済み文字列どうしで比較
        """
        a_index = DiffDetector.index_by_signature(a)
        b_index = DiffDetector.index_by_signature(b)

        ordered = list(a_index)
        ordered.extend(signature for signature in b_index if signature not in a_index)

        result = DiffResult()
        for signature in ordered:
            entry_a = a_index.get(signature)
            entry_b = b_index.get(signature)
            if entry_b is None:
                result.removed.append(entry_a)
            elif entry_a is None:
                result.added.append(entry_b)
            elif entry_a.value == entry_b.value:
                result.same.append(EntryPair(a=entry_a, b=entry_b))
            else:
                result.changed.append(EntryPair(a=entry_a, b=entry_b))

        result.stats = DiffStats(
            a_count=len(a.entries),
            b_count=len(b.entries),
            added=len(result.added),
            removed=len(result.removed),
            changed=len(result.changed),
            same=len(result.same),
        )
        return result
