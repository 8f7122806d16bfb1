"""
データモデル定義

このモジュールは lore-diff のドメイン層のデータモデルを定義します:
- NormalizeOptions: 正規化オプション (空白・大文字小文字・JSON 正規化)
- NormalizedEntry: 比較用に正規化されたロア項目
- Snapshot: 名前付きロア集合の正規化済みスナップショット
- IdentitySignature: スナップショット間で同一項目を突き合わせる複合キー
"""

from typing import Any, Dict, List, Optional
from pydantic import BaseModel, ConfigDict, Field, field_validator


class NormalizeOptions(BaseModel):
    """
    正規化オプション

    すべての正規化呼び出しに明示的に渡します (グローバル状態は参照しない)。
    """

    model_config = ConfigDict(frozen=True)

    ignore_whitespace: bool = Field(default=True, description="連続空白を1つに畳み、前後を除去")
    ignore_case: bool = Field(default=False, description="小文字化して比較")
    json_normalize: bool = Field(default=True, description="JSON 値をキー順ソートで安定化")


class NormalizedEntry(BaseModel):
    """
    比較用に正規化されたロア項目

    構築後は不変です。key と value は (生レコード, オプション) の純関数です。
    """

    model_config = ConfigDict(frozen=True)

    key: str = Field(..., description="照合キー (正規化済み)")
    label: str = Field(..., description="表示ラベル (空にならない)")
    value: str = Field(default="", description="本文 (正規化済み)")
    category: str = Field(default="", description="分類 (前後空白のみ除去)")
    character: str = Field(default="", description="話者 (前後空白のみ除去)")
    extras: Dict[str, Any] = Field(
        default_factory=dict,
        description="コアスキーマ外の生属性",
    )

    @field_validator("label")
    @classmethod
    def validate_label(cls, v: str) -> str:
        """
        ラベルの非空バリデーション

        Raises:
            ValueError: 空文字列または空白のみの場合
        """
        if not v.strip():
            raise ValueError("ラベルは空にできません")
        return v

    @property
    def signature(self) -> "IdentitySignature":
        """この項目の識別シグネチャ"""
        return IdentitySignature.of(self)

    def to_record(self) -> Dict[str, Any]:
        """
        再正規化用の生レコード形式に変換

        Returns:
            Dict[str, Any]: extras にコアフィールドを重ねた辞書
        """
        record = dict(self.extras)
        record.update(
            key=self.key,
            label=self.label,
            value=self.value,
            category=self.category,
            character=self.character,
        )
        return record


class IdentitySignature(BaseModel):
    """
    識別シグネチャ (label-or-key, category, character)

    スナップショット間の照合主キーです。照会用に構築する場合、
    category / character を None にするとその項目は任意の値に一致します。
    """

    model_config = ConfigDict(frozen=True)

    label: str
    category: Optional[str] = None
    character: Optional[str] = None

    @classmethod
    def of(cls, entry: NormalizedEntry) -> "IdentitySignature":
        """正規化済み項目からシグネチャを生成"""
        return cls(
            label=entry.label or entry.key,
            category=entry.category,
            character=entry.character,
        )

    def constraints_match(self, entry: NormalizedEntry) -> bool:
        """category / character 制約を満たすか (None は任意)"""
        if self.category is not None and entry.category != self.category:
            return False
        if self.character is not None and entry.character != self.character:
            return False
        return True

    def describe(self) -> str:
        """表示用文字列 ("label [category] @character")"""
        parts = [self.label]
        if self.category:
            parts.append(f"[{self.category}]")
        if self.character:
            parts.append(f"@{self.character}")
        return " ".join(parts)


class Snapshot(BaseModel):
    """
    正規化済みスナップショット

    比較要求ごとに新規に構築します。entries のキーは一意である必要はありません。
    """

    name: str = Field(default="", description="スナップショット名")
    entries: List[NormalizedEntry] = Field(default_factory=list, description="正規化済み項目")
    meta: Dict[str, Any] = Field(default_factory=dict, description="メタ情報")

    @property
    def missing(self) -> bool:
        """取得元が解決できなかったか"""
        return bool(self.meta.get("missing"))

    @classmethod
    def missing_source(cls, name: str) -> "Snapshot":
        """解決できなかった名前に対する空スナップショット"""
        return cls(name=name, entries=[], meta={"missing": True})
