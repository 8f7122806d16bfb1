"""
項目詳細比較ロジック

1つの識別シグネチャについて A / B 両側の属性と本文を解決し、
取得元からの再取得 (ライブ更新) と全文テキスト差分への受け渡しを行います。
"""

import logging
from typing import Any, Dict, List, Optional, TYPE_CHECKING
from pydantic import BaseModel, Field

from .models import IdentitySignature, NormalizeOptions, NormalizedEntry, Snapshot
from .text_diff import DiffRenderOptions, LineDiffer, TextDiff, TextDiffer

if TYPE_CHECKING:
    from ..adapters.lore_repository import LoreRepository


PREVIEW_LIMIT = 120


class EntryView(BaseModel):
    """片側の項目表示内容"""

    present: bool = Field(default=False, description="項目が見つかったか")
    key: str = ""
    label: str = ""
    value: str = ""
    category: str = ""
    character: str = ""
    extras: Dict[str, Any] = Field(default_factory=dict, description="コアスキーマ外の属性")
    preview: str = Field(default="", description="長さ制限付きの本文プレビュー")
    json_like: bool = Field(default=False, description="本文が JSON らしいか")

    @classmethod
    def from_entry(
        cls,
        entry: Optional[NormalizedEntry],
        preview_limit: int = PREVIEW_LIMIT,
    ) -> "EntryView":
        """
        正規化済み項目から表示内容を生成

        Args:
            entry: 対象項目 (None の場合は「なし」を表す空の表示)
            preview_limit: プレビューの最大文字数

        Returns:
            EntryView: 表示内容
        """
        if entry is None:
            return cls()

        value = entry.value
        stripped = value.strip()
        if len(value) > preview_limit:
            preview = value[:preview_limit] + "…"
        else:
            preview = value

        return cls(
            present=True,
            key=entry.key,
            label=entry.label,
            value=value,
            category=entry.category,
            character=entry.character,
            extras=dict(entry.extras),
            preview=preview,
            json_like=stripped.startswith("{") or stripped.startswith("["),
        )


class InspectionResult(BaseModel):
    """項目詳細比較の結果 (表示状態)"""

    signature: IdentitySignature
    a_name: str = ""
    b_name: str = ""
    a_view: EntryView = Field(default_factory=EntryView)
    b_view: EntryView = Field(default_factory=EntryView)
    refreshed: bool = Field(default=False, description="ライブ更新で値が差し替わったか")
    warnings: List[str] = Field(default_factory=list)


class EntryInspector:
    """
    項目詳細比較

    表示状態 (current) は後から完了した更新で上書きされます (マージしない)。
    重なった更新要求の順序は保証しません。
    """

    def __init__(
        self,
        repository: Optional["LoreRepository"] = None,
        text_differ: Optional[TextDiffer] = None,
        preview_limit: int = PREVIEW_LIMIT,
    ):
        """
        EntryInspector を初期化

        Args:
            repository: ライブ更新に使うリポジトリ (None の場合は更新しない)
            text_differ: 全文比較コンポーネント。None の場合は LineDiffer を使用。
            preview_limit: プレビューの最大文字数
        """
        self.repository = repository
        self.text_differ = text_differ or LineDiffer()
        self.preview_limit = preview_limit
        self.current: Optional[InspectionResult] = None
        self.logger = logging.getLogger(__name__)

    @staticmethod
    def locate(snapshot: Snapshot, signature: IdentitySignature) -> Optional[NormalizedEntry]:
        """
        シグネチャに一致する項目を探す

        Note:
            - ラベル一致を優先し、なければ照合キー一致で探す
            - category / character が None の場合は任意の値に一致
            - 複数一致する場合は後勝ち (差分検知と同じ項目)
        """
        constrained = [e for e in snapshot.entries if signature.constraints_match(e)]

        by_label = [e for e in constrained if e.label == signature.label]
        if by_label:
            return by_label[-1]

        by_key = [e for e in constrained if e.key == signature.label]
        if by_key:
            return by_key[-1]
        return None

    def inspect(
        self,
        a_snapshot: Snapshot,
        b_snapshot: Snapshot,
        signature: IdentitySignature,
    ) -> InspectionResult:
        """
        シグネチャに対応する A / B の表示内容を解決

        Args:
            a_snapshot: 比較元スナップショット
            b_snapshot: 比較先スナップショット
            signature: 対象のシグネチャ

        Returns:
            InspectionResult: 両側の表示内容 (表示状態としても保持)
        """
        result = InspectionResult(
            signature=signature,
            a_name=a_snapshot.name,
            b_name=b_snapshot.name,
            a_view=EntryView.from_entry(self.locate(a_snapshot, signature), self.preview_limit),
            b_view=EntryView.from_entry(self.locate(b_snapshot, signature), self.preview_limit),
        )
        self.current = result
        return result

    async def refresh(
        self,
        options: NormalizeOptions,
        inspection: Optional[InspectionResult] = None,
    ) -> InspectionResult:
        """
        取得元から再取得して表示内容を更新 (ライブ更新)

        Args:
            options: 正規化オプション (比較時と同じもの)
            inspection: 更新対象。None の場合は現在の表示状態。

        Returns:
            InspectionResult: 更新後の表示内容

        Raises:
            ValueError: 更新対象の表示状態がない場合

        Note:
            取得元に到達できない場合や項目が見つからない場合は直前の値を保持し、
            警告のみを記録します (例外をスローしない)。
        """
        base = inspection or self.current
        if base is None:
            raise ValueError("No inspection to refresh")

        if self.repository is None:
            return base

        warnings: List[str] = []
        a_view, a_refreshed = await self._refresh_side(base.a_name, base.signature, base.a_view, options, warnings)
        b_view, b_refreshed = await self._refresh_side(base.b_name, base.signature, base.b_view, options, warnings)

        result = base.model_copy(
            update={
                "a_view": a_view,
                "b_view": b_view,
                "refreshed": a_refreshed or b_refreshed,
                "warnings": warnings,
            }
        )
        self.current = result
        return result

    async def _refresh_side(
        self,
        name: str,
        signature: IdentitySignature,
        previous: EntryView,
        options: NormalizeOptions,
        warnings: List[str],
    ):
        """片側の再取得 (失敗時は previous を返す)"""
        if not name:
            return previous, False

        try:
            live = await self.repository.snapshot(name, options)
        except Exception as e:
            # ソフトな劣化: 直前の表示値を保持
            message = f"Live refresh unavailable for '{name}': {e}"
            self.logger.warning(message, extra={"snapshot": name})
            warnings.append(message)
            return previous, False

        entry = self.locate(live, signature)
        if entry is None:
            message = f"Entry '{signature.describe()}' not found in live '{name}'"
            self.logger.warning(message, extra={"snapshot": name})
            warnings.append(message)
            return previous, False

        return EntryView.from_entry(entry, self.preview_limit), True

    async def compare_content(
        self,
        options: NormalizeOptions,
        refresh: bool = True,
        inspection: Optional[InspectionResult] = None,
    ) -> TextDiff:
        """
        両側の本文を全文テキスト差分コンポーネントに渡す

        Args:
            options: 正規化オプション
            refresh: True の場合、先にライブ更新を行う
            inspection: 対象。None の場合は現在の表示状態。

        Returns:
            TextDiff: 全文差分
        """
        target = inspection or self.current
        if target is None:
            raise ValueError("No inspection to compare")

        if refresh:
            target = await self.refresh(options, target)

        entry_key = target.a_view.key or target.b_view.key or target.signature.label
        render_options = DiffRenderOptions.from_normalize_options(
            options,
            a_name=target.a_name,
            b_name=target.b_name,
            entry_key=entry_key,
        )
        return self.text_differ.render(target.a_view.value, target.b_view.value, render_options)
