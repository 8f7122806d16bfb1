"""比較オーケストレーションサービス"""

from typing import Dict, List, Optional, Tuple
import logging
import time
import uuid
from pydantic import BaseModel

from ..adapters.lore_repository import LoreRepository
from ..domain.diff_detector import DiffDetector, DiffResult
from ..domain.entry_inspector import EntryInspector, InspectionResult
from ..domain.models import IdentitySignature, NormalizeOptions, Snapshot
from ..domain.text_diff import TextDiff
from ..infrastructure.output_writer import OutputWriter
from ..infrastructure.snapshot_store import SnapshotStore


class ComparisonResult(BaseModel):
    """
    比較結果サマリー

    Attributes:
        success: 比較が成功したか
        a_name / b_name: 比較したスナップショット名
        a_count / b_count: 各スナップショットの項目数
        added_count / removed_count / changed_count / same_count: 分類別件数
        a_missing / b_missing: 取得元が解決できなかったか
        output_path: レポート出力先（出力した場合）
        errors: エラーメッセージリスト
        execution_time_seconds: 実行時間（秒）
    """
    success: bool
    a_name: str = ""
    b_name: str = ""
    a_count: int = 0
    b_count: int = 0
    added_count: int = 0
    removed_count: int = 0
    changed_count: int = 0
    same_count: int = 0
    a_missing: bool = False
    b_missing: bool = False
    output_path: Optional[str] = None
    errors: List[str] = []
    execution_time_seconds: float = 0.0


class ComparisonService:
    """
    比較処理全体のオーケストレーション

    Responsibilities:
    - スナップショット構築、差分検知、レポート出力の調整
    - 直近スナップショットのキャッシュ（正本としては扱わない）
    - 項目詳細比較への受け渡し
    - 構造化ログ出力
    """

    def __init__(
        self,
        repository: LoreRepository,
        options: Optional[NormalizeOptions] = None,
        snapshot_store: Optional[SnapshotStore] = None,
        output_writer: Optional[OutputWriter] = None,
        inspector: Optional[EntryInspector] = None,
    ):
        """
        ComparisonService を初期化

        Args:
            repository: ロアリポジトリ
            options: 正規化オプション
            snapshot_store: 直近スナップショットの保存先（任意）
            output_writer: レポート出力（任意）
            inspector: 項目詳細比較。None の場合は repository を使って生成。
        """
        self.repository = repository
        self.options = options or NormalizeOptions()
        self.snapshot_store = snapshot_store
        self.output_writer = output_writer
        self.inspector = inspector or EntryInspector(repository=repository)
        self.logger = logging.getLogger(__name__)

        self.cached: Dict[str, Snapshot] = {}
        self.last_pair: Optional[Tuple[Snapshot, Snapshot]] = None
        self.last_diff: Optional[DiffResult] = None

    async def select_snapshot(self, name: str, slot: str = "b") -> Snapshot:
        """
        スナップショットを選択し、直近のものとしてキャッシュ

        Args:
            name: スナップショット名
            slot: キャッシュのスロット名

        Returns:
            Snapshot: 構築したスナップショット
        """
        snapshot = await self.repository.snapshot(name, self.options)
        self._remember(slot, snapshot)
        self.logger.info(
            f"Snapshot selected: {name}",
            extra={"slot": slot, "entries": len(snapshot.entries)},
        )
        return snapshot

    def _remember(self, slot: str, snapshot: Snapshot) -> None:
        """直近のスナップショットとして記録 (保存失敗は警告のみ)"""
        self.cached[slot] = snapshot
        if self.snapshot_store is None:
            return
        try:
            self.snapshot_store.save_snapshot(slot, snapshot)
        except OSError as e:
            self.logger.warning(f"Failed to cache snapshot '{snapshot.name}': {e}")

    async def run_comparison(self, a_name: str, b_name: str) -> ComparisonResult:
        """
        比較処理を実行

        Args:
            a_name: 比較元スナップショット名
            b_name: 比較先スナップショット名

        Returns:
            ComparisonResult: 比較結果サマリー

        Postconditions: last_pair / last_diff が今回の結果で上書きされ、
                        両側がスロット "a" / "b" の直近スナップショットとして記録される
        Invariants: キャッシュは参照せず、両側とも取得元から構築する
        """
        start_time = time.time()
        execution_id = str(uuid.uuid4())

        try:
            self.logger.info(
                f"Starting comparison {a_name} vs {b_name}",
                extra={"execution_id": execution_id},
            )

            a_snapshot = await self.repository.snapshot(a_name, self.options)
            b_snapshot = await self.repository.snapshot(b_name, self.options)
            diff_result = DiffDetector.detect_diff(a_snapshot, b_snapshot)

            self.last_pair = (a_snapshot, b_snapshot)
            self.last_diff = diff_result
            self._remember("a", a_snapshot)
            self._remember("b", b_snapshot)

            output_path = None
            if self.output_writer is not None:
                output_path = str(self.output_writer.write_output(a_snapshot, b_snapshot, diff_result))

            execution_time = time.time() - start_time
            stats = diff_result.stats
            self.logger.info(
                "Comparison completed",
                extra={
                    "execution_id": execution_id,
                    "added_count": stats.added,
                    "removed_count": stats.removed,
                    "changed_count": stats.changed,
                    "same_count": stats.same,
                    "execution_time_seconds": execution_time,
                },
            )

            return ComparisonResult(
                success=True,
                a_name=a_snapshot.name,
                b_name=b_snapshot.name,
                a_count=stats.a_count,
                b_count=stats.b_count,
                added_count=stats.added,
                removed_count=stats.removed,
                changed_count=stats.changed,
                same_count=stats.same,
                a_missing=a_snapshot.missing,
                b_missing=b_snapshot.missing,
                output_path=output_path,
                execution_time_seconds=execution_time,
            )

        except Exception as e:
            self.logger.error(f"Comparison failed: {str(e)}", exc_info=True)
            return ComparisonResult(
                success=False,
                a_name=a_name,
                b_name=b_name,
                errors=[str(e)],
                execution_time_seconds=time.time() - start_time,
            )

    def summary(self) -> str:
        """直近の比較結果のテキスト要約"""
        if self.last_pair is None or self.last_diff is None:
            return ""
        writer = self.output_writer or OutputWriter()
        return writer.format_summary(self.last_pair[0], self.last_pair[1], self.last_diff)

    def open_entry(self, signature: IdentitySignature) -> InspectionResult:
        """
        直近に比較したスナップショットで項目詳細を開く

        Raises:
            ValueError: まだ比較を実行していない場合
        """
        if self.last_pair is None:
            raise ValueError("No comparison has been run")
        a_snapshot, b_snapshot = self.last_pair
        return self.inspector.inspect(a_snapshot, b_snapshot, signature)

    async def compare_entry_content(self, refresh: bool = True) -> TextDiff:
        """開いている項目の本文を全文比較 (既定でライブ更新してから)"""
        return await self.inspector.compare_content(self.options, refresh=refresh)
