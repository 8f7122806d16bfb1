"""差分レポート出力コンポーネント"""

from typing import List, Optional
from pathlib import Path
import json
from datetime import datetime, timezone

from ..domain.models import NormalizedEntry, Snapshot
from ..domain.diff_detector import DiffResult


class OutputWriter:
    """
    差分結果を JSON レポートとテキスト要約として出力

    Responsibilities:
    - DiffResult を JSON ファイルに書き込み
    - 件数と分類別ラベル一覧のテキスト要約を生成
    - 出力先ディレクトリ管理
    """

    OUTPUT_FILENAME = "diff_report.json"

    def __init__(self, output_dir: Optional[Path] = None):
        """
        OutputWriter を初期化

        Args:
            output_dir: 出力ディレクトリ。None の場合は "output" を使用。
        """
        self.output_dir = output_dir or Path("output")

    @property
    def output_file(self) -> Path:
        return self.output_dir / self.OUTPUT_FILENAME

    def write_output(self, a: Snapshot, b: Snapshot, diff_result: DiffResult) -> Path:
        """
        差分結果を JSON ファイルに出力

        Args:
            a: 比較元スナップショット
            b: 比較先スナップショット
            diff_result: 差分検知結果

        Returns:
            Path: 出力ファイルパス

        Preconditions: スナップショットは空でも可
        Postconditions: diff_report.json が生成される
        """
        # ディレクトリ自動作成
        self.output_dir.mkdir(parents=True, exist_ok=True)

        output_data = {
            "compared_at": self._get_current_timestamp(),
            "a": {"name": a.name, "count": len(a.entries), "missing": a.missing},
            "b": {"name": b.name, "count": len(b.entries), "missing": b.missing},
            "stats": diff_result.stats.model_dump(mode="json"),
            "changed": [pair.model_dump(mode="json") for pair in diff_result.changed],
            "added": [entry.model_dump(mode="json") for entry in diff_result.added],
            "removed": [entry.model_dump(mode="json") for entry in diff_result.removed],
        }

        with open(self.output_file, "w", encoding="utf-8") as f:
            json.dump(output_data, f, ensure_ascii=False, indent=2)

        return self.output_file

    def format_summary(self, a: Snapshot, b: Snapshot, diff_result: DiffResult) -> str:
        """
        差分結果のテキスト要約を生成

        Returns:
            str: 件数行と、変更・追加・削除それぞれのラベル一覧
        """
        lines = [
            f"A: {a.name} ({len(a.entries)} entries) vs B: {b.name} ({len(b.entries)} entries); "
            f"changed {len(diff_result.changed)}, added {len(diff_result.added)}, "
            f"removed {len(diff_result.removed)}"
        ]
        sections = [
            ("Changed", [pair.a for pair in diff_result.changed]),
            ("Added (B only)", diff_result.added),
            ("Removed (A only)", diff_result.removed),
        ]
        for title, entries in sections:
            lines.append(f"{title} ({len(entries)}):")
            lines.extend(self._format_entries(entries))
        return "\n".join(lines)

    def _format_entries(self, entries: List[NormalizedEntry]) -> List[str]:
        formatted = []
        for index, entry in enumerate(entries, start=1):
            line = f"  {index}. {entry.label or entry.key}"
            if entry.category:
                line += f" [{entry.category}]"
            if entry.character:
                line += f" @{entry.character}"
            formatted.append(line)
        return formatted

    def _get_current_timestamp(self) -> str:
        """
        現在時刻を ISO 8601 形式で取得

        Returns:
            str: ISO 8601 形式のタイムスタンプ（UTC、Z サフィックス付き）
        """
        return datetime.now(timezone.utc).replace(tzinfo=None).isoformat() + "Z"
