"""
スナップショットストア

直近に使用したスナップショットをファイルシステムに保存します。
保存内容は利便性のためのキャッシュであり、比較の正本としては扱いません。
"""

import json
from typing import Optional
from pathlib import Path

from ..domain.models import Snapshot


class SnapshotStore:
    """
    直近スナップショットの永続化

    スロット ("a" / "b" など) ごとに、最後に選択されたスナップショットを
    JSON ファイルとして保存します。
    """

    SNAPSHOT_FILENAME_TEMPLATE = "last_{slot}.json"

    def __init__(self, snapshot_dir: Optional[Path] = None):
        """
        SnapshotStore を初期化

        Args:
            snapshot_dir: スナップショット保存ディレクトリ。
                          None の場合は "snapshots" を使用。
        """
        self.snapshot_dir = snapshot_dir or Path("snapshots")
        self.snapshot_dir.mkdir(parents=True, exist_ok=True)

    def snapshot_file(self, slot: str) -> Path:
        """スロットのスナップショットファイルのパス"""
        return self.snapshot_dir / self.SNAPSHOT_FILENAME_TEMPLATE.format(slot=slot)

    def load_snapshot(self, slot: str) -> Optional[Snapshot]:
        """
        直近のスナップショットを読み込み

        Args:
            slot: スロット名

        Returns:
            Optional[Snapshot]: 保存済みスナップショット（存在しない場合は None）

        Raises:
            json.JSONDecodeError: JSON パースに失敗した場合
        """
        path = self.snapshot_file(slot)
        if not path.exists():
            return None

        with open(path, "r", encoding="utf-8") as f:
            return Snapshot.model_validate(json.load(f))

    def save_snapshot(self, slot: str, snapshot: Snapshot) -> None:
        """
        スナップショットを直近のものとして保存

        Args:
            slot: スロット名
            snapshot: 保存するスナップショット

        Note:
            - ensure_ascii=False で日本語をそのまま保存
            - indent=2 で人間が読みやすい形式に整形
        """
        with open(self.snapshot_file(slot), "w", encoding="utf-8") as f:
            json.dump(snapshot.model_dump(mode="json"), f, ensure_ascii=False, indent=2)
