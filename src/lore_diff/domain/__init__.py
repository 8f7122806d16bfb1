"""
ドメイン層

正規化・差分検知・項目詳細比較・テキスト差分ロジックを提供します。
"""

from .models import IdentitySignature, NormalizedEntry, NormalizeOptions, Snapshot
from .normalizer import LoreNormalizer
from .diff_detector import DiffDetector, DiffResult, DiffStats, EntryPair
from .entry_inspector import EntryInspector, EntryView, InspectionResult
from .text_diff import DiffRenderOptions, LineDiffer, TextDiff, TextDiffer

__all__ = [
    "IdentitySignature",
    "NormalizedEntry",
    "NormalizeOptions",
    "Snapshot",
    "LoreNormalizer",
    "DiffDetector",
    "DiffResult",
    "DiffStats",
    "EntryPair",
    "EntryInspector",
    "EntryView",
    "InspectionResult",
    "DiffRenderOptions",
    "LineDiffer",
    "TextDiff",
    "TextDiffer",
]
