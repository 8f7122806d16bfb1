"""
行単位テキスト差分

項目本文の全文比較を担う協調コンポーネントです。
行単位の差分操作、ハンク分割、セッション内パッチ適用、語単位差分を提供します。
描画 (HTML・配色) は扱いません。
"""

import difflib
import re
from abc import ABC, abstractmethod
from typing import Dict, List, Optional, Tuple
from pydantic import BaseModel, Field

from .models import NormalizeOptions
from .normalizer import canonicalize_json


LINE_EQUAL = "="
LINE_ADDED = "+"
LINE_REMOVED = "-"

_WHITESPACE_RE = re.compile(r"\s+")
_WORD_SPLIT_RE = re.compile(r"(\W+)")


class LineOp(BaseModel):
    """1行分の差分操作 ('=', '+', '-')"""

    op: str
    a_line: Optional[str] = None
    b_line: Optional[str] = None


class Hunk(BaseModel):
    """
    同種の変更行が連続するまとまり

    a_start / b_start は 1 始まりの行番号です。
    """

    id: str
    type: str
    a_start: int
    b_start: int
    a_lines: List[str] = Field(default_factory=list)
    b_lines: List[str] = Field(default_factory=list)

    @property
    def a_count(self) -> int:
        return len(self.a_lines)

    @property
    def b_count(self) -> int:
        return len(self.b_lines)


class DiffRenderOptions(BaseModel):
    """テキスト差分のオプションと表示用メタ情報"""

    ignore_whitespace: bool = False
    ignore_case: bool = False
    json_normalize: bool = False
    context: int = Field(default=3, ge=0, description="変更行の前後に表示する行数")
    a_name: str = ""
    b_name: str = ""
    entry_key: str = ""

    @classmethod
    def from_normalize_options(
        cls,
        options: NormalizeOptions,
        **meta: str,
    ) -> "DiffRenderOptions":
        """正規化オプションと表示メタ情報から生成"""
        return cls(
            ignore_whitespace=options.ignore_whitespace,
            ignore_case=options.ignore_case,
            json_normalize=options.json_normalize,
            **meta,
        )


class TextDiff(BaseModel):
    """テキスト差分の結果"""

    a_text: str
    b_text: str
    ops: List[LineOp] = Field(default_factory=list)
    hunks: List[Hunk] = Field(default_factory=list)
    meta: Dict[str, str] = Field(default_factory=dict)

    @property
    def has_changes(self) -> bool:
        return any(op.op != LINE_EQUAL for op in self.ops)

    def unified(self, context: int = 3) -> str:
        """unified diff 形式の文字列"""
        return "\n".join(
            difflib.unified_diff(
                self.a_text.split("\n"),
                self.b_text.split("\n"),
                fromfile=self.meta.get("a_name") or "A",
                tofile=self.meta.get("b_name") or "B",
                lineterm="",
                n=context,
            )
        )


def prepare_text(text: str, options: DiffRenderOptions) -> str:
    """
    オプションに従って比較前のテキストを整形

    JSON 正規化は全文に、空白・大文字小文字の正規化は行ごとに適用します
    (行構造は保持)。
    """
    if options.json_normalize:
        canonical = canonicalize_json(text)
        if canonical is not None:
            text = canonical
    lines = text.split("\n")
    if options.ignore_whitespace:
        lines = [_WHITESPACE_RE.sub(" ", line).strip() for line in lines]
    if options.ignore_case:
        lines = [line.lower() for line in lines]
    return "\n".join(lines)


def diff_lines(a_text: str, b_text: str) -> List[LineOp]:
    """
    行単位の差分操作列を計算

    置換は削除行の後に追加行として表現します。
    """
    a_lines = a_text.split("\n")
    b_lines = b_text.split("\n")
    matcher = difflib.SequenceMatcher(None, a_lines, b_lines, autojunk=False)

    ops: List[LineOp] = []
    for tag, i1, i2, j1, j2 in matcher.get_opcodes():
        if tag == "equal":
            for a_line, b_line in zip(a_lines[i1:i2], b_lines[j1:j2]):
                ops.append(LineOp(op=LINE_EQUAL, a_line=a_line, b_line=b_line))
            continue
        if tag in ("delete", "replace"):
            ops.extend(LineOp(op=LINE_REMOVED, a_line=line) for line in a_lines[i1:i2])
        if tag in ("insert", "replace"):
            ops.extend(LineOp(op=LINE_ADDED, b_line=line) for line in b_lines[j1:j2])
    return ops


def group_into_hunks(ops: List[LineOp]) -> List[Hunk]:
    """
    差分操作列をハンクに分割

    '=' 行でハンクを区切り、'+' と '-' が切り替わる位置でも新しいハンクにします。
    """
    hunks: List[Hunk] = []
    current: Optional[Hunk] = None
    a_line = 1
    b_line = 1

    for op in ops:
        if op.op == LINE_EQUAL:
            a_line += 1
            b_line += 1
            current = None
            continue

        if current is None or current.type != op.op:
            current = Hunk(
                id=f"h{len(hunks) + 1}",
                type=op.op,
                a_start=a_line,
                b_start=b_line,
            )
            hunks.append(current)

        if op.op == LINE_REMOVED:
            current.a_lines.append(op.a_line or "")
            a_line += 1
        else:
            current.b_lines.append(op.b_line or "")
            b_line += 1

    return hunks


def _insert_lines(text: str, start: int, lines: List[str]) -> str:
    # start は 1 始まり、範囲外は先頭・末尾に丸める
    target = text.split("\n")
    index = max(0, min(len(target), start - 1))
    target[index:index] = lines
    return "\n".join(target)


def apply_hunk_to_a(text_a: str, hunk: Hunk) -> str:
    """B で追加されたハンク ('+') を A に挿入 (それ以外は変更なし)"""
    if hunk.type != LINE_ADDED:
        return text_a
    return _insert_lines(text_a, hunk.a_start, hunk.b_lines)


def apply_hunk_to_b(text_b: str, hunk: Hunk) -> str:
    """B で欠落したハンク ('-') を B に挿入 (それ以外は変更なし)"""
    if hunk.type != LINE_REMOVED:
        return text_b
    return _insert_lines(text_b, hunk.b_start, hunk.a_lines)


def word_diff(a_line: str, b_line: str) -> List[Tuple[str, str]]:
    """
    1行内の語単位差分

    Returns:
        List[Tuple[str, str]]: (操作, トークン) のリスト
    """
    a_tokens = [t for t in _WORD_SPLIT_RE.split(a_line) if t]
    b_tokens = [t for t in _WORD_SPLIT_RE.split(b_line) if t]
    matcher = difflib.SequenceMatcher(None, a_tokens, b_tokens, autojunk=False)

    parts: List[Tuple[str, str]] = []
    for tag, i1, i2, j1, j2 in matcher.get_opcodes():
        if tag == "equal":
            parts.extend((LINE_EQUAL, token) for token in a_tokens[i1:i2])
            continue
        if tag in ("delete", "replace"):
            parts.extend((LINE_REMOVED, token) for token in a_tokens[i1:i2])
        if tag in ("insert", "replace"):
            parts.extend((LINE_ADDED, token) for token in b_tokens[j1:j2])
    return parts


class TextDiffer(ABC):
    """
    テキスト差分コンポーネントの抽象基底クラス

    2つの文字列と表示オプションを受け取り、行単位の差分を返します。
    """

    @abstractmethod
    def render(self, a_text: str, b_text: str, options: DiffRenderOptions) -> TextDiff:
        """
        2つのテキストの差分を計算

        Args:
            a_text: 比較元テキスト
            b_text: 比較先テキスト
            options: 正規化オプションと表示メタ情報

        Returns:
            TextDiff: 差分結果
        """
        pass


class LineDiffer(TextDiffer):
    """difflib による行単位差分の実装"""

    def render(self, a_text: str, b_text: str, options: DiffRenderOptions) -> TextDiff:
        a_prepared = prepare_text(a_text or "", options)
        b_prepared = prepare_text(b_text or "", options)
        ops = diff_lines(a_prepared, b_prepared)
        return TextDiff(
            a_text=a_prepared,
            b_text=b_prepared,
            ops=ops,
            hunks=group_into_hunks(ops),
            meta={
                "a_name": options.a_name,
                "b_name": options.b_name,
                "entry_key": options.entry_key,
            },
        )
