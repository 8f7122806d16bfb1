"""
LoreNormalizer のユニットテスト

抽出・重複排除・フィールド解決・文字列正規化・JSON 正規化を検証します。
"""

import sys

import pytest

from src.lore_diff.domain.field_aliases import TOO_DEEP_MARKER, to_text
from src.lore_diff.domain.models import NormalizeOptions
from src.lore_diff.domain.normalizer import (
    CIRCULAR_MARKER,
    LoreNormalizer,
    canonicalize_json,
    normalize_string,
    normalize_value,
    stable_stringify,
)


DEFAULT = NormalizeOptions()
STRICT = NormalizeOptions(ignore_whitespace=False, ignore_case=False, json_normalize=False)
LOOSE = NormalizeOptions(ignore_whitespace=True, ignore_case=True, json_normalize=True)


class TestNormalizeString:
    """空白・大文字小文字の正規化テスト"""

    def test_whitespace_and_case_ignored(self):
        """空白と大文字小文字を無視すると同一になること"""
        assert normalize_string(" Foo  Bar ", LOOSE) == normalize_string("foo bar", LOOSE)

    def test_strict_keeps_distinction(self):
        """両方無効なら区別されること"""
        assert normalize_string(" Foo  Bar ", STRICT) != normalize_string("foo bar", STRICT)
        assert normalize_string(" Foo  Bar ", STRICT) == " Foo  Bar "

    def test_newlines_and_tabs_are_collapsed(self):
        assert normalize_string("a\n\t b", DEFAULT) == "a b"

    def test_case_kept_by_default(self):
        assert normalize_string("Hello", DEFAULT) == "Hello"


class TestJsonCanonicalization:
    """JSON 正規化のテスト"""

    def test_key_order_does_not_matter(self):
        """キー順が異なる JSON は同じ値になること"""
        a = normalize_value('{"a":1,"b":2}', DEFAULT)
        b = normalize_value('{"b":2,"a":1}', DEFAULT)
        assert a == b

    def test_formatting_does_not_matter(self):
        """書式 (改行・インデント) が異なる JSON は同じ値になること"""
        compact = normalize_value('{"a":[1,2],"b":{"y":1,"x":2}}', DEFAULT)
        pretty = normalize_value('{\n    "b": {"x": 2, "y": 1},\n    "a": [1, 2]\n}', DEFAULT)
        assert compact == pretty

    def test_array_order_is_preserved(self):
        assert normalize_value("[1, 2]", DEFAULT) != normalize_value("[2, 1]", DEFAULT)

    def test_canonical_form_without_whitespace_collapse(self):
        """空白無視が無効な場合はインデント 2 の安定形式"""
        options = NormalizeOptions(ignore_whitespace=False)
        assert normalize_value('{"b":1,"a":2}', options) == '{\n  "a": 2,\n  "b": 1\n}'

    def test_canonical_form_with_whitespace_collapse(self):
        assert normalize_value('{"b":1,"a":2}', DEFAULT) == '{ "a": 2, "b": 1 }'

    def test_disabled_keeps_original_text(self):
        """JSON 正規化が無効ならキー順はそのまま"""
        assert normalize_value('{"b":1,"a":2}', STRICT) == '{"b":1,"a":2}'

    def test_invalid_json_falls_back_to_string(self):
        """JSON として解釈できない値は文字列正規化のみ"""
        assert normalize_value('{"a": 1', DEFAULT) == '{"a": 1'

    def test_scalar_json_is_not_canonicalized(self):
        """スカラー値は JSON 正規化の対象外"""
        assert canonicalize_json("42") is None
        assert canonicalize_json('"text"') is None
        assert normalize_value("42", DEFAULT) == "42"

    def test_non_string_container_value(self):
        """dict の値も安定形式に変換されること"""
        assert normalize_value({"b": 1, "a": 2}, DEFAULT) == '{ "a": 2, "b": 1 }'

    def test_ignore_case_lowercases_before_sorting(self):
        """小文字化後のキー順で並ぶこと"""
        assert normalize_value('{"B": 1, "a": 2}', LOOSE) == '{ "a": 2, "b": 1 }'

    def test_unicode_is_kept(self):
        assert normalize_value('{"名前": "アリス"}', DEFAULT) == '{ "名前": "アリス" }'


class TestStableStringify:
    """stable_stringify のテスト"""

    def test_cycle_is_replaced_with_marker(self):
        """循環参照はマーカーに置き換わること"""
        value = {"a": 1}
        value["self"] = value
        text = stable_stringify(value)
        assert f'"self": "{CIRCULAR_MARKER}"' in text

    def test_shared_reference_is_not_a_cycle(self):
        """同じオブジェクトを2箇所で参照しても循環ではないこと"""
        shared = [1]
        text = stable_stringify({"x": shared, "y": shared})
        assert CIRCULAR_MARKER not in text

    def test_cyclic_value_normalizes(self):
        """循環参照を含む本文でも例外にならないこと"""
        value = {"a": 1}
        value["self"] = value
        snapshot = LoreNormalizer.normalize([{"label": "Loop", "value": value}], DEFAULT)
        assert snapshot.entries[0].value == f'{{ "a": 1, "self": "{CIRCULAR_MARKER}" }}'


class TestLoreNormalizerExtraction:
    """抽出と形状チェックのテスト"""

    def test_empty_input(self):
        """空の集合は項目0件のスナップショット"""
        assert LoreNormalizer.normalize([], DEFAULT).entries == []
        assert LoreNormalizer.normalize(None, DEFAULT).entries == []
        assert LoreNormalizer.normalize({}, DEFAULT).entries == []

    def test_id_keyed_object(self):
        """id キー付きオブジェクトから抽出できること"""
        raw = {"entries": {"1": {"comment": "A", "content": "x"}, "2": {"comment": "B", "content": "y"}}}
        snapshot = LoreNormalizer.normalize(raw, DEFAULT)
        assert [e.label for e in snapshot.entries] == ["A", "B"]

    def test_malformed_records_are_skipped(self):
        """既知の形状に一致しないレコードはスキップされること"""
        raw = [{"label": "A"}, "junk", {"foo": 1}, 5]
        snapshot = LoreNormalizer.normalize(raw, DEFAULT)
        assert len(snapshot.entries) == 1
        assert snapshot.meta["skipped"] == 3
        assert snapshot.meta["candidates"] == 4


class TestLoreNormalizerDedupe:
    """重複排除のテスト"""

    def test_duplicates_keep_first(self):
        """(キー, 本文) が同じレコードは先勝ちで1件になること"""
        raw = [
            {"key": "a", "value": "x", "comment": "first"},
            {"key": "a", "value": "x", "comment": "second"},
            {"key": "a", "value": "y", "comment": "third"},
        ]
        snapshot = LoreNormalizer.normalize(raw, DEFAULT)
        assert [e.label for e in snapshot.entries] == ["first", "third"]
        assert snapshot.meta["duplicates"] == 1

    def test_dedupe_uses_pre_normalization_values(self):
        """正規化後に一致するだけのレコードは重複扱いしないこと"""
        raw = [{"key": "a", "value": "x"}, {"key": "a", "value": " x"}]
        snapshot = LoreNormalizer.normalize(raw, DEFAULT)
        assert len(snapshot.entries) == 2


class TestLoreNormalizerFields:
    """フィールド解決のテスト"""

    def test_label_from_alias(self):
        snapshot = LoreNormalizer.normalize([{"comment": "Memo", "key": "k"}], DEFAULT)
        assert snapshot.entries[0].label == "Memo"

    def test_label_falls_back_to_id(self):
        """ラベル別名がなければ #<id>"""
        snapshot = LoreNormalizer.normalize([{"uid": 7, "content": "x"}], DEFAULT)
        assert snapshot.entries[0].label == "#7"

    def test_label_falls_back_to_ordinal(self):
        """id もなければ #<通し番号> (形状チェック後の1始まり)"""
        snapshot = LoreNormalizer.normalize(["junk", {"content": "x"}], DEFAULT)
        assert snapshot.entries[0].label == "#1"

    def test_key_falls_back_to_label(self):
        """照合キーがなければラベルを使うこと"""
        snapshot = LoreNormalizer.normalize([{"title": "Only  Title"}], DEFAULT)
        assert snapshot.entries[0].key == "Only Title"

    def test_key_from_trigger_list(self):
        """keys の先頭要素を照合キーに使うこと"""
        raw = [{"comment": "Dragon", "keys": ["dragon", "wyrm"], "content": "x"}]
        snapshot = LoreNormalizer.normalize(raw, DEFAULT)
        assert snapshot.entries[0].key == "dragon"

    def test_list_valued_key_uses_first_element(self):
        snapshot = LoreNormalizer.normalize([{"key": ["a", "b"], "content": "x"}], DEFAULT)
        assert snapshot.entries[0].key == "a"

    def test_key_is_normalized(self):
        snapshot = LoreNormalizer.normalize([{"key": "  Hello   KEY "}], LOOSE)
        assert snapshot.entries[0].key == "hello key"

    def test_category_and_character_are_only_trimmed(self):
        """分類・話者は前後空白のみ除去 (大文字小文字・内部空白は保持)"""
        raw = [{"label": "L", "group": "  World  Lore ", "speaker": " Alice "}]
        entry = LoreNormalizer.normalize(raw, LOOSE).entries[0]
        assert entry.category == "World  Lore"
        assert entry.character == "Alice"

    def test_extras_keep_non_core_fields(self):
        """コアスキーマ外のフィールドは extras に残ること"""
        raw = [{"label": "L", "value": "v", "order": 5, "comment": "c"}]
        entry = LoreNormalizer.normalize(raw, DEFAULT).entries[0]
        assert entry.extras == {"label": "L", "order": 5, "comment": "c"}


class TestLoreNormalizerName:
    """スナップショット名のテスト"""

    def test_explicit_name_wins(self):
        snapshot = LoreNormalizer.normalize({"name": "Inner", "entries": []}, DEFAULT, name="Explicit")
        assert snapshot.name == "Explicit"

    def test_name_from_raw(self):
        snapshot = LoreNormalizer.normalize({"name": "Book", "entries": []}, DEFAULT)
        assert snapshot.name == "Book"

    def test_name_from_original_data(self):
        raw = {"originalData": {"name": "Original", "entries": []}}
        assert LoreNormalizer.normalize(raw, DEFAULT).name == "Original"

    def test_list_input_has_empty_name(self):
        assert LoreNormalizer.normalize([], DEFAULT).name == ""


class TestNormalizerProperties:
    """決定性と冪等性のテスト"""

    RAW = [
        {"comment": "Intro", "key": "  Hello  KEY ", "content": '{"B": [1, 2], "a": "X  y"}'},
        {"title": "Plain", "content": "  Some   Text ", "category": "World"},
        {"uid": 3, "keys": ["Trigger"], "text": "Body"},
    ]

    @pytest.mark.parametrize("options", [DEFAULT, STRICT, LOOSE])
    def test_determinism(self, options):
        """同じ入力とオプションなら同じスナップショットになること"""
        first = LoreNormalizer.normalize(self.RAW, options)
        second = LoreNormalizer.normalize(self.RAW, options)
        assert first == second

    @pytest.mark.parametrize("options", [DEFAULT, STRICT, LOOSE])
    def test_idempotence(self, options):
        """再正規化しても key / value が変化しないこと"""
        first = LoreNormalizer.normalize(self.RAW, options)
        second = LoreNormalizer.renormalize(first, options)
        assert [(e.key, e.value) for e in second.entries] == [(e.key, e.value) for e in first.entries]

    def test_renormalize_keeps_signatures(self):
        """再正規化後もシグネチャが安定していること"""
        first = LoreNormalizer.normalize(self.RAW, LOOSE)
        second = LoreNormalizer.renormalize(first, LOOSE)
        assert [e.signature for e in second.entries] == [e.signature for e in first.entries]

    def test_renormalize_keeps_entries_equal_after_normalization(self):
        """正規化後に同値となる項目も再正規化で失われないこと"""
        raw = [
            {"title": "A", "key": "k", "value": "x "},
            {"title": "B", "key": "k", "value": "x"},
        ]
        first = LoreNormalizer.normalize(raw, DEFAULT)
        second = LoreNormalizer.renormalize(first, DEFAULT)

        assert [(e.label, e.key, e.value) for e in first.entries] == [("A", "k", "x"), ("B", "k", "x")]
        assert [(e.label, e.key, e.value) for e in second.entries] == [("A", "k", "x"), ("B", "k", "x")]
        assert second.name == first.name


class TestDeepNesting:
    """深い入れ子のテスト"""

    @staticmethod
    def deep_list(depth):
        value = []
        for _ in range(depth):
            value = [value]
        return value

    def test_canonicalize_too_deep_returns_none(self):
        """再帰上限を超える入れ子は JSON 正規化しないこと"""
        value = self.deep_list(sys.getrecursionlimit() * 2)
        assert canonicalize_json(value) is None

    def test_to_text_too_deep(self):
        value = self.deep_list(sys.getrecursionlimit() * 2)
        assert to_text(value) == TOO_DEEP_MARKER

    def test_deep_json_string_does_not_raise(self):
        """深い入れ子の JSON 文字列でも正規化が例外にならないこと"""
        deep = "[" * 600 + "]" * 600
        snapshot = LoreNormalizer.normalize([{"title": "Deep", "value": deep}], DEFAULT)

        assert [e.label for e in snapshot.entries] == ["Deep"]
        assert snapshot.entries[0].value.startswith("[")

    def test_too_deep_json_string_falls_back_to_text(self):
        deep = "[" * (sys.getrecursionlimit() * 2) + "]" * (sys.getrecursionlimit() * 2)
        snapshot = LoreNormalizer.normalize([{"title": "Deeper", "value": deep}], DEFAULT)

        assert snapshot.entries[0].value == deep
