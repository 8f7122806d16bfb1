"""フィールド別名テーブルのユニットテスト"""

import pytest

from src.lore_diff.domain.field_aliases import (
    CORE_FIELDS,
    FIELD_ALIASES,
    is_known_record,
    resolve_field,
    to_text,
)


class TestResolveField:
    """resolve_field のテスト"""

    def test_first_alias_wins(self):
        """優先順で最初に存在する別名の値を返すこと"""
        record = {"content": "from content", "value": "from value"}
        assert resolve_field(record, "value") == "from value"

    def test_falls_back_to_later_alias(self):
        """先頭の別名がない場合は次の別名を使うこと"""
        record = {"text": "body"}
        assert resolve_field(record, "value") == "body"

    def test_none_values_are_skipped(self):
        """None の別名は存在しないものとして扱うこと"""
        record = {"title": None, "comment": "memo"}
        assert resolve_field(record, "label") == "memo"

    def test_missing_returns_none(self):
        """どの別名もない場合は None"""
        assert resolve_field({"other": 1}, "category") is None

    def test_custom_alias_table(self):
        """別名テーブルを差し替えられること"""
        record = {"heading": "H"}
        assert resolve_field(record, "label", {"label": ["heading"]}) == "H"

    def test_unknown_field_raises(self):
        """未定義の論理フィールドは KeyError"""
        with pytest.raises(KeyError):
            resolve_field({}, "nonexistent")


class TestIsKnownRecord:
    """is_known_record のテスト"""

    @pytest.mark.parametrize("record", [
        {"label": "Intro"},
        {"keys": ["a"]},
        {"uid": 3},
        {"content": "x"},
        {"speaker": "Bob"},
    ])
    def test_known_shapes(self, record):
        """既知フィールドを1つ以上持つ辞書は既知形状"""
        assert is_known_record(record)

    @pytest.mark.parametrize("candidate", [
        {"foo": "bar"},
        {},
        "Intro",
        42,
        None,
        ["label"],
    ])
    def test_unknown_shapes(self, candidate):
        """辞書でない、または既知フィールドがない候補は対象外"""
        assert not is_known_record(candidate)


class TestToText:
    """to_text のテスト"""

    def test_none_is_empty(self):
        assert to_text(None) == ""

    def test_bool(self):
        """真偽値は小文字の true / false"""
        assert to_text(True) == "true"
        assert to_text(False) == "false"

    def test_number(self):
        assert to_text(12) == "12"

    def test_container_is_json(self):
        """dict / list は JSON 文字列 (非 ASCII はそのまま)"""
        assert to_text({"名前": "アリス"}) == '{"名前": "アリス"}'
        assert to_text([1, 2]) == "[1, 2]"

    def test_unserializable_container_falls_back_to_str(self):
        """JSON 化できないコンテナは str()"""
        value = {"obj": object()}
        assert to_text(value) == str(value)


class TestCoreFields:
    """コアフィールド集合のテスト"""

    def test_label_aliases_are_not_core(self):
        """ラベル別名は extras に残ること (再正規化で解決できるように)"""
        assert "comment" not in CORE_FIELDS
        assert "title" not in CORE_FIELDS

    def test_value_aliases_are_core(self):
        for alias in FIELD_ALIASES["value"]:
            assert alias in CORE_FIELDS
