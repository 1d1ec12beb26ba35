"""
Tests for edit op interpretation.
"""

import pytest

from docshelf.edits import apply_edit, apply_edits, compile_pattern
from docshelf.errors import InvalidEditError, TextNotFoundError
from docshelf.types import ReplaceAll, ReplaceAllContent, ReplaceOnce, ReplaceRegex


class TestReplaceText:

    def test_once_replaces_first_only(self):
        assert apply_edit("a-a-a", ReplaceOnce("a", "b")) == ("b-a-a", True)

    def test_all_replaces_every_occurrence(self):
        assert apply_edit("a-a-a", ReplaceAll("a", "b")) == ("b-b-b", True)

    @pytest.mark.parametrize("op_cls", [ReplaceOnce, ReplaceAll])
    def test_absent_text(self, op_cls):
        with pytest.raises(TextNotFoundError):
            apply_edit("hello", op_cls("bye", "x"))

    @pytest.mark.parametrize("op_cls", [ReplaceOnce, ReplaceAll])
    def test_empty_old_text(self, op_cls):
        with pytest.raises(InvalidEditError):
            apply_edit("hello", op_cls("", "x"))

    def test_replacement_is_literal(self):
        content, _ = apply_edit("cost: X", ReplaceOnce("X", r"$1 \1"))
        assert content == r"cost: $1 \1"


class TestReplaceRegex:

    def test_first_match_without_g(self):
        assert apply_edit("v1 v2", ReplaceRegex(r"v(\d)", r"version \1")) == ("version 1 v2", True)

    def test_all_matches_with_g(self):
        content, applied = apply_edit("v1 v2", ReplaceRegex(r"v(\d)", r"version \1", "g"))
        assert content == "version 1 version 2"
        assert applied

    def test_ignore_case(self):
        content, _ = apply_edit("JWT jwt", ReplaceRegex("jwt", "token", "gi"))
        assert content == "token token"

    def test_multiline(self):
        content, _ = apply_edit("# a\n# b", ReplaceRegex("^# ", "## ", "gm"))
        assert content == "## a\n## b"

    def test_no_match_is_not_applied(self):
        assert apply_edit("abc", ReplaceRegex("z+", "y")) == ("abc", False)

    def test_unknown_flag(self):
        with pytest.raises(InvalidEditError, match="flag"):
            compile_pattern("a", "gq")

    def test_invalid_pattern(self):
        with pytest.raises(InvalidEditError):
            apply_edit("abc", ReplaceRegex("(unclosed", "x"))

    def test_bad_group_reference(self):
        with pytest.raises(InvalidEditError):
            apply_edit("abc", ReplaceRegex("a", r"\3"))

    def test_unicode_flag_accepted(self):
        regex, replace_all = compile_pattern("a", "u")
        assert not replace_all
        assert regex.pattern == "a"


class TestApplyEdits:

    def test_replace_all_content(self):
        assert apply_edits("old", [ReplaceAllContent("new")]) == ("new", 1)

    def test_ops_apply_to_evolving_content(self):
        ops = [ReplaceOnce("a", "b"), ReplaceOnce("b", "c")]
        assert apply_edits("a", ops) == ("c", 2)

    def test_dict_ops(self):
        ops = [
            {"op": "replaceAll", "oldText": "JWT", "newText": "JSON Web Token"},
            {"op": "replaceRegex", "pattern": "nomatch", "replacement": "x"},
        ]
        assert apply_edits("# JWT", ops) == ("# JSON Web Token", 1)

    def test_failure_mid_batch_raises(self):
        with pytest.raises(TextNotFoundError):
            apply_edits("abc", [ReplaceOnce("a", "x"), ReplaceOnce("zzz", "y")])
