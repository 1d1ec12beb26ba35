"""
Text edit operations applied to document content.

All ops of one edit call run in order against the evolving in-memory
content; the caller writes the result once.
"""

import re
from typing import Iterable

from .errors import InvalidEditError, TextNotFoundError
from .types import EditOp, ReplaceAll, ReplaceAllContent, ReplaceOnce, ReplaceRegex, edit_op_from_dict

_REGEX_FLAGS = {
    "i": re.IGNORECASE,
    "m": re.MULTILINE,
    "s": re.DOTALL,
    "x": re.VERBOSE,
    "u": 0,  # str patterns are always unicode
}


def compile_pattern(pattern: str, flags: str) -> tuple[re.Pattern, bool]:
    """
    Compile a regex with single-letter flags.

    Returns:
        (compiled pattern, replace_all) where replace_all is set by flag 'g'

    Raises:
        InvalidEditError: Unknown flag or invalid pattern
    """
    re_flags = 0
    replace_all = False
    for flag in flags or "":
        if flag == "g":
            replace_all = True
        elif flag in _REGEX_FLAGS:
            re_flags |= _REGEX_FLAGS[flag]
        else:
            raise InvalidEditError(f"Unsupported regex flag {flag!r} in {flags!r}")
    try:
        return re.compile(pattern, re_flags), replace_all
    except re.error as e:
        raise InvalidEditError(f"Invalid regex {pattern!r}: {e}") from e


def apply_edit(content: str, op: EditOp) -> tuple[str, bool]:
    """
    Apply one edit op.

    Returns:
        (new content, applied) -- applied is False only for a regex with no match

    Raises:
        TextNotFoundError: replaceOnce/replaceAll target absent
        InvalidEditError: Malformed op
    """
    if isinstance(op, (ReplaceOnce, ReplaceAll)):
        if not op.old_text:
            raise InvalidEditError("oldText cannot be empty")
        if op.old_text not in content:
            raise TextNotFoundError(
                f"Text not found: {op.old_text[:80]!r}", {"oldText": op.old_text},
            )
        count = 1 if isinstance(op, ReplaceOnce) else -1
        return content.replace(op.old_text, op.new_text, count), True

    if isinstance(op, ReplaceRegex):
        regex, replace_all = compile_pattern(op.pattern, op.flags)
        try:
            new_content, n = regex.subn(op.replacement, content, count=0 if replace_all else 1)
        except (re.error, IndexError) as e:
            raise InvalidEditError(f"Invalid replacement {op.replacement!r}: {e}") from e
        return new_content, n > 0

    if isinstance(op, ReplaceAllContent):
        return op.content, True

    raise InvalidEditError(f"Unknown edit operation: {op!r}")


def apply_edits(content: str, ops: Iterable) -> tuple[str, int]:
    """
    Apply ops sequentially.

    Ops may be typed EditOp values or their dict wire form.

    Returns:
        (final content, number of ops that applied)
    """
    applied = 0
    for raw in ops:
        content, changed = apply_edit(content, edit_op_from_dict(raw))
        if changed:
            applied += 1
    return content, applied
