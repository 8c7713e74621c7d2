# SPDX-License-Identifier: Apache-2.0
"""Word-level diffs of module source around a failed rewrite."""
import difflib
from typing import Optional

import regex

_WORDS = regex.compile(r"(\s+)")


def patch_context(before: str,
                  after: Optional[str],
                  pattern,
                  context: int = 200) -> tuple[str, str]:
    """
    Slices ``context`` characters around the first match of ``pattern`` in
    ``before``, and the same region of ``after`` shifted by the size change.
    """
    if after is None:
        after = before
    match = pattern.search(before)
    if match is None:
        return before[:2 * context], after[:2 * context]

    start = max(0, match.start() - context)
    end = min(len(before), match.end() + context)
    # the change may shrink the text
    end_patched = max(start, end + len(after) - len(before))
    return before[start:end], after[start:end_patched]


def word_diff(before: str, after: str) -> str:
    old = [w for w in _WORDS.split(before) if w]
    new = [w for w in _WORDS.split(after) if w]
    matcher = difflib.SequenceMatcher(None, old, new, autojunk=False)

    out = []
    for tag, i1, i2, j1, j2 in matcher.get_opcodes():
        if tag == "equal":
            out.append("".join(old[i1:i2]))
            continue
        if tag in ("replace", "delete"):
            out.append("[-" + "".join(old[i1:i2]) + "-]")
        if tag in ("replace", "insert"):
            out.append("{+" + "".join(new[j1:j2]) + "+}")
    return "".join(out)


def log_patch_diff(logger, before: str, after: Optional[str], pattern, context: int) -> None:
    before_ctx, after_ctx = patch_context(before, after, pattern, context)
    logger.error("Before:\n%s", before_ctx)
    logger.error("After:\n%s", after_ctx)
    logger.error("Diff:\n%s", word_diff(before_ctx, after_ctx))
