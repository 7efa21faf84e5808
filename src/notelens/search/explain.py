"""Explain-in-context: mark a selection inside its note for the completion model."""

from __future__ import annotations

HIGHLIGHT_MARK = "=="


def highlight_in_context(text: str, start: int, end: int) -> tuple[str, str]:
    """Return ``(highlighted, context)`` for the selection ``text[start:end]``.

    Both carry the selection wrapped in ``==`` marks; ``context`` is the full
    text around it. An empty selection returns two empty strings; offsets are clamped to the
    text and swapped if given in reverse.
    """
    if start > end:
        start, end = end, start
    start = max(0, min(start, len(text)))
    end = max(0, min(end, len(text)))

    selection = text[start:end]
    if not selection:
        return "", ""
    highlighted = f"{HIGHLIGHT_MARK}{selection}{HIGHLIGHT_MARK}"
    return highlighted, f"{text[:start]}{highlighted}{text[end:]}"


def find_selection(text: str, selection: str) -> tuple[int, int] | None:
    """Offsets of the first occurrence of ``selection`` in ``text``."""
    if not selection:
        return None
    start = text.find(selection)
    if start < 0:
        return None
    return start, start + len(selection)
