"""Plain-text and rich renderings of diff results.

Rendering only decorates hunks; line content is emitted unchanged.
"""

from typing import Iterable, List

from rich.text import Text

from ..models.snapshot import ChangeTag, DiffResult, Hunk

NO_NEWLINE_MARKER = "\\ No newline at end of file"

STYLES = {
    "header": "bold",
    "hunk": "cyan",
    ChangeTag.DELETE: "red",
    ChangeTag.INSERT: "green",
    ChangeTag.EQUAL: None,
}


def _labels(result: DiffResult) -> tuple:
    old = result.old_label or f"a/{result.path}"
    new = result.new_label or f"b/{result.path}"
    return f"--- {old}", f"+++ {new}"


def hunk_lines(hunk: Hunk) -> List[str]:
    """Lines of one hunk in unified format, without terminators."""
    out = [hunk.header]
    for line in hunk.lines:
        out.append(f"{line.tag.prefix}{line.text}")
        if line.missing_newline:
            out.append(NO_NEWLINE_MARKER)
    return out


def format_unified(result: DiffResult) -> str:
    """Render a diff result as unified diff text.

    Returns an empty string when there are no hunks.
    """
    if not result.hunks:
        return ""
    lines = list(_labels(result))
    for hunk in result.hunks:
        lines.extend(hunk_lines(hunk))
    return "\n".join(lines) + "\n"


def render_rich(result: DiffResult) -> Text:
    """Render a diff result as styled rich text."""
    text = Text()
    if not result.hunks:
        return text

    for label in _labels(result):
        text.append(label + "\n", style=STYLES["header"])

    for hunk in result.hunks:
        text.append(hunk.header + "\n", style=STYLES["hunk"])
        for line in hunk.lines:
            text.append(f"{line.tag.prefix}{line.text}\n", style=STYLES[line.tag])
            if line.missing_newline:
                text.append(NO_NEWLINE_MARKER + "\n", style="dim")
    return text


def render_all(results: Iterable[DiffResult]) -> Text:
    """Join several rendered results with a blank line between files."""
    combined = Text()
    for result in results:
        rendered = render_rich(result)
        if not rendered.plain:
            continue
        if combined.plain:
            combined.append("\n")
        combined.append_text(rendered)
    return combined


__all__ = ["NO_NEWLINE_MARKER", "hunk_lines", "format_unified", "render_rich", "render_all"]
