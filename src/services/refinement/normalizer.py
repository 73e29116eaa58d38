"""Format-agnostic markdown structure normalization.

Runs after structured conversion and enforces a small set of structural
rules, in this order:

1. **Annotation demotion** -- headings whose text is really an annotation
   (``(note)``, ``※ ...``, a lone ``*``, a bare ``3.``, punctuation only)
   become plain text.
2. **Empty heading removal** -- ``##`` lines with no title are dropped.
3. **Hierarchy repair** -- optionally, a first heading deeper than H2 is
   promoted to H1; every later heading is at most one level deeper than
   the heading before it.
4. **List markers** -- ``*``/``+`` bullets become ``-``; nesting jumps of
   more than four spaces are reduced to two.
5. **Table reconciliation** -- rows with too few cells are padded, rows
   with too many have the overflow folded into the last column.
6. **Whitespace** -- trailing spaces stripped, at most one blank line
   between blocks.

Every phase maps already-normalized input to itself, so
``normalize(normalize(x)) == normalize(x)``.  Lines inside fenced code
blocks are never inspected.
"""

from __future__ import annotations

import re

import structlog
from pydantic import BaseModel, ConfigDict, Field

logger = structlog.get_logger(logger_name=__name__)

_HEADING = re.compile(r"^(#{1,6})(?:[ \t]+(.*?))?(?:[ \t]+#+)?[ \t]*$")
_FENCE = re.compile(r"^[ \t]*```")
_BULLET = re.compile(r"^([ \t]*)([-*+])([ \t]+)(?=\S)")
_LIST_ITEM = re.compile(r"^([ \t]*)(?:[-*+]|\d+\.)[ \t]+\S")
_TABLE_ROW = re.compile(r"^[ \t]*\|")
_TABLE_SEPARATOR = re.compile(r"^[ \t]*\|?[ \t]*:?-{3,}:?[ \t]*(?:\|[ \t]*:?-{3,}:?[ \t]*)*\|?[ \t]*$")
_CELL_SPLIT = re.compile(r"(?<!\\)\|")

_ANNOTATION_TITLES: list[re.Pattern[str]] = [
    re.compile(r"^\s*[\(（].*[\)）]\s*$"),
    re.compile(r"^\s*※"),
    re.compile(r"^\s*\*\s*$"),
    re.compile(r"^\s*•"),
    re.compile(r"^\s*\d+\.\s*$"),
    re.compile(r"^\s*[.,:;]+\s*$"),
]

_MAX_LIST_INDENT_JUMP = 4


class NormalizationResult(BaseModel):
    """Normalized text plus a record of what changed."""

    model_config = ConfigDict(frozen=True)

    text: str
    actions: list[str] = Field(default_factory=list)
    headings_demoted: int = 0
    headings_removed: int = 0
    headings_adjusted: int = 0
    list_items_fixed: int = 0
    tables_fixed: int = 0

    @property
    def changed(self) -> bool:
        return bool(self.actions)


class MarkdownNormalizer:
    """Applies the six normalization phases to a markdown document.

    Parameters
    ----------
    max_first_heading_level:
        A first heading deeper than this is promoted to H1.  ``None`` keeps
        the first heading at its own level.
    """

    def __init__(self, max_first_heading_level: int | None = 2) -> None:
        self._max_first_heading_level = max_first_heading_level

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def normalize(self, text: str) -> NormalizationResult:
        """Normalize *text*; see the module docstring for the phases."""
        if not text or not text.strip():
            return NormalizationResult(text="")

        lines = text.replace("\r\n", "\n").split("\n")
        code = _code_mask(lines)
        actions: list[str] = []

        lines, code, demoted = self._demote_annotation_headings(lines, code)
        lines, code, removed = self._remove_empty_headings(lines, code)
        lines, adjusted = self._fix_heading_hierarchy(lines, code)
        lines, list_fixes = self._normalize_lists(lines, code)
        lines, tables_fixed = self._reconcile_tables(lines, code)
        normalized = self._normalize_whitespace(lines, code)

        for name, count in (
            ("demoted_annotation_headings", demoted),
            ("removed_empty_headings", removed),
            ("adjusted_heading_levels", adjusted),
            ("normalized_list_items", list_fixes),
            ("reconciled_tables", tables_fixed),
        ):
            if count:
                actions.append(f"{name}:{count}")

        logger.debug("markdown_normalized", actions=actions)
        return NormalizationResult(
            text=normalized,
            actions=actions,
            headings_demoted=demoted,
            headings_removed=removed,
            headings_adjusted=adjusted,
            list_items_fixed=list_fixes,
            tables_fixed=tables_fixed,
        )

    # ------------------------------------------------------------------
    # Headings
    # ------------------------------------------------------------------

    @staticmethod
    def _demote_annotation_headings(
        lines: list[str], code: list[bool]
    ) -> tuple[list[str], list[bool], int]:
        out: list[str] = []
        count = 0
        for line, in_code in zip(lines, code):
            match = None if in_code else _HEADING.match(line)
            title = (match.group(2) or "") if match else ""
            if match and title and any(p.match(title) for p in _ANNOTATION_TITLES):
                out.append(title.strip())
                count += 1
            else:
                out.append(line)
        return out, code, count

    @staticmethod
    def _remove_empty_headings(
        lines: list[str], code: list[bool]
    ) -> tuple[list[str], list[bool], int]:
        kept: list[str] = []
        kept_code: list[bool] = []
        count = 0
        for line, in_code in zip(lines, code):
            match = None if in_code else _HEADING.match(line)
            if match and not (match.group(2) or "").strip():
                count += 1
                continue
            kept.append(line)
            kept_code.append(in_code)
        return kept, kept_code, count

    def _fix_heading_hierarchy(self, lines: list[str], code: list[bool]) -> tuple[list[str], int]:
        out: list[str] = []
        previous: int | None = None
        count = 0
        for line, in_code in zip(lines, code):
            match = None if in_code else _HEADING.match(line)
            if not match:
                out.append(line)
                continue
            level = len(match.group(1))
            if previous is None:
                limit = self._max_first_heading_level
                target = 1 if limit is not None and level > limit else level
            else:
                target = min(level, previous + 1)
            if target != level:
                count += 1
                line = f"{'#' * target} {match.group(2).strip()}"
            out.append(line)
            previous = target
        return out, count

    # ------------------------------------------------------------------
    # Lists
    # ------------------------------------------------------------------

    @staticmethod
    def _normalize_lists(lines: list[str], code: list[bool]) -> tuple[list[str], int]:
        out: list[str] = []
        last_indent: int | None = None
        count = 0
        for line, in_code in zip(lines, code):
            if in_code or not _LIST_ITEM.match(line):
                if in_code or line.strip():
                    last_indent = None
                out.append(line)
                continue

            original = line
            bullet = _BULLET.match(line)
            if bullet and bullet.group(2) != "-":
                line = f"{bullet.group(1)}-{bullet.group(3)}{line[bullet.end():]}"

            indent = len(line) - len(line.lstrip(" \t"))
            baseline = last_indent if last_indent is not None else 0
            if indent - baseline > _MAX_LIST_INDENT_JUMP:
                indent = baseline + 2
                line = " " * indent + line.lstrip(" \t")
            last_indent = indent

            if line != original:
                count += 1
            out.append(line)
        return out, count

    # ------------------------------------------------------------------
    # Tables
    # ------------------------------------------------------------------

    @staticmethod
    def _reconcile_tables(lines: list[str], code: list[bool]) -> tuple[list[str], int]:
        out: list[str] = []
        fixed = 0
        i = 0
        while i < len(lines):
            if code[i] or not _TABLE_ROW.match(lines[i]):
                out.append(lines[i])
                i += 1
                continue
            j = i
            while j < len(lines) and not code[j] and _TABLE_ROW.match(lines[j]):
                j += 1
            block = lines[i:j]
            if len(block) >= 2 and _TABLE_SEPARATOR.match(block[1]):
                repaired = _repair_table(block)
                if repaired != block:
                    fixed += 1
                out.extend(repaired)
            else:
                out.extend(block)
            i = j
        return out, fixed

    # ------------------------------------------------------------------
    # Whitespace
    # ------------------------------------------------------------------

    @staticmethod
    def _normalize_whitespace(lines: list[str], code: list[bool]) -> str:
        out: list[str] = []
        blank_run = 0
        for line, in_code in zip(lines, code):
            line = line.rstrip()
            if not in_code and not line:
                blank_run += 1
                if blank_run > 1:
                    continue
            else:
                blank_run = 0
            out.append(line)
        return "\n".join(out).strip("\n")


# ----------------------------------------------------------------------
# Helpers
# ----------------------------------------------------------------------

def _code_mask(lines: list[str]) -> list[bool]:
    """Flag lines that belong to a fenced code block (fence lines included)."""
    mask: list[bool] = []
    inside = False
    for line in lines:
        if _FENCE.match(line):
            mask.append(True)
            inside = not inside
        else:
            mask.append(inside)
    return mask


def split_cells(row: str) -> list[str]:
    """Split a markdown table row into stripped cells, honouring ``\\|`` escapes."""
    body = row.strip()
    if body.startswith("|"):
        body = body[1:]
    if body.endswith("|") and not body.endswith("\\|"):
        body = body[:-1]
    return [cell.strip() for cell in _CELL_SPLIT.split(body)]


def _repair_table(block: list[str]) -> list[str]:
    expected = len(split_cells(block[0]))
    repaired: list[str] = []
    for index, row in enumerate(block):
        cells = split_cells(row)
        if len(cells) == expected:
            repaired.append(row)
            continue
        if index == 1:
            cells = (cells + ["---"] * expected)[:expected]
        elif len(cells) < expected:
            cells = cells + [""] * (expected - len(cells))
        else:
            cells = cells[: expected - 1] + [" ".join(c for c in cells[expected - 1 :] if c)]
        repaired.append("| " + " | ".join(cells) + " |")
    return repaired
