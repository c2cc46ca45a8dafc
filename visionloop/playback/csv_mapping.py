"""
CSV position mapping - pair recorded steps with CSV columns.

When the same field label occurs several times in a recording (three
"Search" boxes) and the CSV has matching repeated columns
(Search_0, Search_1, Search_2), each step must get its own column, in
recorded order. Matching by label alone would hand Search_0 to every
occurrence.

Mappings are built once per recording and reused for every data row.
"""
import logging
import re
from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional

from .recording import ParsedField, Step

logger = logging.getLogger(__name__)

LabelToColumnsMapping = Dict[str, List[str]]
StepToColumnMapping = Dict[int, str]

_VARIABLE = re.compile(r"\{\{([^{}]+)\}\}")
_WHITESPACE = re.compile(r"\s+")


def normalize_label(label: Optional[str]) -> str:
    if not label:
        return ""
    return _WHITESPACE.sub(" ", label).strip().lower()


# ============================================================================
# COLUMN MAPPING
# ============================================================================

def build_label_to_columns(fields: Optional[Iterable[ParsedField]]) -> LabelToColumnsMapping:
    """
    Group column names by normalized target label, each group in CSV
    column order. Fields without a label or column name are skipped.
    """
    mapping: LabelToColumnsMapping = {}
    if not fields:
        return mapping
    for f in sorted(fields, key=lambda f: f.column_index):
        label = normalize_label(f.target_label)
        if not label or not f.column_name:
            continue
        mapping.setdefault(label, []).append(f.column_name)
    return mapping


def build_step_to_column(steps: List[Step], label_to_columns: LabelToColumnsMapping) -> StepToColumnMapping:
    """
    Assign each labelled step the next unused column for its label.

    The per-label cursor and the set of used columns live only for this
    call. No column is ever assigned twice; a step whose label has run out
    of columns is left unmapped.
    """
    mapping: StepToColumnMapping = {}
    used_columns = set()
    cursors: Dict[str, int] = {}

    for index, step in enumerate(steps):
        label = normalize_label(step.label)
        if not label:
            continue
        columns = label_to_columns.get(label, [])
        if not columns:
            logger.debug("[CSV Mapping] No columns for step %d (label: %r)", index, label)
            continue

        chosen = None
        for position in range(cursors.get(label, 0), len(columns)):
            if columns[position] not in used_columns:
                chosen = columns[position]
                cursors[label] = position + 1
                break

        if chosen is None:
            logger.warning(
                "[CSV Mapping] No available column for step %d (label: %r) - all %d used",
                index, label, len(columns),
            )
            continue
        mapping[index] = chosen
        used_columns.add(chosen)
        logger.info("[CSV Mapping] Step %d (%r) -> column %r", index, label, chosen)

    return mapping


def build_column_index_map(headers: List[str]) -> Dict[str, int]:
    """Column name -> position in a row. First occurrence wins."""
    index_map: Dict[str, int] = {}
    for i, header in enumerate(headers):
        index_map.setdefault(header, i)
    return index_map


def get_row_value(row: List[str], column_name: str, column_index_map: Dict[str, int]) -> Optional[str]:
    index = column_index_map.get(column_name)
    if index is None or index >= len(row):
        return None
    return row[index]


def find_header_loose(name: str, column_index_map: Dict[str, int]) -> Optional[str]:
    """Case- and whitespace-insensitive header lookup."""
    wanted = normalize_label(name)
    if not wanted:
        return None
    for header in column_index_map:
        if normalize_label(header) == wanted:
            return header
    return None


# ============================================================================
# VALUE SUBSTITUTION
# ============================================================================

@dataclass
class SubstitutionResult:
    step: Step
    substituted: bool
    column_used: Optional[str] = None
    original_value: Optional[str] = None
    source: str = "recorded"  # mapping | label | header | recorded


def substitute_step_value(
    step: Step,
    step_index: int,
    row: List[str],
    step_to_column: StepToColumnMapping,
    column_index_map: Dict[str, int],
) -> SubstitutionResult:
    """Apply the step -> column mapping for one row. The input step is never modified."""
    column = step_to_column.get(step_index)
    if not column:
        return SubstitutionResult(step=step, substituted=False)
    value = get_row_value(row, column, column_index_map)
    if value is None:
        return SubstitutionResult(step=step, substituted=False)
    return SubstitutionResult(
        step=step.with_value(value),
        substituted=True,
        column_used=column,
        original_value=step.value,
        source="mapping",
    )


def substitute_variables(text: str, row: List[str], column_index_map: Dict[str, int]) -> str:
    """
    Replace {{column}} placeholders with row values (exact header first,
    then case-insensitive). Unknown placeholders are left as-is so that a
    bad template shows up in the output instead of vanishing.
    """
    if not text or "{{" not in text:
        return text

    def _replace(match):
        name = match.group(1).strip()
        value = get_row_value(row, name, column_index_map)
        if value is None:
            lowered = name.lower()
            for header, index in column_index_map.items():
                if header.lower() == lowered and index < len(row):
                    value = row[index]
                    break
        return match.group(0) if value is None else value

    return _VARIABLE.sub(_replace, text)


def substitute_search_terms(search_terms: List[str], row: List[str], column_index_map: Dict[str, int]) -> List[str]:
    return [substitute_variables(term, row, column_index_map) for term in search_terms]


def resolve_step_value(
    step: Step,
    step_index: int,
    row: List[str],
    step_to_column: StepToColumnMapping,
    column_index_map: Dict[str, int],
) -> SubstitutionResult:
    """
    Value for one step on one row, trying in order: the step -> column
    mapping, a header equal to the step label, a case/whitespace-insensitive
    header match, and finally the recorded value. {{var}} placeholders in the
    chosen value are then filled from the row.
    """
    result = substitute_step_value(step, step_index, row, step_to_column, column_index_map)

    if not result.substituted and step.label and row:
        value = get_row_value(row, step.label, column_index_map)
        source, column = "label", step.label
        if value is None:
            column = find_header_loose(step.label, column_index_map)
            value = get_row_value(row, column, column_index_map) if column else None
            source = "header"
        if value is not None:
            result = SubstitutionResult(
                step=step.with_value(value),
                substituted=True,
                column_used=column,
                original_value=step.value,
                source=source,
            )

    filled = substitute_variables(result.step.value, row, column_index_map)
    if filled != result.step.value:
        result.step = result.step.with_value(filled)
        result.substituted = True
        if result.original_value is None:
            result.original_value = step.value
    return result


# ============================================================================
# LOOP ROWS
# ============================================================================

def get_steps_for_row(steps: List[Step], loop_start_index: int, row_index: int) -> List[Step]:
    """Row 0 runs everything; later rows run from loop_start_index, or nothing if it is negative."""
    if row_index == 0:
        return list(steps)
    if loop_start_index < 0:
        return []
    return list(steps[loop_start_index:])


def get_absolute_step_index(relative_index: int, loop_start_index: int, row_index: int) -> int:
    if row_index == 0:
        return relative_index
    return loop_start_index + relative_index
