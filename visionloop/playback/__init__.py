"""Playback package: recordings, CSV data and the playback engine"""
from .recording import Recording, Step, StepCoordinates, ParsedField, RecordingConditionalDefaults, load_recording
from .csv_source import CsvData, parse_csv, load_csv, dedupe_headers, fields_from_headers
from .csv_mapping import (
    build_label_to_columns, build_step_to_column, build_column_index_map,
    substitute_step_value, substitute_variables, substitute_search_terms, resolve_step_value,
    get_steps_for_row, get_absolute_step_index, SubstitutionResult,
)
from .step_executor import StepExecutor, StepResult, get_execution_method
from .engine import PlaybackEngine, PlaybackOptions, PlaybackReport, PlaybackState, RowResult

__all__ = [
    "Recording", "Step", "StepCoordinates", "ParsedField", "RecordingConditionalDefaults", "load_recording",
    "CsvData", "parse_csv", "load_csv", "dedupe_headers", "fields_from_headers",
    "build_label_to_columns", "build_step_to_column", "build_column_index_map",
    "substitute_step_value", "substitute_variables", "substitute_search_terms", "resolve_step_value",
    "get_steps_for_row", "get_absolute_step_index", "SubstitutionResult",
    "StepExecutor", "StepResult", "get_execution_method",
    "PlaybackEngine", "PlaybackOptions", "PlaybackReport", "PlaybackState", "RowResult",
]
