from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field, replace
from enum import Enum
from pathlib import Path
from typing import Any

from ..export.writer import Exporter, ExportTarget
from ..models.detection import ParseResult
from ..models.intake_field import CRITICAL_FIELD_KEYS
from ..models.order_item import OrderItem
from ..registry.fields import FieldService
from ..settings.store import DEFAULT_PAGINATION_LIMIT, SettingsStore, TemplateStore
from ..tabular.reader import FileKind
from .analysis import Analyzer
from .cleaner import clean_item, transform_rows
from .validator import BatchValidationResult, apply_validation, find_duplicates, validate_batch

"""Intake wizard: Upload -> Mapping -> Preview.

The wizard owns the state of one intake session. Every transition is a
method; calling one from the wrong step raises WizardStateError and leaves
the state untouched. ``apply_mapping`` and ``export`` are guarded by the
``processing`` flag: a call made while another one is still running returns
None and does nothing.
"""

__all__ = [
    "IGNORE",
    "IntakeWizard",
    "IntakeWizardState",
    "MappingIncompleteError",
    "WizardStateError",
    "WizardStep",
]

logger = logging.getLogger(__name__)

IGNORE = "ignore"


class WizardStep(Enum):
    UPLOAD = 1
    MAPPING = 2
    PREVIEW = 3


class WizardStateError(Exception):
    """Transition not allowed from the current step."""


class MappingIncompleteError(Exception):
    def __init__(self, missing: list[str]):
        super().__init__(f"mapping is missing required fields: {', '.join(missing)}")
        self.missing = missing


@dataclass
class IntakeWizardState:
    step: WizardStep = WizardStep.UPLOAD
    parse_result: ParseResult | None = None
    mapping: dict[int, str] = field(default_factory=dict)  # column index -> field key
    items: list[OrderItem] = field(default_factory=list)
    row_errors: dict[int, list[str]] = field(default_factory=dict)
    duplicates: list[str] = field(default_factory=list)
    page: int = 1
    export_ready: bool = False
    processing: bool = False


class IntakeWizard:
    """Three-step intake flow over one uploaded file.

    Args:
        fields: loaded field service; its active keys are the selectable targets
        settings: settings store, read once here for the page size
        analyzer: reads and analyses uploads
        exporter: writes the confirmed items
        templates: optional mapping template store
        customer: template namespace
    """

    def __init__(
        self,
        fields: FieldService,
        settings: SettingsStore | None,
        analyzer: Analyzer,
        exporter: Exporter,
        templates: TemplateStore | None = None,
        customer: str = "default",
    ) -> None:
        self.fields = fields
        self.page_size = settings.load().pagination_limit if settings else DEFAULT_PAGINATION_LIMIT
        self.analyzer = analyzer
        self.exporter = exporter
        self.templates = templates
        self.customer = customer
        self.state = IntakeWizardState()

    # --- helpers -----------------------------------------------------
    @property
    def step(self) -> WizardStep:
        return self.state.step

    @property
    def items(self) -> list[OrderItem]:
        return list(self.state.items)

    def _require(self, *steps: WizardStep) -> None:
        if self.state.step not in steps:
            allowed = "/".join(s.name for s in steps)
            raise WizardStateError(f"not allowed in step {self.state.step.name} (expected {allowed})")

    def _current_result(self) -> ParseResult:
        if self.state.parse_result is None:
            raise WizardStateError(f"no analysed file in step {self.state.step.name}")
        return self.state.parse_result

    def _active_keys(self) -> set[str]:
        return set(self.fields.active_keys())

    def _seed_mapping(self, result: ParseResult) -> dict[int, str]:
        active = self._active_keys()
        if self.templates is not None:
            template = self.templates.find_matching_template(result.file_summary.header, self.customer)
            if template is not None:
                logger.info("using saved mapping template '%s'", template.name)
                return {
                    col: key
                    for col, key in template.mapping.items()
                    if key in active and 0 <= col < result.file_summary.cols
                }
        return {col: key for key, col in result.suggested_mapping.items() if key in active}

    # --- Upload ------------------------------------------------------
    def upload(
        self,
        source: Path | bytes | str,
        kind: FileKind | None = None,
        file_name: str = "",
    ) -> ParseResult:
        """Read and analyse a file, then move to Mapping.

        ``source`` is a path, or raw content together with ``kind``. Reader
        errors propagate and the wizard stays in Upload.
        """
        self._require(WizardStep.UPLOAD)
        if isinstance(source, Path):
            result = self.analyzer.analyze_file(source)
        else:
            if kind is None:
                raise ValueError("kind is required for in-memory uploads")
            result = self.analyzer.analyze_bytes(source, kind, file_name or "<upload>")

        self.state = IntakeWizardState(
            step=WizardStep.MAPPING,
            parse_result=result,
            mapping=self._seed_mapping(result),
        )
        logger.info(
            "uploaded %s: %d rows, confidence %.2f%s",
            result.file_name,
            result.file_summary.rows,
            result.overall_confidence,
            " (AI)" if result.ai_enhanced else "",
        )
        return result

    # --- Mapping -----------------------------------------------------
    def select_field(self, column_index: int, field_key: str) -> dict[int, str]:
        """Assign ``field_key`` to a column; IGNORE unassigns it.

        A key already used by another column moves to this one.
        """
        self._require(WizardStep.MAPPING)
        result = self._current_result()
        cols = result.file_summary.cols
        if not 0 <= column_index < cols:
            raise ValueError(f"column index out of range: {column_index}")

        mapping = dict(self.state.mapping)
        if field_key == IGNORE:
            mapping.pop(column_index, None)
        else:
            if field_key not in self._active_keys():
                raise ValueError(f"unknown or inactive field: {field_key}")
            mapping = {c: k for c, k in mapping.items() if k != field_key}
            mapping[column_index] = field_key
        self.state.mapping = mapping
        return dict(mapping)

    def apply_mapping(self) -> list[OrderItem] | None:
        """Transform every data row with the current mapping and move to Preview."""
        if self.state.processing:
            return None
        self._require(WizardStep.MAPPING)
        mapped = set(self.state.mapping.values())
        missing = [key for key in CRITICAL_FIELD_KEYS if key not in mapped]
        if missing:
            raise MappingIncompleteError(missing)

        result = self._current_result()
        self.state.processing = True
        try:
            items = transform_rows(result.file_summary.all_rows, self.state.mapping)
        finally:
            self.state.processing = False

        self.state.items = items
        self.state.page = 1
        self.state.row_errors = {}
        self.state.duplicates = []
        self.state.export_ready = False
        self.state.step = WizardStep.PREVIEW
        logger.debug("mapping applied: %d items", len(items))
        return list(items)

    def cancel(self) -> None:
        self._require(WizardStep.MAPPING)
        self.state = IntakeWizardState()

    def save_template(self, name: str | None = None):
        """Remember the current header and mapping for future uploads."""
        self._require(WizardStep.MAPPING, WizardStep.PREVIEW)
        if self.templates is None:
            raise WizardStateError("no template store configured")
        result = self._current_result()
        return self.templates.save_template(
            result.file_summary.header,
            self.state.mapping,
            customer=self.customer,
            name=name,
        )

    # --- Preview -----------------------------------------------------
    def back(self) -> None:
        self._require(WizardStep.PREVIEW)
        self.state.step = WizardStep.MAPPING
        self.state.items = []
        self.state.row_errors = {}
        self.state.duplicates = []
        self.state.page = 1
        self.state.export_ready = False

    def confirm(self) -> BatchValidationResult:
        """Validate the batch; export becomes possible only when every item is valid."""
        self._require(WizardStep.PREVIEW)
        result = validate_batch(self.state.items)
        self.state.items = [apply_validation(item) for item in self.state.items]
        self.state.row_errors = {err.index: list(err.errors) for err in result.invalid_items}
        self.state.duplicates = list(result.duplicates)
        self.state.export_ready = result.all_valid
        if result.duplicates:
            logger.warning("duplicate SKUs: %s", ", ".join(result.duplicates))
        if not result.all_valid:
            logger.info("%d of %d items invalid", len(result.invalid_items), len(self.state.items))
        return result

    def update_item(self, index: int, **changes: Any) -> OrderItem:
        """Apply a correction to one item, then re-clean and re-validate it."""
        self._require(WizardStep.PREVIEW)
        if not 0 <= index < len(self.state.items):
            raise IndexError(f"item index out of range: {index}")
        updated = apply_validation(clean_item(replace(self.state.items[index], **changes)))
        items = list(self.state.items)
        items[index] = updated
        self.state.items = items
        if updated.is_valid:
            self.state.row_errors.pop(index, None)
        else:
            self.state.row_errors[index] = list(updated.errors)
            self.state.export_ready = False
        self.state.duplicates = find_duplicates(items)
        return updated

    def export(self, target: ExportTarget = ExportTarget.SHARE) -> Path | None:
        """Hand the confirmed items to the exporter; the wizard stays in Preview."""
        if self.state.processing:
            return None
        self._require(WizardStep.PREVIEW)
        if not self.state.export_ready:
            raise WizardStateError("items must be confirmed and valid before export")
        self.state.processing = True
        try:
            return self.exporter.export(self.state.items, target)
        finally:
            self.state.processing = False

    def reset_flow(self) -> None:
        self.state = IntakeWizardState()

    # --- pagination --------------------------------------------------
    @property
    def total_pages(self) -> int:
        return max(1, math.ceil(len(self.state.items) / self.page_size))

    def page_items(self) -> list[OrderItem]:
        start = (self.state.page - 1) * self.page_size
        return self.state.items[start:start + self.page_size]

    def go_to_page(self, page: int) -> int:
        self.state.page = min(max(page, 1), self.total_pages)
        return self.state.page

    def next_page(self) -> int:
        return self.go_to_page(self.state.page + 1)

    def previous_page(self) -> int:
        return self.go_to_page(self.state.page - 1)
