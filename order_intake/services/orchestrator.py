from __future__ import annotations

import logging
from datetime import UTC, datetime
from pathlib import Path

from ..export.writer import DirectorySink, ExportFailure, Exporter, ExportTarget
from ..logging.error_log import ErrorLogBuffer, ErrorRecord, records_from_validation
from ..models.config_models import IntakeConfig
from ..models.intake_run import FileStatus, IntakeRun
from ..models.processing_result import FileStat, ProcessingResult
from ..registry.fields import FieldService
from ..settings.store import SettingsStore, TemplateStore
from ..tabular.reader import SUPPORTED_SUFFIXES, EmptyFileError, TabularReadError
from .analysis import Analyzer
from .progress import ProgressTracker
from .wizard import IntakeWizard, MappingIncompleteError

"""Batch orchestration: run every order file of a directory through the wizard.

Per file: upload -> apply the suggested mapping -> confirm -> export the valid
items into the output directory. Files are independent: a failing file is
recorded in the error log and the run continues with the next one.
"""

__all__ = [
    "ProcessingError",
    "process_all",
    "process_file",
    "scan_order_files",
]

logger = logging.getLogger(__name__)


class ProcessingError(Exception):
    """Fatal run-level error (missing or unreadable directory)."""


def scan_order_files(directory: Path) -> list[Path]:
    """Order files (.csv/.xlsx/.xls/.xlsm) directly inside ``directory``, sorted by name."""
    if not directory.exists():
        raise ProcessingError(f"Directory not found: {directory}")
    if not directory.is_dir():
        raise ProcessingError(f"Path is not a directory: {directory}")
    try:
        return sorted(
            p for p in directory.iterdir()
            if p.is_file() and p.suffix.lower() in SUPPORTED_SUFFIXES and not p.name.startswith("~$")
        )
    except OSError as e:
        raise ProcessingError(f"Error reading directory {directory}: {e}") from e


def _failed(run: IntakeRun, error_log: ErrorLogBuffer, error_type: str, message: str) -> IntakeRun:
    error_log.append(ErrorRecord.create(file=run.name, row=-1, error_type=error_type, message=message))
    logger.error("%s: %s", run.name, message)
    return IntakeRun(
        path=run.path,
        name=run.name,
        start_time=run.start_time,
        end_time=datetime.now(UTC),
        status=FileStatus.FAILED,
        total_items=run.total_items,
        invalid_items=run.invalid_items,
        duplicates=run.duplicates,
        ai_enhanced=run.ai_enhanced,
        error=message,
    )


def process_file(
    path: Path,
    config: IntakeConfig,
    fields: FieldService,
    analyzer: Analyzer,
    error_log: ErrorLogBuffer,
    settings: SettingsStore | None = None,
    templates: TemplateStore | None = None,
) -> IntakeRun:
    """Run one file through the wizard non-interactively."""
    output_dir = Path(config.output_directory)
    exporter = Exporter(
        directory_sink=DirectorySink(picker=lambda: output_dir),
        # one export per input file; the stem keeps same-second exports apart
        filename_prefix=f"{config.export.filename_prefix}_{path.stem}",
    )
    wizard = IntakeWizard(fields, settings, analyzer, exporter, templates=templates)
    run = IntakeRun(path=path, name=path.name, start_time=datetime.now(UTC), status=FileStatus.PROCESSING)

    try:
        result = wizard.upload(path)
    except EmptyFileError as e:
        return _failed(run, error_log, "EMPTY_FILE", str(e))
    except TabularReadError as e:
        return _failed(run, error_log, "UNREADABLE_FILE", str(e))

    for warning in result.warnings:
        logger.debug("%s: %s", path.name, warning.details)

    try:
        items = wizard.apply_mapping() or []
    except MappingIncompleteError as e:
        return _failed(run, error_log, "MAPPING_INCOMPLETE", str(e))

    validation = wizard.confirm()
    error_log.extend(records_from_validation(path.name, validation.invalid_items))
    run = IntakeRun(
        path=path,
        name=path.name,
        start_time=run.start_time,
        status=FileStatus.PROCESSING,
        total_items=len(items),
        invalid_items=len(validation.invalid_items),
        duplicates=len(validation.duplicates),
        ai_enhanced=result.ai_enhanced,
    )
    if validation.duplicates:
        logger.warning("%s: duplicate SKUs %s", path.name, ", ".join(validation.duplicates))

    if not validation.valid_items:
        return _failed(run, error_log, "NO_VALID_ITEMS", "no valid order items")

    try:
        if wizard.state.export_ready:
            export_path = wizard.export(ExportTarget.DEVICE)
        else:
            # batch mode exports the valid subset; invalid rows are in the error log
            export_path = exporter.export(validation.valid_items, ExportTarget.DEVICE)
    except ExportFailure as e:
        return _failed(run, error_log, "EXPORT_FAILED", str(e))

    return IntakeRun(
        path=path,
        name=path.name,
        start_time=run.start_time,
        end_time=datetime.now(UTC),
        status=FileStatus.SUCCESS,
        total_items=run.total_items,
        invalid_items=run.invalid_items,
        duplicates=run.duplicates,
        ai_enhanced=run.ai_enhanced,
        export_path=export_path,
    )


def process_all(
    config: IntakeConfig,
    fields: FieldService,
    analyzer: Analyzer,
    settings: SettingsStore | None = None,
    templates: TemplateStore | None = None,
    error_log: ErrorLogBuffer | None = None,
) -> ProcessingResult:
    """Process all order files of ``config.source_directory``.

    Raises:
        ProcessingError: the source directory is missing or unreadable
    """
    start_time = datetime.now(UTC)
    error_log = error_log if error_log is not None else ErrorLogBuffer()
    file_paths = scan_order_files(Path(config.source_directory))

    file_stats: list[FileStat] = []
    success_count = failed_count = total_items = invalid_items = duplicates = 0

    with ProgressTracker(len(file_paths)) as progress:
        for file_path in file_paths:
            progress.start_file(file_path)
            run = process_file(file_path, config, fields, analyzer, error_log, settings, templates)

            if run.status == FileStatus.SUCCESS:
                success_count += 1
                logger.info(
                    "%s: %d items (%d invalid) -> %s",
                    run.name,
                    run.total_items,
                    run.invalid_items,
                    run.export_path.name if run.export_path else "-",
                )
            else:
                failed_count += 1
            total_items += run.total_items
            invalid_items += run.invalid_items
            duplicates += run.duplicates

            progress.finish_file(items=run.total_items, invalid=run.invalid_items)
            file_stats.append(
                FileStat(
                    file_name=run.name,
                    status=run.status.value,
                    total_items=run.total_items,
                    invalid_items=run.invalid_items,
                    duplicates=run.duplicates,
                    elapsed_seconds=(
                        (run.end_time - run.start_time).total_seconds()
                        if run.end_time and run.start_time
                        else 0.0
                    ),
                    ai_enhanced=run.ai_enhanced,
                )
            )

    try:
        log_path = error_log.flush()
    except OSError as e:
        logger.warning("could not write error log: %s", e)
    else:
        if log_path is not None:
            logger.info("error log written: %s", log_path)

    end_time = datetime.now(UTC)
    return ProcessingResult(
        success_files=success_count,
        failed_files=failed_count,
        total_items=total_items,
        invalid_items=invalid_items,
        duplicates=duplicates,
        start_time=start_time,
        end_time=end_time,
        elapsed_seconds=(end_time - start_time).total_seconds(),
        file_stats=file_stats,
    )
