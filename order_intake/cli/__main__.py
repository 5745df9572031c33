from __future__ import annotations

import argparse
import os
import sys
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator

from dotenv import load_dotenv

from order_intake.config.loader import DEFAULT_CONFIG_PATH, ConfigError, load_config
from order_intake.llm.client import TextGenerationClient
from order_intake.logging.init import get_logger, log_summary, setup_logging
from order_intake.models.config_models import IntakeConfig
from order_intake.registry.fields import (
    FieldRegistryError,
    FieldService,
    InMemoryFieldRegistry,
    PostgresFieldRegistry,
    seed_default_fields,
)
from order_intake.services.analysis import Analyzer
from order_intake.services.orchestrator import ProcessingError, process_all, scan_order_files
from order_intake.services.summary import render_summary_line
from order_intake.settings.store import JsonKeyValueStore, SettingsStore, TemplateStore
from order_intake.tabular.reader import TabularReadError

"""Batch intake entry point: ``python -m order_intake.cli``.

Flow:
- Load .env and the YAML config
- Open the field registry (Postgres when configured and reachable, else in-memory)
- Run every order file of ``source_directory`` through the intake wizard
- Print the SUMMARY line and exit with 0 (all files ok), 2 (some failed) or 1 (fatal)
"""

EXIT_SUCCESS_ALL = 0
EXIT_PARTIAL_FAILURE = 2
EXIT_FATAL = 1


@contextmanager
def _field_service(cfg: IntakeConfig) -> Iterator[tuple[FieldService, str]]:
    """Yield a loaded FieldService and the registry mode ("live" or "mock").

    DISABLE_DB_CONNECT=1 forces the in-memory registry; so does a missing
    database section or an unreachable server.
    """
    logger = get_logger()
    registry: PostgresFieldRegistry | None = None
    if os.getenv("DISABLE_DB_CONNECT") == "1":
        logger.debug("DB connect disabled via DISABLE_DB_CONNECT=1 -> in-memory field registry")
    elif not cfg.database.configured:
        logger.debug("no database configured -> in-memory field registry")
    else:
        try:
            registry = PostgresFieldRegistry.connect(cfg.database)
            registry.ensure_table()
            seed_default_fields(registry)
        except FieldRegistryError as e:
            logger.info(f"field registry unavailable -> in-memory fields: {e}")
            if registry is not None:
                registry.close()
            registry = None

    try:
        if registry is not None:
            service = FieldService(registry)
            mode = "live"
        else:
            service = FieldService(InMemoryFieldRegistry())
            mode = "mock"
        service.load()
        yield service, mode
    finally:
        if registry is not None:
            registry.close()


def _build_analyzer(cfg: IntakeConfig, use_llm: bool) -> Analyzer:
    logger = get_logger()
    if not use_llm or not cfg.llm.enabled:
        logger.debug("LLM escalation disabled")
        return Analyzer()
    client = TextGenerationClient(cfg.llm)
    if not client.api_key:
        logger.info(f"{cfg.llm.api_key_env} not set -> LLM escalation disabled")
        return Analyzer()
    return Analyzer(generator=client)


def _parse_args(argv: list[str]) -> argparse.Namespace:
    p = argparse.ArgumentParser(description="Order intake: map, validate and export order spreadsheets")
    p.add_argument("--config", type=Path, default=DEFAULT_CONFIG_PATH, help="Path to the YAML config")
    p.add_argument("--debug", action="store_true", help="Enable debug logging")
    p.add_argument(
        "--inspect-data",
        action="store_true",
        help="Print detected columns and confidence per file, then exit",
    )
    p.add_argument("--no-llm", action="store_true", help="Never escalate to the LLM column classifier")
    return p.parse_args(argv)


def _inspect_data(cfg: IntakeConfig, analyzer: Analyzer) -> int:
    try:
        files = scan_order_files(Path(cfg.source_directory))
    except ProcessingError as e:
        print(f"inspect: {e}")
        return EXIT_FATAL
    if not files:
        print("inspect: no order files")
        return EXIT_SUCCESS_ALL
    for f in files:
        print(f"FILE: {f.name}")
        try:
            result = analyzer.analyze_file(f)
        except TabularReadError as e:
            print(f"  read_error: {e}")
            continue
        summary = result.file_summary
        print(
            f"  rows={summary.rows} cols={summary.cols} "
            f"delimiter={result.global_inferences.delimiter!r} "
            f"confidence={result.overall_confidence:.2f} ai={result.ai_enhanced}"
        )
        for col in result.detected_columns:
            print(
                f"  [{col.column_index}] {col.header!r} -> {col.suggested_field or '-'} "
                f"({col.confidence:.2f}) {', '.join(col.reasons)}"
            )
        print(f"  mapping={result.suggested_mapping}")
        for w in result.warnings[:5]:
            print(f"  warning: {w.details}")
    return EXIT_SUCCESS_ALL


def main(argv: list[str] | None = None) -> int:
    # None only: an explicit [] from tests must not pick up pytest's own argv
    if argv is None:
        argv = sys.argv[1:]
    args = _parse_args(argv)
    logger = setup_logging(debug=args.debug)

    # .env wins over the inherited environment (DB / API key settings)
    env_path = Path(".env")
    if env_path.exists():
        load_dotenv(dotenv_path=env_path, override=True)

    try:
        cfg = load_config(args.config)
    except ConfigError as e:
        logger.error(f"config: {e}")
        return EXIT_FATAL

    directory = Path(cfg.source_directory)
    if not directory.is_dir():
        logger.error(f"directory not found: {directory}")
        return EXIT_FATAL
    logger.debug("debug mode enabled")

    analyzer = _build_analyzer(cfg, use_llm=not args.no_llm)
    if args.inspect_data:
        return _inspect_data(cfg, analyzer)

    logger.info(f"Processing order files from: {directory}")
    store = JsonKeyValueStore(Path(cfg.settings_path))
    try:
        with _field_service(cfg) as (fields, mode):
            logger.info(f"field registry mode={mode} active_fields={','.join(fields.active_keys())}")
            result = process_all(
                cfg,
                fields,
                analyzer,
                settings=SettingsStore(store),
                templates=TemplateStore(store),
            )
    except ProcessingError as e:
        logger.error(f"processing: {e}")
        return EXIT_FATAL

    total_files = result.success_files + result.failed_files
    summary_line = render_summary_line(total_files, result)
    # log_summary adds the "SUMMARY " label itself
    log_summary(summary_line.removeprefix("SUMMARY "))

    if result.failed_files > 0:
        return EXIT_PARTIAL_FAILURE
    return EXIT_SUCCESS_ALL


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
