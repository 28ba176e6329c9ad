"""
Run residual statement ingestion from CLI.

Without ``--database-url`` the audit trail is kept in memory for the run and
only its size is logged. With it, audit entries go to the audit_entries table
and the run commits or rolls back as one unit.
"""

from __future__ import annotations

import argparse
import json
import logging
import os
import uuid
from dataclasses import replace
from pathlib import Path
from typing import Sequence

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from db.repositories import AuditEntryRepository, MerchantRevenueRepository, RepositoryError
from db.session import create_db_engine, create_session_factory, init_db, session_scope
from residuals.audit.recorder import AuditSink, InMemoryAuditSink
from residuals.config import IngestionSettings, get_ingestion_settings, get_schema_registry_settings
from residuals.domain.errors import IngestionError
from residuals.domain.records import ValidatedRecord
from residuals.registry.loader import build_schema_registry
from residuals.registry.schema_registry import SchemaRegistry
from residuals.schemas.batch_report import build_batch_report
from residuals.services.ingestion_orchestrator import build_ingestion_orchestrator

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_INPUT_ERROR = 1
EXIT_BATCH_FAILED = 2


def _configure_logging() -> None:
    log_level = os.getenv("LOG_LEVEL", "INFO").strip().upper()
    logging.basicConfig(
        level=getattr(logging, log_level, logging.INFO),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )


def _read_lines(path: str) -> list[str]:
    return Path(path).read_text(encoding="utf-8-sig").splitlines()


def _print_error(exc: Exception) -> None:
    if isinstance(exc, IngestionError):
        payload = exc.to_dict()
    else:
        payload = {"error": type(exc).__name__, "message": str(exc)}
    print(json.dumps(payload, indent=2))


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Ingest and validate a processor residual statement.")
    parser.add_argument("file", help="CSV statement to ingest.")
    parser.add_argument(
        "--processor",
        dest="processor",
        default=None,
        help="Processor name; detected from the header row and file name when omitted.",
    )
    parser.add_argument(
        "--prior",
        dest="prior",
        default=None,
        help="Prior month's statement for the same processor, used for variance checks.",
    )
    parser.add_argument(
        "--workers",
        dest="workers",
        type=int,
        default=None,
        help="Worker threads for row parsing and mapping.",
    )
    parser.add_argument(
        "--schema-config",
        dest="schema_config",
        default=None,
        help="JSON file with additional processor schemas.",
    )
    parser.add_argument(
        "--database-url",
        dest="database_url",
        default=None,
        help="Residual store URL; audit entries are written there instead of kept in memory.",
    )
    parser.add_argument(
        "--month",
        dest="month",
        default=None,
        help="Reporting month (YYYY-MM) under which valid records are stored. Needs --database-url.",
    )
    parser.add_argument(
        "--prior-month",
        dest="prior_month",
        default=None,
        help="Stored month (YYYY-MM) to load prior records from. Needs --database-url.",
    )
    return parser


def _ingest(
    args: argparse.Namespace,
    lines: list[str],
    registry: SchemaRegistry,
    settings: IngestionSettings,
    sink: AuditSink,
    session: Session | None = None,
) -> int:
    orchestrator = build_ingestion_orchestrator(sink, registry=registry, settings=settings)

    processor_name = args.processor
    if not processor_name:
        detection = orchestrator.detect_processor(lines, file_name=Path(args.file).name)
        if detection.processor_name is None:
            print(
                json.dumps(
                    {
                        "error": "ProcessorNotDetected",
                        "message": f"Could not detect the processor for {args.file}.",
                        "registered": registry.processor_names(),
                    },
                    indent=2,
                )
            )
            return EXIT_BATCH_FAILED
        processor_name = detection.processor_name
        logger.info(
            "Detected processor=%s match_ratio=%.2f matched_by=%s",
            processor_name,
            detection.match_ratio,
            detection.matched_by,
        )
    processor_name = registry.lookup(processor_name).processor_name

    prior_records: list[ValidatedRecord] | None = None
    if args.prior:
        prior_result = orchestrator.ingest(processor_name, _read_lines(args.prior))
        prior_records = [ValidatedRecord.from_candidate(record) for record in prior_result.valid_records]
    elif args.prior_month and session is not None:
        prior_records = MerchantRevenueRepository(session).get_validated_records(
            processor_name=processor_name,
            month=args.prior_month,
        )

    batch_id = str(uuid.uuid4())
    result = orchestrator.ingest(processor_name, lines, prior_records, batch_id=batch_id)

    if args.month and session is not None:
        stored = MerchantRevenueRepository(session).save_valid_records(
            result,
            month=args.month,
            batch_id=batch_id,
        )
        logger.info(
            "Stored valid records processor=%s month=%s batch_id=%s count=%s",
            processor_name,
            args.month,
            batch_id,
            stored,
        )
    if isinstance(sink, InMemoryAuditSink):
        logger.info("Audit trail kept in memory batch_id=%s entries=%s", batch_id, len(sink))

    print(build_batch_report(result).model_dump_json(indent=2))
    return EXIT_OK


def main(argv: Sequence[str] | None = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)
    if (args.month or args.prior_month) and not args.database_url:
        parser.error("--month and --prior-month need --database-url.")
    _configure_logging()

    registry_settings = get_schema_registry_settings()
    if args.schema_config:
        registry_settings = replace(registry_settings, config_path=args.schema_config)
    ingestion_settings = get_ingestion_settings()
    if args.workers is not None:
        ingestion_settings = replace(ingestion_settings, max_workers=max(1, args.workers))

    try:
        registry = build_schema_registry(registry_settings)
        lines = _read_lines(args.file)
        if not args.database_url:
            return _ingest(args, lines, registry, ingestion_settings, InMemoryAuditSink())

        engine = create_db_engine(args.database_url)
        try:
            init_db(engine)
            with session_scope(create_session_factory(engine)) as session:
                return _ingest(
                    args,
                    lines,
                    registry,
                    ingestion_settings,
                    AuditEntryRepository(session),
                    session,
                )
        finally:
            engine.dispose()
    except (IngestionError, RepositoryError, SQLAlchemyError) as exc:
        _print_error(exc)
        return EXIT_BATCH_FAILED
    except (OSError, RuntimeError) as exc:
        _print_error(exc)
        return EXIT_INPUT_ERROR


if __name__ == "__main__":
    raise SystemExit(main())
