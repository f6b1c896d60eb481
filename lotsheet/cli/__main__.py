from __future__ import annotations

import argparse
import json
import sys
import time
from pathlib import Path

from dotenv import load_dotenv

from lotsheet.config.loader import DEFAULT_CONFIG_PATH, AppConfig, ConfigError, load_config
from lotsheet.excel.grid import ParseError, build_workbook
from lotsheet.extraction.extractor import extract_document
from lotsheet.logging.error_log import ErrorLogBuffer
from lotsheet.logging.init import get_logger, log_summary, setup_logging
from lotsheet.models.injection import SourceDocument
from lotsheet.services.generator import (
    TemplateError,
    build_archive,
    generate_profiles,
    locate_template,
    write_profiles,
)
from lotsheet.services.grouping import group_rows, parse_masters_list
from lotsheet.services.orchestrator import InjectionOrchestrator
from lotsheet.services.progress import ProgressTracker
from lotsheet.services.summary import render_completion_message, render_summary_line
from lotsheet.sheets.target import WorkbookTarget

"""CLI entrypoint.

Subcommands:
- extract FILE...   print ExtractedData as JSON
- generate MASTERS  one profile workbook per lot (directory or --zip)
- inject FILE...    write extracted data into the destination workbook
"""

EXIT_SUCCESS_ALL = 0
EXIT_PARTIAL_FAILURE = 2
EXIT_FATAL = 1


def _parse_args(argv: list[str]) -> argparse.Namespace:
    p = argparse.ArgumentParser(prog="lotsheet", description="Lot sheet extraction / profile generation")
    p.add_argument("--config", type=Path, default=DEFAULT_CONFIG_PATH, help="YAML config path")
    p.add_argument("--debug", action="store_true", help="Enable debug logging")
    sub = p.add_subparsers(dest="command", required=True)

    ex = sub.add_parser("extract", help="Print extracted data as JSON")
    ex.add_argument("files", nargs="+", type=Path)

    gen = sub.add_parser("generate", help="Generate lot profiles from a master list")
    gen.add_argument("masters", type=Path)
    gen.add_argument("--out", type=Path, default=None, help="Output directory")
    gen.add_argument("--zip", action="store_true", help="Write a single zip archive")

    inj = sub.add_parser("inject", help="Inject extracted data into the destination workbook")
    inj.add_argument("files", nargs="+", type=Path)
    inj.add_argument("--target", type=Path, default=None, help="Destination .xlsx")
    inj.add_argument("--tab", default=None, help="Destination tab name")
    return p.parse_args(argv)


def _extract(files: list[Path]) -> int:
    logger = get_logger()
    failed = 0
    results = []
    for path in files:
        try:
            data = extract_document(path.read_bytes(), path.name)
        except (OSError, ParseError) as e:
            logger.error(f"{path.name}: {e}")
            failed += 1
            continue
        results.append(data.to_dict())
    print(json.dumps(results, ensure_ascii=False, indent=2))
    return EXIT_PARTIAL_FAILURE if failed else EXIT_SUCCESS_ALL


def _generate(cfg: AppConfig, masters: Path, out: Path | None, as_zip: bool) -> int:
    logger = get_logger()
    try:
        workbook = build_workbook(masters.read_bytes())
    except (OSError, ParseError) as e:
        logger.error(f"master list: {e}")
        return EXIT_FATAL
    sheet = workbook.first()
    groups = group_rows(parse_masters_list(sheet)) if sheet is not None else []
    if not groups:
        logger.error("No lot records found in master's list")
        return EXIT_FATAL

    try:
        template = locate_template(cfg.template_paths)
        profiles = generate_profiles(groups, template)
    except TemplateError as e:
        logger.error(f"template: {e}")
        return EXIT_FATAL

    directory = out or Path(cfg.output_directory)
    if as_zip:
        directory.mkdir(parents=True, exist_ok=True)
        archive = directory / cfg.archive_name
        archive.write_bytes(build_archive(profiles))
        logger.info(f"wrote {len(profiles)} profile(s) to {archive}")
    else:
        written = write_profiles(profiles, directory)
        logger.info(f"wrote {len(written)} profile(s) to {directory}")
    log_summary(f"lots={len(groups)} rows={sum(len(g.rows) for g in groups)}")
    return EXIT_SUCCESS_ALL


def _inject(cfg: AppConfig, files: list[Path], target_path: Path | None, tab: str | None) -> int:
    logger = get_logger()
    destination = target_path or (Path(cfg.destination.workbook) if cfg.destination.workbook else None)
    if destination is None:
        logger.error("no destination workbook (use --target or destination.workbook)")
        return EXIT_FATAL

    documents = []
    for path in files:
        try:
            documents.append(SourceDocument(name=path.name, content=path.read_bytes()))
        except OSError as e:
            logger.error(f"{path}: {e}")
            return EXIT_FATAL

    target = WorkbookTarget(
        destination,
        default_sheet=tab or cfg.destination.tab_name,
        write_quota=cfg.destination.write_quota,
        quota_window=cfg.destination.quota_window,
    )
    error_log = ErrorLogBuffer()
    started = time.monotonic()
    with ProgressTracker(len(documents)) as tracker:
        orchestrator = InjectionOrchestrator(
            target,
            tab_name=tab or cfg.destination.tab_name,
            inter_item_delay=cfg.batch.inter_item_delay,
            cooldown_seconds=cfg.batch.cooldown_seconds,
            auto_retry=cfg.batch.auto_retry,
            progress=tracker,
            error_log=error_log,
        )
        result = orchestrator.run(documents)

    log_path = error_log.flush()
    if log_path is not None:
        logger.info(f"error log: {log_path}")
    logger.info(render_completion_message(result.first_summary))
    summary_line = render_summary_line(result, time.monotonic() - started)
    log_summary(summary_line[len("SUMMARY "):])

    final = result.final
    if final.failed or final.skipped:
        return EXIT_PARTIAL_FAILURE
    return EXIT_SUCCESS_ALL


def main(argv: list[str] | None = None) -> int:
    # argv=[] のとき sys.argv を読まないよう None のみ判定
    if argv is None:
        argv = sys.argv[1:]
    args = _parse_args(argv)
    logger = setup_logging(debug=args.debug)
    load_dotenv(dotenv_path=Path(".env"), override=True)

    try:
        cfg = load_config(args.config)
    except ConfigError as e:
        logger.error(f"config: {e}")
        return EXIT_FATAL

    if args.command == "extract":
        return _extract(args.files)
    if args.command == "generate":
        return _generate(cfg, args.masters, args.out, args.zip)
    return _inject(cfg, args.files, args.target, args.tab)


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
