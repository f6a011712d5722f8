"""
main.py - CLI orchestration for the daily report extractor.

Three modes:
1. --image        one screenshot: classify -> OCR -> extract -> persist
2. --workbook     bulk spreadsheet export (with --dry-run / --analyze)
3. --legacy-json  records (and optionally logs) from the previous bot
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path

from logging_config import get_logger, setup_logging

logger = get_logger("shinsen-extract")


def _configure_output_symbols() -> str:
    """Configure stdout encoding and return a safe rule character."""
    try:
        if hasattr(sys.stdout, "reconfigure"):
            sys.stdout.reconfigure(encoding="utf-8", errors="replace")
    except (AttributeError, ValueError, OSError):
        pass

    try:
        "═".encode(sys.stdout.encoding or "utf-8")
        return "═"
    except (LookupError, UnicodeEncodeError):
        return "="


BOX_CHAR = _configure_output_symbols()


def _banner(title: str) -> None:
    print(BOX_CHAR * 60)
    print(f"  {title}")
    print(BOX_CHAR * 60)


def run_image(image_path: str, as_json: bool = False, overwrite: bool = False) -> int:
    """Process one screenshot file. Returns the number of records written."""
    from pipeline import process_image, reply_text
    from record_store import get_record_store

    path = Path(image_path)
    if not path.exists():
        raise FileNotFoundError(f"Image not found: {image_path}")
    image_bytes = path.read_bytes()
    if not image_bytes:
        raise ValueError(f"Image is empty (0 bytes): {image_path}")

    store = get_record_store()
    outcomes = process_image(image_bytes, store, message_id=path.name, overwrite=overwrite)

    if as_json:
        print(json.dumps([outcome.model_dump(mode="json") for outcome in outcomes], indent=2, ensure_ascii=False))
    elif not outcomes:
        print("Not a table screenshot; nothing extracted.")
    else:
        _banner(f"{path.name} - {len(outcomes)} attempt(s)")
        for outcome in outcomes:
            descriptor = outcome.to_descriptor()
            line = f"  {descriptor['category'] or '-':<8} {descriptor['status']:<8} {descriptor['date'] or '-':<11}"
            if outcome.write_result:
                line += f" {outcome.write_result.value}"
            if descriptor["reason"]:
                line += f" ({descriptor['reason']})"
            print(line)
        reply = reply_text(outcomes)
        if reply:
            print()
            print(f"  {reply}")
    return sum(1 for outcome in outcomes if outcome.created)


def run_workbook(path: str, dry_run: bool = False, analyze: bool = False, overwrite: bool = False) -> None:
    from record_store import get_record_store
    from sheet_import import analyze_workbook, import_sheets, read_workbook

    sheets = read_workbook(path)
    if analyze:
        for line in analyze_workbook(sheets):
            print(line)
        return

    _banner("Workbook import" + (" (DRY RUN - nothing is saved)" if dry_run else ""))
    store = None if dry_run else get_record_store()
    summary = import_sheets(sheets, store, dry_run=dry_run, overwrite=overwrite)
    for line in summary.lines():
        print(f"  {line}")
    if dry_run and summary.records:
        print()
        print("  Sample records:")
        for record in summary.records[:5]:
            print(f"    {record.display_date} {record.category.value:<7} total_sum={record.total_sum}")


def run_legacy_json(records_path: str, logs_path: str | None = None, overwrite: bool = False) -> None:
    from record_store import get_record_store
    from sheet_import import import_legacy_json

    _banner("Legacy JSON import")
    summary = import_legacy_json(records_path, get_record_store(), logs_path=logs_path, overwrite=overwrite)
    for line in summary.lines():
        print(f"  {line}")


def main() -> None:
    """CLI entry point."""
    parser = argparse.ArgumentParser(
        prog="shinsen-extract",
        description=(
            "Daily report extractor\n"
            "Turns screenshots and spreadsheet exports of the daily sales "
            "report into one record per date and product category."
        ),
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=(
            "Examples:\n"
            "  %(prog)s --image report.jpg\n"
            "  %(prog)s --workbook history.xlsx --analyze\n"
            "  %(prog)s --workbook history.xlsx --dry-run\n"
            "  %(prog)s --legacy-json daily_records.json --legacy-logs detection_logs.json\n"
        ),
    )
    parser.add_argument("--image", "-i", type=str, help="Path to a report screenshot (.png, .jpg)")
    parser.add_argument("--workbook", "-w", type=str, help="Path to a spreadsheet export (.xlsx)")
    parser.add_argument("--legacy-json", type=str, help="Path to the previous bot's daily_records.json")
    parser.add_argument("--legacy-logs", type=str, help="Path to the previous bot's detection_logs.json")
    parser.add_argument("--dry-run", action="store_true", help="Parse the workbook without saving")
    parser.add_argument("--analyze", action="store_true", help="Describe the workbook's sheets and exit")
    parser.add_argument("--overwrite", action="store_true", help="Replace records that already exist")
    parser.add_argument("--json", action="store_true", help="Print image outcomes as JSON")
    parser.add_argument(
        "--verbose",
        "-v",
        action="store_true",
        help="Enable verbose (DEBUG-level) logging",
    )
    parser.add_argument(
        "--log-json",
        action="store_true",
        help="Output logs as JSON lines (for production/log aggregation)",
    )

    args = parser.parse_args()
    setup_logging(
        level=logging.DEBUG if args.verbose else logging.INFO,
        json_format=args.log_json,
    )

    modes = [mode for mode in (args.image, args.workbook, args.legacy_json) if mode]
    if not modes:
        parser.error("Provide one of --image PATH, --workbook PATH or --legacy-json PATH")
    if len(modes) > 1:
        parser.error("Use only one of --image, --workbook, --legacy-json")
    if (args.dry_run or args.analyze) and not args.workbook:
        parser.error("--dry-run and --analyze only apply to --workbook")
    if args.legacy_logs and not args.legacy_json:
        parser.error("--legacy-logs requires --legacy-json")

    try:
        if args.image:
            logger.info("cli_mode | mode=image | image=%s", args.image)
            run_image(args.image, as_json=args.json, overwrite=args.overwrite)
        elif args.workbook:
            logger.info(
                "cli_mode | mode=workbook | workbook=%s | dry_run=%s | analyze=%s",
                args.workbook,
                args.dry_run,
                args.analyze,
            )
            run_workbook(args.workbook, dry_run=args.dry_run, analyze=args.analyze, overwrite=args.overwrite)
        else:
            logger.info("cli_mode | mode=legacy_json | records=%s | logs=%s", args.legacy_json, args.legacy_logs)
            run_legacy_json(args.legacy_json, logs_path=args.legacy_logs, overwrite=args.overwrite)
    except FileNotFoundError as exc:
        logger.error("cli_error | type=FileNotFoundError | error=%s", exc)
        print(f"\nError: {exc}")
        raise SystemExit(1) from exc
    except ValueError as exc:
        logger.error("cli_error | type=ValueError | error=%s", exc)
        print(f"\nError: {exc}")
        raise SystemExit(1) from exc
    except KeyboardInterrupt:
        print("\nInterrupted.")
        raise SystemExit(130)
    except Exception as exc:
        logger.error(
            "cli_error | type=%s | error=%s",
            type(exc).__name__,
            exc,
            exc_info=True,
        )
        print(f"\nUnexpected error: {exc}")
        print("Run with --verbose for full traceback.")
        raise SystemExit(1) from exc


if __name__ == "__main__":
    main()
