"""Utility CLI for keeping translation locales in sync with the baseline."""

from __future__ import annotations

import argparse
import asyncio
import json
import sys
from pathlib import Path
from typing import Iterable

from localesync.core.config import get_settings
from localesync.core.database import dispose_engine, init_database, session_scope
from localesync.core.logging_config import configure_logging
from localesync.integrations.credentials import DatabaseCredentialSupplier
from localesync.schemas.translation import LocaleStatistics, ReconciliationStats
from localesync.services.key_store import TranslationStoreError
from localesync.services.languages import LanguageRegistry
from localesync.services.translation import build_translation_service


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="localesync",
        description="Reconcile, export and import translation locales.",
    )
    parser.add_argument(
        "--log-level",
        default=None,
        help="Override LOG_LEVEL for this run (e.g. DEBUG).",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    reconcile_parser = subparsers.add_parser(
        "reconcile",
        help="Translate baseline keys missing from one locale.",
    )
    reconcile_parser.add_argument("locale", help="Target locale code, e.g. ru.")
    reconcile_parser.add_argument(
        "--baseline",
        default=None,
        help="Baseline locale (default: BASELINE_LOCALE).",
    )
    reconcile_parser.add_argument(
        "--format",
        choices=("table", "json"),
        default="table",
        help="Output format (default: table).",
    )

    reconcile_all_parser = subparsers.add_parser(
        "reconcile-all",
        help="Reconcile every active locale, one at a time.",
    )
    reconcile_all_parser.add_argument("--baseline", default=None)
    reconcile_all_parser.add_argument(
        "--format",
        choices=("table", "json"),
        default="table",
    )

    export_parser = subparsers.add_parser(
        "export",
        help="Write a locale as a flat key -> text JSON object.",
    )
    export_parser.add_argument("locale", help="Locale code to export.")
    export_parser.add_argument(
        "--output",
        type=Path,
        default=None,
        help="Destination file (default: stdout).",
    )

    import_parser = subparsers.add_parser(
        "import",
        help="Import a flat key -> text JSON object; all or nothing.",
    )
    import_parser.add_argument("locale", help="Locale code to import into.")
    import_parser.add_argument("path", type=Path, help="JSON file to import.")

    stats_parser = subparsers.add_parser(
        "stats",
        help="Show translated/total counts per active locale.",
    )
    stats_parser.add_argument(
        "--format",
        choices=("table", "json"),
        default="table",
    )

    set_parser = subparsers.add_parser(
        "set",
        help="Add or update a single translation.",
    )
    set_parser.add_argument("locale")
    set_parser.add_argument("key", help="Dotted key, e.g. common.speed.")
    set_parser.add_argument("text")

    migrate_parser = subparsers.add_parser(
        "migrate",
        help="Apply database migrations.",
    )
    migrate_parser.add_argument("--revision", default="head")

    key_parser = subparsers.add_parser(
        "set-key",
        help="Store the API key used for the translation provider.",
    )
    key_parser.add_argument("api_key")
    key_parser.add_argument(
        "--service",
        default=None,
        help="Service name (default: TRANSLATION_SERVICE_NAME).",
    )
    return parser


def render_reconciliation_table(results: Iterable[ReconciliationStats]) -> str:
    lines = [
        f"{'Locale':<10}{'Total':>8}{'Translated':>12}{'Failed':>8}{'Batch':>8}{'Single':>8}",
        "-" * 54,
    ]
    for stats in results:
        lines.append(
            f"{stats.locale:<10}{stats.total:>8}{stats.translated:>12}{stats.failed:>8}"
            f"{stats.batch_resolved:>8}{stats.individually_resolved:>8}"
        )
    return "\n".join(lines)


def render_statistics_table(statistics: Iterable[LocaleStatistics]) -> str:
    lines = [
        f"{'Code':<8}{'Language':<20}{'Translated':>12}{'Total':>8}{'Coverage':>10}",
        "-" * 58,
    ]
    for item in statistics:
        coverage = (item.translated_count / item.total_count * 100) if item.total_count else 0.0
        lines.append(
            f"{item.code:<8}{item.name:<20}{item.translated_count:>12}"
            f"{item.total_count:>8}{coverage:>9.1f}%"
        )
    return "\n".join(lines)


def _print_reconciliation(results: list[ReconciliationStats], output_format: str) -> None:
    if output_format == "json":
        print(json.dumps([item.model_dump() for item in results], indent=2, ensure_ascii=False))
    else:
        print(render_reconciliation_table(results))


async def handle_reconcile(args: argparse.Namespace) -> int:
    settings = get_settings()
    async with session_scope() as session:
        if not await LanguageRegistry(session).is_supported(args.locale):
            print(f"Locale {args.locale} is unknown or inactive.", file=sys.stderr)
            return 1
        service = build_translation_service(session, settings)
        stats = await service.reconcile_locale(args.locale, args.baseline)
    _print_reconciliation([stats], args.format)
    return 0 if stats.failed == 0 else 1


async def handle_reconcile_all(args: argparse.Namespace) -> int:
    settings = get_settings()
    async with session_scope() as session:
        service = build_translation_service(session, settings)
        results = await service.reconcile_all(args.baseline)
    _print_reconciliation(results, args.format)
    return 0 if all(item.failed == 0 for item in results) else 1


async def handle_export(args: argparse.Namespace) -> int:
    settings = get_settings()
    async with session_scope(read_only=True) as session:
        service = build_translation_service(session, settings)
        rendered = await service.export_to_json(args.locale)
    if args.output is None:
        print(rendered)
    else:
        args.output.write_text(rendered + "\n", encoding="utf-8")
        print(f"Exported {args.locale} to {args.output}")
    return 0


async def handle_import(args: argparse.Namespace) -> int:
    if not args.path.exists():
        print(f"File {args.path} not found.", file=sys.stderr)
        return 1
    raw = args.path.read_text(encoding="utf-8")
    settings = get_settings()
    async with session_scope() as session:
        service = build_translation_service(session, settings)
        result = await service.import_from_json(args.locale, raw)
    if not result.success:
        print(f"Import failed: {result.error}", file=sys.stderr)
        return 1
    print(f"Imported {result.imported} entries into {result.locale}")
    return 0


async def handle_stats(args: argparse.Namespace) -> int:
    settings = get_settings()
    async with session_scope(read_only=True) as session:
        service = build_translation_service(session, settings)
        statistics = await service.get_statistics()
    if args.format == "json":
        print(json.dumps([item.model_dump() for item in statistics], indent=2, ensure_ascii=False))
    else:
        print(render_statistics_table(statistics))
    return 0


async def handle_set(args: argparse.Namespace) -> int:
    settings = get_settings()
    async with session_scope() as session:
        service = build_translation_service(session, settings)
        try:
            await service.set_translation(args.locale, args.key, args.text)
        except TranslationStoreError as exc:
            print(f"Could not store {args.locale}:{args.key}: {exc}", file=sys.stderr)
            return 1
    print(f"Stored {args.locale}:{args.key}")
    return 0


async def handle_set_key(args: argparse.Namespace) -> int:
    settings = get_settings()
    service_name = args.service or settings.translation_service_name
    async with session_scope() as session:
        await DatabaseCredentialSupplier(session).save_api_key(service_name, args.api_key)
    print(f"Stored API key for {service_name}")
    return 0


async def handle_migrate(args: argparse.Namespace) -> int:
    await init_database(args.revision)
    print(f"Database schema upgraded to {args.revision}.")
    return 0


async def dispatch(args: argparse.Namespace) -> int:
    if args.command == "reconcile":
        return await handle_reconcile(args)
    if args.command == "reconcile-all":
        return await handle_reconcile_all(args)
    if args.command == "export":
        return await handle_export(args)
    if args.command == "import":
        return await handle_import(args)
    if args.command == "stats":
        return await handle_stats(args)
    if args.command == "set":
        return await handle_set(args)
    if args.command == "set-key":
        return await handle_set_key(args)
    if args.command == "migrate":
        return await handle_migrate(args)
    raise ValueError(f"Unsupported command {args.command}")


async def run(args: argparse.Namespace) -> int:
    try:
        return await dispatch(args)
    finally:
        await dispose_engine()


def cli(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    configure_logging(args.log_level or get_settings().log_level)
    try:
        return asyncio.run(run(args))
    except KeyboardInterrupt:  # pragma: no cover - interactive use
        return 130


if __name__ == "__main__":
    raise SystemExit(cli())
