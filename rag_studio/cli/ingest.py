# =============================================================================
# rag_studio/cli/ingest.py -- CLI for ingestion runs and index management
# =============================================================================
#
# Drives one IngestionWizard run from the terminal, or manages the custom
# indexes and inspects document counts.
#
# Supported subcommands:
#
#   structured -- Validate a JSON file of complete records and ingest the
#                 error-free ones (optionally auto-fixing the others first)
#   enrich     -- Complete partial JSON records with the OpenAI provider,
#                 review them, ingest the approved ones
#   names      -- Build records from bare product names with the Mistral
#                 provider, review them, ingest the approved ones
#   indexes    -- list / create / delete custom indexes, check a slug
#   count      -- Show the document count (and optionally one page) of an index
#
# Review in the enriched modes is interactive (one prompt per document)
# unless --approve-all is given.
#
# Usage examples:
#   python -m rag_studio.cli structured --file products.json --fix
#   python -m rag_studio.cli enrich --file partial.json --approve-all
#   python -m rag_studio.cli names --name "Doliprane 500" --name "Spasfon"
#   python -m rag_studio.cli indexes create --name "Pharmacie de l'Étoile"
#   python -m rag_studio.cli count --index pharmaceutical_products --list
# =============================================================================

"""Command-line front end for the RAG Studio ingestion wizard.

Usage::

    python -m rag_studio.cli structured --file products.json
    python -m rag_studio.cli names --file names.txt --approve-all
    python -m rag_studio.cli indexes list
    python -m rag_studio.cli count
"""

from __future__ import annotations

import argparse
import asyncio
import sys
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from rag_studio.config.loader import load_config
from rag_studio.config.settings import Settings
from rag_studio.models.documents import IngestionReport, ReviewStatus
from rag_studio.models.index import CreateIndexParams, IconName
from rag_studio.models.pipeline import IngestionMode, WizardStep
from rag_studio.pipeline.orchestrator import IngestionWizard
from rag_studio.pipeline.progress_tracker import ProgressTracker
from rag_studio.services.custom_index_service import CustomIndexService, normalize_slug
from rag_studio.services.index_registry import IndexRegistry
from rag_studio.utils.errors import RagStudioError
from rag_studio.utils.logging import configure_logging


@dataclass
class _App:
    """Everything one CLI invocation needs, wired once."""

    settings: Settings
    config: dict[str, Any]
    registry: IndexRegistry
    custom_indexes: CustomIndexService
    wizard: IngestionWizard
    store: Any
    owner_id: str
    # Providers holding an HTTP client; closed when the command ends.
    providers: list[Any] = field(default_factory=list)

    async def close(self) -> None:
        for provider in self.providers:
            await provider.close()


async def _build_app(app_settings: Settings, config: dict[str, Any]) -> _App:
    """Construct providers, services and the wizard.

    Imports of the heavier adapters (chromadb, openai, httpx) are deferred
    so ``--help`` stays fast.
    """
    from rag_studio.providers.custom_index.sqlite_custom_index_provider import (
        SQLiteCustomIndexProvider,
    )
    from rag_studio.providers.document_store.chromadb_store import ChromaDocumentStore
    from rag_studio.providers.embedding.openai_embedding_provider import OpenAIEmbeddingProvider
    from rag_studio.providers.llm.mistral_provider import MistralLLMProvider
    from rag_studio.providers.llm.openai_provider import OpenAILLMProvider
    from rag_studio.services.ai_fix_service import AIFixService
    from rag_studio.services.enrichment_service import EnrichmentService, SourcedEnrichmentService
    from rag_studio.services.ingestion_service import IngestionService
    from rag_studio.services.validation_service import ValidationService
    from rag_studio.utils.concurrency import FixedIntervalScheduler

    pipeline_cfg = config.get("pipeline", {})
    owner_id = str(pipeline_cfg.get("default_owner", "local"))

    custom_provider = SQLiteCustomIndexProvider(db_path=app_settings.custom_index_db_path)
    await custom_provider.initialize()

    registry = IndexRegistry(custom_index_provider=custom_provider)
    await registry.load_custom(owner_id)

    embedding = OpenAIEmbeddingProvider(settings=app_settings)
    store = ChromaDocumentStore(
        embedding_provider=embedding,
        index_registry=registry,
        persist_directory=app_settings.chromadb_persist_dir,
    )

    openai_llm = OpenAILLMProvider(settings=app_settings)
    mistral_llm = MistralLLMProvider(settings=app_settings)

    def _enrichment_scheduler() -> FixedIntervalScheduler:
        return FixedIntervalScheduler(
            interval=app_settings.enrichment_delay_seconds,
            item_timeout=app_settings.llm_timeout_seconds,
            max_duration=app_settings.enrichment_batch_timeout_seconds,
        )

    validation = ValidationService(registry)
    wizard = IngestionWizard(
        index_registry=registry,
        validation_service=validation,
        ingestion_service=IngestionService(
            store,
            registry,
            scheduler=FixedIntervalScheduler(interval=app_settings.ingestion_delay_seconds),
        ),
        progress_tracker=ProgressTracker(),
        enrichment_service=EnrichmentService(
            openai_llm,
            scheduler=_enrichment_scheduler(),
            max_batch_size=app_settings.enrichment_max_batch_size,
        ),
        sourced_enrichment_service=SourcedEnrichmentService(
            mistral_llm,
            scheduler=_enrichment_scheduler(),
            max_batch_size=app_settings.enrichment_max_batch_size,
        ),
        fix_service=AIFixService(
            openai_llm,
            scheduler=FixedIntervalScheduler(
                interval=app_settings.fix_delay_seconds,
                item_timeout=app_settings.llm_timeout_seconds,
            ),
        ),
        default_index_id=str(pipeline_cfg.get("default_index", "pharmaceutical_products")),
    )

    return _App(
        settings=app_settings,
        config=config,
        registry=registry,
        custom_indexes=CustomIndexService(custom_provider, registry),
        wizard=wizard,
        store=store,
        owner_id=owner_id,
        providers=[openai_llm, mistral_llm, embedding],
    )


# ---------------------------------------------------------------------------
# Output helpers
# ---------------------------------------------------------------------------


def _print_progress(run_id: str, step: WizardStep, current: int, total: int, label: str) -> None:
    print(f"  [{step.value}] {current}/{total} {label}", file=sys.stderr)


def _print_report(report: IngestionReport) -> int:
    print("\nIngestion complete:")
    print(f"  Index:     {report.index_id}")
    print(f"  Total:     {report.total}")
    print(f"  Succeeded: {report.success_count}")
    print(f"  Failed:    {report.failed_count}")
    for failure in report.failures:
        print(f"    - {failure.product_name}: {failure.error}")
    return 0 if report.failed_count == 0 else 1


def _review_interactively(app: _App, approve_all: bool) -> None:
    gate = app.wizard.review_gate
    if approve_all:
        approved = gate.approve_all_pending()
        print(f"Approved {approved} pending document(s).")
        return

    for position, doc in enumerate(gate.documents):
        if doc.status is not ReviewStatus.PENDING:
            print(f"\n[{position + 1}] {doc.label(position)} -- {doc.status.value}: {'; '.join(doc.warnings)}")
            continue
        print(f"\n[{position + 1}] {doc.label(position)}")
        print(f"  Confiance: {doc.confidence.overall:.0f}% ({doc.confidence.level.label})")
        for warning in doc.warnings:
            print(f"  ! {warning}")
        for source in doc.sources:
            print(f"  Source: {source}")
        answer = input("  Approve? [y]es / [n]o / [s]kip: ").strip().lower()
        if answer.startswith("y"):
            gate.approve(doc.id)
        elif answer.startswith("n"):
            gate.reject(doc.id)


# ---------------------------------------------------------------------------
# Subcommand handlers
# ---------------------------------------------------------------------------


async def _handle_structured(args: argparse.Namespace, app: _App) -> int:
    wizard = app.wizard
    wizard.choose_mode(IngestionMode.STRUCTURED, args.index)
    await wizard.load_json(Path(args.file).read_text(encoding="utf-8"))
    stage = wizard.validation_stage

    print(f"Validated {len(stage.documents)} record(s) against {stage.index_id}:")
    print(f"  Valid:         {stage.valid_count}")
    print(f"  With warnings: {stage.warning_count}")
    print(f"  With errors:   {stage.error_count}")

    if args.fix and stage.error_count:
        repaired = await stage.fix_all_invalid()
        print(f"  Auto-fixed:    {repaired}")

    for position, doc in enumerate(stage.documents):
        for error in doc.errors:
            print(f"    - {doc.label(position)}: {error.message}")

    if args.dry_run:
        print(f"\nDry run: {len(stage.selected_documents())} document(s) would be ingested.")
        return 0
    return _print_report(await wizard.ingest())


async def _handle_enrich(args: argparse.Namespace, app: _App) -> int:
    wizard = app.wizard
    wizard.choose_mode(IngestionMode.AI_ENRICHED, args.index)
    await wizard.load_json(Path(args.file).read_text(encoding="utf-8"))
    _review_interactively(app, args.approve_all)
    return _print_report(await wizard.ingest())


async def _handle_names(args: argparse.Namespace, app: _App) -> int:
    names: list[str] = list(args.name or [])
    if args.file:
        names.extend(Path(args.file).read_text(encoding="utf-8").splitlines())

    wizard = app.wizard
    wizard.choose_mode(IngestionMode.NATURAL_LANGUAGE, args.index)
    await wizard.submit_names(names)
    _review_interactively(app, args.approve_all)
    return _print_report(await wizard.ingest())


async def _handle_indexes(args: argparse.Namespace, app: _App) -> int:
    service = app.custom_indexes
    if args.action == "list":
        indexes = await service.list_indexes(app.owner_id)
        if not indexes:
            print("No custom index.")
        for index in indexes:
            print(f"  {index.index_id:<40} {index.name} ({index.status.value})")
        return 0

    if args.action == "check":
        slug = normalize_slug(args.slug)
        available = await service.is_slug_available(app.owner_id, args.slug)
        print(f"{slug or '(empty)'}: {'available' if available else 'unavailable'}")
        return 0 if available else 1

    if args.action == "create":
        created = await service.create(
            app.owner_id,
            CreateIndexParams(
                name=args.name,
                slug=args.slug or args.name,
                description=args.description,
                icon=IconName.parse(args.icon),
            ),
        )
        print(f"Created {created.index_id} ({created.id})")
        return 0

    existing = await service.get_by_slug(app.owner_id, args.slug)
    if existing is None:
        print(f"No custom index with slug {args.slug!r}.", file=sys.stderr)
        return 1
    if not args.yes:
        confirm = input(f"  Delete {existing.index_id}? [y/N] ").strip().lower()
        if confirm != "y":
            print("  Aborted.")
            return 1
    await service.delete(existing.id)
    print(f"Deleted {existing.index_id}")
    return 0


async def _handle_count(args: argparse.Namespace, app: _App) -> int:
    index_id = args.index or app.config.get("pipeline", {}).get("default_index", "pharmaceutical_products")
    stats = await app.registry.get_stats(index_id, app.store)
    if stats is None:
        print(f"Unknown index {index_id!r}.", file=sys.stderr)
        return 1
    if stats.health == "error":
        print(f"Error: {stats.error_message}", file=sys.stderr)
        return 1

    print(f"{index_id}: {stats.document_count} document(s)")
    if args.list:
        page_size = int(app.config.get("cli", {}).get("page_size", 20))
        page = await app.store.get_documents(index_id, page=args.page, limit=page_size, search=args.search)
        for doc in page.documents:
            name = doc.data.get("product_name") or doc.data.get("name") or doc.id
            print(f"  {doc.created_at:%Y-%m-%d %H:%M}  {name}")
        if page.has_more:
            print(f"  ... {page.total} in total, next: --page {page.page + 1}")
    return 0


# ---------------------------------------------------------------------------
# Argument parser
# ---------------------------------------------------------------------------


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="python -m rag_studio.cli",
        description="Ingest pharmaceutical records into RAG Studio indexes.",
    )
    parser.add_argument("--config", default="config/config.yaml", help="Path to the YAML config")
    subparsers = parser.add_subparsers(dest="command", help="Commands")

    # -- structured --
    structured = subparsers.add_parser("structured", help="Validate and ingest complete JSON records")
    structured.add_argument("--file", required=True, help="JSON file (object or array of objects)")
    structured.add_argument("--index", help="Destination index id")
    structured.add_argument("--fix", action="store_true", help="Auto-fix invalid records with the LLM first")
    structured.add_argument("--dry-run", action="store_true", dest="dry_run", help="Validate only")

    # -- enrich --
    enrich = subparsers.add_parser("enrich", help="Complete partial JSON records with the LLM")
    enrich.add_argument("--file", required=True, help="JSON file (object or array of objects)")
    enrich.add_argument("--index", help="Destination index id")
    enrich.add_argument("--approve-all", action="store_true", dest="approve_all", help="Skip interactive review")

    # -- names --
    names = subparsers.add_parser("names", help="Build records from product names (sourced)")
    names.add_argument("--file", help="Text file, one product name per line")
    names.add_argument("--name", action="append", help="Product name (repeatable)")
    names.add_argument("--index", help="Destination index id")
    names.add_argument("--approve-all", action="store_true", dest="approve_all", help="Skip interactive review")

    # -- indexes --
    indexes = subparsers.add_parser("indexes", help="Manage custom indexes")
    actions = indexes.add_subparsers(dest="action", required=True)
    actions.add_parser("list", help="List custom indexes")
    create = actions.add_parser("create", help="Create a custom index")
    create.add_argument("--name", required=True, help="Display name")
    create.add_argument("--slug", help="Identifier (derived from the name when omitted)")
    create.add_argument("--description", help="Description")
    create.add_argument("--icon", default=IconName.DATABASE.value, help="Icon name")
    check = actions.add_parser("check", help="Check slug availability")
    check.add_argument("--slug", required=True)
    delete = actions.add_parser("delete", help="Delete a custom index")
    delete.add_argument("--slug", required=True)
    delete.add_argument("--yes", "-y", action="store_true", help="Skip confirmation prompt")

    # -- count --
    count = subparsers.add_parser("count", help="Show the document count of an index")
    count.add_argument("--index", help="Index id")
    count.add_argument("--list", action="store_true", help="Also list one page of documents")
    count.add_argument("--page", type=int, default=0, help="0-based page number")
    count.add_argument("--search", help="Text filter")

    return parser


_HANDLERS = {
    "structured": _handle_structured,
    "enrich": _handle_enrich,
    "names": _handle_names,
    "indexes": _handle_indexes,
    "count": _handle_count,
}


async def _run(args: argparse.Namespace) -> int:
    app_settings = Settings()
    config = load_config(args.config, settings=app_settings)
    configure_logging(app_settings.log_level, json_output=bool(config.get("logging", {}).get("json", False)))

    app = await _build_app(app_settings, config)
    app.wizard.progress_tracker.register_listener(app.wizard.state.run_id, _print_progress)
    try:
        return await _HANDLERS[args.command](args, app)
    except RagStudioError as exc:
        print(f"Error: {exc.message}", file=sys.stderr)
        return 1
    finally:
        await app.close()


def main(argv: list[str] | None = None) -> None:
    """CLI entry point; exits with 0 on full success and 1 otherwise."""
    parser = _build_parser()
    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        sys.exit(1)

    sys.exit(asyncio.run(_run(args)))


if __name__ == "__main__":
    main()
