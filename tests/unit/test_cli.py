"""Unit tests for the ingestion CLI -- argument parsing and subcommand handlers."""

from __future__ import annotations

import json
from pathlib import Path
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from rag_studio.cli.ingest import (
    _App,
    _build_parser,
    _handle_count,
    _handle_indexes,
    _handle_structured,
    _print_report,
    _run,
    main,
)
from rag_studio.models.documents import DocumentPage, IngestionReport, IngestionResult
from rag_studio.pipeline.orchestrator import IngestionWizard
from rag_studio.pipeline.progress_tracker import ProgressTracker
from rag_studio.providers.custom_index.sqlite_custom_index_provider import SQLiteCustomIndexProvider
from rag_studio.services.custom_index_service import CustomIndexService
from rag_studio.services.index_registry import IndexRegistry
from rag_studio.services.ingestion_service import IngestionService
from rag_studio.services.validation_service import ValidationService
from rag_studio.utils.concurrency import FixedIntervalScheduler
from rag_studio.utils.errors import PipelineError
from tests.conftest import DOLIPRANE, make_settings

# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture()
async def app(
    tmp_path: Path,
    registry: IndexRegistry,
    validation_service: ValidationService,
    mock_store: MagicMock,
    no_delay: FixedIntervalScheduler,
) -> _App:
    provider = SQLiteCustomIndexProvider(tmp_path / "indexes.db")
    await provider.initialize()
    wizard = IngestionWizard(
        registry,
        validation_service,
        IngestionService(mock_store, registry, scheduler=no_delay),
        ProgressTracker(),
    )
    return _App(
        settings=make_settings(),
        config={"pipeline": {"default_index": "pharmaceutical_products"}, "cli": {"page_size": 2}},
        registry=registry,
        custom_indexes=CustomIndexService(provider, registry),
        wizard=wizard,
        store=mock_store,
        owner_id="local",
    )


# ---------------------------------------------------------------------------
# Parser
# ---------------------------------------------------------------------------


class TestParser:
    def test_structured(self) -> None:
        args = _build_parser().parse_args(["structured", "--file", "p.json", "--fix", "--dry-run"])
        assert (args.command, args.file, args.fix, args.dry_run, args.index) == (
            "structured",
            "p.json",
            True,
            True,
            None,
        )

    def test_names_repeatable(self) -> None:
        args = _build_parser().parse_args(["names", "--name", "Doliprane", "--name", "Spasfon", "--approve-all"])
        assert args.name == ["Doliprane", "Spasfon"]
        assert args.approve_all is True

    def test_indexes_actions(self) -> None:
        args = _build_parser().parse_args(["indexes", "delete", "--slug", "guides", "-y"])
        assert (args.action, args.slug, args.yes) == ("delete", "guides", True)

    def test_count_defaults(self) -> None:
        args = _build_parser().parse_args(["count"])
        assert (args.index, args.list, args.page, args.search) == (None, False, 0, None)

    def test_no_command_exits_with_help(self, capsys: pytest.CaptureFixture[str]) -> None:
        with pytest.raises(SystemExit) as excinfo:
            main([])
        assert excinfo.value.code == 1
        assert "structured" in capsys.readouterr().out


# ---------------------------------------------------------------------------
# Handlers
# ---------------------------------------------------------------------------


class TestPrintReport:
    def test_exit_codes(self, capsys: pytest.CaptureFixture[str]) -> None:
        ok = IngestionReport(
            index_id="pharmaceutical_products",
            results=[IngestionResult(doc_id="a", product_name="Doliprane", success=True, inserted_id="1")],
        )
        failed = IngestionReport(
            index_id="pharmaceutical_products",
            results=[IngestionResult(doc_id="b", product_name="Spasfon", success=False, error="quota")],
        )

        assert _print_report(ok) == 0
        assert _print_report(failed) == 1
        assert "Spasfon: quota" in capsys.readouterr().out


class TestHandlers:
    @pytest.mark.asyncio
    async def test_structured_dry_run(
        self, app: _App, tmp_path: Path, mock_store: MagicMock, capsys: pytest.CaptureFixture[str]
    ) -> None:
        path = tmp_path / "products.json"
        path.write_text(json.dumps([DOLIPRANE, {"product_name": "Spasfon"}]), encoding="utf-8")
        args = _build_parser().parse_args(["structured", "--file", str(path), "--dry-run"])

        assert await _handle_structured(args, app) == 0

        out = capsys.readouterr().out
        assert "With errors:   1" in out
        assert "1 document(s) would be ingested" in out
        mock_store.ingest_document.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_structured_ingest(self, app: _App, tmp_path: Path, mock_store: MagicMock) -> None:
        path = tmp_path / "products.json"
        path.write_text(json.dumps(DOLIPRANE), encoding="utf-8")
        args = _build_parser().parse_args(["structured", "--file", str(path)])

        assert await _handle_structured(args, app) == 0
        mock_store.ingest_document.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_indexes_create_check_delete(self, app: _App, capsys: pytest.CaptureFixture[str]) -> None:
        parser = _build_parser()

        assert await _handle_indexes(parser.parse_args(["indexes", "create", "--name", "Mes Guides"]), app) == 0
        assert app.registry.has("custom_mes_guides")
        assert await _handle_indexes(parser.parse_args(["indexes", "check", "--slug", "Mes Guides"]), app) == 1
        assert await _handle_indexes(parser.parse_args(["indexes", "list"]), app) == 0
        assert await _handle_indexes(parser.parse_args(["indexes", "delete", "--slug", "mes_guides", "-y"]), app) == 0
        assert not app.registry.has("custom_mes_guides")

        out = capsys.readouterr().out
        assert "Created custom_mes_guides" in out
        assert "mes_guides: unavailable" in out

    @pytest.mark.asyncio
    async def test_count(self, app: _App, mock_store: MagicMock, capsys: pytest.CaptureFixture[str]) -> None:
        mock_store.get_document_count = AsyncMock(return_value=3)
        mock_store.get_documents = AsyncMock(
            return_value=DocumentPage(documents=[], total=3, page=0, limit=2, has_more=True)
        )

        assert await _handle_count(_build_parser().parse_args(["count", "--list"]), app) == 0
        assert "pharmaceutical_products: 3 document(s)" in capsys.readouterr().out
        mock_store.get_documents.assert_awaited_with("pharmaceutical_products", page=0, limit=2, search=None)

    @pytest.mark.asyncio
    async def test_count_unknown_index(self, app: _App) -> None:
        assert await _handle_count(_build_parser().parse_args(["count", "--index", "nope"]), app) == 1


class TestRun:
    @pytest.mark.asyncio
    async def test_providers_closed_after_failed_command(
        self, app: _App, tmp_path: Path, capsys: pytest.CaptureFixture[str]
    ) -> None:
        openai_llm, mistral_llm = AsyncMock(), AsyncMock()
        app.providers = [openai_llm, mistral_llm]
        args = _build_parser().parse_args(["--config", str(tmp_path / "absent.yaml"), "count"])
        failing = AsyncMock(side_effect=PipelineError("Aucun document valide sélectionné"))
        with (
            patch("rag_studio.cli.ingest._build_app", AsyncMock(return_value=app)),
            patch("rag_studio.cli.ingest.configure_logging"),
            patch.dict("rag_studio.cli.ingest._HANDLERS", {"count": failing}),
        ):
            assert await _run(args) == 1

        assert "Aucun document valide" in capsys.readouterr().err
        openai_llm.close.assert_awaited_once()
        mistral_llm.close.assert_awaited_once()
