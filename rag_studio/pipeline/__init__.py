"""Pipeline orchestration components for the RAG Studio ingestion wizard."""

from rag_studio.pipeline.orchestrator import IngestionWizard, parse_json_input, parse_product_names
from rag_studio.pipeline.progress_tracker import ProgressTracker
from rag_studio.pipeline.review_gate import ReviewGate
from rag_studio.pipeline.validation_stage import ValidationStage

__all__ = [
    "IngestionWizard",
    "ProgressTracker",
    "ReviewGate",
    "ValidationStage",
    "parse_json_input",
    "parse_product_names",
]
