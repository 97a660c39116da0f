from signdesk.services.extraction.orchestrator import ExtractionOutcome, WorkOrderExtractionService
from signdesk.services.extraction.response_normalizer import NormalizedAnalysis, normalize
from signdesk.services.extraction.vision_client import VisionModelClient, create_vision_client

__all__ = [
    "ExtractionOutcome",
    "NormalizedAnalysis",
    "VisionModelClient",
    "WorkOrderExtractionService",
    "create_vision_client",
    "normalize",
]
