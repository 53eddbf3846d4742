# ==============================================================================
# Ingestion Endpoint
# ==============================================================================
"""
Ingestion endpoint: batch validation, store hand-off and the query surface.

- service.py: framework-free IngestionService
- api.py: FastAPI application wrapping the service
"""

from tracklens.ingestion.service import (
    QUERY_NAMES,
    IngestionService,
    InvalidBatchError,
    MissingParameterError,
    UnknownQueryError,
)

__all__ = [
    "QUERY_NAMES",
    "IngestionService",
    "InvalidBatchError",
    "MissingParameterError",
    "UnknownQueryError",
]
