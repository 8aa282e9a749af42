# Windowed Transfer ingestion: paginate, resolve, decode, filter.

from facilitator_sync.ingestion.block_range import (
    AverageIntervalEstimator,
    BlockRange,
    estimate_block_range,
)
from facilitator_sync.ingestion.cache import ABSENT, ResolutionCache
from facilitator_sync.ingestion.decoder import EventDecoder, split_transfer_fields
from facilitator_sync.ingestion.facilitator_filter import FacilitatorFilter, normalize_address
from facilitator_sync.ingestion.orchestrator import WindowOrchestrator, WindowState
from facilitator_sync.ingestion.paginator import EventPaginator, EventQuery, PaginationResult
from facilitator_sync.ingestion.retry import RetryExecutor, is_rate_limit_error
from facilitator_sync.ingestion.scheduler import BoundedScheduler

__all__ = [
    "ABSENT",
    "AverageIntervalEstimator",
    "BlockRange",
    "BoundedScheduler",
    "EventDecoder",
    "EventPaginator",
    "EventQuery",
    "FacilitatorFilter",
    "PaginationResult",
    "ResolutionCache",
    "RetryExecutor",
    "WindowOrchestrator",
    "WindowState",
    "estimate_block_range",
    "is_rate_limit_error",
    "normalize_address",
    "split_transfer_fields",
]
