from __future__ import annotations

from .core.config import FieldSelection, PipelineConfig, SourceConfig, StoreConfig
from .core.constants import LOG_TYPES
from .core.models import Block, BlockBatch, LogEntry, Receipt, ReceiptType, Transaction
from .core.use_cases.extract_logs import LogFilter, map_receipt, process_batch
from .orchestration.driver import PipelineDriver

__all__ = [
    "FieldSelection",
    "PipelineConfig",
    "SourceConfig",
    "StoreConfig",
    "LOG_TYPES",
    "Block",
    "BlockBatch",
    "LogEntry",
    "Receipt",
    "ReceiptType",
    "Transaction",
    "LogFilter",
    "map_receipt",
    "process_batch",
    "PipelineDriver",
]
