"""Core data models, configuration, errors and the extraction use case.

This package provides:
- Data models (Block, BlockBatch, Receipt, Transaction, LogEntry)
- Configuration classes (SourceConfig, StoreConfig, PipelineConfig, FieldSelection)
- Collaborator interfaces (IBlockSource, IRecordStore)
"""

from fuelind.core.config import FieldSelection, PipelineConfig, SourceConfig, StoreConfig
from fuelind.core.interfaces import IBlockSource, IRecordStore
from fuelind.core.models import Block, BlockBatch, LogEntry, Receipt, ReceiptType, Transaction

__all__ = [
    "FieldSelection",
    "PipelineConfig",
    "SourceConfig",
    "StoreConfig",
    "IBlockSource",
    "IRecordStore",
    "Block",
    "BlockBatch",
    "LogEntry",
    "Receipt",
    "ReceiptType",
    "Transaction",
]
