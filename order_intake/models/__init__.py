"""Domain models for the order intake pipeline.

This package contains the domain model classes used throughout the
application: detection results, order items, field definitions,
configuration and batch processing results.
"""

from .config_models import DatabaseConfig, ExportConfig, IntakeConfig, LLMConfig
from .detection import (
    DetectedColumn,
    FileSummary,
    GlobalInferences,
    MappingAction,
    ParseResult,
    RowWarning,
)
from .intake_field import CRITICAL_FIELD_KEYS, IntakeField
from .order_item import OrderItem

__all__ = [
    # Configuration models
    "DatabaseConfig",
    "ExportConfig",
    "IntakeConfig",
    "LLMConfig",
    # Detection models
    "DetectedColumn",
    "FileSummary",
    "GlobalInferences",
    "MappingAction",
    "ParseResult",
    "RowWarning",
    # Processing models
    "CRITICAL_FIELD_KEYS",
    "IntakeField",
    "OrderItem",
]
