"""Aggregate versioned documentation from git repositories into one catalog."""

from .aggregator import AggregateResult, ContentAggregator, aggregate, aggregate_content
from .catalog import Component, ContentCatalog
from .config import DocCatalogConfig, load_config
from .errors import (
    AggregationError,
    ComponentVersionConflictError,
    ConfigurationError,
    DocCatalogError,
    InvalidResourceIdSyntaxError,
    MissingDescriptorError,
    NetworkError,
    NotAGitRepositoryError,
    NotFoundError,
)
from .models import ComponentVersion, ContentSource, ResourceId, ResourceIdContext, VirtualFile
from .resource_id import parse_resource_id, resolve_resource

__all__ = [
    "AggregateResult",
    "AggregationError",
    "Component",
    "ComponentVersion",
    "ComponentVersionConflictError",
    "ConfigurationError",
    "ContentAggregator",
    "ContentCatalog",
    "ContentSource",
    "DocCatalogConfig",
    "DocCatalogError",
    "InvalidResourceIdSyntaxError",
    "MissingDescriptorError",
    "NetworkError",
    "NotAGitRepositoryError",
    "NotFoundError",
    "ResourceId",
    "ResourceIdContext",
    "VirtualFile",
    "aggregate",
    "aggregate_content",
    "load_config",
    "parse_resource_id",
    "resolve_resource",
]
