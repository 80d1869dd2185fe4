"""
Configuration - Application settings, error taxonomy, and artifact manifests.
"""

from .errors import (
    CacheError,
    CogniRouteError,
    CompositionError,
    ErrorCode,
    OrchestrationTimeoutError,
    ProviderError,
    ValidationError,
)
from .manifest import (
    ArtifactManifest,
    ManifestItem,
    compute_checksum,
    compute_file_checksum,
    create_cache_manifest,
)
from .settings import DEFAULT_PERSPECTIVES, Settings, get_settings

__all__ = [
    # Settings
    "Settings",
    "get_settings",
    "DEFAULT_PERSPECTIVES",
    # Errors
    "ErrorCode",
    "CogniRouteError",
    "ValidationError",
    "ProviderError",
    "CacheError",
    "OrchestrationTimeoutError",
    "CompositionError",
    # Manifests
    "ArtifactManifest",
    "ManifestItem",
    "compute_checksum",
    "compute_file_checksum",
    "create_cache_manifest",
]
