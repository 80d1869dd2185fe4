"""
Artifact Manifest - Checksummed descriptions of exported artifacts.

A semantic cache snapshot is a directory holding ``entries.json`` and a
``manifest.json``. The manifest records which embedding model produced the
stored vectors so a snapshot is never loaded into a cache that embeds
differently.

Usage:
    from cogniroute.config.manifest import create_cache_manifest

    manifest = create_cache_manifest(
        directory / "entries.json", model="hash-sha256", dim=384, entry_count=12, root=directory
    )
    manifest.save(directory / "manifest.json")
"""

from __future__ import annotations

import hashlib
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field

__all__ = [
    "ArtifactManifest",
    "ManifestItem",
    "compute_checksum",
    "compute_file_checksum",
    "create_cache_manifest",
]

SCHEMA_VERSION = "1.0.0"


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


class ManifestItem(BaseModel):
    """One file covered by a manifest."""

    path: str
    checksum: str = ""
    bytes: int | None = None
    created_at: str = Field(default_factory=_now)


class ArtifactManifest(BaseModel):
    """Manifest for an exported artifact directory."""

    artifact_type: str
    model: str  # embedding model that produced the stored vectors
    dim: int | None = None
    schema_version: str = SCHEMA_VERSION
    created_at: str = Field(default_factory=_now)
    items: list[ManifestItem] = Field(default_factory=list)
    metadata: dict[str, Any] = Field(default_factory=dict)

    def add_item(self, path: str | Path, root: str | Path | None = None) -> ManifestItem:
        """
        Record a file with its size and SHA-256 checksum.

        With ``root``, the item path is stored relative to it so the
        artifact directory can be moved or copied as a whole.
        """
        path = Path(path)
        exists = path.exists()
        stored = path.relative_to(root).as_posix() if root is not None else str(path)
        item = ManifestItem(
            path=stored,
            checksum=compute_file_checksum(path) if exists else "",
            bytes=path.stat().st_size if exists else None,
        )
        self.items.append(item)
        return item

    def item_for(self, name: str) -> ManifestItem | None:
        """Item recorded under ``name``, if any."""
        return next((item for item in self.items if item.path == name), None)

    def check(self) -> list[str]:
        """Structural problems (empty when well-formed)."""
        problems = []
        if not self.artifact_type:
            problems.append("artifact_type is required")
        if not self.model:
            problems.append("model is required")
        if not self.items:
            problems.append("at least one manifest item is required")
        problems.extend(
            f"item[{i}] has no checksum" for i, item in enumerate(self.items) if not item.checksum
        )
        return problems

    def verify(self, root: str | Path | None = None) -> list[str]:
        """
        Compare every item against the file on disk.

        Args:
            root: Directory relative item paths resolve against

        Returns:
            Missing files and checksum mismatches (empty when all match)
        """
        problems = []
        for item in self.items:
            path = Path(item.path)
            if root is not None and not path.is_absolute():
                path = Path(root) / path
            if not path.exists():
                problems.append(f"File not found: {item.path}")
            elif item.checksum and compute_file_checksum(path) != item.checksum:
                problems.append(f"Checksum mismatch for {item.path}")
        return problems

    def save(self, path: str | Path) -> None:
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(self.model_dump_json(indent=2), encoding="utf-8")

    @classmethod
    def load(cls, path: str | Path) -> ArtifactManifest:
        return cls.model_validate_json(Path(path).read_text(encoding="utf-8"))


def compute_checksum(data: bytes, algorithm: str = "sha256") -> str:
    """Hex digest of in-memory content, matching ``compute_file_checksum``."""
    return hashlib.new(algorithm, data).hexdigest()


def compute_file_checksum(path: Path, algorithm: str = "sha256") -> str:
    """Hex digest of a file, read in 64 KiB chunks."""
    hasher = hashlib.new(algorithm)
    with open(path, "rb") as f:
        for chunk in iter(lambda: f.read(65536), b""):
            hasher.update(chunk)
    return hasher.hexdigest()


def create_cache_manifest(
    snapshot_path: Path,
    model: str,
    dim: int | None,
    entry_count: int,
    default_ttl_ms: int | None = None,
    root: Path | None = None,
) -> ArtifactManifest:
    """Create manifest for a semantic cache snapshot, paths relative to ``root``."""
    manifest = ArtifactManifest(
        artifact_type="semantic_cache",
        model=model,
        dim=dim,
        metadata={"entry_count": entry_count, "default_ttl_ms": default_ttl_ms},
    )
    manifest.add_item(snapshot_path, root=root)
    return manifest
