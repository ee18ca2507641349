"""Patch descriptor and manifest models."""

from __future__ import annotations

from dataclasses import dataclass, field

DEFAULT_EXTENSION = "pocket"


@dataclass(frozen=True)
class PatchDescriptor:
    """One patch listed in the manifest."""

    name: str
    content_hash: str  # MD5 of the unpatched ROM the patch targets
    download_url: str  # absolute; root-relative URLs are resolved at load time
    extension: str = DEFAULT_EXTENSION

    def __str__(self) -> str:
        return self.name


@dataclass(frozen=True)
class Manifest:
    """Validated manifest contents."""

    updated: str
    patches: tuple[PatchDescriptor, ...] = field(default_factory=tuple)

    def __len__(self) -> int:
        return len(self.patches)
