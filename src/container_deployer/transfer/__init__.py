"""Artifact transfer strategies."""

from .strategies import (
    ArtifactTransferer,
    RsyncTransfer,
    TarStreamTransfer,
    TransferStrategy,
    build_archive,
    iter_archive,
    is_excluded,
    iter_transfer_files,
)

__all__ = [
    "ArtifactTransferer",
    "RsyncTransfer",
    "TarStreamTransfer",
    "TransferStrategy",
    "build_archive",
    "iter_archive",
    "is_excluded",
    "iter_transfer_files",
]
