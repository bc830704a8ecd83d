"""Modelos de domínio e DTOs."""
from buildmaster_tfs.models.build import (
    ArtifactIdentifier,
    BuildImportContext,
    BuildImportResult,
    DirectoryEntry,
)
from buildmaster_tfs.models.issue import TfsCategory, TfsIssue
from buildmaster_tfs.models.tfs_models import (
    ProjectCollectionInfo,
    TeamProjectInfo,
    TfsBuildInfo,
    WorkItemResponse,
)

__all__ = [
    "ArtifactIdentifier",
    "BuildImportContext",
    "BuildImportResult",
    "DirectoryEntry",
    "TfsCategory",
    "TfsIssue",
    "ProjectCollectionInfo",
    "TeamProjectInfo",
    "TfsBuildInfo",
    "WorkItemResponse",
]
