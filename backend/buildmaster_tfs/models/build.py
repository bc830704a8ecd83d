"""Modelos da importação de builds: entradas de diretório, identificação do artefato e resultado."""
from dataclasses import dataclass, field
from typing import Iterator, Optional

# Nome da variável gravada com o número da build do TFS
TFS_BUILD_NUMBER_VARIABLE = "TfsBuildNumber"

IMPORT_SUCCEEDED = "succeeded"
IMPORT_WARNING = "warning"
IMPORT_ERROR = "error"


@dataclass
class DirectoryEntry:
    """Arquivo ou diretório retornado pelo serviço de operações de arquivo."""

    path: str
    name: str
    is_directory: bool = False
    size: int = 0
    children: list["DirectoryEntry"] = field(default_factory=list)

    def flatten(self) -> Iterator["DirectoryEntry"]:
        """Percorre esta entrada e todas as descendentes (pré-ordem)."""
        yield self
        for child in self.children:
            yield from child.flatten()


@dataclass(frozen=True)
class ArtifactIdentifier:
    """Identidade do artefato: aplicação, release, build, deployable e nome."""

    application_id: int
    release_number: str
    build_number: str
    deployable_id: Optional[int]
    artifact_name: str


@dataclass(frozen=True)
class BuildImportContext:
    """Destino da importação (application/release/build)."""

    application_id: int
    release_number: str
    build_number: str
    deployable_id: Optional[int] = None


@dataclass
class BuildImportResult:
    """Resultado de uma importação: succeeded, warning (nenhum arquivo) ou error."""

    status: str
    message: str = ""
    tfs_build_number: Optional[str] = None
    drop_location: Optional[str] = None
    files_imported: int = 0
    artifact_path: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.status != IMPORT_ERROR

    def to_dict(self) -> dict:
        return {
            "status": self.status,
            "message": self.message,
            "tfs_build_number": self.tfs_build_number,
            "drop_location": self.drop_location,
            "files_imported": self.files_imported,
            "artifact_path": self.artifact_path,
        }
