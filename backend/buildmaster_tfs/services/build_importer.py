"""Importação de builds do TFS: localiza a pasta de drop e copia o conteúdo para um artefato."""
import logging
from typing import Optional

from buildmaster_tfs.config import settings
from buildmaster_tfs.models.build import (
    IMPORT_ERROR,
    IMPORT_SUCCEEDED,
    IMPORT_WARNING,
    TFS_BUILD_NUMBER_VARIABLE,
    ArtifactIdentifier,
    BuildImportContext,
    BuildImportResult,
    DirectoryEntry,
)
from buildmaster_tfs.services.host_services import (
    ArtifactStore,
    FileOperations,
    JsonVariableStore,
    LocalFileOperations,
    VariableStore,
    ZipArtifactStore,
)
from buildmaster_tfs.services.tfs_connection import TfsConnectionFactory
from buildmaster_tfs.utils.path_utils import is_same_path

logger = logging.getLogger(__name__)


def collect_drop_entries(root: DirectoryEntry, drop_location: str) -> list[DirectoryEntry]:
    """Todas as entradas sob a pasta de drop, exceto a própria raiz."""
    return [e for e in root.flatten() if not is_same_path(e.path, drop_location)]


class TfsBuildImporter:
    """Importa os arquivos da pasta de drop de uma build do TFS como artefato."""

    def __init__(
        self,
        connection_factory: Optional[TfsConnectionFactory] = None,
        file_operations: Optional[FileOperations] = None,
        artifact_store: Optional[ArtifactStore] = None,
        variable_store: Optional[VariableStore] = None,
        *,
        artifact_name: Optional[str] = None,
        build_definition: Optional[str] = None,
        team_project: Optional[str] = None,
        tfs_build_number: Optional[str] = None,
        include_unsuccessful: Optional[bool] = None,
    ) -> None:
        self.connections = connection_factory or TfsConnectionFactory()
        self.file_operations = file_operations or LocalFileOperations()
        self.artifact_store = artifact_store or ZipArtifactStore()
        self.variable_store = variable_store or JsonVariableStore()
        self.artifact_name = artifact_name or settings.ARTIFACT_NAME
        self.build_definition = build_definition or settings.TFS_BUILD_DEFINITION
        self.team_project = team_project or settings.TFS_TEAM_PROJECT
        self.tfs_build_number = settings.TFS_BUILD_NUMBER if tfs_build_number is None else tfs_build_number
        self.include_unsuccessful = (
            settings.TFS_INCLUDE_UNSUCCESSFUL if include_unsuccessful is None else include_unsuccessful
        )

    def import_build(self, context: BuildImportContext) -> BuildImportResult:
        """
        Localiza a build, lista a pasta de drop, grava o artefato e a variável TfsBuildNumber.
        Build não encontrada ou sem drop = erro (nada é criado); pasta vazia = aviso.
        """
        logger.debug(
            "Procurando build %s do team project %s, definition %s...",
            self.tfs_build_number or "(última)", self.team_project, self.build_definition,
        )
        with self.connections.open() as tfs:
            build = tfs.find_build(
                self.team_project,
                self.build_definition,
                self.tfs_build_number or None,
                self.include_unsuccessful,
            )

        if build is None:
            logger.error("A consulta não retornou nenhuma build.")
            return BuildImportResult(status=IMPORT_ERROR, message="A consulta não retornou nenhuma build.")

        logger.info("Número da build no TFS: %s", build.build_number)

        if not (build.drop_location or "").strip():
            message = "Erro de configuração no TFS: a build definition selecionada não tem pasta de drop."
            logger.error(message)
            return BuildImportResult(status=IMPORT_ERROR, message=message, tfs_build_number=build.build_number)

        drop = build.drop_location
        logger.info("Pasta de drop: %s", drop)

        logger.debug("Listando a pasta de drop...")
        root = self.file_operations.get_directory_entry(drop, recurse=True, include_root=True)
        matches = collect_drop_entries(root, drop)
        if not matches:
            message = "Nenhum arquivo encontrado na pasta de drop."
            logger.warning(message)
            return BuildImportResult(
                status=IMPORT_WARNING,
                message=message,
                tfs_build_number=build.build_number,
                drop_location=drop,
            )

        logger.debug("Criando artefato %s...", self.artifact_name)
        identifier = ArtifactIdentifier(
            application_id=context.application_id,
            release_number=context.release_number,
            build_number=context.build_number,
            deployable_id=context.deployable_id,
            artifact_name=self.artifact_name,
        )
        with self.artifact_store.create_builder(identifier) as artifact:
            artifact.root_path = drop
            for entry in matches:
                artifact.add(entry, self.file_operations)
            artifact.commit()
        artifact_path = getattr(artifact, "target", None)

        logger.debug("Criando variável $%s...", TFS_BUILD_NUMBER_VARIABLE)
        self.variable_store.create_or_update_variable(
            TFS_BUILD_NUMBER_VARIABLE,
            build.build_number,
            application_id=context.application_id,
            release_number=context.release_number,
            build_number=context.build_number,
            sensitive=False,
        )

        return BuildImportResult(
            status=IMPORT_SUCCEEDED,
            message=f"{len(matches)} entrada(s) importada(s) no artefato {self.artifact_name}",
            tfs_build_number=build.build_number,
            drop_location=drop,
            files_imported=len(matches),
            artifact_path=str(artifact_path) if artifact_path else None,
        )
