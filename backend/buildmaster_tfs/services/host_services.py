"""
Serviços do host consumidos pelo importador: operações de arquivo, construção de artefatos
e persistência de variáveis. Contratos abstratos + implementações locais (filesystem).
"""
import json
import logging
import os
import tempfile
import zipfile
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Optional

from buildmaster_tfs.config import settings
from buildmaster_tfs.models.build import ArtifactIdentifier, DirectoryEntry
from buildmaster_tfs.utils.path_utils import is_same_path

logger = logging.getLogger(__name__)


class FileOperations(ABC):
    """Acesso a arquivos no agente que enxerga a pasta de drop."""

    @abstractmethod
    def get_directory_entry(self, path: str, recurse: bool = True, include_root: bool = True) -> DirectoryEntry:
        """Entrada do diretório com filhos (recursivo se recurse=True); caminhos completos se include_root=True."""

    @abstractmethod
    def read_file_bytes(self, path: str) -> bytes:
        """Conteúdo de um arquivo."""


class ArtifactBuilder(ABC):
    """Monta um artefato a partir de entradas da pasta raiz. Use como context manager."""

    def __init__(self, identifier: ArtifactIdentifier) -> None:
        self.identifier = identifier
        self.root_path: Optional[str] = None

    def __enter__(self) -> "ArtifactBuilder":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    @abstractmethod
    def add(self, entry: DirectoryEntry, file_operations: FileOperations) -> None:
        """Inclui a entrada (arquivo ou diretório) no artefato."""

    @abstractmethod
    def commit(self) -> None:
        """Grava o artefato. Falhas propagam."""

    def close(self) -> None:
        """Libera recursos; artefato não commitado é descartado."""


class ArtifactStore(ABC):
    @abstractmethod
    def create_builder(self, identifier: ArtifactIdentifier) -> ArtifactBuilder:
        pass


class VariableStore(ABC):
    @abstractmethod
    def create_or_update_variable(
        self,
        name: str,
        value: str,
        *,
        application_id: int,
        release_number: str,
        build_number: str,
        sensitive: bool = False,
    ) -> None:
        """Cria ou atualiza a variável no escopo application/release/build."""


# -----------------------------------------------------------------------------
# Implementações locais
# -----------------------------------------------------------------------------


class LocalFileOperations(FileOperations):
    """Operações de arquivo no filesystem local (ou share montado)."""

    def get_directory_entry(self, path: str, recurse: bool = True, include_root: bool = True) -> DirectoryEntry:
        root = Path(path)
        if not root.is_dir():
            raise FileNotFoundError(f"Diretório não encontrado: {path}")
        return self._entry(root, root, recurse, include_root)

    def _entry(self, p: Path, root: Path, recurse: bool, include_root: bool) -> DirectoryEntry:
        shown = str(p) if include_root else (str(p.relative_to(root)) if p != root else "")
        if p.is_dir():
            children = []
            for child in sorted(p.iterdir(), key=lambda c: c.name):
                if child.is_dir() and not recurse:
                    children.append(DirectoryEntry(path=str(child) if include_root else child.name, name=child.name, is_directory=True))
                else:
                    children.append(self._entry(child, root, recurse, include_root))
            return DirectoryEntry(path=shown, name=p.name, is_directory=True, children=children)
        return DirectoryEntry(path=shown, name=p.name, is_directory=False, size=p.stat().st_size)

    def read_file_bytes(self, path: str) -> bytes:
        return Path(path).read_bytes()


def relative_artifact_path(entry_path: str, root_path: str) -> str:
    """Caminho da entrada relativo à raiz do artefato, com '/' como separador."""
    entry = entry_path.replace("\\", "/")
    root = root_path.replace("\\", "/").rstrip("/")
    if is_same_path(entry, root):
        return ""
    if entry.lower().startswith(root.lower() + "/"):
        return entry[len(root) + 1 :]
    return entry.lstrip("/")


class ZipArtifactBuilder(ArtifactBuilder):
    """Artefato em zip: escreve em arquivo temporário e renomeia no commit."""

    def __init__(self, identifier: ArtifactIdentifier, target: Path) -> None:
        super().__init__(identifier)
        self.target = target
        self.target.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp = tempfile.mkstemp(suffix=".zip.tmp", dir=self.target.parent)
        os.close(fd)
        self._tmp_path = Path(tmp)
        self._zip: Optional[zipfile.ZipFile] = zipfile.ZipFile(self._tmp_path, "w", zipfile.ZIP_DEFLATED)
        self._committed = False
        self.entries_added = 0

    def add(self, entry: DirectoryEntry, file_operations: FileOperations) -> None:
        if self._zip is None:
            raise ValueError("Artefato já foi fechado")
        if not self.root_path:
            raise ValueError("root_path do artefato não definido")
        name = relative_artifact_path(entry.path, self.root_path)
        if not name:
            return
        if entry.is_directory:
            self._zip.writestr(name.rstrip("/") + "/", b"")
        else:
            self._zip.writestr(name, file_operations.read_file_bytes(entry.path))
        self.entries_added += 1

    def commit(self) -> None:
        if self._zip is None:
            raise ValueError("Artefato já foi fechado")
        self._zip.close()
        self._zip = None
        os.replace(self._tmp_path, self.target)
        self._committed = True
        logger.info("Artefato %s gravado: %s (%s entrada(s))", self.identifier.artifact_name, self.target, self.entries_added)

    def close(self) -> None:
        if self._zip is not None:
            self._zip.close()
            self._zip = None
        if not self._committed:
            self._tmp_path.unlink(missing_ok=True)


class ZipArtifactStore(ArtifactStore):
    """Artefatos em {raiz}/{aplicação}/{release}/{build}/{deployable}/{nome}.zip."""

    def __init__(self, root: Optional[str] = None) -> None:
        self.root = Path(root or settings.ARTIFACT_STORE_PATH)

    def artifact_path(self, identifier: ArtifactIdentifier) -> Path:
        deployable = str(identifier.deployable_id) if identifier.deployable_id is not None else "_"
        return (
            self.root
            / str(identifier.application_id)
            / identifier.release_number
            / identifier.build_number
            / deployable
            / f"{identifier.artifact_name}.zip"
        )

    def create_builder(self, identifier: ArtifactIdentifier) -> ZipArtifactBuilder:
        return ZipArtifactBuilder(identifier, self.artifact_path(identifier))


class JsonVariableStore(VariableStore):
    """Variáveis persistidas em arquivo JSON, agrupadas por aplicação/release/build."""

    def __init__(self, path: Optional[str] = None) -> None:
        self.path = Path(path or settings.VARIABLES_FILE)

    @staticmethod
    def scope_key(application_id: int, release_number: str, build_number: str) -> str:
        return f"{application_id}/{release_number}/{build_number}"

    def _load(self) -> dict:
        if not self.path.exists():
            return {}
        text = self.path.read_text(encoding="utf-8").strip()
        return json.loads(text) if text else {}

    def create_or_update_variable(
        self,
        name: str,
        value: str,
        *,
        application_id: int,
        release_number: str,
        build_number: str,
        sensitive: bool = False,
    ) -> None:
        data = self._load()
        scope = data.setdefault(self.scope_key(application_id, release_number, build_number), {})
        scope[name] = {"value": value, "sensitive": sensitive}
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp = self.path.with_suffix(self.path.suffix + ".tmp")
        tmp.write_text(json.dumps(data, indent=2, ensure_ascii=False), encoding="utf-8")
        os.replace(tmp, self.path)
        logger.debug("Variável %s gravada em %s", name, self.path)

    def get_variable(self, name: str, *, application_id: int, release_number: str, build_number: str) -> Optional[str]:
        scope = self._load().get(self.scope_key(application_id, release_number, build_number)) or {}
        item = scope.get(name)
        return item.get("value") if item else None
