"""Modelos de domínio do issue tracking: issue normalizada e árvore de categorias."""
from dataclasses import dataclass
from typing import Optional

from bs4 import BeautifulSoup

from buildmaster_tfs.models.tfs_models import (
    AREA_PATH_FIELD,
    DESCRIPTION_FIELD,
    STATE_FIELD,
    TITLE_FIELD,
    WorkItemResponse,
)

# Blocos que terminam em quebra de linha no texto puro
_BLOCK_TAGS = ["p", "div", "li"]

COLLECTION_CATEGORY = "Collection"
PROJECT_CATEGORY = "Project"
AREA_PATH_CATEGORY = "Area Path"
CATEGORY_TYPE_NAMES = (COLLECTION_CATEGORY, PROJECT_CATEGORY, AREA_PATH_CATEGORY)


class DefaultStatusNames:
    """Estados padrão do TFS considerados na verificação de issue fechada."""

    CLOSED = "Closed"
    RESOLVED = "Resolved"


def strip_html(text: str) -> str:
    """Remove tags HTML da descrição, descarta script/style e mantém as quebras de linha de <br> e dos blocos."""
    if not text:
        return ""
    soup = BeautifulSoup(text, "html.parser")
    for tag in soup(["script", "style"]):
        tag.decompose()
    for br in soup.find_all("br"):
        br.replace_with("\n")
    for tag in soup.find_all(_BLOCK_TAGS):
        tag.append("\n")
    return soup.get_text().strip()


@dataclass(frozen=True)
class TfsIssue:
    """Issue normalizada a partir de um work item do TFS."""

    issue_id: str
    title: str
    description: str
    status: str
    area_path: str
    release_number: Optional[str] = None
    url: str = ""

    @property
    def category(self) -> str:
        return self.area_path

    @classmethod
    def from_work_item(
        cls,
        wi: WorkItemResponse,
        custom_release_field: Optional[str] = None,
        allow_html: bool = False,
    ) -> "TfsIssue":
        fields = wi.fields
        description = fields.get(DESCRIPTION_FIELD) or ""
        if not allow_html:
            description = strip_html(description)
        release_number = None
        if custom_release_field:
            raw = fields.get(custom_release_field)
            release_number = None if raw is None else str(raw)
        return cls(
            issue_id=str(wi.id),
            title=(fields.get(TITLE_FIELD) or "").strip(),
            description=description,
            status=fields.get(STATE_FIELD) or "",
            area_path=fields.get(AREA_PATH_FIELD) or "",
            release_number=release_number,
            url=wi.url,
        )


@dataclass(frozen=True)
class TfsCategory:
    """Nó da árvore de categorias (coleção -> projeto) usada para filtrar issues."""

    category_id: str
    name: str
    category_type: str
    subcategories: tuple["TfsCategory", ...] = ()

    def to_dict(self) -> dict:
        return {
            "id": self.category_id,
            "name": self.name,
            "type": self.category_type,
            "subcategories": [c.to_dict() for c in self.subcategories],
        }


def create_collection(name: str, projects: list[TfsCategory]) -> TfsCategory:
    """Categoria raiz de uma coleção de projetos."""
    return TfsCategory(
        category_id=name,
        name=name,
        category_type=COLLECTION_CATEGORY,
        subcategories=tuple(projects),
    )


def create_project(name: str) -> TfsCategory:
    """Categoria folha de um team project."""
    return TfsCategory(category_id=name, name=name, category_type=PROJECT_CATEGORY)
