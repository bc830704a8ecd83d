"""Modelos para respostas da REST API do TFS (work items, coleções, builds)."""
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field

# Campos padrão do TFS usados pelo provider
ID_FIELD = "System.Id"
TITLE_FIELD = "System.Title"
DESCRIPTION_FIELD = "System.Description"
STATE_FIELD = "System.State"
AREA_PATH_FIELD = "System.AreaPath"
TEAM_PROJECT_FIELD = "System.TeamProject"


class WorkItemResponse(BaseModel):
    """Resposta de um Work Item do TFS."""

    model_config = ConfigDict(populate_by_name=True)

    id: int
    rev: int = 0
    fields: dict[str, Any] = Field(default_factory=dict)
    links: Optional[dict[str, Any]] = Field(default=None, alias="_links")
    url: str = ""

    @property
    def html_url(self) -> Optional[str]:
        """Link do editor web do work item (_links.html.href), se o servidor retornou."""
        return ((self.links or {}).get("html") or {}).get("href")


class ProjectCollectionInfo(BaseModel):
    """Coleção de projetos do servidor de configuração."""

    id: str
    name: str
    url: str = ""


class TeamProjectInfo(BaseModel):
    """Team project dentro de uma coleção."""

    id: str
    name: str
    description: Optional[str] = None


class TfsBuildInfo(BaseModel):
    """Build localizada no TFS: número, pasta de drop e resultado."""

    build_id: int
    build_number: str
    drop_location: Optional[str] = None
    result: Optional[str] = None

    @property
    def succeeded(self) -> bool:
        return (self.result or "").lower() == "succeeded"
