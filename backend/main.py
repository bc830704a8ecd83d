"""FastAPI app: issue tracking sobre work items do TFS, categorias, importação de builds e health."""
import logging
from dataclasses import asdict
from typing import Callable, Optional

from fastapi import Depends, FastAPI, Header, HTTPException, Request, status
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from buildmaster_tfs.config import settings
from buildmaster_tfs.exceptions import (
    AmbiguousWorkItemError,
    NotAvailableError,
    TfsConnectionError,
    TfsError,
    WorkItemNotFoundError,
)
from buildmaster_tfs.models.build import BuildImportContext
from buildmaster_tfs.models.issue import TfsIssue
from buildmaster_tfs.services.build_importer import TfsBuildImporter
from buildmaster_tfs.services.issue_tracking_provider import TfsIssueTrackingProvider

logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


app = FastAPI(
    title="BuildMaster TFS",
    description="Issue tracking e importação de builds do Team Foundation Server",
)


class AppendDescriptionRequest(BaseModel):
    text: str


class ChangeStatusRequest(BaseModel):
    status: str


class BuildImportRequest(BaseModel):
    application_id: int
    release_number: str
    build_number: str
    deployable_id: Optional[int] = None
    team_project: Optional[str] = None
    build_definition: Optional[str] = None
    tfs_build_number: Optional[str] = None
    include_unsuccessful: Optional[bool] = None
    artifact_name: Optional[str] = None


def get_provider() -> TfsIssueTrackingProvider:
    settings.validate_connection_settings()
    return TfsIssueTrackingProvider()


def get_importer_factory() -> Callable[..., TfsBuildImporter]:
    settings.validate_connection_settings()
    return TfsBuildImporter


def require_api_secret(x_api_secret: str | None = Header(None, alias="X-Api-Secret")) -> None:
    """Operações que alteram dados exigem o secret quando API_SECRET está configurado."""
    if settings.API_SECRET and x_api_secret != settings.API_SECRET:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="API secret inválido")


@app.exception_handler(TfsError)
async def tfs_error_handler(request: Request, exc: TfsError):
    if isinstance(exc, WorkItemNotFoundError):
        code = status.HTTP_404_NOT_FOUND
    elif isinstance(exc, AmbiguousWorkItemError):
        code = status.HTTP_409_CONFLICT
    elif isinstance(exc, (NotAvailableError, TfsConnectionError)):
        code = status.HTTP_503_SERVICE_UNAVAILABLE
    else:
        code = status.HTTP_500_INTERNAL_SERVER_ERROR
    logger.warning("Erro TFS em %s: %s", request.url.path, exc)
    return JSONResponse(status_code=code, content={"ok": False, "detail": str(exc)})


@app.exception_handler(ValueError)
async def value_error_handler(request: Request, exc: ValueError):
    return JSONResponse(status_code=status.HTTP_400_BAD_REQUEST, content={"ok": False, "detail": str(exc)})


@app.get("/health")
async def health():
    """Health check para monitoramento e deploy."""
    return {"status": "ok"}


@app.get("/validate")
def validate(provider: TfsIssueTrackingProvider = Depends(get_provider)):
    """Testa a conexão com o TFS (503 se indisponível)."""
    provider.validate_connection()
    return {"ok": True}


@app.get("/issues")
def list_issues(release: str, provider: TfsIssueTrackingProvider = Depends(get_provider)):
    """Issues da release, com indicação de fechada."""
    issues = provider.get_issues(release)
    return {
        "ok": True,
        "issues": [{**asdict(i), "closed": provider.is_issue_closed(i)} for i in issues],
    }


@app.get("/issues/{issue_id}/url")
def issue_url(issue_id: str, provider: TfsIssueTrackingProvider = Depends(get_provider)):
    issue = TfsIssue(issue_id=issue_id, title="", description="", status="", area_path="")
    return {"ok": True, "url": provider.get_issue_url(issue)}


@app.post("/issues/{issue_id}/description", dependencies=[Depends(require_api_secret)])
def append_description(
    issue_id: str,
    body: AppendDescriptionRequest,
    provider: TfsIssueTrackingProvider = Depends(get_provider),
):
    provider.append_issue_description(issue_id, body.text)
    return {"ok": True}


@app.post("/issues/{issue_id}/status", dependencies=[Depends(require_api_secret)])
def change_status(
    issue_id: str,
    body: ChangeStatusRequest,
    provider: TfsIssueTrackingProvider = Depends(get_provider),
):
    provider.change_issue_status(issue_id, body.status)
    return {"ok": True}


@app.post("/issues/{issue_id}/close", dependencies=[Depends(require_api_secret)])
def close_issue(issue_id: str, provider: TfsIssueTrackingProvider = Depends(get_provider)):
    provider.close_issue(issue_id)
    return {"ok": True}


@app.get("/categories")
def categories(provider: TfsIssueTrackingProvider = Depends(get_provider)):
    """Árvore coleção -> projeto para filtro de issues."""
    return {
        "ok": True,
        "category_types": list(provider.CATEGORY_TYPE_NAMES),
        "categories": [c.to_dict() for c in provider.get_categories()],
    }


@app.post("/builds/import", dependencies=[Depends(require_api_secret)])
def import_build(
    body: BuildImportRequest,
    importer_factory: Callable[..., TfsBuildImporter] = Depends(get_importer_factory),
):
    """Importa a pasta de drop da build do TFS como artefato. Erro de importação retorna 422."""
    importer = importer_factory(
        artifact_name=body.artifact_name,
        build_definition=body.build_definition,
        team_project=body.team_project,
        tfs_build_number=body.tfs_build_number,
        include_unsuccessful=body.include_unsuccessful,
    )
    context = BuildImportContext(
        application_id=body.application_id,
        release_number=body.release_number,
        build_number=body.build_number,
        deployable_id=body.deployable_id,
    )
    result = importer.import_build(context)
    return JSONResponse(
        content={"ok": result.ok, "result": result.to_dict()},
        status_code=status.HTTP_200_OK if result.ok else status.HTTP_422_UNPROCESSABLE_ENTITY,
    )


if __name__ == "__main__":
    import uvicorn
    uvicorn.run("main:app", host="0.0.0.0", port=8000, reload=True)
