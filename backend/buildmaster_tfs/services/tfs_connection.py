"""Conexão com o Team Foundation Server via REST API: autenticação, work items, coleções e builds."""
import logging
from typing import Any, Callable, Optional, Union
from urllib.parse import quote, urlsplit, urlunsplit

import requests
from requests.adapters import HTTPAdapter
from requests.auth import HTTPBasicAuth

from buildmaster_tfs.config import settings
from buildmaster_tfs.exceptions import TfsAuthenticationError, TfsConnectionError
from buildmaster_tfs.models.tfs_models import (
    ProjectCollectionInfo,
    TeamProjectInfo,
    TfsBuildInfo,
    WorkItemResponse,
)
from buildmaster_tfs.services.tfs_auth import acquire_system_token, service_principal_configured
from buildmaster_tfs.utils.wiql import WiqlQuery

logger = logging.getLogger(__name__)

# Limite de IDs por requisição em wit/workitems
WORK_ITEMS_BATCH_SIZE = 200


def server_url_from_collection_url(collection_url: str) -> str:
    """URL do servidor de configuração: URL da coleção sem o último segmento do path."""
    parts = urlsplit(collection_url.rstrip("/"))
    path = parts.path.rsplit("/", 1)[0] if "/" in parts.path else ""
    return urlunsplit((parts.scheme, parts.netloc, path, "", ""))


class TfsConnection:
    """
    Sessão autenticada com uma coleção do TFS.

    Use sempre como context manager: a sessão HTTP é fechada ao sair do bloco,
    em sucesso, retorno antecipado ou exceção. Não é reutilizada entre operações.
    """

    def __init__(
        self,
        base_url: str,
        session: requests.Session,
        *,
        server_url: Optional[str] = None,
        api_version: str = "5.0",
        timeout: int = 30,
        verify_ssl: bool = True,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.server_url = (server_url or server_url_from_collection_url(self.base_url)).rstrip("/")
        self.session = session
        self.api_version = api_version
        self.timeout = timeout
        self.verify_ssl = verify_ssl

    def __enter__(self) -> "TfsConnection":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def close(self) -> None:
        self.session.close()

    # -------------------------------------------------------------------------
    # HTTP
    # -------------------------------------------------------------------------

    def _api_url(self, endpoint: str, *, project: Optional[str] = None, root: Optional[str] = None) -> str:
        base = root or self.base_url
        if project:
            base = f"{base}/{quote(project, safe='')}"
        return f"{base}/_apis/{endpoint}"

    def _make_request(self, method: str, url: str, **kwargs) -> requests.Response:
        params = kwargs.pop("params", None) or {}
        params.setdefault("api-version", self.api_version)
        try:
            r = self.session.request(
                method=method,
                url=url,
                params=params,
                timeout=self.timeout,
                verify=self.verify_ssl,
                **kwargs,
            )
        except (requests.ConnectionError, requests.Timeout) as e:
            raise TfsConnectionError(f"Falha ao conectar em {url}: {e}") from e
        if r.status_code in (401, 403) or "/_signin" in (r.url or ""):
            raise TfsAuthenticationError(f"Erro de autenticação no TFS ({r.status_code}). Verifique as credenciais.")
        if "text/html" in (r.headers.get("Content-Type") or "") and r.status_code != 200:
            raise TfsConnectionError(f"Resposta inesperada (HTML). Status: {r.status_code}")
        r.raise_for_status()
        return r

    def ensure_authenticated(self) -> dict[str, Any]:
        """Uma ida ao servidor para validar as credenciais. Retorna os dados da conexão (usuário autenticado)."""
        r = self._make_request(
            "GET",
            self._api_url("connectionData"),
            params={"api-version": f"{self.api_version}-preview"},
        )
        data = r.json()
        user = (data.get("authenticatedUser") or {}).get("providerDisplayName")
        logger.debug("Autenticado no TFS %s como %s", self.base_url, user)
        return data

    # -------------------------------------------------------------------------
    # Work items
    # -------------------------------------------------------------------------

    def query_work_items(self, query: Union[WiqlQuery, str], fields: Optional[list[str]] = None) -> list[WorkItemResponse]:
        """Executa a WIQL e obtém os work items (na ordem da consulta) com os campos selecionados."""
        wiql = query.render() if isinstance(query, WiqlQuery) else query
        if fields is None and isinstance(query, WiqlQuery):
            fields = query.fields
        logger.debug("WIQL: %s", wiql)
        r = self._make_request("POST", self._api_url("wit/wiql"), json={"query": wiql})
        ids = [str(wi["id"]) for wi in r.json().get("workItems", [])]
        if not ids:
            return []
        return self.get_work_items_by_ids(ids, fields=fields)

    def get_work_items_by_ids(self, ids: list[str], fields: Optional[list[str]] = None) -> list[WorkItemResponse]:
        """Obtém Work Items por IDs. Faz batch de 200 por request (limite da API)."""
        out = []
        for i in range(0, len(ids), WORK_ITEMS_BATCH_SIZE):
            batch = ids[i : i + WORK_ITEMS_BATCH_SIZE]
            params = {"ids": ",".join(batch)}
            if fields:
                params["fields"] = ",".join(fields)
            r = self._make_request("GET", self._api_url("wit/workitems"), params=params)
            for item in r.json().get("value", []):
                out.append(WorkItemResponse.model_validate(item))
        return out

    def get_work_item(
        self,
        work_item_id: int,
        *,
        fields: Optional[list[str]] = None,
        expand: Optional[str] = None,
    ) -> WorkItemResponse:
        """Obtém um Work Item por ID. A API não aceita fields e $expand juntos."""
        params: dict[str, str] = {}
        if fields:
            params["fields"] = ",".join(fields)
        elif expand:
            params["$expand"] = expand
        r = self._make_request("GET", self._api_url(f"wit/workitems/{int(work_item_id)}"), params=params)
        return WorkItemResponse.model_validate(r.json())

    def update_work_item(self, work_item_id: int, operations: list[dict[str, Any]]) -> WorkItemResponse:
        """Aplica um JSON Patch no work item e salva (sem controle de concorrência: o último a gravar vence)."""
        r = self._make_request(
            "PATCH",
            self._api_url(f"wit/workitems/{int(work_item_id)}"),
            json=operations,
            headers={"Content-Type": "application/json-patch+json"},
        )
        return WorkItemResponse.model_validate(r.json())

    def get_work_item_url(self, work_item_id: int) -> str:
        """URL do editor web do work item, resolvida pelo servidor."""
        wi = self.get_work_item(work_item_id, expand="links")
        href = wi.html_url
        if not href:
            raise TfsConnectionError(f"Servidor não retornou o link do work item {work_item_id}")
        return href

    # -------------------------------------------------------------------------
    # Coleções e projetos
    # -------------------------------------------------------------------------

    def list_project_collections(self) -> list[ProjectCollectionInfo]:
        r = self._make_request("GET", self._api_url("projectCollections", root=self.server_url))
        return [ProjectCollectionInfo.model_validate(c) for c in r.json().get("value", [])]

    def list_projects(self, collection_name: str) -> list[TeamProjectInfo]:
        root = f"{self.server_url}/{quote(collection_name, safe='')}"
        r = self._make_request("GET", self._api_url("projects", root=root), params={"$top": 1000})
        return [TeamProjectInfo.model_validate(p) for p in r.json().get("value", [])]

    # -------------------------------------------------------------------------
    # Builds
    # -------------------------------------------------------------------------

    def find_build(
        self,
        team_project: str,
        build_definition: str,
        build_number: Optional[str] = None,
        include_unsuccessful: bool = False,
    ) -> Optional[TfsBuildInfo]:
        """
        Localiza uma build concluída da definition no team project.
        build_number vazio = última build. Retorna None se nada for encontrado.
        """
        r = self._make_request(
            "GET",
            self._api_url("build/definitions", project=team_project),
            params={"name": build_definition},
        )
        definitions = r.json().get("value", [])
        if not definitions:
            logger.warning("Build definition %s não encontrada no projeto %s", build_definition, team_project)
            return None

        params: dict[str, Any] = {
            "definitions": definitions[0]["id"],
            "statusFilter": "completed",
            "queryOrder": "finishTimeDescending",
            "$top": 1,
        }
        if build_number:
            params["buildNumber"] = build_number
        if not include_unsuccessful:
            params["resultFilter"] = "succeeded"
        r = self._make_request("GET", self._api_url("build/builds", project=team_project), params=params)
        builds = r.json().get("value", [])
        if not builds:
            return None

        build = builds[0]
        info = TfsBuildInfo(
            build_id=build["id"],
            build_number=str(build.get("buildNumber") or ""),
            drop_location=build.get("dropLocation") or self._get_drop_location(team_project, build["id"]),
            result=build.get("result"),
        )
        if not include_unsuccessful and not info.succeeded:
            return None
        return info

    def _get_drop_location(self, team_project: str, build_id: int) -> Optional[str]:
        """Pasta de drop publicada como artefato FilePath (builds não-XAML)."""
        r = self._make_request(
            "GET",
            self._api_url(f"build/builds/{int(build_id)}/artifacts", project=team_project),
        )
        for artifact in r.json().get("value", []):
            resource = artifact.get("resource") or {}
            if resource.get("type") != "FilePath" or not resource.get("data"):
                continue
            share = resource["data"].rstrip("\\/")
            return f"{share}\\{artifact.get('name')}" if artifact.get("name") else share
        return None


class TfsConnectionFactory:
    """Cria conexões autenticadas com a identidade do sistema ou com usuário/senha/domínio."""

    def __init__(
        self,
        base_url: Optional[str] = None,
        *,
        use_system_credentials: Optional[bool] = None,
        username: Optional[str] = None,
        password: Optional[str] = None,
        domain: Optional[str] = None,
        server_url: Optional[str] = None,
        api_version: Optional[str] = None,
        verify_ssl: Optional[bool] = None,
        timeout: Optional[int] = None,
        token_provider: Optional[Callable[[], str]] = None,
    ) -> None:
        self.base_url = (base_url or settings.TFS_BASE_URL or "").strip().rstrip("/")
        if not self.base_url:
            raise ValueError("TFS_BASE_URL não está configurado")
        self.use_system_credentials = (
            settings.TFS_USE_SYSTEM_CREDENTIALS if use_system_credentials is None else use_system_credentials
        )
        self.username = username if username is not None else settings.TFS_USERNAME
        self.password = password if password is not None else settings.TFS_PASSWORD
        self.domain = domain if domain is not None else settings.TFS_DOMAIN
        self.server_url = server_url or settings.TFS_SERVER_URL or None
        self.api_version = api_version or settings.TFS_API_VERSION
        self.verify_ssl = settings.TFS_VERIFY_SSL if verify_ssl is None else verify_ssl
        self.timeout = timeout or settings.TFS_TIMEOUT
        self.token_provider = token_provider
        if self.use_system_credentials and self.token_provider is None and service_principal_configured():
            self.token_provider = acquire_system_token

    @property
    def account_name(self) -> str:
        """Usuário no formato DOMINIO\\usuario (ou só usuario, sem domínio)."""
        return f"{self.domain}\\{self.username}" if self.domain else self.username

    def _create_session(self) -> requests.Session:
        bearer = None
        if self.use_system_credentials and self.token_provider is not None:
            bearer = self.token_provider()
        session = requests.Session()
        # Sem retry: uma falha é reportada uma única vez
        adapter = HTTPAdapter(pool_connections=1, pool_maxsize=4, max_retries=0)
        session.mount("http://", adapter)
        session.mount("https://", adapter)
        session.headers.update({"Accept": "application/json", "Content-Type": "application/json"})
        if bearer:
            session.headers["Authorization"] = f"Bearer {bearer}"
        elif not self.use_system_credentials:
            session.auth = HTTPBasicAuth(self.account_name, self.password or "")
        # Credenciais de sistema sem service principal: requests usa a identidade do ambiente (~/.netrc)
        return session

    def open(self) -> TfsConnection:
        """Abre e autentica uma conexão nova. Quem chama é dono da conexão e deve fechá-la (use with)."""
        session = self._create_session()
        connection = TfsConnection(
            self.base_url,
            session,
            server_url=self.server_url,
            api_version=self.api_version,
            timeout=self.timeout,
            verify_ssl=self.verify_ssl,
        )
        try:
            connection.ensure_authenticated()
        except Exception:
            connection.close()
            raise
        return connection
