"""Provider de issue tracking sobre work items do TFS: consulta por release, status, descrição e categorias."""
import logging
from typing import Optional, Sequence

from buildmaster_tfs.config import settings
from buildmaster_tfs.exceptions import (
    AmbiguousWorkItemError,
    NotAvailableError,
    WorkItemNotFoundError,
)
from buildmaster_tfs.models.issue import (
    CATEGORY_TYPE_NAMES,
    DefaultStatusNames,
    TfsCategory,
    TfsIssue,
    create_collection,
    create_project,
)
from buildmaster_tfs.models.tfs_models import (
    AREA_PATH_FIELD,
    DESCRIPTION_FIELD,
    ID_FIELD,
    STATE_FIELD,
    TEAM_PROJECT_FIELD,
    TITLE_FIELD,
    WorkItemResponse,
)
from buildmaster_tfs.services.tfs_connection import TfsConnection, TfsConnectionFactory
from buildmaster_tfs.utils.wiql import WiqlQuery

logger = logging.getLogger(__name__)


def _parse_work_item_id(issue_id: str) -> int:
    try:
        return int(str(issue_id).strip())
    except ValueError:
        raise WorkItemNotFoundError(issue_id) from None


class TfsIssueTrackingProvider:
    """Integra o issue tracking com work items de uma coleção do TFS."""

    CATEGORY_TYPE_NAMES = CATEGORY_TYPE_NAMES

    can_append_issue_descriptions = True
    can_change_issue_statuses = True
    can_close_issues = True

    def __init__(
        self,
        connection_factory: Optional[TfsConnectionFactory] = None,
        *,
        custom_release_field: Optional[str] = None,
        allow_html_descriptions: Optional[bool] = None,
        category_filter: Optional[Sequence[str]] = None,
    ) -> None:
        self.connections = connection_factory or TfsConnectionFactory()
        self.custom_release_field = (
            settings.TFS_CUSTOM_RELEASE_FIELD if custom_release_field is None else custom_release_field
        ).strip()
        self.allow_html_descriptions = (
            settings.TFS_ALLOW_HTML_DESCRIPTIONS if allow_html_descriptions is None else allow_html_descriptions
        )
        self.category_filter = tuple(settings.category_filter if category_filter is None else category_filter)

    def __str__(self) -> str:
        return "Conecta a um servidor TFS para integrar com work items."

    def is_available(self) -> bool:
        """Sem pré-requisitos locais; a conectividade é testada em validate_connection."""
        return True

    def _select_fields(self, *extra: str) -> list[str]:
        fields = [ID_FIELD, TITLE_FIELD, DESCRIPTION_FIELD, STATE_FIELD, *extra]
        if self.custom_release_field:
            fields.append(self.custom_release_field)
        return fields

    def build_issues_query(self, release_number: str) -> WiqlQuery:
        """
        Consulta das issues da release: filtro pelo campo customizado (se configurado),
        pelo projeto e pelo Area Path do filtro de categoria, ordenada por ID.
        """
        query = WiqlQuery(self._select_fields(AREA_PATH_FIELD))
        if self.custom_release_field:
            query.where(self.custom_release_field, "=", release_number)
        if len(self.category_filter) >= 2 and self.category_filter[1]:
            query.where(TEAM_PROJECT_FIELD, "=", self.category_filter[1])
        if len(self.category_filter) == 3 and self.category_filter[2]:
            query.where(AREA_PATH_FIELD, "UNDER", self.category_filter[2])
        return query.order_by(ID_FIELD)

    def get_issues(self, release_number: str) -> list[TfsIssue]:
        """Issues associadas à release (comparação exata do número, sempre refeita localmente)."""
        query = self.build_issues_query(release_number)
        with self.connections.open() as tfs:
            work_items = tfs.query_work_items(query)

        issues = [
            TfsIssue.from_work_item(wi, self.custom_release_field, self.allow_html_descriptions)
            for wi in work_items
        ]
        # Sem campo customizado a consulta não filtra por release; nenhuma issue tem release_number
        issues = [i for i in issues if i.release_number == release_number]
        logger.info("Release %s: %s issue(s) encontrada(s)", release_number, len(issues))
        return issues

    def is_issue_closed(self, issue: TfsIssue) -> bool:
        return issue.status in (DefaultStatusNames.CLOSED, DefaultStatusNames.RESOLVED)

    def get_issue_url(self, issue: TfsIssue) -> str:
        work_item_id = _parse_work_item_id(issue.issue_id)
        with self.connections.open() as tfs:
            return tfs.get_work_item_url(work_item_id)

    def validate_connection(self) -> None:
        """Abre e fecha uma conexão. Qualquer falha vira NotAvailableError com a mensagem original."""
        try:
            with self.connections.open():
                pass
        except Exception as e:
            raise NotAvailableError(str(e)) from e

    def get_categories(self) -> list[TfsCategory]:
        """Árvore coleção -> projetos do servidor."""
        with self.connections.open() as tfs:
            return [
                create_collection(
                    collection.name,
                    [create_project(p.name) for p in tfs.list_projects(collection.name)],
                )
                for collection in tfs.list_project_collections()
            ]

    # -------------------------------------------------------------------------
    # Atualização de work items
    # -------------------------------------------------------------------------

    def append_issue_description(self, issue_id: str, text_to_append: str) -> None:
        """Acrescenta uma quebra de linha e o texto ao final da descrição do work item."""
        with self.connections.open() as tfs:
            wi = self._get_work_item_by_id(tfs, issue_id)
            description = wi.fields.get(DESCRIPTION_FIELD) or ""
            tfs.update_work_item(
                wi.id,
                [{"op": "add", "path": f"/fields/{DESCRIPTION_FIELD}", "value": description + "\n" + text_to_append}],
            )
        logger.info("Descrição do work item %s atualizada", issue_id)

    def change_issue_status(self, issue_id: str, new_status: str) -> None:
        with self.connections.open() as tfs:
            wi = self._get_work_item_by_id(tfs, issue_id)
            tfs.update_work_item(
                wi.id,
                [{"op": "add", "path": f"/fields/{STATE_FIELD}", "value": new_status}],
            )
        logger.info("Work item %s alterado para %s", issue_id, new_status)

    def close_issue(self, issue_id: str) -> None:
        self.change_issue_status(issue_id, DefaultStatusNames.CLOSED)

    def _get_work_item_by_id(self, tfs: TfsConnection, issue_id: str) -> WorkItemResponse:
        """Exatamente um work item com o ID; zero ou mais de um interrompe a operação."""
        query = WiqlQuery(self._select_fields()).where(ID_FIELD, "=", _parse_work_item_id(issue_id))
        work_items = tfs.query_work_items(query)
        if not work_items:
            raise WorkItemNotFoundError(issue_id)
        if len(work_items) > 1:
            raise AmbiguousWorkItemError(issue_id, len(work_items))
        return work_items[0]
