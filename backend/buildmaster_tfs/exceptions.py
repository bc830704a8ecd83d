"""Exceções do provider TFS e do importador de builds."""


class TfsError(Exception):
    """Erro base da integração com o Team Foundation Server."""


class TfsConnectionError(TfsError):
    """Falha de rede ou resposta inesperada do servidor."""


class TfsAuthenticationError(TfsConnectionError):
    """Servidor recusou as credenciais (401/403 ou redirecionamento para login)."""


class NotAvailableError(TfsError):
    """Serviço indisponível com a configuração atual (mensagem original preservada)."""


class WorkItemNotFoundError(TfsError):
    """Nenhum work item com o ID informado."""

    def __init__(self, issue_id: str) -> None:
        super().__init__(f"Não existe work item com o ID: {issue_id}")
        self.issue_id = issue_id


class AmbiguousWorkItemError(TfsError):
    """Mais de um work item retornado para o mesmo ID."""

    def __init__(self, issue_id: str, count: int) -> None:
        super().__init__(f"Existem {count} work items com o mesmo ID: {issue_id}")
        self.issue_id = issue_id
        self.count = count
