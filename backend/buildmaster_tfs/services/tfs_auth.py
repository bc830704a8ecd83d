"""Bearer token do service principal (Microsoft Entra ID) usado nas credenciais de sistema do TFS."""
import logging
from typing import Optional

import msal

from buildmaster_tfs.config import settings
from buildmaster_tfs.exceptions import TfsAuthenticationError

logger = logging.getLogger(__name__)

# Resource ID do Azure DevOps Server no Entra ID
AZURE_DEVOPS_SCOPE = "499b84ac-1321-427f-aa17-267ca6975798/.default"
AUTHORITY_TEMPLATE = "https://login.microsoftonline.com/{tenant_id}"


def service_principal_configured() -> bool:
    return bool(settings.TFS_CLIENT_ID and settings.TFS_CLIENT_SECRET and settings.TFS_TENANT_ID)


def acquire_system_token(
    client_id: Optional[str] = None,
    client_secret: Optional[str] = None,
    tenant_id: Optional[str] = None,
) -> str:
    """
    Pede um token novo (client credentials) para a identidade do sistema.
    Chamado a cada sessão criada pela fábrica de conexões; nada fica guardado entre operações.
    """
    client_id = client_id or settings.TFS_CLIENT_ID
    client_secret = client_secret or settings.TFS_CLIENT_SECRET
    tenant_id = tenant_id or settings.TFS_TENANT_ID
    missing = [
        name
        for name, value in (
            ("TFS_CLIENT_ID", client_id),
            ("TFS_CLIENT_SECRET", client_secret),
            ("TFS_TENANT_ID", tenant_id),
        )
        if not value
    ]
    if missing:
        raise ValueError(f"Service principal incompleto: {', '.join(missing)}")

    app = msal.ConfidentialClientApplication(
        client_id,
        client_credential=client_secret,
        authority=AUTHORITY_TEMPLATE.format(tenant_id=tenant_id),
    )
    result = app.acquire_token_for_client(scopes=[AZURE_DEVOPS_SCOPE])
    token = result.get("access_token")
    if not token:
        detail = result.get("error_description") or result.get("error") or "sem detalhes"
        raise TfsAuthenticationError(f"Entra ID recusou o service principal {client_id}: {detail}")
    logger.debug("Token do service principal %s obtido", client_id)
    return token
