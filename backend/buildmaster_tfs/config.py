"""Configurações do sistema usando Pydantic Settings."""
from pathlib import Path

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

_BACKEND_DIR = Path(__file__).resolve().parent.parent
_ENV_FILE = _BACKEND_DIR / ".env"


def _parse_pipeline_bool(v: object) -> bool:
    """Converte 1/true/yes em True. Placeholder de pipeline ('$(VAR)') ou vazio vira False."""
    if v is None:
        return False
    if isinstance(v, bool):
        return v
    if isinstance(v, str):
        s = v.strip().lower()
        if not s or s.startswith("$("):
            return False
        return s in ("1", "true", "yes")
    return False


class Settings(BaseSettings):
    """Configurações do provider TFS e do importador de builds, com validação automática."""

    model_config = SettingsConfigDict(
        env_file=_ENV_FILE if _ENV_FILE.exists() else ".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",
    )

    # Team Foundation Server
    TFS_BASE_URL: str = Field(
        default="",
        description="URL da coleção no TFS (ex: http://servidor:8080/tfs/DefaultCollection)",
    )
    TFS_SERVER_URL: str = Field(
        default="",
        description="URL do servidor de configuração (ex: http://servidor:8080/tfs). Vazio = TFS_BASE_URL sem o último segmento",
    )
    TFS_API_VERSION: str = Field(default="5.0", description="Versão da REST API do TFS")
    TFS_VERIFY_SSL: bool = Field(default=True, description="Valida certificado HTTPS do servidor")
    TFS_TIMEOUT: int = Field(default=30, description="Timeout (segundos) de cada requisição")

    # Credenciais
    TFS_USE_SYSTEM_CREDENTIALS: bool = Field(
        default=False,
        description="Se True, conecta com a identidade do próprio sistema em vez de usuário/senha",
    )
    TFS_USERNAME: str = Field(default="", description="Usuário para conectar no TFS")
    TFS_PASSWORD: str = Field(default="", description="Senha do usuário (obrigatória via env var)")
    TFS_DOMAIN: str = Field(default="", description="Domínio do usuário")
    TFS_CLIENT_ID: str = Field(
        default="",
        description="Client ID do service principal (Microsoft Entra ID) usado nas credenciais de sistema",
    )
    TFS_CLIENT_SECRET: str = Field(default="", description="Client Secret do service principal")
    TFS_TENANT_ID: str = Field(default="", description="Tenant ID do service principal")

    # Issue tracking
    TFS_CUSTOM_RELEASE_FIELD: str = Field(
        default="",
        description="Nome completo do campo customizado com o número da release (ex: Custom.ReleaseNumber)",
    )
    TFS_ALLOW_HTML_DESCRIPTIONS: bool = Field(
        default=False,
        description="Se True, mantém o HTML da descrição dos work items",
    )
    TFS_FILTER_COLLECTION: str = Field(default="", description="Filtro de categoria: coleção")
    TFS_FILTER_PROJECT: str = Field(default="", description="Filtro de categoria: projeto")
    TFS_FILTER_AREA_PATH: str = Field(default="", description="Filtro de categoria: Area Path")

    @field_validator(
        "TFS_USE_SYSTEM_CREDENTIALS",
        "TFS_ALLOW_HTML_DESCRIPTIONS",
        "TFS_INCLUDE_UNSUCCESSFUL",
        mode="before",
    )
    @classmethod
    def parse_pipeline_flags(cls, v: object) -> bool:
        """Quando a variável não está definida na pipeline, o agente envia literal '$(NOME)'."""
        return _parse_pipeline_bool(v)

    # Build importer
    TFS_TEAM_PROJECT: str = Field(default="", description="Team project da build")
    TFS_BUILD_DEFINITION: str = Field(default="", description="Nome da build definition")
    TFS_BUILD_NUMBER: str = Field(default="", description="Número da build no TFS. Vazio = última build")
    TFS_INCLUDE_UNSUCCESSFUL: bool = Field(
        default=False,
        description="Se True, considera também builds que não terminaram com sucesso",
    )
    ARTIFACT_NAME: str = Field(default="Default", description="Nome do artefato criado pela importação")
    ARTIFACT_STORE_PATH: str = Field(
        default="artifacts",
        description="Pasta raiz onde os artefatos (zip) são gravados",
    )
    VARIABLES_FILE: str = Field(
        default="variables.json",
        description="Arquivo JSON onde as variáveis de release/build são persistidas",
    )

    # Contexto da importação (application/release/build de destino)
    APPLICATION_ID: int = Field(default=0, description="Id da aplicação de destino")
    RELEASE_NUMBER: str = Field(default="", description="Número da release de destino")
    BUILD_NUMBER: str = Field(default="", description="Número da build de destino")
    DEPLOYABLE_ID: int | None = Field(default=None, description="Id do deployable (opcional)")

    @field_validator("DEPLOYABLE_ID", mode="before")
    @classmethod
    def parse_deployable_id(cls, v: object) -> object:
        """Vazio ou placeholder da pipeline = sem deployable."""
        if isinstance(v, str) and (not v.strip() or v.strip().startswith("$(")):
            return None
        return v

    @field_validator(
        "TFS_BASE_URL",
        "TFS_SERVER_URL",
        "TFS_BUILD_NUMBER",
        "RELEASE_NUMBER",
        "BUILD_NUMBER",
        mode="before",
    )
    @classmethod
    def parse_pipeline_placeholder(cls, v: object) -> object:
        """Trata variáveis não definidas da pipeline ('$(NOME)') como vazias."""
        if isinstance(v, str) and v.strip().startswith("$("):
            return ""
        return v

    # API (host)
    API_SECRET: str = Field(
        default="",
        description="Secret exigido no header X-Api-Secret das operações que alteram dados (vazio = sem validação)",
    )

    # Logging
    LOG_LEVEL: str = Field(
        default="INFO",
        description="Nível de log (DEBUG, INFO, WARNING, ERROR, CRITICAL)",
    )

    # Pipeline: se True, o passo falha (exit 1) quando a importação termina em erro.
    PIPELINE_FAIL_ON_ERROR: bool = Field(
        default=True,
        description="Se True, a pipeline falha quando a importação retorna erro. Avisos (nenhum arquivo) nunca falham.",
    )

    @field_validator("PIPELINE_FAIL_ON_ERROR", mode="before")
    @classmethod
    def parse_pipeline_fail_on_error(cls, v: object) -> bool:
        """Variável não definida na pipeline mantém o padrão (falhar em erro)."""
        if v is None or (isinstance(v, str) and (not v.strip() or v.strip().startswith("$("))):
            return True
        return _parse_pipeline_bool(v)

    @property
    def category_filter(self) -> tuple[str, ...]:
        """Filtro de categoria (coleção, projeto, Area Path), sem os níveis finais vazios."""
        levels = [self.TFS_FILTER_COLLECTION, self.TFS_FILTER_PROJECT, self.TFS_FILTER_AREA_PATH]
        while levels and not levels[-1]:
            levels.pop()
        return tuple(levels)

    def validate_connection_settings(self) -> None:
        """Valida que a URL e as credenciais foram fornecidas. Chame antes de usar."""
        if not self.TFS_BASE_URL.strip():
            raise ValueError("TFS_BASE_URL deve ser configurado via variável de ambiente")
        if not self.TFS_USE_SYSTEM_CREDENTIALS and not self.TFS_USERNAME.strip():
            raise ValueError("TFS_USERNAME deve ser configurado quando TFS_USE_SYSTEM_CREDENTIALS=False")

    def validate_importer_settings(self) -> None:
        """Valida a configuração mínima do importador de builds."""
        self.validate_connection_settings()
        if not self.TFS_TEAM_PROJECT.strip():
            raise ValueError("TFS_TEAM_PROJECT deve ser configurado")
        if not self.TFS_BUILD_DEFINITION.strip():
            raise ValueError("TFS_BUILD_DEFINITION deve ser configurado")


settings = Settings()
