"""
Script de pipeline: importa a pasta de drop de uma build do TFS como artefato da release/build de destino
e grava a variável TfsBuildNumber.

Configuração via variáveis de ambiente / .env (TFS_*, ARTIFACT_*, APPLICATION_ID, RELEASE_NUMBER, BUILD_NUMBER).
Build não encontrada ou sem pasta de drop = erro (exit 1 se PIPELINE_FAIL_ON_ERROR); pasta vazia = aviso (exit 0).
Log em HTML: backend/logs/import_YYYYMMDD_HHMMSS.html (publicado como artefato).
"""
import logging
import sys
from pathlib import Path

# Garante que o backend está no path quando rodado como script
_backend = Path(__file__).resolve().parent
if str(_backend) not in sys.path:
    sys.path.insert(0, str(_backend))

from buildmaster_tfs.config import settings
from buildmaster_tfs.models.build import BuildImportContext, BuildImportResult, IMPORT_ERROR
from buildmaster_tfs.services.build_importer import TfsBuildImporter
from buildmaster_tfs.utils.import_logger import end_html_log, log_import_result, start_html_log

logging.basicConfig(
    level=getattr(logging, (settings.LOG_LEVEL or "INFO").upper(), logging.INFO),
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


def main() -> int:
    settings.validate_importer_settings()
    if not settings.RELEASE_NUMBER or not settings.BUILD_NUMBER:
        raise ValueError("RELEASE_NUMBER e BUILD_NUMBER devem ser configurados")
    start_html_log()
    try:
        importer = TfsBuildImporter()
        context = BuildImportContext(
            application_id=settings.APPLICATION_ID,
            release_number=settings.RELEASE_NUMBER,
            build_number=settings.BUILD_NUMBER,
            deployable_id=settings.DEPLOYABLE_ID,
        )
        try:
            result = importer.import_build(context)
        except Exception as e:
            logger.exception("Falha na importação: %s", e)
            result = BuildImportResult(status=IMPORT_ERROR, message=str(e))
        log_import_result(
            team_project=importer.team_project,
            build_definition=importer.build_definition,
            result=result,
        )
        logger.info("Importação concluída: %s", result.status)
        return 0 if (result.ok or not settings.PIPELINE_FAIL_ON_ERROR) else 1
    finally:
        end_html_log()


if __name__ == "__main__":
    sys.exit(main())
