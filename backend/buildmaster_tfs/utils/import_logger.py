"""
Log estruturado da pipeline de importação de builds do TFS.
Registra por importação: team project, definition, build do TFS, pasta de drop, arquivos e status.
Saída: HTML em backend/logs/import_YYYYMMDD_HHMMSS.html (um arquivo por execução).
"""
import html
import logging
from datetime import datetime
from pathlib import Path

from buildmaster_tfs.models.build import IMPORT_ERROR, IMPORT_WARNING, BuildImportResult

_BACKEND_DIR = Path(__file__).resolve().parent.parent.parent
LOGS_DIR = _BACKEND_DIR / "logs"
LOG_PREFIX = "import"

logger = logging.getLogger(__name__)

# Arquivo HTML da execução atual (preenchido por start_html_log, fechado por end_html_log)
_html_log_path: Path | None = None


def _html_log_file_path(logs_dir: Path) -> Path:
    """Arquivo de log HTML desta execução."""
    logs_dir.mkdir(parents=True, exist_ok=True)
    return logs_dir / f"{LOG_PREFIX}_{datetime.now().strftime('%Y%m%d_%H%M%S')}.html"


def _html_header(title: str) -> str:
    return f"""<!DOCTYPE html>
<html lang="pt-BR">
<head>
  <meta charset="UTF-8">
  <title>{html.escape(title)}</title>
  <style>
    body {{ font-family: 'Segoe UI', Tahoma, Geneva, Verdana, sans-serif; margin: 24px; background: #f5f5f5; }}
    h1 {{ color: #0078d4; margin-bottom: 8px; }}
    .meta {{ color: #666; margin-bottom: 20px; font-size: 14px; }}
    table {{ border-collapse: collapse; width: 100%; max-width: 1200px; background: #fff; }}
    th {{ background: #0078d4; color: #fff; text-align: left; padding: 12px 14px; font-size: 13px; }}
    td {{ padding: 12px 14px; border-bottom: 1px solid #eee; font-size: 13px; vertical-align: top; }}
    tr.erro {{ background: #fdecea; }}
    tr.aviso {{ background: #fff4ce; }}
    .drop {{ max-width: 320px; word-break: break-all; }}
  </style>
</head>
<body>
  <h1>{html.escape(title)}</h1>
  <p class="meta">Execução: {html.escape(datetime.now().strftime("%d/%m/%Y %H:%M:%S"))}</p>
  <table>
    <thead>
      <tr>
        <th>Team Project</th>
        <th>Definition</th>
        <th>Build TFS</th>
        <th>Pasta de drop</th>
        <th>Arquivos</th>
        <th>Artefato</th>
        <th>Status</th>
      </tr>
    </thead>
    <tbody>
"""


def start_html_log(logs_dir: Path | None = None) -> Path | None:
    """
    Inicia o log HTML desta execução (cria arquivo com cabeçalho e tabela).
    Retorna o path do arquivo ou None em caso de erro.
    """
    global _html_log_path
    try:
        path = _html_log_file_path(logs_dir or LOGS_DIR)
        with open(path, "w", encoding="utf-8") as f:
            f.write(_html_header("Log da Pipeline – Importação de Builds TFS"))
        _html_log_path = path
        logger.info("Log HTML iniciado: %s", path.name)
        return path
    except OSError as e:
        logger.warning("Não foi possível criar log HTML: %s", e)
        return None


def end_html_log() -> None:
    """Fecha o log HTML (escreve rodapé). Deve ser chamado ao final da pipeline."""
    global _html_log_path
    if not _html_log_path:
        return
    try:
        with open(_html_log_path, "a", encoding="utf-8") as f:
            f.write("    </tbody>\n  </table>\n</body>\n</html>\n")
        logger.info("Log HTML fechado: %s", _html_log_path.name)
    except OSError as e:
        logger.warning("Não foi possível fechar log HTML: %s", e)
    _html_log_path = None


def log_import_result(*, team_project: str, build_definition: str, result: BuildImportResult) -> None:
    """
    Registra uma importação.
    Saída: console (logger) e, se start_html_log foi chamado, uma linha no log HTML.
    """
    logger.info(
        "Importação | Projeto: %s | Definition: %s | Build TFS: %s | Drop: %s | Arquivos: %s | Status: %s",
        team_project, build_definition, result.tfs_build_number or "—", result.drop_location or "—",
        result.files_imported, result.status,
    )
    if not _html_log_path:
        return
    row_class = {IMPORT_ERROR: "erro", IMPORT_WARNING: "aviso"}.get(result.status, "")
    status = result.status if not result.message else f"{result.status}: {result.message}"
    try:
        with open(_html_log_path, "a", encoding="utf-8") as f:
            f.write(
                f'    <tr class="{row_class}">\n'
                f"      <td>{html.escape(team_project)}</td>\n"
                f"      <td>{html.escape(build_definition)}</td>\n"
                f"      <td>{html.escape(result.tfs_build_number or '—')}</td>\n"
                f'      <td class="drop">{html.escape(result.drop_location or "—")}</td>\n'
                f"      <td>{result.files_imported}</td>\n"
                f"      <td>{html.escape(result.artifact_path or '—')}</td>\n"
                f"      <td>{html.escape(status)}</td>\n"
                f"    </tr>\n"
            )
    except OSError as e:
        logger.warning("Não foi possível escrever linha no log HTML: %s", e)
