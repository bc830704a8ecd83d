"""Utilitários de caminho usados na importação da pasta de drop."""
from typing import Optional


def _strip_trailing_separator(path: str) -> str:
    if path.endswith("\\") or path.endswith("/"):
        return path[:-1]
    return path


def is_same_path(path1: Optional[str], path2: Optional[str]) -> bool:
    """
    Indica se dois caminhos apontam para o mesmo diretório.

    Regra estreita (não é canonicalização): tamanhos podem diferir em no máximo 1
    caractere; remove uma única barra final; compara sem diferenciar maiúsculas,
    tratando '/' como '\\'.

    Ex.: ("C:\\drop", "C:\\drop\\") -> True; ("C:\\drop", "C:\\dropxx") -> False.
    """
    if path1 is path2:
        return True
    if path1 is None or path2 is None:
        return False
    if abs(len(path1) - len(path2)) > 1:
        return False
    a = _strip_trailing_separator(path1).replace("/", "\\")
    b = _strip_trailing_separator(path2).replace("/", "\\")
    return a.lower() == b.lower()
