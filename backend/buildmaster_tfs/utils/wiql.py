"""Montagem de consultas WIQL com valores tratados como literais (nunca interpolados crus)."""
import re
from typing import Union

# Nome de referência de campo no TFS (ex.: System.Id, Custom.ReleaseNumber)
FIELD_REFERENCE = re.compile(r"^[A-Za-z_][A-Za-z0-9_.]*$")

OPERATORS = frozenset({"=", "<>", "UNDER", "IN"})

WiqlValue = Union[str, int, list, tuple]


def quote_field(field: str) -> str:
    """
    Retorna a referência do campo entre colchetes.

    Rejeita nomes fora do padrão de referência do TFS (colchetes, espaços, aspas),
    que poderiam alterar a estrutura da consulta.
    """
    if not field or not FIELD_REFERENCE.match(field):
        raise ValueError(f"Nome de campo inválido para WIQL: {field!r}")
    return f"[{field}]"


def quote_literal(value: WiqlValue) -> str:
    """Converte um valor em literal WIQL: inteiros como estão, texto entre aspas simples (aspas duplicadas)."""
    if isinstance(value, bool):
        raise ValueError("Valores booleanos não são suportados em WIQL")
    if isinstance(value, int):
        return str(value)
    if isinstance(value, (list, tuple)):
        if not value:
            raise ValueError("Lista vazia não é suportada no operador IN")
        return "(" + ", ".join(quote_literal(v) for v in value) + ")"
    text = str(value)
    return "'" + text.replace("'", "''") + "'"


class WiqlQuery:
    """
    Consulta WIQL sobre WorkItems.

    Exemplo:
        WiqlQuery(["System.Id", "System.Title"]).where("System.TeamProject", "=", "Proj").order_by("System.Id").render()
    """

    def __init__(self, fields: list[str]) -> None:
        if not fields:
            raise ValueError("A consulta precisa de pelo menos um campo")
        self.fields = list(fields)
        self._conditions: list[tuple[str, str, WiqlValue]] = []
        self._order: list[tuple[str, str]] = []

    def where(self, field: str, operator: str, value: WiqlValue) -> "WiqlQuery":
        op = operator.upper()
        if op not in OPERATORS:
            raise ValueError(f"Operador WIQL não suportado: {operator!r}")
        quote_field(field)
        self._conditions.append((field, op, value))
        return self

    def order_by(self, field: str, descending: bool = False) -> "WiqlQuery":
        quote_field(field)
        self._order.append((field, "DESC" if descending else "ASC"))
        return self

    @property
    def conditions(self) -> list[tuple[str, str, WiqlValue]]:
        return list(self._conditions)

    def render(self) -> str:
        parts = [
            "SELECT " + ", ".join(quote_field(f) for f in self.fields),
            "FROM WorkItems",
        ]
        if self._conditions:
            clauses = [f"{quote_field(f)} {op} {quote_literal(v)}" for f, op, v in self._conditions]
            parts.append("WHERE " + " AND ".join(clauses))
        if self._order:
            parts.append("ORDER BY " + ", ".join(f"{quote_field(f)} {d}" for f, d in self._order))
        return " ".join(parts)

    def __str__(self) -> str:
        return self.render()
