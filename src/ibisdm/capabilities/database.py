"""
capabilities/database.py - Database Capability

The engine consults a Database when executing a Consult plan step. The
only contract is answer(question, context) -> Proposition | None; `context`
is what the dialogue has established so far (commitments and beliefs), so a
lookup can depend on earlier answers.

TableDatabase is an in-memory implementation over rows of individuals:

    db = TableDatabase(domain, [
        {"price": "p232", "dest": "paris", "depart": "berlin"},
        {"price": "p345", "dest": "london", "depart": "paris"},
    ])
    db.answer(WhQuestion.create(domain, "price"), {dest(paris)})  # → price(p232)

A row matches when every known one-place affirmative fact over one of its
other columns agrees with it.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import AbstractSet, Iterable, Mapping, Optional

from ibisdm.containers.record import Record, RecordSchema, Value, ValueKind
from ibisdm.observability.logger import get_logger
from ibisdm.semantics.domain import Domain
from ibisdm.semantics.types import Proposition, Question, WhQuestion, YesNoQuestion

log = get_logger(__name__)


class Database(ABC):
    """Read-only knowledge source consulted during plan execution."""

    @abstractmethod
    def answer(
        self, question: Question, context: AbstractSet[Proposition] = frozenset()
    ) -> Optional[Proposition]:
        """Return a proposition answering `question`, or None on a miss."""


class TableDatabase(Database):
    def __init__(self, domain: Domain, rows: Iterable[Mapping[str, str]] = ()) -> None:
        self.domain = domain
        self._rows: list[Record] = []
        for row in rows:
            self.add_row(row)

    def add_row(self, row: Mapping[str, str]) -> Record:
        """Store a row. Every column must be a one-place predicate holding an
        individual of its sort."""
        schema = RecordSchema(fields={col: ValueKind.INDIVIDUAL for col in row})
        for column, individual in row.items():
            self.domain.check_predication(column, [individual])
        record = Record({col: Value.individual(ind) for col, ind in row.items()}, schema=schema)
        self._rows.append(record)
        return record

    @property
    def rows(self) -> list[Record]:
        return list(self._rows)

    # ── Lookup ────────────────────────────────────────────────────────────────

    def _matches(self, record: Record, context: AbstractSet[Proposition], skip: str) -> bool:
        for prop in context:
            if not prop.is_affirmative or len(prop.args) != 1:
                continue
            if prop.pred == skip or prop.pred not in record:
                continue
            if record[prop.pred].payload != prop.args[0]:
                return False
        return True

    def _lookup(self, pred: str, context: AbstractSet[Proposition]) -> Optional[str]:
        for record in self._rows:
            if pred in record and self._matches(record, context, skip=pred):
                return record[pred].payload
        return None

    def answer(
        self, question: Question, context: AbstractSet[Proposition] = frozenset()
    ) -> Optional[Proposition]:
        result: Optional[Proposition] = None
        if isinstance(question, WhQuestion):
            value = self._lookup(question.pred, context)
            if value is not None:
                result = Proposition(question.pred, (value,))
        elif isinstance(question, YesNoQuestion) and len(question.prop.args) == 1:
            value = self._lookup(question.prop.pred, context)
            if value is not None:
                affirmative = Proposition(question.prop.pred, question.prop.args)
                result = affirmative if value == question.prop.args[0] else affirmative.negated()

        log.debug(
            "db.lookup",
            question=str(question),
            hit=result is not None,
            result=str(result) if result else None,
        )
        return result

    def __len__(self) -> int:
        return len(self._rows)

    def __repr__(self) -> str:
        return f"<TableDatabase rows={len(self._rows)}>"


__all__ = ["Database", "TableDatabase"]
