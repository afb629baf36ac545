"""
semantics/loader.py - Domain File Loader

Builds everything a dialogue needs from one YAML file:

    domain:
      predicates0: [return]
      predicates1: {dest: city, depart: city, price: amount, return_day: day}
      sorts:
        city: [paris, london, berlin]
        amount: [p232, p345]
        day: [today, tomorrow]
    plans:
      "?x.price(x)":
        - findout: "?x.dest(x)"
        - findout: "?x.depart(x)"
        - findout: "?return()"
        - if: {cond: "?return()", then: [{findout: "?x.return_day(x)"}], else: []}
        - consult: "?x.price(x)"
    plan: []                  # initial plan, first step first
    agenda: []
    forms:
      "Ask('?x.dest(x)')": "Where do you want to go?"
    phrases:
      "i want to go to paris": ["Answer(dest(paris))"]
    database:
      - {price: p232, dest: paris, depart: berlin}

Plan steps may also be written in formal notation: "Findout('?x.dest(x)')".
Any problem is reported as DomainFileError naming the file.
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any, Optional, Union

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from ibisdm.capabilities.database import TableDatabase
from ibisdm.capabilities.grammar import FormalGrammar
from ibisdm.dialogue.moves import Consult, Findout, If, PlanConstructor, Raise, Respond
from ibisdm.exceptions import DomainError, DomainFileError, ParseFailureError
from ibisdm.notation import parse_move, parse_plan_step, parse_question
from ibisdm.observability.logger import get_logger
from ibisdm.semantics.domain import Domain
from ibisdm.semantics.types import YesNoQuestion

log = get_logger(__name__)


# ─────────────────────────────────────────────────────────────────────────────
# File schema
# ─────────────────────────────────────────────────────────────────────────────

class DomainSection(BaseModel):
    model_config = ConfigDict(extra="forbid")

    predicates0: list[str] = Field(default_factory=list)
    predicates1: dict[str, str] = Field(default_factory=dict)
    sorts: dict[str, list[str]] = Field(default_factory=dict)


class DomainFileModel(BaseModel):
    model_config = ConfigDict(extra="forbid")

    domain: DomainSection
    plans: dict[str, list[Any]] = Field(default_factory=dict)
    plan: list[Any] = Field(default_factory=list)
    agenda: list[Any] = Field(default_factory=list)
    forms: dict[str, str] = Field(default_factory=dict)
    phrases: dict[str, list[str]] = Field(default_factory=dict)
    database: list[dict[str, str]] = Field(default_factory=list)

    @field_validator("phrases", mode="before")
    @classmethod
    def _coerce_phrases(cls, v: Any) -> Any:
        # a single reading may be given as a plain string
        if isinstance(v, dict):
            return {k: [r] if isinstance(r, str) else r for k, r in v.items()}
        return v


@dataclass(frozen=True)
class DomainBundle:
    domain: Domain
    grammar: FormalGrammar
    database: Optional[TableDatabase] = None
    initial_plan: tuple[PlanConstructor, ...] = ()
    agenda: tuple[PlanConstructor, ...] = ()


# ─────────────────────────────────────────────────────────────────────────────
# Plan steps
# ─────────────────────────────────────────────────────────────────────────────

_STEP_KEYS = {
    "findout": Findout,
    "consult": Consult,
    "raise": Raise,
    "respond": Respond,
}


def parse_step(raw: Any, domain: Domain) -> PlanConstructor:
    if isinstance(raw, str):
        return parse_plan_step(raw, domain)
    if not isinstance(raw, dict) or len(raw) != 1:
        raise ParseFailureError(str(raw), f"A plan step must be a string or a one-key mapping: {raw!r}")

    (key, value), = raw.items()
    key = str(key).lower()
    if key in _STEP_KEYS:
        return _STEP_KEYS[key](parse_question(str(value), domain))
    if key == "if":
        if not isinstance(value, dict) or "cond" not in value:
            raise ParseFailureError(str(raw), "An 'if' step needs a 'cond' question")
        cond = parse_question(str(value["cond"]), domain)
        if not isinstance(cond, YesNoQuestion):
            raise ParseFailureError(str(raw), f"'if' condition must be a yes/no question: {cond}")
        return If(
            cond,
            tuple(parse_step(s, domain) for s in value.get("then") or []),
            tuple(parse_step(s, domain) for s in value.get("else") or []),
        )
    raise ParseFailureError(str(raw), f"Unknown plan step '{key}'")


# ─────────────────────────────────────────────────────────────────────────────
# Loading
# ─────────────────────────────────────────────────────────────────────────────

def build_bundle(data: dict, source: str = "<memory>") -> DomainBundle:
    """Validate already-parsed YAML data and build the bundle."""
    try:
        model = DomainFileModel.model_validate(data)
        domain = Domain(
            model.domain.predicates0,
            model.domain.predicates1,
            model.domain.sorts,
        )
        plans = {
            parse_question(q, domain): [parse_step(s, domain) for s in steps]
            for q, steps in model.plans.items()
        }
        domain = domain.with_plans(plans)

        grammar = FormalGrammar(domain)
        for key, text in model.forms.items():
            grammar.add_form(key, text)
        for text, readings in model.phrases.items():
            grammar.add_phrase(text, *(parse_move(r, domain) for r in readings))

        database = TableDatabase(domain, model.database) if model.database else None
        initial_plan = tuple(parse_step(s, domain) for s in model.plan)
        agenda = tuple(parse_step(s, domain) for s in model.agenda)
    except ValidationError as exc:
        problems = "; ".join(
            f"{'.'.join(str(p) for p in e['loc']) or '?'}: {e['msg']}" for e in exc.errors()
        )
        raise DomainFileError(f"{source}: {problems}") from exc
    except (DomainError, ParseFailureError, ValueError) as exc:
        raise DomainFileError(f"{source}: {exc}") from exc

    log.info(
        "domain.loaded",
        source=source,
        predicates=len(domain.preds0) + len(domain.preds1),
        sorts=len(domain.sorts),
        plans=len(domain.plans),
        rows=len(database) if database else 0,
    )
    return DomainBundle(domain, grammar, database, initial_plan, agenda)


def load_domain_file(path: Union[str, Path]) -> DomainBundle:
    path = Path(path)
    try:
        with path.open("r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
    except OSError as exc:
        raise DomainFileError(f"{path}: cannot read domain file ({exc.strerror or exc})") from exc
    except yaml.YAMLError as exc:
        raise DomainFileError(f"{path}: invalid YAML: {exc}") from exc
    if not isinstance(data, dict):
        raise DomainFileError(f"{path}: top level must be a mapping")
    return build_bundle(data, source=str(path))
