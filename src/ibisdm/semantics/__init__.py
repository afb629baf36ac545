from ibisdm.semantics.domain import Domain, is_atom
from ibisdm.semantics.types import (
    AltQuestion,
    Answer,
    Polarity,
    Proposition,
    PropositionAnswer,
    Question,
    ShortAnswer,
    WhQuestion,
    YesNoAnswer,
    YesNoQuestion,
)

__all__ = [
    "Domain",
    "is_atom",
    "AltQuestion",
    "Answer",
    "Polarity",
    "Proposition",
    "PropositionAnswer",
    "Question",
    "ShortAnswer",
    "WhQuestion",
    "YesNoAnswer",
    "YesNoQuestion",
]
