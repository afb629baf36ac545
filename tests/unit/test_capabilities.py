"""
tests/unit/test_capabilities.py - Grammar and Database

Covers:
  - FormalGrammar.interpret: formal notation, greetings, quit, phrase lexicon
  - ParseFailureError for empty, malformed and out-of-domain utterances
  - generate(): form table, defaults, fallback to notation
  - realize(): phrase joining and punctuation
  - TableDatabase: row validation, context filtering, yes/no lookups

Run with: pytest tests/unit/test_capabilities.py -v
"""

from __future__ import annotations

import pytest

from ibisdm.capabilities import FormalGrammar, TableDatabase, join_phrases
from ibisdm.dialogue.moves import ICM, Ask, AnswerMove, Greet, IcmKind, Quit
from ibisdm.exceptions import DomainViolationError, ParseFailureError
from ibisdm.semantics.types import (
    Polarity,
    Proposition,
    PropositionAnswer,
    ShortAnswer,
    WhQuestion,
    YesNoAnswer,
    YesNoQuestion,
)


@pytest.fixture
def grammar(domain):
    return FormalGrammar(domain)


# ─────────────────────────────────────────────────────────────────────────────
# Interpretation
# ─────────────────────────────────────────────────────────────────────────────

class TestInterpret:
    def test_short_answer(self, grammar):
        assert grammar.interpret("paris") == [AnswerMove(ShortAnswer("paris"))]

    def test_negative_short_answer(self, grammar):
        assert grammar.interpret("-paris") == [
            AnswerMove(ShortAnswer("paris", Polarity.NEGATED))
        ]

    def test_yes_no(self, grammar):
        assert grammar.interpret("Yes") == [AnswerMove(YesNoAnswer(True))]
        assert grammar.interpret("no.") == [AnswerMove(YesNoAnswer(False))]

    def test_questions(self, grammar, domain):
        assert grammar.interpret("?x.price(x)") == [Ask(WhQuestion.create(domain, "price"))]
        assert grammar.interpret("?return()") == [
            Ask(YesNoQuestion(Proposition("return")))
        ]

    def test_proposition_answer(self, grammar):
        assert grammar.interpret("dest(london)") == [
            AnswerMove(PropositionAnswer(Proposition("dest", ("london",))))
        ]

    def test_greeting_and_quit(self, grammar):
        assert grammar.interpret("Hello!") == [Greet()]
        assert grammar.interpret("  bye ") == [Quit()]

    def test_phrase_lexicon_with_several_readings(self, grammar, domain):
        grammar.add_phrase("Paris please", "Answer(dest(paris))", "Answer(depart(paris))")
        readings = grammar.interpret("paris   PLEASE")
        assert len(readings) == 2
        assert readings[0] == AnswerMove(PropositionAnswer(Proposition("dest", ("paris",))))

    def test_phrase_needs_a_reading(self, grammar):
        with pytest.raises(ValueError):
            grammar.add_phrase("nothing")

    def test_empty_utterance(self, grammar):
        with pytest.raises(ParseFailureError):
            grammar.interpret("   ")

    def test_unknown_individual(self, grammar):
        with pytest.raises(ParseFailureError) as exc_info:
            grammar.interpret("tokyo")
        assert exc_info.value.utterance == "tokyo"
        assert isinstance(exc_info.value.__cause__, DomainViolationError)

    def test_malformed(self, grammar):
        with pytest.raises(ParseFailureError):
            grammar.interpret("where to?")


# ─────────────────────────────────────────────────────────────────────────────
# Generation
# ─────────────────────────────────────────────────────────────────────────────

class TestGenerate:
    def test_defaults(self, grammar):
        assert grammar.generate(Greet()) == "Hello"
        assert grammar.generate(Quit()) == "Goodbye"
        assert grammar.generate(ICM(IcmKind.PER_NEG)) == "Sorry, I didn't catch that"

    def test_form_table_lookup(self, grammar, domain):
        ask = Ask(WhQuestion.create(domain, "dest"))
        grammar.add_form("Ask('?x.dest(x)')", "Where do you want to go?")
        assert grammar.generate(ask) == "Where do you want to go?"

    def test_fallback_is_notation(self, grammar, domain):
        ask = Ask(WhQuestion.create(domain, "how"))
        assert grammar.generate(ask) == "Ask('?x.how(x)')"

    def test_sem_neg_mentions_content(self, grammar):
        assert grammar.generate(ICM(IcmKind.SEM_NEG, "train")) == "I don't understand: train"

    def test_generate_is_deterministic(self, grammar):
        move = ICM(IcmKind.ACC_NEG, "?x.price(x)")
        assert grammar.generate(move) == grammar.generate(move)

    def test_realize_joins_with_punctuation(self, grammar, domain):
        grammar.add_form("Ask('?x.dest(x)')", "Where to?")
        text = grammar.realize([Greet(), Ask(WhQuestion.create(domain, "dest"))])
        assert text == "Hello. Where to?"

    def test_join_phrases_skips_empty(self):
        assert join_phrases(["Hi", "", "  ", "Bye!"]) == "Hi. Bye!"
        assert join_phrases([]) == ""


# ─────────────────────────────────────────────────────────────────────────────
# Database
# ─────────────────────────────────────────────────────────────────────────────

class TestTableDatabase:
    @pytest.fixture
    def db(self, domain):
        return TableDatabase(domain, [
            {"price": "p232", "dest": "paris", "depart": "berlin"},
            {"price": "p345", "dest": "london", "depart": "paris"},
        ])

    def test_rows_are_records(self, db):
        assert len(db) == 2
        assert db.rows[0]["dest"].payload == "paris"

    def test_row_outside_domain_rejected(self, domain):
        with pytest.raises(DomainViolationError):
            TableDatabase(domain, [{"price": "paris"}])
        with pytest.raises(DomainViolationError):
            TableDatabase(domain, [{"colour": "red"}])

    def test_context_selects_row(self, db, domain):
        q = WhQuestion.create(domain, "price")
        ctx = {Proposition("dest", ("london",))}
        assert db.answer(q, ctx) == Proposition("price", ("p345",))

    def test_negative_context_ignored(self, db, domain):
        q = WhQuestion.create(domain, "price")
        ctx = {Proposition("dest", ("paris",), Polarity.NEGATED)}
        assert db.answer(q, ctx) == Proposition("price", ("p232",))

    def test_no_matching_row(self, db, domain):
        q = WhQuestion.create(domain, "price")
        ctx = {Proposition("dest", ("berlin",))}
        assert db.answer(q, ctx) is None

    def test_yes_no_lookup(self, db, domain):
        q = YesNoQuestion(Proposition("dest", ("paris",)))
        ctx = {Proposition("depart", ("paris",))}
        assert db.answer(q, ctx) == Proposition("dest", ("paris",), Polarity.NEGATED)

    def test_unanswerable_question_kind(self, db, domain):
        assert db.answer(YesNoQuestion(Proposition("return"))) is None
