"""
tests/unit/test_engine.py - Update Engine and Rules

Covers:
  - RuleTable: registration, priority ordering, RuleConfigError
  - End-to-end: Findout asks, short answer is accommodated, dialogue ends
  - Accommodation to the plan's question leaves unrelated QUD intact
  - Findout / Consult / Raise / Respond / If executors
  - Irrelevant answers produce icm:sem*neg and change nothing
  - step() never mutates its input state
  - Greet / Quit integration
  - Domain plans expanded when a user question becomes a goal
  - Iteration bounds
  - select_reading

Run with: pytest tests/unit/test_engine.py -v
"""

from __future__ import annotations

import pytest

from ibisdm.capabilities.database import TableDatabase
from ibisdm.dialogue.engine import DialogueEngine, TurnStatus
from ibisdm.dialogue.moves import (
    ICM,
    Ask,
    AnswerMove,
    Consult,
    Findout,
    Greet,
    IcmKind,
    If,
    Quit,
    Raise,
    Respond,
)
from ibisdm.dialogue.rules import (
    DEFAULT_PRIORITY,
    RuleTable,
    UpdateRule,
    accommodation_target,
    integration_rules,
)
from ibisdm.exceptions import (
    EmptyStackError,
    IterationLimitError,
    PlanExecutionError,
    RuleConfigError,
)
from ibisdm.semantics.types import (
    Polarity,
    Proposition,
    PropositionAnswer,
    ShortAnswer,
    WhQuestion,
    YesNoAnswer,
    YesNoQuestion,
)


def _short(name: str, polarity: Polarity = Polarity.AFFIRMATIVE) -> AnswerMove:
    return AnswerMove(ShortAnswer(name, polarity))


@pytest.fixture
def q_dest(domain):
    return WhQuestion.create(domain, "dest")


@pytest.fixture
def q_how(domain):
    return WhQuestion.create(domain, "how")


@pytest.fixture
def q_price(domain):
    return WhQuestion.create(domain, "price")


@pytest.fixture
def q_return(domain):
    return YesNoQuestion(Proposition.create(domain, "return"))


@pytest.fixture
def engine(domain):
    return DialogueEngine(domain)


@pytest.fixture
def prices(domain):
    return TableDatabase(domain, [
        {"price": "p232", "dest": "paris"},
        {"price": "p345", "dest": "london"},
    ])


# ─────────────────────────────────────────────────────────────────────────────
# Rule table
# ─────────────────────────────────────────────────────────────────────────────

class TestRuleTable:
    def test_default_order(self):
        assert DEFAULT_PRIORITY == (
            "integrateGreet",
            "integrateAsk",
            "integrateAnswer",
            "accommodate",
            "integrateQuit",
        )

    def test_register_decorator(self):
        table = RuleTable()

        @table.register("noop", precondition=lambda s, m: False)
        def noop(state, move):
            """Does nothing."""
            return []

        rule = table.get("noop")
        assert rule.effect is noop
        assert rule.description == "Does nothing."
        assert "noop" in table

    def test_duplicate_name_rejected(self):
        rule = UpdateRule("r", lambda s, m: True, lambda s, m: [])
        table = RuleTable([rule])
        with pytest.raises(RuleConfigError):
            table.add(rule)

    def test_ordered_reorders(self):
        priority = list(reversed(DEFAULT_PRIORITY))
        assert integration_rules.ordered(priority).names() == priority

    def test_ordered_rejects_unknown(self):
        with pytest.raises(RuleConfigError, match="Unknown"):
            integration_rules.ordered(list(DEFAULT_PRIORITY) + ["integrateMagic"])

    def test_ordered_rejects_missing(self):
        with pytest.raises(RuleConfigError, match="missing"):
            integration_rules.ordered(DEFAULT_PRIORITY[:-1])

    def test_ordered_rejects_duplicates(self):
        with pytest.raises(RuleConfigError, match="Duplicate"):
            integration_rules.ordered(list(DEFAULT_PRIORITY) + ["integrateAsk"])

    def test_engine_rejects_bad_priority(self, domain):
        with pytest.raises(RuleConfigError):
            DialogueEngine(domain, priority=["integrateAsk"])


# ─────────────────────────────────────────────────────────────────────────────
# End to end
# ─────────────────────────────────────────────────────────────────────────────

class TestSimpleDialogue:
    def test_findout_then_short_answer(self, engine, q_dest):
        state = engine.initial_state(plan=[Findout(q_dest)])

        state, moves, status = engine.step(state)
        assert moves == (Ask(q_dest),)
        assert status is TurnStatus.AWAITING_INPUT
        assert list(state.shared.pending) == [q_dest]

        result = engine.step(state, [_short("paris")])
        assert result.moves == ()
        assert result.status is TurnStatus.TERMINAL
        assert list(result.state.shared.committed) == [Proposition("dest", ("paris",))]
        assert result.state.shared.qud.is_empty()
        assert result.state.shared.pending.is_empty()
        assert result.fired == ("accommodate",)

    def test_step_does_not_mutate_input(self, engine, q_dest):
        state = engine.initial_state(plan=[Findout(q_dest)])
        before = state.snapshot()
        after_first = engine.step(state).state
        assert state.snapshot() == before

        snapshot = after_first.snapshot()
        engine.step(after_first, [_short("paris")])
        assert after_first.snapshot() == snapshot

    def test_latest_moves_record_system_output(self, engine, q_dest):
        state = engine.step(engine.initial_state(plan=[Findout(q_dest)])).state
        assert state.shared.latest_moves == (Ask(q_dest),)
        assert state.shared.latest_speaker.value == "sys"

    def test_negative_short_answer_re_asks(self, engine, q_dest):
        state = engine.step(engine.initial_state(plan=[Findout(q_dest)])).state
        result = engine.step(state, [_short("paris", Polarity.NEGATED)])
        assert Proposition("dest", ("paris",), Polarity.NEGATED) in result.state.shared.committed
        assert result.moves == (Ask(q_dest),)
        assert result.status is TurnStatus.AWAITING_INPUT


class TestAccommodation:
    def test_answer_to_plan_question_leaves_other_qud(self, engine, q_dest, q_how):
        state = engine.initial_state(plan=[Findout(q_how)])
        state.shared.qud.push(q_dest)

        result = engine.step(state, [_short("train")])
        assert list(result.state.shared.qud) == [q_dest]
        assert Proposition("how", ("train",)) in result.state.shared.committed
        assert result.fired == ("accommodate",)

    def test_answer_to_top_of_qud_integrates_directly(self, engine, q_dest):
        state = engine.initial_state()
        state.shared.qud.push(q_dest)
        result = engine.step(state, [_short("london")])
        assert result.fired == ("integrateAnswer",)
        assert result.state.shared.qud.is_empty()

    def test_target_prefers_pending(self, engine, q_dest, q_how):
        state = engine.initial_state(plan=[Findout(q_how)])
        state.shared.pending.push(q_dest)
        assert accommodation_target(state, ShortAnswer("paris")) == q_dest
        assert accommodation_target(state, ShortAnswer("plane")) == q_how
        assert accommodation_target(state, ShortAnswer("p232")) is None


class TestIrrelevantAnswer:
    def test_sem_neg_and_state_unchanged(self, engine, q_dest):
        state = engine.step(engine.initial_state(plan=[Findout(q_dest)])).state
        result = engine.step(state, [_short("train")])

        assert result.moves[0] == ICM(IcmKind.SEM_NEG, "train")
        assert result.state.shared.committed.is_empty()
        assert list(result.state.shared.pending) == [q_dest]
        assert list(result.state.private.plan) == [Findout(q_dest)]
        assert result.fired == ()

    def test_plan_continues_after_rejection(self, engine, q_dest):
        state = engine.step(engine.initial_state(plan=[Findout(q_dest)])).state
        result = engine.step(state, [_short("train")])
        assert result.moves[1:] == (Ask(q_dest),)
        assert len(result.state.shared.pending) == 1

    def test_answer_with_nothing_open(self, engine):
        result = engine.step(engine.initial_state(), [AnswerMove(YesNoAnswer(True))])
        assert result.moves == (ICM(IcmKind.SEM_NEG, "yes"),)
        assert result.status is TurnStatus.TERMINAL

    def test_proposition_answer_outside_sort(self, engine, q_dest):
        state = engine.step(engine.initial_state(plan=[Findout(q_dest)])).state
        wrong = AnswerMove(PropositionAnswer(Proposition("dest", ("plane",))))
        result = engine.step(state, [wrong])
        assert result.moves[0] == ICM(IcmKind.SEM_NEG, "dest(plane)")
        assert result.state.shared.committed.is_empty()
        assert result.status is TurnStatus.AWAITING_INPUT


# ─────────────────────────────────────────────────────────────────────────────
# Plan step executors
# ─────────────────────────────────────────────────────────────────────────────

class TestFindout:
    def test_already_resolved_pops_silently(self, engine, q_dest, q_how):
        state = engine.initial_state(plan=[Findout(q_dest), Findout(q_how)])
        state.commit(Proposition("dest", ("berlin",)))
        result = engine.step(state)
        assert result.moves == (Ask(q_how),)
        assert list(result.state.private.plan) == [Findout(q_how)]

    def test_reasks_without_duplicating_pending(self, engine, q_dest):
        state = engine.step(engine.initial_state(plan=[Findout(q_dest)])).state
        state = engine.step(state, [Greet()]).state
        assert list(state.shared.pending) == [q_dest]


class TestConsult:
    def test_hit_goes_to_beliefs(self, domain, prices, q_price):
        engine = DialogueEngine(domain, database=prices)
        state = engine.initial_state(plan=[Consult(q_price)])
        state.commit(Proposition("dest", ("london",)))

        result = engine.step(state)
        assert result.moves == ()
        assert Proposition("price", ("p345",)) in result.state.private.bel
        assert result.status is TurnStatus.TERMINAL

    def test_miss_falls_back_to_asking(self, domain, q_price):
        engine = DialogueEngine(domain, database=TableDatabase(domain))
        result = engine.step(engine.initial_state(plan=[Consult(q_price)]))
        assert result.moves == (Ask(q_price),)
        assert list(result.state.shared.pending) == [q_price]

    def test_without_database_asks(self, engine, q_price):
        result = engine.step(engine.initial_state(plan=[Consult(q_price)]))
        assert result.moves == (Ask(q_price),)


class TestRaise:
    def test_pushes_question_and_continues(self, engine, q_return, q_how):
        state = engine.initial_state(plan=[Raise(q_return), Findout(q_how)])
        result = engine.step(state)
        assert q_return in result.state.shared.qud
        assert result.moves == (Ask(q_how),)


class TestRespond:
    def test_answers_from_beliefs(self, engine, q_price):
        state = engine.initial_state(plan=[Respond(q_price)])
        state.shared.qud.push(q_price)
        state.private.bel.insert(Proposition("price", ("p232",)))

        result = engine.step(state)
        answer = AnswerMove(PropositionAnswer(Proposition("price", ("p232",))))
        assert result.moves == (answer,)
        assert result.state.shared.qud.is_empty()
        assert Proposition("price", ("p232",)) in result.state.shared.committed

    def test_no_answer_gives_acc_neg(self, engine, q_price):
        state = engine.initial_state(plan=[Respond(q_price)])
        state.shared.qud.push(q_price)
        result = engine.step(state)
        assert result.moves == (ICM(IcmKind.ACC_NEG, str(q_price)),)
        assert result.state.shared.qud.is_empty()

    def test_refocuses_deeper_question(self, engine, q_price, q_dest):
        state = engine.initial_state(plan=[Respond(q_price)])
        state.shared.qud.push(q_price)
        state.shared.qud.push(q_dest)
        result = engine.step(state)
        assert list(result.state.shared.qud) == [q_dest]

    def test_empty_qud_is_fatal(self, engine, q_price):
        state = engine.initial_state(plan=[Respond(q_price)])
        with pytest.raises(EmptyStackError):
            engine.step(state)

    def test_question_not_under_discussion(self, engine, q_price, q_dest):
        state = engine.initial_state(plan=[Respond(q_price)])
        state.shared.qud.push(q_dest)
        with pytest.raises(PlanExecutionError):
            engine.step(state)


class TestIf:
    def test_unknown_condition_asks(self, engine, q_return, q_how):
        state = engine.initial_state(plan=[If(q_return, (Findout(q_how),), ())])
        result = engine.step(state)
        assert result.moves == (Ask(q_return),)

    def test_yes_takes_true_branch(self, engine, q_return, q_how):
        state = engine.initial_state(plan=[If(q_return, (Findout(q_how),), ())])
        state = engine.step(state).state
        result = engine.step(state, [AnswerMove(YesNoAnswer(True))])
        assert result.moves == (Ask(q_how),)
        assert q_return.prop in result.state.shared.committed

    def test_known_negative_takes_false_branch(self, engine, q_return, q_how, q_dest):
        state = engine.initial_state(
            plan=[If(q_return, (Findout(q_how),), (Findout(q_dest),))]
        )
        state.commit(q_return.prop.negated())
        result = engine.step(state)
        assert result.moves == (Ask(q_dest),)


# ─────────────────────────────────────────────────────────────────────────────
# Greet, Quit, user questions
# ─────────────────────────────────────────────────────────────────────────────

class TestUserMoves:
    def test_greet_is_returned(self, engine):
        result = engine.step(engine.initial_state(), [Greet()])
        assert result.moves == (Greet(),)
        assert result.fired == ("integrateGreet",)

    def test_quit_makes_dialogue_terminal(self, engine, q_dest):
        state = engine.step(engine.initial_state(plan=[Findout(q_dest)])).state
        result = engine.step(state, [Quit()])
        assert result.is_terminal
        assert result.state.private.plan.is_empty()
        assert result.state.shared.pending.is_empty()

    def test_user_question_uses_domain_plan(self, domain, prices, q_price, q_dest):
        planned = domain.with_plans({q_price: [Findout(q_dest), Consult(q_price)]})
        engine = DialogueEngine(planned, database=prices)

        state, moves, status = engine.step(engine.initial_state(), [Ask(q_price)])
        assert moves == (Ask(q_dest),)
        assert status is TurnStatus.AWAITING_INPUT
        assert q_price in state.shared.qud

        result = engine.step(state, [_short("paris")])
        assert result.moves == (AnswerMove(PropositionAnswer(Proposition("price", ("p232",)))),)
        assert result.is_terminal

    def test_user_question_without_plan_answers_from_knowledge(self, engine, q_dest):
        state = engine.initial_state()
        state.commit(Proposition("dest", ("paris",)))
        result = engine.step(state, [Ask(q_dest)])
        assert result.moves == (AnswerMove(PropositionAnswer(Proposition("dest", ("paris",)))),)

    def test_repeated_question_is_answered_once(self, engine, q_dest):
        result = engine.step(engine.initial_state(), [Ask(q_dest), Ask(q_dest)])
        assert result.moves == (ICM(IcmKind.ACC_NEG, "?x.dest(x)"),)
        assert result.fired == ("integrateAsk", "integrateAsk")
        assert result.is_terminal

    def test_question_repeated_across_turns(self, engine, q_how, q_price):
        state = engine.step(engine.initial_state(plan=[Findout(q_how)])).state
        state = engine.step(state, [Ask(q_price)]).state
        state = engine.step(state, [Ask(q_price)]).state
        assert list(state.private.agenda) == [Respond(q_price)]

        result = engine.step(state, [_short("train")])
        assert result.moves == (ICM(IcmKind.ACC_NEG, "?x.price(x)"),)
        assert result.is_terminal

    def test_settled_user_question_drops_its_goal(self, engine, domain, q_dest):
        q_depart = WhQuestion.create(domain, "depart")
        state = engine.step(engine.initial_state(plan=[Findout(q_dest)])).state
        state = engine.step(state, [Ask(q_depart)]).state
        assert Respond(q_depart) in state.private.agenda

        result = engine.step(state, [_short("paris")])
        assert result.fired == ("integrateAnswer",)
        assert Proposition("depart", ("paris",)) in result.state.shared.committed
        assert result.state.private.agenda.is_empty()
        assert result.moves == (Ask(q_dest),)

        result = engine.step(result.state, [_short("london")])
        assert result.moves == ()
        assert result.is_terminal
        assert Proposition("dest", ("london",)) in result.state.shared.committed


# ─────────────────────────────────────────────────────────────────────────────
# Bounds and reading selection
# ─────────────────────────────────────────────────────────────────────────────

class TestLimits:
    def test_plan_step_limit(self, domain, q_return, q_dest, q_how):
        engine = DialogueEngine(domain, max_plan_steps=1)
        state = engine.initial_state(plan=[Raise(q_return), Findout(q_how)])
        with pytest.raises(IterationLimitError):
            engine.step(state)

    def test_rule_firing_limit(self, domain):
        engine = DialogueEngine(domain, max_rule_firings=1)
        with pytest.raises(IterationLimitError):
            engine.step(engine.initial_state(), [Greet(), Greet()])


class TestSelectReading:
    def test_prefers_relevant_answer(self, engine, q_dest):
        state = engine.step(engine.initial_state(plan=[Findout(q_dest)])).state
        ask = Ask(WhQuestion.create(engine.domain, "how"))
        answer = _short("paris")
        assert engine.select_reading(state, [ask, answer]) == answer

    def test_falls_back_to_first(self, engine):
        state = engine.initial_state()
        first, second = _short("paris"), _short("train")
        assert engine.select_reading(state, [first, second]) == first
