import pytest

from appforge.services.analysis.intent_classifier import classify_message, is_generation_intent


@pytest.mark.parametrize("message", ["", "hi", "app pls", None])
def test_short_messages_are_conversation(message):
    decision = classify_message(message)

    assert not decision.is_generation
    assert decision.rule == "too_short"


@pytest.mark.parametrize(
    "message",
    [
        "hey, build me a landing page",
        "What is a SaaS anyway",
        "Can you explain how routing works",
        "explain the generated folder structure",
        "please fix the bug in the header",
        "Would a dashboard work for this?",
    ],
)
def test_conversational_patterns_win(message):
    decision = classify_message(message)

    assert not decision.is_generation
    assert decision.rule == "conversational"


@pytest.mark.parametrize(
    "message,keyword",
    [
        ("Build a landing page for my bakery", "landing page"),
        ("I need a dashboard to track sales", "dashboard"),
        ("A SaaS for invoicing freelancers", "saas"),
    ],
)
def test_generation_keywords(message, keyword):
    decision = classify_message(message)

    assert decision.is_generation
    assert decision.rule == "keyword"
    assert decision.matched == keyword


def test_loose_pattern_match():
    decision = classify_message("Make a website for my dog walking business")

    assert decision.is_generation
    assert decision.rule == "pattern"


def test_default_is_conversation():
    decision = classify_message("The weather is lovely today")

    assert not decision.is_generation
    assert decision.rule == "default"


def test_boolean_helper():
    assert is_generation_intent("Create a portfolio for my photography")
    assert not is_generation_intent("thanks, looks great")
