"""Tests for the evaluation context that entities are published into."""

from pytest import raises

from blockconfig._context import EvaluationContext
from blockconfig.exceptions import Error
from blockconfig.values import ObjectValue


def test_seeds_and_functions_are_bound():
    # given
    context = EvaluationContext({"region": "eu"}, {"env": len})

    # when
    bindings = context.bindings()

    # then
    assert bindings["region"] == "eu"
    assert bindings["env"] is len
    assert bindings["null"] is None


def test_published_name_cannot_be_published_again():
    # given
    context = EvaluationContext()
    context.publish("database", {"host": "db"})

    # when / then
    with raises(Error):
        context.publish("database", {"host": "other"})


def test_seed_can_be_shadowed_once():
    # given
    context = EvaluationContext({"region": "eu"})

    # when
    context.publish("region", "us")

    # then
    assert context.bindings()["region"] == "us"


def test_members_accumulate():
    # given
    context = EvaluationContext()

    # when
    context.publish_member("service", "api", {"port": 1})
    before = context.bindings()["service"]
    context.publish_member("service", "web", {"port": 2})

    # then
    assert list(before) == ["api"]
    assert context.bindings()["service"] == ObjectValue(
        {"api": ObjectValue({"port": 1}), "web": ObjectValue({"port": 2})}
    )


def test_member_cannot_be_published_twice():
    # given
    context = EvaluationContext()
    context.publish_variable("base", "a")

    # when / then
    with raises(Error):
        context.publish_variable("base", "b")


def test_member_cannot_be_added_to_a_non_object():
    # given
    context = EvaluationContext()
    context.publish("mount", ("a", "b"))

    # when / then
    with raises(Error):
        context.publish_member("mount", "x", 1)
