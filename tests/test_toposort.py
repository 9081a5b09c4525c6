"""Tests for the topological sort of entity keys."""

from pytest import raises

from blockconfig._toposort import find_cycle, topological_sort
from blockconfig.exceptions import CycleError


def _assert_respects(order, graph):
    position = {key: i for i, key in enumerate(order)}
    for key, dependencies in graph.items():
        for dependency in dependencies:
            assert position[dependency] < position[key]


def test_every_key_comes_after_its_dependencies():
    # given
    graph = {
        "app": {"database", "var.host"},
        "database": {"var.host", "var.port"},
        "var.host": {"var.base"},
        "var.port": set(),
        "var.base": set(),
        "logging": set(),
    }

    # when
    order = topological_sort(graph.keys(), graph)

    # then
    assert sorted(order) == sorted(graph)
    _assert_respects(order, graph)


def test_independent_keys_keep_their_order():
    # given
    graph = {"c": set(), "a": set(), "b": set()}

    # when
    order = topological_sort(["c", "a", "b"], graph)

    # then
    assert order == ["c", "a", "b"]


def test_ties_are_broken_by_key_order():
    # given
    graph = {"b": {"x"}, "a": {"x"}, "x": set()}

    # when
    order = topological_sort(["b", "a", "x"], graph)

    # then
    assert order == ["x", "b", "a"]


def test_dependencies_on_unknown_keys_are_ignored():
    # given
    graph = {"a": {"elsewhere"}, "b": {"a"}}

    # when
    order = topological_sort(["a", "b"], graph)

    # then
    assert order == ["a", "b"]


def test_self_dependency_is_ignored():
    # given
    graph = {"a": {"a"}}

    # when
    order = topological_sort(["a"], graph)

    # then
    assert order == ["a"]


def test_two_key_cycle():
    # given
    graph = {"a": {"b"}, "b": {"a"}}

    # when
    with raises(CycleError) as excinfo:
        topological_sort(["a", "b"], graph)

    # then
    assert excinfo.value.cycle == ["a", "b", "a"]


def test_three_key_cycle_behind_an_independent_key():
    # given
    graph = {"x": set(), "a": {"b"}, "b": {"c"}, "c": {"a"}, "d": {"a"}}

    # when
    with raises(CycleError) as excinfo:
        topological_sort(["x", "a", "b", "c", "d"], graph)

    # then
    assert excinfo.value.cycle == ["a", "b", "c", "a"]
    assert str(excinfo.value) == "Circular dependency detected: a -> b -> c -> a"


def test_key_depending_on_a_cycle_is_not_part_of_it():
    # given
    graph = {"d": {"a"}, "a": {"b"}, "b": {"a"}}

    # when
    cycle = find_cycle(["d", "a", "b"], graph)

    # then
    assert cycle == ["a", "b", "a"]


def test_find_cycle_returns_none_for_acyclic_graph():
    # given
    graph = {"a": {"b"}, "b": {"c"}, "c": set()}

    # when
    cycle = find_cycle(["a", "b", "c"], graph)

    # then
    assert cycle is None
