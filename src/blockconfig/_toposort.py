"""Provides topological_sort(), which orders entity keys so that every key comes
after the keys it depends on.

Approach
--------

Kahn's algorithm is used. Keys that depend on nothing are placed first, in the order
they were given, followed by the keys whose dependencies have all been placed, and so
on. Ties are broken by the given order, so when nothing constrains two keys they keep
the order in which they appear in the document.

If some keys are never placed, they lie on or behind a cycle. A depth-first search
then finds one cycle and reports it as a closed path, e.g. ``a -> b -> a``. The search
is only run when the sort fails.

"""

from collections import deque
from typing import Dict, Iterable, List, Optional

from .exceptions import CycleError
from .types import DependencyGraph


def topological_sort(keys: Iterable[str], graph: DependencyGraph) -> List[str]:
    """Order keys so that each key comes after all of its dependencies.

    Parameters
    ----------
    keys : Iterable[str]
        The keys, in the order used to break ties.
    graph : DependencyGraph
        Maps each key to the set of keys it depends on. Dependencies that are not
        among ``keys`` are ignored.

    Raises
    ------
    CycleError
        If the dependencies form a cycle.

    """
    keys = list(keys)
    known = set(keys)

    in_degree = {key: 0 for key in keys}
    dependents: Dict[str, List[str]] = {key: [] for key in keys}
    for key in keys:
        for dependency in graph.get(key, ()):
            if dependency in known and dependency != key:
                in_degree[key] += 1
                dependents[dependency].append(key)

    # dependents are visited in key order so that ties are deterministic
    position = {key: i for i, key in enumerate(keys)}
    for dependency in dependents:
        dependents[dependency].sort(key=position.__getitem__)

    queue = deque(key for key in keys if in_degree[key] == 0)
    order = []
    while queue:
        key = queue.popleft()
        order.append(key)
        for dependent in dependents[key]:
            in_degree[dependent] -= 1
            if in_degree[dependent] == 0:
                queue.append(dependent)

    if len(order) < len(keys):
        cycle = find_cycle(keys, graph)
        # a failed sort always leaves a cycle behind
        assert cycle is not None
        raise CycleError(cycle)

    return order


def find_cycle(keys: Iterable[str], graph: DependencyGraph) -> Optional[List[str]]:
    """Find a cycle in the graph, if there is one.

    Returns
    -------
    Optional[List[str]]
        The cycle as a closed path that starts and ends with the same key, such as
        ``["a", "b", "a"]``, or None if the graph has no cycle.

    """
    keys = list(keys)
    known = set(keys)

    visited = set()
    on_stack = set()
    parent: Dict[str, str] = {}

    def dependencies_of(key):
        # sorted, so that the reported cycle does not depend on set ordering
        return sorted(d for d in graph.get(key, ()) if d in known and d != key)

    for start in keys:
        if start in visited:
            continue

        # iterative DFS; each stack entry is a key and its remaining dependencies
        visited.add(start)
        on_stack.add(start)
        stack = [(start, iter(dependencies_of(start)))]

        while stack:
            node, remaining = stack[-1]
            target = next(remaining, None)

            if target is None:
                on_stack.discard(node)
                stack.pop()
            elif target in on_stack:
                return _close_cycle(node, target, parent)
            elif target not in visited:
                visited.add(target)
                on_stack.add(target)
                parent[target] = node
                stack.append((target, iter(dependencies_of(target))))

    return None


def _close_cycle(node: str, target: str, parent: Dict[str, str]) -> List[str]:
    """Walk back from node to target along parent pointers and close the loop."""
    path = [node]
    while path[-1] != target:
        path.append(parent[path[-1]])
    path.reverse()
    path.append(target)
    return path
