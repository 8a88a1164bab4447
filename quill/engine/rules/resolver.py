"""Evaluation order for a set of rules.

Every rule adds edges `source -> target` plus one edge from each attribute its
expression reads. Attributes that are never a target are leaves (raw inputs)
and need no slot in the order. Trigger rules add no edges.
"""
from __future__ import annotations

import heapq
import logging
from typing import Iterable

from .base_models import Rule


class CycleError(ValueError):
    """Raised when rules depend on each other in a loop.

    Attributes:
        cycle: Attribute names along the loop, with the first name repeated
            at the end.
    """

    def __init__(self, cycle: list[str]):
        self.cycle = cycle
        super().__init__(f"Rule dependency cycle: {' -> '.join(cycle)}")


def dependency_graph(rules: Iterable[Rule]) -> tuple[dict[str, set[str]], dict[str, int]]:
    """Builds the target dependency graph.

    Returns:
        A mapping of each target to the targets that depend on it, and the
        first declaration index of every target (used to break ties).
    """
    dependents: dict[str, set[str]] = {}
    first_seen: dict[str, int] = {}
    reads: list[tuple[str, set[str]]] = []
    for rule in rules:
        if rule.target not in first_seen or rule.seq < first_seen[rule.target]:
            first_seen[rule.target] = rule.seq
        dependents.setdefault(rule.target, set())
        if not rule.is_trigger:
            reads.append((rule.target, rule.identifiers()))
    for target, identifiers in reads:
        for name in identifiers:
            if name in dependents:
                dependents[name].add(target)
    return dependents, first_seen


def resolve(rules: Iterable[Rule]) -> list[str]:
    """Orders targets so that every target follows the targets it reads.

    Uses Kahn's algorithm; among targets that are ready at the same time, the
    one declared first goes first.

    Raises:
        CycleError: if the rules contain a genuine dependency cycle.
    """
    dependents, first_seen = dependency_graph(rules)
    indegree = {target: 0 for target in dependents}
    for edges in dependents.values():
        for target in edges:
            indegree[target] += 1
    ready = [(first_seen[t], t) for t, degree in indegree.items() if degree == 0]
    heapq.heapify(ready)
    order: list[str] = []
    while ready:
        _, target = heapq.heappop(ready)
        order.append(target)
        for dependent in dependents[target]:
            indegree[dependent] -= 1
            if indegree[dependent] == 0:
                heapq.heappush(ready, (first_seen[dependent], dependent))
    if len(order) < len(indegree):
        remaining = {t for t, degree in indegree.items() if degree > 0}
        cycle = find_cycle(dependents, remaining)
        logging.error("Dependency cycle among rules: %s", " -> ".join(cycle))
        raise CycleError(cycle)
    return order


def find_cycle(dependents: dict[str, set[str]], nodes: set[str]) -> list[str]:
    """Returns one concrete cycle within `nodes`.

    Every node left over by Kahn's algorithm still has a predecessor among the
    leftovers, so walking predecessors from any of them must revisit a node.
    """
    predecessors: dict[str, list[str]] = {n: [] for n in nodes}
    for source, targets in dependents.items():
        if source not in nodes:
            continue
        for target in targets & nodes:
            predecessors[target].append(source)
    walk: list[str] = []
    seen: dict[str, int] = {}
    node = min(nodes)
    while node not in seen:
        seen[node] = len(walk)
        walk.append(node)
        node = min(predecessors[node])
    loop = walk[seen[node] :]
    loop.reverse()
    return loop + [loop[0]]
