from __future__ import annotations

from collections import defaultdict
from typing import Any, Optional

from questlines.core.errors import QuestlineError


# Structural checks on a questline document:
# - L_DUPLICATE_QUEST_ID: two quests share an id
# - L_SELF_DEPENDENCY: dependency from a quest to itself
# - L_DUPLICATE_DEPENDENCY: same (from, to) pair listed twice
# - L_DANGLING_DEPENDENCY: dependency references a quest that does not exist
# - L_CYCLE_DETECTED: multi-hop dependency cycle (allowed by the editor, reported here)
# - L_COMPLETED_TOO_EARLY: quest marked completed while a prerequisite or objective is not


def lint_questline(questline: dict[str, Any], *, file: Optional[str] = None) -> list[QuestlineError]:
    """Lint a questline dict (best effort; works on unnormalized input)."""

    quests = questline.get("quests")
    deps = questline.get("dependencies")
    if not isinstance(quests, list):
        quests = []
    if not isinstance(deps, list):
        deps = []

    errors: list[QuestlineError] = []

    quest_by_id: dict[str, dict[str, Any]] = {}
    for i, raw in enumerate(quests):
        if not isinstance(raw, dict) or not isinstance(raw.get("id"), str):
            continue
        qid = raw["id"]
        if qid in quest_by_id:
            errors.append(
                QuestlineError(
                    code="L_DUPLICATE_QUEST_ID",
                    message=f"duplicate quest id: {qid}",
                    file=file,
                    path=f"quests[{i}].id",
                )
            )
            continue
        quest_by_id[qid] = raw

    edges: list[tuple[str, str]] = []
    seen_edges: set[tuple[str, str]] = set()
    for i, raw in enumerate(deps):
        if not isinstance(raw, dict):
            continue
        src, dst = raw.get("from"), raw.get("to")
        if not isinstance(src, str) or not isinstance(dst, str):
            continue
        path = f"dependencies[{i}]"
        if src == dst:
            errors.append(
                QuestlineError(
                    code="L_SELF_DEPENDENCY",
                    message=f"quest depends on itself: {src}",
                    file=file,
                    path=path,
                )
            )
            continue
        if (src, dst) in seen_edges:
            errors.append(
                QuestlineError(
                    code="L_DUPLICATE_DEPENDENCY",
                    message=f"duplicate dependency: {src} -> {dst}",
                    file=file,
                    path=path,
                )
            )
            continue
        seen_edges.add((src, dst))
        missing = [x for x in (src, dst) if x not in quest_by_id]
        if missing:
            errors.append(
                QuestlineError(
                    code="L_DANGLING_DEPENDENCY",
                    message=f"dependency references unknown quest id(s): {', '.join(missing)}",
                    file=file,
                    path=path,
                )
            )
            continue
        edges.append((src, dst))

    dependents: dict[str, list[str]] = defaultdict(list)
    prereqs: dict[str, list[str]] = defaultdict(list)
    for src, dst in edges:
        dependents[src].append(dst)
        prereqs[dst].append(src)

    for qid, msg in _detect_cycles(list(quest_by_id.keys()), dependents):
        errors.append(
            QuestlineError(
                code="L_CYCLE_DETECTED",
                message=msg,
                file=file,
                path=f"quests[{qid}]",
            )
        )

    for qid, raw in quest_by_id.items():
        if raw.get("completed") is not True:
            continue
        open_prereqs = [p for p in prereqs.get(qid, []) if quest_by_id[p].get("completed") is not True]
        objectives = raw.get("objectives")
        open_objectives = [
            o for o in (objectives if isinstance(objectives, list) else [])
            if isinstance(o, dict) and o.get("completed") is not True
        ]
        if open_prereqs or open_objectives:
            errors.append(
                QuestlineError(
                    code="L_COMPLETED_TOO_EARLY",
                    message=(
                        f"quest is completed with {len(open_prereqs)} open prerequisite(s) "
                        f"and {len(open_objectives)} open objective(s)"
                    ),
                    file=file,
                    path=f"quests[{qid}].completed",
                )
            )

    return _sorted(errors)


def _detect_cycles(ids: list[str], dependents: dict[str, list[str]]) -> list[tuple[str, str]]:
    WHITE, GRAY, BLACK = 0, 1, 2
    state: dict[str, int] = {qid: WHITE for qid in ids}
    emitted: set[frozenset[str]] = set()
    out: list[tuple[str, str]] = []

    for start in ids:
        if state[start] != WHITE:
            continue
        # Iterative DFS: (node, iterator over its dependents).
        stack: list[str] = [start]
        iters = [iter(dependents.get(start, []))]
        state[start] = GRAY
        while stack:
            nxt = next(iters[-1], None)
            if nxt is None:
                state[stack.pop()] = BLACK
                iters.pop()
                continue
            if state.get(nxt) == GRAY:
                cycle = stack[stack.index(nxt):] + [nxt]
                key = frozenset(cycle)
                if key not in emitted:
                    emitted.add(key)
                    out.append((stack[-1], "dependency cycle detected: " + " -> ".join(cycle)))
            elif state.get(nxt) == WHITE:
                state[nxt] = GRAY
                stack.append(nxt)
                iters.append(iter(dependents.get(nxt, [])))

    return out


def _sorted(errors: list[QuestlineError]) -> list[QuestlineError]:
    return sorted(errors, key=lambda e: (e.file or "", e.path or "", e.code))
