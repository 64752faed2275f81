from __future__ import annotations

from collections import Counter
from dataclasses import dataclass

from domain.models import Story, is_valid_parent


@dataclass(frozen=True)
class StoryIssue:
    code: str
    node_id: str
    message: str


def find_story_issues(story: Story) -> list[StoryIssue]:
    issues: list[StoryIssue] = []
    issues.extend(_check_keys(story))
    issues.extend(_check_references(story))
    issues.extend(_check_membership(story))
    issues.extend(_check_parent_types(story))
    issues.extend(_check_acyclic(story))
    return issues


def is_valid_story(story: Story) -> bool:
    return not find_story_issues(story)


def _check_keys(story: Story) -> list[StoryIssue]:
    return [
        StoryIssue("key_mismatch", key, f"Map key {key} holds node {node.id}")
        for key, node in story.node_map.items()
        if key != node.id
    ]


def _check_references(story: Story) -> list[StoryIssue]:
    issues: list[StoryIssue] = []
    for node_id in story.order:
        if node_id not in story.node_map:
            issues.append(StoryIssue("dangling_id", node_id, f"Top-level id {node_id} is unknown"))
    for parent_id, child_ids in story.children_order.items():
        if parent_id not in story.node_map:
            issues.append(
                StoryIssue("dangling_id", parent_id, f"Child list owner {parent_id} is unknown")
            )
        for child_id in child_ids:
            if child_id not in story.node_map:
                issues.append(
                    StoryIssue("dangling_id", child_id, f"Child id {child_id} under {parent_id} is unknown")
                )
    return issues


def _check_membership(story: Story) -> list[StoryIssue]:
    issues: list[StoryIssue] = []
    listed: dict[str, list[str]] = {}
    for parent_id, child_ids in story.children_order.items():
        for child_id in child_ids:
            listed.setdefault(child_id, []).append(parent_id)
    top_counts = Counter(story.order)

    for node_id, node in story.node_map.items():
        parents = listed.get(node_id, [])
        if node.parent_id is None:
            if top_counts[node_id] != 1:
                issues.append(
                    StoryIssue("top_level", node_id, f"Top-level node {node_id} listed {top_counts[node_id]} times")
                )
            if parents:
                issues.append(
                    StoryIssue("membership", node_id, f"Top-level node {node_id} also listed under {parents}")
                )
            continue
        if top_counts[node_id]:
            issues.append(
                StoryIssue("top_level", node_id, f"Nested node {node_id} appears in the top-level order")
            )
        if parents != [node.parent_id]:
            issues.append(
                StoryIssue(
                    "membership",
                    node_id,
                    f"Node {node_id} with parent {node.parent_id} is listed under {parents}",
                )
            )
    return issues


def _check_parent_types(story: Story) -> list[StoryIssue]:
    issues: list[StoryIssue] = []
    for node_id, node in story.node_map.items():
        parent = story.node_map.get(node.parent_id) if node.parent_id else None
        if node.parent_id and parent is None:
            issues.append(
                StoryIssue("dangling_parent", node_id, f"Parent {node.parent_id} of {node_id} is unknown")
            )
            continue
        parent_type = parent.type if parent is not None else None
        if not is_valid_parent(node.type, parent_type):
            issues.append(
                StoryIssue(
                    "invalid_parent",
                    node_id,
                    f"A {node.type} cannot be placed under {parent_type or 'top level'}",
                )
            )
    return issues


def _check_acyclic(story: Story) -> list[StoryIssue]:
    issues: list[StoryIssue] = []
    limit = len(story.node_map)
    for node_id in story.node_map:
        current = story.node_map[node_id].parent_id
        steps = 0
        seen = {node_id}
        while current is not None and current in story.node_map:
            if current in seen or steps > limit:
                issues.append(StoryIssue("cycle", node_id, f"Parent chain of {node_id} loops"))
                break
            seen.add(current)
            steps += 1
            current = story.node_map[current].parent_id
    return issues
