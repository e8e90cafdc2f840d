from __future__ import annotations

from typing import Iterable

from .models import Comment, CommentNode


def build_comment_forest(comments: Iterable[Comment]) -> list[CommentNode]:
    """Assemble comments, already ordered by ``created_at``, into reply trees.

    A comment whose parent is absent from ``comments`` becomes a root. Roots and
    every child list keep the input order.
    """

    ordered = list(comments)
    nodes = {comment.id: CommentNode(comment=comment) for comment in ordered}
    roots: list[CommentNode] = []
    for comment in ordered:
        node = nodes[comment.id]
        parent = nodes.get(comment.parent_id) if comment.parent_id else None
        if parent is None or parent is node:
            roots.append(node)
        else:
            parent.children.append(node)
    return roots
