"""Decide which syntax nodes are marked for instrumentation."""
from __future__ import annotations

import ast
from itertools import chain
from typing import Optional

from .comments import Comment, CommentMap

MARKER: str = "?"


def is_marker(comment: Comment, marker: str = MARKER) -> bool:
    return comment.text.strip().startswith(marker)


class MarkerScanner:
    """Selects nodes whose own comments, or their parent's, carry the marker.

    The parent check lets an expression pick up the marker written on the
    statement that contains it. It never reaches further up or down the tree.
    """

    def __init__(self, comments: CommentMap, marker: str = MARKER) -> None:
        self.comments = comments
        self.marker = marker

    def is_selected(self, node: ast.AST, parent: Optional[ast.AST] = None) -> bool:
        candidates = self.comments.attached(node)
        if parent is not None:
            candidates = chain(candidates, self.comments.attached(parent))
        return any(is_marker(c, self.marker) for c in candidates)


__all__ = ["MARKER", "MarkerScanner", "is_marker"]
