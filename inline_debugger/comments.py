"""Attach source comments to statement nodes.

``ast`` drops comments, so they are recovered from the token stream and
attached the way a comment-preserving parser would:

* an inline comment (code precedes it on its line) trails the innermost
  statement owning that line;
* a standalone comment leads the outermost statement starting on the next
  line that holds code.

Expressions never own comments.
"""
from __future__ import annotations

import ast
import io
import tokenize
from dataclasses import dataclass
from typing import Dict, Iterator, List, Sequence, Set, Tuple

_NON_CODE_TOKENS = {
    tokenize.COMMENT,
    tokenize.NL,
    tokenize.NEWLINE,
    tokenize.INDENT,
    tokenize.DEDENT,
    tokenize.ENCODING,
    tokenize.ENDMARKER,
}


@dataclass(frozen=True)
class Comment:
    text: str  # without the leading '#'
    line: int
    standalone: bool


def scan_comments(source: str) -> Tuple[List[Comment], Set[int]]:
    """Return the comments in ``source`` and the set of lines holding code."""
    comments: List[Comment] = []
    code_lines: Set[int] = set()
    readline = io.StringIO(source).readline
    for tok in tokenize.generate_tokens(readline):
        if tok.type == tokenize.COMMENT:
            before = tok.line[: tok.start[1]]
            comments.append(
                Comment(text=tok.string[1:], line=tok.start[0], standalone=not before.strip())
            )
        elif tok.type not in _NON_CODE_TOKENS:
            code_lines.update(range(tok.start[0], tok.end[0] + 1))
    return comments, code_lines


def _first_line(node: ast.stmt) -> int:
    decorators = getattr(node, "decorator_list", None) or []
    return min([node.lineno] + [d.lineno for d in decorators])


def _owned_lines(node: ast.stmt) -> range:
    body = getattr(node, "body", None)
    if isinstance(body, list) and body and isinstance(body[0], ast.stmt):
        # compound statement: header lines only
        return range(node.lineno, max(node.lineno, body[0].lineno - 1) + 1)
    end = getattr(node, "end_lineno", None) or node.lineno
    return range(node.lineno, end + 1)


def _iter_statements(tree: ast.AST) -> Iterator[ast.stmt]:
    """Pre-order walk over statements, parents before children."""
    stack: List[ast.AST] = [tree]
    while stack:
        node = stack.pop()
        if isinstance(node, ast.stmt):
            yield node
        stack.extend(reversed(list(ast.iter_child_nodes(node))))


class CommentMap:
    """Comments attached to the statements of one parsed module."""

    def __init__(self, tree: ast.AST, source: str) -> None:
        self._attached: Dict[int, List[Comment]] = {}
        comments, code_lines = scan_comments(source)
        if not comments:
            return

        owner_by_line: Dict[int, ast.stmt] = {}
        starter_by_line: Dict[int, ast.stmt] = {}
        for stmt in _iter_statements(tree):
            for line in _owned_lines(stmt):
                # later (deeper or following) statements win the line
                owner_by_line[line] = stmt
            starter_by_line.setdefault(_first_line(stmt), stmt)

        last_line = max(code_lines) if code_lines else 0
        for comment in comments:
            if comment.standalone:
                target = None
                line = comment.line + 1
                while line <= last_line:
                    if line in code_lines:
                        target = starter_by_line.get(line)
                        break
                    line += 1
            else:
                target = owner_by_line.get(comment.line)
            if target is not None:
                self._attached.setdefault(id(target), []).append(comment)

    def attached(self, node: ast.AST) -> Sequence[Comment]:
        return self._attached.get(id(node), ())

    def __len__(self) -> int:
        return sum(len(v) for v in self._attached.values())


__all__ = ["Comment", "CommentMap", "scan_comments"]
