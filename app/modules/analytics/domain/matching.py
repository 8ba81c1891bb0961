"""
Path-prefix matching between storage keys and CDN request paths.

A request belongs to the object stored under key K when its path is exactly
"/K" or starts with "/K/". The second form covers on-the-fly transformations
served under the original key, e.g. "/u1/img.jpg/format=webp,width=100".
Keys are compared literally and case-sensitively; characters like "." or "%"
in a key have no special meaning.
"""

from typing import Iterable

from sqlalchemy import ColumnElement, false, func, or_


def key_to_path(s3_key: str) -> str:
    return f"/{s3_key}"


def key_path_clause(column, s3_key: str) -> ColumnElement[bool]:
    """
    SQL predicate for a single key.

    The prefix test compares a leading substring instead of using LIKE, which
    ignores ASCII case on SQLite and MySQL and treats % and _ as wildcards.
    """
    base = key_to_path(s3_key)
    prefix = base + "/"
    return or_(column == base, func.substr(column, 1, len(prefix)) == prefix)


def keys_path_clause(column, s3_keys: Iterable[str]) -> ColumnElement[bool]:
    """OR of the per-key predicates. An empty key set matches nothing."""
    clauses = [key_path_clause(column, key) for key in s3_keys]
    if not clauses:
        return false()
    return or_(*clauses)
