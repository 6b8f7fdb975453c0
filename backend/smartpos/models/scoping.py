# Overview: Status filter every read of a soft-deletable model must pass through.

from __future__ import annotations


def active_scope(query, model, *, include_inactive: bool):
    """
    Restrict `query` to rows of `model` whose is_active flag is set.

    include_inactive is keyword-only with no default so every call site
    states which rows it wants; soft-deleted rows never leak by omission.
    """
    if include_inactive:
        return query
    return query.filter(model.is_active.is_(True))
