"""
Optimistic update helpers.

An optimistic update changes local state first, then asks the backing store to
confirm it. If the store fails, the local change is undone with the value that
was saved before applying it, and the error propagates to the caller.
"""
import logging

from .exceptions import GerezimError

logger = logging.getLogger(__name__)


def optimistic_update(apply, persist, rollback):
    """
    Run an optimistic update.

    Args:
        apply: callable making the local change; returns whatever is needed to undo it
        persist: callable writing the change to the backing store
        rollback: callable receiving apply()'s return value, restoring local state

    Returns:
        The return value of persist()

    Raises:
        GerezimError: after rollback, when persist() fails
    """
    previous = apply()
    try:
        return persist()
    except GerezimError:
        logger.debug("Optimistic update failed, rolling back local state")
        rollback(previous)
        raise


def set_attribute_optimistically(obj, attr, value, persist):
    """Set obj.attr = value locally, persist it, and restore the old value on failure"""
    def apply():
        previous = getattr(obj, attr)
        setattr(obj, attr, value)
        return previous

    def rollback(previous):
        setattr(obj, attr, previous)

    return optimistic_update(apply, persist, rollback)


def toggle_membership_optimistically(items, member, persist):
    """
    Add member to (or remove it from) the set `items` locally, then persist.

    persist receives the new membership state (True when member was added).
    """
    was_member = member in items

    def apply():
        if was_member:
            items.discard(member)
        else:
            items.add(member)
        return was_member

    def rollback(previous):
        if previous:
            items.add(member)
        else:
            items.discard(member)

    return optimistic_update(apply, lambda: persist(not was_member), rollback)
