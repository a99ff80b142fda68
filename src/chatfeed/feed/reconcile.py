"""Merge rule for folding an authoritative server batch into a local view."""

from __future__ import annotations

from collections.abc import Sequence

from chatfeed.config import config
from chatfeed.models.messages import Message


def is_optimistic(message: Message, threshold: int | None = None) -> bool:
    """True for locally-created placeholders that the server has not confirmed."""
    if threshold is None:
        threshold = config.feed.optimistic_id_threshold
    return message.id >= threshold


def merge(
    previous: Sequence[Message],
    incoming: Sequence[Message],
    *,
    threshold: int | None = None,
) -> list[Message]:
    """Return ``previous`` with its tail replaced by ``incoming``.

    ``incoming`` is the server's current tail.  A local message survives only
    if it is strictly older than the oldest incoming message, is not repeated
    in the batch, and is a confirmed (non-optimistic) message.  Any gap
    between what survives and the batch is left as is.
    """
    if not previous:
        return list(incoming)
    if not incoming:
        return list(previous)

    if threshold is None:
        threshold = config.feed.optimistic_id_threshold
    cutoff = min(m.time for m in incoming)
    incoming_ids = {m.id for m in incoming}
    retained = [
        m for m in previous
        if m.time < cutoff and m.id not in incoming_ids and m.id < threshold
    ]
    return [*retained, *incoming]
