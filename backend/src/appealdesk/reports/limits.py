"""Quota on archive downloads that may stream at the same time."""

from ..logging import get_context_logger

logger = get_context_logger(__name__)


class SlotLease:
    """A held archive slot. Releasing it more than once is a no-op."""

    def __init__(self, slots: "ArchiveSlots"):
        self._slots = slots
        self._released = False

    @property
    def released(self) -> bool:
        return self._released

    def release(self) -> None:
        if self._released:
            return
        self._released = True
        self._slots._release()


class ArchiveSlots:
    """Counts in-flight archive streams against a fixed limit.

    Only the event loop thread touches the counter, so no lock is taken.
    A limit of 0 disables the quota.
    """

    def __init__(self, limit: int):
        if limit < 0:
            raise ValueError("limit must be >= 0")
        self.limit = limit
        self._in_use = 0

    @property
    def in_use(self) -> int:
        return self._in_use

    @property
    def available(self) -> int | None:
        """Free slots, or None when unlimited."""
        if not self.limit:
            return None
        return self.limit - self._in_use

    def try_acquire(self) -> SlotLease | None:
        """Take a slot if one is free.

        Returns:
            A lease to release when the stream ends, or None if all slots are taken
        """
        if self.limit and self._in_use >= self.limit:
            logger.warning(
                "Archive quota exhausted",
                extra={"in_use": self._in_use, "limit": self.limit},
            )
            return None
        self._in_use += 1
        return SlotLease(self)

    def _release(self) -> None:
        self._in_use -= 1
