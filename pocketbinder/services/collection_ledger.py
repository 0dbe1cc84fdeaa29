"""
Collection ledger.

The single source of truth for what the signed-in user owns. The ledger
holds an immutable LedgerSnapshot and publishes a new one to subscribers
every time it refreshes.

Write protocol:
1. Resolve the session identity; no identity means the write is rejected.
2. Issue the write and wait for the backend to acknowledge it.
3. Refetch the whole ledger and publish it.

Nothing is applied locally before step 3. A rejected write leaves the
published snapshot exactly as it was. Writes on one ledger run one at a
time, and refreshes wait their turn behind them, so a refetch never
overlaps a write from the same ledger and an older read is never published
after a newer one.
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable

from pocketbinder.models.collection import (
    EMPTY_SNAPSHOT,
    CollectionStats,
    LedgerSnapshot,
)
from pocketbinder.models.failure import LedgerUnavailableError, MutationRejectedError
from pocketbinder.services.ledger_backend import LedgerBackend, LedgerBackendError
from pocketbinder.services.session import SessionProvider

logger = logging.getLogger(__name__)

SnapshotListener = Callable[[LedgerSnapshot], None]


class CollectionLedger:
    """
    Observable owned-quantity ledger for the current session.

    Subscribers receive complete snapshots in publish order. Reads
    (contains, quantity_of, stats) always answer from the latest snapshot.
    """

    def __init__(self, backend: LedgerBackend, session: SessionProvider) -> None:
        self.backend = backend
        self.session = session
        self._snapshot: LedgerSnapshot = EMPTY_SNAPSHOT
        self._listeners: list[SnapshotListener] = []
        self._lock = asyncio.Lock()

    # --- Observation ---

    @property
    def snapshot(self) -> LedgerSnapshot:
        return self._snapshot

    def subscribe(self, listener: SnapshotListener) -> Callable[[], None]:
        """
        Register a listener for snapshot changes.

        The listener is called with the current snapshot right away, then
        with every later snapshot. Returns a function that unsubscribes.
        """
        self._listeners.append(listener)
        self._deliver(listener, self._snapshot)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _deliver(self, listener: SnapshotListener, snapshot: LedgerSnapshot) -> None:
        try:
            listener(snapshot)
        except Exception:
            logger.exception("Ledger listener %r failed", listener)

    def _publish(self, snapshot: LedgerSnapshot) -> None:
        self._snapshot = snapshot
        for listener in list(self._listeners):
            self._deliver(listener, snapshot)

    # --- Reads ---

    def contains(self, card_key: str) -> bool:
        """Check if the current snapshot owns at least one copy of the card."""
        return self._snapshot.contains(card_key)

    def quantity_of(self, card_key: str) -> int:
        """Copies of the card in the current snapshot, 0 if absent."""
        return self._snapshot.quantity_of(card_key)

    def owned_keys(self) -> frozenset[str]:
        return self._snapshot.owned_keys()

    def stats(self) -> CollectionStats:
        return self._snapshot.stats()

    # --- Refresh ---

    async def refresh(self) -> LedgerSnapshot:
        """
        Refetch the ledger for the current identity and publish it.

        With no identity, publishes an empty snapshot (an anonymous session
        owns nothing).

        Raises:
            LedgerUnavailableError: If the backend read fails. An empty
                snapshot is published first, replacing the old one.
        """
        async with self._lock:
            return await self._refresh_locked()

    async def _refresh_locked(self) -> LedgerSnapshot:
        user_id = self.session.current_user_id()
        if not user_id:
            self._publish(EMPTY_SNAPSHOT)
            return self._snapshot

        try:
            rows = await self.backend.select_all(user_id)
        except LedgerBackendError as e:
            logger.warning("Failed to load ledger for %s: %s", user_id, e)
            self._publish(LedgerSnapshot(user_id=user_id))
            raise LedgerUnavailableError(user_id, detail=str(e)) from e

        snapshot = LedgerSnapshot(
            user_id=user_id,
            entries=tuple(row.to_entry() for row in rows if row.quantity >= 1),
        )
        self._publish(snapshot)
        return snapshot

    # --- Writes ---

    async def add(self, card_key: str, delta: int = 1) -> bool:
        """
        Add copies of a card.

        Increments an existing row by delta, or inserts one with quantity
        delta. Returns False without side effects if there is no identity,
        delta is below 1, or the backend rejects the write.
        """

        async def write(user_id: str) -> None:
            if delta < 1:
                raise MutationRejectedError(card_key, f"delta must be at least 1, got {delta}")
            existing = await self.backend.select_one(user_id, card_key)
            if existing:
                await self.backend.increment_quantity(existing.id, delta)
            else:
                await self.backend.insert(user_id, card_key, delta)

        return await self._mutate("add", card_key, write)

    async def remove(self, card_key: str) -> bool:
        """Delete a card from the ledger regardless of its quantity."""

        async def write(user_id: str) -> None:
            await self.backend.delete(user_id, card_key)

        return await self._mutate("remove", card_key, write)

    async def set_quantity(self, card_key: str, quantity: int) -> bool:
        """
        Overwrite the quantity of a card.

        A quantity of 0 or less removes the card. Setting a card the user
        does not own yet inserts it.
        """
        if quantity <= 0:
            return await self.remove(card_key)

        async def write(user_id: str) -> None:
            existing = await self.backend.select_one(user_id, card_key)
            if existing:
                await self.backend.update_quantity(existing.id, quantity)
            else:
                await self.backend.insert(user_id, card_key, quantity)

        return await self._mutate("set_quantity", card_key, write)

    async def toggle(self, card_key: str) -> bool:
        """Remove the card if owned, otherwise add one copy."""
        if self.contains(card_key):
            return await self.remove(card_key)
        return await self.add(card_key)

    async def decrement(self, card_key: str) -> bool:
        """
        Drop one copy of a card.

        The last copy removes the entry. Returns False if the current
        snapshot does not own the card.
        """
        current = self.quantity_of(card_key)
        if current <= 0:
            return False
        if current == 1:
            return await self.remove(card_key)
        return await self.set_quantity(card_key, current - 1)

    async def _mutate(
        self,
        action: str,
        card_key: str,
        write: Callable[[str], Awaitable[None]],
    ) -> bool:
        """Run one write under the confirm-then-refresh protocol."""
        user_id = self.session.current_user_id()
        try:
            if not user_id:
                raise MutationRejectedError(card_key, "no signed-in user", signed_in=False)

            async with self._lock:
                try:
                    await write(user_id)
                except LedgerBackendError as e:
                    raise MutationRejectedError(card_key, str(e)) from e

                logger.info("%s %s for %s confirmed", action, card_key, user_id)
                try:
                    await self._refresh_locked()
                except LedgerUnavailableError:
                    # The write is durable; the ledger now shows empty until
                    # the next successful refresh.
                    logger.warning("Refresh after %s %s failed", action, card_key)
        except MutationRejectedError as e:
            logger.warning("%s %s rejected: %s", action, card_key, e.detail)
            return False

        return True
