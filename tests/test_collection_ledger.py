"""Tests for the collection ledger and its write-then-refresh protocol."""

import asyncio

import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from pocketbinder.models.card import Catalog
from pocketbinder.models.collection import LedgerSnapshot
from pocketbinder.models.failure import LedgerUnavailableError
from pocketbinder.models.view import OwnershipMode, ViewCriteria
from pocketbinder.services.catalog_store import parse_catalog
from pocketbinder.services.collection_ledger import CollectionLedger
from pocketbinder.services.ledger_backend import (
    LedgerBackendError,
    LedgerRow,
    SqlLedgerBackend,
)
from pocketbinder.services.session import StaticSession
from pocketbinder.services.view_projector import project
from tests.factories import IMAGE_BASE, make_record


class FlakyBackend:
    """Wraps a real backend and fails or holds the named operations on demand."""

    def __init__(self, inner: SqlLedgerBackend) -> None:
        self.inner = inner
        self.failing: set[str] = set()
        self.held: dict[str, asyncio.Event] = {}
        self.calls: list[str] = []

    async def _call(self, name: str, *args):
        self.calls.append(name)
        if name in self.held:
            await self.held[name].wait()
        if name in self.failing:
            raise LedgerBackendError(f"{name} unavailable")
        return await getattr(self.inner, name)(*args)

    async def select_all(self, user_id: str) -> list[LedgerRow]:
        return await self._call("select_all", user_id)

    async def select_one(self, user_id: str, card_key: str) -> LedgerRow | None:
        return await self._call("select_one", user_id, card_key)

    async def insert(self, user_id: str, card_key: str, quantity: int) -> LedgerRow:
        return await self._call("insert", user_id, card_key, quantity)

    async def update_quantity(self, row_id: int, quantity: int) -> None:
        return await self._call("update_quantity", row_id, quantity)

    async def increment_quantity(self, row_id: int, delta: int) -> None:
        return await self._call("increment_quantity", row_id, delta)

    async def delete(self, user_id: str, card_key: str) -> None:
        return await self._call("delete", user_id, card_key)


@pytest.fixture
def backend(session_factory: async_sessionmaker[AsyncSession]) -> FlakyBackend:
    return FlakyBackend(SqlLedgerBackend(session_factory))


@pytest.fixture
def user_session() -> StaticSession:
    return StaticSession("ash")


@pytest.fixture
def ledger(backend: FlakyBackend, user_session: StaticSession) -> CollectionLedger:
    return CollectionLedger(backend, user_session)


@pytest.fixture
def anonymous_ledger(backend: FlakyBackend) -> CollectionLedger:
    return CollectionLedger(backend, StaticSession())


class TestRefresh:
    async def test_initial_snapshot_empty(self, ledger: CollectionLedger) -> None:
        assert len(ledger.snapshot) == 0
        assert ledger.quantity_of("A1-1") == 0

    async def test_refresh_loads_backend_rows(
        self, ledger: CollectionLedger, backend: FlakyBackend
    ) -> None:
        await backend.inner.insert("ash", "A1-1", 2)
        await backend.inner.insert("misty", "A1-2", 1)

        snapshot = await ledger.refresh()

        assert snapshot.user_id == "ash"
        assert ledger.quantity_of("A1-1") == 2
        assert not ledger.contains("A1-2")

    async def test_anonymous_refresh_is_empty(
        self, anonymous_ledger: CollectionLedger, backend: FlakyBackend
    ) -> None:
        """No identity is not an error; the ledger is simply empty."""
        await backend.inner.insert("ash", "A1-1", 2)

        snapshot = await anonymous_ledger.refresh()

        assert len(snapshot) == 0
        assert "select_all" not in backend.calls

    async def test_failed_refresh_publishes_empty(
        self, ledger: CollectionLedger, backend: FlakyBackend
    ) -> None:
        """A failed read replaces the old snapshot with an empty one."""
        await ledger.add("A1-1")
        assert ledger.contains("A1-1")

        backend.failing.add("select_all")
        with pytest.raises(LedgerUnavailableError) as exc_info:
            await ledger.refresh()

        assert exc_info.value.user_id == "ash"
        assert not ledger.contains("A1-1")
        assert len(ledger.snapshot) == 0

    async def test_sign_in_then_refresh_loads(
        self, anonymous_ledger: CollectionLedger, backend: FlakyBackend
    ) -> None:
        await backend.inner.insert("brock", "A1-1", 2)

        anonymous_ledger.session.sign_in("brock")
        await anonymous_ledger.refresh()

        assert anonymous_ledger.quantity_of("A1-1") == 2

    def test_sign_in_requires_user_id(self) -> None:
        with pytest.raises(ValueError):
            StaticSession().sign_in("")

    async def test_sign_out_then_refresh_clears(
        self, ledger: CollectionLedger, user_session: StaticSession
    ) -> None:
        await ledger.add("A1-1")

        user_session.sign_out()
        await ledger.refresh()

        assert ledger.quantity_of("A1-1") == 0
        assert ledger.snapshot.user_id is None


class TestAdd:
    async def test_add_new_card(self, ledger: CollectionLedger) -> None:
        """First acquisition creates an entry with quantity 1."""
        assert await ledger.add("A1-1") is True

        assert ledger.contains("A1-1")
        assert ledger.quantity_of("A1-1") == 1
        assert ledger.snapshot.get("A1-1").acquired_at is not None

    async def test_add_increments_existing(self, ledger: CollectionLedger) -> None:
        await ledger.add("A1-1", 3)
        await ledger.add("A1-1", 2)
        await ledger.refresh()

        assert ledger.quantity_of("A1-1") == 5

    async def test_add_increases_by_exactly_delta(self, ledger: CollectionLedger) -> None:
        await ledger.add("A1-1", 4)
        before = ledger.quantity_of("A1-1")

        await ledger.add("A1-1", 3)
        await ledger.refresh()

        assert ledger.quantity_of("A1-1") == before + 3

    async def test_add_keeps_acquired_at(self, ledger: CollectionLedger) -> None:
        await ledger.add("A1-1")
        acquired_at = ledger.snapshot.get("A1-1").acquired_at

        await ledger.add("A1-1")

        assert ledger.snapshot.get("A1-1").acquired_at == acquired_at

    async def test_add_refreshes_after_write(
        self, ledger: CollectionLedger, backend: FlakyBackend
    ) -> None:
        """The refetch happens after the write is acknowledged."""
        await ledger.add("A1-1")

        assert backend.calls == ["select_one", "insert", "select_all"]

    async def test_add_rejects_non_positive_delta(
        self, ledger: CollectionLedger, backend: FlakyBackend
    ) -> None:
        assert await ledger.add("A1-1", 0) is False
        assert await ledger.add("A1-1", -2) is False
        assert backend.calls == []

    async def test_backend_failure_leaves_snapshot(
        self, ledger: CollectionLedger, backend: FlakyBackend
    ) -> None:
        """A rejected write is never reflected locally."""
        await ledger.add("A1-1")
        before = ledger.snapshot

        backend.failing.add("increment_quantity")
        assert await ledger.add("A1-1") is False

        assert ledger.snapshot is before
        assert ledger.quantity_of("A1-1") == 1

    async def test_insert_failure_leaves_snapshot(
        self, ledger: CollectionLedger, backend: FlakyBackend
    ) -> None:
        backend.failing.add("insert")

        assert await ledger.add("A1-1") is False
        assert not ledger.contains("A1-1")
        assert "select_all" not in backend.calls

    async def test_write_confirmed_but_refresh_fails(
        self, ledger: CollectionLedger, backend: FlakyBackend
    ) -> None:
        """The write stands; the ledger shows empty until the next refresh."""
        backend.failing.add("select_all")

        assert await ledger.add("A1-1") is True
        assert len(ledger.snapshot) == 0

        backend.failing.clear()
        await ledger.refresh()
        assert ledger.quantity_of("A1-1") == 1


class TestRemove:
    async def test_remove_regardless_of_quantity(self, ledger: CollectionLedger) -> None:
        await ledger.add("A1-1", 4)

        assert await ledger.remove("A1-1") is True

        assert not ledger.contains("A1-1")
        assert ledger.quantity_of("A1-1") == 0

    async def test_remove_absent_card(self, ledger: CollectionLedger) -> None:
        assert await ledger.remove("A1-1") is True
        assert not ledger.contains("A1-1")

    async def test_remove_backend_failure(
        self, ledger: CollectionLedger, backend: FlakyBackend
    ) -> None:
        await ledger.add("A1-1")
        backend.failing.add("delete")

        assert await ledger.remove("A1-1") is False
        assert ledger.contains("A1-1")


class TestSetQuantity:
    async def test_overwrites_quantity(self, ledger: CollectionLedger) -> None:
        """Set is absolute, not a delta."""
        await ledger.add("A1-1", 5)

        assert await ledger.set_quantity("A1-1", 2) is True
        assert ledger.quantity_of("A1-1") == 2

    async def test_set_on_absent_card_inserts(self, ledger: CollectionLedger) -> None:
        assert await ledger.set_quantity("A1-2", 3) is True
        assert ledger.quantity_of("A1-2") == 3

    @pytest.mark.parametrize("quantity", [0, -1])
    async def test_non_positive_removes(self, ledger: CollectionLedger, quantity: int) -> None:
        """Setting 0 or less removes the entry instead of storing it."""
        await ledger.add("A1-1", 2)

        assert await ledger.set_quantity("A1-1", quantity) is True

        assert ledger.quantity_of("A1-1") == 0
        assert not ledger.contains("A1-1")

    async def test_update_failure_leaves_snapshot(
        self, ledger: CollectionLedger, backend: FlakyBackend
    ) -> None:
        await ledger.add("A1-1", 5)
        backend.failing.add("update_quantity")

        assert await ledger.set_quantity("A1-1", 1) is False
        assert ledger.quantity_of("A1-1") == 5


class TestToggleAndDecrement:
    async def test_toggle_adds_then_removes(self, ledger: CollectionLedger) -> None:
        assert await ledger.toggle("A1-1") is True
        assert ledger.quantity_of("A1-1") == 1

        assert await ledger.toggle("A1-1") is True
        assert not ledger.contains("A1-1")

    async def test_toggle_removes_whole_stack(self, ledger: CollectionLedger) -> None:
        await ledger.add("A1-1", 3)

        await ledger.toggle("A1-1")

        assert ledger.quantity_of("A1-1") == 0

    async def test_decrement(self, ledger: CollectionLedger) -> None:
        await ledger.add("A1-1", 2)

        assert await ledger.decrement("A1-1") is True
        assert ledger.quantity_of("A1-1") == 1

        assert await ledger.decrement("A1-1") is True
        assert not ledger.contains("A1-1")

    async def test_decrement_unowned(self, ledger: CollectionLedger) -> None:
        assert await ledger.decrement("A1-1") is False


class TestAnonymousWrites:
    @pytest.mark.parametrize(
        "action",
        [
            lambda ledger: ledger.add("A1-1"),
            lambda ledger: ledger.add("A1-1", 5),
            lambda ledger: ledger.remove("A1-1"),
            lambda ledger: ledger.set_quantity("A1-1", 3),
            lambda ledger: ledger.set_quantity("A1-1", 0),
            lambda ledger: ledger.toggle("A1-1"),
        ],
    )
    async def test_writes_fail_without_identity(
        self, anonymous_ledger: CollectionLedger, backend: FlakyBackend, action
    ) -> None:
        """Every write fails and the published snapshot is untouched."""
        before = anonymous_ledger.snapshot
        published: list[LedgerSnapshot] = []
        anonymous_ledger.subscribe(published.append)

        assert await action(anonymous_ledger) is False

        assert anonymous_ledger.snapshot is before
        assert published == [before]
        assert backend.calls == []


class TestSubscriptions:
    async def test_subscriber_gets_current_snapshot(self, ledger: CollectionLedger) -> None:
        received: list[LedgerSnapshot] = []

        ledger.subscribe(received.append)

        assert received == [ledger.snapshot]

    async def test_subscribers_see_same_ordered_snapshots(self, ledger: CollectionLedger) -> None:
        """All subscribers receive the same complete snapshots in order."""
        first: list[LedgerSnapshot] = []
        second: list[LedgerSnapshot] = []
        ledger.subscribe(first.append)
        ledger.subscribe(second.append)

        await ledger.add("A1-1")
        await ledger.add("A1-2", 2)

        assert len(first) == 3
        assert all(a is b for a, b in zip(first, second, strict=True))
        assert [s.quantity_of("A1-2") for s in first] == [0, 0, 2]
        assert first[-1] is ledger.snapshot

    async def test_unsubscribe(self, ledger: CollectionLedger) -> None:
        received: list[LedgerSnapshot] = []
        unsubscribe = ledger.subscribe(received.append)

        unsubscribe()
        await ledger.add("A1-1")

        assert len(received) == 1

    async def test_failing_subscriber_does_not_block_others(
        self, ledger: CollectionLedger
    ) -> None:
        received: list[LedgerSnapshot] = []

        def broken(_snapshot: LedgerSnapshot) -> None:
            raise RuntimeError("listener bug")

        ledger.subscribe(broken)
        ledger.subscribe(received.append)
        await ledger.add("A1-1")

        assert received[-1].contains("A1-1")

    async def test_snapshots_are_never_zero_quantity(self, ledger: CollectionLedger) -> None:
        """Every published snapshot holds entries with quantity >= 1 or none."""
        received: list[LedgerSnapshot] = []
        ledger.subscribe(received.append)

        await ledger.add("A1-1", 2)
        await ledger.decrement("A1-1")
        await ledger.decrement("A1-1")
        await ledger.set_quantity("A1-1", 0)

        for snapshot in received:
            assert all(entry.quantity >= 1 for entry in snapshot.entries)


class TestConcurrency:
    async def test_slow_refresh_cannot_overwrite_later_write(
        self, ledger: CollectionLedger, backend: FlakyBackend
    ) -> None:
        """A refresh that started before a write never publishes over it."""
        release = asyncio.Event()
        backend.held["select_all"] = release
        received: list[LedgerSnapshot] = []
        ledger.subscribe(received.append)

        slow_refresh = asyncio.create_task(ledger.refresh())
        while "select_all" not in backend.calls:
            await asyncio.sleep(0)
        write = asyncio.create_task(ledger.add("A1-1"))
        for _ in range(5):
            await asyncio.sleep(0)

        # The write waits until the in-flight refresh has published
        assert "select_one" not in backend.calls

        release.set()
        assert await write is True
        await slow_refresh

        assert ledger.quantity_of("A1-1") == 1
        assert received[-1] is ledger.snapshot
        assert [s.quantity_of("A1-1") for s in received] == [0, 0, 1]

    async def test_concurrent_adds_are_serialized(self, ledger: CollectionLedger) -> None:
        """Interleaved adds on one ledger both land; neither is lost."""
        results = await asyncio.gather(ledger.add("A1-1", 3), ledger.add("A1-1", 2))

        assert results == [True, True]
        assert ledger.quantity_of("A1-1") == 5

    async def test_refresh_during_write_sees_the_write(
        self, ledger: CollectionLedger, backend: FlakyBackend
    ) -> None:
        """A refresh requested mid-write runs after the write is confirmed."""
        release = asyncio.Event()
        backend.held["insert"] = release

        write = asyncio.create_task(ledger.add("A1-1", 2))
        while "insert" not in backend.calls:
            await asyncio.sleep(0)
        refresh = asyncio.create_task(ledger.refresh())
        for _ in range(5):
            await asyncio.sleep(0)

        assert "select_all" not in backend.calls

        release.set()
        await write
        snapshot = await refresh

        assert snapshot.quantity_of("A1-1") == 2
        assert snapshot is ledger.snapshot


class TestStats:
    async def test_stats_from_snapshot(self, ledger: CollectionLedger) -> None:
        await ledger.add("A1-1", 3)
        await ledger.add("A1-2")

        stats = ledger.stats()

        assert stats.total_cards == 2
        assert stats.total_quantity == 4


class TestOwnershipScenarios:
    @pytest.fixture
    def catalog(self) -> Catalog:
        return parse_catalog(
            [
                make_record("A1", 1, "Bulbasaur"),
                make_record("A1", 2, "Ivysaur"),
                make_record("A2", 1, "Oddish"),
            ],
            IMAGE_BASE,
        )

    async def test_owned_view_follows_ledger(
        self, catalog: Catalog, ledger: CollectionLedger
    ) -> None:
        """Owned-only view is empty, then shows exactly the added card."""
        owned_only = ViewCriteria(ownership_mode=OwnershipMode.OWNED)

        empty = project(catalog, owned_only, ledger.owned_keys())
        assert empty.groups == ()

        await ledger.add("A1-1")
        await ledger.refresh()
        view = project(catalog, owned_only, ledger.owned_keys())

        assert [g.set_name for g in view.groups] == ["A1"]
        assert view.card_keys() == ["A1-1"]
        assert ledger.quantity_of("A1-1") == 1

    async def test_repeated_adds_accumulate(self, ledger: CollectionLedger) -> None:
        await ledger.add("A1-1", 3)
        await ledger.add("A1-1", 2)
        await ledger.refresh()

        assert ledger.quantity_of("A1-1") == 5

    async def test_set_zero_removes(self, ledger: CollectionLedger) -> None:
        await ledger.add("A1-1")

        await ledger.set_quantity("A1-1", 0)

        assert ledger.quantity_of("A1-1") == 0
        assert ledger.contains("A1-1") is False

    async def test_owned_card_missing_from_catalog(
        self, catalog: Catalog, ledger: CollectionLedger
    ) -> None:
        """Ledger keeps cards that are not in the catalog; the view skips them."""
        await ledger.add("Z9-1")

        view = project(
            catalog, ViewCriteria(ownership_mode=OwnershipMode.OWNED), ledger.owned_keys()
        )

        assert ledger.contains("Z9-1")
        assert len(view) == 0
