"""Tests for the OrphanScanner.

A controllable clock stands in for wall time so grace periods can be
crossed without waiting.
"""

from datetime import datetime, timedelta, timezone

import pytest

from tablesync.schema.cleanup import OrphanScanner
from tablesync.schema.models import TableState


class FakeClock:
    def __init__(self) -> None:
        self.now = datetime(2024, 1, 1, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def scanner(registry, driver, synchronizer, clock) -> OrphanScanner:
    return OrphanScanner(registry, driver, synchronizer, clock)


# ============================================================================
# Test: Scanning
# ============================================================================


class TestScan:
    """Verify orphan detection and bookkeeping."""

    @pytest.mark.asyncio
    async def test_registered_tables_active(self, scanner, registry, backend) -> None:
        registry.register("accounts", {"id": {"type": "INT"}})
        backend.add_table("accounts", {"id": "int"})

        assert await scanner.scan() == []
        assert scanner.registry["accounts"].status is TableState.ACTIVE

    @pytest.mark.asyncio
    async def test_unregistered_table_orphaned(self, scanner, backend, clock) -> None:
        backend.add_table("old_stuff", {"id": "int"})

        orphans = await scanner.scan()

        assert [o.name for o in orphans] == ["old_stuff"]
        assert orphans[0].orphaned_since == clock.now
        assert orphans[0].days_orphaned == 0

    @pytest.mark.asyncio
    async def test_first_orphaned_preserved(self, scanner, backend, clock) -> None:
        """Repeated scans keep the original orphan timestamp."""
        backend.add_table("old_stuff", {"id": "int"})
        await scanner.scan()
        first = clock.now

        clock.advance(days=3, hours=23)
        orphans = await scanner.scan()

        assert orphans[0].orphaned_since == first
        assert orphans[0].days_orphaned == 3

    @pytest.mark.asyncio
    async def test_reregistered_table_becomes_active(self, scanner, registry, backend, clock) -> None:
        """A table that gets a schema again loses its orphan mark."""
        backend.add_table("bans", {"id": "int"})
        await scanner.scan()

        registry.register("bans", {"id": {"type": "INT"}})
        clock.advance(days=10)

        assert await scanner.scan() == []
        status = scanner.registry["bans"]
        assert status.status is TableState.ACTIVE
        assert status.first_orphaned is None

    @pytest.mark.asyncio
    async def test_orphaned_tables_without_query(self, scanner, backend, clock) -> None:
        backend.add_table("x", {"id": "int"})
        await scanner.scan()
        clock.advance(days=2)

        assert [(o.name, o.days_orphaned) for o in scanner.orphaned_tables()] == [("x", 2)]

    @pytest.mark.asyncio
    async def test_vanished_table_forgotten(self, scanner, backend, clock) -> None:
        """A table dropped outside the scanner stops being reported."""
        backend.add_table("old_stuff", {"id": "int"})
        backend.add_table("other", {"id": "int"})
        await scanner.scan()

        del backend.tables["old_stuff"]
        clock.advance(days=1)
        orphans = await scanner.scan()

        assert [o.name for o in orphans] == ["other"]
        assert "old_stuff" not in scanner.registry
        assert [o.name for o in scanner.orphaned_tables()] == ["other"]

    @pytest.mark.asyncio
    async def test_empty_listing_keeps_tracking(self, scanner, backend) -> None:
        backend.add_table("old_stuff", {"id": "int"})
        await scanner.scan()

        backend.tables.clear()
        await scanner.scan()

        assert "old_stuff" in scanner.registry

    @pytest.mark.asyncio
    async def test_extra_column_is_not_an_orphan(self, scanner, registry, backend) -> None:
        """Unknown columns on a registered table never make it an orphan."""
        registry.register("t", {"a": {"type": "TEXT"}})
        backend.add_table("t", {"a": "text", "legacy": "int"})

        assert await scanner.scan() == []


# ============================================================================
# Test: Cleanup
# ============================================================================


class TestCleanup:
    """Verify grace-period drops."""

    @pytest.mark.asyncio
    async def test_within_grace_period_kept(self, scanner, backend, clock) -> None:
        backend.add_table("old", {"id": "int"})
        await scanner.scan()
        clock.advance(days=6)

        assert await scanner.cleanup(7) == 0
        assert "old" in backend.tables

    @pytest.mark.asyncio
    async def test_past_grace_period_dropped(self, scanner, backend, clock) -> None:
        backend.add_table("old", {"id": "int"})
        await scanner.scan()
        clock.advance(days=7)
        backend.add_table("newer", {"id": "int"})

        assert await scanner.cleanup() == 1
        assert "newer" in backend.tables
        assert "old" not in backend.tables
        assert "old" not in scanner.registry

    @pytest.mark.asyncio
    async def test_registered_tables_never_dropped(self, scanner, registry, backend, clock) -> None:
        registry.register("keep", {"id": {"type": "INT"}})
        backend.add_table("keep", {"id": "int"})
        await scanner.scan()
        clock.advance(days=365)

        assert await scanner.cleanup(0) == 0
        assert "keep" in backend.tables

    @pytest.mark.asyncio
    async def test_zero_grace_drops_new_orphans(self, scanner, backend) -> None:
        backend.add_table("tmp", {"id": "int"})
        assert await scanner.cleanup(0) == 1


# ============================================================================
# Test: Persistence
# ============================================================================


class TestStateFile:
    """Verify bookkeeping survives a restart through the state file."""

    @pytest.mark.asyncio
    async def test_round_trip(self, registry, driver, synchronizer, backend, clock, tmp_path) -> None:
        state = tmp_path / "state" / "orphans.json"
        backend.add_table("old", {"id": "int"})

        first = OrphanScanner(registry, driver, synchronizer, clock, state_path=state)
        await first.scan()
        assert state.exists()

        clock.advance(days=8)
        second = OrphanScanner(registry, driver, synchronizer, clock, state_path=state)

        assert second.registry["old"].first_orphaned == datetime(2024, 1, 1, tzinfo=timezone.utc)
        assert await second.cleanup(7) == 1
