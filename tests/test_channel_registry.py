"""
Tests for ChannelRegistry invariants and concurrent access.
"""

import asyncio

import pytest

from services.channel_registry import ChannelRegistry, VoiceChannelRecord
from utils.errors import ServiceError


def _record(channel_id=100, owner_id=1, created_at=1000.0, **kwargs) -> VoiceChannelRecord:
    return VoiceChannelRecord(
        guild_id=10,
        channel_id=channel_id,
        owner_id=owner_id,
        display_name=f"PV: {channel_id}",
        created_at=created_at,
        **kwargs,
    )


class TestCreateAndLookup:
    @pytest.mark.asyncio
    async def test_create_then_get(self, registry):
        assert await registry.create(_record()) == 100
        record = await registry.get(100)
        assert record is not None
        assert record.owner_id == 1
        assert not record.occupied

    @pytest.mark.asyncio
    async def test_records_are_copies(self, registry):
        await registry.create(_record())
        record = await registry.get(100)
        record.operators.add(99)
        record.occupied = True

        stored = await registry.get(100)
        assert stored.operators == set()
        assert stored.occupied is False

    @pytest.mark.asyncio
    async def test_duplicate_owner_rejected(self, registry):
        await registry.create(_record(channel_id=100, owner_id=1))
        with pytest.raises(ServiceError):
            await registry.create(_record(channel_id=101, owner_id=1))

    @pytest.mark.asyncio
    async def test_duplicate_channel_rejected(self, registry):
        await registry.create(_record(channel_id=100, owner_id=1))
        with pytest.raises(ServiceError):
            await registry.create(_record(channel_id=100, owner_id=2))

    @pytest.mark.asyncio
    async def test_owner_never_stored_as_operator(self, registry):
        await registry.create(_record(operators={1, 2}))
        record = await registry.get(100)
        assert record.operators == {2}

    @pytest.mark.asyncio
    async def test_find_by_owner_and_presence(self, registry):
        await registry.create(_record(channel_id=100, owner_id=1))
        assert (await registry.find_by_owner(1)).channel_id == 100
        assert await registry.find_by_owner(2) is None
        assert (await registry.find_by_presence(100)).owner_id == 1
        assert await registry.find_by_presence(None) is None
        assert await registry.find_by_presence(555) is None


class TestReservation:
    @pytest.mark.asyncio
    async def test_reserve_blocks_second_reservation(self, registry):
        assert await registry.reserve(1, 10, None)
        assert not await registry.reserve(1, 10, None)
        assert await registry.has_pending(10)

    @pytest.mark.asyncio
    async def test_create_clears_reservation(self, registry):
        await registry.reserve(1, 10, None)
        await registry.create(_record(owner_id=1))
        assert not await registry.has_pending(10)
        assert not await registry.reserve(1, 10, None)

    @pytest.mark.asyncio
    async def test_release_allows_retry(self, registry):
        await registry.reserve(1, 10, None)
        await registry.release(1)
        assert await registry.reserve(1, 10, None)

    @pytest.mark.asyncio
    async def test_user_present_in_tracked_channel_is_ineligible(self, registry):
        await registry.create(_record(channel_id=100, owner_id=1))
        assert not await registry.reserve(2, 10, 100)
        assert await registry.reserve(2, 10, 555)

    @pytest.mark.asyncio
    async def test_concurrent_reservations_for_one_owner(self, registry):
        results = await asyncio.gather(*(registry.reserve(1, 10, None) for _ in range(20)))
        assert results.count(True) == 1


class TestOperators:
    @pytest.mark.asyncio
    async def test_add_operator_is_idempotent(self, registry):
        await registry.create(_record())
        assert await registry.add_operator(100, 2)
        assert not await registry.add_operator(100, 2)
        assert (await registry.get(100)).operators == {2}

    @pytest.mark.asyncio
    async def test_owner_cannot_be_operator(self, registry):
        await registry.create(_record(owner_id=1))
        assert not await registry.add_operator(100, 1)

    @pytest.mark.asyncio
    async def test_remove_operators(self, registry):
        await registry.create(_record(operators={2, 3}))
        assert await registry.remove_operators(100, [2, 4]) == {2}
        assert await registry.remove_operators(100, [2]) == set()
        assert (await registry.get(100)).operators == {3}

    @pytest.mark.asyncio
    async def test_unknown_channel(self, registry):
        assert not await registry.add_operator(555, 2)
        assert await registry.remove_operators(555, [2]) == set()


class TestOccupancyAndExpiry:
    @pytest.mark.asyncio
    async def test_mark_occupied_is_monotonic(self, registry):
        await registry.create(_record())
        assert await registry.mark_occupied(100)
        assert await registry.mark_occupied(100)
        assert (await registry.get(100)).occupied is True
        assert not await registry.mark_occupied(None)
        assert not await registry.mark_occupied(555)

    @pytest.mark.asyncio
    async def test_pop_expired_boundary(self, registry):
        await registry.create(_record(channel_id=100, owner_id=1, created_at=1000.0))
        await registry.create(_record(channel_id=101, owner_id=2, created_at=1000.0))
        await registry.mark_occupied(101)

        assert await registry.pop_expired(1029.0, 30) == []
        expired = await registry.pop_expired(1030.0, 30)
        assert [r.channel_id for r in expired] == [100]
        assert await registry.get(100) is None
        assert await registry.get(101) is not None

    @pytest.mark.asyncio
    async def test_delete_if_abandoned(self, registry):
        await registry.create(_record(channel_id=100, owner_id=1, created_at=1000.0))
        assert await registry.delete_if_abandoned(100, 1010.0, 30) is None

        await registry.mark_occupied(100)
        removed = await registry.delete_if_abandoned(100, 1010.0, 30)
        assert removed is not None and removed.channel_id == 100
        assert await registry.get(100) is None


class TestDeleteAndRestore:
    @pytest.mark.asyncio
    async def test_delete_returns_record_once(self, registry):
        await registry.create(_record())
        assert (await registry.delete(100)).channel_id == 100
        assert await registry.delete(100) is None

    @pytest.mark.asyncio
    async def test_restore(self, registry):
        await registry.create(_record(operators={2}))
        removed = await registry.delete(100)
        assert await registry.restore(removed)
        assert (await registry.get(100)).operators == {2}

    @pytest.mark.asyncio
    async def test_restore_refused_when_owner_has_new_channel(self, registry):
        await registry.create(_record(channel_id=100, owner_id=1))
        removed = await registry.delete(100)
        await registry.create(_record(channel_id=101, owner_id=1))
        assert not await registry.restore(removed)
        assert await registry.get(100) is None

    @pytest.mark.asyncio
    async def test_restore_refused_while_owner_creates_new_channel(self, registry):
        await registry.create(_record(channel_id=100, owner_id=1))
        removed = await registry.delete(100)
        assert await registry.reserve(1, 10, None)

        assert not await registry.restore(removed)
        assert await registry.create(_record(channel_id=101, owner_id=1)) == 101
        assert not await registry.has_pending(10)

    @pytest.mark.asyncio
    async def test_concurrent_delete_yields_single_winner(self, registry):
        await registry.create(_record())
        results = await asyncio.gather(*(registry.delete(100) for _ in range(10)))
        assert sum(1 for r in results if r is not None) == 1


@pytest.mark.asyncio
async def test_health_check_counts(registry):
    await registry.create(_record())
    await registry.reserve(2, 10, None)
    health = await registry.health_check()
    assert health["tracked_channels"] == 1
    assert health["pending_creations"] == 1
