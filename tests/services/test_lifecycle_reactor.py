"""
Tests for LifecycleReactor: occupancy tracking and deletion of empty channels.
"""

import pytest

from tests.factories import GUILD_ID, TEXT_CHANNEL_ID
from utils.errors import GatewayError

OWNER = 1


async def _create(voice_service, title="Squad"):
    result = await voice_service.create_channel(
        guild_id=GUILD_ID,
        text_channel_id=TEXT_CHANNEL_ID,
        author_id=OWNER,
        author_name="Owner",
        title=title,
    )
    return result.channel_id


class TestVoiceStateUpdates:
    @pytest.mark.asyncio
    async def test_join_marks_occupied(self, reactor, voice_service, gateway, registry):
        channel_id = await _create(voice_service)
        gateway.join(OWNER, channel_id)

        await reactor.handle_voice_state_update(GUILD_ID, channel_id)

        assert (await registry.get(channel_id)).occupied is True
        assert gateway.deleted == []

    @pytest.mark.asyncio
    async def test_vacated_channel_is_deleted(self, reactor, voice_service, gateway, registry):
        channel_id = await _create(voice_service)
        gateway.join(OWNER, channel_id)
        await reactor.handle_voice_state_update(GUILD_ID, channel_id)

        gateway.leave(OWNER)
        await reactor.handle_voice_state_update(GUILD_ID, None)

        assert gateway.deleted == [channel_id]
        assert await registry.get(channel_id) is None
        assert reactor.deleted_count == 1

    @pytest.mark.asyncio
    async def test_occupied_channel_survives_partial_leave(
        self, reactor, voice_service, gateway, registry
    ):
        channel_id = await _create(voice_service)
        gateway.join(OWNER, channel_id)
        gateway.join(2, channel_id)
        await reactor.handle_voice_state_update(GUILD_ID, channel_id)

        gateway.leave(2)
        await reactor.handle_voice_state_update(GUILD_ID, None)

        assert gateway.deleted == []
        assert await registry.get(channel_id) is not None

    @pytest.mark.asyncio
    async def test_unjoined_channel_kept_during_grace_period(
        self, reactor, voice_service, gateway, registry, clock
    ):
        channel_id = await _create(voice_service)

        await reactor.handle_voice_state_update(GUILD_ID, None)
        assert gateway.deleted == []

        clock.advance(30)
        await reactor.handle_voice_state_update(GUILD_ID, None)
        assert gateway.deleted == [channel_id]
        assert await registry.get(channel_id) is None


class TestOrphans:
    @pytest.mark.asyncio
    async def test_untracked_prefixed_channel_deleted(self, reactor, gateway):
        orphan = gateway.add_channel("PV: Left Over")
        general = gateway.add_channel("General")
        bare_prefix = gateway.add_channel("PV: ")

        deleted = await reactor.reconcile_guild(GUILD_ID)

        assert deleted == 1
        assert gateway.deleted == [orphan]
        assert general in gateway.channels
        assert bare_prefix in gateway.channels
        assert reactor.orphans_deleted == 1

    @pytest.mark.asyncio
    async def test_occupied_orphan_kept(self, reactor, gateway):
        orphan = gateway.add_channel("PV: Busy")
        gateway.join(9, orphan)
        assert await reactor.reconcile_guild(GUILD_ID) == 0

    @pytest.mark.asyncio
    async def test_orphans_kept_while_creation_pending(self, reactor, gateway, registry):
        gateway.add_channel("PV: Being Created")
        await registry.reserve(OWNER, GUILD_ID, None)

        assert await reactor.reconcile_guild(GUILD_ID) == 0
        assert gateway.deleted == []

    @pytest.mark.asyncio
    async def test_orphan_delete_failure_is_logged(self, reactor, gateway):
        orphan = gateway.add_channel("PV: Stuck")
        gateway.fail_delete.add(orphan)
        assert await reactor.reconcile_guild(GUILD_ID) == 0


class TestSnapshotFallbacks:
    @pytest.mark.asyncio
    async def test_fetched_snapshot_skips_deletion(self, reactor, gateway):
        gateway.add_channel("PV: Unknown Occupancy")
        gateway.from_cache = False
        assert await reactor.reconcile_guild(GUILD_ID) == 0
        assert gateway.deleted == []

    @pytest.mark.asyncio
    async def test_snapshot_error_skips_pass(self, reactor, gateway):
        gateway.add_channel("PV: Left Over")
        gateway.snapshot_error = GatewayError("fetch_guild")
        assert await reactor.reconcile_guild(GUILD_ID) == 0

    @pytest.mark.asyncio
    async def test_delete_failure_keeps_record_for_retry(
        self, reactor, voice_service, gateway, registry
    ):
        channel_id = await _create(voice_service)
        gateway.join(OWNER, channel_id)
        await reactor.handle_voice_state_update(GUILD_ID, channel_id)
        gateway.leave(OWNER)
        gateway.fail_delete.add(channel_id)

        await reactor.handle_voice_state_update(GUILD_ID, None)
        assert await registry.get(channel_id) is not None

        gateway.fail_delete.clear()
        await reactor.handle_voice_state_update(GUILD_ID, None)
        assert gateway.deleted == [channel_id]
        assert await registry.get(channel_id) is None
