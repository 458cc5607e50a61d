"""
Unit tests for AsyncParticipantService.

Covers membership add/leave/reactivate, the atomic unread counters, the
forward-only read marker and best-effort bulk provisioning.
"""

from datetime import datetime, timedelta, timezone

import pytest
import pytest_asyncio
from sqlalchemy import func, select, text
from sqlalchemy.exc import OperationalError

from app.models.conversation import Conversation
from app.models.conversation_participant import ConversationParticipant
from app.services.async_participant import AsyncParticipantService


@pytest_asyncio.fixture
async def group(async_db_session, directory):
    conversation = Conversation(name="Prayer Team", type="group", created_by=directory.east_member.id)
    async_db_session.add(conversation)
    await async_db_session.commit()
    return conversation


async def participant_count(db, conversation_id):
    result = await db.execute(
        select(func.count()).select_from(ConversationParticipant).where(
            ConversationParticipant.conversation_id == conversation_id
        )
    )
    return result.scalar()


class TestAddAndRemove:

    @pytest.mark.asyncio
    async def test_add_is_idempotent(self, async_db_session, directory, group):
        first = await AsyncParticipantService.add_participant(async_db_session, group.id, directory.east_member.id)
        second = await AsyncParticipantService.add_participant(async_db_session, group.id, directory.east_member.id)
        await async_db_session.commit()

        assert first.id == second.id
        assert await participant_count(async_db_session, group.id) == 1

    @pytest.mark.asyncio
    async def test_options_are_applied(self, async_db_session, directory, group):
        participant = await AsyncParticipantService.add_participant(
            async_db_session, group.id, directory.east_member.id, is_admin=True, can_add_members=True
        )

        assert participant.is_admin
        assert participant.can_add_members
        assert participant.notifications_enabled
        assert participant.unread_count == 0

    @pytest.mark.asyncio
    async def test_remove_sets_left_at(self, async_db_session, directory, group):
        await AsyncParticipantService.add_participant(async_db_session, group.id, directory.east_member.id)

        removed = await AsyncParticipantService.remove_participant(async_db_session, group.id, directory.east_member.id)
        removed_again = await AsyncParticipantService.remove_participant(async_db_session, group.id, directory.east_member.id)

        assert removed
        assert not removed_again
        assert await AsyncParticipantService.get_active_participant(
            async_db_session, group.id, directory.east_member.id
        ) is None

    @pytest.mark.asyncio
    async def test_list_active_skips_leavers(self, async_db_session, directory, group):
        for user in (directory.east_member, directory.west_member, directory.grace_leader):
            await AsyncParticipantService.add_participant(async_db_session, group.id, user.id)
        await AsyncParticipantService.remove_participant(async_db_session, group.id, directory.west_member.id)

        active = await AsyncParticipantService.list_active_participants(async_db_session, group.id)

        assert [p.user_id for p in active] == [directory.east_member.id, directory.grace_leader.id]

    @pytest.mark.asyncio
    async def test_readding_reactivates_the_same_row(self, async_db_session, directory, group):
        """A user who left and is added back keeps a single membership row."""
        original = await AsyncParticipantService.add_participant(async_db_session, group.id, directory.east_member.id)
        await AsyncParticipantService.increment_unread(async_db_session, group.id, directory.east_member.id)
        await AsyncParticipantService.remove_participant(async_db_session, group.id, directory.east_member.id)
        await async_db_session.commit()

        again = await AsyncParticipantService.add_participant(async_db_session, group.id, directory.east_member.id)
        await async_db_session.commit()

        assert again.id == original.id
        assert again.left_at is None
        assert again.unread_count == 0
        assert await participant_count(async_db_session, group.id) == 1


class TestUnreadCounters:

    @pytest_asyncio.fixture
    async def members(self, async_db_session, directory, group):
        for user in (directory.east_member, directory.grace_leader, directory.unassigned_member):
            await AsyncParticipantService.add_participant(async_db_session, group.id, user.id)
        await async_db_session.commit()
        return directory

    async def unread(self, db, conversation_id, user_id):
        participant = await AsyncParticipantService.get_participant(db, conversation_id, user_id)
        return participant.unread_count

    @pytest.mark.asyncio
    async def test_sender_is_never_counted(self, async_db_session, group, members):
        for _ in range(4):
            touched = await AsyncParticipantService.increment_unread_for_recipients(
                async_db_session, group.id, members.east_member.id
            )
            assert touched == 2
        await async_db_session.commit()

        assert await self.unread(async_db_session, group.id, members.grace_leader.id) == 4
        assert await self.unread(async_db_session, group.id, members.unassigned_member.id) == 4
        assert await self.unread(async_db_session, group.id, members.east_member.id) == 0

    @pytest.mark.asyncio
    async def test_left_participants_are_not_counted(self, async_db_session, group, members):
        await AsyncParticipantService.remove_participant(async_db_session, group.id, members.unassigned_member.id)

        touched = await AsyncParticipantService.increment_unread_for_recipients(
            async_db_session, group.id, members.east_member.id
        )

        assert touched == 1
        assert await self.unread(async_db_session, group.id, members.unassigned_member.id) == 0

    @pytest.mark.asyncio
    async def test_mark_read_resets_until_next_message(self, async_db_session, group, members):
        await AsyncParticipantService.increment_unread(async_db_session, group.id, members.grace_leader.id)
        await AsyncParticipantService.increment_unread(async_db_session, group.id, members.grace_leader.id)

        assert await AsyncParticipantService.mark_read(async_db_session, group.id, members.grace_leader.id)
        assert await self.unread(async_db_session, group.id, members.grace_leader.id) == 0

        # The reader's own message does not bump their counter
        await AsyncParticipantService.increment_unread_for_recipients(
            async_db_session, group.id, members.grace_leader.id
        )
        assert await self.unread(async_db_session, group.id, members.grace_leader.id) == 0

        await AsyncParticipantService.increment_unread_for_recipients(
            async_db_session, group.id, members.east_member.id
        )
        assert await self.unread(async_db_session, group.id, members.grace_leader.id) == 1

    @pytest.mark.asyncio
    async def test_last_read_at_never_moves_backwards(self, async_db_session, group, members):
        later = datetime(2025, 11, 1, 12, 0, 0, tzinfo=timezone.utc)
        earlier = later - timedelta(minutes=5)

        await AsyncParticipantService.mark_read(async_db_session, group.id, members.grace_leader.id, now=later)
        await AsyncParticipantService.mark_read(async_db_session, group.id, members.grace_leader.id, now=earlier)
        await async_db_session.commit()

        participant = await AsyncParticipantService.get_participant(
            async_db_session, group.id, members.grace_leader.id
        )
        assert participant.last_read_at.replace(tzinfo=timezone.utc) == later

    @pytest.mark.asyncio
    async def test_mark_read_without_membership(self, async_db_session, directory, group):
        assert not await AsyncParticipantService.mark_read(async_db_session, group.id, directory.super_admin.id)


class TestBulkProvisioning:

    @pytest.mark.asyncio
    async def test_branch_users_added_once(self, async_db_session, directory, group):
        first = await AsyncParticipantService.add_all_branch_users(async_db_session, group.id, 5)
        second = await AsyncParticipantService.add_all_branch_users(async_db_session, group.id, 5)
        await async_db_session.commit()

        # east_admin, grace_leader, east_member, unassigned_member
        assert first.added == 4
        assert second.added == 0
        assert second.skipped == 4
        assert await participant_count(async_db_session, group.id) == 4

    @pytest.mark.asyncio
    async def test_mc_users(self, async_db_session, directory, group):
        outcome = await AsyncParticipantService.add_all_mc_users(async_db_session, group.id, 7)
        active = await AsyncParticipantService.active_user_ids(async_db_session, group.id)

        assert outcome.added == 2
        assert active == {directory.hope_leader.id, directory.west_member.id}

    @pytest.mark.asyncio
    async def test_failure_for_one_user_does_not_stop_the_rest(self, async_db_session, directory, group, monkeypatch):
        original_add = AsyncParticipantService.add_participant.__func__

        async def flaky_add(cls, db, conversation_id, user_id, **options):
            if user_id == directory.grace_leader.id:
                raise OperationalError("INSERT", {}, Exception("connection hiccup"))
            return await original_add(cls, db, conversation_id, user_id, **options)

        monkeypatch.setattr(AsyncParticipantService, "add_participant", classmethod(flaky_add))

        outcome = await AsyncParticipantService.add_all_branch_users(async_db_session, group.id, 5)

        assert outcome.failed == 1
        assert outcome.added == 3
        active = await AsyncParticipantService.active_user_ids(async_db_session, group.id)
        assert directory.grace_leader.id not in active
        assert directory.east_member.id in active

    @pytest.mark.asyncio
    async def test_failed_reactivation_does_not_stop_the_rest(self, async_db_session, directory, group):
        """A rejected UPDATE while re-adding a leaver only loses that one user."""
        for user in (directory.grace_leader, directory.east_member):
            await AsyncParticipantService.add_participant(async_db_session, group.id, user.id)
            await AsyncParticipantService.remove_participant(async_db_session, group.id, user.id)
        await async_db_session.execute(text(
            "CREATE TRIGGER block_reactivation BEFORE UPDATE ON conversation_participants "
            f"WHEN NEW.user_id = {directory.grace_leader.id} "
            "BEGIN SELECT RAISE(ABORT, 'membership locked'); END"
        ))
        await async_db_session.commit()

        outcome = await AsyncParticipantService.add_all_branch_users(async_db_session, group.id, 5)
        await async_db_session.commit()

        assert outcome.failed == 1
        assert outcome.added == 3
        active = await AsyncParticipantService.active_user_ids(async_db_session, group.id)
        assert active == {directory.east_admin.id, directory.east_member.id, directory.unassigned_member.id}
