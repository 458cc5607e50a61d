"""
Unit tests for the access control gate.

The decision functions are pure, so these tests build actors and facts by
hand without touching the database.
"""

from datetime import datetime, timedelta, timezone

import pytest

from app.schemas.chat import ConversationType
from app.schemas.directory import DirectoryUser, UserRole
from app.services.access_control import (
    POLICIES,
    ConversationFacts,
    CreationTarget,
    can_access_category,
    can_create_conversation,
    can_delete_message,
    can_edit_message,
    can_view_conversation,
    edit_window_open,
    get_policy,
)


def make_user(user_id, role, branch_id=None, mc_id=None):
    return DirectoryUser(id=user_id, name=f"user{user_id}", role=role, branch_id=branch_id, mc_id=mc_id)


SUPER = make_user(1, UserRole.SUPER_ADMIN, branch_id=1)
EAST_ADMIN = make_user(2, UserRole.BRANCH_ADMIN, branch_id=5)
GRACE_LEADER = make_user(4, UserRole.MC_LEADER, branch_id=5, mc_id=3)
HOPE_LEADER = make_user(5, UserRole.MC_LEADER, branch_id=9, mc_id=7)
EAST_MEMBER = make_user(6, UserRole.MEMBER, branch_id=5, mc_id=3)
LOOSE_MEMBER = make_user(8, UserRole.MEMBER)


class TestPolicyRegistry:
    """Every conversation type is covered by exactly one policy."""

    def test_registry_is_exhaustive(self):
        assert set(POLICIES) == set(ConversationType)

    def test_get_policy_accepts_raw_values(self):
        assert get_policy("branch") is POLICIES[ConversationType.BRANCH]


class TestConversationVisibility:

    def test_announcement_visible_to_everyone(self):
        facts = ConversationFacts(type=ConversationType.ANNOUNCEMENT)
        for actor in (SUPER, EAST_ADMIN, GRACE_LEADER, EAST_MEMBER, LOOSE_MEMBER):
            assert can_view_conversation(actor, facts)

    def test_branch_visible_to_own_branch_only(self):
        east = ConversationFacts(type=ConversationType.BRANCH, branch_id=5)
        west = ConversationFacts(type=ConversationType.BRANCH, branch_id=9)

        assert can_view_conversation(EAST_MEMBER, east)
        assert not can_view_conversation(EAST_MEMBER, west)
        assert can_view_conversation(SUPER, west)

    def test_headquarters_branch_visible_to_admins(self):
        hq = ConversationFacts(type=ConversationType.BRANCH, branch_id=1, is_headquarters_branch=True)

        assert can_view_conversation(EAST_ADMIN, hq)
        assert not can_view_conversation(GRACE_LEADER, hq)
        assert not can_view_conversation(EAST_MEMBER, hq)

    def test_branch_without_branch_never_matches(self):
        facts = ConversationFacts(type=ConversationType.BRANCH, branch_id=None)
        assert not can_view_conversation(LOOSE_MEMBER, facts)

    def test_mc_visibility(self):
        grace = ConversationFacts(type=ConversationType.MC, mc_id=3, mc_branch_id=5)
        hope = ConversationFacts(type=ConversationType.MC, mc_id=7, mc_branch_id=9)

        assert can_view_conversation(SUPER, hope)
        assert can_view_conversation(EAST_ADMIN, grace)
        assert not can_view_conversation(EAST_ADMIN, hope)
        assert can_view_conversation(GRACE_LEADER, grace)
        assert not can_view_conversation(GRACE_LEADER, hope)
        assert can_view_conversation(EAST_MEMBER, grace)
        assert not can_view_conversation(LOOSE_MEMBER, grace)

    @pytest.mark.parametrize("conversation_type", [ConversationType.GROUP, ConversationType.INDIVIDUAL])
    def test_ad_hoc_conversations_need_active_participation(self, conversation_type):
        assert can_view_conversation(EAST_MEMBER, ConversationFacts(type=conversation_type, is_active_participant=True))
        assert not can_view_conversation(SUPER, ConversationFacts(type=conversation_type))


class TestCategoryAccess:

    def test_member_cannot_reach_another_branch(self):
        assert not can_access_category(EAST_MEMBER, ConversationFacts(type=ConversationType.BRANCH, branch_id=9))
        assert can_access_category(EAST_MEMBER, ConversationFacts(type=ConversationType.BRANCH, branch_id=5))

    def test_branch_admin_reaches_mcs_of_own_branch(self):
        assert can_access_category(EAST_ADMIN, ConversationFacts(type=ConversationType.MC, mc_id=3, mc_branch_id=5))
        assert not can_access_category(EAST_ADMIN, ConversationFacts(type=ConversationType.MC, mc_id=7, mc_branch_id=9))

    def test_only_branch_and_mc_are_categories(self):
        assert not can_access_category(SUPER, ConversationFacts(type=ConversationType.ANNOUNCEMENT))


class TestConversationCreation:

    def test_announcement_is_super_admin_only(self):
        target = CreationTarget(type=ConversationType.ANNOUNCEMENT)
        assert can_create_conversation(SUPER, target)
        assert not can_create_conversation(EAST_ADMIN, target)

    def test_branch_creation(self):
        assert can_create_conversation(SUPER, CreationTarget(type=ConversationType.BRANCH, branch_id=9))
        assert can_create_conversation(EAST_ADMIN, CreationTarget(type=ConversationType.BRANCH, branch_id=5))
        assert not can_create_conversation(EAST_ADMIN, CreationTarget(type=ConversationType.BRANCH, branch_id=9))
        assert not can_create_conversation(EAST_MEMBER, CreationTarget(type=ConversationType.BRANCH, branch_id=5))

    def test_mc_creation(self):
        grace = CreationTarget(type=ConversationType.MC, mc_id=3, mc_branch_id=5)
        hope = CreationTarget(type=ConversationType.MC, mc_id=7, mc_branch_id=9)

        assert can_create_conversation(EAST_ADMIN, grace)
        assert not can_create_conversation(EAST_ADMIN, hope)
        assert can_create_conversation(GRACE_LEADER, grace)
        assert not can_create_conversation(HOPE_LEADER, grace)
        assert not can_create_conversation(EAST_MEMBER, grace)

    def test_group_open_to_anyone(self):
        target = CreationTarget(type=ConversationType.GROUP, other_participant_ids=(7,))
        assert can_create_conversation(LOOSE_MEMBER, target)


class TestMessagePermissions:

    def test_sender_can_always_delete(self):
        assert can_delete_message(EAST_MEMBER, EAST_MEMBER.id, None)

    def test_mc_leader_of_other_mc_cannot_delete(self):
        assert not can_delete_message(HOPE_LEADER, GRACE_LEADER.id, GRACE_LEADER)

    def test_branch_admin_of_sender_branch_can_delete(self):
        assert can_delete_message(EAST_ADMIN, GRACE_LEADER.id, GRACE_LEADER)

    def test_mc_leader_can_delete_member_of_own_mc(self):
        assert can_delete_message(GRACE_LEADER, EAST_MEMBER.id, EAST_MEMBER)

    def test_member_cannot_delete_others(self):
        other = make_user(9, UserRole.MEMBER, branch_id=5, mc_id=3)
        assert not can_delete_message(EAST_MEMBER, other.id, other)

    def test_super_admin_can_delete_anything(self):
        assert can_delete_message(SUPER, 99, None)

    def test_only_sender_can_edit(self):
        assert can_edit_message(EAST_MEMBER, EAST_MEMBER.id)
        assert not can_edit_message(SUPER, EAST_MEMBER.id)


class TestEditWindow:

    CREATED = datetime(2025, 11, 1, 12, 0, 0, tzinfo=timezone.utc)

    def test_open_at_119_seconds(self):
        assert edit_window_open(self.CREATED, self.CREATED + timedelta(seconds=119), 120)

    def test_closed_at_121_seconds(self):
        assert not edit_window_open(self.CREATED, self.CREATED + timedelta(seconds=121), 120)

    def test_naive_timestamps_are_treated_as_utc(self):
        naive = self.CREATED.replace(tzinfo=None)
        assert edit_window_open(naive, self.CREATED + timedelta(seconds=60), 120)
