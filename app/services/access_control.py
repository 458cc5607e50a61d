"""
Access control for conversations and messages.

Every conversation type has one policy object that answers three questions
for an actor: may they see a conversation, may they create one, and which
SQL predicate selects the conversations they can see. The decision methods
are pure. They take the actor plus the facts about the target and never
touch the database, so callers gather the facts first and decide before
mutating anything.
"""

from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import ClassVar, Dict, Iterable, Optional, Tuple

from sqlalchemy import and_, false, or_, select, true
from sqlalchemy.sql.elements import ColumnElement

from app.models.branch import Branch, MissionalCommunity
from app.models.conversation import Conversation
from app.models.conversation_participant import ConversationParticipant
from app.schemas.chat import ConversationType
from app.schemas.directory import DirectoryUser, UserRole


@dataclass(frozen=True)
class ConversationFacts:
    """What the gate needs to know about an existing conversation."""
    type: ConversationType
    branch_id: Optional[int] = None
    mc_id: Optional[int] = None
    mc_branch_id: Optional[int] = None
    is_headquarters_branch: bool = False
    is_active_participant: bool = False


@dataclass(frozen=True)
class CreationTarget:
    """What the gate needs to know about a conversation about to be created."""
    type: ConversationType
    branch_id: Optional[int] = None
    mc_id: Optional[int] = None
    mc_branch_id: Optional[int] = None
    other_participant_ids: Tuple[int, ...] = field(default_factory=tuple)


def _same(left: Optional[int], right: Optional[int]) -> bool:
    """Equality that never matches two missing ids."""
    return left is not None and left == right


def _active_participation(actor: DirectoryUser) -> ColumnElement:
    return Conversation.id.in_(
        select(ConversationParticipant.conversation_id).where(
            ConversationParticipant.user_id == actor.id,
            ConversationParticipant.left_at.is_(None),
        )
    )


class ConversationPolicy:
    """Access rules for one conversation type."""

    conversation_type: ClassVar[ConversationType]

    def can_view(self, actor: DirectoryUser, facts: ConversationFacts) -> bool:
        raise NotImplementedError

    def can_create(self, actor: DirectoryUser, target: CreationTarget) -> bool:
        raise NotImplementedError

    def visibility_clause(self, actor: DirectoryUser) -> ColumnElement:
        """SQL predicate equivalent to ``can_view`` for this type."""
        raise NotImplementedError


class AnnouncementPolicy(ConversationPolicy):
    conversation_type = ConversationType.ANNOUNCEMENT

    def can_view(self, actor, facts):
        return True

    def can_create(self, actor, target):
        return actor.is_super_admin

    def visibility_clause(self, actor):
        return true()


class BranchPolicy(ConversationPolicy):
    conversation_type = ConversationType.BRANCH

    def can_view(self, actor, facts):
        if actor.is_super_admin:
            return True
        if actor.is_admin and facts.is_headquarters_branch:
            return True
        return _same(actor.branch_id, facts.branch_id)

    def can_create(self, actor, target):
        if actor.is_super_admin:
            return True
        return actor.is_branch_admin and _same(actor.branch_id, target.branch_id)

    def visibility_clause(self, actor):
        if actor.is_super_admin:
            return true()
        clauses = []
        if actor.branch_id is not None:
            clauses.append(Conversation.branch_id == actor.branch_id)
        if actor.is_admin:
            clauses.append(
                Conversation.branch_id.in_(select(Branch.id).where(Branch.is_headquarters.is_(True)))
            )
        return or_(*clauses) if clauses else false()


class MCPolicy(ConversationPolicy):
    conversation_type = ConversationType.MC

    def can_view(self, actor, facts):
        if actor.is_super_admin:
            return True
        if actor.is_branch_admin:
            return _same(actor.branch_id, facts.mc_branch_id)
        return _same(actor.mc_id, facts.mc_id)

    def can_create(self, actor, target):
        if actor.is_super_admin:
            return True
        if actor.is_branch_admin:
            return _same(actor.branch_id, target.mc_branch_id)
        if actor.is_mc_leader:
            return _same(actor.mc_id, target.mc_id)
        return False

    def visibility_clause(self, actor):
        if actor.is_super_admin:
            return true()
        if actor.is_branch_admin:
            if actor.branch_id is None:
                return false()
            return Conversation.mc_id.in_(
                select(MissionalCommunity.id).where(MissionalCommunity.branch_id == actor.branch_id)
            )
        if actor.mc_id is None:
            return false()
        return Conversation.mc_id == actor.mc_id


class ParticipantOnlyPolicy(ConversationPolicy):
    """Ad hoc conversations: visible to active participants, open to create."""

    def can_view(self, actor, facts):
        return facts.is_active_participant

    def can_create(self, actor, target):
        return True

    def visibility_clause(self, actor):
        return _active_participation(actor)


class GroupPolicy(ParticipantOnlyPolicy):
    conversation_type = ConversationType.GROUP


class IndividualPolicy(ParticipantOnlyPolicy):
    conversation_type = ConversationType.INDIVIDUAL


POLICIES: Dict[ConversationType, ConversationPolicy] = {
    policy.conversation_type: policy
    for policy in (AnnouncementPolicy(), BranchPolicy(), MCPolicy(), GroupPolicy(), IndividualPolicy())
}


def get_policy(conversation_type) -> ConversationPolicy:
    return POLICIES[ConversationType(conversation_type)]


def can_view_conversation(actor: DirectoryUser, facts: ConversationFacts) -> bool:
    return get_policy(facts.type).can_view(actor, facts)


def can_access_category(actor: DirectoryUser, facts: ConversationFacts) -> bool:
    """Strict check run before a branch/MC conversation is read or created."""
    if facts.type not in (ConversationType.BRANCH, ConversationType.MC):
        return False
    return can_view_conversation(actor, facts)


def can_create_conversation(actor: DirectoryUser, target: CreationTarget) -> bool:
    return get_policy(target.type).can_create(actor, target)


def visible_conversations_clause(
    actor: DirectoryUser, types: Iterable[ConversationType]
) -> ColumnElement:
    """OR of every requested type's visibility predicate."""
    clauses = [
        and_(Conversation.type == conversation_type.value, get_policy(conversation_type).visibility_clause(actor))
        for conversation_type in types
    ]
    return or_(*clauses) if clauses else false()


def can_delete_message(
    actor: DirectoryUser, sender_id: int, sender: Optional[DirectoryUser]
) -> bool:
    """
    Senders may always delete their own messages. Otherwise the actor must
    outrank the sender and share the sender's branch (branch admins) or MC
    (MC leaders). Super admins may delete anything; members only their own.
    """
    if actor.id == sender_id:
        return True
    if actor.is_super_admin:
        return True
    if sender is None:
        return False
    if not actor.role.outranks(sender.role):
        return False
    if actor.role == UserRole.BRANCH_ADMIN:
        return _same(actor.branch_id, sender.branch_id)
    if actor.role == UserRole.MC_LEADER:
        return _same(actor.mc_id, sender.mc_id)
    return False


def can_edit_message(actor: DirectoryUser, sender_id: int) -> bool:
    return actor.id == sender_id


def edit_window_open(created_at: datetime, now: datetime, window_seconds: int) -> bool:
    """True while ``now`` is within ``window_seconds`` of ``created_at``."""
    if created_at.tzinfo is None:
        created_at = created_at.replace(tzinfo=timezone.utc)
    if now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)
    return now - created_at <= timedelta(seconds=window_seconds)
