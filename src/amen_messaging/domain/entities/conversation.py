from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from uuid import UUID

from amen_messaging.domain.entities.participant import Participant
from amen_messaging.domain.value_objects.enums import RequestStatus


@dataclass(frozen=True, slots=True)
class Conversation:
    id: UUID
    is_group: bool
    created_by: str
    request_status: RequestStatus
    created_at: datetime
    updated_at: datetime
    participants: tuple[Participant, ...] = ()
    group_name: str | None = None
    group_avatar_url: str | None = None
    requester_id: str | None = None
    last_message_id: UUID | None = None
    last_message_preview: str = ""
    last_message_at: datetime | None = None
    revision: int = 0

    @property
    def participant_ids(self) -> list[str]:
        return [p.account_id for p in self.participants]

    @property
    def participant_names(self) -> dict[str, str]:
        return {p.account_id: p.display_name for p in self.participants}

    @property
    def activity_at(self) -> datetime:
        return self.last_message_at or self.created_at

    def state_for(self, account_id: str) -> Participant | None:
        for participant in self.participants:
            if participant.account_id == account_id:
                return participant
        return None

    def other_participant(self, account_id: str) -> str | None:
        """The counterpart in a direct conversation."""
        for participant in self.participants:
            if participant.account_id != account_id:
                return participant.account_id
        return None

    def is_request_for(self, account_id: str) -> bool:
        """True while the conversation is an unanswered request addressed to the account."""
        return (
            not self.is_group
            and self.request_status == RequestStatus.PENDING
            and self.requester_id is not None
            and self.requester_id != account_id
        )

    def is_visible_to(self, account_id: str, *, include_archived: bool = False) -> bool:
        """Whether the conversation belongs in the account's inbox."""
        state = self.state_for(account_id)
        if state is None or state.is_deleted:
            return False
        if state.is_archived and not include_archived:
            return False
        if self.is_group or self.request_status == RequestStatus.ACCEPTED:
            return True
        # Unaccepted direct conversations only show up for the account that opened them,
        # whatever the recipient answered.
        return self.requester_id is not None and self.requester_id == account_id
