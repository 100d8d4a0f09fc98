"""
Collaborators of the recovery flows and the values exchanged with them.

Users, sessions and mail delivery live outside this package; the flows
only rely on the protocols below.
"""
from enum import Enum
from typing import Any, Optional, Protocol, Union

from pydantic import BaseModel, Field

UserId = Union[str, int]


class UserRecord(BaseModel):
    """The projection of a user the flows need."""

    id: UserId
    email: str
    username: Optional[str] = None
    auth_type: str
    email_verified: bool = False


class EmailMessage(BaseModel):
    to: str
    subject: str
    template: str
    variables: dict[str, Any] = Field(default_factory=dict)


class SendResult(BaseModel):
    success: bool
    error: Optional[str] = None


class Notifier(Protocol):
    async def send(self, message: EmailMessage) -> SendResult:
        ...


class SessionStore(Protocol):
    async def delete_all_sessions_for_user(self, user_id: UserId) -> None:
        ...


class UserStore(Protocol):
    async def get_user(self, user_id: UserId) -> Optional[UserRecord]:
        ...

    async def find_by_email(
        self, email: str, auth_type: Optional[str] = None,
    ) -> Optional[UserRecord]:
        ...

    async def mark_email_verified(self, user_id: UserId) -> None:
        ...

    async def update_password_hash(self, user_id: UserId, password_hash: str) -> None:
        ...


class Outcome(str, Enum):
    SUCCESS = "success"
    DISABLED = "disabled"
    INVALID_TOKEN = "invalid_token"
    INELIGIBLE = "ineligible"
    INVALID_INPUT = "invalid_input"
    ERROR = "error"


class FlowResult(BaseModel):
    """What a flow reports to the route layer.

    ``message`` is always one of a fixed set of strings; internal error
    details only go to the logs.
    """

    outcome: Outcome
    message: str
    user_id: Optional[UserId] = None

    @property
    def success(self) -> bool:
        return self.outcome is Outcome.SUCCESS
