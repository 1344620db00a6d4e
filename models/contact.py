from datetime import datetime, timezone
from typing import Annotated, Generic, Literal, Optional, TypeVar

from pydantic import AfterValidator, BaseModel, ConfigDict, EmailStr, Field, field_validator
from pydantic.alias_generators import to_camel

from constants import (
    MAX_MESSAGE_LENGTH,
    MAX_NAME_LENGTH,
    MAX_REPLY_LENGTH,
    MAX_SUBJECT_LENGTH,
)

T = TypeVar("T")

ContactStatus = Literal["unread", "read", "replied"]


def _as_utc(value: Optional[datetime]) -> Optional[datetime]:
    # Mongo hands back naive datetimes unless the client is tz_aware
    if isinstance(value, datetime) and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


UtcDatetime = Annotated[datetime, AfterValidator(_as_utc)]


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class ContactCreate(BaseModel):
    """Public contact form submission."""
    model_config = ConfigDict(extra="forbid", str_strip_whitespace=True)

    name: str = Field(min_length=1, max_length=MAX_NAME_LENGTH)
    email: EmailStr
    subject: str = Field(min_length=1, max_length=MAX_SUBJECT_LENGTH)
    message: str = Field(min_length=1, max_length=MAX_MESSAGE_LENGTH)

    @field_validator("email", mode="before")
    @classmethod
    def strip_email(cls, value):
        return value.strip() if isinstance(value, str) else value

    @field_validator("email")
    @classmethod
    def lowercase_email(cls, value: str) -> str:
        return value.lower()


class ReplyRequest(CamelModel):
    model_config = ConfigDict(extra="forbid", str_strip_whitespace=True)

    reply_message: str = Field(min_length=1, max_length=MAX_REPLY_LENGTH)


class AdminReply(CamelModel):
    message: str
    replied_at: UtcDatetime
    replied_by: str


class ContactMessage(CamelModel):
    id: str
    name: str
    email: str
    subject: str
    message: str
    status: ContactStatus
    admin_reply: Optional[AdminReply] = None
    created_at: UtcDatetime
    updated_at: UtcDatetime

    @classmethod
    def from_document(cls, doc: dict) -> "ContactMessage":
        reply = doc.get("admin_reply")
        return cls(
            id=str(doc["_id"]),
            name=doc["name"],
            email=doc["email"],
            subject=doc["subject"],
            message=doc["message"],
            status=doc["status"],
            admin_reply=AdminReply(**reply) if reply else None,
            created_at=doc["created_at"],
            updated_at=doc["updated_at"],
        )


class ContactListFilter(BaseModel):
    """Typed inbox filter; "all" or no status means every status."""
    model_config = ConfigDict(extra="forbid")

    status: Optional[Literal["unread", "read", "replied", "all"]] = None

    def to_query(self) -> dict:
        if self.status and self.status != "all":
            return {"status": self.status}
        return {}


class UnreadCount(CamelModel):
    unread_count: int


class ApiResponse(CamelModel, Generic[T]):
    """Envelope every endpoint answers with."""
    success: bool = True
    message: Optional[str] = None
    data: Optional[T] = None
    error: Optional[str] = None
    warning: Optional[str] = None
    email_sent: Optional[bool] = None
