"""
Contact message lifecycle: submission, inbox listing, triage, reply and removal.

Replies are written before the email goes out. A failed or slow send only
downgrades the response to a warning; the stored reply is never rolled back.
"""
import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable, Optional

from bson import ObjectId
from bson.errors import InvalidId
from pydantic import ValidationError
from pymongo import DESCENDING, ReturnDocument
from pymongo.errors import PyMongoError

from constants import (
    CONTACT_STATUS_READ,
    CONTACT_STATUS_REPLIED,
    CONTACT_STATUS_UNREAD,
    DISPATCH_TIMEOUT_SECONDS,
)
from email_helper import Dispatcher
from models.contact import ContactCreate, ContactListFilter, ContactMessage, ReplyRequest
from utils.exceptions import (
    DispatchError,
    NotFoundException,
    StorageException,
    ValidationException,
)
from utils.pagination import PaginatedResponse, create_paginated_response, normalize_pagination

logger = logging.getLogger(__name__)


def utc_now() -> datetime:
    # BSON dates keep milliseconds only; truncate so stored and returned values match
    now = datetime.now(timezone.utc)
    return now.replace(microsecond=now.microsecond // 1000 * 1000)


@dataclass
class ReplyOutcome:
    message: ContactMessage
    email_sent: bool
    provider_message_id: Optional[str] = None
    warning: Optional[str] = None
    error: Optional[str] = None


def _validation_errors(exc: ValidationError) -> dict:
    return {
        ".".join(str(loc) for loc in error["loc"]) or "request": error["msg"]
        for error in exc.errors()
    }


def _object_id(message_id: str) -> ObjectId:
    # A malformed id can never match a stored message
    try:
        return ObjectId(message_id)
    except (InvalidId, TypeError):
        raise NotFoundException("Message", message_id)


class ContactService:
    def __init__(
        self,
        collection,
        dispatcher: Dispatcher,
        clock: Callable[[], datetime] = utc_now,
        dispatch_timeout: float = DISPATCH_TIMEOUT_SECONDS
    ):
        self.collection = collection
        self.dispatcher = dispatcher
        self.clock = clock
        self.dispatch_timeout = dispatch_timeout

    async def submit(self, name: str, email: str, subject: str, message: str) -> ContactMessage:
        try:
            contact = ContactCreate(name=name, email=email, subject=subject, message=message)
        except ValidationError as e:
            raise ValidationException("Please provide all required fields", errors=_validation_errors(e))

        now = self.clock()
        document = contact.model_dump()
        document.update({
            "status": CONTACT_STATUS_UNREAD,
            "admin_reply": None,
            "created_at": now,
            "updated_at": now,
        })

        try:
            result = await self.collection.insert_one(document)
        except PyMongoError as e:
            logger.error(f"Failed to store contact message: {e}")
            raise StorageException("Failed to send message")

        document["_id"] = result.inserted_id
        logger.info(f"New contact message {result.inserted_id} received")
        return ContactMessage.from_document(document)

    async def list_messages(
        self,
        filters: Optional[ContactListFilter] = None,
        page: Optional[int] = None,
        page_size: Optional[int] = None
    ) -> PaginatedResponse[ContactMessage]:
        query = (filters or ContactListFilter()).to_query()
        page, page_size = normalize_pagination(page, page_size)
        skip = (page - 1) * page_size

        try:
            total = await self.collection.count_documents(query)
            cursor = (
                self.collection.find(query)
                .sort([("created_at", DESCENDING), ("_id", DESCENDING)])
                .skip(skip)
                .limit(page_size)
            )
            items = [ContactMessage.from_document(doc) async for doc in cursor]
        except PyMongoError as e:
            logger.error(f"Failed to list contact messages: {e}")
            raise StorageException("Failed to fetch messages")

        return create_paginated_response(items=items, total=total, page=page, page_size=page_size)

    async def count_unread(self) -> int:
        try:
            return await self.collection.count_documents({"status": CONTACT_STATUS_UNREAD})
        except PyMongoError as e:
            logger.error(f"Failed to count unread messages: {e}")
            raise StorageException("Failed to fetch unread count")

    async def get(self, message_id: str) -> ContactMessage:
        oid = _object_id(message_id)
        try:
            doc = await self.collection.find_one({"_id": oid})
        except PyMongoError as e:
            logger.error(f"Failed to load message {message_id}: {e}")
            raise StorageException("Failed to fetch message")

        if not doc:
            raise NotFoundException("Message", message_id)
        return ContactMessage.from_document(doc)

    async def mark_read(self, message_id: str) -> ContactMessage:
        # Unconditional: a replied message goes back to "read" as well
        oid = _object_id(message_id)
        try:
            doc = await self.collection.find_one_and_update(
                {"_id": oid},
                {"$set": {"status": CONTACT_STATUS_READ, "updated_at": self.clock()}},
                return_document=ReturnDocument.AFTER
            )
        except PyMongoError as e:
            logger.error(f"Failed to mark message {message_id} as read: {e}")
            raise StorageException("Failed to update message")

        if not doc:
            raise NotFoundException("Message", message_id)
        return ContactMessage.from_document(doc)

    async def reply(self, message_id: str, reply_text: str, replied_by: str) -> ReplyOutcome:
        try:
            reply_text = ReplyRequest(reply_message=reply_text).reply_message
        except ValidationError as e:
            raise ValidationException("Reply message is required", errors=_validation_errors(e))

        oid = _object_id(message_id)
        now = self.clock()
        admin_reply = {"message": reply_text, "replied_at": now, "replied_by": str(replied_by)}

        try:
            # Only the first reply is recorded; the filter makes that atomic
            doc = await self.collection.find_one_and_update(
                {"_id": oid, "admin_reply": None},
                {"$set": {
                    "admin_reply": admin_reply,
                    "status": CONTACT_STATUS_REPLIED,
                    "updated_at": now,
                }},
                return_document=ReturnDocument.AFTER
            )
            if not doc:
                exists = await self.collection.find_one({"_id": oid}, {"_id": 1})
        except PyMongoError as e:
            logger.error(f"Failed to record reply for message {message_id}: {e}")
            raise StorageException("Failed to send reply")

        if not doc:
            if not exists:
                raise NotFoundException("Message", message_id)
            raise ValidationException("This message has already been replied to")

        message = ContactMessage.from_document(doc)
        logger.info(f"Reply recorded for message {message_id} by admin {replied_by}")
        return await self._dispatch_reply(message, reply_text)

    async def _dispatch_reply(self, message: ContactMessage, reply_text: str) -> ReplyOutcome:
        try:
            provider_id = await asyncio.wait_for(
                self.dispatcher.send(message.email, message.name, message.subject, reply_text),
                timeout=self.dispatch_timeout
            )
        except DispatchError as e:
            logger.warning(f"Reply email for message {message.id} was not sent: {e}")
            return ReplyOutcome(
                message=message,
                email_sent=False,
                warning="Reply saved but the email could not be sent",
                error=str(e)
            )
        except asyncio.TimeoutError:
            logger.warning(f"Reply email for message {message.id} timed out after {self.dispatch_timeout}s")
            return ReplyOutcome(
                message=message,
                email_sent=False,
                warning="Reply saved but the email could not be sent",
                error=f"Email provider did not answer within {self.dispatch_timeout} seconds"
            )

        return ReplyOutcome(message=message, email_sent=True, provider_message_id=provider_id)

    async def remove(self, message_id: str) -> None:
        oid = _object_id(message_id)
        try:
            doc = await self.collection.find_one_and_delete({"_id": oid})
        except PyMongoError as e:
            logger.error(f"Failed to delete message {message_id}: {e}")
            raise StorageException("Failed to delete message")

        if not doc:
            raise NotFoundException("Message", message_id)
        logger.info(f"Message {message_id} deleted")
