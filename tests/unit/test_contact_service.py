"""Unit tests for the contact message lifecycle service

Covers submission validation, inbox listing and pagination, mark-read,
replies with and without a working email provider, and deletion.
"""

import asyncio
from datetime import datetime, timezone

import pytest
from bson import ObjectId

from models.contact import ContactListFilter
from services.contact_service import ContactService
from utils.exceptions import DispatchError, NotFoundException, ValidationException


async def _submit(service, n=1, **overrides):
    created = []
    for i in range(n):
        fields = {
            "name": f"Sender {i}",
            "email": f"sender{i}@example.com",
            "subject": f"Subject {i}",
            "message": f"Message body {i}",
        }
        fields.update(overrides)
        created.append(await service.submit(**fields))
    return created


class TestSubmit:
    """Test ContactService.submit"""

    @pytest.mark.asyncio
    async def test_valid_submission_starts_unread(self, service):
        message = await service.submit("Jane", "jane@example.com", "Hello", "Quote please")

        assert message.status == "unread"
        assert message.admin_reply is None
        assert ObjectId.is_valid(message.id)
        assert message.created_at == message.updated_at

    @pytest.mark.asyncio
    async def test_each_submission_gets_a_new_id(self, service):
        messages = await _submit(service, n=5)
        assert len({m.id for m in messages}) == 5

    @pytest.mark.asyncio
    async def test_fields_are_trimmed_and_email_lowercased(self, service):
        message = await service.submit("  Jane  ", "  Jane@Example.COM ", " Hi ", " Body ")

        assert message.name == "Jane"
        assert message.email == "jane@example.com"
        assert message.subject == "Hi"
        assert message.message == "Body"

    @pytest.mark.asyncio
    @pytest.mark.parametrize("field", ["name", "email", "subject", "message"])
    async def test_blank_field_is_rejected_and_nothing_stored(self, service, collection, field):
        fields = {"name": "Jane", "email": "jane@example.com", "subject": "Hi", "message": "Body"}
        fields[field] = "   "

        with pytest.raises(ValidationException) as exc_info:
            await service.submit(**fields)

        assert exc_info.value.status_code == 400
        assert field in exc_info.value.errors
        assert await collection.count_documents({}) == 0

    @pytest.mark.asyncio
    async def test_invalid_email_is_rejected(self, service, collection):
        with pytest.raises(ValidationException):
            await service.submit("Jane", "not-an-email", "Hi", "Body")
        assert await collection.count_documents({}) == 0

    @pytest.mark.asyncio
    async def test_submission_sends_no_email(self, service, dispatcher):
        await _submit(service)
        assert dispatcher.sent == []


class TestListMessages:
    """Test ContactService.list_messages filtering, ordering and pagination"""

    @pytest.mark.asyncio
    async def test_newest_first(self, service):
        created = await _submit(service, n=3)

        page = await service.list_messages()

        assert [m.id for m in page.items] == [m.id for m in reversed(created)]
        assert page.total == 3

    @pytest.mark.asyncio
    async def test_status_filter_returns_exact_matches(self, service):
        created = await _submit(service, n=4)
        await service.mark_read(created[0].id)
        await service.mark_read(created[1].id)

        page = await service.list_messages(ContactListFilter(status="unread"))

        assert page.total == 2
        assert all(m.status == "unread" for m in page.items)

    @pytest.mark.asyncio
    @pytest.mark.parametrize("filters", [None, ContactListFilter(), ContactListFilter(status="all")])
    async def test_no_filter_or_all_returns_every_status(self, service, filters):
        created = await _submit(service, n=3)
        await service.mark_read(created[0].id)
        await service.reply(created[1].id, "Thanks!", "admin-1")

        page = await service.list_messages(filters)

        assert page.total == 3
        assert {m.status for m in page.items} == {"unread", "read", "replied"}

    @pytest.mark.asyncio
    async def test_second_page_of_twenty_five(self, service):
        created = await _submit(service, n=25)
        newest_first = [m.id for m in reversed(created)]

        page = await service.list_messages(page=2, page_size=10)

        assert [m.id for m in page.items] == newest_first[10:20]
        assert page.total == 25
        assert page.pages == 3
        assert page.current_page == 2

    @pytest.mark.asyncio
    async def test_last_page_is_partial(self, service):
        await _submit(service, n=25)
        page = await service.list_messages(page=3, page_size=10)
        assert len(page.items) == 5

    @pytest.mark.asyncio
    async def test_invalid_pagination_is_clamped(self, service):
        await _submit(service, n=3)

        page = await service.list_messages(page=0, page_size=-5)

        assert page.current_page == 1
        assert page.page_size == 10
        assert len(page.items) == 3

    @pytest.mark.asyncio
    async def test_page_size_capped(self, service):
        page = await service.list_messages(page=1, page_size=1000)
        assert page.page_size == 100

    @pytest.mark.asyncio
    async def test_empty_inbox(self, service):
        page = await service.list_messages()
        assert page.items == []
        assert page.total == 0
        assert page.pages == 0


class TestCountUnread:

    @pytest.mark.asyncio
    async def test_counts_only_unread(self, service):
        created = await _submit(service, n=3)
        await service.mark_read(created[0].id)

        assert await service.count_unread() == 2


class TestMarkRead:
    """Test ContactService.mark_read"""

    @pytest.mark.asyncio
    async def test_unread_becomes_read(self, service):
        [message] = await _submit(service)

        updated = await service.mark_read(message.id)

        assert updated.status == "read"
        assert updated.updated_at > message.updated_at

    @pytest.mark.asyncio
    async def test_is_idempotent(self, service):
        [message] = await _submit(service)

        await service.mark_read(message.id)
        again = await service.mark_read(message.id)

        assert again.status == "read"

    @pytest.mark.asyncio
    async def test_replied_message_regresses_to_read(self, service):
        """Current behavior: mark-read overwrites 'replied'. Change deliberately."""
        [message] = await _submit(service)
        await service.reply(message.id, "Thanks!", "admin-1")

        updated = await service.mark_read(message.id)

        assert updated.status == "read"
        assert updated.admin_reply is not None

    @pytest.mark.asyncio
    @pytest.mark.parametrize("message_id", [str(ObjectId()), "not-an-object-id"])
    async def test_unknown_id(self, service, message_id):
        with pytest.raises(NotFoundException):
            await service.mark_read(message_id)


class TestReply:
    """Test ContactService.reply and the email hand-off"""

    @pytest.mark.asyncio
    async def test_reply_records_and_sends(self, service, dispatcher):
        [message] = await _submit(service, name="Jane", email="jane@example.com", subject="Pricing")

        outcome = await service.reply(message.id, "Our prices start at $500.", "admin-1")

        assert outcome.email_sent is True
        assert outcome.warning is None
        assert outcome.message.status == "replied"
        assert outcome.message.admin_reply.message == "Our prices start at $500."
        assert outcome.message.admin_reply.replied_by == "admin-1"
        assert dispatcher.sent == [{
            "to_address": "jane@example.com",
            "to_name": "Jane",
            "original_subject": "Pricing",
            "reply_body": "Our prices start at $500.",
        }]

    @pytest.mark.asyncio
    async def test_reply_survives_dispatch_failure(self, service, failing_dispatcher):
        [message] = await _submit(service)

        outcome = await service.reply(message.id, "Thanks for reaching out.", "admin-1")

        assert outcome.email_sent is False
        assert outcome.warning
        assert "domain is not verified" in outcome.error

        stored = await service.get(message.id)
        assert stored.status == "replied"
        assert stored.admin_reply.message == "Thanks for reaching out."

    @pytest.mark.asyncio
    async def test_reply_survives_dispatch_timeout(self, collection, dispatcher):
        dispatcher.delay = 1
        service = ContactService(collection, dispatcher, dispatch_timeout=0.05)
        [message] = await _submit(service)

        outcome = await service.reply(message.id, "Thanks!", "admin-1")

        assert outcome.email_sent is False
        assert "did not answer" in outcome.error
        assert (await service.get(message.id)).status == "replied"

    @pytest.mark.asyncio
    async def test_missing_credentials_are_a_warning(self, collection):
        from email_helper import ResendDispatcher

        service = ContactService(collection, ResendDispatcher(api_key=None))
        [message] = await _submit(service)

        outcome = await service.reply(message.id, "Thanks!", "admin-1")

        assert outcome.email_sent is False
        assert "RESEND_API_KEY" in outcome.error
        assert (await service.get(message.id)).status == "replied"

    @pytest.mark.asyncio
    async def test_unreadable_provider_response_is_a_warning(self, collection):
        import httpx
        from email_helper import ResendDispatcher

        def handler(request):
            return httpx.Response(200, text="<html>ok</html>", headers={"Content-Type": "text/html"})

        dispatcher = ResendDispatcher(
            api_key="re_test_key",
            base_url="https://api.resend.test",
            transport=httpx.MockTransport(handler)
        )
        service = ContactService(collection, dispatcher)
        [message] = await _submit(service)

        outcome = await service.reply(message.id, "Thanks!", "admin-1")

        assert outcome.email_sent is False
        assert "unreadable response" in outcome.error
        assert outcome.message.status == "replied"
        assert (await service.get(message.id)).admin_reply.message == "Thanks!"

    @pytest.mark.asyncio
    @pytest.mark.parametrize("text", ["", "   \n  "])
    async def test_empty_reply_rejected(self, service, dispatcher, text):
        [message] = await _submit(service)

        with pytest.raises(ValidationException):
            await service.reply(message.id, text, "admin-1")

        assert (await service.get(message.id)).status == "unread"
        assert dispatcher.sent == []

    @pytest.mark.asyncio
    async def test_unknown_id_leaves_store_unchanged(self, service, collection, dispatcher):
        await _submit(service, n=2)

        with pytest.raises(NotFoundException):
            await service.reply(str(ObjectId()), "Hello", "admin-1")

        assert await collection.count_documents({}) == 2
        assert await collection.count_documents({"status": "replied"}) == 0
        assert dispatcher.sent == []

    @pytest.mark.asyncio
    async def test_second_reply_rejected(self, service, dispatcher):
        [message] = await _submit(service)
        await service.reply(message.id, "First answer", "admin-1")

        with pytest.raises(ValidationException):
            await service.reply(message.id, "Second answer", "admin-2")

        stored = await service.get(message.id)
        assert stored.admin_reply.message == "First answer"
        assert stored.admin_reply.replied_by == "admin-1"
        assert len(dispatcher.sent) == 1

    @pytest.mark.asyncio
    async def test_concurrent_replies_commit_once(self, service, dispatcher):
        [message] = await _submit(service)

        results = await asyncio.gather(
            service.reply(message.id, "Answer A", "admin-1"),
            service.reply(message.id, "Answer B", "admin-2"),
            return_exceptions=True
        )

        assert sum(1 for r in results if isinstance(r, ValidationException)) == 1
        assert len(dispatcher.sent) == 1

    @pytest.mark.asyncio
    async def test_replied_at_within_call_window(self, collection, dispatcher):
        service = ContactService(collection, dispatcher)
        [message] = await _submit(service)

        started = datetime.now(timezone.utc)
        await service.reply(message.id, "Thanks!", "admin-1")
        finished = datetime.now(timezone.utc)

        # The store keeps milliseconds only
        started_floor = started.replace(microsecond=started.microsecond // 1000 * 1000)
        fetched = await service.get(message.id)
        assert started_floor <= fetched.admin_reply.replied_at <= finished
        assert fetched.admin_reply.replied_at.microsecond % 1000 == 0

    @pytest.mark.asyncio
    async def test_dispatch_uses_captured_fields_after_delete(self, service, dispatcher):
        """The send does not need the document to still exist."""
        [message] = await _submit(service, email="late@example.com")

        original_send = dispatcher.send

        async def delete_then_send(*args):
            await service.remove(message.id)
            return await original_send(*args)

        dispatcher.send = delete_then_send
        outcome = await service.reply(message.id, "Thanks!", "admin-1")

        assert outcome.email_sent is True
        assert dispatcher.sent[0]["to_address"] == "late@example.com"


class TestRemove:
    """Test ContactService.remove"""

    @pytest.mark.asyncio
    async def test_removed_message_is_gone(self, service):
        [message] = await _submit(service)

        await service.remove(message.id)

        with pytest.raises(NotFoundException):
            await service.mark_read(message.id)
        with pytest.raises(NotFoundException):
            await service.reply(message.id, "Hello", "admin-1")
        with pytest.raises(NotFoundException):
            await service.remove(message.id)
        assert (await service.list_messages()).total == 0

    @pytest.mark.asyncio
    async def test_unknown_id(self, service):
        with pytest.raises(NotFoundException):
            await service.remove(str(ObjectId()))


class TestStorageErrors:

    @pytest.mark.asyncio
    async def test_store_failure_becomes_storage_exception(self, dispatcher):
        from pymongo.errors import ServerSelectionTimeoutError
        from utils.exceptions import StorageException

        class DownCollection:
            async def insert_one(self, document):
                raise ServerSelectionTimeoutError("no servers")

            async def count_documents(self, query, **kwargs):
                raise ServerSelectionTimeoutError("no servers")

        service = ContactService(DownCollection(), dispatcher)

        with pytest.raises(StorageException) as exc_info:
            await service.submit("Jane", "jane@example.com", "Hi", "Body")
        assert exc_info.value.status_code == 500

        with pytest.raises(StorageException):
            await service.count_unread()


def test_dispatch_error_string_includes_detail():
    error = DispatchError("Email provider rejected the message", detail="quota exceeded")
    assert str(error) == "Email provider rejected the message: quota exceeded"
