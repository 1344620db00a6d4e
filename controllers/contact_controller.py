from typing import Optional

from fastapi import APIRouter, Depends, Query, Request
from pydantic import ValidationError

from auth.auth_utils import AdminIdentity, verify_admin
from constants import DEFAULT_PAGE, DEFAULT_PAGE_SIZE
from database import contacts_collection
from middleware.rate_limiter import limiter, RATE_LIMIT_CONTACT
from models.contact import (
    ApiResponse,
    ContactCreate,
    ContactListFilter,
    ContactMessage,
    ReplyRequest,
    UnreadCount,
)
from services.contact_service import ContactService
from utils.exceptions import APIException, DispatchError, ValidationException
from utils.pagination import PaginatedResponse

router = APIRouter(prefix="/contact", tags=["Contact"])


def get_contact_service(request: Request) -> ContactService:
    return ContactService(contacts_collection, request.app.state.dispatcher)


@router.post("", response_model=ApiResponse[ContactMessage], status_code=201, response_model_exclude_none=True)
@limiter.limit(RATE_LIMIT_CONTACT)
async def create_contact_message(
    request: Request,
    contact: ContactCreate,
    service: ContactService = Depends(get_contact_service)
):
    created = await service.submit(contact.name, contact.email, contact.subject, contact.message)
    return ApiResponse(message="Message sent successfully", data=created)


# -------------------
# ADMIN INBOX (🔒 protected)
# -------------------
@router.get("/messages", response_model=ApiResponse[PaginatedResponse[ContactMessage]], response_model_exclude_none=True)
async def get_all_messages(
    status: Optional[str] = Query(None, description="unread, read, replied or all"),
    page: Optional[int] = Query(DEFAULT_PAGE, description="Page number (1-indexed)"),
    limit: Optional[int] = Query(DEFAULT_PAGE_SIZE, description="Number of items per page (max 100)"),
    admin: AdminIdentity = Depends(verify_admin),
    service: ContactService = Depends(get_contact_service)
):
    try:
        filters = ContactListFilter(status=status)
    except ValidationError:
        raise ValidationException(f"Unknown status filter: {status}")

    result = await service.list_messages(filters, page=page, page_size=limit)
    return ApiResponse(data=result)


@router.get("/unread-count", response_model=ApiResponse[UnreadCount], response_model_exclude_none=True)
async def get_unread_count(
    admin: AdminIdentity = Depends(verify_admin),
    service: ContactService = Depends(get_contact_service)
):
    return ApiResponse(data=UnreadCount(unread_count=await service.count_unread()))


@router.get("/test-email", response_model=ApiResponse[dict], response_model_exclude_none=True)
async def test_email_config(
    request: Request,
    admin: AdminIdentity = Depends(verify_admin)
):
    """Check that the email provider accepts our credentials."""
    try:
        details = await request.app.state.dispatcher.verify()
    except DispatchError as e:
        raise APIException(str(e), status_code=502, error_code="EMAIL_PROVIDER_ERROR")
    return ApiResponse(message="Email configuration is working", data=details)


@router.get("/messages/{message_id}", response_model=ApiResponse[ContactMessage], response_model_exclude_none=True)
async def get_message(
    message_id: str,
    admin: AdminIdentity = Depends(verify_admin),
    service: ContactService = Depends(get_contact_service)
):
    return ApiResponse(data=await service.get(message_id))


@router.patch("/messages/{message_id}", response_model=ApiResponse[ContactMessage], response_model_exclude_none=True)
@router.patch("/messages/{message_id}/read", response_model=ApiResponse[ContactMessage], response_model_exclude_none=True)
async def mark_as_read(
    message_id: str,
    admin: AdminIdentity = Depends(verify_admin),
    service: ContactService = Depends(get_contact_service)
):
    return ApiResponse(data=await service.mark_read(message_id))


@router.post("/messages/{message_id}/reply", response_model=ApiResponse[ContactMessage], response_model_exclude_none=True)
async def reply_to_message(
    message_id: str,
    body: ReplyRequest,
    admin: AdminIdentity = Depends(verify_admin),
    service: ContactService = Depends(get_contact_service)
):
    outcome = await service.reply(message_id, body.reply_message, admin.id)

    if outcome.email_sent:
        return ApiResponse(message="Reply sent successfully", data=outcome.message, email_sent=True)

    return ApiResponse(
        message="Reply saved, but the email could not be sent",
        data=outcome.message,
        email_sent=False,
        warning=outcome.warning,
        error=outcome.error
    )


@router.delete("/messages/{message_id}", response_model=ApiResponse[dict], response_model_exclude_none=True)
async def delete_message(
    message_id: str,
    admin: AdminIdentity = Depends(verify_admin),
    service: ContactService = Depends(get_contact_service)
):
    await service.remove(message_id)
    return ApiResponse(message="Message deleted successfully")
