from datetime import datetime, timezone

from fastapi import APIRouter

from database import ping
from models.contact import ApiResponse

router = APIRouter(prefix="/health", tags=["Health"])


@router.get("", response_model=ApiResponse[dict], response_model_exclude_none=True)
async def health_check():
    return ApiResponse(
        message="NexGen Contact API is running",
        data={"status": "OK", "timestamp": datetime.now(timezone.utc).isoformat()}
    )


@router.get("/database", response_model=ApiResponse[dict], response_model_exclude_none=True)
async def database_health():
    if await ping():
        return ApiResponse(message="MongoDB connected", data={"database": "connected"})
    return ApiResponse(
        success=False,
        message="MongoDB connection failed",
        data={"database": "disconnected"}
    )
