"""
Notification Routes

GET    /notifications             - Own notifications with unread count
PATCH  /notifications/read-all    - Mark all as read
PATCH  /notifications/{id}/read   - Mark one as read
DELETE /notifications/{id}        - Delete a notification
"""

from fastapi import APIRouter, HTTPException, Depends, Query

from app.core.auth import get_current_user
from app.schemas.schemas import MessageResponse
from app.services.mongo_service import paginate, paginated_response, to_object_id
from app.services.notification_service import NotificationService

router = APIRouter(prefix="/notifications", tags=["Notifications"])


@router.get("")
async def list_notifications(
    unread_only: bool = Query(False),
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    user: dict = Depends(get_current_user)
):
    service = NotificationService()
    query = {"recipient": user["user_id"]}
    if unread_only:
        query["is_read"] = False
    result = paginated_response(paginate(service.collection, query, page, limit, sort=[("created_at", -1)]))
    result["unread_count"] = service.unread_count(user["user_id"])
    return result


@router.patch("/read-all")
async def mark_all_read(user: dict = Depends(get_current_user)):
    updated = NotificationService().mark_all_read(user["user_id"])
    return {"message": "All notifications marked as read", "updated": updated}


@router.patch("/{notification_id}/read", response_model=MessageResponse)
async def mark_read(notification_id: str, user: dict = Depends(get_current_user)):
    if not NotificationService().mark_read(to_object_id(notification_id), user["user_id"]):
        raise HTTPException(status_code=404, detail="Notification not found")
    return MessageResponse(message="Notification marked as read")


@router.delete("/{notification_id}", response_model=MessageResponse)
async def delete_notification(notification_id: str, user: dict = Depends(get_current_user)):
    result = NotificationService().collection.delete_one(
        {"_id": to_object_id(notification_id), "recipient": user["user_id"]}
    )
    if result.deleted_count == 0:
        raise HTTPException(status_code=404, detail="Notification not found")
    return MessageResponse(message="Notification deleted")
