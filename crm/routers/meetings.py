from fastapi import APIRouter, Depends, HTTPException, Response, status

from crm.exceptions import MeetingNotFoundError
from crm.routers.deps import STAFF_ROLES, require_roles
from crm.schemas.meetings import MeetingCreate, MeetingResponse, MeetingUpdate
from crm.schemas.tokens import CurrentUser
from crm.services.meetings import meeting_store

router = APIRouter(prefix="/meetings", tags=["meetings"])

staff_only = require_roles(*STAFF_ROLES)


@router.get("/all", response_model=list[MeetingResponse])
def list_meetings(_: CurrentUser = Depends(staff_only)) -> list[MeetingResponse]:
    return meeting_store.list_meetings()


@router.post(
    "/create", response_model=MeetingResponse, status_code=status.HTTP_201_CREATED
)
def create_meeting(
    payload: MeetingCreate, _: CurrentUser = Depends(staff_only)
) -> MeetingResponse:
    return meeting_store.create_meeting(payload)


@router.put("/update/{meeting_id}", response_model=MeetingResponse)
def update_meeting(
    meeting_id: int, payload: MeetingUpdate, _: CurrentUser = Depends(staff_only)
) -> MeetingResponse:
    try:
        return meeting_store.update_meeting(meeting_id, payload)
    except MeetingNotFoundError as exc:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)
        ) from exc


@router.delete("/delete/{meeting_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_meeting(meeting_id: int, _: CurrentUser = Depends(staff_only)) -> Response:
    try:
        meeting_store.delete_meeting(meeting_id)
    except MeetingNotFoundError as exc:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)
        ) from exc
    return Response(status_code=status.HTTP_204_NO_CONTENT)
