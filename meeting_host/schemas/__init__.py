"""
meeting_host.schemas
~~~~~~~~~~~~~~~~~~~~
Pydantic schemas and models for the API.
"""
from meeting_host.schemas.api_response import ApiResponse
from meeting_host.schemas.room_events import (
    AdmissionData,
    OccupantData,
    OccupantEventRequest,
    RoomHostInfoData,
    RoomIntent,
    SessionData,
    SystemChatPayload,
)

# Call model_rebuild to resolve forward references in generic Pydantic models.
ApiResponse.model_rebuild()
