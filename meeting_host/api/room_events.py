"""
meeting_host.api.room_events
~~~~~~~~~~~~~~~~~~~~~~~~~~~~

房间服务器事件 REST 接口 —— 房间服务器在参与者进出时回调这些端点。

端点:
  - ``POST   /rooms/{room_id}/occupants/pre-join`` → 参与者即将入场，返回准入结果
  - ``POST   /rooms/{room_id}/occupants/joined``   → 参与者已入场
  - ``POST   /rooms/{room_id}/occupants/left``     → 参与者已离开
  - ``GET    /rooms``                              → 所有房间的主持人状态
  - ``GET    /rooms/{room_id}``                    → 单个房间的主持人状态
  - ``PUT    /sessions``                           → 登记 / 刷新在线会话
  - ``DELETE /sessions/{session_id}``              → 会话断开
"""
from __future__ import annotations

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from meeting_host.api.deps import get_hosting_system
from meeting_host.schemas.api_response import ApiResponse
from meeting_host.schemas.room_events import (
    AdmissionData,
    OccupantEventRequest,
    RoomHostInfoData,
    SessionData,
)
from meeting_host.services.hosting_system import HostingSystem

router: APIRouter = APIRouter()


def _not_found(msg: str) -> JSONResponse:
    return JSONResponse(status_code=404, content=ApiResponse.fail(msg=msg, code=404).model_dump())


# ── 参与者事件 ────────────────────────────────────────────────────────

@router.post(
    "/rooms/{room_id}/occupants/pre-join",
    summary="参与者即将入场",
    response_model=ApiResponse[AdmissionData],
)
async def occupant_pre_join(
    room_id: str,
    body: OccupantEventRequest,
    system: HostingSystem = Depends(get_hosting_system),
):
    """房间服务器在参与者入场前调用，``admitted=false`` 时应拒绝入场。"""
    admission = await system.pre_join(
        room_id,
        body.occupant.to_occupant(),
        body.session.to_session() if body.session else None,
    )
    return ApiResponse.ok(data=admission)


@router.post("/rooms/{room_id}/occupants/joined", summary="参与者已入场", response_model=ApiResponse[None])
async def occupant_joined(
    room_id: str,
    body: OccupantEventRequest,
    system: HostingSystem = Depends(get_hosting_system),
):
    await system.joined(
        room_id,
        body.occupant.to_occupant(),
        body.session.to_session() if body.session else None,
    )
    return ApiResponse.ok(data=None)


@router.post("/rooms/{room_id}/occupants/left", summary="参与者已离开", response_model=ApiResponse[None])
async def occupant_left(
    room_id: str,
    body: OccupantEventRequest,
    system: HostingSystem = Depends(get_hosting_system),
):
    await system.left(
        room_id,
        body.occupant.to_occupant(),
        body.session.to_session() if body.session else None,
    )
    return ApiResponse.ok(data=None)


# ── 房间查询 ──────────────────────────────────────────────────────────

@router.get("/rooms", summary="所有房间的主持人状态", response_model=ApiResponse[list[RoomHostInfoData]])
async def list_rooms(system: HostingSystem = Depends(get_hosting_system)):
    rooms = [system.room_info(room.jid) for room in system.server.list_rooms()]
    return ApiResponse.ok(data=[info for info in rooms if info is not None])


@router.get("/rooms/{room_id}", summary="房间主持人状态", response_model=ApiResponse[RoomHostInfoData])
async def room_info(room_id: str, system: HostingSystem = Depends(get_hosting_system)):
    """返回指定房间的主持人状态；房间不存在时返回 404。"""
    info = system.room_info(room_id)
    if info is None:
        return _not_found(f"房间不存在: {room_id}")
    return ApiResponse.ok(data=info)


# ── 会话 ──────────────────────────────────────────────────────────────

@router.put("/sessions", summary="登记在线会话", response_model=ApiResponse[SessionData])
async def put_session(body: SessionData, system: HostingSystem = Depends(get_hosting_system)):
    """登记或刷新一条在线会话（订阅状态变化时也调用此接口）。"""
    system.register_session(body.to_session())
    return ApiResponse.ok(data=body)


@router.delete("/sessions/{session_id}", summary="会话断开", response_model=ApiResponse[None])
async def delete_session(session_id: str, system: HostingSystem = Depends(get_hosting_system)):
    if system.drop_session(session_id) is None:
        return _not_found(f"会话不存在: {session_id}")
    return ApiResponse.ok(data=None)
