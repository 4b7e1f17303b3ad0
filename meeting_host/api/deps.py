from fastapi.requests import HTTPConnection

from meeting_host.services.hosting_system import HostingSystem
from meeting_host.services.room_server import InMemoryRoomServer


def get_hosting_system(conn: HTTPConnection) -> HostingSystem:
    return conn.app.state.hosting_system


def get_room_server(conn: HTTPConnection) -> InMemoryRoomServer:
    """HTTP 请求与 WebSocket 连接通用。"""
    return conn.app.state.room_server
