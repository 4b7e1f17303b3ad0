"""
meeting_host.schemas.api_response
~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~

房间事件接口的应答信封。房间服务器只看 ``code`` 判断成功与否，
准入结果等业务数据放在 ``data`` 中。
"""
from __future__ import annotations

from typing import Any, Generic, TypeVar

from pydantic import BaseModel, Field

T = TypeVar("T")


class ApiResponse(BaseModel, Generic[T]):
    """房间事件接口的应答。

    - pre-join: ``data`` 为 ``AdmissionData``，被拒绝时 ``code`` 仍为 200，拒绝原因在 ``data.reason``。
    - joined / left / 会话注销: ``data`` 为 null。
    - 房间不存在、会话不存在: ``code`` 为 404（HTTP 状态码同为 404）。
    - 未处理异常: 由全局异常处理器返回 ``code`` 500，``msg`` 为异常信息（prod 环境隐藏细节）。

    Attributes:
        code: 业务状态码，与 HTTP 状态码一致。
        data: 业务数据，失败时为 null。
        msg: 状态消息。
    """

    code: int = Field(default=200, description="业务状态码")
    data: T = Field(..., description="业务数据")
    msg: str = Field(default="success", description="状态消息")

    @classmethod
    def ok(cls, data: T, msg: str = "success") -> ApiResponse[T]:
        """快捷构造成功响应。"""
        return cls(code=200, data=data, msg=msg)

    @classmethod
    def fail(cls, msg: str = "error", code: int = 500, data: Any = None) -> ApiResponse[Any]:
        """快捷构造失败响应。"""
        return cls(code=code, data=data, msg=msg)
