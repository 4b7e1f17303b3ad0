"""
meeting_host.core.config
~~~~~~~~~~~~~~~~~~~~~~~~

集中式配置管理，基于 pydantic-settings 自动从 ``.env`` 文件加载。

支持多环境配置（dev / test / prod），加载顺序为:
  1. 环境变量（最高优先级）
  2. ``.env.{ENVIRONMENT}`` 环境专属文件
  3. ``.env`` 基础文件
  4. 字段默认值（最低优先级）

配置在启动时确定，之后不可修改（``frozen=True``）。
"""
from __future__ import annotations

import os
from functools import lru_cache
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

# 读取当前环境标识（在 Settings 类定义之前，用于决定加载哪个 .env 文件）
_CURRENT_ENV: str = os.getenv("ENVIRONMENT", "dev")


class Settings(BaseSettings):
    """全局配置对象，字段值按如下优先级加载：环境变量 > .env.{env} > .env > 默认值。"""

    # ── 基础 ──────────────────────────────────────────────────────────
    PROJECT_NAME: str = Field(default="Meeting Host Controller", description="项目名称")
    VERSION: str = Field(default="0.1.0", description="版本号")
    ENVIRONMENT: Literal["dev", "test", "prod"] = Field(
        default="dev",
        description="运行环境：dev / test / prod",
    )

    # ── 域名 / 身份 ───────────────────────────────────────────────────
    MUC_DOMAIN_BASE: str = Field(..., description="会议域名，用于识别系统身份（focus / jvb）")
    XMPP_AUTH_DOMAIN: str | None = Field(
        default=None,
        description="内部认证域名，未设置时为 auth.{MUC_DOMAIN_BASE}",
    )
    ADMIN_JIDS: list[str] = Field(
        default_factory=list,
        description="额外的管理员 bare jid 列表",
    )
    HEALTHCHECK_ROOM_PREFIX: str = Field(
        default="__jicofo-health-check",
        description="健康检查房间名前缀，这类房间完全跳过选举逻辑",
    )

    # ── 选举 / 销毁 ───────────────────────────────────────────────────
    DESTROY_DELAY_SECONDS: float = Field(
        default=120,
        ge=0,
        description="无主持人时，销毁房间前的等待秒数",
    )
    HOST_GRACE_SECONDS: float = Field(
        default=3,
        ge=0,
        description="主持人离开后，重新选举的宽限秒数（超时仍无主持人则安排销毁）",
    )
    DESTROY_RECHECK_SECONDS: float = Field(
        default=1,
        gt=0,
        description="计时器提前触发时的复查间隔（容忍时钟漂移）",
    )
    PENDING_HOST_TIMEOUT_SECONDS: float = Field(
        default=10,
        gt=0,
        description="主持人在入场途中被授予后，等待其真正入场的秒数（超时未入场则撤销）",
    )
    REQUIRE_SUBSCRIPTION_FOR_CREATION: bool = Field(
        default=True,
        description="创建房间（首位非系统参与者）时是否要求有效订阅",
    )

    # ── 资格校验 ──────────────────────────────────────────────────────
    ELIGIBLE_SUBSCRIPTION_STATUSES: list[str] = Field(
        default_factory=lambda: ["active", "trialing"],
        description="视为有效订阅的状态值",
    )
    ENTITLEMENT_URL: str | None = Field(
        default=None,
        description="外部资格校验服务地址；未设置时仅根据会话中的订阅状态判断",
    )
    ENTITLEMENT_TIMEOUT_SECONDS: float = Field(
        default=5.0,
        gt=0,
        description="单次资格校验的超时秒数",
    )

    # ── 系统消息 ──────────────────────────────────────────────────────
    SYSTEM_DISPLAY_NAME: str = Field(default="System", description="系统消息显示名称")
    HOST_WELCOME_MESSAGE: str = Field(
        default="You are the meeting host. Please use excalidraw.com for whiteboard functionality.",
        description="成为主持人时发送给本人的私信",
    )
    NOTIFY_TIMEOUT_SECONDS: float = Field(
        default=2.0,
        gt=0,
        description="单条系统消息投递的超时秒数",
    )

    # ── 服务 ──────────────────────────────────────────────────────────
    HOST: str = Field(default="0.0.0.0", description="服务监听地址")
    PORT: int = Field(default=8000, description="服务监听端口")
    LOG_LEVEL: str = Field(default="INFO", description="日志级别（可被环境属性覆盖）")

    # ── Pydantic Settings ─────────────────────────────────────────────
    # 先加载 .env.{env} 再加载 .env，前者优先级更高
    model_config = SettingsConfigDict(
        env_file=(f".env.{_CURRENT_ENV}", ".env"),
        env_file_encoding="utf-8",
        extra="ignore",
        frozen=True,
    )

    # ── 环境判断 ──────────────────────────────────────────────────────

    @property
    def is_prod(self) -> bool:
        """当前是否为生产环境。"""
        return self.ENVIRONMENT == "prod"

    @property
    def is_dev(self) -> bool:
        """当前是否为开发环境。"""
        return self.ENVIRONMENT == "dev"

    @property
    def debug(self) -> bool:
        """是否开启 debug 模式。仅 dev 环境开启。"""
        return self.is_dev

    @property
    def reload(self) -> bool:
        """是否开启热重载。仅 dev 环境开启。"""
        return self.is_dev

    @property
    def effective_log_level(self) -> str:
        """根据环境自动推断日志级别。

        - dev  → INFO
        - test → DEBUG（方便排查测试失败）
        - prod → WARNING（减少噪音）

        如果环境变量中显式设置了 LOG_LEVEL，会覆盖此默认推断。
        """
        env_log = os.getenv("LOG_LEVEL")
        if env_log:
            return env_log
        return {
            "dev": "INFO",
            "test": "DEBUG",
            "prod": "WARNING",
        }.get(self.ENVIRONMENT, "INFO")

    # ── 身份派生值 ────────────────────────────────────────────────────

    @property
    def auth_domain(self) -> str:
        """内部组件（focus / jvb）所在的认证域名。"""
        return self.XMPP_AUTH_DOMAIN or f"auth.{self.MUC_DOMAIN_BASE}"

    @property
    def admin_jids(self) -> frozenset[str]:
        """所有被视为系统身份的 bare jid。"""
        domain = self.auth_domain.lower()
        builtin = {f"focus@{domain}", f"jvb@{domain}"}
        return frozenset(builtin | {jid.lower() for jid in self.ADMIN_JIDS})


@lru_cache
def get_settings() -> Settings:
    """获取全局 Settings 单例（带缓存，避免重复解析 .env）。"""
    return Settings()


settings: Settings = get_settings()
