"""
API依赖项 - 应用服务与实时 Hub 的注入
"""
from fastapi import Request, WebSocket

from application.ports.realtime import ChangeEventPublisher, NullPublisher
from application.services.blog_service import BlogApplicationService
from application.services.realtime_hub import RealtimeHub
from application.services.user_service import UserApplicationService
from infrastructure.unit_of_work import SQLAlchemyUnitOfWork


def get_publisher(request: Request) -> ChangeEventPublisher:
    """Hub 未挂载时退化为丢弃事件的发布器，写操作不受影响"""
    hub = getattr(request.app.state, "realtime_hub", None)
    return hub if hub is not None else NullPublisher()


def get_user_service(request: Request) -> UserApplicationService:
    return UserApplicationService(uow_factory=SQLAlchemyUnitOfWork, publisher=get_publisher(request))


def get_blog_service(request: Request) -> BlogApplicationService:
    return BlogApplicationService(uow_factory=SQLAlchemyUnitOfWork, publisher=get_publisher(request))


def get_realtime_hub(ws: WebSocket) -> RealtimeHub:
    hub = getattr(ws.app.state, "realtime_hub", None)
    if hub is None:
        raise RuntimeError("Realtime hub not initialized. Ensure lifespan sets app.state.realtime_hub.")
    return hub
