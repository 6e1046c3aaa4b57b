"""
告警 API 路由
活跃告警查询、确认、会话本地忽略，以及 WebSocket 实时推送
"""

from fastapi import APIRouter, Query, Request, WebSocket, WebSocketDisconnect, status
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field
from typing import Optional
import asyncio
import logging

from civic_pulse.errors import AlertNotFound, AlreadyAcknowledged, PersistenceFailure
from civic_pulse.api.response import success_response, error_response, ErrorCode, new_request_id

router = APIRouter(prefix="/api/alerts", tags=["告警"])


class AcknowledgeRequest(BaseModel):
    actor_id: str = Field(..., min_length=1, description="确认人 ID")


class DismissRequest(BaseModel):
    session_id: str = Field(..., min_length=1, description="会话 ID")


def _not_found(alert_id: str, request_id: str) -> JSONResponse:
    return JSONResponse(
        status_code=404,
        content=error_response(
            code=ErrorCode.RESOURCE_NOT_FOUND,
            message=f"告警不存在: {alert_id}",
            request_id=request_id
        )
    )


def _unavailable(e: Exception, request_id: str) -> JSONResponse:
    return JSONResponse(
        status_code=503,
        content=error_response(
            code=ErrorCode.DATABASE_UNAVAILABLE,
            message=str(e),
            request_id=request_id
        )
    )


@router.get("/active")
async def get_active_alerts(
    request: Request,
    session_id: Optional[str] = Query(None, description="会话 ID（过滤本会话已忽略的告警）"),
    limit: int = Query(50, ge=1, le=200, description="最多返回数量")
):
    """未确认告警，按创建时间倒序"""
    request_id = new_request_id()
    service = request.app.state.service

    try:
        loop = asyncio.get_running_loop()
        alerts = await loop.run_in_executor(None, service.manager.active_alerts, session_id, limit)
    except PersistenceFailure as e:
        logging.error(f"❌ [{request_id}] 查询活跃告警失败: {e}")
        return _unavailable(e, request_id)

    return success_response(
        data={"alerts": [a.to_row() for a in alerts], "total": len(alerts)},
        request_id=request_id
    )


@router.post("/{alert_id}/acknowledge")
async def acknowledge_alert(alert_id: str, body: AcknowledgeRequest, request: Request):
    """
    确认告警

    重复确认不报错：返回已存在的确认信息，already_acknowledged=true。
    """
    request_id = new_request_id()
    service = request.app.state.service
    logging.info(f"📨 [{request_id}] 确认告警 {alert_id} by {body.actor_id}")

    loop = asyncio.get_running_loop()
    try:
        alert = await loop.run_in_executor(None, service.manager.acknowledge, alert_id, body.actor_id)
    except AlertNotFound:
        logging.warning(f"⚠️ [{request_id}] 告警不存在: {alert_id}")
        return _not_found(alert_id, request_id)
    except AlreadyAcknowledged as e:
        logging.info(f"🔁 [{request_id}] 告警 {alert_id} 已由 {e.acknowledged_by} 确认")
        existing = await loop.run_in_executor(None, service.gateway.get_alert, alert_id)
        return success_response(
            data={"alert": existing.to_row() if existing else None, "already_acknowledged": True},
            request_id=request_id
        )
    except PersistenceFailure as e:
        logging.error(f"❌ [{request_id}] 确认告警失败: {e}")
        return _unavailable(e, request_id)

    return success_response(
        data={"alert": alert.to_row(), "already_acknowledged": False},
        request_id=request_id
    )


@router.post("/{alert_id}/dismiss")
async def dismiss_alert(alert_id: str, body: DismissRequest, request: Request):
    """会话本地忽略（不持久化，不影响其他会话和告警状态）"""
    request_id = new_request_id()
    service = request.app.state.service

    try:
        loop = asyncio.get_running_loop()
        await loop.run_in_executor(None, service.manager.dismiss, alert_id, body.session_id)
    except AlertNotFound:
        return _not_found(alert_id, request_id)
    except PersistenceFailure as e:
        logging.error(f"❌ [{request_id}] 忽略告警失败: {e}")
        return _unavailable(e, request_id)

    return success_response(
        data={"alert_id": alert_id, "session_id": body.session_id, "dismissed": True},
        request_id=request_id
    )


async def _pump_events(websocket: WebSocket, subscription):
    """
    把订阅队列中的事件转发到 WebSocket

    发布者线程通过 call_soon_threadsafe 唤醒本协程，等待期间不占用线程池。
    """
    loop = asyncio.get_running_loop()
    wake = asyncio.Event()
    subscription.set_notifier(lambda: loop.call_soon_threadsafe(wake.set))
    try:
        while True:
            event = subscription.get_nowait()
            if event is None:
                wake.clear()
                await wake.wait()
                continue
            await websocket.send_json(event.to_dict())
    finally:
        subscription.set_notifier(None)


def _log_pump_result(task: asyncio.Task) -> None:
    """推送任务结束时取回异常并记录"""
    if task.cancelled():
        return
    error = task.exception()
    if error is not None:
        logging.error(f"❌ 告警推送中断: {error}")


@router.websocket("/feed")
async def alert_feed(
    websocket: WebSocket,
    session_id: str = Query(..., min_length=1),
    role: str = Query(...)
):
    """
    告警实时推送

    消息格式：{"event": "raised" | "acknowledged", "alert": {...}, "foreground": bool}
    无权查看告警的角色以 1008 关闭连接。
    """
    broker = websocket.app.state.service.broker

    try:
        subscription = broker.subscribe(session_id, role)
    except PermissionError as e:
        logging.warning(f"⚠️ 拒绝订阅 [{session_id}]: {e}")
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        return

    await websocket.accept()
    pump = asyncio.create_task(_pump_events(websocket, subscription))
    pump.add_done_callback(_log_pump_result)
    try:
        while True:
            # 客户端消息只用于保活
            await websocket.receive_text()
    except WebSocketDisconnect:
        pass
    finally:
        pump.cancel()
        broker.unsubscribe(subscription)
