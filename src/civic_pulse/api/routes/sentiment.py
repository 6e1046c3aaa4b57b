"""
情感分析 API 路由
单条 / 批量分类、汇总统计，以及按地区的情感分布
"""

from fastapi import APIRouter, Query, Request
from pydantic import BaseModel, Field
from typing import Dict, List, Optional
from datetime import datetime
import asyncio
import logging

from civic_pulse.classifier.models import ContentItem, Platform
from civic_pulse.errors import PulseError
from civic_pulse.api.response import success_response, error_response, ErrorCode, new_request_id

router = APIRouter(prefix="/api/sentiment", tags=["情感分析"])

MAX_TEXT_LENGTH = 5000
MAX_BULK_ITEMS = 100


class ContentSubmission(BaseModel):
    """待分类内容"""
    text: str = Field(..., min_length=1, max_length=MAX_TEXT_LENGTH, description="原始文本")
    platform: str = Field("other", description="来源渠道，未知渠道归为 other")
    content_id: Optional[str] = Field(None, description="外部内容 ID")
    author_handle: Optional[str] = Field(None, description="作者账号")
    engagement_metrics: Dict[str, float] = Field(default_factory=dict, description="互动数据")

    def to_item(self) -> ContentItem:
        return ContentItem(
            text=self.text,
            platform=Platform.parse(self.platform),
            content_id=self.content_id,
            author_handle=self.author_handle,
            engagement_metrics=dict(self.engagement_metrics)
        )


class BulkSubmission(BaseModel):
    """批量提交"""
    items: List[ContentSubmission] = Field(..., min_length=1, max_length=MAX_BULK_ITEMS)


def _outcome_data(outcome) -> dict:
    return {
        "result": outcome.result.to_dict(),
        "tier": outcome.tier.value,
        "log_id": outcome.log_id,
        "alert": outcome.alert.to_row() if outcome.alert else None
    }


@router.post("/analyze")
async def analyze(submission: ContentSubmission, request: Request):
    """
    分类单条内容

    AI 通道失败时自动降级为规则分类，总会返回一个分类结果。
    威胁等级为 high / critical 时同时创建告警。
    """
    request_id = new_request_id()
    service = request.app.state.service
    start_time = datetime.now()

    logging.info(f"📨 收到分类请求 [{request_id}]: platform={submission.platform}, 长度={len(submission.text)}")

    try:
        loop = asyncio.get_running_loop()
        outcome = await loop.run_in_executor(None, service.orchestrator.process, submission.to_item())
    except PulseError as e:
        logging.error(f"❌ [{request_id}] 分类失败: {e}")
        return error_response(
            code=ErrorCode.INTERNAL_ERROR,
            message=f"服务器错误: {str(e)}",
            request_id=request_id
        )

    duration_ms = int((datetime.now() - start_time).total_seconds() * 1000)
    return success_response(
        data=_outcome_data(outcome),
        request_id=request_id,
        duration_ms=duration_ms
    )


@router.post("/bulk")
async def analyze_bulk(submission: BulkSubmission, request: Request):
    """
    批量分类

    结果按输入顺序返回；单条失败只体现在该条的 error 字段中。
    """
    request_id = new_request_id()
    service = request.app.state.service
    start_time = datetime.now()

    items = [s.to_item() for s in submission.items]
    logging.info(f"📦 收到批量分类请求 [{request_id}]: {len(items)} 条")

    loop = asyncio.get_running_loop()
    outcomes = await loop.run_in_executor(None, service.orchestrator.classify_batch, items)

    results = []
    for item_outcome in outcomes:
        entry = {"index": item_outcome.index, "success": item_outcome.success}
        if item_outcome.success:
            entry.update(_outcome_data(item_outcome.outcome))
        else:
            entry["error"] = item_outcome.error
        results.append(entry)

    succeeded = sum(1 for r in results if r["success"])
    duration_ms = int((datetime.now() - start_time).total_seconds() * 1000)
    logging.info(f"✅ [{request_id}] 批量分类完成: {succeeded}/{len(results)} 成功, 耗时{duration_ms}ms")

    return success_response(
        data={"results": results},
        request_id=request_id,
        total=len(results),
        succeeded=succeeded,
        duration_ms=duration_ms
    )


@router.get("/stats")
async def get_stats(request: Request):
    """
    汇总统计

    返回：
    - total_classified: 已分类内容总数
    - active_alerts: 未确认告警数
    - trending_topics: 统计窗口内出现的不同话题数
    """
    request_id = new_request_id()
    service = request.app.state.service
    logging.info(f"📊 [{request_id}] 请求统计信息")

    try:
        loop = asyncio.get_running_loop()
        stats = await loop.run_in_executor(None, service.stats)
    except PulseError as e:
        logging.error(f"❌ [{request_id}] 获取统计失败: {e}")
        return error_response(
            code=ErrorCode.DATABASE_UNAVAILABLE,
            message=str(e),
            request_id=request_id
        )

    return success_response(
        data=stats,
        request_id=request_id,
        trending_window_hours=service.config.trending_window_hours
    )


@router.get("/regions")
async def get_regional_stats(
    request: Request,
    hours: int = Query(168, ge=1, le=720, description="统计窗口（小时），默认 7 天")
):
    """
    按地区的情感分布

    每个地区返回内容量、平均情感分、正负中性分布、主要情绪、
    主要关注点、热门话题标签和威胁程度（low / medium / high）。
    """
    request_id = new_request_id()
    service = request.app.state.service
    logging.info(f"🗺️ [{request_id}] 请求地区情感分布: 最近 {hours} 小时")

    try:
        loop = asyncio.get_running_loop()
        regions = await loop.run_in_executor(None, service.regional_stats, hours)
    except PulseError as e:
        logging.error(f"❌ [{request_id}] 获取地区情感失败: {e}")
        return error_response(
            code=ErrorCode.DATABASE_UNAVAILABLE,
            message=str(e),
            request_id=request_id
        )

    return success_response(
        data={"regions": regions, "total": len(regions)},
        request_id=request_id,
        window_hours=hours
    )
