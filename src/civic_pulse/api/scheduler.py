"""
定时任务调度器
使用 APScheduler 周期性执行阈值扫描（补发被实时通道漏掉的告警）

任务列表：
1. threshold_scan：每 SCAN_INTERVAL_SECONDS 秒执行一次
"""

import logging

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

from civic_pulse.errors import PulseError


SCAN_JOB_ID = "threshold_scan"


def run_threshold_scan(service):
    """执行一次阈值扫描"""
    try:
        raised = service.scanner.tick()
        if raised:
            logging.info(f"🔔 [定时任务] 阈值扫描补发 {raised} 条告警")
    except PulseError as e:
        logging.error(f"❌ [定时任务] 阈值扫描失败: {e}")


def create_scheduler(service) -> AsyncIOScheduler:
    """
    创建调度器并注册扫描任务

    max_instances=1 + coalesce=True：上一次扫描未结束时不会叠加执行，
    错过的触发合并为一次。
    """
    scheduler = AsyncIOScheduler()
    interval = service.config.scan_interval

    scheduler.add_job(
        run_threshold_scan,
        IntervalTrigger(seconds=interval),
        args=[service],
        id=SCAN_JOB_ID,
        name="阈值扫描",
        max_instances=1,
        coalesce=True,
        replace_existing=True
    )

    logging.info(f"📅 定时任务已配置: 每 {interval} 秒执行一次阈值扫描")
    return scheduler


def start_scheduler(scheduler: AsyncIOScheduler):
    """启动调度器"""
    if not scheduler.running:
        scheduler.start()
        logging.info("✅ 定时任务调度器已启动")


def stop_scheduler(scheduler: AsyncIOScheduler):
    """停止调度器"""
    if scheduler.running:
        scheduler.shutdown(wait=False)
        logging.info("⏹️ 定时任务调度器已停止")
