"""
日志配置
控制台彩色输出 + 按日期命名的日志文件（pulse_YYYY-MM-DD.log）
"""

import logging
import sys
import os
import glob
from datetime import datetime


LOG_FILE_PREFIX = "pulse"


class PrettyFormatter(logging.Formatter):
    """控制台格式化器（带颜色）"""
    COLORS = {
        "DEBUG": "\033[36m",
        "INFO": "\033[32m",
        "WARNING": "\033[33m",
        "ERROR": "\033[31m",
        "CRITICAL": "\033[35m",
    }
    RESET = "\033[0m"

    def format(self, record: logging.LogRecord) -> str:
        color = self.COLORS.get(record.levelname, self.RESET)
        timestamp = datetime.fromtimestamp(record.created).strftime("%H:%M:%S")
        return f"{color}{timestamp} {record.levelname:7}{self.RESET} {record.getMessage()}"


class FileFormatter(logging.Formatter):
    """
    文件格式化器

    输出示例：
    2025-10-12 09:30:00 | WARNING | 🚨 新告警 [a1b2c3] HIGH: HIGH Threat Detected
    """
    def format(self, record: logging.LogRecord) -> str:
        timestamp = datetime.fromtimestamp(record.created).strftime("%Y-%m-%d %H:%M:%S")
        line = f"{timestamp} | {record.levelname:7} | {record.getMessage()}"
        if record.exc_info:
            line = f"{line}\n{self.formatException(record.exc_info)}"
        return line


def _cleanup_old_logs(log_dir: str, prefix: str, backup_count: int):
    """只保留最近 backup_count 个日志文件"""
    pattern = os.path.join(log_dir, f"{prefix}_*.log")
    log_files = sorted(glob.glob(pattern), reverse=True)

    for old_file in log_files[backup_count:]:
        try:
            os.remove(old_file)
        except OSError as e:
            logging.debug(f"旧日志删除失败 {old_file}: {e}")


def setup_logging(level: str = None, log_dir: str = None, backup_count: int = 30):
    """
    配置根日志器

    Args:
        level: 日志级别（默认读取 LOG_LEVEL，缺省 INFO）
        log_dir: 日志目录（默认读取 LOG_DIR，缺省 logs；空字符串表示不写文件）
        backup_count: 保留的日志文件数（按天）
    """
    level = level or os.getenv("LOG_LEVEL", "INFO")
    if log_dir is None:
        log_dir = os.getenv("LOG_DIR", "logs")

    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, level.upper(), logging.INFO))

    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setFormatter(PrettyFormatter())
    root_logger.addHandler(console_handler)

    if log_dir:
        os.makedirs(log_dir, exist_ok=True)

        today = datetime.now().strftime("%Y-%m-%d")
        log_file = os.path.join(log_dir, f"{LOG_FILE_PREFIX}_{today}.log")

        file_handler = logging.FileHandler(log_file, encoding="utf-8")
        file_handler.setFormatter(FileFormatter())
        root_logger.addHandler(file_handler)

        _cleanup_old_logs(log_dir, LOG_FILE_PREFIX, backup_count)

    # 第三方库只保留警告
    for name in ("httpx", "httpcore", "urllib3", "uvicorn.access", "apscheduler"):
        logging.getLogger(name).setLevel(logging.WARNING)
