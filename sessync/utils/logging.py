"""简单日志工具：统一输出格式，并对凭据进行掩码。"""

import sys
import threading
from datetime import datetime, timezone

# 推送在线程池中执行，多线程同时写同一流时按行加锁
_write_lock = threading.Lock()


def _now():
    return datetime.now(timezone.utc).strftime("%Y-%m-%d %H:%M:%S")


def _write(stream, line: str) -> None:
    with _write_lock:
        stream.write(line)
        stream.flush()


def log(msg: str):
    """标准输出日志（单行）。"""
    _write(sys.stdout, f"[{_now()}] [sessync] {msg}\n")


def err(msg: str):
    """标准错误日志（单行）。"""
    _write(sys.stderr, f"[{_now()}] [sessync] ERROR: {msg}\n")


def mask_secret(s: str, keep: int = 4) -> str:
    """在日志中掩码 AWS Key/Secret 等凭据。

    只保留末尾 `keep` 个字符，例如 `AKIAABCDEFGH1234` → `***1234`；
    过短的值整体替换为 `***`，空值原样返回。
    """
    if not s:
        return s
    if len(s) <= keep * 2:
        return "***"
    return "***" + s[-keep:]
