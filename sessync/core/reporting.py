"""错误上报（Sentry）

职责：
- `init_reporting`：初始化 sentry-sdk（DSN 为空时不投递，只打日志）；
- `ErrorReporter.capture`：记录错误日志并投递到 Sentry，可附带请求上下文；
- 投递由 sentry-sdk 的后台传输线程完成，调用方不会被网络阻塞，且本模块从不向外抛异常。
"""

from __future__ import annotations

from typing import Any, Dict, Optional

import sentry_sdk

from sessync.utils.logging import err

# 上报时从堆栈中剔除的模块：本模块自身与线程调度框架
_SKIP_MODULES = ("threading", "concurrent.futures.thread", __name__)


def _filter_frames(frames):
    if not frames:
        return frames
    return [f for f in frames if f.get("module") not in _SKIP_MODULES]


def _before_send(event: Dict[str, Any], hint: Dict[str, Any]) -> Dict[str, Any]:
    """剔除上报链路自身的堆栈帧，让 Sentry 中的首帧落在业务代码上。"""
    for section in ("exception", "threads"):
        for value in (event.get(section) or {}).get("values") or []:
            stacktrace = value.get("stacktrace")
            if stacktrace and stacktrace.get("frames"):
                stacktrace["frames"] = _filter_frames(stacktrace["frames"])
    return event


def init_reporting(dsn: str, release: str) -> None:
    """初始化 Sentry；失败只记录日志，不影响主流程。"""
    try:
        sentry_sdk.init(
            dsn=dsn or None,
            release=release,
            attach_stacktrace=True,
            before_send=_before_send,
        )
    except Exception as e:
        err(f"Sentry 初始化失败：{e}")


class ErrorReporter:
    """错误上报器：日志 + Sentry。可被多个线程并发调用。"""

    def capture(self, error: Optional[BaseException], context: Optional[Dict[str, Any]] = None) -> bool:
        """上报一个异常。

        - error 为 None 时返回 False，便于 `if reporter.capture(e): return` 的写法；
        - context 非空时作为 "Request" 上下文附加在独立 scope 中，不污染全局 scope。
        """
        if error is None:
            return False
        err(f"{type(error).__name__}: {error}")
        try:
            with sentry_sdk.new_scope() as scope:
                if context:
                    scope.set_context("Request", dict(context))
                sentry_sdk.capture_exception(error)
        except Exception as e:
            err(f"Sentry 投递失败：{e}")
        return True

    def flush(self, timeout: float = 2.0) -> None:
        """退出前等待已排队的事件发送完毕。"""
        try:
            sentry_sdk.flush(timeout=timeout)
        except Exception as e:
            err(f"Sentry flush 失败：{e}")
