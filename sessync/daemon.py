"""Template Sync Daemon
----------------------
单线程控制循环：监听配置文件和每个模板的 HTML 文件，有变化时把模板推送到 SES。

状态流转：
  INITIALIZING → WATCHING ⟲ RELOADING → WATCHING → … → STOPPED

工作步骤：
1) 初始化：读取配置（失败直接抛出，进程退出），登记配置文件与全部 HTML 路径，
   无条件推送全部模板，启动文件监听。
2) 监听：从监听队列取通知。
   - 配置文件变化：防抖（静默一小段时间并吞掉同一文件的重复通知）后重载；
   - 模板 HTML 变化：立即推送声明了该文件的模板（后台执行，不等待）；
   - 监听错误：上报后继续；关闭通知：退出循环。
3) 重载：先完整读取并校验新配置，失败则上报并保留旧配置与旧监听集合；
   成功后按差集调整监听路径，计算差异并推送（等待完成），最后整体替换配置。

控制循环是模板集合与监听登记表的唯一写入者；推送线程只拿到不可变的模板快照。

可调环境变量：
- SES_POLL_INTERVAL：轮询间隔（秒），默认 0.1。
- SES_DEBOUNCE：配置文件防抖时间（秒），默认 0.1。
"""

from __future__ import annotations

import collections
import enum
import queue
import threading
import time
from typing import Deque, Optional

from sessync.core.config import DEFAULT_DEBOUNCE, DEFAULT_POLL_INTERVAL, Config, read_config
from sessync.core.differ import reconcile
from sessync.core.pusher import TemplatePusher
from sessync.core.reporting import ErrorReporter
from sessync.core.templates import TemplateSet, normalize_path
from sessync.core.watch import CHANGE, CLOSED, ERROR, FileWatcher, WatchEvent, WatchRegistry, WatchRole
from sessync.utils.logging import log


class DaemonState(enum.Enum):
    INITIALIZING = "initializing"
    WATCHING = "watching"
    RELOADING = "reloading"
    STOPPED = "stopped"


class TemplateSyncDaemon:
    """模板同步守护进程。

    - config_path: 配置文件路径
    - pusher: 模板推送器（封装远端客户端）
    - config: 已读取的初始配置；为 None 时在 `initialize` 中读取
    - watcher: 文件监听器，默认基于 watchdog 轮询
    - debounce: 配置文件变化后的静默时间（秒）
    - poll_interval: 监听轮询间隔（秒）
    """

    def __init__(
        self,
        config_path: str,
        pusher: TemplatePusher,
        config: Optional[Config] = None,
        watcher: Optional[FileWatcher] = None,
        reporter: Optional[ErrorReporter] = None,
        debounce: float = DEFAULT_DEBOUNCE,
        poll_interval: float = DEFAULT_POLL_INTERVAL,
    ) -> None:
        self.config_path = normalize_path(config_path)
        self.pusher = pusher
        self.config = config
        self.watcher = watcher or FileWatcher()
        self.reporter = reporter or ErrorReporter()
        self.registry = WatchRegistry(self.watcher, self.reporter)
        self.debounce = debounce
        self.poll_interval = poll_interval
        self.state = DaemonState.INITIALIZING
        self._pending: Deque[WatchEvent] = collections.deque()
        self._stopped = threading.Event()

    @property
    def templates(self) -> TemplateSet:
        return self.config.templates if self.config is not None else TemplateSet()

    # -------- 初始化 --------
    def initialize(self) -> None:
        """读取配置、登记监听路径、全量推送并启动监听。

        配置读取失败或配置文件无法监听时抛出异常（启动阶段的错误是致命的）。
        """
        self.state = DaemonState.INITIALIZING
        if self.config is None:
            self.config = read_config(self.config_path)
        self.registry.set_config(self.config_path)
        self.registry.replace_templates(self.templates.html_paths())

        log(f"Pushing {len(self.templates)} templates")
        self.pusher.push_all(reconcile(None, self.templates), wait=True)

        self.watcher.start(self.poll_interval)
        self.state = DaemonState.WATCHING
        log(f"Watching {len(self.registry.template_paths())} template files and {self.config_path}")

    # -------- 主循环 --------
    def run(self) -> int:
        """初始化后进入监听循环，直到收到关闭通知。"""
        self.initialize()
        try:
            while self.state is not DaemonState.STOPPED:
                self.handle(self._next_event())
        finally:
            self.state = DaemonState.STOPPED
            self.pusher.close(wait=False)
            self._stopped.set()
            log("Template sync daemon stopped")
        return 0

    def stop(self) -> None:
        """请求停止：关闭监听器，循环在处理到关闭通知后退出。可从任意线程调用。"""
        self.watcher.close()

    def wait_stopped(self, timeout: Optional[float] = None) -> bool:
        return self._stopped.wait(timeout)

    def _next_event(self) -> WatchEvent:
        if self._pending:
            return self._pending.popleft()
        return self.watcher.events.get()

    def handle(self, event: WatchEvent) -> None:
        """处理一条监听通知（WATCHING 状态下的一次状态转移）。"""
        if event.kind == CLOSED:
            self.state = DaemonState.STOPPED
            return
        if event.kind == ERROR:
            self.reporter.capture(event.error)
            return
        if event.kind != CHANGE:
            return

        role = self.registry.role_of(event.path)
        if role is WatchRole.CONFIG:
            self._debounce_config()
            self.reload()
        elif role is WatchRole.TEMPLATE_HTML:
            templates = self.templates.by_html_path(event.path)
            if templates:
                self.pusher.push_all(templates, wait=False)

    def _debounce_config(self) -> None:
        """静默一段时间，丢弃期间积压的同一配置文件通知，其他通知保持原顺序。"""
        if self.debounce > 0:
            time.sleep(self.debounce)
        kept: Deque[WatchEvent] = collections.deque()
        for event in self._pending:
            if not self._is_config_change(event):
                kept.append(event)
        while True:
            try:
                event = self.watcher.events.get_nowait()
            except queue.Empty:
                break
            if not self._is_config_change(event):
                kept.append(event)
        self._pending = kept

    def _is_config_change(self, event: WatchEvent) -> bool:
        return event.kind == CHANGE and event.path == self.registry.config_path

    # -------- 重载 --------
    def reload(self) -> bool:
        """重新读取配置并推送有差异的模板；失败时保持原状态并返回 False。"""
        self.state = DaemonState.RELOADING
        log("Updating config")
        try:
            try:
                new_config = read_config(self.config_path)
            except Exception as e:
                self.reporter.capture(e)
                return False

            old_templates = self.templates
            added, removed = self.registry.replace_templates(new_config.templates.html_paths())
            if added or removed:
                log(f"Watch list updated: +{len(added)} -{len(removed)}")

            changed = reconcile(old_templates, new_config.templates)
            log(f"{len(changed)} of {len(new_config.templates)} templates changed")
            self.pusher.push_all(changed, wait=True)
            self.config = new_config
            return True
        finally:
            self.state = DaemonState.WATCHING
