"""文件监听

职责：
- `FileWatcher`：基于 watchdog 的文件监听，只关注显式添加的文件；
  所有通知（变更/错误/关闭）都放进同一个队列，由控制循环独占消费；
- `WatchRegistry`：记录当前被监听的路径及其角色（配置文件/模板 HTML），
  配置重载时按差集增删监听路径，不重启监听线程。

watchdog 以目录为单位调度：监听一个文件即调度它的父目录并按路径过滤，
同一目录被多个文件引用时按引用计数调度/取消。
"""

from __future__ import annotations

import enum
import os
import queue
import threading
from dataclasses import dataclass
from typing import Callable, Dict, Iterable, List, Optional, Tuple

from watchdog.events import FileSystemEvent, FileSystemEventHandler
from watchdog.observers import Observer
from watchdog.observers.polling import PollingObserver

from sessync.core.reporting import ErrorReporter
from sessync.core.templates import normalize_path

CHANGE = "change"
ERROR = "error"
CLOSED = "closed"

# 只关心会改变文件内容或存在性的事件；opened/closed 之类忽略
_CHANGE_ACTIONS = ("created", "modified", "deleted", "moved")


class WatchError(Exception):
    """无法监听指定路径。"""


class WatchRole(enum.Enum):
    CONFIG = "config"
    TEMPLATE_HTML = "template_html"


@dataclass(frozen=True)
class WatchEvent:
    """监听队列中的一条通知。

    - kind: CHANGE / ERROR / CLOSED
    - path: 变更文件的绝对路径（仅 CHANGE）
    - action: watchdog 事件类型，如 modified/created/moved（仅 CHANGE）
    - error: 监听线程中出现的异常（仅 ERROR）
    """

    kind: str
    path: str = ""
    action: str = ""
    error: Optional[BaseException] = None


class _Handler(FileSystemEventHandler):
    def __init__(self, watcher: FileWatcher) -> None:
        super().__init__()
        self._watcher = watcher

    def on_any_event(self, event: FileSystemEvent) -> None:
        # 在 watchdog 线程中执行：异常不能外抛，否则监听线程会退出
        try:
            if event.is_directory or event.event_type not in _CHANGE_ACTIONS:
                return
            paths = [event.src_path]
            if event.event_type == "moved" and getattr(event, "dest_path", ""):
                paths.append(event.dest_path)
            for p in paths:
                if isinstance(p, bytes):
                    p = os.fsdecode(p)
                self._watcher._dispatch(os.path.abspath(p), event.event_type)
        except Exception as e:
            self._watcher.events.put(WatchEvent(ERROR, error=e))


class FileWatcher:
    """按文件粒度的监听器。

    使用方式与常见的 watcher 一致：先 `add` 若干路径，再 `start(poll_interval)`，
    之后可随时 `add`/`remove`；`close()` 后队列中会出现且仅出现一次 CLOSED。
    """

    def __init__(self, polling: bool = True, observer_factory: Optional[Callable[[float], object]] = None) -> None:
        self.events: "queue.Queue[WatchEvent]" = queue.Queue()
        self._polling = polling
        self._observer_factory = observer_factory
        self._observer = None
        self._lock = threading.RLock()
        self._paths: set = set()
        self._dirs: Dict[str, int] = {}  # 目录 -> 引用该目录的文件数
        self._watches: Dict[str, object] = {}  # 目录 -> ObservedWatch
        self._handler = _Handler(self)
        self._closed = False

    # -------- 对外接口 --------
    def add(self, path: str) -> None:
        """开始监听文件；父目录必须存在（文件本身可以暂不存在）。"""
        path = normalize_path(path)
        directory = os.path.dirname(path)
        with self._lock:
            if self._closed:
                raise WatchError("watcher is closed")
            if path in self._paths:
                return
            if not os.path.isdir(directory):
                raise WatchError(f"cannot watch {path}: directory {directory} does not exist")
            if self._dirs.get(directory, 0) == 0 and self._observer is not None:
                self._schedule(directory)
            self._dirs[directory] = self._dirs.get(directory, 0) + 1
            self._paths.add(path)

    def remove(self, path: str) -> None:
        """停止监听文件；未监听的路径忽略。"""
        path = normalize_path(path)
        directory = os.path.dirname(path)
        with self._lock:
            if path not in self._paths:
                return
            self._paths.discard(path)
            self._dirs[directory] -= 1
            if self._dirs[directory] == 0:
                del self._dirs[directory]
                self._unschedule(directory)

    def watched(self) -> List[str]:
        with self._lock:
            return sorted(self._paths)

    def start(self, poll_interval: float) -> None:
        """启动监听线程；poll_interval 为轮询间隔（秒）。"""
        with self._lock:
            if self._observer is not None or self._closed:
                return
            self._observer = self._make_observer(poll_interval)
            for directory in self._dirs:
                self._schedule(directory)
            self._observer.start()

    def close(self) -> None:
        """停止监听线程并发出 CLOSED 通知（幂等）。"""
        with self._lock:
            if self._closed:
                return
            self._closed = True
            observer, self._observer = self._observer, None
            self._watches.clear()
        if observer is not None:
            observer.stop()
            if observer is not threading.current_thread():
                observer.join()
        self.events.put(WatchEvent(CLOSED))

    # -------- 内部 --------
    def _make_observer(self, poll_interval: float):
        if self._observer_factory is not None:
            return self._observer_factory(poll_interval)
        if self._polling:
            return PollingObserver(timeout=poll_interval)
        return Observer(timeout=poll_interval)

    def _schedule(self, directory: str) -> None:
        try:
            self._watches[directory] = self._observer.schedule(self._handler, directory, recursive=False)
        except OSError as e:
            raise WatchError(f"cannot watch directory {directory}: {e}") from e

    def _unschedule(self, directory: str) -> None:
        watch = self._watches.pop(directory, None)
        if watch is not None and self._observer is not None:
            try:
                self._observer.unschedule(watch)
            except KeyError:
                pass

    def _dispatch(self, path: str, action: str) -> None:
        with self._lock:
            if path not in self._paths:
                return
        self.events.put(WatchEvent(CHANGE, path=path, action=action))


class WatchRegistry:
    """当前被监听路径的登记表，只由控制循环读写。

    不变量：恰好一个 CONFIG 路径；TEMPLATE_HTML 路径与当前模板集合的 HTML 路径一致。
    """

    def __init__(self, watcher: FileWatcher, reporter: Optional[ErrorReporter] = None) -> None:
        self.watcher = watcher
        self.reporter = reporter or ErrorReporter()
        self._roles: Dict[str, WatchRole] = {}
        self._config_path = ""

    @property
    def config_path(self) -> str:
        return self._config_path

    def role_of(self, path: str) -> Optional[WatchRole]:
        return self._roles.get(path)

    def template_paths(self) -> List[str]:
        return [p for p, role in self._roles.items() if role is WatchRole.TEMPLATE_HTML]

    def set_config(self, path: str) -> None:
        """登记配置文件路径；配置文件必须能被监听，失败直接抛出 WatchError。"""
        path = normalize_path(path)
        if path == self._config_path:
            return
        if self._config_path:
            self.watcher.remove(self._config_path)
            del self._roles[self._config_path]
        # 配置文件与某个模板 HTML 重名时，以配置文件角色为准
        if self._roles.pop(path, None) is not None:
            self.watcher.remove(path)
        self.watcher.add(path)
        self._roles[path] = WatchRole.CONFIG
        self._config_path = path

    def replace_templates(self, paths: Iterable[str]) -> Tuple[List[str], List[str]]:
        """把 TEMPLATE_HTML 路径替换为给定集合，返回 (新增, 移除)。

        两个集合都有的路径保持监听不动，CONFIG 路径从不移除。
        """
        wanted: Dict[str, None] = {}
        for p in paths:
            p = normalize_path(p)
            if p != self._config_path:
                wanted.setdefault(p, None)

        removed = [p for p in self.template_paths() if p not in wanted]
        for p in removed:
            self.watcher.remove(p)
            del self._roles[p]

        added = []
        for p in wanted:
            if p in self._roles:
                continue
            try:
                self.watcher.add(p)
            except Exception as e:
                self.reporter.capture(e)
                continue
            self._roles[p] = WatchRole.TEMPLATE_HTML
            added.append(p)
        return added, removed
