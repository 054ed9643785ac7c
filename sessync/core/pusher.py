"""模板推送（创建或更新）

流程（单个模板）：
1. 读取 HTML 文件（推送时才读，保证内容最新）；失败则上报并放弃该模板；
2. 按名称更新远端模板；
3. 远端返回“不存在” → 改为创建；创建失败则上报；
4. 其他任何错误 → 上报，不尝试创建（避免把真实错误掩盖成创建，或重复创建）。

`push` 从不向调用方抛异常，一个模板失败不影响同批次的其他模板。
批量推送使用线程池：不同名称并发执行，同名模板在同一任务中按声明顺序串行，
因此重名时最后一次声明最终生效。
"""

from __future__ import annotations

from concurrent.futures import Future, ThreadPoolExecutor, wait as wait_futures
from typing import Dict, Iterable, List, Optional

from sessync.core.config import DEFAULT_PUSH_WORKERS
from sessync.core.reporting import ErrorReporter
from sessync.core.ses_api import TemplateNotFoundError
from sessync.core.templates import Template
from sessync.utils.logging import log


class TemplatePusher:
    """把模板推送到远端模板仓库。

    - api: 提供 `update_template`/`create_template` 的客户端（如 SESTemplateAPI）
    - reporter: 错误上报器
    - max_workers: 批量推送的并发数
    """

    def __init__(self, api, reporter: Optional[ErrorReporter] = None, max_workers: int = DEFAULT_PUSH_WORKERS) -> None:
        self.api = api
        self.reporter = reporter or ErrorReporter()
        self._pool = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="sessync-push")

    def push(self, template: Template) -> bool:
        """推送单个模板，成功返回 True。"""
        log(f"Updating template: {template.name}")
        try:
            html = template.read_html()
        except (OSError, ValueError) as e:
            # ValueError 覆盖 UnicodeDecodeError（文件不是合法 UTF-8）
            self.reporter.capture(e)
            return False

        try:
            self.api.update_template(template.name, html, template.subject, template.text)
            return True
        except TemplateNotFoundError:
            pass
        except Exception as e:
            self.reporter.capture(e)
            return False

        log(f"Template {template.name} not found, creating")
        try:
            self.api.create_template(template.name, html, template.subject, template.text)
            return True
        except Exception as e:
            self.reporter.capture(e)
            return False

    def _push_in_order(self, templates: List[Template]) -> None:
        for t in templates:
            self.push(t)

    def push_all(self, templates: Iterable[Template], wait: bool = True) -> List[Future]:
        """批量推送。

        wait=True 时阻塞直到本批次全部完成（作为下一次重载前的屏障）；
        wait=False 时立即返回，推送在后台完成。
        """
        groups: Dict[str, List[Template]] = {}
        for t in templates:
            groups.setdefault(t.name, []).append(t)
        futures = [self._pool.submit(self._push_in_order, group) for group in groups.values()]
        for f in futures:
            f.add_done_callback(self._report_failure)
        if wait and futures:
            wait_futures(futures)
        return futures

    def _report_failure(self, future: Future) -> None:
        """线程池任务中未被 push 捕获的异常也要上报，不能静默丢在 Future 里。"""
        if future.cancelled():
            return
        self.reporter.capture(future.exception())

    def close(self, wait: bool = False) -> None:
        """关闭线程池；已提交的推送仍会执行完毕。"""
        self._pool.shutdown(wait=wait)
