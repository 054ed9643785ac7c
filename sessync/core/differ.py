"""模板差异计算

给定旧模板集合与新模板集合，算出需要推送（创建或更新）的模板列表。

规则：
- 首次运行（old 为 None）：全部推送；
- 新名称：推送（是创建还是更新由推送逻辑决定）；
- 已有名称：主题、纯文本或 HTML 文件路径任一不同才推送。
  这里只比较路径不比较文件内容，文件内容变化由文件监听单独触发。
- 从配置中移除的模板不做处理（不删除远端）。
"""

from __future__ import annotations

from typing import List, Optional

from sessync.core.templates import Template, TemplateSet


def templates_equal(a: Optional[Template], b: Optional[Template]) -> bool:
    """两个模板的可比较字段是否一致；任一为 None 视为不一致。"""
    if a is None or b is None:
        return False
    return a.subject == b.subject and a.text == b.text and a.html_path == b.html_path


def reconcile(old: Optional[TemplateSet], new: TemplateSet) -> List[Template]:
    """返回需要推送的模板，按在 new 中的声明顺序排列。"""
    if old is None:
        return list(new)

    # 旧集合重名时以最后一次声明为准
    previous = {t.name: t for t in old}
    return [t for t in new if not templates_equal(previous.get(t.name), t)]
