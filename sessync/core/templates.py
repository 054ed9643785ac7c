"""模板与模板集合

职责：
- `Template`：单个邮件模板（名称/主题/纯文本/HTML 文件路径），HTML 内容在推送时才读取；
- `TemplateSet`：一次配置加载得到的有序模板快照，整体替换、从不原地修改；
- 提供按名称、按 HTML 路径的查找，供差异计算与文件监听使用。
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Any, Dict, Iterable, Iterator, List, Optional, Tuple


@dataclass(frozen=True)
class Template:
    """单个 SES 邮件模板。

    - name: 模板名（区分大小写，集合内的主键）
    - subject: 邮件主题
    - text: 纯文本正文
    - html_path: HTML 正文文件的绝对路径
    """

    name: str
    subject: str
    text: str
    html_path: str

    def read_html(self) -> str:
        """读取 HTML 正文（每次调用都重新读取文件，保证拿到最新内容）。"""
        with open(self.html_path, "r", encoding="utf-8") as f:
            return f.read()

    @classmethod
    def from_dict(cls, data: Dict[str, Any], base_dir: str = "") -> Template:
        """从配置文件中的一条声明构造模板。

        相对的 `html_part_file_path` 以配置文件所在目录为基准解析。
        缺少字段或类型不对时抛出 ValueError/KeyError，由调用方包装为配置错误。
        """
        name = data["template_name"]
        html_path = data["html_part_file_path"]
        subject = data.get("subject_part", "")
        text = data.get("text_part", "")
        for key, value in (
            ("template_name", name),
            ("html_part_file_path", html_path),
            ("subject_part", subject),
            ("text_part", text),
        ):
            if not isinstance(value, str):
                raise ValueError(f"{key} must be a string")
        if not name:
            raise ValueError("template_name must not be empty")
        if not html_path:
            raise ValueError(f"template {name}: html_part_file_path must not be empty")
        return cls(
            name=name,
            subject=subject,
            text=text,
            html_path=normalize_path(html_path, base_dir),
        )


def normalize_path(path: str, base_dir: str = "") -> str:
    """路径归一化：展开 `~`，相对路径挂到 base_dir 下，返回绝对路径。"""
    path = os.path.expanduser(path)
    if not os.path.isabs(path) and base_dir:
        path = os.path.join(base_dir, path)
    return os.path.abspath(path)


class TemplateSet:
    """有序、不可变的模板快照。

    同名模板允许出现（按声明顺序保留），按名称查找时以最后一次声明为准。
    """

    __slots__ = ("_items",)

    def __init__(self, templates: Iterable[Template] = ()) -> None:
        self._items: Tuple[Template, ...] = tuple(templates)

    def __iter__(self) -> Iterator[Template]:
        return iter(self._items)

    def __len__(self) -> int:
        return len(self._items)

    def __bool__(self) -> bool:
        return bool(self._items)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, TemplateSet):
            return NotImplemented
        return self._items == other._items

    def __hash__(self) -> int:
        return hash(self._items)

    def __repr__(self) -> str:
        return f"TemplateSet({[t.name for t in self._items]!r})"

    def names(self) -> List[str]:
        return [t.name for t in self._items]

    def get(self, name: str) -> Optional[Template]:
        """按名称查找，重名时返回最后一次声明。"""
        found = None
        for t in self._items:
            if t.name == name:
                found = t
        return found

    def html_paths(self) -> List[str]:
        """所有 HTML 文件路径（去重，保持声明顺序）。"""
        seen: Dict[str, None] = {}
        for t in self._items:
            seen.setdefault(t.html_path, None)
        return list(seen)

    def by_html_path(self, path: str) -> List[Template]:
        """声明了该 HTML 路径的全部模板（可能多个模板共用同一文件）。"""
        return [t for t in self._items if t.html_path == path]

    @classmethod
    def from_list(cls, items: Iterable[Dict[str, Any]], base_dir: str = "") -> TemplateSet:
        return cls(Template.from_dict(item, base_dir) for item in items)
