"""配置加载

职责：
- 读取环境变量默认值（SES_CONFIG/SES_POLL_INTERVAL/SES_DEBOUNCE/SES_PUSH_WORKERS）；
- 解析 JSON 配置文件：AWS 区域与凭据、Sentry DSN、模板声明列表；
- 每次读取都返回一个全新的 `Config`，读取或校验失败统一抛出 `ConfigError`。

配置文件格式：
    {
      "aws_region": "eu-west-1",
      "aws_key": "...",
      "aws_secret": "...",
      "sentry_dsn": "https://...",
      "templates": [
        {"template_name": "welcome", "subject_part": "Hi",
         "text_part": "Hello", "html_part_file_path": "welcome.html"}
      ]
    }
"""

from __future__ import annotations

import json
import os
from dataclasses import dataclass, field

from sessync.core.templates import TemplateSet, normalize_path


DEFAULT_CONFIG_PATH = os.environ.get("SES_CONFIG", "/home/ubuntu/ses_config.json")
# 轮询间隔与配置文件防抖时间（秒）
DEFAULT_POLL_INTERVAL = float(os.environ.get("SES_POLL_INTERVAL", "0.1"))
DEFAULT_DEBOUNCE = float(os.environ.get("SES_DEBOUNCE", "0.1"))
DEFAULT_PUSH_WORKERS = int(os.environ.get("SES_PUSH_WORKERS", "4"))
# 为 true 时使用系统原生通知（inotify 等）而不是轮询
DEFAULT_NATIVE_WATCH = os.environ.get("SES_NATIVE_WATCH", "false").lower() == "true"


class ConfigError(Exception):
    """配置文件缺失、不可读或格式错误。"""


@dataclass(frozen=True)
class Config:
    path: str
    aws_region: str = ""
    aws_key: str = ""
    aws_secret: str = ""
    sentry_dsn: str = ""
    templates: TemplateSet = field(default_factory=TemplateSet)


def read_config(cfg_path: str) -> Config:
    """读取并校验配置文件。

    - 文件不存在/不可读、JSON 非法、字段类型不对 → ConfigError；
    - 模板的相对 HTML 路径以配置文件目录为基准解析。
    """
    path = normalize_path(cfg_path)
    try:
        with open(path, "r", encoding="utf-8") as f:
            obj = json.load(f)
    except OSError as e:
        raise ConfigError(f"cannot read config {path}: {e}") from e
    except ValueError as e:
        raise ConfigError(f"invalid JSON in {path}: {e}") from e

    if not isinstance(obj, dict):
        raise ConfigError(f"config {path}: top level must be an object")

    strings = {}
    for key in ("aws_region", "aws_key", "aws_secret", "sentry_dsn"):
        value = obj.get(key)
        if value is None:
            value = ""
        if not isinstance(value, str):
            raise ConfigError(f"config {path}: {key} must be a string")
        strings[key] = value

    raw_templates = obj.get("templates")
    if raw_templates is None:
        raw_templates = []
    if not isinstance(raw_templates, list):
        raise ConfigError(f"config {path}: templates must be a list")
    try:
        for i, item in enumerate(raw_templates):
            if not isinstance(item, dict):
                raise ValueError(f"templates[{i}] must be an object")
        templates = TemplateSet.from_list(raw_templates, base_dir=os.path.dirname(path))
    except KeyError as e:
        raise ConfigError(f"config {path}: template missing field {e}") from e
    except ValueError as e:
        raise ConfigError(f"config {path}: {e}") from e

    for t in templates:
        if t.html_path == path:
            raise ConfigError(f"config {path}: template {t.name} uses the config file itself as html_part_file_path")

    return Config(path=path, templates=templates, **strings)
