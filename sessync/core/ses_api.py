"""AWS SES v2 邮件模板 API 封装

职责：
- 按名称更新模板（模板不存在时抛出 `TemplateNotFoundError`）
- 按名称创建模板
- 根据配置构造 boto3 `sesv2` 客户端
"""

from __future__ import annotations

from typing import Any, Dict, Optional

import boto3
from botocore.exceptions import ClientError

from sessync.core.config import Config

NOT_FOUND_CODES = ("NotFoundException",)


class TemplateNotFoundError(Exception):
    """远端不存在同名模板（更新失败，可改为创建）。"""

    def __init__(self, name: str, cause: Optional[BaseException] = None):
        super().__init__(f"template not found: {name}")
        self.name = name
        self.cause = cause


def _content(html: str, subject: str, text: str) -> Dict[str, str]:
    return {"Subject": subject, "Text": text, "Html": html}


class SESTemplateAPI:
    """SES v2 模板客户端"""

    def __init__(self, client: Any):
        """
        Args:
            client: boto3 `sesv2` 客户端（测试时可传入带 Stubber 的客户端）
        """
        self.client = client

    @classmethod
    def from_config(cls, config: Config) -> SESTemplateAPI:
        """按配置创建客户端。

        同时配置了 aws_key/aws_secret 时使用静态凭据，否则走 boto3 默认凭据链
        （环境变量、~/.aws、实例角色等）。
        """
        kwargs: Dict[str, Any] = {}
        if config.aws_region:
            kwargs["region_name"] = config.aws_region
        if config.aws_key and config.aws_secret:
            kwargs["aws_access_key_id"] = config.aws_key
            kwargs["aws_secret_access_key"] = config.aws_secret
        session = boto3.session.Session(**kwargs)
        return cls(session.client("sesv2"))

    def update_template(self, name: str, html: str, subject: str, text: str) -> None:
        """更新已有模板。

        Raises:
            TemplateNotFoundError: 远端不存在该模板
            ClientError/BotoCoreError: 其他远端或网络错误
        """
        try:
            self.client.update_email_template(
                TemplateName=name,
                TemplateContent=_content(html, subject, text),
            )
        except ClientError as e:
            if e.response.get("Error", {}).get("Code") in NOT_FOUND_CODES:
                raise TemplateNotFoundError(name, e) from e
            raise

    def create_template(self, name: str, html: str, subject: str, text: str) -> None:
        """创建新模板。"""
        self.client.create_email_template(
            TemplateName=name,
            TemplateContent=_content(html, subject, text),
        )
