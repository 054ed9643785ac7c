"""sessync 包：本地邮件模板到 AWS SES 的自动同步工具。

推荐直接运行：
  `python -m sessync --config /path/to/ses_config.json`  → 全量推送一次，然后持续监听并增量推送。

包含模块：
- `sessync.daemon`：控制循环（初始化/监听/配置重载）。
- `sessync.core.*`：配置、模板集合、差异计算、SES 客户端、推送、文件监听与错误上报。
"""

__version__ = "0.1.0"
RELEASE = f"ses_emails@{__version__}"
