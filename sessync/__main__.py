"""命令行入口：`python -m sessync [--config PATH]`

启动顺序：读取配置 → 初始化 Sentry → 创建 SES 客户端 → 启动守护循环。
配置读取失败、SES 会话创建失败都会直接退出（返回码 1）。
SIGINT/SIGTERM 触发优雅退出：关闭监听器，正在进行的推送自行完成。
"""

from __future__ import annotations

import argparse
import signal
import sys
import threading
from typing import List, Optional

from sessync import RELEASE
from sessync.core.config import DEFAULT_CONFIG_PATH, DEFAULT_NATIVE_WATCH, ConfigError, read_config
from sessync.core.pusher import TemplatePusher
from sessync.core.reporting import ErrorReporter, init_reporting
from sessync.core.ses_api import SESTemplateAPI
from sessync.core.watch import FileWatcher
from sessync.daemon import TemplateSyncDaemon
from sessync.utils.logging import err, log, mask_secret


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="sessync", description="Sync local email templates to AWS SES")
    parser.add_argument(
        "--config",
        "-config",
        dest="config",
        default=DEFAULT_CONFIG_PATH,
        help="Full path to the config file",
    )
    return parser


def install_signal_handlers(daemon: TemplateSyncDaemon) -> None:
    """SIGINT/SIGTERM 触发停止。

    信号处理函数运行在主线程上，而主线程此时可能正阻塞在监听队列的 get() 里并持有队列锁，
    所以日志和停止动作都交给独立线程执行，处理函数本身不取任何锁。
    """

    def _stop(signum):
        log(f"Received signal {signum}, stopping")
        daemon.stop()

    def _on_signal(signum, frame):
        threading.Thread(target=_stop, args=(signum,), name="sessync-stop", daemon=True).start()

    signal.signal(signal.SIGINT, _on_signal)
    signal.signal(signal.SIGTERM, _on_signal)


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)

    try:
        config = read_config(args.config)
    except ConfigError as e:
        err(str(e))
        return 1

    init_reporting(config.sentry_dsn, RELEASE)
    reporter = ErrorReporter()
    log(f"Loaded {len(config.templates)} templates from {config.path}")
    log(f"AWS region: {config.aws_region or '(default)'}, key: {mask_secret(config.aws_key) or '(default chain)'}")

    try:
        api = SESTemplateAPI.from_config(config)
    except Exception as e:
        reporter.capture(e)
        reporter.flush()
        return 1

    daemon = TemplateSyncDaemon(
        config.path,
        TemplatePusher(api, reporter),
        config=config,
        watcher=FileWatcher(polling=not DEFAULT_NATIVE_WATCH),
        reporter=reporter,
    )
    install_signal_handlers(daemon)

    try:
        return daemon.run()
    except Exception as e:
        reporter.capture(e)
        return 1
    finally:
        reporter.flush()


if __name__ == "__main__":
    sys.exit(main())
