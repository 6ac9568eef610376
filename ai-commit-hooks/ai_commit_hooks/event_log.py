"""
イベントログ設定

各パイプラインの判断と失敗を追記専用のログファイルに記録する。
形式: [YYYY-mm-dd HH:MM:SS] [LEVEL] message
"""

import sys
import logging
from typing import Optional

import colorlog

LOGGER_NAME = "ai_commit_hooks"
LOG_FORMAT = "[%(asctime)s] [%(levelname)s] %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"
CONSOLE_FORMAT = "%(log_color)s%(levelname)-8s%(reset)s %(name)s: %(message)s"


def setup_logging(log_path: Optional[str], verbose: bool = False) -> bool:
    """
    ロギング設定を初期化

    ファイルは追記モードで開き、1レコード=1行で書き込む。
    ログファイルを開けない場合でもコミットは妨げない。

    Args:
        log_path: ログファイルのパス（None の場合はファイル出力なし）
        verbose: 詳細ログを標準エラーにも出力する場合True

    Returns:
        ログファイルのハンドラーを設定できた場合True
    """
    package_logger = logging.getLogger(LOGGER_NAME)
    for handler in list(package_logger.handlers):
        package_logger.removeHandler(handler)
        handler.close()

    package_logger.setLevel(logging.DEBUG if verbose else logging.INFO)

    file_ready = False
    if log_path:
        try:
            file_handler = logging.FileHandler(log_path, mode='a', encoding='utf-8')
        except OSError:
            package_logger.addHandler(logging.NullHandler())
        else:
            file_handler.setLevel(logging.INFO)
            file_handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT))
            package_logger.addHandler(file_handler)
            file_ready = True
    else:
        package_logger.addHandler(logging.NullHandler())

    if verbose:
        console_handler = logging.StreamHandler(sys.stderr)
        console_handler.setLevel(logging.DEBUG)
        console_handler.setFormatter(colorlog.ColoredFormatter(
            CONSOLE_FORMAT,
            log_colors={
                'DEBUG': 'cyan',
                'INFO': 'green',
                'WARNING': 'yellow',
                'ERROR': 'red',
                'CRITICAL': 'red,bg_white',
            },
        ))
        package_logger.addHandler(console_handler)

    return file_ready
