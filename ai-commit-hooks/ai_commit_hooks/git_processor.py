"""
Git差分取得

subprocess経由で `git diff --staged` を実行し、ステージ済みの差分を取得する。
"""

import logging
import shutil
import subprocess
from typing import Optional

logger = logging.getLogger(__name__)


class GitError(Exception):
    """Git処理関連のエラー"""
    pass


class GitDiffProcessor:
    """
    Git差分処理クラス

    ステージ済みの差分をそのまま返す。切り詰めはプロンプト構築側で行う。
    """

    def __init__(self, timeout: int = 30, cwd: Optional[str] = None):
        """
        Args:
            timeout: gitコマンドのタイムアウト秒数
            cwd: gitを実行するディレクトリ（None の場合はカレント）
        """
        self.timeout = timeout
        self.cwd = cwd

    def read_staged_diff(self) -> str:
        """
        ステージ済みの差分を取得する

        Returns:
            `git diff --staged` の標準出力（加工なし）

        Raises:
            GitError: gitコマンドの実行に失敗した場合
        """
        git_cmd = shutil.which('git')
        if not git_cmd:
            raise GitError("gitコマンドが見つかりません")

        try:
            result = subprocess.run(
                [git_cmd, 'diff', '--staged'],
                capture_output=True,
                text=True,
                encoding='utf-8',
                errors='replace',
                timeout=self.timeout,
                cwd=self.cwd,
            )
        except subprocess.TimeoutExpired as err:
            raise GitError("git diff --staged がタイムアウトしました") from err
        except OSError as err:
            raise GitError(f"gitコマンドの実行に失敗しました: {err}") from err

        if result.returncode != 0:
            raise GitError(
                f"git diff --staged が失敗しました (exit={result.returncode}): {(result.stderr or '').strip()}"
            )

        diff_output = result.stdout or ""
        logger.debug("gitコマンド経由でGit差分を取得しました (%d文字)", len(diff_output))
        return diff_output
