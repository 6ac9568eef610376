"""
コミットメッセージファイル操作

Gitがフックに渡すコミットメッセージファイルの読み取りと、
AI提案の先頭挿入（アトミックな書き込み）を扱う。
"""

import os
import stat
import logging
import tempfile
from pathlib import Path
from typing import Union

logger = logging.getLogger(__name__)

COMMENT_MARKER = "#"
SCISSORS_LINE = "# ------------------------ >8 ------------------------"
SUGGESTION_SEPARATOR = "# ------------------------ > AI Suggestion Above < ------------------------"


class CommitMessageFile:
    """コミットメッセージファイル"""

    def __init__(self, path: Union[str, Path]):
        self.path = Path(path)

    def exists(self) -> bool:
        return self.path.is_file()

    def read_raw(self) -> bytes:
        """
        元の内容をバイト列のまま読み取る

        ファイルが存在しない場合は空とみなす。

        Raises:
            OSError: 既存ファイルを読み取れない場合
        """
        if not self.path.exists():
            return b""
        return self.path.read_bytes()

    def read_message(self) -> str:
        """
        コメント行を除いたコミットメッセージを取得する

        `#` で始まる行を除外し、シザーズ行以降は無視して前後の空白を除去する。

        Raises:
            OSError: ファイルが存在しない、または読み取れない場合
        """
        content = self.path.read_text(encoding='utf-8', errors='replace')
        return strip_comments(content)

    def prepend_suggestion(self, suggestion: str, original: bytes) -> None:
        """
        提案メッセージを先頭に書き込み、元の内容を区切り線の下に残す

        同じディレクトリに一時ファイルを書いてから置き換えるため、
        途中まで書かれたファイルが残ることはない。

        Args:
            suggestion: 提案メッセージ
            original: 元のファイル内容（バイト列）

        Raises:
            OSError: 書き込みまたは置き換えに失敗した場合
        """
        content = (
            suggestion.strip().encode('utf-8')
            + b"\n\n"
            + SUGGESTION_SEPARATOR.encode('utf-8')
            + b"\n"
            + original
        )

        fd, tmp_path = tempfile.mkstemp(prefix=".ai-commit-msg-", dir=str(self.path.parent))
        try:
            with os.fdopen(fd, 'wb') as tmp:
                tmp.write(content)
                tmp.flush()
                os.fsync(tmp.fileno())
            if self.path.exists():
                os.chmod(tmp_path, stat.S_IMODE(self.path.stat().st_mode))
            os.replace(tmp_path, self.path)
        except OSError:
            try:
                os.unlink(tmp_path)
            except FileNotFoundError:
                pass
            raise

        logger.debug("コミットメッセージファイルを更新しました: %s (%dバイト)", self.path, len(content))


def strip_comments(content: str) -> str:
    """コメント行とシザーズ行以降を取り除いて前後の空白を除去"""
    lines = []
    for line in content.splitlines():
        if line.rstrip() == SCISSORS_LINE:
            break
        if line.startswith(COMMENT_MARKER):
            continue
        lines.append(line)
    return "\n".join(lines).strip()
