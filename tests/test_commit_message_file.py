"""
CommitMessageFileのユニットテスト

コメント行の除去、提案の先頭挿入、元の内容の保持をテスト。
"""

import os
import stat
from unittest.mock import patch

import pytest

from ai_commit_hooks.commit_message_file import (
    SCISSORS_LINE,
    SUGGESTION_SEPARATOR,
    CommitMessageFile,
    strip_comments,
)
from conftest import COMMENT_ONLY_MESSAGE


class TestStripComments:
    """strip_comments のテストクラス"""

    def test_removes_comment_lines(self):
        """コメント行を除去して前後を整える"""
        content = "\nfix bug\n# Please enter the commit message\n#\n"

        assert strip_comments(content) == "fix bug"

    def test_keeps_body(self):
        """本文と空行は保持する"""
        content = "feat(api): add endpoint\n\nLonger description.\n# comment\n"

        assert strip_comments(content) == "feat(api): add endpoint\n\nLonger description."

    def test_comment_only(self):
        """コメントのみの場合は空"""
        assert strip_comments(COMMENT_ONLY_MESSAGE.decode()) == ""

    def test_ignores_everything_below_scissors(self):
        """シザーズ行以降は無視する"""
        content = (
            "docs: update readme\n"
            f"{SCISSORS_LINE}\n"
            "# Do not modify or remove the line above.\n"
            "diff --git a/README.md b/README.md\n"
            "+new line\n"
        )

        assert strip_comments(content) == "docs: update readme"


class TestCommitMessageFile:
    """CommitMessageFile のテストクラス"""

    def test_read_message(self, tmp_path):
        """コメントを除いたメッセージの読み取り"""
        path = tmp_path / 'COMMIT_EDITMSG'
        path.write_text("fix bug\n# comment\n", encoding='utf-8')

        assert CommitMessageFile(path).read_message() == "fix bug"

    def test_read_message_missing_file(self, tmp_path):
        """存在しないファイルの読み取りはOSError"""
        with pytest.raises(OSError):
            CommitMessageFile(tmp_path / 'missing').read_message()

    def test_read_raw_missing_file(self, tmp_path):
        """存在しないファイルは空の内容とみなす"""
        message_file = CommitMessageFile(tmp_path / 'missing')

        assert message_file.exists() is False
        assert message_file.read_raw() == b""

    def test_prepend_suggestion(self, commit_msg_file):
        """提案を先頭に書き込み、元の内容を区切り線の下に残す"""
        message_file = CommitMessageFile(commit_msg_file)
        original = message_file.read_raw()

        message_file.prepend_suggestion("feat(x): add line\n", original)

        expected = b"feat(x): add line\n\n" + SUGGESTION_SEPARATOR.encode() + b"\n" + COMMENT_ONLY_MESSAGE
        assert commit_msg_file.read_bytes() == expected

    def test_prepend_preserves_original_bytes(self, tmp_path):
        """元の内容はバイト単位でそのまま残る"""
        original = b"WIP\r\n# \xff\xfe not utf-8\n\n# trailing\n\n"
        path = tmp_path / 'COMMIT_EDITMSG'
        path.write_bytes(original)

        CommitMessageFile(path).prepend_suggestion("fix(core): handle crlf", original)

        content = path.read_bytes()
        head, _, tail = content.partition(SUGGESTION_SEPARATOR.encode() + b"\n")
        assert head == b"fix(core): handle crlf\n\n"
        assert tail == original

    def test_prepend_creates_missing_file(self, tmp_path):
        """ファイルが無い場合は提案と区切り線のみ"""
        path = tmp_path / 'COMMIT_EDITMSG'

        CommitMessageFile(path).prepend_suggestion("chore: init", b"")

        assert path.read_bytes() == b"chore: init\n\n" + SUGGESTION_SEPARATOR.encode() + b"\n"

    def test_prepend_keeps_file_mode(self, commit_msg_file):
        """書き込み後もファイルの権限を維持する"""
        os.chmod(commit_msg_file, 0o640)
        message_file = CommitMessageFile(commit_msg_file)

        message_file.prepend_suggestion("test: add cases", message_file.read_raw())

        assert stat.S_IMODE(commit_msg_file.stat().st_mode) == 0o640

    def test_failed_replace_leaves_original(self, commit_msg_file):
        """置き換えに失敗した場合は元のファイルと一時ファイルを残さない"""
        message_file = CommitMessageFile(commit_msg_file)

        with patch('os.replace', side_effect=OSError("No space left on device")):
            with pytest.raises(OSError, match="No space left"):
                message_file.prepend_suggestion("feat: x", message_file.read_raw())

        assert commit_msg_file.read_bytes() == COMMENT_ONLY_MESSAGE
        assert [p.name for p in commit_msg_file.parent.iterdir()] == ['COMMIT_EDITMSG']
