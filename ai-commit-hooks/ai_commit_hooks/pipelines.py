"""
フックパイプライン

prepare-commit-msg（提案の生成）と commit-msg（メッセージの検証）の処理を
それぞれ1本のパイプラインとしてまとめる。
各段階の失敗は例外として外に出さず、Outcome として返す。
"""

import sys
import logging
from pathlib import Path
from typing import Optional, TextIO, Union

from .base_provider import BaseProvider, ProviderResponse
from .commit_message_file import CommitMessageFile
from .config_manager import Configuration
from .git_processor import GitDiffProcessor, GitError
from .message_formatter import DEFAULT_INVALID_REASON, MessageFormatter
from .outcome import ErrorKind, Outcome
from .prompt_builder import PromptBuilder
from .response_interpreter import ResponseInterpreter

logger = logging.getLogger(__name__)

# ユーザーが既にメッセージを用意しているコミット種別
SKIPPED_COMMIT_SOURCES = frozenset({'message', 'merge', 'squash', 'commit'})


class GenerationPipeline:
    """
    コミットメッセージ提案パイプライン

    差分取得 → プロンプト構築 → API呼び出し → 提案の整形 → ファイル先頭への書き込み。
    書き込み失敗以外はすべてスキップ扱いとし、コミットを妨げない。
    """

    def __init__(self,
                 config: Configuration,
                 provider: BaseProvider,
                 git_processor: Optional[GitDiffProcessor] = None,
                 prompt_builder: Optional[PromptBuilder] = None,
                 interpreter: Optional[ResponseInterpreter] = None):
        self.config = config
        self.provider = provider
        self.git_processor = git_processor or GitDiffProcessor()
        self.prompt_builder = prompt_builder or PromptBuilder(config.max_diff_length)
        self.interpreter = interpreter or ResponseInterpreter(fail_closed=False)

    def run(self, commit_msg_file: Union[str, Path], commit_source: Optional[str] = None) -> Outcome:
        """
        提案を生成してコミットメッセージファイルに書き込む

        Args:
            commit_msg_file: Gitが渡すコミットメッセージファイルのパス
            commit_source: Gitが渡すコミットメッセージの種別（message, merge など）

        Returns:
            Outcome: ALLOW（書き込み済み）、SKIP、または ERROR（書き込み失敗）
        """
        if commit_source in SKIPPED_COMMIT_SOURCES:
            logger.info("コミット種別 '%s' のため提案を生成しません", commit_source)
            return Outcome.skip(f"commit source is {commit_source}")

        try:
            diff = self.git_processor.read_staged_diff()
        except GitError as e:
            logger.warning("ステージ済みの差分を取得できません: %s", e)
            return Outcome.skip(f"could not read staged diff: {e}")

        if not diff.strip():
            logger.info("ステージ済みの変更がないため提案を生成しません")
            return Outcome.skip("no staged changes")

        message_file = CommitMessageFile(commit_msg_file)
        try:
            original = message_file.read_raw()
        except OSError as e:
            logger.warning("コミットメッセージファイルを読み取れません: %s", e)
            return Outcome.skip(f"could not read {commit_msg_file}", ErrorKind.FILE_IO_FAILURE)

        prompt = self.prompt_builder.build_generation_prompt(diff)
        response = self.provider.generate(prompt.text, self.config)

        suggestion = self.interpreter.interpret_suggestion(response)
        if suggestion is None:
            cause = response.error_kind or ErrorKind.PARSE_FAILURE
            logger.error("AIの提案を取得できませんでした (%s): %s",
                         cause.value, response.error_message or "empty suggestion")
            return Outcome.skip("no suggestion generated", cause)

        try:
            message_file.prepend_suggestion(suggestion, original)
        except OSError as e:
            logger.error("AIの提案を書き込めません: %s", e)
            return Outcome.error(f"could not write {commit_msg_file}: {e}", ErrorKind.FILE_IO_FAILURE)

        logger.info("AIの提案を書き込みました: %s", suggestion.splitlines()[0])
        return Outcome.allow(suggestion)


class VerificationPipeline:
    """
    コミットメッセージ検証パイプライン

    メッセージ読み取り → プロンプト構築 → API呼び出し → 判定の解析 → 許可または拒否。
    判定が得られない場合は config.verify_fail_closed に従う。
    """

    def __init__(self,
                 config: Configuration,
                 provider: BaseProvider,
                 prompt_builder: Optional[PromptBuilder] = None,
                 interpreter: Optional[ResponseInterpreter] = None,
                 formatter: Optional[MessageFormatter] = None,
                 stream: Optional[TextIO] = None):
        self.config = config
        self.provider = provider
        self.prompt_builder = prompt_builder or PromptBuilder(config.max_diff_length)
        self.formatter = formatter or MessageFormatter()
        self.interpreter = interpreter or ResponseInterpreter(
            fail_closed=config.verify_fail_closed, formatter=self.formatter)
        self.stream = stream

    def run(self, commit_msg_file: Union[str, Path]) -> Outcome:
        """
        コミットメッセージを検証する

        Args:
            commit_msg_file: Gitが渡すコミットメッセージファイルのパス

        Returns:
            Outcome: ALLOW、BLOCK、または SKIP
        """
        message_file = CommitMessageFile(commit_msg_file)
        if not message_file.exists():
            logger.warning("コミットメッセージファイルが見つかりません: %s", commit_msg_file)
            return Outcome.skip(f"{commit_msg_file} not found", ErrorKind.FILE_IO_FAILURE)

        try:
            message = message_file.read_message()
        except OSError as e:
            logger.warning("コミットメッセージファイルを読み取れません: %s", e)
            return Outcome.skip(f"could not read {commit_msg_file}", ErrorKind.FILE_IO_FAILURE)

        if not message:
            logger.info("コミットメッセージが空のため検証しません")
            return Outcome.skip("empty commit message")

        prompt = self.prompt_builder.build_verification_prompt(message)
        response = self.provider.generate(prompt.text, self.config)

        if not response.ok:
            return self._unavailable(response)

        verdict = self.interpreter.interpret_verdict(response.generated_text)
        if verdict.error_kind is not None:
            if verdict.valid:
                return self._skip(verdict.reason, verdict.error_kind)
            return self._block(verdict.reason, verdict.error_kind)

        if not verdict.valid:
            return self._block(verdict.reason)

        logger.info("AIによるコミットメッセージの検証に成功しました")
        return Outcome.allow(verdict.reason)

    def _unavailable(self, response: ProviderResponse) -> Outcome:
        cause = response.error_kind or ErrorKind.TRANSPORT_FAILURE
        detail = response.error_message or cause.value
        if self.config.verify_fail_closed:
            return self._block(
                f"AI verification could not be completed ({detail}). "
                "Set VERIFY_FAIL_MODE=open to allow commits when the provider is unavailable.",
                cause,
            )
        return self._skip(f"AI verification could not be completed ({detail}).", cause)

    def _block(self, reason: Optional[str], cause: Optional[ErrorKind] = None) -> Outcome:
        outcome = Outcome.block(reason or DEFAULT_INVALID_REASON, cause)
        print(self.formatter.format_rejection(outcome.reason), file=self._output())
        logger.error("AI検証でコミットを拒否しました: %s", outcome.reason)
        return outcome

    def _skip(self, reason: str, cause: ErrorKind) -> Outcome:
        print(self.formatter.format_skip_notice(reason), file=self._output())
        logger.warning("AI検証をスキップしました (%s): %s", cause.value, reason)
        return Outcome.skip(reason, cause)

    def _output(self) -> TextIO:
        return self.stream if self.stream is not None else sys.stderr
