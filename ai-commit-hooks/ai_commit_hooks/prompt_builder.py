"""
プロンプト構築モジュール

固定の指示文に差分（生成）またはコミットメッセージ（検証）を埋め込む。
差分は max_diff_length 文字で単純に切り詰める（文や行の境界は考慮しない）。
"""

import logging
from string import Template
from dataclasses import dataclass

logger = logging.getLogger(__name__)

COMMIT_TYPES = ("feat", "fix", "docs", "style", "refactor", "perf", "test", "build", "ci", "chore")

GENERATION_TEMPLATE = (
    "Act as an expert developer. Based on the following git 'diff', generate a concise commit "
    "message that strictly follows the Conventional Commits standard "
    "(type(scope): description, e.g. 'feat(scope): description').\n"
    "Rules:\n"
    "- Return ONLY the raw commit message, without markdown, code blocks, or any extra formatting.\n"
    "- The first line (subject) should not exceed 72 characters.\n"
    "- If the changes are significant, add a blank line followed by a brief message body.\n"
    "\n"
    "Diff:\n"
    "$diff"
)

VERIFICATION_TEMPLATE = (
    "Evaluate if the following commit message strictly follows the Conventional Commits standard "
    "(type(scope): description).\n"
    "Valid types are: $types.\n"
    "Respond ONLY with a JSON object of the shape {\"valid\": boolean, \"reason\": string or null}.\n"
    "If valid, 'valid' is true and 'reason' is null.\n"
    "If invalid, 'valid' is false and 'reason' explains the error concisely in English.\n"
    "Message to evaluate: '$message'"
)


@dataclass(frozen=True)
class PromptRequest:
    """LLMに送信するプロンプト"""
    instruction_template: str
    payload: str
    truncated_payload_length: int
    original_payload_length: int
    text: str

    @property
    def was_truncated(self) -> bool:
        return self.truncated_payload_length < self.original_payload_length


class PromptBuilder:
    """プロンプトビルダー"""

    def __init__(self, max_diff_length: int = 8000):
        """
        Args:
            max_diff_length: 差分の最大文字数

        Raises:
            ValueError: max_diff_lengthが無効な値の場合
        """
        if not isinstance(max_diff_length, int) or max_diff_length < 1:
            raise ValueError("max_diff_length must be an integer >= 1")
        self.max_diff_length = max_diff_length

    def build_generation_prompt(self, diff: str) -> PromptRequest:
        """
        コミットメッセージ生成用のプロンプトを構築

        Args:
            diff: `git diff --staged` の出力

        Returns:
            切り詰め済みの差分を埋め込んだプロンプト
        """
        payload = diff[:self.max_diff_length]
        if len(payload) < len(diff):
            logger.info("差分を切り詰めました: %d -> %d文字", len(diff), len(payload))

        text = Template(GENERATION_TEMPLATE).safe_substitute(diff=payload)
        return PromptRequest(
            instruction_template=GENERATION_TEMPLATE,
            payload=payload,
            truncated_payload_length=len(payload),
            original_payload_length=len(diff),
            text=text,
        )

    def build_verification_prompt(self, message: str) -> PromptRequest:
        """
        コミットメッセージ検証用のプロンプトを構築

        コミットメッセージは短いため切り詰めない。

        Args:
            message: コメント行を除去済みのコミットメッセージ

        Returns:
            メッセージを埋め込んだプロンプト
        """
        text = Template(VERIFICATION_TEMPLATE).safe_substitute(
            types=", ".join(COMMIT_TYPES),
            message=message,
        )
        return PromptRequest(
            instruction_template=VERIFICATION_TEMPLATE,
            payload=message,
            truncated_payload_length=len(message),
            original_payload_length=len(message),
            text=text,
        )
