"""
メッセージフォーマッターモジュール

LLMが生成したコミットメッセージをファイルへ書き込める形に整え、
検証失敗時に端末へ表示するメッセージを組み立てる。
"""

import re
import logging
from typing import Optional

logger = logging.getLogger(__name__)

BANNER_LINE = "-" * 66
DEFAULT_INVALID_REASON = "The format is incorrect."

# 回答全体を囲むコードブロック（```lang ... ```）
WRAPPING_FENCE_PATTERN = re.compile(r'^```[\w-]*[ \t]*\n(.*?)\n?```$', re.DOTALL)


class MessageFormatter:
    """メッセージフォーマッタークラス"""

    def format_suggestion(self, raw_message: Optional[str]) -> str:
        """
        LLMの生成メッセージを整形する

        改行をLFに統一し、回答全体を囲むコードブロックを外して前後の空白を除去する。
        本文との間の空行は保持する。

        Args:
            raw_message: LLMが生成した生メッセージ

        Returns:
            整形済みのコミットメッセージ（空の場合は空文字）
        """
        if not raw_message or not raw_message.strip():
            logger.warning("空のメッセージを受信しました")
            return ""

        cleaned = raw_message.replace('\r\n', '\n').replace('\r', '\n').strip()

        match = WRAPPING_FENCE_PATTERN.match(cleaned)
        if match:
            cleaned = match.group(1).strip()

        # 行末の空白のみ除去
        cleaned = "\n".join(line.rstrip() for line in cleaned.split('\n'))

        if not cleaned:
            logger.warning("整形後のメッセージが空になりました")
        return cleaned

    def format_rejection(self, reason: Optional[str]) -> str:
        """
        検証失敗時に標準エラーへ表示するメッセージ

        Args:
            reason: AIが返した理由

        Returns:
            枠線付きの複数行メッセージ
        """
        return "\n".join([
            BANNER_LINE,
            "AI VALIDATION FAILED: The commit message does not meet the standard.",
            f"AI Reason: {reason or DEFAULT_INVALID_REASON}",
            BANNER_LINE,
        ])

    def format_skip_notice(self, reason: str) -> str:
        """検証をスキップした場合の1行メッセージ"""
        return f"WARNING: {reason} AI verification skipped."
