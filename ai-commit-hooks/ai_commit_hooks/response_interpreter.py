"""
レスポンス解釈モジュール

生成パイプラインでは提案テキストを取り出し、検証パイプラインでは
JSON形式の判定結果（valid / reason）を解析する。
プロバイダーが指示に反してコードブロックや前置きを付けても解析できるようにする。
"""

import re
import json
import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional

from .base_provider import ProviderResponse
from .message_formatter import DEFAULT_INVALID_REASON, MessageFormatter
from .outcome import ErrorKind

logger = logging.getLogger(__name__)

# 先頭の ```json / ``` と末尾の ``` を除去
FENCE_PATTERN = re.compile(r'^\s*```(?:json)?\s*|\s*```\s*$', re.IGNORECASE)


@dataclass(frozen=True)
class VerificationVerdict:
    """検証結果"""
    valid: bool
    reason: Optional[str] = None
    error_kind: Optional[ErrorKind] = None

    @property
    def is_default(self) -> bool:
        """解析失敗によるポリシー既定値かどうか"""
        return self.error_kind is not None


class VerdictParseError(ValueError):
    """判定結果をJSONオブジェクトとして解析できない"""
    pass


def strip_code_fence(text: str) -> str:
    """先頭・末尾のマークダウンコードフェンスを取り除く"""
    return FENCE_PATTERN.sub('', text).strip()


def parse_verdict_object(text: str) -> Dict[str, Any]:
    """
    テキストから判定結果のJSONオブジェクトを取り出す

    まずフェンス除去後の全体を解析し、失敗した場合は最初に解析できる
    JSONオブジェクトを走査して探す（前置きの文章が付いた応答への対策）。

    Raises:
        VerdictParseError: JSONオブジェクトが見つからない場合
    """
    cleaned = strip_code_fence(text or "")
    try:
        parsed = json.loads(cleaned)
    except ValueError:
        parsed = _scan_first_object(cleaned)

    if not isinstance(parsed, dict):
        raise VerdictParseError(f"JSONオブジェクトではありません: {type(parsed).__name__}")
    return parsed


def _scan_first_object(text: str) -> Dict[str, Any]:
    decoder = json.JSONDecoder()
    index = text.find('{')
    while index != -1:
        try:
            obj, _ = decoder.raw_decode(text, index)
        except ValueError:
            obj = None
        if isinstance(obj, dict):
            return obj
        index = text.find('{', index + 1)
    raise VerdictParseError("応答にJSONオブジェクトが含まれていません")


def _verdict_flag(value: Any) -> Optional[bool]:
    """`valid` の値を真偽値として解釈する（true / false 以外はNone）"""
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        return {"true": True, "false": False}.get(value.strip().lower())
    return None


class ResponseInterpreter:
    """レスポンス解釈クラス"""

    def __init__(self, fail_closed: bool = True, formatter: Optional[MessageFormatter] = None):
        """
        Args:
            fail_closed: 判定を解析できない場合に拒否扱いにするならTrue
            formatter: 提案テキストの整形に使うフォーマッター
        """
        self.fail_closed = fail_closed
        self.formatter = formatter or MessageFormatter()

    def interpret_suggestion(self, response: ProviderResponse) -> Optional[str]:
        """
        生成された提案を取り出す

        Returns:
            整形済みの提案。取り出せない場合はNone（コミットは妨げない）
        """
        if not response.ok:
            logger.warning("提案を取得できませんでした: %s",
                           response.error_kind.value if response.error_kind else "unknown")
            return None

        suggestion = self.formatter.format_suggestion(response.generated_text)
        return suggestion or None

    def interpret_verdict(self, text: Optional[str]) -> VerificationVerdict:
        """
        判定結果を解析する

        `valid` が無い場合は有効とみなし、`valid: false` の場合は必ず理由を付ける。
        解析できない場合や `valid` が true / false 以外の場合は
        fail_closed に従った既定の判定を返す。

        Args:
            text: プロバイダーが生成したテキスト

        Returns:
            VerificationVerdict: 判定結果
        """
        try:
            obj = parse_verdict_object(text or "")
        except VerdictParseError as e:
            logger.error("AI判定結果を解析できません: %s 応答: %r", e, (text or "")[:200])
            return self.default_verdict(f"Could not parse the AI verdict ({e}).")

        flag = _verdict_flag(obj.get('valid', True))
        if flag is None:
            logger.error("AI判定結果の valid を解釈できません: %r", obj.get('valid'))
            return self.default_verdict(f"Ambiguous 'valid' value in the AI verdict: {obj.get('valid')!r}.")

        reason = obj.get('reason')
        if not flag:
            if reason is None or not str(reason).strip():
                reason = DEFAULT_INVALID_REASON
            return VerificationVerdict(valid=False, reason=str(reason))

        return VerificationVerdict(valid=True, reason=str(reason) if reason else None)

    def default_verdict(self, reason: str) -> VerificationVerdict:
        """解析失敗時の既定判定"""
        return VerificationVerdict(
            valid=not self.fail_closed,
            reason=reason,
            error_kind=ErrorKind.PARSE_FAILURE,
        )
