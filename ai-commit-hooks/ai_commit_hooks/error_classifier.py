"""
プロバイダーエラー分類器

HTTP通信の例外、ステータスコード、プロバイダーが返したエラー本文を分析し、
ErrorKind（パイプラインでの扱い）と ErrorType（原因の詳細）に分類する。
"""

import re
import logging
from enum import Enum
from typing import Optional, Dict, Any
from dataclasses import dataclass

import requests

from .outcome import ErrorKind

logger = logging.getLogger(__name__)


class ErrorType(Enum):
    """エラー原因の定義"""
    AUTHENTICATION_ERROR = "authentication_error"
    QUOTA_EXCEEDED = "quota_exceeded"
    NETWORK_ERROR = "network_error"
    TIMEOUT_ERROR = "timeout_error"
    MODEL_NOT_FOUND = "model_not_found"
    SERVER_ERROR = "server_error"
    MALFORMED_RESPONSE = "malformed_response"
    UNKNOWN_ERROR = "unknown_error"


@dataclass
class ErrorAnalysisResult:
    """エラー分析結果"""
    error_kind: ErrorKind
    error_type: ErrorType
    message: str
    suggested_action: str
    technical_details: Optional[Dict[str, Any]] = None

    def describe(self) -> str:
        """ログ用の1行表現"""
        return f"{self.message} ({self.error_type.value}) 推奨: {self.suggested_action}"


class ProviderErrorClassifier:
    """プロバイダーエラー分類器"""

    # プロバイダーのエラーメッセージに対するパターン定義
    ERROR_PATTERNS = {
        ErrorType.QUOTA_EXCEEDED: [
            r"RESOURCE_EXHAUSTED",
            r"quota.*exceeded",
            r"rate.?limit",
            r"too many requests",
        ],
        ErrorType.AUTHENTICATION_ERROR: [
            r"API_KEY_INVALID",
            r"api key not valid",
            r"invalid.*api.*key",
            r"PERMISSION_DENIED",
            r"unauthenticated",
        ],
        ErrorType.MODEL_NOT_FOUND: [
            r"model.*not found",
            r"NOT_FOUND",
            r"try pulling it first",
        ],
        ErrorType.TIMEOUT_ERROR: [
            r"timed?.?out",
            r"DEADLINE_EXCEEDED",
        ],
    }

    MESSAGES = {
        ErrorType.AUTHENTICATION_ERROR: (
            "API認証に失敗しました",
            "GEMINI_API_KEY の設定を確認してください",
        ),
        ErrorType.QUOTA_EXCEEDED: (
            "APIのクォータまたはレート制限に達しました",
            "しばらく待つか、別のプロバイダーを使用してください",
        ),
        ErrorType.NETWORK_ERROR: (
            "プロバイダーに接続できません",
            "ネットワーク接続とURL設定（API_BASE_URL / OLLAMA_URL）を確認してください",
        ),
        ErrorType.TIMEOUT_ERROR: (
            "リクエストがタイムアウトしました",
            "API_TIMEOUT_SECONDS を増やすか、ネットワーク状態を確認してください",
        ),
        ErrorType.MODEL_NOT_FOUND: (
            "指定したモデルが見つかりません",
            "API_MODEL / OLLAMA_MODEL を確認してください（Ollamaの場合は ollama pull）",
        ),
        ErrorType.SERVER_ERROR: (
            "プロバイダー側でエラーが発生しました",
            "時間をおいて再度コミットしてください",
        ),
        ErrorType.MALFORMED_RESPONSE: (
            "プロバイダーのレスポンス形式が想定と異なります",
            "モデルの設定を確認してください",
        ),
        ErrorType.UNKNOWN_ERROR: (
            "不明なエラーが発生しました",
            "ログを確認してください",
        ),
    }

    def classify_exception(self, error: Exception) -> ErrorAnalysisResult:
        """
        HTTP送信時の例外を分類する

        Args:
            error: requestsが送出した例外

        Returns:
            ErrorAnalysisResult: 分析結果（常に TRANSPORT_FAILURE）
        """
        if isinstance(error, requests.exceptions.Timeout):
            error_type = ErrorType.TIMEOUT_ERROR
        elif isinstance(error, requests.exceptions.ConnectionError):
            error_type = ErrorType.NETWORK_ERROR
        else:
            error_type = self._match_patterns(str(error)) or ErrorType.NETWORK_ERROR

        return self._create_result(
            ErrorKind.TRANSPORT_FAILURE,
            error_type,
            {"exception": type(error).__name__},
        )

    def classify_http_status(self, status_code: int, detail: str = "") -> ErrorAnalysisResult:
        """
        2xx以外のステータスコードを分類する

        Args:
            status_code: HTTPステータスコード
            detail: レスポンス本文の一部

        Returns:
            ErrorAnalysisResult: 分析結果（常に TRANSPORT_FAILURE）
        """
        return self._create_result(
            ErrorKind.TRANSPORT_FAILURE,
            self._type_from_status(status_code) or self._match_patterns(detail) or ErrorType.UNKNOWN_ERROR,
            {"status_code": status_code},
        )

    def classify_provider_error(self, error_payload: Any, status_code: Optional[int] = None) -> ErrorAnalysisResult:
        """
        レスポンス本文の error フィールドを分類する

        Args:
            error_payload: error フィールドの値（文字列または辞書）
            status_code: HTTPステータスコード

        Returns:
            ErrorAnalysisResult: 分析結果（常に PROVIDER_ERROR）
        """
        detail = self.extract_error_message(error_payload)
        error_type = self._match_patterns(detail)
        if error_type is None and status_code is not None:
            error_type = self._type_from_status(status_code)

        return self._create_result(
            ErrorKind.PROVIDER_ERROR,
            error_type or ErrorType.UNKNOWN_ERROR,
            {"status_code": status_code, "detail": detail},
        )

    def classify_malformed_response(self, detail: str = "") -> ErrorAnalysisResult:
        """解析できないレスポンスを分類する（常に PARSE_FAILURE）"""
        return self._create_result(
            ErrorKind.PARSE_FAILURE,
            ErrorType.MALFORMED_RESPONSE,
            {"detail": detail},
        )

    @staticmethod
    def extract_error_message(error_payload: Any) -> str:
        """error フィールドから人が読めるメッセージを取り出す"""
        if isinstance(error_payload, dict):
            parts = [str(error_payload[key]) for key in ("status", "message") if error_payload.get(key)]
            return " ".join(parts) if parts else str(error_payload)
        return str(error_payload)

    def _type_from_status(self, status_code: int) -> Optional[ErrorType]:
        if status_code in (401, 403):
            return ErrorType.AUTHENTICATION_ERROR
        if status_code == 404:
            return ErrorType.MODEL_NOT_FOUND
        if status_code in (408, 504):
            return ErrorType.TIMEOUT_ERROR
        if status_code == 429:
            return ErrorType.QUOTA_EXCEEDED
        if status_code >= 500:
            return ErrorType.SERVER_ERROR
        return None

    def _match_patterns(self, text: str) -> Optional[ErrorType]:
        if not text:
            return None
        for error_type, patterns in self.ERROR_PATTERNS.items():
            for pattern in patterns:
                if re.search(pattern, text, re.IGNORECASE):
                    return error_type
        return None

    def _create_result(self,
                       error_kind: ErrorKind,
                       error_type: ErrorType,
                       technical_details: Optional[Dict[str, Any]] = None) -> ErrorAnalysisResult:
        message, action = self.MESSAGES.get(error_type, self.MESSAGES[ErrorType.UNKNOWN_ERROR])
        logger.debug("エラー分類: %s / %s", error_kind.value, error_type.value)
        return ErrorAnalysisResult(
            error_kind=error_kind,
            error_type=error_type,
            message=message,
            suggested_action=action,
            technical_details=technical_details,
        )
