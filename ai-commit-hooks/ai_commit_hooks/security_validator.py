"""
セキュリティ・バリデーション機能

APIキーの形式確認、ログ出力前の機密情報マスキング、設定ファイル権限の確認を提供。
APIキーはURLのクエリパラメータに含まれるため、ログに残る文字列は必ずここを通す。
"""

import re
import stat
import hashlib
import logging
from pathlib import Path
from typing import Dict, Any, Iterable, List, Optional, ClassVar
from dataclasses import dataclass, field

logger = logging.getLogger(__name__)

REDACTED = "[REDACTED]"


@dataclass
class SecurityCheckResult:
    """セキュリティチェック結果"""
    is_valid: bool
    level: str  # "safe", "warning", "danger"
    message: str
    recommendations: List[str] = field(default_factory=list)


class SecurityValidator:
    """
    セキュリティバリデータークラス

    APIキー検証、機密情報のマスキング、ファイル権限チェックを提供する。
    """

    API_KEY_PATTERNS: ClassVar[Dict[str, Dict[str, Any]]] = {
        'gemini': {
            'pattern': r'^AIza[A-Za-z0-9\-_]{30,40}$',
            'description': 'Google API key (AIza...)'
        },
    }

    # URLのクエリに埋め込まれたキー (?key=... / &key=...)
    KEY_QUERY_PATTERN: ClassVar[re.Pattern] = re.compile(r'([?&]key=)[^&\s\'"]+', re.IGNORECASE)

    def validate_api_key(self, provider: str, api_key: Optional[str]) -> SecurityCheckResult:
        """
        APIキーを安全に検証（キー内容を露出しない）

        Args:
            provider: プロバイダー名
            api_key: 検証するAPIキー

        Returns:
            セキュリティチェック結果
        """
        if not api_key or not api_key.strip():
            return SecurityCheckResult(
                is_valid=False,
                level="danger",
                message="APIキーが設定されていません",
                recommendations=[f"{provider.upper()}_API_KEY 環境変数を設定してください"]
            )

        api_key = api_key.strip()
        if len(api_key) < 10:
            return SecurityCheckResult(
                is_valid=False,
                level="danger",
                message="APIキーが短すぎます",
                recommendations=["正しいAPIキーが設定されているか確認してください"]
            )

        pattern_info = self.API_KEY_PATTERNS.get(provider.lower())
        if pattern_info and not re.match(pattern_info['pattern'], api_key):
            # 形式が想定外でも利用は継続する（警告のみ）
            return SecurityCheckResult(
                is_valid=True,
                level="warning",
                message=f"{pattern_info['description']}の形式に一致しません",
                recommendations=["APIキーをコピー&ペーストする際の欠落や余分な文字を確認してください"]
            )

        key_hash = hashlib.sha256(api_key.encode()).hexdigest()[:8]
        logger.debug("APIキー検証成功: provider=%s, hash=%s", provider, key_hash)

        return SecurityCheckResult(
            is_valid=True,
            level="safe",
            message="APIキーの形式は有効です"
        )

    def redact(self, text: str, secrets: Iterable[Optional[str]] = ()) -> str:
        """
        文字列から機密情報を除去する

        Args:
            text: 対象文字列（例外メッセージ、URL、レスポンス本文など）
            secrets: 明示的に伏せる値（APIキーなど）

        Returns:
            マスキング済み文字列
        """
        if not text:
            return text

        redacted = text
        for secret in secrets:
            if secret:
                redacted = redacted.replace(secret, REDACTED)

        return self.KEY_QUERY_PATTERN.sub(lambda m: m.group(1) + REDACTED, redacted)

    @staticmethod
    def mask_api_key(api_key: Optional[str], visible: int = 5) -> str:
        """表示用にAPIキーの先頭のみを残す"""
        if not api_key:
            return "NULL"
        return api_key[:visible] + "..."

    def check_file_permissions(self, file_path: str) -> SecurityCheckResult:
        """
        機密情報を含むファイルの権限をチェック

        Args:
            file_path: チェック対象ファイル

        Returns:
            セキュリティチェック結果
        """
        path = Path(file_path)
        try:
            mode = path.stat().st_mode
        except OSError as e:
            return SecurityCheckResult(
                is_valid=False,
                level="warning",
                message=f"ファイル権限を確認できません: {e}"
            )

        if mode & (stat.S_IRWXG | stat.S_IRWXO):
            return SecurityCheckResult(
                is_valid=True,
                level="warning",
                message=f"ファイルが他のユーザーからアクセス可能です: {file_path}",
                recommendations=[f"chmod 600 {file_path}"]
            )

        return SecurityCheckResult(
            is_valid=True,
            level="safe",
            message="ファイル権限は適切です"
        )
