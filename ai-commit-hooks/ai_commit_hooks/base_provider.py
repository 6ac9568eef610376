"""
ベースプロバイダーインターフェース

全てのLLMプロバイダーが実装すべき共通インターフェースを定義。
HTTPリクエストは1回のみ送信し、失敗はすべて ProviderResponse に変換して返す。
"""

import time
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Dict, Mapping, Optional, Tuple

import requests

from .config_manager import Configuration, ProviderSettings
from .error_classifier import ErrorAnalysisResult, ProviderErrorClassifier
from .outcome import ErrorKind
from .security_validator import SecurityValidator

logger = logging.getLogger(__name__)
logger.addHandler(logging.NullHandler())

RAW_BODY_LOG_LIMIT = 500


@dataclass
class ProviderResponse:
    """プロバイダー呼び出しの結果"""
    raw_body: str = ""
    generated_text: Optional[str] = None
    error_kind: Optional[ErrorKind] = None
    error_message: Optional[str] = None
    status_code: Optional[int] = None

    @property
    def ok(self) -> bool:
        return self.generated_text is not None

    @classmethod
    def failure(cls,
                analysis: ErrorAnalysisResult,
                error_message: str,
                raw_body: str = "",
                status_code: Optional[int] = None) -> "ProviderResponse":
        return cls(
            raw_body=raw_body,
            generated_text=None,
            error_kind=analysis.error_kind,
            error_message=error_message,
            status_code=status_code,
        )


class ProviderError(Exception):
    """プロバイダー固有のエラー"""
    pass


class ResponseError(ProviderError):
    """レスポンスエラー（期待した位置にテキストが無い）"""
    pass


class BaseProvider(ABC):
    """全LLMプロバイダーの基底クラス"""

    name: str = ""
    default_model: str = ""
    default_base_url: str = ""

    def __init__(self,
                 error_classifier: Optional[ProviderErrorClassifier] = None,
                 security_validator: Optional[SecurityValidator] = None):
        self.error_classifier = error_classifier or ProviderErrorClassifier()
        self.security_validator = security_validator or SecurityValidator()

    @classmethod
    @abstractmethod
    def resolve_settings(cls, env: Mapping[str, str]) -> ProviderSettings:
        """
        環境変数からモデル・接続先・認証情報を解決

        Args:
            env: 環境変数名→値のマッピング

        Returns:
            ProviderSettings: 未設定の項目は default_model / default_base_url で補う

        Raises:
            ConfigurationError: 必須の認証情報が無い場合
        """
        pass

    @abstractmethod
    def build_request(self, prompt: str, config: Configuration) -> Tuple[str, Dict[str, Any]]:
        """
        送信先URLとJSONペイロードを構築

        Args:
            prompt: 送信するプロンプト
            config: 解決済み設定

        Returns:
            (URL, ペイロード)
        """
        pass

    @abstractmethod
    def extract_text(self, body: Dict[str, Any]) -> str:
        """
        成功レスポンスから生成テキストを取り出す

        Raises:
            ResponseError: 期待した位置にテキストが無い場合
        """
        pass

    @abstractmethod
    def test_connection(self, config: Configuration) -> bool:
        """
        プロバイダーへの接続をテスト

        Returns:
            接続が成功した場合True、失敗した場合False
        """
        pass

    @abstractmethod
    def get_required_config_fields(self) -> list[str]:
        """
        このプロバイダーに必要な設定項目のリストを返す

        Returns:
            必須設定項目のリスト
        """
        pass

    def validate_config(self, config: Configuration) -> bool:
        """
        設定情報を検証

        Returns:
            設定が有効な場合True、無効な場合False
        """
        for field_name in self.get_required_config_fields():
            if getattr(config, field_name, None) in ("", None):
                logger.error("必須設定項目が不足: %s", field_name)
                return False
        return True

    def generate(self, prompt: str, config: Configuration) -> ProviderResponse:
        """
        プロンプトを1回だけ送信して結果を返す（例外は送出しない）

        Args:
            prompt: 送信するプロンプト
            config: 解決済み設定

        Returns:
            ProviderResponse: 成功時は generated_text、失敗時は error_kind が設定される
        """
        url, payload = self.build_request(prompt, config)
        secrets = (config.api_key,)
        logger.debug("%s にリクエスト送信: model=%s, prompt_length=%d",
                     self.name, config.model, len(prompt))

        start_time = time.time()
        try:
            response = requests.post(
                url,
                json=payload,
                headers={'Content-Type': 'application/json'},
                timeout=config.timeout_seconds,
            )
        except requests.exceptions.RequestException as e:
            analysis = self.error_classifier.classify_exception(e)
            message = self.security_validator.redact(str(e), secrets)
            logger.error("%s API呼び出しに失敗: %s [%s]", self.name, analysis.describe(), message)
            return ProviderResponse.failure(analysis, message)

        elapsed_time = time.time() - start_time
        status_code = response.status_code
        raw_body = response.text or ""
        logger.debug("%s API応答: status=%s, %.2f秒", self.name, status_code, elapsed_time)

        try:
            body = response.json()
        except ValueError:
            body = None

        if isinstance(body, dict) and body.get('error'):
            analysis = self.error_classifier.classify_provider_error(body['error'], status_code)
            message = self.security_validator.redact(
                self.error_classifier.extract_error_message(body['error']), secrets)
            logger.error("%s がエラーを返しました (status=%s): %s [%s]",
                         self.name, status_code, analysis.describe(), message)
            return ProviderResponse.failure(analysis, message, raw_body, status_code)

        if not 200 <= status_code < 300:
            snippet = self.security_validator.redact(raw_body[:RAW_BODY_LOG_LIMIT], secrets)
            analysis = self.error_classifier.classify_http_status(status_code, snippet)
            message = f"HTTP {status_code}"
            logger.error("%s API呼び出しに失敗 (status=%s): %s", self.name, status_code, analysis.describe())
            return ProviderResponse.failure(analysis, message, raw_body, status_code)

        if not isinstance(body, dict):
            analysis = self.error_classifier.classify_malformed_response("JSONオブジェクトではありません")
            logger.error("%s のレスポンスを解析できません: %s 本文: %s", self.name, analysis.describe(),
                         self.security_validator.redact(raw_body[:RAW_BODY_LOG_LIMIT], secrets))
            return ProviderResponse.failure(analysis, "invalid JSON body", raw_body, status_code)

        try:
            text = self.extract_text(body)
        except ResponseError as e:
            analysis = self.error_classifier.classify_malformed_response(str(e))
            logger.error("%s から生成テキストを取得できません: %s 本文: %s", self.name, e,
                         self.security_validator.redact(raw_body[:RAW_BODY_LOG_LIMIT], secrets))
            return ProviderResponse.failure(analysis, str(e), raw_body, status_code)

        logger.info("%s API呼び出し完了: %.2f秒", self.name, elapsed_time)
        return ProviderResponse(raw_body=raw_body, generated_text=text, status_code=status_code)

