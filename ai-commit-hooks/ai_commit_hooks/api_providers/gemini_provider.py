"""
Google Gemini API プロバイダー

REST の generateContent エンドポイントに1回だけリクエストを送る。
生成時は maxOutputTokens、検証時は JSON 形式での応答 (responseMimeType) を指定する。
"""

import logging
from typing import Any, Dict, Mapping, Tuple

import requests

from ..base_provider import BaseProvider, ResponseError
from ..config_manager import (
    Configuration,
    ConfigurationError,
    PipelineMode,
    ProviderSettings,
    env_value,
)
from ..security_validator import SecurityValidator

logger = logging.getLogger(__name__)


class GeminiProvider(BaseProvider):
    """
    Google Gemini APIプロバイダー

    POST {base_url}{model}:generateContent?key={api_key}
    生成テキストは candidates[0].content.parts[0].text に含まれる。
    """

    name = "gemini"
    default_model = "gemini-2.0-flash"
    default_base_url = "https://generativelanguage.googleapis.com/v1beta/models/"

    @classmethod
    def resolve_settings(cls, env: Mapping[str, str]) -> ProviderSettings:
        """GEMINI_API_KEY（必須）、API_MODEL、API_BASE_URL を解決する"""
        api_key = env_value(env, 'GEMINI_API_KEY')
        if not api_key:
            raise ConfigurationError("GEMINI_API_KEY が設定されていません")

        result = SecurityValidator().validate_api_key(cls.name, api_key)
        if result.level != "safe":
            logger.warning("APIキー警告 (%s): %s", cls.name, result.message)

        return ProviderSettings(
            model=env_value(env, 'API_MODEL') or cls.default_model,
            base_url=(env_value(env, 'API_BASE_URL') or cls.default_base_url).rstrip('/') + '/',
            api_key=api_key,
        )

    def build_request(self, prompt: str, config: Configuration) -> Tuple[str, Dict[str, Any]]:
        generation_config: Dict[str, Any] = {'temperature': config.temperature}
        if config.mode is PipelineMode.VERIFY:
            generation_config['responseMimeType'] = 'application/json'
        else:
            generation_config['maxOutputTokens'] = config.max_output_tokens

        payload = {
            'contents': [{'parts': [{'text': prompt}]}],
            'generationConfig': generation_config,
        }
        url = f"{config.base_url}{config.model}:generateContent?key={config.api_key}"
        return url, payload

    def extract_text(self, body: Dict[str, Any]) -> str:
        try:
            text = body['candidates'][0]['content']['parts'][0]['text']
        except (KeyError, IndexError, TypeError) as e:
            finish_reason = self._finish_reason(body)
            detail = f" (finishReason={finish_reason})" if finish_reason else ""
            raise ResponseError(f"Geminiから無効なレスポンス形式{detail}") from e

        if not isinstance(text, str) or not text.strip():
            raise ResponseError("Geminiから空のレスポンス")
        return text

    def test_connection(self, config: Configuration) -> bool:
        """
        モデル情報の取得で接続とAPIキーを確認

        Returns:
            接続が成功した場合True
        """
        url = f"{config.base_url}{config.model}?key={config.api_key}"
        try:
            response = requests.get(url, timeout=config.timeout_seconds)
        except requests.exceptions.RequestException as e:
            analysis = self.error_classifier.classify_exception(e)
            logger.error("Gemini API接続テストエラー: %s", analysis.describe())
            return False

        if 200 <= response.status_code < 300:
            logger.info("Gemini API接続テスト成功")
            return True

        analysis = self.error_classifier.classify_http_status(response.status_code)
        logger.warning("Gemini API接続テスト失敗 (status=%s): %s", response.status_code, analysis.describe())
        return False

    def get_required_config_fields(self) -> list[str]:
        return ['api_key', 'model', 'base_url']

    @staticmethod
    def _finish_reason(body: Dict[str, Any]) -> str:
        try:
            return str(body['candidates'][0].get('finishReason') or '')
        except (KeyError, IndexError, TypeError, AttributeError):
            return ''
