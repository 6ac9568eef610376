"""
Ollama プロバイダー

ローカルで動作するOllamaサーバーの /api/generate にストリーミング無しで1回だけ送信する。
"""

import logging
from typing import Any, Dict, Mapping, Tuple

import requests

from ..base_provider import BaseProvider, ResponseError
from ..config_manager import Configuration, PipelineMode, ProviderSettings, env_value

logger = logging.getLogger(__name__)


class OllamaProvider(BaseProvider):
    """Ollama (セルフホスト推論サーバー) プロバイダー。要: ollama serve"""

    name = "ollama"
    default_model = "phi4"
    default_base_url = "http://localhost:11434"

    @classmethod
    def resolve_settings(cls, env: Mapping[str, str]) -> ProviderSettings:
        """OLLAMA_MODEL、OLLAMA_URL を解決する（認証情報は不要）"""
        return ProviderSettings(
            model=env_value(env, 'OLLAMA_MODEL') or cls.default_model,
            base_url=(env_value(env, 'OLLAMA_URL') or cls.default_base_url).rstrip('/'),
        )

    def build_request(self, prompt: str, config: Configuration) -> Tuple[str, Dict[str, Any]]:
        options: Dict[str, Any] = {'temperature': config.temperature}
        payload: Dict[str, Any] = {
            'model': config.model,
            'prompt': prompt,
            'stream': False,
            'options': options,
        }
        if config.mode is PipelineMode.VERIFY:
            payload['format'] = 'json'
        else:
            options['num_predict'] = config.max_output_tokens

        return f"{config.base_url}/api/generate", payload

    def extract_text(self, body: Dict[str, Any]) -> str:
        text = body.get('response')
        if not isinstance(text, str):
            raise ResponseError("Ollamaのレスポンスに response フィールドがありません")
        if not text.strip():
            raise ResponseError("Ollamaから空のレスポンス")
        return text

    def test_connection(self, config: Configuration) -> bool:
        """
        /api/tags でサーバーの稼働とモデルの有無を確認

        Returns:
            サーバーに接続できた場合True
        """
        try:
            response = requests.get(f"{config.base_url}/api/tags", timeout=config.timeout_seconds)
        except requests.exceptions.RequestException as e:
            analysis = self.error_classifier.classify_exception(e)
            logger.error("Ollama接続テストエラー: %s (ollama serve が起動しているか確認してください)",
                         analysis.describe())
            return False

        if not 200 <= response.status_code < 300:
            logger.warning("Ollama接続テスト失敗 (status=%s)", response.status_code)
            return False

        try:
            models = [m.get('name') for m in (response.json().get('models') or [])]
        except (ValueError, AttributeError, TypeError):
            models = []

        if not any(config.model in m or m in config.model for m in models if isinstance(m, str) and m):
            logger.warning("モデル '%s' がOllamaに見つかりません。実行: ollama pull %s", config.model, config.model)
        else:
            logger.info("Ollama接続テスト成功")
        return True

    def get_required_config_fields(self) -> list[str]:
        return ['model', 'base_url']
