"""
API型LLMプロバイダーモジュール

HTTP経由でLLMサービスにアクセスするプロバイダー群:
- Google Gemini API (generateContent)
- Ollama (ローカル推論サーバー /api/generate)

AI_PROVIDER に指定できる名前はこのレジストリに登録された名前のみ。
新しいプロバイダーは BaseProvider のサブクラスを登録するだけで追加できる。
"""

from typing import Type
import logging
from difflib import get_close_matches
from ..base_provider import BaseProvider

logger = logging.getLogger(__name__)

# プロバイダー登録レジストリ
API_PROVIDERS: dict[str, Type[BaseProvider]] = {}


class UnknownProviderError(LookupError):
    """登録されていないプロバイダー名"""

    def __init__(self, name: str, available: list[str]):
        self.name = name
        self.available = available
        suggest = get_close_matches(name, available, n=1, cutoff=0.6)
        self.suggestion = suggest[0] if suggest else None
        hint = f" 候補: {self.suggestion}" if self.suggestion else ""
        super().__init__(f"{name} (利用可能: {', '.join(available)}){hint}")


def normalize_provider_name(name: str) -> str:
    """プロバイダー名の正規化（前後の空白を除去し小文字化）"""
    return name.strip().lower()


def register_provider(name: str, provider_class: Type[BaseProvider]) -> None:
    """
    APIプロバイダーを登録

    Args:
        name: プロバイダー名
        provider_class: プロバイダークラス
    """
    norm = normalize_provider_name(name)
    if not norm:
        raise ValueError("provider name は空にできません")
    if not isinstance(provider_class, type) or not issubclass(provider_class, BaseProvider):
        raise TypeError("provider_class は BaseProvider のサブクラスである必要があります")
    if norm in API_PROVIDERS:
        logger.warning("API provider '%s' (正規化名: '%s') を上書き登録します", name, norm)
    API_PROVIDERS[norm] = provider_class


def get_available_providers() -> list[str]:
    """
    利用可能なAPIプロバイダー一覧を取得

    Returns:
        プロバイダー名のリスト
    """
    return sorted(API_PROVIDERS.keys())


def get_provider_class(name: str) -> Type[BaseProvider] | None:
    """名前でAPIプロバイダーのクラスを取得(見つからない場合はNone)。"""
    return API_PROVIDERS.get(normalize_provider_name(name))


def lookup_provider(name: str) -> Type[BaseProvider]:
    """
    名前でAPIプロバイダーのクラスを取得

    Raises:
        UnknownProviderError: 登録されていない名前の場合
    """
    provider_class = get_provider_class(name)
    if provider_class is None:
        raise UnknownProviderError(normalize_provider_name(name), get_available_providers())
    return provider_class


def _auto_register_providers():
    """同梱のプロバイダーを登録"""
    from .gemini_provider import GeminiProvider
    from .ollama_provider import OllamaProvider

    register_provider(GeminiProvider.name, GeminiProvider)
    register_provider(OllamaProvider.name, OllamaProvider)


_auto_register_providers()

__all__ = [
    "API_PROVIDERS",
    "UnknownProviderError",
    "get_available_providers",
    "get_provider_class",
    "lookup_provider",
    "normalize_provider_name",
    "register_provider",
]
