"""
プロバイダーファクトリーモジュール

設定に基づいてLLMプロバイダーのインスタンスを作成する。
"""

import logging

from .api_providers import UnknownProviderError, get_available_providers, lookup_provider
from .base_provider import BaseProvider
from .config_manager import Configuration

logger = logging.getLogger(__name__)


class ProviderFactory:
    """プロバイダーファクトリークラス"""

    def create_provider(self, config: Configuration) -> BaseProvider:
        """
        設定に基づいてプロバイダーを作成する

        Args:
            config: 解決済み設定

        Returns:
            作成されたプロバイダーインスタンス

        Raises:
            ValueError: プロバイダーが見つからない、または設定が不足している場合
        """
        provider_name = config.provider
        try:
            provider_class = lookup_provider(provider_name)
        except UnknownProviderError as e:
            hint = f"\n候補: {e.suggestion}" if e.suggestion else ""
            raise ValueError(
                f"プロバイダー '{e.name}' が見つかりません。\n"
                f"利用可能なプロバイダー: {', '.join(e.available)}{hint}"
            ) from None

        provider = provider_class()
        if not provider.validate_config(config):
            raise ValueError(f"プロバイダー '{provider_name}' の設定が不足しています")

        logger.debug("プロバイダーを作成しました: %s (model=%s)", provider_name, config.model)
        return provider

    def list_available_providers(self) -> list[str]:
        """
        利用可能な全プロバイダーを取得する

        Returns:
            プロバイダー名のリスト
        """
        return get_available_providers()
