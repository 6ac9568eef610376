"""
設定管理モジュール

環境変数（.env、任意のYAML設定ファイルを含む）から、1回のフック実行で使用する
不変の Configuration を構築する。
パイプラインの各コンポーネントは os.environ を直接参照せず、ここで解決された値のみを使う。
"""

import os
import re
import logging
from enum import Enum
from pathlib import Path
from dataclasses import dataclass, field
from typing import Any, Dict, Mapping, Optional

import yaml
from dotenv import dotenv_values

from .security_validator import SecurityValidator

logger = logging.getLogger(__name__)


class PipelineMode(str, Enum):
    """パイプラインの種類"""
    GENERATE = "generate"
    VERIFY = "verify"


DEFAULT_PROVIDER = "gemini"
DEFAULT_TIMEOUT_SECONDS = 15
DEFAULT_MAX_DIFF_LENGTH = 8000
DEFAULT_MAX_OUTPUT_TOKENS = 300
DEFAULT_TEMPERATURE = 0.2
DEFAULT_TEMPERATURE_VERIFY = 0.1
DEFAULT_LOG_FILE = "ia-commits.log"
DEFAULT_CONFIG_FILENAME = ".ai-commits.yml"
DEFAULT_DOTENV_FILENAME = ".env"

FAIL_MODES = ("closed", "open")


class ConfigurationError(Exception):
    """設定関連のエラー（必須の認証情報が無い、プロバイダー名が不正など）"""
    pass


@dataclass(frozen=True)
class ProviderSettings:
    """プロバイダー固有の解決済み設定"""
    model: str
    base_url: str
    api_key: Optional[str] = field(default=None, repr=False)


@dataclass(frozen=True)
class Configuration:
    """1回の実行で使用する解決済み設定"""
    provider: str
    model: str
    base_url: str
    timeout_seconds: int = DEFAULT_TIMEOUT_SECONDS
    max_diff_length: int = DEFAULT_MAX_DIFF_LENGTH
    max_output_tokens: int = DEFAULT_MAX_OUTPUT_TOKENS
    temperature: float = DEFAULT_TEMPERATURE
    log_path: str = DEFAULT_LOG_FILE
    api_key: Optional[str] = field(default=None, repr=False)
    mode: PipelineMode = PipelineMode.GENERATE
    verify_fail_closed: bool = True

    def describe(self) -> Dict[str, Any]:
        """表示用の辞書（APIキーはマスク）"""
        return {
            'provider': self.provider,
            'model': self.model,
            'base_url': self.base_url,
            'timeout_seconds': self.timeout_seconds,
            'max_diff_length': self.max_diff_length,
            'max_output_tokens': self.max_output_tokens,
            'temperature': self.temperature,
            'log_path': self.log_path,
            'api_key': SecurityValidator.mask_api_key(self.api_key),
            'mode': self.mode.value,
            'verify_fail_mode': 'closed' if self.verify_fail_closed else 'open',
        }


def env_value(env: Mapping[str, str], name: str) -> Optional[str]:
    """空文字を未設定として扱って値を取得"""
    value = env.get(name)
    if value is None:
        return None
    value = str(value).strip()
    return value or None


def _positive_int(env: Mapping[str, str], name: str, default: int) -> int:
    raw = env_value(env, name)
    if raw is None:
        return default
    try:
        value = int(raw)
    except ValueError:
        logger.warning("%s の値が整数ではありません: %r (デフォルト %d を使用)", name, raw, default)
        return default
    if value <= 0:
        logger.warning("%s は正の整数である必要があります: %d (デフォルト %d を使用)", name, value, default)
        return default
    return value


def _temperature(env: Mapping[str, str], name: str, default: float) -> float:
    raw = env_value(env, name)
    if raw is None:
        return default
    try:
        value = float(raw)
    except ValueError:
        logger.warning("%s の値が数値ではありません: %r (デフォルト %.1f を使用)", name, raw, default)
        return default
    if not 0.0 <= value <= 1.0:
        logger.warning("%s は 0〜1 の範囲である必要があります: %s (デフォルト %.1f を使用)", name, value, default)
        return default
    return value


def resolve_log_path(env: Mapping[str, str]) -> str:
    """ログファイルのパスのみを解決する（設定解決の失敗もログに残すため）"""
    return env_value(env, 'LOG_FILE') or DEFAULT_LOG_FILE


def resolve_configuration(env: Mapping[str, str],
                          mode: PipelineMode = PipelineMode.GENERATE) -> Configuration:
    """
    環境変数のマッピングから Configuration を構築する

    Args:
        env: 環境変数名→値のマッピング
        mode: 生成パイプラインか検証パイプラインか

    Returns:
        解決済みの設定

    Raises:
        ConfigurationError: 必須の認証情報が無い、またはプロバイダー名が不正な場合
    """
    from .api_providers import UnknownProviderError, lookup_provider, normalize_provider_name

    mode = PipelineMode(mode)
    provider = normalize_provider_name(env_value(env, 'AI_PROVIDER') or DEFAULT_PROVIDER)
    try:
        provider_class = lookup_provider(provider)
    except UnknownProviderError as e:
        raise ConfigurationError(f"不明な AI_PROVIDER: {e}") from None

    # 既定値と認証情報の検証はプロバイダークラスが持つ
    settings = provider_class.resolve_settings(env)

    if mode is PipelineMode.VERIFY:
        temperature = _temperature(env, 'TEMPERATURE_VERIFY', DEFAULT_TEMPERATURE_VERIFY)
    else:
        temperature = _temperature(env, 'TEMPERATURE', DEFAULT_TEMPERATURE)

    fail_mode = (env_value(env, 'VERIFY_FAIL_MODE') or 'closed').lower()
    if fail_mode not in FAIL_MODES:
        logger.warning("VERIFY_FAIL_MODE が不正です: %r (closed を使用)", fail_mode)
        fail_mode = 'closed'

    return Configuration(
        provider=provider,
        model=settings.model,
        base_url=settings.base_url,
        timeout_seconds=_positive_int(env, 'API_TIMEOUT_SECONDS', DEFAULT_TIMEOUT_SECONDS),
        max_diff_length=_positive_int(env, 'MAX_DIFF_LENGTH', DEFAULT_MAX_DIFF_LENGTH),
        max_output_tokens=_positive_int(env, 'MAX_OUTPUT_TOKENS', DEFAULT_MAX_OUTPUT_TOKENS),
        temperature=temperature,
        log_path=resolve_log_path(env),
        api_key=settings.api_key,
        mode=mode,
        verify_fail_closed=(fail_mode == 'closed'),
    )


class ConfigManager:
    """
    環境読み込みクラス

    YAML設定ファイル、.env、プロセス環境変数を優先度順にマージする。
    後から読み込んだものが優先される: YAML < .env < 環境変数
    """

    ENV_PATTERN = re.compile(r'\${([^}:]+)(?::([^}]*))?}')

    def __init__(self):
        self.security_validator = SecurityValidator()
        self._config_path: Optional[str] = None

    def load_environment(self,
                         config_path: Optional[str] = None,
                         dotenv_path: Optional[str] = DEFAULT_DOTENV_FILENAME,
                         environ: Optional[Mapping[str, str]] = None) -> Dict[str, str]:
        """
        設定値のマッピングを構築

        Args:
            config_path: YAML設定ファイルのパス（None の場合はカレントの .ai-commits.yml を探す）
            dotenv_path: .env ファイルのパス（None で読み込まない）
            environ: プロセス環境（None の場合は os.environ）

        Returns:
            変数名→値の辞書

        Raises:
            ConfigurationError: 明示された設定ファイルが存在しない、または解析できない場合
        """
        environ = os.environ if environ is None else environ
        values: Dict[str, str] = {}

        yaml_path = self._locate_config_file(config_path)
        if yaml_path is not None:
            values.update(self._load_yaml(yaml_path, environ))

        if dotenv_path and Path(dotenv_path).is_file():
            loaded = {k: v for k, v in dotenv_values(dotenv_path).items() if v is not None}
            logger.debug(".env から %d 件の値を読み込みました", len(loaded))
            values.update(loaded)

        values.update(environ)
        return values

    def _locate_config_file(self, config_path: Optional[str]) -> Optional[Path]:
        if config_path:
            path = Path(config_path)
            if not path.is_file():
                raise ConfigurationError(f"設定ファイルが見つかりません: {config_path}")
            return path

        default_path = Path(DEFAULT_CONFIG_FILENAME)
        return default_path if default_path.is_file() else None

    def _load_yaml(self, path: Path, environ: Mapping[str, str]) -> Dict[str, str]:
        """YAML設定ファイルを読み込み、${VAR:default} を展開する"""
        self._config_path = str(path)
        try:
            with open(path, 'r', encoding='utf-8') as f:
                raw_config = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise ConfigurationError(f"YAML解析エラー: {e}") from e
        except OSError as e:
            raise ConfigurationError(f"設定ファイル読み込みエラー: {e}") from e

        if raw_config is None:
            raw_config = {}
        elif not isinstance(raw_config, dict):
            raise ConfigurationError("設定ファイルのルートは辞書である必要があります")

        if raw_config.get('GEMINI_API_KEY'):
            permission_result = self.security_validator.check_file_permissions(str(path))
            if permission_result.level == "warning":
                logger.warning("設定ファイル権限警告: %s", permission_result.message)
                for rec in permission_result.recommendations:
                    logger.warning("推奨: %s", rec)

        values = {
            str(key): self._expand_environment_variables(str(value), environ)
            for key, value in raw_config.items()
            if value is not None
        }
        logger.debug("設定ファイルを読み込みました: %s", path)
        return values

    def _expand_environment_variables(self, value: str, environ: Mapping[str, str]) -> str:
        """${VAR} または ${VAR:default} を文字列中の任意位置で展開"""
        def repl(m: re.Match) -> str:
            key = m.group(1)
            default = m.group(2)
            return environ.get(key, default if default is not None else m.group(0))
        return self.ENV_PATTERN.sub(repl, value)

    def resolve(self, env: Mapping[str, str], mode: PipelineMode) -> Configuration:
        """読み込んだ環境から設定を解決"""
        return resolve_configuration(env, mode)

    def __str__(self) -> str:
        return f"ConfigManager(config_path={self._config_path})"
