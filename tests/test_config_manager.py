"""
ConfigManagerのユニットテスト

環境変数からの設定解決、.env とYAML設定ファイルの読み込みをテスト。
"""

import os
import logging
import dataclasses
from unittest.mock import patch

import pytest

from ai_commit_hooks.api_providers import API_PROVIDERS
from ai_commit_hooks.api_providers.gemini_provider import GeminiProvider
from ai_commit_hooks.api_providers.ollama_provider import OllamaProvider
from ai_commit_hooks.config_manager import (
    ConfigManager,
    ConfigurationError,
    PipelineMode,
    resolve_configuration,
    resolve_log_path,
)
from conftest import TEST_API_KEY


class TestResolveConfiguration:
    """resolve_configuration のテストクラス"""

    def setup_method(self):
        """各テストメソッドの前に実行"""
        self.env = {'GEMINI_API_KEY': TEST_API_KEY}

    def test_gemini_defaults(self):
        """Geminiのデフォルト設定テスト"""
        config = resolve_configuration(self.env)

        assert config.provider == "gemini"
        assert config.model == 'gemini-2.0-flash'
        assert config.base_url == 'https://generativelanguage.googleapis.com/v1beta/models/'
        assert config.timeout_seconds == 15
        assert config.max_diff_length == 8000
        assert config.max_output_tokens == 300
        assert config.temperature == 0.2
        assert config.log_path == 'ia-commits.log'
        assert config.api_key == TEST_API_KEY
        assert config.mode is PipelineMode.GENERATE
        assert config.verify_fail_closed is True

    @pytest.mark.parametrize("api_key", [None, "", "   "])
    def test_gemini_requires_api_key(self, api_key):
        """APIキー不足時のエラーテスト"""
        env = {} if api_key is None else {'GEMINI_API_KEY': api_key}

        with pytest.raises(ConfigurationError, match="GEMINI_API_KEY"):
            resolve_configuration(env)

    def test_gemini_base_url_gets_trailing_slash(self):
        """API_BASE_URL の末尾スラッシュ補完テスト"""
        env = dict(self.env, API_BASE_URL='https://proxy.example.com/v1beta/models')

        config = resolve_configuration(env)

        assert config.base_url == 'https://proxy.example.com/v1beta/models/'

    def test_ollama_defaults_without_api_key(self):
        """Ollamaの設定はAPIキー不要"""
        config = resolve_configuration({'AI_PROVIDER': 'ollama'})

        assert config.provider == "ollama"
        assert config.model == 'phi4'
        assert config.base_url == 'http://localhost:11434'
        assert config.api_key is None

    def test_ollama_custom_values(self):
        """Ollamaのカスタム設定テスト"""
        env = {'AI_PROVIDER': 'OLLAMA', 'OLLAMA_MODEL': 'llama3', 'OLLAMA_URL': 'http://gpu-box:11434/'}

        config = resolve_configuration(env)

        assert config.model == 'llama3'
        assert config.base_url == 'http://gpu-box:11434'

    def test_unknown_provider_suggests_close_match(self):
        """不明なプロバイダー名のエラーテスト"""
        with pytest.raises(ConfigurationError, match="候補: gemini"):
            resolve_configuration({'AI_PROVIDER': 'gemni', 'GEMINI_API_KEY': TEST_API_KEY})

    def test_unknown_provider_lists_registered_names(self):
        """エラーには登録済みのプロバイダー名を列挙する"""
        with pytest.raises(ConfigurationError, match=r"不明な AI_PROVIDER: openai \(利用可能: gemini, ollama\)"):
            resolve_configuration({'AI_PROVIDER': 'openai'})

    def test_registered_provider_is_accepted(self):
        """レジストリに登録したプロバイダー名はそのまま使える"""
        env = {'AI_PROVIDER': ' Local-Ollama ', 'OLLAMA_MODEL': 'llama3'}

        with patch.dict(API_PROVIDERS, {'local-ollama': OllamaProvider}):
            config = resolve_configuration(env)

        assert config.provider == "local-ollama"
        assert config.model == 'llama3'
        assert config.base_url == OllamaProvider.default_base_url
        assert config.api_key is None

    def test_provider_defaults_come_from_provider_class(self):
        """モデルとURLの既定値はプロバイダークラスの値"""
        with patch.object(GeminiProvider, 'default_model', 'gemini-test-model'):
            config = resolve_configuration(self.env)

        assert config.model == 'gemini-test-model'

    @pytest.mark.parametrize("api_key,message", [
        ('abc123', "APIキーが短すぎます"),
        ('sk-not-a-google-key-1234567890', "形式に一致しません"),
    ])
    def test_suspicious_api_key_logs_warning(self, caplog, api_key, message):
        """形式が疑わしいAPIキーは警告を記録して続行する"""
        with caplog.at_level(logging.WARNING, logger="ai_commit_hooks"):
            config = resolve_configuration({'GEMINI_API_KEY': api_key})

        assert config.api_key == api_key
        assert message in caplog.text
        assert api_key not in caplog.text

    def test_valid_api_key_logs_no_warning(self, caplog):
        """正しい形式のAPIキーでは警告しない"""
        with caplog.at_level(logging.WARNING, logger="ai_commit_hooks"):
            resolve_configuration(self.env)

        assert "APIキー警告" not in caplog.text

    @pytest.mark.parametrize("name,value,attribute,expected", [
        ('API_TIMEOUT_SECONDS', 'abc', 'timeout_seconds', 15),
        ('API_TIMEOUT_SECONDS', '0', 'timeout_seconds', 15),
        ('API_TIMEOUT_SECONDS', '45', 'timeout_seconds', 45),
        ('MAX_DIFF_LENGTH', '-5', 'max_diff_length', 8000),
        ('MAX_DIFF_LENGTH', '2000', 'max_diff_length', 2000),
        ('MAX_OUTPUT_TOKENS', '1.5', 'max_output_tokens', 300),
        ('TEMPERATURE', '1.5', 'temperature', 0.2),
        ('TEMPERATURE', 'warm', 'temperature', 0.2),
        ('TEMPERATURE', '0.7', 'temperature', 0.7),
    ])
    def test_numeric_values(self, name, value, attribute, expected):
        """数値設定の解析と不正値のフォールバックテスト"""
        config = resolve_configuration(dict(self.env, **{name: value}))

        assert getattr(config, attribute) == expected

    def test_invalid_numeric_value_logs_warning(self, caplog):
        """不正な数値は警告を記録する"""
        with caplog.at_level(logging.WARNING, logger="ai_commit_hooks.config_manager"):
            resolve_configuration(dict(self.env, API_TIMEOUT_SECONDS='soon'))

        assert "API_TIMEOUT_SECONDS" in caplog.text

    def test_verify_mode_uses_verify_temperature(self):
        """検証モードは TEMPERATURE_VERIFY を使う"""
        env = dict(self.env, TEMPERATURE='0.9')

        assert resolve_configuration(env, PipelineMode.VERIFY).temperature == 0.1
        env['TEMPERATURE_VERIFY'] = '0.3'
        assert resolve_configuration(env, 'verify').temperature == 0.3

    @pytest.mark.parametrize("value,expected", [
        ('open', False),
        ('OPEN', False),
        ('closed', True),
        ('sometimes', True),
    ])
    def test_verify_fail_mode(self, value, expected):
        """VERIFY_FAIL_MODE の解析テスト"""
        config = resolve_configuration(dict(self.env, VERIFY_FAIL_MODE=value), PipelineMode.VERIFY)

        assert config.verify_fail_closed is expected

    def test_configuration_is_frozen(self):
        """設定は実行中に変更できない"""
        config = resolve_configuration(self.env)

        with pytest.raises(dataclasses.FrozenInstanceError):
            config.model = 'other-model'

    def test_api_key_hidden(self):
        """repr と describe にAPIキーが含まれない"""
        config = resolve_configuration(self.env)

        assert TEST_API_KEY not in repr(config)
        assert config.describe()['api_key'] == 'AIzaS...'
        assert TEST_API_KEY not in str(config.describe())

    def test_resolve_log_path(self):
        """ログファイルパスの解決テスト"""
        assert resolve_log_path({}) == 'ia-commits.log'
        assert resolve_log_path({'LOG_FILE': '  '}) == 'ia-commits.log'
        assert resolve_log_path({'LOG_FILE': '/tmp/hooks.log'}) == '/tmp/hooks.log'


class TestConfigManager:
    """ConfigManager のテストクラス"""

    def setup_method(self):
        """各テストメソッドの前に実行"""
        self.config_manager = ConfigManager()

    def test_precedence_yaml_dotenv_environment(self, tmp_path):
        """YAML < .env < 環境変数 の優先順位テスト"""
        yaml_file = tmp_path / 'hooks.yml'
        yaml_file.write_text("AI_PROVIDER: ollama\nOLLAMA_MODEL: llama3\nOLLAMA_URL: http://yaml:11434\n")
        dotenv_file = tmp_path / '.env'
        dotenv_file.write_text("OLLAMA_MODEL=mistral\nLOG_FILE=dotenv.log\n")

        env = self.config_manager.load_environment(
            str(yaml_file), str(dotenv_file), environ={'OLLAMA_MODEL': 'phi3'})

        assert env['AI_PROVIDER'] == 'ollama'
        assert env['OLLAMA_URL'] == 'http://yaml:11434'
        assert env['LOG_FILE'] == 'dotenv.log'
        assert env['OLLAMA_MODEL'] == 'phi3'

        env = self.config_manager.load_environment(str(yaml_file), str(dotenv_file), environ={})
        assert env['OLLAMA_MODEL'] == 'mistral'

    def test_default_config_file_in_working_directory(self, isolated_cwd):
        """カレントの .ai-commits.yml を自動で読み込む"""
        (isolated_cwd / '.ai-commits.yml').write_text("AI_PROVIDER: ollama\nAPI_TIMEOUT_SECONDS: 30\n")

        env = self.config_manager.load_environment(environ={})
        config = self.config_manager.resolve(env, PipelineMode.GENERATE)

        assert env['API_TIMEOUT_SECONDS'] == '30'
        assert config.provider == "ollama"
        assert config.timeout_seconds == 30

    def test_no_files(self, isolated_cwd):
        """設定ファイルが無い場合は環境変数のみ"""
        env = self.config_manager.load_environment(environ={'GEMINI_API_KEY': TEST_API_KEY})

        assert env == {'GEMINI_API_KEY': TEST_API_KEY}

    @pytest.mark.parametrize("environ,expected", [
        ({}, 'http://localhost:11434'),
        ({'OLLAMA_HOST': 'http://gpu-box:11434'}, 'http://gpu-box:11434'),
    ])
    def test_environment_variable_expansion(self, tmp_path, environ, expected):
        """${VAR:default} の展開テスト"""
        yaml_file = tmp_path / 'hooks.yml'
        yaml_file.write_text('OLLAMA_URL: "${OLLAMA_HOST:http://localhost:11434}"\n')

        env = self.config_manager.load_environment(str(yaml_file), None, environ=environ)

        assert env['OLLAMA_URL'] == expected

    def test_unresolved_reference_is_kept(self, tmp_path):
        """デフォルト無しの未定義変数はそのまま残す"""
        yaml_file = tmp_path / 'hooks.yml'
        yaml_file.write_text('API_MODEL: "${UNDEFINED_MODEL}"\n')

        env = self.config_manager.load_environment(str(yaml_file), None, environ={})

        assert env['API_MODEL'] == '${UNDEFINED_MODEL}'

    def test_missing_explicit_config_file(self, tmp_path):
        """明示した設定ファイルが存在しない場合のエラーテスト"""
        with pytest.raises(ConfigurationError, match="設定ファイルが見つかりません"):
            self.config_manager.load_environment(str(tmp_path / 'missing.yml'), None, environ={})

    def test_malformed_yaml(self, tmp_path):
        """YAML構文エラーのテスト"""
        yaml_file = tmp_path / 'broken.yml'
        yaml_file.write_text("AI_PROVIDER: [gemini\n")

        with pytest.raises(ConfigurationError, match="YAML解析エラー"):
            self.config_manager.load_environment(str(yaml_file), None, environ={})

    def test_yaml_root_must_be_mapping(self, tmp_path):
        """ルートが辞書でないYAMLのエラーテスト"""
        yaml_file = tmp_path / 'list.yml'
        yaml_file.write_text("- gemini\n- ollama\n")

        with pytest.raises(ConfigurationError, match="辞書"):
            self.config_manager.load_environment(str(yaml_file), None, environ={})

    def test_permission_warning_for_api_key_in_yaml(self, tmp_path, caplog):
        """APIキーを含む設定ファイルの権限警告テスト"""
        yaml_file = tmp_path / 'hooks.yml'
        yaml_file.write_text(f"GEMINI_API_KEY: {TEST_API_KEY}\n")
        os.chmod(yaml_file, 0o644)

        with caplog.at_level(logging.WARNING, logger="ai_commit_hooks.config_manager"):
            self.config_manager.load_environment(str(yaml_file), None, environ={})

        assert "設定ファイル権限警告" in caplog.text
        assert "chmod 600" in caplog.text

    def test_str_shows_config_path(self, tmp_path):
        """文字列表現テスト"""
        yaml_file = tmp_path / 'hooks.yml'
        yaml_file.write_text("AI_PROVIDER: gemini\n")

        self.config_manager.load_environment(str(yaml_file), None, environ={})

        assert str(yaml_file) in str(self.config_manager)
