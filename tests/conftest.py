"""
pytest設定ファイルと共通フィクスチャ

テスト実行時の設定とテスト間で共有するフィクスチャを定義。
"""

import os
import sys
import json
import logging
from pathlib import Path
from unittest.mock import Mock

import pytest

sys.path.insert(0, os.path.join(os.path.dirname(__file__), '../ai-commit-hooks'))

from ai_commit_hooks.api_providers.gemini_provider import GeminiProvider  # noqa: E402
from ai_commit_hooks.api_providers.ollama_provider import OllamaProvider  # noqa: E402
from ai_commit_hooks.config_manager import Configuration, PipelineMode  # noqa: E402
from ai_commit_hooks.event_log import LOGGER_NAME  # noqa: E402

# テスト用のサンプルデータ
SAMPLE_GIT_DIFF = """diff --git a/test.py b/test.py
new file mode 100644
index 0000000..ed708ec
--- /dev/null
+++ b/test.py
@@ -0,0 +1,5 @@
+def hello_world():
+    print("Hello, World!")
+    return True
+
+# Test comment
"""

TEST_API_KEY = 'AIzaSyTestKey1234567890abcdefghijklmno'  # gitleaks:allow - test only

COMMENT_ONLY_MESSAGE = (
    b"\n"
    b"# Please enter the commit message for your changes. Lines starting\n"
    b"# with '#' will be ignored, and an empty message aborts the commit.\n"
    b"#\n"
    b"# On branch main\n"
)


def gemini_body(text):
    """Gemini generateContent の成功レスポンス本文"""
    return {
        'candidates': [{
            'content': {'parts': [{'text': text}], 'role': 'model'},
            'finishReason': 'STOP',
        }]
    }


def ollama_body(text, model='phi4'):
    """Ollama /api/generate の成功レスポンス本文"""
    return {'model': model, 'response': text, 'done': True}


@pytest.fixture
def sample_git_diff():
    """サンプルGit差分データ"""
    return SAMPLE_GIT_DIFF


@pytest.fixture
def gemini_config():
    """生成パイプライン用のGemini設定"""
    return Configuration(
        provider="gemini",
        model='gemini-2.0-flash',
        base_url=GeminiProvider.default_base_url,
        api_key=TEST_API_KEY,
    )


@pytest.fixture
def gemini_verify_config(gemini_config):
    """検証パイプライン用のGemini設定"""
    return Configuration(
        provider="gemini",
        model=gemini_config.model,
        base_url=gemini_config.base_url,
        temperature=0.1,
        api_key=TEST_API_KEY,
        mode=PipelineMode.VERIFY,
    )


@pytest.fixture
def ollama_config():
    """生成パイプライン用のOllama設定"""
    return Configuration(
        provider="ollama",
        model='phi4',
        base_url=OllamaProvider.default_base_url,
    )


@pytest.fixture
def make_response():
    """requests.Response のモックを作成する関数"""
    def _make(status_code=200, body=None, text=None):
        mock_response = Mock()
        mock_response.status_code = status_code
        if body is None:
            mock_response.json.side_effect = ValueError("Expecting value: line 1 column 1 (char 0)")
            mock_response.text = text or ""
        else:
            mock_response.json.return_value = body
            mock_response.text = text if text is not None else json.dumps(body)
        return mock_response
    return _make


@pytest.fixture
def commit_msg_file(tmp_path):
    """コメント行のみのコミットメッセージファイル"""
    path = tmp_path / 'COMMIT_EDITMSG'
    path.write_bytes(COMMENT_ONLY_MESSAGE)
    return path


@pytest.fixture
def isolated_cwd(tmp_path, monkeypatch):
    """.env や .ai-commits.yml を読み込まないよう一時ディレクトリで実行"""
    monkeypatch.chdir(tmp_path)
    for name in ('AI_PROVIDER', 'GEMINI_API_KEY', 'API_MODEL', 'API_BASE_URL', 'OLLAMA_MODEL',
                 'OLLAMA_URL', 'LOG_FILE', 'VERIFY_FAIL_MODE', 'MAX_DIFF_LENGTH'):
        monkeypatch.delenv(name, raising=False)
    return tmp_path


@pytest.fixture(autouse=True)
def reset_package_logger():
    """setup_logging が追加したハンドラーをテストごとに外す"""
    yield
    package_logger = logging.getLogger(LOGGER_NAME)
    for handler in list(package_logger.handlers):
        package_logger.removeHandler(handler)
        handler.close()
    package_logger.setLevel(logging.NOTSET)


@pytest.fixture(scope="session")
def test_project_root():
    """テストプロジェクトのルートディレクトリ"""
    return Path(__file__).parent.parent


# pytest設定
def pytest_configure(config):
    """pytest設定"""
    # カスタムマーカーを登録
    config.addinivalue_line(
        "markers", "unit: mark test as unit test"
    )
    config.addinivalue_line(
        "markers", "integration: mark test as integration test"
    )
