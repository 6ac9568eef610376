#!/usr/bin/env python3
"""
AI Commit Hooks - メインエントリーポイント

Gitフックから呼び出される主要スクリプト。
prepare-commit-msg でコミットメッセージを提案し、commit-msg でメッセージを検証する。

使用方法:
    ai-commits generate .git/COMMIT_EDITMSG [COMMIT_SOURCE] [SHA1]
    ai-commits verify .git/COMMIT_EDITMSG
    ai-commits check-config --test-connection

フック設定例 (.git/hooks/prepare-commit-msg):
    #!/bin/sh
    exec ai-commits-prepare-msg "$@"

フック設定例 (.git/hooks/commit-msg):
    #!/bin/sh
    exec ai-commits-verify "$@"
"""

import os
import sys
import argparse
import logging
from typing import List, Mapping, Optional, TextIO

from ai_commit_hooks import __version__
from ai_commit_hooks.config_manager import (
    ConfigManager,
    ConfigurationError,
    PipelineMode,
    resolve_log_path,
)
from ai_commit_hooks.event_log import setup_logging
from ai_commit_hooks.message_formatter import MessageFormatter
from ai_commit_hooks.outcome import ErrorKind, Outcome
from ai_commit_hooks.pipelines import GenerationPipeline, VerificationPipeline
from ai_commit_hooks.provider_factory import ProviderFactory

logger = logging.getLogger(__name__)

EXIT_INTERRUPTED = 130


def build_parser() -> argparse.ArgumentParser:
    """
    コマンドライン引数のパーサーを構築

    Returns:
        サブコマンド付きのパーサー
    """
    parser = argparse.ArgumentParser(
        prog='ai-commits',
        description='AI Commit Hooks - LLMによるコミットメッセージの提案と検証',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__
    )

    parser.add_argument(
        '--config', '-c',
        type=str,
        default=None,
        help='YAML設定ファイルのパス (default: ./.ai-commits.yml が存在すれば使用)'
    )

    parser.add_argument(
        '--verbose', '-v',
        action='store_true',
        help='詳細ログを標準エラーにも出力する'
    )

    parser.add_argument(
        '--version',
        action='version',
        version=f'%(prog)s {__version__}'
    )

    subparsers = parser.add_subparsers(dest='command', required=True)

    generate = subparsers.add_parser('generate', help='ステージ済みの差分からコミットメッセージを提案')
    generate.add_argument('commit_msg_file', help='コミットメッセージファイル')
    generate.add_argument('commit_source', nargs='?', default=None,
                          help='コミットメッセージの種別 (message, template, merge, squash, commit)')
    generate.add_argument('sha1', nargs='?', default=None, help='対象コミットのSHA-1')

    verify = subparsers.add_parser('verify', help='コミットメッセージをConventional Commitsとして検証')
    verify.add_argument('commit_msg_file', help='コミットメッセージファイル')

    check = subparsers.add_parser('check-config', help='解決された設定を表示して終了')
    check.add_argument('--mode', choices=[m.value for m in PipelineMode],
                       default=PipelineMode.GENERATE.value, help='解決する設定の種類')
    check.add_argument('--test-connection', action='store_true', help='プロバイダーへの接続をテスト')

    return parser


def _configuration_skip(mode: PipelineMode, error: Exception, stream: Optional[TextIO]) -> Outcome:
    """設定の不備はコミットを妨げずにスキップする"""
    logger.warning("設定が不完全なためAI処理をスキップします: %s", error)
    if mode is PipelineMode.VERIFY:
        notice = MessageFormatter().format_skip_notice(f"AI configuration incomplete ({error}).")
        print(notice, file=stream if stream is not None else sys.stderr)
    return Outcome.skip(str(error), ErrorKind.CONFIGURATION_MISSING)


def run_pipeline(mode: PipelineMode,
                 commit_msg_file: str,
                 commit_source: Optional[str] = None,
                 config_path: Optional[str] = None,
                 verbose: bool = False,
                 environ: Optional[Mapping[str, str]] = None,
                 stream: Optional[TextIO] = None) -> Outcome:
    """
    設定を解決してパイプラインを1回実行する

    Args:
        mode: 生成か検証か
        commit_msg_file: コミットメッセージファイルのパス
        commit_source: prepare-commit-msg に渡されたコミット種別
        config_path: YAML設定ファイルのパス
        verbose: 詳細ログを有効にする場合True
        environ: プロセス環境（None の場合は os.environ）
        stream: 検証結果を表示する出力先（None の場合は標準エラー）

    Returns:
        Outcome: パイプラインの結果
    """
    mode = PipelineMode(mode)
    config_manager = ConfigManager()

    try:
        env = config_manager.load_environment(config_path, environ=environ)
    except ConfigurationError as e:
        setup_logging(resolve_log_path(os.environ if environ is None else environ), verbose)
        return _configuration_skip(mode, e, stream)

    setup_logging(resolve_log_path(env), verbose)

    try:
        config = config_manager.resolve(env, mode)
        provider = ProviderFactory().create_provider(config)
    except (ConfigurationError, ValueError) as e:
        return _configuration_skip(mode, e, stream)

    logger.debug("設定: %s", config.describe())

    if mode is PipelineMode.GENERATE:
        outcome = GenerationPipeline(config, provider).run(commit_msg_file, commit_source)
    else:
        outcome = VerificationPipeline(config, provider, stream=stream).run(commit_msg_file)

    logger.debug("%s 終了: %s (exit=%d)", mode.value, outcome.kind.value, outcome.exit_code)
    return outcome


def run_hook(mode: PipelineMode, commit_msg_file: str, **kwargs) -> int:
    """
    パイプラインを実行して終了コードを返す

    想定外の例外は記録し、生成では成功、検証では失敗として扱う。

    Returns:
        終了コード (0: 許可/スキップ, 1: 拒否, 2: 書き込み失敗, 130: 中断)
    """
    mode = PipelineMode(mode)
    try:
        return run_pipeline(mode, commit_msg_file, **kwargs).exit_code
    except KeyboardInterrupt:
        print("⛔ 操作が中断されました", file=sys.stderr)
        return EXIT_INTERRUPTED
    except Exception:
        logger.exception("予期しないエラー")
        return 0 if mode is PipelineMode.GENERATE else 1


def check_configuration(mode: PipelineMode,
                        config_path: Optional[str] = None,
                        test_connection: bool = False,
                        verbose: bool = False,
                        environ: Optional[Mapping[str, str]] = None) -> int:
    """
    設定を解決して結果を表示

    APIキーは先頭5文字のみ表示する。

    Returns:
        設定が有効な場合0、無効な場合1
    """
    setup_logging(None, verbose)

    config_manager = ConfigManager()
    try:
        env = config_manager.load_environment(config_path, environ=environ)
        config = config_manager.resolve(env, PipelineMode(mode))
        provider = ProviderFactory().create_provider(config)
    except (ConfigurationError, ValueError) as e:
        print(f"❌ 設定エラー: {e}")
        return 1

    for key, value in config.describe().items():
        print(f"{key}: {value}")

    if test_connection:
        if not provider.test_connection(config):
            print("❌ プロバイダーへの接続に失敗しました")
            return 1
        print("✅ 設定とプロバイダー接続は正常です")
        return 0

    print("✅ 設定は正常です")
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    """
    メイン処理

    Returns:
        終了コード
    """
    args = build_parser().parse_args(argv)

    if args.command == 'check-config':
        try:
            return check_configuration(args.mode, args.config, args.test_connection, args.verbose)
        except KeyboardInterrupt:
            print("⛔ 操作が中断されました", file=sys.stderr)
            return EXIT_INTERRUPTED

    if args.command == 'generate':
        return run_hook(PipelineMode.GENERATE, args.commit_msg_file,
                        commit_source=args.commit_source,
                        config_path=args.config, verbose=args.verbose)

    return run_hook(PipelineMode.VERIFY, args.commit_msg_file,
                    config_path=args.config, verbose=args.verbose)


def prepare_commit_msg(argv: Optional[List[str]] = None) -> int:
    """prepare-commit-msg フックとしての実行 (引数はGitがそのまま渡す)"""
    argv = sys.argv[1:] if argv is None else argv
    return main(['generate', *argv])


def commit_msg(argv: Optional[List[str]] = None) -> int:
    """commit-msg フックとしての実行 (引数はGitがそのまま渡す)"""
    argv = sys.argv[1:] if argv is None else argv
    return main(['verify', *argv])


if __name__ == "__main__":
    sys.exit(main())
