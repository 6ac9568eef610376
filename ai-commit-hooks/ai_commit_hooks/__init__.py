"""
AI Commit Hooks

LLMを使用してGitのコミットメッセージを提案・検証するフックツール。
prepare-commit-msg と commit-msg の両フックから呼び出して使用する。
"""

__version__ = "1.0.0"
__author__ = "AI Commit Hooks Team"
__description__ = "LLM-powered commit message suggestion and verification hooks for Git"
