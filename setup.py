"""
AI Commit Hooks セットアップスクリプト
"""

from setuptools import setup, find_packages
from pathlib import Path

# README.mdの内容を読み込み
this_directory = Path(__file__).parent
long_description = (this_directory / "README.md").read_text(encoding='utf-8') if (this_directory / "README.md").exists() else ""

setup(
    name="ai-commit-hooks",
    version="1.0.0",
    author="AI Commit Hooks Team",
    author_email="team@ai-commit-hooks.example.com",
    description="LLM-powered Conventional Commits suggestion and verification for Git hooks",
    long_description=long_description,
    long_description_content_type="text/markdown",
    packages=find_packages(where="ai-commit-hooks"),
    package_dir={"": "ai-commit-hooks"},
    classifiers=[
        "Development Status :: 4 - Beta",
        "Intended Audience :: Developers",
        "Topic :: Software Development :: Version Control :: Git",
        "License :: OSI Approved :: MIT License",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
        "Operating System :: OS Independent",
    ],
    python_requires=">=3.10",
    install_requires=[
        "PyYAML>=6.0.1",
        "requests>=2.31.0",
        "python-dotenv>=1.0.0",
        "colorlog>=6.7.0",
    ],
    extras_require={
        "dev": [
            "pytest>=7.4.0",
            "pytest-mock>=3.11.1",
            "pytest-cov>=4.1.0",
            "black>=23.7.0",
            "flake8>=6.0.0",
            "mypy>=1.5.0",
        ],
    },
    entry_points={
        "console_scripts": [
            "ai-commits=ai_commit_hooks.main:main",
            "ai-commits-prepare-msg=ai_commit_hooks.main:prepare_commit_msg",
            "ai-commits-verify=ai_commit_hooks.main:commit_msg",
        ],
    },
    zip_safe=False,
)
