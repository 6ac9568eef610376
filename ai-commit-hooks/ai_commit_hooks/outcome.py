"""
パイプラインの結果型

フック実行の最終判断（許可・拒否・スキップ・エラー）と失敗原因の分類を表す。
終了コードへの対応もここで一元的に定義する。
"""

from enum import Enum
from typing import Optional
from dataclasses import dataclass


class ErrorKind(Enum):
    """失敗原因の分類"""
    CONFIGURATION_MISSING = "configuration_missing"
    TRANSPORT_FAILURE = "transport_failure"
    PROVIDER_ERROR = "provider_error"
    PARSE_FAILURE = "parse_failure"
    FILE_IO_FAILURE = "file_io_failure"


class OutcomeKind(Enum):
    """最終判断"""
    ALLOW = "allow"
    BLOCK = "block"
    SKIP = "skip"
    ERROR = "error"


EXIT_CODES = {
    OutcomeKind.ALLOW: 0,
    OutcomeKind.SKIP: 0,
    OutcomeKind.BLOCK: 1,
    OutcomeKind.ERROR: 2,
}


@dataclass(frozen=True)
class Outcome:
    """パイプラインの結果"""
    kind: OutcomeKind
    reason: Optional[str] = None
    cause: Optional[ErrorKind] = None

    @classmethod
    def allow(cls, reason: Optional[str] = None) -> "Outcome":
        return cls(OutcomeKind.ALLOW, reason)

    @classmethod
    def block(cls, reason: str, cause: Optional[ErrorKind] = None) -> "Outcome":
        return cls(OutcomeKind.BLOCK, reason, cause)

    @classmethod
    def skip(cls, reason: str, cause: Optional[ErrorKind] = None) -> "Outcome":
        return cls(OutcomeKind.SKIP, reason, cause)

    @classmethod
    def error(cls, reason: str, cause: ErrorKind) -> "Outcome":
        return cls(OutcomeKind.ERROR, reason, cause)

    @property
    def exit_code(self) -> int:
        return EXIT_CODES[self.kind]
