"""lalrtools 공통 예외.

- GrammarDefinitionError : 문법 정의 자체가 잘못됨(치명적)
- UnknownSymbolError     : 닫힌 문법에서 단말/비단말 어느 쪽으로도 확정되지 않은 이름
- SerializationError     : 직렬화 스트림 손상/버전 불일치

DSL 텍스트 오류는 기존처럼 SyntaxError를 사용한다.
"""

from __future__ import annotations


class LalrToolsError(Exception):
    """lalrtools 예외의 공통 부모."""


class GrammarDefinitionError(LalrToolsError):
    pass


class UnknownSymbolError(LalrToolsError):
    def __init__(self, name: str, where: str = ""):
        msg = f"Unknown symbol {name!r}"
        if where:
            msg += f" (referenced in {where})"
        super().__init__(msg)
        self.name = name


class SerializationError(LalrToolsError):
    pass
