# lalrtools/lex/__init__.py
"""문법 선언으로 동작하는 토크나이저.

키워드(리터럴)와 `%token` 패턴을 NFA 하나로 묶고, 지연 DFA 캐시 위에서 최장 일치를 찾는다.
길이가 같으면 키워드가 먼저, 그다음은 선언 순서.
`%ignore` 패턴은 토큰 사이에서 가능한 만큼 건너뛴다.

토큰의 `type` 은 lalrtools 심볼 이름과 같다. 키워드는 리터럴 그대로("+", "if"),
`%token` 은 이름 그대로("NUM").
"""

from __future__ import annotations
from dataclasses import dataclass
from typing import Dict, Iterator, List, Optional, Tuple

from .nfa import Nfa, NfaBuilder
from .regex import Fragment, Literal, parse_regex


@dataclass(frozen=True)
class LexTok:
    type: str
    text: str
    line: int     # 1-based
    col: int      # 1-based
    pos: int = 0  # 0-based offset


class Lexer:
    """런타임 드라이버가 쓰는 렉서 인터페이스. 입력이 끝나면 None."""

    def reset(self, text: str) -> None:
        raise NotImplementedError

    def peek(self) -> Optional[LexTok]:
        raise NotImplementedError

    def next(self) -> Optional[LexTok]:
        raise NotImplementedError


class SimpleLexer(Lexer):
    """(이름, 조각) 규칙 목록과 무시 조각 목록으로 만드는 참조 렉서."""

    def __init__(self, rules: List[Tuple[str, Fragment]], ignores: List[Fragment]):
        self._builder = NfaBuilder()
        self._nfa: Nfa = self._builder.build_lexer(rules)
        self._skips: List[Nfa] = [NfaBuilder().build(f) for f in ignores]
        self.reset("")

    @classmethod
    def from_grammar(cls, g) -> "SimpleLexer":
        from ..grammar.transform import iter_literals

        defines: Dict[str, str] = {d.name: d.pattern for d in g.decl_defines}
        rules: List[Tuple[str, Fragment]] = [(lit, Literal(lit)) for lit in iter_literals(g)]
        # 패턴 없는 %token 은 parse_tokens 로만 공급된다
        rules += [(td.name, _compile(td.pattern, defines, f"%token {td.name}"))
                  for td in g.decl_tokens if td.pattern]
        ignores = [_compile(ig.pattern, defines, "%ignore") for ig in g.decl_ignores]
        return cls(rules, ignores)

    @property
    def used_chars(self):
        return frozenset(self._builder.used_chars)

    def reset(self, text: str) -> None:
        self._text = text
        self._pos = 0
        self._line = 1
        self._bol = 0             # 현재 줄이 시작하는 오프셋
        self._pending: Optional[LexTok] = None

    def peek(self) -> Optional[LexTok]:
        if self._pending is None:
            self._pending = self._scan()
        return self._pending

    def next(self) -> Optional[LexTok]:
        tok = self.peek()
        self._pending = None
        return tok

    def __iter__(self) -> Iterator[LexTok]:
        tok = self.next()
        while tok is not None:
            yield tok
            tok = self.next()

    def tokens(self, text: str) -> List[LexTok]:
        self.reset(text)
        return list(self)

    def _consume(self, n: int) -> None:
        end = self._pos + n
        nl = self._text.rfind("\n", self._pos, end)
        if nl >= 0:
            self._line += self._text.count("\n", self._pos, end)
            self._bol = nl + 1
        self._pos = end

    def _scan(self) -> Optional[LexTok]:
        text = self._text
        while self._pos < len(text):
            n = next((k for k in (s.match(text, self._pos) for s in self._skips) if k), 0)
            if not n:
                break
            self._consume(n)
        if self._pos >= len(text):
            return None

        col = self._pos - self._bol + 1
        hit = self._nfa.scan(text, self._pos)
        if hit is None or hit[0] == 0:
            raise SyntaxError(
                f"Lexing error: unexpected character {text[self._pos]!r} at {self._line}:{col}\n"
                + _caret_line(text, self._pos))
        n, (_prio, name) = hit
        tok = LexTok(name, text[self._pos:self._pos + n], self._line, col, self._pos)
        self._consume(n)
        return tok


def _compile(pattern: str, defines: Dict[str, str], where: str) -> Fragment:
    try:
        return parse_regex(pattern, defines)
    except SyntaxError as e:
        raise SyntaxError(f"{where}: {e}") from None


def _caret_line(src: str, pos: int) -> str:
    start = src.rfind("\n", 0, pos) + 1
    end = src.find("\n", pos)
    if end < 0:
        end = len(src)
    return src[start:end] + "\n" + " " * (pos - start) + "^"
