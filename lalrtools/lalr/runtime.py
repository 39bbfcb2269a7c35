# lalrtools/lalr/runtime.py
"""LALR(1)/SLR(1) 파서 런타임(스택 머신).

- `Tables`(ACTION/GOTO)와 `SymbolTable`, 그리고 `Lexer`(또는 토큰 리스트)를 받아
  입력을 **accept/reject** 판정합니다. 생성된 테이블을 검증하는 용도입니다.
- 에러 시, 해당 상태에서 가능한 단말(expected set)을 제시하는
  친절한 `SyntaxError` 메시지를 던집니다.
- ACTION 칸이 'nonassoc' 이면 비결합 연산자 연쇄이므로 역시 `SyntaxError`.
"""

from __future__ import annotations
from typing import Callable, Iterable, Iterator, List, Optional, Tuple

from .table import ACCEPT, NONASSOC, REDUCE, SHIFT, Tables
from .symbols import SymbolTable
from ..lex import Lexer, LexTok

Trace = Callable[[str, int, int], None]   # (kind, arg, state)


def _line_bounds(src: str, pos: int) -> Tuple[int, int]:
    """pos가 속한 라인의 [start, end) 범위를 반환."""
    start = src.rfind("\n", 0, pos)
    start = 0 if start < 0 else start + 1
    end = src.find("\n", pos)
    end = len(src) if end < 0 else end
    return start, end


def _caret_snippet(src: str, pos: int) -> str:
    """해당 절대 오프셋 pos에 캐럿(^)을 찍은 스니펫을 생성."""
    start, end = _line_bounds(src, pos)
    line = src[start:end]
    col = (pos - start) + 1
    caret = " " * (col - 1) + "^"
    return f"{line}\n{caret}"


def _where(text: str, tok: Optional[LexTok]) -> str:
    if not text:
        return ""
    pos = len(text) if tok is None else tok.pos
    return "\n" + _caret_snippet(text, pos)


def _lexer_stream(lexer: Lexer) -> Iterator[LexTok]:
    while True:
        tok = lexer.next()
        if tok is None:
            return
        yield tok


def parse_string(text: str, tables: Tables, sym: SymbolTable, lexer: Lexer,
                 trace: Optional[Trace] = None) -> bool:
    """테이블과 렉서를 사용하여 입력 문자열을 파싱합니다.

    Parameters
    ----------
    text : str
        파싱할 원문.
    tables : Tables
        ACTION/GOTO 테이블 묶음.
    sym : SymbolTable
        심볼 이름 ↔ ID 조회용 테이블.
    lexer : Lexer
        현재 문법으로 구성된 렉서 인스턴스.
    trace : callable, optional
        (kind, arg, state) 를 받는 콜백. shift/reduce/accept 마다 호출됩니다.

    Returns
    -------
    bool
        파싱 성공 시 True. 실패 시 `SyntaxError`를 발생시킵니다.

    Notes
    -----
    - 값(semantic value) 스택은 사용하지 않습니다.
    - 에러 시 메시지에는 **다음 토큰 위치**와 함께, 해당 상태에서 가능한
      **expected 단말 집합**을 포함합니다.
    """
    lexer.reset(text)
    return _drive(_lexer_stream(lexer), tables, sym, text, trace)


def parse_tokens(tokens: Iterable[LexTok], tables: Tables, sym: SymbolTable,
                 text: str = "", trace: Optional[Trace] = None) -> bool:
    """이미 토큰화된 입력을 파싱합니다. text를 주면 에러 메시지에 스니펫이 붙습니다."""
    return _drive(iter(tokens), tables, sym, text, trace)


def _drive(stream: Iterator[LexTok], tables: Tables, sym: SymbolTable,
           text: str, trace: Optional[Trace]) -> bool:
    state_stack: List[int] = [tables.start_state]
    look: Optional[LexTok] = next(stream, None)

    def term_id(tok: Optional[LexTok]) -> int:
        if tok is None:
            return sym.eof_id
        s = sym.get(tok.type)
        if s is None or not sym.is_term_id(s.id):
            # 심볼테이블에 없는 단말(예: 렉서/문법 불일치)
            raise SyntaxError(
                f"Unknown token kind {tok.type!r} at {tok.line}:{tok.col}" + _where(text, tok))
        return s.id

    while True:
        s = state_stack[-1]
        a_id = term_id(look)
        act = tables.action.get((s, a_id))

        if act is None:
            # 에러: expected set 수집
            expected = sorted({sym.name_of(tid) for (st, tid), op in tables.action.items()
                               if st == s and op[0] != NONASSOC})
            expected_sorted = ", ".join(expected)
            if look is None:
                raise SyntaxError(
                    "Parse error at EOF: expected one of "
                    f"{{{expected_sorted}}}" + _where(text, None))
            raise SyntaxError(
                f"Parse error at {look.line}:{look.col}: unexpected {look.type!r}, "
                f"expected one of {{{expected_sorted}}}" + _where(text, look))

        kind, arg = act
        if trace is not None:
            trace(kind, arg, s)

        if kind == SHIFT:
            state_stack.append(arg)
            look = next(stream, None)
            continue

        if kind == REDUCE:
            rhs_len = tables.prod_rhs_len[arg]
            lhs_id = tables.prod_lhs_ids[arg]
            if rhs_len >= len(state_stack):
                raise RuntimeError(f"stack underflow reducing production {arg} in state {s}")
            if rhs_len:
                del state_stack[-rhs_len:]
            t = state_stack[-1]
            goto_state = tables.goto.get((t, lhs_id))
            if goto_state is None:
                # 구조적 오류(테이블 일관성 문제)
                raise RuntimeError(f"GOTO missing for state={t}, lhs={sym.name_of(lhs_id)}")
            state_stack.append(goto_state)
            continue

        if kind == NONASSOC:
            name = look.type if look is not None else sym.name_of(a_id)
            at = f"{look.line}:{look.col}" if look is not None else "EOF"
            raise SyntaxError(
                f"non-associative operator {name!r} used in a chain at {at}" + _where(text, look))

        if kind == ACCEPT:
            return True

        raise RuntimeError(f"Unknown ACTION kind: {kind}")
