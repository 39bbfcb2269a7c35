# lalrtools/lalrc.py
"""lalrc – lalrtools CLI

사용 예)
    $ python -m lalrtools.lalrc check lalrtools/tests/grammar_test/expr.g -D --parser lalr
    $ python -m lalrtools.lalrc build lalrtools/tests/grammar_test/expr.g -o out/expr.tables.json --cache
    $ python -m lalrtools.lalrc lex   lalrtools/tests/grammar_test/expr.g --text "1 + 2 * 3" --parse

서브커맨드
----------
- check : AST→BNF→FIRST/FOLLOW→(SLR|LALR) 파이프라인을 돌려 요약 한 줄 출력
- build : 파서 테이블을 JSON 스트림으로 저장. --cache 면 문법 fingerprint 가 같을 때 생략
- lex   : 문법의 렉서로 입력을 토크나이즈. --parse 면 테이블로 구문 검사까지

-D/--debug 는 진행 상황과 BNF/테이블/충돌 요약을 stderr 로 보낸다.
종료 코드는 성공 0, 문법/입력/테이블 오류 2.
"""

from __future__ import annotations
import argparse
import functools
import pathlib
import sys
from typing import Optional

from .grammar.loader import load_grammar_text
from .grammar.parser import parse_grammar
from .grammar.transform import to_bnf
from .lalr import serialise
from .lalr.errors import LalrToolsError
from .lalr.first_follow import compute_nullable_first_follow
from .lalr.items import METHODS, build_tables
from .lalr.runtime import parse_tokens
from .lex import SimpleLexer


def _eprint(*args, **kw) -> None:
    print(*args, file=sys.stderr, **kw)


def _cli_errors(tag: str):
    """커맨드 함수를 감싸 예상된 실패를 [태그] 출력 + 종료 코드 2 로 바꾼다."""
    def wrap(fn):
        @functools.wraps(fn)
        def run(args) -> int:
            try:
                return fn(args)
            except SyntaxError as e:
                _eprint(f"[{tag}]")
                _eprint(str(e))
            except (LalrToolsError, OSError) as e:
                _eprint("[ERROR]", type(e).__name__, str(e))
            return 2
        return run
    return wrap


class _Pipeline:
    """문법 파일 하나에 대한 AST → BNF → 분석 → 테이블 결과 묶음."""

    def __init__(self, path: str, method: str, debug: bool = False):
        def note(msg: str) -> None:
            if debug:
                _eprint("[DEBUG] " + msg)

        self.src = load_grammar_text(path)
        self.grammar = parse_grammar(self.src)
        note(f"AST ready | rules={len(self.grammar.rules)}")

        self.bnf = to_bnf(self.grammar)
        sym = self.bnf.symbols
        note(f"BNF ready | terms={len(sym.terminals())} nonterms={len(sym.nonterminals())} "
             f"rules={len(self.bnf.prods)}")

        self.ff = compute_nullable_first_follow(self.bnf)
        note(f"FIRST/FOLLOW/NULLABLE computed | follow passes={len(self.ff.follow_passes)}")

        self.tables = build_tables(self.bnf, method)
        note(f"{method.upper()} tables built | states={self.tables.n_states} "
             f"conflicts={len(self.tables.conflicts)}")

    def dump(self) -> None:
        """-D 출력: BNF, 테이블 크기, 충돌/비결합 칸, 상태 0 아이템."""
        bnf, tbl, sym = self.bnf, self.tables, self.bnf.symbols
        _eprint("\n[BNF]")
        _eprint(f"Start: {bnf.start}")
        _eprint("Terminals:    " + ", ".join(s.name for s in sym.terminals()))
        _eprint("Nonterminals: " + ", ".join(s.name for s in sym.nonterminals()))
        for p in bnf.prods:
            _eprint(f"  {p.pno:3d}: {bnf.format_production(p)}")

        _eprint("\n[Parsing Tables]")
        _eprint(f"States: {tbl.n_states}")
        _eprint(f"Conflicts: {len(tbl.conflicts)} (unresolved {len(tbl.unresolved())})")
        if tbl.conflicts:
            _eprint(tbl.pretty_conflicts(sym.name_of))
        for v in tbl.nonassoc:
            _eprint(f"  nonassoc: state {v.state}, on {sym.name_of(v.terminal)}, production {v.production}")

        _eprint("\n[State 0 items]")
        for line in tbl.state_items[0] if tbl.state_items else ():
            _eprint("  " + line)


# ------------------------------
# 커맨드
# ------------------------------

@_cli_errors("SYNTAX ERROR")
def cmd_check(args) -> int:
    pipe = _Pipeline(args.file, args.parser, args.debug)
    if args.debug:
        pipe.dump()
    tbl = pipe.tables
    print(f"[CHECK OK] parser={args.parser} states={tbl.n_states} prods={len(tbl.prod_rhs_len)} "
          f"conflicts={len(tbl.conflicts)} unresolved={len(tbl.unresolved())}")
    return 0


def _cached_fingerprint(out_path: pathlib.Path, debug: bool) -> str:
    if not out_path.exists():
        return ""
    try:
        return serialise.read_fingerprint(out_path.read_text(encoding="utf-8"))
    except LalrToolsError as e:
        if debug:
            _eprint(f"[DEBUG] cache ignored: {e}")
        return ""


@_cli_errors("SYNTAX ERROR")
def cmd_build(args) -> int:
    out_path = pathlib.Path(args.output)
    fp = serialise.fingerprint(load_grammar_text(args.file))
    if args.cache and _cached_fingerprint(out_path, args.debug) == fp:
        print(f"[CACHED] parser={args.parser} -> {out_path}")
        return 0

    pipe = _Pipeline(args.file, args.parser, args.debug)
    if args.debug:
        pipe.dump()
    tbl, sym = pipe.tables, pipe.bnf.symbols
    if tbl.unresolved():
        _eprint("[WARN] Unresolved conflicts present; continuing with default resolution.")
        _eprint(tbl.pretty_conflicts(sym.name_of, only_unresolved=True))

    text = serialise.dumps(pipe.bnf, tbl, fp)
    out_path.parent.mkdir(parents=True, exist_ok=True)
    out_path.write_text(text, encoding="utf-8")
    print(f"[EMIT] parser={args.parser} states={tbl.n_states} -> {out_path}")
    if args.debug:
        _eprint(f"[DEBUG] fingerprint={fp} bytes={len(text)}")
    return 0


def cmd_lex(args) -> int:
    # 토크나이즈 단계 실패와 구문 검사 실패를 태그로 구분한다
    return _cli_errors("SYNTAX ERROR" if args.parse else "LEX ERROR")(_lex)(args)


def _lex(args) -> int:
    g = parse_grammar(load_grammar_text(args.file))
    if args.text is not None:
        text = args.text
    else:
        text = pathlib.Path(args.input).read_text(encoding="utf-8")

    toks = SimpleLexer.from_grammar(g).tokens(text)
    for i, tok in enumerate(toks):
        print(f"{i:03d}: {tok.type:<12} {tok.text!r}  @{tok.line}:{tok.col}")

    if args.parse:
        bnf = to_bnf(g)
        parse_tokens(toks, build_tables(bnf, args.parser), bnf.symbols, text)
        print("[PARSE OK]")
    return 0


# ------------------------------
# 엔트리포인트
# ------------------------------

def _grammar_args(p: argparse.ArgumentParser, debug: bool = True) -> None:
    p.add_argument("file", help=".g 문법 파일")
    p.add_argument("--parser", choices=list(METHODS), default="lalr", help="룩어헤드 방식")
    if debug:
        p.add_argument("-D", "--debug", action="store_true", help="디버그 정보를 상세 출력")


def main(argv: Optional[list[str]] = None) -> int:
    ap = argparse.ArgumentParser(prog="lalrc", description="lalrtools LALR(1)/SLR(1) table generator")
    sub = ap.add_subparsers(dest="cmd", required=True)

    p = sub.add_parser("check", help="문법을 검사하고 테이블을 만들어 충돌 수를 보고합니다")
    _grammar_args(p)
    p.set_defaults(func=cmd_check)

    p = sub.add_parser("build", help="파서 테이블을 직렬화해 파일로 저장합니다")
    _grammar_args(p)
    p.add_argument("-o", "--output", required=True, help="출력 파일 경로(JSON)")
    p.add_argument("--cache", action="store_true",
                   help="출력 파일의 문법 fingerprint 가 같으면 다시 만들지 않음")
    p.set_defaults(func=cmd_build)

    p = sub.add_parser("lex", help="문법의 렉서로 입력 텍스트를 토크나이즈합니다")
    _grammar_args(p, debug=False)
    src = p.add_mutually_exclusive_group(required=True)
    src.add_argument("--text", help="직접 입력 텍스트")
    src.add_argument("--input", help="입력 텍스트 파일 경로")
    p.add_argument("--parse", action="store_true", help="토큰열을 파서 테이블로 구문 검사")
    p.set_defaults(func=cmd_lex)

    args = ap.parse_args(argv)
    return int(args.func(args))


if __name__ == "__main__":
    sys.exit(main())
