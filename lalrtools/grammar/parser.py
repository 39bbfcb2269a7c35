"""lalrtools DSL 파서

선언부 (순서 자유, 규칙보다 앞)
    %token NAME [/regex/] ;        패턴이 없으면 외부 렉서가 공급하는 단말
    %ignore /regex/ ;
    %define NAME /regex/ ;         패턴 안에서 {NAME} 으로 재사용
    %symbol NAME [{ init }] ;
    %start NAME ;
    %left | %right | %nonassoc label... ;
    "lit" : "lit" ;                키워드 선언

규칙부
    Rule : alt | alt ... ;
    alt  = (IDENT | "lit" | ( expr ) | { action })* [%prec LABEL [{ action }]]
    IDENT/"lit"/( ) 뒤에는 ? * + 수식자

세미콜론(;)은 모든 선언/규칙 종료에 **반드시 필요**
"""

from __future__ import annotations
import regex as re
from dataclasses import dataclass
from typing import List, Optional, Tuple
from .ast import *
import ast as _pyast

# ---- 스캐너 토큰 ----
_TOKEN_SPEC = [
    ("WS",       r"[ \t\f]+"),
    ("NEWLINE",  r"\n"),
    ("COMMENT",  r"//[^\n]*"),
    ("MCOMMENT", r"/\*.*?\*/"),
    ("PERCENT",  r"%"),
    ("COLON",    r":"),
    ("SEMI",     r";"),
    ("OR",       r"\|"),
    ("LPAREN",   r"\("),
    ("RPAREN",   r"\)"),
    ("QMARK",    r"\?"),
    ("STAR",     r"\*"),
    ("PLUS",     r"\+"),
    ("REGEX",    r"/(?:\\.|[^/\n])+/"),
    ("STRING",   r'"(?:\\.|[^"\\])*"'),
    ("IDENT",    r"[A-Za-z_][A-Za-z0-9_]*"),
]
MASTER_RE = re.compile("|".join(f"(?P<{n}>{p})" for n, p in _TOKEN_SPEC), re.S)

_SKIP = ("WS", "COMMENT", "MCOMMENT", "NEWLINE")
_SUFFIXES = {"QMARK": Suffix.OPT, "STAR": Suffix.STAR, "PLUS": Suffix.PLUS}
_ASSOCS = ("left", "right", "nonassoc")


@dataclass
class Tok:
    kind: str
    lexeme: str
    start: int
    end: int
    line: int
    col: int

    @property
    def span(self) -> Span:
        return Span(self.start, self.end, self.line, self.col)


# ---------- 스캐너 ----------

def _scan(src: str) -> List[Tok]:
    """공백/주석/개행은 위치만 갱신하고 토큰으로 내보내지 않는다. 끝에 EOF 토큰."""
    toks: List[Tok] = []
    line = col = 1
    i = 0
    while i < len(src):
        if src[i] == "{":
            tok, i, line, col = _scan_action_block(src, i, line, col)
            toks.append(tok)
            continue

        m = MASTER_RE.match(src, i)
        if not m:
            raise SyntaxError(f"Unexpected char {src[i]!r} at {line}:{col}\n"
                              + _caret_at(src, i))
        kind, lex = m.lastgroup or "", m.group(0)
        if kind not in _SKIP:
            toks.append(Tok(kind, lex, i, m.end(), line, col))
        line, col = _advance(lex, line, col)
        i = m.end()

    toks.append(Tok("EOF", "", len(src), len(src), line, col))
    return toks


def _advance(lex: str, line: int, col: int) -> Tuple[int, int]:
    nl = lex.count("\n")
    if nl:
        return line + nl, len(lex) - lex.rfind("\n")
    return line, col + len(lex)


def _scan_action_block(src: str, i: int, line: int, col: int):
    """
    src[i] == '{' 에서 시작해 짝이 맞는 '}' 까지를 ACTION 토큰 하나로 만든다.
    문자열/문자 리터럴 안의 중괄호와 이스케이프는 세지 않는다.
    반환: (token, new_i, new_line, new_col)
    """
    start, start_line, start_col = i, line, col
    i += 1; col += 1
    depth = 1
    quote: Optional[str] = None
    escape = False
    while i < len(src):
        ch = src[i]
        if ch == "\n":
            line, col = line + 1, 1
            i += 1
            escape = False
            continue
        if escape:
            escape = False
        elif ch == "\\":
            escape = True
        elif quote is not None:
            if ch == quote:
                quote = None
        elif ch in ("'", '"'):
            quote = ch
        elif ch == "{":
            depth += 1
        elif ch == "}":
            depth -= 1
            if depth == 0:
                body = src[start + 1:i]
                tok = Tok("ACTION", body, start, i + 1, start_line, start_col)
                return tok, i + 1, line, col + 1
        i += 1; col += 1

    raise SyntaxError(f"Unterminated action block (missing '}}') starting at {start_line}:{start_col}\n"
                      + _caret_at(src, start))


# ---------- 에러 스니펫 ----------

def _caret_at(src: str, pos: int) -> str:
    """pos 가 속한 줄 전체 + 그 아래 pos 열에 캐럿."""
    start = src.rfind("\n", 0, pos) + 1
    end = src.find("\n", pos)
    if end == -1:
        end = len(src)
    return f"{src[start:end]}\n{' ' * (pos - start)}^"


def _unquote(s: str) -> str:
    # 따옴표 포함 원문 → 파이썬 리터럴 규칙으로 복원
    return _pyast.literal_eval(s)


# ---------- 재귀 하강 파서 ----------

class _GrammarParser:
    def __init__(self, src: str):
        self.src = src
        self.toks = _scan(src)
        self.i = 0
        self.g = Grammar()

    # --- 토큰 커서 ---
    @property
    def la(self) -> Tok:
        return self.toks[self.i]

    @property
    def prev(self) -> Optional[Tok]:
        return self.toks[self.i - 1] if self.i else None

    def error(self, msg: str, tok: Optional[Tok] = None) -> SyntaxError:
        tok = tok or self.la
        return SyntaxError(f"{msg} at {tok.line}:{tok.col}\n{_caret_at(self.src, tok.start)}")

    def expect(self, kind: str) -> Tok:
        t = self.la
        if t.kind != kind:
            raise self.error(f"Expected {kind}, got {t.kind}", t)
        self.i += 1
        return t

    def accept(self, kind: str) -> Optional[Tok]:
        if self.la.kind == kind:
            return self.expect(kind)
        return None

    def semi(self, context: str, example: str) -> None:
        """
        세미콜론 강제. 캐럿은 직전 토큰의 **끝**(세미콜론이 있어야 할 자리)에 찍는다.
        """
        if self.accept("SEMI"):
            return
        got = self.la
        found = "EOF" if got.kind == "EOF" else got.kind
        anchor = self.prev
        snippet = _caret_at(self.src, anchor.end if anchor is not None else got.start)
        raise SyntaxError(
            f"Missing ';' after {context} (semicolon is mandatory).\n"
            f"- Found: {found} at {got.line}:{got.col}\n"
            f"- Example: {example}\n\n"
            f"{snippet}"
        )

    def label(self) -> str:
        """IDENT 또는 STRING 하나."""
        t = self.la
        if t.kind == "IDENT":
            return self.expect("IDENT").lexeme
        if t.kind == "STRING":
            return _unquote(self.expect("STRING").lexeme)
        raise self.error(f"Expected IDENT or STRING, got {t.kind}", t)

    def regex(self) -> Tuple[Tok, str]:
        t = self.expect("REGEX")
        return t, t.lexeme[1:-1]

    # --- 전체 ---
    def parse(self) -> Grammar:
        while self.la.kind in ("PERCENT", "STRING"):
            if self.accept("PERCENT"):
                self.directive()
            else:
                self.keyword()
        while self.la.kind != "EOF":
            self.rule()
        if not self.g.start and self.g.rules:
            self.g.start = self.g.rules[0].name
        return self.g

    # --- 선언부 ---
    def directive(self) -> None:
        if self.la.kind != "IDENT":
            raise self.error(f"Expected directive name after '%', got {self.la.kind}")
        name_tok = self.expect("IDENT")
        name = name_tok.lexeme
        g = self.g

        if name == "token":
            tok = self.expect("IDENT")
            pattern = self.regex()[1] if self.la.kind == "REGEX" else ""
            g.decl_tokens.append(TokenDecl(tok.lexeme, pattern, span=tok.span))
            self.semi("%token declaration", "%token NAME /regex/;")
        elif name == "ignore":
            tok, pattern = self.regex()
            g.decl_ignores.append(IgnoreDecl(pattern, span=tok.span))
            self.semi("%ignore declaration", r"%ignore /\s+/;")
        elif name == "define":
            tok = self.expect("IDENT")
            g.decl_defines.append(DefineDecl(tok.lexeme, self.regex()[1], span=tok.span))
            self.semi("%define declaration", "%define Digit /[0-9]/;")
        elif name == "symbol":
            tok = self.expect("IDENT")
            init = self.accept("ACTION")
            g.decl_symbols.append(SymbolDecl(tok.lexeme, init.lexeme.strip() if init else "",
                                             span=tok.span))
            self.semi("%symbol declaration", "%symbol Expr { 0 };")
        elif name == "start":
            g.start = self.expect("IDENT").lexeme
            self.semi("%start declaration", "%start StartSymbol;")
        elif name in _ASSOCS:
            labels: List[str] = []
            while self.la.kind in ("IDENT", "STRING"):
                labels.append(self.label())
            if not labels:
                raise self.error(f"%{name} requires at least one label")
            self.semi(f"%{name} declaration", f"%{name} + - * / ;")
            g.decl_precedences.append(PrecedenceDecl(name, labels, span=name_tok.span))
        else:
            raise self.error(f"Unknown directive %{name}", name_tok)

    def keyword(self) -> None:
        """ "lit" : "lit" ; 두 리터럴은 같아야 한다."""
        lhs_tok = self.expect("STRING")
        self.expect("COLON")
        rhs_tok = self.expect("STRING")
        lhs, rhs = _unquote(lhs_tok.lexeme), _unquote(rhs_tok.lexeme)
        if lhs != rhs:
            raise SyntaxError(f'Keyword mapping must be identical on both sides: "{lhs}" : "{rhs}"\n'
                              + _caret_at(self.src, lhs_tok.start))
        self.g.decl_keywords.append(KeywordDecl(lhs, span=lhs_tok.span))
        self.semi('keyword literal mapping (e.g. "+" : "+")', '"+" : "+";')

    # --- 규칙부 ---
    def rule(self) -> None:
        lhs = self.expect("IDENT")
        self.expect("COLON")
        expr = self.expr()
        self.semi(f"rule '{lhs.lexeme}'", f"{lhs.lexeme} : ... ;")
        self.g.rules.append(Rule(lhs.lexeme, expr, span=lhs.span))

    def expr(self) -> Expr:
        alts = [self.seq()]
        while self.accept("OR"):
            alts.append(self.seq())
        return Expr(alts)

    def seq(self) -> Seq:
        items: List[Atom] = []
        while self.la.kind in ("IDENT", "STRING", "LPAREN", "ACTION"):
            items.append(self.atom())

        prec: Optional[str] = None
        if self.accept("PERCENT"):
            ident = self.expect("IDENT")
            if ident.lexeme != "prec":
                raise self.error(f"Unknown %directive %{ident.lexeme} inside a rule; "
                                 f"did you mean '%prec'?", ident)
            prec = self.label()
            # E : "-" E %prec UMINUS { neg } ;
            if self.la.kind == "ACTION":
                items.append(self.atom())
        return Seq(items, prec=prec)

    def atom(self) -> Atom:
        t = self.la
        if t.kind == "ACTION":
            # 액션 블록에는 수식자를 붙일 수 없다
            self.i += 1
            return Atom(Action(t.lexeme, span=t.span), span=t.span)
        if t.kind == "IDENT":
            self.i += 1
            node = Name(t.lexeme, span=t.span)
        elif t.kind == "STRING":
            self.i += 1
            node = Lit(_unquote(t.lexeme), span=t.span)
        elif t.kind == "LPAREN":
            self.i += 1
            node = Group(self.expr(), span=t.span)
            self.expect("RPAREN")
        else:
            raise self.error(f"Unexpected token {t.kind}", t)

        suffix = _SUFFIXES.get(self.la.kind, Suffix.NONE)
        if suffix != Suffix.NONE:
            self.i += 1
        return Atom(node, suffix, span=t.span)


def parse_grammar(src: str) -> Grammar:
    """DSL 원문 → Grammar(AST). 문법 오류는 위치와 캐럿이 붙은 SyntaxError."""
    return _GrammarParser(src).parse()
