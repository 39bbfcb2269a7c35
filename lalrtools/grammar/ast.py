# lalrtools/grammar/ast.py
"""Grammar AST
- TokenDecl: %token NAME /PATTERN/
- IgnoreDecl: %ignore /PATTERN/
- DefineDecl: %define NAME /PATTERN/   ({NAME} 으로 패턴 안에서 재사용)
- SymbolDecl: %symbol NAME { 초기화 코드 }
- Expr/Seq/Atom: EBNF 표현을 그대로 보존(?,*,+ 포함), { 액션 } 블록 포함
"""

from __future__     import annotations
from dataclasses    import dataclass, field
from typing         import List, Optional, Union

@dataclass
class Span:
    start: int
    end: int
    line: int
    col: int

@dataclass
class TokenDecl:
    name: str
    pattern: str    # 원본 정규식 문자열(lex.regex 문법)
    span: Optional[Span] = None

@dataclass
class IgnoreDecl:
    pattern: str
    span: Optional[Span] = None

@dataclass
class DefineDecl:
    name: str
    pattern: str
    span: Optional[Span] = None

@dataclass
class KeywordDecl:
    lexeme: str
    span: Optional[Span] = None

@dataclass
class SymbolDecl:
    """%symbol NAME { init } ;: 비단말 선언 + (선택) 초기화 코드 원문"""
    name: str
    init: str = ""
    span: Optional[Span] = None

@dataclass
class PrecedenceDecl:
    """
    우선순위 선언 한 줄: %left/%right/%nonassoc label...
    - assoc: 'left' | 'right' | 'nonassoc'
    - labels: 토큰명(IDENT) 또는 리터럴 문자열의 리스트
    """
    assoc: str
    labels: List[str]
    span: Optional[Span] = None

class Suffix:
    NONE = "none"
    OPT  = "opt"
    STAR = "star"
    PLUS = "plus"

@dataclass
class Name:
    ident: str
    span: Optional[Span] = None

@dataclass
class Lit:
    text: str
    span: Optional[Span] = None

@dataclass
class Group:
    expr: "Expr"
    span: Optional[Span] = None

@dataclass
class Action:
    """{ ... } 액션 블록. 중괄호 안쪽 원문 그대로."""
    code: str
    span: Optional[Span] = None


AtomKind = Union[Name, Lit, Group, Action]

# EBNF 표현 구조

@dataclass
class Atom:
    node: AtomKind
    suffix: str = Suffix.NONE
    span: Optional[Span] = None

@dataclass
class Seq:
    """
    대안(alt) 하나의 시퀀스.
    - items: Atom 리스트(액션 블록 포함)
    - prec : 이 시퀀스에 부여된 %prec 라벨(없으면 None)
    """
    items: List[Atom]
    prec: Optional[str] = None


@dataclass
class Expr:
    alts: List[Seq]

@dataclass
class Rule:
    name: str
    expr: Expr
    span: Optional[Span] = None


@dataclass
class Grammar:
    # 선언(Decl) 섹션
    decl_tokens: List[TokenDecl] = field(default_factory=list)
    decl_ignores: List[IgnoreDecl] = field(default_factory=list)
    decl_defines: List[DefineDecl] = field(default_factory=list)
    decl_keywords: List[KeywordDecl] = field(default_factory=list)
    decl_symbols: List[SymbolDecl] = field(default_factory=list)

    # 우선순위 선언
    decl_precedences: List[PrecedenceDecl] = field(default_factory=list)

    # 규칙 섹션
    rules: List[Rule] = field(default_factory=list)
    start: Optional[str] = None
