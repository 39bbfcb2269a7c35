"""연산자 우선순위/결합성 선언과 shift/reduce 충돌 판정."""

from __future__ import annotations
from dataclasses import dataclass
from typing import Optional, TYPE_CHECKING

from .table import ConflictDiagnostic, DiagnosticSink

if TYPE_CHECKING:
    from ..grammar.bnf import BNF, Production

ASSOCS = ("left", "right", "nonassoc")

SHIFT = "shift"
REDUCE = "reduce"
NONASSOC = "nonassoc"


@dataclass(frozen=True)
class Precedence:
    """(결합성, 레벨). 선언이 **아래쪽일수록 레벨이 높다**(1부터 시작)."""
    assoc: str
    level: int

    def __post_init__(self) -> None:
        if self.assoc not in ASSOCS:
            raise ValueError(f"unknown associativity {self.assoc!r}")


def production_level(prod: "Production", bnf: "BNF") -> int:
    """
    프로덕션의 우선순위 레벨.
    - %prec 라벨이 있으면 그 라벨의 레벨
    - 없으면 오른쪽 끝 단말의 레벨
    - 둘 다 없으면 0
    """
    prec = bnf.production_prec(prod)
    return prec.level if prec is not None else 0


def decide(
    lookahead: int,
    prod: "Production",
    state: int,
    bnf: "BNF",
    report: Optional[DiagnosticSink] = None,
) -> str:
    """
    상태 state에서 lookahead 단말에 대해 shift 와 prod 로의 reduce 가 충돌할 때의 판정.

    규칙(순서대로)
    -------------
    1) FOLLOW(prod.lhs)에 lookahead가 없으면 가짜 충돌 → SHIFT
    2) lookahead 단말에 precedence가 없으면 진단을 남기고 SHIFT
    3) lookahead 단말이 nonassoc 이면 NONASSOC
    4) 레벨 비교: 높은 쪽 승리. 같으면 단말이 right 일 때만 SHIFT, 아니면 REDUCE
    """
    table = bnf.symbols
    term = table[lookahead]
    lhs = table[prod.lhs]

    def _emit(resolution: str, resolved_by: str, message: str) -> None:
        if report is not None:
            report(ConflictDiagnostic(
                kind="shift/reduce",
                state=state,
                terminal=lookahead,
                productions=(prod.pno,),
                resolution=resolution,
                resolved_by=resolved_by,
                message=message,
            ))

    if lookahead not in lhs.follow:
        _emit(SHIFT, "follow",
              f"spurious shift/reduce conflict on {term.name} in reduction {prod.pno} "
              f"in state {state}")
        return SHIFT

    if term.prec is None:
        _emit(SHIFT, "default",
              f"shift/reduce conflict on {term.name} in reduction {prod.pno} in state {state}")
        return SHIFT

    if term.prec.assoc == "nonassoc":
        _emit(NONASSOC, "precedence",
              f"nonassoc {term.name} in reduction {prod.pno} in state {state}")
        return NONASSOC

    diff = term.prec.level - production_level(prod, bnf)
    if diff > 0:
        decision = SHIFT
    elif diff < 0:
        decision = REDUCE
    else:
        decision = SHIFT if term.prec.assoc == "right" else REDUCE
    _emit(decision, "precedence",
          f"shift/reduce conflict on {term.name} in reduction {prod.pno} in state {state} "
          f"resolved as {decision}")
    return decision
