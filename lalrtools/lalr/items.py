# lalrtools/lalr/items.py
"""LR(0) 오토마톤과 SLR(1)/LALR(1) 테이블 작성 + 충돌을 precedence로 해소.

이 모듈은 닫힌(close()된) BNF 를 입력으로 받아
- LR(0) 아이템/클로저/고토
- 상태 DFA 구성 (아이템 집합이 구조적으로 같으면 같은 상태)
- FOLLOW(SLR) 또는 DeRemer–Pennello 룩어헤드(LALR) 기반 reduce
- shift/reduce 충돌은 precedence.decide()에, reduce/reduce 는 낮은 번호 우선으로 해소
을 수행한다. 충돌은 진단(ConflictDiagnostic)으로만 남고 빌드를 멈추지 않는다.

상태 번호는 결정적이다: 작업목록을 FIFO로 처리하고, 한 상태 안에서는
아이템 순서대로 처음 등장한 심볼 순으로 전이를 만든다.
"""

from __future__ import annotations
from dataclasses import dataclass
from typing import Dict, FrozenSet, List, Optional, Set, Tuple

from ..grammar.bnf import BNF
from . import precedence
from .errors import GrammarDefinitionError
from .first_follow import compute_nullable_first_follow
from .lookahead import compute_lalr_lookaheads
from .symbols import SymbolSet, SymKind
from .table import (
    ACCEPT, NONASSOC, REDUCE, SHIFT,
    ConflictDiagnostic, DiagnosticSink, NonassocViolation, Tables, collect_into,
)

METHODS = ("slr", "lalr")


# ---------- LR(0) 아이템 ----------
@dataclass(frozen=True)
class ProdItem:
    """LR(0) 아이템: [A -> α · β]"""
    pno: int
    pos: int

    def __str__(self) -> str:
        return f"(p={self.pno}, pos={self.pos})"


class ParseState:
    """
    오토마톤 상태 1개.
    - items       : 클로저까지 끝난 아이템 목록(추가 순서 유지)
    - transitions : 심볼 ID → 다음 상태 번호 (단말=shift, 비단말=goto)
    - accessing   : 이 상태로 들어오는 심볼 ID (시작 상태는 None)
    """

    def __init__(self, number: int = -1, accessing: Optional[int] = None) -> None:
        self.number = number
        self.accessing = accessing
        self.items: List[ProdItem] = []
        self._members: Set[ProdItem] = set()
        self.transitions: Dict[int, int] = {}

    def maybe_add(self, item: ProdItem) -> bool:
        """아이템이 없을 때만 추가하고, 추가했는지를 돌려준다."""
        if item in self._members:
            return False
        self._members.add(item)
        self.items.append(item)
        return True

    def closure(self, bnf: BNF) -> None:
        """
        점 뒤가 비단말이면 그 비단말의 시작 아이템을, 액션 의사심볼이면 한 칸 전진한
        아이템을 추가한다. 새 아이템이 없을 때까지(목록 끝까지) 진행한다.
        """
        table = bnf.symbols
        i = 0
        while i < len(self.items):
            it = self.items[i]
            rhs = bnf.prods[it.pno].rhs
            if it.pos < len(rhs):
                nxt = table[rhs[it.pos]]
                if nxt.kind == SymKind.NONTERMINAL:
                    for pno in nxt.prods:
                        self.maybe_add(ProdItem(pno, 0))
                elif nxt.is_action():
                    self.maybe_add(ProdItem(it.pno, it.pos + 1))
            i += 1

    @property
    def key(self) -> FrozenSet[ProdItem]:
        return frozenset(self._members)

    @property
    def accepts(self) -> bool:
        """완료된 증강 아이템 [$start -> S ·] 을 갖는가."""
        return ProdItem(0, 1) in self._members

    def completed(self, bnf: BNF) -> List[ProdItem]:
        """reduce 후보(점이 끝에 있는 아이템), 프로덕션 번호 순."""
        done = [it for it in self.items if it.pos == len(bnf.prods[it.pno].rhs)]
        return sorted(done, key=lambda it: it.pno)

    def next_symbols(self, bnf: BNF) -> List[int]:
        """전이를 만들 심볼들. 아이템 순서대로 처음 등장한 순서, 액션 의사심볼 제외."""
        table = bnf.symbols
        out: Dict[int, None] = {}
        for it in self.items:
            rhs = bnf.prods[it.pno].rhs
            if it.pos < len(rhs) and not table[rhs[it.pos]].is_action():
                out.setdefault(rhs[it.pos], None)
        return list(out)

    def __repr__(self) -> str:
        return f"ParseState({self.number}, items={len(self.items)})"


def format_item(bnf: BNF, it: ProdItem) -> str:
    return f"[{bnf.format_production(bnf.prods[it.pno], dot=it.pos)}]"


# ---------- LR(0) 오토마톤 ----------

def build_lr0_states(bnf: BNF) -> List[ParseState]:
    """
    [$start -> · S] 의 클로저에서 시작해 모든 상태를 만든다.
    아이템 집합(클로저 포함)이 같은 상태는 기존 상태를 재사용한다.
    """
    states: List[ParseState] = []
    state_index: Dict[FrozenSet[ProdItem], int] = {}

    def add_state(st: ParseState) -> int:
        key = st.key
        if key in state_index:
            return state_index[key]
        st.number = len(states)
        states.append(st)
        state_index[key] = st.number
        return st.number

    i0 = ParseState()
    i0.maybe_add(ProdItem(0, 0))
    i0.closure(bnf)
    add_state(i0)

    k = 0
    while k < len(states):
        st = states[k]
        for x in st.next_symbols(bnf):
            nxt = ParseState(accessing=x)
            for it in st.items:
                rhs = bnf.prods[it.pno].rhs
                if it.pos < len(rhs) and rhs[it.pos] == x:
                    nxt.maybe_add(ProdItem(it.pno, it.pos + 1))
            nxt.closure(bnf)
            st.transitions[x] = add_state(nxt)
        k += 1
    return states


# ---------- 테이블 빌더 ----------

def build_tables(bnf: BNF, method: str = "lalr",
                 sink: Optional[DiagnosticSink] = None) -> Tables:
    """
    build_tables
    ============
    닫힌 BNF 로 ACTION/GOTO 테이블을 만든다.

    절차
    ----
    1) NULLABLE/FIRST/FOLLOW 계산(이미 계산돼 있으면 변화 없음)
    2) LR(0) 오토마톤
    3) 룩어헤드: method='slr' 이면 FOLLOW(lhs), 'lalr' 이면 DeRemer–Pennello
    4) shift/goto 기입 후 reduce/accept 기입
       - shift 와 충돌: precedence.decide() 의 판정(shift/reduce/nonassoc)
       - reduce 끼리 충돌: 번호가 작은 프로덕션 승리 + 진단
    5) 모든 진단은 Tables.conflicts 에 모이고 sink 가 있으면 그쪽으로도 전달
    """
    if method not in METHODS:
        raise ValueError(f"unknown parser method {method!r} (expected one of {METHODS})")
    if not bnf.closed:
        raise GrammarDefinitionError("grammar must be closed before building tables")

    compute_nullable_first_follow(bnf)
    table = bnf.symbols
    eof = table.eof_id

    states = build_lr0_states(bnf)
    if method == "lalr":
        la = compute_lalr_lookaheads(bnf, states)
    else:
        la = {}

    def lookaheads(st: ParseState, pno: int) -> SymbolSet:
        if method == "slr":
            return table[bnf.prods[pno].lhs].follow
        return la.get((st.number, pno), SymbolSet())

    conflicts: List[ConflictDiagnostic] = []
    report = collect_into(conflicts, sink)
    violations: List[NonassocViolation] = []

    action: Dict[Tuple[int, int], Tuple[str, int]] = {}
    goto: Dict[Tuple[int, int], int] = {}

    for st in states:
        s = st.number
        # shift/goto (전이 기반)
        for x, t in st.transitions.items():
            if table.is_term_id(x):
                action[(s, x)] = (SHIFT, t)
            else:
                goto[(s, x)] = t

        # reduce / accept
        for it in st.completed(bnf):
            if it.pno == 0:
                _put_accept(action, s, eof, report, table)
                continue
            prod = bnf.prods[it.pno]
            for a in sorted(lookaheads(st, it.pno)):
                key = (s, a)
                prev = action.get(key)
                if prev is None:
                    action[key] = (REDUCE, it.pno)
                elif prev[0] == SHIFT:
                    decision = precedence.decide(a, prod, s, bnf, report)
                    if decision == precedence.REDUCE:
                        action[key] = (REDUCE, it.pno)
                    elif decision == precedence.NONASSOC:
                        action[key] = (NONASSOC, it.pno)
                        violations.append(NonassocViolation(s, a, it.pno))
                else:
                    # reduce/reduce. nonassoc 칸은 prev[1] 로의 reduce 가 차지한 것으로 보되
                    # 칸의 종류는 nonassoc 으로 유지한다
                    keep = min(prev[1], it.pno)
                    other = max(prev[1], it.pno)
                    if keep != prev[1]:
                        action[key] = (prev[0], keep)
                    report(ConflictDiagnostic(
                        kind="reduce/reduce",
                        state=s,
                        terminal=a,
                        productions=(keep, other),
                        resolution=precedence.REDUCE,
                        resolved_by="default",
                        message=(f"reduce/reduce conflict on {table.name_of(a)} in state {s} "
                                 f"between reductions {keep} and {other}; using {keep}"),
                    ))

    # --- 디버그 문자열 ---
    state_items: List[List[str]] = [[format_item(bnf, it) for it in st.items] for st in states]

    return Tables(
        action=action,
        goto=goto,
        start_state=0,
        n_states=len(states),
        prod_lhs_ids=[p.lhs for p in bnf.prods],
        prod_rhs_len=[bnf.reduce_len(p) for p in bnf.prods],
        state_items=state_items,
        conflicts=conflicts,
        nonassoc=violations,
        method=method,
    )


def _put_accept(action, s, eof, report, table) -> None:
    prev = action.get((s, eof))
    if prev is not None and prev[0] != ACCEPT:
        report(ConflictDiagnostic(
            kind="reduce/reduce",
            state=s,
            terminal=eof,
            productions=(0, prev[1]),
            resolution="accept",
            resolved_by="default",
            message=f"accept conflicts with {prev[0]} {prev[1]} on {table.name_of(eof)} in state {s}",
        ))
    action[(s, eof)] = (ACCEPT, 0)


def build_slr_tables(bnf: BNF, sink: Optional[DiagnosticSink] = None) -> Tables:
    """FOLLOW 집합으로 reduce 칸을 채우는 SLR(1) 테이블."""
    return build_tables(bnf, "slr", sink)


def build_lalr_tables(bnf: BNF, sink: Optional[DiagnosticSink] = None) -> Tables:
    """DeRemer–Pennello 룩어헤드를 쓰는 LALR(1) 테이블."""
    return build_tables(bnf, "lalr", sink)
