from __future__ import annotations
from typing import Dict, Iterable, List, Set, Tuple
from dataclasses import dataclass, field

from ..grammar.bnf import BNF
from .errors import GrammarDefinitionError
from .symbols import Nullable, SymbolSet, SymKind


@dataclass
class FFResult:
    """
    FFResult
    ========
    FIRST/FOLLOW/NULLABLE 계산 결과 요약입니다.
    실제 값은 각 Symbol 레코드(nullable/first/follow)에 기록되며, 이 객체는
    조회 편의를 위한 **ID 기반** 뷰입니다.

    - nullable: ε-유도 가능한 비단말 ID 집합
    - first   : 심볼 ID → FIRST 집합(단말 ID)
    - follow  : 비단말 ID → FOLLOW 집합(단말 ID). 시작 기호에는 항상 EOF 포함
    - follow_passes: FOLLOW 고정점 각 패스가 끝난 시점의 집합 크기 스냅샷
    """
    nullable: Set[int]
    first: Dict[int, SymbolSet]
    follow: Dict[int, SymbolSet]
    follow_passes: List[Dict[int, int]] = field(default_factory=list)


# ---------- NULLABLE ----------

def _check_kind(bnf: BNF, sid: int) -> SymKind:
    kind = bnf.symbols[sid].kind
    if kind in (SymKind.UNKNOWN, SymKind.NODESYMBOL):
        raise GrammarDefinitionError(
            f"unexpected symbol type {kind.name.lower()} for {bnf.symbols.name_of(sid)!r}")
    return kind


def _settle_nullable(bnf: BNF) -> None:
    """
    아직 UNKNOWN 인 모든 심볼의 nullable 을 확정한다.

    프로덕션마다 "아직 nullable 로 확인되지 않은 우변 심볼 수"를 세어 두고,
    nullable 로 확정된 심볼을 스택에 쌓아 하나씩 꺼내며 카운트를 줄인다.
    카운트가 0이 된 프로덕션의 좌변은 nullable. 끝까지 남은 것은 FALSE.
    (재귀 없이 O(|G|))
    """
    table = bnf.symbols
    prods = bnf.productions()

    stack: List[int] = []
    pending: Dict[int, int] = {}
    users: Dict[int, List[int]] = {}

    def _mark(sid: int) -> None:
        sym = table[sid]
        if sym.nullable is Nullable.UNKNOWN:
            sym.nullable = Nullable.TRUE
            stack.append(sid)

    for sym in table:
        kind = _check_kind(bnf, sym.id)
        if sym.nullable is not Nullable.UNKNOWN:
            if sym.nullable is Nullable.TRUE:
                stack.append(sym.id)
            continue
        if kind in (SymKind.TERMINAL, SymKind.EOFSYMBOL):
            sym.nullable = Nullable.FALSE
        elif kind in (SymKind.OLDACTION, SymKind.SIMPLEACTION):
            _mark(sym.id)

    for p in prods:
        for sid in p.rhs:
            _check_kind(bnf, sid)
        need = [sid for sid in p.rhs if table[sid].nullable is not Nullable.TRUE]
        pending[p.pno] = len(need)
        for sid in need:
            users.setdefault(sid, []).append(p.pno)
        if not need:
            _mark(p.lhs)

    while stack:
        sid = stack.pop()
        for pno in users.pop(sid, ()):
            pending[pno] -= 1
            if pending[pno] == 0:
                _mark(bnf.prod(pno).lhs)

    for sym in table:
        if sym.nullable is Nullable.UNKNOWN:
            sym.nullable = Nullable.FALSE


def is_nullable(bnf: BNF, sid: int) -> bool:
    """심볼 sid 가 ε를 유도하는가. 한 번 계산되면 레코드에 메모이즈되어 재계산하지 않는다."""
    sym = bnf.symbols[sid]
    if sym.nullable is Nullable.UNKNOWN:
        _check_kind(bnf, sid)
        _settle_nullable(bnf)
    return sym.nullable is Nullable.TRUE


# ---------- FIRST ----------

def first_of_sequence(bnf: BNF, seq: Iterable[int]) -> Tuple[SymbolSet, bool]:
    """
    심볼 ID 시퀀스의 FIRST 집합과 '시퀀스 전체가 nullable 인지' 여부.
    compute_nullable_first_follow() 이후에 호출해야 의미가 있다.
    """
    out = SymbolSet()
    for sid in seq:
        out.add_all(bnf.symbols[sid].first)
        if not is_nullable(bnf, sid):
            return out, False
    return out, True


def compute_nullable_first_follow(bnf: BNF) -> FFResult:
    """
    compute_nullable_first_follow
    =============================
    닫힌(close()된) BNF 에 대해 NULLABLE/FIRST/FOLLOW 를 계산해 심볼 레코드에 기록합니다.

    알고리즘 개요
    ------------
    1) NULLABLE : _settle_nullable() (스택 기반, 메모이즈)
    2) FIRST
       - 단말/EOF: FIRST(a) = { a }, 액션 의사심볼: ∅
       - 비단말 A: 모든 A -> α 에 대해 FIRST(α) 합집합, 변화가 없을 때까지 반복
    3) FOLLOW
       - FOLLOW($start), FOLLOW(start) 에 EOF 추가
       - A -> X1 ... Xn 에서 비단말 Xi 마다
           FOLLOW(Xi) ⊇ FIRST(Xi+1 ... Xn)
           Xi+1 ... Xn 이 모두 nullable 이면 FOLLOW(Xi) ⊇ FOLLOW(A)
         SymbolSet.add_all 이 변화를 보고하지 않을 때까지 반복
    """
    if not bnf.closed:
        raise GrammarDefinitionError("grammar must be closed before analysis")
    table = bnf.symbols
    prods = bnf.productions()

    # ---------- 1) NULLABLE ----------
    _settle_nullable(bnf)

    # ---------- 2) FIRST ----------
    for sym in table:
        if sym.kind in (SymKind.TERMINAL, SymKind.EOFSYMBOL):
            sym.first.check_in(sym.id)

    changed = True
    while changed:
        changed = False
        for p in prods:
            f_alpha, _ = first_of_sequence(bnf, p.rhs)
            if table[p.lhs].first.add_all(f_alpha):
                changed = True

    # ---------- 3) FOLLOW ----------
    table[bnf.aug_start_id].follow.check_in(table.eof_id)
    table[bnf.start_id].follow.check_in(table.eof_id)

    passes: List[Dict[int, int]] = []
    changed = True
    while changed:
        changed = False
        for p in prods:
            lhs_follow = table[p.lhs].follow
            for i, sid in enumerate(p.rhs):
                x = table[sid]
                if x.kind != SymKind.NONTERMINAL:
                    continue
                f_rest, rest_nullable = first_of_sequence(bnf, p.rhs[i + 1:])
                if x.follow.add_all(f_rest):
                    changed = True
                if rest_nullable and x.follow.add_all(lhs_follow):
                    changed = True
        passes.append({s.id: len(s.follow) for s in table.nonterminals()})

    return FFResult(
        nullable={s.id for s in table.nonterminals() if s.nullable is Nullable.TRUE},
        first={s.id: s.first for s in table},
        follow={s.id: s.follow for s in table.nonterminals()},
        follow_passes=passes,
    )
