# lalrtools/lalr/lookahead.py
"""LALR(1) 룩어헤드 계산 (DeRemer & Pennello, 1982).

LR(0) 오토마톤의 **비단말 전이** (p, A) 를 노드로 삼아

    DR(p,A)     = goto(p,A) 에서 shift 가능한 단말들
    reads       : (p,A) → (r,C)   r = goto(p,A), C 는 nullable 이고 r 에서 C 전이 존재
    Read        = digraph(DR, reads)
    includes    : (p,A) → (p',B)  B -> β A γ, γ ⇒* ε, p' --β--> p
    Follow      = digraph(Read, includes)
    lookback    : (q, B -> ω) → (p',B)   p' --ω--> q
    LA(q, ω)    = ∪ Follow(p',B)

를 차례로 구한다. 액션 의사심볼은 오토마톤에서 전이를 만들지 않으므로 경로를 걸을 때 건너뛴다.
digraph 는 재귀 대신 명시적 호출 스택으로 구현되어 있어 큰 문법에서도 안전하다.
"""

from __future__ import annotations
from typing import Dict, Hashable, Iterable, List, Tuple, TYPE_CHECKING

from .first_follow import first_of_sequence, is_nullable
from .symbols import SymbolSet, SymKind

if TYPE_CHECKING:
    from ..grammar.bnf import BNF
    from .items import ParseState

NtTrans = Tuple[int, int]   # (state, nonterminal id)

_INF = 1 << 30


def digraph(
    nodes: Iterable[Hashable],
    edges: Dict[Hashable, List[Hashable]],
    init: Dict[Hashable, SymbolSet],
) -> Dict[Hashable, SymbolSet]:
    """
    F(x) = init(x) ∪ ∪{ F(y) | x → y } 의 최소 해.
    강연결요소 안의 노드들은 같은 집합을 공유한다(Tarjan 방식).
    """
    depth: Dict[Hashable, int] = {}
    out: Dict[Hashable, SymbolSet] = {x: init[x].copy() for x in init}
    stack: List[Hashable] = []

    for root in nodes:
        if depth.get(root, 0) != 0:
            continue
        stack.append(root)
        depth[root] = len(stack)
        calls = [(root, iter(edges.get(root, ())), len(stack))]

        while calls:
            x, it, d = calls[-1]
            descended = False
            for y in it:
                if depth.get(y, 0) == 0:
                    stack.append(y)
                    depth[y] = len(stack)
                    calls.append((y, iter(edges.get(y, ())), len(stack)))
                    descended = True
                    break
                depth[x] = min(depth[x], depth[y])
                out[x].add_all(out[y])
            if descended:
                continue

            calls.pop()
            if depth[x] == d:
                while True:
                    top = stack.pop()
                    depth[top] = _INF
                    if top == x:
                        break
                    out[top] = out[x].copy()
            if calls:
                parent = calls[-1][0]
                depth[parent] = min(depth[parent], depth[x])
                out[parent].add_all(out[x])
    return out


def compute_lalr_lookaheads(
    bnf: "BNF", states: List["ParseState"]
) -> Dict[Tuple[int, int], SymbolSet]:
    """(state, pno) → LALR(1) 룩어헤드 단말 집합. 증강 프로덕션(0번)은 제외."""
    table = bnf.symbols
    eof = table.eof_id

    nt_trans: List[NtTrans] = []
    for st in states:
        for sid in st.transitions:
            if table[sid].kind == SymKind.NONTERMINAL:
                nt_trans.append((st.number, sid))

    # ---- DR / reads ----
    dr: Dict[NtTrans, SymbolSet] = {}
    reads: Dict[NtTrans, List[NtTrans]] = {}
    for (p, a) in nt_trans:
        r = states[states[p].transitions[a]]
        direct = SymbolSet()
        for sid in r.transitions:
            if table.is_term_id(sid):
                direct.check_in(sid)
            elif is_nullable(bnf, sid):
                reads.setdefault((p, a), []).append((r.number, sid))
        if r.accepts:
            direct.check_in(eof)
        dr[(p, a)] = direct

    read_sets = digraph(nt_trans, reads, dr)

    # ---- includes / lookback ----
    includes: Dict[NtTrans, List[NtTrans]] = {}
    lookback: Dict[Tuple[int, int], List[NtTrans]] = {}
    for (p0, b) in nt_trans:
        for pno in table[b].prods:
            rhs = bnf.prod(pno).rhs
            cur = p0
            for i, sid in enumerate(rhs):
                sym = table[sid]
                if sym.is_action():
                    continue
                if sym.kind == SymKind.NONTERMINAL:
                    _, rest_nullable = first_of_sequence(bnf, rhs[i + 1:])
                    if rest_nullable:
                        includes.setdefault((cur, sid), []).append((p0, b))
                cur = states[cur].transitions[sid]
            lookback.setdefault((cur, pno), []).append((p0, b))

    follow_sets = digraph(nt_trans, includes, read_sets)

    la: Dict[Tuple[int, int], SymbolSet] = {}
    for key, sources in lookback.items():
        acc = la.setdefault(key, SymbolSet())
        for src in sources:
            acc.add_all(follow_sets[src])
    return la
