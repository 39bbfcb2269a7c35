# lalrtools/lex/nfa.py
"""NFA 노드 풀과 지연(lazy) DFA 매처.

- NfaBuilder 한 개가 노드 풀과 "사용된 문자" 집합을 **소유**한다.
  (빌드마다 새로 만들어 쓰며 전역 상태를 두지 않는다)
- Nfa.match()/scan() 은 NFA 노드 집합을 DFA 상태로 캐시해 가며 입력을 훑는다.
  한 번 본 (상태, 문자) 전이는 다시 계산하지 않는다.
- 수락 노드에는 (우선순위, 토큰 이름)이 붙고, 숫자가 작을수록 우선한다.
  최장 일치가 먼저이고, 같은 길이에서만 우선순위로 가른다.
"""

from __future__ import annotations
from typing import Dict, FrozenSet, Iterable, List, Optional, Sequence, Set, Tuple

from .regex import Fragment

Accept = Tuple[int, str]   # (priority, token name)


class NfaNode:
    __slots__ = ("id", "arcs", "preds", "eps", "accept")

    def __init__(self, id_: int):
        self.id = id_
        self.arcs: List[Tuple[str, "NfaNode"]] = []     # 문자 아크
        self.preds: List[Tuple[Fragment, "NfaNode"]] = []  # 범위/범주 아크 (test(ch) 보유)
        self.eps: List["NfaNode"] = []
        self.accept: Optional[Accept] = None

    def add_arc(self, ch: str, nxt: "NfaNode") -> None:
        self.arcs.append((ch, nxt))

    def add_pred(self, pred: Fragment, nxt: "NfaNode") -> None:
        self.preds.append((pred, nxt))

    def add_eps(self, nxt: "NfaNode") -> None:
        self.eps.append(nxt)

    def __repr__(self) -> str:
        return f"NfaNode({self.id}, arcs={len(self.arcs)}, preds={len(self.preds)}, eps={len(self.eps)})"


class NfaBuilder:
    """조각들을 NFA로 컴파일한다."""

    def __init__(self) -> None:
        self.nodes: List[NfaNode] = []
        self.used_chars: Set[str] = set()

    def new_node(self) -> NfaNode:
        node = NfaNode(len(self.nodes))
        self.nodes.append(node)
        return node

    def using_char(self, ch: str) -> None:
        self.used_chars.add(ch)

    def build(self, frag: Fragment) -> "Nfa":
        """조각 하나짜리 NFA (시작 노드 1개, 끝 노드 1개)."""
        start, end = self.new_node(), self.new_node()
        frag.build(self, start, end)
        end.accept = (0, "")
        return Nfa(self, start)

    def build_lexer(self, rules: Sequence[Tuple[str, Fragment]]) -> "Nfa":
        """
        (토큰 이름, 조각) 목록을 하나의 NFA로 묶는다.
        목록 순서가 곧 우선순위(앞쪽이 강함)이다.
        """
        start = self.new_node()
        for prio, (name, frag) in enumerate(rules):
            s, e = self.new_node(), self.new_node()
            start.add_eps(s)
            frag.build(self, s, e)
            e.accept = (prio, name)
        return Nfa(self, start)


class DfaState:
    """NFA 노드 집합 하나. moves 는 문자별 전이 캐시(None = 막힘)."""
    __slots__ = ("nodes", "accept", "moves")

    def __init__(self, nodes: FrozenSet[int], accept: Optional[Accept]):
        self.nodes = nodes
        self.accept = accept
        self.moves: Dict[str, Optional["DfaState"]] = {}


class Nfa:
    def __init__(self, builder: NfaBuilder, start: NfaNode):
        self.builder = builder
        self.start = start
        self._cache: Dict[FrozenSet[int], DfaState] = {}
        self._initial = self._state(self._closure([start]))

    @property
    def dfa_size(self) -> int:
        """지금까지 만들어진 DFA 상태 수."""
        return len(self._cache)

    def _closure(self, seeds: Iterable[NfaNode]) -> FrozenSet[int]:
        seen: Set[int] = set()
        stack = list(seeds)
        while stack:
            node = stack.pop()
            if node.id in seen:
                continue
            seen.add(node.id)
            stack.extend(node.eps)
        return frozenset(seen)

    def _state(self, key: FrozenSet[int]) -> DfaState:
        st = self._cache.get(key)
        if st is None:
            accepts = [self.builder.nodes[i].accept for i in key
                       if self.builder.nodes[i].accept is not None]
            st = DfaState(key, min(accepts) if accepts else None)
            self._cache[key] = st
        return st

    def _step(self, st: DfaState, ch: str) -> Optional[DfaState]:
        if ch in st.moves:
            return st.moves[ch]
        targets: List[NfaNode] = []
        for i in st.nodes:
            node = self.builder.nodes[i]
            for c, nxt in node.arcs:
                if c == ch:
                    targets.append(nxt)
            for pred, nxt in node.preds:
                if pred.test(ch):
                    targets.append(nxt)
        res = self._state(self._closure(targets)) if targets else None
        st.moves[ch] = res
        return res

    def scan(self, text: str, pos: int = 0,
             max_length: Optional[int] = None) -> Optional[Tuple[int, Accept]]:
        """
        pos 에서 시작하는 최장 일치의 (길이, 수락 정보). 없으면 None.
        max_length 는 절대 끝 위치(pos + 길이 <= max_length)로 해석한다.
        """
        limit = len(text) if max_length is None else min(max_length, len(text))
        if pos < 0 or pos > limit:
            return None
        st = self._initial
        best = (0, st.accept) if st.accept is not None else None
        i = pos
        while i < limit:
            st = self._step(st, text[i])
            if st is None:
                break
            i += 1
            if st.accept is not None:
                best = (i - pos, st.accept)
        return best

    def match(self, text: str, pos: int = 0, max_length: Optional[int] = None) -> Optional[int]:
        """최장 일치 길이. 매치가 없으면 None (0은 '빈 매치'로 구별된다)."""
        hit = self.scan(text, pos, max_length)
        return None if hit is None else hit[0]
