# table.py
"""파서 테이블 컨테이너와 충돌/비결합 진단 레코드."""
from __future__ import annotations
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional, Tuple

SHIFT, REDUCE, ACCEPT, NONASSOC = "s", "r", "acc", "nonassoc"


@dataclass(frozen=True)
class ConflictDiagnostic:
    """
    충돌 1건에 대한 진단(비치명적).
    - kind        : 'shift/reduce' | 'reduce/reduce'
    - state       : 상태 번호
    - terminal    : 룩어헤드 단말 ID
    - productions : 관련 프로덕션 번호들(첫 원소가 채택/비교 대상)
    - resolution  : 'shift' | 'reduce' | 'nonassoc'
    - resolved_by : 'default'(정책) | 'precedence' | 'follow'(가짜 충돌)
    - message     : 사람이 읽는 문장
    """
    kind: str
    state: int
    terminal: int
    productions: Tuple[int, ...]
    resolution: str
    resolved_by: str
    message: str


@dataclass(frozen=True)
class NonassocViolation:
    """비결합 연산자 연쇄. 빌드 시에는 기록만 하고, 생성된 파서가 실행 중 에러를 낸다."""
    state: int
    terminal: int
    production: int


DiagnosticSink = Callable[[ConflictDiagnostic], None]


@dataclass
class Tables:
    """
    Tables
    ======
    LALR(1)/SLR(1) 파서 테이블과 디버그 정보를 담는 컨테이너.

    필드
    ----
    - action: (state, term_id) -> ('s', next) | ('r', pno) | ('acc', 0) | ('nonassoc', pno)
    - goto  : (state, nonterm_id) -> next_state
    - start_state : 시작 상태(I0) 번호
    - n_states    : 전체 상태 수
    - prod_lhs_ids: 프로덕션 번호별 LHS 심볼 ID (0번 = 증강 프로덕션)
    - prod_rhs_len: 프로덕션 번호별 reduce 시 pop 할 길이(액션 의사심볼 제외)
    - state_items : 디버깅용. 상태별 아이템 문자열 리스트
    - conflicts   : ConflictDiagnostic 리스트(빌드를 멈추지 않음)
    - nonassoc    : NonassocViolation 리스트
    - method      : 'lalr' | 'slr'
    """
    action: Dict[Tuple[int, int], Tuple[str, int]]
    goto: Dict[Tuple[int, int], int]
    start_state: int
    n_states: int
    prod_lhs_ids: List[int]
    prod_rhs_len: List[int]
    state_items: List[List[str]] = field(default_factory=list)
    conflicts: List[ConflictDiagnostic] = field(default_factory=list)
    nonassoc: List[NonassocViolation] = field(default_factory=list)
    method: str = "lalr"

    def unresolved(self) -> List[ConflictDiagnostic]:
        """precedence 로 해소되지 못하고 기본 정책으로 결정된 충돌만."""
        return [c for c in self.conflicts if c.resolved_by == "default"]

    def row(self, state: int) -> Dict[int, Tuple[str, int]]:
        """한 상태의 ACTION/GOTO를 심볼 ID 기준으로 합쳐서 돌려준다(goto는 ('g', n))."""
        out: Dict[int, Tuple[str, int]] = {}
        for (st, sid), act in self.action.items():
            if st == state:
                out[sid] = act
        for (st, sid), nxt in self.goto.items():
            if st == state:
                out[sid] = ("g", nxt)
        return dict(sorted(out.items()))

    def pretty_conflicts(self, id_to_name: Callable[[int], str],
                         only_unresolved: bool = False) -> str:
        """
        충돌 목록을 사람이 읽기 좋은 문자열로 변환합니다.

        Parameters
        ----------
        id_to_name : Callable[[int], str]
            심볼 ID를 이름으로 바꾸는 콜백(SymbolTable.name_of 등).
        only_unresolved : bool
            True면 기본 정책으로 결정된 충돌만 출력.
        """
        items = self.unresolved() if only_unresolved else self.conflicts
        if not items:
            return "(no conflicts)"
        lines: List[str] = []
        for c in items:
            try:
                sym_name = id_to_name(c.terminal)
            except KeyError:
                sym_name = f"#{c.terminal}"
            prods = ", ".join(str(p) for p in c.productions)
            lines.append(f"state {c.state}, on {sym_name}: {c.kind} ({prods}) -> "
                         f"{c.resolution} [{c.resolved_by}]")
        return "\n".join(lines)


def collect_into(bucket: List[ConflictDiagnostic],
                 sink: Optional[DiagnosticSink] = None) -> DiagnosticSink:
    """진단을 bucket에 모으고, sink가 있으면 그쪽으로도 흘려보내는 콜백을 만든다."""
    def _emit(diag: ConflictDiagnostic) -> None:
        bucket.append(diag)
        if sink is not None:
            sink(diag)
    return _emit
