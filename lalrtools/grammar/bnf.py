# lalrtools/grammar/bnf.py
"""BNF 프로덕션 모델 + 문법 1개 분량의 빌드 컨텍스트.

BNF 객체 하나가 SymbolTable, 프로덕션 목록, 우선순위 선언을 **소유**한다.
(전역 카운터/싱글턴 없음: 문법을 새로 만들 때마다 BNF()를 새로 만들면 된다)

프로덕션 번호
------------
- 0번은 증강 프로덕션 `$start -> S` 로 예약되며 close() 때 만들어진다.
- 사용자 프로덕션은 선언 순서대로 1번부터 부여된다. 이 순서는
  reduce/reduce 충돌의 기본 우선순위로 쓰이므로 의미가 있다.
"""

from __future__     import annotations
from dataclasses    import dataclass
from typing         import Dict, List, Optional, Sequence, Union

from ..lalr.errors      import GrammarDefinitionError, UnknownSymbolError
from ..lalr.precedence  import Precedence
from ..lalr.symbols     import Symbol, SymbolTable, SymKind

AUG_START = "$start"


@dataclass
class Production:
    """
    BNF 프로덕션 1개.
    - pno       : 프로덕션 번호(유일)
    - lhs       : 좌변 비단말 ID
    - rhs       : 우변 심볼 ID 리스트(단말/비단말/액션 의사심볼). ε는 []
    - action    : 말미 액션 코드 원문(없으면 None)
    - prec_label: %prec 로 지정된 우선순위 라벨(없으면 None)
    """
    pno: int
    lhs: int
    rhs: List[int]
    action: Optional[str] = None
    prec_label: Optional[str] = None


class BNF:
    def __init__(self) -> None:
        self.symbols = SymbolTable()
        self.start: Optional[str] = None
        self.label_prec: Dict[str, Precedence] = {}
        self._by_pno: Dict[int, Production] = {}
        self.prods: List[Production] = []
        self._next_pno = 1
        self._level = 0
        self._action_no = 0
        self._closed = False

    # ---------- 선언 ----------
    def declare_terminal(self, name: str) -> Symbol:
        sym = self.symbols.resolve(name, SymKind.TERMINAL)
        if sym.kind != SymKind.TERMINAL:
            raise GrammarDefinitionError(
                f"{name!r} declared as terminal but already used as {sym.kind.name.lower()}")
        return sym

    def declare_nonterminal(self, name: str, initialiser: str = "") -> Symbol:
        sym = self.symbols.resolve(name, SymKind.NONTERMINAL)
        if sym.kind != SymKind.NONTERMINAL:
            raise GrammarDefinitionError(
                f"{name!r} declared as nonterminal but already used as {sym.kind.name.lower()}")
        if initialiser:
            sym.initialiser = initialiser
        return sym

    def declare_precedence(self, assoc: str, labels: Sequence[str]) -> Precedence:
        """
        %left/%right/%nonassoc 한 줄. 호출할 때마다 레벨이 1씩 올라간다
        (먼저 선언된 쪽이 약하다, yacc 관례).
        라벨은 단말 이름이거나 %prec 전용 가상 라벨일 수 있다.
        """
        self._level += 1
        prec = Precedence(assoc, self._level)
        for label in labels:
            if label in self.label_prec:
                raise GrammarDefinitionError(f"redeclaration of precedence for {label!r}")
            self.label_prec[label] = prec
        return prec

    def new_action(self, text: str, trailing: bool) -> Symbol:
        """액션 블록 하나를 의사 심볼로 등록한다(중간 액션=oldaction, 말미=simpleaction)."""
        self._action_no += 1
        kind = SymKind.SIMPLEACTION if trailing else SymKind.OLDACTION
        sym = self.symbols.resolve(f"%action{self._action_no}", kind)
        sym.action_text = text
        return sym

    def add_production(
        self,
        lhs: str,
        rhs: Sequence[Union[str, Symbol]],
        action: Optional[str] = None,
        prec: Optional[str] = None,
    ) -> Production:
        """
        lhs -> rhs 프로덕션을 추가한다.
        rhs 원소는 심볼 이름(str) 또는 new_action()으로 만든 Symbol.
        action이 주어지면 말미 simpleaction 심볼을 덧붙인다.
        """
        if self._closed:
            raise GrammarDefinitionError("grammar is closed; cannot add productions")
        if not lhs:
            raise GrammarDefinitionError("malformed production: empty left-hand side")

        lhs_sym = self.symbols.resolve(lhs, SymKind.NONTERMINAL)
        if lhs_sym.kind != SymKind.NONTERMINAL:
            raise GrammarDefinitionError(
                f"malformed production: {lhs!r} ({lhs_sym.kind.name.lower()}) on left-hand side")

        ids: List[int] = []
        for item in rhs:
            if isinstance(item, Symbol):
                if self.symbols.get(item.name) is not item:
                    raise GrammarDefinitionError(
                        f"malformed right-hand side of {lhs!r}: foreign symbol {item.name!r}")
                sym = item
            else:
                if not item:
                    raise GrammarDefinitionError(f"malformed right-hand side of {lhs!r}: empty name")
                sym = self.symbols.resolve(item)
            if sym.kind == SymKind.EOFSYMBOL:
                raise GrammarDefinitionError(
                    f"malformed right-hand side of {lhs!r}: EOF may not appear in a production")
            ids.append(sym.id)

        if action is not None:
            ids.append(self.new_action(action, trailing=True).id)

        pno = self._next_pno
        self._next_pno += 1
        p = Production(pno=pno, lhs=lhs_sym.id, rhs=ids, action=action, prec_label=prec)
        self._register(p)
        if self.start is None:
            self.start = lhs
        return p

    def restore_production(self, p: Production) -> Production:
        """직렬화 스트림에서 읽은 프로덕션을 번호 그대로 재등록한다."""
        self._register(p)
        self._next_pno = max(self._next_pno, p.pno + 1)
        return p

    def _register(self, p: Production) -> None:
        if p.pno in self._by_pno:
            raise GrammarDefinitionError(
                f"duplicate production number {p.pno}: "
                f"{self.format_production(self._by_pno[p.pno])} vs {self.format_production(p)}")
        self._by_pno[p.pno] = p
        lhs_sym = self.symbols[p.lhs]
        lhs_sym.prods.append(p.pno)

    # ---------- 마감 ----------
    def close(self, start: Optional[str] = None) -> "BNF":
        """
        문법을 확정한다.
        - UNKNOWN 으로 남은 참조 → UnknownSymbolError
        - 프로덕션 없는 비단말 → GrammarDefinitionError
        - 우선순위 라벨을 단말 레코드에 연결
        - 증강 프로덕션 0번 `$start -> S` 생성
        - 프로덕션 번호가 0..n-1 로 연속인지 검사 후 심볼테이블 동결
        """
        if self._closed:
            return self
        if start is not None:
            self.start = start
        if self.start is None:
            raise GrammarDefinitionError("grammar has no productions")

        for p in self._by_pno.values():
            for sid in p.rhs:
                sym = self.symbols[sid]
                if sym.kind == SymKind.UNKNOWN:
                    raise UnknownSymbolError(sym.name, f"production {p.pno}: {self.format_production(p)}")

        for sym in self.symbols:
            if sym.kind == SymKind.UNKNOWN:
                raise UnknownSymbolError(sym.name)
            if sym.kind == SymKind.NONTERMINAL and not sym.prods and sym.name != AUG_START:
                raise GrammarDefinitionError(f"nonterminal {sym.name!r} has no productions")

        start_sym = self.symbols.get(self.start)
        if start_sym is None or start_sym.kind != SymKind.NONTERMINAL:
            raise GrammarDefinitionError(f"start symbol {self.start!r} is not a nonterminal")

        for label, prec in self.label_prec.items():
            sym = self.symbols.get(label)
            if sym is not None and sym.kind == SymKind.TERMINAL:
                sym.prec = prec

        if 0 not in self._by_pno:
            aug = self.symbols.resolve(AUG_START, SymKind.NONTERMINAL)
            self._register(Production(pno=0, lhs=aug.id, rhs=[start_sym.id]))

        n = len(self._by_pno)
        if sorted(self._by_pno) != list(range(n)):
            missing = sorted(set(range(n)) - set(self._by_pno))
            raise GrammarDefinitionError(f"production numbers are not contiguous (missing {missing})")

        self.prods = [self._by_pno[i] for i in range(n)]
        self.symbols.freeze()
        self._closed = True
        return self

    @property
    def closed(self) -> bool:
        return self._closed

    # ---------- 조회 ----------
    def productions(self) -> List[Production]:
        """번호 순 프로덕션 목록(마감 전에는 증강 프로덕션 없음)."""
        return [self._by_pno[k] for k in sorted(self._by_pno)]

    def prod(self, pno: int) -> Production:
        return self._by_pno[pno]

    @property
    def start_id(self) -> int:
        return self.symbols.id_of(self.start)

    @property
    def aug_start_id(self) -> int:
        return self.symbols.id_of(AUG_START)

    def production_prec(self, p: Production) -> Optional[Precedence]:
        """명시적 %prec 가 우선, 없으면 오른쪽 끝 단말의 우선순위."""
        if p.prec_label is not None:
            return self.label_prec.get(p.prec_label)
        for sid in reversed(p.rhs):
            sym = self.symbols[sid]
            if sym.kind == SymKind.TERMINAL:
                return sym.prec
        return None

    def reduce_len(self, p: Production) -> int:
        """reduce 때 스택에서 걷어낼 심볼 수(액션 의사심볼 제외)."""
        return sum(1 for sid in p.rhs if not self.symbols[sid].is_action())

    def format_production(self, p: Production, dot: Optional[int] = None) -> str:
        names = [self.symbols.name_of(sid) for sid in p.rhs]
        if dot is not None:
            names.insert(dot, "·")
        rhs = " ".join(names) if names else "ε"
        return f"{self.symbols.name_of(p.lhs)} -> {rhs}"

    def __repr__(self) -> str:
        return (f"BNF(start={self.start!r}, prods={len(self._by_pno)}, "
                f"symbols={len(self.symbols)})")
