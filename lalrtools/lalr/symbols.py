"""심볼에 정수 ID를 부여하고 이름 ↔ 레코드를 관리합니다."""
from __future__     import annotations
from dataclasses    import dataclass, field
from enum           import Enum, IntEnum
from typing         import Dict, Iterable, Iterator, List, Optional, TYPE_CHECKING

from .errors import GrammarDefinitionError

if TYPE_CHECKING:
    from .precedence import Precedence


# EOF는 2번 고정. 역사적 관례(런타임과의 호환)일 뿐 별도의 "예약 ID 체계"는 없다.
EOF_NAME = "EOF"
EOF_ID = 2


class SymKind(IntEnum):
    """심볼 종류. 정수값은 직렬화 태그로 그대로 쓰이므로 순서를 바꾸지 말 것."""
    UNKNOWN      = 0
    TERMINAL     = 1
    NONTERMINAL  = 2
    NODESYMBOL   = 3
    OLDACTION    = 4
    SIMPLEACTION = 5
    EOFSYMBOL    = 6


class Nullable(Enum):
    UNKNOWN = "unknown"
    TRUE    = "true"
    FALSE   = "false"


class SymbolSet:
    """
    심볼 ID 집합.
    - check_in / add_all 은 **실제로 원소가 늘었는지**를 bool로 돌려준다.
      (고정점 루프의 종료 판정에 사용)
    - 삽입 순서를 보존하므로 반복 순서가 결정적이다.
    """
    __slots__ = ("_ids",)

    def __init__(self, ids: Iterable[int] = ()):
        self._ids: Dict[int, None] = dict.fromkeys(ids)

    def __contains__(self, sid: int) -> bool:
        return sid in self._ids

    def __iter__(self) -> Iterator[int]:
        return iter(self._ids)

    def __len__(self) -> int:
        return len(self._ids)

    def __eq__(self, other) -> bool:
        if not isinstance(other, SymbolSet):
            return NotImplemented
        return self._ids.keys() == other._ids.keys()

    def __repr__(self) -> str:
        return f"SymbolSet({list(self._ids)})"

    def check_in(self, sid: int) -> bool:
        if sid in self._ids:
            return False
        self._ids[sid] = None
        return True

    def add_all(self, other: Iterable[int]) -> bool:
        if other is self:
            return False
        changed = False
        for sid in other:
            if sid not in self._ids:
                self._ids[sid] = None
                changed = True
        return changed

    def copy(self) -> "SymbolSet":
        return SymbolSet(self._ids)


@dataclass(eq=False)
class Symbol:
    """
    문법 심볼 1개. 동일 이름에 대해 SymbolTable 안에 **정확히 하나**만 존재한다.

    - id        : resolve 전에는 -1, 이후 한 번만 부여
    - prods     : (비단말) 이 심볼을 좌변으로 갖는 프로덕션 번호들, 선언 순서
    - nullable  : 3-상태 메모이즈 값. 한 번 계산되면 다시 계산하지 않는다.
    - first/follow : 분석기(first_follow)가 채운다.
    - action_text  : 액션 의사 심볼(oldaction/simpleaction)의 원문 코드
    """
    name: str
    id: int = -1
    kind: SymKind = SymKind.UNKNOWN
    prec: Optional["Precedence"] = None
    initialiser: str = ""
    prods: List[int] = field(default_factory=list)
    nullable: Nullable = Nullable.UNKNOWN
    first: SymbolSet = field(default_factory=SymbolSet)
    follow: SymbolSet = field(default_factory=SymbolSet)
    action_text: Optional[str] = None

    def is_terminal(self) -> bool:
        return self.kind == SymKind.TERMINAL

    def is_nonterminal(self) -> bool:
        return self.kind == SymKind.NONTERMINAL

    def is_action(self) -> bool:
        return self.kind in (SymKind.OLDACTION, SymKind.SIMPLEACTION)

    def is_eof(self) -> bool:
        return self.kind == SymKind.EOFSYMBOL

    def __repr__(self) -> str:
        return f"Symbol({self.name!r}, id={self.id}, kind={self.kind.name.lower()})"


class SymbolTable:
    """
    SymbolTable
    ===========
    심볼 **이름 → 정수 ID → 레코드** 를 관리하는 인턴(intern) 레지스트리입니다.
    문법 1개(빌드 1회)당 하나씩 만들어 쓰며, 전역 상태를 두지 않습니다.

    설계 원칙
    --------
    - resolve(name)은 이미 있는 이름이면 **같은 레코드(동일 객체)** 를 돌려주고,
      없으면 다음 ID를 발급해 새로 등록합니다. 실패하지 않습니다.
    - ID 카운터는 2에서 시작해 선증가하므로 첫 사용자 심볼은 3번입니다.
    - 'EOF'는 항상 **2번**으로 강제 배정됩니다(생성 시 자동 등록).
    - 레코드는 ID를 인덱스로 하는 리스트에 저장되므로 조회는 O(1)입니다.
      (0, 1번 슬롯은 비어 있음)
    - freeze() 이후에는 새 이름을 등록할 수 없습니다.
    """

    def __init__(self) -> None:
        self._name_to_id: Dict[str, int] = {}
        self._records: List[Optional[Symbol]] = [None] * (EOF_ID + 1)
        self._last = EOF_ID
        self._frozen = False
        self.resolve(EOF_NAME, SymKind.EOFSYMBOL)

    # ----- 등록 -----
    def resolve(self, name: str, kind: SymKind = SymKind.UNKNOWN) -> Symbol:
        """
        이름을 정규 레코드로 해석합니다.
        kind가 주어지고 기존 레코드가 UNKNOWN이면 종류를 확정합니다.
        """
        sid = self._name_to_id.get(name)
        if sid is not None:
            sym = self._records[sid]
            if kind != SymKind.UNKNOWN and sym.kind == SymKind.UNKNOWN:
                sym.kind = kind
            return sym

        if self._frozen:
            raise GrammarDefinitionError(f"symbol table is frozen; cannot register {name!r}")

        if name == EOF_NAME:
            new_id = EOF_ID
            kind = SymKind.EOFSYMBOL
        else:
            self._last += 1
            new_id = self._last
        sym = Symbol(name=name, id=new_id, kind=kind)
        self._install(sym)
        return sym

    def restore(self, name: str, sid: int, kind: SymKind) -> Symbol:
        """직렬화 스트림에서 읽은 (이름, ID, 종류)를 그대로 재등록합니다."""
        if name in self._name_to_id:
            existing = self._records[self._name_to_id[name]]
            if existing.id != sid:
                raise GrammarDefinitionError(
                    f"symbol {name!r} restored with id {sid}, already has id {existing.id}")
            existing.kind = kind
            return existing
        if sid < len(self._records) and self._records[sid] is not None:
            raise GrammarDefinitionError(
                f"symbol id {sid} collision: {name!r} vs {self._records[sid].name!r}")
        sym = Symbol(name=name, id=sid, kind=kind)
        self._install(sym)
        self._last = max(self._last, sid)
        return sym

    def _install(self, sym: Symbol) -> None:
        while len(self._records) <= sym.id:
            self._records.append(None)
        self._records[sym.id] = sym
        self._name_to_id[sym.name] = sym.id

    def freeze(self) -> None:
        self._frozen = True

    @property
    def frozen(self) -> bool:
        return self._frozen

    # ----- 조회 / 유틸 -----
    def id_of(self, name: str) -> int:
        """심볼 이름을 ID로 변환합니다. 존재하지 않으면 KeyError."""
        return self._name_to_id[name]

    def name_of(self, id_: int) -> str:
        """심볼 ID를 이름으로 변환합니다. 없는 ID면 KeyError."""
        return self[id_].name

    def __getitem__(self, id_: int) -> Symbol:
        sym = self._records[id_] if 0 <= id_ < len(self._records) else None
        if sym is None:
            raise KeyError(id_)
        return sym

    def get(self, name: str) -> Optional[Symbol]:
        sid = self._name_to_id.get(name)
        return None if sid is None else self._records[sid]

    def __contains__(self, name: str) -> bool:
        return name in self._name_to_id

    def __iter__(self) -> Iterator[Symbol]:
        """ID 오름차순으로 순회."""
        return (s for s in self._records if s is not None)

    def __len__(self) -> int:
        return len(self._name_to_id)

    def is_term_id(self, id_: int) -> bool:
        """해당 ID가 단말(EOF 포함)인지 여부."""
        k = self[id_].kind
        return k == SymKind.TERMINAL or k == SymKind.EOFSYMBOL

    def is_nonterm_id(self, id_: int) -> bool:
        return self[id_].kind == SymKind.NONTERMINAL

    def terminals(self) -> List[Symbol]:
        return [s for s in self if s.kind in (SymKind.TERMINAL, SymKind.EOFSYMBOL)]

    def nonterminals(self) -> List[Symbol]:
        return [s for s in self if s.kind == SymKind.NONTERMINAL]

    @property
    def eof_id(self) -> int:
        return EOF_ID

    @property
    def last_id(self) -> int:
        return self._last

    def __repr__(self) -> str:
        terms = [s.name for s in self.terminals()]
        nonterms = [s.name for s in self.nonterminals()]
        return f"SymbolTable(terms={terms}, nonterms={nonterms})"
