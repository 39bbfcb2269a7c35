# lalrtools/lalr/serialise.py
"""컴파일된 파서 테이블의 직렬화/역직렬화.

하나의 Serialiser 가 encode 플래그에 따라 **쓰기/읽기를 같은 코드 경로**로 수행한다.
serialise_symbol() 등은 인코딩과 디코딩 양쪽에서 그대로 호출되며, 필드를 같은 순서로
put 하거나 take 한다. 그래서 형식이 한쪽만 바뀌는 일이 없다.

스트림은 JSON 값(문자열/정수/null)의 평평한 리스트이고, 파일로는
`{"format": ..., "version": ..., "fingerprint": ..., "stream": [...]}` 형태로 저장된다.

스트림 순서
----------
    version
    method, start
    #symbols, (name, id, kind, initialiser, action_text, prec)*
    #labels,  (label, assoc, level)*
    #prods,   (pno, lhs, #rhs, rhs*, action, prec_label)*
    start_state, n_states
    #action,  (state, term, kind, arg)*
    #goto,    (state, nonterm, target)*
    #conflicts, (kind, state, terminal, #prods, prods*, resolution, resolved_by, message)*
    #nonassoc,  (state, terminal, production)*
    n_states × (#items, item*)
"""

from __future__ import annotations
import hashlib
import json
from typing import Any, List, Optional, Tuple

from ..grammar.bnf import BNF, Production
from .errors import LalrToolsError, SerializationError
from .precedence import Precedence
from .symbols import Symbol, SymKind
from .table import ConflictDiagnostic, NonassocViolation, Tables

FORMAT = "lalrtools-tables"
VERSION = "1.0"


class Serialiser:
    """
    값 스트림 위의 대칭 커서.
    - Serialiser()          : 인코딩(빈 스트림에 put)
    - Serialiser(stream)    : 디코딩(스트림에서 take)
    """

    def __init__(self, stream: Optional[List[Any]] = None):
        self.encode = stream is None
        self.stream: List[Any] = [] if stream is None else list(stream)
        self._pos = 0

    def put(self, value: Any) -> None:
        self.stream.append(value)

    def take(self, kind: type, optional: bool = False) -> Any:
        if self._pos >= len(self.stream):
            raise SerializationError(f"truncated table stream at item {self._pos}")
        value = self.stream[self._pos]
        if value is None and optional:
            self._pos += 1
            return None
        # bool 은 int 의 하위형이므로 정확한 형만 허용
        if type(value) is not kind:
            raise SerializationError(
                f"malformed table stream at item {self._pos}: expected {kind.__name__}, "
                f"got {type(value).__name__}")
        self._pos += 1
        return value

    def field(self, value: Any, kind: type, optional: bool = False) -> Any:
        """인코딩이면 value 를 쓰고 그대로, 디코딩이면 읽은 값을 돌려준다."""
        if self.encode:
            self.put(value)
            return value
        return self.take(kind, optional)

    def count(self, n: int) -> int:
        n = self.field(n, int)
        if n < 0:
            raise SerializationError(f"negative count {n} in table stream")
        return n

    def version_check(self) -> None:
        found = self.field(VERSION, str)
        if found != VERSION:
            raise SerializationError(f"expected table format version {VERSION}, found {found}")

    def finish(self) -> None:
        if not self.encode and self._pos != len(self.stream):
            raise SerializationError(
                f"trailing data in table stream ({len(self.stream) - self._pos} items)")


# ---------- 대칭 직렬화 함수들 ----------

def serialise_symbol(s: Serialiser, sym: Optional[Symbol], bnf: BNF) -> Symbol:
    """심볼 하나: 이름, ID, 종류 태그 순서(이후 초기화 코드, 액션 원문, 우선순위)."""
    e = s.encode
    name = s.field(sym.name if e else None, str)
    sid = s.field(sym.id if e else None, int)
    tag = s.field(int(sym.kind) if e else None, int)
    init = s.field(sym.initialiser if e else None, str)
    action_text = s.field(sym.action_text if e else None, str, optional=True)
    has_prec = s.field(int(sym.prec is not None) if e else None, int)
    if has_prec:
        assoc = s.field(sym.prec.assoc if e else None, str)
        level = s.field(sym.prec.level if e else None, int)
    if e:
        return sym

    try:
        kind = SymKind(tag)
    except ValueError:
        raise SerializationError(f"unknown symbol kind tag {tag} for {name!r}") from None
    out = bnf.symbols.restore(name, sid, kind)
    out.initialiser = init
    out.action_text = action_text
    if has_prec:
        out.prec = Precedence(assoc, level)
    return out


def serialise_production(s: Serialiser, p: Optional[Production]) -> Production:
    e = s.encode
    pno = s.field(p.pno if e else None, int)
    lhs = s.field(p.lhs if e else None, int)
    n = s.count(len(p.rhs) if e else 0)
    rhs = [s.field(p.rhs[i] if e else None, int) for i in range(n)]
    action = s.field(p.action if e else None, str, optional=True)
    prec_label = s.field(p.prec_label if e else None, str, optional=True)
    if e:
        return p
    return Production(pno=pno, lhs=lhs, rhs=rhs, action=action, prec_label=prec_label)


def serialise_conflict(s: Serialiser, c: Optional[ConflictDiagnostic]) -> ConflictDiagnostic:
    e = s.encode
    kind = s.field(c.kind if e else None, str)
    state = s.field(c.state if e else None, int)
    terminal = s.field(c.terminal if e else None, int)
    n = s.count(len(c.productions) if e else 0)
    prods = tuple(s.field(c.productions[i] if e else None, int) for i in range(n))
    resolution = s.field(c.resolution if e else None, str)
    resolved_by = s.field(c.resolved_by if e else None, str)
    message = s.field(c.message if e else None, str)
    if e:
        return c
    return ConflictDiagnostic(kind, state, terminal, prods, resolution, resolved_by, message)


def _serialise_all(s: Serialiser, bnf: BNF, tables: Optional[Tables]) -> Tables:
    e = s.encode
    s.version_check()

    method = s.field(tables.method if e else None, str)
    start = s.field(bnf.start if e else None, str)

    syms = list(bnf.symbols) if e else []
    for i in range(s.count(len(syms))):
        serialise_symbol(s, syms[i] if e else None, bnf)

    labels = list(bnf.label_prec.items()) if e else []
    for i in range(s.count(len(labels))):
        label = s.field(labels[i][0] if e else None, str)
        assoc = s.field(labels[i][1].assoc if e else None, str)
        level = s.field(labels[i][1].level if e else None, int)
        if not e:
            bnf.label_prec[label] = Precedence(assoc, level)

    prods = bnf.productions() if e else []
    for i in range(s.count(len(prods))):
        p = serialise_production(s, prods[i] if e else None)
        if not e:
            bnf.restore_production(p)

    start_state = s.field(tables.start_state if e else None, int)
    n_states = s.field(tables.n_states if e else None, int)

    actions = list(tables.action.items()) if e else []
    action = {}
    for i in range(s.count(len(actions))):
        (st, term), (kind, arg) = actions[i] if e else ((None, None), (None, None))
        st = s.field(st, int)
        term = s.field(term, int)
        kind = s.field(kind, str)
        arg = s.field(arg, int)
        action[(st, term)] = (kind, arg)

    gotos = list(tables.goto.items()) if e else []
    goto = {}
    for i in range(s.count(len(gotos))):
        (st, nt), target = gotos[i] if e else ((None, None), None)
        st = s.field(st, int)
        nt = s.field(nt, int)
        goto[(st, nt)] = s.field(target, int)

    conflicts_in = tables.conflicts if e else []
    conflicts = [serialise_conflict(s, conflicts_in[i] if e else None)
                 for i in range(s.count(len(conflicts_in)))]

    nonassoc_in = tables.nonassoc if e else []
    nonassoc = []
    for i in range(s.count(len(nonassoc_in))):
        v = nonassoc_in[i] if e else None
        st = s.field(v.state if e else None, int)
        term = s.field(v.terminal if e else None, int)
        pno = s.field(v.production if e else None, int)
        nonassoc.append(NonassocViolation(st, term, pno))

    items_in = tables.state_items if e else []
    state_items = []
    for i in range(s.count(len(items_in))):
        lines = items_in[i] if e else []
        state_items.append([s.field(lines[j] if e else None, str) for j in range(s.count(len(lines)))])

    s.finish()
    if e:
        return tables

    bnf.close(start)
    return Tables(
        action=action,
        goto=goto,
        start_state=start_state,
        n_states=n_states,
        prod_lhs_ids=[p.lhs for p in bnf.prods],
        prod_rhs_len=[bnf.reduce_len(p) for p in bnf.prods],
        state_items=state_items,
        conflicts=conflicts,
        nonassoc=nonassoc,
        method=method,
    )


# ---------- 공개 API ----------

def encode_tables(bnf: BNF, tables: Tables) -> List[Any]:
    s = Serialiser()
    _serialise_all(s, bnf, tables)
    return s.stream


def decode_tables(stream: List[Any]) -> Tuple[BNF, Tables]:
    """스트림 → (새 BNF, Tables). 심볼은 스트림 순서대로 새 심볼테이블에 재등록된다."""
    bnf = BNF()
    try:
        tables = _serialise_all(Serialiser(stream), bnf, None)
    except SerializationError:
        raise
    except (KeyError, ValueError, LalrToolsError) as e:
        # 형식은 맞지만 내용이 어긋난 스트림(없는 ID, 잘못된 결합성, 번호 충돌 등)
        raise SerializationError(f"malformed table stream: {e}") from None
    return bnf, tables


def fingerprint(grammar_text: str) -> str:
    """문법 원문의 SHA-256 (캐시 일치 판정용)."""
    return hashlib.sha256(grammar_text.encode("utf-8")).hexdigest()


def dumps(bnf: BNF, tables: Tables, grammar_fingerprint: str = "") -> str:
    return json.dumps({
        "format": FORMAT,
        "version": VERSION,
        "fingerprint": grammar_fingerprint,
        "stream": encode_tables(bnf, tables),
    }, ensure_ascii=False)


def _container(text: str) -> dict:
    try:
        doc = json.loads(text)
    except json.JSONDecodeError as e:
        raise SerializationError(f"table file is not valid JSON: {e}") from None
    if not isinstance(doc, dict) or doc.get("format") != FORMAT:
        raise SerializationError(f"not a {FORMAT} file")
    if doc.get("version") != VERSION:
        raise SerializationError(
            f"expected table format version {VERSION}, found {doc.get('version')}")
    if not isinstance(doc.get("stream"), list):
        raise SerializationError("table file has no stream")
    return doc


def loads(text: str) -> Tuple[BNF, Tables, str]:
    """dumps() 의 역. (BNF, Tables, 문법 fingerprint)"""
    doc = _container(text)
    bnf, tables = decode_tables(doc["stream"])
    return bnf, tables, str(doc.get("fingerprint") or "")


def read_fingerprint(text: str) -> str:
    """스트림을 디코드하지 않고 fingerprint 만 꺼낸다."""
    return str(_container(text).get("fingerprint") or "")
