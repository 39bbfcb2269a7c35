# lalrtools/lex/regex.py
"""렉서용 정규식 조각(fragment)과 그 텍스트 문법 파서.

문법
----
    "abc"  'abc'     인용 리터럴 (\\r \\t \\v \\n \\0 \\\\ \\" \\' 이스케이프)
    \\c              문자 이스케이프 (\\n \\t \\r \\v, \\d \\s \\w 는 문자 클래스)
    [a-z_] [^\\n]    문자 범위 / 부정 범위 (\\177 같은 8진 이스케이프 허용)
    .               개행을 제외한 모든 문자 (= [^\\n])
    ( ... )         그룹
    X? X* X+        후위 반복
    A|B             선택 (가장 낮은 결합)
    AB              연접
    {Name}          이름 정의 확장, 정의가 없으면 유니코드 범주(\\p{Name})
    그 밖의 문자     그 문자 하나

잘못된 식은 SyntaxError("ill-formed regular expression ...").
조각들은 NfaBuilder 위에서만 노드를 만든다(전역 상태 없음).
"""

from __future__ import annotations
from typing import Dict, FrozenSet, List, Optional, Tuple, TYPE_CHECKING

import regex as _uregex

if TYPE_CHECKING:
    from .nfa import NfaBuilder, NfaNode

_SIMPLE_ESCAPES = {"r": "\r", "t": "\t", "v": "\v", "n": "\n", "0": "\0"}


# ---------- 조각 ----------

class Fragment:
    """정규식 조각의 공통 부모. build()는 start → end 사이에 NFA 경로를 만든다."""

    _nfa = None

    def build(self, nb: "NfaBuilder", start: "NfaNode", end: "NfaNode") -> None:
        raise NotImplementedError

    def match(self, text: str, pos: int = 0, max_length: Optional[int] = None) -> Optional[int]:
        """
        text[pos:] 에서 이 조각이 매치하는 **가장 긴** 길이. 매치가 없으면 None.
        max_length 는 절대 끝 위치로 해석한다(pos + 길이 <= max_length).
        """
        from .nfa import NfaBuilder
        nfa = self._nfa
        if nfa is None:
            nfa = NfaBuilder().build(self)
            self._nfa = nfa
        return nfa.match(text, pos, max_length)


class Empty(Fragment):
    def build(self, nb, start, end) -> None:
        start.add_eps(end)

    def __repr__(self) -> str:
        return "Empty()"


class Literal(Fragment):
    """문자열 리터럴. 문자마다 아크 1개, 끝에서 ε로 조각의 끝 노드에 연결."""

    def __init__(self, text: str):
        self.text = text

    def build(self, nb, start, end) -> None:
        node = start
        for ch in self.text:
            nb.using_char(ch)
            nxt = nb.new_node()
            node.add_arc(ch, nxt)
            node = nxt
        node.add_eps(end)

    def match(self, text: str, pos: int = 0, max_length: Optional[int] = None) -> Optional[int]:
        limit = len(text) if max_length is None else min(max_length, len(text))
        n = len(self.text)
        if pos < 0 or pos + n > limit:
            return None
        return n if text.startswith(self.text, pos) else None

    def __repr__(self) -> str:
        return f"Literal({self.text!r})"


class CharRange(Fragment):
    """[...] 문자 집합. 구간은 (lo, hi) 코드포인트 쌍으로 보관한다."""

    def __init__(self, spans: List[Tuple[int, int]], invert: bool = False):
        self.spans = spans
        self.invert = invert

    def test(self, ch: str) -> bool:
        c = ord(ch)
        hit = any(lo <= c <= hi for lo, hi in self.spans)
        return hit != self.invert

    def chars(self) -> FrozenSet[str]:
        return frozenset(chr(c) for lo, hi in self.spans for c in range(lo, hi + 1))

    def build(self, nb, start, end) -> None:
        # 반전 집합은 제외 문자만 알고 있으므로 사용 문자로 등록하지 않는다
        if not self.invert:
            for ch in self.chars():
                nb.using_char(ch)
        start.add_pred(self, end)

    def __repr__(self) -> str:
        body = "".join(chr(lo) if lo == hi else f"{chr(lo)}-{chr(hi)}" for lo, hi in self.spans)
        return f"CharRange({'^' if self.invert else ''}{body!r})"


class Category(Fragment):
    """유니코드 범주/속성 하나. `regex` 의 \\p{...} 로 판정한다."""

    def __init__(self, name: str):
        self.name = name
        try:
            self._re = _uregex.compile(r"\p{%s}" % name)
        except _uregex.error as e:
            raise SyntaxError(f"unknown unicode category {{{name}}}: {e}") from None

    def test(self, ch: str) -> bool:
        return self._re.fullmatch(ch) is not None

    def build(self, nb, start, end) -> None:
        start.add_pred(self, end)

    def __repr__(self) -> str:
        return f"Category({self.name!r})"


class Concat(Fragment):
    def __init__(self, parts: List[Fragment]):
        self.parts = parts

    def build(self, nb, start, end) -> None:
        if not self.parts:
            start.add_eps(end)
            return
        node = start
        for part in self.parts[:-1]:
            mid = nb.new_node()
            part.build(nb, node, mid)
            node = mid
        self.parts[-1].build(nb, node, end)

    def __repr__(self) -> str:
        return f"Concat({self.parts!r})"


class Alt(Fragment):
    def __init__(self, options: List[Fragment]):
        self.options = options

    def build(self, nb, start, end) -> None:
        for opt in self.options:
            s, e = nb.new_node(), nb.new_node()
            start.add_eps(s)
            opt.build(nb, s, e)
            e.add_eps(end)

    def __repr__(self) -> str:
        return f"Alt({self.options!r})"


class _Repeat(Fragment):
    zero_ok = False
    many = False

    def __init__(self, sub: Fragment):
        self.sub = sub

    def build(self, nb, start, end) -> None:
        s, e = nb.new_node(), nb.new_node()
        start.add_eps(s)
        self.sub.build(nb, s, e)
        e.add_eps(end)
        if self.many:
            e.add_eps(s)
        if self.zero_ok:
            start.add_eps(end)

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.sub!r})"


class Star(_Repeat):
    zero_ok = True
    many = True


class Plus(_Repeat):
    many = True


class Opt(_Repeat):
    zero_ok = True


# ---------- 파서 ----------

def _span_set(chars: str) -> List[Tuple[int, int]]:
    return [(ord(c), ord(c)) for c in chars]


_CLASS_ESCAPES = {
    "d": lambda: CharRange([(ord("0"), ord("9"))]),
    "s": lambda: CharRange(_span_set(" \t\n\r\f\v")),
    "w": lambda: CharRange([(ord("a"), ord("z")), (ord("A"), ord("Z")),
                            (ord("0"), ord("9")), (ord("_"), ord("_"))]),
}


class _RegexParser:
    def __init__(self, src: str, defines: Dict[str, str], expanding: Tuple[str, ...]):
        self.src = src
        self.i = 0
        self.defines = defines
        self.expanding = expanding

    def error(self, what: str = "") -> SyntaxError:
        detail = f": {what}" if what else ""
        return SyntaxError(f"ill-formed regular expression {self.src!r} at offset {self.i}{detail}")

    def peek(self) -> Optional[str]:
        return self.src[self.i] if self.i < len(self.src) else None

    def parse(self) -> Fragment:
        frag = self.alt()
        if self.i != len(self.src):
            raise self.error(f"unexpected {self.src[self.i]!r}")
        return frag

    def alt(self) -> Fragment:
        options = [self.cat()]
        while self.peek() == "|":
            self.i += 1
            options.append(self.cat())
        return options[0] if len(options) == 1 else Alt(options)

    def cat(self) -> Fragment:
        parts: List[Fragment] = []
        while self.peek() is not None and self.peek() not in "|)":
            parts.append(self.postfix())
        if not parts:
            return Empty()
        return parts[0] if len(parts) == 1 else Concat(parts)

    def postfix(self) -> Fragment:
        frag = self.atom()
        while self.peek() in ("?", "*", "+"):
            op = self.src[self.i]
            self.i += 1
            frag = {"?": Opt, "*": Star, "+": Plus}[op](frag)
        return frag

    def atom(self) -> Fragment:
        ch = self.src[self.i]
        if ch == "(":
            self.i += 1
            inner = self.alt()
            if self.peek() != ")":
                raise self.error("missing ')'")
            self.i += 1
            return inner
        if ch == "[":
            return self.char_range()
        if ch in ("'", '"'):
            return self.quoted(ch)
        if ch == "\\":
            return self.escape()
        if ch == "{":
            return self.braced()
        if ch == ".":
            self.i += 1
            return CharRange([(ord("\n"), ord("\n"))], invert=True)
        if ch in "?*+":
            raise self.error(f"nothing to repeat before {ch!r}")
        if ch in ")]}":
            raise self.error(f"unbalanced {ch!r}")
        self.i += 1
        return Literal(ch)

    def quoted(self, quote: str) -> Fragment:
        j = self.i + 1
        out: List[str] = []
        while j < len(self.src) and self.src[j] != quote:
            c = self.src[j]
            if c == "\\":
                j += 1
                if j >= len(self.src):
                    break
                c = self.src[j]
                if c == "\n":
                    j += 1
                    continue
                out.append(_SIMPLE_ESCAPES.get(c, c))
            else:
                out.append(c)
            j += 1
        if j >= len(self.src):
            raise self.error("unterminated quoted literal")
        self.i = j + 1
        return Literal("".join(out))

    def escape(self) -> Fragment:
        if self.i + 1 >= len(self.src):
            raise self.error("dangling '\\'")
        c = self.src[self.i + 1]
        self.i += 2
        if c in _CLASS_ESCAPES:
            return _CLASS_ESCAPES[c]()
        return Literal(_SIMPLE_ESCAPES.get(c, c))

    def braced(self) -> Fragment:
        close = self.src.find("}", self.i + 1)
        if close < 0:
            raise self.error("missing '}'")
        name = self.src[self.i + 1:close]
        if not name:
            raise self.error("empty {} reference")
        self.i = close + 1
        if name in self.defines:
            if name in self.expanding:
                raise self.error(f"recursive definition {{{name}}}")
            sub = _RegexParser(self.defines[name], self.defines, self.expanding + (name,))
            return sub.parse()
        return Category(name)

    def char_range(self) -> Fragment:
        j = self.i + 1
        invert = j < len(self.src) and self.src[j] == "^"
        if invert:
            j += 1
        # (문자, 이스케이프 여부): 이스케이프된 '-' 는 범위 연산자가 아니다
        chars: List[Tuple[str, bool]] = []
        while j < len(self.src) and self.src[j] != "]":
            c = self.src[j]
            if c == "\\" and j + 1 < len(self.src):
                j += 1
                c = self.src[j]
                if "0" <= c <= "7":
                    k = j
                    while k < len(self.src) and "0" <= self.src[k] <= "7":
                        k += 1
                    chars.append((chr(int(self.src[j:k], 8)), True))
                    j = k
                    continue
                chars.append((_SIMPLE_ESCAPES.get(c, c), True))
            else:
                chars.append((c, False))
            j += 1
        if j >= len(self.src):
            raise self.error("missing ']'")
        self.i = j + 1
        spans: List[Tuple[int, int]] = []
        k = 0
        while k < len(chars):
            if k + 2 < len(chars) and chars[k + 1] == ("-", False):
                lo, hi = ord(chars[k][0]), ord(chars[k + 2][0])
                if lo > hi:
                    raise self.error(f"bad range {chars[k][0]}-{chars[k + 2][0]}")
                spans.append((lo, hi))
                k += 3
            else:
                spans.append((ord(chars[k][0]), ord(chars[k][0])))
                k += 1
        return CharRange(spans, invert)


def parse_regex(src: str, defines: Optional[Dict[str, str]] = None) -> Fragment:
    """정규식 텍스트를 Fragment 트리로 파싱한다. defines 는 {Name} 확장용 이름 → 원문."""
    return _RegexParser(src, dict(defines or {}), ()).parse()
