# lalrtools/grammar/transform.py
"""Grammar(AST)를 BNF 컨텍스트로 옮긴다. EBNF(?,*,+)와 그룹은 보조 비단말로 전개."""

from __future__     import annotations
from typing         import Iterator, List, Set, Union

from .ast           import *
from .bnf           import BNF
from ..lalr.symbols import Symbol


def iter_literals(g: Grammar) -> Iterator[str]:
    """키워드 선언과 규칙 안의 "리터럴"을 선언/등장 순서대로(중복 없이) 돌려준다."""
    seen: Set[str] = set()
    for kw in g.decl_keywords:
        if kw.lexeme not in seen:
            seen.add(kw.lexeme)
            yield kw.lexeme

    stack: List[Expr] = [r.expr for r in reversed(g.rules)]
    while stack:
        expr = stack.pop()
        nested: List[Expr] = []
        for seq in expr.alts:
            for a in seq.items:
                if isinstance(a.node, Lit) and a.node.text not in seen:
                    seen.add(a.node.text)
                    yield a.node.text
                elif isinstance(a.node, Group):
                    nested.append(a.node.expr)
        stack.extend(reversed(nested))


class _Lowering:
    def __init__(self, g: Grammar) :
        self.g = g
        self.bnf = BNF()
        self._grp_id = 0
        self._rep_id = 0
        self._opt_id = 0
        # 토큰 이름 목록(단말 취급)
        self.token_terms: Set[str] = {t.name for t in g.decl_tokens}

    # 새 비단말 이름
    def _new_grp(self) -> str:
        self._grp_id += 1
        return f"__grp{self._grp_id}"

    def _new_rep(self) -> str:
        self._rep_id += 1
        return f"__rep{self._rep_id}"

    def _new_opt(self) -> str:
        self._opt_id += 1
        return f"__opt{self._opt_id}"

    def _syms_from_atom_base(self, atom: Atom) -> List[str]:
        node = atom.node
        if isinstance(node, Name):
            return [node.ident]
        elif isinstance(node, Lit):
            self.bnf.declare_terminal(node.text)
            return [node.text]
        elif isinstance(node, Group):
            grp_name = self._new_grp()
            self._lower_expr_into(grp_name, node.expr)
            return [grp_name]
        else:
            raise TypeError("unknown Atom.node")

    def _lower_seq_atoms(self, atoms: List[Atom]) -> List[Union[str, Symbol]]:
        """시퀀스 내 원자들을 전개하여 RHS 심볼 리스트로 반환(말미 액션 제외)."""
        rhs: List[Union[str, Symbol]] = []
        for a in atoms:
            if isinstance(a.node, Action):
                # 중간 액션 → oldaction 의사 심볼
                rhs.append(self.bnf.new_action(a.node.code, trailing=False))
                continue
            base_syms = self._syms_from_atom_base(a)
            if a.suffix == Suffix.NONE:
                rhs.extend(base_syms)
            elif a.suffix == Suffix.OPT:
                opt = self._new_opt()
                # opt -> ε | base
                self.bnf.add_production(opt, [])
                self.bnf.add_production(opt, base_syms.copy())
                rhs.append(opt)
            elif a.suffix == Suffix.STAR:
                rep = self._new_rep()
                # rep -> ε | base rep   (우측 재귀)
                self.bnf.add_production(rep, [])
                self.bnf.add_production(rep, base_syms + [rep])
                rhs.append(rep)
            elif a.suffix == Suffix.PLUS:
                rep = self._new_rep()
                # rep -> ε | base rep
                self.bnf.add_production(rep, [])
                self.bnf.add_production(rep, base_syms + [rep])
                # PLUS는 최소 1회: base + rep
                rhs.extend(base_syms)
                rhs.append(rep)
            else:
                raise ValueError(f"unknown suffix: {a.suffix}")
        return rhs

    def _lower_expr_into(self, lhs: str, expr: Expr) -> None:
        self.bnf.declare_nonterminal(lhs)
        # 각 대안(Seq)을 하나의 프로덕션으로
        for seq in expr.alts:
            items = seq.items
            action = None
            if items and isinstance(items[-1].node, Action):
                action = items[-1].node.code
                items = items[:-1]
            rhs = self._lower_seq_atoms(items)
            # 원본 Seq.prec를 최종 프로덕션의 prec_label로 전파
            self.bnf.add_production(lhs, rhs, action=action, prec=seq.prec)

    def lower(self) -> BNF:
        b = self.bnf
        # 단말: 키워드 리터럴 → %token 순
        for kw in self.g.decl_keywords:
            b.declare_terminal(kw.lexeme)
        for t in self.g.decl_tokens:
            b.declare_terminal(t.name)
        for s in self.g.decl_symbols:
            b.declare_nonterminal(s.name, s.init)
        # 우선순위: 아래에 적을수록 '더 강한 레벨'
        for d in self.g.decl_precedences:
            b.declare_precedence(d.assoc, d.labels)
        # 원본 규칙 전개
        for r in self.g.rules:
            self._lower_expr_into(r.name, r.expr)
        # 명시적 start 없으면 첫 규칙
        start = self.g.start or (self.g.rules[0].name if self.g.rules else None)
        return b.close(start)


def to_bnf(g: Grammar) -> BNF:
    """Grammar(AST) → 닫힌 BNF(심볼테이블, 프로덕션 목록, 우선순위)"""
    return _Lowering(g).lower()
