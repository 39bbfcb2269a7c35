import unittest

from lalrtools.grammar.bnf import BNF
from lalrtools.grammar.parser import parse_grammar
from lalrtools.grammar.transform import to_bnf
from lalrtools.lalr.errors import GrammarDefinitionError
from lalrtools.lalr.items import ProdItem, build_lr0_states, build_tables
from lalrtools.lalr.runtime import parse_string, parse_tokens
from lalrtools.lalr.table import ACCEPT, NONASSOC, REDUCE, SHIFT
from lalrtools.lex import LexTok, SimpleLexer


ARITH = r'''
%token NUM /[0-9]+/;
%ignore /\s+/;
%left "+";
%left "*";
E : E "+" E | E "*" E | NUM ;
'''

NONASSOC_CMP = r'''
%token NUM /[0-9]+/;
%ignore /\s+/;
%nonassoc "<";
%left "+";
E : E "<" E | E "+" E | NUM ;
'''

POINTERS = r'''
%token ID /[a-z]+/;
%ignore /\s+/;
S : L "=" R | R ;
L : "*" R | ID ;
R : L ;
'''


def _build(src, method="lalr"):
    g = parse_grammar(src)
    bnf = to_bnf(g)
    tables = build_tables(bnf, method)
    return bnf, tables, SimpleLexer.from_grammar(g)


def _reductions(src, text, method="lalr"):
    bnf, tables, lexer = _build(src, method)
    trace = []
    parse_string(text, tables, bnf.symbols, lexer,
                 trace=lambda kind, arg, state: trace.append((kind, arg)))
    return [arg for kind, arg in trace if kind == REDUCE]


def _toks(*names):
    return [LexTok(n, n, 1, i + 1, i) for i, n in enumerate(names)]


class TestAutomaton(unittest.TestCase):
    def test_initial_state(self):
        bnf, tables, _ = _build(ARITH)
        states = build_lr0_states(bnf)
        i0 = states[0]
        self.assertEqual(i0.items[0], ProdItem(0, 0))
        self.assertEqual([it.pno for it in i0.items], [0, 1, 2, 3])
        self.assertFalse(i0.accepts)
        self.assertEqual(len(states), tables.n_states)
        self.assertEqual(tables.start_state, 0)

    def test_states_are_unique(self):
        bnf, _, _ = _build(POINTERS)
        states = build_lr0_states(bnf)
        keys = [st.key for st in states]
        self.assertEqual(len(keys), len(set(keys)))
        self.assertEqual([st.number for st in states], list(range(len(states))))

    def test_build_is_idempotent(self):
        bnf, first, _ = _build(ARITH)
        second = build_tables(bnf)
        self.assertEqual(first.action, second.action)
        self.assertEqual(first.goto, second.goto)
        self.assertEqual(first.n_states, second.n_states)
        self.assertEqual(first.state_items, second.state_items)
        self.assertEqual(first.conflicts, second.conflicts)

    def test_accept_entry(self):
        bnf, tables, _ = _build(ARITH)
        eof = bnf.symbols.eof_id
        accepts = [k for k, v in tables.action.items() if v[0] == ACCEPT]
        self.assertEqual(len(accepts), 1)
        self.assertEqual(accepts[0][1], eof)
        goto_start = tables.goto[(0, bnf.start_id)]
        self.assertEqual(accepts[0][0], goto_start)

    def test_unknown_method(self):
        bnf, _, _ = _build(ARITH)
        with self.assertRaises(ValueError):
            build_tables(bnf, "lr1")

    def test_open_grammar_is_rejected(self):
        b = BNF()
        b.declare_terminal("x")
        b.add_production("S", ["x"])
        with self.assertRaises(GrammarDefinitionError):
            build_tables(b)


class TestPrecedence(unittest.TestCase):
    def test_star_binds_tighter(self):
        # 1: E+E, 2: E*E, 3: NUM
        self.assertEqual(_reductions(ARITH, "1 + 2 * 3"), [3, 3, 3, 2, 1])
        self.assertEqual(_reductions(ARITH, "1 * 2 + 3"), [3, 3, 2, 3, 1])

    def test_left_associative(self):
        self.assertEqual(_reductions(ARITH, "1 + 2 + 3"), [3, 3, 1, 3, 1])

    def test_right_associative(self):
        src = '%token NUM /[0-9]+/; %right "^"; E : E "^" E | NUM ;'
        self.assertEqual(_reductions(src, "1^2^3"), [2, 2, 2, 1, 1])

    def test_prec_override(self):
        src = r'''
            %token NUM /[0-9]+/;
            %ignore /\s+/;
            %left "-";
            %left "*";
            %right UMINUS;
            E : E "-" E | E "*" E | "-" E %prec UMINUS | NUM ;
        '''
        self.assertEqual(_reductions(src, "-1 * 2"), [4, 3, 4, 2])

    def test_precedence_conflicts_are_resolved(self):
        _, tables, _ = _build(ARITH)
        self.assertTrue(tables.conflicts)
        self.assertEqual(tables.unresolved(), [])
        for c in tables.conflicts:
            self.assertEqual(c.kind, "shift/reduce")
            self.assertEqual(c.resolved_by, "precedence")

    def test_nonassoc_chain(self):
        bnf, tables, lexer = _build(NONASSOC_CMP)
        lt = bnf.symbols.id_of("<")
        self.assertTrue(tables.nonassoc)
        v = tables.nonassoc[0]
        self.assertEqual(v.terminal, lt)
        self.assertEqual(v.production, 1)
        self.assertEqual(tables.action[(v.state, lt)], (NONASSOC, 1))

        self.assertTrue(parse_string("1 < 2", tables, bnf.symbols, lexer))
        self.assertTrue(parse_string("1 < 2 + 3", tables, bnf.symbols, lexer))
        with self.assertRaises(SyntaxError) as cm:
            parse_string("1 < 2 < 3", tables, bnf.symbols, lexer)
        self.assertIn("non-associative", str(cm.exception))
        self.assertIn("1:7", str(cm.exception))


class TestConflicts(unittest.TestCase):
    def test_dangling_else_defaults_to_shift(self):
        src = '%token X /x/; S : "if" S "else" S | "if" S | X ;'
        bnf, tables, _ = _build(src)
        unresolved = tables.unresolved()
        self.assertEqual(len(unresolved), 1)
        c = unresolved[0]
        self.assertEqual(c.kind, "shift/reduce")
        self.assertEqual(c.resolution, "shift")
        self.assertEqual(c.terminal, bnf.symbols.id_of("else"))
        self.assertEqual(tables.action[(c.state, c.terminal)][0], SHIFT)
        self.assertIn("shift/reduce conflict on else in reduction 2", c.message)

    def test_reduce_reduce_prefers_lower_production(self):
        src = '%token X /x/; S : A | B ; A : X ; B : X ;'
        bnf, tables, _ = _build(src)
        rr = [c for c in tables.conflicts if c.kind == "reduce/reduce"]
        self.assertEqual(len(rr), 1)
        self.assertEqual(rr[0].productions, (3, 4))
        self.assertEqual(rr[0].resolved_by, "default")
        self.assertEqual(tables.action[(rr[0].state, bnf.symbols.eof_id)], (REDUCE, 3))

    def test_reduce_reduce_keeps_nonassoc_cell(self):
        # C, D 선언 순서를 바꿔 어느 쪽이 먼저 nonassoc 칸을 차지해도 같은 결과여야 한다
        for tail in ("C : X ; D : X ;", "D : X ; C : X ;"):
            src = '%token X /x/; %nonassoc "<"; S : C "<" | D "<" | X "<" X ; ' + tail
            bnf, tables, _ = _build(src)
            lt = bnf.symbols.id_of("<")
            rr = [c for c in tables.conflicts if c.kind == "reduce/reduce"]
            self.assertEqual(len(rr), 1, msg=tail)
            kind, pno = tables.action[(rr[0].state, lt)]
            self.assertEqual(kind, NONASSOC, msg=tail)
            self.assertEqual(pno, min(rr[0].productions))
            self.assertTrue(tables.nonassoc)
            with self.assertRaises(SyntaxError):
                parse_tokens(_toks("X", "<"), tables, bnf.symbols)

    def test_sink_receives_diagnostics(self):
        seen = []
        g = parse_grammar('%token X /x/; S : A | B ; A : X ; B : X ;')
        tables = build_tables(to_bnf(g), sink=seen.append)
        self.assertEqual(seen, tables.conflicts)

    def test_pretty_conflicts(self):
        src = '%token X /x/; S : "if" S "else" S | "if" S | X ;'
        bnf, tables, _ = _build(src)
        text = tables.pretty_conflicts(bnf.symbols.name_of)
        self.assertIn("on else: shift/reduce (2) -> shift [default]", text)
        _, clean, _ = _build('%token X /x/; S : X ;')
        self.assertEqual(clean.pretty_conflicts(bnf.symbols.name_of), "(no conflicts)")


class TestLookaheadMethods(unittest.TestCase):
    def test_lalr_resolves_what_slr_cannot(self):
        _, slr, _ = _build(POINTERS, "slr")
        _, lalr, _ = _build(POINTERS, "lalr")
        self.assertEqual(len(slr.unresolved()), 1)
        self.assertEqual(lalr.conflicts, [])
        self.assertEqual(slr.n_states, lalr.n_states)

    def test_lalr_parses(self):
        bnf, tables, lexer = _build(POINTERS)
        for text in ("a", "*a = b", "**a = *b", "a = a"):
            self.assertTrue(parse_string(text, tables, bnf.symbols, lexer), text)

    def test_nullable_left_recursion(self):
        b = BNF()
        b.declare_terminal("x")
        b.add_production("A", [])
        b.add_production("A", ["A", "x"])
        b.close()
        for method in ("slr", "lalr"):
            tables = build_tables(b, method)
            self.assertEqual(tables.conflicts, [])
            self.assertTrue(parse_tokens([], tables, b.symbols))
            self.assertTrue(parse_tokens(_toks("x", "x", "x"), tables, b.symbols))

    def test_mid_rule_actions(self):
        src = '%token X /x/; %token Y /y/; S : X { mid } Y { end } | X Y Y ;'
        bnf, tables, lexer = _build(src)
        self.assertEqual(tables.prod_rhs_len[1], 2)
        self.assertTrue(parse_string("xy", tables, bnf.symbols, lexer))
        self.assertTrue(parse_string("xyy", tables, bnf.symbols, lexer))


class TestRuntime(unittest.TestCase):
    def setUp(self):
        self.bnf, self.tables, self.lexer = _build(ARITH)

    def _parse(self, text):
        return parse_string(text, self.tables, self.bnf.symbols, self.lexer)

    def test_accepts(self):
        self.assertTrue(self._parse("1"))
        self.assertTrue(self._parse("12 * 3 + 4 * 5"))

    def test_unexpected_token(self):
        with self.assertRaises(SyntaxError) as cm:
            self._parse("1 + + 2")
        msg = str(cm.exception)
        self.assertIn("Parse error at 1:5", msg)
        self.assertIn("expected one of {NUM}", msg)
        self.assertIn("^", msg)

    def test_unexpected_eof(self):
        with self.assertRaises(SyntaxError) as cm:
            self._parse("1 +")
        self.assertIn("Parse error at EOF", str(cm.exception))

    def test_unknown_token_kind(self):
        with self.assertRaises(SyntaxError) as cm:
            parse_tokens([LexTok("BOGUS", "?", 1, 1)], self.tables, self.bnf.symbols)
        self.assertIn("Unknown token kind 'BOGUS'", str(cm.exception))

    def test_missing_goto_is_a_table_error(self):
        broken = build_tables(self.bnf)
        broken.goto.clear()
        with self.assertRaises(RuntimeError):
            parse_tokens([LexTok("NUM", "1", 1, 1)], broken, self.bnf.symbols)
