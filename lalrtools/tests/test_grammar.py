import unittest
from unittest import mock

from lalrtools.grammar.bnf import AUG_START, BNF
from lalrtools.grammar.parser import parse_grammar
from lalrtools.grammar.transform import to_bnf
from lalrtools.lalr import first_follow
from lalrtools.lalr.errors import GrammarDefinitionError, UnknownSymbolError
from lalrtools.lalr.first_follow import compute_nullable_first_follow, is_nullable
from lalrtools.lalr.symbols import Nullable, SymKind


def _left_recursive_list():
    """A -> ε | A x"""
    b = BNF()
    b.declare_terminal("x")
    b.add_production("A", [])
    b.add_production("A", ["A", "x"])
    return b.close()


class TestBNF(unittest.TestCase):
    def test_production_numbering(self):
        b = _left_recursive_list()
        self.assertEqual([p.pno for p in b.prods], [0, 1, 2])
        aug = b.prods[0]
        self.assertEqual(b.symbols.name_of(aug.lhs), AUG_START)
        self.assertEqual(aug.rhs, [b.start_id])
        self.assertEqual(b.format_production(b.prods[2]), "A -> A x")
        self.assertEqual(b.format_production(b.prods[1]), "A -> ε")
        self.assertEqual(b.format_production(b.prods[2], dot=1), "A -> A · x")
        self.assertEqual(b.symbols[b.start_id].prods, [1, 2])

    def test_first_lhs_is_default_start(self):
        b = BNF()
        b.declare_terminal("x")
        b.add_production("S", ["T"])
        b.add_production("T", ["x"])
        b.close()
        self.assertEqual(b.start, "S")

    def test_unknown_symbol(self):
        b = BNF()
        b.add_production("S", ["Y"])
        with self.assertRaises(UnknownSymbolError) as cm:
            b.close()
        self.assertEqual(cm.exception.name, "Y")
        self.assertIn("production 1", str(cm.exception))

    def test_nonterminal_without_productions(self):
        b = BNF()
        b.declare_terminal("x")
        b.declare_nonterminal("B")
        b.add_production("S", ["x"])
        with self.assertRaises(GrammarDefinitionError):
            b.close()

    def test_malformed_productions(self):
        b = BNF()
        b.declare_terminal("x")
        with self.assertRaises(GrammarDefinitionError):
            b.add_production("x", [])
        with self.assertRaises(GrammarDefinitionError):
            b.add_production("S", ["EOF"])
        with self.assertRaises(GrammarDefinitionError):
            b.add_production("S", [""])
        with self.assertRaises(GrammarDefinitionError):
            b.add_production("", ["x"])
        other = BNF().declare_terminal("y")
        with self.assertRaises(GrammarDefinitionError):
            b.add_production("S", [other])

    def test_closed_grammar_rejects_additions(self):
        b = _left_recursive_list()
        with self.assertRaises(GrammarDefinitionError):
            b.add_production("A", ["x"])

    def test_bad_start(self):
        b = BNF()
        b.declare_terminal("x")
        b.add_production("S", ["x"])
        with self.assertRaises(GrammarDefinitionError):
            b.close("x")

    def test_precedence_levels(self):
        b = BNF()
        low = b.declare_precedence("left", ["+", "-"])
        high = b.declare_precedence("right", ["^"])
        self.assertEqual((low.assoc, low.level), ("left", 1))
        self.assertEqual((high.assoc, high.level), ("right", 2))
        with self.assertRaises(GrammarDefinitionError):
            b.declare_precedence("nonassoc", ["+"])

    def test_production_prec(self):
        b = BNF()
        for t in ("+", "-", "n"):
            b.declare_terminal(t)
        b.declare_precedence("left", ["+"])
        b.declare_precedence("right", ["NEG"])
        p_add = b.add_production("E", ["E", "+", "E"])
        p_neg = b.add_production("E", ["-", "E"], prec="NEG")
        p_num = b.add_production("E", ["n"])
        b.close()
        self.assertEqual(b.production_prec(p_add).level, 1)
        self.assertEqual(b.production_prec(p_neg).assoc, "right")
        self.assertIsNone(b.production_prec(p_num))
        self.assertEqual(b.symbols.get("+").prec.level, 1)

    def test_actions(self):
        b = BNF()
        b.declare_terminal("x")
        mid = b.new_action("mid()", trailing=False)
        p = b.add_production("S", ["x", mid, "x"], action="end()")
        b.close()
        kinds = [b.symbols[sid].kind for sid in p.rhs]
        self.assertEqual(kinds, [SymKind.TERMINAL, SymKind.OLDACTION,
                                 SymKind.TERMINAL, SymKind.SIMPLEACTION])
        self.assertEqual(b.symbols[p.rhs[-1]].action_text, "end()")
        self.assertEqual(b.reduce_len(p), 2)


class TestFirstFollow(unittest.TestCase):
    def test_nullable_left_recursion(self):
        b = _left_recursive_list()
        ff = compute_nullable_first_follow(b)
        a, x, eof = b.start_id, b.symbols.id_of("x"), b.symbols.eof_id
        self.assertIn(a, ff.nullable)
        self.assertTrue(is_nullable(b, a))
        self.assertFalse(is_nullable(b, x))
        self.assertEqual(set(ff.first[a]), {x})
        self.assertEqual(set(ff.follow[a]), {x, eof})

    def test_nullable_is_memoized(self):
        b = _left_recursive_list()
        compute_nullable_first_follow(b)
        self.assertIs(b.symbols[b.start_id].nullable, Nullable.TRUE)
        with mock.patch.object(first_follow, "_settle_nullable") as settle:
            for sym in b.symbols:
                is_nullable(b, sym.id)
            settle.assert_not_called()

    def test_nullable_without_full_analysis(self):
        b = BNF()
        b.declare_terminal("x")
        b.add_production("S", ["A", "B"])
        b.add_production("A", [])
        b.add_production("B", ["A"])
        b.add_production("B", ["x"])
        b.add_production("C", ["x", "A"])
        b.close()
        self.assertTrue(is_nullable(b, b.symbols.id_of("S")))
        self.assertFalse(is_nullable(b, b.symbols.id_of("C")))

    def test_actions_are_nullable(self):
        g = parse_grammar('%token X /x/; S : { a } X { b } ;')
        b = to_bnf(g)
        compute_nullable_first_follow(b)
        actions = [s for s in b.symbols if s.is_action()]
        self.assertEqual(len(actions), 2)
        for s in actions:
            self.assertIs(s.nullable, Nullable.TRUE)
            self.assertEqual(len(s.first), 0)
        self.assertFalse(is_nullable(b, b.start_id))

    def test_unexpected_symbol_kind(self):
        b = _left_recursive_list()
        b.symbols.get("x").kind = SymKind.NODESYMBOL
        with self.assertRaises(GrammarDefinitionError) as cm:
            compute_nullable_first_follow(b)
        self.assertIn("unexpected symbol type", str(cm.exception))

    def test_requires_closed_grammar(self):
        b = BNF()
        b.declare_terminal("x")
        b.add_production("S", ["x"])
        with self.assertRaises(GrammarDefinitionError):
            compute_nullable_first_follow(b)

    def test_follow_passes_are_monotone(self):
        g = parse_grammar('''
            %token ID /[a-z]+/;
            S : L "=" R | R ;
            L : "*" R | ID ;
            R : L ;
        ''')
        b = to_bnf(g)
        ff = compute_nullable_first_follow(b)
        self.assertGreaterEqual(len(ff.follow_passes), 2)
        for before, after in zip(ff.follow_passes, ff.follow_passes[1:]):
            for sid, n in before.items():
                self.assertLessEqual(n, after[sid])
        self.assertEqual(ff.follow_passes[-1], ff.follow_passes[-2])
        eq = b.symbols.id_of("=")
        self.assertIn(eq, ff.follow[b.symbols.id_of("R")])
        self.assertIn(b.symbols.eof_id, ff.follow[b.start_id])

    def test_analysis_is_repeatable(self):
        b = _left_recursive_list()
        first = compute_nullable_first_follow(b)
        sizes = {k: len(v) for k, v in first.follow.items()}
        again = compute_nullable_first_follow(b)
        self.assertEqual({k: len(v) for k, v in again.follow.items()}, sizes)
        self.assertEqual(len(again.follow_passes), 1)


class TestLowering(unittest.TestCase):
    def test_ebnf_helpers(self):
        g = parse_grammar('''
            %token X /x/;
            %token Y /y/;
            S : X* (X | Y)+ Y? ;
        ''')
        b = to_bnf(g)
        names = [s.name for s in b.symbols.nonterminals()]
        self.assertIn("__rep1", names)
        self.assertIn("__grp1", names)
        self.assertIn("__opt1", names)
        compute_nullable_first_follow(b)
        self.assertTrue(is_nullable(b, b.symbols.id_of("__rep1")))
        self.assertFalse(is_nullable(b, b.start_id))

    def test_literals_become_terminals(self):
        g = parse_grammar('"(" : "(" ; %token N /[0-9]+/; E : "(" E ")" | N ;')
        b = to_bnf(g)
        self.assertEqual([s.name for s in b.symbols.terminals()], ["EOF", "(", "N", ")"])
        self.assertEqual(b.symbols.id_of("("), 3)

    def test_symbol_initialiser(self):
        g = parse_grammar('%token N /[0-9]+/; %symbol E { 0 }; E : N ;')
        b = to_bnf(g)
        self.assertEqual(b.symbols.get("E").initialiser, "0")
