import unittest
from pathlib import Path

from lalrtools.grammar.ast import Action, Group, Lit, Name, Suffix
from lalrtools.grammar.loader import load_grammar_text
from lalrtools.grammar.parser import parse_grammar
from lalrtools.grammar.transform import iter_literals

EXPR = Path(__file__).parent / "grammar_test" / "expr.g"


class TestGrammarDSL(unittest.TestCase):
    def test_expr_file(self):
        g = parse_grammar(load_grammar_text(str(EXPR)))
        self.assertEqual(g.start, "Expr")
        self.assertEqual([t.name for t in g.decl_tokens], ["NUM"])
        self.assertEqual(g.decl_tokens[0].pattern, "[0-9]+")
        self.assertEqual([(d.assoc, d.labels) for d in g.decl_precedences],
                         [("left", ["+", "-"]), ("left", ["*", "/"]), ("right", ["UMINUS"])])
        self.assertEqual(g.decl_symbols[0].name, "Expr")
        self.assertEqual(g.decl_symbols[0].init, "0")
        alts = g.rules[0].expr.alts
        self.assertEqual(len(alts), 7)
        self.assertEqual(alts[4].prec, "UMINUS")
        self.assertIsInstance(alts[4].items[-1].node, Action)
        self.assertEqual(alts[0].items[-1].node.code.strip(), "$$ = $1 + $3;")
        self.assertEqual(list(iter_literals(g)), ["+", "-", "*", "/", "(", ")"])

    def test_atoms(self):
        g = parse_grammar('%token X /x/; S : X? ("a" | X)* X+ { act } ;')
        items = g.rules[0].expr.alts[0].items
        self.assertIsInstance(items[0].node, Name)
        self.assertEqual(items[0].suffix, Suffix.OPT)
        self.assertIsInstance(items[1].node, Group)
        self.assertEqual(items[1].suffix, Suffix.STAR)
        self.assertIsInstance(items[1].node.expr.alts[0].items[0].node, Lit)
        self.assertEqual(items[2].suffix, Suffix.PLUS)
        self.assertEqual(items[3].node.code, " act ")

    def test_nested_action_braces(self):
        g = parse_grammar('%token X /x/; S : X { if (a) { b("}"); } } ;')
        code = g.rules[0].expr.alts[0].items[-1].node.code
        self.assertEqual(code, ' if (a) { b("}"); } ')

    def test_default_start(self):
        g = parse_grammar('%token X /x/; A : B ; B : X ;')
        self.assertEqual(g.start, "A")

    def test_token_without_pattern(self):
        g = parse_grammar('%token EXT; S : EXT ;')
        self.assertEqual(g.decl_tokens[0].pattern, "")

    def test_keywords_and_defines(self):
        g = parse_grammar('%define D /[0-9]/; "while" : "while"; %ignore /\\s+/; S : "while" ;')
        self.assertEqual(g.decl_defines[0].name, "D")
        self.assertEqual(g.decl_keywords[0].lexeme, "while")
        self.assertEqual(g.decl_ignores[0].pattern, "\\s+")

    def test_comments(self):
        g = parse_grammar('// line\n/* block\n */ %token X /x/; S : X ; // tail')
        self.assertEqual(len(g.rules), 1)


class TestGrammarDSLErrors(unittest.TestCase):
    def _error(self, src):
        with self.assertRaises(SyntaxError) as cm:
            parse_grammar(src)
        return str(cm.exception)

    def test_missing_semicolon(self):
        msg = self._error('%token X /x/\nS : X ;')
        self.assertIn("Missing ';' after %token declaration", msg)
        self.assertIn("%token X /x/\n            ^", msg)

    def test_unknown_directive(self):
        self.assertIn("Unknown directive %frobnicate at 1:2", self._error("%frobnicate X;"))

    def test_keyword_mapping_mismatch(self):
        self.assertIn("must be identical", self._error('"a" : "b";'))

    def test_bad_prec_directive(self):
        self.assertIn("did you mean '%prec'", self._error('%token X /x/; S : X %perc X ;'))

    def test_prec_needs_labels(self):
        self.assertIn("%left requires at least one label", self._error('%left ;'))

    def test_unterminated_action(self):
        self.assertIn("Unterminated action block", self._error('%token X /x/; S : X { oops ;'))

    def test_unexpected_character(self):
        self.assertIn("Unexpected char '@' at 1:5", self._error('S : @ ;'))

    def test_unexpected_token(self):
        msg = self._error('S : X ) ;')
        self.assertIn("at 1:7", msg)
