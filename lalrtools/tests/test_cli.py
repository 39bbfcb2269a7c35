import io
import tempfile
import unittest
from contextlib import redirect_stderr, redirect_stdout
from pathlib import Path

from lalrtools import lalrc
from lalrtools.lalr import serialise

EXPR = Path(__file__).parent / "grammar_test" / "expr.g"


def _run(*argv):
    out, err = io.StringIO(), io.StringIO()
    with redirect_stdout(out), redirect_stderr(err):
        code = lalrc.main(list(argv))
    return code, out.getvalue(), err.getvalue()


class TestCheck(unittest.TestCase):
    def test_check_ok(self):
        code, out, err = _run("check", str(EXPR))
        self.assertEqual(code, 0)
        self.assertTrue(out.startswith("[CHECK OK] parser=lalr states="))
        self.assertIn("unresolved=0", out)
        self.assertEqual(err, "")

    def test_check_debug(self):
        code, out, err = _run("check", str(EXPR), "--parser", "slr", "-D")
        self.assertEqual(code, 0)
        self.assertIn("parser=slr", out)
        self.assertIn("[DEBUG] SLR tables built", err)
        self.assertIn("[BNF]", err)
        self.assertIn("$start -> Expr", err)
        self.assertIn("[State 0 items]", err)

    def test_check_syntax_error(self):
        with tempfile.TemporaryDirectory() as tmp:
            bad = Path(tmp) / "bad.g"
            bad.write_text("%token X /x/\nS : X ;", encoding="utf-8")
            code, out, err = _run("check", str(bad))
        self.assertEqual(code, 2)
        self.assertEqual(out, "")
        self.assertIn("[SYNTAX ERROR]", err)

    def test_check_grammar_error(self):
        with tempfile.TemporaryDirectory() as tmp:
            bad = Path(tmp) / "bad.g"
            bad.write_text("%token X /x/; S : X Y ;", encoding="utf-8")
            code, _, err = _run("check", str(bad))
        self.assertEqual(code, 2)
        self.assertIn("[ERROR] UnknownSymbolError", err)

    def test_missing_file(self):
        code, _, err = _run("check", "no/such/file.g")
        self.assertEqual(code, 2)
        self.assertIn("[ERROR]", err)


class TestBuild(unittest.TestCase):
    def test_build_and_cache(self):
        with tempfile.TemporaryDirectory() as tmp:
            target = Path(tmp) / "out" / "expr.tables.json"
            code, out, _ = _run("build", str(EXPR), "-o", str(target), "--cache")
            self.assertEqual(code, 0)
            self.assertIn("[EMIT] parser=lalr", out)
            text = target.read_text(encoding="utf-8")
            bnf, tables, fp = serialise.loads(text)
            self.assertEqual(fp, serialise.fingerprint(EXPR.read_text(encoding="utf-8")))
            self.assertEqual(bnf.start, "Expr")

            code, out, _ = _run("build", str(EXPR), "-o", str(target), "--cache")
            self.assertEqual(code, 0)
            self.assertIn("[CACHED]", out)

            code, out, _ = _run("build", str(EXPR), "-o", str(target))
            self.assertIn("[EMIT]", out)

    def test_corrupt_cache_is_rebuilt(self):
        with tempfile.TemporaryDirectory() as tmp:
            target = Path(tmp) / "expr.json"
            target.write_text("garbage", encoding="utf-8")
            code, out, _ = _run("build", str(EXPR), "-o", str(target), "--cache")
            self.assertEqual(code, 0)
            self.assertIn("[EMIT]", out)
            serialise.loads(target.read_text(encoding="utf-8"))

    def test_unresolved_conflicts_warn(self):
        with tempfile.TemporaryDirectory() as tmp:
            g = Path(tmp) / "ifelse.g"
            g.write_text('%token X /x/; S : "if" S "else" S | "if" S | X ;', encoding="utf-8")
            code, out, err = _run("build", str(g), "-o", str(Path(tmp) / "t.json"))
        self.assertEqual(code, 0)
        self.assertIn("[WARN]", err)
        self.assertIn("shift/reduce", err)


class TestLex(unittest.TestCase):
    def test_lex_text(self):
        code, out, _ = _run("lex", str(EXPR), "--text", "1 + 23")
        self.assertEqual(code, 0)
        lines = out.splitlines()
        self.assertEqual(len(lines), 3)
        self.assertTrue(lines[1].startswith("001: +"))
        self.assertIn("'23'  @1:5", lines[2])

    def test_lex_parse(self):
        code, out, _ = _run("lex", str(EXPR), "--text", "(1 + 2) * -3", "--parse")
        self.assertEqual(code, 0)
        self.assertTrue(out.rstrip().endswith("[PARSE OK]"))

    def test_lex_parse_error(self):
        code, _, err = _run("lex", str(EXPR), "--text", "1 + * 2", "--parse")
        self.assertEqual(code, 2)
        self.assertIn("[SYNTAX ERROR]", err)

    def test_lex_error(self):
        code, _, err = _run("lex", str(EXPR), "--text", "1 $ 2")
        self.assertEqual(code, 2)
        self.assertIn("[LEX ERROR]", err)

    def test_lex_input_file(self):
        with tempfile.TemporaryDirectory() as tmp:
            inp = Path(tmp) / "in.txt"
            inp.write_text("4\n* 5", encoding="utf-8")
            code, out, _ = _run("lex", str(EXPR), "--input", str(inp))
        self.assertEqual(code, 0)
        self.assertIn("@2:3", out)
