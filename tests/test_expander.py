from __future__ import annotations

import ast
import textwrap
import unittest
from dataclasses import dataclass
from typing import Any

import guard_lang


@dataclass
class Some:
    value: Any


def _expand(text: str, config: guard_lang.GuardConfig | None = None) -> str:
    program = guard_lang.GuardParser(config).parse_text(text)
    return guard_lang.render(guard_lang.GuardExpander(config).expand(program))


def _normalize(src: str) -> str:
    return ast.unparse(ast.parse(textwrap.dedent(src)))


def _probe(code: str, **env: Any):
    """Run expanded code as a function body.

    Returns ("passed", locals) when every guard held, otherwise whatever the
    refute handler returned.
    """
    src = (
        "def _probe():\n"
        + textwrap.indent(code or "pass", "    ")
        + "\n    return ('passed', dict(locals()))\n"
    )
    namespace = dict(env)
    exec(src, namespace)
    return namespace["_probe"]()


class ExpansionShapeTests(unittest.TestCase):
    def test_sequential_clauses_expand_in_order(self) -> None:
        out = _expand("(a, b) = (1, 2), Some(c) = Some(3), a <= b, a + b == c,")
        expected = """
            match (1, 2):
                case (a, b):
                    pass
                case _:
                    return
            match Some(3):
                case Some(c):
                    pass
                case _:
                    return
            if not (a <= b):
                return
            if not (a + b == c):
                return
        """
        self.assertEqual(out, _normalize(expected))

    def test_test_clause_negates_condition(self) -> None:
        self.assertEqual(_expand("ready"), _normalize("if not ready:\n    return"))

    def test_local_handler_replaces_ambient(self) -> None:
        out = _expand("[x] = items => raise LookupError('x')")
        expected = """
            match items:
                case [x]:
                    pass
                case _:
                    raise LookupError('x')
        """
        self.assertEqual(out, _normalize(expected))

    def test_irrefutable_pattern_has_no_refute_arm(self) -> None:
        self.assertEqual(
            _expand("*{ bar = 2 } => _"),
            _normalize("match 2:\n    case bar:\n        pass"),
        )

    def test_empty_program_expands_to_nothing(self) -> None:
        program = guard_lang.GuardParser().parse_text("")
        self.assertEqual(guard_lang.GuardExpander().expand(program), [])
        self.assertEqual(_expand(""), "")

    def test_brace_block_test_checks_set_truthiness(self) -> None:
        self.assertEqual(_expand("{ foo() }"), _normalize("if not {foo()}:\n    return"))

    def test_scoped_group_renames_bindings(self) -> None:
        out = _expand("{ x = f() } => raise RuntimeError('x')")
        self.assertEqual(out, _normalize("match f():\n    case _guard1_x:\n        pass"))

    def test_handler_nodes_are_not_shared(self) -> None:
        program = guard_lang.GuardParser().parse_text("a, b")
        first, second = guard_lang.GuardExpander().expand(program)
        self.assertIsNot(first.body[0], second.body[0])

    def test_expansion_is_deterministic(self) -> None:
        text = "{ x = f(), { y = g(x) } => _, x } => raise E"
        self.assertEqual(_expand(text), _expand(text))

    def test_hygiene_prefix_is_configurable(self) -> None:
        config = guard_lang.GuardConfig(hygiene_prefix="_scoped")
        self.assertIn("_scoped1_x", _expand("{ x = f() } => _", config))

    def test_invalid_default_handler_is_rejected(self) -> None:
        with self.assertRaises(guard_lang.GuardError):
            guard_lang.GuardExpander(guard_lang.GuardConfig(default_handler="if"))

    def test_format_tree_lists_resolved_handlers(self) -> None:
        program = guard_lang.GuardParser().parse_text("a, { b } => _, { c } => raise E")
        expander = guard_lang.GuardExpander()
        tree = guard_lang.format_tree(program, expander.default).splitlines()
        self.assertEqual(
            tree,
            [
                "if a => return",
                "group => return",
                "  if b => return",
                "group => raise E",
                "  if c => raise E",
            ],
        )


class ExpansionBehaviourTests(unittest.TestCase):
    def test_all_guards_hold(self) -> None:
        code = _expand("(a, b) = (1, 2), Some(c) = Some(3), a <= b, a + b == c")
        status, scope = _probe(code, Some=Some)
        self.assertEqual(status, "passed")
        self.assertEqual((scope["a"], scope["b"], scope["c"]), (1, 2, 3))

    def test_first_failing_guard_wins(self) -> None:
        code = _expand("x > 0 => return 'first', x > 1 => return 'second', x > 2 => return 'third'")
        self.assertEqual(_probe(code, x=1), "second")

    def test_default_handler_returns_none(self) -> None:
        self.assertIsNone(_probe(_expand("[a] = []")))

    def test_configured_default_handler(self) -> None:
        config = guard_lang.GuardConfig(default_handler="raise LookupError('refuted')")
        with self.assertRaises(LookupError):
            _probe(_expand("flag", config), flag=False)

    def test_group_handler_overrides_ambient(self) -> None:
        code = _expand("{ a, { b } => _, c => return 'local' } => return 'group', d")
        self.assertEqual(_probe(code, a=False, b=True, c=True, d=True), "group")
        self.assertEqual(_probe(code, a=True, b=False, c=True, d=True), "group")
        self.assertEqual(_probe(code, a=True, b=True, c=False, d=True), "local")
        self.assertIsNone(_probe(code, a=True, b=True, c=True, d=False))

    def test_nested_explicit_handler_wins(self) -> None:
        code = _expand("{ { a } => return 'inner', b } => return 'outer'")
        self.assertEqual(_probe(code, a=False, b=True), "inner")
        self.assertEqual(_probe(code, a=True, b=False), "outer")

    def test_multi_statement_handler(self) -> None:
        seen = []
        code = _expand("ok => seen.append('skip'); return 'multi'")
        self.assertEqual(_probe(code, ok=False, seen=seen), "multi")
        self.assertEqual(seen, ["skip"])

    def test_flattened_bindings_stay_visible(self) -> None:
        status, scope = _probe(_expand("*{ bar = 2 } => _, bar == 2"))
        self.assertEqual(status, "passed")
        self.assertEqual(scope["bar"], 2)

    def test_scoped_bindings_do_not_leak(self) -> None:
        code = _expand("{ [x] = f(), x > 0 } => raise RuntimeError('x')")
        status, scope = _probe(code, f=lambda: [5])
        self.assertEqual(status, "passed")
        self.assertNotIn("x", scope)
        with self.assertRaises(RuntimeError):
            _probe(code, f=lambda: [-5])
        with self.assertRaises(RuntimeError):
            _probe(code, f=lambda: [])

    def test_scoped_group_reads_outer_name_before_rebinding(self) -> None:
        code = _expand("{ x > 0 => return 'neg', x = x * 10, x > 5 => return 'small' } => _")
        self.assertIn("if not _guard1_x > 5", code)
        status, scope = _probe(code, x=1)
        self.assertEqual(status, "passed")
        self.assertEqual(scope["_guard1_x"], 10)
        self.assertNotIn("x", scope)

    def test_flattened_group_inside_scoped_group_shares_its_scope(self) -> None:
        status, scope = _probe(_expand("{ *{ y = 3 } => _, y == 3 } => return 'bad'"))
        self.assertEqual(status, "passed")
        self.assertNotIn("y", scope)

    def test_nested_scopes_shadow(self) -> None:
        code = _expand("{ x = 1, { x = 2, x == 2 } => _, x == 1 } => return 'shadow'")
        self.assertIn("_guard2_x", code)
        self.assertEqual(_probe(code)[0], "passed")

    def test_lambda_parameters_are_not_renamed(self) -> None:
        code = _expand("{ n = 2, (lambda n: n * 3)(n) == 6 } => return 'bad'")
        self.assertIn("lambda n: n * 3", code)
        self.assertEqual(_probe(code)[0], "passed")

    def test_comprehension_variables_are_not_renamed(self) -> None:
        code = _expand("{ n = 3, [n for n in range(2)] == [0, 1], n == 3 } => return 'bad'")
        self.assertEqual(_probe(code)[0], "passed")

    def test_walrus_in_scoped_group_does_not_leak(self) -> None:
        status, scope = _probe(_expand("{ (m := 4) > 3, m == 4 } => return 'bad'"))
        self.assertEqual(status, "passed")
        self.assertNotIn("m", scope)

    def test_walrus_value_reads_outer_name(self) -> None:
        code = _expand("{ (x := x + 1) > 1, x == 2 } => return 'bad'")
        self.assertIn("(_guard1_x := x + 1) > 1", code)
        self.assertIn("if not _guard1_x == 2", code)
        status, scope = _probe(code, x=1)
        self.assertEqual(status, "passed")
        self.assertEqual(scope["_guard1_x"], 2)
        self.assertNotIn("x", scope)

    def test_walrus_in_destructure_source_does_not_leak(self) -> None:
        code = _expand("{ [a] = [(m := 4)], a == m } => return 'bad'")
        status, scope = _probe(code)
        self.assertEqual(status, "passed")
        self.assertNotIn("m", scope)
        self.assertEqual((scope["_guard1_a"], scope["_guard1_m"]), (4, 4))

    def test_walrus_in_lambda_stays_local(self) -> None:
        code = _expand("{ (lambda: (k := 1))() == 1 } => return 'bad'")
        self.assertIn("k := 1", code)
        self.assertEqual(_probe(code)[0], "passed")

    def test_handler_sees_scoped_walrus_binding(self) -> None:
        code = _expand("{ (n := 0) > 0 => return n } => _")
        self.assertEqual(_probe(code), 0)

    def test_brace_block_test_is_always_truthy(self) -> None:
        calls = []
        status, _ = _probe(_expand("{ foo() }"), foo=lambda: calls.append(1))
        self.assertEqual(status, "passed")
        self.assertEqual(calls, [1])


if __name__ == "__main__":
    unittest.main(verbosity=2)
