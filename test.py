#!/usr/bin/env python3

import io
import os
import sys
import logging
import argparse
import tempfile
import traceback
import unittest
from contextlib import redirect_stdout
from lark import Tree
import accumc
from asm import Instr, Label, AsmError, read_program, resolve_labels
from codegen import Generator, RandomLabels
from compiler import Compiler
from errors import CompileError, CompileSyntaxError, SemanticError, EC
from lexer import TokenKind, tokenize
from memory import MemoryTracker, InternalInvariantError
from parse import Parser, parse
from vm import Machine, MachineRuntimeError, RE

logger = logging.getLogger(__name__)

# we are going to create this phony test case, so that we can use its
# assert* methods, which are much nicer than the vanilla assert
# statement.
tc = unittest.TestCase()


class TestAssign1:
    code = """
var x
x = 2
x = x + 3
return x
    """

    cevents = []
    vevents = [
        ('acc', 5),
    ]


class TestArith1:
    code = """
return 2 + 3 * 4
    """

    cevents = []
    vevents = [
        ('acc', 14),
    ]


class TestArith2:
    # binary operators group to the right
    code = """
return 10 - 3 - 2
    """

    cevents = []
    vevents = [
        ('acc', 9),
    ]


class TestArith3:
    code = """
return (10 - 3) - 2
    """

    cevents = []
    vevents = [
        ('acc', 5),
    ]


class TestMul1:
    code = """
return 0 * 7
    """

    cevents = []
    vevents = [
        ('acc', 0),
    ]


class TestMul2:
    code = """
return -3 * 4
    """

    cevents = []
    vevents = [
        ('acc', -12),
    ]


class TestMul3:
    code = """
return 3 * -4
    """

    cevents = []
    vevents = [
        ('acc', -12),
    ]


class TestCompare1:
    code = """
return 3 > 2
    """

    cevents = []
    vevents = [
        ('acc', 1),
    ]


class TestCompare2:
    code = """
return 2 > 2
    """

    cevents = []
    vevents = [
        ('acc', 0),
    ]


class TestCompare3:
    code = """
return 1 < 2
    """

    cevents = []
    vevents = [
        ('acc', 1),
    ]


class TestCompare4:
    code = """
return 2 < 1
    """

    cevents = []
    vevents = [
        ('acc', 0),
    ]


class TestCompare5:
    code = """
var a
a = 4
return a == 2 + 2
    """

    cevents = []
    vevents = [
        ('acc', 1),
    ]


class TestCompare6:
    code = """
return 2 != 2
    """

    cevents = []
    vevents = [
        ('acc', 0),
    ]


class TestIf1:
    code = """
var y
y = 1
if 1 > 0 {
    y = 5
}
return y
    """

    cevents = []
    vevents = [
        ('acc', 5),
    ]


class TestIf2:
    code = """
var y
y = 1
if 0 > 1 {
    y = 5
}
return y
    """

    cevents = []
    vevents = [
        ('acc', 1),
    ]


class TestIf3:
    code = """
if 1 > 0 { var y }
y = 1
    """

    cevents = [
        ('error', EC.UNDEFINED_VARIABLE),
    ]
    vevents = []


class TestWhile1:
    code = """
var i
var s
i = 5
s = 0
while i > 0 {
    s = s + i
    i = i - 1
}
return s
    """

    cevents = []
    vevents = [
        ('acc', 15),
    ]


class TestArray1:
    code = """
arr a[3]
a[0] = 4
a[1] = 5
a[2] = a[0] + a[1]
return a[2]
    """

    cevents = []
    vevents = [
        ('acc', 9),
    ]


class TestArray2:
    code = """
arr a[4]
var i
i = 0
while i < 4 {
    a[i] = i * i
    i = i + 1
}
return a[3] + a[2]
    """

    cevents = []
    vevents = [
        ('acc', 13),
    ]


class TestPointer1:
    code = """
var x
var p
x = 7
p = addr x
deref p = deref p + 1
return x
    """

    cevents = []
    vevents = [
        ('acc', 8),
    ]


class TestPointer2:
    code = """
arr a[2]
var p
a[1] = 42
p = addr a
return deref (p + 1)
    """

    cevents = []
    vevents = [
        ('acc', 42),
    ]


class TestFunc1:
    code = """
func add(a, b) {
    return a + b
}
var r
r = add(2, 3)
return r
    """

    cevents = []
    vevents = [
        ('acc', 5),
    ]


class TestFunc2:
    code = """
func add(a, b) {
    return a + b
}
return add(1, add(2, 3))
    """

    cevents = []
    vevents = [
        ('acc', 6),
    ]


class TestFunc3:
    code = """
var g
g = 0
func bump(n) {
    g = g + n
}
call bump(4)
call bump(5)
return g
    """

    cevents = []
    vevents = [
        ('acc', 9),
    ]


class TestFunc4:
    # variables declared after a function must not share cells with
    # the function's locals and temporaries.
    code = """
func inc(p) {
    var t
    t = p + 1
    return t
}
var r
r = 5
var s
s = inc(1) + r
return s
    """

    cevents = []
    vevents = [
        ('acc', 7),
    ]


class TestFunc5:
    code = """
func five() {
    return 5
}
return five()
    """

    cevents = []
    vevents = [
        ('acc', 5),
    ]


class TestFunc6:
    code = """
func square(n) {
    return n * n
}
func sumsq(a, b) {
    return square(a) + square(b)
}
return sumsq(3, 4)
    """

    cevents = []
    vevents = [
        ('acc', 25),
    ]


class TestFunc7:
    code = """
func f(a) {
    return f(a)
}
    """

    cevents = [
        ('error', EC.NO_RECURSION),
    ]
    vevents = []


class TestFunc8:
    code = """
func f(a) {
    return a
}
return f(1, 2)
    """

    cevents = [
        ('error', EC.ARGUMENT_COUNT_MISMATCH),
    ]
    vevents = []


class TestFunc9:
    code = """
return f(1)
    """

    cevents = [
        ('error', EC.NO_SUCH_FUNC),
    ]
    vevents = []


class TestFunc10:
    code = """
func f() {
}
func f() {
}
    """

    cevents = [
        ('error', EC.DUP_DEF),
    ]
    vevents = []


class TestFunc11:
    code = """
func f(a, a) {
}
    """

    cevents = [
        ('error', EC.DUP_PARAM),
    ]
    vevents = []


class TestFunc12:
    code = """
{
    func f() {
    }
}
call f()
    """

    cevents = [
        ('error', EC.NO_SUCH_FUNC),
    ]
    vevents = []


class TestScope1:
    code = """
var x
x = 1
{
    var x
    x = 2
}
return x
    """

    cevents = []
    vevents = [
        ('acc', 1),
    ]


class TestScope2:
    code = """
var x
x = 1
{
    var y
    y = 2
    {
        x = x + y
    }
}
return x
    """

    cevents = []
    vevents = [
        ('acc', 3),
    ]


class TestComment1:
    code = """
var x // the only variable
// a line of its own
x = 3
return x
    """

    cevents = []
    vevents = [
        ('acc', 3),
    ]


class TestUndefined1:
    code = """
x = 1
    """

    cevents = [
        ('error', EC.UNDEFINED_VARIABLE),
    ]
    vevents = []


class TestUndefined2:
    code = """
return a[0]
    """

    cevents = [
        ('error', EC.UNDEFINED_VARIABLE),
    ]
    vevents = []


class TestSyntax1:
    code = """
var 1
    """

    cevents = [
        ('error', EC.SYNTAX_ERROR),
    ]
    vevents = []


class TestSyntax2:
    code = """
arr a[x]
    """

    cevents = [
        ('error', EC.INVALID_ARRAY_LENGTH),
    ]
    vevents = []


class TestSyntax3:
    code = """
var x var y
    """

    cevents = [
        ('error', EC.SYNTAX_ERROR),
    ]
    vevents = []


class TestSyntax4:
    code = """
return (1 + 2
    """

    cevents = [
        ('error', EC.SYNTAX_ERROR),
    ]
    vevents = []


class TestSyntax5:
    code = """
var x $
    """

    cevents = [
        ('error', EC.INVALID_CHARACTER),
    ]
    vevents = []


class TestSyntax6:
    code = """
addr x
    """

    cevents = [
        ('error', EC.SYNTAX_ERROR),
    ]
    vevents = []


class TestSyntax7:
    code = """
if 1 {
    var x
    """

    cevents = [
        ('error', EC.SYNTAX_ERROR),
    ]
    vevents = []


def run_test_case(name, case, labels='counter'):
    events = []

    logger.info(f'Running test case: {name}')

    c = Compiler(labels=labels, seed=1)
    try:
        code = c.compile(case.code)
    except CompileError as e:
        events.append(('error', e.code))
        code = None
    tc.assertEqual(events, case.cevents)

    if code is not None:
        machine = Machine(code)
        machine.launch()
        events = [('acc', machine.acc)]

        tc.assertEqual(events, case.vevents)


def get_all_tests():
    return {
        name: value
        for name, value in globals().items()
        if name.startswith('Test') and isinstance(value, type) and
        not issubclass(value, unittest.TestCase)
    }


def lex(text):
    return tokenize(text)


def compile_code(text):
    return Compiler().compile(text)


def generate(text, label_namer=None):
    g = Generator(label_namer)
    code = g.generate(parse(lex(text)).tree)
    return g, code


class ProgramCases(unittest.TestCase):
    def test_all_cases(self):
        for name, case in get_all_tests().items():
            for labels in ['counter', 'random']:
                with self.subTest(case=name, labels=labels):
                    run_test_case(name, case, labels)


class LexerTests(unittest.TestCase):
    def test_kinds_and_text(self):
        tokens = lex('var x\nx = 2 == 3')
        self.assertEqual(
            [(t.kind, t.text) for t in tokens],
            [(TokenKind.KEYWORD, 'var'),
             (TokenKind.IDENTIFIER, 'x'),
             (TokenKind.NEWLINE, ''),
             (TokenKind.IDENTIFIER, 'x'),
             (TokenKind.EQUALS, ''),
             (TokenKind.NUMBER, '2'),
             (TokenKind.OPERATOR, '=='),
             (TokenKind.NUMBER, '3'),
             (TokenKind.EOF, '')])


    def test_positions(self):
        tokens = lex('var x\nx = 2 == 3')
        self.assertEqual([(t.pos.line, t.pos.column) for t in tokens],
                         [(1, 1), (1, 5), (1, 6), (2, 1), (2, 3),
                          (2, 5), (2, 7), (2, 10), (2, 11)])


    def test_keyword_prefix_is_identifier(self):
        tokens = lex('variable addrx deref')
        self.assertEqual([t.kind for t in tokens],
                         [TokenKind.IDENTIFIER,
                          TokenKind.IDENTIFIER,
                          TokenKind.KEYWORD,
                          TokenKind.EOF])


    def test_brackets_and_commas(self):
        tokens = lex('f(a, b[1]) {}')
        self.assertEqual([t.describe() for t in tokens],
                         ['f', '(', 'a', ',', 'b', '[', '1', ']', ')',
                          '{', '}', 'end of input'])


    def test_comments_skipped(self):
        tokens = lex('// nothing here\nvar x // trailing\n')
        self.assertEqual([t.kind for t in tokens],
                         [TokenKind.NEWLINE,
                          TokenKind.KEYWORD,
                          TokenKind.IDENTIFIER,
                          TokenKind.NEWLINE,
                          TokenKind.EOF])


    def test_single_eof(self):
        self.assertEqual([t.kind for t in lex('')], [TokenKind.EOF])
        tokens = lex('x\n\n')
        self.assertEqual([t.kind for t in tokens].count(TokenKind.EOF), 1)
        self.assertEqual(tokens[-1].kind, TokenKind.EOF)


    def test_invalid_character(self):
        with self.assertRaises(CompileSyntaxError) as cm:
            tokenize('var x\nx = 1 @ 2', 'prog.txt')
        self.assertEqual(cm.exception.code, EC.INVALID_CHARACTER)
        self.assertEqual(cm.exception.pos.line, 2)
        self.assertEqual(cm.exception.pos.column, 7)
        self.assertEqual(cm.exception.pos.file, 'prog.txt')


class ParserTests(unittest.TestCase):
    def test_precedence(self):
        program = parse(lex('return 1 + 2 * 3'))
        self.assertEqual(program.tree, Tree('block', [
            Tree('return_stmt', [
                Tree('expr_add', [
                    Tree('number', [1]),
                    Tree('expr_mul', [Tree('number', [2]),
                                      Tree('number', [3])]),
                ]),
            ]),
        ]))


    def test_right_associative(self):
        program = parse(lex('return 1 - 2 - 3'))
        expr, = program.tree.children[0].children
        self.assertEqual(expr, Tree('expr_sub', [
            Tree('number', [1]),
            Tree('expr_sub', [Tree('number', [2]), Tree('number', [3])]),
        ]))


    def test_comparison_binds_loosest(self):
        program = parse(lex('return -a < b + 1'))
        expr, = program.tree.children[0].children
        self.assertEqual(expr, Tree('expr_lt', [
            Tree('negation', [Tree('variable', ['a'])]),
            Tree('expr_add', [Tree('variable', ['b']), Tree('number', [1])]),
        ]))


    def test_atoms(self):
        program = parse(lex('a[1] = f(2, b) + g() + deref p + addr q'))
        self.assertEqual(program.tree.children[0], Tree('arr_assign', [
            'a',
            Tree('number', [1]),
            Tree('expr_add', [
                Tree('function_call', ['f', Tree('args', [
                    Tree('number', [2]), Tree('variable', ['b'])])]),
                Tree('expr_add', [
                    Tree('function_call', ['g', Tree('args', [])]),
                    Tree('expr_add', [
                        Tree('deref', [Tree('variable', ['p'])]),
                        Tree('addr_of', ['q']),
                    ]),
                ]),
            ]),
        ]))


    def test_statements(self):
        program = parse(lex(
            'var x\n'
            'arr a[10]\n'
            'deref x = 1\n'
            'func f(p, q) {\n'
            '    while p > 0 {\n'
            '        p = p - 1\n'
            '    }\n'
            '    return q\n'
            '}\n'
            'if x == 0 { }\n'
            'call f(1, 2)\n'))
        self.assertEqual(
            [s.data for s in program.tree.children],
            ['var_decl', 'arr_decl', 'deref_assign', 'func_decl',
             'if_stmt', 'call_stmt'])

        arr_decl = program.tree.children[1]
        self.assertEqual(arr_decl.children, ['a', 10])

        func = program.tree.children[3]
        name, params, body = func.children
        self.assertEqual(name, 'f')
        self.assertEqual(params.children, ['p', 'q'])
        self.assertEqual([s.data for s in body.children],
                         ['while_stmt', 'return_stmt'])

        if_stmt = program.tree.children[4]
        self.assertEqual(if_stmt.children[1], Tree('block', [Tree('nop', [])]))


    def test_reparse_is_identical(self):
        a = parse(lex('var x\nx = x+1\nif x>1 {x = 0}'))
        b = parse(lex('var   x\n\n  x = x + 1 // again\nif x > 1 {\n  x = 0\n}\n'))
        self.assertEqual(a, b)


    def test_positions(self):
        program = parse(lex('var x\n\n  x = 1'))
        assign = program.tree.children[1]
        self.assertEqual((assign.meta.line, assign.meta.column), (3, 3))


    def test_syntax_error_message(self):
        with self.assertRaises(CompileSyntaxError) as cm:
            parse(tokenize('var 1'))
        self.assertEqual(
            str(cm.exception),
            'Expected variable name, but found \'1\' at ("<input>": 1, 5)')


    def test_call_statement_needs_call(self):
        with self.assertRaises(CompileSyntaxError) as cm:
            parse(lex('call x'))
        self.assertIn('function call', str(cm.exception))


    def test_missing_eof(self):
        tokens = lex('var x')[:-1]
        with self.assertRaises(AssertionError):
            Parser(tokens)


class MemoryTrackerTests(unittest.TestCase):
    def test_lowest_address_first(self):
        m = MemoryTracker()
        self.assertEqual(m.allocate('a'), 0)
        self.assertEqual(m.allocate('b'), 1)
        m.release_by_name('a')
        self.assertEqual(m.allocate_temporary(), 0)
        self.assertEqual(m.allocate_temporary(), 2)


    def test_array_first_fit(self):
        m = MemoryTracker()
        m.allocate('x')
        m.allocate('y')
        m.allocate('z')
        m.release_by_name('y')
        self.assertEqual(m.allocate_array('arr', 2), 3)
        self.assertEqual(m.allocate('t'), 1)
        self.assertEqual(m.allocate_temporary_array(3), 5)
        self.assertEqual(m.allocate('u'), 8)


    def test_overlay(self):
        m = MemoryTracker()
        base = m.allocate_temporary_array(2)
        m.allocate_overlay('p', base)
        m.allocate_overlay('q', base + 1)
        self.assertEqual(m.resolve('p'), 0)
        self.assertEqual(m.resolve('q'), 1)
        self.assertEqual(m.allocate('r'), 2)

        m.release_by_name('p')
        self.assertTrue(m.is_occupied(0))


    def test_resolve_undefined(self):
        m = MemoryTracker()
        with self.assertRaises(SemanticError) as cm:
            m.resolve('nope')
        self.assertEqual(cm.exception.code, EC.UNDEFINED_VARIABLE)


    def test_temporaries_are_not_names(self):
        m = MemoryTracker()
        m.allocate_temporary()
        with self.assertRaises(SemanticError):
            m.resolve('')


    def test_release_untracked(self):
        m = MemoryTracker()
        m.allocate('a')
        with self.assertRaises(InternalInvariantError):
            m.release_by_name('b')
        with self.assertRaises(InternalInvariantError):
            m.release_by_address(5)


    def test_scopes(self):
        m = MemoryTracker()
        m.enter_scope()
        m.allocate('outer')
        m.enter_scope()
        m.allocate('inner')
        self.assertEqual(m.resolve('outer'), 0)
        self.assertEqual(m.resolve('inner'), 1)
        m.exit_scope()
        self.assertIsNone(m.lookup('inner'))
        self.assertEqual(m.resolve('outer'), 0)
        m.exit_scope()
        self.assertEqual(m.allocations, [])
        self.assertEqual(m.allocs, m.releases)


    def test_shadowing(self):
        m = MemoryTracker()
        m.allocate('x')
        m.enter_scope()
        m.allocate('x')
        self.assertEqual(m.resolve('x'), 1)
        m.exit_scope()
        self.assertEqual(m.resolve('x'), 0)


    def test_usage_and_reserve(self):
        m = MemoryTracker()
        m.begin_usage()
        t = m.allocate_temporary()
        u = m.allocate_temporary()
        m.release_by_address(t)
        m.release_by_address(u)
        used = m.end_usage()
        self.assertEqual(used, {0, 1})
        self.assertEqual(m.reserve(used), [0, 1])
        self.assertEqual(m.allocate('v'), 2)


    def test_no_overlap(self):
        m = MemoryTracker()
        m.allocate('a')
        m.allocate_array('b', 3)
        m.allocate_temporary()
        m.release_by_name('b')
        m.allocate_array('c', 2)
        m.allocate_array('d', 2)
        m.allocate('e')

        cells = []
        for a in m.allocations:
            cells += range(a.start, a.end + 1)
        self.assertEqual(len(cells), len(set(cells)))


class CodegenTests(unittest.TestCase):
    def test_assignment_lowering(self):
        self.assertEqual(compile_code('var x\nx = 2\nx = x + 3\n'),
                         'mka 2\n'
                         'sta 0\n'
                         'lda 0\n'
                         'sta 1\n'
                         'mka 3\n'
                         'sta 2\n'
                         'lda 1\n'
                         'add 2\n'
                         'sta 0\n')


    def test_if_lowering(self):
        g, code = generate('if 1 > 0 { var y }')
        self.assertEqual(code,
                         'mka 1\n'
                         'sta 0\n'
                         'mka 0\n'
                         'sta 1\n'
                         'lda 1\n'
                         'neg\n'
                         'sta 1\n'
                         'lda 0\n'
                         'add 1\n'
                         'jz __cmp_zero_1\n'
                         'jp __cmp_true_1\n'
                         'label __cmp_zero_1\n'
                         'mka 0\n'
                         'jmp __cmp_end_1\n'
                         'label __cmp_true_1\n'
                         'mka 1\n'
                         'label __cmp_end_1\n'
                         'jz __endif_1\n'
                         'label __endif_1\n')
        self.assertIsNone(g.tracker.lookup('y'))


    def test_function_lowering(self):
        code = compile_code('func add(a, b) {\n'
                            '    return a + b\n'
                            '}\n'
                            'var r\n'
                            'r = add(2, 3)\n')
        self.assertEqual(code,
                         'jmp __func_end_1\n'
                         'label func_add\n'
                         'lda 0\n'
                         'sta 2\n'
                         'lda 1\n'
                         'sta 3\n'
                         'lda 2\n'
                         'add 3\n'
                         'ret\n'
                         'ret\n'
                         'label __func_end_1\n'
                         'mka 2\n'
                         'sta 5\n'
                         'mka 3\n'
                         'sta 6\n'
                         'lda 5\n'
                         'sta 0\n'
                         'lda 6\n'
                         'sta 1\n'
                         'call func_add\n'
                         'sta 4\n')


    def test_allocations_balanced(self):
        g, _ = generate(TestFunc6.code + TestArray2.code.replace('return', 'var z\nz ='))
        self.assertEqual(g.tracker.allocations, [])
        self.assertEqual(g.tracker.allocs, g.tracker.releases)


    def test_labels_unique_and_defined(self):
        source = TestWhile1.code + TestFunc6.code
        for namer in [None, RandomLabels(seed=7)]:
            _, code = generate(source, namer)
            program = read_program(code)
            labels = [i.value for i in program if isinstance(i, Label)]
            self.assertEqual(len(labels), len(set(labels)))
            resolve_labels(program)


    def test_random_labels_retry_on_collision(self):
        names = iter(['x', 'x', 'y'])
        g = Generator(lambda purpose: next(names))
        self.assertEqual(g.gen_label('a'), 'x')
        self.assertEqual(g.gen_label('a'), 'y')


    def test_random_labels_same_shape(self):
        a = Compiler(labels='random', seed=1).compile(TestWhile1.code)
        b = Compiler(labels='random', seed=2).compile(TestWhile1.code)
        self.assertNotEqual(a, b)
        self.assertEqual([line.split()[0] for line in a.splitlines()],
                         [line.split()[0] for line in b.splitlines()])


    def test_error_position(self):
        with self.assertRaises(SemanticError) as cm:
            compile_code('var x\nx = y')
        self.assertEqual(cm.exception.code, EC.UNDEFINED_VARIABLE)
        self.assertEqual((cm.exception.pos.line, cm.exception.pos.column),
                         (2, 5))


    def test_no_output_on_error(self):
        c = Compiler()
        with self.assertRaises(SemanticError):
            c.compile('func f(a) {\n    return f(1)\n}\n')
        self.assertIsNone(c.code)


    def test_recursion_message(self):
        with self.assertRaises(SemanticError) as cm:
            compile_code('func add(a, b) {\n    return add(a, b)\n}\n')
        self.assertIn('No recursion', str(cm.exception))


class MachineTests(unittest.TestCase):
    def test_run(self):
        m = Machine('mka 3\nsta 0\nlda 0\nadd 0\nret\n')
        self.assertEqual(m.launch(), 6)
        self.assertEqual(m.mem[0], 3)


    def test_indirect(self):
        m = Machine('mka 9\nsta 5\nmka 5\nsta 0\nldad 0\nneg\nstad 0\n')
        m.launch()
        self.assertEqual(m.mem[5], -9)


    def test_call_and_return(self):
        m = Machine([Instr('jmp', 'main'),
                     Label('f'),
                     Instr('mka', 4),
                     Instr('ret'),
                     Label('main'),
                     Instr('call', 'f'),
                     Instr('sta', 1)])
        m.launch()
        self.assertEqual(m.mem[1], 4)


    def test_step_limit(self):
        m = Machine('label l\njmp l\n', max_steps=100)
        with self.assertRaises(MachineRuntimeError) as cm:
            m.launch()
        self.assertEqual(cm.exception.code, RE.STEP_LIMIT_EXCEEDED)


    def test_bad_programs(self):
        for text in ['foo 1', 'lda -1', 'lda', 'neg 1', 'mka x',
                     'label 1abc']:
            with self.subTest(text=text):
                with self.assertRaises(AsmError):
                    read_program(text)

        for text in ['label a\nlabel a\n', 'jmp nowhere\n']:
            with self.subTest(text=text):
                with self.assertRaises(AsmError):
                    Machine(text)


class CommandLineTests(unittest.TestCase):
    def setUp(self):
        self.dir = tempfile.TemporaryDirectory()
        self.input = os.path.join(self.dir.name, 'prog.txt')
        self.output = os.path.join(self.dir.name, 'out.txt')


    def tearDown(self):
        self.dir.cleanup()


    def run_main(self, source, *args):
        with open(self.input, 'w') as f:
            f.write(source)
        buf = io.StringIO()
        with redirect_stdout(buf):
            ret = accumc.main([self.input, '-o', self.output, *args])
        return ret, buf.getvalue()


    def test_compile_and_run(self):
        ret, out = self.run_main(TestFunc1.code, '--run')
        self.assertEqual(ret, 0)
        self.assertEqual(out, '5\n')
        with open(self.output) as f:
            self.assertIn('call func_add\n', f.read())


    def test_print_code(self):
        ret, out = self.run_main('var x\nx = 1\n', '--print-code')
        self.assertEqual(ret, 0)
        self.assertEqual(out, 'mka 1\nsta 0\n')


    def test_print_ast(self):
        ret, out = self.run_main('var x\n', '--print-ast')
        self.assertEqual(ret, 0)
        self.assertIn('var_decl', out)


    def test_compile_error(self):
        ret, out = self.run_main('x = 1\n')
        self.assertEqual(ret, 1)
        self.assertTrue(out.startswith('COMPILE ERROR: Undefined variable'))
        self.assertFalse(os.path.exists(self.output))


def main():
    parser = argparse.ArgumentParser(
        description='Run accumc program test cases.')

    parser.add_argument(
        'test_case', nargs='*',
        help='The test case(s) to run. Any number of test cases can be '
        'passed. Defaults to running all tests.')

    args = parser.parse_args()

    test_cases = get_all_tests()
    if args.test_case != []:
        test_cases = {
            name: value
            for name, value in test_cases.items()
            if name in args.test_case
        }

        if len(test_cases) != len(args.test_case):
            not_found = set(args.test_case) - set(get_all_tests())
            print('The following test case(s) not found:')
            for i in not_found:
                print(f'    {i}')
            exit(1)

    failed = []
    success = []

    for labels in ['counter', 'random']:
        print(f'Running {len(test_cases)} test case(s) with {labels} labels...')
        for name, value in test_cases.items():
            try:
                run_test_case(name, value, labels=labels)
            except Exception as e:
                failed.append((name, e, labels))
                if isinstance(e, AssertionError):
                    print('F', end='')
                else:
                    print('E', end='')
            else:
                success.append(name)
                print('.', end='')
            sys.stdout.flush()

        print()

    if len(failed) == 0:
        print(f'All {len(success)} test case(s) ran successfully.')
    else:
        print('Failures:\n')
        for name, exc, labels in failed:
            print(f'Failed test case: {name}')
            print(f'Labels: {labels}')
            print('Exception:')
            traceback.print_exception(type(exc), exc, exc.__traceback__)
        print('---\n')
        total = len(failed) + len(success)
        print(f'{len(failed)} out of {total} test case(s) failed.')
        exit(1)


if __name__ == '__main__':
    main()
