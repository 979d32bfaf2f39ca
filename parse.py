import logging
from lark import Tree
from errors import CompileSyntaxError, SemanticError, EC
from lexer import TokenKind
from codegen import Generator


logger = logging.getLogger(__name__)

comparison_ops = {
    '==': 'expr_eq',
    '!=': 'expr_ne',
    '<': 'expr_lt',
    '>': 'expr_gt',
}

additive_ops = {
    '+': 'expr_add',
    '-': 'expr_sub',
}


def node(data, children, tok):
    """Creates an AST node, recording the position of the token that
starts the construct in its meta.

    """
    t = Tree(data, children)
    t.meta.empty = False
    t.meta.line = tok.pos.line
    t.meta.column = tok.pos.column
    t.meta.pos = tok.pos
    return t


class Program:
    "The root of the AST."

    def __init__(self, tree):
        assert tree.data == 'block'
        self.tree = tree


    def generate(self, label_namer=None):
        return Generator(label_namer).generate(self.tree)


    def pretty(self):
        return self.tree.pretty()


    def __eq__(self, other):
        return isinstance(other, Program) and self.tree == other.tree


    def __repr__(self):
        return f'<Program {len(self.tree.children)} statement(s)>'


class Parser:
    def __init__(self, tokens):
        tokens = list(tokens)
        assert tokens and tokens[-1].kind == TokenKind.EOF, \
            'Token stream must end with an end-of-input token'
        self.tokens = tokens
        self.i = 0


    def curr(self):
        return self.tokens[self.i]


    def peek(self):
        # the EOF token is sticky
        return self.tokens[min(self.i + 1, len(self.tokens) - 1)]


    def advance(self):
        tok = self.curr()
        if tok.kind != TokenKind.EOF:
            self.i += 1
        return tok


    def error(self, expected, code=EC.SYNTAX_ERROR):
        tok = self.curr()
        raise CompileSyntaxError(
            code,
            f"Expected {expected}, but found '{tok.describe()}'",
            tok.pos)


    def expect(self, kind, text=None, expected=None):
        if not self.curr().matches(kind, text):
            if expected is None:
                expected = f"'{text}'" if text else str(kind)
            self.error(expected)
        return self.advance()


    def expect_identifier(self, what):
        return self.expect(TokenKind.IDENTIFIER, expected=what).text


    def at(self, kind, text=None):
        return self.curr().matches(kind, text)


    def at_bracket(self, text):
        return self.at(TokenKind.BRACKET, text)


    def skip_newlines(self):
        while self.at(TokenKind.NEWLINE):
            self.advance()


    def expect_terminator(self):
        if not (self.at(TokenKind.NEWLINE) or self.at(TokenKind.EOF)):
            self.error('newline')


    def parse_program(self):
        start = self.curr()
        statements = []

        self.skip_newlines()
        while not self.at(TokenKind.EOF):
            statements.append(self.parse_statement())
            self.expect_terminator()
            self.skip_newlines()

        logger.debug(f'Parsed {len(statements)} top-level statement(s)')
        return Program(node('block', statements, start))


    def parse_block(self):
        start = self.expect(TokenKind.BRACKET, '{')
        self.skip_newlines()

        statements = []
        if self.at_bracket('}'):
            statements.append(node('nop', [], self.curr()))

        while not self.at_bracket('}'):
            statements.append(self.parse_statement())
            if not self.at_bracket('}'):
                self.expect_terminator()
            self.skip_newlines()

        self.advance()
        return node('block', statements, start)


    def parse_statement(self):
        tok = self.curr()

        if tok.matches(TokenKind.BRACKET, '{'):
            return self.parse_block()

        if tok.kind == TokenKind.KEYWORD:
            method = getattr(self, f'parse_{tok.text}_stmt', None)
            if method:
                self.advance()
                return method(tok)

        if tok.kind == TokenKind.IDENTIFIER:
            if self.peek().kind == TokenKind.EQUALS:
                name = self.advance().text
                self.advance()
                value = self.parse_expression()
                return node('var_assign', [name, value], tok)

            if self.peek().matches(TokenKind.BRACKET, '['):
                return self.parse_arr_assign()

        self.error('statement')


    def parse_var_stmt(self, tok):
        name = self.expect_identifier('variable name')
        return node('var_decl', [name], tok)


    def parse_arr_stmt(self, tok):
        name = self.expect_identifier('array name')
        self.expect(TokenKind.BRACKET, '[')
        if not self.at(TokenKind.NUMBER):
            self.error('array length', EC.INVALID_ARRAY_LENGTH)
        length = int(self.advance().text)
        self.expect(TokenKind.BRACKET, ']')
        return node('arr_decl', [name, length], tok)


    def parse_arr_assign(self):
        tok = self.curr()
        name = self.advance().text
        self.expect(TokenKind.BRACKET, '[')
        index = self.parse_expression()
        self.expect(TokenKind.BRACKET, ']')
        self.expect(TokenKind.EQUALS)
        value = self.parse_expression()
        return node('arr_assign', [name, index, value], tok)


    def parse_func_stmt(self, tok):
        name = self.expect_identifier('function name')
        params_tok = self.expect(TokenKind.BRACKET, '(')

        params = []
        if not self.at_bracket(')'):
            while True:
                ptok = self.curr()
                pname = self.expect_identifier('parameter name')
                if pname in params:
                    raise SemanticError(EC.DUP_PARAM,
                                        f'Duplicate parameter: "{pname}"',
                                        ptok.pos)
                params.append(pname)

                if self.at(TokenKind.COMMA):
                    self.advance()
                    continue
                break
        self.expect(TokenKind.BRACKET, ')', "',' or ')'")

        body = self.parse_block()
        return node('func_decl', [name, node('params', params, params_tok), body], tok)


    def parse_if_stmt(self, tok):
        cond = self.parse_expression()
        body = self.parse_block()
        return node('if_stmt', [cond, body], tok)


    def parse_while_stmt(self, tok):
        cond = self.parse_expression()
        body = self.parse_block()
        return node('while_stmt', [cond, body], tok)


    def parse_return_stmt(self, tok):
        value = self.parse_expression()
        return node('return_stmt', [value], tok)


    def parse_deref_stmt(self, tok):
        target = self.parse_expression()
        self.expect(TokenKind.EQUALS)
        value = self.parse_expression()
        return node('deref_assign', [target, value], tok)


    def parse_call_stmt(self, tok):
        if not (self.at(TokenKind.IDENTIFIER) and
                self.peek().matches(TokenKind.BRACKET, '(')):
            self.error('function call')
        return node('call_stmt', [self.parse_atom()], tok)


    def parse_expression(self):
        return self.parse_comparison()


    # Every binary level parses the next tighter level first, and then,
    # if its operator follows, the right-hand side at the same level
    # again. This makes all binary operators right-associative:
    # a - b - c is a - (b - c).

    def parse_comparison(self):
        start = self.curr()
        left = self.parse_addition()

        tok = self.curr()
        if tok.kind == TokenKind.OPERATOR and tok.text in comparison_ops:
            self.advance()
            right = self.parse_comparison()
            return node(comparison_ops[tok.text], [left, right], start)

        return left


    def parse_addition(self):
        start = self.curr()
        left = self.parse_multiplication()

        tok = self.curr()
        if tok.kind == TokenKind.OPERATOR and tok.text in additive_ops:
            self.advance()
            right = self.parse_addition()
            return node(additive_ops[tok.text], [left, right], start)

        return left


    def parse_multiplication(self):
        start = self.curr()
        left = self.parse_negation()

        if self.at(TokenKind.OPERATOR, '*'):
            self.advance()
            right = self.parse_multiplication()
            return node('expr_mul', [left, right], start)

        return left


    def parse_negation(self):
        tok = self.curr()
        if tok.matches(TokenKind.OPERATOR, '-'):
            self.advance()
            return node('negation', [self.parse_atom()], tok)
        return self.parse_atom()


    def parse_atom(self):
        tok = self.curr()

        if tok.kind == TokenKind.NUMBER:
            self.advance()
            return node('number', [int(tok.text)], tok)

        if tok.kind == TokenKind.IDENTIFIER:
            if self.peek().matches(TokenKind.BRACKET, '['):
                self.advance()
                self.advance()
                index = self.parse_expression()
                self.expect(TokenKind.BRACKET, ']')
                return node('array_ref', [tok.text, index], tok)

            if self.peek().matches(TokenKind.BRACKET, '('):
                self.advance()
                args_tok = self.advance()
                args = []
                if not self.at_bracket(')'):
                    while True:
                        args.append(self.parse_expression())
                        if self.at(TokenKind.COMMA):
                            self.advance()
                            continue
                        break
                self.expect(TokenKind.BRACKET, ')', "',' or ')'")
                return node('function_call',
                            [tok.text, node('args', args, args_tok)], tok)

            self.advance()
            return node('variable', [tok.text], tok)

        if tok.matches(TokenKind.KEYWORD, 'addr'):
            self.advance()
            name = self.expect_identifier('variable name')
            return node('addr_of', [name], tok)

        if tok.matches(TokenKind.KEYWORD, 'deref'):
            self.advance()
            return node('deref', [self.parse_atom()], tok)

        if tok.matches(TokenKind.BRACKET, '('):
            self.advance()
            e = self.parse_expression()
            self.expect(TokenKind.BRACKET, ')')
            return e

        self.error('expression')


def parse(tokens):
    return Parser(tokens).parse_program()
