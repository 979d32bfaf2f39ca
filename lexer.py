import logging
from enum import Enum
from lark import Lark, Token as LarkToken
from lark.exceptions import UnexpectedCharacters
from errors import CompileSyntaxError, EC, SourcePos


logger = logging.getLogger(__name__)

KEYWORDS = frozenset([
    'var', 'arr', 'func', 'if', 'while', 'return', 'call', 'deref', 'addr',
])

# Only the terminals matter here; the rule just keeps all of them alive
# so that Lark.lex() knows about every one of them.
grammar_text = r"""
start: _token*
_token: NAME | NUMBER | OPERATOR | EQUALS | BRACKET | COMMA | NEWLINE

NAME: /[A-Za-z_][A-Za-z0-9_]*/
NUMBER: /[0-9]+/
OPERATOR: /==|!=|[+\-*<>]/
EQUALS: "="
BRACKET: /[()\[\]{}]/
COMMA: ","
NEWLINE: "\n"
COMMENT: /\/\/[^\n]*/
WS: /[ \t\f\r]+/

%ignore WS
%ignore COMMENT
"""


class TokenKind(Enum):
    IDENTIFIER = 'identifier'
    NUMBER = 'number'
    OPERATOR = 'operator'
    KEYWORD = 'keyword'
    EQUALS = 'equals'
    COMMA = 'comma'
    BRACKET = 'bracket'
    NEWLINE = 'newline'
    EOF = 'end of input'


    def __str__(self):
        return self.value


terminal_to_kind = {
    'NAME': TokenKind.IDENTIFIER,
    'KEYWORD': TokenKind.KEYWORD,
    'NUMBER': TokenKind.NUMBER,
    'OPERATOR': TokenKind.OPERATOR,
    'EQUALS': TokenKind.EQUALS,
    'BRACKET': TokenKind.BRACKET,
    'COMMA': TokenKind.COMMA,
    'NEWLINE': TokenKind.NEWLINE,
}

# kinds that carry no text of their own
textless_kinds = {
    TokenKind.EQUALS,
    TokenKind.COMMA,
    TokenKind.NEWLINE,
    TokenKind.EOF,
}


class Token:
    def __init__(self, kind, text, pos):
        assert isinstance(kind, TokenKind)
        self.kind = kind
        self.text = text
        self.pos = pos


    def matches(self, kind, text=None):
        if self.kind != kind:
            return False
        return text is None or self.text == text


    def describe(self):
        "How the token is shown in diagnostics."
        if self.text:
            return self.text
        return {
            TokenKind.EQUALS: '=',
            TokenKind.COMMA: ',',
            TokenKind.NEWLINE: 'newline',
            TokenKind.EOF: 'end of input',
        }[self.kind]


    def __repr__(self):
        return f'<Token {self.kind.name} {self.text!r} {self.pos}>'


    def __eq__(self, other):
        # positions are not compared
        return isinstance(other, Token) and \
            self.kind == other.kind and self.text == other.text


    def __hash__(self):
        return hash((self.kind, self.text))


class PostLex:
    def __init__(self):
        self.always_accept = ()


    # Names are lexed uniformly and the reserved words are picked out
    # here, so that "variable" is never split into "var" + "iable".
    def process(self, stream):
        for tok in stream:
            if tok.type == 'NAME' and tok.value in KEYWORDS:
                yield LarkToken.new_borrow_pos('KEYWORD', tok.value, tok)
            else:
                yield tok


class Lexer:
    def __init__(self):
        self.lark = Lark(grammar_text,
                         parser='lalr',
                         lexer='basic',
                         postlex=PostLex(),
                         start='start')


    def tokenize(self, text, filename='<input>'):
        tokens = []
        try:
            for tok in self.lark.lex(text):
                kind = terminal_to_kind[tok.type]
                value = '' if kind in textless_kinds else tok.value
                tokens.append(
                    Token(kind, value, SourcePos(tok.line, tok.column, filename)))
        except UnexpectedCharacters as e:
            pos = SourcePos(e.line, e.column, filename)
            raise CompileSyntaxError(
                EC.INVALID_CHARACTER,
                f'Invalid character {e.char!r}',
                pos)

        line, column = count_position(text)
        tokens.append(Token(TokenKind.EOF, '', SourcePos(line, column, filename)))

        logger.debug(f'Lexed {len(tokens)} token(s) from {filename}')
        return tokens


def count_position(text):
    "Returns the (line, column) just past the end of the given text."
    line = text.count('\n') + 1
    column = len(text) - (text.rfind('\n') + 1) + 1
    return line, column


def tokenize(text, filename='<input>'):
    return Lexer().tokenize(text, filename)
