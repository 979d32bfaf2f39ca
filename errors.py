from enum import IntEnum, unique


class SourcePos:
    def __init__(self, line, column, file='<input>'):
        self.line = line
        self.column = column
        self.file = file


    def __repr__(self):
        return f'<SourcePos {self}>'


    def __str__(self):
        return f'("{self.file}": {self.line}, {self.column})'


    def __eq__(self, other):
        return isinstance(other, SourcePos) and \
            (self.line, self.column, self.file) == \
            (other.line, other.column, other.file)


    def __hash__(self):
        return hash((self.line, self.column, self.file))


@unique
class ErrorCodes(IntEnum):
    SYNTAX_ERROR = 1
    INVALID_CHARACTER = 2
    INVALID_ARRAY_LENGTH = 3
    UNDEFINED_VARIABLE = 4
    NO_SUCH_FUNC = 5
    ARGUMENT_COUNT_MISMATCH = 6
    NO_RECURSION = 7
    DUP_DEF = 8
    DUP_PARAM = 9


    def __str__(self):
        return {
            self.SYNTAX_ERROR:
            'Syntax error',

            self.INVALID_CHARACTER:
            'Invalid character',

            self.INVALID_ARRAY_LENGTH:
            'Invalid array length',

            self.UNDEFINED_VARIABLE:
            'Undefined variable',

            self.NO_SUCH_FUNC:
            'No such function',

            self.ARGUMENT_COUNT_MISMATCH:
            'Argument-count mismatch',

            self.NO_RECURSION:
            'No recursion allowed',

            self.DUP_DEF:
            'Duplicate definition',

            self.DUP_PARAM:
            'Duplicate parameter',
        }.get(int(self), super().__str__())


# alias for easier typing
EC = ErrorCodes


class CompileError(Exception):
    def __init__(self, code, msg=None, pos=None):
        assert isinstance(code, ErrorCodes)

        if not msg:
            msg = str(code)

        self.code = code
        self.msg = msg
        self.pos = pos

        super().__init__(msg)


    def __str__(self):
        if self.pos is None:
            return self.msg
        return f'{self.msg} at {self.pos}'


class CompileSyntaxError(CompileError):
    "The token stream does not match the grammar."


class SemanticError(CompileError):
    """A well-formed program refers to something that does not exist, or
uses it in a way that cannot be lowered (wrong argument count,
recursion, duplicate definitions).

    """
