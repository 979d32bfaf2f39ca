#!/usr/bin/env python3

import re
import argparse

instr_name_to_instr = {}

label_re = re.compile(r'^[A-Za-z_][A-Za-z0-9_]*$')
int_re = re.compile(r'^-?[0-9]+$')


class AsmError(Exception):
    def __init__(self, msg, lineno=None):
        self.lineno = lineno
        if lineno is not None:
            msg = f'line {lineno}: {msg}'
        super().__init__(msg)


class Operand:
    def __init__(self, kind, description):
        self.kind = kind
        self.description = description


    def validate(self, value):
        if self.kind == 'label':
            return isinstance(value, str) and bool(label_re.match(value))
        if not isinstance(value, int) or isinstance(value, bool):
            return False
        if self.kind == 'address':
            return value >= 0
        return True


    def parse(self, text):
        if self.kind == 'label':
            value = text
        elif int_re.match(text):
            value = int(text)
        else:
            raise AsmError(f'Invalid {self.description}: {text}')

        if not self.validate(value):
            raise AsmError(f'Invalid {self.description}: {text}')
        return value


# Kinds of operands. An instruction takes at most one of these.

# A signed immediate value.
IMM = Operand('immediate', 'immediate value')

# The number of a memory cell.
ADDR = Operand('address', 'address')

# The name of a jump target.
LABEL = Operand('label', 'label')


class Instruction:
    """An instance of this class represents an instruction in the
abstract, e.g. the 'lda' instruction in general and not a particular
usage of it.

    """
    def __init__(self, name, operands, *, jumps=False):
        assert isinstance(name, str)
        assert all(isinstance(i, Operand) for i in operands)

        self.name = name
        self.operands = operands
        self.jumps = jumps


    @staticmethod
    def from_name(name):
        return instr_name_to_instr[name]


class Instr:
    """An instance of this class, is a representation of an instruction in
use, i.e. the instruction itself, plus the values of its arguments.

    """

    def __init__(self, name, *args):
        self.name = name
        self.operands = args
        self.abstract_instruction = Instruction.from_name(name)

        expected = self.abstract_instruction.operands
        assert len(args) == len(expected), \
            f'{name} takes {len(expected)} operand(s)'
        assert all(o.validate(v) for o, v in zip(expected, args)), \
            f'Invalid operand(s) for {name}: {args}'


    @property
    def target(self):
        "The label this instruction jumps to, if any."
        if self.abstract_instruction.jumps:
            return self.operands[0]
        return None


    def __repr__(self):
        return f'<Instr {self.name} {self.operands}>'


    def __str__(self):
        if not self.operands:
            return self.name
        args = ' '.join(str(i) for i in self.operands)
        return f'{self.name} {args}'


    def __eq__(self, other):
        return isinstance(other, Instr) and \
            (self.name, self.operands) == (other.name, other.operands)


    def __hash__(self):
        return hash((self.name, self.operands))


class Label:
    def __init__(self, value):
        assert isinstance(value, str)
        assert label_re.match(value), f'Invalid label: {value}'
        self.value = value


    def __repr__(self):
        return f'<Label "{self.value}">'


    def __str__(self):
        return f'label {self.value}'


    def __eq__(self, other):
        return isinstance(other, Label) and self.value == other.value


    def __hash__(self):
        return hash(self.value)


def read_program(text):
    """Reads the textual form of a program, one instruction or label
definition per line, and returns it as a list of Instr and Label
objects. Blank lines are skipped.

    """
    program = []
    for lineno, line in enumerate(text.splitlines(), start=1):
        parts = line.split()
        if not parts:
            continue

        name, *args = parts
        if name == 'label':
            if len(args) != 1:
                raise AsmError('label takes exactly one operand', lineno)
            try:
                program.append(Label(LABEL.parse(args[0])))
            except AsmError as e:
                raise AsmError(str(e), lineno)
            continue

        if name not in instr_name_to_instr:
            raise AsmError(f'Unknown instruction: {name}', lineno)

        instruction = instr_name_to_instr[name]
        if len(args) != len(instruction.operands):
            raise AsmError(f'{name} takes {len(instruction.operands)} '
                           f'operand(s), got {len(args)}', lineno)

        try:
            values = [o.parse(a) for o, a in zip(instruction.operands, args)]
        except AsmError as e:
            raise AsmError(str(e), lineno)
        program.append(Instr(name, *values))

    return program


def resolve_labels(program):
    """Returns a dictionary mapping each label to the index of its
definition in the program. Every label must be defined exactly once and
every jump or call must refer to a defined label.

    """
    labels = {}
    for i, item in enumerate(program):
        if isinstance(item, Label):
            if item.value in labels:
                raise AsmError(f'Duplicate label: {item.value}')
            labels[item.value] = i

    for item in program:
        if isinstance(item, Instr) and item.target is not None:
            if item.target not in labels:
                raise AsmError(f'Undefined label: {item.target}')

    return labels


def format_program(program):
    return ''.join(f'{item}\n' for item in program)


def def_instr(name, *operands, jumps=False):
    if name in instr_name_to_instr:
        raise RuntimeError('Duplicate instruction definition.')
    instr_name_to_instr[name] = Instruction(name, operands, jumps=jumps)


def_instr('mka', IMM)
def_instr('lda', ADDR)
def_instr('sta', ADDR)
def_instr('ldad', ADDR)
def_instr('stad', ADDR)
def_instr('add', ADDR)
def_instr('neg')
def_instr('jmp', LABEL, jumps=True)
def_instr('jz', LABEL, jumps=True)
def_instr('jn', LABEL, jumps=True)
def_instr('jp', LABEL, jumps=True)
def_instr('call', LABEL, jumps=True)
def_instr('ret')


def main():
    parser = argparse.ArgumentParser(
        description='Checks an instruction file and prints it as a '
        'numbered listing.')

    parser.add_argument(
        'program_file',
        help='The instruction file to check.')

    args = parser.parse_args()

    with open(args.program_file) as f:
        text = f.read()

    try:
        program = read_program(text)
        labels = resolve_labels(program)
    except AsmError as e:
        print('ASM ERROR:', e)
        exit(1)

    for i, item in enumerate(program):
        if isinstance(item, Label):
            print(f'{i:5}  {item}')
        else:
            print(f'{i:5}      {item}')

    print(f'{len(program)} line(s), {len(labels)} label(s)')


if __name__ == '__main__':
    main()
