#!/usr/bin/env python3

import logging
import argparse
import logging.config
from collections import defaultdict
from enum import IntEnum, unique
from asm import Label, read_program, resolve_labels, AsmError


logger = logging.getLogger(__name__)


@unique
class ErrorCodes(IntEnum):
    STEP_LIMIT_EXCEEDED = 1
    INVALID_ADDRESS = 2


    def __str__(self):
        return {
            self.STEP_LIMIT_EXCEEDED:
            'Step limit exceeded',

            self.INVALID_ADDRESS:
            'Invalid address',
        }.get(int(self), super().__str__())


RE = ErrorCodes


class MachineRuntimeError(Exception):
    def __init__(self, code, msg=None):
        assert isinstance(code, ErrorCodes)

        if not msg:
            msg = str(code)

        self.code = code

        super().__init__(msg)


class Jump:
    def __init__(self, target):
        self.target = target


class Machine:
    """A reference interpreter for the accumulator machine. Memory is an
unbounded set of cells, all initially zero.

    """

    DEFAULT_MAX_STEPS = 1000000

    def __init__(self, program, *, max_steps=DEFAULT_MAX_STEPS):
        if isinstance(program, str):
            program = read_program(program)

        self.program = program
        self.labels = resolve_labels(program)

        self.max_steps = max_steps
        self.mem = defaultdict(int)
        self.acc = 0
        self.ip = 0
        self.call_stack = []
        self.steps = 0
        self.stopped = False


    def launch(self):
        self.stopped = False
        while not self.stopped:
            self.step()
        return self.acc


    def step(self):
        if self.ip >= len(self.program):
            logger.debug('Ran off the end of the program.')
            self.stopped = True
            return

        self.steps += 1
        if self.steps > self.max_steps:
            raise MachineRuntimeError(
                RE.STEP_LIMIT_EXCEEDED,
                f'Step limit exceeded ({self.max_steps})')

        instr = self.program[self.ip]
        if isinstance(instr, Label):
            self.ip += 1
            return

        n = getattr(self, f'exec_{instr.name}')(*instr.operands)
        if isinstance(n, Jump):
            self.ip = n.target
        else:
            self.ip += 1


    def jump_target(self, label):
        return self.labels[label]


    def check_addr(self, addr):
        if addr < 0:
            raise MachineRuntimeError(RE.INVALID_ADDRESS,
                                      f'Invalid address: {addr}')
        return addr


    def exec_mka(self, value):
        logger.debug(f'EXEC: mka {value}')
        self.acc = value


    def exec_lda(self, addr):
        self.acc = self.mem[addr]
        logger.debug(f'EXEC: lda {addr} (got {self.acc})')


    def exec_sta(self, addr):
        logger.debug(f'EXEC: sta {addr} ({self.acc})')
        self.mem[addr] = self.acc


    def exec_ldad(self, addr):
        target = self.check_addr(self.mem[addr])
        self.acc = self.mem[target]
        logger.debug(f'EXEC: ldad {addr} (from {target}, got {self.acc})')


    def exec_stad(self, addr):
        target = self.check_addr(self.mem[addr])
        logger.debug(f'EXEC: stad {addr} ({self.acc} to {target})')
        self.mem[target] = self.acc


    def exec_add(self, addr):
        logger.debug(f'EXEC: add {addr} ({self.acc} + {self.mem[addr]})')
        self.acc += self.mem[addr]


    def exec_neg(self):
        logger.debug('EXEC: neg')
        self.acc = -self.acc


    def exec_jmp(self, label):
        logger.debug(f'EXEC: jmp {label}')
        return Jump(self.jump_target(label))


    def exec_jz(self, label):
        logger.debug(f'EXEC: jz {label}')
        if self.acc == 0:
            return Jump(self.jump_target(label))


    def exec_jn(self, label):
        logger.debug(f'EXEC: jn {label}')
        if self.acc < 0:
            return Jump(self.jump_target(label))


    def exec_jp(self, label):
        logger.debug(f'EXEC: jp {label}')
        if self.acc > 0:
            return Jump(self.jump_target(label))


    def exec_call(self, label):
        logger.debug(f'EXEC: call {label}')
        self.call_stack.append(self.ip + 1)
        return Jump(self.jump_target(label))


    def exec_ret(self):
        logger.debug('EXEC: ret')
        if not self.call_stack:
            # a return outside of any function ends the program
            self.stopped = True
            return Jump(self.ip)
        return Jump(self.call_stack.pop())


def main():
    parser = argparse.ArgumentParser(
        description='Run a program on the accumulator machine.')

    parser.add_argument('program_file', help='The instruction file to run.')
    parser.add_argument(
        '--max-steps', type=int, default=Machine.DEFAULT_MAX_STEPS,
        help='Stop with an error after this many instructions.')
    parser.add_argument(
        '--verbose', '-v', action='store_true', default=False,
        help='Log every executed instruction.')
    args = parser.parse_args()

    logging.config.dictConfig({
        'version': 1,
        'formatters': {
            'standard': {
                'format': '%(asctime)s %(name)s [%(levelname)s]: %(message)s',
            },
        },
        'handlers': {
            'console': {
                'level': 'DEBUG',
                'formatter': 'standard',
                'class': 'logging.StreamHandler',
                'stream': 'ext://sys.stderr',
            },
        },
        'loggers': {
            __name__: {
                'handlers': ['console'],
                'level': 'DEBUG' if args.verbose else 'ERROR',
                'propagate': True,
            }
        },
    })

    with open(args.program_file) as f:
        text = f.read()

    try:
        machine = Machine(text, max_steps=args.max_steps)
        acc = machine.launch()
    except (AsmError, MachineRuntimeError) as e:
        logger.error(f'Machine error: {e}')
        exit(1)

    print(acc)


if __name__ == '__main__':
    main()
