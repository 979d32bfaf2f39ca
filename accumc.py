#!/usr/bin/env python3

import sys
import codecs
import logging
import argparse
import logging.config
from compiler import Compiler
from errors import CompileError
from vm import Machine, MachineRuntimeError


logger = logging.getLogger(__name__)


def configure_logging(verbose):
    logging.config.dictConfig({
        'version': 1,
        'disable_existing_loggers': False,
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
        'root': {
            'handlers': ['console'],
            'level': 'DEBUG' if verbose else 'ERROR',
        },
    })


def main(argv=None):
    parser = argparse.ArgumentParser(
        description='Compiles a program for the accumulator machine.')

    parser.add_argument('input_file', help='Input source code.')
    parser.add_argument(
        '--encoding', '-e', default='utf-8',
        help='The encoding of the input file. Defaults to utf-8.')
    parser.add_argument(
        '--output', '-o', default='out.txt', metavar='OUTPUT_FILE',
        help='The output file. Defaults to "out.txt".')
    parser.add_argument(
        '--print-tokens', action='store_true', default=False,
        help='Print the tokens of the input.')
    parser.add_argument(
        '--print-ast', action='store_true', default=False,
        help='Print the AST of the input.')
    parser.add_argument(
        '--print-code', action='store_true', default=False,
        help='Print the generated code to stdout.')
    parser.add_argument(
        '--labels', choices=['counter', 'random'], default='counter',
        help='How generated labels are named. Defaults to "counter", '
        'which gives the same output on every run.')
    parser.add_argument(
        '--seed', type=int, default=None,
        help='Seed for random label names.')
    parser.add_argument(
        '--run', action='store_true', default=False,
        help='Run the compiled program on the reference machine and '
        'print the final accumulator value.')
    parser.add_argument(
        '--max-steps', type=int, default=Machine.DEFAULT_MAX_STEPS,
        help='Instruction limit when running the program.')
    parser.add_argument(
        '--verbose', '-v', action='store_true', default=False,
        help='Enable debug logging.')

    args = parser.parse_args(argv)

    configure_logging(args.verbose)

    with codecs.open(args.input_file, encoding=args.encoding) as f:
        source = f.read()

    c = Compiler(labels=args.labels, seed=args.seed)
    try:
        if args.print_tokens:
            for tok in c.tokenize(source, args.input_file):
                print(tok)

        if args.print_ast:
            print(c.parse(source, args.input_file).pretty())

        code = c.compile(source, args.input_file)
    except CompileError as e:
        print('COMPILE ERROR:', e)
        return 1

    if args.print_code:
        print(code, end='')

    with open(args.output, 'w') as f:
        f.write(code)

    if args.run:
        try:
            acc = Machine(code, max_steps=args.max_steps).launch()
        except MachineRuntimeError as e:
            print('RUNTIME ERROR:', e)
            return 1
        print(acc)

    return 0


if __name__ == '__main__':
    sys.exit(main())
