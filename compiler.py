import logging
from codegen import label_namers
from lexer import Lexer
from parse import parse


logger = logging.getLogger(__name__)


class Compiler:
    """Runs the whole pipeline: source text to tokens, tokens to AST and
the AST to instruction text. A compiler object can be reused; each
call to compile() starts from a clean state.

    """

    def __init__(self, labels='counter', seed=None):
        if labels not in label_namers:
            raise ValueError(f'Unknown label naming: {labels}')

        self.labels = labels
        self.seed = seed
        self.lexer = Lexer()

        self.tokens = None
        self.program = None
        self.code = None


    def make_label_namer(self):
        if self.labels == 'random':
            return label_namers['random'](self.seed)
        return label_namers[self.labels]()


    def tokenize(self, source, filename='<input>'):
        return self.lexer.tokenize(source, filename)


    def parse(self, source, filename='<input>'):
        self.tokens = self.tokenize(source, filename)
        logger.info(f'Parsing {filename} ({len(self.tokens)} tokens)...')
        self.program = parse(self.tokens)
        return self.program


    def compile(self, source, filename='<input>'):
        self.tokens = self.program = self.code = None

        program = self.parse(source, filename)

        logger.info('Generating code...')
        self.code = program.generate(self.make_label_namer())

        logger.info(f'Generated {len(self.code.splitlines())} line(s).')
        return self.code
