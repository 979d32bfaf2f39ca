import random
import logging
from asm import Instr, Label, format_program
from errors import CompileError, SemanticError, EC
from memory import MemoryTracker, InternalInvariantError


logger = logging.getLogger(__name__)


class CounterLabels:
    "Deterministic label names: __<purpose>_<n>, counted per purpose."

    def __init__(self):
        self.counts = {}


    def __call__(self, purpose):
        self.counts[purpose] = self.counts.get(purpose, 0) + 1
        return f'__{purpose}_{self.counts[purpose]}'


class RandomLabels:
    """Label names with a random 32-bit suffix. Two compilations of the
same program produce different spellings but the same control flow.

    """

    def __init__(self, seed=None):
        self.random = random.Random(seed)


    def __call__(self, purpose):
        return f'label_{self.random.getrandbits(32)}'


label_namers = {
    'counter': CounterLabels,
    'random': RandomLabels,
}


class FuncSign:
    def __init__(self, name, nargs, base):
        self.name = name
        self.nargs = nargs

        # address of the first parameter slot; the others follow it.
        self.base = base


    def __repr__(self):
        return f'<FuncSign {self.name} nargs={self.nargs} base={self.base}>'


class Generator:
    """Lowers an AST into instructions for the accumulator machine. Every
expression leaves its value in the accumulator; statements leave
nothing in particular there.

    """

    def __init__(self, label_namer=None):
        if label_namer is None:
            label_namer = CounterLabels()

        self.label_namer = label_namer
        self.tracker = MemoryTracker()
        self.instrs = []
        self.labels = set()
        self.functions = {}
        self.cur_func = ''


    def generate(self, tree):
        self.compile_ast(tree)

        if self.tracker.allocations:
            raise InternalInvariantError(
                f'allocations left after generation: {self.tracker.allocations}')

        return format_program(self.instrs)


    def compile_ast(self, ast):
        try:
            getattr(self, 'process_' + ast.data)(ast)
        except CompileError as e:
            if e.pos is None:
                e.pos = getattr(ast.meta, 'pos', None)
            raise


    def gen_label(self, purpose):
        label = self.label_namer(purpose)
        while label in self.labels:
            label = self.label_namer(purpose)
        self.labels.add(label)
        return label


    def resolve(self, name):
        return self.tracker.resolve(name)


    def temp(self):
        return self.tracker.allocate_temporary()


    def free(self, *addrs):
        for addr in addrs:
            self.tracker.release_by_address(addr)


    def process_block(self, ast):
        declared_before = set(self.functions)

        self.tracker.enter_scope()
        for stmt in ast.children:
            self.compile_ast(stmt)
        self.tracker.exit_scope()

        # functions declared in this block go away with it, just like
        # their parameter slots and frames do.
        for name in list(self.functions):
            if name not in declared_before:
                del self.functions[name]


    def process_nop(self, ast):
        pass


    def process_var_decl(self, ast):
        name, = ast.children
        self.tracker.allocate(name)


    def process_var_assign(self, ast):
        name, value = ast.children
        self.compile_ast(value)
        self.instrs += [Instr('sta', self.resolve(name))]


    def process_deref_assign(self, ast):
        target, value = ast.children

        self.compile_ast(target)
        target_addr = self.temp()
        self.instrs += [Instr('sta', target_addr)]

        self.compile_ast(value)
        self.instrs += [Instr('stad', target_addr)]

        self.free(target_addr)


    def process_arr_decl(self, ast):
        name, length = ast.children
        self.tracker.allocate_array(name, length)


    def process_arr_assign(self, ast):
        name, index, value = ast.children
        base = self.resolve(name)

        self.compile_ast(value)
        value_addr = self.temp()
        self.instrs += [Instr('sta', value_addr)]

        self.compile_ast(index)
        index_addr = self.temp()
        self.instrs += [Instr('sta', index_addr),
                        Instr('mka', base),
                        Instr('add', index_addr),
                        Instr('sta', index_addr),
                        Instr('lda', value_addr),
                        Instr('stad', index_addr)]

        self.free(value_addr, index_addr)


    def process_if_stmt(self, ast):
        cond, body = ast.children

        self.compile_ast(cond)
        end_label = self.gen_label('endif')
        self.instrs += [Instr('jz', end_label)]
        self.compile_ast(body)
        self.instrs += [Label(end_label)]


    def process_while_stmt(self, ast):
        cond, body = ast.children

        top_label = self.gen_label('loop_top')
        bottom_label = self.gen_label('loop_bottom')

        self.instrs += [Label(top_label)]
        self.compile_ast(cond)
        self.instrs += [Instr('jz', bottom_label)]
        self.compile_ast(body)
        self.instrs += [Instr('jmp', top_label),
                        Label(bottom_label)]


    def process_func_decl(self, ast):
        name, params, body = ast.children
        params = params.children

        entry_label = f'func_{name}'
        if entry_label in self.labels:
            raise SemanticError(EC.DUP_DEF,
                                f'Duplicate definition: function "{name}"')
        self.labels.add(entry_label)

        skip_label = self.gen_label('func_end')
        self.instrs += [Instr('jmp', skip_label),
                        Label(entry_label)]

        # Everything the body touches stays reserved once the body is
        # done: there is no stack, so the frame of a function must not
        # be shared with code that may be running when it is called.
        self.tracker.begin_usage()

        base = self.tracker.allocate_temporary_array(len(params))
        for i, pname in enumerate(params):
            self.tracker.allocate_overlay(pname, base + i)
        self.functions[name] = FuncSign(name, len(params), base)

        logger.debug(f'Lowering function {name} '
                     f'({len(params)} parameter(s), slots at {base})')

        prev_func, self.cur_func = self.cur_func, name
        self.compile_ast(body)
        self.cur_func = prev_func

        self.instrs += [Instr('ret'),
                        Label(skip_label)]

        for pname in params:
            self.tracker.release_by_name(pname)

        frame = self.tracker.end_usage()
        self.tracker.reserve(frame)


    def process_return_stmt(self, ast):
        value, = ast.children
        self.compile_ast(value)
        self.instrs += [Instr('ret')]


    def process_call_stmt(self, ast):
        call, = ast.children
        self.compile_ast(call)


    def process_number(self, ast):
        value, = ast.children
        self.instrs += [Instr('mka', value)]


    def process_variable(self, ast):
        name, = ast.children
        self.instrs += [Instr('lda', self.resolve(name))]


    def process_addr_of(self, ast):
        name, = ast.children
        self.instrs += [Instr('mka', self.resolve(name))]


    def process_negation(self, ast):
        operand, = ast.children
        addr = self.temp()
        self.compile_ast(operand)
        self.instrs += [Instr('sta', addr),
                        Instr('lda', addr),
                        Instr('neg')]
        self.free(addr)


    def process_deref(self, ast):
        operand, = ast.children
        addr = self.temp()
        self.compile_ast(operand)
        self.instrs += [Instr('sta', addr),
                        Instr('ldad', addr)]
        self.free(addr)


    def process_array_ref(self, ast):
        name, index = ast.children
        base = self.resolve(name)

        addr = self.temp()
        self.instrs += [Instr('mka', base),
                        Instr('sta', addr)]
        self.compile_ast(index)
        self.instrs += [Instr('add', addr),
                        Instr('sta', addr),
                        Instr('ldad', addr)]
        self.free(addr)


    def process_function_call(self, ast):
        name, args = ast.children
        args = args.children

        sign = self.functions.get(name)
        if sign is None:
            raise SemanticError(EC.NO_SUCH_FUNC, f'No such function: "{name}"')
        if name == self.cur_func:
            raise SemanticError(EC.NO_RECURSION,
                                f'No recursion allowed: "{name}" calls itself')
        if len(args) != sign.nargs:
            raise SemanticError(
                EC.ARGUMENT_COUNT_MISMATCH,
                f'Function "{name}" takes {sign.nargs} argument(s), '
                f'{len(args)} given')

        # all arguments are evaluated before any slot is written, since
        # an argument may itself call the same function.
        values = []
        for arg in args:
            self.compile_ast(arg)
            addr = self.temp()
            self.instrs += [Instr('sta', addr)]
            values.append(addr)

        for i, addr in enumerate(values):
            self.instrs += [Instr('lda', addr),
                            Instr('sta', sign.base + i)]

        self.free(*reversed(values))
        self.instrs += [Instr('call', f'func_{name}')]


    def binary_operands(self, ast):
        """Evaluates both operands of a binary expression into two fresh
temporaries and returns their addresses. The caller frees them.

        """
        left, right = ast.children

        a = self.temp()
        b = self.temp()

        self.compile_ast(left)
        self.instrs += [Instr('sta', a)]
        self.compile_ast(right)
        self.instrs += [Instr('sta', b)]

        return a, b


    def gen_difference(self, a, b):
        "Leaves a - b in the accumulator. Clobbers b."
        self.instrs += [Instr('lda', b),
                        Instr('neg'),
                        Instr('sta', b),
                        Instr('lda', a),
                        Instr('add', b)]


    def gen_select(self, jump, when_taken, when_not_taken):
        """Emits the given conditional jump, leaving `when_taken` in the
accumulator if it jumps and `when_not_taken` otherwise.

        """
        taken_label = self.gen_label('cmp_true')
        end_label = self.gen_label('cmp_end')
        self.instrs += [Instr(jump, taken_label),
                        Instr('mka', when_not_taken),
                        Instr('jmp', end_label),
                        Label(taken_label),
                        Instr('mka', when_taken),
                        Label(end_label)]


    def process_expr_add(self, ast):
        a, b = self.binary_operands(ast)
        self.instrs += [Instr('lda', a),
                        Instr('add', b)]
        self.free(a, b)


    def process_expr_sub(self, ast):
        a, b = self.binary_operands(ast)
        self.gen_difference(a, b)
        self.free(a, b)


    def process_expr_mul(self, ast):
        a, b = self.binary_operands(ast)
        result = self.temp()

        fix_sign_label = self.gen_label('mul_neg')
        loop_label = self.gen_label('mul_loop')
        end_label = self.gen_label('mul_end')

        # a is counted down to zero, adding b to the result each time.
        # A negative a is handled as (-a) * (-b).
        self.instrs += [Instr('mka', 0),
                        Instr('sta', result),
                        Instr('lda', a),
                        Instr('jn', fix_sign_label),
                        Instr('jmp', loop_label),
                        Label(fix_sign_label),
                        Instr('lda', a),
                        Instr('neg'),
                        Instr('sta', a),
                        Instr('lda', b),
                        Instr('neg'),
                        Instr('sta', b),
                        Label(loop_label),
                        Instr('lda', a),
                        Instr('jz', end_label),
                        Instr('mka', -1),
                        Instr('add', a),
                        Instr('sta', a),
                        Instr('lda', result),
                        Instr('add', b),
                        Instr('sta', result),
                        Instr('jmp', loop_label),
                        Label(end_label),
                        Instr('lda', result)]

        self.free(result, a, b)


    def process_expr_eq(self, ast):
        a, b = self.binary_operands(ast)
        self.gen_difference(a, b)
        self.gen_select('jz', 1, 0)
        self.free(a, b)


    def process_expr_ne(self, ast):
        a, b = self.binary_operands(ast)
        self.gen_difference(a, b)
        self.gen_select('jz', 0, 1)
        self.free(a, b)


    def process_expr_gt(self, ast):
        a, b = self.binary_operands(ast)
        self.gen_difference(a, b)

        # only a positive difference yields 1
        zero_label = self.gen_label('cmp_zero')
        self.instrs += [Instr('jz', zero_label)]
        taken_label = self.gen_label('cmp_true')
        end_label = self.gen_label('cmp_end')
        self.instrs += [Instr('jp', taken_label),
                        Label(zero_label),
                        Instr('mka', 0),
                        Instr('jmp', end_label),
                        Label(taken_label),
                        Instr('mka', 1),
                        Label(end_label)]

        self.free(a, b)


    def process_expr_lt(self, ast):
        a, b = self.binary_operands(ast)
        self.gen_difference(a, b)
        self.gen_select('jn', 1, 0)
        self.free(a, b)
