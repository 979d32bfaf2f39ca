import logging
from errors import SemanticError, EC


logger = logging.getLogger(__name__)


class InternalInvariantError(Exception):
    def __init__(self, what):
        self.what = what
        super().__init__(f'Release of untracked allocation: {what}')


class Allocation:
    def __init__(self, name, start, length, depth=0):
        self.name = name
        self.start = start
        self.end = start + length - 1
        self.depth = depth


    @property
    def length(self):
        return self.end - self.start + 1


    def covers(self, addr):
        return self.start <= addr <= self.end


    def overlaps(self, start, length):
        if self.length == 0 or length == 0:
            return False
        return self.start <= start + length - 1 and start <= self.end


    def __repr__(self):
        name = self.name or '<temp>'
        return f'<Allocation {name} [{self.start}, {self.end}] depth={self.depth}>'


class MemoryTracker:
    """Keeps track of which cells of the (unbounded) target memory are in
use while code is being generated. Nothing is really allocated; the
tracker only hands out addresses, always the lowest free ones, and
releases them again when the block they were declared in is left.

Every record has a scope depth: the number of block exits it survives.
Entering a block bumps the depth of all live records; leaving a block
releases the records at depth zero (declared directly inside that
block) and decrements the rest.

    """
    def __init__(self):
        self.allocations = []

        # these only ever grow; they are used to check that every
        # allocation is paired with a release.
        self.allocs = 0
        self.releases = 0

        # a stack of address sets, one for each begin_usage() call that
        # has not been ended yet.
        self.usage = []


    def is_occupied(self, addr):
        return any(a.covers(addr) for a in self.allocations)


    def find_free(self, length):
        addr = 0
        while True:
            for a in self.allocations:
                if a.overlaps(addr, length):
                    # nothing starting before the end of this record
                    # can fit.
                    addr = a.end + 1
                    break
            else:
                return addr


    def allocate(self, name):
        return self._add(Allocation(name, self.find_free(1), 1))


    def allocate_temporary(self):
        return self.allocate('')


    def allocate_array(self, name, length):
        assert length >= 0
        return self._add(Allocation(name, self.find_free(length), length))


    def allocate_temporary_array(self, length):
        return self.allocate_array('', length)


    def allocate_overlay(self, name, address):
        "Binds another name to an already reserved address."
        assert self.is_occupied(address)
        return self._add(Allocation(name, address, 1), claims=False)


    def reserve(self, addresses):
        """Pins every given address that is currently free with an
anonymous one-cell record. Returns the addresses that were pinned.

        """
        pinned = []
        for addr in sorted(set(addresses)):
            if not self.is_occupied(addr):
                self._add(Allocation('', addr, 1))
                pinned.append(addr)
        return pinned


    def lookup(self, name):
        # the innermost binding wins
        for a in reversed(self.allocations):
            if a.name == name:
                return a
        return None


    def resolve(self, name):
        a = self.lookup(name) if name else None
        if a is None:
            raise SemanticError(EC.UNDEFINED_VARIABLE,
                                f'Undefined variable: "{name}"')
        return a.start


    def release_by_name(self, name):
        for a in reversed(self.allocations):
            if a.name == name:
                self._remove(a)
                return
        raise InternalInvariantError(f'name "{name}"')


    def release_by_address(self, address):
        # empty arrays cover nothing and are only ever released by
        # name or by leaving their scope.
        for a in reversed(self.allocations):
            if a.start == address and a.covers(address):
                self._remove(a)
                return
        raise InternalInvariantError(f'address {address}')


    def enter_scope(self):
        for a in self.allocations:
            a.depth += 1


    def exit_scope(self):
        released = []
        for a in self.allocations:
            if a.depth == 0:
                released.append(a)
            else:
                a.depth -= 1

        for a in released:
            self._remove(a)


    def begin_usage(self):
        self.usage.append(set())


    def end_usage(self):
        "Returns every address allocated since the matching begin_usage()."
        used = self.usage.pop()
        if self.usage:
            self.usage[-1].update(used)
        return used


    def _add(self, allocation, claims=True):
        self.allocations.append(allocation)
        self.allocs += 1
        if claims and self.usage:
            self.usage[-1].update(range(allocation.start, allocation.end + 1))
        logger.debug(f'ALLOC: {allocation}')
        return allocation.start


    def _remove(self, allocation):
        # compare by identity; overlays can look exactly like the
        # record they sit on.
        for i, a in enumerate(self.allocations):
            if a is allocation:
                del self.allocations[i]
                break
        else:
            raise InternalInvariantError(repr(allocation))

        self.releases += 1
        logger.debug(f'FREE: {allocation}')


    def print_stats(self):
        print(f'-- Memory tracker -------------------------')
        print(f'| Live allocations: {self.allocations}')
        print(f'| Allocs/releases:  {self.allocs}/{self.releases}')
        print(f'-------------------------------------------')
