"""Bookkeeping of libraries and symbols, grouped by library.

A Links object is used twice per architecture: once for what the scanned
artifacts provide and once for what they use.  Symbols whose owning
library was never recorded live under the UNKNOWN key until reconcile()
finds a provider for them.
"""

import os
from collections import Counter

from abi_symbols import UNKNOWN, SymbolPair, Symbols, strip_version

# Filename formats for the listings: abi<tag>_libs<kind>, abi<tag>_symbols<kind>
LIBS_FMT = "abi{tag}_libs{kind}"
SYMS_FMT = "abi{tag}_symbols{kind}"


class Links:
    """Library reference counts plus the symbols believed to come from each library."""

    def __init__(self):
        self.libraries = Counter()
        self.symbols = {}

    def __repr__(self):
        return f"Links(libraries={dict(self.libraries)!r}, symbols={self.symbols!r})"

    def record_library(self, library):
        """Count a library that is referenced without a specific symbol."""
        self.libraries[library or UNKNOWN] += 1

    def record(self, library, symbol):
        """File *symbol* under *library*, counting the library once more."""
        library = library or UNKNOWN
        self.libraries[library] += 1
        self.symbols.setdefault(library, []).append(symbol)

    def merge(self, other):
        """Fold another Links into this one, keeping counts and symbol order."""
        self.libraries.update(other.libraries)
        for library, syms in other.symbols.items():
            self.symbols.setdefault(library, []).extend(syms)

    def _provider_index(self):
        # symbol name -> first providing library, libraries visited by name
        index = {}
        for library in sorted(self.symbols):
            if library == UNKNOWN:
                continue
            for sym in self.symbols[library]:
                index.setdefault(strip_version(sym), library)
        return index

    def reconcile(self, provided):
        """Re-file UNKNOWN symbols under a library from *provided* that exports them.

        When two libraries export the same name, the one that sorts first wins.
        Returns the symbols that could not be matched, deduplicated, in the
        order they were first seen.  Those become the whole UNKNOWN bucket;
        if there are none, UNKNOWN is dropped entirely.
        """
        pending = self.symbols.get(UNKNOWN, [])
        index = provided._provider_index()
        unresolved = []
        seen = set()
        for sym in pending:
            library = index.get(strip_version(sym))
            if library is not None:
                self.libraries[library] += 1
                self.symbols.setdefault(library, []).append(sym)
            elif sym not in seen:
                seen.add(sym)
                unresolved.append(sym)

        if unresolved:
            self.libraries[UNKNOWN] = len(unresolved)
            self.symbols[UNKNOWN] = list(unresolved)
        else:
            self.libraries.pop(UNKNOWN, None)
            self.symbols.pop(UNKNOWN, None)
        return unresolved

    def prune(self, excludes):
        """Drop every library that *excludes* also knows about."""
        for library in excludes.libraries:
            self.libraries.pop(library, None)
            self.symbols.pop(library, None)

    def library_names(self):
        return sorted(self.libraries)

    def pairs(self):
        """All (library, symbol) pairs, sorted and deduplicated."""
        pairs = Symbols(
            SymbolPair(library, sym)
            for library, syms in self.symbols.items()
            for sym in syms
        )
        pairs.sort()
        return pairs

    def save(self, directory, tag, kind=""):
        """Write the library and symbol listings into *directory*.

        Nothing is written when no library was recorded, and the symbol
        listing is skipped when no symbols were.  Raises OSError if a
        listing cannot be written.
        """
        if not self.libraries:
            return
        with open(os.path.join(directory, LIBS_FMT.format(tag=tag, kind=kind)), "w") as f:
            for library in self.library_names():
                f.write(library + "\n")
        pairs = self.pairs()
        if not pairs:
            return
        with open(os.path.join(directory, SYMS_FMT.format(tag=tag, kind=kind)), "w") as f:
            pairs.write(f)
