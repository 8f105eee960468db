"""Library/symbol pairs and their flat ``library:symbol`` listing."""

from typing import NamedTuple

UNKNOWN = "UNKNOWN"


class SymbolPair(NamedTuple):
    library: str
    name: str


def strip_version(name):
    """Drop a ``@VER`` or ``@@VER`` suffix from a symbol name."""
    return name.split("@", 1)[0]


class Symbols(list):
    """A list of SymbolPair that sorts by (library, name) and prints itself."""

    def sort(self):
        super().sort(key=lambda p: (p.library, p.name))

    def write(self, out):
        """Write one ``library:symbol`` line per pair, skipping adjacent duplicates.

        Call sort() first for a fully deduplicated listing.
        """
        prev = None
        for pair in self:
            if pair == prev:
                continue
            prev = pair
            out.write(f"{pair.library or UNKNOWN}:{pair.name}\n")
