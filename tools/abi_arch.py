"""Per-architecture pair of provides/uses link sets."""

from abi_links import Links
from abi_symbols import UNKNOWN


class Arch:
    """Everything recorded for one architecture tag ("" is native)."""

    def __init__(self, tag=""):
        self.tag = tag
        self.provides = Links()
        self.uses = Links()

    def __repr__(self):
        return f"Arch(tag={self.tag!r})"

    def resolve(self):
        """Match used UNKNOWN symbols against this architecture's own exports."""
        return self.uses.reconcile(self.provides)

    def resolve_against(self, other):
        """Match used UNKNOWN symbols against another bundle's exports.

        *other* may be None when nothing was found for this architecture.
        """
        if other is None:
            other = Arch(self.tag)
        return self.uses.reconcile(other.provides)

    def missing_libraries(self):
        """Libraries this architecture uses that none of its artifacts provide."""
        return sorted(
            lib for lib in self.uses.libraries
            if lib != UNKNOWN and lib not in self.provides.libraries
        )

    def merge(self, other):
        self.provides.merge(other.provides)
        self.uses.merge(other.uses)

    def save(self, directory):
        """Write the provides and uses listings, leaving out self-provided uses."""
        self.uses.prune(self.provides)
        self.provides.save(directory, self.tag)
        self.uses.save(directory, self.tag, "_used")
