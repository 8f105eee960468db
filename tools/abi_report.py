"""Aggregate ABI report for a scanned tree.

A Report maps architecture tags to Arch bundles.  It is filled by feeding
it files, then resolve() re-attributes imported symbols to the libraries
that export them (first among the scanned files, then among the host's
library directories), and save() writes the listings.
"""

import os

from abi_arch import Arch
from abi_config import Policy
from abi_elf import ArtifactError, read_artifact
from abi_walk import find_named, walk_tree


class Report(dict):
    """Architecture tag -> Arch for one run."""

    def __init__(self, policy=None, parser=read_artifact, on_error=None):
        super().__init__()
        self.policy = policy or Policy()
        self.parser = parser
        self.on_error = on_error

    def _fail(self, path, exc):
        if self.on_error is None:
            raise exc
        self.on_error(path, exc)

    def arch(self, tag):
        """Find or create the bundle for *tag*."""
        if tag not in self:
            self[tag] = Arch(tag)
        return self[tag]

    def add_artifact(self, artifact, name):
        """Fold one parsed artifact into its architecture's bundle.

        Exports are filed under the SONAME, or *name* when there is none.
        Weak and undefined exports are not recorded.
        """
        if artifact is None or not (artifact.may_export or artifact.may_import):
            return
        arch = self.arch(self.policy.tag_for(artifact.machine))
        if artifact.may_export:
            library = artifact.soname or name
            for export in artifact.exports:
                if export.weak or not export.defined:
                    continue
                arch.provides.record(library, export.name)
        if artifact.may_import:
            for library in artifact.needed:
                arch.uses.record_library(library)
            for imp in artifact.imports:
                arch.uses.record(imp.library, imp.name)

    def add_file(self, stream, name):
        """Parse an open binary stream and add it; non-ELF input is ignored."""
        self.add_artifact(self.parser(stream, name), name)

    def add_file_path(self, path):
        name = os.path.basename(path)
        if self.policy.skips(name):
            return
        try:
            with open(path, "rb") as f:
                self.add_file(f, name)
        except (OSError, ArtifactError) as e:
            self._fail(path, e)

    def add_path(self, path, wrap=None):
        """Add every file reachable from *path* (a file or directory).

        *wrap*, if given, is applied to the iterator of file paths, e.g. to
        attach a progress bar.
        """
        files = walk_tree(path, on_error=self.on_error)
        if wrap is not None:
            files = wrap(files)
        for fpath in files:
            self.add_file_path(fpath)

    def merge(self, other):
        """Fold another Report (e.g. a shard of the same scan) into this one."""
        for tag, arch in other.items():
            self.arch(tag).merge(arch)

    def search(self, names):
        """Scan each architecture's host library dirs for files named in *names*.

        Returns a scratch Report holding only what was found there.
        """
        scratch = Report(self.policy, self.parser, self.on_error)
        seen = set()
        for tag in sorted(self):
            for fpath in find_named(self.policy.dirs_for(tag), names,
                                    on_error=self.on_error):
                if fpath in seen:
                    continue
                seen.add(fpath)
                scratch.add_file_path(fpath)
        return scratch

    def resolve(self):
        """Resolve imported symbols and return the sorted names still missing.

        Every architecture is first matched against its own exports.  If
        anything is left, libraries named by the leftovers or used but not
        scanned are looked up in the host library directories and matched
        in a second pass.
        """
        unresolved = set()
        for tag in sorted(self):
            unresolved.update(self[tag].resolve())
        if not unresolved:
            return []

        candidates = set(unresolved)
        for arch in self.values():
            candidates.update(arch.missing_libraries())
        scratch = self.search(candidates)

        missing = set()
        for tag in sorted(self):
            arch = self[tag]
            for name in arch.resolve_against(scratch.get(tag)):
                # a leftover that names a used library is not a missing symbol
                if name not in arch.uses.symbols:
                    missing.add(name)
        return sorted(missing)

    def save(self, directory="."):
        """Write every architecture's listings; the first failure propagates."""
        for tag in sorted(self):
            self[tag].save(directory)
