"""Read the dynamic linking facts out of one ELF file.

Only the dynamic symbol table and dynamic section are consulted:
exported symbols (with weak/defined flags), DT_NEEDED libraries, the
DT_SONAME, and imported symbols whose owning library is taken from the
GNU version-needed records when present.
"""

from dataclasses import dataclass, field
from typing import List, Optional

from elftools.common.exceptions import ELFError, ELFParseError
from elftools.elf.elffile import ELFFile

_ELF_MAGIC = b"\x7fELF"

# Size of the smallest (ELF32) file header.
_MIN_HEADER = 52

SHARED_OBJECT = "shared-object"
EXECUTABLE = "executable"
RELOCATABLE = "relocatable"
OTHER = "other"

_KINDS = {
    "ET_DYN": SHARED_OBJECT,
    "ET_EXEC": EXECUTABLE,
    "ET_REL": RELOCATABLE,
}

# kind -> (may export, may import)
_FACETS = {
    SHARED_OBJECT: (True, True),
    EXECUTABLE: (False, True),
    RELOCATABLE: (False, True),
    OTHER: (False, False),
}

# High bit of a versym index marks a hidden version.
_VERSYM_HIDDEN = 0x8000


class ArtifactError(Exception):
    """An ELF file that could not be parsed for reasons other than truncation."""


@dataclass
class Export:
    name: str
    weak: bool = False
    defined: bool = True


@dataclass
class Import:
    name: str
    library: Optional[str] = None


@dataclass
class Artifact:
    """Linking facts for one ELF file."""

    machine: str
    kind: str
    soname: Optional[str] = None
    exports: List[Export] = field(default_factory=list)
    needed: List[str] = field(default_factory=list)
    imports: List[Import] = field(default_factory=list)

    @property
    def may_export(self):
        return _FACETS[self.kind][0]

    @property
    def may_import(self):
        return _FACETS[self.kind][1]


def is_elf(stream):
    """Check a seekable binary stream for a complete ELF header, rewinding it after."""
    head = stream.read(_MIN_HEADER)
    stream.seek(0)
    return len(head) == _MIN_HEADER and head.startswith(_ELF_MAGIC)


def _section_of_type(elf, sh_type):
    for section in elf.iter_sections():
        if section["sh_type"] == sh_type:
            return section
    return None


def _version_owners(elf):
    """Map version index -> file name of the library that must provide it."""
    owners = {}
    verneed = _section_of_type(elf, "SHT_GNU_verneed")
    if verneed is None:
        return owners
    for need, auxiliaries in verneed.iter_versions():
        for aux in auxiliaries:
            owners[aux["vna_other"]] = need.name
    return owners


def _owner(versym, owners, index):
    if versym is None or index >= versym.num_symbols():
        return None
    ndx = versym.get_symbol(index)["ndx"]
    if ndx in ("VER_NDX_LOCAL", "VER_NDX_GLOBAL"):
        return None
    return owners.get(int(ndx) & ~_VERSYM_HIDDEN)


def _read(elf):
    kind = _KINDS.get(elf.header["e_type"], OTHER)
    if kind == OTHER:
        return None
    dynsym = _section_of_type(elf, "SHT_DYNSYM")
    if dynsym is None:
        # statically linked or plain object: nothing dynamic to audit
        return None

    artifact = Artifact(machine=elf.header["e_machine"], kind=kind)

    dynamic = _section_of_type(elf, "SHT_DYNAMIC")
    if dynamic is not None:
        for tag in dynamic.iter_tags():
            if tag.entry.d_tag == "DT_NEEDED":
                artifact.needed.append(tag.needed)
            elif tag.entry.d_tag == "DT_SONAME":
                artifact.soname = tag.soname

    owners = _version_owners(elf)
    versym = _section_of_type(elf, "SHT_GNU_versym")
    for index, sym in enumerate(dynsym.iter_symbols()):
        if not sym.name:
            continue
        bind = sym["st_info"]["bind"]
        defined = sym["st_shndx"] != "SHN_UNDEF"
        if artifact.may_export:
            artifact.exports.append(Export(sym.name, bind == "STB_WEAK", defined))
        if artifact.may_import and not defined and bind in ("STB_GLOBAL", "STB_WEAK"):
            artifact.imports.append(Import(sym.name, _owner(versym, owners, index)))
    return artifact


def read_artifact(stream, name):
    """Parse *stream* as ELF and return its Artifact.

    Returns None for anything that is not worth auditing: wrong magic,
    truncated files, core dumps and other non-linkable kinds, and files
    without a dynamic symbol table.  Raises ArtifactError for other parse
    failures.
    """
    if not is_elf(stream):
        return None
    try:
        return _read(ELFFile(stream))
    except ELFParseError:
        # truncated
        return None
    except ELFError as e:
        raise ArtifactError(f"failed to open '{name}', reason: '{e}'") from e
