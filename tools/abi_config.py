"""Policy tables for the ABI audit.

Which ELF machines map to which output suffix, where the host keeps its
libraries for each suffix, and which file names are never worth parsing.
The fallback directories are host/distribution specific, so every table
can be overridden from an INI file or the command line.
"""

import configparser
from dataclasses import dataclass, field

# ELF e_machine -> architecture tag (output filename suffix).
# Machines not listed here fold into the native tag.
MACHINE_TAGS = {
    "EM_386": "32",
    "EM_X86_64": "",
}

# Architecture tag -> library directories searched for missing providers.
SEARCH_DIRS = {
    "32": ["/lib32", "/usr/lib32"],
    "": ["/lib", "/lib64", "/usr/lib", "/usr/lib64"],
}

# Static archives, libtool wrappers, object files and split debug info.
SKIP_SUFFIXES = (".o", ".la", ".a", ".debug", ".debuginfo")

# How the native (empty) tag is spelled in config files and on the CLI.
NATIVE = "native"


class PolicyError(Exception):
    """Raised for a config file or override that cannot be used."""


def tag_from_key(key):
    key = key.strip()
    return "" if key == NATIVE else key


@dataclass
class Policy:
    machine_tags: dict = field(default_factory=lambda: dict(MACHINE_TAGS))
    search_dirs: dict = field(
        default_factory=lambda: {t: list(d) for t, d in SEARCH_DIRS.items()})
    skip_suffixes: tuple = SKIP_SUFFIXES

    def tag_for(self, machine):
        """Architecture tag for an ELF e_machine value."""
        return self.machine_tags.get(machine, "")

    def dirs_for(self, tag):
        return list(self.search_dirs.get(tag, []))

    def skips(self, name):
        return name.endswith(self.skip_suffixes)

    def disable_search(self):
        self.search_dirs = {tag: [] for tag in self.search_dirs}


def parse_search_overrides(specs):
    """Turn ``TAG=DIR[:DIR...]`` strings into a ``{tag: [dir]}`` mapping.

    Repeated entries for the same tag accumulate.
    """
    overrides = {}
    for spec in specs:
        if "=" not in spec:
            raise PolicyError(f"expected TAG=DIR, got '{spec}'")
        key, dirs = spec.split("=", 1)
        entries = [d for d in dirs.split(":") if d]
        if not entries:
            raise PolicyError(f"no directories given for '{key}'")
        overrides.setdefault(tag_from_key(key), []).extend(entries)
    return overrides


def load_policy(path=None):
    """Build a Policy from the defaults, then apply an INI file if given.

    Recognised sections::

        [machines]
        EM_AARCH64 = native

        [search]
        native = /lib /usr/lib
        32 = /usr/lib32

        [skip]
        suffixes = .o .a .la
    """
    policy = Policy()
    if path is None:
        return policy

    config = configparser.ConfigParser()
    # Keep EM_* keys as written.
    config.optionxform = str
    try:
        with open(path) as f:
            config.read_file(f)
    except OSError as e:
        raise PolicyError(f"cannot read config '{path}': {e}") from e
    except configparser.Error as e:
        raise PolicyError(f"failed to parse '{path}': {e}") from e

    if config.has_section("machines"):
        for machine, key in config.items("machines"):
            policy.machine_tags[machine] = tag_from_key(key)
    if config.has_section("search"):
        for key, dirs in config.items("search"):
            policy.search_dirs[tag_from_key(key)] = dirs.split()
    if config.has_section("skip"):
        suffixes = config.get("skip", "suffixes", fallback="").split()
        if any(not s.startswith(".") for s in suffixes):
            raise PolicyError(f"skip suffixes must start with '.': {suffixes}")
        policy.skip_suffixes = tuple(suffixes)
    return policy
