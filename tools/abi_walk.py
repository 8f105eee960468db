"""Find candidate files under a scan root.

Symlinks are followed the way they would resolve inside an unpacked root
filesystem: relative targets against the link's own directory, absolute
targets under the scan root when the link lives inside it (a target
that is missing there is an error, never a read of the host), and
literally otherwise.  Each directory is entered at most once, so link
cycles end.
"""

import errno
import os
import stat

# Same limit the kernel uses before returning ELOOP.
MAX_LINK_HOPS = 40


def _inside(root, path):
    root = os.path.abspath(root)
    path = os.path.abspath(path)
    return path == root or path.startswith(root.rstrip(os.sep) + os.sep)


def resolve_link(root, path, target):
    """Where the symlink at *path* pointing to *target* leads, seen from *root*."""
    if not os.path.isabs(target):
        return os.path.normpath(os.path.join(os.path.dirname(path), target))
    if _inside(root, target) or not _inside(root, path) or not os.path.isdir(root):
        return target
    return os.path.normpath(os.path.join(root, target.lstrip(os.sep)))


def _report(on_error, path, exc):
    if on_error is None:
        raise exc
    on_error(path, exc)


def _pivot(root, path, hops, visited, on_error):
    try:
        st = os.lstat(path)
    except OSError as e:
        _report(on_error, path, e)
        return

    if stat.S_ISLNK(st.st_mode):
        if hops >= MAX_LINK_HOPS:
            _report(on_error, path,
                    OSError(errno.ELOOP, "too many levels of symbolic links", path))
            return
        try:
            target = os.readlink(path)
        except OSError as e:
            _report(on_error, path, e)
            return
        yield from _pivot(root, resolve_link(root, path, target), hops + 1,
                          visited, on_error)
    elif stat.S_ISDIR(st.st_mode):
        key = (st.st_dev, st.st_ino)
        if key in visited:
            return
        visited.add(key)
        try:
            names = sorted(os.listdir(path))
        except OSError as e:
            _report(on_error, path, e)
            return
        for name in names:
            yield from _pivot(root, os.path.join(path, name), 0, visited, on_error)
    elif stat.S_ISREG(st.st_mode):
        yield path


def walk_tree(root, on_error=None):
    """Yield the path of every regular file reachable from *root*.

    *root* may itself be a file or a symlink.  Paths are yielded after
    symlink resolution, in sorted directory order.  Per-path failures are
    passed to ``on_error(path, exc)`` and the walk carries on; without a
    callback the first failure is raised.
    """
    yield from _pivot(root, root, 0, set(), on_error)


def find_named(dirs, names, on_error=None):
    """Yield files (or links to files) under *dirs* whose name is in *names*.

    Directories that do not exist are skipped.  Symlinked directories are
    not descended into; symlinked files are matched by the link's name.
    """
    def onerror(e):
        _report(on_error, e.filename, e)

    for d in dirs:
        if not os.path.isdir(d):
            continue
        for dirpath, _dirnames, filenames in os.walk(d, onerror=onerror):
            for fname in sorted(filenames):
                if fname not in names:
                    continue
                fpath = os.path.join(dirpath, fname)
                if os.path.isfile(fpath):
                    yield fpath
