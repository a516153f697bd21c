#!/usr/bin/env python3
# dutally -- disk usage of a tree, counting hard-linked files once
# Copyright (C) 2017,2018,2019  Walter Doekes, OSSO B.V.
#
# This program is free software: you can redistribute it and/or modify
# it under the terms of the GNU General Public License as published by
# the Free Software Foundation, either version 3 of the License, or
# (at your option) any later version.
#
# This program is distributed in the hope that it will be useful,
# but WITHOUT ANY WARRANTY; without even the implied warranty of
# MERCHANTABILITY or FITNESS FOR A PARTICULAR PURPOSE.  See the
# GNU General Public License for more details.
#
# You should have received a copy of the GNU General Public License
# along with this program.  If not, see <http://www.gnu.org/licenses/>.
#
#
# *dutally* walks a directory tree and prints the space taken by every
# directory in it, like ``du`` does.
#
# Example usage::
#
#     $ dutally -a /srv/www
#     8       /srv/www/index.html
#     0       /srv/www/current
#     4       /srv/www/static/favicon.ico
#     8       /srv/www/static
#     20      /srv/www
#
# Usage is in KiB, taken from the allocated blocks (``st_blocks``), not
# from the apparent file size. Directories are listed after their
# contents. Symlinks are counted but never followed.
#
# **NOTE**: A regular file with more than one hard link is counted at the
# first path where it is found. Other paths to the same inode add nothing
# and are not listed, also not with ``-a``.
#
import errno
import sys

from os import fsdecode, fsencode, lstat, scandir, strerror
from stat import S_ISDIR, S_ISLNK, S_ISREG

PATH_MAX = 4096  # bytes, the Linux limit
DOT_ENTRIES = ('.', '..', b'.', b'..')

USAGE = '''\
Usage: dutally [-a] [FILE]
Options:
    -a    write counts for all files, not just directories
'''


class DuError(OSError):
    "Error that aborts a disk usage scan"
    action = 'cannot scan'

    @classmethod
    def from_oserror(cls, exc, pathname):
        return cls(exc.errno, exc.strerror, pathname)

    def __str__(self):
        if self.filename is None:
            return '{}: {}'.format(self.action, self.strerror)
        return '{} {!r}: {}'.format(
            self.action, fsdecode(self.filename), self.strerror)


class MetadataUnavailable(DuError):
    action = 'cannot access'


class ListingUnavailable(DuError):
    action = 'cannot read directory'


class PathCompositionFailure(DuError):
    action = 'cannot compose path'


class RegistryGrowthFailure(DuError):
    action = 'cannot record inode'


class InodeRegistry:
    """
    The (st_dev, st_ino) pairs of hard-linked files that have already been
    counted.

    One registry is used per top-level scan. Identifiers are only ever
    added, never removed.
    """
    def __init__(self):
        self._seen = set()

    def __contains__(self, inode):
        return inode in self._seen

    def __len__(self):
        return len(self._seen)

    def contains(self, inode):
        return inode in self._seen

    def insert(self, inode):
        "Record inode as counted. Raises RegistryGrowthFailure if full."
        try:
            self._seen.add(inode)
        except MemoryError:
            raise RegistryGrowthFailure(errno.ENOMEM, strerror(errno.ENOMEM))


class DuFrame:
    "A directory that is being enumerated"

    def __init__(self, pathname, total, entries):
        self.path = pathname
        self.total = total  # own usage plus everything counted so far
        self.entries = entries

    def next_entry(self):
        "Return the next DirEntry or None when the listing is exhausted."
        try:
            return next(self.entries, None)
        except OSError as e:
            raise ListingUnavailable.from_oserror(e, self.path)

    def close(self):
        self.entries.close()


class DuScan:
    "Disk usage scanner"

    def __init__(self, pathname, registry, include_files=False,
                 report=None, max_path=PATH_MAX):
        self._path = pathname
        self._registry = registry
        self._include_files = include_files
        self._report = report or report_stdout
        self._max_path = max_path

    def scan(self):
        """
        Return the usage in KiB of the tree at pathname.

        Every directory, and with include_files every counted file and
        symlink, is passed to report after its contents. Raises a DuError
        subclass when the scan has to be aborted; whatever was reported up
        to that point stays reported.
        """
        st = self._lstat(self._path)
        if not S_ISDIR(st.st_mode):
            usage = self._charge(st)
            if usage is None:
                return 0
            if self._include_files:
                self._report(usage, self._path)
            return usage

        # Walk with our own stack of open directories instead of recursing,
        # so the depth is not bound by the interpreter recursion limit. It
        # is still bound by the open file limit: one fd per pending dir.
        frames = [self._open(self._path, st)]
        try:
            return self._walk(frames)
        finally:
            for frame in frames:
                frame.close()

    def _walk(self, frames):
        while True:
            frame = frames[-1]
            entry = frame.next_entry()

            if entry is None:
                frames.pop()
                frame.close()
                self._report(frame.total, frame.path)
                if not frames:
                    return frame.total
                frames[-1].total += frame.total
                continue

            if entry.name in DOT_ENTRIES:
                continue

            pathname = self._join(frame.path, entry.name)
            st = self._lstat(pathname)

            if S_ISDIR(st.st_mode):
                frames.append(self._open(pathname, st))

            elif S_ISREG(st.st_mode) or S_ISLNK(st.st_mode):
                usage = self._charge(st)
                if usage is None:
                    continue  # hard link to a file we already counted
                frame.total += usage
                if self._include_files:
                    self._report(usage, pathname)

            # Devices, sockets and fifos take no space of their own.

    def _charge(self, st):
        "Return usage of a non-directory, or None if already counted."
        # Only regular files are deduplicated; a hard-linked symlink is
        # counted at every path.
        if S_ISREG(st.st_mode) and st.st_nlink > 1:
            inode = (st.st_dev, st.st_ino)
            if self._registry.contains(inode):
                return None
            self._registry.insert(inode)
        return usage_of(st)

    def _open(self, pathname, st):
        try:
            entries = scandir(pathname)
        except OSError as e:
            raise ListingUnavailable.from_oserror(e, pathname)
        return DuFrame(pathname, usage_of(st), entries)

    def _lstat(self, pathname):
        try:
            return lstat(pathname)
        except OSError as e:
            raise MetadataUnavailable.from_oserror(e, pathname)

    def _join(self, dirname, basename):
        "Return dirname/basename; both str or both bytes, like os.scandir."
        sep = b'/' if isinstance(dirname, bytes) else '/'
        if dirname.endswith(sep):
            pathname = dirname + basename
        else:
            pathname = dirname + sep + basename
        if len(fsencode(pathname)) >= self._max_path:
            raise PathCompositionFailure(
                errno.ENAMETOOLONG, strerror(errno.ENAMETOOLONG), pathname)
        return pathname


def usage_of(st):
    "Return allocated size in KiB (st_blocks is in 512 byte units)."
    return st.st_blocks // 2


def report_stdout(usage, pathname):
    """
    Write a usage<TAB>path line to stdout.

    The path goes out as the raw file system bytes, so names that are not
    valid in the locale encoding are printed as they are, like du does.
    """
    out = getattr(sys.stdout, 'buffer', None)
    if out is None:
        sys.stdout.write('{}\t{}\n'.format(usage, fsdecode(pathname)))
    else:
        out.write(b'%d\t%s\n' % (usage, fsencode(pathname)))


def compute(pathname, registry, include_files=False, report=None,
            max_path=PATH_MAX):
    """
    Scan pathname and return a (usage, error) tuple.

    On failure the usage is 0 and error is the DuError that stopped the
    scan. Rendering the error is left to the caller.
    """
    scanner = DuScan(
        pathname, registry, include_files=include_files, report=report,
        max_path=max_path)
    try:
        return scanner.scan(), None
    except DuError as e:
        return 0, e


def parse_args(args):
    "Return (pathname, include_files), or None if args are invalid."
    pathnames = []
    include_files = False
    options_done = False
    for arg in args:
        if options_done or arg == '-' or not arg.startswith('-'):
            pathnames.append(arg)
        elif arg == '--':
            options_done = True
        elif set(arg[1:]) == {'a'}:
            include_files = True
        else:
            return None

    if len(pathnames) > 1:
        return None
    return (pathnames[0] if pathnames else '.'), include_files


def main():
    parsed = parse_args(sys.argv[1:])
    if parsed is None:
        sys.stderr.write(USAGE)
        sys.exit(1)

    pathname, include_files = parsed
    sys.exit(run(pathname, include_files))


def run(pathname, include_files):
    "Print the usage of pathname and return the process exit status."
    _, error = compute(pathname, InodeRegistry(), include_files)
    sys.stdout.flush()
    if error is not None:
        sys.stderr.write('dutally: {}\n'.format(error))
        return 1
    return 0


if __name__ == '__main__':
    main()
