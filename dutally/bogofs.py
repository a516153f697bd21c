# dutally -- disk usage of a tree, counting hard-linked files once
# Copyright (C) 2018  Walter Doekes, OSSO B.V.
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
# The BogoFilesystem contained herein is used by the dutally test cases.
# It is an in-memory filesystem that stands in for lstat() and scandir(),
# so the DuScan scanner can be tested on a consistent filesystem. The
# GeneratedFilesystem fills one pseudo-randomly.
#
import errno
import os
from random import Random
from stat import S_IFDIR, S_IFIFO, S_IFLNK, S_IFREG


class Node:
    st_mode = 0

    def __init__(self, size, blocks=None):
        self.size = size
        self.blocks = blocks  # None: derive from size
        self.st_dev = None
        self.st_ino = None
        self.st_nlink = 1

    @property
    def st_blocks(self):  # for stat
        if self.blocks is not None:
            return self.blocks
        # Allocated in 4K chunks, counted in 512 byte blocks.
        return ((self.size + 4095) >> 12) << 3

    @property
    def st_size(self):  # for stat
        return self.size


class DirNode(Node):
    st_mode = S_IFDIR | 0o755

    def __init__(self):
        super().__init__(4096)  # bogus obviously, but most common
        self.entries = {}
        self.st_nlink = 2

    def __str__(self):
        return '[{:12d}] dir'.format(self.size)


class RegularFileNode(Node):
    st_mode = S_IFREG | 0o644

    def __str__(self):
        return '[{:12d}] file, {} links'.format(self.size, self.st_nlink)


class SymlinkNode(Node):
    st_mode = S_IFLNK | 0o777

    def __init__(self, target):
        # Short targets are stored in the inode itself and take no blocks.
        blocks = 0 if len(target) < 60 else 8
        super().__init__(len(target), blocks)
        self.target = target

    def __str__(self):
        return '[{:12d}] -> {}'.format(self.size, self.target)


class FifoNode(Node):
    st_mode = S_IFIFO | 0o644

    def __init__(self, blocks=None):
        super().__init__(0, blocks)


class DirEntry:
    def __init__(self, name):
        self.name = name


class ScandirIterator:
    "Listing handle; the filesystem counts how many are open."

    def __init__(self, fs, names):
        self._fs = fs
        self._names = iter(names)
        self.closed = False
        fs.open_handles += 1
        fs.opened += 1

    def __iter__(self):
        return self

    def __next__(self):
        if self.closed:
            raise StopIteration
        return DirEntry(next(self._names))

    def __enter__(self):
        return self

    def __exit__(self, *exc_info):
        self.close()

    def close(self):
        if not self.closed:
            self.closed = True
            self._fs.open_handles -= 1


class BogoFilesystem:
    """
    In-memory filesystem, with absolute paths only.

    Use lstat() and scandir() in place of the os functions. Listings
    include "." and "..", like readdir(3) does.
    """
    def __init__(self, dev=1):
        self._dev = dev
        self._next_ino = 2
        self._cache_dict = {}
        self._unlistable = set()
        self.open_handles = 0
        self.opened = 0

        self._root = self._new_inode(DirNode())
        self._cache_dict['/'] = self._root

    def _new_inode(self, node):
        node.st_dev = self._dev
        node.st_ino = self._next_ino
        self._next_ino += 1
        return node

    def _normpath(self, path):
        if path != '/' and path.endswith('/'):
            path = path.rstrip('/')
        assert path.startswith('/'), path
        return path

    def _add(self, path, node):
        path = self._normpath(path)
        parent, name = path.rsplit('/', 1)
        parent_node = self._cache_dict[parent or '/']
        assert isinstance(parent_node, DirNode), parent
        assert name not in parent_node.entries, path
        parent_node.entries[name] = node
        self._cache_dict[path] = node
        return node

    def mkdir(self, path):
        return self._add(path, self._new_inode(DirNode()))

    def mkfile(self, path, size, blocks=None):
        return self._add(
            path, self._new_inode(RegularFileNode(size, blocks)))

    def symlink(self, target, path):
        return self._add(path, self._new_inode(SymlinkNode(target)))

    def mkfifo(self, path, blocks=None):
        return self._add(path, self._new_inode(FifoNode(blocks)))

    def link(self, src, dst):
        "Add another name for the non-directory at src."
        node = self._get_node(src)
        assert not isinstance(node, DirNode), src
        node.st_nlink += 1
        return self._add(dst, node)

    def _get_node(self, path):
        try:
            node = self._cache_dict[self._normpath(path)]
        except KeyError:
            raise OSError(errno.ENOENT, os.strerror(errno.ENOENT), path)
        return node

    def hide_from_stat(self, path):
        """'Delete' a file, so it will turn up in the listing, but fail
        on stat.

        This is used so check that we cope with listing/stat races.
        """
        del self._cache_dict[self._normpath(path)]

    def deny_listing(self, path):
        "Make scandir(path) fail with EACCES."
        self._unlistable.add(self._normpath(path))

    def get_usage(self, path):
        """
        Return the usage in KiB of everything at path, counting each
        hard-linked regular file once.
        """
        seen = set()

        def _usage(node):
            if isinstance(node, DirNode):
                return (node.st_blocks // 2) + sum(
                    _usage(i) for i in node.entries.values())
            if isinstance(node, RegularFileNode) and node.st_nlink > 1:
                if node.st_ino in seen:
                    return 0
                seen.add(node.st_ino)
            if isinstance(node, FifoNode):
                return 0
            return node.st_blocks // 2

        return _usage(self._get_node(path))

    def lstat(self, path):
        return self._get_node(path)

    def scandir(self, path):
        node = self._get_node(path)
        if not isinstance(node, DirNode):
            raise OSError(errno.ENOTDIR, os.strerror(errno.ENOTDIR), path)
        if self._normpath(path) in self._unlistable:
            raise OSError(errno.EACCES, os.strerror(errno.EACCES), path)
        return ScandirIterator(self, ['.', '..'] + list(node.entries))

    def walk(self, path='/'):
        path = self._normpath(path)
        node = self._get_node(path)
        yield path, node
        if isinstance(node, DirNode):
            for name in node.entries:
                child = (path + '/' + name) if path != '/' else ('/' + name)
                for item in self.walk(child):
                    yield item


class GeneratedFilesystem(BogoFilesystem):
    def __init__(self, seed=3, maxdepth=3, hardlinks=10):
        super().__init__()
        self._rand = Random(seed)
        self.choice = self._rand.choice
        self.randint = self._rand.randint

        # With the current FS generation parameters, maxdepth of 4 is
        # more than enough.
        assert 0 <= maxdepth < 5, 'invalid maxdepth value'
        self.generate('', maxdepth)
        self.link_some(hardlinks)

    def generate(self, prefix, maxdepth):
        # Generate dirs.
        if maxdepth > 0:
            for name in self.create_unique(self.how_many_dirs()):
                path = '{}/{}.d'.format(prefix, name)
                self.mkdir(path)
                self.generate(path, maxdepth - 1)

        # Generate files, symlinks and the odd fifo.
        for name in self.create_unique(self.how_many_files()):
            self.mkfile(
                '{}/{}.txt'.format(prefix, name), self.how_large_file())
        for name in self.create_unique(self.randint(0, 2)):
            target = 'x' * self.randint(1, 120)
            self.symlink(target, '{}/{}.lnk'.format(prefix, name))
        if not self.randint(0, 5):
            self.mkfifo('{}/fifo'.format(prefix))

    def link_some(self, n):
        "Create n extra hard links to random files in random dirs."
        files = sorted(path for path, node in self.walk()
                       if isinstance(node, RegularFileNode))
        dirs = sorted(path for path, node in self.walk()
                      if isinstance(node, DirNode))
        if not files:
            return
        for i in range(n):
            dir_ = self.choice(dirs).rstrip('/')
            self.link(self.choice(files), '{}/hl{:03d}.txt'.format(dir_, i))

    def create_unique(self, n):
        fmt = '{{:0{0}d}}'.format(len(str(n)))
        return [fmt.format(i) for i in range(n)]

    def how_many_dirs(self):
        return self.randint(0, 6)

    def how_many_files(self):
        return self.randint(0, 20)

    def how_large_file(self):
        if self.randint(0, 40):
            return self.randint(0, 2 ** 16)  # not so large
        return self.randint(1, 2 ** 28)      # large


if __name__ == '__main__':
    fs = GeneratedFilesystem(seed=3, maxdepth=2)
    print('GeneratedFilesystem:')
    print('  usage =', fs.get_usage('/'), 'KiB')
    for name, node in fs.walk('/'):
        print('  {}  {}'.format(node, name))
