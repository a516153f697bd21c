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
# dutally lists the disk usage of every directory below the path you
# specify, like du(1), and counts hard-linked files only once.
#
#
# Library usage::
#
#     >>> from dutally import InodeRegistry, compute
#     >>> found = []
#     >>> usage, error = compute(
#     ...     '/srv', InodeRegistry(), include_files=False,
#     ...     report=(lambda usage, path: found.append((usage, path))))
#     >>> usage, error
#     (84530448, None)
#
#     >>> found[-1]
#     (84530448, '/srv')
#
#     >>> found[0]
#     (12, '/srv/data/audiofiles/2019')
#
from .dutally import (
    DuError, DuScan as Scanner, InodeRegistry, ListingUnavailable,
    MetadataUnavailable, PathCompositionFailure, RegistryGrowthFailure,
    compute)

__all__ = (
    'DuError', 'InodeRegistry', 'ListingUnavailable', 'MetadataUnavailable',
    'PathCompositionFailure', 'RegistryGrowthFailure', 'Scanner', 'compute')
