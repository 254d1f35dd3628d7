'''
Copyright (c) 2016-2024  Ellie/@ellie on Github and Codeberg

This software is provided 'as-is', without any express or implied
warranty. In no event will the authors be held liable for any damages
arising from the use of this software.

Permission is granted to anyone to use this software for any purpose,
including commercial applications, and to alter it and redistribute it
freely, subject to the following restrictions:

1. The origin of this software must not be misrepresented; you must not
   claim that you wrote the original software. If you use this software
   in a product, an acknowledgment in the product documentation would be
   appreciated but is not required.
2. Altered source versions must be plainly marked as such, and must not be
   misrepresented as being the original software.
3. This notice may not be removed or altered from any source distribution.
'''

"""
The snapshots on a destination volume.

There is no index: the directory listing is the only source of truth and
it is scanned again every time. A destination looks like this:

```
/mnt/backups/
  .wabac_machine_is_present      marker written by "init"
  2024-01-01-000000/             finalized snapshots
  2024-01-02-000000/
  inProgress/                    staging directory of a running transfer
  latest -> 2024-01-02-000000    pointer used as --link-dest
```
"""

import collections
import datetime
import os
import re
import shutil

from wabac.errors import ConfigError

NAME_FORMAT = "%Y-%m-%d-%H%M%S"
NAME_PATTERN = re.compile(r"^[0-9]{4}-[0-9]{2}-[0-9]{2}-[0-9]{6}$")
STAGING_NAME = "inProgress"
LATEST_NAME = "latest"
MARKER_NAME = ".wabac_machine_is_present"

Snapshot = collections.namedtuple("Snapshot", ["name", "path", "time"])


def snapshot_name(dt):
    return dt.strftime(NAME_FORMAT)


def snapshot_time(path):
    """ The modification time of the snapshot directory, as a naive local
        datetime. Falls back to the directory name if it can't be stat'ed.
    """
    try:
        return datetime.datetime.fromtimestamp(os.stat(path).st_mtime)
    except OSError:
        return datetime.datetime.strptime(os.path.basename(path),
            NAME_FORMAT)


def list_snapshots(destination):
    """ All finalized snapshots, oldest first. Raises OSError if the
        destination can't be listed.
    """
    snapshots = []
    for name in os.listdir(destination):
        if not NAME_PATTERN.match(name):
            continue
        path = os.path.join(destination, name)
        if os.path.islink(path) or not os.path.isdir(path):
            continue
        snapshots.append(Snapshot(name, path, snapshot_time(path)))
    snapshots.sort(key=lambda s: s.name)
    return snapshots


def oldest(destination):
    snapshots = list_snapshots(destination)
    if not snapshots:
        return None
    return snapshots[0]


def latest(destination):
    snapshots = list_snapshots(destination)
    if not snapshots:
        return None
    return snapshots[-1]


def count(destination):
    return len(list_snapshots(destination))


def staging_path(destination):
    return os.path.join(destination, STAGING_NAME)


def latest_pointer_path(destination):
    return os.path.join(destination, LATEST_NAME)


def marker_path(destination):
    return os.path.join(destination, MARKER_NAME)


def read_latest_pointer(destination):
    """ Returns the path of the latest pointer if it resolves to a
        snapshot directory, None otherwise.
    """
    pointer = latest_pointer_path(destination)
    if not os.path.islink(pointer):
        return None
    if not os.path.isdir(pointer):
        return None
    return pointer


def is_remote(location):
    # user@host:/path, host:/path and host::module are handed to rsync as is
    if os.path.exists(location):
        return False
    head = location.split("/", 1)[0]
    return ":" in head


def check_source(source):
    if not source:
        raise ConfigError("source is not defined. Please fix your " +
            "config file.")
    if is_remote(source):
        return
    if not os.access(source, os.R_OK):
        raise ConfigError("the provided source (" + source +
            ") is not readable !")


def check_destination(destination):
    """ A destination must have been initialized on purpose, so that a
        backup never lands on an unmounted mount point.
    """
    if not destination:
        raise ConfigError("destination is not defined. Please fix your " +
            "config file.")
    if is_remote(destination):
        raise ConfigError("destination cannot be a remote location: " +
            destination)
    if not os.path.isfile(marker_path(destination)):
        raise ConfigError("the provided destination (" + destination +
            ") is not marked as being a destination for the WABAC " +
            "Machine.")
    if not os.access(destination, os.W_OK):
        raise ConfigError("the provided destination (" + destination +
            ") is not writeable !")


def mark_destination(destination):
    if not os.path.exists(destination):
        os.makedirs(destination)
    with open(marker_path(destination), "a"):
        pass


def space_left(destination):
    return shutil.disk_usage(destination).free


def human_size(size):
    """ Decimal units, the way "df -H" prints them. """
    size = float(size)
    for unit in ["B", "K", "M", "G", "T", "P"]:
        if size < 1000 or unit == "P":
            break
        size /= 1000
    if unit == "B":
        return str(int(size)) + unit
    if size < 10:
        return "%.1f%s" % (size, unit)
    return "%d%s" % (round(size), unit)


def describe(destination):
    """ Summary used by the "info" action. """
    snapshots = list_snapshots(destination)
    return {
        "count": len(snapshots),
        "oldest": snapshots[0].name if snapshots else None,
        "latest": snapshots[-1].name if snapshots else None,
        "space_left": space_left(destination),
    }
