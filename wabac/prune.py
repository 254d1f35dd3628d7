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
Removing snapshots, either because the retention policy no longer wants
them or because the destination ran out of space.

Unchanged files are shared between snapshots through hard links, so
removing one snapshot directory never changes what the others contain.
"""

import shutil

from wabac import output
from wabac import retention
from wabac import snapshots as store
from wabac.errors import LastSnapshotError


def remove_snapshot(snapshot, dry_run=False):
    if dry_run:
        output.info("I would have deleted " + snapshot.path + ".")
        return
    shutil.rmtree(snapshot.path)
    output.info("Deleted " + snapshot.path + ".")


def _removal_message(amount):
    if amount == 0:
        return "No expired backup found."
    if amount == 1:
        return "One expired backup will be removed."
    return str(amount) + " expired backups will be removed."


def prune_to_keep_set(destination, keep_set, dry_run=False):
    """ Removes every snapshot whose name is not in keep_set and returns
        how many were (or, in dry run mode, would have been) removed.
    """
    all_snapshots = store.list_snapshots(destination)
    kickout = [s for s in all_snapshots if s.name not in keep_set]
    if all_snapshots and len(kickout) == len(all_snapshots):
        survivor = kickout.pop()
        output.warning("retention policy keeps no backup at all, " +
            "keeping the latest one: " + survivor.name)
    output.info(_removal_message(len(kickout)))
    for snapshot in kickout:
        output.debug("expired: " + snapshot.name)
        remove_snapshot(snapshot, dry_run=dry_run)
    return len(kickout)


def evict_oldest(destination, dry_run=False, skip=()):
    """ Removes the oldest snapshot to make room, unless it is the last
        one remaining. Snapshots named in skip are treated as gone.
    """
    all_snapshots = [s for s in store.list_snapshots(destination)
        if s.name not in skip]
    if len(all_snapshots) <= 1:
        raise LastSnapshotError("can't remove the oldest backup: " +
            "it's the last one remaining.")
    oldest = all_snapshots[0]
    remove_snapshot(oldest, dry_run=dry_run)
    return oldest


def remove_expired(destination, policy, dry_run=False, now=None):
    all_snapshots = store.list_snapshots(destination)
    keep_set = retention.select_keep_set(all_snapshots, policy, now=now)
    output.debug("keeping: " + ", ".join(sorted(keep_set)))
    return prune_to_keep_set(destination, keep_set, dry_run=dry_run)
