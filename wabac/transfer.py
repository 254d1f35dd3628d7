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
Creating a new snapshot with rsync.

rsync copies the source into the staging directory, hard linking every
unchanged file against the latest snapshot (--link-dest). Only when rsync
is done, the staging directory is renamed to its timestamp name and the
latest pointer is moved over to it. A transfer that fails or gets
interrupted leaves the staging directory behind, and the next backup
removes it before it starts.

When rsync reports that the destination is full, the oldest snapshot is
removed and rsync runs again, until it fits or only one snapshot is left.
"""

import collections
import datetime
import os
import re
import shutil
import subprocess
import time

from wabac import output
from wabac import prune
from wabac import snapshots as store
from wabac.config import check_exclude_file
from wabac.errors import LastSnapshotError, SpaceExhaustedError, \
    ToolNotFoundError, TransferError

RSYNC_SEARCH_PATHS = ["/usr/bin/rsync", "/usr/local/bin/rsync"]

DEFAULT_RSYNC_OPTIONS = [
    "--stats",
    "--archive",
    "--hard-links",
    "--acls",
    "--xattrs",
    "--sparse",
    "--one-file-system",
    "--partial-dir=.incomplete",
    "--protect-args",
    "--numeric-ids",
    "--human-readable",
]

TransferStats = collections.namedtuple("TransferStats", [
    "total_files", "total_size", "transferred_files", "transferred_size",
    "speedup",
])

TransferResult = collections.namedtuple("TransferResult", [
    "snapshot", "returncode", "output", "stats", "evicted",
])


class OutputClassifier:
    """ Tells what an rsync run meant, from its exit code and its output.

        The out of space detection is a plain substring match on the
        messages rsync prints for ENOSPC and ERANGE, ignoring case.
    """

    SPACE_EXHAUSTED_PHRASES = (
        "No space left on device (28)",
        "Result too large (34)",
    )

    SUCCESS = 0
    PARTIAL_TRANSFER = 23
    SOURCE_VANISHED = 24

    OK = "ok"
    WARNING = "warning"
    FAILURE = "failure"

    def __init__(self, space_exhausted_phrases=None):
        if space_exhausted_phrases is None:
            space_exhausted_phrases = self.SPACE_EXHAUSTED_PHRASES
        self.space_exhausted_phrases = [p.lower() for p in
            space_exhausted_phrases]

    def is_space_exhausted(self, text):
        text = (text or "").lower()
        for phrase in self.space_exhausted_phrases:
            if phrase in text:
                return True
        return False

    def classify(self, returncode):
        if returncode == self.SUCCESS:
            return self.OK
        if returncode in (self.PARTIAL_TRANSFER, self.SOURCE_VANISHED):
            return self.WARNING
        return self.FAILURE


def find_rsync(rsync_path=None):
    if rsync_path:
        if not os.path.isfile(rsync_path) or \
                not os.access(rsync_path, os.X_OK):
            raise ToolNotFoundError("could not find a suitable rsync " +
                "executable at the provided path (" + rsync_path + ").")
        return rsync_path
    for path in RSYNC_SEARCH_PATHS:
        if os.path.isfile(path) and os.access(path, os.X_OK):
            return path
    raise ToolNotFoundError("could not find a suitable rsync executable. " +
        "Please make sure rsync is installed. If you use a custom " +
        "version, please specify it in your config file.")


def build_options(config, destination):
    options = list(DEFAULT_RSYNC_OPTIONS)
    # extra options go through unchanged, "--exclude PATTERN" pairs repeat
    options.extend(config.rsync_options)
    if config.dry_run and "--dry-run" not in options and \
            "-n" not in options:
        options.append("--dry-run")
    exclude_file = check_exclude_file(config)
    if exclude_file is not None:
        options.append("--exclude-from=" + exclude_file)
    reference = store.read_latest_pointer(destination)
    if reference is not None:
        options.append("--link-dest=" + reference)
    return options


def run_rsync(argv):
    """ Runs rsync and returns (exit code, combined stdout and stderr). """
    output.debug("running: " + str(argv))
    returncode = 0
    result = None
    try:
        result = subprocess.check_output(argv, stderr=subprocess.STDOUT)
    except subprocess.CalledProcessError as e:
        result = e.output
        returncode = e.returncode
    except FileNotFoundError:
        raise ToolNotFoundError("rsync executable vanished: " + argv[0])
    try:
        result = result.decode("utf-8", "replace")
    except AttributeError:
        pass
    return (returncode, result or "")


_STATS_PATTERNS = {
    "total_files": re.compile(r"^Number of files:\s*(\S+)", re.M),
    "total_size": re.compile(r"^Total file size:\s*(\S+)", re.M),
    "transferred_files": re.compile(
        r"^Number of (?:regular )?files transferred:\s*(\S+)", re.M),
    "transferred_size": re.compile(
        r"^Total transferred file size:\s*(\S+)", re.M),
    "speedup": re.compile(r"speedup is\s*(\S+)", re.M),
}


def parse_stats(text):
    """ Picks the numbers out of the rsync --stats summary. Missing ones
        are None.
    """
    values = {}
    for field in TransferStats._fields:
        match = _STATS_PATTERNS[field].search(text or "")
        values[field] = match.group(1) if match else None
    return TransferStats(**values)


def report_stats(stats):
    def show(value):
        return value if value is not None else "?"
    output.info("Successfully backed up " + show(stats.total_files) +
        " files (" + show(stats.total_size) + ").")
    output.info("Actually copied " + show(stats.transferred_files) +
        " files (" + show(stats.transferred_size) + ") - Speedup : " +
        show(stats.speedup) + ".")


def clean_staging(destination, dry_run=False):
    """ Removes what an interrupted or failed transfer left behind. """
    staging = store.staging_path(destination)
    if not os.path.lexists(staging):
        return False
    output.warning("unfinished backup found (" + staging + "), " +
        "removing it...")
    if dry_run:
        output.info("I would have deleted " + staging + ".")
        return True
    if os.path.isdir(staging) and not os.path.islink(staging):
        shutil.rmtree(staging)
    else:
        os.remove(staging)
    return True


def update_latest_pointer(destination, name):
    """ Points the latest link at the given snapshot. The new link is
        created aside and renamed over the old one.
    """
    pointer = store.latest_pointer_path(destination)
    tmp_pointer = pointer + ".new"
    if os.path.lexists(tmp_pointer):
        os.remove(tmp_pointer)
    os.symlink(name, tmp_pointer)
    os.replace(tmp_pointer, pointer)


def finalize(destination, now):
    staging = store.staging_path(destination)
    name = store.snapshot_name(now)
    target = os.path.join(destination, name)
    if os.path.lexists(target):
        raise TransferError("snapshot " + target + " already exists, " +
            "leaving " + staging + " in place")
    stamp = time.mktime(now.timetuple())
    os.utime(staging, (stamp, stamp))
    os.rename(staging, target)
    update_latest_pointer(destination, name)
    return store.Snapshot(name, target, store.snapshot_time(target))


def backup(config, runner=None, classifier=None, now=None):
    """ Creates a new snapshot of config.source in config.destination. """
    if runner is None:
        runner = run_rsync
    if classifier is None:
        classifier = OutputClassifier()
    if now is None:
        now = datetime.datetime.now().replace(microsecond=0)
    destination = config.destination

    rsync = find_rsync(config.rsync_path)
    options = build_options(config, destination)
    clean_staging(destination, dry_run=config.dry_run)

    reference = store.read_latest_pointer(destination)
    output.info("Exclude file: " + str(config.exclude_file or "None"))
    output.info("Reference: " + (os.path.realpath(reference)
        if reference else "None (new backup)"))

    argv = [rsync] + options + ["--", config.source,
        store.staging_path(destination)]
    evicted = []
    attempts_left = store.count(destination)
    while True:
        (returncode, text) = runner(argv)
        if not classifier.is_space_exhausted(text):
            break
        if attempts_left <= 0:
            raise SpaceExhaustedError("no more space available on " +
                destination, returncode=returncode, output=text)
        try:
            # in dry run mode nothing is deleted, so skip what was "evicted"
            oldest = prune.evict_oldest(destination, dry_run=config.dry_run,
                skip=[s.name for s in evicted])
        except LastSnapshotError as e:
            raise SpaceExhaustedError("no more space available on " +
                destination + " (" + str(e) + ")",
                returncode=returncode, output=text)
        evicted.append(oldest)
        output.warning("no space left on " + destination + ", removed " +
            "the oldest backup (" + oldest.name + "), starting over")
        attempts_left -= 1

    verdict = classifier.classify(returncode)
    if verdict == classifier.FAILURE:
        output.details(text)
        raise TransferError("an error occured while backing up (" +
            str(returncode) + "). The backup might be incomplete or " +
            "corrupt !", returncode=returncode, output=text)
    if returncode == classifier.PARTIAL_TRANSFER:
        output.warning("some files or attributes were not transferred, " +
            "there might be an ACL issue")
        output.details(text)
    elif returncode == classifier.SOURCE_VANISHED:
        output.warning("some source files vanished during the backup")

    snapshot = None
    if config.dry_run:
        output.info("dry run, not finalizing " +
            store.staging_path(destination))
    else:
        snapshot = finalize(destination, now)
        output.info("New backup: " + snapshot.path)

    stats = parse_stats(text)
    report_stats(stats)
    return TransferResult(snapshot, returncode, text, stats, evicted)
