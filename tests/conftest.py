'''
    Shared fixtures: a marked destination, snapshot directories with a
    given modification time, and a fake rsync.
'''
import datetime
import os
import time

import pytest

from wabac import config as wabac_config
from wabac import snapshots as store


def set_mtime(path, dt):
    stamp = time.mktime(dt.timetuple())
    os.utime(path, (stamp, stamp))


def make_snapshot(destination, name, dt=None, content=None):
    path = os.path.join(destination, name)
    os.mkdir(path)
    if content is not None:
        with open(os.path.join(path, "file.txt"), "w") as f:
            f.write(content)
    if dt is None:
        dt = datetime.datetime.strptime(name, store.NAME_FORMAT)
    set_mtime(path, dt)
    return path


def make_script(directory, name, body):
    path = os.path.join(str(directory), name)
    with open(path, "w") as f:
        f.write("#!/bin/sh\n" + body + "\n")
    os.chmod(path, 0o755)
    return path


class FakeRsync:
    ''' Stands in for rsync. Each call pops the next (exit code, output)
        pair, and creates the staging directory the way rsync would.
    '''

    def __init__(self, responses=None):
        self.responses = list(responses or [(0, "")])
        self.calls = []

    def __call__(self, argv):
        self.calls.append(list(argv))
        staging = argv[-1]
        if not os.path.isdir(staging):
            os.mkdir(staging)
        with open(os.path.join(staging, "file.txt"), "w") as f:
            f.write("backed up")
        if len(self.responses) > 1:
            return self.responses.pop(0)
        return self.responses[0]


@pytest.fixture
def destination(tmp_path):
    path = tmp_path / "backups"
    path.mkdir()
    store.mark_destination(str(path))
    return str(path)


@pytest.fixture
def source(tmp_path):
    path = tmp_path / "source"
    path.mkdir()
    (path / "data.txt").write_text("hello")
    return str(path)


@pytest.fixture
def fake_rsync_path(tmp_path):
    return make_script(tmp_path, "rsync", "exit 0")


@pytest.fixture
def make_config(source, destination, fake_rsync_path):
    def make(**overrides):
        data = {
            "source": source,
            "destination": destination,
            "rsync_path": fake_rsync_path,
        }
        data.update(overrides)
        return wabac_config.parse_config(data)
    return make
