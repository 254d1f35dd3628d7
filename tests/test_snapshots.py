'''
    Test listing snapshots on a destination
'''
import os
from datetime import datetime

import pytest

from wabac import snapshots as store
from wabac.errors import ConfigError

from conftest import make_snapshot


def test_list_snapshots_sorted_and_filtered(destination):
    for name in ["2024-01-02-000000", "2023-12-31-235959",
            "2024-01-01-120000"]:
        make_snapshot(destination, name)
    os.mkdir(os.path.join(destination, store.STAGING_NAME))
    os.mkdir(os.path.join(destination, "2024-01-03"))
    os.mkdir(os.path.join(destination, "not-a-backup"))
    with open(os.path.join(destination, "2024-01-04-000000"), "w") as f:
        f.write("a file, not a snapshot")
    os.symlink("2024-01-02-000000",
        os.path.join(destination, store.LATEST_NAME))

    names = [s.name for s in store.list_snapshots(destination)]

    assert names == ["2023-12-31-235959", "2024-01-01-120000",
        "2024-01-02-000000"]
    assert store.count(destination) == 3
    assert store.oldest(destination).name == "2023-12-31-235959"
    assert store.latest(destination).name == "2024-01-02-000000"


def test_snapshot_time_comes_from_mtime(destination):
    make_snapshot(destination, "2024-01-01-000000",
        dt=datetime(2024, 5, 5, 5, 5, 5))

    snapshot = store.latest(destination)

    assert snapshot.time == datetime(2024, 5, 5, 5, 5, 5)


def test_empty_destination(destination):
    assert store.list_snapshots(destination) == []
    assert store.count(destination) == 0
    assert store.oldest(destination) is None
    assert store.latest(destination) is None


def test_unreadable_destination(tmp_path):
    with pytest.raises(OSError):
        store.list_snapshots(str(tmp_path / "missing"))


def test_read_latest_pointer(destination):
    assert store.read_latest_pointer(destination) is None

    pointer = os.path.join(destination, store.LATEST_NAME)
    os.symlink("2024-01-01-000000", pointer)
    # dangling
    assert store.read_latest_pointer(destination) is None

    make_snapshot(destination, "2024-01-01-000000")
    assert store.read_latest_pointer(destination) == pointer


def test_check_destination_requires_marker(tmp_path, destination):
    store.check_destination(destination)

    unmarked = tmp_path / "unmarked"
    unmarked.mkdir()
    with pytest.raises(ConfigError):
        store.check_destination(str(unmarked))
    with pytest.raises(ConfigError):
        store.check_destination(None)
    with pytest.raises(ConfigError):
        store.check_destination("backup@host:/srv/backups")


def test_check_source(tmp_path, source):
    store.check_source(source)
    store.check_source("user@host:/srv/")
    with pytest.raises(ConfigError):
        store.check_source(str(tmp_path / "missing"))
    with pytest.raises(ConfigError):
        store.check_source("")


def test_describe(destination):
    make_snapshot(destination, "2024-01-01-000000")
    make_snapshot(destination, "2024-02-01-000000")

    info = store.describe(destination)

    assert info["count"] == 2
    assert info["oldest"] == "2024-01-01-000000"
    assert info["latest"] == "2024-02-01-000000"
    assert info["space_left"] >= 0


def test_human_size():
    assert store.human_size(999) == "999B"
    assert store.human_size(1500) == "1.5K"
    assert store.human_size(25000000) == "25M"
    assert store.human_size(3 * 10 ** 12) == "3.0T"
