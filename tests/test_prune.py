'''
    Test removing expired snapshots and evicting the oldest one
'''
import os
from datetime import datetime

import pytest

from wabac import prune
from wabac import snapshots as store
from wabac.config import RetentionPolicy
from wabac.errors import LastSnapshotError

from conftest import make_snapshot


def names(destination):
    return [s.name for s in store.list_snapshots(destination)]


def test_prune_to_keep_set_removes_the_rest(destination, capsys):
    for name in ["2024-01-01-000000", "2024-01-02-000000",
            "2024-01-03-000000", "2024-01-04-000000"]:
        make_snapshot(destination, name)

    removed = prune.prune_to_keep_set(destination,
        {"2024-01-02-000000", "2024-01-04-000000"})

    assert removed == 2
    assert names(destination) == ["2024-01-02-000000", "2024-01-04-000000"]
    assert "2 expired backups will be removed." in capsys.readouterr().out


def test_prune_nothing_to_do(destination, capsys):
    make_snapshot(destination, "2024-01-01-000000")

    assert prune.prune_to_keep_set(destination, {"2024-01-01-000000"}) == 0
    assert "No expired backup found." in capsys.readouterr().out


def test_prune_never_removes_the_last_snapshot(destination):
    make_snapshot(destination, "2024-01-01-000000")
    make_snapshot(destination, "2024-01-02-000000")

    removed = prune.prune_to_keep_set(destination, set())

    assert removed == 1
    assert names(destination) == ["2024-01-02-000000"]


def test_prune_dry_run_deletes_nothing(destination, capsys):
    make_snapshot(destination, "2024-01-01-000000")
    make_snapshot(destination, "2024-01-02-000000")

    removed = prune.prune_to_keep_set(destination, {"2024-01-02-000000"},
        dry_run=True)

    assert removed == 1
    assert names(destination) == ["2024-01-01-000000", "2024-01-02-000000"]
    assert "One expired backup will be removed." in \
        capsys.readouterr().out


def test_removing_a_snapshot_keeps_hard_linked_files(destination):
    first = make_snapshot(destination, "2024-01-01-000000",
        content="shared")
    second = make_snapshot(destination, "2024-01-02-000000")
    os.link(os.path.join(first, "file.txt"),
        os.path.join(second, "file.txt"))

    prune.prune_to_keep_set(destination, {"2024-01-02-000000"})

    with open(os.path.join(second, "file.txt")) as f:
        assert f.read() == "shared"


def test_evict_oldest(destination):
    for name in ["2024-01-01-000000", "2024-01-02-000000",
            "2024-01-03-000000"]:
        make_snapshot(destination, name)

    evicted = prune.evict_oldest(destination)

    assert evicted.name == "2024-01-01-000000"
    assert names(destination) == ["2024-01-02-000000", "2024-01-03-000000"]


def test_evict_oldest_refuses_last_snapshot(destination):
    path = make_snapshot(destination, "2024-01-01-000000", content="keep")

    with pytest.raises(LastSnapshotError):
        prune.evict_oldest(destination)

    assert names(destination) == ["2024-01-01-000000"]
    assert os.path.isfile(os.path.join(path, "file.txt"))


def test_evict_oldest_on_empty_destination(destination):
    with pytest.raises(LastSnapshotError):
        prune.evict_oldest(destination)


def test_remove_expired(destination):
    for name in ["2022-06-01-000000", "2022-07-01-000000",
            "2024-01-01-000000", "2024-01-01-120000", "2024-01-02-000000"]:
        make_snapshot(destination, name)
    policy = RetentionPolicy(hours=0, days=2, weeks=0, months=0)

    removed = prune.remove_expired(destination, policy,
        now=datetime(2024, 1, 2, 6, 0, 0))

    assert removed == 2
    assert names(destination) == ["2022-07-01-000000", "2024-01-01-120000",
        "2024-01-02-000000"]


def test_remove_expired_without_snapshots(destination):
    policy = RetentionPolicy(hours=1, days=31, weeks=52, months=24)
    assert prune.remove_expired(destination, policy) == 0
