'''
    Test the command line: verbs, exit codes and signal re-delivery
'''
import os
import signal
import subprocess
import sys

import pytest
import yaml

from wabac import cli
from wabac import controller as wabac_controller
from wabac.errors import Interrupted
from wabac.lock import LOCK_NAME

from conftest import make_script

ROOT = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))


@pytest.fixture(autouse=True)
def no_signal_handlers(monkeypatch):
    monkeypatch.setattr(cli, "install_signal_handlers", lambda: None)


@pytest.fixture
def as_root(monkeypatch):
    monkeypatch.setattr(wabac_controller.os, "geteuid", lambda: 0)


def test_no_verb_prints_usage(capsys):
    assert cli.main([]) == 0
    assert "Try 'wabac help'" in capsys.readouterr().out


def test_help(capsys):
    assert cli.main(["help"]) == 0
    out = capsys.readouterr().out
    assert "remove-expired" in out
    assert "--keep-expired" in out


def test_unknown_verb():
    with pytest.raises(SystemExit) as excinfo:
        cli.main(["restore"])
    assert excinfo.value.code == 2


def test_init_needs_source_and_destination(tmp_path):
    with pytest.raises(SystemExit) as excinfo:
        cli.main(["init", "/home/", "-c", str(tmp_path / "wabac.yml")])
    assert excinfo.value.code == 2


def test_paths_only_for_init(tmp_path):
    with pytest.raises(SystemExit) as excinfo:
        cli.main(["info", "/home/", "-c", str(tmp_path / "wabac.yml")])
    assert excinfo.value.code == 2


def test_missing_config(as_root, tmp_path, capsys):
    assert cli.main(["info", "-c", str(tmp_path / "wabac.yml")]) == 3
    assert "wabac: error:" in capsys.readouterr().err


def test_not_root(monkeypatch, tmp_path, capsys):
    monkeypatch.setattr(wabac_controller.os, "geteuid", lambda: 1000)
    assert cli.main(["info", "-c", str(tmp_path / "wabac.yml")]) == 4
    assert "must be run as root" in capsys.readouterr().err


def test_init_then_info(as_root, tmp_path, monkeypatch, capsys):
    monkeypatch.setattr(cli.wabac_config, "program_dir",
        lambda: str(tmp_path))
    config_path = str(tmp_path / "wabac.yml")
    source = tmp_path / "source"
    source.mkdir()
    destination = str(tmp_path / "backups")

    assert cli.main(["init", str(source), destination, "-c",
        config_path]) == 0
    assert cli.main(["info", "-c", config_path]) == 0
    assert "0 backups available." in capsys.readouterr().out


def test_interrupt_redelivers_signal(monkeypatch, tmp_path):
    redelivered = []

    def interrupted_run(args, parser):
        raise Interrupted(15, "SIGTERM")

    monkeypatch.setattr(cli, "run", interrupted_run)
    monkeypatch.setattr(cli, "redeliver", redelivered.append)

    assert cli.main(["backup", "-c", str(tmp_path / "wabac.yml")]) == 143
    assert redelivered == [15]


CHILD = """\
import os
import sys

os.geteuid = lambda: 0

from wabac import cli

sys.exit(cli.main(sys.argv[1:]))
"""


def test_signal_kills_the_process_after_cleanup(tmp_path, destination,
        source):
    ''' rsync's parent gets SIGTERM: the lock is released, postflight runs
        and the process dies by SIGTERM itself.
    '''
    rsync = make_script(tmp_path, "rsync", "kill -TERM $PPID\nexec sleep 5")
    postflight_ran = tmp_path / "postflight-ran"
    postflight = make_script(tmp_path, "postflight.sh",
        "touch " + str(postflight_ran))
    config_path = str(tmp_path / "wabac.yml")
    with open(config_path, "w") as f:
        f.write(yaml.safe_dump({"source": source,
            "destination": destination, "rsync_path": rsync,
            "postflight": postflight}))
    env = dict(os.environ)
    env["PYTHONPATH"] = os.pathsep.join([ROOT] +
        [p for p in [env.get("PYTHONPATH")] if p])

    # under "python -c" the program directory, so the lock, is the cwd
    child = subprocess.run([sys.executable, "-c", CHILD, "backup", "-c",
        config_path], cwd=str(tmp_path), env=env, stdout=subprocess.PIPE,
        stderr=subprocess.PIPE, timeout=60)

    assert child.returncode == -signal.SIGTERM
    assert b"Received SIGTERM. Backup interrupted !" in child.stderr
    assert not os.path.exists(str(tmp_path / LOCK_NAME))
    assert postflight_ran.exists()
