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
One run of the WABAC Machine, from the root check to the postflight
script:

  1. check that we are root,
  2. load the config and check the exclude file,
  3. run the preflight script (a nonzero exit code stops here),
  4. check source and destination,
  5. take the lock,
  6. backup, remove expired backups, or just report,
  7. release the lock,
  8. run the postflight script.

Once the lock is taken, the lock is released and the postflight script
runs no matter how the action ended.
"""

import atexit
import os
import signal
import subprocess

from wabac import config as wabac_config
from wabac import output
from wabac import prune
from wabac import snapshots as store
from wabac import transfer
from wabac.errors import ConfigError, Interrupted, PreflightError, \
    PrivilegeError
from wabac.lock import Lock

ACTIONS = ("backup", "info", "remove-expired")

INTERRUPT_SIGNALS = ("SIGHUP", "SIGINT", "SIGTERM", "SIGQUIT")


def check_privileges():
    if os.geteuid() != 0:
        raise PrivilegeError("must be run as root. Aborting.")


def _interrupted(signum, frame):
    signame = signal.Signals(signum).name
    output.error("Received " + signame + ". Backup interrupted !")
    raise Interrupted(signum, signame)


def install_signal_handlers():
    for name in INTERRUPT_SIGNALS:
        signum = getattr(signal, name, None)
        if signum is not None:
            signal.signal(signum, _interrupted)


def redeliver(signum):
    """ Dies from the given signal, so whoever watches our exit status
        sees what actually happened.
    """
    signal.signal(signum, signal.SIG_DFL)
    os.kill(os.getpid(), signum)


def run_script(path, stage, env=None):
    """ Runs a preflight or postflight script and returns its exit code,
        or None if there is no script.
    """
    if not path:
        return None
    if not os.path.isfile(path) or not os.access(path, os.X_OK):
        raise ConfigError("the " + stage + " script (" + path + ") does " +
            "not exist or cannot be executed. Please fix your config file.")
    output.info("running " + stage + " script: " + path)
    script_env = dict(os.environ)
    script_env.update(env or {})
    return subprocess.run([path], env=script_env).returncode


class Controller:
    def __init__(self, config_path, lock_dir, dry_run=False, runner=None,
            now=None):
        self.config_path = config_path
        self.lock_dir = lock_dir
        self.dry_run = dry_run
        self.runner = runner
        self.now = now
        self.config = None

    def _script_env(self, action):
        return {
            "WABAC_ACTION": action,
            "WABAC_CONFIG": str(self.config_path),
            "WABAC_SOURCE": self.config.source or "",
            "WABAC_DESTINATION": self.config.destination or "",
            "WABAC_DRY_RUN": "1" if self.config.dry_run else "",
        }

    def _postflight(self, action):
        try:
            exit_code = run_script(self.config.postflight, "postflight",
                self._script_env(action))
        except ConfigError as e:
            output.warning(str(e))
            return
        except OSError as e:
            output.warning("postflight script failed to run: " + str(e))
            return
        if exit_code:
            output.warning("postflight script returned non-zero exit " +
                "code: " + str(exit_code))

    def run(self, action, keep_expired=False):
        if action not in ACTIONS:
            raise ValueError("unknown action: " + str(action))
        check_privileges()
        self.config = wabac_config.load_config(self.config_path,
            dry_run=self.dry_run)
        config = self.config
        wabac_config.check_exclude_file(config)

        exit_code = run_script(config.preflight, "preflight",
            self._script_env(action))
        if exit_code:
            raise PreflightError("preflight script returned non-zero " +
                "exit code: " + str(exit_code))

        output.info("Starting the WABAC Machine" +
            (" in DRY RUN MODE" if config.dry_run else "") + " with:")
        output.info("  Action: " + action)
        output.info("  Config: " + str(self.config_path))
        output.info("  Source: " + str(config.source))
        output.info("  Destination: " + str(config.destination))

        store.check_source(config.source)
        store.check_destination(config.destination)

        lock = Lock(self.lock_dir)
        locked = False
        try:
            try:
                lock.acquire()
                locked = True
                atexit.register(lock.release)
                self._dispatch(action, keep_expired)
            finally:
                # no-op unless we hold it, a foreign lock is never removed
                lock.release()
                atexit.unregister(lock.release)
        finally:
            if locked:
                self._postflight(action)
        return 0

    def _dispatch(self, action, keep_expired):
        config = self.config
        if action == "backup":
            transfer.backup(config, runner=self.runner, now=self.now)
        if (action == "backup" and not keep_expired) or \
                action == "remove-expired":
            prune.remove_expired(config.destination, config.retention,
                dry_run=config.dry_run, now=self.now)
        self.report(config.destination)

    def report(self, destination):
        info = store.describe(destination)
        output.info(str(info["count"]) + " backups available.")
        output.info("Oldest is " + (info["oldest"] or "none") + ".")
        output.info("Latest is " + (info["latest"] or "none") + ".")
        output.info(store.human_size(info["space_left"]) + " left on " +
            destination + ".")
        return info

    def init(self, source, destination):
        """ Writes a default config for source and destination and marks
            destination as a backup destination.
        """
        check_privileges()
        wabac_config.write_default_config(self.config_path, source,
            destination)
        store.mark_destination(destination)
        output.info("The WABAC Machine has been successfully initialized.")
        output.info("Run 'wabac backup -c " + str(self.config_path) +
            "' as root to create a new backup.")
        output.info("Run 'wabac help' to get some help.")
        return 0

