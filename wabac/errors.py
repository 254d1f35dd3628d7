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
Errors raised by the WABAC Machine.

Each error carries the process exit code the command line tool uses
when the error ends a run. Plain filesystem failures are not wrapped,
they surface as the builtin OSError and end the run with exit code 1.
"""


class WabacError(Exception):
    exit_code = 1


class ConfigError(WabacError):
    """ Missing or invalid settings, missing exclude file, uninitialized
        destination.
    """
    exit_code = 3


class PrivilegeError(WabacError, PermissionError):
    exit_code = 4


class AlreadyRunningError(WabacError):
    exit_code = 5

    def __init__(self, lock_dir, pid=None):
        self.lock_dir = lock_dir
        self.pid = pid
        super().__init__("could not acquire lock " + str(lock_dir) +
            " (probably held by " + (str(pid) if pid else "unknown") + ")")


class ToolNotFoundError(WabacError):
    exit_code = 6


class TransferError(WabacError):
    exit_code = 7

    def __init__(self, message, returncode=None, output=""):
        self.returncode = returncode
        self.output = output
        super().__init__(message)


class SpaceExhaustedError(TransferError):
    exit_code = 8


class LastSnapshotError(WabacError):
    exit_code = 9


class PreflightError(WabacError):
    exit_code = 10


class Interrupted(WabacError):
    """ Raised from the signal handler so that cleanup code runs while the
        stack unwinds. The command line tool re-delivers the signal.
    """

    def __init__(self, signum, signame):
        self.signum = signum
        self.signame = signame
        self.exit_code = 128 + signum
        super().__init__("Received " + signame + ". Backup interrupted !")
