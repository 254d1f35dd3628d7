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
Single instance lock. mkdir is atomic, so whoever creates the lock
directory owns it. The pid file inside is informational only: a stale
lock has to be removed by hand.
"""

import os
import shutil

from wabac import output
from wabac.errors import AlreadyRunningError

LOCK_NAME = "wabac.running"
PID_NAME = "pid"


def read_pid(lock_dir):
    try:
        with open(os.path.join(lock_dir, PID_NAME), "r") as f:
            return f.read().strip() or None
    except OSError:
        return None


class Lock:
    def __init__(self, directory):
        self.path = os.path.join(directory, LOCK_NAME)
        self.held = False

    def acquire(self):
        try:
            os.mkdir(self.path)
        except FileExistsError:
            raise AlreadyRunningError(self.path, read_pid(self.path))
        self.held = True
        try:
            with open(os.path.join(self.path, PID_NAME), "w") as f:
                f.write(str(os.getpid()) + "\n")
        except BaseException:
            self.release()
            raise
        output.debug("lock acquired: " + self.path)
        return self

    def release(self):
        if not self.held:
            return
        self.held = False
        shutil.rmtree(self.path, ignore_errors=True)
        output.debug("lock released: " + self.path)

    def __enter__(self):
        return self.acquire()

    def __exit__(self, exc_type, exc_value, tb):
        self.release()
