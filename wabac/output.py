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
Prefixed status lines. Info goes to stdout, warnings and errors go to
stderr so cron mails only what matters.
"""

import sys

PREFIX = "wabac"

_verbose = False


def set_verbose(value):
    global _verbose
    _verbose = bool(value)


def _say(level, text, stream):
    try:
        print(PREFIX + ": " + level + ": " + str(text), file=stream,
            flush=True)
    except BrokenPipeError:
        pass


def debug(text):
    if _verbose:
        _say("debug", text, sys.stdout)


def info(text):
    _say("info", text, sys.stdout)


def warning(text):
    _say("warning", text, sys.stderr)


def error(text):
    _say("error", text, sys.stderr)


def details(text):
    """ Raw tool output, unprefixed, on stderr. """
    text = (text or "").rstrip("\n")
    if not text:
        return
    try:
        print(text, file=sys.stderr, flush=True)
    except BrokenPipeError:
        pass
