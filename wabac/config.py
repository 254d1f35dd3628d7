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
Configuration of the WABAC Machine.

The config file is YAML:

```
source: /home/
destination: /mnt/backups
rsync_options:
  - --delete-excluded
retention:
  hours: 1
  days: 31
  weeks: 52
  months: 24
exclude_file: /etc/wabac/exclude.txt
preflight: /etc/wabac/mount.sh
postflight: /etc/wabac/umount.sh
rsync_path:
```

Everything except source and destination is optional. Yearly backups are
always kept, there is no setting for them.
"""

import collections
import json
import os
import sys
import textwrap

import yaml

from wabac.errors import ConfigError

CONFIG_NAME = "wabac.yml"

DEFAULT_RETENTION = collections.OrderedDict([
    ("hours", 1),
    ("days", 31),
    ("weeks", 52),
    ("months", 24),
])

Config = collections.namedtuple("Config", [
    "source", "destination", "rsync_options", "retention",
    "exclude_file", "preflight", "postflight", "rsync_path", "dry_run",
    "path",
])

RetentionPolicy = collections.namedtuple("RetentionPolicy",
    list(DEFAULT_RETENTION.keys()))


def program_dir():
    return os.path.abspath(os.path.dirname(sys.argv[0]))


def default_config_path():
    """ The default config file sits beside the running program. """
    return os.path.join(program_dir(), CONFIG_NAME)


def _optional_path(config_data, key):
    value = config_data.get(key)
    if value is None:
        return None
    if not isinstance(value, str):
        raise ConfigError("'" + key + "' must be a path, got: " +
            repr(value))
    value = value.strip()
    return value or None


def _retention(config_data):
    given = config_data.get("retention") or {}
    if not isinstance(given, dict):
        raise ConfigError("'retention' must be a mapping of " +
            ", ".join(DEFAULT_RETENTION.keys()))
    for key in given:
        if key not in DEFAULT_RETENTION:
            raise ConfigError("unknown retention setting: " + str(key))
    values = []
    for key, default in DEFAULT_RETENTION.items():
        value = given.get(key, default)
        if value is None:
            value = default
        try:
            value = int(value)
        except (TypeError, ValueError):
            raise ConfigError("retention setting '" + key +
                "' must be a number, got: " + repr(value))
        if value < 0:
            raise ConfigError("retention setting '" + key +
                "' must not be negative")
        values.append(value)
    return RetentionPolicy(*values)


def _rsync_options(config_data):
    options = config_data.get("rsync_options") or []
    if isinstance(options, str):
        options = options.split()
    if not isinstance(options, list):
        raise ConfigError("'rsync_options' must be a list or " +
            "a single entry")
    return tuple(str(o) for o in options)


def parse_config(config_data, path=None, dry_run=False):
    """ Turn the loaded YAML mapping into a Config. """
    if config_data is None:
        config_data = {}
    if not isinstance(config_data, dict):
        raise ConfigError("config file must contain a mapping: " +
            str(path))
    rsync_options = _rsync_options(config_data)
    return Config(
        source=_optional_path(config_data, "source"),
        destination=_optional_path(config_data, "destination"),
        rsync_options=rsync_options,
        retention=_retention(config_data),
        exclude_file=_optional_path(config_data, "exclude_file"),
        preflight=_optional_path(config_data, "preflight"),
        postflight=_optional_path(config_data, "postflight"),
        rsync_path=_optional_path(config_data, "rsync_path"),
        dry_run=bool(dry_run or "--dry-run" in rsync_options or
            "-n" in rsync_options),
        path=path,
    )


def load_config(path, dry_run=False):
    if not os.path.exists(path):
        raise ConfigError("config file (" + str(path) +
            ") could not be read. Does it exist ?")
    try:
        with open(path, "r") as f:
            config_data = yaml.safe_load(f.read())
    except yaml.YAMLError as e:
        raise ConfigError("invalid config file " + str(path) + ": " +
            str(e))
    except OSError as e:
        raise ConfigError("config file (" + str(path) +
            ") could not be read: " + str(e))
    return parse_config(config_data, path=path, dry_run=dry_run)


def check_exclude_file(config):
    """ Returns the exclude file, or None if none is configured. A
        configured file that does not exist is an error.
    """
    if config.exclude_file is None:
        return None
    if not os.path.isfile(config.exclude_file):
        raise ConfigError("the given exclude file does not exist (" +
            config.exclude_file + "). Please fix your config file.")
    return config.exclude_file


def render_default_config(source, destination):
    config_str = textwrap.dedent("""\
    # The WABAC Machine configuration.

    # Source can be either:
    #   - a local directory (ABSOLUTE PATH),
    #   - a directory on a remote host, accessible through SSH,
    #   - an rsync module.
    source: ${SOURCE}

    # Destination MUST be a local directory (ABSOLUTE PATH).
    destination: ${DESTINATION}

    # Extra rsync options, appended to the built-in ones
    # (--stats --archive --hard-links --acls --xattrs --sparse
    # --one-file-system --partial-dir=.incomplete --protect-args
    # --numeric-ids --human-readable).
    # Add --dry-run here to see what would happen without changing anything.
    #
    # On OS X with a patched rsync you might want:
    #   --crtimes, --fileflags, --force-change, --hfs-compression,
    #   --protect-decmpfs
    rsync_options: []

    retention:
      # Keeps EVERYTHING for the last <hours> hours:
      hours: ${HOURS}
      # Keeps ONE backup PER DAY for the last <days> days:
      days: ${DAYS}
      # Keeps ONE backup PER WEEK for the last <weeks> weeks:
      weeks: ${WEEKS}
      # Keeps ONE backup PER MONTH for the last <months> months:
      months: ${MONTHS}
      # ONE backup PER YEAR is always kept.

    # Exclude file (ABSOLUTE PATH), passed to rsync as --exclude-from:
    exclude_file:

    # ABSOLUTE PATH to a script run BEFORE the backup (e.g. mounting a
    # remote share). The WABAC Machine will ONLY run if it returns zero.
    preflight:

    # ABSOLUTE PATH to a script run AFTER the backup (e.g. unmounting).
    # It always runs, its exit code is only reported.
    postflight:

    # ABSOLUTE PATH to the rsync executable. If left empty, /usr/bin/rsync
    # and /usr/local/bin/rsync are tried, in that order.
    rsync_path:
    """)
    config_str = config_str.replace("${SOURCE}",
        json.dumps(source))
    config_str = config_str.replace("${DESTINATION}",
        json.dumps(destination))
    for key, value in DEFAULT_RETENTION.items():
        config_str = config_str.replace("${" + key.upper() + "}",
            str(value))
    return config_str


def write_default_config(path, source, destination):
    """ Writes a new config file. Never overwrites an existing one. """
    if os.path.exists(path):
        raise ConfigError("the provided configuration file (" + str(path) +
            ") already exists. I am NOT going to overwrite it. Please " +
            "chose another file or remove this one.")
    config_str = render_default_config(source, destination)
    try:
        fd = os.open(path, os.O_WRONLY | os.O_CREAT | os.O_EXCL, 0o600)
    except FileExistsError:
        raise ConfigError("the provided configuration file (" + str(path) +
            ") already exists. I am NOT going to overwrite it.")
    with os.fdopen(fd, "w") as f:
        f.write(config_str)
    os.chmod(path, 0o600)
    return path
