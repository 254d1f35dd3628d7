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
Command line interface.

```
wabac init /home/ /mnt/backups -c /etc/wabac/wabac.yml
wabac backup -c /etc/wabac/wabac.yml
```

Schedule "wabac backup" with cron as often as you like, the retention
policy takes care of thinning out old backups.
"""

import argparse
import sys

from wabac import __version__
from wabac import config as wabac_config
from wabac import output
from wabac.controller import Controller, install_signal_handlers, \
    redeliver
from wabac.errors import Interrupted, WabacError

DESCRIPTION = """\
The WABAC Machine is a wrapper for rsync that creates incremental,
hard linked backups and thins them out over time: everything from the
last hours, then one backup per day, per week, per month and per year.
"""

VERBS = """\
verbs:
  backup              create a new backup of source in destination
  help                show help (this output)
  info                output some information about destination and exit
  init SOURCE DEST    initialize a new WABAC Machine with the given source,
                      destination and a default configuration
  remove-expired      only remove expired backups and exit
"""


def create_parser():
    parser = argparse.ArgumentParser(prog="wabac",
        description=DESCRIPTION, epilog=VERBS,
        formatter_class=argparse.RawDescriptionHelpFormatter)
    parser.add_argument("verb", nargs="?",
        choices=["backup", "help", "info", "init", "remove-expired"],
        help="what to do, see below")
    parser.add_argument("paths", nargs="*", metavar="PATH",
        help="source and destination (init only)")
    parser.add_argument("-c", "--config",
        default=wabac_config.default_config_path(),
        help=("The config file to use. With 'init', the newly created " +
            "config is written there instead"),
        dest="config")
    parser.add_argument("-k", "--keep-expired",
        help="Do not remove expired backups (use with 'backup' only)",
        dest="keep_expired", default=False, action="store_true")
    parser.add_argument("-n", "--dry-run",
        help="Pass --dry-run to rsync and don't delete anything",
        dest="dry_run", default=False, action="store_true")
    parser.add_argument("-v", "--verbose",
        help="Print debug output", dest="verbose",
        default=False, action="store_true")
    parser.add_argument("-V", "--version", action="version",
        version="wabac " + __version__)
    return parser


def run(args, parser):
    # the lock lives beside the running program, like the default config
    controller = Controller(args.config, wabac_config.program_dir(),
        dry_run=args.dry_run)
    if args.verb == "init":
        if len(args.paths) != 2:
            parser.error("usage: wabac init <source> <destination> " +
                "[-c | --config <filename>]")
        return controller.init(args.paths[0], args.paths[1])
    if args.paths:
        parser.error("unexpected arguments: " + " ".join(args.paths))
    return controller.run(args.verb, keep_expired=args.keep_expired)


def main(argv=None):
    parser = create_parser()
    args = parser.parse_args(argv)
    output.set_verbose(args.verbose)

    if args.verb is None:
        parser.print_usage()
        print("Try 'wabac help' for more information.")
        return 0
    if args.verb == "help":
        parser.print_help()
        return 0

    install_signal_handlers()
    try:
        return run(args, parser)
    except Interrupted as e:
        redeliver(e.signum)
        return e.exit_code
    except WabacError as e:
        output.error(str(e))
        return e.exit_code
    except OSError as e:
        output.error(str(e))
        return 1


if __name__ == "__main__":
    sys.exit(main())
