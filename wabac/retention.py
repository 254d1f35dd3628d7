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
Which snapshots to keep.

Five passes each pick snapshots, and the union of their picks is the keep
set:

  - everything from the last <hours> hours (relative to now),
  - one per day for the last <days> days,
  - one per week (weeks start on Sunday) for the last <weeks> weeks,
  - one per month for the last <months> months,
  - one per year, for every year from the oldest snapshot through the
    year after now.

Days, weeks and months are counted back from the latest snapshot, not
from now, so a destination that has not been written to for a while does
not lose its history. A bucket is the half-open interval [lower, upper)
and the newest snapshot inside it is the one that is kept.
"""

import datetime

from wabac import dates


def keep_between(snapshots, lower, upper):
    """ The newest snapshot with lower <= time < upper, or None. """
    best = None
    for snapshot in snapshots:
        if not (lower <= snapshot.time < upper):
            continue
        if best is None or (snapshot.time, snapshot.name) > \
                (best.time, best.name):
            best = snapshot
    return best


def _newest(snapshots):
    return max(snapshots, key=lambda s: (s.name, s.time))


def _oldest(snapshots):
    return min(snapshots, key=lambda s: (s.name, s.time))


def keep_all_recent(snapshots, hours, now):
    limit = now - datetime.timedelta(hours=hours)
    return set(s.name for s in snapshots if s.time > limit)


def _keep_per_bucket(snapshots, first_lower, step, limit):
    keep = set()
    lower = first_lower
    for _ in range(limit):
        upper = step(lower, 1)
        kept = keep_between(snapshots, dates.midnight(lower),
            dates.midnight(upper))
        if kept is not None:
            keep.add(kept.name)
        lower = step(lower, -1)
    return keep


def keep_one_per_day(snapshots, days):
    if not snapshots or days <= 0:
        return set()
    anchor = _newest(snapshots).time.date()
    return _keep_per_bucket(snapshots, anchor, dates.add_days, days)


def keep_one_per_week(snapshots, weeks):
    if not snapshots or weeks <= 0:
        return set()
    anchor = dates.start_of_week(_newest(snapshots).time.date())
    return _keep_per_bucket(snapshots, anchor, dates.add_weeks, weeks)


def keep_one_per_month(snapshots, months):
    if not snapshots or months <= 0:
        return set()
    anchor = dates.start_of_month(_newest(snapshots).time.date())
    return _keep_per_bucket(snapshots, anchor, dates.add_months, months)


def keep_one_per_year(snapshots, now):
    if not snapshots:
        return set()
    keep = set()
    lower = dates.start_of_year(_oldest(snapshots).time.date())
    # up to and including the year after now
    end = dates.add_years(dates.start_of_year(now.date()), 2)
    while lower < end:
        upper = dates.add_years(lower, 1)
        kept = keep_between(snapshots, dates.midnight(lower),
            dates.midnight(upper))
        if kept is not None:
            keep.add(kept.name)
        lower = upper
    return keep


def select_keep_set(snapshots, policy, now=None):
    """ Returns the names of the snapshots to keep. Running it twice on the
        same snapshots gives the same set.
    """
    if now is None:
        now = datetime.datetime.now()
    keep = set()
    keep |= keep_all_recent(snapshots, policy.hours, now)
    keep |= keep_one_per_day(snapshots, policy.days)
    keep |= keep_one_per_week(snapshots, policy.weeks)
    keep |= keep_one_per_month(snapshots, policy.months)
    keep |= keep_one_per_year(snapshots, now)
    return keep
