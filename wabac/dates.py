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
Calendar arithmetic for the retention buckets. Everything works on
datetime.date values in local time. Weeks start on Sunday.
"""

import datetime

from dateutil.relativedelta import relativedelta


def start_of_week(date):
    # date.weekday() is 0 for Monday, 6 for Sunday
    return date - datetime.timedelta(days=(date.weekday() + 1) % 7)


def start_of_month(date):
    return date.replace(day=1)


def start_of_year(date):
    return date.replace(month=1, day=1)


def add_days(date, n):
    return date + datetime.timedelta(days=n)


def add_weeks(date, n):
    return date + datetime.timedelta(weeks=n)


def add_months(date, n):
    """ Clamps to the end of shorter months, Jan 31 + 1 month is the last
        day of February.
    """
    return date + relativedelta(months=n)


def add_years(date, n):
    return date + relativedelta(years=n)


def midnight(date):
    return datetime.datetime.combine(date, datetime.time())
