"""Fixed-pattern validation of the free-text birth submission."""

import re
from datetime import date

from exceptions import InvalidInputFormat
from models import BirthInput

DATE_PATTERN = re.compile(r'^\d{1,2}\.\d{1,2}\.\d{4}$')
TIME_PATTERN = re.compile(r'^\d{1,2}:\d{1,2}(:\d{1,2})?$')

INVALID_DATE_FORMAT = 'Invalid date format. Please use DD.MM.YYYY format (e.g., 08.10.1995).'
INVALID_DATE_VALUE = 'Invalid date value. Please check the day and month (e.g., 08.10.1995).'
INVALID_TIME_FORMAT = 'Invalid time format. Please use HH:MM or HH:MM:SS format (e.g., 19:56).'
INVALID_TIME_VALUE = 'Invalid time value. Hours must be 0-23, minutes and seconds must be 0-59.'
MISSING_LOCATION = 'Please enter a location (city name).'


def validate_birth_input(birth_date: str, birth_time: str, location: str) -> BirthInput:
    """
    Check date, time and location strings and return the parsed birth input.

    No lenient parsing: anything off-pattern raises InvalidInputFormat with
    a message meant for the end user.
    """
    birth_date = (birth_date or '').strip()
    birth_time = (birth_time or '').strip()
    location = (location or '').strip()

    if not DATE_PATTERN.match(birth_date):
        raise InvalidInputFormat(INVALID_DATE_FORMAT)
    if not TIME_PATTERN.match(birth_time):
        raise InvalidInputFormat(INVALID_TIME_FORMAT)
    if not location:
        raise InvalidInputFormat(MISSING_LOCATION)

    day, month, year = (int(part) for part in birth_date.split('.'))
    try:
        date(year, month, day)
    except ValueError:
        raise InvalidInputFormat(INVALID_DATE_VALUE)

    time_parts = [int(part) for part in birth_time.split(':')]
    hour, minute = time_parts[0], time_parts[1]
    second = time_parts[2] if len(time_parts) == 3 else 0
    if not (0 <= hour <= 23 and 0 <= minute <= 59 and 0 <= second <= 59):
        raise InvalidInputFormat(INVALID_TIME_VALUE)

    return BirthInput(
        year=year,
        month=month,
        day=day,
        hour=hour,
        minute=minute,
        second=second,
        location=location,
    )
