import datetime

from shiftpay.core.config import DEFAULT_JURISDICTION
from shiftpay.core.models import PublicHoliday


def easter_sunday(year: int) -> datetime.date:
    """Anonymous Gregorian algorithm."""
    a = year % 19
    b = year // 100
    c = year % 100
    d = b // 4
    e = b % 4
    f = (b + 8) // 25
    g = (b - f + 1) // 3
    h = (19 * a + b - d - g + 15) % 30
    i = c // 4
    k = c % 4
    l = (32 + 2 * e + 2 * i - h - k) % 7
    m = (a + 11 * h + 22 * l) // 451
    month = (h + l - 7 * m + 114) // 31
    day = ((h + l - 7 * m + 114) % 31) + 1
    return datetime.date(year, month, day)


def good_friday(year: int) -> datetime.date:
    """Friday before Easter Sunday."""
    return easter_sunday(year) - datetime.timedelta(days=2)


def easter_saturday(year: int) -> datetime.date:
    return easter_sunday(year) - datetime.timedelta(days=1)


def easter_monday(year: int) -> datetime.date:
    return easter_sunday(year) + datetime.timedelta(days=1)


def nth_weekday(year: int, month: int, weekday: int, n: int) -> datetime.date:
    """n:th given weekday (0 = Monday) of a month."""
    d = datetime.date(year, month, 1)
    while d.weekday() != weekday:
        d += datetime.timedelta(days=1)
    return d + datetime.timedelta(weeks=n - 1)


def kings_birthday(year: int) -> datetime.date:
    """Second Monday in June."""
    return nth_weekday(year, 6, 0, 2)


def first_weekday_after(date_: datetime.date, taken: set[datetime.date] | None = None) -> datetime.date:
    """First Monday–Friday after given date that is not already taken."""
    taken = taken or set()
    d = date_ + datetime.timedelta(days=1)
    while d.weekday() >= 5 or d in taken:  # 5–6 = Saturday/Sunday
        d += datetime.timedelta(days=1)
    return d


def national_public_holidays(year: int, jurisdiction: str = DEFAULT_JURISDICTION) -> list[PublicHoliday]:
    """
    National public holidays of a year, sorted by date.

    New Year's Day, Australia Day, Christmas Day and Boxing Day that fall on
    a weekend get an extra substitute weekday; the weekend day itself stays
    a holiday. Christmas and Boxing Day substitutes never land on the same
    day.
    """
    fixed = [
        (datetime.date(year, 1, 1), "New Year's Day"),
        (datetime.date(year, 1, 26), "Australia Day"),
        (good_friday(year), "Good Friday"),
        (easter_saturday(year), "Easter Saturday"),
        (easter_monday(year), "Easter Monday"),
        (datetime.date(year, 4, 25), "Anzac Day"),
        (kings_birthday(year), "King's Birthday"),
        (datetime.date(year, 12, 25), "Christmas Day"),
        (datetime.date(year, 12, 26), "Boxing Day"),
    ]
    substituted = {"New Year's Day", "Australia Day", "Christmas Day", "Boxing Day"}

    holidays = {day: name for day, name in fixed}
    for day, name in fixed:
        if name in substituted and day.weekday() >= 5:
            sub = first_weekday_after(day, taken=set(holidays))
            holidays[sub] = f"{name} (substitute)"

    return [
        PublicHoliday(date=day, name=name, jurisdiction=jurisdiction)
        for day, name in sorted(holidays.items())
    ]

