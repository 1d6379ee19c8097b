from datetime import date, timedelta

import pytest

from awqat.prayer import astronomy


def test_julian_date_of_j2000_epoch() -> None:
    assert astronomy.julian_date(2000, 1, 1) == pytest.approx(2451544.5)
    assert astronomy.julian_date(2000, 1, 2) - astronomy.julian_date(2000, 1, 1) == pytest.approx(1.0)


def test_equation_of_time_stays_within_minutes_all_year() -> None:
    day = date(2024, 1, 1)
    while day.year == 2024:
        position = astronomy.sun_position(astronomy.julian_date(day.year, day.month, day.day))
        assert abs(position.equation_of_time) < 0.3, day
        day += timedelta(days=1)


def test_declination_at_solstices() -> None:
    june = astronomy.sun_position(astronomy.julian_date(2024, 6, 21))
    december = astronomy.sun_position(astronomy.julian_date(2024, 12, 21))
    assert june.declination == pytest.approx(23.44, abs=0.1)
    assert december.declination == pytest.approx(-23.44, abs=0.1)


def test_solar_noon_at_greenwich_is_near_midday() -> None:
    noon = astronomy.solar_noon(astronomy.julian_date(2024, 3, 20), 0.0, 0.0)
    assert 11.8 < noon < 12.3


def test_hour_angle_is_none_when_sun_never_reaches_angle() -> None:
    assert astronomy.hour_angle(18.0, 80.0, 23.44) is None
    assert astronomy.hour_angle(0.833, 80.0, -23.44) is None
    assert astronomy.hour_angle(18.0, 90.0, 10.0) is None


def test_hour_angle_is_symmetric_about_noon() -> None:
    jd = astronomy.julian_date(2024, 9, 1)
    sunrise = astronomy.sunrise_time(jd, 40.0, 0.0, 0.0)
    sunset = astronomy.sunset_time(jd, 40.0, 0.0, 0.0)
    noon = astronomy.solar_noon(jd, 0.0, 0.0)
    assert noon - sunrise == pytest.approx(sunset - noon)


def test_hanafi_asr_elevation_is_lower_than_shafi() -> None:
    shafi = astronomy.asr_elevation(astronomy.SHAFI_SHADOW_FACTOR, 21.4, 23.4)
    hanafi = astronomy.asr_elevation(astronomy.HANAFI_SHADOW_FACTOR, 21.4, 23.4)
    assert 0 < hanafi < shafi < 90


def test_asr_falls_between_noon_and_sunset() -> None:
    jd = astronomy.julian_date(2024, 6, 21)
    noon = astronomy.solar_noon(jd, 39.8262, 3.0)
    asr = astronomy.asr_time(jd, 21.4225, 39.8262, 3.0)
    sunset = astronomy.sunset_time(jd, 21.4225, 39.8262, 3.0)
    assert noon < asr < sunset
