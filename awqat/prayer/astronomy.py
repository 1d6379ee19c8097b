"""
Simplified solar-position model used by the prayer time engine.

Every function here is pure. Event functions return hours from local midnight
for the given day; values below 0 or above 24 are legitimate and mean the event
falls on the neighbouring calendar day. ``None`` means the sun never reaches the
requested angle on that day (high latitudes around the solstices).
"""
import math
from dataclasses import dataclass
from typing import Optional

J2000 = 2451545.0

# Apparent sunrise/sunset: refraction plus the solar semi-diameter, in degrees.
SUNRISE_ANGLE = 0.833

SHAFI_SHADOW_FACTOR = 1
HANAFI_SHADOW_FACTOR = 2


def _sin(d: float) -> float:
    return math.sin(math.radians(d))


def _cos(d: float) -> float:
    return math.cos(math.radians(d))


def _tan(d: float) -> float:
    return math.tan(math.radians(d))


def _fix(a: float, mode: float) -> float:
    return a - mode * math.floor(a / mode)


@dataclass(frozen=True)
class SolarPosition:
    """Sun declination in degrees and equation of time in hours for one Julian date."""
    declination: float
    equation_of_time: float


def julian_date(year: int, month: int, day: int) -> float:
    """Julian date at 0h UT of the given Gregorian calendar day."""
    if month <= 2:
        year -= 1
        month += 12
    a = math.floor(year / 100.0)
    b = 2 - a + math.floor(a / 4.0)
    return math.floor(365.25 * (year + 4716)) + math.floor(30.6001 * (month + 1)) + day + b - 1524.5


def sun_position(jd: float) -> SolarPosition:
    """Compute declination and equation of time from a Julian date."""
    d = jd - J2000
    g = _fix(357.529 + 0.98560028 * d, 360.0)
    q = _fix(280.459 + 0.98564736 * d, 360.0)
    l = _fix(q + 1.915 * _sin(g) + 0.020 * _sin(2 * g), 360.0)
    e = 23.439 - 0.00000036 * d

    # atan2 keeps the right ascension in the same quadrant as the ecliptic longitude
    ra = math.degrees(math.atan2(_cos(e) * _sin(l), _cos(l)))
    decl = math.degrees(math.asin(_sin(e) * _sin(l)))

    # q and ra are both angles mod 360, so their difference is only meaningful
    # modulo a full day; keep it within half a day of zero.
    eqt = _fix(q / 15.0 - ra / 15.0 + 12.0, 24.0) - 12.0
    return SolarPosition(declination=decl, equation_of_time=eqt)


def solar_noon(jd: float, longitude: float, tz: float) -> float:
    """Meridian transit in local hours: ``12 + tz - longitude/15 - eqt``."""
    return 12 + tz - longitude / 15.0 - sun_position(jd).equation_of_time


def hour_angle(angle: float, latitude: float, declination: float) -> Optional[float]:
    """Hours between solar noon and the moment the sun sits ``angle`` degrees below the horizon.

    A negative ``angle`` means above the horizon. Returns None when the arccosine
    argument leaves [-1, 1], i.e. the sun does not reach that angle today.
    """
    denominator = _cos(latitude) * _cos(declination)
    if denominator == 0:
        return None
    arg = (-_sin(angle) - _sin(latitude) * _sin(declination)) / denominator
    if arg < -1.0 or arg > 1.0 or math.isnan(arg):
        return None
    return math.degrees(math.acos(arg)) / 15.0


def event_time(
    jd: float,
    latitude: float,
    longitude: float,
    angle: float,
    tz: float,
    before_noon: bool,
) -> Optional[float]:
    """Time of the sun crossing ``angle`` degrees of depression, before or after solar noon."""
    position = sun_position(jd)
    ha = hour_angle(angle, latitude, position.declination)
    if ha is None:
        return None
    noon = 12 + tz - longitude / 15.0 - position.equation_of_time
    return noon - ha if before_noon else noon + ha


def sunrise_time(jd: float, latitude: float, longitude: float, tz: float) -> Optional[float]:
    return event_time(jd, latitude, longitude, SUNRISE_ANGLE, tz, before_noon=True)


def sunset_time(jd: float, latitude: float, longitude: float, tz: float) -> Optional[float]:
    return event_time(jd, latitude, longitude, SUNRISE_ANGLE, tz, before_noon=False)


def asr_elevation(shadow_factor: int, latitude: float, declination: float) -> float:
    """Sun elevation (degrees) at which an object's shadow is ``shadow_factor`` times its length plus its noon shadow."""
    return math.degrees(math.atan(1.0 / (shadow_factor + _tan(abs(latitude - declination)))))


def asr_time(
    jd: float,
    latitude: float,
    longitude: float,
    tz: float,
    shadow_factor: int = SHAFI_SHADOW_FACTOR,
) -> Optional[float]:
    """Afternoon time at which the shadow-length rule for Asr is met."""
    position = sun_position(jd)
    elevation = asr_elevation(shadow_factor, latitude, position.declination)
    ha = hour_angle(-elevation, latitude, position.declination)
    if ha is None:
        return None
    noon = 12 + tz - longitude / 15.0 - position.equation_of_time
    return noon + ha
