import json
import math
from collections import namedtuple
from collections.abc import Mapping
from decimal import Context, Decimal, ROUND_HALF_UP

# Marker for "no speed data"; kept distinct from a numeric zero average
NOT_AVAILABLE = None

RELAY_COUNT = 4
MS_TO_KMH = 3.6

THOUSANDTH = Decimal('0.001')
# Wide enough to quantize any finite float exactly
WIDE_CONTEXT = Context(prec=400)

MS_PER_DAY = 86_400_000
# Furthest a JavaScript Date can sit from the epoch, either way
MAX_TIMESTAMP_MS = 8_640_000_000_000_000

Summary = namedtuple('Summary', ['raw_json', 'average_line'])


def _field(doc, name):
    """Read an optional field, treating anything that isn't a mapping as empty."""
    if isinstance(doc, Mapping):
        return doc.get(name)
    return None


def _is_sequence(value):
    return isinstance(value, (list, tuple))


def _coerce(value, fallback):
    """
    Numeric coercion shared by the averaging and unit conversion paths.
    Booleans count as 1/0, None and blank strings as 0, numeric strings are
    parsed. Anything else becomes `fallback`.
    """
    if value is None:
        return 0.0
    if isinstance(value, bool):
        return float(value)
    if isinstance(value, (int, float)):
        try:
            return float(value)
        except OverflowError:
            return math.inf if value > 0 else -math.inf
    if isinstance(value, str):
        text = value.strip()
        if not text:
            return 0.0
        try:
            return float(text)
        except ValueError:
            return fallback
    return fallback


def round_half_up(value):
    """
    Rounds to 3 decimals, with ties going away from zero. The tie is judged
    on the exact binary value, so 0.5625 becomes 0.563 rather than 0.562.
    NaN and infinities are returned unchanged.
    """
    if not math.isfinite(value):
        return value
    if value == 0:
        value = 0.0  # no "-0.000"
    return Decimal(value).quantize(THOUSANDTH, rounding=ROUND_HALF_UP, context=WIDE_CONTEXT)


def _format_thousandths(value):
    rounded = round_half_up(value)
    if isinstance(rounded, Decimal):
        return str(rounded)
    return f"{rounded:.3f}"


def to_number(value):
    """Coerce a value for averaging. Failed coercions (and NaN) count as 0."""
    number = _coerce(value, 0.0)
    if math.isnan(number):
        return 0.0
    return number


def to_number_or_nan(value):
    """Coerce a value for unit conversion. Failed coercions propagate as NaN."""
    return _coerce(value, math.nan)


def is_truthy(value):
    """
    Explicit truthiness used for relay flags.

    False: None, False, numeric zero, NaN and the empty string.
    True: everything else, including empty lists/dicts and strings
    such as "0" or "false".
    """
    if value is None or value is False:
        return False
    if isinstance(value, (int, float)):
        return not (value == 0 or value != value)
    if isinstance(value, str):
        return value != ''
    return True


def resolve_speeds(doc):
    """
    Returns the speed sequence of a street record.
    `speeds_m_s` takes precedence, `speeds` is the fallback alias, and an
    empty list is returned when neither holds a sequence.
    """
    for name in ('speeds_m_s', 'speeds'):
        value = _field(doc, name)
        if _is_sequence(value):
            return value
    return []


def average_speed(speeds):
    """Unrounded mean of the speeds, or NOT_AVAILABLE when there are none."""
    if not speeds:
        return NOT_AVAILABLE
    total = sum(to_number(value) for value in speeds)
    return total / len(speeds)


def normalize_relays(relays):
    """Always returns exactly RELAY_COUNT booleans, padding with False."""
    flags = [is_truthy(value) for value in relays[:RELAY_COUNT]] if _is_sequence(relays) else []
    while len(flags) < RELAY_COUNT:
        flags.append(False)
    return flags


def relays_to_status(relays):
    return ['ON' if flag else 'OFF' for flag in relays]


def count_on(statuses):
    return sum(1 for status in statuses if status == 'ON')


def speeds_to_kmh(speeds):
    """
    Converts m/s to km/h, rounded to 3 decimals.
    Unlike average_speed, non-numeric entries are not replaced by 0: they
    come out as NaN.
    """
    return [float(round_half_up(to_number_or_nan(value) * MS_TO_KMH)) for value in speeds]


def _civil_from_days(days):
    """Proleptic Gregorian (year, month, day) for a day count since 1970-01-01."""
    days += 719468
    era = days // 146097
    day_of_era = days - era * 146097
    year_of_era = (day_of_era - day_of_era // 1460 + day_of_era // 36524 - day_of_era // 146096) // 365
    day_of_year = day_of_era - (365 * year_of_era + year_of_era // 4 - year_of_era // 100)
    shifted_month = (5 * day_of_year + 2) // 153
    day = day_of_year - (153 * shifted_month + 2) // 5 + 1
    month = shifted_month + 3 if shifted_month < 10 else shifted_month - 9
    year = year_of_era + era * 400 + (1 if month <= 2 else 0)
    return year, month, day


def timestamp_to_iso(timestamp_ms):
    """
    Formats epoch milliseconds as an ISO-8601 UTC string with millisecond
    precision, e.g. 2024-01-15T08:30:00.000Z. Years outside 0000-9999 use
    the signed six digit form, e.g. +010000-01-01T00:00:00.000Z.
    Returns None when the value is not a usable number or lies beyond
    MAX_TIMESTAMP_MS.
    """
    if isinstance(timestamp_ms, bool) or not isinstance(timestamp_ms, (int, float)):
        return None
    if isinstance(timestamp_ms, float) and not math.isfinite(timestamp_ms):
        return None
    ms = int(timestamp_ms)
    if abs(ms) > MAX_TIMESTAMP_MS:
        return None

    days, ms_of_day = divmod(ms, MS_PER_DAY)
    year, month, day = _civil_from_days(days)
    seconds, millis = divmod(ms_of_day, 1000)
    minutes, second = divmod(seconds, 60)
    hour, minute = divmod(minutes, 60)

    if 0 <= year <= 9999:
        year_text = f"{year:04d}"
    else:
        year_text = f"{'+' if year > 0 else '-'}{abs(year):06d}"
    return f"{year_text}-{month:02d}-{day:02d}T{hour:02d}:{minute:02d}:{second:02d}.{millis:03d}Z"


def json_safe(value):
    """Replace non-finite floats with None so the result serializes as strict JSON."""
    if isinstance(value, float) and not math.isfinite(value):
        return None
    if isinstance(value, Mapping):
        return {key: json_safe(item) for key, item in value.items()}
    if _is_sequence(value):
        return [json_safe(item) for item in value]
    return value


def build_summary(doc):
    """Builds the console report parts: the raw record and the average speed line."""
    raw_json = json.dumps(json_safe(doc), indent=2, ensure_ascii=False, default=str)

    speeds = resolve_speeds(doc)
    average = average_speed(speeds)
    if average is NOT_AVAILABLE:
        average_line = 'N/A (no speeds_m_s provided)'
    else:
        average_line = f"{_format_thousandths(average)} from {len(speeds)} value(s)"

    return Summary(raw_json=raw_json, average_line=average_line)


def format_report(summary):
    return '\n'.join([
        'Raw /street data:',
        summary.raw_json,
        f"Average speed (m/s): {summary.average_line}",
    ])


def build_api_response(doc):
    """
    Returns the raw street record with the computed fields laid over it.
    Computed fields always win over raw fields of the same name.
    """
    response = dict(doc) if isinstance(doc, Mapping) else {}

    relays_status = relays_to_status(normalize_relays(_field(doc, 'relays')))
    response['relays_status'] = relays_status
    response['lights_on_count'] = count_on(relays_status)
    response['speeds_kmh'] = speeds_to_kmh(resolve_speeds(doc))
    response['timestamp_iso'] = timestamp_to_iso(_field(doc, 'timestamp_ms'))

    return response
