"""This class contains utility functions used internally by upcast."""

import re
import threading

TIME_RE = re.compile(r"^(\d+):([0-5]?\d):([0-5]?\d(?:\.\d+)?)$")


def prettify(unicode_text):
    """Return a pretty-printed version of a unicode XML string.

    Useful for debugging.

    Args:
        unicode_text (str): A text representation of XML (unicode,
            *not* utf-8).

    Returns:
        str: A pretty-printed version of the input.

    """
    import xml.dom.minidom  # pylint: disable=import-outside-toplevel

    reparsed = xml.dom.minidom.parseString(unicode_text.encode("utf-8"))
    return reparsed.toprettyxml(indent="  ", newl="\n")


def format_time(seconds):
    """Format a number of seconds in the ``HH:MM:SS`` form used by UPnP.

    Fractions of a second are truncated and negative values are treated as
    zero.

    Args:
        seconds (float): The time in seconds.

    Returns:
        str: The formatted time, eg ``"01:02:03"``.

    >>> format_time(3723.9)
    '01:02:03'
    """
    seconds = max(0, int(seconds))
    hours, remainder = divmod(seconds, 3600)
    minutes, secs = divmod(remainder, 60)
    return "{:02d}:{:02d}:{:02d}".format(hours, minutes, secs)


def parse_time(time_string):
    """Parse a UPnP ``H+:MM:SS[.F+]`` time string into seconds.

    Args:
        time_string (str): The time, eg ``"0:03:25"``. Values such as
            ``"NOT_IMPLEMENTED"`` or an empty string are accepted.

    Returns:
        float: The time in seconds, or 0.0 if the string cannot be parsed.
    """
    if not time_string:
        return 0.0
    match = TIME_RE.match(time_string.strip())
    if match is None:
        return 0.0
    hours, minutes, seconds = match.groups()
    return int(hours) * 3600 + int(minutes) * 60 + float(seconds)


def start_timer(delay, function):
    """Call ``function`` after ``delay`` seconds on a daemon timer thread.

    Returns:
        threading.Timer: The started timer, which can be cancelled.
    """
    timer = threading.Timer(delay, function)
    timer.daemon = True
    timer.start()
    return timer
