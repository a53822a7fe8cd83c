"""py.test hooks and fixtures.

Add the --ip command line option, and skip all tests marked the with
'integration' marker unless the option is included
"""
from concurrent.futures import Executor, Future
from os import path
import codecs


import pytest

from upcast.devices import DLNA_RENDERER, SONOS_GROUP, CastDevice
from upcast.groups import SonosZoneInfo
from upcast.registry import DeviceRegistry

THISDIR = path.dirname(path.abspath(__file__))


def pytest_addoption(parser):
    """Add the --ip commandline option"""
    parser.addoption(
        "--ip",
        type=str,
        default=None,
        action="store",
        dest="IP",
        help="the IP address of the renderer to be used for the integration tests",
    )


def pytest_runtest_setup(item):
    """Skip tests marked 'integration' unless an ip address is given."""
    if "integration" in item.keywords and not item.config.getoption("--ip"):
        pytest.skip("use --ip and an ip address to run integration tests.")


class DataLoader:
    """A class that loads test data"""

    def __init__(self, data_sub_dir):
        self.data_dir = path.join(THISDIR, "data", data_sub_dir)

    def load_xml(self, filename):
        """Return XML string loaded from filename under ``self.data_sub_dir``"""
        xml_string = ""
        with codecs.open(path.join(self.data_dir, filename), encoding="utf-8") as file_:
            for line in file_:
                # Allow for indenting the XML source
                xml_string += line.lstrip(" ")
        return xml_string


class FakeTimer:
    """A timer which only fires when told to."""

    def __init__(self, delay, function):
        self.delay = delay
        self.function = function
        self.cancelled = False

    def cancel(self):
        self.cancelled = True

    def fire(self):
        if not self.cancelled:
            self.function()


class FakeTimerFactory:
    """Drop-in for `upcast.utils.start_timer` which records the timers."""

    def __init__(self):
        self.timers = []

    def __call__(self, delay, function):
        timer = FakeTimer(delay, function)
        self.timers.append(timer)
        return timer

    @property
    def delays(self):
        return [timer.delay for timer in self.timers]


class SyncExecutor(Executor):
    """Runs submitted work immediately on the calling thread."""

    def submit(self, fn, *args, **kwargs):  # pylint: disable=arguments-differ
        future = Future()
        future.set_running_or_notify_cancel()
        try:
            result = fn(*args, **kwargs)
        except Exception as error:  # pylint: disable=broad-except
            future.set_exception(error)
        else:
            future.set_result(result)
        return future


class DeferredExecutor(Executor):
    """Queues submitted work until `run_all` is called."""

    def __init__(self):
        self.pending = []

    def submit(self, fn, *args, **kwargs):  # pylint: disable=arguments-differ
        future = Future()
        self.pending.append((future, fn, args, kwargs))
        return future

    def run_all(self):
        pending, self.pending = self.pending, []
        for future, fn, args, kwargs in pending:
            # Skips futures which were cancelled meanwhile
            if not future.set_running_or_notify_cancel():
                continue
            try:
                future.set_result(fn(*args, **kwargs))
            except Exception as error:  # pylint: disable=broad-except
                future.set_exception(error)


class RecordingListener:
    """A DeviceListener which records what it is told."""

    def __init__(self):
        self.calls = []

    def devices_changed(self, devices):
        self.calls.append(list(devices))


@pytest.fixture
def registry():
    return DeviceRegistry()


@pytest.fixture
def timers():
    return FakeTimerFactory()


@pytest.fixture
def listener():
    return RecordingListener()


def make_zone(name, number, control=True):
    """Return a SonosZoneInfo for a zone at 192.168.1.10<number>."""
    address = "192.168.1.{}".format(100 + number)
    return SonosZoneInfo(
        udn="uuid:RINCON_{:012d}01400".format(number),
        room_name=name,
        address=address,
        port=1400,
        control_url="http://{}:1400/MediaRenderer/AVTransport/Control".format(address)
        if control
        else None,
        description_url="http://{}:1400/xml/device_description.xml".format(address),
    )


def make_renderer(udn="uuid:tv-1", name="[TV] Samsung 7 Series", control=True):
    return CastDevice(
        id=udn,
        name=name,
        device_type=DLNA_RENDERER,
        address="192.168.1.50",
        port=9197,
        manufacturer="Samsung Electronics",
        control_url="http://192.168.1.50:9197/upnp/control/AVTransport1"
        if control
        else None,
        description_url="http://192.168.1.50:9197/dmr",
    )


def make_sonos_device(udn="uuid:RINCON_000000000001", name="Kitchen"):
    return CastDevice(
        id=udn,
        name=name,
        device_type=SONOS_GROUP,
        address="192.168.1.101",
        port=1400,
        manufacturer="Sonos",
        control_url="http://192.168.1.101:1400/MediaRenderer/AVTransport/Control",
    )
