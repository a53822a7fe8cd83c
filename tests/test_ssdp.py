"""Tests for the ssdp module."""

import socket
import threading
import time
from unittest.mock import MagicMock as Mock

import pytest

from upcast import config
from upcast.ssdp import (
    MCAST_GRP,
    MCAST_PORT,
    SEARCH_TARGETS,
    SsdpDiscoverer,
    build_search_message,
    parse_location,
)

SONOS_RESPONSE = (
    b"HTTP/1.1 200 OK\r\n"
    b"CACHE-CONTROL: max-age = 1800\r\n"
    b"EXT:\r\n"
    b"LOCATION: http://192.168.1.101:1400/xml/device_description.xml\r\n"
    b"SERVER: Linux UPnP/1.0 Sonos/26.1-76230 (ZPS3)\r\n"
    b"ST: urn:schemas-upnp-org:device:ZonePlayer:1\r\n"
    b"\r\n"
)


@pytest.fixture
def quiet_select(monkeypatch):
    """Make the reader thread idle without touching the fake socket."""

    def fake_select(*args):
        time.sleep(0.01)
        return [], [], []

    monkeypatch.setattr("select.select", fake_select)


def test_search_message():
    message = build_search_message(SEARCH_TARGETS[0], user_agent="test/1.0")
    assert message == (
        b"M-SEARCH * HTTP/1.1\r\n"
        b"HOST: 239.255.255.250:1900\r\n"
        b'MAN: "ssdp:discover"\r\n'
        b"MX: 3\r\n"
        b"ST: urn:schemas-upnp-org:device:MediaRenderer:1\r\n"
        b"USER-AGENT: test/1.0\r\n"
        b"\r\n"
    )


def test_search_message_default_user_agent():
    message = build_search_message(SEARCH_TARGETS[1]).decode("utf-8")
    assert "USER-AGENT: {}\r\n".format(config.USER_AGENT) in message
    assert "ST: urn:schemas-upnp-org:device:ZonePlayer:1\r\n" in message


def test_parse_location():
    assert (
        parse_location(SONOS_RESPONSE)
        == "http://192.168.1.101:1400/xml/device_description.xml"
    )
    # Header names are case insensitive
    assert parse_location("HTTP/1.1 200 OK\r\nlocation:  http://a:80/d.xml \r\n") == (
        "http://a:80/d.xml"
    )
    assert parse_location(b"HTTP/1.1 200 OK\r\nST: x\r\n\r\n") is None
    assert parse_location(b"HTTP/1.1 200 OK\r\nLOCATION:\r\n") is None
    assert parse_location(b"\xff\xfe garbage") is None


@pytest.mark.usefixtures("quiet_select")
class TestSsdpDiscoverer:
    def make_discoverer(self, timers, locations=None, sock=None):
        sock = sock if sock is not None else Mock()
        factory = Mock(return_value=sock)
        discoverer = SsdpDiscoverer(
            (locations if locations is not None else []).append,
            socket_factory=factory,
            timer_factory=timers,
        )
        return discoverer, factory, sock

    def test_start_schedules_rounds(self, timers):
        discoverer, factory, sock = self.make_discoverer(timers)
        discoverer.start()
        try:
            assert discoverer.is_active
            factory.assert_called_once_with(None)
            assert timers.delays == [0.5, 3.0, 6.0, 9.0, 12.0]
            sock.sendto.assert_not_called()

            timers.timers[0].fire()
            assert sock.sendto.call_count == len(SEARCH_TARGETS)
            for target, sent in zip(SEARCH_TARGETS, sock.sendto.call_args_list):
                args, _ = sent
                assert args == (build_search_message(target), (MCAST_GRP, MCAST_PORT))
        finally:
            discoverer.stop()

    def test_start_twice_is_a_noop(self, timers):
        discoverer, factory, _ = self.make_discoverer(timers)
        discoverer.start()
        discoverer.start()
        discoverer.stop()
        assert factory.call_count == 1
        assert len(timers.timers) == 5

    def test_stop(self, timers):
        discoverer, _, sock = self.make_discoverer(timers)
        discoverer.start()
        discoverer.stop()
        assert not discoverer.is_active
        assert all(timer.cancelled for timer in timers.timers)
        sock.close.assert_called_once_with()
        # Rounds fired after stop send nothing
        timers.timers[1].function()
        sock.sendto.assert_not_called()

    def test_stop_without_start(self, timers):
        discoverer, _, _ = self.make_discoverer(timers)
        discoverer.stop()
        assert not discoverer.is_active

    def test_boost(self, timers):
        discoverer, _, sock = self.make_discoverer(timers)
        discoverer.boost()
        sock.sendto.assert_not_called()
        discoverer.start()
        discoverer.boost()
        assert sock.sendto.call_count == len(SEARCH_TARGETS)
        discoverer.stop()

    def test_send_errors_are_logged(self, timers):
        sock = Mock()
        sock.sendto.side_effect = OSError("Network is unreachable")
        discoverer, _, _ = self.make_discoverer(timers, sock=sock)
        discoverer.start()
        discoverer.boost()
        assert sock.sendto.call_count == len(SEARCH_TARGETS)
        discoverer.stop()

    def test_socket_failure(self, timers):
        factory = Mock(side_effect=OSError("no multicast"))
        discoverer = SsdpDiscoverer([].append, socket_factory=factory, timer_factory=timers)
        discoverer.start()
        assert not discoverer.is_active
        assert timers.timers == []

    def test_interface_address_from_config(self, timers, monkeypatch):
        monkeypatch.setattr("upcast.config.SSDP_INTERFACE_ADDR", "192.168.1.2")
        discoverer, factory, _ = self.make_discoverer(timers)
        discoverer.start()
        discoverer.stop()
        factory.assert_called_once_with("192.168.1.2")


def test_reader_reports_locations(timers):
    """Responses are read from a real socket on the loopback interface."""
    locations = []
    received = threading.Event()

    def on_location(location):
        locations.append(location)
        received.set()

    def loopback_socket(_interface_addr):
        sock = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
        sock.bind(("127.0.0.1", 0))
        return sock

    discoverer = SsdpDiscoverer(
        on_location, socket_factory=loopback_socket, timer_factory=timers
    )
    discoverer.start()
    # pylint: disable=protected-access
    address = discoverer._sock.getsockname()
    sender = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
    try:
        sender.sendto(b"HTTP/1.1 200 OK\r\nST: upnp:rootdevice\r\n\r\n", address)
        sender.sendto(SONOS_RESPONSE, address)
        assert received.wait(2)
    finally:
        sender.close()
        discoverer.stop()
    assert locations == ["http://192.168.1.101:1400/xml/device_description.xml"]
