"""Tests for the description module."""

from unittest import mock

import pytest
import requests
import requests_mock
from conftest import DataLoader, DeferredExecutor, SyncExecutor

from upcast.description import (
    EXCLUDED,
    NO_TRANSPORT,
    RENDERER,
    SONOS_ZONE,
    UNKNOWN,
    DescriptionFetcher,
    DeviceDescription,
    classify,
    parse_description,
)
from upcast.devices import DLNA_RENDERER
from upcast.groups import SonosZoneInfo

DATA_LOADER = DataLoader("descriptions")

SONOS_URL = "http://192.168.1.101:1400/xml/device_description.xml"
TV_URL = "http://192.168.1.50:9197/dmr"
NAS_URL = "http://192.168.1.20:50001/desc/device.xml"
SERVER_URL = "http://192.168.1.2:32469/DeviceDescription.xml"


def description(manufacturer="", friendly_name="Device", model_name=None, control=True):
    return DeviceDescription(
        friendly_name=friendly_name,
        manufacturer=manufacturer,
        model_name=model_name,
        udn="uuid:1234",
        room_name=None,
        control_url="http://192.168.1.5/avt" if control else None,
        location="http://192.168.1.5/desc.xml",
    )


@pytest.fixture
def resolver():
    return mock.Mock()


@pytest.fixture
def fetcher(registry, resolver):
    return DescriptionFetcher(registry, resolver, executor=SyncExecutor())


class TestParseDescription:
    def test_sonos(self):
        parsed = parse_description(DATA_LOADER.load_xml("sonos_one.xml"), SONOS_URL)
        assert parsed.manufacturer == "Sonos, Inc."
        assert parsed.model_name == "Sonos One"
        assert parsed.udn == "uuid:RINCON_000E58XXXXXX01400"
        assert parsed.room_name == "Living Room"
        assert (
            parsed.control_url
            == "http://192.168.1.101:1400/MediaRenderer/AVTransport/Control"
        )
        assert parsed.host == "192.168.1.101"
        assert parsed.port() == 1400

    def test_tv(self):
        parsed = parse_description(DATA_LOADER.load_xml("samsung_tv.xml"), TV_URL)
        assert parsed.friendly_name == "[TV] Samsung 7 Series (55)"
        assert parsed.manufacturer == "Samsung Electronics"
        assert parsed.room_name is None
        assert parsed.control_url == "http://192.168.1.50:9197/upnp/control/AVTransport1"
        assert parsed.port() == 9197

    def test_defaults(self):
        parsed = parse_description("<root><device></device></root>", "http://10.0.0.1/")
        assert parsed.friendly_name == "Unknown Device"
        assert parsed.manufacturer == ""
        assert parsed.model_name is None
        assert parsed.control_url is None
        # A UDN is made up
        assert parsed.udn
        assert parsed.udn != parse_description("<root/>", "http://10.0.0.1/").udn
        assert parsed.port() == 80


class TestClassify:
    def test_excluded_manufacturers(self):
        assert classify(description("Synology Inc")) == EXCLUDED
        assert classify(description("NETGEAR, Inc.")) == EXCLUDED
        # Excluded even though the name says TV
        assert classify(description("Philips Hue", friendly_name="Hue TV lights")) == (
            EXCLUDED
        )

    def test_sonos(self):
        assert classify(description("Sonos, Inc.")) == SONOS_ZONE
        # Sonos zones are kept even without a transport
        assert classify(description("Sonos, Inc.", control=False)) == SONOS_ZONE

    def test_no_transport(self):
        assert classify(description("Samsung Electronics", control=False)) == NO_TRANSPORT

    def test_tv_manufacturers(self):
        assert classify(description("Samsung Electronics")) == RENDERER
        assert classify(description("LG Electronics.")) == RENDERER
        assert classify(description("Philips")) == RENDERER

    def test_tv_names(self):
        assert classify(description("Acme", friendly_name="Bedroom TV")) == RENDERER
        assert (
            classify(description("Acme", model_name="Smart Television 4K")) == RENDERER
        )

    def test_unknown(self):
        assert classify(description("Acme", friendly_name="Kitchen Radio")) == UNKNOWN


class TestDescriptionFetcher:
    def test_renderer_is_added(self, fetcher, registry, listener):
        registry.add_listener(listener)
        with requests_mock.Mocker() as m:
            m.get(TV_URL, text=DATA_LOADER.load_xml("samsung_tv.xml"))
            fetcher.fetch(TV_URL)
            assert m.request_history[0].timeout == 5.0
        device = registry.get("uuid:8a0a1a2e-00a7-1000-9a4b-f4fefbd1c2a3")
        assert device.device_type == DLNA_RENDERER
        assert device.name == "[TV] Samsung 7 Series (55)"
        assert device.address == "192.168.1.50"
        assert device.port == 9197
        assert device.description_url == TV_URL
        assert len(listener.calls) == 1

    def test_dedup(self, fetcher, registry):
        with requests_mock.Mocker() as m:
            m.get(TV_URL, text=DATA_LOADER.load_xml("samsung_tv.xml"))
            for _ in range(3):
                fetcher.fetch(TV_URL)
            assert m.call_count == 1
        assert len(registry.devices) == 1

    def test_dedup_while_pending(self, registry, resolver):
        executor = DeferredExecutor()
        fetcher = DescriptionFetcher(registry, resolver, executor=executor)
        fetcher.fetch(TV_URL)
        assert fetcher.fetch(TV_URL) is None
        assert len(executor.pending) == 1
        assert registry.pending_locations == {TV_URL}

    def test_synology_is_excluded(self, fetcher, registry):
        with requests_mock.Mocker() as m:
            m.get(NAS_URL, text=DATA_LOADER.load_xml("synology_nas.xml"))
            fetcher.fetch(NAS_URL)
        assert registry.devices == []

    def test_device_without_transport_is_dropped(self, fetcher, registry):
        with requests_mock.Mocker() as m:
            m.get(SERVER_URL, text=DATA_LOADER.load_xml("media_server.xml"))
            fetcher.fetch(SERVER_URL)
        assert registry.devices == []

    def test_sonos_zone_goes_to_resolver(self, fetcher, registry, resolver):
        with requests_mock.Mocker() as m:
            m.get(SONOS_URL, text=DATA_LOADER.load_xml("sonos_one.xml"))
            fetcher.fetch(SONOS_URL)
        assert registry.devices == []
        zone, generation = resolver.zone_discovered.call_args[0]
        assert generation == registry.generation
        assert zone == SonosZoneInfo(
            udn="uuid:RINCON_000E58XXXXXX01400",
            room_name="Living Room",
            address="192.168.1.101",
            port=1400,
            control_url="http://192.168.1.101:1400/MediaRenderer/AVTransport/Control",
            description_url=SONOS_URL,
        )

    def test_failure_releases_url(self, fetcher, registry):
        with requests_mock.Mocker() as m:
            m.get(TV_URL, status_code=404)
            fetcher.fetch(TV_URL)
            assert registry.pending_locations == set()
            m.get(TV_URL, text=DATA_LOADER.load_xml("samsung_tv.xml"))
            fetcher.fetch(TV_URL)
            assert m.call_count == 2
        assert len(registry.devices) == 1

    def test_network_error_is_silent(self, fetcher, registry):
        with requests_mock.Mocker() as m:
            m.get(TV_URL, exc=requests.exceptions.ConnectTimeout)
            assert fetcher.fetch(TV_URL).exception() is None
        assert registry.devices == []
        assert registry.pending_locations == set()

    def test_reset_cancels_pending_fetch(self, registry, resolver):
        executor = DeferredExecutor()
        fetcher = DescriptionFetcher(registry, resolver, executor=executor)
        future = fetcher.fetch(TV_URL)
        registry.clear()
        assert future.cancelled()
        with requests_mock.Mocker() as m:
            executor.run_all()
            assert m.call_count == 0
        assert registry.devices == []

    def test_stale_fetch_is_discarded(self, registry, resolver):
        executor = DeferredExecutor()
        fetcher = DescriptionFetcher(registry, resolver, executor=executor)
        fetcher.fetch(TV_URL)
        # Simulate a fetch which was already running when the registry was
        # reset
        future, function, args, _ = executor.pending.pop()
        registry.reset()
        with requests_mock.Mocker() as m:
            m.get(TV_URL, text=DATA_LOADER.load_xml("samsung_tv.xml"))
            function(*args)
        assert future.cancelled()
        assert registry.devices == []
        # The URL can be fetched again in the new generation
        assert registry.claim_location(TV_URL) == registry.generation

    def test_clear_while_parsing_drops_renderer(self, fetcher, registry):
        def clear_then_parse(text, location):
            # The registry is cleared between the download and the parse
            registry.clear()
            return parse_description(text, location)

        with requests_mock.Mocker() as m, mock.patch(
            "upcast.description.parse_description", side_effect=clear_then_parse
        ):
            m.get(TV_URL, text=DATA_LOADER.load_xml("samsung_tv.xml"))
            fetcher.fetch(TV_URL)
        assert registry.devices == []

    def test_handling_errors_are_logged(self, fetcher, registry, resolver, caplog):
        resolver.zone_discovered.side_effect = RuntimeError("boom")
        with requests_mock.Mocker() as m:
            m.get(SONOS_URL, text=DATA_LOADER.load_xml("sonos_one.xml"))
            future = fetcher.fetch(SONOS_URL)
        assert future.exception() is None
        assert future.result() is None
        assert "Failed to handle description {}".format(SONOS_URL) in caplog.text
        assert registry.devices == []
