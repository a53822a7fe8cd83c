"""The device registry.

The registry is the single authoritative store of resolved devices, and it
also owns all other mutable discovery state: the set of description URLs
already claimed in the current discovery session, the in-flight description
fetches, the Sonos zone map and the handle of the one-shot topology timer.

Discovery events arrive on many threads (the SSDP reader, zeroconf, the
fetch pool, timers). Every mutation goes through one re-entrant lock, and no
network I/O is done while the lock is held.

Each discovery session has a *generation* number. `reset` and `clear` start
a new generation, and work that was started in an older generation is
silently discarded when it completes.
"""

import logging
import threading

from .devices import SONOS_GROUP

_LOG = logging.getLogger(__name__)


class DeviceListener:

    """Receives notifications about changes to the device list.

    Subclass this and pass an instance to `DeviceRegistry.add_listener`.
    Notifications are delivered on the thread which made the change.
    """

    def devices_changed(self, devices):
        """Called after the visible device list has changed.

        Args:
            devices (list): The new device list, a list of `CastDevice`.
        """


# pylint: disable=too-many-instance-attributes
class DeviceRegistry:

    """A thread-safe store of `CastDevice` instances keyed by id."""

    def __init__(self):
        self._lock = threading.RLock()
        self._devices = []
        self._listeners = []
        self._generation = 0
        # Description URLs claimed in this generation. The value is True
        # once the description has been resolved.
        self._locations = {}
        self._fetches = {}
        self._zones = {}
        self._groups = []
        self._topology_timer = None
        self._topology_armed = False
        self._topology_fired = False

    # Listeners

    def add_listener(self, listener):
        """Register a `DeviceListener`."""
        with self._lock:
            if listener not in self._listeners:
                self._listeners.append(listener)

    def remove_listener(self, listener):
        """Unregister a `DeviceListener`."""
        with self._lock:
            if listener in self._listeners:
                self._listeners.remove(listener)

    def _notify(self, devices):
        with self._lock:
            listeners = list(self._listeners)
        for listener in listeners:
            try:
                listener.devices_changed(devices)
            except Exception:  # pylint: disable=broad-except
                _LOG.exception("Device listener %r failed", listener)

    # The device list

    @property
    def devices(self):
        """list: A copy of the current device list."""
        with self._lock:
            return list(self._devices)

    def get(self, device_id):
        """Return the device with the given id, or `None`."""
        with self._lock:
            for device in self._devices:
                if device.id == device_id:
                    return device
        return None

    def devices_of_type(self, device_type):
        """Return the devices of the given type, eg `devices.SONOS_GROUP`."""
        with self._lock:
            return [d for d in self._devices if d.device_type == device_type]

    def _insert(self, device):
        """Append a device unless it is uncontrollable or already known.

        Must be called with the lock held.
        """
        if not device.control_url:
            _LOG.debug("Not adding %s: no AVTransport control URL", device.name)
            return False
        if any(d.id == device.id for d in self._devices):
            return False
        self._devices.append(device)
        return True

    def add(self, device, generation=None):
        """Add a device.

        Adding a device whose id is already known, or which has no control
        URL, does nothing. So does adding a device found in a discovery
        generation that has been reset since.

        Args:
            device (CastDevice): The device.
            generation (int, optional): The generation the device was found
                in. `None` skips the check.

        Returns:
            bool: True if the device was added.
        """
        with self._lock:
            if generation is not None and not self.is_current(generation):
                _LOG.debug("Not adding %s: stale generation", device.name)
                return False
            added = self._insert(device)
            devices = list(self._devices)
        if added:
            _LOG.info(
                "Added %s device: %s (%s)",
                device.type_display_name,
                device.name,
                device.manufacturer,
            )
            self._notify(devices)
        return added

    def remove(self, device_id):
        """Remove the device with the given id.

        Returns:
            bool: True if a device was removed.
        """
        with self._lock:
            before = len(self._devices)
            self._devices = [d for d in self._devices if d.id != device_id]
            removed = len(self._devices) != before
            devices = list(self._devices)
        if removed:
            self._notify(devices)
        return removed

    def replace_all(self, device_type, devices):
        """Replace all devices of one type.

        Args:
            device_type (str): The type of the devices to replace.
            devices (Iterable[CastDevice]): The new devices of that type.
        """
        with self._lock:
            self._replace_all(device_type, devices)
            devices = list(self._devices)
        self._notify(devices)

    def _replace_all(self, device_type, devices):
        self._devices = [d for d in self._devices if d.device_type != device_type]
        for device in devices:
            self._insert(device)

    # Description fetch bookkeeping

    @property
    def generation(self):
        """int: The current discovery generation."""
        with self._lock:
            return self._generation

    def is_current(self, generation):
        """Return True if ``generation`` is the current generation."""
        with self._lock:
            return generation == self._generation

    def claim_location(self, location):
        """Claim a description URL for fetching.

        Returns:
            int: The current generation if the URL was neither pending nor
            resolved, otherwise `None`.
        """
        with self._lock:
            if location in self._locations:
                return None
            self._locations[location] = False
            return self._generation

    def track_fetch(self, location, future, generation):
        """Remember an in-flight fetch so that it can be cancelled."""
        with self._lock:
            if generation != self._generation:
                future.cancel()
                return
            # The fetch may already have finished and released its entry
            if self._locations.get(location) is False and not future.done():
                self._fetches[location] = future

    def finish_location(self, location, generation, resolved):
        """Record the end of a fetch.

        A resolved URL stays claimed for the rest of the generation; a failed
        one is released so that it can be tried again.

        Returns:
            bool: False if the fetch belongs to an older generation and its
            result must be discarded.
        """
        with self._lock:
            if generation != self._generation:
                return False
            self._fetches.pop(location, None)
            if resolved:
                self._locations[location] = True
            else:
                self._locations.pop(location, None)
            return True

    @property
    def pending_locations(self):
        """set: The description URLs claimed but not yet resolved."""
        with self._lock:
            return {url for url, done in self._locations.items() if not done}

    # Sonos zones and topology

    def add_zone(self, zone, generation):
        """Store a Sonos zone. The first zone stored for a UDN wins.

        Returns:
            bool: True if the zone was new.
        """
        with self._lock:
            if generation != self._generation or zone.udn in self._zones:
                return False
            self._zones[zone.udn] = zone
            return True

    @property
    def zones(self):
        """list: The known Sonos zones, in discovery order."""
        with self._lock:
            return list(self._zones.values())

    def get_zone(self, udn):
        """Return the `SonosZoneInfo` for a UDN, or `None`."""
        with self._lock:
            return self._zones.get(udn)

    @property
    def groups(self):
        """list: The `SonosGroup` list from the last successful topology
        query."""
        with self._lock:
            return list(self._groups)

    def arm_topology(self, generation, start_timer):
        """Arm the one-shot topology timer, unless it was already armed in
        this generation.

        Args:
            generation (int): The generation of the zone that was found.
            start_timer (callable): Called without arguments, with the lock
                held, to create and start the timer. Must return an object
                with a ``cancel()`` method.

        Returns:
            bool: True if the timer was armed.
        """
        with self._lock:
            if generation != self._generation or self._topology_armed:
                return False
            self._topology_armed = True
            self._topology_timer = start_timer()
            return True

    def begin_topology_pass(self, generation):
        """Claim the single topology pass of an armed timer.

        Returns:
            bool: True if the caller may run the pass.
        """
        with self._lock:
            if generation != self._generation or self._topology_fired:
                return False
            self._topology_fired = True
            self._topology_timer = None
            return True

    def apply_sonos_devices(self, devices, groups, generation):
        """Replace all Sonos devices with the result of a topology pass.

        Returns:
            bool: False if the result is stale and was discarded.
        """
        with self._lock:
            if generation != self._generation:
                return False
            self._groups = list(groups)
            self._replace_all(SONOS_GROUP, devices)
            current = list(self._devices)
        self._notify(current)
        return True

    # Resetting

    def reset(self, keep_devices=True):
        """Reset the discovery state.

        In-flight description fetches and the topology timer are cancelled,
        and claimed URLs and known Sonos zones are forgotten, so that devices
        and groups can be discovered again.

        Args:
            keep_devices (bool): If `True` (the default) the visible device
                list is left as it is, so that a user interface does not
                flicker during a refresh.
        """
        with self._lock:
            self._generation += 1
            for future in self._fetches.values():
                future.cancel()
            task_count = len(self._fetches)
            self._fetches.clear()
            self._locations.clear()
            if self._topology_timer is not None:
                self._topology_timer.cancel()
                self._topology_timer = None
            self._topology_armed = False
            self._topology_fired = False
            zone_count = len(self._zones)
            self._zones.clear()
            self._groups = []
            device_count = len(self._devices)
            changed = not keep_devices and device_count > 0
            if not keep_devices:
                self._devices = []
            devices = list(self._devices)
        _LOG.info(
            "Reset discovery state: cancelled %d fetches, forgot %d zones, "
            "%d devices %s",
            task_count,
            zone_count,
            device_count,
            "kept" if keep_devices else "cleared",
        )
        if changed:
            self._notify(devices)

    def clear(self):
        """Cancel all discovery work and remove every device."""
        self.reset(keep_devices=False)
