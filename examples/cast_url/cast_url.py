"""A cast a URL example

To use the script:

 * Make sure upcast is installed
 * Run the script at the command line with the name of a renderer (or
   part of it) and the URL of a stream:

cast_url.py "Living Room" http://192.168.1.2:8000/stream.mp3

Discovery runs for a few seconds first. Sonos groups are listed under the
name of their coordinator, eg "Living Room +1".
"""

import argparse
import time

from upcast import CastController, CastMetadata, DeviceListener


class PrintingListener(DeviceListener):
    """Prints the device list whenever it changes"""

    def devices_changed(self, devices):
        print("Devices:", ", ".join(device.name for device in devices))


def parse_args():
    """Parse the command line arguments"""
    description = "Cast a stream URL to a Sonos group or a DLNA TV"
    parser = argparse.ArgumentParser(description=description)

    parser.add_argument("name", help="The name of the renderer to cast to")
    parser.add_argument("url", help="The URL of the stream")
    parser.add_argument("--title", default="upcast", help="The title to show")
    parser.add_argument(
        "--wait",
        type=float,
        default=8.0,
        help="How many seconds to wait for discovery",
    )

    return parser.parse_args()


def main():
    """Discover, cast and wait for the user to stop playback"""
    args = parse_args()
    controller = CastController()
    controller.add_device_listener(PrintingListener())
    controller.start_discovery()
    time.sleep(args.wait)
    controller.stop_discovery()

    matches = [
        device
        for device in controller.devices
        if args.name.lower() in device.name.lower()
    ]
    if not matches:
        print("No renderer called", args.name)
        controller.close()
        return

    session = controller.connect(matches[0])
    session.cast(args.url, CastMetadata(args.title))
    print("Casting to", matches[0].name)
    try:
        input("Press enter to stop\n")
    finally:
        controller.close()


if __name__ == "__main__":
    main()
