import asyncio
import argparse
import sys
from typing import Optional

from sglove.common.logging import get_logger, set_level
from sglove.display.console_table import format_snapshot_table
from sglove.gatt.constants import DEFAULT_LOG_FILENAME, DEFAULT_LOG_PERIOD_MS, DEVICE_NAME
from sglove.smart_glove import SmartGlove

L = get_logger(__name__)


async def _select_device_address(initial_address: Optional[str], device_name=DEVICE_NAME, scan_timeout=10.0) -> Optional[str]:
    address = initial_address
    if not address:
        print(f"Discovering {device_name} devices...")
        gloves = await SmartGlove.discover(device_name, scan_timeout)
        if not gloves:
            print(f"No {device_name} devices found.")
            return None

        if len(gloves) == 1:
            address = gloves[0].address
            print(f"Automatically selecting {gloves[0].name} ({address})")
        else:
            print(f"Multiple {device_name} devices found:")
            for i, device in enumerate(gloves):
                print(f"  [{i}] {device.name} ({device.address})")

            while True:
                try:
                    idx = input("Select device index to connect: ")
                    idx = int(idx)
                    if 0 <= idx < len(gloves):
                        address = gloves[idx].address
                        break
                    else:
                        print("Invalid index. Please try again.")
                except ValueError:
                    print("Invalid input. Please enter a number.")
    return address


def _save_log(path):
    def save(csv_text):
        with open(path, "w", encoding="utf-8", newline="") as f:
            f.write(csv_text)
        print(f"Log saved to {path}")
    return save


def _print_table(glove):
    for line in format_snapshot_table(glove.snapshot(), glove.writable_characteristics):
        print(line)


def main():
    parser = argparse.ArgumentParser(description="Connects to a SmartGlove, shows its sensor values and logs them to CSV.", allow_abbrev=False)
    parser.add_argument('--address', type=str, help='Optional BLE address of the glove. If not provided, it will auto discover the device.')
    parser.add_argument('--device-name', type=str, default=DEVICE_NAME, help=f'Advertised name to discover (default: {DEVICE_NAME}).')
    parser.add_argument('--scan-timeout', type=float, default=10.0, help='Discovery timeout in seconds.')
    parser.add_argument('--show', action='store_true', help='Prints the current sensor values once.')
    parser.add_argument('--poll', type=float, default=0, help='Prints the sensor values every N seconds until Ctrl+C.')
    parser.add_argument('--duration', type=float, default=0, help='Logs the sensor values for N seconds and saves them as CSV.')
    parser.add_argument('--log-period', type=float, default=DEFAULT_LOG_PERIOD_MS, help=f'Log period in milliseconds (default: {DEFAULT_LOG_PERIOD_MS}).')
    parser.add_argument('--output', type=str, default=DEFAULT_LOG_FILENAME, help=f'CSV file written when logging stops (default: {DEFAULT_LOG_FILENAME}).')
    parser.add_argument('--toggle', type=str, action='append', default=[], help='UUID of a control characteristic to toggle. May be repeated.')
    parser.add_argument('--log-level', default='INFO', choices=['CRITICAL', 'ERROR', 'WARNING', 'INFO', 'DEBUG'], help='Log level (default: INFO).')

    args = parser.parse_args()
    if len(sys.argv) == 1:
        parser.print_help()
        return

    set_level(args.log_level)
    try:
        asyncio.run(async_main(args))
    except KeyboardInterrupt:
        pass


async def async_main(args):
    address = await _select_device_address(args.address, args.device_name, args.scan_timeout)
    if not address:
        print("No device selected or address provided. Exiting.")
        return

    glove = SmartGlove(address, on_export=_save_log(args.output))
    try:
        await glove.connect()
        if not glove.is_connected:
            print(f"Could not connect to {address}.")
            return
        print("Connected.")

        for char_id in args.toggle:
            state = await glove.toggle(char_id)
            print(f"Toggled {char_id}: {state}")

        if args.show:
            _print_table(glove)

        if args.duration > 0:
            glove.log.start(args.log_period)
            print(f"Logging every {args.log_period:g} ms for {args.duration:g} s...")
            await asyncio.sleep(args.duration)
            glove.log.stop()

        if args.poll > 0:
            while glove.is_connected:
                print("\033[H\033[J", end="")
                _print_table(glove)
                await asyncio.sleep(args.poll)

    except ConnectionError as e:
        print(f"Connection error: {e}")
    except KeyError as e:
        print(f"Unknown control: {e}")
    except Exception as e:
        print(f"An error occurred: {e}")
    finally:
        if glove.is_connected:
            print("Disconnecting...")
            await glove.disconnect()

if __name__ == "__main__":
    main()
