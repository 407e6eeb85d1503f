#!/usr/bin/env python3
"""
ALLREMOTE Module Demo

This script demonstrates:
1. Scanning for ALLREMOTE modules
2. Connecting and authenticating with the module password
3. Holding keys (the combination is repeated every 50 ms while held)
4. Learning mode and changing the module password

Usage:
    # Find modules in range
    python allremote_demo.py scan

    # Hold "Up" and "Function 1" for one second
    python allremote_demo.py press --address <ADDRESS> --keys Up,K5 --duration 1

    # Enter learning mode for 30 seconds
    python allremote_demo.py learn --address <ADDRESS> --duration 30

    # Change the password (current password must be the remembered one)
    python allremote_demo.py change-password --address <ADDRESS> --current 123456 --new 654321
"""

import argparse
import asyncio
import sys
import os

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.dirname(os.path.abspath(__file__)))))

from allremote import (
    ConnectionState,
    RemoteClient,
    RemoteStatus,
    SQLitePasswordStore,
    ValidationError,
    discover_remote_modules,
    parse_keys,
)


class RemoteDemo:
    """Drives one module through a RemoteClient and prints what happens."""

    def __init__(self, address: str = None, db_path: str = None):
        self.address = address
        self.client = RemoteClient(password_store=SQLitePasswordStore(db_path))
        self.settled = asyncio.Event()
        self.client.add_listener(self._on_status)
        self._last_state = None
        self._last_message = None

    def _on_status(self, status: RemoteStatus):
        """Print changes and wake up whoever waits for a settled session."""
        if status.connection_state != self._last_state:
            print(f"  state: {status.connection_state.name}")
            self._last_state = status.connection_state
        if status.error_message and status.error_message != self._last_message:
            print(f"  message: {status.error_message}")
        self._last_message = status.error_message
        if status.reported_keys:
            print(f"  module reports: {sorted(key.label for key in status.reported_keys)}")
        if status.connection_state in (ConnectionState.CONNECTED, ConnectionState.DISCONNECTED):
            self.settled.set()

    async def connect(self, password: str = None) -> bool:
        """Connect (to the last connected module without an address) and wait."""
        if self.address is None:
            print("Connecting to the last connected module...")
            started = self.client.auto_connect()
        else:
            print(f"Connecting to {self.address}...")
            started = self.client.connect(self.address, password)
        if not started:
            print("Nothing to connect to")
            return False

        if self.client.state not in (ConnectionState.CONNECTED, ConnectionState.DISCONNECTED):
            self.settled.clear()
            await self.settled.wait()
        return self.client.is_connected

    def close(self):
        self.client.close()


async def cmd_scan(args) -> int:
    print(f"Scanning for ALLREMOTE modules for {args.timeout}s...")
    devices = await discover_remote_modules(timeout=args.timeout)
    for device in devices:
        print(f"  Found: {device.name} ({device.address})")
    if not devices:
        print("No module found! Make sure it is powered and not connected elsewhere.")
        return 1
    return 0


async def cmd_press(args) -> int:
    try:
        keys = parse_keys(args.keys.split(","))
    except ValidationError as e:
        print(f"Invalid keys: {e}")
        return 2

    demo = RemoteDemo(args.address, args.db)
    try:
        if not await demo.connect(args.password):
            return 1
        print(f"Holding {sorted(key.label for key in keys)} for {args.duration}s")
        await demo.client.hold_keys(keys, args.duration)
        print("Released")
        return 0
    finally:
        demo.close()


async def cmd_learn(args) -> int:
    demo = RemoteDemo(args.address, args.db)
    try:
        if not await demo.connect(args.password):
            return 1
        if not demo.client.enter_learning_mode():
            return 1

        print("\n" + "=" * 60)
        print("LEARNING MODE")
        print("=" * 60)
        print(f"Press the remote's keys within {args.duration} seconds")
        print("=" * 60 + "\n")

        await asyncio.sleep(args.duration)
        demo.client.exit_learning_mode()
        return 0
    finally:
        demo.close()


async def cmd_change_password(args) -> int:
    demo = RemoteDemo(args.address, args.db)
    try:
        if not await demo.connect(args.current):
            return 1
        if not demo.client.change_password(args.current, args.new):
            return 1
        print("Password changed. Scan again before reconnecting with the new password.")
        return 0
    finally:
        demo.close()


async def main() -> int:
    parser = argparse.ArgumentParser(description="ALLREMOTE Module Demo")
    parser.add_argument("--db", help="Password database (default ~/.allremote/passwords.db)")
    subparsers = parser.add_subparsers(dest="command")

    scan = subparsers.add_parser("scan", help="Scan for modules")
    scan.add_argument("--timeout", type=float, default=10.0)

    press = subparsers.add_parser("press", help="Hold keys for a while")
    press.add_argument("--address", help="Module BLE address (last connected if omitted)")
    press.add_argument("--password", help="Module password (remembered one if omitted)")
    press.add_argument("--keys", required=True, help="Comma separated keys, e.g. K1,Up,Function 2")
    press.add_argument("--duration", type=float, default=0.5)

    learn = subparsers.add_parser("learn", help="Enter learning mode")
    learn.add_argument("--address", help="Module BLE address (last connected if omitted)")
    learn.add_argument("--password", help="Module password (remembered one if omitted)")
    learn.add_argument("--duration", type=float, default=30.0)

    change = subparsers.add_parser("change-password", help="Change the module password")
    change.add_argument("--address", required=True, help="Module BLE address")
    change.add_argument("--current", required=True, help="Current password")
    change.add_argument("--new", required=True, help="New 6 character password")

    args = parser.parse_args()

    handlers = {
        "scan": cmd_scan,
        "press": cmd_press,
        "learn": cmd_learn,
        "change-password": cmd_change_password,
    }
    handler = handlers.get(args.command)
    if handler is None:
        parser.print_help()
        return 2
    return await handler(args)


if __name__ == "__main__":
    sys.exit(asyncio.run(main()))
