#!/usr/bin/env python3
"""Minimal consumer — print every message a driver sends.

Plays the SlimeVR server's side of the bridge.  Start the driver first.

Usage:
    python examples/basic_consumer.py
    python examples/basic_consumer.py --socket /tmp/SlimeVRDriver
"""

import argparse
import logging
import time

from slimevr_bridge import BridgePeer, ConnectionClosed, message_kind


def main():
    parser = argparse.ArgumentParser()
    parser.add_argument("--socket", help="Socket path (default: $XDG_RUNTIME_DIR/SlimeVRDriver)")
    parser.add_argument("--timeout", type=float, default=30.0,
                        help="Seconds to keep retrying the connection")
    args = parser.parse_args()

    logging.basicConfig(level=logging.INFO, format="[%(name)s] %(levelname)s %(message)s")

    with BridgePeer.connect(args.socket, timeout=args.timeout) as peer:
        print("Receiving — press Ctrl+C to stop\n")

        count = 0
        t0 = time.monotonic()

        while True:
            try:
                message = peer.recv(timeout=1.0)
            except ConnectionClosed:
                print("Driver disconnected")
                break
            if message is None:
                continue

            count += 1
            kind = message_kind(message)
            if kind != "position" or count % 500 == 0:
                elapsed = time.monotonic() - t0
                body = getattr(message, kind)
                print(f"  messages={count}  rate={count / elapsed:.1f}/s  {kind}: "
                      f"{str(body).strip()!r}")


if __name__ == "__main__":
    main()
