#!/usr/bin/env python3
"""Minimal driver — feed one fake waist tracker moving in a circle.

Waits for the SlimeVR server (or ``examples/basic_consumer.py``) to connect,
then sends a position every tick until the connection drops.

Usage:
    python examples/fake_tracker.py
    python examples/fake_tracker.py --socket /tmp/SlimeVRDriver --rate 500
"""

import argparse
import logging
import time

import numpy as np

from slimevr_bridge import BridgeSession, BridgeStatus, Confidence, Status, TrackerRole


def main():
    parser = argparse.ArgumentParser()
    parser.add_argument("--socket", help="Socket path (default: $XDG_RUNTIME_DIR/SlimeVRDriver)")
    parser.add_argument("--rate", type=float, default=1000.0, help="Updates per second")
    args = parser.parse_args()

    logging.basicConfig(level=logging.INFO, format="[%(name)s] %(levelname)s %(message)s")

    with BridgeSession() as session:
        if session.start(args.socket) != BridgeStatus.CONNECTED:
            return 1

        session.add_tracker(1, "human://WAIST", TrackerRole.WAIST)
        session.send_status(1, Status.OK, Confidence.HIGH)

        rotation = np.array([0.0, 0.0, 0.0, 1.0], dtype=np.float32)
        interval = 1.0 / args.rate
        t0 = time.monotonic()

        while True:
            t = time.monotonic() - t0
            position = np.array([np.sin(t), 1.0, np.cos(t)], dtype=np.float32)
            print("%.2f %.2f %.2f" % tuple(position))

            if not session.send_pose(1, position, rotation):
                print("Failed to send tracker position")
                break

            session.drain()
            time.sleep(interval)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
