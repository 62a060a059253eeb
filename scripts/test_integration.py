#!/usr/bin/env python3
"""
Event Feed Integration Check
============================

Standalone script to exercise intake and statistics against a live feed.

This script:
    1. Connects to a running event feed
    2. Drains decoded events into a StatsPipeline for a configurable duration
    3. Logs intake counters and headline stats every report interval
    4. Reports a final summary

Prerequisites:
    - An event feed must be serving EventMessage JSON at the configured URL
    - Install the package: pip install -e .

Usage:
    python scripts/test_integration.py --duration 60
    python scripts/test_integration.py --url ws://localhost:9000/ws/events \\
        --offset-ms 15 25
"""

import argparse
import asyncio
import logging
import os
import sys
import time

from cast_telemetry.clock import StaticOffsetProvider
from cast_telemetry.models.events import MediaType
from cast_telemetry.pipeline import StatsPipeline
from cast_telemetry.stream import EventBuffer, EventConsumer


# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    datefmt="%Y-%m-%dT%H:%M:%S",
)
logger = logging.getLogger(__name__)

HEADLINE_STATS = (
    "CAPTURE_FPS",
    "ENCODE_KBPS",
    "PACKET_LOSS_FRACTION",
    "AVG_NETWORK_LATENCY_MS",
    "AVG_E2E_LATENCY_MS",
)


def _log_headline(snapshot: dict) -> None:
    for media, export in snapshot.items():
        stats = export["stats"]
        parts = [
            f"{name}={stats[name]:.2f}" for name in HEADLINE_STATS if name in stats
        ]
        logger.info(f"  {media}: {', '.join(parts) or 'no stats yet'}")


async def run_check(
    url: str,
    duration: int,
    queue_size: int,
    report_interval: int,
    offset_ms: tuple,
) -> dict:
    """
    Run the integration check.

    Args:
        url: WebSocket URL of the event feed
        duration: Check duration in seconds
        queue_size: Max queue size for buffer
        report_interval: Seconds between progress reports
        offset_ms: (lower, upper) clock offset bounds, or None

    Returns:
        Final metrics dict
    """
    logger.info("=" * 60)
    logger.info("Event Feed Integration Check")
    logger.info("=" * 60)
    logger.info(f"Feed URL: {url}")
    logger.info(f"Duration: {duration} seconds")
    logger.info(f"Clock offset: {offset_ms if offset_ms else 'unavailable'} ms")
    logger.info("=" * 60)

    provider = StaticOffsetProvider()
    if offset_ms:
        provider.set_bounds(offset_ms[0] / 1000.0, offset_ms[1] / 1000.0)

    pipeline = StatsPipeline(
        media_types=[MediaType.AUDIO, MediaType.VIDEO],
        offset_provider=provider,
    )
    buffer = EventBuffer(maxsize=queue_size)
    consumer = EventConsumer(
        url=url,
        buffer=buffer,
        reconnect_backoff_ms=500,
        max_reconnect_attempts=0,  # Unlimited
    )

    consumer_task = asyncio.create_task(consumer.run())

    start_time = time.time()
    last_report_time = start_time

    try:
        while time.time() - start_time < duration:
            event = await buffer.get(timeout=0.5)
            if event is not None:
                pipeline.dispatch(event)

            if time.time() - last_report_time >= report_interval:
                metrics = consumer.metrics
                logger.info("-" * 40)
                logger.info(f"Progress Report (elapsed: {time.time() - start_time:.0f}s)")
                logger.info(f"  Connected: {consumer.connected}")
                logger.info(f"  Events received: {metrics.events_received}")
                logger.info(f"  Events dispatched: {pipeline.events_dispatched}")
                logger.info(f"  Ordering warnings: {metrics.validation_warnings}")
                logger.info(f"  Buffer dropped: {buffer.dropped_count}")
                _log_headline(pipeline.snapshot())
                last_report_time = time.time()

    except KeyboardInterrupt:
        logger.info("Check interrupted by user")
    finally:
        await consumer.stop()
        try:
            await asyncio.wait_for(consumer_task, timeout=5.0)
        except asyncio.TimeoutError:
            consumer_task.cancel()
            try:
                await consumer_task
            except asyncio.CancelledError:
                pass

    total_time = time.time() - start_time
    metrics = consumer.metrics

    logger.info("=" * 60)
    logger.info("FINAL SUMMARY")
    logger.info("=" * 60)
    logger.info(f"Total runtime: {total_time:.1f} seconds")
    logger.info(f"Events received: {metrics.events_received}")
    logger.info(f"Events dispatched: {pipeline.events_dispatched}")
    logger.info(f"Reconnections: {metrics.reconnect_count}")
    logger.info(f"Parse errors: {consumer.decoder.parse_errors}")
    logger.info(f"Buffer drops: {buffer.dropped_count}")
    _log_headline(pipeline.snapshot())
    logger.info("=" * 60)

    if pipeline.events_dispatched > 0:
        logger.info("CHECK PASSED - Events processed")
    else:
        logger.error("CHECK FAILED - No events processed")

    return {
        "duration": total_time,
        "events_received": metrics.events_received,
        "events_dispatched": pipeline.events_dispatched,
        "reconnections": metrics.reconnect_count,
        "buffer_drops": buffer.dropped_count,
    }


def main():
    parser = argparse.ArgumentParser(
        description="Integration check for event intake and statistics"
    )
    parser.add_argument(
        "--url",
        type=str,
        default=os.environ.get("CAST_STREAM_URL", "ws://localhost:9000/ws/events"),
        help="WebSocket URL of the event feed",
    )
    parser.add_argument(
        "--duration",
        type=int,
        default=60,
        help="Check duration in seconds (default: 60)",
    )
    parser.add_argument(
        "--queue-size",
        type=int,
        default=4096,
        help="Max buffer queue size (default: 4096)",
    )
    parser.add_argument(
        "--report-interval",
        type=int,
        default=10,
        help="Seconds between progress reports (default: 10)",
    )
    parser.add_argument(
        "--offset-ms",
        type=float,
        nargs=2,
        metavar=("LOWER", "UPPER"),
        default=None,
        help="Receiver clock offset bounds in milliseconds",
    )

    args = parser.parse_args()

    result = asyncio.run(run_check(
        url=args.url,
        duration=args.duration,
        queue_size=args.queue_size,
        report_interval=args.report_interval,
        offset_ms=tuple(args.offset_ms) if args.offset_ms else None,
    ))

    sys.exit(0 if result["events_dispatched"] > 0 else 1)


if __name__ == "__main__":
    main()
