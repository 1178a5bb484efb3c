"""
LiveWatch Runtime v0.3.0-alpha (Build 2026.10)

LiveWatch runtime entrypoint.

This module owns:
- event loop creation
- config + environment loading
- monitored channel registration from config
- Discord runtime startup and orderly shutdown
"""

import asyncio
import os
import signal
import sys

from dotenv import load_dotenv

from runtime.version import as_string
from services.discord.client import DiscordClient
from services.twitch.api.streams import TwitchStreamsAPI
from services.twitch.workers.stream_probe import TwitchStreamProbe
from shared.config.monitor import load_monitor_config
from shared.logging.logger import get_logger
from shared.storage.channel_store import MonitoredChannelStore

log = get_logger("core.app")


async def main(stop_event: asyncio.Event):
    # --------------------------------------------------
    # ENV + CONFIG
    # --------------------------------------------------
    load_dotenv()
    log.info("Environment variables loaded")
    log.info(f"{as_string()} booting")

    config = load_monitor_config()

    # --------------------------------------------------
    # STORAGE
    # --------------------------------------------------
    store = MonitoredChannelStore(config.database_path)
    for entry in config.channels:
        store.register_channel(
            entry.channel_id,
            entry.display_name,
            timezone_override=entry.timezone,
        )
    log.info(f"Loaded {len(config.channels)} configured channel(s)")

    # --------------------------------------------------
    # PLATFORM CLIENTS
    # --------------------------------------------------
    probe = TwitchStreamProbe(
        TwitchStreamsAPI(
            client_id=os.getenv("TWITCH_CLIENT_ID", ""),
            client_secret=os.getenv("TWITCH_CLIENT_SECRET", ""),
        )
    )

    client = DiscordClient(config=config, store=store, probe=probe)
    client_task = asyncio.create_task(client.run())

    # --------------------------------------------------
    # BLOCK UNTIL SHUTDOWN SIGNAL (OR CLIENT EXIT)
    # --------------------------------------------------
    stop_task = asyncio.create_task(stop_event.wait())
    done, _ = await asyncio.wait(
        {client_task, stop_task},
        return_when=asyncio.FIRST_COMPLETED,
    )

    if client_task in done and not client_task.cancelled() and client_task.exception():
        log.error(f"Discord runtime exited with error: {client_task.exception()}")

    log.info("Shutdown initiated")

    # --------------------------------------------------
    # ORDERLY SHUTDOWN
    # --------------------------------------------------
    try:
        await client.shutdown()
    except Exception as e:
        log.warning(f"Discord shutdown error ignored: {e}")

    stop_task.cancel()
    log.info("LiveWatch stopped")


# ----------------------------------------------------------------------
# SIGNAL HANDLING (WINDOWS-SAFE)
# ----------------------------------------------------------------------

def _install_signal_handlers(
    loop: asyncio.AbstractEventLoop,
    stop_event: asyncio.Event,
):
    """
    Windows-safe Ctrl+C handler.
    Uses signal.signal + asyncio.Event to unwind cleanly.
    """

    def _handler(signum, frame):
        try:
            loop.call_soon_threadsafe(stop_event.set)
        except Exception:
            stop_event.set()

    try:
        signal.signal(signal.SIGINT, _handler)
        signal.signal(signal.SIGTERM, _handler)
    except Exception:
        pass


# ----------------------------------------------------------------------
# ENTRYPOINT
# ----------------------------------------------------------------------

def run():
    loop = asyncio.new_event_loop()
    asyncio.set_event_loop(loop)

    stop_event = asyncio.Event()
    _install_signal_handlers(loop, stop_event)

    try:
        loop.run_until_complete(main(stop_event))

    except KeyboardInterrupt:
        log.info("KeyboardInterrupt received — shutdown initiated")
        try:
            stop_event.set()
            loop.run_until_complete(asyncio.sleep(0))
        except Exception:
            pass

    finally:
        # --------------------------------------------------
        # CANCEL REMAINING TASKS (CLEANLY)
        # --------------------------------------------------
        pending = [t for t in asyncio.all_tasks(loop) if not t.done()]
        for task in pending:
            task.cancel()

        if pending:
            try:
                loop.run_until_complete(
                    asyncio.gather(*pending, return_exceptions=True)
                )
            except Exception:
                pass

        # --------------------------------------------------
        # FINAL LOOP CLEANUP
        # --------------------------------------------------
        try:
            loop.run_until_complete(loop.shutdown_asyncgens())
        except Exception:
            pass

        asyncio.set_event_loop(None)
        loop.close()


if __name__ == "__main__":
    run()
    sys.exit(0)
