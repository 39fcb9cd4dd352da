# Real-Time Weather Sync - Main Runner
# Keeps in-memory worlds' clock and weather in step with the real world.

from __future__ import annotations

import argparse
import asyncio
import logging
from dataclasses import replace
from typing import List, Optional

from dotenv import load_dotenv

from config import load_sync_config_from_env
from core.environment import EnvironmentKind, EnvironmentTarget, InMemoryEnvironments
from core.sync_engine import SyncEngine

logger = logging.getLogger("main")


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Sync world time and weather with the real world")
    parser.add_argument("--once", action="store_true", help="Validate and run a single tick of each feature")
    parser.add_argument("--world", action="append", help="Name of a normal world to manage (repeatable)")
    parser.add_argument("--debug", action="store_true", help="Enable debug logging")
    return parser


def build_environments(world_names: Optional[List[str]] = None) -> InMemoryEnvironments:
    names = [name.strip() for name in (world_names or ["world"]) if name.strip()] or ["world"]
    environments = InMemoryEnvironments(EnvironmentTarget(name) for name in names)
    environments.add(EnvironmentTarget(f"{names[0]}_nether", kind=EnvironmentKind.NETHER))
    return environments


async def _main() -> int:
    load_dotenv()
    args = _build_parser().parse_args()
    logging.basicConfig(
        level=logging.DEBUG if args.debug else logging.INFO,
        format="%(asctime)s | %(levelname)s | %(name)s | %(message)s",
    )

    config = load_sync_config_from_env()
    if args.debug:
        config = replace(config, debug=True)

    environments = build_environments(args.world)
    engine = SyncEngine(config, environments)

    try:
        if args.once:
            await engine.start(schedule=False)
            if engine.time_enabled:
                await engine.sync_time_once()
            if engine.weather_enabled:
                await engine.sync_weather_once()
            for target in environments.targets:
                print(target.to_dict())
            return 0

        await engine.start()
        if not (engine.time_enabled or engine.weather_enabled):
            logger.error("Nothing to sync; both features are disabled")
            return 1
        await asyncio.Event().wait()
    finally:
        await engine.stop()
    return 0


def cli() -> int:
    try:
        return asyncio.run(_main())
    except KeyboardInterrupt:
        return 0


if __name__ == "__main__":
    raise SystemExit(cli())
