"""Protean Engine runner for the marketplace domain.

Starts Engine workers that process events asynchronously in production:
- OutboxProcessor: polls outbox table, publishes events to Redis Streams
- StreamSubscriptions: reads Redis Streams, invokes event handlers
  (review notifications)

Usage:
    python src/server.py
"""

import asyncio

from protean.server.engine import Engine


async def run():
    from marketplace.domain import marketplace

    marketplace.init()
    await Engine(marketplace).run()


def main():
    asyncio.run(run())


if __name__ == "__main__":
    main()
