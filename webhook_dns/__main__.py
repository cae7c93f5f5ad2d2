"""
Main entry point for webhook-dns.

Serves the configured provider over the webhook protocol until interrupted.
"""

import asyncio
import logging
import signal
import sys
from pathlib import Path

from webhook_dns.config.config import Config
from webhook_dns.provider.loader import load_provider
from webhook_dns.server.dispatcher import WebhookDispatcher
from webhook_dns.server.server import WebhookServer


async def serve(config: Config) -> None:
    """Run the webhook server on the current event loop until SIGTERM or cancellation."""
    logger = logging.getLogger("webhook-dns")

    domain_filter = config.build_domain_filter()
    provider = load_provider(
        config.provider_factory,
        config.provider_options,
        domain_filter=domain_filter,
    )
    logger.info(f"Loaded provider {config.provider_factory}")
    if domain_filter.is_configured():
        logger.info(
            f"Announcing domain filter include={list(domain_filter.include)} "
            f"exclude={list(domain_filter.exclude)}"
        )

    loop = asyncio.get_running_loop()
    stopped = asyncio.Event()
    loop.add_signal_handler(signal.SIGTERM, stopped.set)

    dispatcher = WebhookDispatcher(provider, domain_filter=domain_filter)
    server = WebhookServer(
        dispatcher,
        host=config.server_host,
        port=config.server_port,
        loop=loop,
    )
    try:
        server.start()
        await stopped.wait()
        logger.info("Received SIGTERM, shutting down")
    finally:
        server.stop()
        loop.remove_signal_handler(signal.SIGTERM)


def main():
    """Console script entry point."""
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%H:%M:%S",
        handlers=[logging.StreamHandler(sys.stdout)],
    )
    logger = logging.getLogger("webhook-dns")

    config_path = Path(sys.argv[1]) if len(sys.argv) > 1 else None
    config = Config.from_yaml(config_path)

    # Set log level from configuration
    log_level = getattr(logging, config.log_level.upper(), logging.INFO)
    logging.getLogger().setLevel(log_level)
    # Set httpx logger level to WARNING unless root is DEBUG
    httpx_log_level = logging.DEBUG if log_level == logging.DEBUG else logging.WARNING
    logging.getLogger("httpx").setLevel(httpx_log_level)

    logger.info("Starting webhook-dns")
    try:
        asyncio.run(serve(config))
    except KeyboardInterrupt:
        logger.info("Shutting down webhook-dns")


if __name__ == "__main__":
    main()
