"""MarketScan — application entry point.

Builds the FastAPI read-only API and provides the CLI entry point for the
scan, evaluate, and all modes.
"""

import logging

from fastapi import FastAPI

from marketscan.api.routers import router

logger = logging.getLogger("marketscan")


def create_app(signal_repo) -> FastAPI:
    """Build the API around *signal_repo* (a ``SignalRepo`` or duck-type)."""
    app = FastAPI(title="MarketScan API", version="0.1.0")
    app.state.signal_repo = signal_repo
    app.include_router(router)

    @app.get("/health")
    async def health():
        return {"status": "ok"}

    return app


# ── CLI ──────────────────────────────────────────────────────────────────


def _run_cli() -> None:
    """Parse CLI arguments and dispatch to the appropriate mode."""
    import argparse
    import asyncio
    import signal

    from marketscan.config import load_config
    from marketscan.decision.http_client import HttpDecisionProvider
    from marketscan.evaluator import SignalEvaluator
    from marketscan.market.twelvedata import TwelveDataClient
    from marketscan.notify.telegram import TelegramNotifier
    from marketscan.repos.db import init_db
    from marketscan.repos.signal_repo import SignalRepo
    from marketscan.scanner import Scanner

    parser = argparse.ArgumentParser(description="MarketScan signal scanner")
    parser.add_argument(
        "--mode",
        choices=["scan", "evaluate", "all"],
        default="all",
        help="What to run (default: all, which also serves the API)",
    )
    parser.add_argument(
        "--once",
        action="store_true",
        help="Run a single cycle and exit",
    )
    args = parser.parse_args()

    config = load_config()
    logging.basicConfig(
        level=config.log_level.upper(),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )
    init_db(config.db_path)

    bar_source = TwelveDataClient(config.twelve_data_api_key, config.twelve_data_base_url)
    signal_repo = SignalRepo(config.db_path)
    notifier = TelegramNotifier(config.telegram_bot_token, config.telegram_chat_id)
    decision = (
        HttpDecisionProvider(config.decision_service_url)
        if config.decision_service_url
        else None
    )
    if decision is None:
        logger.warning("DECISION_SERVICE_URL not set, candidates will only be logged")

    runners = []
    if args.mode in ("scan", "all"):
        runners.append(
            (Scanner(config, bar_source, signal_repo, notifier, decision),
             config.scan_interval_seconds)
        )
    if args.mode in ("evaluate", "all"):
        runners.append(
            (SignalEvaluator(config, bar_source, signal_repo, notifier),
             config.evaluation_interval_seconds)
        )

    def handle_shutdown(signum, frame):
        logger.info("Shutdown signal received — stopping gracefully.")
        for runner, _ in runners:
            runner.stop()
        if server is not None:
            server.should_exit = True

    server = None
    if args.mode == "all" and not args.once:
        import uvicorn

        uvi_config = uvicorn.Config(
            create_app(signal_repo),
            host="0.0.0.0",
            port=config.api_port,
            log_level="info",
        )
        server = uvicorn.Server(uvi_config)

    signal.signal(signal.SIGINT, handle_shutdown)
    asyncio.run(_run(runners, server, args.once))


async def _run(runners, server, once: bool) -> None:
    """Run every cycle loop (and the API server, if any) concurrently."""
    import asyncio

    max_cycles = 1 if once else 0
    tasks = [runner.run(poll_interval=interval, max_cycles=max_cycles) for runner, interval in runners]
    if server is not None:
        logger.info("API available at http://localhost:%d", server.config.port)
        tasks.append(server.serve())

    results = await asyncio.gather(*tasks, return_exceptions=True)
    logger.info("MarketScan stopped. Results: %s", results)


if __name__ == "__main__":
    _run_cli()
