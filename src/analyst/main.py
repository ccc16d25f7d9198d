"""Entry point: run one analysis from a JSON request and print the outcome."""

import argparse
import asyncio
import json
import signal
import sys

import httpx
import structlog
from pydantic import ValidationError

from analyst.cancellation import CancellationToken
from analyst.config import Settings
from analyst.models.analysis import AnalysisOutcome, AnalysisRequest, OutcomeStatus
from analyst.pipeline import AnalystPipeline
from analyst.price_client import PriceClient
from analyst.prompt_builder import PromptBuilder
from analyst.reasoning_client import create_reasoning_client
from analyst.recommendation_validator import RecommendationValidator
from analyst.search_client import SearchClient

logger = structlog.get_logger()

EXIT_CODES = {
    OutcomeStatus.COMPLETED: 0,
    OutcomeStatus.FAILED: 1,
    OutcomeStatus.CANCELED: 130,
}


def build_pipeline(settings: Settings, http: httpx.AsyncClient) -> AnalystPipeline:
    """Wire all components around one shared HTTP client."""
    price_client = PriceClient(settings, http)
    return AnalystPipeline(
        settings=settings,
        price_client=price_client,
        reasoning_client=create_reasoning_client(settings, http),
        search_client=SearchClient(settings, http),
        prompt_builder=PromptBuilder(settings),
        validator=RecommendationValidator(settings, price_client),
    )


async def main(raw_request: str) -> AnalysisOutcome:
    settings = Settings()
    try:
        request = AnalysisRequest.model_validate_json(raw_request or "{}")
    except ValidationError as e:
        logger.warning("invalid_request", errors=e.error_count())
        return AnalysisOutcome(status=OutcomeStatus.FAILED, error=str(e))
    token = CancellationToken()

    loop = asyncio.get_running_loop()

    def _signal_handler() -> None:
        logger.info("shutdown_signal_received")
        token.cancel("client disconnected")

    if sys.platform != "win32":
        for sig in (signal.SIGTERM, signal.SIGINT):
            loop.add_signal_handler(sig, _signal_handler)
    else:
        signal.signal(signal.SIGINT, lambda *_: loop.call_soon_threadsafe(_signal_handler))

    async with httpx.AsyncClient() as http:
        pipeline = build_pipeline(settings, http)
        return await pipeline.run(request, token)


def render(outcome: AnalysisOutcome) -> dict:
    if outcome.status is OutcomeStatus.COMPLETED and outcome.response is not None:
        return outcome.response.model_dump(mode="json", by_alias=True)
    return {"status": outcome.status.value, "error": outcome.error}


def cli() -> None:
    parser = argparse.ArgumentParser(description="Run one portfolio analysis.")
    parser.add_argument("request", nargs="?", help="request JSON file (stdin when omitted)")
    args = parser.parse_args()

    if args.request:
        with open(args.request, encoding="utf-8") as fh:
            raw = fh.read()
    else:
        raw = sys.stdin.read()

    outcome = asyncio.run(main(raw))
    print(json.dumps(render(outcome), ensure_ascii=False, indent=2))
    sys.exit(EXIT_CODES[outcome.status])


if __name__ == "__main__":
    cli()
