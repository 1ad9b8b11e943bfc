"""describer-run command-line entry-point and reusable `run()` helper.

Describes a batch of images with a multimodal chat-completions provider,
then writes the completed results as CSV.

Example – CSV of image URLs
---------------------------
>>> describer-run \
        --input images.csv \
        --model gpt-4o-mini --template marketing \
        --api-key $DESCRIBER_API_KEY

Example – local files, printing a paste-ready table
---------------------------------------------------
>>> describer-run --image shoe.jpg --image bag.png --table --retry-failed 1

Users who prefer Python can also import ``run`` directly::

    from describer.cli import run
    from describer.sources import read_csv_items

    run(items=read_csv_items("images.csv"), settings=settings)
"""
from __future__ import annotations

import argparse
import logging
import signal
import sys
from pathlib import Path
from typing import List, Optional

from describer import export
from describer.backend import DescriptionBackend, HttpDescriptionBackend, MockDescriptionBackend
from describer.config import resolve_settings
from describer.exceptions import ConfigurationError, EmptyResultSet
from describer.models import ResultStatus, Settings, WorkItem
from describer.persistence import LocalStore, default_path
from describer.prompts import MODELS, PROMPT_TEMPLATES
from describer.runner import BatchEvent, BatchRunner, CancelToken, drain
from describer.sources import item_from_argument, read_csv_items
from describer.store import BatchStore

logger = logging.getLogger(__name__)


###############################################################################
# Internal helpers
###############################################################################

def _install_signal_handlers(cancel: CancelToken):
    def _handler(signum, _):
        logger.info("Signal %s received – finishing the current item and stopping…", signum)
        cancel.cancel()

    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            signal.signal(sig, _handler)
        except ValueError:
            # In threads / unsuitable contexts just ignore.
            pass


def _report(event: BatchEvent):
    status = "ok" if event.outcome.succeeded else f"failed: {event.record.failure_message}"
    logger.info("[%d/%d] %s %s", event.completed, event.total, event.item.display_name, status)

###############################################################################
# Public runner API (can be imported)
###############################################################################

def run(
    *,
    items: List[WorkItem],
    settings: Settings,
    output_path: Optional[str | Path] = None,
    print_table: bool = False,
    retry_passes: int = 0,
    delay: float = 1.0,
    request_timeout: float = 120,
    backend: Optional[DescriptionBackend] = None,
    cancel: Optional[CancelToken] = None,
) -> BatchStore:
    """Run items through the backend, retry failures, and export the completed results."""
    if backend is None:
        if settings.use_mock:
            backend = MockDescriptionBackend()
        else:
            backend = HttpDescriptionBackend(request_timeout=request_timeout)

    store = BatchStore()
    runner = BatchRunner(store, backend, delay=delay)
    cancel = cancel or CancelToken()

    logger.info("Describing %d items with %s", len(items), settings.model)
    drain(runner.run(items, settings.model, settings.prompt, settings.credentials, cancel=cancel), _report)

    for attempt in range(retry_passes):
        if cancel.cancelled or not store.ids_with_status(ResultStatus.FAILED):
            break
        logger.info("Retry pass %d of %d", attempt + 1, retry_passes)
        drain(runner.retry_all_failed(cancel=cancel), _report)

    counts = store.counts()
    logger.info("Finished: %d completed, %d failed", counts.completed, counts.failed)

    results = store.results()
    try:
        export.write_csv(results, output_path)
        if print_table:
            print(export.to_table(results))
    except EmptyResultSet as e:
        logger.warning("%s", e)

    return store

###############################################################################
# CLI entry‑point
###############################################################################

def _build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="describer-run",
        description="Describe images with a multimodal chat-completions API",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter,
    )

    # item sources
    p.add_argument("--input", help="CSV file of image_url[,note] rows")
    p.add_argument("--image", action="append", default=[], help="Image path or URL (repeatable)")
    p.add_argument("--note", default="", help="Note attached to every --image")

    # outputs
    p.add_argument("--output", help="CSV export path (default: dated file in the current directory)")
    p.add_argument("--table", action="store_true", help="Print a tab-separated table to stdout")

    # provider settings; unset values fall back to the environment and stored settings
    p.add_argument("--api-key", help="Provider API key")
    p.add_argument("--base-url", help="Provider base URL")
    p.add_argument("--model", help=f"Model id, e.g. {', '.join(MODELS)}")
    prompt = p.add_mutually_exclusive_group()
    prompt.add_argument("--prompt", help="Prompt text")
    prompt.add_argument("--template", choices=sorted(PROMPT_TEMPLATES), help="Named prompt template")
    p.add_argument("--mock", action="store_true", default=None, help="Use the offline mock backend")
    p.add_argument("--storage", default=str(default_path()), help="Settings/history file path")
    p.add_argument("--save-settings", action="store_true", help="Persist the resolved settings")

    # pacing
    p.add_argument("--delay", type=float, default=1.0, help="Seconds between items")
    p.add_argument("--timeout", type=float, default=120, help="Provider request timeout in seconds")
    p.add_argument("--retry-failed", type=int, default=0, help="Bulk retry passes over failed items")

    return p


def main(argv: Optional[list[str]] = None) -> int:
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(message)s")
    logging.getLogger("urllib3").setLevel(logging.WARNING)
    parser = _build_parser()
    args = parser.parse_args(argv)

    items: List[WorkItem] = []
    if args.input:
        items.extend(read_csv_items(args.input))
    items.extend(item_from_argument(value, args.note) for value in args.image)
    if not items:
        parser.error("no images given; use --input and/or --image")

    storage = LocalStore(args.storage)
    settings = resolve_settings(storage, overrides={
        "api_key": args.api_key,
        "base_url": args.base_url,
        "model": args.model,
        "prompt": PROMPT_TEMPLATES[args.template].content if args.template else args.prompt,
        "use_mock": args.mock,
    })
    if args.save_settings:
        storage.save_settings(settings)

    cancel = CancelToken()
    _install_signal_handlers(cancel)

    try:
        store = run(
            items=items,
            settings=settings,
            output_path=args.output,
            print_table=args.table,
            retry_passes=args.retry_failed,
            delay=args.delay,
            request_timeout=args.timeout,
            cancel=cancel,
        )
    except ConfigurationError as e:
        logger.error("%s", e)
        return 2

    return 0 if store.counts().failed == 0 else 1


if __name__ == "__main__":
    sys.exit(main())
