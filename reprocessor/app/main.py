import asyncio
import signal
import sys
from typing import Any

from loguru import logger

from reprocessor.app.application.work_loader import load_work_function
from reprocessor.app.composition import create_processor_dependencies
from reprocessor.app.config.settings import Settings
from reprocessor.app.core import SERVICE_NAME
from reprocessor.app.core.cancellation import CancellationToken
from reprocessor.app.domain.errors import WorkFunctionImportError


def _log(event: str, **kwargs: Any) -> None:
    logger.bind(service_name=SERVICE_NAME, event=event, **kwargs).info("")


def configure_logging(settings: Settings) -> None:
    logger.remove()
    logger.add(sys.stderr, level=settings.log_level.upper(), serialize=settings.log_json)


async def run_processor(settings: Settings | None = None) -> int:
    """Run one reprocessing pass. Returns the number of failure events recorded."""
    settings = settings or Settings()
    if not settings.work_function:
        raise WorkFunctionImportError("WORK_FUNCTION is not set")
    work = load_work_function(settings.work_function)

    deps = create_processor_dependencies(settings)

    cancellation = CancellationToken(deadline_seconds=settings.processing_deadline_seconds)

    def request_shutdown() -> None:
        if not cancellation.event.is_set():
            _log("shutdown_signal")
            cancellation.cancel()

    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, request_shutdown)
        except NotImplementedError:
            pass

    _log("processor_started", store_backend=settings.store_backend, work_function=settings.work_function)
    try:
        await deps.connect()
        errors = await deps.processor.process_all(work, cancellation=cancellation)
        metrics = deps.processor.get_metrics()
        _log("processor_metrics", **metrics.to_dict())
        for error in errors:
            logger.bind(service_name=SERVICE_NAME, event="unprocessed_record", **error.to_dict()).warning("")
        return len(errors)
    finally:
        await deps.close()
        _log("processor_stopped")


def main() -> None:
    settings = Settings()
    configure_logging(settings)
    try:
        failures = asyncio.run(run_processor(settings))
    except KeyboardInterrupt:
        _log("processor_interrupted")
        sys.exit(130)
    except Exception as e:
        logger.exception("processor failed: {}", e)
        raise
    sys.exit(1 if failures else 0)


if __name__ == "__main__":
    main()
