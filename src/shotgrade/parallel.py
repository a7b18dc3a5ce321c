"""Parallel processing utilities for shotgrade.

Uses ProcessPoolExecutor: the analysis passes are CPU-bound numpy work and
each image is independent.
"""

from __future__ import annotations

import logging
import os
from concurrent.futures import Future, ProcessPoolExecutor, as_completed
from concurrent.futures import TimeoutError as FutureTimeout
from dataclasses import replace
from pathlib import Path
from typing import Any, Callable, Iterator, Mapping, Sequence, Union

from shotgrade.analyze import ImageAnalysis, failed_analysis
from shotgrade.config import DEFAULT_CONCURRENCY, ScoringConfig
from shotgrade.scoring.types import ScoreSignals

logger = logging.getLogger(__name__)

MAX_WORKERS = 16

# A path, or a path with its EXIF-derived signals
BatchItem = Union[Path, str, tuple[Union[Path, str], ScoreSignals]]


def _process_single_image(
    path_str: str,
    signals: ScoreSignals | None,
    profile: str | Mapping[str, float] | None,
    config: ScoringConfig,
    skip_composition: bool,
) -> ImageAnalysis:
    """Analyze one image (runs in worker process).

    Imports locally so the worker does not depend on module-level state of
    the parent process.
    """
    from shotgrade.analyze import analyze_path

    try:
        return analyze_path(
            path_str,
            signals=signals,
            profile=profile,
            config=config,
            skip_composition=skip_composition,
        )
    except Exception as e:
        return failed_analysis(path_str, str(e), config)


def _split(item: BatchItem) -> tuple[str, ScoreSignals | None]:
    if isinstance(item, tuple):
        path, signals = item
        return str(path), signals
    return str(item), None


def _picklable(config: ScoringConfig) -> ScoringConfig:
    # mappingproxy objects cannot cross process boundaries
    return replace(
        config, profiles={name: dict(w) for name, w in config.profiles.items()}
    )


def _run_jobs(
    fn: Callable[..., Any],
    jobs: Sequence[tuple[str, tuple]],
    workers: int,
    timeout: float | None = None,
) -> Iterator[tuple[str, Any, Exception | None]]:
    """Run ``fn(*args)`` for each ``(key, args)`` job in a process pool.

    Yields (key, value, error); error is None when the job succeeded. Without
    a timeout, jobs come back in completion order. With one, they are
    waited for in submission order for at most ``timeout`` seconds each; if
    any job times out the pool is not joined and its workers are terminated,
    so a hung job cannot block the batch.
    """
    executor = ProcessPoolExecutor(max_workers=workers)
    timed_out = False
    try:
        futures: dict[Future[Any], str] = {
            executor.submit(fn, *args): key for key, args in jobs
        }
        ordered = futures if timeout is not None else as_completed(futures)
        for future in ordered:
            value, error = None, None
            try:
                value = future.result(timeout=timeout)
            except FutureTimeout as e:
                timed_out = True
                future.cancel()
                error = e
            except Exception as e:
                error = e
            yield futures[future], value, error
    finally:
        # shutdown() drops the process table, so grab it first
        processes = list((executor._processes or {}).values()) if timed_out else []
        executor.shutdown(wait=not timed_out, cancel_futures=timed_out)
        for process in processes:
            if process.is_alive():
                process.terminate()


def process_images_parallel(
    items: Sequence[BatchItem],
    workers: int | None = None,
    profile: str | Mapping[str, float] | None = "general",
    config: ScoringConfig | None = None,
    skip_composition: bool = False,
    timeout: float | None = None,
) -> Iterator[ImageAnalysis]:
    """Analyze many images in parallel.

    Args:
        items: Paths, or (path, ScoreSignals) pairs.
        workers: Worker processes (default: config.concurrency).
        profile: Weight profile for every image.
        config: Scoring configuration.
        skip_composition: Leave out the composition pass.
        timeout: Seconds to wait for each image before giving up on it.

    Yields:
        ImageAnalysis per item, in completion order (submission order when a
        timeout is set). Failed images yield success=False, never raise.
    """
    if not items:
        return

    config = config or ScoringConfig()
    if workers is None:
        workers = config.concurrency

    workers = max(1, min(workers, MAX_WORKERS, len(items)))
    worker_config = _picklable(config)

    jobs = []
    for item in items:
        path_str, signals = _split(item)
        jobs.append(
            (path_str, (path_str, signals, profile, worker_config, skip_composition))
        )

    for key, result, error in _run_jobs(_process_single_image, jobs, workers, timeout):
        if isinstance(error, FutureTimeout):
            logger.warning("Analysis of %s timed out after %ss", key, timeout)
            result = failed_analysis(key, f"timed out after {timeout}s", config)
        elif error is not None:
            logger.warning("Worker failed on %s: %s", key, error)
            result = failed_analysis(key, str(error), config)

        logger.debug("Finished %s (overall=%d)", key, result.score.overall)
        yield result


def analyze_batch(
    items: Sequence[BatchItem],
    workers: int | None = None,
    profile: str | Mapping[str, float] | None = "general",
    config: ScoringConfig | None = None,
    skip_composition: bool = False,
    timeout: float | None = None,
    progress: bool = False,
) -> list[ImageAnalysis]:
    """Analyze a batch and collect the results, optionally with a progress bar."""
    results = process_images_parallel(
        items,
        workers=workers,
        profile=profile,
        config=config,
        skip_composition=skip_composition,
        timeout=timeout,
    )

    if not progress:
        return list(results)

    from shotgrade.ui import create_progress

    collected = []
    with create_progress() as bar:
        task = bar.add_task("[cyan]Analyzing images...", total=len(items))
        for result in results:
            bar.update(task, description=f"[cyan]Analyzed {Path(result.key).name}")
            collected.append(result)
            bar.advance(task)
    return collected


def get_default_workers() -> int:
    """Default worker count: the configured concurrency, capped by CPUs."""
    return max(1, min(DEFAULT_CONCURRENCY, os.cpu_count() or DEFAULT_CONCURRENCY))
