#!/usr/bin/env python
"""
Scheduler Benchmark Tool for tubeq

Measures schedule / reserve / delete throughput of DelayedScheduler against
the in-memory store and, optionally, a live Redis server. Concurrent
reservation runs also verify that no payload is handed out twice.

Usage (after `pip install -e ".[tools]"`):
    python tools/benchmark_scheduler.py
    python tools/benchmark_scheduler.py --operations 5000 --stores memory,redis
    python tools/benchmark_scheduler.py --redis-url redis://localhost:6379/15
    python tools/benchmark_scheduler.py --help

Leases last TUBEQ_DEFAULT_LEASE_MILLIS. The Redis run uses a throw-away key
prefix under TUBEQ_KEY_PREFIX and deletes its tube afterwards.
"""
from __future__ import annotations

import asyncio
import statistics
import uuid
from dataclasses import dataclass, field
from time import perf_counter

import typer
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from tubeq import (
    DelayedScheduler,
    InMemorySortedSetStore,
    RedisSortedSetStore,
    SortedSetStorePort,
    configure_logging,
    get_settings,
)

app = typer.Typer(
    help="Benchmark tubeq schedulers",
    add_completion=False,
)

TUBE = "benchmark"


# ---------------------------------------------------------------------------
# Data Classes
# ---------------------------------------------------------------------------


@dataclass
class BenchmarkConfig:
    """Configuration for benchmark runs."""

    operations: int = 1000
    concurrency_levels: list[int] = field(default_factory=lambda: [10, 50])
    batch_size: int = 10
    lease_millis: int = 60_000
    stores: list[str] = field(default_factory=lambda: ["memory"])
    redis_url: str = "redis://localhost:6379/0"
    key_prefix: str = "tubeq:"


@dataclass
class BenchmarkResult:
    """Results from a single benchmark run."""

    store_name: str
    operation: str
    total_ops: int
    total_time: float
    latencies: list[float]  # seconds
    duplicates: int = 0

    @property
    def ops_per_sec(self) -> float:
        return self.total_ops / self.total_time if self.total_time > 0 else 0.0

    @property
    def p50(self) -> float:
        return statistics.median(self.latencies) if self.latencies else 0.0

    @property
    def p99(self) -> float:
        if not self.latencies:
            return 0.0
        ordered = sorted(self.latencies)
        return ordered[min(int(len(ordered) * 0.99), len(ordered) - 1)]

    @staticmethod
    def format_latency_ms(seconds: float) -> str:
        ms = seconds * 1000
        if ms < 1:
            return f"{ms:.3f}ms"
        elif ms < 10:
            return f"{ms:.2f}ms"
        return f"{ms:.1f}ms"


# ---------------------------------------------------------------------------
# Core Benchmark Functions
# ---------------------------------------------------------------------------


async def benchmark_schedule(scheduler: DelayedScheduler, payloads: list[str]) -> list[float]:
    """One scripted schedule() per payload, sequentially."""
    latencies = []
    for payload in payloads:
        start = perf_counter()
        await scheduler.schedule(TUBE, payload, 0, 0)
        latencies.append(perf_counter() - start)
    return latencies


async def benchmark_schedule_multi(
    scheduler: DelayedScheduler,
    payloads: list[str],
    batch_size: int,
) -> list[float]:
    """Pipelined schedule_multi() in chunks of batch_size."""
    latencies = []
    for i in range(0, len(payloads), batch_size):
        start = perf_counter()
        await scheduler.schedule_multi(TUBE, payloads[i : i + batch_size], 0)
        latencies.append(perf_counter() - start)
    return latencies


async def benchmark_concurrent_reserve(
    scheduler: DelayedScheduler,
    n: int,
    concurrency: int,
    config: BenchmarkConfig,
) -> tuple[list[float], int]:
    """
    Drain n jobs with `concurrency` workers reserving batch_size at a time.

    Returns the per-call latencies and the number of payloads that were
    handed out more than once (always 0 for a correct store).
    """
    latencies: list[float] = []
    seen: set[str] = set()
    duplicates = 0

    async def worker() -> None:
        nonlocal duplicates
        while True:
            start = perf_counter()
            jobs = await scheduler.reserve_multi(TUBE, config.lease_millis, config.batch_size)
            latencies.append(perf_counter() - start)
            if not jobs:
                return
            for job in jobs:
                if job.payload in seen:
                    duplicates += 1
                seen.add(job.payload)

    await asyncio.gather(*(worker() for _ in range(concurrency)))
    return latencies, duplicates


async def benchmark_delete(scheduler: DelayedScheduler, payloads: list[str]) -> list[float]:
    """Acknowledge every leased payload, sequentially."""
    latencies = []
    for payload in payloads:
        start = perf_counter()
        await scheduler.delete_job(TUBE, payload)
        latencies.append(perf_counter() - start)
    return latencies


# ---------------------------------------------------------------------------
# Store Setup
# ---------------------------------------------------------------------------


def create_store(store_name: str, config: BenchmarkConfig) -> SortedSetStorePort:
    if store_name == "memory":
        return InMemorySortedSetStore()
    elif store_name == "redis":
        return RedisSortedSetStore.from_url(config.redis_url)
    raise ValueError(f"Unknown store: {store_name}")


async def _clear(store: SortedSetStorePort, scheduler: DelayedScheduler) -> None:
    keys = scheduler.keys
    await store.sweep(keys.ready(TUBE), float("inf"))
    await store.sweep(keys.running(TUBE), float("inf"))


# ---------------------------------------------------------------------------
# Benchmark Runner
# ---------------------------------------------------------------------------


async def run_store_benchmark(store_name: str, config: BenchmarkConfig) -> list[BenchmarkResult]:
    """Run every scenario against one store."""
    store = create_store(store_name, config)
    scheduler = DelayedScheduler(store, prefix=f"{config.key_prefix}bench-{uuid.uuid4().hex[:8]}:")
    payloads = [f"job-{i:07d}" for i in range(config.operations)]
    results = []

    def record(operation: str, total_ops: int, total_time: float, latencies: list[float], duplicates: int = 0) -> None:
        results.append(
            BenchmarkResult(
                store_name=store_name,
                operation=operation,
                total_ops=total_ops,
                total_time=total_time,
                latencies=latencies,
                duplicates=duplicates,
            )
        )

    try:
        start = perf_counter()
        latencies = await benchmark_schedule(scheduler, payloads)
        record("schedule", len(payloads), perf_counter() - start, latencies)
        await _clear(store, scheduler)

        start = perf_counter()
        latencies = await benchmark_schedule_multi(scheduler, payloads, config.batch_size)
        record(f"schedule-multi-b{config.batch_size}", len(payloads), perf_counter() - start, latencies)

        for concurrency in config.concurrency_levels:
            await _clear(store, scheduler)
            await scheduler.schedule_multi(TUBE, payloads, 0)
            start = perf_counter()
            latencies, duplicates = await benchmark_concurrent_reserve(
                scheduler, len(payloads), concurrency, config
            )
            record(f"reserve-c{concurrency}", len(payloads), perf_counter() - start, latencies, duplicates)

        start = perf_counter()
        latencies = await benchmark_delete(scheduler, payloads)
        record("delete", len(payloads), perf_counter() - start, latencies)
    finally:
        await _clear(store, scheduler)
        if isinstance(store, RedisSortedSetStore):
            await store.aclose()

    return results


# ---------------------------------------------------------------------------
# Result Formatting
# ---------------------------------------------------------------------------


def format_results(results: list[BenchmarkResult]) -> None:
    console = Console()

    by_store: dict[str, list[BenchmarkResult]] = {}
    for result in results:
        by_store.setdefault(result.store_name, []).append(result)

    console.print()
    console.print(Panel("[bold cyan]Scheduler Benchmark Results[/bold cyan]", expand=False))

    for store_name, store_results in by_store.items():
        console.print()
        console.print(f"[bold yellow]Store: {store_name}[/bold yellow]")
        console.print()

        table = Table(show_header=True, header_style="bold magenta")
        table.add_column("Operation", style="cyan", width=20)
        table.add_column("Jobs/sec", justify="right", style="green")
        table.add_column("P50", justify="right")
        table.add_column("P99", justify="right")
        table.add_column("Duplicates", justify="right")

        for result in store_results:
            table.add_row(
                result.operation,
                f"{result.ops_per_sec:.1f}",
                result.format_latency_ms(result.p50),
                result.format_latency_ms(result.p99),
                f"[red]{result.duplicates}[/red]" if result.duplicates else "0",
            )

        console.print(table)

    console.print()


# ---------------------------------------------------------------------------
# CLI
# ---------------------------------------------------------------------------


@app.command()
def main(
    operations: int = typer.Option(
        1000,
        "--operations",
        "-n",
        help="Number of jobs per benchmark",
    ),
    stores: str = typer.Option(
        "memory",
        "--stores",
        "-s",
        help="Comma-separated stores to test (memory, redis)",
    ),
    redis_url: str = typer.Option(
        None,
        "--redis-url",
        help="Redis URL for the redis store (default: TUBEQ_REDIS_URL)",
    ),
    batch_size: int = typer.Option(
        10,
        "--batch-size",
        "-b",
        help="Jobs per reserve_multi / schedule_multi call",
    ),
) -> None:
    """
    Benchmark tubeq's DelayedScheduler.

    Reports jobs/sec and p50/p99 call latency for schedule, pipelined
    schedule_multi, concurrent reserve_multi (10 and 50 workers) and delete.
    """
    settings = get_settings()
    configure_logging(settings)

    config = BenchmarkConfig(
        operations=operations,
        batch_size=batch_size,
        stores=[s.strip() for s in stores.split(",") if s.strip()],
        redis_url=redis_url or settings.redis_url,
        key_prefix=settings.key_prefix,
        lease_millis=settings.default_lease_millis,
    )

    console = Console(stderr=True)
    all_results = []
    for store_name in config.stores:
        try:
            all_results.extend(asyncio.run(run_store_benchmark(store_name, config)))
        except Exception as e:
            console.print(f"[red]Error benchmarking {store_name}: {e}[/red]")

    if not all_results:
        console.print("No benchmark results to display.")
        raise typer.Exit(code=1)

    format_results(all_results)
    if any(result.duplicates for result in all_results):
        raise typer.Exit(code=2)


if __name__ == "__main__":
    app()
