#!/usr/bin/env -S uv run
"""
Queue Benchmark Tool for fsqueue

Benchmarks QueueStore publish/get throughput with and without compression,
using either the in-process lock or the flock-based lock.

Usage:
    uv run tools/benchmark_queue.py
    uv run tools/benchmark_queue.py --operations 5000 --payload-size 4096
    uv run tools/benchmark_queue.py --locks flock --modes compressed
    uv run tools/benchmark_queue.py --help
"""
# /// script
# requires-python = ">=3.12"
# dependencies = [
#     "pydantic>=2.0",
#     "structlog>=24.1",
#     "typer>=0.9.0",
#     "rich>=13.0",
# ]
# ///

from __future__ import annotations

import asyncio
import logging
import statistics
import sys
import tempfile
from dataclasses import dataclass, field
from pathlib import Path
from time import perf_counter

import structlog
import typer
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

# Import fsqueue from the local checkout
sys.path.insert(0, str(Path(__file__).parent.parent))

from fsqueue import FlockLock, InMemoryLock, LocalFilesystem, QueueStore

app = typer.Typer(
    help="Benchmark fsqueue publish/get throughput",
    add_completion=False,
)


# ---------------------------------------------------------------------------
# Data Classes
# ---------------------------------------------------------------------------


@dataclass
class BenchmarkConfig:
    """Configuration for benchmark runs."""

    operations: int = 1000
    concurrency: int = 8
    payload_size: int = 1000
    locks: list[str] = field(default_factory=lambda: ["memory", "flock"])
    modes: list[str] = field(default_factory=lambda: ["plain", "compressed"])


@dataclass
class BenchmarkResult:
    """Results from a single benchmark run."""

    setup_name: str
    operation: str
    total_ops: int
    total_time: float
    latencies: list[float]  # seconds
    data_bytes: int = 0

    @property
    def ops_per_sec(self) -> float:
        return self.total_ops / self.total_time if self.total_time > 0 else 0.0

    def percentile(self, q: float) -> float:
        if not self.latencies:
            return 0.0
        ordered = sorted(self.latencies)
        return ordered[min(int(len(ordered) * q), len(ordered) - 1)]

    @property
    def p50(self) -> float:
        return statistics.median(self.latencies) if self.latencies else 0.0

    @property
    def max_latency(self) -> float:
        return max(self.latencies) if self.latencies else 0.0

    @staticmethod
    def format_latency_ms(seconds: float) -> str:
        ms = seconds * 1000
        if ms < 1:
            return f"{ms:.3f}ms"
        elif ms < 10:
            return f"{ms:.2f}ms"
        else:
            return f"{ms:.1f}ms"


# ---------------------------------------------------------------------------
# Core Benchmark Functions
# ---------------------------------------------------------------------------


async def benchmark_sequential_publish(
    store: QueueStore, n: int, payload: bytes
) -> list[float]:
    """Publish N blocks one after another; return per-call latencies."""
    latencies = []
    for i in range(n):
        start = perf_counter()
        await store.publish(payload, {"seq": str(i)})
        latencies.append(perf_counter() - start)
    return latencies


async def benchmark_concurrent_publish(
    store: QueueStore, n: int, concurrency: int, payload: bytes
) -> list[float]:
    """Publish N blocks in batches of `concurrency` concurrent calls."""
    latencies = []

    async def publish_one(i: int) -> float:
        start = perf_counter()
        await store.publish(payload, {"seq": str(i)})
        return perf_counter() - start

    for i in range(0, n, concurrency):
        batch_size = min(concurrency, n - i)
        latencies.extend(
            await asyncio.gather(*[publish_one(i + j) for j in range(batch_size)])
        )
    return latencies


async def benchmark_sequential_get(store: QueueStore, n: int) -> list[float]:
    """Pop up to N blocks; stops early when the queue runs dry."""
    latencies = []
    for _ in range(n):
        start = perf_counter()
        block = await store.get()
        latencies.append(perf_counter() - start)
        if block is None:
            break
    return latencies


# ---------------------------------------------------------------------------
# Store Setup
# ---------------------------------------------------------------------------


def create_store(lock_name: str, mode: str, directory: Path) -> QueueStore:
    """
    Build a QueueStore for one benchmark setup.

    Parameters
    ----------
    lock_name : "memory" or "flock"
    mode      : "plain" or "compressed"
    directory : fresh queue directory
    """
    if lock_name == "memory":
        lock = InMemoryLock()
    elif lock_name == "flock":
        lock = FlockLock(f"{directory}.lock")
    else:
        raise ValueError(f"Unknown lock: {lock_name}")
    if mode not in ("plain", "compressed"):
        raise ValueError(f"Unknown mode: {mode}")
    return QueueStore(
        directory, LocalFilesystem(), lock, {"compress": mode == "compressed"}
    )


# ---------------------------------------------------------------------------
# Benchmark Runner
# ---------------------------------------------------------------------------


async def run_setup_benchmark(
    lock_name: str,
    mode: str,
    config: BenchmarkConfig,
    temp_dir: Path,
) -> list[BenchmarkResult]:
    """Run every scenario for one (lock, mode) combination."""
    name = f"{lock_name}/{mode}"
    # Repetitive JSON-ish payload so compression has something to work on.
    payload = (b'{"event": "benchmark", "value": 0}' * config.payload_size)[
        : config.payload_size
    ]
    results = []

    store = create_store(lock_name, mode, temp_dir / f"{lock_name}-{mode}-seq")
    start = perf_counter()
    latencies = await benchmark_sequential_publish(store, config.operations, payload)
    results.append(
        BenchmarkResult(
            setup_name=name,
            operation="publish-seq",
            total_ops=config.operations,
            total_time=perf_counter() - start,
            latencies=latencies,
            data_bytes=store.data_path.stat().st_size,
        )
    )

    start = perf_counter()
    latencies = await benchmark_sequential_get(store, config.operations)
    results.append(
        BenchmarkResult(
            setup_name=name,
            operation="get-seq",
            total_ops=len(latencies),
            total_time=perf_counter() - start,
            latencies=latencies,
        )
    )

    store = create_store(lock_name, mode, temp_dir / f"{lock_name}-{mode}-conc")
    start = perf_counter()
    latencies = await benchmark_concurrent_publish(
        store, config.operations, config.concurrency, payload
    )
    results.append(
        BenchmarkResult(
            setup_name=name,
            operation=f"publish-c{config.concurrency}",
            total_ops=config.operations,
            total_time=perf_counter() - start,
            latencies=latencies,
            data_bytes=store.data_path.stat().st_size,
        )
    )

    return results


# ---------------------------------------------------------------------------
# Result Formatting
# ---------------------------------------------------------------------------


def format_results(results: list[BenchmarkResult]) -> None:
    """Print one Rich table per setup."""
    console = Console()

    setups: dict[str, list[BenchmarkResult]] = {}
    for result in results:
        setups.setdefault(result.setup_name, []).append(result)

    console.print()
    console.print(
        Panel("[bold cyan]fsqueue Benchmark Results[/bold cyan]", expand=False)
    )

    for setup_name, setup_results in setups.items():
        console.print()
        console.print(f"[bold yellow]Setup: {setup_name}[/bold yellow]")
        console.print()

        table = Table(show_header=True, header_style="bold magenta")
        table.add_column("Operation", style="cyan", width=15)
        table.add_column("Ops/sec", justify="right", style="green")
        table.add_column("P50", justify="right")
        table.add_column("P95", justify="right")
        table.add_column("P99", justify="right")
        table.add_column("Max", justify="right")
        table.add_column("Data file", justify="right")

        for result in setup_results:
            table.add_row(
                result.operation,
                f"{result.ops_per_sec:.1f}",
                result.format_latency_ms(result.p50),
                result.format_latency_ms(result.percentile(0.95)),
                result.format_latency_ms(result.percentile(0.99)),
                result.format_latency_ms(result.max_latency),
                f"{result.data_bytes:,} B" if result.data_bytes else "-",
            )

        console.print(table)

    console.print()


# ---------------------------------------------------------------------------
# CLI
# ---------------------------------------------------------------------------


@app.command()
def main(
    operations: int = typer.Option(
        1000, "--operations", "-n", help="Number of operations per benchmark"
    ),
    payload_size: int = typer.Option(
        1000, "--payload-size", "-s", help="Body size in bytes"
    ),
    concurrency: int = typer.Option(
        8, "--concurrency", "-c", help="Concurrent publishers"
    ),
    locks: str = typer.Option(
        "memory,flock", "--locks", "-l", help="Comma-separated locks to test"
    ),
    modes: str = typer.Option(
        "plain,compressed", "--modes", "-m", help="Comma-separated modes to test"
    ),
) -> None:
    """
    Benchmark fsqueue publish and get.

    Measures throughput (ops/sec), latency percentiles and the resulting
    data-file size for each lock/compression combination.
    """
    structlog.configure(
        wrapper_class=structlog.make_filtering_bound_logger(logging.WARNING)
    )
    config = BenchmarkConfig(
        operations=operations,
        concurrency=concurrency,
        payload_size=payload_size,
        locks=[x.strip() for x in locks.split(",") if x.strip()],
        modes=[x.strip() for x in modes.split(",") if x.strip()],
    )

    all_results = []
    with tempfile.TemporaryDirectory() as temp_dir_str:
        temp_dir = Path(temp_dir_str)
        for lock_name in config.locks:
            for mode in config.modes:
                try:
                    all_results.extend(
                        asyncio.run(
                            run_setup_benchmark(lock_name, mode, config, temp_dir)
                        )
                    )
                except ValueError as e:
                    print(f"\nSkipping {lock_name}/{mode}: {e}", file=sys.stderr)

    if not all_results:
        print("\nNo benchmark results to display.", file=sys.stderr)
        raise typer.Exit(code=1)
    format_results(all_results)


if __name__ == "__main__":
    app()
