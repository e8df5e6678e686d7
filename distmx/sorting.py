"""Sorting routines: sequential insertion, a pipeline of sorter cells, and merge sorts."""

from __future__ import annotations

import argparse
import queue
import random
import threading
import time
from collections import deque
from collections.abc import Callable, Iterable, Sequence

DEFAULT_MAX = 999
PIPELINE_SIZE = 200
MERGE_SIZE = 20


def generate_values(size, max_value=DEFAULT_MAX, rng=None):
    """Return ``size`` random integers in the open range (-max_value, max_value)."""
    if rng is None:
        rng = random.Random()
    return [rng.randrange(max_value) - rng.randrange(max_value) for _ in range(size)]


def insertion_sort(values: Iterable[int]) -> list[int]:
    """Insert each value before the first already placed value that is not smaller."""
    placed: list[int] = []
    for value in values:
        position = next(
            (index for index, current in enumerate(placed) if current >= value),
            len(placed),
        )
        placed.insert(position, value)
    return placed


def _sorter_cell(inbox: queue.Queue, outbox: queue.Queue, results: queue.Queue, end: int) -> None:
    kept = None
    while True:
        value = inbox.get()
        if value == end:
            results.put(kept)
            outbox.put(value)
            return
        if kept is None:
            kept = value
        elif value >= kept:
            outbox.put(value)
        else:
            outbox.put(kept)
            kept = value


def pipeline_sort(values: Iterable[int], max_value: int = DEFAULT_MAX) -> list[int]:
    """Sort through a chain of concurrent cells, one cell per value.

    Each cell keeps the smallest value it has seen and passes the rest on.
    ``max_value + 1`` marks the end of the stream, so no value may exceed
    ``max_value``.
    """
    values = list(values)
    too_large = [value for value in values if value > max_value]
    if too_large:
        raise ValueError(f"value {too_large[0]} exceeds the maximum {max_value}")
    end = max_value + 1

    channels = [queue.Queue(maxsize=2) for _ in range(len(values) + 1)]
    results: queue.Queue = queue.Queue()
    cells = [
        threading.Thread(
            target=_sorter_cell,
            args=(inbox, outbox, results, end),
            daemon=True,
        )
        for inbox, outbox in zip(channels, channels[1:])
    ]
    for cell in cells:
        cell.start()

    for value in values:
        channels[0].put(value)
    channels[0].put(end)

    ordered = [results.get() for _ in values]
    channels[-1].get()
    for cell in cells:
        cell.join()
    return ordered


def merge(left: Sequence[int], right: Sequence[int]) -> list[int]:
    """Merge two sorted sequences; on ties the right element goes first."""
    pending_left, pending_right = deque(left), deque(right)
    result: list[int] = []
    while pending_left and pending_right:
        source = pending_left if pending_left[0] < pending_right[0] else pending_right
        result.append(source.popleft())
    result.extend(pending_left)
    result.extend(pending_right)
    return result


def merge_sort(items: Iterable[int]) -> list[int]:
    """Classic merge sort that copies each half before sorting it."""
    items = list(items)
    if len(items) <= 1:
        return items
    middle = len(items) // 2
    left = items[:middle]
    right = items[middle:]
    return merge(merge_sort(left), merge_sort(right))


def merge_sort_slices(items: Sequence[int]) -> list[int]:
    """Merge sort working directly on slices of the input sequence."""
    if len(items) > 1:
        middle = len(items) // 2
        return merge(merge_sort_slices(items[:middle]), merge_sort_slices(items[middle:]))
    return list(items)


def _sort_halves_concurrently(
    items: Sequence[int],
    sorter: Callable[[Sequence[int]], list[int]],
    wait: Callable[[list[threading.Thread], queue.Queue], None],
) -> list[int]:
    middle = len(items) // 2
    halves: dict[str, list[int]] = {}
    errors: list[BaseException] = []
    done: queue.Queue = queue.Queue()

    def sort_half(key: str, part: Sequence[int]) -> None:
        try:
            halves[key] = sorter(part)
        except BaseException as exc:  # propagated to the caller below
            errors.append(exc)
        finally:
            done.put(key)

    workers = [
        threading.Thread(target=sort_half, args=(key, part), daemon=True)
        for key, part in (("upper", items[middle:]), ("lower", items[:middle]))
    ]
    for worker in workers:
        worker.start()
    wait(workers, done)
    if errors:
        raise errors[0]
    return merge(halves["upper"], halves["lower"])


def _wait_for_signals(workers: list[threading.Thread], done: queue.Queue) -> None:
    for _ in workers:
        done.get()


def _wait_by_joining(workers: list[threading.Thread], done: queue.Queue) -> None:
    for worker in workers:
        worker.join()


def merge_sort_threaded(items: Sequence[int]) -> list[int]:
    """Merge sort that sorts both halves in new threads, which signal when done."""
    if len(items) > 1:
        return _sort_halves_concurrently(items, merge_sort_threaded, _wait_for_signals)
    return list(items)


def merge_sort_joined(items: Sequence[int]) -> list[int]:
    """Merge sort that sorts both halves in new threads and joins them."""
    if len(items) > 1:
        return _sort_halves_concurrently(items, merge_sort_joined, _wait_by_joining)
    return list(items)


def _run_merge(size: int, rng: random.Random) -> None:
    values = generate_values(size, DEFAULT_MAX, rng)
    for label, sorter in (
        ("  -> Sorted ----------- secs: ", merge_sort),
        ("  -> mergeSortGo ------ secs: ", merge_sort_slices),
        ("  -> mergeSortGoPar --- secs: ", merge_sort_threaded),
        ("  -> mergeSortGoParWG - secs: ", merge_sort_joined),
    ):
        start = time.perf_counter()
        sorter(values)
        print(label, time.perf_counter() - start)


def _run_insertion(size: int, rng: random.Random) -> None:
    print("  ------ sequencial -------")
    print(insertion_sort(generate_values(size, DEFAULT_MAX, rng)))


def _run_pipeline(size: int, rng: random.Random) -> None:
    print("------ Pipe Sort -------")
    values = generate_values(size, DEFAULT_MAX, rng)
    for index, value in enumerate(values):
        print("Entra ", index, " ", value)
    for index, value in enumerate(pipeline_sort(values, DEFAULT_MAX)):
        print("   result  ", index, " ", value)


def main(argv=None) -> int:
    """Sort random values with the chosen method and print the outcome."""
    parser = argparse.ArgumentParser(
        prog="distmx-sort", description="Sort random integers sequentially or concurrently."
    )
    parser.add_argument(
        "mode",
        nargs="?",
        choices=("merge", "insertion", "pipeline"),
        default="merge",
        help="which sorting demonstration to run",
    )
    parser.add_argument("--size", type=int, help="how many values to sort")
    parser.add_argument("--seed", type=int, help="seed for the random values")
    args = parser.parse_args(argv)

    rng = random.Random(args.seed)
    runners = {
        "merge": (_run_merge, MERGE_SIZE),
        "insertion": (_run_insertion, PIPELINE_SIZE),
        "pipeline": (_run_pipeline, PIPELINE_SIZE),
    }
    runner, default_size = runners[args.mode]
    runner(default_size if args.size is None else args.size, rng)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())