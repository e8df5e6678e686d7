# distmx

Small building blocks for studying concurrent and distributed programs.

- **`distmx.pp2plink`** is a point-to-point link over TCP.
  - Every message is sent as a frame: a four-digit, zero-padded length header and then the UTF-8 payload.
  - Outgoing connections are cached per destination and reused.
  - If a write fails, the link opens a fresh connection and tries once more.
- **`distmx.dimex`** is a distributed mutual exclusion module built on that link. It uses a logical clock and orders requests by `(timestamp, id)`.
- **`distmx.sorting`** holds sorting exercises:
  - a sequential insertion sort;
  - a pipeline of concurrent sorter cells, with one thread per value;
  - four merge sorts: two sequential and two that sort each half in a new thread.
- **`distmx.chat`** and **`distmx.use_dimex`** are the command-line programs described below.

## Installation

```
pip install .
```

To run the tests:

```
pip install .[test]
pytest
```

## Commands

### Sorting

```
distmx-sort [merge|insertion|pipeline] [--size N] [--seed S]
```

The command generates random integers between -998 and 998, sorts them with the chosen method, and prints the result. It takes these arguments:

- **mode** (optional): one of `merge`, `insertion` or `pipeline`. The default is `merge`.
- **`--size N`**: how many values to sort. The default is 20 for `merge` and 200 for the other two modes.
- **`--seed S`**: seeds the random generator, so the same values come back each time.

What each mode prints:

- **`merge`** sorts the same values with each of the four merge sorts and prints the time each one took, in seconds.
- **`insertion`** prints the sorted list.
- **`pipeline`** prints each value as it enters the pipeline, then each result in order.

### Chat

Start one process in each of two shells. In each one, give that process's own address first and the peer's address second:

```
distmx-chat 127.0.0.1:5001 127.0.0.1:6001
distmx-chat 127.0.0.1:6001 127.0.0.1:5001
```

- Each line typed on standard input is sent to the peer.
- Messages that arrive are printed as they come. The sender shown is the address the peer connected from.
- The chat ends at end of input or on Ctrl-C.
- If fewer than two addresses are given, it prints usage and exits with status 1.

### Distributed mutual exclusion

Start one process per shell. Each process gets its own id (0, 1, 2, …) and the same list of addresses. A process listens on the address at the position of its id:

```
distmx-dimex 0 127.0.0.1:5000 127.0.0.1:6001 127.0.0.1:7002
distmx-dimex 1 127.0.0.1:5000 127.0.0.1:6001 127.0.0.1:7002
distmx-dimex 2 127.0.0.1:5000 127.0.0.1:6001 127.0.0.1:7002
```

Each process first waits `--delay` seconds (default 5) so that the others can start. After that it repeats three steps, printing a trace line at each step:

1. it asks for the critical section;
2. it waits until access is granted;
3. it releases the critical section.

The options are:

- **`--file PATH`**: the process appends `|` on entering and `.` on leaving to the shared file at that path. When exclusion holds, the file is an unbroken sequence of `|.`.
- **`--iterations N`**: stop after N visits. Without it, the loop runs until Ctrl-C.
- **`--quiet`**: turn off the protocol debug traces of the link and the mutual exclusion module.

## Library use

```python
from distmx.sorting import insertion_sort, merge_sort, merge_sort_threaded, pipeline_sort
from distmx.dimex import before
from distmx.pp2plink import encode_frame, decode_length

values = [5, -3, 12, 0, 7]
assert insertion_sort(values) == sorted(values)
assert merge_sort(values) == sorted(values)
assert merge_sort_threaded(values) == sorted(values)
assert pipeline_sort(values, 999) == sorted(values)

# Request ordering: the lower timestamp wins, and ties go to the lower id.
assert before(1, 3, 2, 3)
assert not before(1, 4, 2, 3)

assert encode_frame("hi") == b"0002hi"
assert decode_length(b"0002") == 2
```

### Using the link directly

- Make a link with `PP2PLink(address, debug)`.
- `send(ReqMessage(to, text))` sends a message now and returns whether it was written.
- `request(...)` queues a message for the background sender instead.
- `receive(timeout)` returns the next `IndMessage`. It raises `TimeoutError` if nothing arrives in time.

### Using the mutual exclusion module directly

- Make a module with `DimexModule(addresses, pid, debug, link)`. It opens its own link unless you pass one in.
- Call `enter()` to ask for the critical section.
- Call `wait_access(timeout)` to block until access is granted.
- Call `exit()` to release it.

### Cleaning up

Both classes run background threads. Use them as context managers, or call `close()` when you have finished.

## Limits

- A message payload may be at most 9999 bytes. Larger messages raise `FrameError`.
- The link keeps nothing across restarts and does not resend a message after its single reconnect attempt fails. A message sent to a peer that is down is lost.
- The mutual exclusion module does not detect or survive crashed processes. Every process in the address list must be running for access to be granted.
- `pipeline_sort` rejects values larger than its `max_value`, because `max_value + 1` marks the end of the stream.