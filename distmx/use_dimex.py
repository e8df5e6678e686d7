"""Repeatedly enter and leave a distributed critical section."""

from __future__ import annotations

import argparse
import time

from distmx.dimex import DimexModule


def run_loop(module, pid, output=None, iterations=None) -> int:
    """Enter and leave the critical section, marking each visit in ``output``.

    Each visit writes "|" on entry and "." on exit, so a correct run leaves
    an unbroken "|.|.|." pattern. Runs forever unless ``iterations`` is given;
    returns how many visits were made.
    """
    done = 0
    while iterations is None or done < iterations:
        print("[ APP id: ", pid, " PEDE   MX ]")
        module.enter()
        if output is None:
            print("[ APP id: ", pid, " ESPERA MX ]")
        module.wait_access()
        if output is not None:
            output.write("|")
            output.flush()
        print("[ APP id: ", pid, " *EM*   MX ]")
        if output is not None:
            output.write(".")
            output.flush()
        module.exit()
        print("[ APP id: ", pid, " FORA   MX ]")
        done += 1
    return done


def main(argv=None) -> int:
    """Start a mutual exclusion process and loop through the critical section."""
    parser = argparse.ArgumentParser(
        prog="distmx-dimex",
        description="Take part in distributed mutual exclusion.",
        epilog="example: distmx-dimex 0 127.0.0.1:5000 127.0.0.1:6001 127.0.0.1:7002",
    )
    parser.add_argument("pid", type=int, help="index of this process in the address list")
    parser.add_argument("addresses", nargs="+", help="host:port of every process, in order")
    parser.add_argument("--file", help="shared file to mark on every visit")
    parser.add_argument(
        "--delay", type=float, default=5.0, help="seconds to wait for the other processes"
    )
    parser.add_argument("--iterations", type=int, help="stop after this many visits")
    parser.add_argument("--quiet", action="store_true", help="do not print protocol traces")
    args = parser.parse_args(argv)

    if not 0 <= args.pid < len(args.addresses):
        parser.error(f"process id {args.pid} has no address")

    with DimexModule(args.addresses, args.pid, not args.quiet) as module:
        print(module)
        try:
            if args.file is None:
                time.sleep(args.delay)
                run_loop(module, args.pid, None, args.iterations)
            else:
                with open(args.file, "a", encoding="utf-8") as output:
                    time.sleep(args.delay)
                    run_loop(module, args.pid, output, args.iterations)
        except KeyboardInterrupt:
            pass
        except OSError as exc:
            print("Error writing to file:", exc)
            return 1
    return 0


if __name__ == "__main__":
    raise SystemExit(main())