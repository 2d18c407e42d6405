"""Demo: trace every gallery example and print its steps and console output."""

import sys

from jstrace.api import console_lines
from jstrace.examples import EXAMPLES
from jstrace.run import run


def main():
    failures = 0
    for example in EXAMPLES:
        print("=" * 60)
        print(f"{example.title} ({example.id})")
        print("=" * 60)
        print(example.code)
        print()
        trace = run(example.code, verbose=True)
        print("\nConsole:")
        for line in console_lines(trace):
            print(f"    {line}")
        print()
        failures += trace.failed
    return 1 if failures else 0


if __name__ == "__main__":
    sys.exit(main())
