"""Module entrypoint for `python -m visualise`."""

from visualise.cli import run

if __name__ == "__main__":
    raise SystemExit(run())
