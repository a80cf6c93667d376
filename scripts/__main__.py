"""Allow `python -m scripts` by running the seed script."""

from scripts.seed import _run_seed

_run_seed()
