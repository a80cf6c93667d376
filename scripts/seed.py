"""Seed script: load the sample hazards into the persisted safety store.

Creates the five demonstration hazards (HAZ-001 .. HAZ-005) with risk fields
derived from the matrix, replacing whatever the store held.

Idempotent: skips if the store already contains every sample hazard, unless
``--force`` is given.

Usage:
    python -m scripts.seed            # against STORAGE_PATH from .env
    python -m scripts.seed --force    # reseed even if already seeded
"""

import sys

from src.bootstrap import configure_logging, create_store
from src.config.settings import get_settings
from src.data.sample_data import SAMPLE_HAZARDS
from src.store.safety_store import SafetyStore


def seed_demo(store: SafetyStore, *, force: bool = False) -> dict:
    """Load sample data unless it is already present.

    Returns dict with keys: created (bool), hazard_ids.
    """
    sample_ids = [hazard_id for hazard_id, _ in SAMPLE_HAZARDS]
    if not force and all(hazard_id in store.hazards for hazard_id in sample_ids):
        return {"created": False, "hazard_ids": sample_ids}

    store.load_sample_data()
    return {"created": True, "hazard_ids": sample_ids}


# ---------------------------------------------------------------------------
# CLI entry point: python -m scripts.seed
# ---------------------------------------------------------------------------


def _run_seed(argv: list[str] | None = None) -> None:
    """Seed the store configured by the environment."""
    args = sys.argv[1:] if argv is None else argv
    settings = get_settings()
    configure_logging(settings)
    store = create_store(settings)

    result = seed_demo(store, force="--force" in args)
    if not result["created"]:
        print("Sample hazards already seeded. Skipping (use --force to reseed).")
        return

    print("Seed complete.")
    print(f"  Storage: {settings.STORAGE_PATH} ({settings.STORAGE_NAME})")
    print()
    _print_summary(store)


def _print_summary(store: SafetyStore) -> None:
    """Print a table of the seeded hazards."""
    print(f"  {'Id':<8} {'Title':<28} {'Severity':<13} {'Likelihood':<16} {'Score':>5}  Level")
    print(f"  {'-' * 8} {'-' * 28} {'-' * 13} {'-' * 16} {'-' * 5}  {'-' * 12}")
    for hazard in store.hazards.values():
        print(f"  {hazard.id:<8} {hazard.title:<28} {hazard.severity:<13}"
              f" {hazard.likelihood:<16} {hazard.risk_score:>5}  {hazard.risk_level}")


if __name__ == "__main__":
    _run_seed()
