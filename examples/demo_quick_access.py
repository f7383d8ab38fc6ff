#!/usr/bin/env python3
"""
Demo: a quick-access menu driven by AccessRank.

Simulates a user picking items "A".."Z" from a long list while a small menu
shows the predicted next picks. The menu observes the engine and redraws
after every update; the engine state is written to a snapshot at the end
and restored into a second engine.

Run:
    python examples/demo_quick_access.py
"""

import json
import string

from access_rank import AccessRank, ListStability

ITEMS = {letter: f"Item {letter}" for letter in string.ascii_uppercase}


class QuickAccessMenu:
    def __init__(self, size: int = 4):
        self.size = size
        self.entries: list[str] = []

    def predictions_updated(self, engine: AccessRank) -> None:
        self.entries = [ITEMS[i] for i in engine.predictions[: self.size]]


def main():
    engine = AccessRank(list_stability=ListStability.MEDIUM)
    menu = QuickAccessMenu()
    engine.observer = menu

    session = ["M", "A", "I", "L", "M", "A", "M", "I", "L", "M", "A", "Z", "M", "A"]

    print("=" * 60)
    print("Picking items")
    print("=" * 60)
    for item in session:
        engine.visit_item(item)
        print(f"> picked {ITEMS[item]:<8}  menu: {', '.join(menu.entries) or '(empty)'}")

    print("\n" + "=" * 60)
    print("Scores")
    print("=" * 60)
    print(engine.score_description(), end="")

    print("\n" + "=" * 60)
    print("Snapshot round trip")
    print("=" * 60)
    snapshot = engine.to_snapshot()
    restored = AccessRank.from_snapshot(json.loads(json.dumps(snapshot)))
    print(f"  Current item: {restored.most_recent_item}")
    print(f"  Predictions:  {restored.predictions}")
    print(f"  Identical:    {restored.predictions == engine.predictions}")


if __name__ == "__main__":
    main()
