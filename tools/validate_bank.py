from __future__ import annotations
from collections import defaultdict
import sys
from samurai_core.question_bank import CATEGORIES, CATEGORY_LABELS, MAPPING, QUESTIONS, validate_bank
from samurai_core.scoring import category_max


def main() -> int:
    by_cat = defaultdict(list)
    for q in QUESTIONS:
        for cat in MAPPING.get(q.id, ()):
            by_cat[cat].append(q)

    maxima = category_max(QUESTIONS, MAPPING)
    print(f"Questions: {len(QUESTIONS)}  (multi-select: {sum(1 for q in QUESTIONS if q.multi)})\n")

    for cat in CATEGORIES:
        qs = by_cat[cat]
        codes = ", ".join(q.code for q in qs) or "-"
        print(f"{CATEGORY_LABELS[cat]} [{cat}]: {len(qs)} question(s), max raw {maxima[cat]:.2f}")
        print(f"  {codes}")
        if maxima[cat] <= 0:
            print("  → no reachable points; this category always normalizes to 0")
        print()

    problems = validate_bank(QUESTIONS, MAPPING)
    if problems:
        print("Problems:")
        for p in problems:
            print(f"  - {p}")
        return 1
    print("✓ Bank and category table are consistent")
    return 0


if __name__ == "__main__":
    sys.exit(main())
