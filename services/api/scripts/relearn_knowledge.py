"""Recompute the knowledge base for every cuisine that has sacred analyses.

Usage:
    python scripts/relearn_knowledge.py [--cuisine Thai]
"""
import argparse
import sys
import os

# Add api path to sys.path
sys.path.append(os.path.join(os.path.dirname(__file__), "../"))

from nosh.db import session_scope
from nosh.models import SacredAnalysis
from nosh.services.knowledge import KnowledgeLearner
from nosh.settings import settings


def relearn_all(cuisine: str | None = None) -> int:
    print(f"Connecting to {settings.database_url}...")
    learner = KnowledgeLearner()
    learned = 0

    with session_scope() as session:
        if cuisine:
            cuisines = [cuisine]
        else:
            cuisines = [c for (c,) in session.query(SacredAnalysis.cuisine).distinct().order_by(SacredAnalysis.cuisine)]
        print(f"Found {len(cuisines)} cuisines to relearn.")

        for name in cuisines:
            row = learner.learn(session, name)
            if row is None:
                print(f"{name}: skipped")
                continue
            learned += 1
            print(f"{name}: {row.recipe_count} recipes, {len(row.common_sacred_ingredients)} sacred ingredients")

    print(f"Relearn complete ({learned}/{len(cuisines)}).")
    return learned


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument("--cuisine", help="Only relearn this cuisine")
    args = parser.parse_args()
    relearn_all(args.cuisine)
