#!/usr/bin/env python3
"""
Demo script for the analyst allocation engine.
Prioritizes the sample jobs, ranks analysts for each one, attaches the top
suggestion and routes a batch of candidate applications.
"""

import argparse
import sys
from pathlib import Path

project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))


def build_engine(profiles_path):
    """In-memory engine over the given analyst profiles."""
    from src.core.allocation import AllocationEngine
    from src.core.allocation.providers import StaticProfileProvider
    from src.data.memory_store import InMemoryAllocationStore

    engine = AllocationEngine(
        store=InMemoryAllocationStore(),
        profiles=StaticProfileProvider.from_json(profiles_path),
    )
    engine.bootstrap()
    return engine


def show_priorities(engine, jobs):
    """Print jobs by urgency and return them in that order."""
    ranked = engine.prioritizer.rank(jobs)

    print(f"\n{'Rank':<5} {'Job':<32} {'Score':<8} {'Level':<8} {'SLA'}")
    print("-"*60)
    for i, p in enumerate(ranked, 1):
        print(f"{i:<5} {p.title[:31]:<32} {p.score:<8.1f} {p.level.value:<8} {p.sla_days}d")
        print(f"      {p.justification}")

    by_id = {j.job_id: j for j in jobs}
    return [by_id[p.job_id] for p in ranked]


def allocate(engine, job, candidates, top_n):
    """Rank analysts, accept the suggestion and route candidates."""
    flow = engine.start_flow(job)
    ranking = flow.load_ranking()

    print(f"\n{'Rank':<5} {'Analyst':<20} {'Score':<8} {'Band':<10} {'Load'}")
    print("-"*55)
    for i, s in enumerate(ranking, 1):
        print(f"{i:<5} {s.analyst_name[:19]:<20} {s.total:<8.1f} {s.band.value:<10} {s.current_load}/{s.capacity}")
    if not ranking:
        print("  no analysts available")
        return

    print(f"Top pick: {ranking[0].analyst_name} ({ranking[0].justification})")

    flow.accept_suggestion(top_n=top_n)
    outcome = flow.confirm(capacity=ranking[0].capacity)
    print(f"\nAttached: {', '.join(str(a.analyst_id) for a in outcome.attached)}")

    # route a batch of applications
    queued = 0
    for candidate_id in range(job.job_id * 1000, job.job_id * 1000 + candidates):
        result = engine.distribution.route_candidate(job.job_id, candidate_id)
        if not result.routed:
            queued += 1

    for a in engine.distribution.list_assignments(job.job_id):
        ceiling = a.max_candidates or "-"
        print(f"  analyst {a.analyst_id}: {a.assigned_count}/{ceiling} candidates")
    if queued:
        print(f"  {queued} candidate(s) waiting for capacity")


def main():
    parser = argparse.ArgumentParser(description="Analyst Allocation Demo")
    parser.add_argument("--jobs", type=Path, default=project_root / "data" / "sample_jobs.json")
    parser.add_argument("--profiles", type=Path, default=project_root / "data" / "sample_profiles.json")
    parser.add_argument("--candidates", type=int, default=8, help="Applications routed per job")
    parser.add_argument("--top", type=int, default=2, help="Analysts attached per job")

    args = parser.parse_args()

    print("\n" + "="*60)
    print("Analyst Allocation Engine: demo run")
    print("="*60)

    from src.core.allocation.providers import load_jobs

    engine = build_engine(args.profiles)
    try:
        jobs = show_priorities(engine, load_jobs(args.jobs))

        for job in jobs:
            print("\n" + "="*60)
            print(f"JOB {job.job_id}: {job.title}")
            print("="*60)
            allocate(engine, job, args.candidates, args.top)

    except KeyboardInterrupt:
        print("\nInterrupted.")
    finally:
        engine.close()

    print("\n" + "="*60)
    print("DEMO COMPLETE")
    print("="*60)


if __name__ == "__main__":
    main()
