#!/usr/bin/env python
from __future__ import annotations

import argparse
import asyncio
import json
import sys
from dataclasses import asdict
from pathlib import Path

sys.path.append(str(Path(__file__).resolve().parents[1]))

from offerflow.application import OfferWorkflowCoordinator
from offerflow.domain import CandidateIdentity, JobSummary
from offerflow.infrastructure import InMemoryWorkflowRepository, NoOpFunctionsClient


async def run(args: argparse.Namespace) -> dict[str, object]:
    repository = InMemoryWorkflowRepository()
    repository.register_application(
        args.application,
        job=JobSummary(title=args.title, salary_min=args.salary_min, salary_max=args.salary_max, currency="USD"),
        candidate=CandidateIdentity(first_name=args.first_name, last_name=args.last_name, email=args.email),
    )
    coordinator = OfferWorkflowCoordinator(repository, NoOpFunctionsClient())

    workflow = await coordinator.initiate_workflow(args.application, created_by="demo")
    if workflow is None:
        raise SystemExit("could not open the offer workflow")

    await coordinator.run_background_check(workflow)
    await coordinator.generate_offer(workflow, args.amount)
    await coordinator.approve_offer(workflow, args.comments)
    refreshed = coordinator.workflows[0]
    await coordinator.send_to_candidate(refreshed)
    await coordinator.record_response(refreshed, args.response)

    final = await coordinator.get_workflow(workflow.id)
    return {
        "workflow": asdict(final) if final else None,
        "badge": asdict(coordinator.candidate_workflow_status(final)),
        "notifications": [asdict(item) for item in coordinator.notifications.drain()],
    }


def main() -> None:
    parser = argparse.ArgumentParser(description="Run an offer workflow end to end against the in-memory store")
    parser.add_argument("--output", help="write the final workflow JSON to this path")
    parser.add_argument("--application", default="app-demo", help="job application id")
    parser.add_argument("--title", default="Backend Engineer", help="job title")
    parser.add_argument("--salary-min", type=float, default=90000)
    parser.add_argument("--salary-max", type=float, default=120000)
    parser.add_argument("--first-name", default="Ada")
    parser.add_argument("--last-name", default="Lovelace")
    parser.add_argument("--email", default="ada@example.com")
    parser.add_argument("--amount", default="", help="offered salary, defaults to 75000")
    parser.add_argument("--comments", default="Approved", help="HR comments")
    parser.add_argument(
        "--response",
        default="accepted",
        choices=["accepted", "rejected", "negotiating", "pending", "expired"],
    )
    args = parser.parse_args()

    result = asyncio.run(run(args))
    text = json.dumps(result, ensure_ascii=False, indent=2)
    if args.output:
        output = Path(args.output)
        output.parent.mkdir(parents=True, exist_ok=True)
        output.write_text(text, encoding="utf-8")
        print(f"Offer workflow written to {output}")
    else:
        print(text)


if __name__ == "__main__":
    main()
