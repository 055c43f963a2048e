"""Calibration run: play a lesson's reference translations through the backend.

Every reference translation should score "high"; sentences that do not score
high point at prompt or evaluator problems.

    python eval/run_eval.py --lesson-id home-garden
"""
import argparse
import asyncio
import json
import os
import time
from typing import Any, Dict, List, Optional

import httpx

# Backend URL for FastAPI app
DEFAULT_BACKEND = os.getenv("EVAL_BACKEND_URL", "http://localhost:8000")


def save_results(results: dict, prefix: str = "eval_results"):
    ts = time.strftime("%Y%m%d_%H%M%S")
    out_path = f"{prefix}_{ts}.json"
    with open(out_path, "w", encoding="utf-8") as f:
        json.dump(results, f, indent=2, ensure_ascii=False)
    print(f"[saved] Results written to {out_path}")


async def call_intent(client: httpx.AsyncClient, backend: str, session_id: str, intent: str, payload: Optional[dict] = None) -> Dict[str, Any]:
    resp = await client.post(f"{backend}/v1/sessions/{session_id}/{intent}", json=payload, timeout=60.0)
    resp.raise_for_status()
    return resp.json()


async def evaluate_lesson(
    client: httpx.AsyncClient,
    backend: str,
    lesson_id: str,
    references: List[str],
    max_sentences: int | None = None,
) -> Dict[str, Any]:
    resp = await client.post(f"{backend}/v1/sessions", json={"lesson_id": lesson_id}, timeout=30.0)
    resp.raise_for_status()
    snapshot = resp.json()
    session_id = snapshot["session_id"]
    total = snapshot["cursor"]["total"]
    if max_sentences is not None:
        total = min(total, max_sentences)

    per_sentence: List[Dict[str, Any]] = []
    completed = False
    for index in range(total):
        sentence = snapshot["current_sentence"]["text"]
        reference = references[index] if index < len(references) else ""
        if not reference:
            print(f"[{index}] WARNING: no reference translation; skipping")
        else:
            await call_intent(client, backend, session_id, "input", {"text": reference})
            outcome = await call_intent(client, backend, session_id, "submit")
            feedback = outcome["snapshot"].get("feedback") or {}
            row = {
                "index": index,
                "sentence": sentence,
                "reference": reference,
                "accepted": outcome["accepted"],
                "accuracy": feedback.get("accuracy"),
                "band": outcome["snapshot"].get("accuracy_band"),
                "error_kind": feedback.get("error_kind"),
                "diagnostic": feedback.get("diagnostic"),
            }
            per_sentence.append(row)
            print(f"[{index}] accuracy={row['accuracy']} band={row['band']} error={row['error_kind']}")

        outcome = await call_intent(client, backend, session_id, "advance")
        snapshot = outcome["snapshot"]
        if outcome.get("event") == "session_complete":
            completed = True
            break

    # a completed session is already closed on the server
    if not completed:
        await call_intent(client, backend, session_id, "quit")

    scored = [row["accuracy"] for row in per_sentence if row["accuracy"] is not None]
    return {
        "lesson_id": lesson_id,
        "num_sentences": len(per_sentence),
        "num_scored": len(scored),
        "num_high": sum(1 for row in per_sentence if row["band"] == "high"),
        "num_errors": sum(1 for row in per_sentence if row["error_kind"]),
        "mean_accuracy": sum(scored) / len(scored) if scored else None,
        "per_sentence": per_sentence,
    }


async def main():
    parser = argparse.ArgumentParser(description="Score a lesson's reference translations against the evaluator.")
    parser.add_argument("--backend", default=DEFAULT_BACKEND)
    parser.add_argument("--lesson-id", default="home-garden")
    parser.add_argument("--references", help="JSON file with a list of reference translations (defaults to the bundled lesson's)")
    parser.add_argument("--max-sentences", type=int, default=None)
    parser.add_argument("--no-save", action="store_true")
    args = parser.parse_args()

    if args.references:
        with open(args.references, "r", encoding="utf-8") as f:
            references = json.load(f)
    else:
        from coach.lesson.catalog import get_lesson
        lesson = get_lesson(args.lesson_id)
        if lesson is None:
            parser.error(f"unknown lesson {args.lesson_id!r}; pass --references")
        references = lesson.references

    async with httpx.AsyncClient() as client:
        results = await evaluate_lesson(client, args.backend, args.lesson_id, references, args.max_sentences)

    print(
        f"[summary] {results['num_high']}/{results['num_sentences']} high, "
        f"{results['num_errors']} errors, mean accuracy {results['mean_accuracy']}"
    )
    if not args.no_save:
        save_results(results)


if __name__ == "__main__":
    asyncio.run(main())
