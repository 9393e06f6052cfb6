#!/usr/bin/env python3
"""Push agent tasks into a Spexly project through the signed ingest webhook.

Accepted input files:
  1) full payload:      {"projectId": "...", "sourceAgent": "codex", "tasks": [...]}
  2) tasks-only array:  [{"title": "Task A", "status": "todo"}]
  3) deployment plan:   {"phases": [{"title": "...", "tasks": [{"title": "...", "done": false}]}]}

Examples:
  python scripts/push_agent_tasks.py --project 6f1c... --file tasks.json --agent claude
  python scripts/push_agent_tasks.py --file plan.json --url https://api.spexly.com

Requires AGENT_INGEST_SECRET in the environment or .env.
"""

from __future__ import annotations

import argparse
import json
import sys
import time
import urllib.error
import urllib.request
import uuid

from spexly_api.config import settings
from spexly_api.mappings import DEPLOYMENT_PLAN_SOURCE
from spexly_api.services.agent_ingest import sign_payload

_AGENT_ALIASES = {"cloud": "claude-code", "claude": "claude-code"}


def normalize_agent(agent: object) -> str:
    raw = agent.strip().lower() if isinstance(agent, str) else ""
    if not raw:
        return "codex"
    return _AGENT_ALIASES.get(raw, raw)


def _plan_entry_to_task(entry: dict, phase_title: str) -> dict | None:
    title = entry.get("title").strip() if isinstance(entry.get("title"), str) else ""
    if not title:
        return None

    commands = entry.get("commands") if isinstance(entry.get("commands"), list) else None
    checks = entry.get("checks") if isinstance(entry.get("checks"), list) else None
    variables = entry.get("variables") if isinstance(entry.get("variables"), list) else None

    notes = []
    if commands:
        notes.append("Commands: " + " | ".join(map(str, commands)))
    if checks:
        notes.append("Checks: " + " | ".join(map(str, checks)))
    if variables:
        notes.append("Variables: " + ", ".join(map(str, variables)))

    owner = entry.get("owner").strip() if isinstance(entry.get("owner"), str) else ""
    plan_item_id = entry.get("id").strip() if isinstance(entry.get("id"), str) else ""

    metadata = {
        "source": DEPLOYMENT_PLAN_SOURCE,
        "phase": phase_title,
        "owner": owner or None,
        "planItemId": plan_item_id or None,
        "commands": commands,
        "checks": checks,
        "variables": variables,
    }
    task = {
        "title": title,
        "status": "done" if entry.get("done") is True else "todo",
        "metadata": {k: v for k, v in metadata.items() if v is not None},
    }
    if notes:
        task["details"] = "\n".join(notes)
    if plan_item_id:
        task["externalRef"] = plan_item_id
    return task


def normalize_tasks(parsed: object) -> list[dict]:
    if isinstance(parsed, list):
        return parsed
    if isinstance(parsed, dict) and isinstance(parsed.get("tasks"), list):
        return parsed["tasks"]

    if isinstance(parsed, dict) and isinstance(parsed.get("phases"), list):
        tasks = []
        for phase in parsed["phases"]:
            if not isinstance(phase, dict) or not isinstance(phase.get("tasks"), list):
                continue
            raw_title = phase.get("title")
            phase_title = raw_title.strip() if isinstance(raw_title, str) and raw_title.strip() else "Plan Phase"
            for entry in phase["tasks"]:
                if not isinstance(entry, dict):
                    continue
                task = _plan_entry_to_task(entry, phase_title)
                if task is not None:
                    tasks.append(task)
        if tasks:
            return tasks

    raise ValueError('Invalid input file. Expected an array or object with "tasks" array.')


def build_payload(parsed: object, project_id: str | None, agent: str | None, tasks: list[dict]) -> dict:
    file_project = parsed.get("projectId") if isinstance(parsed, dict) else None
    payload_project = file_project if isinstance(file_project, str) else (project_id or settings.SPEXLY_PROJECT_ID)
    if not payload_project:
        raise ValueError(
            "Missing project ID. Pass --project, set SPEXLY_PROJECT_ID, or include projectId in JSON file."
        )

    file_agent = parsed.get("sourceAgent") if isinstance(parsed, dict) else None
    if isinstance(file_agent, str) and file_agent.strip():
        source_agent = normalize_agent(file_agent)
    else:
        source_agent = normalize_agent(agent)

    return {"projectId": payload_project, "sourceAgent": source_agent, "tasks": tasks}


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Push AI tasks into Spexly via the signed ingest endpoint.")
    parser.add_argument("--file", default="./tasks.sample.json", help="Tasks JSON file")
    parser.add_argument("--project", default=None, help="Target project id")
    parser.add_argument("--agent", default=None, help="Source agent name (codex, claude, ...)")
    parser.add_argument("--url", default=None, help="API base URL (default: SPEXLY_BASE_URL)")
    return parser.parse_args()


def main() -> int:
    args = parse_args()

    secret = settings.AGENT_INGEST_SECRET
    if not secret:
        print("Missing AGENT_INGEST_SECRET env var.", file=sys.stderr)
        return 1

    try:
        with open(args.file, encoding="utf-8") as fh:
            parsed = json.load(fh)
        tasks = normalize_tasks(parsed)
        payload = build_payload(parsed, args.project, args.agent, tasks)
    except (OSError, ValueError) as exc:
        print(str(exc), file=sys.stderr)
        return 1

    base_url = (args.url or settings.SPEXLY_BASE_URL).rstrip("/")
    endpoint = f"{base_url}/api/agent/ingest"
    timestamp = str(int(time.time()))
    idempotency_key = str(uuid.uuid4())
    raw_body = json.dumps(payload).encode("utf-8")

    req = urllib.request.Request(
        endpoint,
        data=raw_body,
        headers={
            "Content-Type": "application/json",
            "x-spexly-timestamp": timestamp,
            "x-spexly-idempotency-key": idempotency_key,
            "x-spexly-signature": f"sha256={sign_payload(timestamp, raw_body, secret)}",
        },
        method="POST",
    )

    try:
        with urllib.request.urlopen(req, timeout=30) as resp:
            output = json.loads(resp.read().decode("utf-8") or "{}")
    except urllib.error.HTTPError as exc:
        body = exc.read().decode("utf-8", errors="replace")
        print(f"Ingest failed ({exc.code}): {body}", file=sys.stderr)
        return 1
    except urllib.error.URLError as exc:
        print(f"Ingest failed: {exc.reason}", file=sys.stderr)
        return 1

    print(
        json.dumps(
            {
                "ok": True,
                "endpoint": endpoint,
                "idempotencyKey": idempotency_key,
                "inserted": output.get("inserted", 0),
                "response": output,
            },
            indent=2,
        )
    )
    return 0


if __name__ == "__main__":
    sys.exit(main())
