#!/usr/bin/env python3
from __future__ import annotations

import argparse
import asyncio
import json
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Any


def _repo_root() -> Path:
    return Path(__file__).resolve().parents[1]


def _bootstrap_pythonpath() -> None:
    import sys

    src = _repo_root() / "src"
    if str(src) not in sys.path:
        sys.path.insert(0, str(src))


_bootstrap_pythonpath()

from make_this_usable.api.schemas import TransformResponse  # noqa: E402
from make_this_usable.config import get_settings  # noqa: E402
from make_this_usable.errors import TransformError  # noqa: E402
from make_this_usable.pipeline.request_validator import FilePayload, TextPayload  # noqa: E402
from make_this_usable.service.transformer import render_plain_text  # noqa: E402
from make_this_usable.workflow.transform import TransformWorkflow  # noqa: E402


@dataclass
class Scenario:
    name: str
    text: str = ""
    csv: str = ""
    notes: str | None = None
    expect: dict[str, Any] = field(default_factory=dict)


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Run end-to-end transform scenarios against the live model.")
    parser.add_argument(
        "--input",
        default="eval/transform_scenarios.sample.jsonl",
        help="JSONL file with fields: name, text or csv, optional notes, expect.",
    )
    parser.add_argument(
        "--output-md",
        default="",
        help="Markdown report path. Default: eval/reports/transform_eval_<timestamp>.md",
    )
    parser.add_argument(
        "--output-json",
        default="",
        help="JSON report path. Default: eval/reports/transform_eval_<timestamp>.json",
    )
    parser.add_argument("--limit", type=int, default=0, help="Limit evaluated scenarios (0 means all).")
    return parser.parse_args()


def load_scenarios(path: Path, limit: int) -> list[Scenario]:
    scenarios: list[Scenario] = []
    with path.open("r", encoding="utf-8") as f:
        for line_no, line in enumerate(f, start=1):
            raw = line.strip()
            if not raw:
                continue
            row = json.loads(raw)
            name = str(row.get("name", "")).strip() or f"line_{line_no}"
            text = str(row.get("text", ""))
            csv_text = str(row.get("csv", ""))
            if not text.strip() and not csv_text.strip():
                raise ValueError(f"Invalid scenario at line {line_no}: text or csv required")
            scenarios.append(
                Scenario(
                    name=name,
                    text=text,
                    csv=csv_text,
                    notes=row.get("notes") or None,
                    expect=dict(row.get("expect") or {}),
                )
            )
            if limit > 0 and len(scenarios) >= limit:
                break
    if not scenarios:
        raise ValueError("No scenarios loaded.")
    return scenarios


def check_expectations(document: TransformResponse, expect: dict[str, Any]) -> list[str]:
    failures: list[str] = []
    summary = document.summary.lower()
    headings_and_bullets = " ".join(
        [section.heading for section in document.sections]
        + [bullet for section in document.sections for bullet in section.bullets]
    ).lower()

    if not document.title.strip():
        failures.append("empty title")
    for keyword in expect.get("summary_keywords", []):
        if keyword.lower() not in summary:
            failures.append(f"summary missing `{keyword}`")
    any_keywords = expect.get("summary_keywords_any", [])
    if any_keywords and not any(keyword.lower() in summary for keyword in any_keywords):
        failures.append(f"summary has none of {any_keywords}")
    section_keywords = expect.get("section_keywords_any", [])
    if section_keywords and not any(keyword.lower() in headings_and_bullets for keyword in section_keywords):
        failures.append(f"sections have none of {section_keywords}")
    min_sections = int(expect.get("min_sections", 0))
    if len(document.sections) < min_sections:
        failures.append(f"sections={len(document.sections)} < {min_sections}")
    if "max_next_actions" in expect and len(document.next_actions) > int(expect["max_next_actions"]):
        failures.append(f"next_actions={len(document.next_actions)} > {expect['max_next_actions']}")
    action_keyword = expect.get("action_keyword")
    if action_keyword and not any(
        action_keyword.lower() in f"{item.action} {item.first_step}".lower() for item in document.next_actions
    ):
        failures.append(f"no next_action mentions `{action_keyword}`")
    return failures


async def run_scenarios(scenarios: list[Scenario]) -> list[dict[str, Any]]:
    workflow = TransformWorkflow(get_settings())
    rows: list[dict[str, Any]] = []
    for scenario in scenarios:
        if scenario.csv:
            payload = FilePayload(
                filename=f"{scenario.name}.csv",
                content_type="text/csv",
                data=scenario.csv.encode("utf-8"),
                notes=scenario.notes,
            )
        else:
            payload = TextPayload(text=scenario.text, notes=scenario.notes)
        try:
            result = await workflow.run(payload)
        except TransformError as exc:
            rows.append(
                {
                    "name": scenario.name,
                    "passed": False,
                    "failures": [f"{exc.__class__.__name__}: {exc.message}"],
                    "restyle_status": "",
                    "rendered": "",
                }
            )
            continue
        failures = check_expectations(result.document, scenario.expect)
        rows.append(
            {
                "name": scenario.name,
                "passed": not failures,
                "failures": failures,
                "restyle_status": result.restyle_status,
                "rendered": render_plain_text(result.document),
                "document": result.document.model_dump(),
            }
        )
    return rows


def build_markdown_report(input_path: str, rows: list[dict[str, Any]]) -> str:
    passed = sum(1 for row in rows if row["passed"])
    lines: list[str] = []
    lines.append("# Transform Eval Report")
    lines.append("")
    lines.append(f"- input: `{input_path}`")
    lines.append(f"- total: `{len(rows)}`")
    lines.append(f"- passed: `{passed}`")
    lines.append("")
    lines.append("| scenario | passed | restyle | failures |")
    lines.append("|---|---|---|---|")
    for row in rows:
        failures = "; ".join(row["failures"]) or "-"
        lines.append(f"| {row['name']} | {'yes' if row['passed'] else 'no'} | {row['restyle_status'] or '-'} | {failures} |")
    lines.append("")
    lines.append("## Outputs")
    for row in rows:
        lines.append("")
        lines.append(f"### {row['name']}")
        lines.append("")
        lines.append("```")
        lines.append(row["rendered"].rstrip() or "(no output)")
        lines.append("```")
    lines.append("")
    return "\n".join(lines)


def write_report(path: Path, content: str) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content, encoding="utf-8")


async def main() -> int:
    args = parse_args()
    input_path = Path(args.input)
    scenarios = load_scenarios(input_path, args.limit)
    rows = await run_scenarios(scenarios)

    now = datetime.now().strftime("%Y%m%d_%H%M%S")
    md_path = Path(args.output_md) if args.output_md else Path(f"eval/reports/transform_eval_{now}.md")
    json_path = Path(args.output_json) if args.output_json else Path(f"eval/reports/transform_eval_{now}.json")

    write_report(md_path, build_markdown_report(str(input_path), rows))
    write_report(
        json_path,
        json.dumps({"input": str(input_path), "rows": rows}, ensure_ascii=False, indent=2),
    )

    passed = sum(1 for row in rows if row["passed"])
    print(f"[transform-eval] passed={passed} total={len(rows)}")
    print(f"[transform-eval] markdown={md_path}")
    print(f"[transform-eval] json={json_path}")
    return 0 if passed == len(rows) else 1


if __name__ == "__main__":
    raise SystemExit(asyncio.run(main()))
