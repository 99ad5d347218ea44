#!/usr/bin/env python
"""Submit a strategic text to a running API and optionally export the result."""

from __future__ import annotations

import argparse
import json
import os
import sys
from pathlib import Path
from typing import Any

import httpx

DOCX_MIME_TYPE = (
    "application/vnd.openxmlformats-officedocument.wordprocessingml.document"
)
API_KEY_ENV = "FRONTEND_API_KEY"
ANALYSIS_TYPES = (
    "fundamentals",
    "strategy",
    "insights",
    "challenge-analysis",
    "strategic-calibration",
)


def _read_text(source: str) -> str:
    if source == "-":
        return sys.stdin.read()
    return Path(source).read_text(encoding="utf-8")


def _file_part(field: str, path: Path) -> tuple[str, tuple[str, bytes, str]]:
    return field, (path.name, path.read_bytes(), DOCX_MIME_TYPE)


def run_analysis(
    client: httpx.Client,
    *,
    analysis_type: str,
    strategic_text: str,
    mission_statement: str | None = None,
    methodology: Path | None = None,
    documents: list[Path] | None = None,
) -> dict[str, Any]:
    input_data: dict[str, Any] = {"strategicText": strategic_text}
    if mission_statement:
        input_data["missionStatement"] = mission_statement

    files = []
    if methodology is not None:
        files.append(_file_part("methodology", methodology))
    for document in documents or []:
        files.append(_file_part("additionalDocuments", document))

    if files:
        response = client.post(
            "/api/analyze",
            data={"analysisType": analysis_type, "inputData": json.dumps(input_data)},
            files=files,
        )
    else:
        response = client.post(
            "/api/analyze",
            json={"analysisType": analysis_type, "inputData": input_data},
        )
    response.raise_for_status()
    return response.json()


def export_result(
    client: httpx.Client, *, analysis_type: str, content: Any, target: Path
) -> Path:
    response = client.post(
        "/api/export",
        json={"analysisResults": content, "analysisType": analysis_type},
    )
    response.raise_for_status()
    target.write_bytes(response.content)
    return target


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(
        description="Run a strategic analysis against the API."
    )
    parser.add_argument("source", help="Path to the strategic text, or '-' for stdin.")
    parser.add_argument(
        "--type",
        dest="analysis_type",
        choices=ANALYSIS_TYPES,
        default="fundamentals",
    )
    parser.add_argument("--mission", default=None, help="Optional mission statement.")
    parser.add_argument("--methodology", type=Path, default=None)
    parser.add_argument(
        "--document",
        dest="documents",
        type=Path,
        action="append",
        default=[],
        help="Additional .docx document; repeat for several.",
    )
    parser.add_argument("--base-url", default="http://localhost:8000")
    parser.add_argument(
        "--export",
        type=Path,
        default=None,
        help="Write the result as a .docx report to this path.",
    )
    parser.add_argument("--timeout", type=float, default=600.0)

    args = parser.parse_args(argv)

    headers = {}
    api_key = os.environ.get(API_KEY_ENV)
    if api_key:
        headers["x-api-key"] = api_key

    with httpx.Client(
        base_url=args.base_url, headers=headers, timeout=args.timeout
    ) as client:
        try:
            result = run_analysis(
                client,
                analysis_type=args.analysis_type,
                strategic_text=_read_text(args.source),
                mission_statement=args.mission,
                methodology=args.methodology,
                documents=args.documents,
            )
        except httpx.HTTPStatusError as exc:
            print(
                f"Analysis failed ({exc.response.status_code}): {exc.response.text}",
                file=sys.stderr,
            )
            return 1

        if result.get("warning"):
            print(f"Warning: {result['warning']}", file=sys.stderr)
        print(json.dumps(result["content"], indent=2, ensure_ascii=False))

        if args.export is not None:
            path = export_result(
                client,
                analysis_type=args.analysis_type,
                content=result["content"],
                target=args.export,
            )
            print(f"Report written to {path}", file=sys.stderr)
    return 0


if __name__ == "__main__":  # pragma: no cover - CLI entry point
    sys.exit(main())
