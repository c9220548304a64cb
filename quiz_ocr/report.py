from __future__ import annotations

import html
import json
import os
from dataclasses import asdict
from typing import Dict, Iterable, List

from .config import OutputTarget
from .models import SheetResult, question_number, sort_answers


def sheet_to_json(sheet: SheetResult) -> dict:
    return {
        "name": sheet.name,
        "email": sheet.email,
        "answers": sort_answers(sheet.answers),
        "corrections": asdict(sheet.stats),
        "pages": [
            {"source": p.source, "method": p.method, "answers": len(p.answers), "corrections": asdict(p.stats)}
            for p in sheet.pages
        ],
        "error": sheet.error,
    }


def write_results_json(results: Dict[str, SheetResult], out_path: str) -> None:
    payload = {sid: sheet_to_json(s) for sid, s in sorted(results.items())}
    os.makedirs(os.path.dirname(out_path) or ".", exist_ok=True)
    with open(out_path, "w", encoding="utf-8") as f:
        json.dump(payload, f, ensure_ascii=False, indent=2)


def missing_questions(sheet: SheetResult) -> List[int]:
    """Gaps below the highest question number seen on the sheet."""
    nums = {question_number(q) for q in sheet.answers}
    if not nums:
        return []
    return [n for n in range(1, max(nums) + 1) if n not in nums]


def write_html_report(results: Dict[str, SheetResult], out_path: str) -> None:
    """Write an HTML report with a review section for sheets that need a second look."""

    def needs_review(s: SheetResult) -> bool:
        return bool(
            s.error
            or not s.answers
            or not s.name
            or not s.email
            or missing_questions(s)
            or s.stats.total_changes
            or s.stats.misplacements_detected
        )

    def badges(s: SheetResult) -> str:
        out: List[str] = []
        if s.error:
            out.append("<span class='bad'>error</span>")
        if not s.name or not s.email:
            out.append("<span class='bad'>identity_missing</span>")
        if missing_questions(s):
            out.append("<span class='bad'>answers_missing</span>")
        if s.stats.merges_detected or s.stats.splits_resolved:
            out.append("<span class='bad'>shifted</span>")
        if s.stats.misplacements_detected:
            out.append("<span class='bad'>misplaced</span>")
        return " ".join(out)

    def render_item(s: SheetResult) -> List[str]:
        out: List[str] = []
        out.append("<div class='card'>")
        who = html.escape(f"{s.name or '?'} <{s.email or '?'}>")
        out.append(
            f"<div class='head'><span class='sid'>{html.escape(s.sheet_id)}</span>"
            f"<span class='meta'>{who} | Answers: {len(s.answers)}</span>"
            f"<span class='badges'>{badges(s)}</span></div>"
        )
        out.append("<div class='body'>")
        if s.error:
            out.append(f"<pre>{html.escape(s.error)}</pre>")
        out.append("<table class='answers'>")
        for qid, ans in sort_answers(s.answers).items():
            out.append(f"<tr><td class='q'>{html.escape(qid)}</td><td>{html.escape(ans)}</td></tr>")
        out.append("</table>")
        gaps = missing_questions(s)
        if gaps:
            out.append(f"<p class='bad'>Missing: {', '.join(f'Q{n}' for n in gaps)}</p>")
        st = s.stats
        out.append(
            "<p class='stats'>"
            f"fuzzy {st.fuzzy_corrections} | merges {st.merges_detected} | splits {st.splits_resolved} | "
            f"shifted {st.shifted} | removed {st.removed} | misplaced {st.misplacements_detected}"
            "</p>"
        )
        out.append("</div>")  # body
        out.append("</div>")  # card
        return out

    review: List[SheetResult] = []
    normal: List[SheetResult] = []
    for _, s in sorted(results.items()):
        (review if needs_review(s) else normal).append(s)

    css = (
        "<style>"
        "body{font-family:-apple-system,BlinkMacSystemFont,Segoe UI,Roboto,Arial,sans-serif;margin:16px;}"
        ".card{border:1px solid #ddd;border-radius:8px;margin:16px 0;box-shadow:0 1px 3px rgba(0,0,0,0.06);}"
        ".head{display:flex;gap:12px;align-items:center;justify-content:space-between;padding:8px 12px;border-bottom:1px solid #eee;background:#fafafa;}"
        ".sid{font-weight:600;} .meta{color:#555;} .bad{color:#b00;font-weight:600;margin-left:8px;}"
        ".body{padding:12px;} .answers{border-collapse:collapse;columns:2;} .answers td{padding:2px 8px;border-bottom:1px solid #f0f0f0;}"
        ".answers .q{font-weight:600;width:48px;} .stats{color:#555;font-size:90%;}"
        "h2{margin-top:8px;} section{margin-bottom:24px;}"
        "</style>"
    )

    lines: List[str] = ["<html><head><meta charset='utf-8'>", css, "</head><body>"]

    lines.append("<section>")
    lines.append(f"<h2>Needs Review ({len(review)})</h2>")
    if not review:
        lines.append("<p>No sheets flagged for review.</p>")
    else:
        for s in review:
            lines.extend(render_item(s))
    lines.append("</section>")

    lines.append("<section>")
    lines.append(f"<h2>All Sheets ({len(normal)})</h2>")
    for s in normal:
        lines.extend(render_item(s))
    lines.append("</section>")

    lines.append("</body></html>")

    os.makedirs(os.path.dirname(out_path) or ".", exist_ok=True)
    with open(out_path, "w", encoding="utf-8") as f:
        f.write("\n".join(lines))


def write_outputs(results: Dict[str, SheetResult], outputs: Iterable[OutputTarget]) -> None:
    for out in outputs:
        if out.type == "file":
            write_results_json(results, out.path)
        elif out.type == "html_report":
            write_html_report(results, out.path)
        else:
            raise ValueError(f"Unknown output type: {out.type!r}")
