from __future__ import annotations

from citecheck_core.types import ReferenceStatus, VerificationReport, VerificationResult


def is_inconclusive(result: VerificationResult) -> bool:
    return result.confidence_score < 0


def result_status(result: VerificationResult) -> ReferenceStatus:
    if result.is_verified:
        return "valid"
    if is_inconclusive(result):
        return "uncertain"
    return "invalid"


def reference_link(doi: str | None) -> str:
    return f"https://doi.org/{doi.strip()}" if doi and doi.strip() else "#"


def assemble_report(
    document_title: str, results: list[VerificationResult], *, cancelled: bool = False
) -> VerificationReport:
    report = VerificationReport(
        document_title=document_title,
        total_citations_checked=len(results),
        cancelled=cancelled,
        results=list(results),
    )
    for result in results:
        if result.is_verified:
            report.verified_citations += 1
        elif is_inconclusive(result):
            report.inconclusive_citations += 1
        else:
            report.unverified_citations += 1
        if not result.reference_found:
            report.missing_references += 1
    return report


def summarize_report(report: VerificationReport) -> str:
    lines = [
        f"Verification report for: {report.document_title}",
        f"Citations checked: {report.total_citations_checked}",
        f"Verified: {report.verified_citations}",
        f"Unverified: {report.unverified_citations}",
        f"Inconclusive: {report.inconclusive_citations}",
        f"Missing references: {report.missing_references}",
    ]
    if report.cancelled:
        lines.append("Run was cancelled before all references were checked.")
    return "\n".join(lines)
