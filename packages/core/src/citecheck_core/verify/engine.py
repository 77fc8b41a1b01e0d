from __future__ import annotations

import logging
import threading
from concurrent.futures import ThreadPoolExecutor
from enum import Enum
from typing import Callable

from rich.console import Console
from rich.prompt import Prompt

from citecheck_core.errors import CitecheckError
from citecheck_core.store import DocumentStore
from citecheck_core.types import (
    INCONCLUSIVE_CONFIDENCE,
    Document,
    EnhancedReference,
    MissingReferenceHandling,
    ProcessedReference,
    ProgressEvent,
    RunStatus,
    VerificationReport,
    VerificationResult,
)

from .oracle import Oracle
from .parse import ErrorVerdict, Verdict, parse_oracle_reply
from .prompt import DEFAULT_CHAR_BUDGET, build_verification_prompt
from .report import assemble_report, reference_link, result_status

logger = logging.getLogger(__name__)


class MissingRefAction(str, Enum):
    SKIP = "skip"
    ADD = "add"
    VERIFY = "verify"


MissingRefPrompt = Callable[[EnhancedReference], MissingRefAction]
ProgressCallback = Callable[[ProgressEvent], None]

_PROMPT_CHOICES = {"1": MissingRefAction.SKIP, "2": MissingRefAction.ADD, "3": MissingRefAction.VERIFY}


def ask_missing_reference(reference: EnhancedReference, console: Console | None = None) -> MissingRefAction:
    console = console or Console()
    summary = reference.reference
    console.print(f"\n[bold yellow]Reference not found:[/] {summary.title or summary.id}")
    if summary.authors:
        console.print(f"  Authors: {', '.join(summary.authors)}")
    if summary.doi:
        console.print(f"  DOI: {summary.doi}")
    console.print("  1) Skip (treat as unverified)")
    console.print("  2) Add to fetch list for later verification")
    console.print("  3) Mark as manually verified")
    choice = Prompt.ask("Choose an action", choices=list(_PROMPT_CHOICES), default="1", console=console)
    return _PROMPT_CHOICES[choice]


class _ProgressTracker:
    def __init__(self, run_id: str | None, total: int, callback: ProgressCallback | None) -> None:
        self.run_id = run_id
        self.total = total
        self.callback = callback
        self.processed: list[ProcessedReference] = []
        self.current_index = 0
        self._lock = threading.Lock()

    def _emit(self, current_reference: str, status: RunStatus) -> None:
        if self.callback is None:
            return
        event = ProgressEvent(
            run_id=self.run_id,
            current_reference=current_reference,
            current_index=self.current_index,
            total_references=self.total,
            processed_references=list(self.processed),
            status=status,
        )
        try:
            self.callback(event)
        except Exception:  # noqa: BLE001
            logger.exception("Progress listener failed")

    def started(self, position: int, reference: EnhancedReference) -> None:
        with self._lock:
            self.current_index = max(self.current_index, position + 1)
            self._emit(reference.title, "processing")

    def finished(self, reference: EnhancedReference, result: VerificationResult) -> None:
        with self._lock:
            self.processed.append(
                ProcessedReference(
                    id=reference.reference.id,
                    title=reference.title,
                    status=result_status(result),
                    link=reference_link(reference.reference.doi),
                )
            )
            self._emit(reference.title, "processing")

    def close(self, status: RunStatus) -> None:
        with self._lock:
            self._emit("", status)


class CitationVerifier:
    """Checks each reference against the document store and the oracle."""

    def __init__(
        self,
        store: DocumentStore,
        oracle: Oracle,
        *,
        missing_ref_handling: MissingReferenceHandling = "log",
        content_char_budget: int = DEFAULT_CHAR_BUDGET,
        prompt_missing: MissingRefPrompt | None = None,
        on_progress: ProgressCallback | None = None,
        max_workers: int = 1,
        cancel_event: threading.Event | None = None,
    ) -> None:
        self.store = store
        self.oracle = oracle
        self.missing_ref_handling = missing_ref_handling
        self.content_char_budget = content_char_budget
        self.prompt_missing = prompt_missing or ask_missing_reference
        self.on_progress = on_progress
        self.max_workers = max(1, max_workers)
        self.cancel_event = cancel_event or threading.Event()
        self._prompt_lock = threading.Lock()

    def _result(self, reference: EnhancedReference, verdict: Verdict, *, found: bool) -> VerificationResult:
        return VerificationResult(
            citation_context=reference.primary_context or "",
            reference_title=reference.title or reference.reference.id,
            is_verified=verdict.is_verified,
            confidence_score=verdict.confidence,
            match_location=verdict.match_location,
            explanation=verdict.explanation,
            reference_found=found,
        )

    def _missing(
        self, reference: EnhancedReference, explanation: str, *, verified: bool = False, confidence: float = 0.0
    ) -> VerificationResult:
        return VerificationResult(
            citation_context=reference.primary_context or "",
            reference_title=reference.title or reference.reference.id,
            is_verified=verified,
            confidence_score=confidence,
            explanation=explanation,
            reference_found=False,
        )

    def verify_with_document(self, reference: EnhancedReference, document: Document) -> VerificationResult:
        prompt = build_verification_prompt(reference.primary_context or "", document, self.content_char_budget)
        verdict: Verdict
        try:
            verdict = parse_oracle_reply(self.oracle.generate(prompt))
        except CitecheckError as exc:
            logger.error("Oracle call failed for reference %r: %s", reference.title, exc)
            verdict = ErrorVerdict(str(exc))
        except Exception as exc:  # noqa: BLE001
            logger.exception("Oracle call failed unexpectedly for reference %r", reference.title)
            verdict = ErrorVerdict(str(exc) or type(exc).__name__)
        return self._result(reference, verdict, found=True)

    def handle_missing_reference(self, reference: EnhancedReference) -> VerificationResult:
        policy = self.missing_ref_handling
        title = reference.title or reference.reference.id

        if policy == "skip":
            return self._missing(
                reference,
                "Reference not found in document store. Verification skipped.",
                confidence=INCONCLUSIVE_CONFIDENCE,
            )

        if policy == "fetch":
            logger.info("Reference %r not found; automatic fetching is not implemented yet", title)
            return self._missing(reference, "Reference not found in document store. Auto-fetch not implemented yet.")

        if policy == "prompt":
            with self._prompt_lock:
                action = self.prompt_missing(reference)
            if action is MissingRefAction.ADD:
                self.store.add_to_fetch_list(reference.reference)
                return self._missing(
                    reference,
                    "Reference added to fetch list for later verification.",
                    confidence=INCONCLUSIVE_CONFIDENCE,
                )
            if action is MissingRefAction.VERIFY:
                return self._missing(reference, "Manually verified by user.", verified=True, confidence=1.0)
            return self._missing(reference, "Reference not found in document store. Accepted as unverified.")

        logger.warning("Reference %r not found in document store", title)
        return self._missing(reference, "Reference document not found in database. Verification not possible.")

    def verify_reference(self, reference: EnhancedReference) -> VerificationResult:
        match = self.store.lookup(reference.reference)
        if match is None:
            return self.handle_missing_reference(reference)
        logger.info("Verifying %r against %s (matched by %s)", reference.title, match.document.id, match.strategy)
        return self.verify_with_document(reference, match.document)

    def _verify_safely(self, reference: EnhancedReference) -> VerificationResult:
        try:
            return self.verify_reference(reference)
        except Exception as exc:  # noqa: BLE001
            logger.exception("Verification failed for reference %r", reference.title)
            return self._missing(reference, ErrorVerdict(str(exc)).explanation)

    def verify_all(
        self, references: list[EnhancedReference], document_title: str, run_id: str | None = None
    ) -> VerificationReport:
        tracker = _ProgressTracker(run_id, len(references), self.on_progress)
        results: list[VerificationResult | None] = [None] * len(references)

        def run_one(position: int) -> None:
            if self.cancel_event.is_set():
                return
            reference = references[position]
            tracker.started(position, reference)
            logger.info("Reference %d/%d: %s", position + 1, len(references), reference.title)
            result = self._verify_safely(reference)
            results[position] = result
            tracker.finished(reference, result)

        if self.max_workers == 1:
            for position in range(len(references)):
                if self.cancel_event.is_set():
                    break
                run_one(position)
        else:
            with ThreadPoolExecutor(max_workers=self.max_workers) as pool:
                list(pool.map(run_one, range(len(references))))

        completed = [result for result in results if result is not None]
        cancelled = len(completed) < len(references)
        if cancelled:
            logger.warning("Verification cancelled after %d of %d references", len(completed), len(references))
        tracker.close("cancelled" if cancelled else "completed")
        return assemble_report(document_title, completed, cancelled=cancelled)
