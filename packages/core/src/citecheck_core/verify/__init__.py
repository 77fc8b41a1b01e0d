from .engine import CitationVerifier, MissingRefAction, ask_missing_reference
from .oracle import GeminiOracle, Oracle
from .parse import ErrorVerdict, HeuristicVerdict, StructuredVerdict, Verdict, parse_oracle_reply
from .prompt import build_verification_prompt
from .report import assemble_report, result_status, summarize_report

__all__ = [
    "CitationVerifier",
    "ErrorVerdict",
    "GeminiOracle",
    "HeuristicVerdict",
    "MissingRefAction",
    "Oracle",
    "StructuredVerdict",
    "Verdict",
    "ask_missing_reference",
    "assemble_report",
    "build_verification_prompt",
    "parse_oracle_reply",
    "result_status",
    "summarize_report",
]
