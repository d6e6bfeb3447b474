"""Top-level wiring for the petty cash claims workflow."""

from pettycash_services.claims_orchestrator import ClaimsOrchestrator, build_extractor

__all__ = ["ClaimsOrchestrator", "build_extractor"]
