"""Intake services."""

from pettycash_ingestion.services.intake_service import IntakeService, UploadResult

__all__ = ["IntakeService", "UploadResult"]
