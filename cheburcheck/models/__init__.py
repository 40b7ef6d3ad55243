"""Cheburcheck - Data Models"""
from .evidence import (
    # Enums
    Evidence,
    # Intake
    ProbeConfig, ReportEnvelope, EvidenceItem,
    # Consensus
    Observation, WhitelistEntry,
)

__all__ = [
    "Evidence",
    "ProbeConfig", "ReportEnvelope", "EvidenceItem",
    "Observation", "WhitelistEntry",
]
