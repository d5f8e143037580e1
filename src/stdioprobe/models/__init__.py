"""Data models for the probe request and its report."""

from stdioprobe.models.probe import CapabilityListRequest, ProbeOutcome, ProbeReport

__all__ = ["CapabilityListRequest", "ProbeOutcome", "ProbeReport"]
