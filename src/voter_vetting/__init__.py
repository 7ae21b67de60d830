"""Voter roll reconciliation: roll import, candidate matching, vetting, and duplicate detection."""
