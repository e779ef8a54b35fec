"""Submission engine: remote state, planning and execution of one stack."""
