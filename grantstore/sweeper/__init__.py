"""Expiry sweeping for the authorization store."""

from .sweeper import ExpirySweeper

__all__ = ["ExpirySweeper"]
