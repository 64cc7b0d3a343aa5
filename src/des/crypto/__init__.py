"""Tamper-evidence for the employment history."""

from des.crypto.anchor import AnchorRecord, anchor_event_log, anchor_to_chain

__all__ = ["AnchorRecord", "anchor_event_log", "anchor_to_chain"]
