"""
HLMM - single-instrument market maker for Hyperliquid.

Quotes a two-sided price around the mid, cancels and replaces it on a fixed
cadence, and vetoes orders that would breach the position cap.
"""
