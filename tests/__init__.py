"""
HLMM Test Suite

Tests for the HLMM market maker covering:
- Configuration loading and validation
- Tick rounding and number helpers
- Market data store and feed reconnection
- Quote computation and the risk gate
- Order cancel-and-replace lifecycle
- Exchange gateway decoding (with mocked HTTP)
- Logging and the quoting loop end to end
"""
