"""Pure, synchronous scoring and classification functions."""
