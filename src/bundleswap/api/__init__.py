"""HTTP command surface."""
