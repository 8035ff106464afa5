"""Command line interface for neuralgraph."""
