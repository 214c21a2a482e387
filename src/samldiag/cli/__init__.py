"""Command line interface for SAMLDiag."""
