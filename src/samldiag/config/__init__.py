"""Configuration loading for SAMLDiag."""
