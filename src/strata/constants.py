"""
Shared constants for Strata.

This module provides a single source of truth for default values
that are used across multiple modules.
"""

# Secret detection
DEFAULT_SECRET_PATTERN = "(key)|(secret)|(pass)|(password)|(cert)|(certificate)"
"""Default pattern for key names whose values are treated as secrets.

Matched case-insensitively against the key text, so "Secret", "API_KEY"
and "passphrase" are all secret keys.
"""

MASK_CHAR = "*"
"""Character used to mask secret scalar values."""

COLLAPSED_MASK = "*"
"""Value a secret substructure collapses to."""

# Merge limits
DEFAULT_MAX_DEPTH = 200
"""Maximum merge recursion depth before the merge fails closed.

Legitimate configuration rarely nests deeper than a few dozen levels;
hitting this limit almost always means a cyclic alias graph. Each level
costs a few interpreter frames, so the limit stays well below the
interpreter recursion limit.
"""

# Environment
ENV_PREFIX = "STRATA_"
"""Prefix for environment variables read by Strata settings."""
