"""Core module: settings, liquidity configuration, errors and input validation."""
