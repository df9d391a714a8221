"""reelrelay command-line interface."""
