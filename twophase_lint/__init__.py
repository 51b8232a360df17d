"""Static checks for the twophase source tree (not distributed)."""
