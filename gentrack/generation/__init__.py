"""Capacity-factor normalization, regional benchmarking and plant classification."""
