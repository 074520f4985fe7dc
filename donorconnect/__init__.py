"""DonorConnect simulation state synchronizer."""

__version__ = "0.1.0"
