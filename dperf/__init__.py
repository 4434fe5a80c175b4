"""Configuration checking, checksums, ARP frames, CPU load and launch planning for a network load generator."""

__version__ = "0.1.0"