"""nodectl - prepare, attach and decommission nodes against a managed control plane."""

__version__ = "0.1.0"
