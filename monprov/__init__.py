"""monprov - boot-time monitor-mode interface provisioner."""

__version__ = "0.1.0"
