"""monprov infrastructure - kernel backends and the provisioning pipeline."""
