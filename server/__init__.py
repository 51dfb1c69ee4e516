"""HTTP room server for FourFor4."""
