"""Place catalogued stars from a photograph into a 3D viewing volume."""
