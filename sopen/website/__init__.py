"""Static site output: generated pages, shipped assets, and the generator."""
