"""Remote collaborators of the registry: blob store and package index."""
