"""Registry — access to container package versions and their manifests.

The registry layer provides:
- Models: package versions, manifests, and descriptors
- Package store: paginated listing and deletion for user and org packages
- Manifest resolver: typed manifest reads from the registry v2 API
- Catalog: a duplicate-checked, stable snapshot of all versions
"""
