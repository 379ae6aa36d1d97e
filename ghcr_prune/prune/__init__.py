"""Prune — mark-and-sweep over package versions.

Versions kept by the retention policy are roots; everything reachable from
them through index manifests is marked; all other versions are swept.
"""
