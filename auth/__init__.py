"""auth/ -- Authentication and authorization package for the LukaMath portal.

Layer rule: auth/ imports only core/, stdlib and third-party libraries.
It does NOT import from api/, client/, or cache/.
api/ imports from auth/, not the other way around. auth/policy.py reads
homework/models.py dataclasses but never the store.
"""
