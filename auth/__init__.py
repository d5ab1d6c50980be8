"""auth/ -- Authentication, session, and authorization package for the Music Library API.

Layer rule: auth/ imports only stdlib + third-party libraries + core/.
It does NOT import from api/ or catalog/.
api/ imports from auth/, not the other way around.
"""
