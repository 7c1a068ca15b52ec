"""
Durable storage of persons, accounts, organizations, memberships, groups and
sessions.

The schema lives in :mod:`.models`; :mod:`.entities` reconciles identity
claims with it.
"""
