"""Test doubles for loaders, admin channels and the query analyzer."""
