"""User storage adapters.

Routes and services depend on ``AbstractUserRepository`` so the in-memory
store can be replaced by the relational one without touching them.
"""
