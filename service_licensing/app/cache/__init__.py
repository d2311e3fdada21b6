"""
Cache package for Licensing Service.

Provides the store protocol the verdict coordinator consumes, an in-process
store without native expiry and a Redis-backed store that expires keys itself.
"""
