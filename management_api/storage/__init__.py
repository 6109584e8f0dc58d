"""
Persistence for the management API.

This package is responsible for:
* Asynchronous key/value storage (filesystem and in-memory).
* Reading and writing repository YAML configs on top of that storage.
* Storing per-repository permission records.
"""
