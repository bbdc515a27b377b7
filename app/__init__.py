"""Notification dispatch service.

Layers live in sub-packages: ``domain`` (entities and errors), ``application``
(use cases), ``infrastructure`` (database, queue and realtime backends) and
``interfaces`` (HTTP and websocket API).
"""
