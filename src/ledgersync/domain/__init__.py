"""Domain layer for ledgersync.

Services live in their own modules (``ledgersync.domain.sync``,
``ledgersync.domain.posting``, ...) and are imported from there.
"""
