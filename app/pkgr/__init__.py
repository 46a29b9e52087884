"""pkgr - Transactional package repository manager.

Distributes versioned, hash-verified application bundles between local
repositories and remote HTTP sources.
"""

__version__ = "0.3.0"
