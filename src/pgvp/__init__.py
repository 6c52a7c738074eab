"""
pgvp - PostgreSQL + pgvector host provisioner.

Installs PostgreSQL and pgvector on EL8-family hosts, tunes the server
from detected hardware, and creates an application role and database.
"""

__version__ = "1.0.0"
__author__ = "Server Management Team"
