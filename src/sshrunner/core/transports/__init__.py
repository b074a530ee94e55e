"""Transport implementations.

Provides backends for opening remote sessions:
- ParamikoTransport: SSH sessions and SFTP channels via paramiko
"""

from sshrunner.core.transports.paramiko_transport import ParamikoTransport

__all__ = ["ParamikoTransport"]
