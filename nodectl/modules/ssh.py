"""
SSH connection management for remote nodes using paramiko.
"""
import logging
import os
import time
from typing import Optional, Tuple

import paramiko

from .errors import ExecutorError

logger = logging.getLogger("nodectl.ssh")

READ_CHUNK = 32768
POLL_INTERVAL = 0.05


class SSHConnection:
    """A single SSH connection, opened once and reused for every command of a run."""

    def __init__(self, host: str, username: str, password: Optional[str] = None,
                 key_path: Optional[str] = None, port: int = 22, timeout: int = 30,
                 passphrase: Optional[str] = None):
        """Initialize and open the SSH connection.

        Args:
            host: Remote host to connect to
            username: Username for authentication
            password: Password for authentication (optional if a key is given)
            key_path: Path to SSH private key (optional)
            port: SSH port (default: 22)
            timeout: Connection timeout in seconds (default: 30)
            passphrase: Passphrase of an encrypted private key (optional)

        Raises:
            ExecutorError: If the connection cannot be established
        """
        self.host = host
        self.username = username
        self.password = password
        self.key_path = os.path.expanduser(key_path) if key_path else None
        self.port = port
        self.timeout = timeout
        self.passphrase = passphrase
        self.client: Optional[paramiko.SSHClient] = None
        self._connect()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()

    def _load_key(self) -> Optional[paramiko.PKey]:
        if not self.key_path:
            return None
        for key_cls in (paramiko.RSAKey, paramiko.Ed25519Key, paramiko.ECDSAKey):
            try:
                return key_cls.from_private_key_file(self.key_path, password=self.passphrase)
            except paramiko.SSHException:
                continue
        raise ExecutorError(f"Unsupported or unreadable SSH key: {self.key_path}")

    def _connect(self):
        """Establish the SSH connection."""
        pkey = self._load_key()
        client = paramiko.SSHClient()
        client.set_missing_host_key_policy(paramiko.AutoAddPolicy())
        logger.debug(f"Connecting to {self.username}@{self.host}:{self.port}")
        try:
            client.connect(
                hostname=self.host,
                port=self.port,
                username=self.username,
                password=self.password if not pkey else None,
                pkey=pkey,
                timeout=self.timeout,
                allow_agent=not self.password,
                look_for_keys=not (self.password or pkey),
            )
        except (paramiko.SSHException, OSError) as e:
            logger.error(f"Failed to establish SSH connection to {self.username}@{self.host}: {str(e)}")
            raise ExecutorError(f"Unable to connect to {self.host}: {e}") from e
        self.client = client
        logger.debug(f"SSH connection to {self.username}@{self.host} established")

    def _drain(self, channel) -> Tuple[int, bytes, bytes]:
        """Read both streams until the command exits, then collect its status."""
        out, err = [], []
        while True:
            idle = True
            while channel.recv_ready():
                out.append(channel.recv(READ_CHUNK))
                idle = False
            while channel.recv_stderr_ready():
                err.append(channel.recv_stderr(READ_CHUNK))
                idle = False
            if channel.exit_status_ready() and not channel.recv_ready() and not channel.recv_stderr_ready():
                break
            if idle:
                time.sleep(POLL_INTERVAL)
        return channel.recv_exit_status(), b''.join(out), b''.join(err)

    def execute(self, command: str, timeout: Optional[int] = None) -> Tuple[int, str, str]:
        """Execute a command over the open connection.

        Args:
            command: Command line run by the remote shell
            timeout: Command timeout in seconds (optional)

        Returns:
            tuple: (exit_code, stdout, stderr)
        """
        if self.client is None:
            raise ExecutorError(f"SSH connection to {self.host} is closed")
        try:
            _, stdout, _ = self.client.exec_command(command, timeout=timeout)
            exit_code, out, err = self._drain(stdout.channel)
        except (paramiko.SSHException, OSError) as e:
            raise ExecutorError(f"SSH command on {self.host} failed: {e}") from e
        return exit_code, out.decode('utf-8', errors='replace'), err.decode('utf-8', errors='replace')

    def close(self):
        """Close the SSH connection."""
        if self.client is not None:
            self.client.close()
            self.client = None
            logger.debug(f"Closed SSH connection to {self.host}")
