"""
Command executors that run shell commands on the local machine or on a remote node.

Every orchestration step goes through an Executor, so the same code path works
whether nodectl runs on the node itself or drives it over SSH.
"""
import logging
import os
import shlex
import subprocess
from abc import ABC, abstractmethod
from typing import Dict, List, Optional, Tuple

from .errors import CommandError
from .models import ExecutionTarget
from .ssh import SSHConnection

logger = logging.getLogger("nodectl.executor")


def _proxy_environment(proxy_url: Optional[str]) -> Dict[str, str]:
    if not proxy_url:
        return {}
    return {
        'http_proxy': proxy_url,
        'https_proxy': proxy_url,
        'HTTP_PROXY': proxy_url,
        'HTTPS_PROXY': proxy_url,
    }


def _proxy_assignments(proxy_url: Optional[str]) -> List[str]:
    """VAR=value words that carry the proxy through sudo, which resets the environment."""
    return [f"{name}={value}" for name, value in _proxy_environment(proxy_url).items()]


class Executor(ABC):
    """Runs commands and reports their output and exit status."""

    def __init__(self, use_sudo: bool = True, proxy_url: Optional[str] = None):
        self.use_sudo = use_sudo
        self.proxy_url = proxy_url

    @property
    @abstractmethod
    def is_remote(self) -> bool:
        """True when commands run on a remote host."""

    @abstractmethod
    def execute(self, *args: str, timeout: Optional[int] = None) -> Tuple[int, str, str]:
        """Run a command without raising on a non-zero exit.

        Returns:
            tuple: (exit_code, stdout, stderr)
        """

    def run_with_stdout(self, *args: str, timeout: Optional[int] = None) -> str:
        """Run a command and return its stdout.

        Raises:
            CommandError: If the command exits with a non-zero status
        """
        exit_code, stdout, stderr = self.execute(*args, timeout=timeout)
        if exit_code != 0:
            command = ' '.join(args)
            logger.debug(f"Command '{command}' exited with {exit_code}: {stderr.strip()}")
            raise CommandError(command, exit_code, stdout + stderr)
        return stdout

    def run_command_wait(self, command: str) -> None:
        """Run a shell command, logging rather than raising on failure."""
        exit_code, _, stderr = self.execute('bash', '-c', command)
        if exit_code != 0:
            logger.debug(f"Command '{command}' exited with {exit_code}: {stderr.strip()}")

    def check_sudo(self) -> bool:
        """Return True if the executing user may run commands with sudo."""
        exit_code, _, _ = self.execute('sudo', '-l')
        return exit_code == 0

    def close(self) -> None:
        pass

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()


class LocalExecutor(Executor):
    """Runs commands in a child process on this machine."""

    @property
    def is_remote(self) -> bool:
        return False

    def _argv(self, args) -> list:
        argv = list(args)
        if self.use_sudo and argv and argv[0] != 'sudo' and os.geteuid() != 0:
            proxy = _proxy_assignments(self.proxy_url)
            argv = ['sudo'] + (['env'] + proxy if proxy else []) + argv
        return argv

    def execute(self, *args: str, timeout: Optional[int] = None) -> Tuple[int, str, str]:
        argv = self._argv(args)
        env = dict(os.environ)
        env.update(_proxy_environment(self.proxy_url))
        logger.debug(f"Running locally: {argv}")
        try:
            result = subprocess.run(
                argv,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                text=True,
                env=env,
                timeout=timeout
            )
        except subprocess.TimeoutExpired:
            return (124, '', f"Command timed out after {timeout} seconds")
        except OSError as e:
            return (127, '', str(e))
        return (result.returncode, result.stdout, result.stderr)


class RemoteExecutor(Executor):
    """Runs commands on a remote node over a single SSH connection."""

    def __init__(self, connection: SSHConnection, use_sudo: bool = True,
                 proxy_url: Optional[str] = None):
        super().__init__(use_sudo=use_sudo, proxy_url=proxy_url)
        self.connection = connection

    @property
    def is_remote(self) -> bool:
        return True

    def _command_line(self, args) -> str:
        # A single argument is already a complete command line
        command = args[0] if len(args) == 1 else shlex.join(args)
        if command.startswith('sudo '):
            return command
        proxy = _proxy_assignments(self.proxy_url)
        if proxy:
            # sshd and sudo both drop the caller's environment
            command = f"env {shlex.join(proxy)} {command}"
        if self.use_sudo:
            command = f"sudo {command}"
        return command

    def execute(self, *args: str, timeout: Optional[int] = None) -> Tuple[int, str, str]:
        command = self._command_line(args)
        logger.debug(f"Running on {self.connection.host}: {command}")
        return self.connection.execute(command, timeout=timeout)

    def close(self) -> None:
        self.connection.close()


def get_executor(target: ExecutionTarget, use_sudo: bool = True) -> Executor:
    """Build the executor for an execution target.

    Args:
        target: Local or remote execution target
        use_sudo: Run commands with elevated privilege

    Returns:
        Executor: A RemoteExecutor when the target names a host, else a LocalExecutor

    Raises:
        ExecutorError: If the remote connection cannot be established
    """
    if target.is_remote:
        logger.debug(f"Using remote executor for {target.user}@{target.host}")
        connection = SSHConnection(
            host=target.host,
            username=target.user,
            password=target.password,
            key_path=target.ssh_key,
            passphrase=target.ssh_passphrase,
            port=target.port,
        )
        return RemoteExecutor(connection, use_sudo=use_sudo, proxy_url=target.proxy_url)
    logger.debug("Using local executor")
    return LocalExecutor(use_sudo=use_sudo, proxy_url=target.proxy_url)
