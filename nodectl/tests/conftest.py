import types
from typing import List, Optional, Tuple

import pytest

from nodectl.config import Config
from nodectl.modules.client import Client
from nodectl.modules.errors import APIError
from nodectl.modules.executor import Executor
from nodectl.modules.models import KeystoneAuth, NodeInfo, RunContext

UBUNTU_RELEASE = 'NAME="Ubuntu"\nVERSION_ID="20.04"\nID=ubuntu\nID_LIKE=debian\n'
CENTOS_RELEASE = 'NAME="CentOS Linux"\nVERSION_ID="7"\nID="centos"\nID_LIKE="rhel fedora"\n'


class FakeExecutor(Executor):
    """Executor answering commands from a script of (substring, exit_code, stdout) rules.

    The first rule whose substring occurs in the command wins; unmatched
    commands succeed with empty output.
    """

    def __init__(self, rules: Optional[List[Tuple[str, int, str]]] = None, remote: bool = False, log=None):
        super().__init__(use_sudo=False)
        self.rules = list(rules or [])
        self.remote = remote
        self.commands: List[str] = []
        self.log = log if log is not None else []

    @property
    def is_remote(self) -> bool:
        return self.remote

    def add(self, pattern: str, exit_code: int = 0, stdout: str = ''):
        self.rules.insert(0, (pattern, exit_code, stdout))

    def execute(self, *args, timeout=None):
        command = ' '.join(args)
        self.commands.append(command)
        self.log.append(('exec', command))
        for pattern, exit_code, stdout in self.rules:
            if pattern in command:
                return exit_code, stdout, '' if exit_code == 0 else 'failed'
        return 0, '', ''

    def ran(self, pattern: str) -> bool:
        return any(pattern in c for c in self.commands)

    def index(self, pattern: str) -> int:
        for i, c in enumerate(self.commands):
            if pattern in c:
                return i
        raise AssertionError(f"{pattern!r} was never run")


class FakeHTTP:
    def __init__(self, status_code=200, exc=None):
        self.status_code = status_code
        self.exc = exc
        self.urls = []

    def get(self, url, **kwargs):
        self.urls.append(url)
        if self.exc:
            raise self.exc
        return types.SimpleNamespace(status_code=self.status_code)


class FakeKeystone:
    def __init__(self, log):
        self.log = log
        self.session = FakeHTTP()

    def fetch_region_fqdn(self, region, auth):
        self.log.append(('fetch_region_fqdn', region))
        return 'region.example.com'


class FakeResmgr:
    def __init__(self, log, hosts=None, fail_authorize=False):
        self.log = log
        self.hosts = hosts or {}
        self.fail_authorize = fail_authorize

    def get_host_ids(self, token, ips):
        self.log.append(('get_host_ids', tuple(ips)))
        return [self.hosts[ip] for ip in ips if ip in self.hosts]

    def get_host_id(self, token, ip):
        ids = self.get_host_ids(token, [ip])
        return ids[0] if ids else ''

    def authorize_host(self, host_id, token):
        self.log.append(('authorize_host', host_id))
        if self.fail_authorize:
            raise APIError("authorize failed", status_code=500)


class FakeQbert:
    def __init__(self, log, node=None, clusters=None, status='ok', fail=()):
        self.log = log
        self.node = node or NodeInfo()
        self.clusters = clusters if clusters is not None else {'prod': 'cluster-uuid'}
        self.status = status
        self.fail = set(fail)

    def _maybe_fail(self, op):
        if op in self.fail:
            raise APIError(f"{op} failed", status_code=500)

    def check_cluster_exists(self, name, project_id, token):
        self.log.append(('check_cluster_exists', name))
        if name in self.clusters:
            return True, self.clusters[name]
        return False, ''

    def get_cluster_status(self, project_id, token, cluster_uuid):
        self.log.append(('get_cluster_status', cluster_uuid))
        return self.status

    def get_node_info(self, token, project_id, host_id):
        self.log.append(('get_node_info', host_id))
        self._maybe_fail('node_info')
        return self.node

    def detach_node(self, cluster_uuid, project_id, token, host_id):
        self.log.append(('detach_node', host_id))
        self._maybe_fail('detach')

    def deauthorize_node(self, host_id, token):
        self.log.append(('deauthorize_node', host_id))
        self._maybe_fail('deauthorize')

    def attach_node(self, cluster_uuid, project_id, token, host_ids, role):
        self.log.append(('attach_node', role.value, tuple(host_ids)))
        self._maybe_fail(f"attach_{role.value}")


class FakeSegment:
    def __init__(self, log):
        self.log = log
        self.events = []

    def send_event(self, name, auth, status='', error=''):
        self.events.append((name, status, error))
        return True

    def close(self):
        pass


@pytest.fixture
def log():
    return []


@pytest.fixture
def config():
    return Config(
        fqdn='https://du.example.com',
        username='admin@example.com',
        password='s3cret',
        wait_period=7,
        settle_delay=3,
    )


@pytest.fixture
def auth():
    return KeystoneAuth(token='tok-123', project_id='proj-1', user_id='user-1')


@pytest.fixture
def executor(log):
    return FakeExecutor(log=log)


@pytest.fixture
def clients(log, executor):
    return Client(
        executor=executor,
        keystone=FakeKeystone(log),
        resmgr=FakeResmgr(log),
        qbert=FakeQbert(log),
        segment=FakeSegment(log),
    )


@pytest.fixture
def ctx(config, executor, auth):
    return RunContext(config=config, executor=executor, auth=auth, remote=executor.is_remote)


@pytest.fixture
def sleeps(monkeypatch):
    calls = []
    monkeypatch.setattr('nodectl.modules.prep.time.sleep', lambda s: calls.append(s))
    monkeypatch.setattr('nodectl.modules.decommission.time.sleep', lambda s: calls.append(s))
    return calls


@pytest.fixture
def ubuntu_host(executor):
    executor.add('cat /etc/os-release', 0, UBUNTU_RELEASE)
    executor.add("grep -i '^VERSION_ID'", 0, 'VERSION_ID="20.04"\n')
    executor.add('echo $HOME', 0, '/home/ubuntu\n')
    executor.add('hostname -I', 0, '10.0.0.5 172.17.0.1 \n')
    executor.add('cat /etc/pf9/host_id.conf', 0, 'host_id=abc-123\n')
    return executor


@pytest.fixture
def centos_host(executor):
    executor.add('cat /etc/os-release', 0, CENTOS_RELEASE)
    executor.add("grep -i '^VERSION_ID'", 0, 'VERSION_ID="7"\n')
    executor.add('echo $HOME', 0, '/root\n')
    executor.add('hostname -I', 0, '10.0.0.6\n')
    executor.add('cat /etc/pf9/host_id.conf', 0, 'host_id=def-456\n')
    return executor
