import pytest
import requests

from nodectl.modules.errors import DownloadError, InstallerExecutionError, RegistrationError
from nodectl.modules.installer import (
    INSTALLER_ERRORS,
    UNKNOWN_INSTALLER_ERROR,
    HostAgentInstaller,
    parse_host_id,
    read_host_id,
    resolve_installer_variant,
    translate_exit_code,
)
from nodectl.modules.models import HostFamily, InstallerVariant, PlatformDescriptor

UBUNTU = PlatformDescriptor(HostFamily.DEBIAN, '20.04')
CENTOS = PlatformDescriptor(HostFamily.REDHAT, '7')


@pytest.mark.parametrize("code", sorted(INSTALLER_ERRORS))
def test_known_exit_codes_have_messages(code):
    assert translate_exit_code(code) == INSTALLER_ERRORS[code]
    assert translate_exit_code(code) != UNKNOWN_INSTALLER_ERROR


@pytest.mark.parametrize("code", [0, 9, 127, -1, None])
def test_unknown_exit_codes(code):
    assert translate_exit_code(code) == UNKNOWN_INSTALLER_ERROR


def test_discovery_certless(clients):
    http = clients.keystone.session

    assert resolve_installer_variant('region.example.com', UBUNTU, session=http) == InstallerVariant.CERTLESS
    assert http.urls == ['https://region.example.com/clarity/platform9-install-debian.sh']


def test_discovery_legacy(clients):
    http = clients.keystone.session
    http.status_code = 404

    assert resolve_installer_variant('region.example.com', CENTOS, session=http) == InstallerVariant.LEGACY
    assert http.urls == ['https://region.example.com/clarity/platform9-install-redhat.sh']


@pytest.mark.parametrize("status", [401, 500, 503])
def test_discovery_other_status(clients, status):
    clients.keystone.session.status_code = status

    with pytest.raises(DownloadError, match=str(status)):
        resolve_installer_variant('region.example.com', UBUNTU, session=clients.keystone.session)


def test_discovery_network_error(clients):
    http = clients.keystone.session
    http.exc = requests.ConnectionError("connection refused")

    with pytest.raises(DownloadError, match="connection refused"):
        resolve_installer_variant('region.example.com', UBUNTU, session=http)


@pytest.mark.parametrize("content,expected", [
    ('host_id=abc-123\n', 'abc-123'),
    ('[hostagent]\nhost_id = abc-123\n', 'abc-123'),
    ('host_id="abc-123"', 'abc-123'),
    ('other=1\n', ''),
    ('', ''),
])
def test_parse_host_id(content, expected):
    assert parse_host_id(content) == expected


def test_read_host_id_unreadable(executor):
    executor.add('cat /etc/pf9/host_id.conf', 1, '')

    with pytest.raises(RegistrationError):
        read_host_id(executor)


def test_download_failure_still_cleans_up(ctx, ubuntu_host):
    ubuntu_host.add('curl', 22, '')

    with pytest.raises(DownloadError):
        HostAgentInstaller(ctx).install('region.example.com', UBUNTU, InstallerVariant.CERTLESS)

    assert not ubuntu_host.ran('installer.sh --no-proxy')
    assert ubuntu_host.ran('rm -rf /home/ubuntu/pf9/installer.sh')


def test_missing_home_directory(ctx, executor):
    executor.add('echo $HOME', 0, '\n')

    with pytest.raises(DownloadError, match="home directory"):
        HostAgentInstaller(ctx).install('region.example.com', UBUNTU, InstallerVariant.CERTLESS)

    assert not executor.ran('curl')


def test_installer_failure_carries_exit_code(ctx, ubuntu_host):
    ubuntu_host.add('installer.sh --no-proxy', 4, '')

    with pytest.raises(InstallerExecutionError) as excinfo:
        HostAgentInstaller(ctx).install('region.example.com', UBUNTU, InstallerVariant.CERTLESS)

    assert excinfo.value.exit_code == 4
    assert str(excinfo.value) == f"error while running installer script: {INSTALLER_ERRORS[4]}"


def test_certless_download_honours_allow_insecure(ctx):
    ctx.config.allow_insecure = True
    command = HostAgentInstaller(ctx).download_command(
        'region.example.com', UBUNTU, InstallerVariant.CERTLESS, '/root/pf9'
    )

    assert command == (
        "curl -k --silent --show-error "
        "https://region.example.com/clarity/platform9-install-debian.sh -o /root/pf9/installer.sh"
    )


def test_password_options_are_quoted(ctx):
    ctx.config.password = "pa ss'word"

    options = HostAgentInstaller(ctx).install_options('region.example.com', InstallerVariant.CERTLESS, '/root/pf9')

    assert options.startswith('--no-project --controller=region.example.com --username=admin@example.com')
    assert "--password='pa ss'\"'\"'word'" in options


def test_legacy_options(ctx):
    options = HostAgentInstaller(ctx).install_options('region.example.com', InstallerVariant.LEGACY, '/root/pf9')

    assert options == '--insecure --project-name=proj-1 2>&1 | tee -a /root/pf9/agent_install'
