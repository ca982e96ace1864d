import pytest

from nodectl.modules.errors import (
    AuthorizationError,
    DetectionError,
    DownloadError,
    InstallerExecutionError,
    PreconditionError,
    RegistrationError,
)
from nodectl.modules.models import InstallerVariant
from nodectl.modules.prep import prep_node


def test_prep_certless_installs_and_authorizes(ctx, clients, ubuntu_host, sleeps, log):
    host_id = prep_node(ctx, clients)

    assert host_id == 'abc-123'
    assert ctx.installer_variant == InstallerVariant.CERTLESS
    assert clients.keystone.session.urls == ['https://region.example.com/clarity/platform9-install-debian.sh']
    assert ubuntu_host.ran('curl --silent --show-error https://region.example.com/clarity/platform9-install-debian.sh')
    assert ubuntu_host.ran('mkdir -p /home/ubuntu/pf9')

    install = ubuntu_host.commands[ubuntu_host.index('installer.sh --no-proxy')]
    assert install.startswith('bash -c /home/ubuntu/pf9/installer.sh --no-proxy --skip-os-check --no-ntp')
    assert '--controller=region.example.com' in install
    assert '--username=admin@example.com' in install
    assert '--password=s3cret' in install

    assert sleeps == [7]
    assert ('authorize_host', 'abc-123') in log
    assert clients.segment.events[-1] == ('Prep-node : Successful', 'PASS', '')


def test_prep_cleans_up_installer_after_success(ctx, clients, ubuntu_host, sleeps):
    prep_node(ctx, clients)

    run_at = ubuntu_host.index('installer.sh --no-proxy')
    assert ubuntu_host.index('rm -rf /home/ubuntu/pf9/installer.sh') > run_at
    assert ubuntu_host.ran('rm -rf /home/ubuntu/pf9/pf9-install-*')
    assert ubuntu_host.ran('rm -rf /home/ubuntu/pf9/agent_install')


def test_prep_legacy_installer_uses_token(ctx, clients, ubuntu_host, sleeps):
    clients.keystone.session.status_code = 404

    prep_node(ctx, clients)

    assert ctx.installer_variant == InstallerVariant.LEGACY
    download = ubuntu_host.commands[ubuntu_host.index('curl')]
    assert '--insecure' in download
    assert 'X-Auth-Token:tok-123' in download
    assert 'https://region.example.com/private/platform9-install-debian.sh' in download
    install = ubuntu_host.commands[ubuntu_host.index('installer.sh --no-proxy')]
    assert '--project-name=proj-1' in install
    assert 'tee -a /home/ubuntu/pf9/agent_install' in install


def test_prep_unexpected_discovery_status_is_fatal(ctx, clients, ubuntu_host, sleeps, log):
    clients.keystone.session.status_code = 500

    with pytest.raises(DownloadError, match="500"):
        prep_node(ctx, clients)

    assert not ubuntu_host.ran('curl')
    assert not ubuntu_host.ran('installer.sh')
    assert not any(entry[0] == 'authorize_host' for entry in log)
    assert ctx.installer_variant is None


def test_prep_fails_when_packages_already_present(ctx, clients, ubuntu_host, sleeps, log):
    ubuntu_host.add("grep -i 'pf9-hostagent'", 0, 'ii  pf9-hostagent  5.6.0  amd64\n')

    with pytest.raises(PreconditionError, match="already present"):
        prep_node(ctx, clients)

    assert not ubuntu_host.ran('curl')
    assert clients.keystone.session.urls == []
    assert ('fetch_region_fqdn', 'RegionOne') not in log
    name, status, error = clients.segment.events[-1]
    assert (name, status) == ('Prep-node : ERROR', 'FAIL')
    assert 'already present' in error


def test_prep_aborts_when_dpkg_lock_is_held(ctx, clients, ubuntu_host, sleeps):
    ubuntu_host.add('lsof', 0, 'apt-get 4242 root 3uW REG /var/lib/dpkg/lock-frontend\n')
    ubuntu_host.add('systemctl is-active unattended-upgrades', 0, 'active\n')

    with pytest.raises(PreconditionError, match="Dpkg is under lock"):
        prep_node(ctx, clients)

    assert not ubuntu_host.ran('systemctl stop unattended-upgrades')
    assert not ubuntu_host.ran("grep -i 'pf9-hostagent'")


def test_prep_restores_unattended_upgrades_when_installer_fails(ctx, clients, ubuntu_host, sleeps):
    ubuntu_host.add('systemctl is-active unattended-upgrades', 0, 'active\n')
    ubuntu_host.add('systemctl is-enabled unattended-upgrades', 0, 'enabled\n')
    ubuntu_host.add('installer.sh --no-proxy', 3, '')

    with pytest.raises(InstallerExecutionError) as excinfo:
        prep_node(ctx, clients)

    assert excinfo.value.exit_code == 3
    assert 'already installed' in str(excinfo.value)

    run_at = ubuntu_host.index('installer.sh --no-proxy')
    assert ubuntu_host.index('systemctl stop unattended-upgrades') < run_at
    assert ubuntu_host.index('systemctl disable unattended-upgrades') < run_at
    assert ubuntu_host.index('systemctl enable unattended-upgrades') > run_at
    assert ubuntu_host.index('systemctl start unattended-upgrades') > run_at
    assert ubuntu_host.index('rm -rf /home/ubuntu/pf9/installer.sh') > run_at


def test_prep_leaves_inactive_unattended_upgrades_alone(ctx, clients, ubuntu_host, sleeps):
    ubuntu_host.add('systemctl is-active unattended-upgrades', 3, 'inactive\n')

    prep_node(ctx, clients)

    assert not ubuntu_host.ran('systemctl stop unattended-upgrades')
    assert not ubuntu_host.ran('systemctl start unattended-upgrades')


def test_prep_unknown_installer_exit_code(ctx, clients, ubuntu_host, sleeps):
    ubuntu_host.add('installer.sh --no-proxy', 77, '')

    with pytest.raises(InstallerExecutionError, match="Unknown installer error"):
        prep_node(ctx, clients)


def test_prep_skip_kube_does_not_authorize(ctx, clients, ubuntu_host, sleeps, log):
    ctx.config.skip_kube = True

    assert prep_node(ctx, clients) == 'abc-123'

    assert sleeps == []
    assert not any(entry[0] == 'authorize_host' for entry in log)


def test_prep_authorization_failure(ctx, clients, ubuntu_host, sleeps):
    clients.resmgr.fail_authorize = True

    with pytest.raises(AuthorizationError, match="Unable to authorise host"):
        prep_node(ctx, clients)


def test_prep_missing_host_id_is_fatal(ctx, clients, ubuntu_host, sleeps, log):
    ubuntu_host.add('cat /etc/pf9/host_id.conf', 0, '\n')

    with pytest.raises(RegistrationError):
        prep_node(ctx, clients)

    assert not any(entry[0] == 'authorize_host' for entry in log)


def test_prep_unknown_os_is_rejected_before_any_change(ctx, clients, executor, sleeps, log):
    executor.add('cat /etc/os-release', 0, 'NAME="Arch Linux"\nID=arch\n')

    with pytest.raises(DetectionError):
        prep_node(ctx, clients)

    assert [entry for entry in log if entry[0] != 'exec'] == []
    assert executor.commands == ['cat /etc/os-release']


def test_prep_remote_runs_installer_as_single_command(ctx, clients, ubuntu_host, sleeps):
    ubuntu_host.remote = True
    ctx.remote = True

    prep_node(ctx, clients)

    install = ubuntu_host.commands[ubuntu_host.index('installer.sh --no-proxy')]
    assert install.startswith('bash /home/ubuntu/pf9/installer.sh --no-proxy')


def test_prep_with_mfa_passes_user_token(ctx, clients, ubuntu_host, sleeps):
    ctx.config.mfa_token = '654321'

    prep_node(ctx, clients)

    install = ubuntu_host.commands[ubuntu_host.index('installer.sh --no-proxy')]
    assert '--user-token=tok-123' in install
    assert '--password' not in install


def test_prep_with_proxy(ctx, clients, ubuntu_host, sleeps):
    ctx.config.proxy_url = 'http://proxy.local:3128'

    prep_node(ctx, clients)

    assert ubuntu_host.ran('installer.sh --proxy http://proxy.local:3128 --skip-os-check --no-ntp')


def test_prep_redhat_host(ctx, clients, centos_host, sleeps, log):
    assert prep_node(ctx, clients) == 'def-456'

    assert not centos_host.ran('lsof')
    assert not centos_host.ran('unattended-upgrades')
    assert centos_host.ran("yum list installed | { grep -i 'pf9-hostagent' || true; }")
    assert clients.keystone.session.urls == ['https://region.example.com/clarity/platform9-install-redhat.sh']
