# Copyright (c) 2022 by Ron Frederick <ronf@timeheart.net> and others.
#
# This program and the accompanying materials are made available under
# the terms of the Eclipse Public License v2.0 which accompanies this
# distribution and is available at:
#
#     http://www.eclipse.org/legal/epl-2.0/
#
# This program may also be made available under the following secondary
# licenses when the conditions for such availability set forth in the
# Eclipse Public License v2.0 are satisfied:
#
#    GNU General Public License, Version 2.0, or any later versions of
#    that license
#
# SPDX-License-Identifier: EPL-2.0 OR GPL-2.0-or-later
#
# Contributors:
#     Ron Frederick - initial implementation, API, and documentation

"""SSH banner interop scenarios"""

import os
import tempfile

from collections import OrderedDict

from .constants import BANNER_FILE_MODE, DEFAULT_BANNER, DEFAULT_HOST
from .constants import DEFAULT_HOST_KEY_ALG, DEFAULT_USERNAME
from .constants import DEFAULT_CONNECT_INTERVAL, DEFAULT_CONNECT_RETRIES
from .constants import ROLE_CLIENT, ROLE_SERVER
from .constants import SSH_BINARY, SSH_ENV_VAR, SSHD_BINARY, SSHD_ENV_VAR
from .exchange import ServerExchange, allow_pubkey_user, fixed_banner
from .exchange import run_client_exchange
from .keys import load_host_key, write_host_key
from .logging import logger
from .misc import BannerMismatch, Options, Record, SetupError, hide_empty
from .misc import write_file
from .peer import find_binary, run_ssh, start_sshd
from .ports import create_listener, get_free_port
from .retry import connect_with_retry


class ScenarioOptions(Options):
    """Configuration options for SSH banner interop scenarios

       :param banner: (optional)
           The banner text configured on the sending side and expected
           on the receiving side
       :param host: (optional)
           The loopback address peers listen and connect on
       :param username: (optional)
           The username presented to the server
       :param sshd_path: (optional)
           The sshd binary to run instead of the one found in PATH
       :param ssh_path: (optional)
           The ssh binary to run instead of the one found in PATH
       :param host_key: (optional)
           The server's signing key, a path to load it from, or `None`
           to generate a new key for each scenario run
       :param host_key_alg: (optional)
           The algorithm used when generating a host key
       :param sshd_options: (optional)
           Additional sshd config settings
       :param ssh_options: (optional)
           Additional ssh config settings
       :param connect_retries: (optional)
           The number of attempts made to connect to a starting daemon
       :param connect_interval: (optional)
           The time in seconds to wait before each connection attempt
       :param client_timeout: (optional)
           The time in seconds to wait for the foreign client to exit,
           or `None` to wait indefinitely
       :param banner_received: (optional)
           A callable invoked with the banner text and language when
           our client receives a banner
       :param banner_callback: (optional)
           A callable taking a username and returning the banner our
           server sends, defaulting to one returning `banner`
       :param public_key_policy: (optional)
           A callable taking a username and public key and returning
           whether our server accepts the key
       :type banner: `str`
       :type host: `str`
       :type username: `str`
       :type sshd_path: `str`
       :type ssh_path: `str`
       :type host_key: :class:`asyncssh.SSHKey`, `str`, or `PurePath`
       :type host_key_alg: `str`
       :type sshd_options: `dict`
       :type ssh_options: `dict`
       :type connect_retries: `int`
       :type connect_interval: `float`
       :type client_timeout: `float`
       :type banner_received: `callable`
       :type banner_callback: `callable`
       :type public_key_policy: `callable`

    """

    # pylint: disable=arguments-differ,too-many-arguments,too-many-locals

    def prepare(self, banner=DEFAULT_BANNER, host=DEFAULT_HOST,
                username=DEFAULT_USERNAME, sshd_path=None, ssh_path=None,
                host_key=None, host_key_alg=DEFAULT_HOST_KEY_ALG,
                sshd_options=None, ssh_options=None,
                connect_retries=DEFAULT_CONNECT_RETRIES,
                connect_interval=DEFAULT_CONNECT_INTERVAL,
                client_timeout=None, banner_received=None,
                banner_callback=None, public_key_policy=allow_pubkey_user):
        """Prepare scenario configuration options"""

        if not isinstance(banner, str):
            raise TypeError('Banner must be a string')

        if connect_retries < 1:
            raise ValueError('Connect retries must be positive')

        if connect_interval < 0:
            raise ValueError('Connect interval must not be negative')

        self.banner = banner
        self.host = host
        self.username = username
        self.sshd_path = sshd_path
        self.ssh_path = ssh_path
        self.host_key = host_key
        self.host_key_alg = host_key_alg
        self.sshd_options = dict(sshd_options or {})
        self.ssh_options = dict(ssh_options or {})
        self.connect_retries = connect_retries
        self.connect_interval = connect_interval
        self.client_timeout = client_timeout
        self.banner_received = banner_received
        self.banner_callback = banner_callback or fixed_banner(banner)
        self.public_key_policy = public_key_policy

    @property
    def connect_window(self):
        """The total time allowed for a peer to accept a connection"""

        return self.connect_retries * self.connect_interval


class BannerResult(Record):
    """Result of a successful banner interop scenario"""

    __slots__ = OrderedDict((('role', None), ('peer', None),
                             ('expected', ''), ('observed', ''),
                             ('error', None)))

    def _format(self, k, v):
        """Format a field as a string"""

        if k in ('expected', 'observed'):
            return repr(v)
        else:
            return None if v is None else str(v)


def check_banner(expected, actual):
    """Check that a received banner matches the configured one exactly

       :raises: :exc:`BannerMismatch` if the banners differ

    """

    if actual != expected:
        raise BannerMismatch(expected, actual)


def check_banner_output(expected, output):
    """Check that a foreign client displayed the configured banner

       The client surrounds the banner with other messages, so the
       banner only needs to appear somewhere in its output.

       :raises: :exc:`BannerMismatch` if the banner isn't in the output

    """

    if isinstance(output, bytes):
        output = output.decode('utf-8', errors='replace')

    if expected not in output:
        raise BannerMismatch(expected, output, substring=True)


async def check_client_banner(options=None, **kwargs):
    """Check that our client receives the banner sent by OpenSSH sshd

       An sshd is started on a free port, configured to send the
       banner from a file. Our client connects, records the banner it
       receives and fails to authenticate. The daemon and the files
       it was given are removed on every exit path.

       :param options: (optional)
           Scenario options, which can also be passed as keyword
           arguments
       :type options: :class:`ScenarioOptions`

       :returns: :class:`BannerResult`

       :raises: | :exc:`EnvironmentUnavailable` if sshd can't be found
                | :exc:`SetupError` if the daemon can't be set up
                | :exc:`TransportError` if the daemon can't be reached
                | :exc:`HandshakeError` if no banner was received
                | :exc:`BannerMismatch` if the wrong banner was received

    """

    options = ScenarioOptions(options, **kwargs)
    binary = find_binary(SSHD_BINARY, options.sshd_path, SSHD_ENV_VAR)
    host_key = load_host_key(options.host_key, options.host_key_alg)

    with tempfile.TemporaryDirectory(prefix='sshinterop-') as tempdir:
        banner_path = os.path.join(tempdir, 'banner')
        host_key_path = os.path.join(tempdir, 'host_key')
        log_path = os.path.join(tempdir, 'sshd.log')

        try:
            write_file(banner_path, options.banner.encode('utf-8'),
                       perms=BANNER_FILE_MODE)
            port = get_free_port(options.host)
        except OSError as exc:
            raise SetupError('Unable to set up sshd: %s' % exc) from exc

        write_host_key(host_key, host_key_path)

        scenario_logger = logger.get_child(context='scenario=%s, port=%d' %
                                           (ROLE_CLIENT, port))
        scenario_logger.info('Checking banner sent by %s', binary)

        async with start_sshd(binary, port, host_key_path, banner_path,
                              options.sshd_options, options.host,
                              log_path) as peer:
            sock = await connect_with_retry(options.host, port,
                                            options.connect_retries,
                                            options.connect_interval, peer)

            try:
                exchange = await run_client_exchange(sock, options.username,
                                                     options.banner_received)
            finally:
                sock.close()

    scenario_logger.info('Received banner %r%s', exchange.banner,
                         hide_empty(exchange.error or '', ' after error: '))

    check_banner(options.banner, exchange.banner)

    return BannerResult(ROLE_CLIENT, binary, options.banner,
                        exchange.banner, exchange.error)


async def check_server_banner(options=None, **kwargs):
    """Check that OpenSSH ssh displays the banner sent by our server

       Our server accepts a single connection on a free port in the
       background, sends the banner and lets the client in without
       authentication. The ssh client is run against it and its
       output is searched for the banner.

       :param options: (optional)
           Scenario options, which can also be passed as keyword
           arguments
       :type options: :class:`ScenarioOptions`

       :returns: :class:`BannerResult`

       :raises: | :exc:`EnvironmentUnavailable` if ssh can't be found
                | :exc:`SetupError` if the server can't be set up
                | :exc:`HandshakeError` if the server handshake failed
                | :exc:`BannerMismatch` if ssh didn't display the banner

    """

    options = ScenarioOptions(options, **kwargs)
    binary = find_binary(SSH_BINARY, options.ssh_path, SSH_ENV_VAR)
    host_key = load_host_key(options.host_key, options.host_key_alg)

    try:
        listener = create_listener(options.host)
    except OSError as exc:
        raise SetupError('Unable to listen for ssh: %s' % exc) from exc

    port = listener.getsockname()[1]

    scenario_logger = logger.get_child(context='scenario=%s, port=%d' %
                                       (ROLE_SERVER, port))
    scenario_logger.info('Checking banner displayed by %s', binary)

    exchange = ServerExchange(listener, host_key, options.banner_callback,
                              options.public_key_policy)

    try:
        exchange.start()

        _, output = await run_ssh(binary, options.host, port,
                                  options.username, options.ssh_options,
                                  options.client_timeout)

        await exchange.wait(options.connect_window)
    finally:
        await exchange.close()
        listener.close()

    output = output.decode('utf-8', errors='replace')

    scenario_logger.output(output, 'Output from %s:', binary)

    check_banner_output(options.banner, output)

    return BannerResult(ROLE_SERVER, binary, options.banner, output)
