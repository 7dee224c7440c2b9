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

"""SSH servers and clients used for unit tests"""

import socket

import asyncssh

from sshinterop.misc import async_context_manager

from .util import AsyncTestCase, get_test_key


class BannerServer(asyncssh.SSHServer):
    """Unit test SSH server which sends a banner and requires auth

       This stands in for a foreign daemon: no credentials the client
       could offer are accepted, so authentication always fails after
       the banner is sent.

    """

    def __init__(self, banner):
        self._banner = banner
        self._conn = None

    def connection_made(self, conn):
        """Record connection object for later use"""

        self._conn = conn

    def begin_auth(self, username):
        """Send the banner, if any, and require authentication"""

        if self._banner:
            self._conn.send_auth_banner(self._banner)

        return True

    def password_auth_supported(self):
        """Offer password auth without accepting any password"""

        return True

    def validate_password(self, username, password):
        """Reject all passwords"""

        return False


class BannerClient(asyncssh.SSHClient):
    """Unit test SSH client which records the banner it receives"""

    def __init__(self):
        self.banner = ''

    def auth_banner_received(self, msg, lang):
        """Record the banner"""

        self.banner = msg


class ServerTestCase(AsyncTestCase):
    """Unit test class which starts an AsyncSSH server sending a banner"""

    banner = 'Test banner'

    _server = None
    _server_addr = '127.0.0.1'
    _server_port = 0

    @classmethod
    @async_context_manager
    async def listen(cls, banner, **kwargs):
        """Create an SSH server for the tests to use"""

        options = asyncssh.SSHServerConnectionOptions(
            server_factory=lambda: BannerServer(banner), gss_host=None,
            server_host_keys=[get_test_key(key_id=1)])

        return await asyncssh.listen(cls._server_addr, 0,
                                     family=socket.AF_INET,
                                     options=options, **kwargs)

    # Pylint doesn't like mixed case method names, but this was chosen to
    # match the convention used in the unittest module.

    # pylint: disable=invalid-name

    @classmethod
    async def asyncSetUpClass(cls):
        """Start an SSH server for the tests to use"""

        cls._server = await cls.listen(cls.banner)
        cls._server_port = cls._server.sockets[0].getsockname()[1]

    @classmethod
    async def asyncTearDownClass(cls):
        """Shut down test server"""

        cls._server.close()
        await cls._server.wait_closed()

    # pylint: enable=invalid-name


async def connect_banner_client(host, port, username='user'):
    """Connect an AsyncSSH client and return the banner it received

       Errors after connecting are ignored, since the server may close
       the connection as soon as authentication completes.

    """

    client = BannerClient()

    try:
        conn = await asyncssh.connect(host, port, username=username,
                                      known_hosts=None, client_keys=None,
                                      agent_path=None, password=None,
                                      gss_host=None, config=None,
                                      client_factory=lambda: client)
    except asyncssh.DisconnectError:
        pass
    else:
        conn.close()
        await conn.wait_closed()

    return client.banner
