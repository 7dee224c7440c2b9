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

"""SSH banner exchanges run with AsyncSSH"""

import asyncio
import functools

from collections import OrderedDict

import asyncssh

from .constants import DEFAULT_BANNER, DEFAULT_USERNAME, PUBKEY_USERNAME
from .logging import logger
from .misc import HandshakeError, Record


class ExchangeResult(Record):
    """Outcome of a banner exchange with a foreign peer"""

    __slots__ = OrderedDict((('banner', ''), ('error', None),
                             ('peer_addr', None)))

    def _format(self, k, v):
        """Format a field as a string"""

        if k == 'banner':
            return repr(v)
        elif k == 'peer_addr' and v:
            return '%s, port %d' % v[:2]
        else:
            return None if v is None else str(v)


class BannerCapture:
    """Banner reception callback which records the banner text

       Calling an instance records the message and always succeeds,
       whatever its content.

    """

    def __init__(self):
        self.text = ''
        self.lang = None

    def __call__(self, msg, lang):
        self.text = msg
        self.lang = lang


def fixed_banner(banner=DEFAULT_BANNER):
    """Return a banner production callback which returns a fixed text"""

    def banner_callback(username):
        """Return the banner to send to this user"""

        # pylint: disable=unused-argument

        return banner

    return banner_callback


def allow_pubkey_user(username, key):
    """Public key policy which accepts any key for the test user only"""

    # pylint: disable=unused-argument

    return username == PUBKEY_USERNAME


class _BannerClient(asyncssh.SSHClient):
    """SSH client which reports authentication banners to a callback"""

    def __init__(self, banner_received):
        self._banner_received = banner_received

    def connection_made(self, conn):
        """Log the connection the banner will arrive on"""

        conn.logger.debug1('Waiting for authentication banner')

    def connection_lost(self, exc):
        """Ignore the connection being closed"""

    def auth_banner_received(self, msg, lang):
        """Pass the banner to the callback"""

        self._banner_received(msg, lang)


class _BannerServer(asyncssh.SSHServer):
    """SSH server which sends a banner and requires no authentication"""

    def __init__(self, banner_callback, public_key_policy):
        self._banner_callback = banner_callback
        self._public_key_policy = public_key_policy
        self._conn = None

    def connection_made(self, conn):
        """Record connection object for sending the banner"""

        self._conn = conn

    def connection_lost(self, exc):
        """Ignore the connection being closed"""

    def begin_auth(self, username):
        """Send the banner and let the client in without credentials"""

        banner = self._banner_callback(username)

        if banner:
            self._conn.send_auth_banner(banner)

        return False

    def public_key_auth_supported(self):
        """Public key auth is offered, but begin_auth skips it"""

        return True

    def validate_public_key(self, username, key):
        """Apply the public key policy"""

        return self._public_key_policy(username, key)


async def run_client_exchange(sock, username=DEFAULT_USERNAME,
                              banner_received=None):
    """Run an AsyncSSH client on a socket connected to a foreign server

       The server's host key is not verified and no credentials are
       offered, so authentication is expected to fail. Such a failure
       is tolerated once a banner has been received, since only the
       banner is of interest.

       :param sock:
           A socket connected to the foreign server
       :param username: (optional)
           The username to attempt authentication as
       :param banner_received: (optional)
           A callable invoked with the banner text and language when
           a banner arrives
       :type sock: :class:`socket.socket`
       :type username: `str`
       :type banner_received: `callable`

       :returns: :class:`ExchangeResult` holding the banner received and
                 the authentication error which was tolerated, if any

       :raises: :exc:`HandshakeError` if the exchange failed without a
                banner being received

    """

    capture = BannerCapture()

    def on_banner(msg, lang):
        """Record the banner and pass it on"""

        capture(msg, lang)

        if banner_received:
            banner_received(msg, lang)

    options = asyncssh.SSHClientConnectionOptions(
        username=username, known_hosts=None, client_keys=None,
        agent_path=None, password=None, gss_host=None, config=None,
        client_factory=functools.partial(_BannerClient, on_banner))

    peer_addr = sock.getpeername()
    error = None

    logger.info('Starting SSH client exchange with %s', peer_addr)

    try:
        conn = await asyncssh.run_client(sock, config=None, options=options)
    except (asyncssh.Error, OSError) as exc:
        error = exc
    else:
        logger.debug1('Client unexpectedly authenticated')

        conn.close()
        await conn.wait_closed()

    if error and not capture.text:
        raise HandshakeError('SSH handshake failed before a banner was '
                             'received: %s' % error) from error
    elif error:
        logger.debug1('Ignoring error after banner: %s', str(error))

    return ExchangeResult(capture.text, error, peer_addr)


class ServerExchange:
    """Accept one connection and run an AsyncSSH server on it

       The exchange runs as a background task. Its outcome is delivered
       through a single future which :meth:`wait` returns or raises
       from, so failures on the server side are reported to whoever
       is waiting rather than lost.

       :param listener:
           A non-blocking listening socket to accept the connection on
       :param host_key:
           The server's signing key
       :param banner_callback: (optional)
           A callable taking the username being authenticated and
           returning the banner to send
       :param public_key_policy: (optional)
           A callable taking a username and public key and returning
           whether the key is accepted
       :type listener: :class:`socket.socket`
       :type host_key: :class:`asyncssh.SSHKey`
       :type banner_callback: `callable`
       :type public_key_policy: `callable`

    """

    def __init__(self, listener, host_key, banner_callback=None,
                 public_key_policy=allow_pubkey_user):
        self._listener = listener
        self._host_key = host_key
        self._banner_callback = banner_callback or fixed_banner()
        self._public_key_policy = public_key_policy
        self._result = None
        self._task = None

    def start(self):
        """Start accepting a connection in the background"""

        loop = asyncio.get_event_loop()

        self._result = loop.create_future()
        self._task = loop.create_task(self._run())

    async def _serve(self):
        """Accept a connection and complete the SSH handshake on it"""

        loop = asyncio.get_event_loop()

        sock, peer_addr = await loop.sock_accept(self._listener)

        logger.info('Accepted connection from %s', peer_addr)

        server_factory = functools.partial(_BannerServer,
                                           self._banner_callback,
                                           self._public_key_policy)

        options = asyncssh.SSHServerConnectionOptions(
            server_factory=server_factory,
            server_host_keys=[self._host_key], gss_host=None,
            config=None)

        try:
            conn = await asyncssh.run_server(sock, config=None,
                                             options=options)
        except Exception as exc:
            # Errors raised by the banner or key callbacks end up here too
            sock.close()
            raise HandshakeError('SSH server handshake failed: %s' %
                                 exc) from exc

        conn.close()
        await conn.wait_closed()

        logger.debug1('Server handshake complete')

        return ExchangeResult(peer_addr=peer_addr)

    async def _run(self):
        """Run the exchange and report its outcome"""

        try:
            result = await self._serve()
        except HandshakeError as exc:
            self._result.set_exception(exc)
        except OSError as exc:
            self._result.set_exception(
                HandshakeError('Unable to accept connection: %s' % exc))
        except Exception as exc:
            error = HandshakeError('SSH server exchange failed: %s' % exc)
            error.__cause__ = exc
            self._result.set_exception(error)
        else:
            self._result.set_result(result)

    async def wait(self, timeout=None):
        """Wait for the outcome of the exchange

           :param timeout: (optional)
               Time in seconds to wait for the exchange to finish
           :type timeout: `float`

           :returns: :class:`ExchangeResult`

           :raises: :exc:`HandshakeError` if the exchange failed or
                    didn't finish in time

        """

        done, _ = await asyncio.wait([self._result], timeout=timeout)

        if not done:
            await self.close()
            raise HandshakeError('SSH client never completed the handshake')

        return self._result.result()

    async def close(self):
        """Stop the exchange if it is still running"""

        if self._task and not self._task.done():
            self._task.cancel()

            try:
                await self._task
            except asyncio.CancelledError:
                pass

        if self._result and not self._result.done():
            self._result.cancel()
