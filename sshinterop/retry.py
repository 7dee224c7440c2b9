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

"""Bounded TCP connection retry"""

import asyncio
import socket

from .constants import DEFAULT_CONNECT_INTERVAL, DEFAULT_CONNECT_RETRIES
from .logging import logger
from .misc import PeerExited, TransportError, plural


async def connect_with_retry(host, port, retries=DEFAULT_CONNECT_RETRIES,
                             interval=DEFAULT_CONNECT_INTERVAL, peer=None):
    """Connect to a peer which may still be starting up

       A connection is attempted up to retries times, waiting interval
       seconds before each attempt. The interval is fixed, so the total
       time spent waiting is bounded by retries * interval.

       :param host:
           The address to connect to
       :param port:
           The port to connect to
       :param retries: (optional)
           The maximum number of connection attempts
       :param interval: (optional)
           The time in seconds to wait before each attempt
       :param peer: (optional)
           The peer process expected to accept the connection. If it
           exits, retrying stops immediately.
       :type host: `str`
       :type port: `int`
       :type retries: `int`
       :type interval: `float`
       :type peer: :class:`PeerProcess`

       :returns: A connected, non-blocking :class:`socket.socket`

       :raises: | :exc:`PeerExited` if the peer process exits
                | :exc:`TransportError` if no attempt succeeds

    """

    if retries < 1:
        raise ValueError('Retry count must be positive')

    loop = asyncio.get_event_loop()
    last_exc = None

    for attempt in range(1, retries + 1):
        await asyncio.sleep(interval)

        if peer and peer.has_exited():
            raise PeerExited(peer.binary, peer.returncode)

        sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        sock.setblocking(False)

        try:
            await loop.sock_connect(sock, (host, port))
        except asyncio.CancelledError:
            sock.close()
            raise
        except OSError as exc:
            sock.close()
            last_exc = exc

            logger.debug2('Connect attempt %d to %s failed: %s',
                          attempt, (host, port), str(exc))
        else:
            logger.info('Connected to %s after %s', (host, port),
                        plural(attempt, 'attempt'))
            return sock

    raise TransportError('Unable to connect to %s port %d after %s: %s' %
                         (host, port, plural(retries, 'attempt'),
                          last_exc)) from last_exc
