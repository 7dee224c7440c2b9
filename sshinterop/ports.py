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

"""Ephemeral TCP port allocation"""

import socket

from .constants import DEFAULT_HOST
from .logging import logger


def get_free_port(host=DEFAULT_HOST):
    """Return a TCP port which is currently unbound on host

       A listening socket is bound to port 0, the port assigned by
       the OS is read back, and the socket is closed again before
       returning. The port is not reserved, so another process may
       bind it before the caller does.

       :param host:
           The local address to allocate a port on
       :type host: `str`

       :returns: `int` port number

       :raises: :exc:`OSError` if no socket could be bound

    """

    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
        sock.bind((host, 0))
        sock.listen(1)
        port = sock.getsockname()[1]

    logger.debug2('Allocated free port on %s', (host, port))

    return port


def create_listener(host=DEFAULT_HOST):
    """Return a listening socket bound to an ephemeral port on host

       Unlike :func:`get_free_port`, the socket is left open, so the
       port remains reserved until the caller closes it.

    """

    sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)

    try:
        sock.bind((host, 0))
        sock.listen(1)
        sock.setblocking(False)
    except OSError:
        sock.close()
        raise

    logger.debug2('Listening on %s', sock.getsockname())

    return sock
